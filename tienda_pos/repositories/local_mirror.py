# ==============================================================================
# ESPEJO LOCAL - Cache de productos y cola de cambios pendientes
# ==============================================================================
# Encapsula el acceso a local_storage.json:
#   pos_productos        → lista de productos (última copia conocida)
#   pos_last_sync        → timestamp ISO de la última escritura del cache
#   pos_pending_changes  → cola FIFO de cambios sin sincronizar
# ==============================================================================

import logging
import os
from typing import Any, Dict, List, Optional

from tienda_pos import config
from tienda_pos.errors import ValidationError
from tienda_pos.models.entities import PendingChange, now_iso
from .base import DictRepository

logger = logging.getLogger(__name__)


class LocalMirror(DictRepository):
    """
    Repositorio del espejo local.

    Formato de datos en local_storage.json:
    {
        "pos_productos": [{"id": "...", "codigo_barras": "...", ...}],
        "pos_last_sync": "2024-01-01T10:00:00+00:00",
        "pos_pending_changes": [{"operation": "insert", "data": {...}, "timestamp": 1704103200000}]
    }
    """

    def __init__(self, base_path: str):
        """
        Inicializa el espejo local.

        Args:
            base_path: Carpeta de datos locales
        """
        file_path = os.path.join(base_path, config.STORAGE.FILE_NAME)
        super().__init__(file_path)

    # =========================================================================
    # Productos
    # =========================================================================

    def get_productos(self) -> List[Dict[str, Any]]:
        """
        Obtiene la copia local de productos.

        Returns:
            Lista de productos (vacía si nunca se sincronizó)
        """
        productos = self.get_item(config.STORAGE.PRODUCTOS_KEY, [])
        return productos if isinstance(productos, list) else []

    def save_productos(self, productos: List[Dict[str, Any]]) -> None:
        """
        Reemplaza la copia local y marca el momento de la escritura.

        Args:
            productos: Lista completa de productos
        """
        with self.documento() as data:
            data[config.STORAGE.PRODUCTOS_KEY] = productos
            data[config.STORAGE.LAST_SYNC_KEY] = now_iso()

    def get_last_sync(self) -> Optional[str]:
        return self.get_item(config.STORAGE.LAST_SYNC_KEY)

    def find_by_codigo(self, codigo: str) -> Optional[Dict[str, Any]]:
        for producto in self.get_productos():
            if producto.get('codigo_barras') == codigo:
                return producto
        return None

    def find_by_id(self, producto_id: Any) -> Optional[Dict[str, Any]]:
        for producto in self.get_productos():
            if producto.get('id') == producto_id:
                return producto
        return None

    def add_producto(self, producto: Dict[str, Any]) -> None:
        """Agrega un producto; si ya hay uno con el mismo ID lo reemplaza."""
        with self.lock:
            productos = [p for p in self.get_productos()
                         if producto.get('id') is None or p.get('id') != producto.get('id')]
            productos.append(producto)
            self.save_productos(productos)

    def update_producto(self, producto_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Aplica cambios parciales a un producto del cache.

        Args:
            producto_id: ID del producto
            updates: Campos a modificar

        Returns:
            Producto actualizado o None si no está en el cache
        """
        with self.lock:
            productos = self.get_productos()
            for index, producto in enumerate(productos):
                if producto.get('id') == producto_id:
                    productos[index] = {**producto, **updates}
                    self.save_productos(productos)
                    return productos[index]
            return None

    def delete_producto(self, producto_id: Any) -> None:
        with self.lock:
            productos = [p for p in self.get_productos() if p.get('id') != producto_id]
            self.save_productos(productos)

    # =========================================================================
    # Cola de cambios pendientes
    # =========================================================================

    def get_pending_changes(self) -> List[PendingChange]:
        """
        Obtiene la cola en orden de llegada.
        Las entradas corruptas se descartan con un warning.

        Returns:
            Lista de PendingChange
        """
        raw = self.get_item(config.STORAGE.PENDING_CHANGES_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Cola de cambios pendientes corrupta, se ignora")
            return []
        changes = []
        for item in raw:
            try:
                changes.append(PendingChange.from_dict(item))
            except ValidationError as e:
                logger.warning(f"Cambio pendiente descartado: {e}")
        return changes

    def append_pending_change(self, change: PendingChange) -> None:
        with self.lock:
            raw = self.get_item(config.STORAGE.PENDING_CHANGES_KEY, [])
            if not isinstance(raw, list):
                raw = []
            raw.append(change.to_dict())
            self.set_item(config.STORAGE.PENDING_CHANGES_KEY, raw)

    def save_pending_changes(self, changes: List[PendingChange]) -> None:
        """Reemplaza la cola (una cola vacía elimina la clave)."""
        if changes:
            self.set_item(config.STORAGE.PENDING_CHANGES_KEY, [c.to_dict() for c in changes])
        else:
            self.clear_pending_changes()

    def clear_pending_changes(self) -> None:
        self.remove_item(config.STORAGE.PENDING_CHANGES_KEY)

    def count_pending_changes(self) -> int:
        return len(self.get_pending_changes())
