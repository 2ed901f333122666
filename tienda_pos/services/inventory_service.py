# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Reglas de negocio de productos sobre el motor de sincronización:
# validación del formulario, unicidad del código de barras, imágenes,
# búsqueda con sugerencias y catálogo público.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from tienda_pos import config
from tienda_pos.errors import OfflineUnavailableError, RemoteStoreError, ValidationError
from tienda_pos.models.entities import Producto
from tienda_pos.services.scanner_service import BarcodeScanner
from tienda_pos.services.sync_service import SyncService

logger = logging.getLogger(__name__)

MENSAJE_PENDIENTE = 'No se pudo guardar en el servidor. El cambio quedó pendiente de sincronizar.'


class InventoryService:
    """
    Servicio para gestión de inventario.

    Responsabilidades:
    - Alta, stock y baja de productos
    - Imágenes de productos
    - Sugerencias de búsqueda del POS
    - Productos visibles en el catálogo
    """

    def __init__(self, sync: SyncService, scanner: BarcodeScanner = None):
        """
        Args:
            sync: Motor de sincronización
            scanner: Scanner del POS (para no sugerir durante una lectura)
        """
        self.sync = sync
        self.scanner = scanner

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def listar_productos(self) -> List[Producto]:
        return self.sync.get_productos()

    def buscar_por_codigo(self, codigo: str) -> Optional[Producto]:
        codigo = (codigo or '').strip()
        if not codigo:
            return None
        return self.sync.get_producto_por_codigo(codigo)

    def productos_disponibles(self) -> List[Producto]:
        """Productos con stock para el catálogo público."""
        return [p for p in self.sync.get_productos() if p.stock > 0]

    def buscar_sugerencias(self, query: str) -> List[Producto]:
        """
        Sugerencias para el buscador del POS.

        Args:
            query: Texto escrito (mínimo 2 caracteres)

        Returns:
            Hasta MAX_SUGERENCIAS productos cuyo nombre o código contiene el texto.
            Vacío mientras el scanner está leyendo un código.
        """
        if self.scanner is not None and self.scanner.is_scanning:
            return []
        texto = (query or '').strip().lower()
        if len(texto) < 2:
            return []
        resultados = [
            p for p in self.sync.get_productos()
            if texto in p.nombre.lower() or texto in p.codigo_barras.lower()
        ]
        return resultados[:config.UI.MAX_SUGERENCIAS]

    # =========================================================================
    # ALTA DE PRODUCTOS
    # =========================================================================

    def _validar_formulario(self, datos: Dict[str, Any]) -> Dict[str, Any]:
        nombre = str(datos.get('nombre') or '').strip()
        codigo = str(datos.get('codigo_barras') or '').strip()
        try:
            precio = float(datos.get('precio'))
            stock_raw = float(datos.get('stock'))
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Por favor completa todos los campos correctamente'}

        if not nombre or not codigo or not stock_raw.is_integer() or stock_raw < 0:
            return {'ok': False, 'error': 'Por favor completa todos los campos correctamente'}

        if precio < config.VALIDATION.MIN_PRICE or precio > config.VALIDATION.MAX_PRICE:
            return {
                'ok': False,
                'error': f'El precio debe estar entre ${config.VALIDATION.MIN_PRICE:,.2f} '
                         f'y ${config.VALIDATION.MAX_PRICE:,.2f}',
            }

        return {
            'ok': True,
            'datos': {'nombre': nombre, 'codigo_barras': codigo, 'precio': precio, 'stock': int(stock_raw)},
        }

    def agregar_producto(self, datos: Dict[str, Any], imagen: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Crea un producto desde el formulario del POS.

        Args:
            datos: nombre, codigo_barras, precio, stock
            imagen: {'content': bytes, 'filename': str, 'content_type': str} (opcional)

        Returns:
            Dict con ok, mensaje, producto, offline, advertencia (si la imagen falló)
        """
        validacion = self._validar_formulario(datos)
        if not validacion['ok']:
            return validacion
        datos = validacion['datos']

        existentes = self.sync.get_productos()
        if any(p.codigo_barras == datos['codigo_barras'] for p in existentes):
            return {'ok': False, 'error': 'Ya existe un producto con ese código de barras'}

        advertencia = None
        if imagen:
            try:
                datos['imagen_url'] = self.sync.upload_product_image(
                    imagen['content'], imagen.get('filename') or '', imagen.get('content_type') or ''
                )
            except (ValidationError, OfflineUnavailableError, RemoteStoreError) as e:
                # El producto se crea igual, sin imagen
                logger.warning(f"Error al subir imagen: {e}")
                advertencia = f'Error al subir imagen: {e}'

        try:
            producto = self.sync.add_producto(datos)
        except RemoteStoreError:
            return {'ok': False, 'error': MENSAJE_PENDIENTE, 'pendiente': True}

        logger.info(f"Producto creado: {producto.nombre} ({producto.codigo_barras})")
        result = {
            'ok': True,
            'mensaje': f'Producto "{producto.nombre}" agregado exitosamente',
            'producto': producto.to_dict(),
            'offline': producto.es_temporal,
        }
        if advertencia:
            result['advertencia'] = advertencia
        return result

    # =========================================================================
    # STOCK, BAJA E IMAGEN
    # =========================================================================

    def actualizar_stock(self, producto_id: Any, nuevo_stock: Any) -> Dict[str, Any]:
        try:
            valor = float(nuevo_stock)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Stock inválido'}
        if not valor.is_integer() or valor < 0:
            return {'ok': False, 'error': 'El stock debe ser un entero mayor o igual a 0'}

        if self.sync.get_producto(producto_id) is None:
            return {'ok': False, 'error': 'Producto no encontrado', 'not_found': True}

        try:
            producto = self.sync.update_stock(producto_id, int(valor))
        except RemoteStoreError:
            return {'ok': False, 'error': MENSAJE_PENDIENTE, 'pendiente': True}
        return {
            'ok': True,
            'mensaje': 'Stock actualizado',
            'producto': producto.to_dict() if producto else None,
            'offline': not self.sync.online,
        }

    def eliminar_producto(self, producto_id: Any) -> Dict[str, Any]:
        """Elimina un producto (y su imagen, si tiene)."""
        producto = self.sync.get_producto(producto_id)
        if producto is None:
            return {'ok': False, 'error': 'Producto no encontrado', 'not_found': True}
        try:
            self.sync.delete_producto(producto_id)
        except RemoteStoreError:
            return {'ok': False, 'error': MENSAJE_PENDIENTE, 'pendiente': True}
        logger.info(f"Producto eliminado: {producto.nombre}")
        return {'ok': True, 'mensaje': f'Producto "{producto.nombre}" eliminado', 'offline': not self.sync.online}

    def validar_imagen(self, content_type: str, size: int) -> Dict[str, Any]:
        try:
            self.sync.validate_image(content_type, size)
        except ValidationError as e:
            return {'ok': False, 'error': str(e)}
        return {'ok': True}

    def actualizar_imagen(self, producto_id: Any, imagen: Dict[str, Any]) -> Dict[str, Any]:
        """
        Reemplaza la imagen de un producto. Requiere conexión.

        Raises:
            OfflineUnavailableError: Sin conexión
        """
        content = imagen.get('content') or b''
        validacion = self.validar_imagen(imagen.get('content_type') or '', len(content))
        if not validacion['ok']:
            return validacion
        if self.sync.get_producto(producto_id) is None:
            return {'ok': False, 'error': 'Producto no encontrado', 'not_found': True}

        url = self.sync.replace_product_image(
            producto_id, content, imagen.get('filename') or '', imagen.get('content_type') or ''
        )
        return {'ok': True, 'mensaje': 'Imagen actualizada', 'imagen_url': url}
