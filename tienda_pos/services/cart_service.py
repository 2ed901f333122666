# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Reglas de cantidad del carrito. Se usa con dos claves de sesión:
#   'carrito_pos' → carrito del punto de venta (sin tope por producto)
#   'carrito'     → carrito del catálogo público (tope MAX_CANTIDAD_POR_PRODUCTO)
#
# Cada item recuerda el stock que tenía el producto al agregarlo; la
# cantidad nunca lo supera y nunca queda en 0 (el item se elimina).
# ==============================================================================

import logging
from typing import Any, Dict, List, MutableMapping, Optional

from flask import session

from tienda_pos.errors import ValidationError
from tienda_pos.models.entities import CartItem, Producto

logger = logging.getLogger(__name__)


class CartService:
    """
    Servicio para gestión de un carrito.

    Args:
        storage_key: Clave bajo la que se guarda la lista de items
        max_por_producto: Tope de unidades por producto (None = sin tope)
        storage: Mapping donde persistir (por defecto la sesión de Flask)
    """

    def __init__(
        self,
        storage_key: str,
        max_por_producto: Optional[int] = None,
        storage: MutableMapping = None,
    ):
        self.storage_key = storage_key
        self.max_por_producto = max_por_producto
        self._storage = storage

    @property
    def storage(self) -> MutableMapping:
        return self._storage if self._storage is not None else session

    def _get_cart(self) -> List[CartItem]:
        """
        Lee el carrito guardado. Items con forma inválida se descartan.

        Returns:
            Lista de CartItem
        """
        raw = self.storage.get(self.storage_key, [])
        if not isinstance(raw, list):
            return []
        items = []
        for data in raw:
            try:
                item = CartItem.from_dict(data)
            except ValidationError as e:
                logger.warning(f"Item de carrito inválido descartado: {e}")
                continue
            if item.cantidad > 0:
                items.append(item)
        return items

    def _save_cart(self, cart: List[CartItem]) -> None:
        self.storage[self.storage_key] = [item.to_dict() for item in cart]
        if hasattr(self.storage, 'modified'):
            self.storage.modified = True

    def _find(self, cart: List[CartItem], producto_id: Any) -> Optional[CartItem]:
        for item in cart:
            if item.id == producto_id:
                return item
        return None

    def _resumen(self, cart: List[CartItem]) -> Dict[str, Any]:
        return {
            'total_items': sum(item.cantidad for item in cart),
            'total_monto': round(sum(item.subtotal for item in cart), 2),
            'items_count': len(cart),
        }

    def _result(self, cart: List[CartItem], mensaje: str) -> Dict[str, Any]:
        return {'ok': True, 'mensaje': mensaje, 'carrito': self._resumen(cart)}

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_cart(self) -> Dict[str, Any]:
        """
        Obtiene el carrito con totales calculados.

        Returns:
            Dict con items, total_items, total_monto, items_count
        """
        cart = self._get_cart()
        return {'items': [item.to_dict() for item in cart], **self._resumen(cart)}

    def get_items(self) -> List[CartItem]:
        return self._get_cart()

    def calcular_total(self) -> float:
        return round(sum(item.subtotal for item in self._get_cart()), 2)

    def is_empty(self) -> bool:
        return not self._get_cart()

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def agregar(self, producto: Producto) -> Dict[str, Any]:
        """
        Agrega una unidad de un producto.

        Args:
            producto: Producto con el stock actual

        Returns:
            Dict con resultado (ok, mensaje/error, carrito)
        """
        if producto.stock <= 0:
            return {'ok': False, 'error': f'"{producto.nombre}" está agotado'}

        cart = self._get_cart()
        item = self._find(cart, producto.id)
        if item is None:
            cart.append(CartItem.from_producto(producto))
        else:
            if item.cantidad >= item.stock:
                return {'ok': False, 'error': f'No hay más stock disponible de "{producto.nombre}"'}
            if self.max_por_producto is not None and item.cantidad >= self.max_por_producto:
                return {'ok': False, 'error': f'Máximo {self.max_por_producto} unidades por producto'}
            item.cantidad += 1

        self._save_cart(cart)
        return self._result(cart, f'"{producto.nombre}" agregado al carrito')

    def incrementar(self, producto_id: Any) -> Dict[str, Any]:
        cart = self._get_cart()
        item = self._find(cart, producto_id)
        if item is None:
            return {'ok': False, 'error': 'Producto no está en el carrito', 'not_found': True}
        if item.cantidad >= item.stock:
            return {'ok': False, 'error': f'No hay más stock disponible de "{item.nombre}"'}
        if self.max_por_producto is not None and item.cantidad >= self.max_por_producto:
            return {'ok': False, 'error': f'Máximo {self.max_por_producto} unidades por producto'}
        item.cantidad += 1
        self._save_cart(cart)
        return self._result(cart, f'Una unidad de "{item.nombre}" agregada')

    def decrementar(self, producto_id: Any) -> Dict[str, Any]:
        """Quita una unidad; con cantidad 1 el item se elimina."""
        cart = self._get_cart()
        item = self._find(cart, producto_id)
        if item is None:
            return {'ok': False, 'error': 'Producto no está en el carrito', 'not_found': True}
        if item.cantidad > 1:
            item.cantidad -= 1
            self._save_cart(cart)
            return self._result(cart, f'Una unidad de "{item.nombre}" eliminada')
        cart.remove(item)
        self._save_cart(cart)
        return self._result(cart, f'"{item.nombre}" eliminado del carrito')

    def actualizar_cantidad(self, producto_id: Any, nueva_cantidad: Any) -> Dict[str, Any]:
        """
        Fija la cantidad desde un input.

        Args:
            producto_id: ID del producto
            nueva_cantidad: Cantidad deseada (<= 0 elimina el item)

        Returns:
            Dict con resultado; si se rechaza el item queda igual
        """
        try:
            nueva_cantidad = int(nueva_cantidad)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Cantidad inválida'}

        cart = self._get_cart()
        item = self._find(cart, producto_id)
        if item is None:
            return {'ok': False, 'error': 'Producto no está en el carrito', 'not_found': True}

        if nueva_cantidad <= 0:
            return self.eliminar_item(producto_id)
        if nueva_cantidad > item.stock:
            return {'ok': False, 'error': 'Cantidad excede el stock disponible'}
        if self.max_por_producto is not None and nueva_cantidad > self.max_por_producto:
            return {'ok': False, 'error': f'Máximo {self.max_por_producto} unidades por producto'}

        item.cantidad = nueva_cantidad
        self._save_cart(cart)
        return self._result(cart, 'Cantidad actualizada')

    def eliminar_item(self, producto_id: Any) -> Dict[str, Any]:
        cart = self._get_cart()
        nueva_lista = [item for item in cart if item.id != producto_id]
        if len(nueva_lista) == len(cart):
            return {'ok': False, 'error': 'Producto no está en el carrito', 'not_found': True}
        self._save_cart(nueva_lista)
        return self._result(nueva_lista, 'Producto eliminado del carrito')

    def limpiar(self) -> Dict[str, Any]:
        """Vacía el carrito completamente."""
        self._save_cart([])
        return self._result([], 'Carrito vaciado')
