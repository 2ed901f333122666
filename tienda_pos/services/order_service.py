# ==============================================================================
# SERVICIO DE PEDIDOS
# ==============================================================================
# Pedidos del catálogo público:
#   enviar_pedido     → formatear, validar, verificar stock, crear, vaciar carrito
#   confirmar_entrega → 1) descontar stock  2) registrar venta  3) completar
#   cancelar_pedido   → pendiente → cancelado
#
# Los tres pasos de la entrega son llamadas independientes al servidor.
# Si uno falla los anteriores NO se revierten: el pedido sigue pendiente
# y el operador puede reintentar.
# ==============================================================================

import logging
from collections import deque
from typing import Any, Dict, List, Optional, Sequence, Union

from tienda_pos import config
from tienda_pos.errors import OfflineUnavailableError, RemoteStoreError, ValidationError
from tienda_pos.models.entities import (
    METODOS_PAGO_PEDIDO,
    CartItem,
    EstadoPedido,
    LineaPedido,
    Pedido,
    Producto,
    Venta,
)
from tienda_pos.performance_logger import profile_function
from tienda_pos.services.cart_service import CartService
from tienda_pos.services.sync_service import SyncService

logger = logging.getLogger(__name__)

PASO_STOCK = 'stock'
PASO_VENTA = 'venta'
PASO_ESTADO = 'estado'


class OrderService:
    """
    Servicio de pedidos.

    Args:
        sync: Motor de sincronización
        cart_service: Carrito del catálogo público
    """

    def __init__(self, sync: SyncService, cart_service: CartService):
        self.sync = sync
        self.cart_service = cart_service
        self._notificaciones = deque(maxlen=50)

    # =========================================================================
    # VALIDACIONES
    # =========================================================================

    def validar_pedido(self, pedido: Dict[str, Any]) -> Dict[str, Any]:
        """
        Valida los datos de un pedido. Retorna el primer error encontrado.

        Args:
            pedido: cliente, productos, total, metodo_pago, tiempo_llegada

        Returns:
            {'valid': True} o {'valid': False, 'error': mensaje}
        """
        cliente = str(pedido.get('cliente') or '').strip()
        if not cliente:
            return {'valid': False, 'error': 'El nombre del cliente es requerido'}

        if len(cliente) < config.VALIDATION.MIN_NOMBRE_CLIENTE:
            return {'valid': False, 'error': 'El nombre debe tener al menos 2 caracteres'}

        productos = pedido.get('productos') or []
        if not productos:
            return {'valid': False, 'error': 'El pedido debe contener al menos un producto'}

        if not pedido.get('tiempo_llegada'):
            return {'valid': False, 'error': 'Debe seleccionar un tiempo de llegada'}

        if not pedido.get('metodo_pago'):
            return {'valid': False, 'error': 'Debe seleccionar un método de pago'}

        try:
            total = float(pedido.get('total'))
        except (TypeError, ValueError):
            total = 0
        if total <= 0:
            return {'valid': False, 'error': 'El total del pedido debe ser mayor a cero'}

        if pedido['metodo_pago'] not in METODOS_PAGO_PEDIDO:
            return {'valid': False, 'error': 'Método de pago no válido'}

        try:
            for linea in productos:
                LineaPedido.from_dict(linea if isinstance(linea, dict) else linea.to_dict())
        except ValidationError as e:
            return {'valid': False, 'error': f'Producto inválido en el pedido: {e}'}

        return {'valid': True}

    def verificar_stock(
        self,
        items: Sequence[Union[CartItem, LineaPedido]],
        productos: List[Producto],
    ) -> Dict[str, Any]:
        """
        Comprueba que cada item tenga stock actual suficiente.

        Args:
            items: Items del carrito
            productos: Lista actual de productos

        Returns:
            {'valid': True} o {'valid': False, 'error', 'producto'} del primer faltante
        """
        por_id = {p.id: p for p in productos}
        for item in items:
            producto = por_id.get(item.id)
            if producto is None:
                return {'valid': False, 'error': 'Producto no encontrado', 'producto': item.nombre}
            if producto.stock < item.cantidad:
                return {
                    'valid': False,
                    'error': f'Stock insuficiente. Disponible: {producto.stock}',
                    'producto': item.nombre,
                }
        return {'valid': True}

    def formatear_pedido(self, datos_formulario: Dict[str, Any], carrito: List[CartItem],
                         total: float) -> Dict[str, Any]:
        """Arma el payload del pedido desde el formulario y el carrito."""
        return {
            'cliente': str(datos_formulario.get('cliente') or '').strip(),
            'tiempo_llegada': datos_formulario.get('tiempo_llegada'),
            'metodo_pago': datos_formulario.get('metodo_pago'),
            'productos': [item.to_linea().to_dict() for item in carrito],
            'total': total,
        }

    def generar_resumen_pedido(self, pedido: Pedido) -> str:
        """Ej: 'Ana • 3 artículos • $45.00'"""
        cantidad = pedido.cantidad_articulos
        plural = 's' if cantidad > 1 else ''
        return f"{pedido.cliente} • {cantidad} artículo{plural} • ${pedido.total:,.2f}"

    # =========================================================================
    # ENVÍO DESDE EL CATÁLOGO
    # =========================================================================

    @profile_function(name="Enviar pedido")
    def enviar_pedido(self, datos_formulario: Dict[str, Any]) -> Dict[str, Any]:
        """
        Envía el pedido armado en el carrito del catálogo.

        Raises:
            OfflineUnavailableError: Sin conexión con el servidor
            RemoteStoreError: El servidor rechazó el pedido
        """
        carrito = self.cart_service.get_items()
        total = self.cart_service.calcular_total()
        datos = self.formatear_pedido(datos_formulario, carrito, total)

        validacion = self.validar_pedido(datos)
        if not validacion['valid']:
            return {'ok': False, 'error': validacion['error']}

        stock = self.verificar_stock(carrito, self.sync.get_productos())
        if not stock['valid']:
            return {'ok': False, 'error': f"{stock['producto']}: {stock['error']}"}

        creado = self.sync.create_pedido(Pedido.from_dict(datos))
        self.cart_service.limpiar()
        logger.info(f"Pedido enviado: {self.generar_resumen_pedido(creado)}")
        return {
            'ok': True,
            'mensaje': '¡Pedido enviado! Te esperamos en la tienda.',
            'pedido': creado.to_dict(),
            'resumen': self.generar_resumen_pedido(creado),
        }

    # =========================================================================
    # GESTIÓN EN EL POS
    # =========================================================================

    def get_pedidos_pendientes(self) -> List[Pedido]:
        return self.sync.get_pedidos_pendientes()

    def _buscar(self, pedido_id: Any) -> Optional[Pedido]:
        if not self.sync.online:
            raise OfflineUnavailableError('No se pueden gestionar pedidos en modo offline')
        return self.sync.get_pedido(pedido_id)

    @profile_function(name="Confirmar entrega de pedido")
    def confirmar_entrega(self, pedido_id: Any) -> Dict[str, Any]:
        """
        Convierte un pedido pendiente en venta.

        Returns:
            Dict con ok; ante una falla a mitad de camino incluye
            'paso_fallido' ('stock', 'venta' o 'estado')
        """
        pedido = self._buscar(pedido_id)
        if pedido is None:
            return {'ok': False, 'error': 'Pedido no encontrado', 'not_found': True}
        if not pedido.puede_cambiar_a(EstadoPedido.COMPLETADO.value):
            return {'ok': False, 'error': f'El pedido ya está {pedido.estado}'}

        paso = PASO_STOCK
        try:
            # 1. Reducir inventario
            self.sync.update_multiple_stock(
                [{'id': linea.id, 'cantidad': linea.cantidad} for linea in pedido.productos]
            )
            # 2. Registrar venta
            paso = PASO_VENTA
            venta = self.sync.create_venta(Venta(
                total=pedido.total,
                metodo_pago=pedido.metodo_pago,
                productos=pedido.productos,
                pedido_id=pedido.id,
            ))
            # 3. Completar pedido
            paso = PASO_ESTADO
            actualizado = self.sync.update_pedido_estado(pedido.id, EstadoPedido.COMPLETADO.value)
        except (RemoteStoreError, OfflineUnavailableError) as e:
            logger.error(f"Entrega del pedido {pedido_id} falló en el paso '{paso}': {e}")
            return {'ok': False, 'error': 'Error al procesar el pedido', 'paso_fallido': paso}

        logger.info(f"Pedido completado: {self.generar_resumen_pedido(actualizado)}")
        return {
            'ok': True,
            'mensaje': 'Pedido completado exitosamente',
            'pedido': actualizado.to_dict(),
            'venta': venta.to_dict(),
        }

    def cancelar_pedido(self, pedido_id: Any) -> Dict[str, Any]:
        pedido = self._buscar(pedido_id)
        if pedido is None:
            return {'ok': False, 'error': 'Pedido no encontrado', 'not_found': True}
        if not pedido.puede_cambiar_a(EstadoPedido.CANCELADO.value):
            return {'ok': False, 'error': f'El pedido ya está {pedido.estado}'}
        actualizado = self.sync.update_pedido_estado(pedido.id, EstadoPedido.CANCELADO.value)
        logger.info(f"Pedido cancelado: {pedido.cliente}")
        return {'ok': True, 'mensaje': 'Pedido cancelado', 'pedido': actualizado.to_dict()}

    # =========================================================================
    # AVISOS DE PEDIDOS NUEVOS
    # =========================================================================

    def on_pedido_nuevo(self, pedido: Pedido) -> None:
        """Suscriptor de pedidos nuevos: guarda el aviso para el POS."""
        resumen = self.generar_resumen_pedido(pedido)
        logger.info(f"Nuevo pedido: {resumen}")
        self._notificaciones.append({'pedido_id': pedido.id, 'resumen': resumen})

    def tomar_notificaciones(self) -> List[Dict[str, Any]]:
        """Retorna y vacía los avisos acumulados."""
        avisos = []
        while self._notificaciones:
            avisos.append(self._notificaciones.popleft())
        return avisos
