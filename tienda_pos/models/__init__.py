# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses. from_dict() valida cada payload
# que cruza un borde (archivo local o red).
# ==============================================================================

from .entities import (
    EstadoPedido,
    MetodoPago,
    OperacionPendiente,
    METODOS_PAGO_PEDIDO,
    METODOS_PAGO_VENTA,
    Producto,
    LineaPedido,
    CartItem,
    Pedido,
    Venta,
    VentasDia,
    PendingChange,
    ProductChanged,
    OrderCreated,
    now_iso,
    now_ms,
)

__all__ = [
    'EstadoPedido',
    'MetodoPago',
    'OperacionPendiente',
    'METODOS_PAGO_PEDIDO',
    'METODOS_PAGO_VENTA',
    'Producto',
    'LineaPedido',
    'CartItem',
    'Pedido',
    'Venta',
    'VentasDia',
    'PendingChange',
    'ProductChanged',
    'OrderCreated',
    'now_iso',
    'now_ms',
]
