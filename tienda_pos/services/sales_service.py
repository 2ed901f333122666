# ==============================================================================
# SERVICIO DE VENTAS
# ==============================================================================
# Ventas directas del POS y reporte de ventas por día.
# ==============================================================================

import logging
from datetime import datetime
from typing import Any, Dict, List

from tienda_pos.errors import OfflineUnavailableError, RemoteStoreError
from tienda_pos.models.entities import METODOS_PAGO_VENTA, Venta, VentasDia
from tienda_pos.performance_logger import profile_function
from tienda_pos.services.cart_service import CartService
from tienda_pos.services.sync_service import SyncService

logger = logging.getLogger(__name__)

DATE_FORMAT = '%Y-%m-%d'


class SalesService:
    """
    Servicio de ventas.

    Args:
        sync: Motor de sincronización
        cart_service: Carrito del POS
    """

    def __init__(self, sync: SyncService, cart_service: CartService):
        self.sync = sync
        self.cart_service = cart_service

    @profile_function(name="Finalizar venta POS")
    def finalizar_venta(self, metodo_pago: str) -> Dict[str, Any]:
        """
        Cobra el carrito del POS.

        Descuenta el stock de cada item (stock recordado - cantidad),
        registra la venta sin pedido asociado y vacía el carrito.

        Args:
            metodo_pago: efectivo, tarjeta o transferencia

        Returns:
            Dict con ok, mensaje, venta

        Raises:
            OfflineUnavailableError: Sin conexión (no se toca el stock)
        """
        carrito = self.cart_service.get_items()
        if not carrito:
            return {'ok': False, 'error': 'El carrito está vacío'}
        if metodo_pago not in METODOS_PAGO_VENTA:
            return {'ok': False, 'error': 'Método de pago no válido'}
        if not self.sync.online:
            raise OfflineUnavailableError('No se pueden registrar ventas en modo offline')

        total = self.cart_service.calcular_total()
        try:
            for item in carrito:
                self.sync.update_stock(item.id, item.stock - item.cantidad)
            venta = self.sync.create_venta(Venta(
                total=total,
                metodo_pago=metodo_pago,
                productos=[item.to_linea() for item in carrito],
                pedido_id=None,
            ))
        except (RemoteStoreError, OfflineUnavailableError) as e:
            logger.error(f"Error al finalizar venta: {e}")
            return {'ok': False, 'error': 'Error al procesar la venta', 'error_interno': True}

        self.cart_service.limpiar()
        logger.info(f"Venta completada por ${total:,.2f} ({metodo_pago})")
        return {
            'ok': True,
            'mensaje': f'Venta completada por ${total:,.2f}',
            'venta': venta.to_dict(),
        }

    # =========================================================================
    # REPORTES
    # =========================================================================

    def get_ventas_por_dia(self, fecha_desde: str, fecha_hasta: str) -> Dict[str, Any]:
        """
        Reporte de ventas agrupadas por día.

        Args:
            fecha_desde: YYYY-MM-DD (inclusive)
            fecha_hasta: YYYY-MM-DD (inclusive)

        Returns:
            Dict con ok, dias (más reciente primero) y resumen del período
        """
        try:
            desde = datetime.strptime(fecha_desde or '', DATE_FORMAT).date()
            hasta = datetime.strptime(fecha_hasta or '', DATE_FORMAT).date()
        except ValueError:
            return {'ok': False, 'error': 'Las fechas deben tener formato AAAA-MM-DD'}
        if desde > hasta:
            return {'ok': False, 'error': 'La fecha inicial no puede ser posterior a la final'}

        dias = self.sync.get_ventas_por_dia(desde.isoformat(), hasta.isoformat())
        return {
            'ok': True,
            'desde': desde.isoformat(),
            'hasta': hasta.isoformat(),
            'dias': [dia.to_dict() for dia in dias],
            'resumen': self.resumen_periodo(dias),
        }

    def resumen_periodo(self, dias: List[VentasDia]) -> Dict[str, Any]:
        """Total, cantidad de ventas y ticket promedio del período."""
        total = round(sum(dia.total for dia in dias), 2)
        cantidad = sum(dia.cantidad for dia in dias)
        promedio = round(total / cantidad, 2) if cantidad else 0
        return {'total': total, 'cantidad': cantidad, 'promedio': promedio}
