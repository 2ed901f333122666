# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones sobre el motor de sincronización
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
#
# ESTRUCTURA:
# ├── timers.py            → Temporizadores de un disparo
# ├── event_bus.py         → Canal de eventos tipados
# ├── scanner_service.py   → Detección de lector de códigos
# ├── sync_service.py      → Modo online/offline, cola de cambios
# ├── inventory_service.py → Productos, imágenes, sugerencias
# ├── cart_service.py      → Carritos del POS y del catálogo
# ├── order_service.py     → Pedidos del catálogo y entregas
# ├── sales_service.py     → Ventas y reportes
# └── auth_service.py      → Acceso admin al reporte
# ==============================================================================

from tienda_pos.services.event_bus import EventBus
from tienda_pos.services.scanner_service import BarcodeScanner
from tienda_pos.services.sync_service import SyncService
from tienda_pos.services.inventory_service import InventoryService
from tienda_pos.services.cart_service import CartService
from tienda_pos.services.order_service import OrderService
from tienda_pos.services.sales_service import SalesService
from tienda_pos.services.auth_service import AuthService

__all__ = [
    'EventBus',
    'BarcodeScanner',
    'SyncService',
    'InventoryService',
    'CartService',
    'OrderService',
    'SalesService',
    'AuthService',
]
