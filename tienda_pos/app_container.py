# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Contexto de la aplicación
# ==============================================================================
# Construye una sola vez cada repositorio y servicio y los entrega a quien
# los necesite (rutas, tests). Reemplaza las instancias globales sueltas.
#
# ALMACÉN REMOTO:
#   config.REMOTE_BACKEND = "supabase" → SupabaseRepository (credenciales .env)
#   config.REMOTE_BACKEND = "memory"   → MemoryRemoteStore (desarrollo)
#   Los tests inyectan su propio MemoryRemoteStore.
#
# SUSCRIPCIONES:
#   pedidos nuevos      → OrderService.on_pedido_nuevo (avisos del POS)
#   cambios de producto → ultimo_cambio (el POS recarga cuando cambia)
# ==============================================================================

import logging
import os
from typing import Any, Dict, Optional

from tienda_pos import config
from tienda_pos.models.entities import ProductChanged, now_iso

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Espejo local (JSON) y almacén remoto
# ═══════════════════════════════════════════════════════════════════════════════
from tienda_pos.repositories import (
    LocalMirror,
    MemoryRemoteStore,
    SettingsRepository,
    SupabaseRepository,
)
from tienda_pos.repositories.interfaces import IRemoteStore

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from tienda_pos.services import (
    AuthService,
    BarcodeScanner,
    CartService,
    EventBus,
    InventoryService,
    OrderService,
    SalesService,
    SyncService,
)
from tienda_pos.services.timers import TimerFactory

logger = logging.getLogger(__name__)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(base_path='/path/to/data')
        sync = container.sync
        pedidos = container.orders
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None, remote: IRemoteStore = None,
                timer_factory: TimerFactory = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None, remote: IRemoteStore = None,
                 timer_factory: TimerFactory = None):
        """
        Inicializa el contenedor.

        Args:
            base_path: Carpeta de datos locales (default config.DATA_DIR)
            remote: Almacén remoto a usar (default según config.REMOTE_BACKEND)
            timer_factory: Fábrica de timers para scanner y reintentos
        """
        if self._initialized:
            return

        self._base_path = base_path or config.DATA_DIR
        os.makedirs(self._base_path, exist_ok=True)
        self._timer_factory = timer_factory

        self._mirror: Optional[LocalMirror] = None
        self._settings: Optional[SettingsRepository] = None
        self._remote: Optional[IRemoteStore] = remote

        self._event_bus: Optional[EventBus] = None
        self._sync: Optional[SyncService] = None
        self._scanner: Optional[BarcodeScanner] = None
        self._inventory: Optional[InventoryService] = None
        self._carrito_pos: Optional[CartService] = None
        self._carrito_catalogo: Optional[CartService] = None
        self._orders: Optional[OrderService] = None
        self._sales: Optional[SalesService] = None
        self._auth: Optional[AuthService] = None

        self.ultimo_cambio: Optional[Dict[str, Any]] = None
        self._unsubscribers = []
        self._initialized = True

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def mirror(self) -> LocalMirror:
        """Espejo local de productos y cola de cambios (singleton)."""
        if self._mirror is None:
            self._mirror = LocalMirror(self._base_path)
        return self._mirror

    @property
    def settings(self) -> SettingsRepository:
        """Preferencias de la interfaz (singleton)."""
        if self._settings is None:
            self._settings = SettingsRepository(self._base_path)
        return self._settings

    @property
    def remote(self) -> IRemoteStore:
        """Almacén remoto (singleton)."""
        if self._remote is None:
            if config.REMOTE_BACKEND == 'memory':
                logger.info("Usando almacén remoto en memoria")
                self._remote = MemoryRemoteStore()
            else:
                self._remote = SupabaseRepository()
        return self._remote

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            self._event_bus = EventBus()
        return self._event_bus

    @property
    def sync(self) -> SyncService:
        """Motor de sincronización (singleton)."""
        if self._sync is None:
            self._sync = SyncService(
                self.remote,
                self.mirror,
                event_bus=self.event_bus,
                timer_factory=self._timer_factory,
            )
            self._unsubscribers.append(self._sync.on_data_change(self._on_producto_cambiado))
        return self._sync

    @property
    def scanner(self) -> BarcodeScanner:
        """Scanner del POS (singleton)."""
        if self._scanner is None:
            self._scanner = BarcodeScanner(timer_factory=self._timer_factory)
        return self._scanner

    @property
    def inventory(self) -> InventoryService:
        """Servicio de inventario (singleton)."""
        if self._inventory is None:
            self._inventory = InventoryService(self.sync, self.scanner)
        return self._inventory

    @property
    def carrito_pos(self) -> CartService:
        """Carrito del punto de venta, en la sesión de Flask."""
        if self._carrito_pos is None:
            self._carrito_pos = CartService(config.CARRITO.POS_STORAGE_KEY)
        return self._carrito_pos

    @property
    def carrito_catalogo(self) -> CartService:
        """Carrito del catálogo público, con tope por producto."""
        if self._carrito_catalogo is None:
            self._carrito_catalogo = CartService(
                config.CARRITO.STORAGE_KEY,
                config.CARRITO.MAX_CANTIDAD_POR_PRODUCTO,
            )
        return self._carrito_catalogo

    @property
    def orders(self) -> OrderService:
        """Servicio de pedidos (singleton). Recibe los avisos de pedidos nuevos."""
        if self._orders is None:
            self._orders = OrderService(self.sync, self.carrito_catalogo)
            self._unsubscribers.append(self.sync.subscribe_to_pedidos(self._orders.on_pedido_nuevo))
        return self._orders

    @property
    def sales(self) -> SalesService:
        """Servicio de ventas (singleton)."""
        if self._sales is None:
            self._sales = SalesService(self.sync, self.carrito_pos)
        return self._sales

    @property
    def auth(self) -> AuthService:
        if self._auth is None:
            self._auth = AuthService()
        return self._auth

    # =========================================================================
    # SUSCRIPTORES
    # =========================================================================

    def _on_producto_cambiado(self, event: ProductChanged) -> None:
        producto = event.new or event.old or {}
        self.ultimo_cambio = {
            'tipo': event.event_type,
            'producto_id': producto.get('id'),
            'fecha': now_iso(),
        }
        logger.debug(f"Catálogo modificado: {event.event_type}")

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Detiene timers y suscripciones y descarta todas las instancias.
        Útil para testing o para recargar datos.
        """
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._scanner is not None:
            self._scanner.stop()
        if self._sync is not None:
            self._sync.shutdown()
        if self._remote is not None:
            self._remote.close()

        self._mirror = None
        self._settings = None
        self._remote = None
        self._event_bus = None
        self._sync = None
        self._scanner = None
        self._inventory = None
        self._carrito_pos = None
        self._carrito_catalogo = None
        self._orders = None
        self._sales = None
        self._auth = None
        self.ultimo_cambio = None

    @classmethod
    def get_instance(cls, base_path: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            base_path: Carpeta de datos (solo se usa en la primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(base_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(base_path: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        base_path: Carpeta de datos locales

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(base_path)
