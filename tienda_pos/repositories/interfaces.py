# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que cumplen los repositorios. Los servicios dependen de estas
# interfaces, NO de implementaciones concretas:
#
# 1. ALMACENAMIENTO LOCAL
#    - ILocalMirror / ISettingsRepository → local_storage.json
#
# 2. ALMACENAMIENTO REMOTO
#    - IRemoteStore → Supabase (producción) o MemoryRemoteStore (tests/dev)
#
# Cambiar de backend remoto solo requiere otra implementación de
# IRemoteStore y ajustar app_container.py.
#
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from tienda_pos.models.entities import PendingChange


# Callback de notificaciones: recibe {'eventType', 'new', 'old'}
ChangeCallback = Callable[[Dict[str, Any]], None]


# ==============================================================================
# INTERFACES LOCALES
# ==============================================================================

@runtime_checkable
class IKeyValueRepository(Protocol):
    """Almacenamiento clave → valor con claves fijas."""

    def get_item(self, key: str, default: Any = None) -> Any:
        ...

    def set_item(self, key: str, value: Any) -> None:
        ...

    def remove_item(self, key: str) -> Optional[Any]:
        ...


@runtime_checkable
class ILocalMirror(IKeyValueRepository, Protocol):
    """
    Interfaz del espejo local de productos y de la cola de cambios pendientes.

    lock: RLock del archivo; lo toman append_pending_change y quien lea y
    reescriba la cola en un solo paso.
    """

    lock: Any

    def get_productos(self) -> List[Dict[str, Any]]:
        """Obtiene la copia local de productos."""
        ...

    def save_productos(self, productos: List[Dict[str, Any]]) -> None:
        """Reemplaza la copia local."""
        ...

    def find_by_codigo(self, codigo: str) -> Optional[Dict[str, Any]]:
        ...

    def find_by_id(self, producto_id: Any) -> Optional[Dict[str, Any]]:
        ...

    def add_producto(self, producto: Dict[str, Any]) -> None:
        ...

    def update_producto(self, producto_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def delete_producto(self, producto_id: Any) -> None:
        ...

    def get_pending_changes(self) -> List[PendingChange]:
        """Cola en orden FIFO."""
        ...

    def append_pending_change(self, change: PendingChange) -> None:
        ...

    def save_pending_changes(self, changes: List[PendingChange]) -> None:
        ...

    def clear_pending_changes(self) -> None:
        ...


@runtime_checkable
class ISettingsRepository(Protocol):
    """Interfaz para preferencias de la interfaz."""

    def get_vista_activa(self) -> str:
        ...

    def set_vista_activa(self, vista: str) -> bool:
        ...


# ==============================================================================
# INTERFAZ REMOTA
# ==============================================================================

@runtime_checkable
class IRemoteStore(Protocol):
    """
    Base de datos y storage remotos.

    Todas las operaciones lanzan RemoteStoreError ante cualquier falla
    (red, credenciales, restricciones de la tabla).
    """

    def is_configured(self) -> bool:
        """True si hay URL y credenciales reales (no placeholders)."""
        ...

    def ping(self) -> None:
        """Consulta trivial para comprobar la conexión."""
        ...

    def select(
        self,
        table: str,
        eq: Optional[Dict[str, Any]] = None,
        gte: Optional[Dict[str, Any]] = None,
        lte: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> List[Dict[str, Any]]:
        ...

    def select_one(self, table: str, column: str, value: Any) -> Optional[Dict[str, Any]]:
        """Primera fila con column == value, o None."""
        ...

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Inserta y retorna la fila tal como quedó guardada (con id)."""
        ...

    def update(self, table: str, row_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Actualiza por id y retorna la fila resultante."""
        ...

    def delete(self, table: str, row_id: Any) -> None:
        ...

    def upload_file(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        """Sube un archivo y retorna su URL pública."""
        ...

    def remove_file(self, bucket: str, key: str) -> None:
        ...

    def subscribe(self, table: str, callback: ChangeCallback, event: str = '*') -> Any:
        """
        Registra interés en cambios de una tabla.
        event: '*', 'INSERT', 'UPDATE' o 'DELETE'.

        Returns:
            Handle opaco para unsubscribe()
        """
        ...

    def unsubscribe(self, handle: Any) -> None:
        ...

    def close(self) -> None:
        """Libera conexiones abiertas (sockets de notificaciones)."""
        ...
