# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# ESTRUCTURA:
# ├── interfaces.py           → Protocolos (contratos)
# ├── base.py                 → Documento JSON local (BaseRepository, DictRepository)
# ├── local_mirror.py         → Cache de productos + cola de cambios pendientes
# ├── settings_repository.py  → Preferencias de UI
# ├── remote_store.py         → IRemoteStore en memoria (tests/dev)
# └── supabase_repository.py  → IRemoteStore sobre Supabase
# ==============================================================================

from .interfaces import (
    IKeyValueRepository,
    ILocalMirror,
    ISettingsRepository,
    IRemoteStore,
)

from .base import BaseRepository, DictRepository
from .local_mirror import LocalMirror
from .settings_repository import SettingsRepository
from .remote_store import MemoryRemoteStore
from .supabase_repository import SupabaseRepository

__all__ = [
    # Interfaces
    'IKeyValueRepository',
    'ILocalMirror',
    'ISettingsRepository',
    'IRemoteStore',

    # Clases base
    'BaseRepository',
    'DictRepository',

    # Implementaciones
    'LocalMirror',
    'SettingsRepository',
    'MemoryRemoteStore',
    'SupabaseRepository',
]
