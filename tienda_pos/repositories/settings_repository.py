# ==============================================================================
# REPOSITORIO DE PREFERENCIAS DE UI
# ==============================================================================
# Comparte local_storage.json con el espejo local.
# Guarda la última pestaña activa del POS (pos_active_view).
# ==============================================================================

import os
from typing import Any

from tienda_pos import config
from .base import DictRepository


class SettingsRepository(DictRepository):
    """
    Repositorio para preferencias de la interfaz.

    Formato (dentro de local_storage.json):
    {
        "pos_active_view": "inventario"
    }
    """

    def __init__(self, base_path: str):
        """
        Inicializa el repositorio de preferencias.

        Args:
            base_path: Carpeta de datos locales
        """
        file_path = os.path.join(base_path, config.STORAGE.FILE_NAME)
        super().__init__(file_path)

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self.get_item(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        self.set_item(key, value)

    # =========================================================================
    # Métodos específicos para configuraciones comunes
    # =========================================================================

    def get_vista_activa(self) -> str:
        """
        Obtiene la pestaña activa del POS.

        Returns:
            'ventas', 'inventario' o 'pedidos' (default 'ventas')
        """
        vista = self.get_setting(config.STORAGE.ACTIVE_VIEW_KEY, config.UI.VISTA_DEFAULT)
        if vista not in config.UI.VISTAS:
            return config.UI.VISTA_DEFAULT
        return vista

    def set_vista_activa(self, vista: str) -> bool:
        """
        Guarda la pestaña activa.

        Args:
            vista: Nombre de la pestaña

        Returns:
            False si la vista no existe (no se guarda nada)
        """
        if vista not in config.UI.VISTAS:
            return False
        self.set_setting(config.STORAGE.ACTIVE_VIEW_KEY, vista)
        return True
