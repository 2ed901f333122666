# ==============================================================================
# EXCEPCIONES DE LA APLICACIÓN
# ==============================================================================
# Las validaciones de negocio NO lanzan excepciones: los servicios retornan
# {'ok': False, 'error': ...}. Estas clases cubren fallas de conectividad,
# operaciones imposibles sin conexión y datos corruptos.
# ==============================================================================


class TiendaError(Exception):
    """Excepción base de la aplicación."""
    pass


class RemoteStoreError(TiendaError):
    """Error al comunicarse con la base de datos remota o el storage."""
    pass


class OfflineUnavailableError(TiendaError):
    """La operación requiere conexión con el servidor."""
    pass


class ValidationError(TiendaError, ValueError):
    """Un payload (de storage o de red) no tiene la forma esperada."""
    pass
