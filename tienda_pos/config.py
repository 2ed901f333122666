# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Todos los valores se leen de variables de entorno (o de un archivo .env en
# la raíz del proyecto). Los defaults sirven para desarrollo local.
#
# Variables principales:
#   SUPABASE_URL, SUPABASE_KEY     → credenciales del proyecto Supabase
#   TIENDA_SECRET_KEY              → clave de sesión de Flask
#   TIENDA_DATA_DIR                → carpeta donde vive local_storage.json
#   TIENDA_ADMIN_USER / _PASSWORD  → acceso al reporte de ventas
# ==============================================================================

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Carpeta de datos locales (espejo de productos, cola de cambios, preferencias)
DATA_DIR = os.getenv("TIENDA_DATA_DIR", os.path.join(BASE_DIR, "data"))

# Logs de rendimiento y de aplicación
LOGS_DIR = os.getenv("TIENDA_LOGS_DIR", os.path.join(BASE_DIR, "logs"))

# SECRET_KEY: en producción DEBE definirse via variable de entorno
DEFAULT_SECRET_KEY = "tienda_pos_dev_secret_key_change_in_production"
SECRET_KEY = os.getenv("TIENDA_SECRET_KEY")

# False = modo desarrollo con logging verbose
PRODUCTION_MODE = os.getenv("TIENDA_PRODUCTION", "0") == "1"

# Almacén remoto: "supabase" (default) o "memory" (desarrollo sin credenciales)
REMOTE_BACKEND = os.getenv("TIENDA_REMOTE", "supabase")


class SUPABASE:
    URL = os.getenv("SUPABASE_URL", "TU_SUPABASE_URL")
    ANON_KEY = os.getenv("SUPABASE_KEY", "TU_SUPABASE_ANON_KEY")
    SCHEMA = os.getenv("SUPABASE_SCHEMA", "public")
    # Segundos de espera para suscribir o cerrar un canal de Realtime
    REALTIME_TIMEOUT = _env_float("TIENDA_REALTIME_TIMEOUT", 10.0)
    TABLE_NAME = "productos"


class PEDIDOS:
    TABLA_PEDIDOS = "pedidos"
    VENTAS_TABLE = "ventas_diarias"


class IMAGES:
    STORAGE_BUCKET = os.getenv("TIENDA_IMAGES_BUCKET", "product-images")
    ALLOWED_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
    ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
    MAX_FILE_SIZE = 2 * 1024 * 1024  # 2 MB


class SCANNER:
    MIN_BARCODE_LENGTH = _env_int("TIENDA_MIN_BARCODE_LENGTH", 6)
    # Milisegundos
    MAX_TIME_BETWEEN_CHARS = _env_int("TIENDA_MAX_TIME_BETWEEN_CHARS", 50)
    BUFFER_CLEAR_TIMEOUT = _env_int("TIENDA_BUFFER_CLEAR_TIMEOUT", 200)
    SEARCH_FIELD_ID = "buscar-producto"


class STORAGE:
    FILE_NAME = "local_storage.json"
    PRODUCTOS_KEY = "pos_productos"
    LAST_SYNC_KEY = "pos_last_sync"
    PENDING_CHANGES_KEY = "pos_pending_changes"
    ACTIVE_VIEW_KEY = "pos_active_view"
    # Segundos entre intentos de reconexión en modo offline
    SYNC_RETRY_INTERVAL = _env_float("TIENDA_SYNC_RETRY_INTERVAL", 300.0)
    # retain_failed | clear_all
    QUEUE_POLICY = os.getenv("TIENDA_SYNC_QUEUE_POLICY", "retain_failed")


class VALIDATION:
    MIN_PRICE = 0.01
    MAX_PRICE = 999999.99
    MIN_NOMBRE_CLIENTE = 2


class CARRITO:
    STORAGE_KEY = "carrito"
    POS_STORAGE_KEY = "carrito_pos"
    MAX_CANTIDAD_POR_PRODUCTO = _env_int("TIENDA_MAX_CANTIDAD_POR_PRODUCTO", 10)


class ADMIN:
    USERNAME = os.getenv("TIENDA_ADMIN_USER", "admin")
    # Acepta texto plano o un hash generado con werkzeug.security
    PASSWORD = os.getenv("TIENDA_ADMIN_PASSWORD", "admin123")
    SESSION_KEY = "admin_session"


class UI:
    VISTAS = ("ventas", "inventario", "pedidos")
    VISTA_DEFAULT = "ventas"
    DIAS_REPORTE_DEFAULT = 30
    MAX_SUGERENCIAS = 5
