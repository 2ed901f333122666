# ==============================================================================
# LOGGING Y PROFILING
# ==============================================================================
# - setup_logging(): configura el logging de la aplicación (consola + archivo)
# - init_profiling(app): mide cada request de Flask
# - @profile_function: mide funciones clave (sincronización, ventas, pedidos)
#
# Archivos en config.LOGS_DIR:
#   tienda.log          → log general de la aplicación
#   performance.log     → una línea por request
#   slow_operations.log → requests y funciones que superan los umbrales
#
# ACTIVAR/DESACTIVAR profiling: TIENDA_PROFILING=0
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from functools import wraps
from logging.handlers import RotatingFileHandler

from tienda_pos import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = os.getenv("TIENDA_PROFILING", "1") == "1"

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

APP_LOG = 'tienda.log'
PERFORMANCE_LOG = 'performance.log'
SLOW_LOG = 'slow_operations.log'

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Nombres legibles por ruta (clave: "MÉTODO regla")
ROUTE_NAMES = {
    'GET /api/health': 'Estado del sistema',

    # Inventario
    'GET /api/productos': 'Listar productos',
    'POST /api/productos': 'Crear producto',
    'GET /api/productos/codigo/<codigo>': 'Buscar por código',
    'PUT /api/productos/<producto_id>/stock': 'Actualizar stock',
    'DELETE /api/productos/<producto_id>': 'Eliminar producto',
    'POST /api/productos/<producto_id>/imagen': 'Cambiar imagen',
    'GET /api/productos/sugerencias': 'Sugerencias de búsqueda',

    # POS
    'GET /api/pos/carrito': 'Ver carrito POS',
    'POST /api/pos/carrito/agregar': 'Agregar al carrito POS',
    'POST /api/pos/venta': 'Finalizar venta',
    'POST /api/scanner/teclas': 'Teclas del scanner',
    'POST /api/scanner/simular': 'Simular escaneo',

    # Catálogo
    'GET /api/catalogo': 'Ver catálogo',
    'POST /api/catalogo/carrito/agregar': 'Agregar al carrito',
    'POST /api/catalogo/pedido': 'Enviar pedido',

    # Pedidos
    'GET /api/pedidos': 'Ver pedidos pendientes',
    'POST /api/pedidos/<pedido_id>/entregar': 'Confirmar entrega',
    'POST /api/pedidos/<pedido_id>/cancelar': 'Cancelar pedido',

    # Reportes
    'POST /admin/login': 'Iniciar sesión admin',
    'GET /api/reportes/ventas': 'Reporte de ventas',
    'GET /api/diagnostico': 'Diagnóstico',
}

perf_logger = logging.getLogger('tienda_pos.performance')
slow_logger = logging.getLogger('tienda_pos.performance.slow')

_setup_lock = threading.Lock()
_configured = False


# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def _file_handler(filename: str, level: int = logging.INFO) -> logging.Handler:
    handler = RotatingFileHandler(
        os.path.join(config.LOGS_DIR, filename),
        maxBytes=1024 * 1024,
        backupCount=3,
        encoding='utf-8',
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(to_files: bool = True) -> None:
    """
    Configura el logging de la aplicación una sola vez.

    Args:
        to_files: False en tests (solo consola)
    """
    global _configured
    with _setup_lock:
        if _configured:
            return
        level = logging.INFO if config.PRODUCTION_MODE else logging.DEBUG
        root = logging.getLogger('tienda_pos')
        root.setLevel(level)

        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console)

        if to_files:
            os.makedirs(config.LOGS_DIR, exist_ok=True)
            root.addHandler(_file_handler(APP_LOG))
            perf_logger.addHandler(_file_handler(PERFORMANCE_LOG))
            slow_logger.addHandler(_file_handler(SLOW_LOG, logging.WARNING))
        # Las mediciones no ensucian la consola
        perf_logger.propagate = False
        slow_logger.propagate = False
        _configured = True


def _get_route_name(method, rule):
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def log_route(method, path, rule, time_ms, user=None):
    """
    Registra el tiempo de una ruta; las lentas van además a slow_operations.log.

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada
        rule: Regla de Flask (con parámetros)
        time_ms: Tiempo en milisegundos
        user: 'admin' si hay sesión de administrador
    """
    action = _get_route_name(method, rule)
    user_str = user or 'anónimo'
    perf_logger.info(f"{action} | {method} {path} | {user_str} | {time_ms:.0f} ms")

    if time_ms >= THRESHOLD_CRITICAL:
        slow_logger.critical(
            f"Ruta MUY LENTA: {action} ({method} {path}) {time_ms:.0f} ms (umbral: {THRESHOLD_CRITICAL} ms)"
        )
    elif time_ms >= THRESHOLD_WARNING:
        slow_logger.warning(
            f"Ruta LENTA: {action} ({method} {path}) {time_ms:.0f} ms (umbral: {THRESHOLD_WARNING} ms)"
        )


def init_profiling(app):
    """
    Registra hooks before_request y after_request en la app Flask.

    Uso:
        from tienda_pos.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response
        if request.path.startswith('/static'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        user = 'admin' if session.get(config.ADMIN.SESSION_KEY) else None
        log_route(request.method, request.path, rule, elapsed, user)
        return response


# ═══════════════════════════════════════════════════════════════════════════
# DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir funciones críticas.

    Uso:
        @profile_function
        def replay_pending(self):
            ...

        @profile_function(name="Confirmar entrega de pedido")
        def confirmar_entrega(self, pedido_id):
            ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms
                if elapsed_ms >= THRESHOLD_CRITICAL:
                    slow_logger.critical(f"Función CRÍTICA: {func_name} {elapsed_ms:.0f} ms")
                elif elapsed_ms >= THRESHOLD_WARNING:
                    slow_logger.warning(f"Función LENTA: {func_name} {elapsed_ms:.0f} ms")

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# REPORTES
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2),
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


def get_log_summary():
    """
    Resumen de los archivos de log.

    Returns:
        dict: {archivo: {exists, size_kb}}
    """
    summary = {}
    for name in (APP_LOG, PERFORMANCE_LOG, SLOW_LOG):
        path = os.path.join(config.LOGS_DIR, name)
        if os.path.exists(path):
            summary[name] = {'exists': True, 'size_kb': round(os.path.getsize(path) / 1024, 2)}
        else:
            summary[name] = {'exists': False, 'size_kb': 0}
    return summary


__all__ = [
    'ENABLE_PROFILING',
    'setup_logging',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
    'get_log_summary',
]
