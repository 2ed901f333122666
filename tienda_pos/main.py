import logging
import os
from datetime import date, timedelta
from functools import wraps

from flask import Flask, g, has_request_context, request, session
from werkzeug.utils import secure_filename

from tienda_pos import config
from tienda_pos.errors import OfflineUnavailableError, RemoteStoreError, ValidationError

# Sistema de profiling interno
from tienda_pos.performance_logger import get_function_stats, get_log_summary, init_profiling, setup_logging

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo traducen HTTP ↔ servicios. La lógica vive en services/.
# ═══════════════════════════════════════════════════════════════════════════
from tienda_pos.app_container import get_container

logger = logging.getLogger(__name__)

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# LOGGING Y PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Logs en config.LOGS_DIR. TIENDA_LOG_FILES=0 deja solo la consola.
setup_logging(to_files=os.getenv("TIENDA_LOG_FILES", "1") == "1")
init_profiling(app)

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN DE SEGURIDAD
# ═══════════════════════════════════════════════════════════════════════════
# SECRET_KEY: En producción DEBE definirse via variable de entorno
# Comando: export TIENDA_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
if not config.SECRET_KEY:
    logger.warning("TIENDA_SECRET_KEY no definida: se usa la clave de desarrollo")
    if config.PRODUCTION_MODE:
        logger.critical("PRODUCTION_MODE activo sin TIENDA_SECRET_KEY definida")

app.secret_key = config.SECRET_KEY or config.DEFAULT_SECRET_KEY
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE='Lax',
    SESSION_COOKIE_SECURE=config.PRODUCTION_MODE,
    MAX_CONTENT_LENGTH=config.IMAGES.MAX_FILE_SIZE * 2,
)


def _container():
    return get_container()


def _parse_id(raw):
    """IDs numéricos de la base llegan como texto en la URL."""
    if isinstance(raw, str) and raw.isdigit():
        return int(raw)
    return raw


def _json_body():
    return request.get_json(silent=True) or {}


def _respond(result, ok_status=200):
    """Traduce el dict de un servicio a (payload, status)."""
    if result.get('ok'):
        return result, ok_status
    if result.get('not_found'):
        return result, 404
    if result.get('pendiente'):
        return result, 502
    if result.get('paso_fallido') or result.get('error_interno'):
        return result, 500
    return result, 400


def _leer_imagen():
    archivo = request.files.get('imagen')
    if archivo is None or not archivo.filename:
        return None
    return {
        'content': archivo.read(),
        'filename': secure_filename(archivo.filename),
        'content_type': archivo.mimetype,
    }


def admin_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if not _container().auth.is_admin(session):
            return {"ok": False, "error": "Acceso restringido al administrador"}, 401
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS solo con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

@app.errorhandler(OfflineUnavailableError)
def handle_offline(e):
    return {"ok": False, "error": str(e), "offline": True}, 503


@app.errorhandler(RemoteStoreError)
def handle_remote_error(e):
    logger.error(f"Error del servidor remoto en {request.path}: {e}")
    return {"ok": False, "error": "Error de comunicación con el servidor"}, 502


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return {"ok": False, "error": str(e)}, 400


# ═══════════════════════════════════════════════════════════════════════════════
# PROTECCIÓN DE RUTAS SENSIBLES
# ═══════════════════════════════════════════════════════════════════════════════
@app.route('/data/<path:filename>')
@app.route('/logs/<path:filename>')
def block_sensitive_routes(filename):
    """Bloquea acceso a las carpetas de datos locales y logs."""
    return "Not Found", 404


# ═══════════════════════════════════════════════════════════════════════════
# SCANNER → CARRITO DEL POS
# ═══════════════════════════════════════════════════════════════════════════

def on_barcode_scanned(codigo):
    """
    Callback del scanner: busca el producto y lo agrega al carrito del POS.
    El resultado queda en g.scan_resultados para la respuesta HTTP.
    """
    if not has_request_context():
        logger.warning(f"Código {codigo} recibido fuera de una petición")
        return
    container = _container()
    producto = container.inventory.buscar_por_codigo(codigo)
    if producto is None:
        resultado = {'ok': False, 'codigo': codigo, 'error': f'Producto no encontrado: {codigo}'}
    else:
        resultado = {'codigo': codigo, **container.carrito_pos.agregar(producto)}
    g.setdefault('scan_resultados', []).append(resultado)


def iniciar_servicios(container=None):
    """
    Arranca el scanner, registra los avisos de pedidos y conecta
    el motor de sincronización.

    Returns:
        El contenedor inicializado
    """
    container = container or _container()
    container.scanner.start(on_barcode_scanned)
    container.orders  # registra la suscripción a pedidos nuevos
    container.sync.initialize()
    return container


# ═══════════════════════════════════════════════════════════════════════════
# ESTADO Y PREFERENCIAS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/health", methods=["GET"])
def api_health():
    container = _container()
    return {"ok": True, **container.sync.status(), "ultimo_cambio": container.ultimo_cambio}


@app.route("/api/vista", methods=["GET"])
def api_vista():
    return {"ok": True, "vista": _container().settings.get_vista_activa()}


@app.route("/api/vista", methods=["PUT"])
def api_vista_guardar():
    vista = _json_body().get("vista")
    if not _container().settings.set_vista_activa(vista):
        return {"ok": False, "error": f"Vista no válida. Use: {', '.join(config.UI.VISTAS)}"}, 400
    return {"ok": True, "vista": vista}


# ═══════════════════════════════════════════════════════════════════════════
# INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/productos", methods=["GET"])
def api_productos():
    container = _container()
    productos = container.inventory.listar_productos()
    return {
        "ok": True,
        "productos": [p.to_dict() for p in productos],
        "online": container.sync.online,
    }


@app.route("/api/productos", methods=["POST"])
def api_productos_crear():
    """
    Crea un producto. Acepta JSON o multipart (campo de archivo 'imagen').
    """
    datos = request.get_json(silent=True) or request.form.to_dict()
    if not datos:
        return {"ok": False, "error": "Datos no recibidos o formato inválido"}, 400
    result = _container().inventory.agregar_producto(datos, _leer_imagen())
    return _respond(result, 201)


@app.route("/api/productos/sugerencias", methods=["GET"])
def api_productos_sugerencias():
    sugerencias = _container().inventory.buscar_sugerencias(request.args.get("q", ""))
    return {"ok": True, "productos": [p.to_dict() for p in sugerencias]}


@app.route("/api/productos/codigo/<codigo>", methods=["GET"])
def api_producto_por_codigo(codigo):
    producto = _container().inventory.buscar_por_codigo(codigo)
    if producto is None:
        return {"ok": False, "error": f"Producto no encontrado: {codigo}"}, 404
    return {"ok": True, "producto": producto.to_dict()}


@app.route("/api/productos/<producto_id>/stock", methods=["PUT"])
def api_producto_stock(producto_id):
    result = _container().inventory.actualizar_stock(_parse_id(producto_id), _json_body().get("stock"))
    return _respond(result)


@app.route("/api/productos/<producto_id>", methods=["DELETE"])
def api_producto_eliminar(producto_id):
    return _respond(_container().inventory.eliminar_producto(_parse_id(producto_id)))


@app.route("/api/productos/<producto_id>/imagen", methods=["POST"])
def api_producto_imagen(producto_id):
    imagen = _leer_imagen()
    if imagen is None:
        return {"ok": False, "error": "No se recibió ninguna imagen"}, 400
    return _respond(_container().inventory.actualizar_imagen(_parse_id(producto_id), imagen))


# ═══════════════════════════════════════════════════════════════════════════
# PUNTO DE VENTA
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/pos/carrito", methods=["GET"])
def api_pos_carrito():
    return {"ok": True, **_container().carrito_pos.get_cart()}


@app.route("/api/pos/carrito/agregar", methods=["POST"])
def api_pos_carrito_agregar():
    """Espera JSON con producto_id o codigo."""
    data = _json_body()
    container = _container()
    if data.get("codigo"):
        producto = container.inventory.buscar_por_codigo(str(data["codigo"]))
    elif data.get("producto_id") is not None:
        producto = container.sync.get_producto(data["producto_id"])
    else:
        return {"ok": False, "error": "Debe indicar producto_id o codigo"}, 400
    if producto is None:
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return _respond(container.carrito_pos.agregar(producto))


@app.route("/api/pos/carrito/incrementar", methods=["POST"])
def api_pos_carrito_incrementar():
    return _respond(_container().carrito_pos.incrementar(_json_body().get("producto_id")))


@app.route("/api/pos/carrito/decrementar", methods=["POST"])
def api_pos_carrito_decrementar():
    return _respond(_container().carrito_pos.decrementar(_json_body().get("producto_id")))


@app.route("/api/pos/carrito/eliminar", methods=["POST"])
def api_pos_carrito_eliminar():
    return _respond(_container().carrito_pos.eliminar_item(_json_body().get("producto_id")))


@app.route("/api/pos/carrito/limpiar", methods=["POST"])
def api_pos_carrito_limpiar():
    return _container().carrito_pos.limpiar()


@app.route("/api/pos/venta", methods=["POST"])
def api_pos_venta():
    return _respond(_container().sales.finalizar_venta(_json_body().get("metodo_pago")), 201)


@app.route("/api/scanner/teclas", methods=["POST"])
def api_scanner_teclas():
    """
    Recibe teclas capturadas por el navegador.

    JSON: {"teclas": [{"key": "7", "t": 1234.5, "campo": null}, ...]}
    o una sola tecla {"key": ..., "t": ..., "campo": ...}
    """
    data = _json_body()
    teclas = data.get("teclas")
    if teclas is None:
        teclas = [data] if data.get("key") else []
    if not isinstance(teclas, list) or not teclas:
        return {"ok": False, "error": "No se recibieron teclas"}, 400

    scanner = _container().scanner
    codigos = []
    for tecla in teclas:
        if not isinstance(tecla, dict) or not tecla.get("key"):
            return {"ok": False, "error": "Tecla inválida"}, 400
        try:
            t = float(tecla["t"]) if tecla.get("t") is not None else None
        except (TypeError, ValueError):
            return {"ok": False, "error": "Marca de tiempo inválida"}, 400
        codigo = scanner.handle_key(str(tecla["key"]), tecla.get("campo"), t)
        if codigo is not None:
            codigos.append(codigo)

    return {
        "ok": True,
        "codigos": codigos,
        "resultados": g.get("scan_resultados", []),
        "escaneando": scanner.is_scanning,
    }


@app.route("/api/scanner/simular", methods=["POST"])
def api_scanner_simular():
    codigo = str(_json_body().get("codigo") or "").strip()
    if not codigo:
        return {"ok": False, "error": "Código vacío"}, 400
    _container().scanner.simulate_scan(codigo)
    return {"ok": True, "codigo": codigo, "resultados": g.get("scan_resultados", [])}


# ═══════════════════════════════════════════════════════════════════════════
# CATÁLOGO PÚBLICO
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/catalogo", methods=["GET"])
def api_catalogo():
    productos = _container().inventory.productos_disponibles()
    return {"ok": True, "productos": [p.to_dict() for p in productos]}


@app.route("/api/catalogo/carrito", methods=["GET"])
def api_catalogo_carrito():
    return {"ok": True, **_container().carrito_catalogo.get_cart()}


@app.route("/api/catalogo/carrito/agregar", methods=["POST"])
def api_catalogo_carrito_agregar():
    container = _container()
    producto_id = _json_body().get("producto_id")
    if producto_id is None:
        return {"ok": False, "error": "ID de producto inválido"}, 400
    producto = container.sync.get_producto(producto_id)
    if producto is None:
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return _respond(container.carrito_catalogo.agregar(producto))


@app.route("/api/catalogo/carrito/cantidad", methods=["POST"])
def api_catalogo_carrito_cantidad():
    data = _json_body()
    result = _container().carrito_catalogo.actualizar_cantidad(data.get("producto_id"), data.get("cantidad"))
    return _respond(result)


@app.route("/api/catalogo/carrito/eliminar", methods=["POST"])
def api_catalogo_carrito_eliminar():
    return _respond(_container().carrito_catalogo.eliminar_item(_json_body().get("producto_id")))


@app.route("/api/catalogo/carrito/vaciar", methods=["POST"])
def api_catalogo_carrito_vaciar():
    return _container().carrito_catalogo.limpiar()


@app.route("/api/catalogo/pedido", methods=["POST"])
def api_catalogo_pedido():
    """Espera JSON con cliente, tiempo_llegada y metodo_pago."""
    return _respond(_container().orders.enviar_pedido(_json_body()), 201)


# ═══════════════════════════════════════════════════════════════════════════
# PEDIDOS (POS)
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/pedidos", methods=["GET"])
def api_pedidos():
    container = _container()
    pedidos = container.orders.get_pedidos_pendientes()
    return {
        "ok": True,
        "pedidos": [p.to_dict() for p in pedidos],
        "online": container.sync.online,
    }


@app.route("/api/pedidos/notificaciones", methods=["GET"])
def api_pedidos_notificaciones():
    return {"ok": True, "avisos": _container().orders.tomar_notificaciones()}


@app.route("/api/pedidos/<pedido_id>/entregar", methods=["POST"])
def api_pedido_entregar(pedido_id):
    return _respond(_container().orders.confirmar_entrega(_parse_id(pedido_id)))


@app.route("/api/pedidos/<pedido_id>/cancelar", methods=["POST"])
def api_pedido_cancelar(pedido_id):
    return _respond(_container().orders.cancelar_pedido(_parse_id(pedido_id)))


# ═══════════════════════════════════════════════════════════════════════════
# REPORTES (ADMIN)
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/admin/login", methods=["POST"])
def admin_login():
    data = request.get_json(silent=True) or request.form
    if not _container().auth.login(session, data.get("username"), data.get("password")):
        return {"ok": False, "error": "Usuario o contraseña incorrectos"}, 401
    return {"ok": True, "mensaje": "Sesión iniciada"}


@app.route("/admin/logout", methods=["POST"])
def admin_logout():
    _container().auth.logout(session)
    return {"ok": True, "mensaje": "Sesión cerrada"}


@app.route("/api/reportes/ventas", methods=["GET"])
@admin_required
def api_reporte_ventas():
    """Ventas por día. Sin parámetros: últimos DIAS_REPORTE_DEFAULT días."""
    hoy = date.today()
    desde = request.args.get("desde") or (hoy - timedelta(days=config.UI.DIAS_REPORTE_DEFAULT)).isoformat()
    hasta = request.args.get("hasta") or hoy.isoformat()
    return _respond(_container().sales.get_ventas_por_dia(desde, hasta))


@app.route("/api/diagnostico", methods=["GET"])
@admin_required
def api_diagnostico():
    """Estadísticas de profiling y tamaño de los logs."""
    return {
        "ok": True,
        "funciones": get_function_stats(),
        "logs": get_log_summary(),
        "sincronizacion": _container().sync.status(),
    }
