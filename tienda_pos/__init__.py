# ==============================================================================
# TIENDA POS - Punto de venta y catálogo público
# ==============================================================================
# ESTRUCTURA:
# ├── config.py             → Configuración desde variables de entorno
# ├── errors.py             → Excepciones de la aplicación
# ├── models/               → Entidades y eventos
# ├── repositories/         → Espejo local (JSON) y almacenes remotos
# ├── services/             → Lógica de negocio y sincronización
# ├── app_container.py      → Contenedor de dependencias
# ├── performance_logger.py → Logging y profiling
# └── main.py               → Aplicación Flask (API JSON)
# ==============================================================================
