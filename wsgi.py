# Punto de entrada WSGI:  gunicorn wsgi:app
# Desarrollo:             python wsgi.py
import os

from tienda_pos.main import app, iniciar_servicios

iniciar_servicios()

if __name__ == "__main__":
    # En producción usar WSGI (gunicorn, waitress, etc.)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))
    app.run(host=HOST, port=PORT, debug=DEBUG, use_reloader=False)
