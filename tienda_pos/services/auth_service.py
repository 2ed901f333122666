# ==============================================================================
# SERVICIO DE ACCESO ADMIN
# ==============================================================================
# Protege el reporte de ventas. Un único usuario configurado por entorno;
# la contraseña puede ser texto plano o un hash de werkzeug.security.
# La marca de sesión no es permanente (se pierde al cerrar el navegador).
# ==============================================================================

import hmac
import logging
from typing import MutableMapping

from werkzeug.security import check_password_hash

from tienda_pos import config

logger = logging.getLogger(__name__)

HASH_PREFIXES = ('pbkdf2:', 'scrypt:')


class AuthService:
    """
    Args:
        username: Usuario admin (default config.ADMIN.USERNAME)
        password: Contraseña o hash (default config.ADMIN.PASSWORD)
    """

    def __init__(self, username: str = None, password: str = None):
        self.username = username if username is not None else config.ADMIN.USERNAME
        self.password = password if password is not None else config.ADMIN.PASSWORD
        self.session_key = config.ADMIN.SESSION_KEY

    def verify_credentials(self, username: str, password: str) -> bool:
        if not username or not password:
            return False
        if not hmac.compare_digest(username, self.username):
            return False
        if self.password.startswith(HASH_PREFIXES):
            return check_password_hash(self.password, password)
        return hmac.compare_digest(password, self.password)

    def login(self, session: MutableMapping, username: str, password: str) -> bool:
        """
        Marca la sesión como admin si las credenciales son correctas.

        Returns:
            True si se inició sesión
        """
        if not self.verify_credentials((username or '').strip(), password or ''):
            logger.warning(f"Intento de acceso admin fallido: {username!r}")
            return False
        session.permanent = False
        session[self.session_key] = True
        logger.info("Sesión admin iniciada")
        return True

    def logout(self, session: MutableMapping) -> None:
        session.pop(self.session_key, None)

    def is_admin(self, session: MutableMapping) -> bool:
        return bool(session.get(self.session_key))
