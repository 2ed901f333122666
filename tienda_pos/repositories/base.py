# ==============================================================================
# ALMACENAMIENTO LOCAL - Documento JSON clave → valor
# ==============================================================================
# El espejo local y las preferencias comparten local_storage.json. Cada
# archivo tiene su propio lock, compartido por todas las instancias que lo
# abren, y toda escritura pasa por un archivo temporal + os.replace.
# ==============================================================================

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

_locks: Dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.RLock:
    with _locks_guard:
        return _locks.setdefault(os.path.abspath(path), threading.RLock())


class BaseRepository(ABC):
    """
    Documento JSON en disco.

    Si el archivo no se puede parsear se aparta como <archivo>.corrupt y
    el repositorio arranca vacío.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.lock = _lock_for(file_path)
        with self.lock:
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if not os.path.exists(file_path):
                self._dump(self._vacio())

    @abstractmethod
    def _vacio(self) -> Any:
        """Contenido de un documento recién creado."""

    def _load(self) -> Any:
        with self.lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._vacio()
            except json.JSONDecodeError as e:
                logger.error(f"{self.file_path} corrupto ({e}); se reinicia vacío")
                os.replace(self.file_path, self.file_path + '.corrupt')
                return self._vacio()

    def _dump(self, data: Any) -> None:
        with self.lock:
            temp_path = f"{self.file_path}.{threading.get_ident()}.tmp"
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except OSError:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class DictRepository(BaseRepository):
    """
    Documento con forma de diccionario y la semántica del almacenamiento
    local de un navegador: get_item / set_item / remove_item sobre claves fijas.
    """

    def _vacio(self) -> Dict[str, Any]:
        return {}

    def get_all(self) -> Dict[str, Any]:
        data = self._load()
        return data if isinstance(data, dict) else {}

    @contextmanager
    def documento(self) -> Iterator[Dict[str, Any]]:
        """
        Lectura-modificación-escritura bajo el lock del archivo.

        Uso:
            with repo.documento() as data:
                data['clave'] = valor
        """
        with self.lock:
            data = self.get_all()
            yield data
            self._dump(data)

    def get_item(self, key: str, default: Any = None) -> Any:
        return self.get_all().get(key, default)

    def set_item(self, key: str, value: Any) -> None:
        with self.documento() as data:
            data[key] = value

    def remove_item(self, key: str) -> Optional[Any]:
        """
        Elimina una clave.

        Returns:
            Valor eliminado o None si no existía
        """
        with self.lock:
            data = self.get_all()
            if key not in data:
                return None
            removed = data.pop(key)
            self._dump(data)
            return removed
