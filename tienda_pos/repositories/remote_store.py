# ==============================================================================
# ALMACÉN REMOTO EN MEMORIA
# ==============================================================================
# Implementación de IRemoteStore sin red. Se usa:
#   - en desarrollo, cuando no hay credenciales de Supabase configuradas
#     y se quiere probar el flujo online (TIENDA_REMOTE=memory)
#   - en los tests, con inyección de fallas
# ==============================================================================

import copy
import itertools
import threading
import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

from tienda_pos.errors import RemoteStoreError
from tienda_pos.models.entities import now_iso
from .interfaces import ChangeCallback


class MemoryRemoteStore:
    """
    Tablas como listas de dicts, storage como dict {bucket: {key: bytes}}.

    Controles para tests:
        available      → False simula servidor caído (toda operación falla)
        configured     → False simula credenciales ausentes
        fail_on(op)    → la operación 'op' (opcionalmente sobre una tabla) falla
    """

    BASE_URL = "memory://storage"

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self._buckets: Dict[str, Dict[str, bytes]] = {}
        self._subscriptions: Dict[int, Tuple[str, str, ChangeCallback]] = {}
        self._handles = itertools.count(1)
        self._failures: Set[Tuple[str, Optional[str]]] = set()
        self.available = True
        self.configured = True
        self.calls: List[Tuple[str, str]] = []
        for table, rows in (tables or {}).items():
            for row in rows:
                self._tables.setdefault(table, []).append(dict(row))

    # =========================================================================
    # Inyección de fallas
    # =========================================================================

    def fail_on(self, operation: str, table: Optional[str] = None) -> None:
        self._failures.add((operation, table))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check(self, operation: str, table: Optional[str] = None) -> None:
        self.calls.append((operation, table or ''))
        if not self.available:
            raise RemoteStoreError("Servidor no disponible")
        if (operation, None) in self._failures or (operation, table) in self._failures:
            raise RemoteStoreError(f"Falla simulada en {operation} {table or ''}".strip())

    # =========================================================================
    # Conexión
    # =========================================================================

    def is_configured(self) -> bool:
        return self.configured

    def ping(self) -> None:
        self._check('ping')

    # =========================================================================
    # Tablas
    # =========================================================================

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Copia de las filas de una tabla (inspección en tests)."""
        with self._lock:
            return copy.deepcopy(self._tables.get(table, []))

    def _find_index(self, table: str, row_id: Any) -> Optional[int]:
        for index, row in enumerate(self._tables.get(table, [])):
            if row.get('id') == row_id:
                return index
        return None

    def select(self, table, eq=None, gte=None, lte=None, order_by=None, ascending=True):
        self._check('select', table)
        with self._lock:
            result = []
            for row in self._tables.get(table, []):
                if eq and any(row.get(k) != v for k, v in eq.items()):
                    continue
                if gte and any(row.get(k) is None or str(row.get(k)) < str(v) for k, v in gte.items()):
                    continue
                if lte and any(row.get(k) is None or str(row.get(k)) > str(v) for k, v in lte.items()):
                    continue
                result.append(copy.deepcopy(row))
        if order_by:
            result.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ''), reverse=not ascending)
        return result

    def select_one(self, table, column, value):
        rows = self.select(table, eq={column: value})
        return rows[0] if rows else None

    def insert(self, table, row):
        self._check('insert', table)
        with self._lock:
            new_row = copy.deepcopy(row)
            if not new_row.get('id') or str(new_row['id']).startswith('temp_'):
                new_row['id'] = str(uuid.uuid4())
            new_row.setdefault('created_at', now_iso())
            if table == 'productos':
                for existing in self._tables.get(table, []):
                    if existing.get('codigo_barras') == new_row.get('codigo_barras'):
                        raise RemoteStoreError(
                            f"duplicate key value violates unique constraint (codigo_barras={new_row.get('codigo_barras')})"
                        )
            self._tables.setdefault(table, []).append(new_row)
            result = copy.deepcopy(new_row)
        self._notify(table, 'INSERT', result, None)
        return result

    def update(self, table, row_id, fields):
        self._check('update', table)
        with self._lock:
            index = self._find_index(table, row_id)
            if index is None:
                raise RemoteStoreError(f"No existe fila {row_id} en {table}")
            old = copy.deepcopy(self._tables[table][index])
            self._tables[table][index].update(copy.deepcopy(fields))
            result = copy.deepcopy(self._tables[table][index])
        self._notify(table, 'UPDATE', result, old)
        return result

    def delete(self, table, row_id):
        self._check('delete', table)
        with self._lock:
            index = self._find_index(table, row_id)
            if index is None:
                return
            old = self._tables[table].pop(index)
        self._notify(table, 'DELETE', None, old)

    # =========================================================================
    # Storage
    # =========================================================================

    def upload_file(self, bucket, path, content, content_type):
        self._check('upload', bucket)
        with self._lock:
            files = self._buckets.setdefault(bucket, {})
            if path in files:
                raise RemoteStoreError(f"El archivo {path} ya existe")
            files[path] = bytes(content)
        return f"{self.BASE_URL}/{bucket}/{path}"

    def remove_file(self, bucket, key):
        self._check('remove', bucket)
        with self._lock:
            self._buckets.get(bucket, {}).pop(key, None)

    def files(self, bucket: str) -> List[str]:
        with self._lock:
            return sorted(self._buckets.get(bucket, {}))

    # =========================================================================
    # Notificaciones
    # =========================================================================

    def subscribe(self, table, callback, event='*'):
        self._check('subscribe', table)
        with self._lock:
            handle = next(self._handles)
            self._subscriptions[handle] = (table, event, callback)
        return handle

    def unsubscribe(self, handle):
        with self._lock:
            self._subscriptions.pop(handle, None)

    def close(self):
        with self._lock:
            self._subscriptions.clear()

    def _notify(self, table: str, event_type: str, new: Optional[Dict], old: Optional[Dict]) -> None:
        with self._lock:
            targets = [cb for (t, ev, cb) in self._subscriptions.values()
                       if t == table and ev in ('*', event_type)]
        payload = {'eventType': event_type, 'table': table, 'new': new, 'old': old}
        for callback in targets:
            callback(payload)
