# ==============================================================================
# REPOSITORIO SUPABASE - Implementación de IRemoteStore
# ==============================================================================
# Usa el cliente oficial `supabase`:
#   - tablas y Storage → cliente sync (create_client)
#   - Realtime         → cliente async (acreate_client) en un event loop
#                        propio; el cliente sync no implementa canales
#
# Toda excepción del cliente se envuelve en RemoteStoreError para que la
# capa de sincronización decida si reintentar, servir cache o rechazar.
# ==============================================================================

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from supabase import AsyncClient, Client, acreate_client, create_client

from tienda_pos import config
from tienda_pos.errors import RemoteStoreError
from .interfaces import ChangeCallback

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "TU_SUPABASE"


def normalizar_cambio(payload: Any, table: str, event: str) -> Dict[str, Any]:
    """
    Convierte el payload de Realtime al formato de ChangeCallback.

    Realtime entrega {'data': {'type', 'record', 'old_record', ...}, 'ids': [...]}.

    Returns:
        {'eventType', 'table', 'new', 'old'}
    """
    data = payload.get("data", payload) if isinstance(payload, dict) else {}
    return {
        "eventType": data.get("type") or data.get("eventType") or event,
        "table": table,
        "new": data.get("record") or data.get("new"),
        "old": data.get("old_record") or data.get("old"),
    }


class RealtimeBridge:
    """
    Canales de Realtime sobre el cliente async de Supabase.

    El AsyncClient vive en un event loop que corre en un hilo daemon;
    subscribe/unsubscribe bloquean hasta que el loop responde (o vence
    config.SUPABASE.REALTIME_TIMEOUT). Los callbacks de cambios se
    ejecutan en el hilo del loop.

    Args:
        url: URL del proyecto
        key: Clave anon
        client_factory: Corutina (url, key) → AsyncClient (default acreate_client)
        timeout: Segundos de espera por operación
    """

    def __init__(self, url: str, key: str, client_factory: Callable = None, timeout: float = None):
        self.url = url
        self.key = key
        self._client_factory = client_factory or acreate_client
        self.timeout = timeout if timeout is not None else config.SUPABASE.REALTIME_TIMEOUT
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._client: Optional[AsyncClient] = None

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever, name="supabase-realtime", daemon=True
                )
                self._thread.start()
            return self._loop

    def _run(self, coro) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        try:
            return future.result(self.timeout)
        except Exception:
            future.cancel()
            raise

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await self._client_factory(self.url, self.key)
        return self._client

    async def _subscribe(self, topic: str, event: str, schema: str, table: str, callback: Callable) -> Any:
        client = await self._get_client()
        if not client.realtime.is_connected:
            await client.realtime.connect()
        channel = client.channel(topic)
        channel.on_postgres_changes(event, callback=callback, table=table, schema=schema)
        await channel.subscribe()
        return channel

    async def _remove(self, channel: Any) -> None:
        client = await self._get_client()
        await client.remove_channel(channel)

    def subscribe(self, topic: str, event: str, schema: str, table: str, callback: Callable) -> Any:
        """Abre un canal postgres_changes y retorna el canal."""
        return self._run(self._subscribe(topic, event, schema, table, callback))

    def unsubscribe(self, channel: Any) -> None:
        self._run(self._remove(channel))

    def close(self) -> None:
        """Cierra el socket de Realtime y detiene el event loop."""
        with self._lock:
            loop, thread, client = self._loop, self._thread, self._client
            self._loop, self._thread, self._client = None, None, None
        if loop is None:
            return
        if client is not None:
            future = asyncio.run_coroutine_threadsafe(client.realtime.close(), loop)
            try:
                future.result(self.timeout)
            except Exception as e:
                logger.warning(f"No se pudo cerrar Realtime: {e}")
        loop.call_soon_threadsafe(loop.stop)
        thread.join(self.timeout)
        if not loop.is_running():
            loop.close()


class SupabaseRepository:
    """
    Acceso a las tablas productos / pedidos / ventas_diarias y al bucket
    de imágenes de un proyecto Supabase.

    Args:
        url, key, schema: Proyecto (default config.SUPABASE)
        client: Cliente sync ya construido (si no, se crea al primer uso)
        realtime: RealtimeBridge ya construido (si no, se crea al primer uso)
    """

    def __init__(self, url: str = None, key: str = None, schema: str = None,
                 client: Client = None, realtime: RealtimeBridge = None):
        self.url = url if url is not None else config.SUPABASE.URL
        self.key = key if key is not None else config.SUPABASE.ANON_KEY
        self.schema = schema or config.SUPABASE.SCHEMA
        self._client: Optional[Client] = client
        self._realtime: Optional[RealtimeBridge] = realtime

    # =========================================================================
    # Conexión
    # =========================================================================

    def is_configured(self) -> bool:
        if not self.url or not self.key:
            return False
        return PLACEHOLDER_PREFIX not in self.url and PLACEHOLDER_PREFIX not in self.key

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.is_configured():
                raise RemoteStoreError("Credenciales de Supabase no configuradas")
            try:
                self._client = create_client(self.url, self.key)
            except Exception as e:
                raise RemoteStoreError(f"No se pudo crear el cliente de Supabase: {e}") from e
        return self._client

    @property
    def realtime(self) -> RealtimeBridge:
        if self._realtime is None:
            if not self.is_configured():
                raise RemoteStoreError("Credenciales de Supabase no configuradas")
            self._realtime = RealtimeBridge(self.url, self.key)
        return self._realtime

    def close(self) -> None:
        if self._realtime is not None:
            self._realtime.close()

    def _table(self, table: str):
        return self.client.schema(self.schema).table(table)

    def _execute(self, description: str, build: Callable[[], Any]) -> List[Dict[str, Any]]:
        """
        Ejecuta una consulta y normaliza la respuesta.

        Args:
            description: Texto para el mensaje de error
            build: Función que arma y ejecuta la consulta

        Returns:
            resp.data como lista

        Raises:
            RemoteStoreError: Ante cualquier falla del cliente o error en la respuesta
        """
        try:
            resp = build()
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"{description} falló: {e}") from e
        if getattr(resp, "error", None):
            raise RemoteStoreError(f"{description} falló: {resp.error}")
        data = getattr(resp, "data", None)
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    def ping(self) -> None:
        self._execute(
            "Prueba de conexión",
            lambda: self._table(config.SUPABASE.TABLE_NAME).select("id").limit(1).execute(),
        )

    # =========================================================================
    # Tablas
    # =========================================================================

    def select(self, table, eq=None, gte=None, lte=None, order_by=None, ascending=True):
        def build():
            query = self._table(table).select("*")
            for column, value in (eq or {}).items():
                query = query.eq(column, value)
            for column, value in (gte or {}).items():
                query = query.gte(column, value)
            for column, value in (lte or {}).items():
                query = query.lte(column, value)
            if order_by:
                query = query.order(order_by, desc=not ascending)
            return query.execute()

        return self._execute(f"Consulta a {table}", build)

    def select_one(self, table, column, value):
        rows = self._execute(
            f"Consulta a {table}",
            lambda: self._table(table).select("*").eq(column, value).limit(1).execute(),
        )
        return rows[0] if rows else None

    def insert(self, table, row):
        rows = self._execute(f"Insert en {table}", lambda: self._table(table).insert(row).execute())
        if not rows:
            raise RemoteStoreError(f"Insert en {table} no retornó datos")
        return rows[0]

    def update(self, table, row_id, fields):
        rows = self._execute(
            f"Update en {table}",
            lambda: self._table(table).update(fields).eq("id", row_id).execute(),
        )
        if not rows:
            raise RemoteStoreError(f"No existe fila {row_id} en {table}")
        return rows[0]

    def delete(self, table, row_id):
        self._execute(f"Delete en {table}", lambda: self._table(table).delete().eq("id", row_id).execute())

    # =========================================================================
    # Storage
    # =========================================================================

    def upload_file(self, bucket, path, content, content_type):
        try:
            storage = self.client.storage.from_(bucket)
            storage.upload(
                path,
                content,
                {"content-type": content_type, "cache-control": "3600", "upsert": "false"},
            )
            return storage.get_public_url(path)
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Subida de {path} falló: {e}") from e

    def remove_file(self, bucket, key):
        try:
            self.client.storage.from_(bucket).remove([key])
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Eliminación de {key} falló: {e}") from e

    # =========================================================================
    # Realtime
    # =========================================================================

    def subscribe(self, table: str, callback: ChangeCallback, event: str = '*') -> Any:
        def forward(payload):
            # Corre en el hilo de Realtime; los errores quedan en el log
            try:
                callback(normalizar_cambio(payload, table, event))
            except Exception:
                logger.exception(f"Error al procesar un cambio de {table}")

        try:
            return self.realtime.subscribe(f"{table}_changes", event, self.schema, table, forward)
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Suscripción a {table} falló: {e}") from e

    def unsubscribe(self, handle: Any) -> None:
        try:
            self.realtime.unsubscribe(handle)
        except Exception as e:
            logger.warning(f"No se pudo cerrar la suscripción: {e}")
