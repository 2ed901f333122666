# ==============================================================================
# SERVICIO DE SINCRONIZACIÓN - Modo online/offline
# ==============================================================================
# Único punto de acceso a los datos. Decide por cada operación:
#
#   ONLINE                          OFFLINE
#   ─────────────────────────────   ─────────────────────────────────────
#   lecturas: servidor → cache      lecturas: cache local
#   escrituras de productos:        escrituras de productos: cache local
#     servidor; si falla se encola    + cola de cambios pendientes
#     y se relanza el error
#   pedidos / ventas / reportes /   pedidos / ventas / reportes /
#     imágenes: servidor              imágenes: OfflineUnavailableError
#
# Al reconectar se reenvía la cola en orden FIFO.
# ==============================================================================

import logging
import random
import string
import threading
from typing import Any, Callable, Dict, List, Optional

from tienda_pos import config
from tienda_pos.errors import OfflineUnavailableError, RemoteStoreError, ValidationError
from tienda_pos.models.entities import (
    EstadoPedido,
    OperacionPendiente,
    OrderCreated,
    Pedido,
    PendingChange,
    ProductChanged,
    Producto,
    Venta,
    VentasDia,
    now_iso,
    now_ms,
)
from tienda_pos.performance_logger import profile_function
from tienda_pos.repositories.interfaces import ILocalMirror, IRemoteStore
from tienda_pos.services.event_bus import EventBus
from tienda_pos.services.timers import TimerFactory, daemon_timer

logger = logging.getLogger(__name__)

POLICY_RETAIN_FAILED = 'retain_failed'
POLICY_CLEAR_ALL = 'clear_all'

EVENTO_SYNC = 'SYNC'


class SyncService:
    """
    Motor de sincronización.

    Args:
        remote: Almacén remoto (Supabase o memoria)
        mirror: Espejo local (productos + cola)
        event_bus: Canal de eventos (se crea uno si no se pasa)
        retry_interval: Segundos entre reintentos de conexión
        queue_policy: 'retain_failed' o 'clear_all'
        timer_factory: Fábrica de timers (tests usan una falsa)
    """

    def __init__(
        self,
        remote: IRemoteStore,
        mirror: ILocalMirror,
        event_bus: EventBus = None,
        retry_interval: float = None,
        queue_policy: str = None,
        timer_factory: TimerFactory = None,
    ):
        self.remote = remote
        self.mirror = mirror
        self.event_bus = event_bus or EventBus()
        self.retry_interval = retry_interval if retry_interval is not None else config.STORAGE.SYNC_RETRY_INTERVAL
        self.queue_policy = queue_policy or config.STORAGE.QUEUE_POLICY
        if self.queue_policy not in (POLICY_RETAIN_FAILED, POLICY_CLEAR_ALL):
            logger.warning(f"Política de cola desconocida '{self.queue_policy}', se usa {POLICY_RETAIN_FAILED}")
            self.queue_policy = POLICY_RETAIN_FAILED
        self._timer_factory = timer_factory or daemon_timer

        self._lock = threading.RLock()
        self._replay_lock = threading.Lock()
        self.online = False
        self._retry_timer = None
        self._subscriptions: List[Any] = []
        self._closed = False

        self.tabla_productos = config.SUPABASE.TABLE_NAME
        self.tabla_pedidos = config.PEDIDOS.TABLA_PEDIDOS
        self.tabla_ventas = config.PEDIDOS.VENTAS_TABLE

    # =========================================================================
    # CONEXIÓN
    # =========================================================================

    def initialize(self) -> bool:
        """
        Intenta conectar con el servidor.

        Online: reenvía la cola pendiente, refresca el cache y se suscribe
        a cambios de productos y pedidos nuevos.
        Offline: programa un reintento.

        Returns:
            True si quedó en modo online
        """
        with self._lock:
            if self._closed:
                return False
            self._cancel_retry()

        connected = self._connect()
        with self._lock:
            self.online = connected

        if not connected:
            logger.warning("Modo offline: se usará el cache local")
            self._schedule_retry()
            return False

        logger.info("Conectado al servidor")
        resultado = self.replay_pending()
        if resultado['total'] == 0:
            self._refresh_cache()
        self._subscribe_realtime()
        return True

    def _connect(self) -> bool:
        if not self.remote.is_configured():
            logger.warning("Credenciales remotas no configuradas")
            return False
        try:
            self.remote.ping()
            return True
        except RemoteStoreError as e:
            logger.error(f"Error al conectar con el servidor: {e}")
            return False

    def force_offline(self) -> None:
        """Pasa a modo offline sin programar reintentos (mantenimiento y pruebas)."""
        with self._lock:
            self.online = False
            self._cancel_retry()
        self._drop_subscriptions()

    def shutdown(self) -> None:
        """Cancela el reintento y las suscripciones. El servicio no vuelve a conectar."""
        with self._lock:
            self._closed = True
            self._cancel_retry()
        self._drop_subscriptions()
        logger.info("Sincronización detenida")

    def _schedule_retry(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._cancel_retry()
            self._retry_timer = self._timer_factory(self.retry_interval, self._retry)
            self._retry_timer.start()

    def _cancel_retry(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    def _retry(self) -> None:
        with self._lock:
            self._retry_timer = None
        logger.info("Intentando reconectar...")
        self.initialize()

    @property
    def retry_pending(self) -> bool:
        with self._lock:
            return self._retry_timer is not None

    def _require_online(self, mensaje: str) -> None:
        if not self.online:
            raise OfflineUnavailableError(mensaje)

    def status(self) -> Dict[str, Any]:
        return {
            'online': self.online,
            'pendientes': len(self.mirror.get_pending_changes()),
            'ultima_sincronizacion': self.mirror.get_item(config.STORAGE.LAST_SYNC_KEY),
            'politica_cola': self.queue_policy,
        }

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def _productos_desde(self, rows: List[Dict[str, Any]], origen: str) -> List[Producto]:
        productos = []
        for row in rows:
            try:
                productos.append(Producto.from_dict(row))
            except ValidationError as e:
                logger.warning(f"Producto inválido en {origen} descartado: {e}")
        return productos

    def _productos_locales(self) -> List[Producto]:
        return self._productos_desde(self.mirror.get_productos(), 'cache local')

    def _refresh_cache(self) -> Optional[List[Producto]]:
        try:
            rows = self.remote.select(self.tabla_productos, order_by='nombre', ascending=True)
        except RemoteStoreError as e:
            logger.warning(f"No se pudo refrescar el cache de productos: {e}")
            return None
        productos = self._productos_desde(rows, 'servidor')
        self.mirror.save_productos([p.to_dict() for p in productos])
        return productos

    @profile_function(name="Obtener productos")
    def get_productos(self) -> List[Producto]:
        """
        Lista de productos ordenada por nombre.
        Online actualiza el cache; si el servidor falla se usa el cache.
        """
        if self.online:
            productos = self._refresh_cache()
            if productos is not None:
                return productos
        return sorted(self._productos_locales(), key=lambda p: p.nombre)

    def get_producto_por_codigo(self, codigo: str) -> Optional[Producto]:
        """Busca un producto por código de barras (None si no existe)."""
        if self.online:
            try:
                row = self.remote.select_one(self.tabla_productos, 'codigo_barras', codigo)
                if row is None:
                    return None
                producto = Producto.from_dict(row)
                if producto.id is not None:
                    self.mirror.update_producto(producto.id, producto.to_dict())
                return producto
            except (RemoteStoreError, ValidationError) as e:
                logger.error(f"Error al buscar producto {codigo}: {e}")
        row = self.mirror.find_by_codigo(codigo)
        if row is None:
            return None
        try:
            return Producto.from_dict(row)
        except ValidationError as e:
            logger.warning(f"Producto inválido en cache local: {e}")
            return None

    def get_producto(self, producto_id: Any) -> Optional[Producto]:
        """Busca un producto por ID (servidor si hay conexión, si no cache)."""
        row = None
        if self.online:
            try:
                row = self.remote.select_one(self.tabla_productos, 'id', producto_id)
            except RemoteStoreError as e:
                logger.error(f"Error al obtener producto {producto_id}: {e}")
                row = self.mirror.find_by_id(producto_id)
        else:
            row = self.mirror.find_by_id(producto_id)
        if row is None:
            return None
        return Producto.from_dict(row)

    def get_pedidos_pendientes(self) -> List[Pedido]:
        """Pedidos en estado pendiente, más nuevos primero. Offline: lista vacía."""
        if not self.online:
            return []
        try:
            rows = self.remote.select(
                self.tabla_pedidos,
                eq={'estado': EstadoPedido.PENDIENTE.value},
                order_by='created_at',
                ascending=False,
            )
        except RemoteStoreError as e:
            logger.error(f"Error al obtener pedidos pendientes: {e}")
            return []
        pedidos = []
        for row in rows:
            try:
                pedidos.append(Pedido.from_dict(row))
            except ValidationError as e:
                logger.warning(f"Pedido inválido descartado: {e}")
        return pedidos

    def get_pedido(self, pedido_id: Any) -> Optional[Pedido]:
        self._require_online('No se pueden consultar pedidos en modo offline')
        row = self.remote.select_one(self.tabla_pedidos, 'id', pedido_id)
        return Pedido.from_dict(row) if row else None

    # =========================================================================
    # ESCRITURAS DE PRODUCTOS (se encolan si no llegan al servidor)
    # =========================================================================

    def _enqueue(self, operation: OperacionPendiente, data: Dict[str, Any]) -> PendingChange:
        change = PendingChange(operation=operation.value, data=data)
        self.mirror.append_pending_change(change)
        logger.info(f"Cambio pendiente encolado: {operation.value} {data.get('id', data.get('codigo_barras'))}")
        return change

    def _temp_id(self) -> str:
        stamp = now_ms()
        temp_id = f"{Producto.TEMP_PREFIX}{stamp}"
        while self.mirror.find_by_id(temp_id) is not None:
            stamp += 1
            temp_id = f"{Producto.TEMP_PREFIX}{stamp}"
        return temp_id

    def add_producto(self, datos: Dict[str, Any]) -> Producto:
        """
        Crea un producto.

        Args:
            datos: codigo_barras, nombre, precio, stock, imagen_url (opcional)

        Returns:
            Producto creado (con ID temporal si se creó offline)

        Raises:
            ValidationError: Si faltan campos o no son numéricos
            RemoteStoreError: Si el servidor rechazó la operación (queda encolada)
        """
        producto = Producto.from_dict({
            'codigo_barras': datos.get('codigo_barras'),
            'nombre': datos.get('nombre'),
            'precio': datos.get('precio'),
            'stock': datos.get('stock'),
        })
        producto.imagen_url = datos.get('imagen_url') or None
        producto.created_at = now_iso()
        payload = producto.to_dict()

        if self.online:
            try:
                creado = Producto.from_dict(self.remote.insert(self.tabla_productos, payload))
            except RemoteStoreError as e:
                logger.error(f"Error al agregar producto: {e}")
                self._enqueue(OperacionPendiente.INSERT, payload)
                raise
            self.mirror.add_producto(creado.to_dict())
            return creado

        producto.id = self._temp_id()
        self.mirror.add_producto(producto.to_dict())
        self._enqueue(OperacionPendiente.INSERT, producto.to_dict())
        return producto

    def _update_producto(self, producto_id: Any, cambios: Dict[str, Any], descripcion: str) -> Optional[Producto]:
        if self.online:
            try:
                row = self.remote.update(self.tabla_productos, producto_id, cambios)
            except RemoteStoreError as e:
                logger.error(f"Error al {descripcion}: {e}")
                self._enqueue(OperacionPendiente.UPDATE, {'id': producto_id, **cambios})
                raise
            self.mirror.update_producto(producto_id, cambios)
            return Producto.from_dict(row)

        row = self.mirror.update_producto(producto_id, cambios)
        self._enqueue(OperacionPendiente.UPDATE, {'id': producto_id, **cambios})
        return Producto.from_dict(row) if row else None

    def update_stock(self, producto_id: Any, nuevo_stock: int) -> Optional[Producto]:
        """
        Fija el stock de un producto.

        Returns:
            Producto actualizado (None si offline y no estaba en el cache)
        """
        return self._update_producto(producto_id, {'stock': nuevo_stock}, 'actualizar stock')

    def update_producto_imagen(self, producto_id: Any, imagen_url: Optional[str]) -> Optional[Producto]:
        return self._update_producto(producto_id, {'imagen_url': imagen_url}, 'actualizar imagen')

    def delete_producto(self, producto_id: Any) -> bool:
        """
        Elimina un producto y, si tenía, su imagen del storage.

        Returns:
            True
        """
        if self.online:
            try:
                row = self.remote.select_one(self.tabla_productos, 'id', producto_id)
                self.remote.delete(self.tabla_productos, producto_id)
            except RemoteStoreError as e:
                logger.error(f"Error al eliminar producto: {e}")
                self._enqueue(OperacionPendiente.DELETE, {'id': producto_id})
                raise
            if row and row.get('imagen_url'):
                self.delete_product_image(row['imagen_url'])
            self.mirror.delete_producto(producto_id)
            return True

        self.mirror.delete_producto(producto_id)
        self._enqueue(OperacionPendiente.DELETE, {'id': producto_id})
        return True

    # =========================================================================
    # OPERACIONES SOLO ONLINE
    # =========================================================================

    def create_pedido(self, pedido: Pedido) -> Pedido:
        """
        Registra un pedido del catálogo.

        Raises:
            OfflineUnavailableError: Sin conexión
            RemoteStoreError: Si el servidor lo rechazó
        """
        self._require_online('No se pueden crear pedidos en modo offline')
        payload = pedido.to_dict()
        payload.pop('id', None)
        payload['estado'] = EstadoPedido.PENDIENTE.value
        payload['created_at'] = now_iso()
        try:
            return Pedido.from_dict(self.remote.insert(self.tabla_pedidos, payload))
        except RemoteStoreError as e:
            logger.error(f"Error al crear pedido: {e}")
            raise

    def update_pedido_estado(self, pedido_id: Any, estado: str) -> Pedido:
        self._require_online('No se puede actualizar pedido en modo offline')
        try:
            return Pedido.from_dict(self.remote.update(self.tabla_pedidos, pedido_id, {'estado': estado}))
        except RemoteStoreError as e:
            logger.error(f"Error al actualizar estado del pedido: {e}")
            raise

    def create_venta(self, venta: Venta) -> Venta:
        self._require_online('No se pueden registrar ventas en modo offline')
        payload = venta.to_dict()
        payload.pop('id', None)
        payload['created_at'] = now_iso()
        try:
            return Venta.from_dict(self.remote.insert(self.tabla_ventas, payload))
        except RemoteStoreError as e:
            logger.error(f"Error al crear registro de venta: {e}")
            raise

    @profile_function(name="Descontar stock de varios productos")
    def update_multiple_stock(self, updates: List[Dict[str, Any]]) -> bool:
        """
        Descuenta stock leyendo el valor actual del servidor para cada item.

        Args:
            updates: [{'id': ..., 'cantidad': N}, ...]
        """
        self._require_online('No se puede actualizar stock en modo offline')
        try:
            for update in updates:
                row = self.remote.select_one(self.tabla_productos, 'id', update['id'])
                if row is None:
                    raise RemoteStoreError(f"Producto {update['id']} no encontrado")
                nuevo_stock = int(row['stock']) - int(update['cantidad'])
                self.remote.update(self.tabla_productos, update['id'], {'stock': nuevo_stock})
                self.mirror.update_producto(update['id'], {'stock': nuevo_stock})
        except RemoteStoreError as e:
            logger.error(f"Error al actualizar stock múltiple: {e}")
            raise
        return True

    @profile_function(name="Ventas por día")
    def get_ventas_por_dia(self, fecha_desde: str, fecha_hasta: str) -> List[VentasDia]:
        """
        Ventas agrupadas por día dentro de un rango inclusivo.

        Args:
            fecha_desde: YYYY-MM-DD
            fecha_hasta: YYYY-MM-DD

        Returns:
            Grupos por fecha, más reciente primero
        """
        self._require_online('No se pueden obtener reportes en modo offline')
        try:
            rows = self.remote.select(
                self.tabla_ventas,
                gte={'created_at': f"{fecha_desde}T00:00:00"},
                lte={'created_at': f"{fecha_hasta}T23:59:59.999999"},
                order_by='created_at',
                ascending=False,
            )
        except RemoteStoreError as e:
            logger.error(f"Error al obtener ventas por día: {e}")
            raise
        ventas = []
        for row in rows:
            try:
                ventas.append(Venta.from_dict(row))
            except ValidationError as e:
                logger.warning(f"Venta inválida descartada del reporte: {e}")
        return VentasDia.agrupar(ventas)

    # =========================================================================
    # IMÁGENES
    # =========================================================================

    def validate_image(self, content_type: str, size: int) -> None:
        """
        Raises:
            ValidationError: Tipo no permitido o archivo demasiado grande
        """
        if content_type not in config.IMAGES.ALLOWED_TYPES:
            raise ValidationError(
                f"Tipo de archivo no permitido. Use: {', '.join(config.IMAGES.ALLOWED_EXTENSIONS)}"
            )
        if size > config.IMAGES.MAX_FILE_SIZE:
            max_mb = config.IMAGES.MAX_FILE_SIZE / (1024 * 1024)
            raise ValidationError(f"El archivo es demasiado grande. Tamaño máximo: {max_mb:g}MB")

    def upload_product_image(self, content: bytes, filename: str, content_type: str,
                             producto_id: Any = None) -> str:
        """
        Sube una imagen al bucket de productos.

        Returns:
            URL pública de la imagen
        """
        self._require_online('No se pueden subir imágenes en modo offline')
        self.validate_image(content_type, len(content))

        timestamp = now_ms()
        extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else 'jpg'
        if producto_id is not None:
            nombre = f"{producto_id}_{timestamp}.{extension}"
        else:
            suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=6))
            nombre = f"product_{timestamp}_{suffix}.{extension}"

        try:
            url = self.remote.upload_file(config.IMAGES.STORAGE_BUCKET, nombre, content, content_type)
        except RemoteStoreError as e:
            logger.error(f"Error al subir imagen: {e}")
            raise
        logger.info(f"Imagen subida: {url}")
        return url

    def delete_product_image(self, imagen_url: Optional[str]) -> bool:
        """
        Elimina una imagen del storage. Las fallas solo se registran.

        Returns:
            True si se eliminó
        """
        if not self.online:
            logger.warning("No se puede eliminar imagen en modo offline")
            return False
        if not imagen_url:
            return False
        key = imagen_url.rstrip('/').split('/')[-1]
        try:
            self.remote.remove_file(config.IMAGES.STORAGE_BUCKET, key)
        except RemoteStoreError as e:
            logger.warning(f"Error al eliminar imagen del storage: {e}")
            return False
        return True

    def replace_product_image(self, producto_id: Any, content: bytes, filename: str,
                              content_type: str) -> str:
        """Reemplaza la imagen de un producto: borra la anterior, sube y guarda la URL."""
        self._require_online('No se pueden actualizar imágenes en modo offline')
        self.validate_image(content_type, len(content))
        row = self.remote.select_one(self.tabla_productos, 'id', producto_id)
        if row is None:
            raise RemoteStoreError(f"Producto {producto_id} no encontrado")
        if row.get('imagen_url'):
            self.delete_product_image(row['imagen_url'])
        url = self.upload_product_image(content, filename, content_type, producto_id)
        self.update_producto_imagen(producto_id, url)
        return url

    # =========================================================================
    # COLA DE CAMBIOS PENDIENTES
    # =========================================================================

    def get_pending_changes(self) -> List[PendingChange]:
        return self.mirror.get_pending_changes()

    @profile_function(name="Sincronizar cambios pendientes")
    def replay_pending(self) -> Dict[str, int]:
        """
        Reenvía la cola en orden de llegada. Un error en un cambio se
        registra y no detiene los siguientes.

        Con política 'retain_failed' quedan en la cola solo los que fallaron;
        con 'clear_all' la cola se vacía siempre.

        Returns:
            {'total', 'sincronizados', 'fallidos'}
        """
        resultado = {'total': 0, 'sincronizados': 0, 'fallidos': 0}
        if not self.online:
            return resultado

        with self._replay_lock:
            pending = self.mirror.get_pending_changes()
            if not pending:
                return resultado

            logger.info(f"Sincronizando {len(pending)} cambios pendientes...")
            resultado['total'] = len(pending)
            failed: List[PendingChange] = []
            ids_temporales: Dict[str, Any] = {}

            for change in pending:
                try:
                    self._replay_change(change, ids_temporales)
                    resultado['sincronizados'] += 1
                except (RemoteStoreError, ValidationError) as e:
                    logger.error(f"Error al sincronizar cambio {change.operation}: {e}")
                    failed.append(change)

            resultado['fallidos'] = len(failed)
            # Lectura de la cola y guardado bajo el lock del archivo: un
            # append_pending_change concurrente espera hasta el final.
            with self.mirror.lock:
                # Cambios encolados mientras se reenviaba la cola
                nuevos = self.mirror.get_pending_changes()[len(pending):]
                if self.queue_policy == POLICY_CLEAR_ALL:
                    if failed:
                        logger.warning(f"Se descartan {len(failed)} cambios que no se pudieron sincronizar")
                    restantes = nuevos
                else:
                    restantes = failed + nuevos
                # Los IDs temporales ya insertados pasan a su ID real
                self.mirror.save_pending_changes(
                    [self._con_id_real(change, ids_temporales) for change in restantes]
                )

        logger.info(f"Sincronización completada: {resultado['sincronizados']}/{resultado['total']}")
        self._refresh_cache()
        self.event_bus.publish(ProductChanged(event_type=EVENTO_SYNC))
        return resultado

    @staticmethod
    def _con_id_real(change: PendingChange, ids_temporales: Dict[str, Any]) -> PendingChange:
        producto_id = change.data.get('id')
        if not isinstance(producto_id, str) or producto_id not in ids_temporales:
            return change
        return PendingChange(
            operation=change.operation,
            data={**change.data, 'id': ids_temporales[producto_id]},
            timestamp=change.timestamp,
        )

    def _replay_change(self, change: PendingChange, ids_temporales: Dict[str, Any]) -> None:
        data = dict(change.data)
        producto_id = data.get('id')
        if isinstance(producto_id, str) and producto_id.startswith(Producto.TEMP_PREFIX):
            if change.operation == OperacionPendiente.INSERT.value:
                data.pop('id')
                row = self.remote.insert(self.tabla_productos, data)
                ids_temporales[producto_id] = row.get('id')
                return
            if producto_id not in ids_temporales:
                raise ValidationError(f"El producto {producto_id} todavía no existe en el servidor")
            producto_id = ids_temporales[producto_id]

        if change.operation == OperacionPendiente.INSERT.value:
            self.remote.insert(self.tabla_productos, data)
        elif change.operation == OperacionPendiente.UPDATE.value:
            cambios = {k: v for k, v in data.items() if k != 'id'}
            self.remote.update(self.tabla_productos, producto_id, cambios)
        elif change.operation == OperacionPendiente.DELETE.value:
            self.remote.delete(self.tabla_productos, producto_id)

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def subscribe(self, callback: Callable[[Any], None], event_type: type = None) -> Callable[[], None]:
        """
        Registra un suscriptor de eventos (ProductChanged, OrderCreated o todos).

        Returns:
            Función para cancelar la suscripción
        """
        return self.event_bus.subscribe(callback, event_type)

    def on_data_change(self, callback: Callable[[ProductChanged], None]) -> Callable[[], None]:
        return self.subscribe(callback, ProductChanged)

    def subscribe_to_pedidos(self, callback: Callable[[Pedido], None]) -> Callable[[], None]:
        """El callback recibe cada Pedido nuevo."""
        return self.subscribe(lambda event: callback(event.pedido), OrderCreated)

    def _subscribe_realtime(self) -> None:
        self._drop_subscriptions()
        for table, event, handler in (
            (self.tabla_productos, '*', self._on_producto_change),
            (self.tabla_pedidos, 'INSERT', self._on_pedido_insert),
        ):
            try:
                handle = self.remote.subscribe(table, handler, event)
            except RemoteStoreError as e:
                logger.warning(f"No se pudo suscribir a cambios de {table}: {e}")
                continue
            with self._lock:
                self._subscriptions.append(handle)

    def _drop_subscriptions(self) -> None:
        with self._lock:
            handles, self._subscriptions = self._subscriptions, []
        for handle in handles:
            self.remote.unsubscribe(handle)

    def _on_producto_change(self, payload: Dict[str, Any]) -> None:
        event_type = payload.get('eventType')
        new = payload.get('new') or None
        old = payload.get('old') or None
        logger.debug(f"Cambio detectado en productos: {event_type}")

        if event_type in ('INSERT', 'UPDATE') and new:
            try:
                self.mirror.add_producto(Producto.from_dict(new).to_dict())
            except ValidationError as e:
                logger.warning(f"Notificación de producto inválida: {e}")
                return
        elif event_type == 'DELETE' and old and old.get('id') is not None:
            self.mirror.delete_producto(old['id'])

        self.event_bus.publish(ProductChanged(event_type=event_type, new=new, old=old))

    def _on_pedido_insert(self, payload: Dict[str, Any]) -> None:
        try:
            pedido = Pedido.from_dict(payload.get('new') or {})
        except ValidationError as e:
            logger.warning(f"Notificación de pedido inválida: {e}")
            return
        logger.info(f"Nuevo pedido recibido de {pedido.cliente}")
        self.event_bus.publish(OrderCreated(pedido=pedido))
