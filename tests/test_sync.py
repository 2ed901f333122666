# -*- coding: utf-8 -*-
"""
Tests del motor de sincronización: modo online/offline, cola de cambios,
reintentos y notificaciones.
"""
import threading

import pytest

from tienda_pos.errors import OfflineUnavailableError, RemoteStoreError
from tienda_pos.models import LineaPedido, OrderCreated, Pedido, PendingChange, ProductChanged, Venta
from tienda_pos.repositories import MemoryRemoteStore
from tienda_pos.services import SyncService

from conftest import PRODUCTOS


def _pedido():
    return Pedido(
        cliente='Ana',
        productos=[LineaPedido(id='p1', nombre='Café', cantidad=2, precio=10.0)],
        total=20.0,
        metodo_pago='efectivo',
        tiempo_llegada='15 min',
    )


def _venta(total):
    return Venta(total=total, metodo_pago='efectivo', productos=[])


# =============================================================================
# Conexión
# =============================================================================

def test_initialize_online_llena_el_cache_y_se_suscribe(sync, remote, mirror):
    assert sync.online is True
    assert [p['nombre'] for p in mirror.get_productos()] == ['Azúcar', 'Café', 'Yerba']
    assert ('subscribe', 'productos') in remote.calls
    assert ('subscribe', 'pedidos') in remote.calls
    assert sync.retry_pending is False


def test_servidor_caido_pasa_a_offline_y_reintenta(mirror, timers):
    remote = MemoryRemoteStore({'productos': PRODUCTOS})
    remote.available = False
    sync = SyncService(remote, mirror, retry_interval=5, timer_factory=timers)

    assert sync.initialize() is False
    assert sync.online is False
    assert sync.retry_pending is True
    assert timers.active[-1].interval == 5

    remote.available = True
    timers.active[-1].fire()

    assert sync.online is True
    assert sync.retry_pending is False
    assert len(mirror.get_productos()) == 3
    sync.shutdown()


def test_sin_credenciales_no_intenta_conectar(mirror, timers):
    remote = MemoryRemoteStore()
    remote.configured = False
    sync = SyncService(remote, mirror, timer_factory=timers)

    assert sync.initialize() is False
    assert ('ping', '') not in remote.calls
    sync.shutdown()
    assert timers.active == []


def test_shutdown_cancela_el_reintento(mirror, timers):
    remote = MemoryRemoteStore()
    remote.available = False
    sync = SyncService(remote, mirror, timer_factory=timers)
    sync.initialize()

    sync.shutdown()

    assert sync.retry_pending is False
    assert timers.active == []
    assert sync.initialize() is False


# =============================================================================
# Lecturas
# =============================================================================

def test_get_productos_usa_cache_si_el_servidor_falla(sync, remote):
    remote.fail_on('select', 'productos')

    productos = sync.get_productos()

    assert [p.nombre for p in productos] == ['Azúcar', 'Café', 'Yerba']


def test_get_producto_por_codigo_offline(sync):
    sync.force_offline()

    assert sync.get_producto_por_codigo('7790002').nombre == 'Yerba'
    assert sync.get_producto_por_codigo('0000000') is None


def test_pedidos_pendientes_offline_es_lista_vacia(sync):
    sync.create_pedido(_pedido())
    assert len(sync.get_pedidos_pendientes()) == 1

    sync.force_offline()
    assert sync.get_pedidos_pendientes() == []


# =============================================================================
# Modo offline
# =============================================================================

def test_operaciones_de_servidor_fallan_offline(sync):
    sync.force_offline()

    with pytest.raises(OfflineUnavailableError):
        sync.create_pedido(_pedido())
    with pytest.raises(OfflineUnavailableError):
        sync.create_venta(_venta(10))
    with pytest.raises(OfflineUnavailableError):
        sync.get_ventas_por_dia('2024-01-01', '2024-01-02')
    with pytest.raises(OfflineUnavailableError):
        sync.upload_product_image(b'img', 'foto.png', 'image/png')
    assert sync.get_pending_changes() == []


def test_add_producto_offline_encola_un_cambio(sync, mirror, remote):
    sync.force_offline()

    producto = sync.add_producto({'codigo_barras': '7790009', 'nombre': 'Té', 'precio': 12, 'stock': 4})

    assert producto.es_temporal
    assert mirror.find_by_id(producto.id)['nombre'] == 'Té'
    cola = sync.get_pending_changes()
    assert len(cola) == 1
    assert cola[0].operation == 'insert'
    assert len(remote.rows('productos')) == 3


def test_update_stock_offline_encola_un_cambio(sync, mirror):
    sync.force_offline()

    producto = sync.update_stock('p1', 2)

    assert producto.stock == 2
    assert mirror.find_by_id('p1')['stock'] == 2
    cola = sync.get_pending_changes()
    assert len(cola) == 1
    assert cola[0].data == {'id': 'p1', 'stock': 2}


def test_falla_online_encola_y_relanza(sync, remote):
    remote.fail_on('update', 'productos')

    with pytest.raises(RemoteStoreError):
        sync.update_stock('p1', 3)

    assert len(sync.get_pending_changes()) == 1


def test_operaciones_de_servidor_no_se_encolan(sync, remote):
    remote.fail_on('insert', 'pedidos')

    with pytest.raises(RemoteStoreError):
        sync.create_pedido(_pedido())

    assert sync.get_pending_changes() == []


# =============================================================================
# Reenvío de la cola
# =============================================================================

def test_reconexion_reenvia_la_cola(sync, remote, mirror):
    sync.force_offline()
    nuevo = sync.add_producto({'codigo_barras': '7790009', 'nombre': 'Té', 'precio': 12, 'stock': 4})
    sync.update_stock(nuevo.id, 9)
    sync.delete_producto('p3')

    assert sync.initialize() is True

    filas = {f['nombre']: f for f in remote.rows('productos')}
    assert filas['Té']['stock'] == 9
    assert not filas['Té']['id'].startswith('temp_')
    assert 'Azúcar' not in filas
    assert sync.get_pending_changes() == []
    assert not any(str(p['id']).startswith('temp_') for p in mirror.get_productos())


def test_retain_failed_conserva_solo_los_fallidos(sync, remote):
    sync.force_offline()
    sync.update_stock('p1', 1)
    sync.update_stock('no-existe', 1)

    sync.initialize()

    cola = sync.get_pending_changes()
    assert [c.data['id'] for c in cola] == ['no-existe']
    assert remote.select_one('productos', 'id', 'p1')['stock'] == 1


def test_clear_all_vacia_la_cola_aunque_fallen(remote, mirror, timers):
    sync = SyncService(remote, mirror, queue_policy='clear_all', timer_factory=timers)
    mirror.append_pending_change(PendingChange('update', {'id': 'no-existe', 'stock': 1}))
    mirror.append_pending_change(PendingChange('update', {'id': 'p2', 'stock': 7}))

    sync.initialize()

    assert sync.get_pending_changes() == []
    assert remote.select_one('productos', 'id', 'p2')['stock'] == 7
    sync.shutdown()


def test_reenviar_dos_veces_la_misma_cola_es_idempotente(sync, remote, mirror):
    cola = [
        PendingChange('update', {'id': 'p1', 'stock': 3}),
        PendingChange('update', {'id': 'p2', 'imagen_url': None}),
        PendingChange('delete', {'id': 'p3'}),
    ]
    for change in cola:
        mirror.append_pending_change(change)
    sync.replay_pending()
    una_vez = remote.rows('productos')

    for change in cola:
        mirror.append_pending_change(change)
    resultado = sync.replay_pending()

    assert resultado == {'total': 3, 'sincronizados': 3, 'fallidos': 0}
    assert remote.rows('productos') == una_vez


def test_update_de_temporal_sin_insert_queda_pendiente(sync):
    sync.mirror.append_pending_change(PendingChange('update', {'id': 'temp_123', 'stock': 1}))

    resultado = sync.replay_pending()

    assert resultado['fallidos'] == 1
    assert len(sync.get_pending_changes()) == 1


def test_update_fallido_de_producto_nuevo_se_reenvia_con_su_id_real(sync, remote):
    sync.force_offline()
    nuevo = sync.add_producto({'codigo_barras': '7790009', 'nombre': 'Té', 'precio': 12, 'stock': 1})
    sync.update_stock(nuevo.id, 40)
    remote.fail_on('update', 'productos')

    sync.initialize()

    real_id = remote.select_one('productos', 'codigo_barras', '7790009')['id']
    assert [c.data['id'] for c in sync.get_pending_changes()] == [real_id]

    remote.clear_failures()
    resultado = sync.replay_pending()

    assert resultado == {'total': 1, 'sincronizados': 1, 'fallidos': 0}
    assert remote.select_one('productos', 'id', real_id)['stock'] == 40
    assert sync.get_pending_changes() == []


def test_cambio_encolado_mientras_se_guarda_la_cola_no_se_pierde(sync, mirror, monkeypatch):
    sync.force_offline()
    sync.update_stock('p1', 3)
    guardar_original = mirror.save_pending_changes
    hilos = []

    def guardar_con_request_concurrente(changes):
        hilo = threading.Thread(
            target=mirror.append_pending_change,
            args=(PendingChange('update', {'id': 'p2', 'stock': 7}),),
        )
        hilo.start()
        hilos.append(hilo)
        hilo.join(timeout=0.2)
        guardar_original(changes)

    monkeypatch.setattr(mirror, 'save_pending_changes', guardar_con_request_concurrente)

    sync.initialize()
    for hilo in hilos:
        hilo.join()

    assert [c.data['id'] for c in mirror.get_pending_changes()] == ['p2']


# =============================================================================
# Notificaciones
# =============================================================================

def test_cambio_remoto_actualiza_cache_y_notifica(sync, remote, mirror):
    eventos = []
    sync.on_data_change(eventos.append)

    remote.update('productos', 'p1', {'stock': 9})

    assert mirror.find_by_id('p1')['stock'] == 9
    assert len(eventos) == 1
    assert isinstance(eventos[0], ProductChanged)
    assert eventos[0].event_type == 'UPDATE'


def test_borrado_remoto_saca_el_producto_del_cache(sync, remote, mirror):
    remote.delete('productos', 'p2')

    assert mirror.find_by_id('p2') is None


def test_reenvio_publica_evento_sync(sync, mirror):
    eventos = []
    sync.on_data_change(eventos.append)
    mirror.append_pending_change(PendingChange('update', {'id': 'p1', 'stock': 4}))

    sync.replay_pending()

    assert eventos[-1].event_type == 'SYNC'


def test_pedido_nuevo_llega_a_los_suscriptores(sync):
    recibidos = []
    todos = []
    sync.subscribe_to_pedidos(recibidos.append)
    sync.subscribe(todos.append, OrderCreated)

    sync.create_pedido(_pedido())

    assert [p.cliente for p in recibidos] == ['Ana']
    assert len(todos) == 1


def test_suscriptor_que_falla_no_corta_la_entrega(sync, remote):
    recibidos = []

    def roto(event):
        raise RuntimeError('boom')

    sync.on_data_change(roto)
    sync.on_data_change(recibidos.append)

    remote.update('productos', 'p2', {'stock': 1})

    assert len(recibidos) == 1


def test_cancelar_suscripcion(sync, remote):
    recibidos = []
    cancelar = sync.on_data_change(recibidos.append)
    cancelar()

    remote.update('productos', 'p2', {'stock': 1})

    assert recibidos == []


# =============================================================================
# Reporte de ventas
# =============================================================================

def test_ventas_por_dia_agrupa_y_ordena(mirror, timers):
    remote = MemoryRemoteStore({'ventas_diarias': [
        {'id': 'v1', 'total': 100, 'metodo_pago': 'efectivo', 'productos': [], 'created_at': '2024-01-01T10:00:00+00:00'},
        {'id': 'v2', 'total': 50, 'metodo_pago': 'tarjeta', 'productos': [], 'created_at': '2024-01-01T18:30:00+00:00'},
        {'id': 'v3', 'total': 30, 'metodo_pago': 'efectivo', 'productos': [], 'created_at': '2024-01-02T09:00:00+00:00'},
        {'id': 'v4', 'total': 999, 'metodo_pago': 'efectivo', 'productos': [], 'created_at': '2024-01-03T00:00:01+00:00'},
    ]})
    sync = SyncService(remote, mirror, timer_factory=timers)
    sync.initialize()

    dias = sync.get_ventas_por_dia('2024-01-01', '2024-01-02')

    assert [(d.fecha, d.total, d.cantidad) for d in dias] == [
        ('2024-01-02', 30, 1),
        ('2024-01-01', 150, 2),
    ]
    sync.shutdown()
