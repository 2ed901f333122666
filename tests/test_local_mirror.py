# -*- coding: utf-8 -*-
"""
Tests del espejo local (productos + cola) y de las preferencias.
"""
from tienda_pos import config
from tienda_pos.models import PendingChange
from tienda_pos.repositories import LocalMirror, SettingsRepository


def test_guardar_productos_registra_ultima_sincronizacion(mirror):
    assert mirror.get_last_sync() is None

    mirror.save_productos([{'id': 'p1', 'codigo_barras': '7790001', 'nombre': 'Café', 'precio': 10, 'stock': 5}])

    assert len(mirror.get_productos()) == 1
    assert mirror.get_last_sync() is not None


def test_add_producto_reemplaza_mismo_id(mirror):
    mirror.add_producto({'id': 'p1', 'codigo_barras': '7790001', 'nombre': 'Café', 'precio': 10, 'stock': 5})
    mirror.add_producto({'id': 'p1', 'codigo_barras': '7790001', 'nombre': 'Café', 'precio': 10, 'stock': 3})

    productos = mirror.get_productos()
    assert len(productos) == 1
    assert productos[0]['stock'] == 3


def test_busquedas_y_actualizacion(mirror):
    mirror.add_producto({'id': 'p1', 'codigo_barras': '7790001', 'nombre': 'Café', 'precio': 10, 'stock': 5})

    assert mirror.find_by_codigo('7790001')['id'] == 'p1'
    assert mirror.find_by_id('p1')['nombre'] == 'Café'
    assert mirror.find_by_codigo('000') is None

    actualizado = mirror.update_producto('p1', {'stock': 1})
    assert actualizado['stock'] == 1
    assert mirror.update_producto('no-existe', {'stock': 1}) is None

    mirror.delete_producto('p1')
    assert mirror.get_productos() == []


def test_cola_fifo(mirror):
    mirror.append_pending_change(PendingChange('insert', {'codigo_barras': '1'}, timestamp=1))
    mirror.append_pending_change(PendingChange('update', {'id': 'p1', 'stock': 2}, timestamp=2))
    mirror.append_pending_change(PendingChange('delete', {'id': 'p2'}, timestamp=3))

    cola = mirror.get_pending_changes()
    assert [c.operation for c in cola] == ['insert', 'update', 'delete']
    assert mirror.count_pending_changes() == 3

    mirror.save_pending_changes([])
    assert mirror.get_pending_changes() == []
    assert mirror.get_item(config.STORAGE.PENDING_CHANGES_KEY) is None


def test_cola_descarta_entradas_corruptas(mirror):
    mirror.set_item(config.STORAGE.PENDING_CHANGES_KEY, [
        {'operation': 'truncate', 'data': {}},
        {'operation': 'update'},
        {'operation': 'delete', 'data': {'id': 'p1'}, 'timestamp': 5},
    ])

    cola = mirror.get_pending_changes()
    assert len(cola) == 1
    assert cola[0].data == {'id': 'p1'}


def test_persistencia_entre_instancias(tmp_path):
    LocalMirror(str(tmp_path)).append_pending_change(PendingChange('delete', {'id': 'p9'}))

    otra = LocalMirror(str(tmp_path))
    assert otra.get_pending_changes()[0].data == {'id': 'p9'}
    assert (tmp_path / config.STORAGE.FILE_NAME).exists()


def test_vista_activa(settings_repo, tmp_path):
    assert settings_repo.get_vista_activa() == 'ventas'

    assert settings_repo.set_vista_activa('pedidos') is True
    assert SettingsRepository(str(tmp_path)).get_vista_activa() == 'pedidos'

    assert settings_repo.set_vista_activa('finanzas') is False
    assert settings_repo.get_vista_activa() == 'pedidos'
