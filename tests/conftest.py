# -*- coding: utf-8 -*-
"""
Fixtures compartidas: almacén remoto en memoria, espejo local en una
carpeta temporal, timers falsos y cliente Flask.
"""
import os

# Antes de importar la aplicación (config lee el entorno al importarse)
os.environ['TIENDA_LOG_FILES'] = '0'
os.environ['TIENDA_ADMIN_USER'] = 'admin'
os.environ['TIENDA_ADMIN_PASSWORD'] = 'clave-de-prueba'

import pytest

from tienda_pos.app_container import AppContainer
from tienda_pos.repositories import LocalMirror, MemoryRemoteStore, SettingsRepository
from tienda_pos.services import BarcodeScanner, CartService, OrderService, SalesService, SyncService
from tienda_pos.services.inventory_service import InventoryService


PRODUCTOS = [
    {'id': 'p1', 'codigo_barras': '7790001', 'nombre': 'Café', 'precio': 10.0, 'stock': 5,
     'imagen_url': None, 'created_at': '2024-01-01T08:00:00+00:00'},
    {'id': 'p2', 'codigo_barras': '7790002', 'nombre': 'Yerba', 'precio': 25.5, 'stock': 2,
     'imagen_url': None, 'created_at': '2024-01-01T08:00:00+00:00'},
    {'id': 'p3', 'codigo_barras': '7790003', 'nombre': 'Azúcar', 'precio': 8.0, 'stock': 0,
     'imagen_url': None, 'created_at': '2024-01-01T08:00:00+00:00'},
]


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class FakeTimerFactory:
    """Registra cada timer creado; los tests los disparan a mano."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if t.started and not t.cancelled]


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def remote():
    return MemoryRemoteStore({'productos': PRODUCTOS})


@pytest.fixture
def mirror(tmp_path):
    return LocalMirror(str(tmp_path))


@pytest.fixture
def settings_repo(tmp_path):
    return SettingsRepository(str(tmp_path))


@pytest.fixture
def sync(remote, mirror, timers):
    service = SyncService(remote, mirror, retry_interval=5, queue_policy='retain_failed', timer_factory=timers)
    service.initialize()
    yield service
    service.shutdown()


@pytest.fixture
def scanner(timers):
    return BarcodeScanner(min_length=6, max_gap_ms=50, clear_timeout_ms=200,
                          search_field_id='buscar-producto', clock=lambda: 0, timer_factory=timers)


@pytest.fixture
def inventory(sync, scanner):
    return InventoryService(sync, scanner)


@pytest.fixture
def carrito_pos():
    return CartService('carrito_pos', storage={})


@pytest.fixture
def carrito_catalogo():
    return CartService('carrito', max_por_producto=10, storage={})


@pytest.fixture
def orders(sync, carrito_catalogo):
    return OrderService(sync, carrito_catalogo)


@pytest.fixture
def sales(sync, carrito_pos):
    return SalesService(sync, carrito_pos)


@pytest.fixture
def container(tmp_path, remote, timers):
    from tienda_pos.main import iniciar_servicios

    AppContainer.reset_instance()
    instance = AppContainer(str(tmp_path), remote=remote, timer_factory=timers)
    iniciar_servicios(instance)
    yield instance
    AppContainer.reset_instance()


@pytest.fixture
def client(container):
    from tienda_pos.main import app

    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
