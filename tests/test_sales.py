# -*- coding: utf-8 -*-
"""
Tests de ventas del POS y del reporte por día.
"""
import pytest

from tienda_pos.errors import OfflineUnavailableError


def _cargar_carrito(sync, carrito_pos):
    cafe = sync.get_producto('p1')
    yerba = sync.get_producto('p2')
    carrito_pos.agregar(cafe)
    carrito_pos.agregar(cafe)
    carrito_pos.agregar(yerba)


def test_finalizar_venta(sales, sync, remote, carrito_pos):
    _cargar_carrito(sync, carrito_pos)

    result = sales.finalizar_venta('tarjeta')

    assert result['ok'] is True
    assert result['mensaje'] == 'Venta completada por $45.50'
    assert remote.select_one('productos', 'id', 'p1')['stock'] == 3
    assert remote.select_one('productos', 'id', 'p2')['stock'] == 1
    ventas = remote.rows('ventas_diarias')
    assert len(ventas) == 1
    assert ventas[0]['pedido_id'] is None
    assert ventas[0]['total'] == 45.5
    assert ventas[0]['metodo_pago'] == 'tarjeta'
    assert carrito_pos.is_empty()


def test_finalizar_venta_carrito_vacio(sales):
    assert sales.finalizar_venta('efectivo') == {'ok': False, 'error': 'El carrito está vacío'}


def test_finalizar_venta_metodo_invalido(sales, sync, carrito_pos):
    _cargar_carrito(sync, carrito_pos)

    result = sales.finalizar_venta('cheque')

    assert result == {'ok': False, 'error': 'Método de pago no válido'}
    assert not carrito_pos.is_empty()


def test_finalizar_venta_offline_no_toca_el_stock(sales, sync, remote, carrito_pos):
    _cargar_carrito(sync, carrito_pos)
    sync.force_offline()

    with pytest.raises(OfflineUnavailableError):
        sales.finalizar_venta('efectivo')

    assert remote.select_one('productos', 'id', 'p1')['stock'] == 5
    assert sync.get_pending_changes() == []
    assert not carrito_pos.is_empty()


def test_finalizar_venta_con_falla_del_servidor(sales, sync, remote, carrito_pos):
    _cargar_carrito(sync, carrito_pos)
    remote.fail_on('insert', 'ventas_diarias')

    result = sales.finalizar_venta('efectivo')

    assert result['ok'] is False
    assert result['error'] == 'Error al procesar la venta'
    assert not carrito_pos.is_empty()


# =============================================================================
# Reporte
# =============================================================================

@pytest.fixture
def ventas_registradas(remote):
    for venta in (
        {'total': 100, 'created_at': '2024-01-01T10:00:00+00:00'},
        {'total': 50, 'created_at': '2024-01-01T18:30:00+00:00'},
        {'total': 30, 'created_at': '2024-01-02T09:00:00+00:00'},
    ):
        remote.insert('ventas_diarias', {'metodo_pago': 'efectivo', 'productos': [], 'pedido_id': None, **venta})


def test_reporte_ventas_por_dia(sales, ventas_registradas):
    result = sales.get_ventas_por_dia('2024-01-01', '2024-01-02')

    assert result['ok'] is True
    assert [(d['fecha'], d['total'], d['cantidad']) for d in result['dias']] == [
        ('2024-01-02', 30, 1),
        ('2024-01-01', 150, 2),
    ]
    assert result['resumen'] == {'total': 180, 'cantidad': 3, 'promedio': 60}


def test_reporte_rango_sin_ventas(sales, ventas_registradas):
    result = sales.get_ventas_por_dia('2023-06-01', '2023-06-30')

    assert result['dias'] == []
    assert result['resumen'] == {'total': 0, 'cantidad': 0, 'promedio': 0}


def test_reporte_fechas_invalidas(sales):
    assert sales.get_ventas_por_dia('01/01/2024', '2024-01-02')['ok'] is False
    assert sales.get_ventas_por_dia(None, '2024-01-02')['ok'] is False

    result = sales.get_ventas_por_dia('2024-02-01', '2024-01-01')
    assert result == {'ok': False, 'error': 'La fecha inicial no puede ser posterior a la final'}


def test_reporte_offline(sales, sync):
    sync.force_offline()

    with pytest.raises(OfflineUnavailableError):
        sales.get_ventas_por_dia('2024-01-01', '2024-01-02')
