# -*- coding: utf-8 -*-
"""
Tests de pedidos: validación, stock, envío desde el catálogo y entrega.
"""
import pytest

from tienda_pos.errors import OfflineUnavailableError
from tienda_pos.models import CartItem, LineaPedido, Pedido, Producto

FORMULARIO = {'cliente': 'Ana', 'tiempo_llegada': '15 min', 'metodo_pago': 'efectivo'}
LINEA = {'id': 1, 'nombre': 'X', 'cantidad': 1, 'precio': 5}


# =============================================================================
# validar_pedido
# =============================================================================

def test_validar_pedido_sin_cliente(orders):
    result = orders.validar_pedido({'cliente': '', 'productos': [LINEA], 'total': 10,
                                    'metodo_pago': 'efectivo', 'tiempo_llegada': '15 min'})

    assert result['valid'] is False
    assert 'nombre del cliente' in result['error']


def test_validar_pedido_sin_productos(orders):
    result = orders.validar_pedido({'cliente': 'Jon', 'productos': [], 'total': 10,
                                    'metodo_pago': 'efectivo', 'tiempo_llegada': '15 min'})

    assert result['valid'] is False
    assert 'producto' in result['error']


def test_validar_pedido_total_cero(orders):
    result = orders.validar_pedido({'cliente': 'Jon', 'productos': [LINEA], 'total': 0,
                                    'metodo_pago': 'efectivo', 'tiempo_llegada': '15 min'})

    assert result == {'valid': False, 'error': 'El total del pedido debe ser mayor a cero'}


@pytest.mark.parametrize('cambios, mensaje', [
    ({'cliente': ' J '}, 'El nombre debe tener al menos 2 caracteres'),
    ({'tiempo_llegada': ''}, 'Debe seleccionar un tiempo de llegada'),
    ({'metodo_pago': None}, 'Debe seleccionar un método de pago'),
    ({'metodo_pago': 'tarjeta'}, 'Método de pago no válido'),
])
def test_validar_pedido_mensajes(orders, cambios, mensaje):
    pedido = {'cliente': 'Jon', 'productos': [LINEA], 'total': 10,
              'metodo_pago': 'efectivo', 'tiempo_llegada': '15 min', **cambios}

    assert orders.validar_pedido(pedido) == {'valid': False, 'error': mensaje}


def test_validar_pedido_primer_error_gana(orders):
    result = orders.validar_pedido({'cliente': '', 'productos': [], 'total': 0})

    assert result['error'] == 'El nombre del cliente es requerido'


def test_validar_pedido_valido(orders):
    pedido = {'cliente': 'Jon', 'productos': [LINEA], 'total': 5,
              'metodo_pago': 'transferencia', 'tiempo_llegada': '30 min'}

    assert orders.validar_pedido(pedido) == {'valid': True}


# =============================================================================
# verificar_stock
# =============================================================================

def test_verificar_stock_reporta_el_primer_faltante(orders):
    productos = [
        Producto(id='p1', codigo_barras='1', nombre='Café', precio=10, stock=5),
        Producto(id='p2', codigo_barras='2', nombre='Yerba', precio=20, stock=1),
    ]
    items = [
        CartItem(id='p1', nombre='Café', precio=10, cantidad=2, stock=5),
        CartItem(id='p2', nombre='Yerba', precio=20, cantidad=3, stock=3),
        CartItem(id='p9', nombre='Fantasma', precio=1, cantidad=1, stock=1),
    ]

    result = orders.verificar_stock(items, productos)

    assert result == {'valid': False, 'error': 'Stock insuficiente. Disponible: 1', 'producto': 'Yerba'}


def test_verificar_stock_producto_inexistente(orders):
    items = [CartItem(id='p9', nombre='Fantasma', precio=1, cantidad=1, stock=1)]

    result = orders.verificar_stock(items, [])

    assert result['valid'] is False
    assert result['producto'] == 'Fantasma'


# =============================================================================
# enviar_pedido
# =============================================================================

def test_enviar_pedido(orders, sync, remote, carrito_catalogo):
    cafe = sync.get_producto('p1')
    carrito_catalogo.agregar(cafe)
    carrito_catalogo.agregar(cafe)

    result = orders.enviar_pedido(FORMULARIO)

    assert result['ok'] is True
    assert result['resumen'] == 'Ana • 2 artículos • $20.00'
    pedidos = remote.rows('pedidos')
    assert len(pedidos) == 1
    assert pedidos[0]['estado'] == 'pendiente'
    assert pedidos[0]['total'] == 20.0
    assert pedidos[0]['productos'] == [{'id': 'p1', 'nombre': 'Café', 'cantidad': 2, 'precio': 10.0}]
    assert carrito_catalogo.is_empty()


def test_enviar_pedido_valida_el_formulario(orders, sync, carrito_catalogo):
    carrito_catalogo.agregar(sync.get_producto('p1'))

    result = orders.enviar_pedido({**FORMULARIO, 'cliente': ''})

    assert result == {'ok': False, 'error': 'El nombre del cliente es requerido'}
    assert not carrito_catalogo.is_empty()


def test_enviar_pedido_con_stock_desactualizado(orders, sync, remote, carrito_catalogo):
    cafe = sync.get_producto('p1')
    carrito_catalogo.agregar(cafe)
    carrito_catalogo.agregar(cafe)
    remote.update('productos', 'p1', {'stock': 1})

    result = orders.enviar_pedido(FORMULARIO)

    assert result == {'ok': False, 'error': 'Café: Stock insuficiente. Disponible: 1'}
    assert remote.rows('pedidos') == []
    assert not carrito_catalogo.is_empty()


def test_enviar_pedido_offline(orders, sync, carrito_catalogo):
    carrito_catalogo.agregar(sync.get_producto('p1'))
    sync.force_offline()

    with pytest.raises(OfflineUnavailableError):
        orders.enviar_pedido(FORMULARIO)
    assert not carrito_catalogo.is_empty()


# =============================================================================
# Gestión en el POS
# =============================================================================

def _crear_pedido(sync, cantidad=2):
    return sync.create_pedido(Pedido(
        cliente='Ana',
        productos=[LineaPedido(id='p1', nombre='Café', cantidad=cantidad, precio=10.0)],
        total=10.0 * cantidad,
        metodo_pago='transferencia',
        tiempo_llegada='15 min',
    ))


def test_confirmar_entrega(orders, sync, remote):
    pedido = _crear_pedido(sync)

    result = orders.confirmar_entrega(pedido.id)

    assert result['ok'] is True
    assert remote.select_one('productos', 'id', 'p1')['stock'] == 3
    ventas = remote.rows('ventas_diarias')
    assert len(ventas) == 1
    assert ventas[0]['pedido_id'] == pedido.id
    assert ventas[0]['total'] == 20.0
    assert remote.select_one('pedidos', 'id', pedido.id)['estado'] == 'completado'
    assert orders.get_pedidos_pendientes() == []


def test_confirmar_entrega_falla_a_mitad_de_camino(orders, sync, remote):
    pedido = _crear_pedido(sync)
    remote.fail_on('insert', 'ventas_diarias')

    result = orders.confirmar_entrega(pedido.id)

    assert result == {'ok': False, 'error': 'Error al procesar el pedido', 'paso_fallido': 'venta'}
    # El stock ya se descontó y no se revierte
    assert remote.select_one('productos', 'id', 'p1')['stock'] == 3
    assert remote.rows('ventas_diarias') == []
    assert remote.select_one('pedidos', 'id', pedido.id)['estado'] == 'pendiente'


def test_confirmar_entrega_falla_en_el_stock(orders, sync, remote):
    pedido = _crear_pedido(sync)
    remote.fail_on('update', 'productos')

    result = orders.confirmar_entrega(pedido.id)

    assert result['paso_fallido'] == 'stock'
    assert remote.rows('ventas_diarias') == []


def test_pedido_completado_no_se_puede_volver_a_entregar(orders, sync):
    pedido = _crear_pedido(sync)
    orders.confirmar_entrega(pedido.id)

    result = orders.confirmar_entrega(pedido.id)

    assert result == {'ok': False, 'error': 'El pedido ya está completado'}
    assert orders.cancelar_pedido(pedido.id)['ok'] is False


def test_cancelar_pedido(orders, sync, remote):
    pedido = _crear_pedido(sync)

    result = orders.cancelar_pedido(pedido.id)

    assert result['ok'] is True
    assert remote.select_one('pedidos', 'id', pedido.id)['estado'] == 'cancelado'
    assert remote.select_one('productos', 'id', 'p1')['stock'] == 5


def test_pedido_inexistente(orders):
    assert orders.confirmar_entrega('nada')['not_found'] is True
    assert orders.cancelar_pedido('nada')['not_found'] is True


def test_gestion_de_pedidos_offline(orders, sync):
    pedido = _crear_pedido(sync)
    sync.force_offline()

    with pytest.raises(OfflineUnavailableError):
        orders.confirmar_entrega(pedido.id)
    assert orders.get_pedidos_pendientes() == []


def test_avisos_de_pedidos_nuevos(orders, sync):
    sync.subscribe_to_pedidos(orders.on_pedido_nuevo)

    pedido = _crear_pedido(sync, cantidad=1)

    avisos = orders.tomar_notificaciones()
    assert avisos == [{'pedido_id': pedido.id, 'resumen': 'Ana • 1 artículo • $10.00'}]
    assert orders.tomar_notificaciones() == []
