# -*- coding: utf-8 -*-
"""
Tests del clasificador de teclas del lector de códigos.
"""


def teclear(scanner, texto, inicio=1000, paso=10, campo=None):
    """Envía cada carácter con 'paso' ms de separación. Retorna el tiempo de la última tecla."""
    t = inicio
    for caracter in texto:
        scanner.handle_key(caracter, campo, t)
        t += paso
    return t - paso


def test_rafaga_rapida_emite_un_codigo(scanner):
    leidos = []
    scanner.start(leidos.append)

    fin = teclear(scanner, '7790001')
    codigo = scanner.handle_key('Enter', None, fin + 10)

    assert codigo == '7790001'
    assert leidos == ['7790001']
    assert scanner.buffer == ''
    assert scanner.is_scanning is False


def test_pausa_larga_reinicia_el_buffer(scanner):
    leidos = []
    scanner.start(leidos.append)

    teclear(scanner, '123', inicio=1000)
    # 300 ms sin teclas: empieza una ráfaga nueva
    fin = teclear(scanner, '456789', inicio=1320)
    scanner.handle_key('Enter', None, fin + 10)

    assert leidos == ['456789']


def test_pausa_antes_del_minimo_no_emite(scanner):
    leidos = []
    scanner.start(leidos.append)

    teclear(scanner, '12345', inicio=1000)
    scanner.handle_key('6', None, 1500)
    scanner.handle_key('Enter', None, 1510)

    assert leidos == []
    assert scanner.buffer == ''


def test_codigo_corto_no_emite(scanner):
    leidos = []
    scanner.start(leidos.append)

    fin = teclear(scanner, '12345')
    assert scanner.handle_key('Enter', None, fin + 10) is None
    assert leidos == []


def test_escritura_lenta_no_marca_escaneo(scanner):
    scanner.start(lambda codigo: None)

    teclear(scanner, 'caf', inicio=1000, paso=200)
    assert scanner.is_scanning is False

    teclear(scanner, 'é1', inicio=2000, paso=10)
    assert scanner.is_scanning is True


def test_is_scanning_durante_la_emision(scanner):
    estados = []
    scanner.start(lambda codigo: estados.append(scanner.is_scanning))

    fin = teclear(scanner, '7790002')
    scanner.handle_key('Enter', None, fin + 5)

    assert estados == [True]
    assert scanner.is_scanning is False


def test_ignora_teclas_en_otros_campos(scanner):
    leidos = []
    scanner.start(leidos.append)

    fin = teclear(scanner, '7790001', campo='nombre-producto')
    scanner.handle_key('Enter', 'nombre-producto', fin + 10)

    assert scanner.buffer == ''
    assert leidos == []


def test_acepta_teclas_en_el_buscador(scanner):
    leidos = []
    scanner.start(leidos.append)

    fin = teclear(scanner, '7790001', campo='buscar-producto')
    scanner.handle_key('Enter', 'buscar-producto', fin + 10)

    assert leidos == ['7790001']


def test_timer_de_expiracion_limpia_el_buffer(scanner, timers):
    scanner.start(lambda codigo: None)
    teclear(scanner, '779')

    activo = timers.active[-1]
    assert activo.interval == 0.2
    activo.fire()

    assert scanner.buffer == ''
    assert scanner.is_scanning is False


def test_timer_reemplazado_no_borra_rafaga_nueva(scanner, timers):
    scanner.start(lambda codigo: None)
    scanner.handle_key('7', None, 1000)
    viejo = timers.timers[-1]
    scanner.handle_key('7', None, 1010)

    assert viejo.cancelled is True
    viejo.fire()
    assert scanner.buffer == '77'


def test_simulate_scan_usa_el_mismo_camino(scanner):
    leidos = []
    scanner.start(leidos.append)

    assert scanner.simulate_scan(' 7790003 ') == '7790003'
    assert leidos == ['7790003']
    assert scanner.is_scanning is False


def test_stop_es_idempotente(scanner):
    scanner.start(lambda codigo: None)
    scanner.handle_key('1', None, 1000)

    scanner.stop()
    scanner.stop()

    assert scanner.listening is False
    assert scanner.buffer == ''
    assert scanner.handle_key('2', None, 1010) is None
    assert scanner.buffer == ''


def test_start_dos_veces_conserva_el_primer_callback(scanner):
    primero, segundo = [], []
    scanner.start(primero.append)
    scanner.start(segundo.append)

    scanner.simulate_scan('1234567')

    assert primero == ['1234567']
    assert segundo == []
