# ==============================================================================
# TIMERS - Temporizadores de un solo disparo
# ==============================================================================

import threading
from typing import Any, Callable

TimerFactory = Callable[[float, Callable[[], None]], Any]


def daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    """
    Crea (sin iniciar) un threading.Timer que no bloquea la salida del proceso.

    Args:
        interval: Segundos hasta el disparo
        function: Función a ejecutar

    Returns:
        Timer con start() / cancel()
    """
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer
