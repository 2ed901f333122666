# ==============================================================================
# SERVICIO DE SCANNER - Detección de lectores de código de barras
# ==============================================================================
# Distingue la entrada de un lector (ráfaga de teclas < 50 ms entre sí,
# terminada en Enter) de la escritura manual. Las teclas llegan desde el
# navegador por /api/scanner/teclas con su marca de tiempo.
#
# Hay un solo buffer por proceso (el del AppContainer), compartido por
# todos los clientes HTTP: pensado para un POS con una sola terminal.
# Dos navegadores enviando teclas a la vez mezclan sus ráfagas.
# ==============================================================================

import logging
import threading
import time
from typing import Any, Callable, Optional

from tienda_pos import config
from tienda_pos.services.timers import TimerFactory, daemon_timer

logger = logging.getLogger(__name__)

ENTER = 'Enter'


def _default_clock() -> float:
    return time.monotonic() * 1000


class BarcodeScanner:
    """
    Clasificador de teclas.

    Estado:
        buffer: caracteres acumulados de la ráfaga actual
        last_key_time: ms de la última tecla aceptada (0 = buffer limpio)
        is_scanning: True mientras llega una ráfaga rápida o se emite un código

    Args:
        min_length: Largo mínimo para considerar un código
        max_gap_ms: Intervalo máximo entre teclas de un lector
        clear_timeout_ms: Tiempo sin teclas tras el cual se descarta el buffer
        search_field_id: Único campo de texto donde se aceptan lecturas
        clock: Función que retorna el tiempo actual en ms
        timer_factory: (segundos, función) → objeto con start()/cancel()
    """

    def __init__(
        self,
        min_length: int = None,
        max_gap_ms: float = None,
        clear_timeout_ms: float = None,
        search_field_id: str = None,
        clock: Callable[[], float] = None,
        timer_factory: TimerFactory = None,
    ):
        self.min_length = min_length if min_length is not None else config.SCANNER.MIN_BARCODE_LENGTH
        self.max_gap_ms = max_gap_ms if max_gap_ms is not None else config.SCANNER.MAX_TIME_BETWEEN_CHARS
        self.clear_timeout_ms = (
            clear_timeout_ms if clear_timeout_ms is not None else config.SCANNER.BUFFER_CLEAR_TIMEOUT
        )
        self.search_field_id = search_field_id or config.SCANNER.SEARCH_FIELD_ID
        self._clock = clock or _default_clock
        self._timer_factory = timer_factory or daemon_timer

        self._lock = threading.RLock()
        self.buffer = ''
        self.last_key_time = 0.0
        self.is_scanning = False
        self.listening = False
        self._callback: Optional[Callable[[str], Any]] = None
        self._clear_timer = None
        self._timer_generation = 0

    # =========================================================================
    # Ciclo de vida
    # =========================================================================

    def start(self, on_scan: Callable[[str], Any]) -> None:
        """
        Comienza a escuchar.

        Args:
            on_scan: Callback que recibe cada código detectado
        """
        with self._lock:
            if self.listening:
                logger.warning("BarcodeScanner ya está inicializado")
                return
            self._callback = on_scan
            self.listening = True
        logger.info("BarcodeScanner inicializado")

    def stop(self) -> None:
        """Deja de escuchar. Llamarlo más de una vez no tiene efecto."""
        with self._lock:
            if not self.listening:
                return
            self.listening = False
            self._callback = None
            self._clear_buffer()
            self._cancel_timer()
        logger.info("BarcodeScanner detenido")

    # =========================================================================
    # Entrada de teclas
    # =========================================================================

    def handle_key(self, key: str, focused_field: Optional[str] = None,
                   now_ms: Optional[float] = None) -> Optional[str]:
        """
        Procesa una tecla.

        Args:
            key: Tecla presionada ('Enter' confirma)
            focused_field: ID del campo de texto con foco (None = ninguno)
            now_ms: Marca de tiempo de la tecla; por defecto el reloj interno

        Returns:
            El código emitido si esta tecla completó una lectura, o None
        """
        if focused_field is not None and focused_field != self.search_field_id:
            return None

        with self._lock:
            if not self.listening:
                return None

            current = now_ms if now_ms is not None else self._clock()
            gap = current - self.last_key_time

            if key == ENTER:
                emitted = None
                if len(self.buffer) >= self.min_length:
                    self.is_scanning = True
                    emitted = self._emit(self.buffer.strip())
                self._clear_buffer()
                self.is_scanning = False
                return emitted

            if gap > self.max_gap_ms and self.buffer:
                # Pausa larga: empieza escritura manual
                self._clear_buffer()

            self.buffer += key
            self.last_key_time = current

            if gap < self.max_gap_ms:
                self.is_scanning = True

            self._reset_clear_timer()
            return None

    def simulate_scan(self, codigo: str) -> Optional[str]:
        """Emite un código sin pasar por las teclas (pruebas y entrada manual)."""
        logger.info(f"Simulando escaneo: {codigo}")
        with self._lock:
            self.is_scanning = True
            try:
                return self._emit(codigo.strip())
            finally:
                self.is_scanning = False

    # =========================================================================
    # Internos
    # =========================================================================

    def _emit(self, codigo: str) -> str:
        logger.info(f"Código escaneado: {codigo}")
        if self._callback is not None:
            self._callback(codigo)
        return codigo

    def _clear_buffer(self) -> None:
        self.buffer = ''
        self.last_key_time = 0.0

    def _cancel_timer(self) -> None:
        if self._clear_timer is not None:
            self._clear_timer.cancel()
            self._clear_timer = None

    def _reset_clear_timer(self) -> None:
        self._cancel_timer()
        self._timer_generation += 1
        generation = self._timer_generation

        def expire():
            with self._lock:
                # Un timer reemplazado no debe borrar una ráfaga nueva
                if generation != self._timer_generation:
                    return
                self._clear_buffer()
                self.is_scanning = False
                self._clear_timer = None

        self._clear_timer = self._timer_factory(self.clear_timeout_ms / 1000.0, expire)
        self._clear_timer.start()
