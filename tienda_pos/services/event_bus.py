# ==============================================================================
# CANAL DE EVENTOS - Publicación/suscripción tipada
# ==============================================================================
# Los eventos son dataclasses (ProductChanged, OrderCreated). Un suscriptor
# puede filtrar por tipo o recibir todos.
# ==============================================================================

import logging
import threading
from typing import Any, Callable, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class EventBus:
    """Despacha eventos de forma síncrona, en orden de suscripción."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Tuple[Optional[Type], Subscriber]] = []

    def subscribe(self, callback: Subscriber, event_type: Optional[Type] = None) -> Callable[[], None]:
        """
        Registra un suscriptor.

        Args:
            callback: Función que recibe el evento
            event_type: Clase de evento a filtrar (None = todos)

        Returns:
            Función que cancela la suscripción
        """
        entry = (event_type, callback)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: Any) -> int:
        """
        Entrega el evento a cada suscriptor interesado.
        Un suscriptor que falla se registra en el log y no corta la entrega
        a los demás.

        Returns:
            Cantidad de suscriptores notificados sin error
        """
        with self._lock:
            targets = [cb for (etype, cb) in self._subscribers
                       if etype is None or isinstance(event, etype)]
        delivered = 0
        for callback in targets:
            try:
                callback(event)
                delivered += 1
            except Exception:
                logger.exception(f"Suscriptor falló procesando {type(event).__name__}")
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
