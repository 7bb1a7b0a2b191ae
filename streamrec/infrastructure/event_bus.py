import logging
import threading
from typing import Type, Callable, List, Dict, Any
from streamrec.domain.events import Event

class EventBus:
    """A simple synchronous event bus for decoupled communication.

    Events are published from timer threads, so the subscriber table is
    guarded by a lock and callbacks run outside of it.
    """

    def __init__(self):
        self._subscribers: Dict[Type[Event], List[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def subscribe(self, event_type: Type[Event], callback: Callable[[Any], None]):
        """Subscribes a callback to a specific event type and its subclasses."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: Type[Event], callback: Callable[[Any], None]):
        with self._lock:
            callbacks = self._subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def publish(self, event: Event):
        """Publishes an event to all interested subscribers.

        A failing subscriber is logged and skipped; it never aborts the publisher.
        """
        with self._lock:
            callbacks = [
                cb
                for event_type, subscribed in self._subscribers.items()
                if isinstance(event, event_type)
                for cb in subscribed
            ]
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                self.logger.exception(f"Subscriber {callback!r} failed on {type(event).__name__}")
