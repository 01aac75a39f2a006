from typing import Type, Callable, List, Dict, Any
from aive.domain.events import Event


class EventBus:
    """A simple synchronous event bus; subscribers run on the publisher's loop."""

    def __init__(self):
        self._subscribers: Dict[Type[Event], List[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: Type[Event], callback: Callable[[Any], None]):
        """Subscribes a callback to a specific event type and its subclasses."""
        self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: Type[Event], callback: Callable[[Any], None]):
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event: Event):
        """Publishes an event to all interested subscribers."""
        for event_type in type(event).__mro__:
            for callback in list(self._subscribers.get(event_type, [])):
                callback(event)
