"""Event emitter implementation using Observer Pattern."""
from typing import Dict, List, Callable, Optional


class EventEmitter:
    """Event emitter using Observer Pattern."""

    def __init__(self):
        """Initializes event emitter."""
        self._events: Dict[str, List[Callable]] = {}

    def on(self, event: str, callback: Optional[Callable]) -> 'EventEmitter':
        """Registers an event handler (None is ignored)."""
        if callback is None:
            return self
        self._events.setdefault(event, []).append(callback)
        return self

    def emit(self, event: str, *args, **kwargs) -> int:
        """Emits an event and returns how many handlers ran."""
        handlers = list(self._events.get(event, ()))
        for callback in handlers:
            callback(*args, **kwargs)
        return len(handlers)

    def off(self, event: str, callback: Optional[Callable] = None) -> 'EventEmitter':
        """Removes an event handler, or every handler for the event."""
        if event not in self._events:
            return self

        if callback is None:
            del self._events[event]
        else:
            self._events[event] = [cb for cb in self._events[event] if cb != callback]

        return self

    def listeners(self, event: str) -> List[Callable]:
        """Returns the handlers registered for an event."""
        return list(self._events.get(event, ()))
