"""
Named-event registry used by every observable object in the package.

Events: per-instance listener registry with snapshot emission, one-shot
listeners, suspension and forwarding to attached emitters.
EventHandle: token returned by on()/once() that unbinds exactly one listener.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from observerstate.config import get_config

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventHandle:
    """Binding of one listener to one event name on one owner.

    After unbind() the handle holds no references and further calls are no-ops.
    """

    def __init__(self, owner: 'Events', name: str, fn: Listener):
        self._owner: Optional['Events'] = owner
        self._name: Optional[str] = name
        self._fn: Optional[Listener] = fn

    @property
    def bound(self) -> bool:
        return self._owner is not None

    def unbind(self) -> None:
        """Remove the listener from its owner. Idempotent."""
        if self._owner is None:
            return

        self._owner.unbind(self._name, self._fn)

        self._owner = None
        self._name = None
        self._fn = None

    def call(self, *args: Any) -> None:
        """Invoke the callback directly, bypassing emission."""
        if self._fn is None:
            return
        self._fn(*args)

    def on(self, name: str, fn: Listener) -> 'EventHandle':
        """Register another listener on the same owner."""
        if self._owner is None:
            raise RuntimeError(f"Cannot bind '{name}': handle is already unbound")
        return self._owner.on(name, fn)

    def __repr__(self) -> str:
        return f"EventHandle(name={self._name!r}, bound={self.bound})"


class Events:
    """
    Base class for event handling.

    Listeners run synchronously in registration order. Emission walks a copy
    of the listener list, so listeners added or removed while an event is in
    flight only affect later emissions.

    Example:
        events = Events()
        handle = events.on('changed', lambda value: print(value))
        events.emit('changed', 42)
        handle.unbind()
    """

    def __init__(self):
        self._events: Dict[str, List[Listener]] = {}
        self._suspend_events = False
        self._additional_emitters: List['Events'] = []

    @property
    def suspend_events(self) -> bool:
        """While True, emit() drops every event."""
        return self._suspend_events

    @suspend_events.setter
    def suspend_events(self, value: bool) -> None:
        self._suspend_events = bool(value)

    def on(self, name: str, fn: Listener) -> EventHandle:
        """Register a listener. Registering the same callable twice is a no-op.

        Args:
            name: Event name
            fn: Callable receiving the emitted positional arguments

        Returns:
            EventHandle that unbinds this registration
        """
        listeners = self._events.get(name)
        if listeners is None:
            self._events[name] = [fn]
        elif fn not in listeners:
            listeners.append(fn)
        return EventHandle(self, name, fn)

    def once(self, name: str, fn: Listener) -> EventHandle:
        """Register a listener that unbinds itself after its first call."""
        handle: Optional[EventHandle] = None

        def _once(*args: Any) -> None:
            handle.unbind()
            fn(*args)

        handle = self.on(name, _once)
        return handle

    def emit(self, name: str, *args: Any) -> 'Events':
        """Invoke every listener of `name` with `args`, then forward to attached emitters.

        Raises:
            TypeError: If more positional arguments than the configured maximum are given
        """
        config = get_config()
        if len(args) > config.max_event_args:
            raise TypeError(
                f"emit('{name}') accepts at most {config.max_event_args} arguments, got {len(args)}"
            )

        if self._suspend_events:
            return self

        listeners = self._events.get(name)
        if listeners:
            for fn in list(listeners):
                try:
                    fn(*args)
                except Exception as e:
                    logger.log(
                        config.listener_error_log_level,
                        f"Error in '{name}' listener {fn!r}: {e}",
                        exc_info=True,
                    )

        if self._additional_emitters:
            for emitter in list(self._additional_emitters):
                emitter.emit(name, *args)

        return self

    def unbind(self, name: Optional[str] = None, fn: Optional[Listener] = None) -> 'Events':
        """Remove listeners.

        Args:
            name: Event name; None removes every listener of every event
            fn: Specific listener; None removes every listener of `name`
        """
        if name is None:
            self._events = {}
            return self

        listeners = self._events.get(name)
        if not listeners:
            return self

        if fn is None:
            del self._events[name]
        elif fn in listeners:
            listeners.remove(fn)
            if not listeners:
                del self._events[name]

        return self

    def add_emitter(self, emitter: 'Events') -> None:
        """Forward every event emitted here to `emitter` as well."""
        if emitter not in self._additional_emitters:
            self._additional_emitters.append(emitter)

    def remove_emitter(self, emitter: 'Events') -> None:
        """Stop forwarding events to `emitter`."""
        if emitter in self._additional_emitters:
            self._additional_emitters.remove(emitter)

    def has_listeners(self, name: str) -> bool:
        return bool(self._events.get(name))

    def listener_count(self, name: str) -> int:
        return len(self._events.get(name, ()))
