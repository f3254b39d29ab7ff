"""
Records an Observer's changes as undoable History actions.

Each change event becomes one action named `prefix + path`. Undo and redo
act on `item.latest()`, so they keep working after the observed entity has
been re-created, and run with that item's history bridge disabled so that
replaying a change does not record a new action.
"""

from functools import partial
import logging
from typing import Any, Callable, List, Optional

from observerstate.events import EventHandle, Events
from observerstate.history import History, HistoryAction
from observerstate.observer import Observer, to_json
from observerstate.values import MISSING

logger = logging.getLogger(__name__)


def _write(path: str, value: Any, item: Observer) -> None:
    if value is MISSING:
        item.unset(path)
    else:
        item.set(path, value)


def _unset(path: str, item: Observer) -> None:
    item.unset(path)


def _insert(path: str, value: Any, ind: int, item: Observer) -> None:
    item.insert(path, value, ind)


def _remove_value(path: str, value: Any, item: Observer) -> None:
    item.remove_value(path, value)


def _move(path: str, ind_from: int, ind_to: int, item: Observer) -> None:
    item.move(path, ind_from, ind_to)


class ObserverHistory(Events):
    """
    Bridge from one Observer's change events to a History stack.

    Attaches itself as `item.history`, which is what Observer.silence() and
    ObserverSync.apply() disable while they work.

    Example:
        history = History()
        observer = Observer({'name': 'Will'})
        ObserverHistory(observer, history=history)
        observer.set('name', 'Bill')
        await history.undo()   # name is 'Will' again
    """

    def __init__(
        self,
        item: Observer,
        history: Optional[History] = None,
        enabled: bool = True,
        prefix: str = '',
        combine: bool = False,
    ):
        super().__init__()

        self.item: Optional[Observer] = item
        self._history = history
        self._enabled = bool(enabled)
        self._prefix = prefix or ''
        self._combine = bool(combine)
        self._self_events: List[EventHandle] = []

        item.history = self
        self._initialize()

    def _initialize(self) -> None:
        self._self_events.append(self.item.on('*:set', self._on_set))
        self._self_events.append(self.item.on('*:unset', self._on_unset))
        self._self_events.append(self.item.on('*:insert', self._on_insert))
        self._self_events.append(self.item.on('*:remove', self._on_remove))
        self._self_events.append(self.item.on('*:move', self._on_move))

    # === Properties ===

    @property
    def history(self) -> Optional[History]:
        return self._history

    @history.setter
    def history(self, value: Optional[History]) -> None:
        self._history = value

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = bool(value)

    @property
    def prefix(self) -> str:
        return self._prefix

    @prefix.setter
    def prefix(self, value: Optional[str]) -> None:
        self._prefix = value or ''

    @property
    def combine(self) -> bool:
        return self._combine

    @combine.setter
    def combine(self, value: bool) -> None:
        self._combine = bool(value)

    # === Recording ===

    def _recording(self) -> bool:
        return self._enabled and self._history is not None

    def _record(self, path: str, undo: Callable[[Observer], None], redo: Callable[[Observer], None]) -> None:
        self._history.add(HistoryAction(
            name=self._prefix + path,
            undo=partial(self._replay, undo),
            redo=partial(self._replay, redo),
            combine=self._combine,
        ))

    def _replay(self, step: Callable[[Observer], None]) -> None:
        """Run one undo/redo step against the live item with its recorder switched off."""
        item = self.item.latest() if self.item is not None else None
        if item is None:
            logger.debug("History step skipped: observed item no longer available")
            return

        bridge = item.history
        was_enabled = bridge is not None and bridge.enabled
        if was_enabled:
            bridge.enabled = False
        try:
            step(item)
        finally:
            if was_enabled:
                bridge.enabled = True

    def _on_set(self, path: str, value: Any, old: Any, remote: bool = False) -> None:
        if not self._recording():
            return
        value = to_json(value)
        self._record(path, partial(_write, path, old), partial(_write, path, value))

    def _on_unset(self, path: str, old: Any, remote: bool = False) -> None:
        if not self._recording():
            return
        self._record(path, partial(_write, path, old), partial(_unset, path))

    def _on_insert(self, path: str, value: Any, ind: int, remote: bool = False) -> None:
        if not self._recording():
            return
        value = to_json(value)
        self._record(path, partial(_remove_value, path, value), partial(_insert, path, value, ind))

    def _on_remove(self, path: str, value: Any, ind: int, remote: bool = False) -> None:
        if not self._recording():
            return
        value = to_json(value)
        self._record(path, partial(_insert, path, value, ind), partial(_remove_value, path, value))

    def _on_move(self, path: str, value: Any, ind: int, ind_old: int, remote: bool = False) -> None:
        if not self._recording():
            return
        self._record(path, partial(_move, path, ind, ind_old), partial(_move, path, ind_old, ind))

    def destroy(self) -> None:
        """Stop recording: unbind every listener on the item and drop it."""
        for handle in self._self_events:
            handle.unbind()
        self._self_events.clear()

        if self.item is not None and self.item.history is self:
            self.item.history = None
        self.item = None
