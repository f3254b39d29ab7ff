"""
Undo/redo stack of named, reversible actions.

The stack is a linear sequence with a cursor. Adding an action after undoing
truncates everything past the cursor. Actions flagged `combine` merge into
the current entry when their names match, so a burst of edits (e.g. dragging
a slider) undoes as one step.

Action callbacks may be plain functions or coroutine functions; awaitables
they return are awaited.
"""

from contextlib import contextmanager
from dataclasses import dataclass
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Generator, List, Mapping, Optional, Union

from observerstate.config import get_config
from observerstate.events import Events

logger = logging.getLogger(__name__)

ActionCallback = Callable[[], Union[None, Awaitable[None]]]


@dataclass
class HistoryAction:
    """One reversible entry of the stack.

    Mutable: combining replaces `redo` of the current entry in place.
    """
    name: str
    undo: ActionCallback
    redo: ActionCallback
    combine: bool = False


def _as_action(action: Union[HistoryAction, Mapping[str, Any]]) -> Optional[HistoryAction]:
    if isinstance(action, HistoryAction):
        return action
    if isinstance(action, Mapping):
        return HistoryAction(
            name=action.get('name'),
            undo=action.get('undo'),
            redo=action.get('redo'),
            combine=bool(action.get('combine', False)),
        )
    return None


async def _run(callback: ActionCallback) -> None:
    result = callback()
    if inspect.isawaitable(result):
        await result


class History(Events):
    """
    Linear undo/redo stack with a cursor.

    Events:
        add(name), undo(name), redo(name), canUndo(bool), canRedo(bool)

    Example:
        history = History()
        history.add(HistoryAction('rename', undo=restore_name, redo=apply_name))
        await history.undo()
    """

    def __init__(self):
        super().__init__()

        self._actions: List[HistoryAction] = []
        self._current_action_index = -1
        self._can_undo = False
        self._can_redo = False
        self._executing = 0

    def __len__(self) -> int:
        return len(self._actions)

    # === Stack state ===

    @property
    def current_action(self) -> Optional[HistoryAction]:
        if 0 <= self._current_action_index < len(self._actions):
            return self._actions[self._current_action_index]
        return None

    @property
    def last_action(self) -> Optional[HistoryAction]:
        return self._actions[-1] if self._actions else None

    @property
    def can_undo(self) -> bool:
        """True if there is an entry to undo and no action is executing."""
        return self._can_undo and not self._executing

    @can_undo.setter
    def can_undo(self, value: bool) -> None:
        if self._can_undo == value:
            return
        self._can_undo = value
        if not self._executing:
            self.emit('canUndo', value)

    @property
    def can_redo(self) -> bool:
        """True if there is an entry to redo and no action is executing."""
        return self._can_redo and not self._executing

    @can_redo.setter
    def can_redo(self, value: bool) -> None:
        if self._can_redo == value:
            return
        self._can_redo = value
        if not self._executing:
            self.emit('canRedo', value)

    @property
    def executing(self) -> int:
        """Number of actions currently running (nested undo/redo included)."""
        return self._executing

    @contextmanager
    def _executing_scope(self) -> Generator[None, None, None]:
        """Count one running action; announce availability changes on entry and exit.

        Nested scopes only bump the counter, the outermost one emits.
        """
        self._executing += 1
        if self._executing == 1:
            self.emit('canUndo', False)
            self.emit('canRedo', False)

        try:
            yield
        finally:
            self._executing -= 1
            if self._executing == 0:
                self.emit('canUndo', self._can_undo)
                self.emit('canRedo', self._can_redo)

    # === Operations ===

    def add(self, action: Union[HistoryAction, Mapping[str, Any]]) -> bool:
        """
        Push an action after the cursor.

        Args:
            action: HistoryAction, or a mapping with name/undo/redo/combine keys

        Returns:
            False (and logs) if the action lacks a name, undo or redo
        """
        entry = _as_action(action)
        if entry is None or not entry.name:
            logger.error("Trying to add history action without name")
            return False

        if not callable(entry.undo):
            logger.error(f"Trying to add history action without undo method: {entry.name}")
            return False

        if not callable(entry.redo):
            logger.error(f"Trying to add history action without redo method: {entry.name}")
            return False

        if self._current_action_index != len(self._actions) - 1:
            del self._actions[self._current_action_index + 1:]

        current = self.current_action
        if entry.combine and current is not None and current.name == entry.name:
            current.redo = entry.redo
        else:
            self._actions.append(entry)
            self._current_action_index = len(self._actions) - 1

        self.emit('add', entry.name)

        self.can_undo = True
        self.can_redo = False

        return True

    async def add_and_execute(self, action: Union[HistoryAction, Mapping[str, Any]]) -> bool:
        """Add an action and run its redo callback.

        Returns:
            True if the action was added (its redo ran, successfully or not)
        """
        if not self.add(action):
            return False

        redo = self._actions[self._current_action_index].redo
        with self._executing_scope():
            await _run(redo)
        return True

    async def undo(self) -> None:
        """Step the cursor back and run that entry's undo. Failures are logged."""
        if not self.can_undo:
            return

        action = self.current_action
        self._current_action_index -= 1

        self.emit('undo', action.name)

        if self._current_action_index < 0:
            self.can_undo = False
        self.can_redo = True

        await self._execute(action.name, 'undo', action.undo)

    async def redo(self) -> None:
        """Step the cursor forward and run that entry's redo. Failures are logged."""
        if not self.can_redo:
            return

        self._current_action_index += 1
        action = self.current_action

        self.emit('redo', action.name)

        self.can_undo = True
        if self._current_action_index == len(self._actions) - 1:
            self.can_redo = False

        await self._execute(action.name, 'redo', action.redo)

    async def _execute(self, name: str, step: str, callback: ActionCallback) -> None:
        with self._executing_scope():
            try:
                await _run(callback)
            except Exception as e:
                logger.log(
                    get_config().callback_error_log_level,
                    f"Error in {step} of history action '{name}': {e}",
                    exc_info=True,
                )

    def clear(self) -> None:
        """Drop every entry. No-op on an empty stack."""
        if not self._actions:
            return

        self._actions.clear()
        self._current_action_index = -1

        self.can_undo = False
        self.can_redo = False

    def get_history_info(self) -> List[Dict[str, Any]]:
        """Get human-readable history for UI display, oldest first."""
        return [
            {
                'index': i,
                'name': action.name,
                'combine': action.combine,
                'is_current': i == self._current_action_index,
            }
            for i, action in enumerate(self._actions)
        ]
