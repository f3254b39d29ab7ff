"""
Mirrors an Observer's changes as JSON patch operations and applies them back.

Operation shapes (`p` is the path as a list of keys and list indices, after
the configured prefix):

    {'p': [...], 'oi': new, 'od': old}    keyed field set ('od' omitted if it was absent)
    {'p': [..., i], 'li': new, 'ld': old} list element set
    {'p': [..., i], 'li': value}          list insert at i
    {'p': [..., i], 'ld': value}          list remove at i
    {'p': [..., i], 'lm': j}              list move from i to j
    {'p': [...], 'od': None}              keyed field unset
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from observerstate.events import Events
from observerstate.observer import Observer, to_json
from observerstate.observer_list import ObserverList
from observerstate.values import MISSING

logger = logging.getLogger(__name__)

PathSegment = Union[str, int]
SyncOperation = Dict[str, Any]


def _jsonify(value: Any) -> Any:
    if isinstance(value, ObserverList):
        return value.json()
    if value is MISSING:
        return None
    return to_json(value)


class ObserverSync(Events):
    """
    Bridge between one Observer and an external patch stream.

    Local changes are emitted as 'op' events carrying a SyncOperation.
    Remote operations go through apply(), which replays them with the remote
    flag set while this bridge and the item's history bridge are disabled,
    then emits 'sync'. Attaches itself as `item.sync`.

    Example:
        sync = ObserverSync(observer, prefix=['entities', 42])
        sync.on('op', connection.send)
        connection.on_message(sync.apply)
    """

    def __init__(
        self,
        item: Observer,
        enabled: bool = True,
        prefix: Optional[Sequence[PathSegment]] = None,
        paths: Optional[Sequence[str]] = None,
    ):
        super().__init__()

        self.item = item
        self._enabled = bool(enabled)
        self._prefix: List[PathSegment] = list(prefix or [])
        self._paths: Optional[List[str]] = list(paths) if paths else None

        item.sync = self
        self._initialize()

    def _initialize(self) -> None:
        self.item.on('*:set', self._on_set)
        self.item.on('*:unset', self._on_unset)
        self.item.on('*:insert', self._on_insert)
        self.item.on('*:remove', self._on_remove)
        self.item.on('*:move', self._on_move)

    # === Properties ===

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = bool(value)

    @property
    def prefix(self) -> List[PathSegment]:
        return self._prefix

    @prefix.setter
    def prefix(self, value: Optional[Sequence[PathSegment]]) -> None:
        self._prefix = list(value or [])

    @property
    def paths(self) -> Optional[List[str]]:
        return self._paths

    @paths.setter
    def paths(self, value: Optional[Sequence[str]]) -> None:
        self._paths = list(value) if value else None

    # === Outbound ===

    def _full_path(self, path: str) -> List[PathSegment]:
        return self._prefix + path.split('.')

    def _allowed(self, path: str) -> bool:
        if self._paths is None:
            return True
        return any(allowed in path for allowed in self._paths)

    def _on_set(self, path: str, value: Any, old: Any, remote: bool = False) -> None:
        if not self._enabled:
            return

        if self.item.sync is not self:
            logger.error(f"Stale ObserverSync still listening to {self.item!r}")

        if not self._allowed(path):
            return

        p = self._full_path(path)
        value = _jsonify(value)

        parent_path, dot, _ = path.rpartition('.')
        if dot and isinstance(self.item.get(parent_path, raw=True), list):
            p[-1] = int(p[-1])
            self.emit('op', {'p': p, 'li': value, 'ld': _jsonify(old)})
            return

        op: SyncOperation = {'p': p, 'oi': value}
        if old is not MISSING:
            op['od'] = old
        self.emit('op', op)

    def _on_unset(self, path: str, old: Any, remote: bool = False) -> None:
        if not self._enabled or not self._allowed(path):
            return
        self.emit('op', {'p': self._full_path(path), 'od': None})

    def _on_insert(self, path: str, value: Any, ind: int, remote: bool = False) -> None:
        if not self._enabled or not self._allowed(path):
            return
        self.emit('op', {'p': self._full_path(path) + [ind], 'li': _jsonify(value)})

    def _on_remove(self, path: str, value: Any, ind: int, remote: bool = False) -> None:
        if not self._enabled or not self._allowed(path):
            return
        self.emit('op', {'p': self._full_path(path) + [ind], 'ld': _jsonify(value)})

    def _on_move(self, path: str, value: Any, ind: int, ind_old: int, remote: bool = False) -> None:
        if not self._enabled or not self._allowed(path):
            return
        self.emit('op', {'p': self._full_path(path) + [ind_old], 'lm': ind})

    # === Inbound ===

    def _local_path(self, op: SyncOperation, drop_last: bool = False) -> str:
        segments = op['p'][len(self._prefix):]
        if drop_last:
            segments = segments[:-1]
        return '.'.join(str(segment) for segment in segments)

    def apply(self, op: SyncOperation) -> bool:
        """
        Apply a remote operation to the item.

        Args:
            op: SyncOperation as produced by another ObserverSync

        Returns:
            False (and logs) if the operation shape is not recognized
        """
        if 'p' not in op:
            logger.warning(f"Ignoring sync operation without path: {op!r}")
            return False

        item = self.item
        bridge = item.history
        history_was_enabled = bridge is not None and bridge.enabled
        if history_was_enabled:
            bridge.enabled = False

        sync_was_enabled = self._enabled
        self._enabled = False
        try:
            if 'oi' in op:
                item.set(self._local_path(op), op['oi'], False, True)
            elif 'ld' in op and 'li' in op:
                item.set(self._local_path(op), op['li'], False, True)
            elif 'ld' in op:
                item.remove(self._local_path(op, drop_last=True), int(op['p'][-1]), False, True)
            elif 'li' in op:
                item.insert(self._local_path(op, drop_last=True), op['li'], int(op['p'][-1]), False, True)
            elif 'lm' in op:
                item.move(self._local_path(op, drop_last=True), int(op['p'][-1]), op['lm'], False, True)
            elif 'od' in op:
                item.unset(self._local_path(op), False, True)
            else:
                logger.warning(f"Ignoring unknown sync operation: {op!r}")
                return False
        finally:
            self._enabled = sync_was_enabled
            if history_was_enabled:
                bridge.enabled = True

        self.emit('sync', op)
        return True

    write = apply
