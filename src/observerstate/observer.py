"""
Observer: path-addressable, observable tree over JSON-shaped data.

Storage model:
- The Observer itself holds an insertion-ordered dict of top-level fields.
- A dict stored at a keyed field becomes a Record (no event bus of its own).
- A dict stored as a list element becomes a nested Observer whose parent link
  is a weak reference back to the enclosing Observer.
- Nested lists are copied on the way in and hold scalars or further lists.

Every mutation emits '<path>:<kind>' and '*:<kind>' (path first) on the
Observer owning the field. Nested Observers re-emit their events on their
parent with the path rewritten to '<parent_path>.<index>.<path>'.
"""

from enum import Enum
from functools import partial
import logging
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple
import weakref

from observerstate.events import Events
from observerstate.path_cache import PathCache, default_path_cache
from observerstate.values import (
    MISSING,
    Record,
    array_equals,
    deep_copy_array,
    is_composite,
    json_equals,
    strict_equals,
    values_equal,
)

logger = logging.getLogger(__name__)

PROPAGATED_EVENTS = ('set', 'unset', 'insert', 'remove', 'move')


class NodeKind(Enum):
    """Kinds of value stored inside an Observer."""
    SCALAR = 'scalar'
    LIST = 'list'
    RECORD = 'record'
    TREE = 'tree'


class SilenceState(NamedTuple):
    """What silence() changed, so silence_restore() can undo exactly that."""
    silent: bool
    history: bool
    sync: bool


def kind_of(value: Any) -> NodeKind:
    """Classify a stored value."""
    if isinstance(value, Observer):
        return NodeKind.TREE
    if isinstance(value, Record):
        return NodeKind.RECORD
    if isinstance(value, list):
        return NodeKind.LIST
    return NodeKind.SCALAR


def to_json(value: Any) -> Any:
    """Convert a stored value (or plain JSON value) into a detached JSON value."""
    kind = kind_of(value)
    if kind is NodeKind.TREE:
        return value.json()
    if kind is NodeKind.RECORD:
        return {key: to_json(item) for key, item in value.data.items()}
    if kind is NodeKind.LIST:
        return [to_json(item) for item in value]
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    return value


def _fields_of(node: Any) -> Optional[Dict[str, Any]]:
    if isinstance(node, Observer):
        return node._data
    if isinstance(node, Record):
        return node.data
    return None


def _child_path(node: Any, key: str) -> str:
    base = node.path if isinstance(node, Record) else node._path
    return f"{base}.{key}" if base else key


def _list_index(segment: Any) -> Optional[int]:
    try:
        return int(segment)
    except (TypeError, ValueError):
        return None


def _list_item(arr: List[Any], segment: Any) -> Any:
    index = _list_index(segment)
    if index is None or index < 0 or index >= len(arr):
        return MISSING
    return arr[index]


def _identity_index(arr: List[Any], item: Any) -> int:
    for i, candidate in enumerate(arr):
        if candidate is item:
            return i
    return -1


def _type_tag(value: Any) -> str:
    kind = kind_of(value)
    if kind is NodeKind.LIST:
        return 'array'
    if kind is not NodeKind.SCALAR:
        return 'object'
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    return type(value).__name__.lower()


class Observer(Events):
    """
    Observable tree over a JSON-like dict.

    Example:
        observer = Observer({'name': 'Will', 'address': {'city': 'London'}})
        observer.on('address.city:set', lambda value, old, remote: print(old, '->', value))
        observer.set('address.city', 'Paris')   # prints: London -> Paris

    Bridges:
        history: ObserverHistory recording this tree's changes (optional)
        sync: ObserverSync mirroring this tree's changes as patch operations (optional)
        schema: object exposing has(path) and get(path) -> {'type': {'name': ...}} (optional)
    """

    path_cache: PathCache = default_path_cache

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        parent: Optional['Observer'] = None,
        parent_path: str = '',
        parent_key: Optional[Any] = None,
        latest_fn: Optional[Callable[[], Optional['Observer']]] = None,
        paths_with_duplicates: Optional[Iterable[str]] = None,
        path_cache: Optional[PathCache] = None,
    ):
        """
        Initialize Observer.

        Args:
            data: Initial data; dict values are materialized recursively
            parent: Enclosing Observer when this tree is an element of one of its lists
            parent_path: Path of the owning list inside the parent
            parent_key: Fixed key under parent_path; None means "my current list index"
            latest_fn: Resolver returning the live instance of this logical entity
            paths_with_duplicates: List paths where insert() accepts duplicate values
            path_cache: Segment cache to use instead of the process-wide one
        """
        super().__init__()

        self._destroyed = False
        self._path = ''
        self._data: Dict[str, Any] = {}
        self._paths_with_duplicates = set(paths_with_duplicates or ())
        if path_cache is not None:
            self.path_cache = path_cache

        self.history = None
        self.sync = None
        self.schema = None

        self._silent = False
        self._parent_ref: Optional[weakref.ReferenceType] = None
        self._parent_path = ''
        self._parent_key: Optional[Any] = None

        self.patch(data)

        self._link_parent(parent, parent_path, parent_key)
        self._latest_fn = latest_fn

        for kind in PROPAGATED_EVENTS:
            self.on(f'*:{kind}', partial(self._propagate, kind))

    def __repr__(self) -> str:
        return f"Observer(keys={list(self._data)!r}, destroyed={self._destroyed})"

    # === Parent linkage ===

    @property
    def parent(self) -> Optional['Observer']:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _link_parent(self, parent: Optional['Observer'], parent_path: str, parent_key: Optional[Any]) -> None:
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._parent_path = parent_path or ''
        self._parent_key = parent_key

    def _detach(self) -> None:
        self._parent_ref = None

    def _position_in_parent(self, parent: 'Observer') -> Optional[Any]:
        """Key of this tree under parent_path, or None when no longer found there."""
        if self._parent_key is not None:
            return self._parent_key

        siblings = parent.get(self._parent_path, raw=True)
        if not isinstance(siblings, list):
            return None

        index = _identity_index(siblings, self)
        return index if index != -1 else None

    def _propagate(self, kind: str, path: str, *args: Any) -> None:
        parent = self.parent
        if parent is None:
            return

        key = self._position_in_parent(parent)
        if key is None:
            return

        full_path = '.'.join(part for part in (self._parent_path, str(key), path) if part)

        state = parent.silence() if self._silent else None
        try:
            parent.emit(f'{full_path}:{kind}', *args)
            parent.emit(f'*:{kind}', full_path, *args)
        finally:
            if state is not None:
                parent.silence_restore(state)

    # === Silencing ===

    def silence(self) -> SilenceState:
        """Mark this tree silent and disable its history and sync bridges.

        Returns:
            Token for silence_restore()
        """
        state = SilenceState(
            silent=self._silent,
            history=self.history is not None and self.history.enabled,
            sync=self.sync is not None and self.sync.enabled,
        )

        self._silent = True
        if state.history:
            self.history.enabled = False
        if state.sync:
            self.sync.enabled = False

        return state

    def silence_restore(self, state: SilenceState) -> None:
        """Undo exactly what the matching silence() call changed."""
        self._silent = state.silent
        if state.history and self.history is not None:
            self.history.enabled = True
        if state.sync and self.sync is not None:
            self.sync.enabled = True

    def _emit_change(self, kind: str, path: str, silent: bool, *args: Any) -> None:
        state = self.silence() if silent else None
        try:
            self.emit(f'{path}:{kind}', *args)
            self.emit(f'*:{kind}', path, *args)
        finally:
            if state is not None:
                self.silence_restore(state)

    # === Path resolution ===

    def _split(self, path: Any) -> Tuple[str, ...]:
        return self.path_cache.split(str(path))

    def _resolve(self, path: Any) -> Any:
        node: Any = self
        for segment in self._split(path):
            if isinstance(node, list):
                node = _list_item(node, segment)
            else:
                fields = _fields_of(node)
                if fields is None:
                    return MISSING
                node = fields.get(segment, MISSING)
            if node is MISSING:
                return MISSING
        return node

    def _resolve_container(self, path: Any) -> Optional[Tuple['Observer', str, Any, str]]:
        """Walk to the node holding the last segment of `path`.

        Returns:
            (owner, owner_relative_path, node, last_key), or None if the path is broken.
            owner is the innermost Observer crossed on the way.
        """
        keys = self._split(path)
        node: Any = self
        owner = self
        relative = str(path)

        for i, segment in enumerate(keys[:-1]):
            if isinstance(node, list):
                node = _list_item(node, segment)
                if node is MISSING:
                    return None
                if isinstance(node, Observer):
                    owner = node
                    relative = '.'.join(keys[i + 1:])
            else:
                fields = _fields_of(node)
                if fields is None or segment not in fields:
                    return None
                node = fields[segment]

        return owner, relative, node, keys[-1]

    def _list_at(self, path: Any) -> Optional[Tuple['Observer', str, Any, str, List[Any]]]:
        resolved = self._resolve_container(path)
        if resolved is None:
            return None
        owner, relative, node, key = resolved
        fields = _fields_of(node)
        if fields is None or not isinstance(fields.get(key), list):
            return None
        return owner, relative, node, key, fields[key]

    # === Reading ===

    def get(self, path: Any, raw: bool = False, default: Any = None) -> Any:
        """
        Read the value at a dotted path.

        Args:
            path: Dotted path ('address.city', 'items.0.name')
            raw: Return the stored node (Record, list, nested Observer) instead of JSON
            default: Returned when any segment is absent

        Returns:
            JSON snapshot of the value, the raw node, or `default`
        """
        node = self._resolve(path)
        if node is MISSING:
            return default
        if raw:
            return node
        if node is None:
            return None
        return to_json(node)

    def get_raw(self, path: Any) -> Any:
        return self.get(path, raw=True)

    def has(self, path: Any) -> bool:
        """True if the path resolves to a present value, including None."""
        return self._resolve(path) is not MISSING

    def json(self, target: Any = MISSING) -> Any:
        """JSON snapshot of this tree, or of `target` when given."""
        if target is MISSING:
            return {key: to_json(value) for key, value in self._data.items()}
        return to_json(target)

    def for_each(self, fn: Callable[[str, str, Any, str], Any], target: Any = None, path: str = '') -> None:
        """
        Walk keyed fields depth-first.

        Calls fn(path, type_tag, value, key) for every field. The type tag comes
        from the schema when it knows the path, else from the runtime value
        ('array', 'object', 'string', 'number', 'boolean', 'null'). Records
        tagged 'object' are descended into.
        """
        node = target if target is not None else self
        fields = _fields_of(node)
        if fields is None:
            return

        for key, value in list(fields.items()):
            field_path = path + key
            tag = self._schema_type(field_path) or _type_tag(value)
            reported = to_json(value) if is_composite(value) or isinstance(value, (Record, Observer)) else value
            fn(field_path, tag, reported, key)
            if tag == 'object' and isinstance(value, Record):
                self.for_each(fn, value, f'{field_path}.')

    def _schema_type(self, path: str) -> Optional[str]:
        if self.schema is None or not self.schema.has(path):
            return None
        try:
            return self.schema.get(path)['type']['name'].lower()
        except (KeyError, TypeError, AttributeError):
            logger.debug(f"Schema entry for '{path}' has no type name")
            return None

    # === Writing ===

    def set(self, path: Any, value: Any, silent: bool = False, remote: bool = False, force: bool = False) -> bool:
        """
        Write a value at a dotted path, creating intermediate records as needed.

        Args:
            path: Dotted path
            value: New value (scalar, list, dict or Observer)
            silent: Emit with history/sync bridges disabled
            remote: Flag forwarded to listeners (change came from an inbound patch)
            force: Write and emit even if the value is unchanged

        Returns:
            True if anything changed (or force), False otherwise
        """
        keys = self._split(path)
        key = keys[-1]
        node: Any = self
        owner = self
        start = 0
        relative = str(path)

        for i, segment in enumerate(keys[:-1]):
            if isinstance(node, list):
                node = _list_item(node, segment)
                if node is MISSING:
                    logger.debug(f"set('{path}'): list index '{segment}' out of range")
                    return False
                if isinstance(node, Observer):
                    owner = node
                    start = i + 1
                    relative = '.'.join(keys[start:])
                continue

            fields = _fields_of(node)
            if fields is None:
                logger.debug(f"set('{path}'): '{segment}' is not a container")
                return False

            current = fields.get(segment, MISSING)
            if kind_of(current) is NodeKind.SCALAR:
                if current is not MISSING:
                    owner.unset(_child_path(node, segment))
                current = Record('.'.join(keys[start:i + 1]))
                fields[segment] = current
            node = current

        if isinstance(node, list):
            list_path = '.'.join(keys[start:-1])
            return owner._set_list_item(node, list_path, relative, key, value, silent, remote, force)

        fields = _fields_of(node)
        if fields is None:
            return False

        if isinstance(value, (Observer, Record)):
            value = to_json(value)

        if key not in fields:
            if is_composite(value):
                return owner._prepare(node, key, value, silent, remote)
            fields[key] = value
            owner._emit_change('set', relative, silent, value, MISSING, remote)
            return True

        if isinstance(value, list):
            return owner._set_list(fields, key, relative, value, silent, remote, force)

        if isinstance(value, dict):
            return owner._set_record(fields, key, relative, value, silent, remote)

        current = fields[key]
        if strict_equals(current, value) and not force:
            return False

        old = to_json(current)
        fields[key] = value
        owner._emit_change('set', relative, silent, value, old, remote)
        return True

    def _materialize_item(self, value: Any, list_path: str) -> Any:
        """Convert a value into its stored form as an element of the list at list_path."""
        if isinstance(value, Record):
            value = to_json(value)
        if isinstance(value, dict):
            return Observer(value, parent=self, parent_path=list_path)
        if isinstance(value, Observer):
            value._link_parent(self, list_path, None)
            return value
        if isinstance(value, list):
            return deep_copy_array(value)
        return value

    def _set_list_item(
        self, arr: List[Any], list_path: str, path: str, key: str,
        value: Any, silent: bool, remote: bool, force: bool,
    ) -> bool:
        index = _list_index(key)
        if index is None or index < 0 or index >= len(arr):
            logger.debug(f"set('{path}'): list index out of range")
            return False

        current = arr[index]
        unchanged = values_equal(current, value) or (
            isinstance(current, Observer) and isinstance(value, dict) and json_equals(current.json(), value)
        )
        if unchanged and not force:
            return False

        old = to_json(current)
        if isinstance(current, Observer) and current is not value:
            current._detach()

        stored = self._materialize_item(value, list_path)
        arr[index] = stored

        emitted = stored if isinstance(stored, Observer) else to_json(stored)
        self._emit_change('set', path, silent, emitted, old, remote)
        return True

    def _set_list(
        self, fields: Dict[str, Any], key: str, path: str,
        value: List[Any], silent: bool, remote: bool, force: bool,
    ) -> bool:
        current = fields[key]
        old = to_json(current)
        unchanged = array_equals(value, current) or json_equals(old, value)
        if unchanged and not force:
            return False

        old_items = old if isinstance(old, list) else []

        state = self.silence()
        try:
            if isinstance(current, list) and len(current) == len(value):
                for i, item in enumerate(value):
                    existing = current[i]
                    if isinstance(existing, Observer) and isinstance(item, dict):
                        existing.patch(item, True)
                    elif not values_equal(existing, item):
                        if isinstance(existing, Observer):
                            existing._detach()
                        stored = self._materialize_item(item, path)
                        current[i] = stored
                        self.emit(f'{path}.{i}:set', to_json(stored), old_items[i], remote)
                        self.emit('*:set', f'{path}.{i}', to_json(stored), old_items[i], remote)
            else:
                if isinstance(current, list):
                    for existing in current:
                        if isinstance(existing, Observer):
                            existing._detach()
                elif isinstance(current, Record):
                    self.unset(path, silent=True, remote=remote)

                fields[key] = []
                for item in value:
                    self._do_insert(fields, key, path, item, None, allow_duplicates=True)

                for i, stored in enumerate(fields[key]):
                    previous = old_items[i] if i < len(old_items) else MISSING
                    self.emit(f'{path}.{i}:set', to_json(stored), previous, remote)
                    self.emit('*:set', f'{path}.{i}', to_json(stored), previous, remote)
        finally:
            self.silence_restore(state)

        self._emit_change('set', path, silent, to_json(fields[key]), old, remote)
        return True

    def _set_record(
        self, fields: Dict[str, Any], key: str, path: str,
        value: Dict[str, Any], silent: bool, remote: bool,
    ) -> bool:
        current = fields[key]
        old = to_json(current)
        changed = False

        if not isinstance(current, Record):
            self.unset(path, silent=True, remote=remote)
            current = Record(path)
            fields[key] = current
            changed = True

        for name in list(current.data):
            if name not in value:
                if self.unset(f'{path}.{name}', silent=True, remote=remote):
                    changed = True

        for name, item in value.items():
            child = f'{path}.{name}'
            if item is MISSING:
                if self.unset(child, silent=True, remote=remote):
                    changed = True
            elif name in current.data:
                if not values_equal(current.data[name], item):
                    if self.set(child, item, silent=True, remote=remote):
                        changed = True
            elif self._prepare(current, name, item, True, remote):
                changed = True

        # child events above have already fired; the aggregate only fires on real change
        if not changed:
            return False

        self._emit_change('set', path, silent, to_json(current), old, remote)
        return True

    def _prepare(self, target: Any, key: str, value: Any, silent: bool = False, remote: bool = False) -> bool:
        """Materialize a previously absent field, emitting per-field sets bottom-up."""
        fields = _fields_of(target)
        path = _child_path(target, key)

        if isinstance(value, list):
            arr: List[Any] = []
            fields[key] = arr
            for i, item in enumerate(value):
                stored = self._materialize_item(item, path)
                arr.append(stored)
                if not isinstance(stored, (Observer, list)):
                    self._emit_change('set', f'{path}.{i}', True, stored, MISSING, remote)
            self._emit_change('set', path, silent, to_json(arr), MISSING, remote)
        elif isinstance(value, dict):
            record = fields.get(key)
            if not isinstance(record, Record):
                record = Record(path)
                fields[key] = record
            for name, item in value.items():
                self._prepare(record, name, item, True, remote)
            self._emit_change('set', path, silent, to_json(record), MISSING, remote)
        else:
            fields[key] = value
            self._emit_change('set', path, silent, value, MISSING, remote)

        return True

    def unset(self, path: Any, silent: bool = False, remote: bool = False) -> bool:
        """
        Remove a keyed field, unsetting its descendants first.

        Returns:
            True if the field existed
        """
        resolved = self._resolve_container(path)
        if resolved is None:
            return False
        owner, relative, node, key = resolved

        fields = _fields_of(node)
        if fields is None or key not in fields:
            return False

        current = fields[key]
        old = to_json(current)

        if isinstance(current, Record):
            # reverse order: each unset removes the key being iterated
            for name in reversed(current.keys):
                owner.unset(f'{relative}.{name}', silent=True, remote=remote)
        elif isinstance(current, list):
            for item in current:
                if isinstance(item, Observer):
                    item._detach()

        del fields[key]

        owner._emit_change('unset', relative, silent, old, remote)
        return True

    def _do_insert(
        self, fields: Dict[str, Any], key: str, list_path: str,
        value: Any, ind: Optional[int], allow_duplicates: bool = False,
    ) -> Tuple[bool, Any, int]:
        arr = fields[key]

        if isinstance(value, (dict, Record)):
            value = Observer(to_json(value))
        elif isinstance(value, list):
            value = deep_copy_array(value)

        if value is not None and not allow_duplicates and list_path not in self._paths_with_duplicates:
            # duplicates are matched by identity for containers, so nested trees never collide
            if any(strict_equals(item, value) for item in arr):
                return False, None, -1

        if ind is None or ind > len(arr):
            ind = len(arr)
        elif ind < 0:
            ind = max(0, len(arr) + ind)
        arr.insert(ind, value)

        if isinstance(value, Observer):
            value._link_parent(self, list_path, None)
            return True, value, ind
        return True, to_json(value), ind

    def insert(self, path: Any, value: Any, ind: Optional[int] = None, silent: bool = False, remote: bool = False) -> bool:
        """
        Insert a value into the list at `path`.

        Dicts are wrapped in nested Observers, lists are copied. A value already
        present is dropped unless the path is listed in paths_with_duplicates.

        Args:
            path: Dotted path of the list
            value: Value to insert
            ind: Index to insert at; None appends

        Returns:
            True if the value was inserted
        """
        found = self._list_at(path)
        if found is None:
            return False
        owner, relative, node, key, _ = found

        inserted, stored, index = owner._do_insert(_fields_of(node), key, relative, value, ind)
        if not inserted:
            return False

        owner._emit_change('insert', relative, silent, stored, index, remote)
        return True

    def _remove_at(self, relative: str, arr: List[Any], ind: int, silent: bool, remote: bool) -> bool:
        value = arr.pop(ind)
        if isinstance(value, Observer):
            value._detach()

        self._emit_change('remove', relative, silent, to_json(value), ind, remote)
        return True

    def remove(self, path: Any, ind: int, silent: bool = False, remote: bool = False) -> bool:
        """Remove the element at index `ind` of the list at `path`."""
        found = self._list_at(path)
        if found is None:
            return False
        owner, relative, _, _, arr = found

        if ind < 0 or ind >= len(arr):
            return False

        return owner._remove_at(relative, arr, ind, silent, remote)

    def remove_value(self, path: Any, value: Any, silent: bool = False, remote: bool = False) -> bool:
        """
        Remove the first element of the list at `path` matching `value`.

        Nested Observers match by identity or, when `value` is a dict, by JSON
        equality; lists match element-wise; scalars match strictly.
        """
        found = self._list_at(path)
        if found is None:
            return False
        owner, relative, _, _, arr = found

        for ind, item in enumerate(arr):
            if item is value or values_equal(item, value):
                break
            if isinstance(item, Observer) and isinstance(value, dict) and json_equals(item.json(), value):
                break
        else:
            return False

        return owner._remove_at(relative, arr, ind, silent, remote)

    def move(self, path: Any, ind_old: int, ind_new: int, silent: bool = False, remote: bool = False) -> bool:
        """
        Move an element within the list at `path`.

        Args:
            ind_old: Current index
            ind_new: Target index; -1 moves to the end

        Returns:
            True if the element moved
        """
        found = self._list_at(path)
        if found is None:
            return False
        owner, relative, _, _, arr = found

        length = len(arr)
        if ind_old < 0 or ind_old >= length or ind_new < -1 or ind_new > length:
            return False
        if ind_new == -1 or ind_new >= length:
            ind_new = length - 1
        if ind_old == ind_new:
            return False

        value = arr.pop(ind_old)
        arr.insert(ind_new, value)

        emitted = value if isinstance(value, Observer) else to_json(value)
        owner._emit_change('move', relative, silent, emitted, ind_new, ind_old, remote)
        return True

    def patch(self, data: Optional[Dict[str, Any]], remove_missing_keys: bool = False) -> None:
        """
        Apply a dict of top-level fields onto this tree.

        Args:
            data: Fields to write; non-dicts are ignored
            remove_missing_keys: Unset fields absent from `data`
        """
        if not isinstance(data, dict):
            return

        for key, value in data.items():
            if is_composite(value) and key not in self._data:
                self._prepare(self, key, value)
            elif not strict_equals(self._data.get(key, MISSING), value):
                self.set(key, value)

        if remove_missing_keys:
            for key in list(self._data):
                if key not in data:
                    self.unset(key)

    # === Lifecycle ===

    def latest(self) -> Optional['Observer']:
        """Live instance of this logical entity (it may have been re-created by undo)."""
        return self._latest_fn() if self._latest_fn is not None else self

    @property
    def latest_fn(self) -> Optional[Callable[[], Optional['Observer']]]:
        return self._latest_fn

    @latest_fn.setter
    def latest_fn(self, value: Optional[Callable[[], Optional['Observer']]]) -> None:
        self._latest_fn = value

    def destroy(self) -> None:
        """Emit 'destroy', drop every listener and the history bridge. Children are not destroyed."""
        if self._destroyed:
            return
        self._destroyed = True

        self.emit('destroy')
        self.unbind()

        if self.history is not None:
            self.history.destroy()
            self.history = None

        logger.debug(f"Destroyed {self!r}")
