"""
Ordered or keyed collection of Observers (or plain mappings).

Without `index` the collection is positional. With `index='id'` every item
is also registered under the value of its `id` field. A `sorted` comparator
(negative/zero/positive, like functools.cmp_to_key expects) keeps insertion
ordered.
"""

from functools import cmp_to_key
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from observerstate.events import Events
from observerstate.observer import Observer

logger = logging.getLogger(__name__)

Comparator = Callable[[Any, Any], int]


class ObserverList(Events):
    """
    Collection of trees with optional key index and sort order.

    Events:
        add(item, key, position), add[<key>](item, key, position),
        move(item, position), remove(item, key)

    Example:
        entities = ObserverList(index='id')
        entities.add(Observer({'id': 7, 'name': 'crate'}))
        entities.get(7).get('name')   # 'crate'
    """

    def __init__(self, sorted: Optional[Comparator] = None, index: Optional[str] = None):
        super().__init__()

        self.data: List[Any] = []
        self._indexed: Dict[Any, Any] = {}
        self.sorted = sorted
        self.index = index

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self):
        return iter(list(self.data))

    def _key_of(self, item: Any) -> Any:
        if isinstance(item, Observer):
            return item.get(self.index)
        if isinstance(item, dict):
            return item.get(self.index)
        return getattr(item, self.index, None)

    def _index_of_item(self, item: Any) -> int:
        for i, candidate in enumerate(self.data):
            if candidate is item:
                return i
        return -1

    # === Lookup ===

    def get(self, key: Any) -> Any:
        """Item registered under `key` (keyed mode) or at position `key`; None if absent."""
        if self.index:
            return self._indexed.get(key)
        if isinstance(key, int) and 0 <= key < len(self.data):
            return self.data[key]
        return None

    def set(self, key: Any, value: Any) -> None:
        if self.index:
            self._indexed[key] = value
        else:
            self.data[key] = value

    def index_of(self, item: Any) -> Any:
        """Key (keyed mode) or position of `item`; None if not held."""
        if self.index:
            key = self._key_of(item)
            return key if key in self._indexed else None

        position = self._index_of_item(item)
        return position if position != -1 else None

    def has(self, item: Any) -> bool:
        if self.index:
            return self._key_of(item) in self._indexed
        return self._index_of_item(item) != -1

    def position(self, item: Any, fn: Optional[Comparator] = None) -> int:
        """Binary search for an item comparing equal to `item`; -1 if none."""
        fn = fn or self.sorted
        low, high = 0, len(self.data) - 1

        while low <= high:
            mid = (low + high) // 2
            order = fn(self.data[mid], item)
            if order > 0:
                high = mid - 1
            elif order < 0:
                low = mid + 1
            else:
                return mid

        return -1

    def position_next_closest(self, item: Any, fn: Optional[Comparator] = None) -> int:
        """Position at which `item` keeps the collection sorted; -1 means append."""
        fn = fn or self.sorted
        if not self.data:
            return -1

        if fn(self.data[0], item) == 0:
            return 0

        low, high = 0, len(self.data) - 1
        mid = 0
        while low <= high:
            mid = (low + high) // 2
            order = fn(self.data[mid], item)
            if order > 0:
                high = mid - 1
            elif order < 0:
                low = mid + 1
            else:
                return mid

        if fn(self.data[mid], item) > 0:
            return mid

        if mid + 1 == len(self.data):
            return -1

        return mid + 1

    # === Mutation ===

    def add(self, item: Any) -> Optional[int]:
        """
        Add an item unless already held.

        Returns:
            Position of the item, or None if it was already in the collection
        """
        if self.has(item):
            return None

        key: Any = len(self.data)
        if self.index:
            key = self._key_of(item)
            self._indexed[key] = item

        if self.sorted:
            position = self.position_next_closest(item)
            if position != -1:
                self.data.insert(position, item)
            else:
                self.data.append(item)
                position = len(self.data) - 1
        else:
            self.data.append(item)
            position = len(self.data) - 1

        self.emit('add', item, key, position)
        if self.index and key is not None:
            self.emit(f'add[{key}]', item, key, position)

        return position

    def move(self, item: Any, position: int) -> None:
        """Relocate a held item; position -1 moves it to the end."""
        current = self._index_of_item(item)
        if current == -1:
            logger.debug(f"move() ignored: {item!r} is not in the list")
            return

        del self.data[current]
        if position == -1:
            self.data.append(item)
        else:
            self.data.insert(position, item)

        self.emit('move', item, position)

    def remove(self, item: Any) -> None:
        if not self.has(item):
            return

        position = self._index_of_item(item)

        key: Any = position
        if self.index:
            key = self._key_of(item)
            del self._indexed[key]

        if position != -1:
            del self.data[position]

        self.emit('remove', item, key)

    def remove_by_key(self, key: Any) -> None:
        if self.index:
            item = self._indexed.pop(key, None)
            if item is None:
                return

            position = self._index_of_item(item)
            if position != -1:
                del self.data[position]

            self.emit('remove', item, position)
            return

        if not isinstance(key, int) or not 0 <= key < len(self.data):
            return

        item = self.data.pop(key)
        self.emit('remove', item, key)

    def remove_by(self, fn: Callable[[Any], bool]) -> None:
        """Remove every item matching `fn`, walking from the end."""
        for position in range(len(self.data) - 1, -1, -1):
            item = self.data[position]
            if not fn(item):
                continue

            if self.index:
                self._indexed.pop(self._key_of(item), None)
            del self.data[position]

            self.emit('remove', item, position)

    def clear(self) -> None:
        items = self.data

        self.data = []
        self._indexed = {}

        for position in range(len(items) - 1, -1, -1):
            self.emit('remove', items[position], position)

    def sort(self, fn: Optional[Comparator] = None) -> None:
        fn = fn or self.sorted
        self.data.sort(key=cmp_to_key(fn))

    # === Iteration ===

    def _item_key(self, item: Any, position: int) -> Any:
        if self.index:
            return self._key_of(item)
        return position

    def for_each(self, fn: Callable[[Any, Any], Any]) -> None:
        for position, item in enumerate(list(self.data)):
            fn(item, self._item_key(item, position))

    def find(self, fn: Callable[[Any], bool]) -> List[Tuple[Any, Any]]:
        """All (key, item) pairs whose item matches `fn`."""
        return [
            (self._item_key(item, position), item)
            for position, item in enumerate(self.data)
            if fn(item)
        ]

    def find_one(self, fn: Callable[[Any], bool]) -> Optional[Tuple[Any, Any]]:
        for position, item in enumerate(self.data):
            if fn(item):
                return self._item_key(item, position), item
        return None

    def map(self, fn: Callable[[Any], Any]) -> List[Any]:
        return [fn(item) for item in self.data]

    def array(self) -> List[Any]:
        return list(self.data)

    def json(self) -> List[Any]:
        return [item.json() if isinstance(item, Observer) else item for item in self.data]
