"""
Memoizing cache for dotted path segments.

Path strings recur constantly on hot paths (every get/set/emit of every
observer), so splitting them on '.' is cached per distinct string. The cache
is purely an optimization: clearing it at any time never changes behaviour.
"""

from typing import Callable, Dict, Optional, Tuple

from observerstate.config import get_config


class PathCache:
    """
    Bounded cache mapping path strings to their segment tuples.

    Segments are returned as tuples so callers can never mutate a cached
    entry. When the cache is full the oldest entry is evicted.

    Example:
        cache = PathCache()
        cache.split('address.city')  # ('address', 'city')
    """

    def __init__(self, max_size_provider: Optional[Callable[[], int]] = None):
        """
        Initialize path cache.

        Args:
            max_size_provider: Function returning the current size bound.
                Defaults to the configured path_cache_size.
        """
        self._max_size_provider = max_size_provider or (lambda: get_config().path_cache_size)
        self._cache: Dict[str, Tuple[str, ...]] = {}
        self.hits = 0
        self.misses = 0

    def split(self, path: str) -> Tuple[str, ...]:
        """
        Return the segments of a dotted path.

        Args:
            path: Dotted path string

        Returns:
            Tuple of path segments
        """
        segments = self._cache.get(path)
        if segments is not None:
            self.hits += 1
            return segments

        self.misses += 1
        segments = tuple(path.split('.'))

        max_size = self._max_size_provider()
        if max_size <= 0:
            return segments

        while len(self._cache) >= max_size:
            # dicts keep insertion order, so the first key is the oldest
            del self._cache[next(iter(self._cache))]

        self._cache[path] = segments
        return segments

    def clear(self) -> None:
        """Drop every cached entry and reset statistics."""
        self._cache.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, path: str) -> bool:
        return path in self._cache


default_path_cache = PathCache()


def split_path(path: str) -> Tuple[str, ...]:
    """Split a dotted path using the process-wide cache."""
    return default_path_cache.split(path)
