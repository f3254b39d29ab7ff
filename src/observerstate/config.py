"""
Framework configuration for observerstate.

Holds the process-wide knobs consulted by the event bus and the path cache.
Values live in a single module-level dataclass instance; callers override
individual fields with set_config() and tests restore defaults with
reset_config().
"""

from dataclasses import dataclass, fields, replace
import logging
from typing import Any


@dataclass(frozen=True)
class ObserverStateConfig:
    """Immutable configuration snapshot.

    Attributes:
        path_cache_size: Maximum number of distinct path strings kept in the
            default path cache. 0 disables caching.
        max_event_args: Maximum positional arguments accepted by Events.emit().
        listener_error_log_level: Level used when an event listener raises.
        callback_error_log_level: Level used when a history undo/redo callback raises.
    """
    path_cache_size: int = 4096
    max_event_args: int = 8
    listener_error_log_level: int = logging.ERROR
    callback_error_log_level: int = logging.ERROR


_DEFAULT_CONFIG = ObserverStateConfig()
_current_config: ObserverStateConfig = _DEFAULT_CONFIG


def get_config() -> ObserverStateConfig:
    """Return the active configuration."""
    return _current_config


def set_config(**overrides: Any) -> ObserverStateConfig:
    """Override selected configuration fields.

    Args:
        **overrides: Field names of ObserverStateConfig and their new values

    Returns:
        The new active configuration

    Raises:
        ValueError: If an override names an unknown field or a negative size
    """
    global _current_config

    known = {f.name for f in fields(ObserverStateConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown config fields: {sorted(unknown)}")

    for name in ('path_cache_size', 'max_event_args'):
        if name in overrides and overrides[name] < 0:
            raise ValueError(f"{name} must be >= 0, got {overrides[name]}")

    _current_config = replace(_current_config, **overrides)
    return _current_config


def reset_config() -> None:
    """Restore the default configuration."""
    global _current_config
    _current_config = _DEFAULT_CONFIG
