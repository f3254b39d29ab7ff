"""
Observable, path-addressable JSON trees with undo/redo and patch sync.

Key Features:
- Observer: dotted-path get/set/unset/insert/remove/move over nested JSON data
- Change events at the exact path, on a wildcard channel, and on ancestor trees
- History: undo/redo stack with combinable actions and async callbacks
- ObserverHistory: records an Observer's changes into a History
- ObserverSync: emits local changes as patch operations and applies remote ones
- ObserverList: ordered or keyed collection of Observers

Quick Start:
    >>> import asyncio
    >>> from observerstate import Observer, History, ObserverHistory
    >>>
    >>> observer = Observer({'name': 'Will', 'address': {'city': 'London'}})
    >>> history = History()
    >>> recorder = ObserverHistory(observer, history=history)
    >>>
    >>> handle = observer.on('*:set', lambda path, value, old, remote: print(path, old, value))
    >>> observer.set('address.city', 'Paris')
    address.city London Paris
    True
    >>> asyncio.run(history.undo())
    address.city Paris London
    >>> observer.get('address.city')
    'London'

Modules:
    - events: Events registry and EventHandle
    - observer: Observer tree
    - history: History stack and HistoryAction
    - observer_history: Observer to History bridge
    - observer_sync: Observer to patch-stream bridge
    - observer_list: ObserverList collection
    - path_cache: Dotted path segment cache
    - values: MISSING sentinel, Record and equality helpers
    - config: Framework configuration
"""

__version__ = '0.1.0'

# Events
from observerstate.events import Events, EventHandle

# Tree
from observerstate.observer import Observer, NodeKind, SilenceState, kind_of, to_json

# History
from observerstate.history import History, HistoryAction
from observerstate.observer_history import ObserverHistory

# Sync
from observerstate.observer_sync import ObserverSync, SyncOperation

# Collection
from observerstate.observer_list import ObserverList

# Values
from observerstate.values import MISSING, Record

# Path cache
from observerstate.path_cache import PathCache, default_path_cache, split_path

# Configuration
from observerstate.config import (
    ObserverStateConfig,
    get_config,
    set_config,
    reset_config,
)

__all__ = [
    # Events
    'Events',
    'EventHandle',
    # Tree
    'Observer',
    'NodeKind',
    'SilenceState',
    'kind_of',
    'to_json',
    # History
    'History',
    'HistoryAction',
    'ObserverHistory',
    # Sync
    'ObserverSync',
    'SyncOperation',
    # Collection
    'ObserverList',
    # Values
    'MISSING',
    'Record',
    # Path cache
    'PathCache',
    'default_path_cache',
    'split_path',
    # Configuration
    'ObserverStateConfig',
    'get_config',
    'set_config',
    'reset_config',
]
