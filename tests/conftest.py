"""Pytest configuration and shared fixtures."""
import pytest

from observerstate import History, Observer, ObserverHistory, ObserverSync
import observerstate.config as config_module
from observerstate.path_cache import default_path_cache


@pytest.fixture(autouse=True)
def reset_framework_state():
    """Restore default configuration and an empty path cache around each test."""
    config_module.reset_config()
    default_path_cache.clear()

    yield

    config_module.reset_config()
    default_path_cache.clear()


@pytest.fixture
def person():
    """Provide a small tree with a keyed record and a list."""
    return Observer({
        'name': 'Will',
        'age': 30,
        'address': {'city': 'London', 'zip': 'N1'},
        'tags': ['a', 'b'],
    })


@pytest.fixture
def recorder():
    """Collect events as (name, args) tuples."""
    class Recorder:
        def __init__(self):
            self.calls = []

        def listen(self, emitter, name):
            return emitter.on(name, lambda *args: self.calls.append((name, args)))

        def names(self):
            return [name for name, _ in self.calls]

    return Recorder()


@pytest.fixture
def tracked():
    """Provide an Observer wired to a History through an ObserverHistory."""
    history = History()
    observer = Observer({'name': 'Will', 'address': {'city': 'London'}, 'items': []})
    ObserverHistory(observer, history=history)
    return observer, history


@pytest.fixture
def synced_pair():
    """Provide two Observers built from the same JSON, the first one mirrored as ops."""
    data = {
        'name': 'Will',
        'address': {'city': 'London'},
        'tags': ['a', 'b', 'c'],
        'items': [{'x': 1}, {'x': 2}],
    }
    local = Observer(data)
    remote = Observer(data)
    local_sync = ObserverSync(local)
    remote_sync = ObserverSync(remote)
    ops = []
    local_sync.on('op', ops.append)
    return local, remote, remote_sync, ops
