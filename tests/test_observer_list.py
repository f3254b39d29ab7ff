"""Tests for ObserverList."""
from observerstate import Observer, ObserverList


def by_n(a, b):
    return (a.get('n') > b.get('n')) - (a.get('n') < b.get('n'))


class TestPositional:
    """Tests for a list without key index."""

    def test_add_and_get(self):
        items = ObserverList()
        first = Observer({'n': 1})

        assert items.add(first) == 0
        assert items.get(0) is first
        assert items.get(5) is None
        assert len(items) == 1

    def test_add_twice_is_rejected(self):
        items = ObserverList()
        first = Observer({'n': 1})
        items.add(first)
        assert items.add(first) is None
        assert len(items) == 1

    def test_index_of_and_has(self):
        items = ObserverList()
        first, second = Observer({'n': 1}), Observer({'n': 2})
        items.add(first)

        assert items.index_of(first) == 0
        assert items.index_of(second) is None
        assert items.has(first)
        assert not items.has(second)

    def test_add_emits(self):
        items = ObserverList()
        events = []
        items.on('add', lambda item, key, position: events.append((key, position)))

        items.add(Observer({'n': 1}))
        items.add(Observer({'n': 2}))

        assert events == [(0, 0), (1, 1)]

    def test_move(self):
        items = ObserverList()
        first, second, third = (Observer({'n': n}) for n in range(3))
        for item in (first, second, third):
            items.add(item)

        items.move(first, -1)
        assert items.array() == [second, third, first]

        items.move(first, 0)
        assert items.array() == [first, second, third]

    def test_remove(self):
        items = ObserverList()
        first = Observer({'n': 1})
        items.add(first)
        removed = []
        items.on('remove', lambda item, key: removed.append((item, key)))

        items.remove(first)
        items.remove(first)

        assert removed == [(first, 0)]
        assert len(items) == 0

    def test_remove_by_key(self):
        items = ObserverList()
        first, second = Observer({'n': 1}), Observer({'n': 2})
        items.add(first)
        items.add(second)

        items.remove_by_key(0)
        items.remove_by_key(9)

        assert items.array() == [second]

    def test_remove_by(self):
        items = ObserverList()
        for n in range(4):
            items.add(Observer({'n': n}))
        removed = []
        items.on('remove', lambda item, key: removed.append(item.get('n')))

        items.remove_by(lambda item: item.get('n') % 2 == 0)

        assert [item.get('n') for item in items] == [1, 3]
        assert removed == [2, 0]

    def test_clear_emits_in_reverse(self):
        items = ObserverList()
        for n in range(3):
            items.add(Observer({'n': n}))
        removed = []
        items.on('remove', lambda item, key: removed.append(key))

        items.clear()

        assert removed == [2, 1, 0]
        assert len(items) == 0

    def test_find_and_map(self):
        items = ObserverList()
        for n in range(3):
            items.add(Observer({'n': n}))

        found = items.find(lambda item: item.get('n') > 0)
        assert [(key, item.get('n')) for key, item in found] == [(1, 1), (2, 2)]

        key, item = items.find_one(lambda item: item.get('n') == 2)
        assert key == 2
        assert items.find_one(lambda item: item.get('n') == 9) is None

        assert items.map(lambda item: item.get('n') * 10) == [0, 10, 20]

    def test_for_each(self):
        items = ObserverList()
        items.add(Observer({'n': 5}))
        seen = []
        items.for_each(lambda item, key: seen.append((key, item.get('n'))))
        assert seen == [(0, 5)]

    def test_json(self):
        items = ObserverList()
        items.add(Observer({'n': 1}))
        items.add({'plain': True})
        assert items.json() == [{'n': 1}, {'plain': True}]


class TestKeyed:
    """Tests for a list indexed by a field."""

    def test_get_by_key(self):
        items = ObserverList(index='id')
        crate = Observer({'id': 7, 'name': 'crate'})

        items.add(crate)

        assert items.get(7) is crate
        assert items.get(8) is None
        assert items.index_of(crate) == 7

    def test_add_emits_keyed_event(self):
        items = ObserverList(index='id')
        events = []
        items.on('add[7]', lambda item, key, position: events.append((key, position)))

        items.add(Observer({'id': 7}))

        assert events == [(7, 0)]

    def test_same_key_rejected(self):
        items = ObserverList(index='id')
        items.add(Observer({'id': 7}))
        assert items.add(Observer({'id': 7})) is None

    def test_remove_by_key(self):
        items = ObserverList(index='id')
        crate = Observer({'id': 7})
        items.add(crate)
        removed = []
        items.on('remove', lambda item, position: removed.append((item, position)))

        items.remove_by_key(7)

        assert removed == [(crate, 0)]
        assert not items.has(crate)

    def test_find_reports_keys(self):
        items = ObserverList(index='id')
        items.add(Observer({'id': 'a'}))
        items.add(Observer({'id': 'b'}))

        assert [key for key, _ in items.find(lambda item: True)] == ['a', 'b']

    def test_plain_mappings(self):
        items = ObserverList(index='id')
        record = {'id': 3}
        items.add(record)
        assert items.get(3) is record


class TestSorted:
    """Tests for sorted insertion."""

    def test_add_keeps_order(self):
        items = ObserverList(sorted=by_n)
        for n in (3, 1, 2, 5, 4):
            items.add(Observer({'n': n}))

        assert [item.get('n') for item in items] == [1, 2, 3, 4, 5]

    def test_add_returns_position(self):
        items = ObserverList(sorted=by_n)
        items.add(Observer({'n': 1}))
        items.add(Observer({'n': 3}))
        assert items.add(Observer({'n': 2})) == 1
        assert items.add(Observer({'n': 9})) == 3

    def test_position(self):
        items = ObserverList(sorted=by_n)
        for n in (1, 2, 3):
            items.add(Observer({'n': n}))

        assert items.position(Observer({'n': 2})) == 1
        assert items.position(Observer({'n': 7})) == -1

    def test_position_next_closest_empty(self):
        items = ObserverList(sorted=by_n)
        assert items.position_next_closest(Observer({'n': 1})) == -1

    def test_sort(self):
        items = ObserverList()
        for n in (2, 1, 3):
            items.add(Observer({'n': n}))

        items.sort(by_n)

        assert [item.get('n') for item in items] == [1, 2, 3]
