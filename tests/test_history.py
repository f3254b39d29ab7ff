"""Tests for the History undo/redo stack."""
import asyncio
import logging

import pytest

from observerstate import History, HistoryAction


def make_action(name, log, combine=False, tag=None):
    """Build an action that records its undo/redo calls into `log`."""
    tag = tag or name
    return HistoryAction(
        name=name,
        undo=lambda: log.append(('undo', tag)),
        redo=lambda: log.append(('redo', tag)),
        combine=combine,
    )


class TestAdd:
    """Tests for add()."""

    def test_add_sets_flags_and_emits(self):
        history = History()
        events = []
        history.on('add', lambda name: events.append(('add', name)))
        history.on('canUndo', lambda value: events.append(('canUndo', value)))

        assert history.add(make_action('a1', []))

        assert history.can_undo is True
        assert history.can_redo is False
        assert history.current_action.name == 'a1'
        assert events == [('add', 'a1'), ('canUndo', True)]

    @pytest.mark.parametrize('missing', ['name', 'undo', 'redo'])
    def test_malformed_action_rejected(self, missing, caplog):
        history = History()
        action = {'name': 'a', 'undo': lambda: None, 'redo': lambda: None}
        del action[missing]

        with caplog.at_level(logging.ERROR, logger='observerstate.history'):
            assert history.add(action) is False

        assert len(history) == 0
        assert "history action" in caplog.text

    def test_mapping_accepted(self):
        history = History()
        assert history.add({'name': 'a', 'undo': lambda: None, 'redo': lambda: None})
        assert isinstance(history.current_action, HistoryAction)

    def test_combine_replaces_redo_only(self):
        history = History()
        undo = lambda: None
        redo_first = lambda: None
        redo_second = lambda: None

        history.add({'name': 'n', 'combine': True, 'undo': undo, 'redo': redo_first})
        history.add({'name': 'n', 'combine': True, 'undo': lambda: None, 'redo': redo_second})

        assert len(history) == 1
        assert history.current_action.undo is undo
        assert history.current_action.redo is redo_second

    def test_combine_with_different_name_appends(self):
        history = History()
        history.add(make_action('a', [], combine=True))
        history.add(make_action('b', [], combine=True))
        assert len(history) == 2

    def test_last_action(self):
        history = History()
        assert history.last_action is None
        history.add(make_action('a', []))
        history.add(make_action('b', []))
        assert history.last_action.name == 'b'

    def test_get_history_info(self):
        history = History()
        history.add(make_action('a', []))
        history.add(make_action('b', [], combine=True))

        info = history.get_history_info()

        assert info == [
            {'index': 0, 'name': 'a', 'combine': False, 'is_current': False},
            {'index': 1, 'name': 'b', 'combine': True, 'is_current': True},
        ]


class TestUndoRedo:
    """Tests for undo() and redo()."""

    @pytest.mark.asyncio
    async def test_undo_then_redo(self):
        history = History()
        log = []
        history.add(make_action('a1', log))

        await history.undo()
        assert log == [('undo', 'a1')]
        assert history.can_undo is False
        assert history.can_redo is True

        await history.redo()
        assert log == [('undo', 'a1'), ('redo', 'a1')]
        assert history.can_undo is True
        assert history.can_redo is False

    @pytest.mark.asyncio
    async def test_undo_on_empty_stack_is_noop(self):
        history = History()
        await history.undo()
        await history.redo()
        assert history.current_action is None

    @pytest.mark.asyncio
    async def test_branching_truncates_redo(self):
        """After add, undo, add the undone action is gone."""
        history = History()
        log = []
        history.add(make_action('a1', log))
        history.add(make_action('a2', log))

        await history.undo()
        history.add(make_action('a3', log))

        assert [action['name'] for action in history.get_history_info()] == ['a1', 'a3']
        assert history.can_redo is False

        await history.redo()
        assert ('redo', 'a2') not in log

    @pytest.mark.asyncio
    async def test_combined_entry_undoes_original(self):
        history = History()
        log = []
        history.add(make_action('n', log, combine=True, tag='first'))
        history.add(make_action('n', log, combine=True, tag='second'))

        await history.undo()
        await history.redo()

        assert log == [('undo', 'first'), ('redo', 'second')]

    @pytest.mark.asyncio
    async def test_undo_redo_emit_names(self):
        history = History()
        names = []
        history.on('undo', lambda name: names.append(('undo', name)))
        history.on('redo', lambda name: names.append(('redo', name)))
        history.add(make_action('a1', []))

        await history.undo()
        await history.redo()

        assert names == [('undo', 'a1'), ('redo', 'a1')]

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self):
        history = History()
        log = []

        async def undo():
            await asyncio.sleep(0)
            log.append('undo')

        async def redo():
            await asyncio.sleep(0)
            log.append('redo')

        await history.add_and_execute(HistoryAction('a', undo, redo))
        await history.undo()

        assert log == ['redo', 'undo']

    @pytest.mark.asyncio
    async def test_failing_undo_is_logged_and_released(self, caplog):
        history = History()

        def broken():
            raise RuntimeError("undo failed")

        history.add(HistoryAction('a', broken, lambda: None))

        with caplog.at_level(logging.ERROR, logger='observerstate.history'):
            await history.undo()

        assert "undo failed" in caplog.text
        assert history.executing == 0
        assert history.can_redo is True


class TestExecuting:
    """Tests for the executing counter."""

    @pytest.mark.asyncio
    async def test_flags_read_false_while_executing(self):
        history = History()
        seen = []
        history.add(make_action('a0', []))

        def redo():
            seen.append((history.executing, history.can_undo, history.can_redo))

        await history.add_and_execute(HistoryAction('a', lambda: None, redo))

        assert seen == [(1, False, False)]
        assert history.executing == 0
        assert history.can_undo is True

    @pytest.mark.asyncio
    async def test_nested_execution_keeps_flags_false(self):
        history = History()
        seen = []

        async def outer_redo():
            await history.add_and_execute(HistoryAction('inner', lambda: None, inner_redo))
            seen.append(('after inner', history.executing, history.can_undo))

        def inner_redo():
            seen.append(('inner', history.executing, history.can_undo))

        await history.add_and_execute(HistoryAction('outer', lambda: None, outer_redo))

        assert seen == [('inner', 2, False), ('after inner', 1, False)]
        assert history.executing == 0

    @pytest.mark.asyncio
    async def test_executing_transitions_emit_availability(self):
        history = History()
        history.add(make_action('a1', []))
        events = []
        history.on('canUndo', lambda value: events.append(('canUndo', value)))
        history.on('canRedo', lambda value: events.append(('canRedo', value)))

        await history.undo()

        assert events == [
            ('canUndo', False),
            ('canRedo', True),
            ('canUndo', False),
            ('canRedo', False),
            ('canUndo', False),
            ('canRedo', True),
        ]


def test_clear():
    history = History()
    events = []
    history.add(make_action('a', []))
    history.on('canUndo', lambda value: events.append(value))

    history.clear()
    history.clear()

    assert len(history) == 0
    assert history.current_action is None
    assert history.can_undo is False
    assert events == [False]
