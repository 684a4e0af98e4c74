"""
Unit tests for the process-wide run state.
"""

from snapcheck.core.types import LogLevel
from snapcheck.orchestration.run_state import RunState


class TestRunState:
    """Tests for RunState."""

    def test_initial_state(self):
        state = RunState()

        assert state.running_tests_count == 0
        assert state.logs == []
        assert state.new_errors_exist is False
        assert state.unread_errors_exist is False
        assert len(state.batch_id) == 36

    def test_log_is_bounded(self):
        state = RunState(log_limit=3)

        for number in range(5):
            state.add_log(f"entry {number}")

        assert [entry.message for entry in state.logs] == ["entry 2", "entry 3", "entry 4"]

    def test_log_entries_are_sanitized(self):
        state = RunState()

        entry = state.add_log("Opened https://eyes/app?apiKey=SECRET", LogLevel.WARNING)

        assert "SECRET" not in entry.message
        assert entry.level == LogLevel.WARNING

    def test_reset_batch_id(self):
        state = RunState()
        first = state.batch_id

        second = state.reset_batch_id()

        assert second != first
        assert state.batch_id == second

    def test_error_flags(self):
        state = RunState()

        state.mark_error()
        assert state.new_errors_exist is True
        assert state.unread_errors_exist is True

        state.clear_new_errors()
        assert state.new_errors_exist is False
        assert state.unread_errors_exist is True

        state.clear_unread_errors()
        assert state.unread_errors_exist is False
