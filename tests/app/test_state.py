"""Tests for application state."""

from louveai.app.state import AppState
from louveai.models import Repertory


class TestAppState:
    """Tests for AppState."""

    def test_default_values(self):
        state = AppState()

        assert state.draft is None
        assert state.is_loading is False
        assert state.error_message is None
        assert state.warnings == []
        assert state.generator.total == 0

    def test_listener_called_on_change(self):
        state = AppState()
        seen = []
        state.add_listener("is_loading", seen.append)

        state.set_loading(True)
        state.set_loading(False)

        assert seen == [True, False]

    def test_remove_listener(self):
        state = AppState()
        seen = []
        state.add_listener("draft", seen.append)
        state.remove_listener("draft", seen.append)

        state.set_draft(Repertory(id="r1"))

        assert seen == []

    def test_failing_listener_does_not_break_others(self):
        state = AppState()
        seen = []

        def broken(_value):
            raise RuntimeError("boom")

        state.add_listener("error_message", broken)
        state.add_listener("error_message", seen.append)

        state.set_error("Generation failed")
        state.clear_error()

        assert seen == ["Generation failed", None]
        assert state.error_message is None

    def test_set_warnings_copies_list(self):
        state = AppState()
        warnings = ["harpa: requested 1, received 0"]

        state.set_warnings(warnings)
        warnings.clear()

        assert state.warnings == ["harpa: requested 1, received 0"]
