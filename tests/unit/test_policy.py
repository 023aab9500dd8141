"""Unit tests for policy.py - run limits and refusals."""

from pathlib import Path

import pytest

from sandpatch.config import PolicyConfig
from sandpatch.errors import PolicyViolation, ProtectedPath
from sandpatch.normalizer import normalize
from sandpatch.policy import RunState, check_action, check_editable, should_stop


class TestShouldStop:
    def test_fresh_state(self):
        assert should_stop(RunState(), PolicyConfig()) is False

    def test_iteration_limit(self):
        assert should_stop(RunState(iterations=100), PolicyConfig()) is True

    def test_file_edit_limit(self):
        assert should_stop(RunState(file_edits=3), PolicyConfig(max_file_edits=3)) is True

    def test_syntax_errors_ignored_by_default(self):
        """The agent gets to fix its own syntax errors."""
        assert should_stop(RunState(syntax_errors=4), PolicyConfig()) is False

    def test_stop_on_syntax_error(self):
        config = PolicyConfig(stop_on_syntax_error=True)
        assert should_stop(RunState(syntax_errors=1), config) is True

    def test_lint_error_limit_is_exclusive(self):
        config = PolicyConfig(max_lint_errors=2)
        assert should_stop(RunState(lint_errors=2), config) is False
        assert should_stop(RunState(lint_errors=3), config) is True


class TestChecks:
    @pytest.mark.parametrize("action", ["delete_file", "rm", "remove"])
    def test_dangerous_actions(self, action):
        with pytest.raises(PolicyViolation, match="Dangerous action"):
            check_action(normalize(action, {}), PolicyConfig())

    def test_ordinary_action(self):
        check_action(normalize("read_file", {"path": "a.rb"}), PolicyConfig())

    def test_protected_file(self):
        with pytest.raises(ProtectedPath) as exc:
            check_editable(Path("/x/playground/yarn.lock"), ["yarn.lock"])
        assert exc.value.code == "protected_path"
        assert isinstance(exc.value, PolicyViolation)

    def test_unprotected_file(self):
        check_editable(Path("/x/playground/app.js"), ["yarn.lock"])
