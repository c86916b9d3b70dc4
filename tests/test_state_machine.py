"""Unit tests for payment attempt state-machine guardrails."""

import pytest

from finebot.common.state_machine import validate_transition


def test_valid_transition():
    """Sanity check: a legal transition should pass."""

    validate_transition("CREATED", "APPROVED")


def test_invalid_transition():
    """Execution before approval must raise."""

    with pytest.raises(ValueError):
        validate_transition("CREATED", "EXECUTED")


@pytest.mark.parametrize("terminal", ["EXECUTED", "FAILED"])
def test_terminal_states_have_no_exit(terminal):
    with pytest.raises(ValueError):
        validate_transition(terminal, "CREATED")
