"""Payment attempt state machine enforced by the orchestrator.

The provider owns the payment; these states only describe what this process
has observed about one attempt between the create and execute calls.
"""

INITIATED = "INITIATED"
CREATED = "CREATED"
APPROVED = "APPROVED"
EXECUTED = "EXECUTED"
FAILED = "FAILED"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    INITIATED: {CREATED, FAILED},
    CREATED: {APPROVED, FAILED},
    APPROVED: {EXECUTED, FAILED},
    EXECUTED: set(),
    FAILED: set(),
}

TERMINAL_STATES = {EXECUTED, FAILED}


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
