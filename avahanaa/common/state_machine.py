"""Notify request pipeline transitions enforced by the orchestrator."""

VALIDATING = "VALIDATING"
RESOLVING = "RESOLVING"
RATE_CHECKING = "RATE_CHECKING"
DISPATCHING = "DISPATCHING"
LOGGING = "LOGGING"
DONE = "DONE"
ERROR_CLASSIFYING = "ERROR_CLASSIFYING"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    VALIDATING: {RESOLVING, ERROR_CLASSIFYING},
    RESOLVING: {RATE_CHECKING, ERROR_CLASSIFYING},
    RATE_CHECKING: {DISPATCHING, ERROR_CLASSIFYING},
    DISPATCHING: {LOGGING, ERROR_CLASSIFYING},
    LOGGING: {DONE, ERROR_CLASSIFYING},
    DONE: set(),
    ERROR_CLASSIFYING: set(),
}


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
