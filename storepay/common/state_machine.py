"""Payment state machine enforced by webhook reconciliation."""

from storepay.common.errors import InvalidTransition, UnrecognizedWebhookStatus

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    PENDING: {COMPLETED, FAILED, CANCELLED},
    COMPLETED: set(),
    FAILED: set(),
    CANCELLED: set(),
}

TERMINAL_STATES = frozenset(state for state, targets in ALLOWED_TRANSITIONS.items() if not targets)

# Webhook status -> (target state, timeline reason). Anything else is rejected.
WEBHOOK_TRANSITIONS: dict[str, tuple[str, str]] = {
    "completed": (COMPLETED, "gateway_completed"),
    "failed": (FAILED, "gateway_failed"),
    "cancelled": (CANCELLED, "gateway_cancelled"),
}


def is_terminal(state: str) -> bool:
    return state in TERMINAL_STATES


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(current, new)


def target_for_webhook_status(status: str) -> tuple[str, str]:
    """Resolve a webhook status to its terminal state and reason."""

    try:
        return WEBHOOK_TRANSITIONS[status]
    except (KeyError, TypeError):
        raise UnrecognizedWebhookStatus(status) from None
