"""Payment state machine transitions enforced by the settlement orchestrator."""

from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.DECLINED, PaymentStatus.CANCELLED}
)

# PROCESSING stays in the enum for wire compatibility but nothing moves into or out of it.
ALLOWED_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.DECLINED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.PROCESSING: set(),
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.DECLINED: set(),
    PaymentStatus.CANCELLED: set(),
}


class InvalidTransition(ValueError):
    """Raised when a status change is not allowed by the state machine."""


def validate_transition(current: PaymentStatus, new: PaymentStatus) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(PaymentStatus(current), set()):
        raise InvalidTransition(f"Invalid transition: {PaymentStatus(current).value} -> {PaymentStatus(new).value}")
