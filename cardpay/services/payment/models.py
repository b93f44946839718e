"""Payment persistence models.

`Payment` is the table row; `PaymentRecord` is the immutable in-memory view the
orchestrator works with. Status changes go through `transition()`, which
returns a new record instead of mutating one in place.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cardpay.common.db import Base
from cardpay.common.state_machine import PaymentStatus, validate_transition


CVV_PLACEHOLDER = "***"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    """Stored state of one card payment."""

    __tablename__ = "payments"

    payment_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    cardholder_name: Mapped[str] = mapped_column(String)
    card_number: Mapped[str] = mapped_column(String, index=True)
    expiry_date: Mapped[str] = mapped_column(String(5))
    cvv: Mapped[str] = mapped_column(String(4), default=CVV_PLACEHOLDER)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String, index=True)
    state_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transaction_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


@dataclass(frozen=True)
class PaymentRecord:
    """Immutable snapshot of a payment; card number is always masked."""

    cardholder_name: str
    card_number: str
    expiry_date: str
    amount: Decimal
    transaction_id: str
    created_at: datetime
    status: PaymentStatus = PaymentStatus.PENDING
    cvv: str = CVV_PLACEHOLDER
    error_message: str | None = None
    updated_at: datetime | None = None
    state_version: int = 0
    payment_id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def from_row(cls, row: Payment) -> "PaymentRecord":
        return cls(
            payment_id=row.payment_id,
            cardholder_name=row.cardholder_name,
            card_number=row.card_number,
            expiry_date=row.expiry_date,
            cvv=row.cvv,
            amount=Decimal(row.amount),
            status=PaymentStatus(row.status),
            transaction_id=row.transaction_id,
            error_message=row.error_message,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
            state_version=row.state_version,
        )

    def to_row(self) -> Payment:
        return Payment(
            payment_id=self.payment_id,
            cardholder_name=self.cardholder_name,
            card_number=self.card_number,
            expiry_date=self.expiry_date,
            cvv=self.cvv,
            amount=self.amount,
            status=self.status.value,
            state_version=self.state_version,
            transaction_id=self.transaction_id,
            error_message=self.error_message,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def transition(
    record: PaymentRecord,
    new_status: PaymentStatus,
    error_message: str | None = None,
    now: datetime | None = None,
) -> PaymentRecord:
    """Return `record` moved to `new_status` with a fresh `updated_at`.

    Raises `InvalidTransition` for moves the state machine does not allow.
    The error message is only kept for non-success terminal states.
    """

    validate_transition(record.status, new_status)
    if new_status == PaymentStatus.COMPLETED:
        error_message = None
    return replace(
        record,
        status=new_status,
        error_message=error_message,
        updated_at=now or utcnow(),
        state_version=record.state_version + 1,
    )
