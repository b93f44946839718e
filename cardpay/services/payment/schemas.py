"""API request/response schemas for payment endpoints.

The request models are deliberately permissive: every field is optional and
unconstrained so that `validation.validate_payment_request` owns the rules and
their error messages.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cardpay.common.state_machine import PaymentStatus
from cardpay.services.payment.models import PaymentRecord, utcnow


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItem(CamelModel):
    """One cart line."""

    product_name: str | None = None
    quantity: int | None = None
    price: Decimal | None = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class PaymentRequest(CamelModel):
    """Card payment payload accepted by `POST /api/payments/process`."""

    cardholder_name: str | None = None
    card_number: str | None = None
    expiry_date: str | None = None
    cvv: str | None = None
    amount: Decimal | None = None
    order_items: list[OrderItem] | None = None


class PaymentOutcome(CamelModel):
    """Result of one `process()` call."""

    transaction_id: str
    status: PaymentStatus
    message: str
    amount: Decimal | None = None
    processed_at: datetime = Field(default_factory=utcnow)
    error_message: str | None = None

    @classmethod
    def success(cls, transaction_id: str, amount: Decimal) -> "PaymentOutcome":
        return cls(
            transaction_id=transaction_id,
            status=PaymentStatus.COMPLETED,
            message="Payment processed successfully",
            amount=amount,
        )

    @classmethod
    def declined(cls, transaction_id: str, amount: Decimal, reason: str) -> "PaymentOutcome":
        return cls(
            transaction_id=transaction_id,
            status=PaymentStatus.DECLINED,
            message="Payment declined",
            amount=amount,
            error_message=reason,
        )

    @classmethod
    def failure(cls, transaction_id: str, reason: str, amount: Decimal | None = None) -> "PaymentOutcome":
        return cls(
            transaction_id=transaction_id,
            status=PaymentStatus.FAILED,
            message="Payment processing failed",
            amount=amount,
            error_message=reason,
        )


class PaymentView(CamelModel):
    """Stored payment as returned by read endpoints. CVV is never exposed."""

    payment_id: str
    cardholder_name: str
    card_number: str
    expiry_date: str
    amount: Decimal
    status: PaymentStatus
    transaction_id: str
    created_at: datetime
    updated_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentView":
        return cls(
            payment_id=record.payment_id,
            cardholder_name=record.cardholder_name,
            card_number=record.card_number,
            expiry_date=record.expiry_date,
            amount=record.amount,
            status=record.status,
            transaction_id=record.transaction_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
            error_message=record.error_message,
        )


class PaymentStats(CamelModel):
    total_completed: int
    total_failed: int
    total_amount: Decimal
