"""Keyed payment store backed by SQLAlchemy.

Rows are keyed by `payment_id` and uniquely by `transaction_id`. Every
operation is a single-row statement, so atomicity comes from the database;
no cross-record transactions are used. Driver errors surface as
`PersistenceError`.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from cardpay.common.logging import logger
from cardpay.common.metrics import persistence_failures_total
from cardpay.common.state_machine import PaymentStatus
from cardpay.services.payment.errors import PersistenceError
from cardpay.services.payment.models import Payment, PaymentRecord


@dataclass(frozen=True)
class PaymentFilter:
    """Read-side filter; unset fields do not constrain the query."""

    statuses: tuple[PaymentStatus, ...] | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    cardholder: str | None = None
    last_four: str | None = None
    limit: int | None = None


class PaymentStore:
    def __init__(self, session_factory, service_name: str = "payment-service") -> None:
        self.session_factory = session_factory
        self.service_name = service_name

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            persistence_failures_total.labels(service=self.service_name, operation=operation).inc()
            logger.error("payment_store_error operation=%s error=%s", operation, exc)
            raise PersistenceError(operation, f"payment store {operation} failed: {exc}") from exc

    def create(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a new row; the unique transaction ID makes a duplicate insert fail."""

        with self._guard("create"), self.session_factory() as db:
            db.add(record.to_row())
            db.commit()
        return record

    def save_transition(self, before: PaymentRecord, after: PaymentRecord) -> PaymentRecord:
        """Persist `after` if the stored row still matches `before`.

        The write is guarded by `(transaction_id, status, state_version)`, so a
        stale writer cannot overwrite a newer state.
        """

        with self._guard("update"), self.session_factory() as db:
            result = db.execute(
                update(Payment)
                .where(
                    Payment.transaction_id == before.transaction_id,
                    Payment.status == before.status.value,
                    Payment.state_version == before.state_version,
                )
                .values(
                    status=after.status.value,
                    error_message=after.error_message,
                    updated_at=after.updated_at,
                    state_version=after.state_version,
                )
            )
            if result.rowcount != 1:
                db.rollback()
                persistence_failures_total.labels(service=self.service_name, operation="conflict").inc()
                logger.warning(
                    "payment_store_conflict transaction_id=%s expected_version=%s",
                    before.transaction_id,
                    before.state_version,
                )
                raise PersistenceError(
                    "update",
                    f"optimistic concurrency conflict for transaction {before.transaction_id} "
                    f"(expected version {before.state_version})",
                )
            db.commit()
        return after

    def get(self, payment_id: str) -> PaymentRecord | None:
        with self._guard("get"), self.session_factory() as db:
            row = db.get(Payment, payment_id)
            return PaymentRecord.from_row(row) if row else None

    def find_by_transaction_id(self, transaction_id: str) -> PaymentRecord | None:
        with self._guard("get"), self.session_factory() as db:
            row = db.execute(
                select(Payment).where(Payment.transaction_id == transaction_id)
            ).scalar_one_or_none()
            return PaymentRecord.from_row(row) if row else None

    def list(self, filters: PaymentFilter | None = None) -> list[PaymentRecord]:
        """Return matching records, newest first."""

        filters = filters or PaymentFilter()
        query = select(Payment)
        if filters.statuses:
            query = query.where(Payment.status.in_([status.value for status in filters.statuses]))
        if filters.created_from is not None:
            query = query.where(Payment.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.where(Payment.created_at <= filters.created_to)
        if filters.min_amount is not None:
            query = query.where(Payment.amount >= filters.min_amount)
        if filters.max_amount is not None:
            query = query.where(Payment.amount <= filters.max_amount)
        if filters.cardholder:
            query = query.where(Payment.cardholder_name.ilike(f"%{filters.cardholder}%"))
        if filters.last_four:
            query = query.where(Payment.card_number.like(f"%{filters.last_four}"))
        query = query.order_by(Payment.created_at.desc(), Payment.transaction_id.desc())
        if filters.limit is not None:
            query = query.limit(filters.limit)

        with self._guard("list"), self.session_factory() as db:
            return [PaymentRecord.from_row(row) for row in db.execute(query).scalars()]

    def count_by_status(self, status: PaymentStatus) -> int:
        with self._guard("aggregate"), self.session_factory() as db:
            return db.execute(
                select(func.count()).select_from(Payment).where(Payment.status == status.value)
            ).scalar_one()

    def total_amount_by_status(self, status: PaymentStatus) -> Decimal:
        with self._guard("aggregate"), self.session_factory() as db:
            total = db.execute(
                select(func.sum(Payment.amount)).where(Payment.status == status.value)
            ).scalar_one()
        return Decimal(str(total)) if total is not None else Decimal("0")
