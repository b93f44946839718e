"""Settlement orchestration.

Drives one request through validate -> persist PENDING -> gateway -> persist
terminal state, and turns every failure along the way into a uniform
`PaymentOutcome`. This is the only writer of payment records.
"""

import asyncio
from datetime import date
from time import perf_counter

from cardpay.common.logging import logger, transaction_id_ctx
from cardpay.common.metrics import (
    gateway_decisions_total,
    gateway_latency_seconds,
    payment_outcomes_total,
    payment_validation_failures_total,
)
from cardpay.common.state_machine import PaymentStatus
from cardpay.common.tracing import tracer
from cardpay.services.payment.errors import PersistenceError, ValidationError
from cardpay.services.payment.gateway import DecisionKind, GatewayDecision, GatewaySimulator
from cardpay.services.payment.identity import new_transaction_id
from cardpay.services.payment.models import PaymentRecord, transition, utcnow
from cardpay.services.payment.schemas import PaymentOutcome, PaymentRequest, PaymentStats
from cardpay.services.payment.store import PaymentFilter, PaymentStore
from cardpay.services.payment.validation import (
    mask_card_number,
    normalize_card_number,
    validate_payment_request,
)


GATEWAY_TIMEOUT_REASON = "Payment gateway timed out"
NOT_RECORDED_PREFIX = "Payment could not be recorded"

DECISION_STATUS = {
    DecisionKind.APPROVED: PaymentStatus.COMPLETED,
    DecisionKind.DECLINED: PaymentStatus.DECLINED,
    DecisionKind.TRANSIENT_ERROR: PaymentStatus.FAILED,
}


class PaymentService:
    """Owns payment validation, gateway submission and status recording."""

    def __init__(
        self,
        store: PaymentStore,
        gateway: GatewaySimulator,
        id_factory=new_transaction_id,
        clock=utcnow,
        gateway_timeout_seconds: float | None = None,
        service_name: str = "payment-service",
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.id_factory = id_factory
        self.clock = clock
        self.gateway_timeout_seconds = gateway_timeout_seconds
        self.service_name = service_name

    async def process(self, request: PaymentRequest) -> PaymentOutcome:
        """Process one payment request. Never raises."""

        transaction_id = self.id_factory()
        token = transaction_id_ctx.set(transaction_id)
        try:
            with tracer.start_as_current_span("payment.process"):
                outcome = await self._process(request, transaction_id)
        except Exception as exc:
            logger.exception("payment_processing_error transaction_id=%s error=%s", transaction_id, exc)
            outcome = PaymentOutcome.failure(transaction_id, str(exc))
        finally:
            transaction_id_ctx.reset(token)
        payment_outcomes_total.labels(service=self.service_name, status=outcome.status.value).inc()
        return outcome

    async def _process(self, request: PaymentRequest, transaction_id: str) -> PaymentOutcome:
        try:
            validate_payment_request(request, today=self._today())
        except ValidationError as exc:
            # Nothing is stored for rejected requests; the ID only ties the response to this log line.
            payment_validation_failures_total.labels(service=self.service_name, field=exc.field).inc()
            logger.warning(
                "payment_validation_failed transaction_id=%s field=%s reason=%s",
                transaction_id,
                exc.field,
                exc.reason,
            )
            return PaymentOutcome.failure(transaction_id, exc.reason)

        pending = self._pending_record(request, transaction_id)
        try:
            self.store.create(pending)
        except PersistenceError as exc:
            return PaymentOutcome.failure(transaction_id, f"{NOT_RECORDED_PREFIX}: {exc}")
        logger.info(
            "payment_pending transaction_id=%s card=%s amount=%s",
            transaction_id,
            pending.card_number,
            pending.amount,
        )

        decision = await self._authorize(request)
        status = DECISION_STATUS[decision.kind]
        final = transition(pending, status, error_message=decision.reason, now=self.clock())
        try:
            self.store.save_transition(pending, final)
        except PersistenceError as exc:
            # The row stays PENDING; reconciling it is left to operators.
            logger.error(
                "payment_terminal_write_failed transaction_id=%s status=%s error=%s",
                transaction_id,
                status.value,
                exc,
            )
            return PaymentOutcome.failure(transaction_id, f"{NOT_RECORDED_PREFIX}: {exc}")

        logger.info("payment_settled transaction_id=%s status=%s", transaction_id, status.value)
        return self._outcome_for(final)

    async def _authorize(self, request: PaymentRequest) -> GatewayDecision:
        """Call the gateway exactly once; a timeout counts as a transient failure."""

        start = perf_counter()
        try:
            if self.gateway_timeout_seconds is None:
                decision = await self.gateway.authorize(request)
            else:
                decision = await asyncio.wait_for(self.gateway.authorize(request), self.gateway_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("gateway_timeout timeout_s=%s", self.gateway_timeout_seconds)
            decision = GatewayDecision.transient_error(GATEWAY_TIMEOUT_REASON)
        gateway_latency_seconds.labels(service=self.service_name).observe(max(0.0, perf_counter() - start))
        gateway_decisions_total.labels(service=self.service_name, decision=decision.kind.value).inc()
        return decision

    def _pending_record(self, request: PaymentRequest, transaction_id: str) -> PaymentRecord:
        return PaymentRecord(
            cardholder_name=request.cardholder_name.strip(),
            card_number=mask_card_number(normalize_card_number(request.card_number)),
            expiry_date=request.expiry_date,
            amount=request.amount,
            transaction_id=transaction_id,
            created_at=self.clock(),
        )

    def _today(self) -> date:
        return self.clock().date()

    @staticmethod
    def _outcome_for(record: PaymentRecord) -> PaymentOutcome:
        if record.status == PaymentStatus.COMPLETED:
            return PaymentOutcome.success(record.transaction_id, record.amount)
        if record.status == PaymentStatus.DECLINED:
            return PaymentOutcome.declined(record.transaction_id, record.amount, record.error_message)
        return PaymentOutcome.failure(record.transaction_id, record.error_message, amount=record.amount)

    def get_payment(self, payment_id: str) -> PaymentRecord | None:
        return self.store.get(payment_id)

    def get_by_transaction_id(self, transaction_id: str) -> PaymentRecord | None:
        return self.store.find_by_transaction_id(transaction_id)

    def list_payments(self, filters: PaymentFilter | None = None) -> list[PaymentRecord]:
        return self.store.list(filters)

    def successful_payments(self) -> list[PaymentRecord]:
        return self.store.list(PaymentFilter(statuses=(PaymentStatus.COMPLETED,)))

    def failed_payments(self) -> list[PaymentRecord]:
        return self.store.list(PaymentFilter(statuses=(PaymentStatus.FAILED, PaymentStatus.DECLINED)))

    def recent_payments(self, limit: int = 10) -> list[PaymentRecord]:
        return self.store.list(PaymentFilter(limit=limit))

    def stats(self) -> PaymentStats:
        """Completed count, failed + declined count, and completed amount total."""

        return PaymentStats(
            total_completed=self.store.count_by_status(PaymentStatus.COMPLETED),
            total_failed=(
                self.store.count_by_status(PaymentStatus.FAILED)
                + self.store.count_by_status(PaymentStatus.DECLINED)
            ),
            total_amount=self.store.total_amount_by_status(PaymentStatus.COMPLETED),
        )
