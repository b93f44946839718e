"""HTTP surface for card payment processing and payment records."""

import random
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from time import perf_counter
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from cardpay.common.config import settings
from cardpay.common.db import Base, SessionLocal, engine
from cardpay.common.logging import configure_logging, logger, trace_id_ctx
from cardpay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    payment_latency_seconds,
    payment_requests_total,
)
from cardpay.common.startup import log_startup_config
from cardpay.common.state_machine import PaymentStatus
from cardpay.common.tracing import instrument_app, setup_tracing
from cardpay.services.payment.errors import PersistenceError
from cardpay.services.payment.gateway import GatewayPolicy, GatewaySimulator
from cardpay.services.payment.schemas import PaymentOutcome, PaymentRequest, PaymentStats, PaymentView
from cardpay.services.payment.service import PaymentService
from cardpay.services.payment.store import PaymentFilter, PaymentStore

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    ["SERVICE_NAME", "DATABASE_URL", "GATEWAY_TIMEOUT_SECONDS", "GATEWAY_SEED", "TRACING_ENABLED"],
)
service = PaymentService(
    PaymentStore(SessionLocal, service_name=settings.service_name),
    GatewaySimulator(GatewayPolicy.from_settings(settings), rng=random.Random(settings.gateway_seed)),
    gateway_timeout_seconds=settings.gateway_timeout_seconds,
    service_name=settings.service_name,
)


def get_service() -> PaymentService:
    return service


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Create tables for local SQLite runs; Postgres deployments use Alembic."""

    if settings.database_url.startswith("sqlite"):
        Base.metadata.create_all(engine)
    yield


app = FastAPI(title="CardPay Payment Service", lifespan=lifespan)
instrument_app(app)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(_: Request, exc: PersistenceError):
    """Store outages on read endpoints are reported as 503, not 500."""

    logger.error("payment_store_unavailable operation=%s error=%s", exc.operation, exc)
    return JSONResponse(status_code=503, content={"detail": "payment store unavailable"})


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.post("/api/payments/process", response_model=PaymentOutcome)
async def process_payment(
    req: PaymentRequest,
    x_trace_id: str | None = Header(default=None),
    payments: PaymentService = Depends(get_service),
):
    """Validate, authorize and record one card payment.

    Responds 200 only for COMPLETED; every other outcome is a 400 with the
    same body shape.
    """

    trace_id_ctx.set(x_trace_id or str(uuid4()))
    item_count = len(req.order_items) if req.order_items else 0
    logger.info("payment_request_received amount=%s items=%s", req.amount, item_count)
    payment_requests_total.labels(service=settings.service_name).inc()
    with payment_latency_seconds.labels(service=settings.service_name).time():
        outcome = await payments.process(req)
    status_code = 200 if outcome.status == PaymentStatus.COMPLETED else 400
    return JSONResponse(status_code=status_code, content=outcome.model_dump(mode="json", by_alias=True))


@app.get("/api/payments", response_model=list[PaymentView])
def list_payments(
    status: PaymentStatus | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    cardholder: str | None = None,
    last_four: str | None = None,
    limit: int | None = None,
    payments: PaymentService = Depends(get_service),
):
    filters = PaymentFilter(
        statuses=(status,) if status else None,
        created_from=created_from,
        created_to=created_to,
        min_amount=min_amount,
        max_amount=max_amount,
        cardholder=cardholder,
        last_four=last_four,
        limit=limit,
    )
    return [PaymentView.from_record(record) for record in payments.list_payments(filters)]


@app.get("/api/payments/status/{status}", response_model=list[PaymentView])
def payments_by_status(status: PaymentStatus, payments: PaymentService = Depends(get_service)):
    records = payments.list_payments(PaymentFilter(statuses=(status,)))
    return [PaymentView.from_record(record) for record in records]


@app.get("/api/payments/successful", response_model=list[PaymentView])
def successful_payments(payments: PaymentService = Depends(get_service)):
    return [PaymentView.from_record(record) for record in payments.successful_payments()]


@app.get("/api/payments/failed", response_model=list[PaymentView])
def failed_payments(payments: PaymentService = Depends(get_service)):
    return [PaymentView.from_record(record) for record in payments.failed_payments()]


@app.get("/api/payments/recent", response_model=list[PaymentView])
def recent_payments(limit: int = settings.recent_payments_limit, payments: PaymentService = Depends(get_service)):
    return [PaymentView.from_record(record) for record in payments.recent_payments(limit)]


@app.get("/api/payments/stats", response_model=PaymentStats)
def payment_stats(payments: PaymentService = Depends(get_service)):
    """Completed count, failed + declined count, completed amount total."""

    return payments.stats()


@app.get("/api/payments/transaction/{transaction_id}", response_model=PaymentView)
def get_payment_by_transaction(transaction_id: str, payments: PaymentService = Depends(get_service)):
    record = payments.get_by_transaction_id(transaction_id)
    if not record:
        raise HTTPException(status_code=404, detail="payment not found")
    return PaymentView.from_record(record)


@app.get("/api/payments/{payment_id}", response_model=PaymentView)
def get_payment(payment_id: str, payments: PaymentService = Depends(get_service)):
    """Fetch one stored payment by its surrogate ID."""

    record = payments.get_payment(payment_id)
    if not record:
        raise HTTPException(status_code=404, detail="payment not found")
    return PaymentView.from_record(record)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
