"""Shared fixtures: in-memory store, deterministic gateway, request builder."""

import os

os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from cardpay.common.db import Base, make_session_factory
from cardpay.services.payment.gateway import GatewayPolicy, GatewaySimulator
from cardpay.services.payment.schemas import OrderItem, PaymentRequest
from cardpay.services.payment.service import PaymentService
from cardpay.services.payment.store import PaymentStore


FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
VALID_CARD = "4532015112830366"
APPROVE_CARD = "4111111111111111"
DECLINE_CARD = "4000000000020000"

# No randomized branch fires; only the test-card suffix rules decide.
QUIET_POLICY = GatewayPolicy(
    transient_error_rate=0.0,
    high_amount_decline_rate=0.0,
    bank_decline_rate=0.0,
    insufficient_funds_rate=0.0,
    min_delay_seconds=0.0,
    max_delay_seconds=0.0,
)


def build_request(**overrides) -> PaymentRequest:
    fields = {
        "cardholder_name": "Jane Doe",
        "card_number": VALID_CARD,
        "expiry_date": "12/30",
        "cvv": "123",
        "amount": Decimal("19.98"),
        "order_items": [OrderItem(product_name="widget", quantity=2, price=Decimal("9.99"))],
    }
    fields.update(overrides)
    return PaymentRequest(**fields)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> PaymentStore:
    return PaymentStore(session_factory)


@pytest.fixture
def quiet_gateway() -> GatewaySimulator:
    return GatewaySimulator(QUIET_POLICY, rng=random.Random(7))


@pytest.fixture
def payment_service(store, quiet_gateway) -> PaymentService:
    return PaymentService(store, quiet_gateway, clock=lambda: FIXED_NOW)
