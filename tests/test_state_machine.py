"""Unit tests for payment state-machine guardrails."""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from cardpay.common.state_machine import InvalidTransition, PaymentStatus, validate_transition
from cardpay.services.payment.models import PaymentRecord, transition

from conftest import FIXED_NOW


def _pending() -> PaymentRecord:
    return PaymentRecord(
        cardholder_name="Jane Doe",
        card_number="************0366",
        expiry_date="12/30",
        amount=Decimal("19.98"),
        transaction_id="TXN-1-ABCDEF01",
        created_at=FIXED_NOW,
    )


def test_valid_transition():
    """Sanity check: a legal transition should pass."""

    validate_transition(PaymentStatus.PENDING, PaymentStatus.COMPLETED)


def test_invalid_transition():
    """Terminal states never move again."""

    with pytest.raises(ValueError):
        validate_transition(PaymentStatus.COMPLETED, PaymentStatus.FAILED)
    with pytest.raises(InvalidTransition):
        validate_transition(PaymentStatus.DECLINED, PaymentStatus.PENDING)


@pytest.mark.parametrize("target", list(PaymentStatus))
def test_processing_is_never_entered_or_left(target):
    with pytest.raises(InvalidTransition):
        validate_transition(PaymentStatus.PENDING, PaymentStatus.PROCESSING)
    with pytest.raises(InvalidTransition):
        validate_transition(PaymentStatus.PROCESSING, target)


def test_transition_returns_new_record_with_timestamp():
    pending = _pending()
    later = FIXED_NOW + timedelta(seconds=2)

    declined = transition(pending, PaymentStatus.DECLINED, error_message="Insufficient funds", now=later)

    assert declined.status == PaymentStatus.DECLINED
    assert declined.error_message == "Insufficient funds"
    assert declined.updated_at == later
    assert declined.state_version == pending.state_version + 1
    assert declined.created_at == pending.created_at
    assert declined.payment_id == pending.payment_id
    assert pending.status == PaymentStatus.PENDING
    assert pending.updated_at is None


def test_completed_transition_drops_error_message():
    completed = transition(_pending(), PaymentStatus.COMPLETED, error_message="ignored", now=FIXED_NOW)

    assert completed.error_message is None


def test_transition_out_of_terminal_state_raises():
    failed = replace(_pending(), status=PaymentStatus.FAILED)

    with pytest.raises(InvalidTransition):
        transition(failed, PaymentStatus.COMPLETED)
