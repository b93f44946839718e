"""Transaction identifiers: `TXN-<epoch millis>-<8 hex chars>`."""

from datetime import datetime
from uuid import uuid4

from cardpay.services.payment.models import utcnow


TRANSACTION_ID_PREFIX = "TXN"


def new_transaction_id(now: datetime | None = None) -> str:
    """Return a fresh transaction ID.

    The millisecond timestamp keeps IDs roughly sortable by creation time; the
    uuid4 suffix separates IDs minted within the same millisecond.
    """

    millis = int((now or utcnow()).timestamp() * 1000)
    return f"{TRANSACTION_ID_PREFIX}-{millis}-{uuid4().hex[:8].upper()}"
