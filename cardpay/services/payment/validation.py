"""Structural and business validation for card payment requests.

Checks run in a fixed order and the first failure wins, so a given malformed
request always produces the same message. Messages never echo the card
number or CVV.
"""

import calendar
import re
from datetime import date
from decimal import Decimal

from cardpay.services.payment.errors import ValidationError
from cardpay.services.payment.schemas import PaymentRequest


CARDHOLDER_NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")
CARD_NUMBER_PATTERN = re.compile(r"^[0-9]{13,19}$")
CARD_SEPARATORS = re.compile(r"[\s-]")
EXPIRY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/([0-9]{2})$")
CVV_PATTERN = re.compile(r"^[0-9]{3,4}$")
MAX_AMOUNT = Decimal("999999.99")
MASK_CHAR = "*"


def normalize_card_number(card_number: str) -> str:
    """Drop spaces and dashes a user may have typed between digit groups."""

    return CARD_SEPARATORS.sub("", card_number)


def mask_card_number(card_number: str) -> str:
    """Keep only the last four characters visible."""

    if card_number is None or len(card_number) < 4:
        return card_number
    return MASK_CHAR * (len(card_number) - 4) + card_number[-4:]


def luhn_checksum_valid(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        n = int(char)
        if index % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def has_sub_cent_digits(value: Decimal) -> bool:
    """True when `value` cannot be stored in a two-decimal money column as is."""

    return value.normalize().as_tuple().exponent < -2


def validate_cardholder_name(name: str | None) -> None:
    if name is None or not name.strip():
        raise ValidationError("cardholder_name", "Cardholder name is required")
    if len(name.strip()) < 2:
        raise ValidationError("cardholder_name", "Cardholder name must be at least 2 characters")
    if not CARDHOLDER_NAME_PATTERN.fullmatch(name):
        raise ValidationError("cardholder_name", "Cardholder name can only contain letters and spaces")


def validate_card_number(card_number: str | None) -> None:
    if card_number is None or not card_number.strip():
        raise ValidationError("card_number", "Card number is required")
    digits = normalize_card_number(card_number)
    if not CARD_NUMBER_PATTERN.fullmatch(digits):
        raise ValidationError("card_number", "Card number must be 13-19 digits")
    if not luhn_checksum_valid(digits):
        raise ValidationError("card_number", "Invalid card number")


def validate_expiry_date(expiry_date: str | None, today: date | None = None) -> None:
    """Accept `MM/YY` as long as the last day of that month is not in the past."""

    if expiry_date is None or not expiry_date.strip():
        raise ValidationError("expiry_date", "Expiry date is required")
    match = EXPIRY_PATTERN.fullmatch(expiry_date)
    if not match:
        raise ValidationError("expiry_date", "Expiry date must be in MM/YY format")
    month = int(match.group(1))
    year = 2000 + int(match.group(2))
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    if last_day < (today or date.today()):
        raise ValidationError("expiry_date", "Card has expired")


def validate_cvv(cvv: str | None) -> None:
    if cvv is None or not cvv.strip():
        raise ValidationError("cvv", "CVV is required")
    if not CVV_PATTERN.fullmatch(cvv):
        raise ValidationError("cvv", "CVV must be 3-4 digits")


def validate_amount(amount: Decimal | None) -> None:
    if amount is None:
        raise ValidationError("amount", "Amount is required")
    if amount <= 0:
        raise ValidationError("amount", "Amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError("amount", "Amount cannot exceed $999,999.99")
    if has_sub_cent_digits(amount):
        raise ValidationError("amount", "Amount cannot have more than 2 decimal places")


def validate_order_items(request: PaymentRequest) -> None:
    """Each line must be well-formed and the lines must add up to `amount` exactly."""

    if not request.order_items:
        raise ValidationError("order_items", "Order items are required")
    for item in request.order_items:
        if item.product_name is None or not item.product_name.strip():
            raise ValidationError("order_items", "Product name is required for all items")
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError("order_items", "Quantity must be greater than 0 for all items")
        if item.price is None or item.price <= 0:
            raise ValidationError("order_items", "Price must be greater than 0 for all items")
        if has_sub_cent_digits(item.price):
            raise ValidationError("order_items", "Price cannot have more than 2 decimal places")

    calculated_total = sum((item.line_total for item in request.order_items), Decimal("0"))
    if calculated_total != request.amount:
        raise ValidationError("order_items", "Total amount does not match order items total")


def validate_payment_request(request: PaymentRequest, today: date | None = None) -> None:
    """Raise `ValidationError` for the first rule `request` breaks."""

    validate_cardholder_name(request.cardholder_name)
    validate_card_number(request.card_number)
    validate_expiry_date(request.expiry_date, today=today)
    validate_cvv(request.cvv)
    validate_amount(request.amount)
    validate_order_items(request)
