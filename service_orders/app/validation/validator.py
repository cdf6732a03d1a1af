"""
Order validation.

Checks run in a fixed order (order fields, delivery, payment, items, dates,
cross-field totals) and stop at the first violation, which is raised as a
``ValidationError`` carrying the offending field.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from shared.errors import ValidationError
from ..models import Delivery, Item, Order, Payment, expected_total_price

RESERVED_ORDER_UIDS = frozenset({"test", "demo"})

FUTURE_GRACE = timedelta(hours=24)
MAX_ORDER_AGE = timedelta(days=10 * 365)
# BIGINT column range
MAX_INT64 = 2 ** 63 - 1

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_PHONE_RE = re.compile(r"^\+[0-9]{4,19}$")


def _fail(field: str, message: str):
    raise ValidationError(f"{field}: {message}", details={"field": field})


def _require(value: str, field: str):
    if not value:
        _fail(field, "is required")


def _check_length(value: str, field: str, min_len: int, max_len: int):
    if len(value) < min_len or len(value) > max_len:
        _fail(field, f"must be between {min_len} and {max_len} characters")


def _check_int64(value: int, field: str):
    if value > MAX_INT64:
        _fail(field, f"must be at most {MAX_INT64}")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def is_valid_phone(phone: str) -> bool:
    return bool(_PHONE_RE.match(phone))


def validate_order(order: Optional[Order], now: Optional[datetime] = None) -> None:
    """
    Validate an order decoded from the queue.

    Args:
        order: The decoded order.
        now: Reference wall clock for the temporal rules; defaults to the
            current UTC time.

    Raises:
        ValidationError: On the first rule the order violates.
    """
    if order is None:
        _fail("order", "is required")
    if now is None:
        now = datetime.now(timezone.utc)

    _validate_order_fields(order)
    _validate_delivery(order.delivery)
    _validate_payment(order.payment)
    _validate_items(order.items)
    _validate_dates(order, now)
    _validate_totals(order)


def validate_order_for_api(order: Optional[Order], now: Optional[datetime] = None) -> None:
    """Stricter validation for orders submitted over the API."""
    if order is not None and order.order_uid in RESERVED_ORDER_UIDS:
        _fail("order_uid", f"'{order.order_uid}' is reserved")

    validate_order(order, now)


def _validate_order_fields(order: Order):
    _require(order.order_uid, "order_uid")
    _check_length(order.order_uid, "order_uid", 5, 50)

    _require(order.track_number, "track_number")
    _check_length(order.track_number, "track_number", 5, 30)

    _require(order.entry, "entry")

    _require(order.locale, "locale")
    if len(order.locale) != 2:
        _fail("locale", "must be exactly 2 characters")

    _require(order.customer_id, "customer_id")
    _require(order.delivery_service, "delivery_service")

    if order.sm_id <= 0:
        _fail("sm_id", "must be positive")
    _check_int64(order.sm_id, "sm_id")


def _validate_delivery(delivery: Delivery):
    _require(delivery.name, "delivery.name")
    if len(delivery.name) > 100:
        _fail("delivery.name", "must be at most 100 characters")

    _require(delivery.phone, "delivery.phone")
    if not is_valid_phone(delivery.phone):
        _fail("delivery.phone", "must be '+' followed by 4 to 19 digits")

    _require(delivery.zip, "delivery.zip")
    _require(delivery.city, "delivery.city")
    _require(delivery.address, "delivery.address")
    _require(delivery.region, "delivery.region")

    if delivery.email and not is_valid_email(delivery.email):
        _fail("delivery.email", "is not a valid email address")


def _validate_payment(payment: Payment):
    _require(payment.transaction, "payment.transaction")

    _require(payment.currency, "payment.currency")
    if len(payment.currency) != 3:
        _fail("payment.currency", "must be a 3-letter code (e.g. USD)")
    if payment.currency != payment.currency.upper():
        _fail("payment.currency", "must be uppercase")

    _require(payment.provider, "payment.provider")

    if payment.amount <= 0:
        _fail("payment.amount", "must be positive")
    if payment.payment_dt <= 0:
        _fail("payment.payment_dt", "must be positive")

    _require(payment.bank, "payment.bank")

    if payment.delivery_cost < 0:
        _fail("payment.delivery_cost", "must not be negative")
    if payment.goods_total <= 0:
        _fail("payment.goods_total", "must be positive")
    if payment.custom_fee < 0:
        _fail("payment.custom_fee", "must not be negative")
    for name in ("amount", "delivery_cost", "goods_total", "custom_fee"):
        _check_int64(getattr(payment, name), f"payment.{name}")


def _validate_items(items: List[Item]):
    if not items:
        _fail("items", "order must contain at least one item")

    for i, item in enumerate(items):
        prefix = f"items[{i}]"
        if item.chrt_id <= 0:
            _fail(f"{prefix}.chrt_id", "must be positive")
        if item.price <= 0:
            _fail(f"{prefix}.price", "must be positive")
        _require(item.name, f"{prefix}.name")
        if item.sale < 0 or item.sale > 100:
            _fail(f"{prefix}.sale", "must be between 0 and 100")
        if item.total_price <= 0:
            _fail(f"{prefix}.total_price", "must be positive")
        if item.nm_id <= 0:
            _fail(f"{prefix}.nm_id", "must be positive")
        _require(item.brand, f"{prefix}.brand")
        if item.status < 0:
            _fail(f"{prefix}.status", "must not be negative")
        for name in ("chrt_id", "price", "total_price", "nm_id", "status"):
            _check_int64(getattr(item, name), f"{prefix}.{name}")


def _validate_dates(order: Order, now: datetime):
    if order.date_created is None:
        _fail("date_created", "is required")

    created = order.date_created
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)

    if created > now + FUTURE_GRACE:
        _fail("date_created", "must not be in the future")
    if created < now - MAX_ORDER_AGE:
        _fail("date_created", "must not be older than 10 years")

    # compared as unix seconds; out-of-range values would overflow datetime
    if order.payment.payment_dt > (now + FUTURE_GRACE).timestamp():
        _fail("payment.payment_dt", "must not be in the future")


def _validate_totals(order: Order):
    goods_total = 0
    for i, item in enumerate(order.items):
        expected = expected_total_price(item.price, item.sale)
        if item.total_price != expected:
            _fail(
                f"items[{i}].total_price",
                f"expected {expected} for price {item.price} with sale {item.sale}, got {item.total_price}"
            )
        goods_total += item.total_price

    payment = order.payment
    if payment.goods_total != goods_total:
        _fail("payment.goods_total", f"expected {goods_total} (sum of item totals), got {payment.goods_total}")

    expected_amount = payment.goods_total + payment.delivery_cost + payment.custom_fee
    if payment.amount != expected_amount:
        _fail(
            "payment.amount",
            f"expected {expected_amount} (goods_total + delivery_cost + custom_fee), got {payment.amount}"
        )
