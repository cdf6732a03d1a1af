"""
Validation package for the Order Service.

Pure, side-effect-free checks applied to decoded orders before they are
persisted: field presence and bounds, formats, temporal bounds and the
price/total arithmetic.
"""

from .validator import (
    RESERVED_ORDER_UIDS,
    is_valid_email,
    is_valid_phone,
    validate_order,
    validate_order_for_api,
)

__all__ = [
    "RESERVED_ORDER_UIDS",
    "is_valid_email",
    "is_valid_phone",
    "validate_order",
    "validate_order_for_api",
]
