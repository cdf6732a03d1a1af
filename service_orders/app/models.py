"""
Order data models for the Order Service.

Field names match the JSON wire format. Every field has a zero-value default
so that a structurally incomplete payload still decodes; completeness and
business rules are enforced by ``validation.validator``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from shared.errors import DecodeError


class Delivery(BaseModel):
    """Recipient and address."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    phone: str = ""
    zip: str = ""
    city: str = ""
    address: str = ""
    region: str = ""
    email: str = ""


class Payment(BaseModel):
    """Payment summary. Amounts are integer minor units."""
    model_config = ConfigDict(frozen=True)

    transaction: str = ""
    request_id: str = ""
    currency: str = ""
    provider: str = ""
    amount: int = 0
    payment_dt: int = 0
    bank: str = ""
    delivery_cost: int = 0
    goods_total: int = 0
    custom_fee: int = 0


class Item(BaseModel):
    """Single order line."""
    model_config = ConfigDict(frozen=True)

    chrt_id: int = 0
    track_number: str = ""
    price: int = 0
    rid: str = ""
    name: str = ""
    sale: int = 0
    size: str = ""
    total_price: int = 0
    nm_id: int = 0
    brand: str = ""
    status: int = 0


class Order(BaseModel):
    """Order aggregate, identified by ``order_uid``."""
    model_config = ConfigDict(frozen=True)

    order_uid: str = ""
    track_number: str = ""
    entry: str = ""
    delivery: Delivery = Field(default_factory=Delivery)
    payment: Payment = Field(default_factory=Payment)
    items: List[Item] = Field(default_factory=list)
    locale: str = ""
    internal_signature: str = ""
    customer_id: str = ""
    delivery_service: str = ""
    shardkey: str = ""
    sm_id: int = 0
    date_created: Optional[datetime] = None
    oof_shard: str = ""

    @classmethod
    def from_json(cls, raw: Union[bytes, str]) -> "Order":
        """Decode a JSON document into an order, raising ``DecodeError`` on failure."""
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError as e:
            raise DecodeError(
                "Order payload is not a valid order document",
                details={"errors": [
                    {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ]}
            ) from e

    def to_json(self) -> bytes:
        return self.model_dump_json().encode("utf-8")


def expected_total_price(price: int, sale: int) -> int:
    """Line total after discount; half the price when the discount leaves nothing."""
    total = price * (100 - sale) // 100
    if total <= 0:
        total = price // 2
    return total


@dataclass
class QueueMessage:
    """Message fetched from the inbound queue."""
    topic: str
    partition: int
    offset: int
    key: Optional[bytes]
    value: bytes
    timestamp: Optional[int] = None
    headers: Optional[Dict[str, bytes]] = None
