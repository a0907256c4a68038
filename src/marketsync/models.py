from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    RETRYING = "retrying"


class ListingType(str, Enum):
    AUCTION = "auction"
    FIXED = "fixed"


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Session:
    token: str
    is_admin: bool = False


@dataclass(frozen=True)
class Item:
    """One catalog entry as last pushed by the server."""
    id: str
    name: str
    listing_type: ListingType
    current_bid: float = 0.0
    fixed_price: float = 0.0
    inventory: int = 0
    bidder_id: str | None = None
    end_time: int | None = None   # epoch seconds; None for fixed-price listings
    version: int | None = None    # not always populated by the server
    description: str = ""

    @property
    def is_auction(self) -> bool:
        return self.listing_type is ListingType.AUCTION

    def has_ended(self, now: float | None = None) -> bool:
        if self.end_time is None:
            return False
        if now is None:
            now = time.time()
        return self.end_time < now


@dataclass(frozen=True)
class CartLine:
    item: Item
    quantity: int
    price: float

    @property
    def item_id(self) -> str:
        return self.item.id

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


@dataclass(frozen=True)
class Order:
    id: str
    total_amount: float
    status: str
    lines: tuple[CartLine, ...] = ()

    @property
    def is_paid(self) -> bool:
        return self.status.lower() == "paid"


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Mirrors:
    """Snapshot of the three server-owned collections."""
    catalog: Mapping[str, Item] = field(default_factory=dict)
    cart: Mapping[str, CartLine] = field(default_factory=dict)
    orders: tuple[Order, ...] = ()

    @property
    def cart_total(self) -> float:
        return sum(line.subtotal for line in self.cart.values())
