"""Typed server-to-client events.

One dataclass per frame type. The codec never hands out raw field lists: a
frame either becomes one of these, an ``UnknownEvent`` or a ``MalformedEvent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from marketsync.models import Item


@dataclass(frozen=True)
class LoginSuccess:
    token: str
    is_admin: bool


@dataclass(frozen=True)
class ItemsList:
    items: tuple[Item, ...]


@dataclass(frozen=True)
class ItemUpdate:
    item: Item


@dataclass(frozen=True)
class CartRecord:
    item_id: str
    name: str
    price: float
    quantity: int


@dataclass(frozen=True)
class CartItems:
    records: tuple[CartRecord, ...]


@dataclass(frozen=True)
class CartUpdated:
    message: str


@dataclass(frozen=True)
class OrderCreated:
    order_id: str


@dataclass(frozen=True)
class PaymentSuccess:
    transaction_id: str


@dataclass(frozen=True)
class OrderLineRecord:
    item_id: str
    quantity: int
    price: float


@dataclass(frozen=True)
class OrderRecord:
    id: str
    total_amount: float
    status: str
    lines: tuple[OrderLineRecord, ...]


@dataclass(frozen=True)
class OrdersList:
    orders: tuple[OrderRecord, ...]


@dataclass(frozen=True)
class AuctionEnded:
    item_id: str
    final_bid: float
    winner_id: str


@dataclass(frozen=True)
class AdminSuccess:
    message: str


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class UnknownEvent:
    type: str
    raw: str


@dataclass(frozen=True)
class MalformedEvent:
    raw: str
    reason: str


ServerEvent = Union[
    LoginSuccess,
    ItemsList,
    ItemUpdate,
    CartItems,
    CartUpdated,
    OrderCreated,
    PaymentSuccess,
    OrdersList,
    AuctionEnded,
    AdminSuccess,
    ErrorEvent,
    UnknownEvent,
    MalformedEvent,
]
