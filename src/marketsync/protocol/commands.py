from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from marketsync.models import ListingType


@dataclass(frozen=True)
class Login:
    TYPE: ClassVar[str] = "LOGIN"
    username: str
    password: str


@dataclass(frozen=True)
class GetItems:
    TYPE: ClassVar[str] = "GET_ITEMS"


@dataclass(frozen=True)
class GetCart:
    TYPE: ClassVar[str] = "GET_CART"
    token: str


@dataclass(frozen=True)
class GetOrders:
    TYPE: ClassVar[str] = "GET_ORDERS"
    token: str


@dataclass(frozen=True)
class Bid:
    TYPE: ClassVar[str] = "BID"
    item_id: str
    amount: float
    token: str


@dataclass(frozen=True)
class AddItem:
    """Admin listing of a new item. ``duration`` (seconds) applies to auctions only."""
    TYPE: ClassVar[str] = "ADMIN"
    ACTION: ClassVar[str] = "ADD_ITEM"
    token: str
    name: str
    listing_type: ListingType
    price: float
    inventory: int
    description: str = ""
    duration: int | None = None


@dataclass(frozen=True)
class AddToCart:
    TYPE: ClassVar[str] = "ADD_TO_CART"
    item_id: str
    quantity: int
    token: str


@dataclass(frozen=True)
class UpdateCart:
    TYPE: ClassVar[str] = "UPDATE_CART"
    item_id: str
    quantity: int
    token: str


@dataclass(frozen=True)
class Checkout:
    TYPE: ClassVar[str] = "CHECKOUT"
    token: str


@dataclass(frozen=True)
class ProcessPayment:
    TYPE: ClassVar[str] = "PROCESS_PAYMENT"
    order_id: str
    method: str
    token: str


@dataclass(frozen=True)
class Logout:
    """Local only: clears the session, never goes over the wire."""
    TYPE: ClassVar[str] = "LOGOUT"


ClientCommand = Union[
    Login,
    GetItems,
    GetCart,
    GetOrders,
    Bid,
    AddItem,
    AddToCart,
    UpdateCart,
    Checkout,
    ProcessPayment,
    Logout,
]
