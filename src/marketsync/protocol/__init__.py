"""
Marketplace wire protocol: typed events, typed commands and the text codec.
"""

from marketsync.protocol.codec import (
    decode,
    encode,
    split_frame,
)
from marketsync.protocol.commands import (
    AddItem,
    AddToCart,
    Bid,
    Checkout,
    ClientCommand,
    GetCart,
    GetItems,
    GetOrders,
    Login,
    Logout,
    ProcessPayment,
    UpdateCart,
)
from marketsync.protocol.events import (
    AdminSuccess,
    AuctionEnded,
    CartItems,
    CartUpdated,
    ErrorEvent,
    ItemsList,
    ItemUpdate,
    LoginSuccess,
    MalformedEvent,
    OrderCreated,
    OrdersList,
    PaymentSuccess,
    ServerEvent,
    UnknownEvent,
)

__all__ = [
    # Codec
    "decode",
    "encode",
    "split_frame",
    # Commands
    "AddItem",
    "AddToCart",
    "Bid",
    "Checkout",
    "ClientCommand",
    "GetCart",
    "GetItems",
    "GetOrders",
    "Login",
    "Logout",
    "ProcessPayment",
    "UpdateCart",
    # Events
    "AdminSuccess",
    "AuctionEnded",
    "CartItems",
    "CartUpdated",
    "ErrorEvent",
    "ItemsList",
    "ItemUpdate",
    "LoginSuccess",
    "MalformedEvent",
    "OrderCreated",
    "OrdersList",
    "PaymentSuccess",
    "ServerEvent",
    "UnknownEvent",
]
