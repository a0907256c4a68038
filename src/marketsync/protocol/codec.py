"""Wire codec for the marketplace text protocol.

Frames look like ``TYPE|field1|field2|...``. Repeated records (items, cart
lines, orders) are one field each, comma-joined; order lines inside an order
record are ``itemId:qty:price`` joined by ``;``.

``decode`` never raises: anything it cannot parse comes back as a
``MalformedEvent`` and unknown frame types as an ``UnknownEvent``.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from marketsync.errors import ProtocolDecodeError
from marketsync.models import Item, ListingType
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
    CartRecord,
    CartUpdated,
    ErrorEvent,
    ItemsList,
    ItemUpdate,
    LoginSuccess,
    MalformedEvent,
    OrderCreated,
    OrderLineRecord,
    OrderRecord,
    OrdersList,
    PaymentSuccess,
    ServerEvent,
    UnknownEvent,
)


log = logging.getLogger(__name__)

FIELD_SEP = "|"
RECORD_SEP = ","
ORDER_LINE_SEP = ";"
ORDER_LINE_FIELD_SEP = ":"

# Cart pushes may carry a summary record ahead of the real lines.
CART_TOTAL_PREFIX = "TOTAL"


# ---------------------------
# Field helpers
# ---------------------------

def split_frame(raw: str) -> tuple[str, list[str]]:
    """Split a frame into its type tag and remaining fields."""
    frame_type, *fields = raw.split(FIELD_SEP)
    return frame_type.strip(), fields


def _to_float(value: str, name: str) -> float:
    try:
        out = float(value)
    except ValueError:
        raise ProtocolDecodeError(f"{name} is not a number: {value!r}") from None
    if not math.isfinite(out):
        raise ProtocolDecodeError(f"{name} is not finite: {value!r}")
    return out


def _to_int(value: str, name: str, *, minimum: int | None = None) -> int:
    try:
        out = int(value)
    except ValueError:
        raise ProtocolDecodeError(f"{name} is not an integer: {value!r}") from None
    if minimum is not None and out < minimum:
        raise ProtocolDecodeError(f"{name} below {minimum}: {out}")
    return out


def _require(value: str, name: str) -> str:
    if not value:
        raise ProtocolDecodeError(f"{name} is empty")
    return value


def _expect_arity(parts: list[str], allowed: tuple[int, ...], what: str) -> None:
    if len(parts) not in allowed:
        raise ProtocolDecodeError(f"{what} expects {allowed} fields, got {len(parts)}")


def _records(fields: list[str]) -> list[str]:
    return [f for f in fields if f.strip()]


def _message(fields: list[str]) -> str:
    return FIELD_SEP.join(fields)


# ---------------------------
# Record parsers
# ---------------------------

def parse_item(record: str) -> Item:
    """Parse ``id,name,type,bid,price,inventory,bidderId,endTime[,version]``."""
    parts = record.split(RECORD_SEP)
    _expect_arity(parts, (8, 9), "item record")
    item_id, name, listing_raw, bid, price, inventory, bidder_id, end_time = parts[:8]

    try:
        listing_type = ListingType(listing_raw.strip().lower())
    except ValueError:
        raise ProtocolDecodeError(f"unknown listing type: {listing_raw!r}") from None

    end_ts = _to_int(end_time, "endTime", minimum=0) if end_time.strip() else 0
    version = None
    if len(parts) == 9 and parts[8].strip():
        version = _to_int(parts[8], "version", minimum=0)

    return Item(
        id=_require(item_id.strip(), "item id"),
        name=name,
        listing_type=listing_type,
        current_bid=_to_float(bid, "bid"),
        fixed_price=_to_float(price, "price"),
        inventory=_to_int(inventory, "inventory", minimum=0),
        bidder_id=bidder_id or None,
        end_time=end_ts or None,
        version=version,
    )


def _parse_cart_record(record: str) -> CartRecord:
    parts = record.split(RECORD_SEP)
    _expect_arity(parts, (4,), "cart record")
    item_id, name, price, quantity = parts
    return CartRecord(
        item_id=_require(item_id.strip(), "item id"),
        name=name,
        price=_to_float(price, "price"),
        quantity=_to_int(quantity, "quantity"),
    )


def _parse_order_line(chunk: str) -> OrderLineRecord:
    parts = chunk.split(ORDER_LINE_FIELD_SEP)
    _expect_arity(parts, (3,), "order line")
    item_id, quantity, price = parts
    return OrderLineRecord(
        item_id=_require(item_id.strip(), "item id"),
        quantity=_to_int(quantity, "quantity", minimum=0),
        price=_to_float(price, "price"),
    )


def _parse_order_record(record: str) -> OrderRecord:
    parts = record.split(RECORD_SEP)
    _expect_arity(parts, (3, 4), "order record")
    order_id, total, status = parts[:3]
    raw_lines = parts[3] if len(parts) == 4 else ""
    lines = tuple(
        _parse_order_line(chunk) for chunk in raw_lines.split(ORDER_LINE_SEP) if chunk.strip()
    )
    return OrderRecord(
        id=_require(order_id.strip(), "order id"),
        total_amount=_to_float(total, "total"),
        status=status.strip(),
        lines=lines,
    )


# ---------------------------
# Frame parsers
# ---------------------------

def _login_success(fields: list[str]) -> LoginSuccess:
    _expect_arity(fields, (2,), "LOGIN_SUCCESS")
    token, flag = fields
    if flag not in ("0", "1"):
        raise ProtocolDecodeError(f"admin flag must be 0 or 1, got {flag!r}")
    return LoginSuccess(token=_require(token, "token"), is_admin=flag == "1")


def _items_list(fields: list[str]) -> ItemsList:
    return ItemsList(items=tuple(parse_item(r) for r in _records(fields)))


def _item_update(fields: list[str]) -> ItemUpdate:
    _expect_arity(fields, (1,), "ITEM_UPDATE")
    return ItemUpdate(item=parse_item(fields[0]))


def _cart_items(fields: list[str]) -> CartItems:
    records = [
        _parse_cart_record(r)
        for r in _records(fields)
        if not r.strip().upper().startswith(CART_TOTAL_PREFIX)
    ]
    return CartItems(records=tuple(records))


def _single_id(frame_type: str, fields: list[str]) -> str:
    _expect_arity(fields, (1,), frame_type)
    return _require(fields[0].strip(), f"{frame_type} id")


def _orders_list(fields: list[str]) -> OrdersList:
    return OrdersList(orders=tuple(_parse_order_record(r) for r in _records(fields)))


def _auction_ended(fields: list[str]) -> AuctionEnded:
    # Normally a single comma-joined record; tolerate the fields arriving split.
    parts = fields[0].split(RECORD_SEP) if len(fields) == 1 else list(fields)
    _expect_arity(parts, (4,), "AUCTION_ENDED")
    item_id, _name, final_bid, winner_id = parts
    return AuctionEnded(
        item_id=_require(item_id.strip(), "item id"),
        final_bid=_to_float(final_bid, "finalBid"),
        winner_id=winner_id,
    )


_PARSERS: dict[str, Callable[[list[str]], ServerEvent]] = {
    "LOGIN_SUCCESS": _login_success,
    "ITEMS_LIST": _items_list,
    "ITEM_UPDATE": _item_update,
    "CART_ITEMS": _cart_items,
    "CART_UPDATED": lambda fields: CartUpdated(message=_message(fields)),
    "ORDER_CREATED": lambda fields: OrderCreated(order_id=_single_id("ORDER_CREATED", fields)),
    "PAYMENT_SUCCESS": lambda fields: PaymentSuccess(
        transaction_id=_single_id("PAYMENT_SUCCESS", fields)
    ),
    "ORDERS_LIST": _orders_list,
    "AUCTION_ENDED": _auction_ended,
    "ADMIN_SUCCESS": lambda fields: AdminSuccess(message=_message(fields)),
    "ERROR": lambda fields: ErrorEvent(message=_message(fields)),
}


def decode(raw: str) -> ServerEvent:
    """Decode one frame into a typed event."""
    frame_type, fields = split_frame(raw)
    parser = _PARSERS.get(frame_type)
    if parser is None:
        log.warning("UNKNOWN_FRAME type=%s raw=%.200s", frame_type, raw)
        return UnknownEvent(type=frame_type, raw=raw)
    try:
        return parser(fields)
    except ProtocolDecodeError as e:
        log.warning("MALFORMED_FRAME type=%s reason=%s raw=%.200s", frame_type, e.message, raw)
        return MalformedEvent(raw=raw, reason=e.message)


# ---------------------------
# Encoding
# ---------------------------

def _text(value: str) -> str:
    if FIELD_SEP in value or "\n" in value or "\r" in value:
        raise ValueError(f"field may not contain '|' or newlines: {value!r}")
    return value


def _number(value: float | int) -> str:
    if isinstance(value, bool):
        raise ValueError("booleans are not numeric fields")
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise ValueError(f"numeric field must be finite: {value!r}")
    # repr gives the shortest string that round-trips exactly.
    return repr(float(value))


def _command_fields(command: ClientCommand) -> list[str]:
    if isinstance(command, Login):
        return [_text(command.username), _text(command.password)]
    if isinstance(command, GetItems):
        return []
    if isinstance(command, (GetCart, GetOrders, Checkout)):
        return [_text(command.token)]
    if isinstance(command, Bid):
        return [_text(command.item_id), _number(command.amount), _text(command.token)]
    if isinstance(command, (AddToCart, UpdateCart)):
        return [_text(command.item_id), _number(command.quantity), _text(command.token)]
    if isinstance(command, ProcessPayment):
        return [_text(command.order_id), _text(command.method), _text(command.token)]
    if isinstance(command, AddItem):
        out = [
            _text(command.token),
            AddItem.ACTION,
            _text(command.name),
            command.listing_type.value,
            _number(command.price),
            _number(command.inventory),
            _text(command.description),
        ]
        if command.duration is not None:
            out.append(_number(command.duration))
        return out
    if isinstance(command, Logout):
        raise ValueError("Logout is local only and has no wire form")
    raise TypeError(f"not a client command: {command!r}")


def encode(command: ClientCommand) -> str:
    """Encode a command into the exact frame the server expects."""
    return FIELD_SEP.join([command.TYPE, *_command_fields(command)])
