"""Local mirrors of the server-owned catalog, cart and orders.

``reduce`` is a pure function of (mirrors, event). ``react`` says what an event
asks the client to do next (re-fetch, pay, tell the user). ``Reconciler``
holds the current snapshot and publishes it to subscribers on every change.

Merge rules:
- ITEMS_LIST, CART_ITEMS, ORDERS_LIST replace their collection wholesale.
- ITEM_UPDATE upserts one item, last write wins, unless both sides carry a
  version and the incoming one is older.
- Everything else leaves the mirrors alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Mapping

from marketsync.models import CartLine, Item, ListingType, Mirrors, Order, Severity
from marketsync.protocol.events import (
    AdminSuccess,
    AuctionEnded,
    CartItems,
    CartUpdated,
    ErrorEvent,
    ItemsList,
    ItemUpdate,
    OrderCreated,
    OrdersList,
    PaymentSuccess,
    ServerEvent,
)


log = logging.getLogger(__name__)

SnapshotListener = Callable[[Mirrors], None]


class Refresh(str, Enum):
    CATALOG = "catalog"
    CART = "cart"
    ORDERS = "orders"


@dataclass(frozen=True)
class Reaction:
    """Follow-up work implied by an event."""
    refresh: tuple[Refresh, ...] = ()
    pay_order_id: str | None = None
    message: str | None = None
    severity: Severity | None = None

    @property
    def is_empty(self) -> bool:
        return not self.refresh and self.pay_order_id is None and self.message is None


NO_REACTION = Reaction()


# ---------------------------
# Reducer
# ---------------------------

def _placeholder_item(item_id: str, name: str, price: float) -> Item:
    # Keeps a cart line renderable before the catalog has arrived.
    return Item(id=item_id, name=name, listing_type=ListingType.FIXED, fixed_price=price, inventory=0)


def _relink_cart(cart: Mapping[str, CartLine], catalog: Mapping[str, Item]) -> dict[str, CartLine]:
    out: dict[str, CartLine] = {}
    for item_id, line in cart.items():
        item = catalog.get(item_id)
        out[item_id] = replace(line, item=item) if item is not None and item != line.item else line
    return out


def _is_stale(stored: Item | None, incoming: Item) -> bool:
    if stored is None or stored.version is None or incoming.version is None:
        return False
    return incoming.version < stored.version


def reduce(mirrors: Mirrors, event: ServerEvent) -> Mirrors:
    """Apply one event; returns ``mirrors`` itself when nothing changes."""
    if isinstance(event, ItemsList):
        catalog = {item.id: item for item in event.items}
        return replace(mirrors, catalog=catalog, cart=_relink_cart(mirrors.cart, catalog))

    if isinstance(event, ItemUpdate):
        incoming = event.item
        stored = mirrors.catalog.get(incoming.id)
        if _is_stale(stored, incoming):
            log.info(
                "STALE_ITEM_UPDATE id=%s incoming_version=%s stored_version=%s",
                incoming.id,
                incoming.version,
                stored.version if stored else None,
            )
            return mirrors
        if stored == incoming:
            return mirrors
        catalog = dict(mirrors.catalog)
        catalog[incoming.id] = incoming
        return replace(mirrors, catalog=catalog, cart=_relink_cart(mirrors.cart, catalog))

    if isinstance(event, CartItems):
        cart: dict[str, CartLine] = {}
        for rec in event.records:
            if rec.quantity <= 0:
                continue
            item = mirrors.catalog.get(rec.item_id) or _placeholder_item(rec.item_id, rec.name, rec.price)
            cart[rec.item_id] = CartLine(item=item, quantity=rec.quantity, price=rec.price)
        return replace(mirrors, cart=cart)

    if isinstance(event, OrdersList):
        orders: list[Order] = []
        for rec in event.orders:
            lines: list[CartLine] = []
            for line in rec.lines:
                item = mirrors.catalog.get(line.item_id)
                if item is None:
                    log.debug("ORDER_LINE_UNRESOLVED order=%s item=%s", rec.id, line.item_id)
                    continue
                lines.append(CartLine(item=item, quantity=line.quantity, price=line.price))
            orders.append(
                Order(id=rec.id, total_amount=rec.total_amount, status=rec.status, lines=tuple(lines))
            )
        return replace(mirrors, orders=tuple(orders))

    return mirrors


def react(mirrors: Mirrors, event: ServerEvent) -> Reaction:
    if isinstance(event, CartUpdated):
        return Reaction(
            refresh=(Refresh.CART,),
            message=event.message or "Cart updated",
            severity=Severity.SUCCESS,
        )
    if isinstance(event, OrderCreated):
        return Reaction(
            refresh=(Refresh.CART, Refresh.ORDERS),
            pay_order_id=event.order_id,
            message=f"Order {event.order_id} created, processing payment",
            severity=Severity.SUCCESS,
        )
    if isinstance(event, PaymentSuccess):
        return Reaction(
            refresh=(Refresh.CART, Refresh.ORDERS),
            message=f"Payment successful (transaction {event.transaction_id})",
            severity=Severity.SUCCESS,
        )
    if isinstance(event, AuctionEnded):
        item = mirrors.catalog.get(event.item_id)
        label = item.name if item is not None else event.item_id
        winner = event.winner_id or "no bidder"
        return Reaction(
            message=f"Auction for {label} ended at ${event.final_bid:.2f}, won by {winner}",
            severity=Severity.SUCCESS,
        )
    if isinstance(event, AdminSuccess):
        return Reaction(
            refresh=(Refresh.CATALOG,),
            message=event.message or "Admin action succeeded",
            severity=Severity.SUCCESS,
        )
    if isinstance(event, ErrorEvent):
        return Reaction(message=event.message or "Server error", severity=Severity.ERROR)
    return NO_REACTION


# ---------------------------
# Store
# ---------------------------

class Reconciler:
    """Single owner of the mirrors."""

    def __init__(self, mirrors: Mirrors | None = None) -> None:
        self._mirrors = mirrors or Mirrors()
        self._subscribers: list[SnapshotListener] = []

    @property
    def snapshot(self) -> Mirrors:
        return self._mirrors

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._subscribers.append(listener)

        def _unsubscribe() -> None:
            if listener in self._subscribers:
                self._subscribers.remove(listener)

        return _unsubscribe

    def apply(self, event: ServerEvent) -> Reaction:
        before = self._mirrors
        after = reduce(before, event)
        if after is not before and after != before:
            self._mirrors = after
            log.debug(
                "MIRRORS_UPDATED event=%s items=%d cart=%d orders=%d",
                type(event).__name__,
                len(after.catalog),
                len(after.cart),
                len(after.orders),
            )
            self._publish()
        return react(self._mirrors, event)

    def reset(self) -> None:
        if self._mirrors == Mirrors():
            return
        self._mirrors = Mirrors()
        self._publish()

    def _publish(self) -> None:
        for listener in list(self._subscribers):
            try:
                listener(self._mirrors)
            except Exception:
                log.exception("SNAPSHOT_LISTENER_ERROR")
