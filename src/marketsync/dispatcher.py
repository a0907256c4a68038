from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, NoReturn

from marketsync.connection import ConnectionManager
from marketsync.errors import MarketSyncError, NotConnectedError, ValidationError
from marketsync.models import ListingType, Session
from marketsync.notifications import NotificationCenter
from marketsync.protocol.codec import encode
from marketsync.protocol.commands import (
    AddItem,
    AddToCart,
    Bid,
    Checkout,
    ClientCommand,
    GetCart,
    GetItems,
    GetOrders,
    ProcessPayment,
    UpdateCart,
)
from marketsync.reconciler import Reaction, Reconciler, Refresh
from marketsync.session import SessionAuthenticator


log = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "credit_card"


@dataclass(frozen=True)
class NewItem:
    """Admin draft for a new listing. ``duration`` is in seconds, auctions only."""
    name: str
    listing_type: ListingType
    price: float
    inventory: int = 1
    description: str = ""
    duration: int | None = None


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class IntentDispatcher:
    """Turns user intents into frames.

    Every intent is checked locally first; a failed check posts an error
    notification, raises, and sends nothing. Accepted intents are sent and
    forgotten: their effect shows up in a later push.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        authenticator: SessionAuthenticator,
        reconciler: Reconciler,
        *,
        notifications: NotificationCenter | None = None,
        payment_method: str = DEFAULT_PAYMENT_METHOD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._connection = connection
        self._auth = authenticator
        self._reconciler = reconciler
        self._notifications = notifications
        self.payment_method = payment_method
        self._clock = clock

    # -------- Auction --------

    async def place_bid(self, item_id: str, amount: float) -> None:
        session = self._require_session()
        self._require_open()
        if not isinstance(amount, (int, float)) or isinstance(amount, bool) or not math.isfinite(amount):
            self._fail(ValidationError("Bid amount must be a number"))
        item = self._reconciler.snapshot.catalog.get(item_id)
        if item is None:
            self._fail(ValidationError(f"Unknown item {item_id}"))
        if not item.is_auction:
            self._fail(ValidationError(f"{item.name} is not up for auction"))
        if item.has_ended(self._clock()):
            self._fail(ValidationError(f"Auction for {item.name} has ended"))
        if amount <= item.current_bid:
            self._fail(ValidationError(f"Bid must be higher than ${item.current_bid:.2f}"))
        await self._send(Bid(item_id=item_id, amount=amount, token=session.token))

    # -------- Cart --------

    async def add_to_cart(self, item_id: str, quantity: int = 1) -> None:
        session = self._require_session()
        self._require_open()
        if not _is_int(quantity) or quantity < 1:
            self._fail(ValidationError("Quantity must be at least 1"))
        snapshot = self._reconciler.snapshot
        item = snapshot.catalog.get(item_id)
        if item is None:
            self._fail(ValidationError(f"Unknown item {item_id}"))
        in_cart = snapshot.cart[item_id].quantity if item_id in snapshot.cart else 0
        if in_cart + quantity > item.inventory:
            self._fail(ValidationError(f"Only {item.inventory} of {item.name} available"))
        await self._send(AddToCart(item_id=item_id, quantity=quantity, token=session.token))

    async def update_cart(self, item_id: str, quantity: int) -> None:
        """Set the cart quantity for an item; 0 removes the line."""
        session = self._require_session()
        self._require_open()
        snapshot = self._reconciler.snapshot
        item = snapshot.catalog.get(item_id)
        if item is None and item_id in snapshot.cart:
            item = snapshot.cart[item_id].item
        if item is None:
            self._fail(ValidationError(f"Unknown item {item_id}"))
        if not _is_int(quantity) or not 0 <= quantity <= item.inventory:
            self._fail(ValidationError(f"Quantity must be between 0 and {item.inventory}"))
        await self._send(UpdateCart(item_id=item_id, quantity=quantity, token=session.token))

    async def remove_from_cart(self, item_id: str) -> None:
        await self.update_cart(item_id, 0)

    # -------- Orders --------

    async def checkout(self) -> None:
        session = self._require_session()
        self._require_open()
        if not self._reconciler.snapshot.cart:
            self._fail(ValidationError("Cart is empty"))
        await self._send(Checkout(token=session.token))

    async def pay(self, order_id: str, method: str | None = None) -> None:
        session = self._require_session()
        self._require_open()
        method = method or self.payment_method
        if not order_id:
            self._fail(ValidationError("Missing order id"))
        if not method:
            self._fail(ValidationError("Missing payment method"))
        await self._send(ProcessPayment(order_id=order_id, method=method, token=session.token))

    # -------- Admin --------

    async def add_item(self, draft: NewItem) -> None:
        session = self._require_session(admin=True)
        self._require_open()
        name = draft.name.strip()
        if not name:
            self._fail(ValidationError("Item name is required"))
        if not isinstance(draft.price, (int, float)) or not math.isfinite(draft.price) or draft.price <= 0:
            self._fail(ValidationError("Price must be greater than 0"))
        if not _is_int(draft.inventory) or draft.inventory < 0:
            self._fail(ValidationError("Inventory cannot be negative"))
        try:
            listing_type = ListingType(draft.listing_type)
        except ValueError:
            self._fail(ValidationError(f"Unknown listing type {draft.listing_type!r}"))
        duration = None
        if listing_type is ListingType.AUCTION:
            if not _is_int(draft.duration) or draft.duration <= 0:
                self._fail(ValidationError("Auction duration is required"))
            duration = draft.duration
        await self._send(
            AddItem(
                token=session.token,
                name=name,
                listing_type=listing_type,
                price=draft.price,
                inventory=draft.inventory,
                description=draft.description,
                duration=duration,
            )
        )

    # -------- Refreshes --------

    async def refresh_catalog(self) -> None:
        self._require_open()
        await self._send(GetItems())

    async def refresh_cart(self) -> None:
        session = self._require_session()
        self._require_open()
        await self._send(GetCart(token=session.token))

    async def refresh_orders(self) -> None:
        session = self._require_session()
        self._require_open()
        await self._send(GetOrders(token=session.token))

    async def follow_up(self, reaction: Reaction) -> None:
        """Carry out the fetches and payment an event asked for."""
        steps = {
            Refresh.CATALOG: self.refresh_catalog,
            Refresh.CART: self.refresh_cart,
            Refresh.ORDERS: self.refresh_orders,
        }
        try:
            for refresh in reaction.refresh:
                await steps[refresh]()
            if reaction.pay_order_id is not None:
                await self.pay(reaction.pay_order_id)
        except MarketSyncError as e:
            log.warning("FOLLOW_UP_FAILED reaction=%s error=%s", reaction, e)

    # -------- Helpers --------

    def _require_session(self, *, admin: bool = False) -> Session:
        session = self._auth.session
        if session is None:
            self._fail(ValidationError("Please log in first"))
        if admin and not session.is_admin:
            self._fail(ValidationError("Administrator access required"))
        return session

    def _require_open(self) -> None:
        if not self._connection.is_open:
            self._fail(NotConnectedError(f"Not connected to server ({self._connection.state.value})"))

    def _fail(self, error: MarketSyncError) -> NoReturn:
        log.info("INTENT_REJECTED reason=%s", error.message)
        if self._notifications is not None:
            self._notifications.error(error.message)
        raise error

    async def _send(self, command: ClientCommand) -> None:
        try:
            frame = encode(command)
        except ValueError as e:
            # A "|" or line break in user text would split the frame.
            self._fail(ValidationError(str(e)))
        try:
            await self._connection.send(frame)
        except NotConnectedError as e:
            self._fail(e)
        log.info("INTENT_SENT type=%s", command.TYPE)
