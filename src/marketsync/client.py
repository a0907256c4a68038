from __future__ import annotations

import logging
import time
from typing import Callable

from marketsync.config import Settings
from marketsync.connection import DEFAULT_RECONNECT_DELAY, ConnectionManager, Connector
from marketsync.dispatcher import DEFAULT_PAYMENT_METHOD, IntentDispatcher
from marketsync.errors import MarketSyncError
from marketsync.models import ConnectionState, Mirrors, Session
from marketsync.notifications import DEFAULT_TTL_SECONDS, NotificationCenter
from marketsync.protocol.events import ServerEvent
from marketsync.reconciler import Reconciler, SnapshotListener
from marketsync.session import SessionAuthenticator


log = logging.getLogger(__name__)


class MarketClient:
    """One marketplace session: a single connection shared by every component.

    Usage:
        client = MarketClient.from_settings(Settings.load())
        await client.start()
        await client.login("alice", "secret")
        await client.dispatcher.place_bid("1", 12.50)
        ...
        await client.stop()
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        backoff_factor: float = 1.0,
        max_reconnect_delay: float = 30.0,
        notification_ttl: float = DEFAULT_TTL_SECONDS,
        payment_method: str = DEFAULT_PAYMENT_METHOD,
        connector: Connector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.notifications = NotificationCenter(notification_ttl, clock=clock)
        self.connection = ConnectionManager(
            url,
            reconnect_delay=reconnect_delay,
            backoff_factor=backoff_factor,
            max_reconnect_delay=max_reconnect_delay,
            connector=connector,
            notifications=self.notifications,
        )
        self.reconciler = Reconciler()
        self.authenticator = SessionAuthenticator(
            self.connection, self._route, notifications=self.notifications
        )
        self.dispatcher = IntentDispatcher(
            self.connection,
            self.authenticator,
            self.reconciler,
            notifications=self.notifications,
            payment_method=payment_method,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, connector: Connector | None = None) -> "MarketClient":
        return cls(
            settings.ws_url,
            reconnect_delay=settings.reconnect_delay_seconds,
            backoff_factor=settings.reconnect_backoff_factor,
            max_reconnect_delay=settings.max_reconnect_delay_seconds,
            notification_ttl=settings.notification_ttl_seconds,
            payment_method=settings.payment_method,
            connector=connector,
        )

    # -------- State --------

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def session(self) -> Session | None:
        return self.authenticator.session

    @property
    def snapshot(self) -> Mirrors:
        return self.reconciler.snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self.reconciler.subscribe(listener)

    # -------- Lifecycle --------

    async def start(self) -> None:
        if self.connection.state is not ConnectionState.DISCONNECTED:
            return
        self.authenticator.attach()
        await self.connection.connect()

    async def stop(self) -> None:
        await self.connection.close()

    async def __aenter__(self) -> "MarketClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # -------- Session --------

    async def login(self, username: str, password: str) -> None:
        try:
            await self.authenticator.login(username, password)
        except MarketSyncError as e:
            self.notifications.error(e.message)
            raise

    async def logout(self) -> None:
        """Local only: the connection stays up and the server is not told."""
        await self.authenticator.logout()
        self.reconciler.reset()
        self.notifications.success("Logged out")

    # -------- Routing --------

    async def _route(self, event: ServerEvent) -> None:
        reaction = self.reconciler.apply(event)
        if reaction.message is not None and reaction.severity is not None:
            self.notifications.post(reaction.message, reaction.severity)
        if reaction.refresh or reaction.pay_order_id is not None:
            await self.dispatcher.follow_up(reaction)
