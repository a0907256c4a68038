from __future__ import annotations

import asyncio
import logging

from marketsync.client import MarketClient
from marketsync.config import Settings
from marketsync.errors import MarketSyncError
from marketsync.models import ConnectionState, Mirrors, Notification


log = logging.getLogger("marketsync")


def _log_snapshot(mirrors: Mirrors) -> None:
    log.info(
        "SNAPSHOT items=%d cart_lines=%d cart_total=%.2f orders=%d",
        len(mirrors.catalog),
        len(mirrors.cart),
        mirrors.cart_total,
        len(mirrors.orders),
    )
    for item in mirrors.catalog.values():
        if item.is_auction:
            log.info("  AUCTION id=%s name=%s bid=%.2f bidder=%s", item.id, item.name, item.current_bid, item.bidder_id)
        else:
            log.info("  FIXED id=%s name=%s price=%.2f stock=%d", item.id, item.name, item.fixed_price, item.inventory)


def _log_notification(notification: Notification | None) -> None:
    if notification is not None:
        log.info("NOTICE [%s] %s", notification.severity.value, notification.message)


async def _wait_for_open(client: MarketClient) -> None:
    opened = asyncio.Event()

    def _on_state(state: ConnectionState) -> None:
        if state is ConnectionState.OPEN:
            opened.set()

    client.connection.add_state_listener(_on_state)
    try:
        if client.state is ConnectionState.OPEN:
            return
        await opened.wait()
    finally:
        client.connection.remove_state_listener(_on_state)


async def run_app(
    *,
    url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    log_level: str | None = None,
) -> None:
    settings = Settings.load()
    logging.basicConfig(
        level=getattr(logging, (log_level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Keep output readable (these are chatty at INFO/DEBUG).
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)

    if url:
        settings.market_ws_url = url
    client = MarketClient.from_settings(settings)
    log.info("Market env=%s ws_url=%s", settings.market_env, client.connection.url)

    client.subscribe(_log_snapshot)
    client.notifications.subscribe(_log_notification)

    username = username or settings.market_username
    password = password or settings.market_password

    await client.start()
    try:
        if username and password:
            await _wait_for_open(client)
            try:
                await client.login(username, password)
            except MarketSyncError as e:
                log.error("LOGIN_REJECTED error=%s", e)
        # Runs until cancelled (Ctrl+C).
        await asyncio.Event().wait()
    finally:
        await client.stop()
