"""Persistent WebSocket connection with automatic reconnection.

Lifecycle:
    DISCONNECTED -> CONNECTING -> OPEN -> RETRYING -> CONNECTING -> ...

An unclean closure (network drop, failed open, protocol error) moves to
RETRYING and arms a single reconnect attempt after ``reconnect_delay``. A
clean close from the server, or an explicit ``close()``, ends in DISCONNECTED
with no retry.

Frames are delivered to listeners one at a time on the event loop, in the
order the socket yields them.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Awaitable, Callable, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from marketsync.errors import ConnectionLostError, NotConnectedError
from marketsync.models import ConnectionState
from marketsync.notifications import NotificationCenter


log = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0
DEFAULT_MAX_RECONNECT_DELAY = 30.0
CONNECTION_TIMEOUT = 10.0
RECONNECTING_MESSAGE = "Connection lost, reconnecting..."


class Socket(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


Connector = Callable[[str], Awaitable[Socket]]
FrameListener = Callable[[str], Awaitable[None]]
OpenListener = Callable[[], Awaitable[None]]
StateListener = Callable[[ConnectionState], None]


def websocket_connector(url: str) -> Awaitable[Socket]:
    return websockets.connect(
        url,
        open_timeout=CONNECTION_TIMEOUT,
        close_timeout=5,
        max_size=2**20,
    )


class ConnectionManager:
    """Owns the single duplex connection for one client."""

    def __init__(
        self,
        url: str,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        backoff_factor: float = 1.0,
        max_reconnect_delay: float = DEFAULT_MAX_RECONNECT_DELAY,
        connector: Connector | None = None,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.backoff_factor = max(1.0, backoff_factor)
        self.max_reconnect_delay = max(reconnect_delay, max_reconnect_delay)
        self._connector: Connector = connector or websocket_connector
        self._notifications = notifications

        self._state = ConnectionState.DISCONNECTED
        self._socket: Socket | None = None
        self._reader: asyncio.Task | None = None
        self._retry_task: asyncio.Task | None = None
        self._closed = False
        self._next_delay = reconnect_delay

        self._listeners: list[FrameListener] = []
        self._open_listeners: list[OpenListener] = []
        self._state_listeners: list[StateListener] = []

    # -------- Observers --------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    # Registering the same callback twice is a no-op, never a double delivery.

    def add_listener(self, listener: FrameListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: FrameListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_open_listener(self, listener: OpenListener) -> None:
        if listener not in self._open_listeners:
            self._open_listeners.append(listener)

    def add_state_listener(self, listener: StateListener) -> None:
        if listener not in self._state_listeners:
            self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        log.info("CONNECTION_STATE from=%s to=%s url=%s", self._state.value, state.value, self.url)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                log.exception("STATE_LISTENER_ERROR state=%s", state.value)

    # -------- Lifecycle --------

    async def connect(self) -> None:
        """Open the connection. No-op while already connecting or open."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        self._closed = False
        self._cancel_retry()
        await self._open()

    async def send(self, frame: str) -> None:
        socket = self._socket
        if self._state is not ConnectionState.OPEN or socket is None:
            raise NotConnectedError(f"cannot send while {self._state.value}")
        log.debug("SEND frame=%.200s", frame)
        try:
            await socket.send(frame)
        except ConnectionClosed as e:
            # The reader sees the same closure and drives the retry.
            raise NotConnectedError("connection closed during send") from e

    async def close(self) -> None:
        """Tear down deterministically: listeners first, then timers, then the socket."""
        self._closed = True
        self._listeners.clear()
        self._open_listeners.clear()
        self._cancel_retry()

        reader, self._reader = self._reader, None
        socket, self._socket = self._socket, None
        self._set_state(ConnectionState.DISCONNECTED)

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if socket is not None:
            try:
                await socket.close()
            except Exception as e:
                log.debug("SOCKET_CLOSE_ERROR error=%s", e)

    async def _open(self) -> None:
        if self._socket is not None:
            raise RuntimeError("a socket is already open on this connection")
        self._set_state(ConnectionState.CONNECTING)
        try:
            socket = await self._connector(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("CONNECT_FAILED url=%s error=%s", self.url, e)
            self._on_unclean_close(ConnectionLostError(e))
            return

        if self._closed:
            # close() ran while the handshake was in flight.
            await socket.close()
            return

        self._socket = socket
        self._next_delay = self.reconnect_delay
        self._set_state(ConnectionState.OPEN)
        self._reader = asyncio.create_task(self._read_loop(socket))

        for listener in list(self._open_listeners):
            if self._socket is not socket:
                break
            try:
                await listener()
            except Exception:
                log.exception("OPEN_LISTENER_ERROR")

    async def _read_loop(self, socket: Socket) -> None:
        error: BaseException | None = None
        try:
            async for message in socket:
                if self._socket is not socket:
                    break
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                log.debug("RECV frame=%.200s", message)
                for listener in list(self._listeners):
                    if self._socket is not socket:
                        break
                    try:
                        await listener(message)
                    except Exception:
                        log.exception("FRAME_LISTENER_ERROR frame=%.200s", message)
        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK:
            pass
        except Exception as e:
            error = e

        if self._socket is not socket:
            return
        self._socket = None
        self._reader = None

        if error is None:
            log.info("CONNECTION_CLOSED clean=true url=%s", self.url)
            self._set_state(ConnectionState.DISCONNECTED)
            return
        self._on_unclean_close(ConnectionLostError(error))

    # -------- Reconnection --------

    def _on_unclean_close(self, error: ConnectionLostError) -> None:
        if self._closed:
            self._set_state(ConnectionState.DISCONNECTED)
            return
        delay = self._next_delay
        self._next_delay = min(delay * self.backoff_factor, self.max_reconnect_delay)
        log.warning("CONNECTION_LOST retry_in=%.1fs error=%s", delay, error)
        self._set_state(ConnectionState.RETRYING)
        if self._notifications is not None:
            self._notifications.error(RECONNECTING_MESSAGE)
        self._retry_task = asyncio.create_task(self._retry_after(delay))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._retry_task = None
        if self._closed or self._state is not ConnectionState.RETRYING:
            return
        log.info("RECONNECT_ATTEMPT url=%s", self.url)
        await self._open()

    def _cancel_retry(self) -> None:
        task, self._retry_task = self._retry_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
