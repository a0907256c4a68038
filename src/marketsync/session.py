"""Login handshake and steady-state event routing.

The authenticator sits between the connection and the router. While a LOGIN
is outstanding it waits for the next LOGIN_SUCCESS or ERROR; any other event
that arrives in the meantime is held and replayed to the router, in order,
once the handshake resolves.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable

from marketsync.connection import ConnectionManager
from marketsync.errors import NotConnectedError, ServerError, ValidationError
from marketsync.models import Session
from marketsync.notifications import NotificationCenter
from marketsync.protocol.codec import decode, encode
from marketsync.protocol.commands import GetCart, GetItems, GetOrders, Login
from marketsync.protocol.events import ErrorEvent, LoginSuccess, ServerEvent


log = logging.getLogger(__name__)

EventRouter = Callable[[ServerEvent], Awaitable[None]]

LOGIN_OK_MESSAGE = "Login successful!"
LOGIN_INTERRUPTED_MESSAGE = "Login interrupted, please try again"


class AuthState(str, Enum):
    IDLE = "idle"
    AWAITING_AUTH_REPLY = "awaiting_auth_reply"
    AUTHENTICATED = "authenticated"


class SessionAuthenticator:
    def __init__(
        self,
        connection: ConnectionManager,
        router: EventRouter,
        *,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self._connection = connection
        self._router = router
        self._notifications = notifications
        self._state = AuthState.IDLE
        self._session: Session | None = None
        self._pending: list[ServerEvent] = []
        self.last_error: ServerError | None = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    def attach(self) -> None:
        """Register as the connection's frame and open listener."""
        self._connection.add_listener(self.handle_frame)
        self._connection.add_open_listener(self.on_open)

    # -------- Handshake --------

    async def login(self, username: str, password: str) -> None:
        if self._state is AuthState.AWAITING_AUTH_REPLY:
            raise ValidationError("Login already in progress")
        if self._session is not None:
            raise ValidationError("Already logged in, log out first")
        if not username or not password:
            raise ValidationError("Please enter both username and password")

        try:
            frame = encode(Login(username=username, password=password))
        except ValueError as e:
            raise ValidationError("Username and password may not contain '|' or line breaks") from e
        self.last_error = None
        self._state = AuthState.AWAITING_AUTH_REPLY
        self._pending = []
        try:
            await self._connection.send(frame)
        except Exception:
            self._state = AuthState.IDLE
            raise
        log.info("LOGIN_SENT username=%s", username)

    async def logout(self) -> None:
        """Forget the session locally; the server is not told.

        Events held for a pending handshake are still handed to the router.
        """
        self._session = None
        self._state = AuthState.IDLE
        log.info("LOGOUT pending=%d", len(self._pending))
        await self._replay()

    async def handle_frame(self, raw: str) -> None:
        await self.handle_event(decode(raw))

    async def handle_event(self, event: ServerEvent) -> None:
        if self._state is AuthState.AWAITING_AUTH_REPLY:
            if isinstance(event, LoginSuccess):
                await self._complete(event)
            elif isinstance(event, ErrorEvent):
                await self._fail(event)
            else:
                self._pending.append(event)
                log.debug("HANDSHAKE_BUFFERED event=%s", type(event).__name__)
            return

        if isinstance(event, LoginSuccess):
            log.warning("UNSOLICITED_LOGIN_SUCCESS ignored")
            return
        await self._router(event)

    async def _complete(self, event: LoginSuccess) -> None:
        self._session = Session(token=event.token, is_admin=event.is_admin)
        self._state = AuthState.AUTHENTICATED
        log.info("LOGIN_SUCCESS admin=%s", event.is_admin)
        if self._notifications is not None:
            self._notifications.success(LOGIN_OK_MESSAGE)
        await self.bootstrap()
        await self._replay()

    async def _fail(self, event: ErrorEvent) -> None:
        self._state = AuthState.IDLE
        self.last_error = ServerError(event.message or "Login failed")
        log.warning("LOGIN_FAILED message=%s", event.message)
        if self._notifications is not None:
            self._notifications.error(event.message or "Login failed")
        await self._replay()

    async def _replay(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            await self._router(event)

    # -------- Bootstrap --------

    async def on_open(self) -> None:
        if self._state is AuthState.AWAITING_AUTH_REPLY:
            # The reply belonged to the old socket and will never arrive.
            self._state = AuthState.IDLE
            log.warning("LOGIN_INTERRUPTED by reconnect")
            if self._notifications is not None:
                self._notifications.error(LOGIN_INTERRUPTED_MESSAGE)
            await self._replay()
        await self.bootstrap()

    async def bootstrap(self) -> None:
        """Repopulate the mirrors. Credentials are never re-sent."""
        commands = [GetItems()]
        if self._session is not None:
            commands += [GetCart(token=self._session.token), GetOrders(token=self._session.token)]
        try:
            for command in commands:
                await self._connection.send(encode(command))
        except NotConnectedError as e:
            log.warning("BOOTSTRAP_ABORTED error=%s", e)
            return
        log.info("BOOTSTRAP_SENT commands=%s", ",".join(c.TYPE for c in commands))
