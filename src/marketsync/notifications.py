from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from marketsync.models import Notification, Severity


log = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5.0

NotificationListener = Callable[[Notification | None], None]


class NotificationCenter:
    """Single-slot notification channel.

    A new notification replaces the visible one. Each one expires after
    ``ttl_seconds`` whether or not it was replaced; subscribers get ``None``
    when the slot empties.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._current: Notification | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[NotificationListener] = []

    @property
    def current(self) -> Notification | None:
        if self._current is not None and self._current.is_expired(self._clock()):
            self._clear()
        return self._current

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def success(self, message: str) -> Notification:
        return self.post(message, Severity.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.post(message, Severity.ERROR)

    def post(self, message: str, severity: Severity) -> Notification:
        now = self._clock()
        notification = Notification(
            message=message,
            severity=severity,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        log.info("NOTIFY severity=%s message=%s", severity.value, message)
        self._cancel_timer()
        self._current = notification
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._timer = loop.call_later(self.ttl_seconds, self._expire, notification)
        self._publish(notification)
        return notification

    def dismiss(self) -> None:
        if self._current is not None:
            self._clear()

    def _expire(self, notification: Notification) -> None:
        self._timer = None
        if self._current is notification:
            self._clear()

    def _clear(self) -> None:
        self._cancel_timer()
        self._current = None
        self._publish(None)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish(self, notification: Notification | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                log.exception("NOTIFY_LISTENER_ERROR")
