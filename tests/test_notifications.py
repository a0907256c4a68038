from __future__ import annotations

import asyncio
import sys
from pathlib import Path

_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

import pytest

from marketsync.models import Severity
from marketsync.notifications import NotificationCenter


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestNotificationCenter:
    def test_new_notification_replaces_current(self):
        center = NotificationCenter(5.0, clock=_Clock())
        center.success("first")
        center.error("second")
        assert center.current.message == "second"
        assert center.current.severity is Severity.ERROR

    def test_expires_after_ttl(self):
        clock = _Clock()
        center = NotificationCenter(5.0, clock=clock)
        note = center.success("saved")
        assert note.expires_at == 1005.0

        clock.now = 1004.9
        assert center.current is note
        clock.now = 1005.0
        assert center.current is None

    def test_subscribers_see_post_and_clear(self):
        center = NotificationCenter(5.0, clock=_Clock())
        seen = []
        center.subscribe(seen.append)
        center.success("hi")
        center.dismiss()
        assert [n.message if n else None for n in seen] == ["hi", None]

    def test_unsubscribe(self):
        center = NotificationCenter(5.0, clock=_Clock())
        seen = []
        unsubscribe = center.subscribe(seen.append)
        unsubscribe()
        center.success("hi")
        assert seen == []

    @pytest.mark.asyncio
    async def test_timer_clears_slot(self):
        center = NotificationCenter(0.01)
        seen = []
        center.subscribe(seen.append)
        center.error("oops")
        await asyncio.sleep(0.05)
        assert center.current is None
        assert seen[-1] is None

    @pytest.mark.asyncio
    async def test_replaced_notification_keeps_its_own_timer(self):
        center = NotificationCenter(0.2)
        center.success("first")
        await asyncio.sleep(0.1)
        second = center.success("second")
        await asyncio.sleep(0.15)
        # The first timer was cancelled; the second has not fired yet.
        assert center.current is second
        await asyncio.sleep(0.2)
        assert center.current is None
