"""Unit tests for ConnectionManager.

Tests cover:
- Opening, idempotent connect and sending
- Ordered, sequential frame delivery
- Reconnect after an unclean drop (exactly one attempt per drop)
- No reconnect after a clean close or an explicit close()
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

import pytest

from fakes import FakeConnector, settle
from marketsync.connection import RECONNECTING_MESSAGE, ConnectionManager
from marketsync.errors import NotConnectedError
from marketsync.models import ConnectionState, Severity
from marketsync.notifications import NotificationCenter


URL = "ws://localhost:8080"


def _manager(connector: FakeConnector, **kwargs) -> ConnectionManager:
    kwargs.setdefault("reconnect_delay", 0.01)
    return ConnectionManager(URL, connector=connector, **kwargs)


class TestOpenAndSend:
    @pytest.mark.asyncio
    async def test_connect_opens(self):
        connector = FakeConnector()
        conn = _manager(connector)
        await conn.connect()
        assert conn.state is ConnectionState.OPEN
        assert conn.is_open
        assert connector.calls == 1
        await conn.close()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent_while_open(self):
        connector = FakeConnector()
        conn = _manager(connector)
        await conn.connect()
        await conn.connect()
        assert connector.calls == 1
        await conn.close()

    @pytest.mark.asyncio
    async def test_send_writes_frame(self):
        connector = FakeConnector()
        conn = _manager(connector)
        await conn.connect()
        await conn.send("GET_ITEMS")
        assert connector.latest.sent == ["GET_ITEMS"]
        await conn.close()

    @pytest.mark.asyncio
    async def test_send_while_disconnected_raises(self):
        conn = _manager(FakeConnector())
        with pytest.raises(NotConnectedError):
            await conn.send("GET_ITEMS")

    @pytest.mark.asyncio
    async def test_send_on_dead_socket_raises(self):
        connector = FakeConnector()
        conn = _manager(connector)
        await conn.connect()
        connector.latest.closed = True
        with pytest.raises(NotConnectedError):
            await conn.send("GET_ITEMS")
        await conn.close()

    @pytest.mark.asyncio
    async def test_open_listener_runs_on_each_open(self):
        connector = FakeConnector()
        conn = _manager(connector)
        opened = []

        async def _on_open() -> None:
            opened.append(conn.state)

        conn.add_open_listener(_on_open)
        await conn.connect()
        connector.latest.drop()
        await asyncio.sleep(0.05)

        assert opened == [ConnectionState.OPEN, ConnectionState.OPEN]
        await conn.close()


class TestDelivery:
    @pytest.mark.asyncio
    async def test_frames_arrive_in_order(self):
        connector = FakeConnector()
        conn = _manager(connector)
        got: list[str] = []

        async def _listener(frame: str) -> None:
            got.append(frame)

        conn.add_listener(_listener)
        await conn.connect()
        for frame in ("A|1", "B|2", "C|3"):
            connector.latest.push(frame)
        await settle()

        assert got == ["A|1", "B|2", "C|3"]
        await conn.close()

    @pytest.mark.asyncio
    async def test_frames_are_handled_one_at_a_time(self):
        connector = FakeConnector()
        conn = _manager(connector)
        events: list[str] = []

        async def _slow(frame: str) -> None:
            events.append(f"start {frame}")
            await asyncio.sleep(0.01)
            events.append(f"end {frame}")

        conn.add_listener(_slow)
        await conn.connect()
        connector.latest.push("A")
        connector.latest.push("B")
        await asyncio.sleep(0.05)

        assert events == ["start A", "end A", "start B", "end B"]
        await conn.close()

    @pytest.mark.asyncio
    async def test_duplicate_listener_delivers_once(self):
        connector = FakeConnector()
        conn = _manager(connector)
        got: list[str] = []

        async def _listener(frame: str) -> None:
            got.append(frame)

        conn.add_listener(_listener)
        conn.add_listener(_listener)
        await conn.connect()
        connector.latest.push("A")
        await settle()

        assert got == ["A"]
        await conn.close()

    @pytest.mark.asyncio
    async def test_listener_error_does_not_stop_reader(self):
        connector = FakeConnector()
        conn = _manager(connector)
        got: list[str] = []

        async def _boom(frame: str) -> None:
            raise RuntimeError("boom")

        async def _listener(frame: str) -> None:
            got.append(frame)

        conn.add_listener(_boom)
        conn.add_listener(_listener)
        await conn.connect()
        connector.latest.push("A")
        connector.latest.push("B")
        await settle()

        assert got == ["A", "B"]
        assert conn.is_open
        await conn.close()

    @pytest.mark.asyncio
    async def test_bytes_are_decoded(self):
        connector = FakeConnector()
        conn = _manager(connector)
        got: list[str] = []

        async def _listener(frame: str) -> None:
            got.append(frame)

        conn.add_listener(_listener)
        await conn.connect()
        connector.latest.push(b"ORDER_CREATED|42")
        await settle()

        assert got == ["ORDER_CREATED|42"]
        await conn.close()


class TestReconnect:
    @pytest.mark.asyncio
    async def test_unclean_drop_retries_once(self):
        connector = FakeConnector()
        notes = NotificationCenter(5.0)
        conn = _manager(connector, reconnect_delay=0.05, notifications=notes)
        await conn.connect()

        connector.latest.drop()
        await settle()
        assert conn.state is ConnectionState.RETRYING
        assert notes.current.message == RECONNECTING_MESSAGE
        assert notes.current.severity is Severity.ERROR
        assert connector.calls == 1

        await asyncio.sleep(0.1)
        assert conn.state is ConnectionState.OPEN
        assert connector.calls == 2

        await asyncio.sleep(0.1)
        assert connector.calls == 2
        await conn.close()

    @pytest.mark.asyncio
    async def test_failed_first_connect_is_retried(self):
        connector = FakeConnector(fail_times=1)
        conn = _manager(connector)
        await conn.connect()
        assert conn.state is ConnectionState.RETRYING

        await asyncio.sleep(0.05)
        assert conn.state is ConnectionState.OPEN
        assert connector.calls == 2
        await conn.close()

    @pytest.mark.asyncio
    async def test_clean_server_close_does_not_retry(self):
        connector = FakeConnector()
        conn = _manager(connector)
        await conn.connect()

        connector.latest.finish()
        await settle()
        assert conn.state is ConnectionState.DISCONNECTED

        await asyncio.sleep(0.05)
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_close_cancels_pending_retry(self):
        connector = FakeConnector()
        conn = _manager(connector, reconnect_delay=0.05)
        await conn.connect()
        connector.latest.drop()
        await settle()
        assert conn.state is ConnectionState.RETRYING

        await conn.close()
        await asyncio.sleep(0.1)
        assert conn.state is ConnectionState.DISCONNECTED
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_close_detaches_listeners(self):
        connector = FakeConnector()
        conn = _manager(connector)
        got: list[str] = []

        async def _listener(frame: str) -> None:
            got.append(frame)

        conn.add_listener(_listener)
        await conn.connect()
        socket = connector.latest
        await conn.close()
        socket.push("A|1")
        await settle()

        assert got == []
        assert socket.closed

    @pytest.mark.asyncio
    async def test_state_listener_sees_transitions(self):
        connector = FakeConnector()
        conn = _manager(connector)
        states: list[ConnectionState] = []
        conn.add_state_listener(states.append)

        await conn.connect()
        connector.latest.drop()
        await asyncio.sleep(0.05)
        await conn.close()

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.OPEN,
            ConnectionState.RETRYING,
            ConnectionState.CONNECTING,
            ConnectionState.OPEN,
            ConnectionState.DISCONNECTED,
        ]

    @pytest.mark.asyncio
    async def test_backoff_grows_and_caps(self):
        connector = FakeConnector(fail_times=3)
        conn = _manager(connector, reconnect_delay=0.01, backoff_factor=2.0, max_reconnect_delay=0.02)
        await conn.connect()
        await asyncio.sleep(0.2)

        assert conn.state is ConnectionState.OPEN
        assert connector.calls == 4
        await conn.close()

    @pytest.mark.asyncio
    async def test_removed_state_listener_is_not_called(self):
        connector = FakeConnector()
        conn = _manager(connector)
        states: list[ConnectionState] = []
        conn.add_state_listener(states.append)
        conn.remove_state_listener(states.append)

        await conn.connect()
        await conn.close()
        assert states == []
