"""Tests for the reconnecting channel manager."""

import pytest
from websockets.exceptions import InvalidURI

from helpers import ManualManager, ScriptedConnector, settle
from pulsetop.connection import backoff_delay
from pulsetop.models import ConnectionState


def make_manager(connector, **kwargs):
    manager = ManualManager("ws://localhost:8080/ws/cpu", connector=connector, name="cpu", **kwargs)
    events = []
    manager.set_handlers(
        on_open=lambda: events.append("open"),
        on_message=lambda raw: events.append(("message", raw)),
        on_error=lambda e: events.append(("error", type(e).__name__)),
        on_close=lambda: events.append("close"),
        on_status_change=lambda status: events.append(status),
    )
    return manager, events


@pytest.mark.parametrize(
    "attempt,expected",
    [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0), (4, 10.0), (10, 10.0)],
)
def test_backoff_delay(attempt, expected):
    """Test delays double from the base and cap at the maximum."""
    assert backoff_delay(attempt) == expected


def test_backoff_custom_bounds():
    assert backoff_delay(2, base=0.5, maximum=1.5) == 1.5


@pytest.mark.asyncio
async def test_three_failures_then_success():
    """Test three failed cycles wait 1s, 2s, 4s and an open resets attempts."""
    connector = ScriptedConnector(failures=3)
    manager, events = make_manager(connector)

    manager.start()
    await settle()
    assert manager.delays == [1.0]
    assert manager.status is ConnectionState.RECONNECTING

    manager.fire()
    await settle()
    manager.fire()
    await settle()
    assert manager.delays == [1.0, 2.0, 4.0]
    assert manager.attempts == 3

    manager.fire()
    await settle()
    assert manager.status is ConnectionState.CONNECTED
    assert manager.attempts == 0
    assert len(connector.calls) == 4
    assert "open" in events

    manager.stop()


@pytest.mark.asyncio
async def test_delay_capped():
    """Test many failures never wait longer than the maximum."""
    manager, _ = make_manager(ScriptedConnector(failures=8))

    manager.start()
    await settle()
    for _ in range(7):
        manager.fire()
        await settle()

    assert manager.delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0, 10.0, 10.0]
    assert manager.last_delay == 10.0
    manager.stop()


@pytest.mark.asyncio
async def test_messages_delivered_in_order(connector):
    """Test payloads reach the message handler untouched."""
    manager, events = make_manager(connector)
    manager.start()
    await settle()

    for raw in ['{"cpu": 1}', '{"cpu": 2}', b"\x00raw"]:
        connector.transport.incoming.put_nowait(raw)
    await settle()

    messages = [e[1] for e in events if isinstance(e, tuple) and e[0] == "message"]
    assert messages == ['{"cpu": 1}', '{"cpu": 2}', b"\x00raw"]
    manager.stop()


@pytest.mark.asyncio
async def test_status_sequence(connector):
    """Test the observable state walk for a clean open and a server close."""
    manager, events = make_manager(connector)

    manager.start()
    await settle()
    connector.transport.incoming.put_nowait(None)
    await settle()

    statuses = [e for e in events if isinstance(e, ConnectionState)]
    assert statuses == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.RECONNECTING,
    ]
    assert events.index("open") < events.index("close")
    assert manager.delays == [1.0]
    assert connector.transport.closed
    manager.stop()


@pytest.mark.asyncio
async def test_dropped_connection_reports_error(connector):
    """Test an abnormal drop emits error then close and schedules a retry."""
    manager, events = make_manager(connector)
    manager.start()
    await settle()

    connector.transport.incoming.put_nowait(ConnectionResetError("reset"))
    await settle()

    assert events[-3:] == [
        ConnectionState.RECONNECTING,
        ("error", "ConnectionResetError"),
        "close",
    ]
    assert manager.reconnect_pending
    assert manager.status is ConnectionState.RECONNECTING
    manager.stop()


@pytest.mark.asyncio
async def test_stop_cancels_pending_reconnect():
    """Test stop cancels the timer and a late fire does not reconnect."""
    connector = ScriptedConnector(failures=1)
    manager, _ = make_manager(connector)
    manager.start()
    await settle()
    handle = manager.handles[-1]

    manager.stop()
    handle.callback()
    await settle()

    assert handle.cancelled
    assert not manager.reconnect_pending
    assert manager.status is ConnectionState.DISCONNECTED
    assert len(connector.calls) == 1


@pytest.mark.asyncio
async def test_stop_detaches_live_transport(connector):
    """Test nothing is delivered after stop and no reconnect follows."""
    manager, events = make_manager(connector)
    manager.start()
    await settle()
    transport = connector.transport

    manager.stop()
    events.clear()
    transport.incoming.put_nowait('{"cpu": 5}')
    transport.incoming.put_nowait(None)
    await settle()

    assert events == []
    assert manager.handles == []
    assert manager.is_stopped


@pytest.mark.asyncio
async def test_stop_is_idempotent(connector):
    manager, events = make_manager(connector)
    manager.start()
    await settle()

    manager.stop()
    manager.stop()

    assert events.count(ConnectionState.DISCONNECTED) == 1


@pytest.mark.asyncio
async def test_start_while_running_is_noop(connector):
    manager, _ = make_manager(connector)
    manager.start()
    await settle()

    manager.start()
    await settle()

    assert len(connector.calls) == 1
    manager.stop()


@pytest.mark.asyncio
async def test_restart_after_stop(connector):
    """Test a stopped manager can be started again with fresh attempts."""
    manager, _ = make_manager(connector)
    manager.start()
    await settle()
    manager.stop()

    manager.start()
    await settle()

    assert manager.status is ConnectionState.CONNECTED
    assert len(connector.calls) == 2
    manager.stop()


@pytest.mark.asyncio
async def test_send_only_when_connected():
    """Test send is refused before the channel opens."""
    connector = ScriptedConnector(failures=1)
    manager, _ = make_manager(connector)

    assert await manager.send("hello") is False

    manager.start()
    await settle()
    assert await manager.send("hello") is False

    manager.fire()
    await settle()
    assert await manager.send("hello") is True
    assert connector.transport.sent == ["hello"]
    manager.stop()


@pytest.mark.asyncio
async def test_invalid_url_is_terminal():
    """Test a malformed URL ends in error without retrying."""
    connector = ScriptedConnector(failures=1, error=InvalidURI("nope", "not a websocket URI"))
    manager, events = make_manager(connector)

    manager.start()
    await settle()

    assert manager.status is ConnectionState.ERROR
    assert ("error", "InvalidURI") in events
    assert manager.handles == []


@pytest.mark.asyncio
async def test_start_after_invalid_url_retries():
    """Test start() reconnects after the terminal error state."""
    connector = ScriptedConnector(failures=1, error=InvalidURI("nope", "not a websocket URI"))
    manager, _ = make_manager(connector)
    manager.start()
    await settle()
    assert manager.is_stopped

    manager.start()
    await settle()

    assert len(connector.calls) == 2
    assert manager.status is ConnectionState.CONNECTED
    manager.stop()


@pytest.mark.asyncio
async def test_handler_exception_does_not_break_channel(connector):
    """Test a failing message handler does not stop later deliveries."""
    manager, _ = make_manager(connector)
    received = []

    def on_message(raw):
        received.append(raw)
        if raw == "bad":
            raise RuntimeError("handler failed")

    manager.set_handlers(on_message=on_message)
    manager.start()
    await settle()

    connector.transport.incoming.put_nowait("bad")
    connector.transport.incoming.put_nowait("good")
    await settle()

    assert received == ["bad", "good"]
    assert manager.status is ConnectionState.CONNECTED
    manager.stop()
