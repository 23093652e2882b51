from __future__ import annotations

import asyncio

from conftest import FakeTransport, frames

from blocknotify.config import Settings
from blocknotify.errors import ConnectError
from blocknotify.events import EventBus
from blocknotify.listener import Listener


async def _collect(listener: Listener, bus: EventBus, until: str) -> list[dict]:
    q = await bus.subscribe()
    listener.start()
    events = []
    while True:
        event = await asyncio.wait_for(q.get(), timeout=2.0)
        events.append(event)
        if event["kind"] == "status" and event["status"] == until:
            return events


def test_listener_publishes_events_until_transport_fails() -> None:
    transport = FakeTransport(
        [
            frames("hashtx", b"\xab", 1),
            [b"hashtx"],
            frames("hashtx", b"\xcd", 3),
        ],
        fail_when_done=True,
    )

    async def scenario():
        bus = EventBus(loop=asyncio.get_running_loop())
        listener = Listener(Settings(), bus, transport_factory=lambda settings: transport)
        events = await _collect(listener, bus, until="failed")
        listener.stop()
        return listener, events

    listener, events = asyncio.run(scenario())
    kinds = [e["kind"] for e in events]
    assert kinds == ["status", "notification", "decode_error", "gap", "notification", "status"]
    assert events[1]["payload"] == "ab"
    assert (events[3]["expected"], events[3]["actual"]) == (2, 3)
    assert transport.closed

    health = listener.health()
    assert health["status"] == "failed"
    assert "script exhausted" in health["error"]
    assert health["dispatcher"]["delivered"] == 2
    assert health["dispatcher"]["decode_errors"] == 1
    assert health["dispatcher"]["state"] == "closed"


def test_listener_reports_connect_error() -> None:
    def factory(settings: Settings):
        raise ConnectError(settings.endpoint, "refused")

    async def scenario():
        bus = EventBus(loop=asyncio.get_running_loop())
        listener = Listener(Settings(endpoint="tcp://127.0.0.1:1"), bus, transport_factory=factory)
        events = await _collect(listener, bus, until="failed")
        listener.stop()
        return listener, events

    listener, events = asyncio.run(scenario())
    assert "refused" in events[-1]["error"]
    assert listener.health()["status"] == "failed"


def test_listener_stop_closes_transport() -> None:
    transport = FakeTransport([])

    async def scenario():
        bus = EventBus(loop=asyncio.get_running_loop())
        listener = Listener(Settings(poll_interval_ms=10), bus, transport_factory=lambda settings: transport)
        q = await bus.subscribe()
        listener.start()
        assert (await asyncio.wait_for(q.get(), timeout=2.0))["status"] == "running"
        await asyncio.get_running_loop().run_in_executor(None, listener.stop)
        return listener

    listener = asyncio.run(scenario())
    assert transport.closed
    assert listener.health()["status"] == "stopped"


def _restart_twice(settings: Settings) -> list[dict]:
    transports = iter(
        [
            FakeTransport([frames("hashtx", b"", 1)], fail_when_done=True),
            FakeTransport([frames("hashtx", b"", 50)], fail_when_done=True),
        ]
    )

    async def scenario():
        bus = EventBus(loop=asyncio.get_running_loop())
        listener = Listener(settings, bus, transport_factory=lambda s: next(transports))
        events = await _collect(listener, bus, until="failed")
        await asyncio.get_running_loop().run_in_executor(None, listener.stop)
        events += await _collect(listener, bus, until="failed")
        listener.stop()
        return events

    return asyncio.run(scenario())


def test_restart_keeps_gap_state_when_configured() -> None:
    events = _restart_twice(Settings(reset_gaps_on_reconnect=False))
    gaps = [(e["expected"], e["actual"]) for e in events if e["kind"] == "gap"]
    assert gaps == [(2, 50)]


def test_restart_resets_gap_state_by_default() -> None:
    events = _restart_twice(Settings())
    assert [e for e in events if e["kind"] == "gap"] == []
    assert [e["sequence"] for e in events if e["kind"] == "notification"] == [1, 50]
