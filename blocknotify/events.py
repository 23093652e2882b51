from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from .errors import DecodeError
from .render import RenderedView

Event = Dict[str, Any]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def notification_event(view: RenderedView) -> Event:
    if isinstance(view.value, bytes):
        payload, encoding = base64.b64encode(view.value).decode("ascii"), "base64"
    else:
        payload, encoding = view.value, view.mode.value
    return {
        "ts": now_iso(),
        "kind": "notification",
        "topic": view.topic,
        "sequence": view.sequence,
        "payload": payload,
        "meta": {"encoding": encoding, "size": view.size},
    }


def decode_error_event(topic: Optional[str], error: DecodeError) -> Event:
    return {
        "ts": now_iso(),
        "kind": "decode_error",
        "topic": topic,
        "error": type(error).__name__,
        "detail": str(error),
    }


def gap_event(topic: str, expected: int, actual: int) -> Event:
    return {
        "ts": now_iso(),
        "kind": "gap",
        "topic": topic,
        "expected": expected,
        "actual": actual,
    }


def status_event(status: str, error: Optional[str] = None) -> Event:
    return {"ts": now_iso(), "kind": "status", "status": status, "error": error}


@dataclass
class BusStats:
    published: int = 0
    dropped_ws: int = 0
    subscribers: int = 0


class EventBus:
    """
    In-process async fan-out of listener events to WebSocket clients, with a
    bounded queue per client. When a client queue is full the oldest event is
    dropped; a client that still cannot keep up is unsubscribed.
    publish() must be called from the event loop thread.
    publish_threadsafe() is for the listener thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, client_queue_size: int = 1000) -> None:
        self._loop = loop
        self._subs: Set[asyncio.Queue] = set()
        self._client_queue_size = client_queue_size
        self._stats = BusStats()
        self._lock = asyncio.Lock()

    @property
    def stats(self) -> BusStats:
        return BusStats(
            published=self._stats.published,
            dropped_ws=self._stats.dropped_ws,
            subscribers=len(self._subs),
        )

    async def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._client_queue_size)
        async with self._lock:
            self._subs.add(q)
        return q

    async def unsubscribe(self, q: asyncio.Queue) -> None:
        async with self._lock:
            self._subs.discard(q)

    def publish_threadsafe(self, event: Event) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(asyncio.create_task, self.publish(event))

    async def publish(self, event: Event) -> None:
        self._stats.published += 1
        slow: List[asyncio.Queue] = []
        for q in list(self._subs):
            if q.full():
                try:
                    q.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                self._stats.dropped_ws += 1
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                slow.append(q)
        if slow:
            async with self._lock:
                for q in slow:
                    self._subs.discard(q)
