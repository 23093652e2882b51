from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .classifier import NotificationRecord, classify, topic_hint
from .errors import DecodeError, TransportError
from .gaps import SequenceTracker
from .render import RenderedView, RenderMode, render
from .transport import TopicFilter, Transport, ZmqSubscriber

log = logging.getLogger("blocknotify.dispatcher")

RecordCallback = Callable[[NotificationRecord], None]
DecodeErrorCallback = Callable[[Optional[str], DecodeError], None]
GapCallback = Callable[[str, int, int], None]
RenderCallback = Callable[[RenderedView], None]


class DispatcherState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    RECEIVING = "receiving"
    DECODING = "decoding"
    CLOSED = "closed"


@dataclass
class DispatcherStats:
    received: int = 0
    delivered: int = 0
    decode_errors: int = 0
    gaps: int = 0
    callback_errors: int = 0


class Dispatcher:
    """Drives the receive -> classify -> render -> emit loop over one transport.

    Malformed messages are dropped and reported through ``on_decode_error``;
    the loop keeps going. Transport failures end :meth:`run` with
    :class:`TransportError` and are never retried here. Exactly one message is
    in flight at a time, so per-topic gap detection sees deliveries in order.

    A dispatcher holds no state shared with other dispatchers; run each on its
    own thread to consume several endpoints at once.
    """

    def __init__(
        self,
        on_record: Optional[RecordCallback] = None,
        *,
        on_decode_error: Optional[DecodeErrorCallback] = None,
        on_gap: Optional[GapCallback] = None,
        on_render: Optional[RenderCallback] = None,
        render_mode: RenderMode = RenderMode.HEX,
        track_gaps: bool = True,
        wraparound: bool = True,
        tracker: Optional[SequenceTracker] = None,
        poll_interval_ms: int = 100,
    ) -> None:
        self.on_record = on_record
        self.on_decode_error = on_decode_error
        self.on_gap = on_gap
        self.on_render = on_render
        self.render_mode = RenderMode(render_mode)
        self.poll_interval_ms = poll_interval_ms
        if track_gaps and tracker is None:
            tracker = SequenceTracker(wraparound=wraparound)
        self._tracker = tracker if track_gaps else None
        self._stop = threading.Event()
        self._state = DispatcherState.IDLE
        self._stats = DispatcherStats()

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def stats(self) -> DispatcherStats:
        return replace(self._stats)

    @property
    def tracker(self) -> Optional[SequenceTracker]:
        """Gap state; hand it to the next dispatcher to keep gap detection across reconnects."""
        return self._tracker

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask :meth:`run` to return; takes effect within one poll interval."""
        self._stop.set()

    def run(self, transport: Transport) -> None:
        """Consume ``transport`` until stopped or it fails. A dispatcher runs once."""
        if self._state is not DispatcherState.IDLE:
            raise RuntimeError(f"dispatcher is {self._state.value}; create a new one to run again")
        self._state = DispatcherState.CONNECTED
        try:
            while not self._stop.is_set():
                self._state = DispatcherState.RECEIVING
                frames = transport.receive(self.poll_interval_ms)
                if frames is None:
                    continue
                self._state = DispatcherState.DECODING
                self._stats.received += 1
                self._handle(frames)
        except TransportError as e:
            log.error("Transport failed: %s", e)
            raise
        finally:
            self._state = DispatcherState.CLOSED
        log.info("Dispatcher stopped")

    def _handle(self, frames: List[bytes]) -> None:
        try:
            record = classify(frames)
        except DecodeError as e:
            self._stats.decode_errors += 1
            hint = topic_hint(frames)
            log.warning("Dropping malformed message (topic=%s): %s", hint, e)
            self._call(self.on_decode_error, hint, e)
            return

        if self._tracker is not None:
            gap = self._tracker.observe(record.topic, record.sequence)
            if gap is not None:
                self._stats.gaps += 1
                log.info(
                    "Sequence gap on %s: expected %d, got %d", gap.topic, gap.expected, gap.actual
                )
                self._call(self.on_gap, gap.topic, gap.expected, gap.actual)

        self._stats.delivered += 1
        self._call(self.on_record, record)
        if self.on_render is not None:
            self._call(self.on_render, render(record, self.render_mode))

    def _call(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            self._stats.callback_errors += 1
            log.exception("Notification callback %r failed", callback)


def listen(
    endpoint: str,
    topic_filter: TopicFilter,
    on_record: RecordCallback,
    *,
    transport_options: Optional[Dict[str, Any]] = None,
    **dispatcher_options: Any,
) -> None:
    """Connect a subscriber and run a dispatcher until the transport fails.

    The subscriber is closed on every exit path, including KeyboardInterrupt.
    """
    dispatcher = Dispatcher(on_record, **dispatcher_options)
    with ZmqSubscriber.connect(endpoint, topic_filter, **(transport_options or {})) as transport:
        dispatcher.run(transport)
