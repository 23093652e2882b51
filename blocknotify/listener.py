from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from .classifier import NotificationRecord
from .config import Settings
from .dispatcher import Dispatcher, DispatcherState
from .errors import BlockNotifyError, DecodeError
from .events import EventBus, decode_error_event, gap_event, notification_event, status_event
from .gaps import SequenceTracker
from .logging_config import log_json
from .render import render
from .transport import Transport, ZmqSubscriber

log = logging.getLogger("blocknotify.listener")

TransportFactory = Callable[[Settings], Transport]


def _zmq_transport(settings: Settings) -> Transport:
    return ZmqSubscriber.connect(settings.endpoint, settings.topics, **settings.transport_options())


class Listener:
    """Background thread running one dispatcher and feeding its events into the bus.

    A connect or transport failure ends the thread; it is reported through
    health() and a ``status`` event, not retried.
    """

    def __init__(self, settings: Settings, bus: EventBus, transport_factory: Optional[TransportFactory] = None) -> None:
        self.settings = settings
        self.bus = bus
        self._transport_factory = transport_factory or _zmq_transport
        self._dispatcher = self._new_dispatcher()
        self._thread: threading.Thread | None = None
        self._status = "starting"
        self._error: Optional[str] = None

    def _new_dispatcher(self, tracker: Optional[SequenceTracker] = None) -> Dispatcher:
        s = self.settings
        return Dispatcher(
            self._on_record,
            on_decode_error=self._on_decode_error,
            on_gap=self._on_gap,
            track_gaps=s.track_gaps,
            wraparound=s.sequence_wraparound,
            tracker=tracker,
            poll_interval_ms=s.poll_interval_ms,
        )

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        if self._dispatcher.state is not DispatcherState.IDLE or self._dispatcher.stopped:
            # a dispatcher runs once; keep its gap state unless configured to reset
            tracker = None if self.settings.reset_gaps_on_reconnect else self._dispatcher.tracker
            self._dispatcher = self._new_dispatcher(tracker)
        self._status = "starting"
        self._error = None
        self._thread = threading.Thread(target=self._run, name="blocknotify-listener", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._dispatcher.stop()
        if self._thread:
            self._thread.join(timeout=2.0)
        self._thread = None

    def health(self) -> Dict[str, Any]:
        stats = self._dispatcher.stats
        bus = self.bus.stats
        return {
            "status": self._status,
            "error": self._error,
            "endpoint": self.settings.endpoint,
            "topics": list(self.settings.topics),
            "dispatcher": {
                "state": self._dispatcher.state.value,
                "received": stats.received,
                "delivered": stats.delivered,
                "decode_errors": stats.decode_errors,
                "gaps": stats.gaps,
                "callback_errors": stats.callback_errors,
            },
            "bus": {
                "published": bus.published,
                "dropped_ws": bus.dropped_ws,
                "subscribers": bus.subscribers,
            },
        }

    def _run(self) -> None:
        try:
            transport = self._transport_factory(self.settings)
        except BlockNotifyError as e:
            self._fail(e)
            return
        try:
            self._set_status("running")
            self._dispatcher.run(transport)
        except BlockNotifyError as e:
            self._fail(e)
            return
        finally:
            transport.close()
        self._set_status("stopped")

    def _set_status(self, status: str, error: Optional[str] = None) -> None:
        self._status = status
        self._error = error
        self.bus.publish_threadsafe(status_event(status, error))

    def _fail(self, error: BlockNotifyError) -> None:
        log.error("Listener for %s failed: %s", self.settings.endpoint, error)
        self._set_status("failed", str(error))

    # Dispatcher hooks, called on the listener thread

    def _on_record(self, record: NotificationRecord) -> None:
        view = render(record, self.settings.render_mode)
        self.bus.publish_threadsafe(notification_event(view))

    def _on_decode_error(self, topic: Optional[str], error: DecodeError) -> None:
        if self.settings.log_json:
            log_json(log, logging.WARNING, "decode_error", topic=topic, error=type(error).__name__, detail=str(error))
        self.bus.publish_threadsafe(decode_error_event(topic, error))

    def _on_gap(self, topic: str, expected: int, actual: int) -> None:
        if self.settings.log_json:
            log_json(log, logging.INFO, "sequence_gap", topic=topic, expected=expected, actual=actual)
        self.bus.publish_threadsafe(gap_event(topic, expected, actual))
