from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence, Union

import zmq
from zmq.utils.monitor import recv_monitor_message

from .errors import ConnectError, TransportError

log = logging.getLogger("blocknotify.transport")

EVENT_NAMES = {getattr(zmq, name): name for name in dir(zmq) if name.startswith("EVENT_")}

TopicFilter = Union[str, Sequence[str]]


class Transport(Protocol):
    def receive(self, timeout_ms: Optional[int] = None) -> Optional[List[bytes]]:
        """Return the next multipart message, or None when the wait timed out."""
        ...

    def close(self) -> None:
        ...


def _topics(topic_filter: TopicFilter) -> List[str]:
    if isinstance(topic_filter, str):
        return [topic_filter]
    topics = list(topic_filter)
    return topics or [""]


def _endpoint_to_str(ep: Any) -> str:
    if isinstance(ep, bytes):
        return ep.decode("utf-8", errors="replace")
    return str(ep)


class ZmqSubscriber:
    """SUB socket connected to a daemon's notification endpoint.

    Owned by a single dispatcher; not safe to read from several threads.
    """

    def __init__(
        self,
        endpoint: str,
        topic_filter: TopicFilter = "",
        *,
        context: zmq.Context | None = None,
        rcvhwm: int = 10000,
        linger_ms: int = 0,
        monitor: bool = True,
        disconnect_is_fatal: bool = True,
    ) -> None:
        self.endpoint = endpoint
        self.topics = _topics(topic_filter)
        self.rcvhwm = rcvhwm
        self.linger_ms = linger_ms
        self.monitor = monitor
        self.disconnect_is_fatal = disconnect_is_fatal
        self._owns_context = context is None
        self._ctx = context
        self._sock: zmq.Socket | None = None
        self._mon: zmq.Socket | None = None
        self._poller: zmq.Poller | None = None

    @classmethod
    def connect(cls, endpoint: str, topic_filter: TopicFilter = "", **options: Any) -> "ZmqSubscriber":
        sub = cls(endpoint, topic_filter, **options)
        sub.open()
        return sub

    @property
    def closed(self) -> bool:
        return self._sock is None

    def open(self) -> None:
        if self._sock is not None:
            return
        if self._ctx is None:
            self._ctx = zmq.Context(io_threads=1)
        try:
            sock = self._ctx.socket(zmq.SUB)
            self._sock = sock
            sock.setsockopt(zmq.LINGER, self.linger_ms)
            sock.set_hwm(self.rcvhwm)
            for topic in self.topics:
                sock.setsockopt(zmq.SUBSCRIBE, topic.encode("utf-8"))
            poller = zmq.Poller()
            poller.register(sock, zmq.POLLIN)
            if self.monitor:
                self._mon = sock.get_monitor_socket()
                poller.register(self._mon, zmq.POLLIN)
            self._poller = poller
            sock.connect(self.endpoint)
        except zmq.ZMQError as e:
            self.close()
            raise ConnectError(self.endpoint, str(e)) from e
        log.info("Subscribed to %s, topics=%s", self.endpoint, [t or "*" for t in self.topics])

    def receive(self, timeout_ms: Optional[int] = None) -> Optional[List[bytes]]:
        sock, poller = self._sock, self._poller
        if sock is None or poller is None:
            raise TransportError(f"subscriber for {self.endpoint} is closed")
        try:
            events = dict(poller.poll(timeout=timeout_ms))
            if self._mon is not None and events.get(self._mon, 0) & zmq.POLLIN:
                self._drain_monitor()
            if events.get(sock, 0) & zmq.POLLIN:
                try:
                    return sock.recv_multipart(flags=zmq.NOBLOCK)
                except zmq.Again:
                    return None
        except zmq.ZMQError as e:
            raise TransportError(f"receive from {self.endpoint} failed: {e}") from e
        return None

    def _drain_monitor(self) -> None:
        assert self._mon is not None
        while True:
            try:
                evt = recv_monitor_message(self._mon, flags=zmq.NOBLOCK)
            except zmq.Again:
                return
            ev_code = evt.get("event")
            ev_name = EVENT_NAMES.get(ev_code, str(ev_code))
            endpoint = _endpoint_to_str(evt.get("endpoint"))
            log.debug("Monitor event %s on %s", ev_name, endpoint)
            if ev_code == zmq.EVENT_CONNECTED:
                log.info("Connected to %s", endpoint)
            elif ev_code == zmq.EVENT_DISCONNECTED:
                if self.disconnect_is_fatal:
                    raise TransportError(f"connection to {endpoint} lost")
                log.warning("Disconnected from %s; waiting for zmq to reconnect", endpoint)

    def close(self) -> None:
        sock, self._sock = self._sock, None
        mon, self._mon = self._mon, None
        self._poller = None
        if sock is not None:
            try:
                sock.disable_monitor()
            except Exception:
                pass
        if mon is not None:
            try:
                mon.close(0)
            except Exception:
                pass
        if sock is not None:
            try:
                sock.close(self.linger_ms)
            except Exception:
                pass
        if self._owns_context and self._ctx is not None:
            try:
                self._ctx.term()
            except Exception:
                pass
            self._ctx = None

    def __enter__(self) -> "ZmqSubscriber":
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
