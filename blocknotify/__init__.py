"""Decoder and dispatcher for cryptocurrency daemon ZMQ notification feeds."""

from .classifier import NotificationRecord, classify
from .dispatcher import Dispatcher, DispatcherState, listen
from .errors import (
    ConnectError,
    DecodeError,
    EncodingError,
    FrameCountError,
    SequenceLengthError,
    TransportError,
)
from .gaps import GapDetected, SequenceTracker
from .render import RenderedView, RenderMode, render
from .transport import Transport, ZmqSubscriber

__version__ = "0.1.0"

__all__ = [
    "ConnectError",
    "DecodeError",
    "Dispatcher",
    "DispatcherState",
    "EncodingError",
    "FrameCountError",
    "GapDetected",
    "NotificationRecord",
    "RenderMode",
    "RenderedView",
    "SequenceLengthError",
    "SequenceTracker",
    "Transport",
    "TransportError",
    "ZmqSubscriber",
    "classify",
    "listen",
    "render",
]
