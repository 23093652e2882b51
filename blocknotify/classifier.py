from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import EncodingError, FrameCountError, SequenceLengthError

MAX_TOPIC_LENGTH = 32
SEQUENCE_WIDTH = 4

_SEQUENCE = struct.Struct("<I")


@dataclass(frozen=True)
class NotificationRecord:
    topic: str
    payload: bytes
    sequence: int


def _decode_topic(frame: bytes) -> str:
    if not frame:
        raise EncodingError(frame, "empty topic")
    if len(frame) > MAX_TOPIC_LENGTH:
        raise EncodingError(frame, f"topic longer than {MAX_TOPIC_LENGTH} bytes")
    if any(b < 0x20 or b > 0x7E for b in frame):
        raise EncodingError(frame, "topic is not printable ASCII")
    return frame.decode("ascii")


def classify(frames: Sequence[bytes]) -> NotificationRecord:
    """Turn one ``[topic, payload, sequence]`` multipart message into a record.

    Raises a :class:`~blocknotify.errors.DecodeError` subclass when the message
    does not fit the layout. The wire layout is the same for every topic, so
    there is no per-topic branching here.
    """
    if len(frames) != 3:
        raise FrameCountError(len(frames))
    topic_frame, payload, seq_frame = frames
    topic = _decode_topic(bytes(topic_frame))
    if len(seq_frame) != SEQUENCE_WIDTH:
        raise SequenceLengthError(len(seq_frame))
    (sequence,) = _SEQUENCE.unpack(bytes(seq_frame))
    return NotificationRecord(topic=topic, payload=bytes(payload), sequence=sequence)


def topic_hint(frames: Sequence[bytes]) -> Optional[str]:
    """Best-effort topic of a message that failed classification."""
    if not frames:
        return None
    return bytes(frames[0][:MAX_TOPIC_LENGTH]).decode("utf-8", errors="replace")
