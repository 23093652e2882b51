from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .classifier import NotificationRecord


class RenderMode(str, Enum):
    HEX = "hex"
    RAW = "raw"
    UTF8 = "utf8"


@dataclass(frozen=True)
class RenderedView:
    topic: str
    sequence: int
    mode: RenderMode
    value: Union[str, bytes]
    size: int


_LABELS = {
    "hashblock": "HASH BLOCK",
    "hashtx": "HASH TX",
    "rawblock": "RAW BLOCK",
    "rawtx": "RAW TX",
    "sequence": "SEQUENCE",
}

_ALLOWED_WHITESPACE = frozenset("\t\r\n")


def _printable_text(payload: bytes) -> str | None:
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if all(ch.isprintable() or ch in _ALLOWED_WHITESPACE for ch in text):
        return text
    return None


def render(record: NotificationRecord, mode: RenderMode = RenderMode.HEX) -> RenderedView:
    """Render the payload of ``record``.

    ``utf8`` falls back to ``hex`` when the payload is not printable text; the
    returned view reports the mode that was actually used.
    """
    mode = RenderMode(mode)
    value: Union[str, bytes]
    if mode is RenderMode.RAW:
        value = record.payload
    elif mode is RenderMode.UTF8:
        text = _printable_text(record.payload)
        if text is None:
            mode = RenderMode.HEX
            value = record.payload.hex()
        else:
            value = text
    else:
        value = record.payload.hex()
    return RenderedView(
        topic=record.topic, sequence=record.sequence, mode=mode, value=value, size=len(record.payload)
    )


def describe(topic: str) -> str:
    return _LABELS.get(topic, topic.upper())
