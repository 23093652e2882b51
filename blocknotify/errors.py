from __future__ import annotations


class BlockNotifyError(Exception):
    """Base class for all blocknotify errors."""


class ConnectError(BlockNotifyError):
    """The subscriber connection could not be established."""

    def __init__(self, endpoint: str, reason: str) -> None:
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"cannot connect to {endpoint}: {reason}")


class TransportError(BlockNotifyError):
    """The subscriber connection was lost or closed mid-stream."""


class DecodeError(BlockNotifyError):
    """A single multipart message does not follow the three-frame layout."""


class FrameCountError(DecodeError):
    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"expected 3 frames, got {count}")


class EncodingError(DecodeError):
    def __init__(self, frame: bytes, reason: str) -> None:
        self.frame = frame
        super().__init__(f"invalid topic frame {frame[:40]!r}: {reason}")


class SequenceLengthError(DecodeError):
    def __init__(self, length: int) -> None:
        self.length = length
        super().__init__(f"sequence frame must be 4 bytes, got {length}")
