from __future__ import annotations

import struct
import time
from typing import Callable, Iterable, List, Optional, Union

import pytest

from blocknotify.errors import TransportError

Step = Union[List[bytes], None, Exception, Callable[[], None]]


def frames(topic: str, payload: bytes, sequence: int) -> List[bytes]:
    return [topic.encode(), payload, struct.pack("<I", sequence)]


class FakeTransport:
    """Replays scripted receive() results.

    A step is a frame list, None (timeout), an exception to raise, or a
    callable run before timing out. Once the script is exhausted every receive
    times out, or raises TransportError when ``fail_when_done``.
    """

    def __init__(self, steps: Iterable[Step], fail_when_done: bool = False) -> None:
        self.steps = list(steps)
        self.fail_when_done = fail_when_done
        self.calls = 0
        self.closed = False

    def receive(self, timeout_ms: Optional[int] = None) -> Optional[List[bytes]]:
        self.calls += 1
        if not self.steps:
            if self.fail_when_done:
                raise TransportError("script exhausted")
            time.sleep(min(timeout_ms or 0, 10) / 1000)
            return None
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            step()
            return None
        return step

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_frames() -> Callable[[str, bytes, int], List[bytes]]:
    return frames
