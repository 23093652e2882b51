from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

SEQUENCE_MODULUS = 1 << 32


@dataclass(frozen=True)
class GapDetected:
    topic: str
    expected: int
    actual: int

    @property
    def missed(self) -> int:
        """Notifications skipped between the expected and the received sequence.

        Distances are taken modulo 2**32, so a gap across the wrap counts the
        skipped values. A jump of half the counter space or more is a counter
        that went backwards (daemon restart) and counts as 0.
        """
        distance = (self.actual - self.expected) % SEQUENCE_MODULUS
        if distance >= SEQUENCE_MODULUS // 2:
            return 0
        return distance


class SequenceTracker:
    """Tracks the last sequence seen per topic and reports discontinuities.

    With ``wraparound`` the counter is treated as modulo 2**32, so
    ``0xFFFFFFFF -> 0`` is continuous. Without it the wrap is reported as a gap.
    """

    def __init__(self, wraparound: bool = True) -> None:
        self.wraparound = wraparound
        self._last: Dict[str, int] = {}

    def observe(self, topic: str, sequence: int) -> Optional[GapDetected]:
        previous = self._last.get(topic)
        self._last[topic] = sequence
        if previous is None:
            return None
        expected = previous + 1
        if self.wraparound:
            expected %= SEQUENCE_MODULUS
        if sequence == expected:
            return None
        return GapDetected(topic=topic, expected=expected, actual=sequence)

    def last(self, topic: str) -> Optional[int]:
        return self._last.get(topic)

    def reset(self, topic: Optional[str] = None) -> None:
        if topic is None:
            self._last.clear()
        else:
            self._last.pop(topic, None)
