from __future__ import annotations

from blocknotify.gaps import GapDetected, SequenceTracker


def _feed(tracker: SequenceTracker, topic: str, sequences: list[int]) -> list[GapDetected]:
    gaps = []
    for seq in sequences:
        gap = tracker.observe(topic, seq)
        if gap is not None:
            gaps.append(gap)
    return gaps


def test_single_gap_reported() -> None:
    gaps = _feed(SequenceTracker(), "hashtx", [5, 6, 8])
    assert gaps == [GapDetected(topic="hashtx", expected=7, actual=8)]
    assert gaps[0].missed == 1


def test_contiguous_sequences_have_no_gap() -> None:
    assert _feed(SequenceTracker(), "hashtx", [5, 6, 7]) == []


def test_first_sighting_never_reports() -> None:
    tracker = SequenceTracker()
    assert tracker.observe("hashblock", 1000) is None
    assert tracker.last("hashblock") == 1000


def test_topics_are_independent() -> None:
    tracker = SequenceTracker()
    assert tracker.observe("hashtx", 1) is None
    assert tracker.observe("hashblock", 40) is None
    assert tracker.observe("hashtx", 2) is None
    assert tracker.observe("hashblock", 41) is None


def test_backwards_sequence_is_a_gap() -> None:
    gaps = _feed(SequenceTracker(), "rawtx", [10, 3, 4])
    assert gaps == [GapDetected(topic="rawtx", expected=11, actual=3)]
    assert gaps[0].missed == 0


def test_wraparound_is_continuous_by_default() -> None:
    assert _feed(SequenceTracker(), "hashtx", [0xFFFFFFFE, 0xFFFFFFFF, 0, 1]) == []


def test_wraparound_reported_when_disabled() -> None:
    gaps = _feed(SequenceTracker(wraparound=False), "hashtx", [0xFFFFFFFF, 0])
    assert gaps == [GapDetected(topic="hashtx", expected=1 << 32, actual=0)]


def test_reset() -> None:
    tracker = SequenceTracker()
    tracker.observe("hashtx", 1)
    tracker.observe("hashblock", 1)
    tracker.reset("hashtx")
    assert tracker.last("hashtx") is None
    assert tracker.last("hashblock") == 1
    tracker.reset()
    assert tracker.observe("hashblock", 9) is None


def test_missed_counts_across_the_wrap() -> None:
    gaps = _feed(SequenceTracker(), "hashtx", [0xFFFFFFFE, 1])
    assert gaps == [GapDetected(topic="hashtx", expected=0xFFFFFFFF, actual=1)]
    assert gaps[0].missed == 2


def test_missed_for_skip_landing_on_zero() -> None:
    (gap,) = _feed(SequenceTracker(), "hashtx", [0xFFFFFFFD, 0])
    assert gap.missed == 2
