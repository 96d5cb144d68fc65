from __future__ import annotations

import pytest

from panelbridge.core.ring_buffer import RingBuffer


def test_capacity_plus_one_evicts_oldest() -> None:
    buf: RingBuffer[dict] = RingBuffer(1000)
    for n in range(1, 1002):
        buf.push({"n": n})

    assert len(buf) == 1000
    entries = buf.recent()
    assert entries[0] == {"n": 1001}
    assert entries[-1] == {"n": 2}
    assert {"n": 1} not in entries
    assert [e["n"] for e in entries] == list(range(1001, 1, -1))


def test_never_exceeds_capacity() -> None:
    buf: RingBuffer[int] = RingBuffer(3)
    for n in range(10):
        buf.push(n)
        assert len(buf) <= 3
    assert buf.recent() == [9, 8, 7]


def test_recent_limit_and_filter() -> None:
    buf: RingBuffer[dict] = RingBuffer(10)
    for n in range(6):
        buf.push({"type": "chat" if n % 2 else "join", "n": n})

    assert [e["n"] for e in buf.recent(2)] == [5, 4]
    assert [e["n"] for e in buf.recent(predicate=lambda e: e["type"] == "chat")] == [5, 3, 1]
    assert [e["n"] for e in buf.recent(1, lambda e: e["type"] == "join")] == [4]
    assert buf.recent(0) == []


def test_clear_and_invalid_capacity() -> None:
    buf: RingBuffer[int] = RingBuffer(2)
    buf.push(1)
    buf.clear()
    assert len(buf) == 0
    assert buf.capacity == 2

    with pytest.raises(ValueError):
        RingBuffer(0)
