"""
SharedFrameBuffer 단위 테스트

검증 항목:
- 크기가 용량을 넘지 않음 (가득 차면 가장 오래된 항목 제거)
- 남은 항목은 가장 최근 N개이며 push 순서 유지 (FIFO)
- 빈 버퍼 try_pop은 블로킹 없이 None
- 드롭/총 push 카운터
- 여러 스레드에서 동시에 push/pop해도 개수 보존
"""

from __future__ import annotations

import threading

import pytest

from src.capture.frame_buffer import SharedFrameBuffer


def _drain(buffer: SharedFrameBuffer) -> list:
    items = []
    while (item := buffer.try_pop()) is not None:
        items.append(item)
    return items


class TestCapacity:
    def test_ten_pushes_into_six_keeps_last_six_in_order(self):
        buffer = SharedFrameBuffer(capacity=6)
        for value in range(1, 11):
            buffer.push_evict_oldest(value)
        assert len(buffer) == 6
        assert _drain(buffer) == [5, 6, 7, 8, 9, 10]

    def test_size_never_exceeds_capacity(self):
        buffer = SharedFrameBuffer(capacity=3)
        for value in range(20):
            buffer.push_evict_oldest(value)
            assert len(buffer) <= 3

    def test_push_returns_evicted_oldest(self):
        buffer = SharedFrameBuffer(capacity=2)
        assert buffer.push_evict_oldest("a") is None
        assert buffer.push_evict_oldest("b") is None
        assert buffer.push_evict_oldest("c") == "a"

    def test_capacity_one(self):
        buffer = SharedFrameBuffer(capacity=1)
        buffer.push_evict_oldest(1)
        buffer.push_evict_oldest(2)
        assert _drain(buffer) == [2]

    def test_invalid_capacity_raises(self):
        with pytest.raises(ValueError):
            SharedFrameBuffer(capacity=0)

    def test_default_capacity_is_six(self):
        assert SharedFrameBuffer().capacity == 6


class TestFifo:
    def test_pop_returns_oldest_first(self):
        buffer = SharedFrameBuffer(capacity=6)
        for value in ("f1", "f2", "f3"):
            buffer.push_evict_oldest(value)
        assert buffer.try_pop() == "f1"
        assert buffer.try_pop() == "f2"
        assert len(buffer) == 1

    def test_empty_pop_returns_none(self):
        assert SharedFrameBuffer().try_pop() is None

    def test_clear_returns_removed_count(self):
        buffer = SharedFrameBuffer(capacity=4)
        for value in range(3):
            buffer.push_evict_oldest(value)
        assert buffer.clear() == 3
        assert len(buffer) == 0


class TestCounters:
    def test_total_pushed_and_dropped(self):
        buffer = SharedFrameBuffer(capacity=6)
        for value in range(10):
            buffer.push_evict_oldest(value)
        assert buffer.total_pushed == 10
        assert buffer.dropped_count == 4


class TestConcurrency:
    def test_concurrent_push_pop_conserves_items(self):
        """push된 항목은 pop되거나 드롭되거나 버퍼에 남아 있어야 한다."""
        buffer = SharedFrameBuffer(capacity=4)
        total = 2000
        popped: list[int] = []
        done = threading.Event()

        def producer():
            for value in range(total):
                buffer.push_evict_oldest(value)
            done.set()

        def consumer():
            while not done.is_set() or len(buffer) > 0:
                item = buffer.try_pop()
                if item is not None:
                    popped.append(item)

        threads = [threading.Thread(target=producer), threading.Thread(target=consumer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(popped) + buffer.dropped_count + len(buffer) == total
        # 드롭이 있어도 꺼낸 순서는 증가해야 함
        assert popped == sorted(popped)
