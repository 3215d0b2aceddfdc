"""
캡처 스레드와 분석 스레드가 공유하는 프레임 버퍼 모듈입니다.

역할:
- 용량이 고정된 FIFO 버퍼 (기본 6프레임)
- 가득 찬 상태에서 push하면 가장 오래된 프레임 1개를 먼저 제거 (drop-oldest)
- 모든 접근을 단일 threading.Lock으로 직렬화, 락은 push/pop 동안만 유지
- 내부 deque를 외부에 노출하지 않고 원자적 연산만 제공

사용 예시:
    >>> buffer = SharedFrameBuffer(capacity=6)
    >>> buffer.push_evict_oldest(frame)
    >>> frame = buffer.try_pop()
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SharedFrameBuffer(Generic[T]):
    """
    drop-oldest 백프레셔를 적용하는 스레드 안전 고정 용량 FIFO 버퍼입니다.

    프로듀서는 절대 블로킹되지 않으며, 컨슈머가 느리면 가장 오래된 항목부터
    버려져 버퍼는 항상 최신 프레임을 담습니다.
    """

    def __init__(self, capacity: int = 6) -> None:
        """
        파라미터:
            capacity: 최대 보관 항목 수 (1 이상)
        """
        if capacity < 1:
            raise ValueError(f"capacity는 1 이상이어야 합니다. 입력값: {capacity}")

        self._capacity = capacity
        self._items: deque[T] = deque()
        self._lock = threading.Lock()

        # 누적 통계
        self._total_pushed: int = 0
        self._dropped_count: int = 0

    @property
    def capacity(self) -> int:
        """최대 보관 항목 수"""
        return self._capacity

    def push_evict_oldest(self, item: T) -> Optional[T]:
        """
        항목을 버퍼 끝에 추가합니다. 가득 찬 경우 가장 오래된 항목을 먼저 제거합니다.

        파라미터:
            item: 추가할 항목

        반환값:
            제거된 가장 오래된 항목 (제거가 없었으면 None)
        """
        evicted: Optional[T] = None
        with self._lock:
            if len(self._items) >= self._capacity:
                evicted = self._items.popleft()
                self._dropped_count += 1
            self._items.append(item)
            self._total_pushed += 1
        return evicted

    def try_pop(self) -> Optional[T]:
        """
        가장 오래된 항목을 꺼냅니다. 비어 있으면 즉시 None을 반환합니다 (블로킹 없음).
        """
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def clear(self) -> int:
        """
        버퍼를 비웁니다.

        반환값:
            int: 제거된 항목 수
        """
        with self._lock:
            removed = len(self._items)
            self._items.clear()
        if removed:
            logger.debug(f"프레임 버퍼 비움: {removed}개 제거")
        return removed

    @property
    def total_pushed(self) -> int:
        """지금까지 push된 총 항목 수"""
        with self._lock:
            return self._total_pushed

    @property
    def dropped_count(self) -> int:
        """백프레셔로 버려진 총 항목 수"""
        with self._lock:
            return self._dropped_count

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
