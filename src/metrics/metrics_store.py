"""
파이프라인 통계 저장소 모듈입니다.

역할:
- 캡처 스레드와 분석 스레드가 함께 갱신하는 thread-safe 통계 저장소
- 캡처/드롭/분석 프레임 수, 처리 오류, 녹화 세션 수, 최근 움직임 점수를 중앙 관리
- 주기적 요약 로그와 호출자 상태 조회에 사용

사용 예시:
    >>> metrics = PipelineMetrics()
    >>> metrics.record_captured(dropped=False)
    >>> snapshot = metrics.snapshot()
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace

from src.metrics import MetricsSnapshot


class PipelineMetrics:
    """
    파이프라인 전체 통계를 중앙에서 관리하는 thread-safe 저장소입니다.

    모든 공개 메서드는 RLock으로 보호됩니다. 공유 프레임 버퍼 락과는 별개이므로
    버퍼 임계 구역을 늘리지 않습니다.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._snapshot = MetricsSnapshot()

    # =========================================================================
    # 캡처 측 (캡처 스레드)
    # =========================================================================

    def record_captured(self, dropped: bool) -> None:
        """프레임 1개 캡처를 기록합니다. dropped=True면 가장 오래된 프레임이 버려진 것입니다."""
        with self._lock:
            s = self._snapshot
            self._snapshot = replace(
                s,
                frames_captured=s.frames_captured + 1,
                frames_dropped=s.frames_dropped + (1 if dropped else 0),
                updated_at_ns=time.time_ns(),
            )

    # =========================================================================
    # 분석 측 (분석 스레드)
    # =========================================================================

    def record_analyzed(self, motion_score: int, recording_state: str, buffer_depth: int) -> None:
        """프레임 1개 분석 결과를 기록합니다."""
        with self._lock:
            s = self._snapshot
            self._snapshot = replace(
                s,
                frames_analyzed=s.frames_analyzed + 1,
                last_motion_score=motion_score,
                recording_state=recording_state,
                buffer_depth=buffer_depth,
                updated_at_ns=time.time_ns(),
            )

    def record_processing_error(self) -> None:
        """이미지 처리 실패를 기록합니다."""
        with self._lock:
            self._snapshot = replace(
                self._snapshot,
                processing_errors=self._snapshot.processing_errors + 1,
                updated_at_ns=time.time_ns(),
            )

    def record_output_open_failure(self) -> None:
        """출력 스트림 열기 실패를 기록합니다."""
        with self._lock:
            self._snapshot = replace(
                self._snapshot,
                output_open_failures=self._snapshot.output_open_failures + 1,
                updated_at_ns=time.time_ns(),
            )

    def record_recording_started(self) -> None:
        """녹화 세션 시작을 기록합니다."""
        with self._lock:
            self._snapshot = replace(
                self._snapshot,
                recordings_started=self._snapshot.recordings_started + 1,
                updated_at_ns=time.time_ns(),
            )

    def record_recording_completed(self, frames_written: int) -> None:
        """녹화 세션 종료와 세션에 기록된 프레임 수를 누적합니다."""
        with self._lock:
            s = self._snapshot
            self._snapshot = replace(
                s,
                recordings_completed=s.recordings_completed + 1,
                frames_written=s.frames_written + frames_written,
                updated_at_ns=time.time_ns(),
            )

    # =========================================================================
    # 조회
    # =========================================================================

    def snapshot(self) -> MetricsSnapshot:
        """현재 통계 사본을 반환합니다 (불변 객체)."""
        with self._lock:
            return self._snapshot
