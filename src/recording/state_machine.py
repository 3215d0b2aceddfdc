"""
히스테리시스 녹화 상태 머신 모듈입니다.

역할:
- 프레임별 움직임 판정으로 녹화 세션을 열고 닫음
- 움직임이 멈춘 뒤에도 buffer_window_ms 동안 녹화를 유지 (히스테리시스 꼬리)
- 녹화 중 상태를 ACTIVE(최근 움직임)와 BUFFERING(꼬리 구간)으로 구분 (표시 전용)
- 출력 스트림 열기 실패 시 해당 프레임 기록을 건너뛰고 다음 프레임에서 재시도

상태 전이:
    IDLE ──(움직임)──▶ ACTIVE ──(active_window 경과)──▶ BUFFERING
      ▲                  ▲                                  │
      │                  └──────────(움직임)─────────────────┤
      └──────────────(buffer_window 경과, 세션 닫기)──────────┘

사용 예시:
    >>> machine = RecordingStateMachine(config.recording)
    >>> decision = machine.update(sample.motion_present, sample.timestamp_ms, image)
    >>> machine.close()
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

import numpy as np

from src.config.schema import RecordingConfig
from src.metrics.metrics_store import PipelineMetrics
from src.recording import RecordingDecision, RecordingSession, RecordingState
from src.recording.video_writer import (
    EvidenceFilenameFactory,
    OpenCVVideoWriter,
    OutputOpenError,
)

logger = logging.getLogger(__name__)

# (filename, fourcc, fps, (width, height)) → write/close를 제공하는 스트림
WriterFactory = Callable[[str, str, float, tuple[int, int]], Any]


class RecordingStateMachine:
    """
    움직임 판정을 녹화 세션 열기/기록/닫기로 변환하는 상태 머신입니다.

    타이머 재설정은 움직임 프레임에서만 일어납니다. 움직임이 한 번도 없었다면
    경과 시간은 무한대로 취급하여 IDLE을 유지합니다.
    출력 스트림은 분석 스레드만 접근합니다.
    """

    def __init__(
        self,
        config: RecordingConfig,
        writer_factory: Optional[WriterFactory] = None,
        filename_factory: Optional[Callable[[], str]] = None,
        metrics: Optional[PipelineMetrics] = None,
        now_fn: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        파라미터:
            config: 녹화 설정
            writer_factory: 출력 스트림 생성 함수 (기본: OpenCVVideoWriter)
            filename_factory: 파일 경로 생성 함수 (기본: 설정 기반 EvidenceFilenameFactory)
            metrics: 통계 저장소 (선택)
            now_fn: 벽시계 시각 함수 (세션 생성 시각 기록용)
        """
        self._config = config
        self._writer_factory: WriterFactory = writer_factory or OpenCVVideoWriter
        self._owns_filename_factory = filename_factory is None
        self._filename_factory: Callable[[], str] = (
            filename_factory or EvidenceFilenameFactory.from_config(config, now_fn)
        )
        self._metrics = metrics
        self._now_fn = now_fn

        self._state = RecordingState.IDLE
        self._last_motion_ms: Optional[int] = None
        self._session: Optional[RecordingSession] = None

    # =========================================================================
    # 조회
    # =========================================================================

    @property
    def state(self) -> RecordingState:
        """마지막 update() 이후의 녹화 상태"""
        return self._state

    @property
    def last_motion_timestamp_ms(self) -> Optional[int]:
        """마지막으로 움직임이 감지된 시각 (없으면 None)"""
        return self._last_motion_ms

    @property
    def session(self) -> Optional[RecordingSession]:
        """현재 열린 녹화 세션 (없으면 None)"""
        return self._session

    @property
    def is_recording(self) -> bool:
        """출력 스트림이 열려 있는지 여부"""
        return self._session is not None

    # =========================================================================
    # 프레임 처리
    # =========================================================================

    def update(
        self,
        motion_present: bool,
        timestamp_ms: int,
        image: np.ndarray,
    ) -> RecordingDecision:
        """
        프레임 1개의 움직임 판정으로 상태를 갱신하고 필요하면 프레임을 기록합니다.

        파라미터:
            motion_present: 이 프레임의 움직임 여부
            timestamp_ms: 분석 시각 (단조 시계, 밀리초)
            image: 기록할 원본 프레임 (오버레이 그리기 전)

        반환값:
            RecordingDecision: 처리 후 상태와 기록/세션 변화 여부
        """
        if motion_present:
            self._last_motion_ms = timestamp_ms

        elapsed: Optional[int] = None
        if self._last_motion_ms is not None:
            elapsed = timestamp_ms - self._last_motion_ms

        if elapsed is None or elapsed >= self._config.buffer_window_ms:
            closed = self.close()
            self._transition(RecordingState.IDLE, elapsed)
            return RecordingDecision(
                state=RecordingState.IDLE,
                elapsed_ms=elapsed,
                session_closed=closed,
            )

        if elapsed < self._config.active_window_ms:
            state = RecordingState.ACTIVE
        else:
            state = RecordingState.BUFFERING
        self._transition(state, elapsed)

        # 열린 스트림과 크기가 다른 프레임은 기록되지 않으므로 세션을 새로 엶
        closed = False
        height, width = image.shape[:2]
        if self._session is not None and self._session.frame_size != (width, height):
            logger.warning(
                f"프레임 크기 변경 ({self._session.frame_size[0]}x{self._session.frame_size[1]}"
                f" → {width}x{height}): 녹화 세션을 다시 엽니다."
            )
            closed = self.close()

        opened = False
        if self._session is None:
            opened = self._open_session(image)

        wrote = False
        if self._session is not None:
            self._session.stream.write(image)
            self._session.frame_count += 1
            wrote = True

        return RecordingDecision(
            state=state,
            elapsed_ms=elapsed,
            wrote=wrote,
            session_opened=opened,
            session_closed=closed,
        )

    def close(self) -> bool:
        """
        열린 녹화 세션을 flush하고 닫습니다. 여러 번 호출해도 안전합니다.

        반환값:
            bool: 실제로 닫은 세션이 있으면 True
        """
        session = self._session
        if session is None:
            return False
        self._session = None
        session.stream.close()
        duration = (self._now_fn() - session.created_at).total_seconds()
        logger.info(
            f"녹화 종료: {session.filename} "
            f"({session.frame_count}프레임, {duration:.1f}초)"
        )
        if self._metrics is not None:
            self._metrics.record_recording_completed(session.frame_count)
        return True

    def update_config(self, config: RecordingConfig) -> None:
        """
        윈도우/코덱/파일 이름 설정을 핫스왑합니다.

        열린 세션은 유지되며, 새 코덱과 파일 이름은 다음 세션부터 적용됩니다.
        """
        self._config = config
        if self._owns_filename_factory:
            self._filename_factory = EvidenceFilenameFactory.from_config(config, self._now_fn)
        logger.info(
            f"RecordingStateMachine 설정 핫스왑: buffer={config.buffer_window_ms}ms, "
            f"active={config.active_window_ms}ms, codec={config.codec}"
        )

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _open_session(self, image: np.ndarray) -> bool:
        """
        현재 프레임 크기로 새 녹화 세션을 엽니다.

        반환값:
            bool: 세션을 열었으면 True. 실패 시 로그/통계만 남기고 False
        """
        height, width = image.shape[:2]
        try:
            filename = self._filename_factory()
            stream = self._writer_factory(
                filename, self._config.codec, self._config.fps, (width, height)
            )
        except OutputOpenError as exc:
            logger.error(f"녹화 스트림 열기 실패, 다음 프레임에서 재시도합니다: {exc}")
            if self._metrics is not None:
                self._metrics.record_output_open_failure()
            return False

        self._session = RecordingSession(
            filename=filename,
            stream=stream,
            created_at=self._now_fn(),
            frame_size=(width, height),
        )
        logger.info(
            f"녹화 시작: {filename} ({width}x{height}, "
            f"{self._config.codec}, {self._config.fps:g}fps)"
        )
        if self._metrics is not None:
            self._metrics.record_recording_started()
        return True

    def _transition(self, state: RecordingState, elapsed: Optional[int]) -> None:
        """상태가 바뀐 경우에만 기록하고 로그를 남깁니다."""
        if state is self._state:
            return
        logger.debug(
            f"녹화 상태 전이: {self._state.value} → {state.value} (elapsed={elapsed}ms)"
        )
        self._state = state
