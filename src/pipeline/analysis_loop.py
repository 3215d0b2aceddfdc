"""
분석 및 녹화 루프(컨슈머) 모듈입니다.

역할:
- 공유 버퍼에서 가장 오래된 프레임을 꺼내 움직임 점수 계산
- 녹화 상태 머신을 갱신하여 원본 프레임을 출력 스트림에 기록
- 프리뷰 창에 상태 오버레이를 그려 출력하고 종료 키를 감시
- 프레임 단위 처리 오류는 기록만 하고 다음 프레임으로 진행

프레임 처리 흐름:
    try_pop → 그레이/블러 → 기준과 차분 → 이진화/팽창 → 점수
      → 상태 머신 갱신(기록) → 기준 교체 → 프리뷰(오버레이, 키 폴링)
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from src.capture import Frame
from src.capture.frame_buffer import SharedFrameBuffer
from src.metrics.metrics_store import PipelineMetrics
from src.motion.image_ops import ProcessingError
from src.motion.motion_detector import MotionDetector
from src.pipeline.clock import SystemClock
from src.preview.preview_window import PreviewWindow
from src.recording.state_machine import RecordingStateMachine

logger = logging.getLogger(__name__)


class AnalysisLoop:
    """
    공유 버퍼의 프레임을 분석하고 녹화/프리뷰를 수행하는 컨슈머입니다.

    호출한 스레드에서 실행되며, 출력 스트림과 움직임 기준 이미지는
    이 루프만 접근합니다. running 이벤트가 해제되거나 종료 키가 눌리면 멈추고,
    멈출 때 열린 녹화 세션을 반드시 닫습니다.
    """

    def __init__(
        self,
        buffer: SharedFrameBuffer[Frame],
        running: threading.Event,
        detector: MotionDetector,
        state_machine: RecordingStateMachine,
        clock: Optional[SystemClock] = None,
        preview: Optional[PreviewWindow] = None,
        metrics: Optional[PipelineMetrics] = None,
        poll_interval_ms: float = 5.0,
        metrics_log_interval: int = 300,
    ) -> None:
        """
        파라미터:
            buffer: 캡처 루프와 공유하는 프레임 버퍼
            running: 두 루프가 공유하는 실행 플래그
            detector: 움직임 감지기
            state_machine: 녹화 상태 머신
            clock: 시간 소스 (기본: SystemClock)
            preview: 프리뷰 창 (None이면 화면 출력 없음)
            metrics: 통계 저장소 (선택)
            poll_interval_ms: 버퍼가 비었을 때 재시도 전 대기 시간
            metrics_log_interval: 통계 요약 로그 주기 (분석 프레임 수, 0이면 비활성)
        """
        self._buffer = buffer
        self._running = running
        self._detector = detector
        self._state_machine = state_machine
        self._clock = clock or SystemClock()
        self._preview = preview
        self._metrics = metrics
        self._poll_sec = poll_interval_ms / 1000.0
        self._metrics_log_interval = metrics_log_interval

        self._frames_analyzed: int = 0
        self._last_error: Optional[Exception] = None
        self._quit_requested: bool = False

    @property
    def frames_analyzed(self) -> int:
        """점수를 계산한 프레임 수 (첫 기준 프레임과 오류 프레임 제외)"""
        return self._frames_analyzed

    @property
    def last_error(self) -> Optional[Exception]:
        """마지막 프레임 처리 오류"""
        return self._last_error

    @property
    def quit_requested(self) -> bool:
        """프리뷰 종료 키로 루프가 멈췄는지 여부"""
        return self._quit_requested

    def run(self) -> None:
        """
        분석 루프 본체입니다. running 이벤트가 해제될 때까지 반복합니다.
        """
        logger.info("분석 루프 시작")
        try:
            while self._running.is_set():
                frame = self._buffer.try_pop()
                if frame is None:
                    self._clock.sleep(self._poll_sec)
                    continue

                if not self.process_frame(frame):
                    self._quit_requested = True
                    self._running.clear()
                    break
        finally:
            self._state_machine.close()
            if self._preview is not None:
                self._preview.close()
            logger.info(f"분석 루프 종료: {self._frames_analyzed}프레임 분석")

    def process_frame(self, frame: Frame) -> bool:
        """
        프레임 1개를 분석합니다.

        파라미터:
            frame: 버퍼에서 꺼낸 프레임

        반환값:
            bool: 계속 실행하면 True, 프리뷰에서 종료 키가 눌렸으면 False
        """
        now_ms = self._clock.monotonic_ms()
        try:
            sample = self._detector.process(frame.image, now_ms)
        except ProcessingError as exc:
            logger.error(
                f"프레임 {frame.frame_id} 처리 실패, 다음 프레임으로 진행합니다: {exc}",
                exc_info=True,
            )
            self._last_error = exc
            if self._metrics is not None:
                self._metrics.record_processing_error()
            return True

        # 첫 프레임은 기준으로만 사용
        if sample is None:
            return True

        decision = self._state_machine.update(
            sample.motion_present, sample.timestamp_ms, frame.image
        )
        self._frames_analyzed += 1

        if self._metrics is not None:
            self._metrics.record_analyzed(
                motion_score=sample.score,
                recording_state=decision.state.value,
                buffer_depth=len(self._buffer),
            )
            self._log_metrics_summary()

        # 오버레이는 기록이 끝난 프레임에만 그림
        if self._preview is not None:
            return self._preview.show(frame.image, decision.state)
        return True

    def _log_metrics_summary(self) -> None:
        """log_interval 프레임마다 통계 요약 로그를 남깁니다."""
        interval = self._metrics_log_interval
        if interval <= 0 or self._frames_analyzed % interval != 0:
            return
        snap = self._metrics.snapshot()
        logger.info(
            f"파이프라인 통계: 캡처={snap.frames_captured}, 분석={snap.frames_analyzed}, "
            f"드롭={snap.frames_dropped} ({snap.drop_rate:.1%}), "
            f"처리오류={snap.processing_errors}, 녹화={snap.recordings_started}회, "
            f"상태={snap.recording_state}, 점수={snap.last_motion_score}"
        )
