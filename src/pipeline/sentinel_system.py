"""
Sentinel 시스템 수명주기 관리 모듈입니다.

역할:
- 캡처 스레드와 분석 루프를 구성하고 실행/종료를 조율
- 공유 실행 플래그(threading.Event)를 인스턴스마다 소유하여 여러 시스템이 공존 가능
- 종료 사유(status)와 마지막 처리 오류(last_error) 보고
- ConfigManager 구독 콜백으로 움직임/녹화 파라미터 핫스왑

파이프라인 구조:
    [VideoSource] ──(acquisition 스레드)──▶ [SharedFrameBuffer]
                                                  │ try_pop
                                                  ▼
                        (호출 스레드) [AnalysisLoop] ──▶ 녹화 파일 / 프리뷰 창

사용 예시:
    >>> with SentinelSystem(config) as system:
    ...     system.start()          # 종료 키 또는 스트림 종료까지 블로킹
    >>> print(system.status)
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from src.capture import Frame
from src.capture.acquisition_loop import (
    AcquisitionLoop,
    STATUS_RUNNING,
    STATUS_SOURCE_ERROR,
    STATUS_SOURCE_UNAVAILABLE,
    STATUS_STREAM_ENDED,
)
from src.capture.frame_buffer import SharedFrameBuffer
from src.capture.video_source import VideoSource, create_video_source
from src.config.schema import AppConfig
from src.metrics.metrics_store import PipelineMetrics
from src.motion.image_ops import ImageProcessor
from src.motion.motion_detector import MotionDetector
from src.pipeline.analysis_loop import AnalysisLoop
from src.pipeline.clock import SystemClock
from src.preview.preview_window import PreviewWindow
from src.recording.state_machine import RecordingStateMachine, WriterFactory

logger = logging.getLogger(__name__)

# 시스템 상태 값
STATUS_IDLE = "idle"
STATUS_STOPPED = "stopped"


class SentinelSystem:
    """
    움직임 감지 녹화 시스템 전체를 관리하는 오케스트레이터 클래스입니다.

    start()는 캡처 스레드를 띄운 뒤 호출 스레드에서 분석 루프를 실행하며,
    루프가 끝나면 stop()으로 캡처 스레드를 정리합니다.
    stop()은 다른 스레드(시그널 핸들러, 타이머)에서 호출해도 안전합니다.
    """

    def __init__(
        self,
        config: AppConfig,
        source_factory: Callable[[AppConfig], VideoSource] = create_video_source,
        image_processor: Optional[ImageProcessor] = None,
        writer_factory: Optional[WriterFactory] = None,
        filename_factory: Optional[Callable[[], str]] = None,
        clock: Optional[SystemClock] = None,
        preview: Optional[PreviewWindow] = None,
        metrics: Optional[PipelineMetrics] = None,
    ) -> None:
        """
        파라미터:
            config: 전체 애플리케이션 설정
            source_factory: 설정으로 영상 소스를 만드는 함수
            image_processor: 이미지 연산기 (기본: ImageProcessor)
            writer_factory: 녹화 스트림 생성 함수 (기본: OpenCVVideoWriter)
            filename_factory: 녹화 파일 경로 생성 함수 (기본: 설정 기반)
            clock: 시간 소스 (기본: SystemClock)
            preview: 프리뷰 창 (None이고 preview.enabled면 자동 생성)
            metrics: 통계 저장소 (기본: 새 PipelineMetrics)
        """
        self._config = config
        self._source_factory = source_factory
        self._clock = clock or SystemClock()
        self._metrics = metrics or PipelineMetrics()

        if preview is None and config.preview.enabled:
            preview = PreviewWindow(config.preview)
        self._preview = preview

        self._detector = MotionDetector(config.motion, image_processor)
        self._state_machine = RecordingStateMachine(
            config.recording,
            writer_factory=writer_factory,
            filename_factory=filename_factory,
            metrics=self._metrics,
            now_fn=self._clock.now,
        )

        # 두 루프가 공유하는 실행 플래그
        self._running = threading.Event()
        self._lock = threading.Lock()

        self._buffer: Optional[SharedFrameBuffer[Frame]] = None
        self._acquisition: Optional[AcquisitionLoop] = None
        self._analysis: Optional[AnalysisLoop] = None
        self._acquisition_thread: Optional[threading.Thread] = None

        self._status: str = STATUS_IDLE

    # =========================================================================
    # 조회
    # =========================================================================

    @property
    def status(self) -> str:
        """
        시스템 상태입니다.

        "idle" | "running" | "stopped" | "source_unavailable" | "stream_ended" | "source_error"
        """
        return self._status

    @property
    def last_error(self) -> Optional[Exception]:
        """분석 루프의 마지막 프레임 처리 오류"""
        if self._analysis is None:
            return None
        return self._analysis.last_error

    @property
    def is_running(self) -> bool:
        """실행 플래그가 설정되어 있는지 여부"""
        return self._running.is_set()

    @property
    def metrics(self) -> PipelineMetrics:
        """파이프라인 통계 저장소"""
        return self._metrics

    @property
    def buffer(self) -> Optional[SharedFrameBuffer[Frame]]:
        """현재 실행의 공유 프레임 버퍼 (start 전에는 None)"""
        return self._buffer

    @property
    def state_machine(self) -> RecordingStateMachine:
        """녹화 상태 머신"""
        return self._state_machine

    # =========================================================================
    # 수명주기
    # =========================================================================

    def start(self) -> None:
        """
        시스템을 시작하고 분석 루프가 끝날 때까지 블로킹합니다.

        이미 실행 중이면 아무것도 하지 않습니다.
        분석 루프가 어떤 이유로 끝나든 stop()을 호출하여 캡처 스레드를 정리합니다.
        """
        with self._lock:
            if self._running.is_set():
                logger.warning("SentinelSystem이 이미 실행 중입니다.")
                return
            self._prepare_run()
            self._running.set()
            self._status = STATUS_RUNNING
            self._acquisition_thread = threading.Thread(
                target=self._acquisition.run,
                name="acquisition",
                daemon=True,
            )
            self._acquisition_thread.start()

        logger.info(
            f"SentinelSystem 시작: mode={self._config.system.mode}, "
            f"buffer={self._config.capture.buffer_capacity}, "
            f"preview={'on' if self._preview is not None else 'off'}"
        )
        try:
            self._analysis.run()
        finally:
            self.stop()

    def stop(self) -> None:
        """
        실행 플래그를 내리고 캡처 스레드가 끝날 때까지 기다립니다.

        여러 번 호출해도 안전하며, 반환 후에는 버퍼에 더 이상 프레임이 들어가지 않습니다.
        캡처 스레드가 끝날 때까지 반환하지 않고, capture.join_timeout_sec마다 경고를 남깁니다.
        캡처 스레드 자신에서 호출되면 join하지 않습니다.
        """
        self._running.clear()

        thread = self._acquisition_thread
        if thread is not None and thread is not threading.current_thread():
            warn_interval = self._config.capture.join_timeout_sec
            thread.join(timeout=warn_interval)
            while thread.is_alive():
                logger.warning(
                    f"캡처 스레드 종료 대기 중입니다 ({warn_interval}초 경과마다 재확인)"
                )
                thread.join(timeout=warn_interval)
            self._acquisition_thread = None

        if self._status == STATUS_RUNNING:
            self._status = self._resolve_final_status()
            logger.info(f"SentinelSystem 종료: status={self._status}")

    def close(self) -> None:
        """stop()과 같습니다. with 문 종료 시 호출됩니다."""
        self.stop()

    def __enter__(self) -> "SentinelSystem":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        # 생성 도중 실패한 경우 속성이 없을 수 있음
        if getattr(self, "_running", None) is not None and self._running.is_set():
            self.stop()

    # =========================================================================
    # 설정 핫스왑
    # =========================================================================

    def apply_config(self, old_config: AppConfig, new_config: AppConfig) -> None:
        """
        설정 변경을 실행 중인 시스템에 적용합니다 (핫스왑).

        ConfigManager.subscribe()에 콜백으로 등록되어 파일 변경 시 자동 호출됩니다.

        적용 범위:
        - MotionDetector: 블러 커널, 픽셀 임계값, 팽창 횟수, 점수 임계값
        - RecordingStateMachine: 버퍼/Active 윈도우, 코덱, fps, 파일 이름 (다음 세션부터)
        capture/preview 섹션 변경은 재시작 후 적용됩니다.

        파라미터:
            old_config: 이전 설정 객체
            new_config: 새 설정 객체
        """
        self._config = new_config
        if old_config.motion != new_config.motion:
            self._detector.update_config(new_config.motion)
        if old_config.recording != new_config.recording:
            self._state_machine.update_config(new_config.recording)
        if (
            old_config.capture != new_config.capture
            or old_config.preview != new_config.preview
        ):
            logger.warning("capture/preview 설정 변경은 재시작 후 적용됩니다.")
        logger.info("SentinelSystem 설정 핫스왑 완료")

    # =========================================================================
    # 내부 헬퍼
    # =========================================================================

    def _prepare_run(self) -> None:
        """새 실행에 필요한 버퍼와 두 루프를 구성합니다."""
        capture_cfg = self._config.capture
        self._buffer = SharedFrameBuffer(capture_cfg.buffer_capacity)
        self._detector.reset()

        self._acquisition = AcquisitionLoop(
            source=self._source_factory(self._config),
            buffer=self._buffer,
            running=self._running,
            yield_interval_ms=capture_cfg.yield_interval_ms,
            metrics=self._metrics,
        )
        self._analysis = AnalysisLoop(
            buffer=self._buffer,
            running=self._running,
            detector=self._detector,
            state_machine=self._state_machine,
            clock=self._clock,
            preview=self._preview,
            metrics=self._metrics,
            poll_interval_ms=capture_cfg.poll_interval_ms,
            metrics_log_interval=self._config.metrics.log_interval_frames,
        )

    def _resolve_final_status(self) -> str:
        """캡처 루프가 스스로 멈춘 경우 그 사유를, 아니면 "stopped"를 반환합니다."""
        if self._acquisition is None:
            return STATUS_STOPPED
        acquisition_status = self._acquisition.status
        if acquisition_status in (
            STATUS_SOURCE_UNAVAILABLE,
            STATUS_STREAM_ENDED,
            STATUS_SOURCE_ERROR,
        ):
            return acquisition_status
        return STATUS_STOPPED
