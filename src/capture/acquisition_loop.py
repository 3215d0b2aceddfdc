"""
캡처 루프(프로듀서) 모듈입니다.

역할:
- 전용 스레드에서 영상 소스의 다음 프레임을 반복해서 읽음
- 프레임을 복제하여 공유 버퍼에 push (가득 차면 가장 오래된 프레임 제거)
- 소스 열기 실패 / 스트림 종료 시 running 플래그를 내려 시스템 전체에 알림
- 예외를 스레드 밖으로 전파하지 않고 status 문자열로 종료 사유를 보고

사용 예시:
    >>> running = threading.Event()
    >>> running.set()
    >>> loop = AcquisitionLoop(source, buffer, running, yield_interval_ms=1.0)
    >>> thread = threading.Thread(target=loop.run, name="acquisition")
    >>> thread.start()
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from src.capture import Frame
from src.capture.frame_buffer import SharedFrameBuffer
from src.capture.video_source import SourceUnavailableError, VideoSource
from src.metrics.metrics_store import PipelineMetrics

logger = logging.getLogger(__name__)

# 캡처 루프 상태 값
STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_STREAM_ENDED = "stream_ended"
STATUS_SOURCE_UNAVAILABLE = "source_unavailable"
STATUS_SOURCE_ERROR = "source_error"
STATUS_STOPPED = "stopped"


class AcquisitionLoop:
    """
    영상 소스에서 프레임을 읽어 공유 버퍼로 공급하는 프로듀서입니다.

    버퍼 락은 push 동안만 잡히며, 컨슈머 속도와 무관하게 진행합니다.
    running 이벤트가 해제되면 현재 반복을 마치고 종료합니다.
    """

    def __init__(
        self,
        source: VideoSource,
        buffer: SharedFrameBuffer[Frame],
        running: threading.Event,
        yield_interval_ms: float = 1.0,
        metrics: Optional[PipelineMetrics] = None,
    ) -> None:
        """
        파라미터:
            source: 프레임을 공급할 영상 소스
            buffer: 분석 루프와 공유하는 프레임 버퍼
            running: 두 루프가 공유하는 실행 플래그
            yield_interval_ms: 매 반복 후 CPU 양보 시간 (밀리초)
            metrics: 통계 저장소 (선택)
        """
        self._source = source
        self._buffer = buffer
        self._running = running
        self._yield_sec = yield_interval_ms / 1000.0
        self._metrics = metrics

        self._status: str = STATUS_IDLE
        self._frame_id: int = 0

    @property
    def status(self) -> str:
        """캡처 루프 상태 ("idle" | "running" | "stream_ended" | "source_unavailable" | "source_error" | "stopped")"""
        return self._status

    @property
    def frames_captured(self) -> int:
        """지금까지 버퍼에 넣은 프레임 수"""
        return self._frame_id

    def run(self) -> None:
        """
        캡처 루프 본체입니다. 스레드 target으로 사용합니다.

        종료 조건:
        - running 이벤트 해제 (stop 신호) → status "stopped"
        - 소스가 프레임을 주지 않음 (스트림 종료/장치 오류) → "stream_ended"
        - 소스 열기 실패 → "source_unavailable"
        - 읽기/push 중 예상하지 못한 예외 → "source_error"
        "stopped" 외의 경우에는 running 이벤트를 해제하여 분석 루프도 멈추게 합니다.
        """
        try:
            self._source.open()
        except SourceUnavailableError as exc:
            logger.error(f"영상 소스를 열 수 없어 캡처를 중단합니다: {exc}")
            self._status = STATUS_SOURCE_UNAVAILABLE
            self._running.clear()
            return

        self._status = STATUS_RUNNING
        logger.info("캡처 루프 시작")

        try:
            while self._running.is_set():
                image = self._source.read()
                if image is None:
                    logger.info(f"영상 스트림 종료: 총 {self._frame_id}프레임 캡처")
                    self._status = STATUS_STREAM_ENDED
                    self._running.clear()
                    return

                frame = Frame(
                    frame_id=self._frame_id,
                    timestamp_ns=time.monotonic_ns(),
                    image=image.copy(),
                )
                evicted = self._buffer.push_evict_oldest(frame)
                self._frame_id += 1

                if evicted is not None:
                    logger.debug(
                        f"프레임 버퍼 가득 참: 프레임 {evicted.frame_id} 제거 후 {frame.frame_id} 삽입"
                    )
                if self._metrics is not None:
                    self._metrics.record_captured(dropped=evicted is not None)

                if self._yield_sec > 0:
                    time.sleep(self._yield_sec)

            self._status = STATUS_STOPPED
            logger.info(f"캡처 루프 중지: 총 {self._frame_id}프레임 캡처")
        except Exception as exc:
            logger.error(f"캡처 중 오류로 캡처 루프를 중단합니다: {exc}", exc_info=True)
            self._status = STATUS_SOURCE_ERROR
            self._running.clear()
        finally:
            self._source.release()
