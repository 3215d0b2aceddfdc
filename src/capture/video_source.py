"""
영상 입력 소스 모듈입니다.

역할:
- 캡처 루프가 사용하는 공통 소스 인터페이스(VideoSource) 정의
- OpenCVVideoSource: cv2.VideoCapture 기반 카메라 장치/파일/스트림 입력
- SyntheticVideoSource: 카메라 없이 움직이는 사각형 프레임을 생성하는 모의 소스
- 소스 열기 실패 시 SourceUnavailableError 발생

사용 예시:
    >>> source = OpenCVVideoSource(0)
    >>> source.open()
    >>> image = source.read()   # 스트림 종료 또는 장치 오류 시 None
    >>> source.release()
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Union

import cv2
import numpy as np

from src.config.schema import AppConfig, SyntheticSourceConfig

logger = logging.getLogger(__name__)


class SourceUnavailableError(Exception):
    """영상 소스를 열 수 없을 때 발생하는 에러입니다."""
    pass


class VideoSource(ABC):
    """
    캡처 루프가 프레임을 가져오는 소스 인터페이스입니다.

    read()가 None을 반환하면 캡처 루프는 스트림 종료로 간주하고 멈춥니다.
    """

    @abstractmethod
    def open(self) -> None:
        """소스를 엽니다. 실패 시 SourceUnavailableError를 발생시킵니다."""

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """다음 프레임을 반환합니다. 더 이상 프레임이 없으면 None을 반환합니다."""

    @abstractmethod
    def release(self) -> None:
        """소스 리소스를 해제합니다. 여러 번 호출해도 안전해야 합니다."""


class OpenCVVideoSource(VideoSource):
    """
    cv2.VideoCapture를 감싸는 소스입니다.

    정수 식별자는 카메라 장치 인덱스, 문자열은 파일 경로 또는 스트림 URL로 사용합니다.
    숫자로만 된 문자열("0")은 장치 인덱스로 변환합니다.
    """

    def __init__(self, identifier: Union[int, str]) -> None:
        if isinstance(identifier, str) and identifier.isdigit():
            identifier = int(identifier)
        self._identifier = identifier
        self._capture: Optional[cv2.VideoCapture] = None

    @property
    def identifier(self) -> Union[int, str]:
        """소스 식별자 (장치 인덱스 또는 경로)"""
        return self._identifier

    def open(self) -> None:
        capture = cv2.VideoCapture(self._identifier)
        if not capture.isOpened():
            capture.release()
            raise SourceUnavailableError(
                f"영상 소스를 열 수 없습니다: {self._identifier}"
            )
        self._capture = capture
        logger.info(
            f"영상 소스 열기 완료: {self._identifier} "
            f"({int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))}, "
            f"{capture.get(cv2.CAP_PROP_FPS):.1f}fps)"
        )

    def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None
        ok, image = self._capture.read()
        if not ok or image is None or image.size == 0:
            return None
        return image

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug(f"영상 소스 해제: {self._identifier}")


class SyntheticVideoSource(VideoSource):
    """
    움직임 구간과 정지 구간을 번갈아 생성하는 모의 소스입니다.

    검정 배경 위에 흰 사각형을 그리며, motion_frames 동안 사각형이 이동하고
    still_frames 동안 멈춰 있습니다. fps에 맞춰 read()가 대기하여
    실제 카메라처럼 일정한 속도로 프레임을 공급합니다.

    생성 흐름:
        검정 배경 생성 → 주기 내 위치 계산 → 사각형 그리기 → fps 주기 대기
    """

    # 사각형 한 변 길이 (프레임 짧은 변 대비 비율)
    _BLOCK_RATIO = 0.25
    # 움직임 구간에서 프레임당 이동 픽셀 수
    _STEP_PX = 6

    def __init__(self, config: SyntheticSourceConfig) -> None:
        self._config = config
        self._frame_index: int = 0
        self._opened: bool = False
        self._frame_interval_sec = 1.0 / config.fps if config.fps > 0 else 0.0
        self._next_frame_at: float = 0.0

        self._block_size = max(
            8, int(min(config.width, config.height) * self._BLOCK_RATIO)
        )
        self._background = np.zeros((config.height, config.width, 3), dtype=np.uint8)

    def open(self) -> None:
        self._opened = True
        self._frame_index = 0
        self._next_frame_at = time.monotonic()
        logger.info(
            f"합성 영상 소스 시작: {self._config.width}x{self._config.height}, "
            f"fps={self._config.fps}, "
            f"motion={self._config.motion_frames}f, still={self._config.still_frames}f"
        )

    def read(self) -> Optional[np.ndarray]:
        if not self._opened:
            return None
        total = self._config.total_frames
        if total and self._frame_index >= total:
            logger.info(f"합성 영상 소스 종료: 총 {self._frame_index}프레임 생성")
            return None

        # 실시간 속도 시뮬레이션
        if self._frame_interval_sec > 0:
            delay = self._next_frame_at - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            self._next_frame_at += self._frame_interval_sec

        image = self._render(self._frame_index)
        self._frame_index += 1
        return image

    def release(self) -> None:
        self._opened = False

    def _render(self, frame_index: int) -> np.ndarray:
        """주기 내 위치에 사각형을 그린 프레임을 생성합니다."""
        image = self._background.copy()
        span = self._config.width - self._block_size
        offset = self._block_offset(frame_index)
        # 좌우 왕복
        period = max(1, span * 2)
        x = offset % period
        if x > span:
            x = period - x
        y = (self._config.height - self._block_size) // 2
        image[y:y + self._block_size, x:x + self._block_size] = 255
        return image

    def _block_offset(self, frame_index: int) -> int:
        """누적 이동 거리(픽셀)를 계산합니다. 정지 구간에서는 증가하지 않습니다."""
        motion = self._config.motion_frames
        cycle = motion + self._config.still_frames
        if motion <= 0:
            return 0
        completed_cycles, position = divmod(frame_index, cycle)
        moved = completed_cycles * motion + min(position, motion)
        return moved * self._STEP_PX


def create_video_source(config: AppConfig) -> VideoSource:
    """설정의 실행 모드에 맞는 영상 소스를 생성합니다."""
    if config.system.mode == "synthetic":
        return SyntheticVideoSource(config.capture.synthetic)
    return OpenCVVideoSource(config.capture.source)
