"""
라이브 프리뷰 창 모듈입니다.

역할:
- 녹화 상태(ACTIVE/BUFFERING)를 나타내는 표시등과 라벨을 프레임에 오버레이
- OpenCV imshow로 프리뷰 출력 및 종료 키 폴링
- 오버레이는 녹화 파일에 기록된 뒤의 프레임에만 그려지므로 저장 영상에는 남지 않음

사용 예시:
    >>> preview = PreviewWindow(config.preview)
    >>> keep_running = preview.show(image, RecordingState.ACTIVE)
    >>> preview.close()
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from src.config.schema import PreviewConfig
from src.recording import RecordingState

logger = logging.getLogger(__name__)

# 오버레이 색상 (BGR)
_RED = (0, 0, 255)
_YELLOW = (0, 255, 255)

# 표시등 위치/크기와 라벨 위치
_MARKER_CENTER = (30, 30)
_MARKER_RADIUS = 10
_LABEL_ORIGIN = (50, 40)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.7
_FONT_THICKNESS = 2

# 상태별 (표시등 색상, 라벨)
_OVERLAY_STYLE = {
    RecordingState.ACTIVE: (_RED, "MOTION DETECTED"),
    RecordingState.BUFFERING: (_YELLOW, "BUFFERING..."),
}


def draw_overlay(image: np.ndarray, state: RecordingState) -> np.ndarray:
    """
    녹화 상태 오버레이를 그립니다. IDLE이면 아무것도 그리지 않습니다.

    입력 배열을 직접 수정하며, 같은 배열을 반환합니다.

    파라미터:
        image: BGR 프레임
        state: 현재 녹화 상태

    반환값:
        np.ndarray: 오버레이가 그려진 프레임
    """
    style = _OVERLAY_STYLE.get(state)
    if style is None:
        return image
    marker_color, label = style
    cv2.circle(image, _MARKER_CENTER, _MARKER_RADIUS, marker_color, -1)
    cv2.putText(image, label, _LABEL_ORIGIN, _FONT, _FONT_SCALE, _RED, _FONT_THICKNESS)
    return image


class PreviewWindow:
    """
    녹화 상태 오버레이와 함께 프레임을 화면에 출력하는 OpenCV 창입니다.

    imshow/waitKey는 분석 스레드에서만 호출합니다.
    """

    def __init__(self, config: PreviewConfig) -> None:
        """
        파라미터:
            config: 프리뷰 설정 (창 이름, 종료 키, 키 대기 시간)
        """
        self._config = config
        self._quit_code = ord(config.quit_key)
        self._opened = False

    @property
    def window_name(self) -> str:
        """창 이름"""
        return self._config.window_name

    def show(self, image: np.ndarray, state: RecordingState) -> bool:
        """
        오버레이를 그린 프레임을 출력하고 키 입력을 확인합니다.

        파라미터:
            image: 출력할 프레임 (오버레이가 직접 그려짐)
            state: 현재 녹화 상태

        반환값:
            bool: 계속 실행하면 True, 종료 키가 눌렸거나 출력에 실패하면 False
        """
        draw_overlay(image, state)
        try:
            cv2.imshow(self._config.window_name, image)
            self._opened = True
            key = cv2.waitKey(self._config.wait_ms) & 0xFF
        except cv2.error as exc:
            logger.error(f"OpenCV 화면 출력 실패: {exc}")
            return False

        if key == self._quit_code:
            logger.info(f"종료 키 '{self._config.quit_key}' 입력")
            return False
        return True

    def close(self) -> None:
        """프리뷰 창을 닫습니다. 한 번도 출력하지 않았으면 아무것도 하지 않습니다."""
        if not self._opened:
            return
        self._opened = False
        try:
            cv2.destroyWindow(self._config.window_name)
        except cv2.error as exc:
            logger.debug(f"프리뷰 창 닫기 실패 (이미 닫힘): {exc}")
