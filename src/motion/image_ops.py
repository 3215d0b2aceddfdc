"""
이미지 처리 연산 모듈입니다.

역할:
- 움직임 감지에 필요한 OpenCV 연산(그레이 변환, 블러, 차분, 이진화, 팽창, 픽셀 카운트)을 래핑
- cv2.error를 ProcessingError로 변환하여 분석 루프가 프레임 단위로 복구할 수 있게 함

사용 예시:
    >>> ops = ImageProcessor()
    >>> gray = ops.blur(ops.to_gray(image), 13)
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """이미지 처리 연산이 실패했을 때 발생하는 에러입니다."""
    pass


class ImageProcessor:
    """
    움직임 점수 계산에 쓰이는 OpenCV 연산 모음입니다.

    각 메서드는 입력 배열을 변경하지 않고 새 배열을 반환합니다.
    """

    def to_gray(self, image: np.ndarray) -> np.ndarray:
        """
        BGR(3채널) 또는 BGRA(4채널) 이미지를 단일 채널 그레이로 변환합니다.
        이미 단일 채널이면 그대로 반환합니다.
        """
        if image is None or image.size == 0:
            raise ProcessingError("빈 이미지는 변환할 수 없습니다.")
        try:
            if image.ndim == 2:
                return image
            channels = image.shape[2]
            if channels == 1:
                return image[:, :, 0]
            if channels == 3:
                return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
            if channels == 4:
                return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        except cv2.error as exc:
            raise ProcessingError(f"그레이 변환 실패: {exc}") from exc
        raise ProcessingError(f"지원하지 않는 채널 수: {image.shape}")

    def blur(self, gray: np.ndarray, kernel_size: int) -> np.ndarray:
        """kernel_size x kernel_size 가우시안 블러 (sigma는 커널 크기로부터 자동 계산)"""
        try:
            return cv2.GaussianBlur(gray, (kernel_size, kernel_size), 0)
        except cv2.error as exc:
            raise ProcessingError(f"가우시안 블러 실패: {exc}") from exc

    def abs_diff(self, previous: np.ndarray, current: np.ndarray) -> np.ndarray:
        """두 그레이 이미지의 픽셀별 절대 차이"""
        if previous.shape != current.shape:
            raise ProcessingError(
                f"프레임 크기 불일치: 기준 {previous.shape}, 현재 {current.shape}"
            )
        try:
            return cv2.absdiff(previous, current)
        except cv2.error as exc:
            raise ProcessingError(f"프레임 차분 실패: {exc}") from exc

    def binarize(self, diff: np.ndarray, threshold: int) -> np.ndarray:
        """threshold 초과 픽셀을 255, 나머지를 0으로 이진화합니다."""
        try:
            _, mask = cv2.threshold(diff, threshold, 255, cv2.THRESH_BINARY)
            return mask
        except cv2.error as exc:
            raise ProcessingError(f"이진화 실패: {exc}") from exc

    def dilate(self, mask: np.ndarray, iterations: int) -> np.ndarray:
        """기본 3x3 구조 요소로 iterations회 팽창합니다."""
        if iterations <= 0:
            return mask
        try:
            return cv2.dilate(mask, None, iterations=iterations)
        except cv2.error as exc:
            raise ProcessingError(f"팽창 연산 실패: {exc}") from exc

    def count_nonzero(self, mask: np.ndarray) -> int:
        """0이 아닌 픽셀 수"""
        try:
            return int(cv2.countNonZero(mask))
        except cv2.error as exc:
            raise ProcessingError(f"픽셀 카운트 실패: {exc}") from exc
