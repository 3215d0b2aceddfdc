"""
프레임 차분 기반 움직임 감지 모듈입니다.

역할:
- 직전 프레임(기준 그레이 이미지)과 현재 프레임을 비교하여 움직임 점수 계산
- 점수가 임계값을 초과하면 움직임으로 판정
- 첫 프레임은 기준으로만 저장하고 점수를 내지 않음

점수 계산 흐름:
    그레이 변환 → 가우시안 블러 → 기준과 절대 차분 → 이진화 → 팽창 → 0이 아닌 픽셀 수

사용 예시:
    >>> detector = MotionDetector(config.motion)
    >>> sample = detector.process(image, timestamp_ms=1200)
    >>> if sample is not None and sample.motion_present:
    ...     print(sample.score)
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from src.config.schema import MotionConfig
from src.motion import MotionSample
from src.motion.image_ops import ImageProcessor, ProcessingError

logger = logging.getLogger(__name__)


class MotionDetector:
    """
    연속된 두 프레임의 차이로 움직임 점수를 계산하는 감지기입니다.

    기준 이미지는 매 프레임 분석 후 현재 프레임으로 교체됩니다 (누적 배경 모델 없음).
    분석 스레드 하나에서만 사용합니다.
    """

    def __init__(
        self,
        config: MotionConfig,
        processor: Optional[ImageProcessor] = None,
    ) -> None:
        """
        파라미터:
            config: 움직임 감지 설정
            processor: 이미지 연산기 (테스트에서 교체 가능)
        """
        self._config = config
        self._processor = processor or ImageProcessor()
        self._baseline: Optional[np.ndarray] = None

    @property
    def has_baseline(self) -> bool:
        """기준 이미지 보유 여부"""
        return self._baseline is not None

    def process(self, image: np.ndarray, timestamp_ms: int) -> Optional[MotionSample]:
        """
        프레임을 분석하여 움직임 결과를 반환합니다.

        파라미터:
            image: BGR/BGRA/그레이 이미지
            timestamp_ms: 분석 시각 (단조 시계, 밀리초)

        반환값:
            MotionSample. 첫 프레임(기준 없음)이면 None

        예외:
            ProcessingError: 이미지 연산 실패. 프레임 크기가 바뀐 경우에는
                기준을 현재 프레임으로 재설정한 뒤 발생시킵니다.
        """
        ops = self._processor
        gray = ops.blur(ops.to_gray(image), self._config.blur_kernel_size)

        if self._baseline is None:
            self._baseline = gray
            logger.debug("첫 프레임을 움직임 기준으로 저장")
            return None

        if self._baseline.shape != gray.shape:
            previous_shape = self._baseline.shape
            self._baseline = gray
            raise ProcessingError(
                f"프레임 크기 변경으로 기준 재설정: {previous_shape} → {gray.shape}"
            )

        diff = ops.abs_diff(self._baseline, gray)
        mask = ops.binarize(diff, self._config.pixel_threshold)
        mask = ops.dilate(mask, self._config.dilate_iterations)
        score = ops.count_nonzero(mask)

        self._baseline = gray
        return MotionSample(
            score=score,
            timestamp_ms=timestamp_ms,
            motion_present=self.classify(score),
        )

    def classify(self, score: int) -> bool:
        """점수가 임계값을 초과하면 움직임으로 판정합니다 (경계값은 움직임 아님)."""
        return score > self._config.score_threshold

    def reset(self) -> None:
        """기준 이미지를 비웁니다. 다음 프레임이 새 기준이 됩니다."""
        self._baseline = None

    def update_config(self, config: MotionConfig) -> None:
        """
        감지 파라미터를 핫스왑합니다.

        블러 커널이 바뀌면 기존 기준과 비교가 의미 없으므로 기준을 재설정합니다.
        """
        if config.blur_kernel_size != self._config.blur_kernel_size:
            self.reset()
        self._config = config
        logger.info(
            f"MotionDetector 설정 핫스왑: blur={config.blur_kernel_size}, "
            f"pixel_threshold={config.pixel_threshold}, "
            f"score_threshold={config.score_threshold}"
        )
