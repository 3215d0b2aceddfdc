"""
캡처 모듈 패키지

공통 데이터 타입 정의:
- Frame: 캡처된 영상 프레임 컨테이너
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Frame:
    """
    캡처된 영상 프레임 컨테이너입니다.

    캡처 루프가 소스 이미지를 복제하여 생성하므로, 버퍼에 들어간 뒤에는
    소스 장치의 내부 버퍼와 독립적입니다.

    필드:
        frame_id: 프레임 순번 (0부터 시작)
        timestamp_ns: 캡처 시각 (nanoseconds, time.monotonic_ns() 기준)
        image: 픽셀 데이터 (H x W 또는 H x W x C, uint8)
    """
    frame_id: int
    timestamp_ns: int
    image: np.ndarray

    @property
    def width(self) -> int:
        """프레임 가로 픽셀 수"""
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        """프레임 세로 픽셀 수"""
        return int(self.image.shape[0])

    @property
    def channels(self) -> int:
        """채널 수 (그레이스케일이면 1)"""
        return 1 if self.image.ndim == 2 else int(self.image.shape[2])
