"""
움직임 감지 모듈 패키지

공통 데이터 타입:
- MotionSample: 프레임 1개에 대한 움직임 점수와 판정 결과
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class MotionSample:
    """
    프레임 1개의 움직임 분석 결과입니다.

    필드:
        score: 직전 프레임 대비 변화 픽셀 수 (0 이상)
        timestamp_ms: 분석 시각 (단조 시계, 밀리초)
        motion_present: score가 임계값을 초과했는지 여부
    """
    score: int
    timestamp_ms: int
    motion_present: bool
