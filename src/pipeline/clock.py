"""
시간 소스 모듈입니다.

분석 루프, 녹화 상태 머신, 파일 이름 생성기가 직접 time/datetime을 호출하지 않고
이 인터페이스를 주입받아 사용합니다. 테스트에서는 가짜 시계로 교체하여
실제 대기 없이 히스테리시스 구간을 검증할 수 있습니다.
"""

from __future__ import annotations

import time
from datetime import datetime


class SystemClock:
    """실제 시스템 시계입니다."""

    def monotonic_ms(self) -> int:
        """단조 증가 시각 (밀리초). 경과 시간 계산에 사용합니다."""
        return time.monotonic_ns() // 1_000_000

    def now(self) -> datetime:
        """현재 로컬 벽시계 시각. 녹화 파일 이름에 사용합니다."""
        return datetime.now()

    def sleep(self, seconds: float) -> None:
        """지정 시간 동안 대기합니다."""
        if seconds > 0:
            time.sleep(seconds)
