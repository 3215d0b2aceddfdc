"""
움직임 기반 녹화 모듈 패키지

공통 데이터 타입:
- RecordingState: 녹화 상태 (IDLE / ACTIVE / BUFFERING)
- RecordingSession: 열려 있는 녹화 파일 1개의 정보
- RecordingDecision: 프레임 1개에 대한 상태 머신 판정 결과
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class RecordingState(str, Enum):
    """
    녹화 상태입니다.

    ACTIVE와 BUFFERING은 모두 녹화 중이며, 차이는 화면 표시에만 쓰입니다.
    """
    IDLE = "idle"
    ACTIVE = "active"
    BUFFERING = "buffering"

    @property
    def is_recording(self) -> bool:
        """녹화 중인 상태인지 여부"""
        return self is not RecordingState.IDLE


@dataclass
class RecordingSession:
    """
    열려 있는 녹화 파일 1개의 정보입니다. ACTIVE/BUFFERING 동안에만 존재합니다.

    필드:
        filename: 출력 파일 경로
        stream: 열린 출력 스트림 (write/close 제공)
        created_at: 세션 생성 시각 (벽시계)
        frame_count: 지금까지 기록한 프레임 수
        frame_size: 스트림을 연 프레임 크기 (width, height)
    """
    filename: str
    stream: Any
    created_at: datetime = field(default_factory=datetime.now)
    frame_count: int = 0
    frame_size: tuple[int, int] = (0, 0)


@dataclass(frozen=True)
class RecordingDecision:
    """
    상태 머신이 프레임 1개를 처리한 결과입니다.

    필드:
        state: 처리 후 녹화 상태
        elapsed_ms: 마지막 움직임 이후 경과 시간 (움직임이 한 번도 없었으면 None)
        wrote: 이 프레임을 출력 스트림에 기록했는지 여부
        session_opened: 이 프레임에서 새 녹화 세션이 열렸는지 여부
        session_closed: 이 프레임에서 녹화 세션이 닫혔는지 여부
    """
    state: RecordingState
    elapsed_ms: Optional[int] = None
    wrote: bool = False
    session_opened: bool = False
    session_closed: bool = False
