"""
메트릭 모듈 패키지

공통 데이터 타입:
- MetricsSnapshot: 특정 시점의 파이프라인 통계 사본
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    특정 시점의 파이프라인 통계 사본입니다.

    필드:
        frames_captured: 캡처 스레드가 버퍼에 넣은 총 프레임 수
        frames_dropped: 버퍼가 가득 차 버려진 프레임 수
        frames_analyzed: 움직임 판정까지 완료된 프레임 수 (기준 프레임 제외)
        processing_errors: 이미지 처리 실패 횟수
        output_open_failures: 출력 스트림 열기 실패 횟수
        recordings_started: 시작된 녹화 세션 수
        recordings_completed: 정상 종료된 녹화 세션 수
        frames_written: 종료된 세션들에 기록된 총 프레임 수
        last_motion_score: 가장 최근 움직임 점수 (변화 픽셀 수)
        recording_state: 가장 최근 녹화 상태 ("idle" | "active" | "buffering")
        buffer_depth: 가장 최근 관측한 공유 버퍼 깊이
        updated_at_ns: 마지막 갱신 시각 (nanoseconds)
    """
    frames_captured: int = 0
    frames_dropped: int = 0
    frames_analyzed: int = 0
    processing_errors: int = 0
    output_open_failures: int = 0
    recordings_started: int = 0
    recordings_completed: int = 0
    frames_written: int = 0
    last_motion_score: int = 0
    recording_state: str = "idle"
    buffer_depth: int = 0
    updated_at_ns: int = 0

    @property
    def drop_rate(self) -> float:
        """캡처 대비 백프레셔 드롭 비율 (0.0~1.0)"""
        if self.frames_captured == 0:
            return 0.0
        return self.frames_dropped / self.frames_captured
