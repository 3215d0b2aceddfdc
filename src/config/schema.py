"""
Sentinel 설정 스키마 정의 모듈입니다.

역할:
- Pydantic v2 BaseModel 기반으로 config.yaml의 전체 구조를 타입 안전하게 정의
- 각 섹션(system, capture, motion, recording, preview, metrics)을
  독립적인 중첩 모델로 분리하여 유지보수성 확보
- 필드별 기본값, 허용 범위, 유효성 검증(validator)을 포함

사용 예시:
    >>> from src.config.schema import AppConfig
    >>> config = AppConfig(**yaml_data)
    >>> print(config.recording.buffer_window_ms)
    5000
"""

from __future__ import annotations

import logging
from typing import Union

from pydantic import BaseModel, Field, field_validator, model_validator

# 모듈 로거 설정
logger = logging.getLogger(__name__)


# =============================================================================
# system 섹션: 시스템 전역 설정
# =============================================================================

class SystemConfig(BaseModel):
    """
    시스템 전역 설정을 정의하는 모델입니다.

    역할:
    - 실행 모드(camera/synthetic) 결정
    - 로깅 레벨, 포맷, 파일 순환 정책 지정
    - 세션 식별자 관리
    """
    # 실행 모드: "camera"는 실제 장치/파일 입력, "synthetic"은 테스트용 합성 프레임
    mode: str = Field(default="camera", description="실행 모드 (camera | synthetic)")
    # 로그 출력 레벨
    log_level: str = Field(default="INFO", description="로그 레벨 (DEBUG | INFO | WARNING | ERROR)")
    # 로그 출력 포맷
    log_format: str = Field(default="text", description="로그 포맷 (json | text)")
    # 로그 파일 저장 디렉토리 경로
    log_dir: str = Field(default="output/logs", description="로그 저장 디렉토리")
    # 로그 파일 하나의 최대 크기 (MB)
    log_max_mb: int = Field(default=10, description="로그 파일 최대 크기 (MB)")
    # 순환 보존 파일 개수
    log_backup_count: int = Field(default=5, description="순환 보존 파일 수")
    # 세션 고유 식별자 (빈 문자열이면 UUID로 자동 생성)
    session_id: str = Field(default="", description="세션 ID (비어있으면 UUID 자동생성)")

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, value: str) -> str:
        """실행 모드가 허용된 값인지 검증합니다."""
        allowed_modes = ("camera", "synthetic")
        if value not in allowed_modes:
            error_message = f"mode는 {allowed_modes} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """로그 레벨이 유효한 Python 로깅 레벨인지 검증합니다."""
        allowed_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        # 대소문자 구분 없이 비교 후 대문자로 정규화
        upper_value = value.upper()
        if upper_value not in allowed_levels:
            error_message = f"log_level은 {allowed_levels} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return upper_value

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """로그 포맷이 지원되는 형식인지 검증합니다."""
        allowed_formats = ("json", "text")
        if value not in allowed_formats:
            error_message = f"log_format은 {allowed_formats} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# capture 섹션: 영상 입력 및 공유 버퍼 설정
# =============================================================================

class SyntheticSourceConfig(BaseModel):
    """
    합성 프레임 소스(mode=synthetic) 설정입니다.

    역할:
    - 카메라 없이 파이프라인을 돌려볼 수 있도록 움직이는 사각형 프레임 생성
    - 움직임 구간과 정지 구간을 프레임 수로 제어
    """
    # 생성 프레임 크기
    width: int = Field(default=320, description="합성 프레임 가로 픽셀 수")
    height: int = Field(default=240, description="합성 프레임 세로 픽셀 수")
    # 생성 속도 (fps)
    fps: float = Field(default=30.0, description="합성 프레임 생성 속도 (fps)")
    # 총 생성 프레임 수 (0이면 무한)
    total_frames: int = Field(default=0, description="총 프레임 수 (0=무한)")
    # 사각형이 움직이는 구간 길이 (프레임)
    motion_frames: int = Field(default=60, description="움직임 구간 길이 (프레임)")
    # 사각형이 멈춰 있는 구간 길이 (프레임)
    still_frames: int = Field(default=240, description="정지 구간 길이 (프레임)")


class CaptureConfig(BaseModel):
    """
    영상 입력 장치 및 프레임 버퍼 설정을 정의하는 모델입니다.

    역할:
    - 입력 소스(장치 인덱스 또는 파일/URL) 지정
    - 공유 프레임 버퍼 용량으로 메모리 사용량과 지연 제어
    - 프로듀서 양보 주기와 컨슈머 폴링 주기 설정
    """
    # 입력 소스: 정수면 카메라 장치 인덱스, 문자열이면 파일 경로 또는 스트림 URL
    source: Union[int, str] = Field(default=0, description="입력 소스 (장치 인덱스 | 파일 경로 | URL)")
    # 공유 프레임 버퍼 최대 크기 (초과 시 가장 오래된 프레임 제거)
    buffer_capacity: int = Field(default=6, description="공유 프레임 버퍼 최대 프레임 수")
    # 프로듀서가 매 프레임 후 양보하는 시간 (밀리초)
    yield_interval_ms: float = Field(default=1.0, description="캡처 루프 양보 시간 (ms)")
    # 버퍼가 비었을 때 컨슈머가 재시도 전 대기하는 시간 (밀리초)
    poll_interval_ms: float = Field(default=5.0, description="빈 버퍼 폴링 간격 (ms)")
    # stop()은 캡처 스레드가 끝날 때까지 기다리며, 이 간격마다 경고 로그를 남김 (초)
    join_timeout_sec: float = Field(default=5.0, description="캡처 스레드 종료 대기 경고 간격 (초)")
    # 합성 소스 설정
    synthetic: SyntheticSourceConfig = Field(
        default_factory=SyntheticSourceConfig, description="합성 소스 설정"
    )

    @field_validator("buffer_capacity")
    @classmethod
    def validate_buffer_capacity(cls, value: int) -> int:
        """버퍼 용량이 1 이상인지 검증합니다."""
        if value < 1:
            error_message = f"buffer_capacity는 1 이상이어야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("yield_interval_ms", "poll_interval_ms")
    @classmethod
    def validate_intervals(cls, value: float) -> float:
        """대기 시간이 음수가 아닌지 검증합니다."""
        if value < 0:
            error_message = f"대기 시간은 0 이상이어야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("join_timeout_sec")
    @classmethod
    def validate_join_timeout(cls, value: float) -> float:
        """경고 간격이 양수인지 검증합니다."""
        if value <= 0:
            error_message = f"join_timeout_sec는 0보다 커야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value


# =============================================================================
# motion 섹션: 프레임 차분 기반 움직임 감지 설정
# =============================================================================

class MotionConfig(BaseModel):
    """
    움직임 점수 계산 파라미터입니다.

    역할:
    - 센서 노이즈 억제용 가우시안 블러 커널 크기
    - 픽셀 변화 이진화 임계값과 팽창(dilate) 반복 횟수
    - 움직임 판정 기준 점수 (변화 픽셀 수)
    """
    # 가우시안 블러 커널 크기 (홀수)
    blur_kernel_size: int = Field(default=13, description="가우시안 블러 커널 크기 (홀수)")
    # 픽셀 차이 이진화 임계값 (0~255)
    pixel_threshold: int = Field(default=18, description="픽셀 차이 이진화 임계값 (0~255)")
    # 이진 마스크 팽창 반복 횟수
    dilate_iterations: int = Field(default=2, description="팽창 반복 횟수")
    # 움직임으로 판정하는 최소 변화 픽셀 수 (이 값 초과 시 움직임)
    score_threshold: int = Field(default=500, description="움직임 판정 점수 임계값 (픽셀 수)")

    @field_validator("blur_kernel_size")
    @classmethod
    def validate_blur_kernel_size(cls, value: int) -> int:
        """블러 커널이 양의 홀수인지 검증합니다."""
        if value < 1 or value % 2 == 0:
            error_message = f"blur_kernel_size는 양의 홀수여야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("pixel_threshold")
    @classmethod
    def validate_pixel_threshold(cls, value: int) -> int:
        """이진화 임계값이 0~255 범위인지 검증합니다."""
        if not 0 <= value <= 255:
            error_message = f"pixel_threshold는 0~255 범위여야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("dilate_iterations", "score_threshold")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        """반복 횟수와 점수 임계값이 음수가 아닌지 검증합니다."""
        if value < 0:
            error_message = f"값은 0 이상이어야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value


# =============================================================================
# recording 섹션: 히스테리시스 녹화 설정
# =============================================================================

class RecordingConfig(BaseModel):
    """
    움직임 기반 녹화 상태 머신 설정입니다.

    역할:
    - 마지막 움직임 이후 녹화를 유지하는 버퍼 윈도우 (히스테리시스 꼬리)
    - 화면 표시용 Active/Buffering 구분 윈도우
    - 출력 파일 위치, 이름 접두사, 코덱, 프레임레이트 지정
    """
    # 마지막 움직임 이후 녹화를 계속하는 시간 (밀리초)
    buffer_window_ms: int = Field(default=5000, description="녹화 유지 버퍼 윈도우 (ms)")
    # 마지막 움직임 이후 'Active'로 표시하는 시간 (밀리초, 표시 전용)
    active_window_ms: int = Field(default=1000, description="Active 표시 윈도우 (ms)")
    # 녹화 파일 출력 디렉토리
    output_dir: str = Field(default="output/recordings", description="녹화 파일 출력 디렉토리")
    # 파일 이름 접두사
    filename_prefix: str = Field(default="evidence", description="녹화 파일 이름 접두사")
    # 파일 확장자
    extension: str = Field(default="avi", description="녹화 파일 확장자")
    # FourCC 코덱 태그 (4글자)
    codec: str = Field(default="MJPG", description="FourCC 코덱 태그")
    # 출력 프레임레이트
    fps: float = Field(default=30.0, description="출력 프레임레이트 (fps)")

    @field_validator("codec")
    @classmethod
    def validate_codec(cls, value: str) -> str:
        """FourCC 코덱 태그가 정확히 4글자인지 검증합니다."""
        if len(value) != 4:
            error_message = f"codec은 4글자 FourCC여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, value: str) -> str:
        """확장자 앞의 점을 제거하여 정규화합니다."""
        normalized = value.lstrip(".")
        if not normalized:
            raise ValueError("extension은 비어있을 수 없습니다.")
        return normalized

    @field_validator("fps")
    @classmethod
    def validate_fps(cls, value: float) -> float:
        """프레임레이트가 양수인지 검증합니다."""
        if value <= 0:
            error_message = f"fps는 양수여야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @model_validator(mode="after")
    def validate_windows(self) -> "RecordingConfig":
        """Active 윈도우가 버퍼 윈도우를 넘지 않는지 검증합니다."""
        if self.buffer_window_ms <= 0:
            raise ValueError(
                f"buffer_window_ms는 양수여야 합니다. 입력값: {self.buffer_window_ms}"
            )
        if not 0 <= self.active_window_ms <= self.buffer_window_ms:
            raise ValueError(
                f"active_window_ms는 0~buffer_window_ms({self.buffer_window_ms}) 범위여야 합니다. "
                f"입력값: {self.active_window_ms}"
            )
        return self


# =============================================================================
# preview 섹션: 라이브 프리뷰 창 설정
# =============================================================================

class PreviewConfig(BaseModel):
    """
    OpenCV 프리뷰 창 설정입니다.

    역할:
    - 프리뷰 활성화 여부 (헤드리스 환경에서는 비활성)
    - 창 이름, 종료 키, 키 폴링 대기 시간 지정
    """
    # 프리뷰 창 표시 여부
    enabled: bool = Field(default=True, description="프리뷰 창 표시 여부")
    # 프리뷰 창 이름
    window_name: str = Field(default="Sentinel Live", description="프리뷰 창 이름")
    # 종료 키 (한 글자)
    quit_key: str = Field(default="q", description="종료 키")
    # cv2.waitKey 대기 시간 (밀리초)
    wait_ms: int = Field(default=1, description="키 폴링 대기 시간 (ms)")

    @field_validator("quit_key")
    @classmethod
    def validate_quit_key(cls, value: str) -> str:
        """종료 키가 한 글자인지 검증합니다."""
        if len(value) != 1:
            error_message = f"quit_key는 한 글자여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value

    @field_validator("wait_ms")
    @classmethod
    def validate_wait_ms(cls, value: int) -> int:
        """waitKey 대기 시간이 1 이상인지 검증합니다 (0은 무한 대기)."""
        if value < 1:
            error_message = f"wait_ms는 1 이상이어야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value


# =============================================================================
# metrics 섹션: 파이프라인 통계 설정
# =============================================================================

class MetricsConfig(BaseModel):
    """
    파이프라인 통계 로그 설정입니다.

    역할:
    - 분석 프레임 수 기준 주기적 통계 로그 출력 간격 지정
    """
    # 통계 요약 로그 출력 주기 (분석 프레임 수, 0이면 비활성)
    log_interval_frames: int = Field(default=300, description="통계 로그 주기 (프레임, 0=비활성)")


# =============================================================================
# 최상위 AppConfig: 모든 섹션을 통합하는 루트 모델
# =============================================================================

class AppConfig(BaseModel):
    """
    애플리케이션 전체 설정을 통합하는 최상위 모델입니다.

    역할:
    - config.yaml의 모든 섹션을 하나의 타입 안전한 객체로 통합
    - Pydantic v2 유효성 검증을 통해 설정 무결성 보장
    - 각 섹션이 누락된 경우 기본값으로 자동 생성

    사용 예시:
        >>> import yaml
        >>> with open("config.yaml") as f:
        ...     raw = yaml.safe_load(f)
        >>> config = AppConfig(**raw)
        >>> print(config.motion.blur_kernel_size)
        13
    """
    # 시스템 전역 설정
    system: SystemConfig = Field(default_factory=SystemConfig, description="시스템 설정")
    # 영상 입력 및 버퍼 설정
    capture: CaptureConfig = Field(default_factory=CaptureConfig, description="캡처 설정")
    # 움직임 감지 설정
    motion: MotionConfig = Field(default_factory=MotionConfig, description="움직임 감지 설정")
    # 녹화 설정
    recording: RecordingConfig = Field(default_factory=RecordingConfig, description="녹화 설정")
    # 프리뷰 설정
    preview: PreviewConfig = Field(default_factory=PreviewConfig, description="프리뷰 설정")
    # 통계 설정
    metrics: MetricsConfig = Field(default_factory=MetricsConfig, description="통계 설정")
