"""
Sentinel 설정 관리 모듈입니다.

역할:
- YAML 설정 파일을 로드하고 Pydantic 스키마로 유효성 검증
- 환경변수 오버라이드 지원 (접두사: SNT_)
- dot-notation 기반 설정값 조회 (예: "motion.score_threshold")
- watchdog 기반 파일 변경 감지 및 핫스왑
- 설정 변경 시 구독자(콜백) 통보

사용 예시:
    >>> manager = ConfigManager()
    >>> config = manager.load("config.yaml")
    >>> threshold = manager.get("motion.score_threshold")
    >>> manager.subscribe(lambda old, new: print("설정 변경됨"))
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import BaseModel, ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.config.schema import AppConfig

# 모듈 로거 설정
logger = logging.getLogger(__name__)

# 환경변수 오버라이드 접두사
ENV_PREFIX = "SNT_"

# 설정 변경 콜백 타입: (이전 설정, 새 설정) -> None
ConfigChangeCallback = Callable[[AppConfig, AppConfig], None]


class ConfigLoadError(Exception):
    """설정 파일 로드 중 발생하는 에러의 기본 클래스입니다."""
    pass


class ConfigValidationError(ConfigLoadError):
    """설정 스키마 검증 실패 시 발생하는 에러입니다."""
    pass


class ConfigFileNotFoundError(ConfigLoadError):
    """설정 파일을 찾을 수 없을 때 발생하는 에러입니다."""
    pass


class _ConfigFileHandler(FileSystemEventHandler):
    """감시 대상 설정 파일의 수정 이벤트만 ConfigManager로 전달합니다."""

    def __init__(self, manager: "ConfigManager", target_filename: str) -> None:
        super().__init__()
        self._manager = manager
        self._target_filename = target_filename

    def on_modified(self, event: Any) -> None:
        # 디렉토리 이벤트는 무시
        if event.is_directory:
            return
        if Path(event.src_path).name == self._target_filename:
            logger.info(f"설정 파일 변경 감지: {event.src_path}")
            self._manager._on_file_changed(event)


class ConfigManager:
    """
    YAML 설정 파일을 로드하고 관리하는 매니저 클래스입니다.

    역할:
    - YAML 파일 파싱 및 Pydantic 유효성 검증
    - 환경변수 오버라이드 (SNT_ 접두사, 스키마 기준 경로 해석)
    - dot-notation 설정값 조회
    - 파일 변경 감지(watchdog) 및 구독자 통보
    - 검증 실패 시 이전 설정 유지 (안전한 롤백)

    사용 예시:
        >>> manager = ConfigManager()
        >>> config = manager.load("config.yaml")
        >>> print(manager.get("recording.buffer_window_ms"))
        5000
    """

    def __init__(self) -> None:
        """ConfigManager를 초기화합니다."""
        # 현재 활성 설정 객체 (로드 전에는 None)
        self._config: Optional[AppConfig] = None
        # 설정 파일 경로 (load() 시 설정됨, 기본값 사용 시 None)
        self._config_filepath: Optional[Path] = None
        # 설정 변경 시 호출할 콜백 목록
        self._subscribers: list[ConfigChangeCallback] = []
        # 설정 접근 시 스레드 안전성을 보장하기 위한 락
        self._lock: threading.RLock = threading.RLock()
        # watchdog Observer 인스턴스 (watch() 호출 시 생성)
        self._observer: Optional[Observer] = None

        logger.debug("ConfigManager 인스턴스 생성 완료")

    @property
    def config(self) -> Optional[AppConfig]:
        """현재 활성 설정 객체를 반환합니다."""
        with self._lock:
            return self._config

    def load(self, filepath: str | Path) -> AppConfig:
        """
        YAML 설정 파일을 로드하고 Pydantic 스키마로 검증합니다.

        처리 순서:
        1. 파일 존재 여부 확인
        2. YAML 파싱
        3. 환경변수 오버라이드 적용
        4. Pydantic 스키마 검증
        5. 검증 통과 시 활성 설정으로 교체

        파라미터:
            filepath (str | Path): YAML 설정 파일 경로

        반환값:
            AppConfig: 검증 완료된 설정 객체

        에러:
            ConfigFileNotFoundError: 파일이 존재하지 않을 때
            ConfigValidationError: 스키마 검증 실패 시
            ConfigLoadError: YAML 파싱 실패 등 기타 에러
        """
        filepath = Path(filepath)
        logger.info(f"설정 파일 로드 시작: {filepath}")

        if not filepath.exists():
            error_message = f"설정 파일을 찾을 수 없습니다: {filepath}"
            logger.error(error_message)
            raise ConfigFileNotFoundError(error_message)

        raw_config = self._parse_yaml_file(filepath)
        logger.debug(f"YAML 파싱 완료: {len(raw_config)} 개 최상위 키")

        validated_config = self._build_config(raw_config)

        with self._lock:
            self._config = validated_config
            self._config_filepath = filepath

        logger.info(
            f"설정 로드 성공: "
            f"mode={validated_config.system.mode}, "
            f"source={validated_config.capture.source}, "
            f"buffer_window={validated_config.recording.buffer_window_ms}ms"
        )
        return validated_config

    def load_defaults(self) -> AppConfig:
        """
        설정 파일 없이 스키마 기본값에 환경변수 오버라이드만 적용하여 로드합니다.

        반환값:
            AppConfig: 검증 완료된 설정 객체
        """
        logger.info("설정 파일 없이 기본값으로 로드")
        validated_config = self._build_config({})
        with self._lock:
            self._config = validated_config
            self._config_filepath = None
        return validated_config

    def get(self, key: str, default: Any = None) -> Any:
        """
        dot-notation으로 설정값을 조회합니다.

        예: "motion.score_threshold" -> config.motion.score_threshold

        파라미터:
            key (str): dot-notation 설정 키
            default (Any): 키가 존재하지 않을 때 반환할 기본값

        반환값:
            Any: 설정값 또는 기본값

        에러:
            RuntimeError: 설정이 로드되지 않은 상태에서 호출 시
        """
        with self._lock:
            if self._config is None:
                error_message = "설정이 아직 로드되지 않았습니다. load()를 먼저 호출하세요."
                logger.error(error_message)
                raise RuntimeError(error_message)

            current_value: Any = self._config
            for part in key.split("."):
                if isinstance(current_value, BaseModel) and part in type(current_value).model_fields:
                    current_value = getattr(current_value, part)
                elif isinstance(current_value, dict) and part in current_value:
                    current_value = current_value[part]
                else:
                    logger.debug(f"설정 키 '{key}'에서 '{part}' 부분을 찾을 수 없음, 기본값 반환")
                    return default

            return current_value

    def subscribe(self, callback: ConfigChangeCallback) -> None:
        """
        설정 변경 시 호출될 콜백 함수를 등록합니다.

        파라미터:
            callback (ConfigChangeCallback): (이전_설정, 새_설정) -> None 형태의 콜백
        """
        self._subscribers.append(callback)
        logger.info(f"설정 변경 구독자 등록 완료 (총 {len(self._subscribers)}명)")

    def unsubscribe(self, callback: ConfigChangeCallback) -> None:
        """등록된 설정 변경 콜백을 제거합니다."""
        try:
            self._subscribers.remove(callback)
            logger.info(f"설정 변경 구독자 제거 완료 (남은 구독자: {len(self._subscribers)}명)")
        except ValueError:
            logger.warning("제거할 구독자를 찾을 수 없습니다")

    def watch(self, filepath: str | Path | None = None) -> None:
        """
        watchdog을 사용하여 설정 파일 변경을 감시합니다.

        파일이 수정되면 자동으로 리로드하고, 검증 통과 시
        등록된 구독자들에게 변경 사항을 통보합니다.

        파라미터:
            filepath (str | Path | None): 감시할 파일 경로.
                None이면 마지막으로 로드한 파일 경로를 사용합니다.
        """
        watch_path = Path(filepath) if filepath else self._config_filepath

        if watch_path is None:
            logger.warning("감시할 파일 경로가 없습니다. 파일 감시를 건너뜁니다.")
            return

        if self._observer is not None:
            logger.warning("설정 파일 감시가 이미 실행 중입니다")
            return

        observer = Observer()
        observer.schedule(
            _ConfigFileHandler(self, watch_path.name),
            path=str(watch_path.resolve().parent),
            recursive=False,
        )
        observer.daemon = True
        observer.start()
        self._observer = observer

        logger.info(f"설정 파일 감시 활성화 완료: {watch_path}")

    def stop_watch(self) -> None:
        """설정 파일 감시를 중지합니다."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("설정 파일 감시 중지 완료")

    # =========================================================================
    # 내부 메서드 (private)
    # =========================================================================

    def _build_config(self, raw_config: dict) -> AppConfig:
        """환경변수 오버라이드를 적용한 뒤 스키마 검증까지 수행합니다."""
        raw_config = self._apply_env_overrides(raw_config)
        return self._validate_config(raw_config)

    def _parse_yaml_file(self, filepath: Path) -> dict:
        """
        YAML 파일을 읽어서 딕셔너리로 파싱합니다.

        에러:
            ConfigLoadError: 파일 읽기 또는 파싱 실패 시
        """
        try:
            with open(filepath, "r", encoding="utf-8") as config_file:
                raw_data = yaml.safe_load(config_file)
        except yaml.YAMLError as yaml_error:
            error_message = f"YAML 파싱 에러: {yaml_error}"
            logger.error(error_message)
            raise ConfigLoadError(error_message) from yaml_error
        except OSError as file_error:
            error_message = f"파일 읽기 에러: {file_error}"
            logger.error(error_message)
            raise ConfigLoadError(error_message) from file_error

        # 빈 YAML 파일은 기본값으로 처리
        if raw_data is None:
            logger.warning(f"설정 파일이 비어있습니다: {filepath}")
            return {}

        if not isinstance(raw_data, dict):
            error_message = f"설정 파일의 최상위 구조가 딕셔너리가 아닙니다: {type(raw_data)}"
            raise ConfigLoadError(error_message)

        return raw_data

    def _apply_env_overrides(self, raw_config: dict) -> dict:
        """
        SNT_ 접두사 환경변수로 설정값을 오버라이드합니다.

        변수 이름은 AppConfig 스키마의 필드 구조를 따라 해석합니다.
        섹션/하위 섹션 이름을 앞에서부터 소비하고, 남은 부분을 필드 이름으로 사용합니다.
        - SNT_MOTION_SCORE_THRESHOLD -> motion.score_threshold
        - SNT_CAPTURE_SOURCE -> capture.source
        - SNT_CAPTURE_SYNTHETIC_FPS -> capture.synthetic.fps

        스키마에 없는 경로는 경고 후 무시합니다.

        파라미터:
            raw_config (dict): 환경변수 적용 전 설정 딕셔너리

        반환값:
            dict: 환경변수가 적용된 설정 딕셔너리
        """
        override_count = 0

        for env_key, env_value in sorted(os.environ.items()):
            if not env_key.startswith(ENV_PREFIX):
                continue

            config_path = _resolve_env_path(env_key[len(ENV_PREFIX):].lower())
            if config_path is None:
                logger.warning(f"환경변수 '{env_key}' 무시 (스키마에 없는 경로)")
                continue

            # 중간 섹션 딕셔너리를 생성하며 내려감
            target = raw_config
            for section_name in config_path[:-1]:
                section = target.get(section_name)
                if not isinstance(section, dict):
                    section = {}
                    target[section_name] = section
                target = section

            converted_value = self._convert_env_value(env_value)
            target[config_path[-1]] = converted_value
            override_count += 1

            logger.info(
                f"환경변수 오버라이드: {env_key} -> "
                f"{'.'.join(config_path)} = {converted_value}"
            )

        if override_count > 0:
            logger.info(f"환경변수 오버라이드 적용 완료: {override_count}건")

        return raw_config

    def _convert_env_value(self, value: str) -> Any:
        """
        환경변수 문자열 값을 적절한 Python 타입으로 변환합니다.

        변환 규칙:
        - "true"/"false" (대소문자 무관) -> bool
        - 정수 형식 문자열 -> int
        - 부동소수점 형식 문자열 -> float
        - 그 외 -> str (원본 유지)
        """
        if value.lower() == "true":
            return True
        if value.lower() == "false":
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _validate_config(self, raw_config: dict) -> AppConfig:
        """
        딕셔너리를 Pydantic AppConfig 모델로 검증하고 변환합니다.

        에러:
            ConfigValidationError: Pydantic 검증 실패 시
        """
        try:
            return AppConfig(**raw_config)

        except ValidationError as validation_error:
            error_details = validation_error.errors()
            for error_detail in error_details:
                field_path = " -> ".join(str(loc) for loc in error_detail["loc"])
                logger.error(
                    f"설정 검증 실패 - 필드: {field_path}, "
                    f"에러: {error_detail['msg']}, "
                    f"입력값: {error_detail.get('input', 'N/A')}"
                )

            error_message = f"설정 스키마 검증 실패: {len(error_details)}개 에러 발생"
            raise ConfigValidationError(error_message) from validation_error

    def _on_file_changed(self, event: Any) -> None:
        """
        설정 파일 변경 감지 시 호출되는 핸들러입니다.

        검증 통과 시 활성 설정을 교체하고 구독자에게 통보하며,
        실패 시 이전 설정을 유지합니다.
        """
        if self._config_filepath is None:
            logger.warning("설정 파일 경로가 설정되지 않아 리로드를 건너뜁니다")
            return

        logger.info(f"설정 파일 리로드 시작: {self._config_filepath}")

        try:
            raw_config = self._parse_yaml_file(self._config_filepath)
            new_config = self._build_config(raw_config)
        except ConfigLoadError as load_error:
            logger.error(f"설정 핫스왑 실패, 이전 설정을 유지합니다: {load_error}")
            return

        with self._lock:
            previous_config = self._config
            self._config = new_config

        logger.info("설정 핫스왑 성공: 새 설정이 적용되었습니다")

        if previous_config is not None:
            self._notify_subscribers(previous_config, new_config)

    def _notify_subscribers(
        self,
        previous_config: AppConfig,
        new_config: AppConfig,
    ) -> None:
        """
        등록된 모든 구독자에게 설정 변경을 통보합니다.

        개별 구독자의 콜백 실행 중 에러가 발생해도
        다른 구독자의 통보는 계속 진행합니다.
        """
        subscriber_count = len(self._subscribers)
        logger.info(f"설정 변경 통보 시작: {subscriber_count}명의 구독자")

        for subscriber_index, callback in enumerate(self._subscribers):
            try:
                callback(previous_config, new_config)
            except Exception as callback_error:
                logger.error(
                    f"구독자 {subscriber_index + 1} 콜백 실행 중 에러: {callback_error}",
                    exc_info=True,
                )


def _resolve_env_path(name: str) -> Optional[list[str]]:
    """
    소문자 환경변수 이름을 AppConfig 필드 경로로 해석합니다.

    예: "capture_synthetic_fps" -> ["capture", "synthetic", "fps"]

    반환값:
        list[str] | None: 필드 경로. 스키마에 없으면 None
    """
    model: type[BaseModel] = AppConfig
    path: list[str] = []
    remaining = name

    while remaining:
        # 가장 긴 필드 이름부터 매칭 (예: "buffer_window_ms"가 "buffer"보다 우선)
        matched = None
        for field_name in sorted(model.model_fields, key=len, reverse=True):
            if remaining == field_name or remaining.startswith(field_name + "_"):
                matched = field_name
                break
        if matched is None:
            return None

        path.append(matched)
        remaining = remaining[len(matched) + 1:]
        annotation = model.model_fields[matched].annotation

        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            if not remaining:
                # 섹션 자체는 오버라이드 대상이 아님
                return None
            model = annotation
        elif remaining:
            return None

    return path or None
