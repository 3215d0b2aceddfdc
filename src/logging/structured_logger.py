"""
구조화 로깅 모듈입니다.

역할:
- python-json-logger를 사용한 JSON 포맷 로그 출력 (format=text이면 사람이 읽는 포맷)
- RotatingFileHandler로 sentinel.log 자동 순환 (크기/보존 개수는 설정값)
- session_id, source(입력 소스), module, level 공통 필드 자동 추가
- 캡처 스레드와 분석 스레드 로그를 thread 이름으로 구분

사용 예시:
    >>> setup_logging(config)
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("녹화 시작", extra={"clip_name": "evidence_12-00-00.avi"})
"""

from __future__ import annotations

import logging
import logging.handlers
import uuid
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from src.config.schema import AppConfig

# 로그 파일 이름
LOG_FILENAME = "sentinel.log"


def setup_logging(config: AppConfig, session_id: Optional[str] = None) -> str:
    """
    애플리케이션 전체 로깅 설정을 초기화합니다.

    기존 root 핸들러는 제거되므로 여러 번 호출해도 핸들러가 중복되지 않습니다.

    파라미터:
        config: AppConfig 인스턴스
        session_id: 세션 식별자. None이면 config.system.session_id 또는 UUID 사용

    반환값:
        str: 적용된 세션 ID
    """
    session = (
        session_id
        or config.system.session_id
        or str(uuid.uuid4())
    )
    source = str(config.capture.source)

    log_level = getattr(logging, config.system.log_level, logging.INFO)
    log_dir = Path(config.system.log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 기존 핸들러 제거 (중복 방지)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_dir / LOG_FILENAME,
                maxBytes=config.system.log_max_mb * 1024 * 1024,
                backupCount=config.system.log_backup_count,
                encoding="utf-8",
            )
        )
    except OSError as exc:
        # 파일 핸들러 없이 콘솔 로그만 사용
        logging.getLogger(__name__).warning(f"로그 파일 핸들러 생성 실패: {exc}")

    for handler in handlers:
        handler.setLevel(log_level)
        if config.system.log_format == "json":
            handler.setFormatter(_JsonFormatter(session_id=session, source=source))
        else:
            handler.setFormatter(_TextFormatter(session_id=session))
        root_logger.addHandler(handler)

    logging.getLogger(__name__).info(
        f"로깅 초기화: level={config.system.log_level}, "
        f"format={config.system.log_format}, session={session}, source={source}"
    )
    return session


class _JsonFormatter(jsonlogger.JsonFormatter):
    """
    session_id, source, module, level, thread 필드를 자동 추가하는 JSON 포맷터입니다.
    """

    def __init__(self, session_id: str = "", source: str = "") -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            json_ensure_ascii=False,
        )
        self._session_id = session_id
        self._source = source

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict,
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["session_id"] = self._session_id
        log_record["source"] = self._source
        log_record["module"] = record.name
        log_record["level"] = record.levelname
        log_record["thread"] = record.threadName


class _TextFormatter(logging.Formatter):
    """
    session_id 접두어와 스레드 이름을 포함하는 텍스트 포맷터입니다.
    """

    def __init__(self, session_id: str = "") -> None:
        super().__init__(
            fmt=f"%(asctime)s [{session_id[:8] if session_id else 'no-sid'}] "
                f"%(levelname)-8s %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

