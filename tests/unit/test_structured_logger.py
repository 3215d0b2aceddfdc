"""
구조화 로깅 모듈 단위 테스트

검증 조건:
- JSON 포맷 로그에 session_id, source, level, module, thread 필드 포함
- RotatingFileHandler로 sentinel.log 생성, 크기/보존 개수는 설정값 사용
- text 포맷에 세션 접두어와 스레드 이름 포함
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from io import StringIO

import pytest

from src.config.schema import AppConfig
from src.logging.structured_logger import (
    LOG_FILENAME,
    _JsonFormatter,
    _TextFormatter,
    setup_logging,
)


# =========================================================================
# 픽스처
# =========================================================================

@pytest.fixture(autouse=True)
def reset_root_logger():
    """각 테스트 후 root logger 핸들러 초기화."""
    yield
    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()


@pytest.fixture
def config_json(tmp_path):
    cfg = AppConfig()
    cfg.system.log_level = "DEBUG"
    cfg.system.log_format = "json"
    cfg.system.log_dir = str(tmp_path / "logs")
    cfg.system.session_id = "test-session-001"
    cfg.capture.source = "hallway.mp4"
    return cfg


@pytest.fixture
def config_text(tmp_path):
    cfg = AppConfig()
    cfg.system.log_level = "DEBUG"
    cfg.system.log_format = "text"
    cfg.system.log_dir = str(tmp_path / "logs")
    cfg.system.session_id = "text-session-002"
    return cfg


def _rotating_handler() -> logging.handlers.RotatingFileHandler:
    root = logging.getLogger()
    return next(
        h for h in root.handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    )


def _emit(formatter: logging.Formatter, logger_name: str, level: int, message: str, **kwargs) -> str:
    """메모리 스트림 핸들러로 로그 1건을 출력하고 결과 문자열을 반환합니다."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    logger = logging.getLogger(logger_name)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        logger.log(level, message, **kwargs)
    finally:
        logger.removeHandler(handler)
    return stream.getvalue().strip()


# =========================================================================
# setup_logging 테스트
# =========================================================================

class TestSetupLogging:
    def test_log_file_created(self, config_json, tmp_path):
        setup_logging(config_json)
        assert (tmp_path / "logs" / LOG_FILENAME).exists()

    def test_session_id_argument_wins(self, config_json):
        returned = setup_logging(config_json, session_id="custom-sid")
        assert returned == "custom-sid"
        assert _rotating_handler().formatter._session_id == "custom-sid"

    def test_session_id_from_config(self, config_json):
        assert setup_logging(config_json) == "test-session-001"

    def test_session_id_auto_uuid_when_empty(self, tmp_path):
        cfg = AppConfig()
        cfg.system.session_id = ""
        cfg.system.log_dir = str(tmp_path / "logs")
        sid = setup_logging(cfg)
        assert len(sid) == 36  # UUID 형식
        assert sid.count("-") == 4

    def test_log_level_applied(self, config_json):
        config_json.system.log_level = "WARNING"
        setup_logging(config_json)
        assert logging.getLogger().level == logging.WARNING

    def test_duplicate_setup_does_not_add_extra_handlers(self, config_json):
        setup_logging(config_json)
        handler_count = len(logging.getLogger().handlers)
        setup_logging(config_json)
        assert len(logging.getLogger().handlers) == handler_count

    def test_json_format_applied_to_handlers(self, config_json):
        setup_logging(config_json)
        formatters = [type(h.formatter) for h in logging.getLogger().handlers]
        assert formatters and all(f is _JsonFormatter for f in formatters)

    def test_text_format_applied_to_handlers(self, config_text):
        setup_logging(config_text)
        formatters = [type(h.formatter) for h in logging.getLogger().handlers]
        assert formatters and all(f is _TextFormatter for f in formatters)


# =========================================================================
# JSON 로그 출력 형식 테스트
# =========================================================================

class TestJsonFormat:
    def _capture(self, message: str, extra: dict = None) -> dict:
        formatter = _JsonFormatter(session_id="test-session-001", source="hallway.mp4")
        kwargs = {"extra": extra} if extra else {}
        output = _emit(formatter, "test.json", logging.INFO, message, **kwargs)
        return json.loads(output)

    def test_json_contains_session_id(self):
        assert self._capture("테스트 메시지")["session_id"] == "test-session-001"

    def test_json_contains_source(self):
        assert self._capture("소스 테스트")["source"] == "hallway.mp4"

    def test_json_contains_level(self):
        assert self._capture("레벨 테스트")["level"] == "INFO"

    def test_json_contains_module_and_thread(self):
        data = self._capture("모듈 테스트")
        assert data["module"] == "test.json"
        assert data["thread"] == "MainThread"

    def test_json_contains_message(self):
        assert self._capture("메시지 확인")["message"] == "메시지 확인"

    def test_json_extra_fields_included(self):
        data = self._capture("녹화 시작", extra={"clip_name": "evidence_12-00-00.avi"})
        assert data.get("clip_name") == "evidence_12-00-00.avi"

    def test_json_keeps_hangul_unescaped(self):
        formatter = _JsonFormatter(session_id="sid")
        output = _emit(formatter, "test.hangul", logging.INFO, "움직임 감지")
        assert "움직임 감지" in output


# =========================================================================
# 텍스트 포맷 테스트
# =========================================================================

class TestTextFormat:
    def test_text_format_includes_session_id_prefix(self):
        output = _emit(
            _TextFormatter(session_id="text-session-002"),
            "text.test", logging.INFO, "텍스트 로그 테스트",
        )
        assert "text-ses" in output  # 8자 접두어
        assert "텍스트 로그 테스트" in output

    def test_text_format_includes_level_and_thread(self):
        output = _emit(_TextFormatter(session_id="sid"), "text.level", logging.ERROR, "오류 메시지")
        assert "ERROR" in output
        assert "MainThread" in output

    def test_text_format_without_session(self):
        output = _emit(_TextFormatter(), "text.nosid", logging.INFO, "세션 없음")
        assert "no-sid" in output

# =========================================================================
# 로그 파일 순환 설정 테스트
# =========================================================================

class TestRotatingFile:
    def test_rotating_handler_uses_configured_size(self, config_json):
        config_json.system.log_max_mb = 3
        setup_logging(config_json)
        assert _rotating_handler().maxBytes == 3 * 1024 * 1024

    def test_rotating_handler_backup_count(self, config_json):
        config_json.system.log_backup_count = 2
        setup_logging(config_json)
        assert _rotating_handler().backupCount == 2

    def test_log_file_written(self, config_json, tmp_path):
        setup_logging(config_json)
        logging.getLogger("file.check").info("파일 기록 확인")
        _rotating_handler().flush()
        lines = (tmp_path / "logs" / LOG_FILENAME).read_text(encoding="utf-8").splitlines()
        messages = [json.loads(line)["message"] for line in lines if line.strip()]
        assert "파일 기록 확인" in messages
