"""
진입점 커맨드라인 처리 단위 테스트

검증 항목:
- 옵션이 없으면 설정 객체를 그대로 사용
- --mode / --source / --no-display 오버라이드
- 설정 파일이 없으면 기본값으로 실행
- 합성 모드 + 짧은 실행 시간으로 main() 종료 코드 확인
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from main import _apply_cli_overrides, _load_config, _parse_args, main
from src.config.config_manager import ConfigManager
from src.config.schema import AppConfig


@pytest.fixture(autouse=True)
def reset_root_logger():
    """main()이 설치한 root logger 핸들러를 테스트 후 제거합니다."""
    yield
    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()


class TestCliOverrides:
    def test_no_options_returns_same_config(self):
        config = AppConfig()
        assert _apply_cli_overrides(config, _parse_args([])) is config

    def test_mode_and_display(self):
        config = _apply_cli_overrides(
            AppConfig(), _parse_args(["--mode", "synthetic", "--no-display"])
        )
        assert config.system.mode == "synthetic"
        assert config.preview.enabled is False

    def test_numeric_source_becomes_device_index(self):
        config = _apply_cli_overrides(AppConfig(), _parse_args(["--source", "2"]))
        assert config.capture.source == 2

    def test_path_source(self):
        config = _apply_cli_overrides(AppConfig(), _parse_args(["--source", "clip.mp4"]))
        assert config.capture.source == "clip.mp4"


class TestLoadConfig:
    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = _load_config(ConfigManager(), str(tmp_path / "absent.yaml"))
        assert config == AppConfig()


class TestMain:
    def test_synthetic_run_exits_cleanly(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SNT_SYSTEM_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("SNT_RECORDING_OUTPUT_DIR", str(tmp_path / "rec"))
        monkeypatch.setenv("SNT_CAPTURE_SYNTHETIC_TOTAL_FRAMES", "20")
        monkeypatch.setenv("SNT_CAPTURE_SYNTHETIC_FPS", "200")
        with patch("main.signal.signal"):
            code = main([
                "--config", str(tmp_path / "absent.yaml"),
                "--mode", "synthetic",
                "--no-display",
                "--duration", "5",
            ])
        assert code == 0

    def test_invalid_config_returns_error_code(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("motion:\n  blur_kernel_size: 2\n", encoding="utf-8")
        assert main(["--config", str(path)]) == 2
