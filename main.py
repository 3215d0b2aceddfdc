"""
Sentinel 움직임 감지 녹화기 진입점

역할:
- 설정 로드 (config.yaml + SNT_ 환경변수 + 커맨드라인 오버라이드)
- 구조화 로깅 초기화
- SentinelSystem 실행: 캡처 스레드 + 분석/녹화 루프(메인 스레드)
- SIGINT/SIGTERM 핸들러와 --duration 타이머로 graceful shutdown
- 설정 파일 변경 감시 (움직임/녹화 파라미터 핫스왑)

실행 예시:
    카메라 0번 장치:
        python main.py

    동영상 파일 분석 (화면 출력 없이):
        python main.py --source samples/hallway.mp4 --no-display

    카메라 없이 합성 프레임으로 10초 실행:
        python main.py --mode synthetic --no-display --duration 10
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

from src.config.config_manager import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigManager,
)
from src.config.schema import AppConfig
from src.logging import setup_logging
from src.pipeline.sentinel_system import SentinelSystem

logger = logging.getLogger(__name__)


# =============================================================================
# 진입점
# =============================================================================

def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """커맨드라인 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="Sentinel: 움직임 감지 기반 영상 녹화기"
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="설정 파일 경로 (기본: config.yaml, 없으면 기본값 사용)",
    )
    parser.add_argument(
        "--source", help="입력 소스: 카메라 장치 번호 또는 파일 경로/URL (config.yaml 오버라이드)"
    )
    parser.add_argument(
        "--mode", choices=["camera", "synthetic"], help="실행 모드 (config.yaml 오버라이드)"
    )
    parser.add_argument(
        "--no-display", action="store_true", help="OpenCV 프리뷰 창 비활성화"
    )
    parser.add_argument(
        "--duration", type=float, default=0,
        help="실행 시간 제한 (초, 0=무제한)",
    )
    return parser.parse_args(argv)


def _apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    커맨드라인 옵션을 설정에 반영합니다.

    Pydantic 모델을 dict로 풀어 수정한 뒤 다시 검증하여 새 객체를 만듭니다.
    """
    if not (args.source or args.mode or args.no_display):
        return config
    config_dict = config.model_dump()
    if args.mode:
        config_dict["system"]["mode"] = args.mode
    if args.source:
        source = args.source
        config_dict["capture"]["source"] = int(source) if source.isdigit() else source
    if args.no_display:
        config_dict["preview"]["enabled"] = False
    return AppConfig(**config_dict)


def _load_config(manager: ConfigManager, path: str) -> AppConfig:
    """설정 파일이 있으면 로드하고, 없으면 기본값(+환경변수)을 사용합니다."""
    try:
        return manager.load(path)
    except ConfigFileNotFoundError as exc:
        logger.warning(f"{exc}. 기본값으로 실행합니다.")
        return manager.load_defaults()


def main(argv: Optional[list[str]] = None) -> int:
    """
    메인 함수입니다.

    반환값:
        int: 프로세스 종료 코드 (입력 소스를 열지 못하거나 캡처 중 오류가 나면 1)
    """
    args = _parse_args(argv)

    manager = ConfigManager()
    try:
        config = _apply_cli_overrides(_load_config(manager, args.config), args)
    except ConfigLoadError as exc:
        print(f"설정 로드 실패: {exc}", file=sys.stderr)
        return 2

    session_id = setup_logging(config)
    logger.info(
        f"Sentinel 시작: session_id={session_id}, "
        f"mode={config.system.mode}, source={config.capture.source}"
    )

    system = SentinelSystem(config)

    # 핫스왑 설정 감시 등록
    manager.subscribe(system.apply_config)
    manager.watch()

    def _signal_handler(signum, _frame) -> None:
        logger.info(f"종료 시그널 수신: {signal.Signals(signum).name}")
        system.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    timer: Optional[threading.Timer] = None
    if args.duration > 0:
        def _on_timeout() -> None:
            logger.info(f"{args.duration:g}초 경과, 자동 종료")
            system.stop()

        timer = threading.Timer(args.duration, _on_timeout)
        timer.daemon = True
        timer.start()

    try:
        with system:
            system.start()
    finally:
        if timer is not None:
            timer.cancel()
        manager.stop_watch()

    snap = system.metrics.snapshot()
    logger.info(
        f"Sentinel 종료: status={system.status}, 캡처={snap.frames_captured}, "
        f"분석={snap.frames_analyzed}, 드롭={snap.frames_dropped}, "
        f"녹화={snap.recordings_completed}회/{snap.frames_written}프레임"
    )
    return 1 if system.status in ("source_unavailable", "source_error") else 0


if __name__ == "__main__":
    sys.exit(main())
