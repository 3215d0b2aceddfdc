"""
녹화 파일 출력 모듈입니다.

역할:
- OpenCVVideoWriter: cv2.VideoWriter 래퍼 (열기 실패 시 OutputOpenError)
- EvidenceFilenameFactory: 벽시계 시각 기반 녹화 파일 이름 생성
  (예: output/recordings/evidence_14-03-27.avi)

같은 초에 두 세션이 열리면 파일 이름이 겹쳐 이전 파일을 덮어씁니다.
버퍼 윈도우(기본 5초)보다 짧은 간격으로 세션이 다시 열리는 경우는 드물어 허용합니다.

사용 예시:
    >>> make_name = EvidenceFilenameFactory("output/recordings")
    >>> writer = OpenCVVideoWriter(make_name(), "MJPG", 30.0, (640, 480))
    >>> writer.write(image)
    >>> writer.close()
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np

from src.config.schema import RecordingConfig

logger = logging.getLogger(__name__)


class OutputOpenError(Exception):
    """녹화 출력 스트림을 열 수 없을 때 발생하는 에러입니다."""
    pass


class OpenCVVideoWriter:
    """
    cv2.VideoWriter를 감싸는 출력 스트림입니다.

    컬러 스트림으로 열리며, 그레이/BGRA 프레임은 기록 전에 BGR로 변환합니다.
    """

    def __init__(
        self,
        filename: str,
        fourcc: str,
        fps: float,
        frame_size: tuple[int, int],
    ) -> None:
        """
        파라미터:
            filename: 출력 파일 경로
            fourcc: 4글자 코덱 태그 (예: "MJPG")
            fps: 출력 프레임레이트
            frame_size: (width, height)

        예외:
            OutputOpenError: 코덱 미지원, 경로 오류 등으로 스트림을 열 수 없는 경우
        """
        self._filename = filename
        self._frame_size = frame_size
        try:
            writer = cv2.VideoWriter(
                filename, cv2.VideoWriter_fourcc(*fourcc), fps, frame_size
            )
        except cv2.error as exc:
            raise OutputOpenError(f"녹화 파일 생성 실패: {filename} ({exc})") from exc

        if not writer.isOpened():
            writer.release()
            raise OutputOpenError(
                f"녹화 파일을 열 수 없습니다: {filename} "
                f"(codec={fourcc}, fps={fps}, size={frame_size})"
            )
        self._writer: Optional[cv2.VideoWriter] = writer

    @property
    def filename(self) -> str:
        """출력 파일 경로"""
        return self._filename

    def is_open(self) -> bool:
        """스트림이 열려 있는지 여부"""
        return self._writer is not None

    def write(self, image: np.ndarray) -> None:
        """프레임 1개를 기록합니다. 닫힌 스트림에 쓰면 RuntimeError가 발생합니다."""
        if self._writer is None:
            raise RuntimeError(f"닫힌 녹화 파일에 기록할 수 없습니다: {self._filename}")
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        elif image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        self._writer.write(image)

    def close(self) -> None:
        """스트림을 flush하고 닫습니다. 여러 번 호출해도 안전합니다."""
        if self._writer is not None:
            self._writer.release()
            self._writer = None


class EvidenceFilenameFactory:
    """
    녹화 파일 경로를 만드는 호출 가능 객체입니다.

    형식: <output_dir>/<prefix>_HH-MM-SS.<extension>
    호출 시 출력 디렉토리가 없으면 생성합니다.
    """

    def __init__(
        self,
        output_dir: str,
        prefix: str = "evidence",
        extension: str = "avi",
        now_fn: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._prefix = prefix
        self._extension = extension.lstrip(".")
        self._now_fn = now_fn

    @classmethod
    def from_config(
        cls,
        config: RecordingConfig,
        now_fn: Callable[[], datetime] = datetime.now,
    ) -> "EvidenceFilenameFactory":
        """녹화 설정으로부터 생성합니다."""
        return cls(config.output_dir, config.filename_prefix, config.extension, now_fn)

    def __call__(self) -> str:
        """
        현재 시각 기반 파일 경로를 반환합니다.

        예외:
            OutputOpenError: 출력 디렉토리를 만들 수 없는 경우
        """
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputOpenError(
                f"녹화 디렉토리를 만들 수 없습니다: {self._output_dir} ({exc})"
            ) from exc
        stamp = self._now_fn().strftime("%H-%M-%S")
        return str(self._output_dir / f"{self._prefix}_{stamp}.{self._extension}")
