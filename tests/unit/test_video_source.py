"""
영상 소스 단위 테스트

검증 항목:
- SyntheticVideoSource: 설정 크기의 BGR 프레임, total_frames 제한, 움직임/정지 구간
- OpenCVVideoSource: 열기 실패 시 SourceUnavailableError, 읽기 실패 시 None (cv2 mock)
- create_video_source: 실행 모드별 소스 선택
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from src.config.schema import AppConfig, SyntheticSourceConfig
from src.capture.video_source import (
    OpenCVVideoSource,
    SourceUnavailableError,
    SyntheticVideoSource,
    create_video_source,
)


def _synthetic(**overrides) -> SyntheticVideoSource:
    # fps=0이면 실시간 대기 없이 즉시 생성
    params = {"width": 64, "height": 48, "fps": 0, "total_frames": 0,
              "motion_frames": 3, "still_frames": 2}
    params.update(overrides)
    return SyntheticVideoSource(SyntheticSourceConfig(**params))


class TestSyntheticVideoSource:
    def test_frame_shape(self):
        source = _synthetic()
        source.open()
        image = source.read()
        assert image.shape == (48, 64, 3)
        assert image.dtype == np.uint8
        assert image.max() == 255

    def test_total_frames_limit(self):
        source = _synthetic(total_frames=4)
        source.open()
        frames = [source.read() for _ in range(5)]
        assert all(f is not None for f in frames[:4])
        assert frames[4] is None

    def test_read_before_open_returns_none(self):
        assert _synthetic().read() is None

    def test_block_moves_then_stays(self):
        source = _synthetic()
        source.open()
        frames = [source.read() for _ in range(5)]
        # 움직임 구간(0→1→2→3): 연속 프레임이 달라짐
        assert not np.array_equal(frames[0], frames[1])
        assert not np.array_equal(frames[2], frames[3])
        # 정지 구간(3→4): 동일
        assert np.array_equal(frames[3], frames[4])

    def test_release_stops_stream(self):
        source = _synthetic()
        source.open()
        source.release()
        assert source.read() is None


class TestOpenCVVideoSource:
    def test_open_failure_raises(self):
        capture = MagicMock()
        capture.isOpened.return_value = False
        with patch("src.capture.video_source.cv2.VideoCapture", return_value=capture):
            with pytest.raises(SourceUnavailableError):
                OpenCVVideoSource("missing.mp4").open()
        capture.release.assert_called_once()

    def test_read_failure_returns_none(self):
        capture = MagicMock()
        capture.isOpened.return_value = True
        capture.get.return_value = 0
        capture.read.return_value = (False, None)
        with patch("src.capture.video_source.cv2.VideoCapture", return_value=capture):
            source = OpenCVVideoSource(0)
            source.open()
            assert source.read() is None
            source.release()
            source.release()
        capture.release.assert_called_once()

    def test_read_returns_image(self):
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        capture = MagicMock()
        capture.isOpened.return_value = True
        capture.get.return_value = 0
        capture.read.return_value = (True, image)
        with patch("src.capture.video_source.cv2.VideoCapture", return_value=capture):
            source = OpenCVVideoSource(0)
            source.open()
            assert source.read() is image

    def test_digit_string_becomes_device_index(self):
        assert OpenCVVideoSource("1").identifier == 1
        assert OpenCVVideoSource("rtsp://cam/stream").identifier == "rtsp://cam/stream"


class TestCreateVideoSource:
    def test_synthetic_mode(self):
        config = AppConfig(system={"mode": "synthetic"})
        assert isinstance(create_video_source(config), SyntheticVideoSource)

    def test_camera_mode(self):
        config = AppConfig(capture={"source": "hallway.mp4"})
        source = create_video_source(config)
        assert isinstance(source, OpenCVVideoSource)
        assert source.identifier == "hallway.mp4"
