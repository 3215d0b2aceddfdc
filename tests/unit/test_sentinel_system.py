"""
SentinelSystem 단위 테스트 (실제 스레드 사용)

검증 항목:
- 스트림 종료 시 status "stream_ended", 열린 녹화 세션 닫힘
- 소스 열기 실패 시 status "source_unavailable", 예외 없이 반환
- 다른 스레드에서 stop() 호출 시 캡처 스레드 종료, 이후 push 없음
- 버퍼에 프레임이 남은 상태의 stop(): 열린 녹화 세션 닫힘, 반환 후 push 없음
- 캡처 스레드가 늦게 끝나도 stop()은 종료될 때까지 기다림
- 캡처 중 예외 발생 시 status "source_error"로 start() 반환
- stop()/close() 멱등성, with 문 지원
- apply_config로 녹화 윈도우 핫스왑
"""

from __future__ import annotations

import logging
import threading
import time

import numpy as np

from src.capture.video_source import SourceUnavailableError, SyntheticVideoSource, VideoSource
from src.config.schema import AppConfig
from src.pipeline.sentinel_system import SentinelSystem
from src.recording import RecordingState


# =============================================================================
# 테스트 헬퍼
# =============================================================================

class FakeStream:
    def __init__(self, *args):
        self.frames = 0
        self.closed = False

    def write(self, image):
        self.frames += 1

    def close(self):
        self.closed = True


class UnavailableSource(VideoSource):
    def open(self):
        raise SourceUnavailableError("카메라 없음")

    def read(self):
        return None

    def release(self):
        pass


class FailingSource(VideoSource):
    """몇 프레임을 준 뒤 read()에서 예외를 던지는 소스"""

    def __init__(self, good_frames: int = 3):
        self._remaining = good_frames

    def open(self):
        pass

    def read(self):
        if self._remaining <= 0:
            raise RuntimeError("device glitch")
        self._remaining -= 1
        return np.zeros((120, 160, 3), dtype=np.uint8)

    def release(self):
        pass


class MovingBlockSource(VideoSource):
    """매 프레임 블록 위치가 바뀌는 무한 소스 (read_delay_sec만큼 지연)"""

    def __init__(self, read_delay_sec: float = 0.0):
        self._read_delay_sec = read_delay_sec
        self._index = 0

    def open(self):
        pass

    def read(self):
        if self._read_delay_sec > 0:
            time.sleep(self._read_delay_sec)
        image = np.zeros((120, 160, 3), dtype=np.uint8)
        x = (self._index * 10) % 120
        image[40:80, x:x + 40] = 255
        self._index += 1
        return image

    def release(self):
        pass


def _make_config(**synthetic) -> AppConfig:
    """프리뷰 없이 합성 소스를 쓰는 테스트용 AppConfig를 생성합니다."""
    synthetic_cfg = {"width": 160, "height": 120, "fps": 200, "total_frames": 60,
                     "motion_frames": 20, "still_frames": 10}
    synthetic_cfg.update(synthetic)
    return AppConfig(**{
        "system": {"mode": "synthetic"},
        "capture": {"yield_interval_ms": 0.0, "poll_interval_ms": 1.0,
                    "synthetic": synthetic_cfg},
        "preview": {"enabled": False},
        "metrics": {"log_interval_frames": 0},
    })


def _make_system(config: AppConfig, source_factory=None):
    streams: list[FakeStream] = []

    def writer_factory(*args):
        stream = FakeStream(*args)
        streams.append(stream)
        return stream

    kwargs = {}
    if source_factory is not None:
        kwargs["source_factory"] = source_factory
    system = SentinelSystem(
        config,
        writer_factory=writer_factory,
        filename_factory=lambda: "evidence_12-00-00.avi",
        **kwargs,
    )
    return system, streams


# =============================================================================
# 테스트
# =============================================================================

class TestStreamEnd:
    def test_finite_stream_ends_cleanly(self):
        system, streams = _make_system(_make_config())

        system.start()

        assert system.status == "stream_ended"
        assert not system.is_running
        snap = system.metrics.snapshot()
        assert snap.frames_captured == 60
        assert snap.frames_analyzed > 0
        assert all(stream.closed for stream in streams)
        assert system.state_machine.session is None

    def test_moving_block_triggers_recording(self):
        system, streams = _make_system(_make_config())
        system.start()
        assert system.metrics.snapshot().recordings_started >= 1
        assert sum(stream.frames for stream in streams) > 0


class TestSourceUnavailable:
    def test_status_reports_unavailable_source(self):
        system, streams = _make_system(
            _make_config(), source_factory=lambda config: UnavailableSource()
        )

        system.start()

        assert system.status == "source_unavailable"
        assert streams == []
        assert system.last_error is None


class TestSourceError:
    def test_capture_exception_ends_start(self):
        system, streams = _make_system(
            _make_config(), source_factory=lambda cfg: FailingSource(good_frames=3)
        )
        runner = threading.Thread(target=system.start, daemon=True)
        runner.start()
        runner.join(timeout=5.0)

        assert not runner.is_alive()
        assert system.status == "source_error"
        assert not system.is_running
        assert system.metrics.snapshot().frames_captured == 3
        assert all(stream.closed for stream in streams)


class TestStop:
    def test_stop_from_other_thread(self):
        # 무한 스트림: total_frames=0
        system, streams = _make_system(_make_config(total_frames=0, fps=100))
        timer = threading.Timer(0.3, system.stop)
        timer.start()

        system.start()
        timer.join()

        assert system.status == "stopped"
        assert all(stream.closed for stream in streams)
        pushed = system.buffer.total_pushed
        time.sleep(0.05)
        assert system.buffer.total_pushed == pushed

    def test_stop_with_frames_in_buffer_closes_recording(self):
        config = _make_config()
        streams: list[FakeStream] = []
        observed: dict = {}
        system = None

        class StoppingStream(FakeStream):
            """첫 기록 시 버퍼가 가득 찰 때까지 기다린 뒤 stop()을 호출하는 스트림"""

            def write(self, image):
                super().write(image)
                if "buffer_depth" in observed:
                    return
                buffer = system.buffer
                deadline = time.monotonic() + 2.0
                while len(buffer) < buffer.capacity and time.monotonic() < deadline:
                    time.sleep(0.001)
                observed["buffer_depth"] = len(buffer)
                system.stop()
                observed["pushed_after_stop"] = buffer.total_pushed

        def writer_factory(*args):
            stream = StoppingStream(*args)
            streams.append(stream)
            return stream

        system = SentinelSystem(
            config,
            source_factory=lambda cfg: MovingBlockSource(),
            writer_factory=writer_factory,
            filename_factory=lambda: "evidence_12-00-00.avi",
        )

        system.start()

        assert observed["buffer_depth"] == config.capture.buffer_capacity
        assert len(streams) >= 1
        assert all(stream.closed for stream in streams)
        assert system.state_machine.session is None
        assert system.status == "stopped"
        time.sleep(0.05)
        assert system.buffer.total_pushed == observed["pushed_after_stop"]

    def test_stop_waits_for_slow_capture_thread(self, caplog):
        config = _make_config()
        config.capture.join_timeout_sec = 0.05
        system, _ = _make_system(
            config, source_factory=lambda cfg: MovingBlockSource(read_delay_sec=0.3)
        )
        runner = threading.Thread(target=system.start, daemon=True)
        runner.start()
        deadline = time.monotonic() + 3.0
        while time.monotonic() < deadline and (
            system.buffer is None or system.buffer.total_pushed == 0
        ):
            time.sleep(0.01)

        with caplog.at_level(logging.WARNING, logger="src.pipeline.sentinel_system"):
            system.stop()
        pushed = system.buffer.total_pushed
        time.sleep(0.4)
        runner.join(timeout=2.0)

        assert not runner.is_alive()
        assert system.buffer.total_pushed == pushed
        assert "캡처 스레드 종료 대기 중" in caplog.text

    def test_stop_before_start_is_noop(self):
        system, _ = _make_system(_make_config())
        system.stop()
        system.stop()
        assert system.status == "idle"

    def test_context_manager_closes(self):
        with _make_system(_make_config())[0] as system:
            system.start()
        assert system.status == "stream_ended"
        system.close()
        assert system.status == "stream_ended"

    def test_restart_after_stream_end(self):
        system, _ = _make_system(_make_config(total_frames=10))
        system.start()
        system.start()
        assert system.status == "stream_ended"
        assert system.metrics.snapshot().frames_captured == 20


class TestApplyConfig:
    def test_recording_window_hot_swap(self):
        old = _make_config()
        new = old.model_copy(deep=True)
        new.recording.buffer_window_ms = 2000
        new.recording.active_window_ms = 500
        system, _ = _make_system(old)

        system.apply_config(old, new)

        machine = system.state_machine
        image = np.zeros((8, 8, 3), dtype=np.uint8)
        machine.update(True, 0, image)
        assert machine.update(False, 600, image).state is RecordingState.BUFFERING
        assert machine.update(False, 2000, image).state is RecordingState.IDLE
        machine.close()
