"""Tests for the looping playback engine."""

from pathlib import Path
from typing import Any

import numpy as np
import pytest
import soundfile as sf

from relax_player.audio.channels import Channel
from relax_player.audio.engine import (
    SOUND_FILES,
    PlaybackEngine,
    load_sound,
    resample,
    to_stereo,
)
from relax_player.core.errors import AudioEngineError

RATE = 8000
RAMP = np.arange(10, dtype=np.float32) / 20.0  # 0.0 .. 0.45


class FakeStream:
    """Stand-in for sounddevice.OutputStream."""

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True


def _write_sound(path: Path, data: np.ndarray, rate: int = RATE) -> None:
    # WAV content under the .mp3 name; libsndfile detects the format on read
    sf.write(str(path), data, rate, format="WAV", subtype="FLOAT")


@pytest.fixture
def sounds_dir(tmp_path: Path) -> Path:
    """Sounds directory: a mono ramp for rain, silence for the others."""
    _write_sound(tmp_path / SOUND_FILES[Channel.RAIN], RAMP)
    _write_sound(tmp_path / SOUND_FILES[Channel.THUNDER], np.zeros((40, 2), dtype=np.float32))
    _write_sound(tmp_path / SOUND_FILES[Channel.CAMPFIRE], np.full(16, 0.25, dtype=np.float32))
    return tmp_path


@pytest.fixture
def streams() -> list[FakeStream]:
    return []


@pytest.fixture
def engine(sounds_dir: Path, streams: list[FakeStream]) -> PlaybackEngine:
    """Create an engine playing into a fake stream."""

    def factory(**kwargs: Any) -> FakeStream:
        stream = FakeStream(**kwargs)
        streams.append(stream)
        return stream

    return PlaybackEngine(sounds_dir, stream_factory=factory, blocksize=256)


class TestAudioHelpers:
    """Test decoding helpers."""

    def test_to_stereo_duplicates_mono(self) -> None:
        data = np.array([[0.1], [0.2]], dtype=np.float32)
        np.testing.assert_array_equal(to_stereo(data), [[0.1, 0.1], [0.2, 0.2]])

    def test_to_stereo_drops_extra_channels(self) -> None:
        data = np.ones((4, 6), dtype=np.float32)
        assert to_stereo(data).shape == (4, 2)

    def test_resample_same_rate_is_identity(self) -> None:
        data = np.ones((5, 2), dtype=np.float32)
        assert resample(data, 44100, 44100) is data

    def test_resample_changes_length(self) -> None:
        data = np.ones((100, 2), dtype=np.float32)
        out = resample(data, 22050, 44100)
        assert out.shape == (200, 2)
        assert out.dtype == np.float32
        np.testing.assert_allclose(out, 1.0)

    def test_load_sound(self, sounds_dir: Path) -> None:
        """Test a mono file decodes to stereo float32 frames."""
        frames, rate = load_sound(sounds_dir / "rain.mp3")
        assert rate == RATE
        assert frames.shape == (10, 2)
        np.testing.assert_allclose(frames[:, 1], RAMP)


class TestEngineConstruction:
    """Test engine startup and failure modes."""

    def test_stream_opened_and_started(self, engine: PlaybackEngine, streams: list) -> None:
        """Test one stereo float32 stream is opened at the assets' rate."""
        assert len(streams) == 1
        stream = streams[0]
        assert stream.started is True
        assert stream.kwargs["samplerate"] == RATE
        assert stream.kwargs["channels"] == 2
        assert stream.kwargs["dtype"] == "float32"
        assert stream.kwargs["blocksize"] == 256
        assert callable(stream.kwargs["callback"])
        assert engine.is_running is True

    def test_lanes_start_silent(self, engine: PlaybackEngine) -> None:
        """Test no lane plays before gains are set."""
        for channel in (Channel.RAIN, Channel.THUNDER, Channel.CAMPFIRE):
            assert engine.get_gain(channel) == 0.0
        np.testing.assert_array_equal(engine.render(32), 0.0)

    @pytest.mark.parametrize("channel", [Channel.RAIN, Channel.THUNDER, Channel.CAMPFIRE])
    def test_missing_asset_is_fatal(self, sounds_dir: Path, channel: Channel) -> None:
        """Test every asset is required."""
        (sounds_dir / SOUND_FILES[channel]).unlink()
        with pytest.raises(AudioEngineError, match="not found"):
            PlaybackEngine(sounds_dir, stream_factory=FakeStream)

    def test_undecodable_asset_is_fatal(self, sounds_dir: Path) -> None:
        (sounds_dir / "thunder.mp3").write_bytes(b"definitely not audio")
        with pytest.raises(AudioEngineError, match="decode"):
            PlaybackEngine(sounds_dir, stream_factory=FakeStream)

    def test_device_failure_is_fatal(self, sounds_dir: Path) -> None:
        """Test a stream that cannot be opened raises AudioEngineError."""

        def broken(**kwargs: Any) -> FakeStream:
            raise OSError("no default output device")

        with pytest.raises(AudioEngineError, match="output stream"):
            PlaybackEngine(sounds_dir, stream_factory=broken)

    def test_stream_closed_when_start_fails(self, sounds_dir: Path) -> None:
        """Test a stream that opens but cannot start is not leaked."""
        opened: list[FakeStream] = []

        class BusyStream(FakeStream):
            def start(self) -> None:
                raise RuntimeError("device busy")

        def failing_start(**kwargs: Any) -> FakeStream:
            stream = BusyStream(**kwargs)
            opened.append(stream)
            return stream

        with pytest.raises(AudioEngineError, match="device busy"):
            PlaybackEngine(sounds_dir, stream_factory=failing_start)

        assert opened[0].closed is True

    def test_mismatched_rates_resampled(self, sounds_dir: Path) -> None:
        """Test assets at another rate are converted to the output rate."""
        _write_sound(sounds_dir / "campfire.mp3", np.full(16, 0.25, dtype=np.float32), RATE * 2)
        engine = PlaybackEngine(sounds_dir, stream_factory=FakeStream)
        engine.set_gain(Channel.CAMPFIRE, 1.0)
        np.testing.assert_allclose(engine.render(20), 0.25, atol=1e-6)


class TestGainControl:
    """Test live gain updates and mixing."""

    def test_set_gain(self, engine: PlaybackEngine) -> None:
        engine.set_gain(Channel.THUNDER, 0.3)
        assert engine.get_gain(Channel.THUNDER) == pytest.approx(0.3)

    def test_set_gain_clamps(self, engine: PlaybackEngine) -> None:
        """Test gains outside [0, 1] are clamped."""
        engine.set_gain(Channel.RAIN, 1.7)
        assert engine.get_gain(Channel.RAIN) == 1.0
        engine.set_gain(Channel.RAIN, -0.2)
        assert engine.get_gain(Channel.RAIN) == 0.0

    def test_master_has_no_lane(self, engine: PlaybackEngine) -> None:
        with pytest.raises(ValueError):
            engine.set_gain(Channel.MASTER, 0.5)

    def test_update_volumes(self, engine: PlaybackEngine) -> None:
        """Test the batch form sets all three lanes."""
        engine.update_volumes(0.1, 0.2, 0.3)
        assert engine.get_gain(Channel.RAIN) == pytest.approx(0.1)
        assert engine.get_gain(Channel.THUNDER) == pytest.approx(0.2)
        assert engine.get_gain(Channel.CAMPFIRE) == pytest.approx(0.3)

    def test_render_loops_track(self, engine: PlaybackEngine) -> None:
        """Test a 10-frame track repeats seamlessly across a 25-frame block."""
        engine.set_gain(Channel.RAIN, 1.0)
        block = engine.render(25)
        expected = RAMP[np.arange(25) % 10]
        np.testing.assert_allclose(block[:, 0], expected, atol=1e-6)
        np.testing.assert_allclose(block[:, 1], expected, atol=1e-6)

    def test_gain_change_does_not_restart(self, engine: PlaybackEngine) -> None:
        """Test playback continues from the current position after a gain change."""
        engine.set_gain(Channel.RAIN, 1.0)
        engine.render(3)
        engine.set_gain(Channel.RAIN, 0.5)
        block = engine.render(4)
        np.testing.assert_allclose(block[:, 0], RAMP[3:7] * 0.5, atol=1e-6)

    def test_lanes_keep_advancing_while_silent(self, engine: PlaybackEngine) -> None:
        engine.render(4)
        engine.set_gain(Channel.RAIN, 1.0)
        np.testing.assert_allclose(engine.render(2)[:, 0], RAMP[4:6], atol=1e-6)

    def test_lanes_are_summed(self, engine: PlaybackEngine) -> None:
        """Test lanes mix additively with their own gains."""
        engine.update_volumes(1.0, 1.0, 0.5)
        block = engine.render(10)
        np.testing.assert_allclose(block[:, 0], RAMP + 0.125, atol=1e-6)

    def test_mix_is_clipped(self, sounds_dir: Path) -> None:
        for name in SOUND_FILES.values():
            _write_sound(sounds_dir / name, np.full(8, 0.9, dtype=np.float32))
        engine = PlaybackEngine(sounds_dir, stream_factory=FakeStream)
        engine.update_volumes(1.0, 1.0, 1.0)
        assert engine.render(8).max() == pytest.approx(1.0)


class TestCallbackAndShutdown:
    """Test the audio callback and teardown."""

    def test_callback_fills_output(self, engine: PlaybackEngine) -> None:
        engine.set_gain(Channel.CAMPFIRE, 1.0)
        outdata = np.empty((16, 2), dtype=np.float32)
        engine._callback(outdata, 16, None, None)
        np.testing.assert_allclose(outdata, 0.25, atol=1e-6)

    def test_callback_never_raises(self, engine: PlaybackEngine, monkeypatch) -> None:
        """Test a mixing error produces silence instead of an exception."""

        def boom(frames: int) -> np.ndarray:
            raise RuntimeError("mix failed")

        monkeypatch.setattr(engine, "render", boom)
        outdata = np.ones((8, 2), dtype=np.float32)
        engine._callback(outdata, 8, None, None)
        np.testing.assert_array_equal(outdata, 0.0)

    def test_close_is_idempotent(self, engine: PlaybackEngine, streams: list) -> None:
        engine.close()
        engine.close()
        assert streams[0].stopped is True
        assert streams[0].closed is True
        assert engine.is_running is False

    def test_context_manager_closes(self, engine: PlaybackEngine, streams: list) -> None:
        with engine:
            pass
        assert streams[0].closed is True
