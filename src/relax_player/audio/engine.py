"""Looping multi-lane playback engine.

This module plays the three ambient tracks (rain, thunder, campfire) as
endless loops through a single sounddevice output stream. Each track lives
in its own lane with an independently controlled gain; the stream callback
mixes the lanes block by block on the audio thread.

Gain changes come from the control loop thread while the audio thread is
reading samples. Each lane keeps its gain behind a lock held only for a
single float read or write, so the callback never waits on the UI.

The master channel has no lane. Its volume is folded into the gains passed
to ``set_gain``/``update_volumes`` by the caller.

Typical usage example:
    from relax_player.audio.engine import PlaybackEngine

    with PlaybackEngine(sounds_dir) as engine:
        engine.update_volumes(0.49, 0.49, 0.0)
"""

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf

from relax_player.audio.channels import PLAYBACK_CHANNELS, Channel
from relax_player.core.errors import AudioEngineError
from relax_player.core.logging_system import get_logger

logger = get_logger(__name__)

# Asset file name for each lane, relative to the sounds directory
SOUND_FILES: dict[Channel, str] = {
    Channel.RAIN: "rain.mp3",
    Channel.THUNDER: "thunder.mp3",
    Channel.CAMPFIRE: "campfire.mp3",
}

OUTPUT_CHANNELS = 2
DEFAULT_BLOCKSIZE = 1024

StreamFactory = Callable[..., Any]


def _default_stream_factory(**kwargs: Any) -> Any:
    import sounddevice as sd

    return sd.OutputStream(**kwargs)


def to_stereo(data: np.ndarray) -> np.ndarray:
    """Convert a (frames, channels) array to two channels.

    Mono is duplicated to both sides; extra channels beyond the first two
    are dropped.
    """
    if data.shape[1] == 1:
        return np.repeat(data, OUTPUT_CHANNELS, axis=1)
    return np.ascontiguousarray(data[:, :OUTPUT_CHANNELS])


def resample(data: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Linearly resample a (frames, channels) array.

    Args:
        data: Audio frames.
        source_rate: Sample rate of ``data``.
        target_rate: Desired sample rate.

    Returns:
        Resampled float32 frames (the input itself if the rates match).
    """
    if source_rate == target_rate:
        return data
    n_in = data.shape[0]
    n_out = max(1, int(round(n_in * target_rate / source_rate)))
    x_old = np.arange(n_in, dtype=np.float64)
    x_new = np.linspace(0.0, n_in - 1, n_out)
    channels = [np.interp(x_new, x_old, data[:, ch]) for ch in range(data.shape[1])]
    return np.stack(channels, axis=1).astype(np.float32)


def load_sound(path: Path) -> tuple[np.ndarray, int]:
    """Decode an audio file into float32 stereo frames.

    Args:
        path: Audio file (MP3, WAV, FLAC, OGG...).

    Returns:
        Tuple of (frames array shaped (n, 2), sample rate).

    Raises:
        AudioEngineError: If the file is missing, undecodable or empty.
    """
    if not path.exists():
        raise AudioEngineError(
            f"Sound file not found: {path}. Please run the app to download sounds, "
            "or check that sounds are properly installed."
        )

    try:
        data, samplerate = sf.read(str(path), dtype="float32", always_2d=True)
    except (sf.SoundFileError, RuntimeError, OSError) as e:
        raise AudioEngineError(f"Failed to decode sound file {path}: {e}") from e

    if data.shape[0] == 0:
        raise AudioEngineError(f"Sound file contains no audio: {path}")

    return to_stereo(data), int(samplerate)


class PlaybackLane:
    """One endlessly looping track with a live gain.

    The read position is owned by whichever thread calls ``read`` (the
    audio callback). The gain is shared with the control thread.
    """

    def __init__(self, channel: Channel, frames: np.ndarray) -> None:
        self.channel = channel
        self.frames = frames
        self.position = 0
        self._gain = 0.0
        self._gain_lock = threading.Lock()

    @property
    def gain(self) -> float:
        with self._gain_lock:
            return self._gain

    @gain.setter
    def gain(self, value: float) -> None:
        with self._gain_lock:
            self._gain = value

    def read(self, frames: int) -> np.ndarray:
        """Read the next block, wrapping to the start at end of track."""
        total = self.frames.shape[0]
        indices = (self.position + np.arange(frames)) % total
        self.position = (self.position + frames) % total
        return self.frames[indices]


class PlaybackEngine:
    """Plays rain, thunder and campfire loops with per-lane gain control.

    The engine starts playing as soon as it is constructed. All lanes start
    silent; the control loop sets the real gains right afterwards.

    Examples:
        >>> engine = PlaybackEngine(Path("~/.local/share/relax-player/sounds"))
        >>> engine.set_gain(Channel.RAIN, 0.5)
        >>> engine.close()
    """

    def __init__(
        self,
        sounds_dir: Path | str,
        stream_factory: StreamFactory | None = None,
        blocksize: int = DEFAULT_BLOCKSIZE,
    ) -> None:
        """Load all assets and start the output stream.

        Args:
            sounds_dir: Directory containing rain.mp3, thunder.mp3 and campfire.mp3.
            stream_factory: Callable building the output stream, called with
                sounddevice.OutputStream keyword arguments. Defaults to
                sounddevice.OutputStream.
            blocksize: Frames per callback block.

        Raises:
            AudioEngineError: If an asset is missing or undecodable, or the
                output device cannot be opened.
        """
        self.sounds_dir = Path(sounds_dir)
        self.blocksize = blocksize
        self._stream: Any = None
        self._callback_failed = False

        decoded = {
            channel: load_sound(self.sounds_dir / SOUND_FILES[channel])
            for channel in PLAYBACK_CHANNELS
        }
        # Output runs at the first asset's native rate
        self.samplerate = decoded[PLAYBACK_CHANNELS[0]][1]

        self._lanes: dict[Channel, PlaybackLane] = {}
        for channel, (frames, rate) in decoded.items():
            if rate != self.samplerate:
                logger.info(
                    "Resampling %s from %d Hz to %d Hz", SOUND_FILES[channel], rate, self.samplerate
                )
            self._lanes[channel] = PlaybackLane(channel, resample(frames, rate, self.samplerate))

        factory = stream_factory or _default_stream_factory
        try:
            self._stream = factory(
                samplerate=self.samplerate,
                channels=OUTPUT_CHANNELS,
                dtype="float32",
                blocksize=blocksize,
                callback=self._callback,
            )
            self._stream.start()
        except Exception as e:
            if self._stream is not None:
                self._stream.close()
                self._stream = None
            raise AudioEngineError(f"Failed to open audio output stream: {e}") from e

        logger.info(
            "Playback started (%d Hz, %d lanes) from %s",
            self.samplerate,
            len(self._lanes),
            self.sounds_dir,
        )

    def _lane(self, channel: Channel) -> PlaybackLane:
        lane = self._lanes.get(channel)
        if lane is None:
            raise ValueError(f"{channel.display_name} has no playback lane")
        return lane

    def set_gain(self, channel: Channel, fraction: float) -> None:
        """Set the live gain of a lane without restarting it.

        Args:
            channel: Rain, thunder or campfire.
            fraction: Gain from 0.0 (silent) to 1.0 (full), clamped.

        Raises:
            ValueError: If channel is master.
        """
        self._lane(channel).gain = max(0.0, min(1.0, float(fraction)))

    def get_gain(self, channel: Channel) -> float:
        return self._lane(channel).gain

    def update_volumes(self, rain: float, thunder: float, campfire: float) -> None:
        """Set all three lane gains at once."""
        self.set_gain(Channel.RAIN, rain)
        self.set_gain(Channel.THUNDER, thunder)
        self.set_gain(Channel.CAMPFIRE, campfire)

    def render(self, frames: int) -> np.ndarray:
        """Mix the next block of all lanes.

        Args:
            frames: Number of frames to produce.

        Returns:
            float32 array shaped (frames, 2), clipped to [-1.0, 1.0].
        """
        mix = np.zeros((frames, OUTPUT_CHANNELS), dtype=np.float32)
        for lane in self._lanes.values():
            gain = lane.gain
            block = lane.read(frames)
            if gain > 0.0:
                mix += block * np.float32(gain)
        np.clip(mix, -1.0, 1.0, out=mix)
        return mix

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        """sounddevice OutputStream callback. Must never raise."""
        try:
            outdata[:] = self.render(frames)
        except Exception:
            outdata.fill(0)
            if not self._callback_failed:
                self._callback_failed = True
                logger.exception("Audio callback failed, outputting silence")

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def close(self) -> None:
        """Stop and release the output stream. Safe to call twice."""
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Playback stopped")

    def __enter__(self) -> "PlaybackEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
