"""Channel model with saturating navigation and master volume control.

This module defines the fixed set of mixer channels and the rule that
composes a channel's playback gain from its own volume and the master
volume. Everything here is pure: no I/O, no mutable state.

Channels (in display order):
    - rain: Looping rain track
    - thunder: Looping thunder track
    - campfire: Looping campfire track
    - master: Global volume control (scales the other three, cannot be muted)

Typical usage example:
    from relax_player.audio.channels import Channel, effective_volume, next_channel

    selected = next_channel(Channel.RAIN)  # Channel.THUNDER
    gain = effective_volume(config, Channel.RAIN)  # 0.49 with defaults
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relax_player.settings.config import Config

VOLUME_STEP = 5
MIN_VOLUME = 0
MAX_VOLUME = 100


class Channel(Enum):
    """Mixer channels, declared in display order."""

    RAIN = "rain"
    THUNDER = "thunder"
    CAMPFIRE = "campfire"
    MASTER = "master"

    @property
    def display_name(self) -> str:
        """Name shown above the channel's volume bar."""
        return channel_name(self)

    @property
    def is_master(self) -> bool:
        return self is Channel.MASTER


# Channels that own a playback lane in the engine
PLAYBACK_CHANNELS: tuple[Channel, ...] = (Channel.RAIN, Channel.THUNDER, Channel.CAMPFIRE)


def channel_name(channel: Channel) -> str:
    """Get the display name of a channel.

    Args:
        channel: Channel to name.

    Returns:
        Capitalized name, e.g. "Rain".

    Raises:
        ValueError: If channel is not a known Channel.
    """
    if channel is Channel.RAIN:
        return "Rain"
    if channel is Channel.THUNDER:
        return "Thunder"
    if channel is Channel.CAMPFIRE:
        return "Campfire"
    if channel is Channel.MASTER:
        return "Master"
    raise ValueError(f"Unknown channel: {channel!r}")


def all_channels() -> tuple[Channel, ...]:
    """Get all channels in display order.

    Examples:
        >>> [c.value for c in all_channels()]
        ['rain', 'thunder', 'campfire', 'master']
    """
    return (Channel.RAIN, Channel.THUNDER, Channel.CAMPFIRE, Channel.MASTER)


def next_channel(channel: Channel) -> Channel:
    """Move selection right. Stays on master at the end.

    Examples:
        >>> next_channel(Channel.CAMPFIRE)
        <Channel.MASTER: 'master'>
        >>> next_channel(Channel.MASTER)
        <Channel.MASTER: 'master'>
    """
    if channel is Channel.RAIN:
        return Channel.THUNDER
    if channel is Channel.THUNDER:
        return Channel.CAMPFIRE
    if channel is Channel.CAMPFIRE:
        return Channel.MASTER
    if channel is Channel.MASTER:
        return Channel.MASTER
    raise ValueError(f"Unknown channel: {channel!r}")


def prev_channel(channel: Channel) -> Channel:
    """Move selection left. Stays on rain at the start.

    Examples:
        >>> prev_channel(Channel.THUNDER)
        <Channel.RAIN: 'rain'>
        >>> prev_channel(Channel.RAIN)
        <Channel.RAIN: 'rain'>
    """
    if channel is Channel.RAIN:
        return Channel.RAIN
    if channel is Channel.THUNDER:
        return Channel.RAIN
    if channel is Channel.CAMPFIRE:
        return Channel.THUNDER
    if channel is Channel.MASTER:
        return Channel.CAMPFIRE
    raise ValueError(f"Unknown channel: {channel!r}")


def can_mute(channel: Channel) -> bool:
    """Check whether the mute action applies to a channel (everything but master)."""
    if channel in PLAYBACK_CHANNELS:
        return True
    if isinstance(channel, Channel) and channel.is_master:
        return False
    raise ValueError(f"Unknown channel: {channel!r}")


def step_volume(volume: int, delta: int) -> int:
    """Apply a volume step, clamped to the valid range.

    Args:
        volume: Current volume (0-100).
        delta: Signed change, usually +/- VOLUME_STEP.

    Returns:
        New volume, never below MIN_VOLUME nor above MAX_VOLUME.

    Examples:
        >>> step_volume(98, VOLUME_STEP)
        100
        >>> step_volume(2, -VOLUME_STEP)
        0
    """
    return max(MIN_VOLUME, min(MAX_VOLUME, volume + delta))


def master_volume(config: "Config") -> float:
    """Get the master gain as a fraction.

    Master's stored ``muted`` flag is ignored: master cannot be muted from
    the interface, and its gain never depends on another channel.
    """
    return config.master.volume / MAX_VOLUME


def effective_volume(config: "Config", channel: Channel) -> float:
    """Get the final playback gain for a channel.

    A muted channel is silent. Otherwise its volume is multiplied by the
    master volume, providing hierarchical control.

    Args:
        config: Current configuration.
        channel: Channel to calculate the gain for.

    Returns:
        Gain from 0.0 to 1.0.

    Examples:
        >>> config.master.volume = 80
        >>> config.rain.volume = 50
        >>> effective_volume(config, Channel.RAIN)
        0.4
    """
    if channel.is_master:
        return master_volume(config)

    sound = config.sound(channel)
    if sound.muted:
        return 0.0
    return (sound.volume / MAX_VOLUME) * master_volume(config)
