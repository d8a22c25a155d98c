"""User settings management for Relax Player.

This package provides persistent storage of the mixer state (per-channel
volume and mute, master volume) and the installed sound bundle version.
"""

from relax_player.settings.config import (
    DEFAULT_VOLUME,
    SCHEMA_VERSION,
    Config,
    ConfigStore,
    LegacyConfigV1,
    SoundConfig,
    decode_v1,
    decode_v2,
    is_legacy_v1,
    upgrade_v1_to_v2,
)

__all__ = [
    # Model
    "Config",
    "SoundConfig",
    "DEFAULT_VOLUME",
    # Persistence
    "ConfigStore",
    "SCHEMA_VERSION",
    # Migration
    "LegacyConfigV1",
    "decode_v1",
    "decode_v2",
    "is_legacy_v1",
    "upgrade_v1_to_v2",
]
