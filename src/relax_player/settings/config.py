"""Persistent mixer configuration with schema migration.

This module manages the per-channel volume and mute settings together with
the version of the installed sound bundle. Settings are stored as JSON in
the per-OS config directory (see ``relax_player.core.paths``).

Two schema versions exist:

- v1 stores the master volume as a bare integer ``master_volume``.
- v2 (current) stores ``master`` as a full ``{"volume", "muted"}`` object.

Loading parses the file into a plain JSON value first and inspects it
before committing to a schema: a numeric ``master_volume`` selects the v1
decoder, whose result is upgraded to v2 and written back straight away so
the migration happens at most once per file.

Typical usage:
    from relax_player.settings import ConfigStore

    store = ConfigStore()
    config = store.load()
    config.increase_volume(Channel.RAIN)
    store.save(config)
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from relax_player.audio.channels import (
    MAX_VOLUME,
    MIN_VOLUME,
    VOLUME_STEP,
    Channel,
    can_mute,
    step_volume,
)
from relax_player.core.errors import ConfigError
from relax_player.core.logging_system import get_logger
from relax_player.core.paths import default_config_path

logger = get_logger(__name__)

SCHEMA_VERSION = 2
DEFAULT_VOLUME = 70

# Root keys holding a SoundConfig object in every schema version
SOUND_KEYS = ("rain", "thunder", "campfire")
LEGACY_MASTER_KEY = "master_volume"


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a volume
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _decode_volume(value: Any, where: str) -> int:
    if not _is_number(value):
        raise ConfigError(f"{where}: expected an integer volume, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ConfigError(f"{where}: expected an integer volume, got {value!r}")
        value = int(value)
    if not MIN_VOLUME <= value <= MAX_VOLUME:
        raise ConfigError(f"{where}: volume {value} outside {MIN_VOLUME}-{MAX_VOLUME}")
    return value


def _require_object(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: expected an object, got {type(value).__name__}")
    return value


@dataclass
class SoundConfig:
    """Volume and mute state of a single channel.

    Attributes:
        volume: Volume level from 0 to 100.
        muted: Whether the channel is silenced. Stored for master too, but
            ignored when computing master's gain.
    """

    volume: int = DEFAULT_VOLUME
    muted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"volume": self.volume, "muted": self.muted}

    @classmethod
    def from_dict(cls, data: Any, where: str = "sound") -> "SoundConfig":
        """Decode a ``{"volume": int, "muted": bool}`` object.

        Args:
            data: Parsed JSON value.
            where: Field path used in error messages.

        Raises:
            ConfigError: If a field is missing or has the wrong type.
        """
        obj = _require_object(data, where)
        if "volume" not in obj:
            raise ConfigError(f"{where}: missing field 'volume'")
        if "muted" not in obj:
            raise ConfigError(f"{where}: missing field 'muted'")
        muted = obj["muted"]
        if not isinstance(muted, bool):
            raise ConfigError(f"{where}.muted: expected a boolean, got {muted!r}")
        return cls(volume=_decode_volume(obj["volume"], f"{where}.volume"), muted=muted)


@dataclass
class Config:
    """Root persisted aggregate (schema v2).

    Attributes:
        rain: Rain channel settings.
        thunder: Thunder channel settings.
        campfire: Campfire channel settings.
        master: Master channel settings.
        sounds_version: Version of the installed sound bundle, or None until
            a download has succeeded.
    """

    rain: SoundConfig = field(default_factory=SoundConfig)
    thunder: SoundConfig = field(default_factory=SoundConfig)
    campfire: SoundConfig = field(default_factory=SoundConfig)
    master: SoundConfig = field(default_factory=SoundConfig)
    sounds_version: str | None = None

    def sound(self, channel: Channel) -> SoundConfig:
        """Get the settings object backing a channel."""
        if channel is Channel.RAIN:
            return self.rain
        if channel is Channel.THUNDER:
            return self.thunder
        if channel is Channel.CAMPFIRE:
            return self.campfire
        if channel is Channel.MASTER:
            return self.master
        raise ValueError(f"Unknown channel: {channel!r}")

    def increase_volume(self, channel: Channel) -> int:
        """Raise a channel's volume by one step, clamped at 100.

        Returns:
            The new volume.
        """
        sound = self.sound(channel)
        sound.volume = step_volume(sound.volume, VOLUME_STEP)
        return sound.volume

    def decrease_volume(self, channel: Channel) -> int:
        """Lower a channel's volume by one step, clamped at 0.

        Returns:
            The new volume.
        """
        sound = self.sound(channel)
        sound.volume = step_volume(sound.volume, -VOLUME_STEP)
        return sound.volume

    def toggle_mute(self, channel: Channel) -> bool:
        """Flip a channel's mute flag.

        Master cannot be muted; the call leaves it untouched.

        Returns:
            True if the flag changed, False for master.
        """
        if not can_mute(channel):
            return False
        sound = self.sound(channel)
        sound.muted = not sound.muted
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to a schema v2 dictionary for serialization."""
        return {
            "rain": self.rain.to_dict(),
            "thunder": self.thunder.to_dict(),
            "campfire": self.campfire.to_dict(),
            "master": self.master.to_dict(),
            "sounds_version": self.sounds_version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Decode a schema v2 document.

        Unknown keys are ignored. ``sounds_version`` may be absent or null.

        Raises:
            ConfigError: If the document is not a valid v2 config.
        """
        return decode_v2(data)


@dataclass
class LegacyConfigV1:
    """Schema v1 document: master volume as a bare integer."""

    rain: SoundConfig
    thunder: SoundConfig
    campfire: SoundConfig
    master_volume: int
    sounds_version: str | None = None


def _decode_sounds_version(obj: dict[str, Any]) -> str | None:
    value = obj.get("sounds_version")
    if value is None or isinstance(value, str):
        return value
    raise ConfigError(f"sounds_version: expected a string or null, got {value!r}")


def _decode_sound_fields(obj: dict[str, Any]) -> dict[str, SoundConfig]:
    sounds = {}
    for key in SOUND_KEYS:
        if key not in obj:
            raise ConfigError(f"missing field '{key}'")
        sounds[key] = SoundConfig.from_dict(obj[key], where=key)
    return sounds


def is_legacy_v1(data: Any) -> bool:
    """Check whether a parsed document uses schema v1.

    The discriminator is a numeric ``master_volume`` on the root object.
    """
    return isinstance(data, dict) and _is_number(data.get(LEGACY_MASTER_KEY))


def decode_v1(data: Any) -> LegacyConfigV1:
    """Decode a schema v1 document.

    Raises:
        ConfigError: If the document is not a valid v1 config.
    """
    obj = _require_object(data, "config")
    if LEGACY_MASTER_KEY not in obj:
        raise ConfigError(f"missing field '{LEGACY_MASTER_KEY}'")
    return LegacyConfigV1(
        master_volume=_decode_volume(obj[LEGACY_MASTER_KEY], LEGACY_MASTER_KEY),
        sounds_version=_decode_sounds_version(obj),
        **_decode_sound_fields(obj),
    )


def upgrade_v1_to_v2(legacy: LegacyConfigV1) -> Config:
    """Map a v1 config onto the current model.

    Rain, thunder and campfire are copied unchanged; the bare master volume
    becomes an unmuted master channel.
    """
    return Config(
        rain=legacy.rain,
        thunder=legacy.thunder,
        campfire=legacy.campfire,
        master=SoundConfig(volume=legacy.master_volume, muted=False),
        sounds_version=legacy.sounds_version,
    )


def decode_v2(data: Any) -> Config:
    """Decode a schema v2 document.

    Raises:
        ConfigError: If the document is not a valid v2 config.
    """
    obj = _require_object(data, "config")
    if "master" not in obj:
        raise ConfigError("missing field 'master'")
    return Config(
        master=SoundConfig.from_dict(obj["master"], where="master"),
        sounds_version=_decode_sounds_version(obj),
        **_decode_sound_fields(obj),
    )


class ConfigStore:
    """Loads and saves the mixer configuration file.

    The store is the single durability mechanism: every save overwrites the
    whole file. There is no atomic rename, so a crash mid-write can leave a
    truncated file behind.

    Examples:
        >>> store = ConfigStore(tmp_path / "config.json")
        >>> config = store.load()  # creates the file with defaults
        >>> config.rain.volume
        70
    """

    def __init__(self, path: Path | str | None = None) -> None:
        """Initialize the store.

        Args:
            path: Config file location. Defaults to the per-OS config path.
        """
        self.path = Path(path) if path is not None else default_config_path()

    def load(self) -> Config:
        """Load the configuration, creating or migrating the file as needed.

        Returns:
            The current configuration.

        Raises:
            ConfigError: If the file cannot be read, is not valid JSON, or
                matches neither schema version.
        """
        if not self.path.exists():
            logger.info("No config file at %s, writing defaults", self.path)
            config = Config()
            self.save(config)
            return config

        try:
            contents = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read config file {self.path}: {e}") from e

        try:
            data = json.loads(contents)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse config file {self.path}: {e}") from e

        try:
            if is_legacy_v1(data):
                config = upgrade_v1_to_v2(decode_v1(data))
                logger.info("Migrated config %s from schema v1 to v%d", self.path, SCHEMA_VERSION)
                self.save(config)
                return config
            config = decode_v2(data)
        except ConfigError as e:
            raise ConfigError(f"Invalid config file {self.path}: {e}") from e

        logger.info("Loaded config from %s", self.path)
        return config

    def save(self, config: Config) -> None:
        """Write the configuration as pretty-printed JSON.

        Raises:
            ConfigError: If the directory or file cannot be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to write config file {self.path}: {e}") from e
        logger.debug("Saved config to %s", self.path)
