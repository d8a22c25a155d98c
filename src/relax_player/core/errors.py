"""Exception hierarchy shared across Relax Player.

Each subsystem raises its own subclass so callers can tell startup
failures apart (bad configuration, missing audio assets, failed download)
while still catching everything with ``RelaxPlayerError``.
"""


class RelaxPlayerError(Exception):
    """Base class for all application errors."""


class ConfigError(RelaxPlayerError):
    """Raised when the configuration file cannot be read, parsed or written."""


class AudioEngineError(RelaxPlayerError):
    """Raised when the playback engine cannot load assets or open a device."""


class DownloadError(RelaxPlayerError):
    """Raised when the sound bundle cannot be downloaded or extracted."""
