"""Version information for Relax Player.

The version doubles as the sound bundle tag: assets are published as a
``sounds.tar.gz`` attachment on the GitHub release ``v<version>``, and the
installed bundle is recorded in the config as ``sounds_version``.
"""

from importlib.metadata import PackageNotFoundError, version

# Version info
__version__ = "0.2.0"  # Fallback version

PACKAGE_NAME = "relax-player"


def get_version() -> str:
    """Get the current version string.

    Reads the installed distribution metadata or falls back to __version__.

    Returns:
        Version string (e.g., "0.2.0").
    """
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return __version__

