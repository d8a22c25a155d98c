"""Relax Player: a terminal mixer for looping ambient sounds."""

from relax_player.version import __version__

__all__ = ["__version__"]
