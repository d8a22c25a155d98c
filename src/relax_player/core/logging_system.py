"""Logging setup for Relax Player.

The interactive session owns the terminal, so log records go to a file in
the user data directory instead of stderr. Modules obtain their logger with
``get_logger(__name__)`` and never configure handlers themselves.

Typical usage example:
    from relax_player.core.logging_system import configure_logging, get_logger

    configure_logging(data_dir / "relax-player.log")
    logger = get_logger(__name__)
    logger.info("Started")
"""

import logging
import os
from pathlib import Path

ROOT_LOGGER_NAME = "relax_player"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "RELAX_PLAYER_LOG_LEVEL"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the application namespace.

    Args:
        name: Module name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(log_path: Path, level: str | int | None = None) -> logging.Logger:
    """Route application logs to a file.

    Replaces any handlers previously attached to the application logger, so
    calling this twice does not duplicate output.

    Args:
        log_path: File to write (truncated on each start).
        level: Log level name or number. Defaults to ``$RELAX_PLAYER_LOG_LEVEL``
            or INFO.

    Returns:
        The configured application logger.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(_resolve_level(level))
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.propagate = False

    file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app_logger.addHandler(file_handler)
    return app_logger
