"""Relax Player - ambient sound mixer for the terminal.

Main entry point. Loads the configuration, makes sure the sound files are
installed, starts playback and runs the interactive mixer until the user
quits.

Typical usage:
    relax-player
    python -m relax_player.main
"""

import sys

from rich.console import Console
from rich.live import Live

from relax_player.app import App, ensure_sounds
from relax_player.audio.engine import PlaybackEngine
from relax_player.core.errors import AudioEngineError, ConfigError, DownloadError
from relax_player.core.input import Keyboard
from relax_player.core.logging_system import configure_logging, get_logger
from relax_player.core.paths import default_log_path
from relax_player.services.download_manager import SoundDownloader, get_sounds_dir
from relax_player.settings.config import ConfigStore
from relax_player.ui.prompt import DownloadProgressPrinter, prompt_yes_no
from relax_player.version import get_version

logger = get_logger(__name__)


def _fail(console: Console, message: str, error: Exception) -> int:
    logger.error("%s: %s", message, error)
    console.print(f"[bold red]{message}:[/bold red] {error}")
    return 1


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 on normal quit, 1 on a startup or runtime failure).
    """
    configure_logging(default_log_path())
    console = Console()
    err_console = Console(stderr=True)
    version = get_version()
    logger.info("Starting Relax Player v%s", version)

    store = ConfigStore()
    try:
        config = store.load()
    except ConfigError as e:
        return _fail(err_console, "Failed to load configuration", e)

    downloader = SoundDownloader()
    downloader.add_callback(DownloadProgressPrinter(console))
    sounds_dir = get_sounds_dir()
    try:
        ensure_sounds(
            config,
            store,
            downloader,
            confirm=lambda message: prompt_yes_no(console, message),
            current_version=version,
            sounds_dir=sounds_dir,
        )
    except (DownloadError, ConfigError) as e:
        return _fail(err_console, "Failed to install sounds", e)

    try:
        engine = PlaybackEngine(sounds_dir)
    except AudioEngineError as e:
        return _fail(err_console, "Failed to start audio", e)

    app = App(config, store, engine)
    try:
        with engine, Keyboard() as keyboard:
            with Live(console=console, screen=True, auto_refresh=False) as live:
                app.run(keyboard, live)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.exception("Fatal error: %s", e)
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    logger.info("Exited normally")
    return 0


if __name__ == "__main__":
    sys.exit(main())
