"""Mixer control loop.

The App binds key presses to configuration changes and pushes the
resulting gains into the playback engine. It owns the selection state; the
configuration, store and engine are passed in so the loop can run against
a fake engine in tests.

Typical usage example:
    from relax_player.app import App

    app = App(config, store, engine)
    with Keyboard() as keyboard, Live(console=console, screen=True) as live:
        app.run(keyboard, live)
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from relax_player.audio.channels import (
    Channel,
    can_mute,
    effective_volume,
    next_channel,
    prev_channel,
)
from relax_player.core.errors import ConfigError, DownloadError
from relax_player.core.input import POLL_TIMEOUT, InputAction, InputConfig
from relax_player.core.logging_system import get_logger
from relax_player.services.download_manager import (
    GITHUB_REPO,
    GITHUB_USER,
    SoundDownloader,
    needs_update,
    release_url,
)
from relax_player.settings.config import Config, ConfigStore
from relax_player.ui.render import bar_height_for, render_app

logger = get_logger(__name__)


class GainSink(Protocol):
    """The part of the playback engine the control loop talks to."""

    def update_volumes(self, rain: float, thunder: float, campfire: float) -> None: ...


class KeySource(Protocol):
    def read_key(self, timeout: float = POLL_TIMEOUT) -> str | None: ...


class App:
    """Interactive mixer state machine.

    Attributes:
        config: Mixer configuration, mutated in place.
        store: Persists the configuration after every change.
        engine: Receives the effective gains.
        selected_channel: Channel the volume and mute keys act on.
        should_quit: Set by the quit action; the loop exits on next check.
        status_message: Last error shown to the user, cleared by the next
            successful save.
    """

    def __init__(
        self,
        config: Config,
        store: ConfigStore,
        engine: GainSink,
        input_config: InputConfig | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.engine = engine
        self.input_config = input_config or InputConfig()
        self.selected_channel = Channel.RAIN
        self.should_quit = False
        self.status_message: str | None = None

    def run(self, keyboard: KeySource, live: Any) -> None:
        """Run the interactive loop until quit.

        Args:
            keyboard: Source of key presses (polled with a 100 ms timeout).
            live: rich Live display the interface is drawn into.
        """
        self.update_audio_volumes()
        logger.info("Entering mixer loop")

        while not self.should_quit:
            height = bar_height_for(live.console.size.height)
            live.update(render_app(self, bar_height=height), refresh=True)

            key = keyboard.read_key(timeout=POLL_TIMEOUT)
            if key is not None:
                self.handle_key(key)

        logger.info("Leaving mixer loop")

    def handle_key(self, key: str) -> None:
        """Apply the action bound to a key; unbound keys are ignored."""
        action = self.input_config.action_for(key)
        if action is not None:
            self.handle_action(action)

    def handle_action(self, action: InputAction) -> None:
        """Apply one action, then refresh the engine gains."""
        if action is InputAction.QUIT:
            self.quit()
        elif action is InputAction.SELECT_PREV:
            self.select_prev()
        elif action is InputAction.SELECT_NEXT:
            self.select_next()
        elif action is InputAction.VOLUME_UP:
            self.increase_volume()
        elif action is InputAction.VOLUME_DOWN:
            self.decrease_volume()
        elif action is InputAction.TOGGLE_MUTE:
            self.toggle_mute()
        else:
            raise ValueError(f"Unknown action: {action!r}")

        self.update_audio_volumes()

    def select_next(self) -> None:
        self.selected_channel = next_channel(self.selected_channel)

    def select_prev(self) -> None:
        self.selected_channel = prev_channel(self.selected_channel)

    def increase_volume(self) -> None:
        """Raise the selected channel's volume by 5 (max 100) and save."""
        self.config.increase_volume(self.selected_channel)
        self._save()

    def decrease_volume(self) -> None:
        """Lower the selected channel's volume by 5 (min 0) and save."""
        self.config.decrease_volume(self.selected_channel)
        self._save()

    def toggle_mute(self) -> None:
        """Toggle mute on the selected channel. Master is ignored and not saved."""
        if self.config.toggle_mute(self.selected_channel):
            self._save()

    def quit(self) -> None:
        self.should_quit = True

    def _save(self) -> None:
        # A failed save keeps the in-memory change; the next save retries.
        try:
            self.store.save(self.config)
        except ConfigError as e:
            logger.error("Failed to save config: %s", e)
            self.status_message = f"Could not save settings: {e}"
        else:
            self.status_message = None

    def update_audio_volumes(self) -> None:
        """Push the effective gain of every playback channel to the engine."""
        self.engine.update_volumes(
            effective_volume(self.config, Channel.RAIN),
            effective_volume(self.config, Channel.THUNDER),
            effective_volume(self.config, Channel.CAMPFIRE),
        )

    def get_volume(self, channel: Channel) -> int:
        """Get the volume for a channel (0-100)."""
        return self.config.sound(channel).volume

    def is_muted(self, channel: Channel) -> bool:
        """Check if a channel is muted. Master never is."""
        if not can_mute(channel):
            return False
        return self.config.sound(channel).muted


def ensure_sounds(
    config: Config,
    store: ConfigStore,
    downloader: SoundDownloader,
    confirm: Callable[[str], bool],
    current_version: str,
    sounds_dir: Path,
) -> None:
    """Make sure the sound assets exist before the engine starts.

    A first install downloads without asking. When sounds exist but were
    installed for another version the user is asked first. A successful
    download records the version in the config.

    Args:
        config: Configuration holding ``sounds_version``.
        store: Used to persist the new ``sounds_version``.
        downloader: Performs the download.
        confirm: Asks the user a yes/no question.
        current_version: Version of the running application.
        sounds_dir: Directory the engine will load from.

    Raises:
        DownloadError: If the first install fails (nothing to play).
        ConfigError: If the new version cannot be saved.
    """
    if sounds_dir != downloader.sounds_dir:
        # Debug override: sounds come from ./sounds, never download
        logger.info("Using sounds from %s", sounds_dir)
        return

    have_sounds = downloader.sounds_exist()
    stored_version = config.sounds_version

    if not have_sounds:
        logger.info("Sounds not found, downloading for v%s", current_version)
        should_download = True
    elif needs_update(current_version, stored_version):
        should_download = confirm(
            f"New sounds available for v{current_version} "
            f"(current: {stored_version or 'unknown'}). Download now?"
        )
    else:
        should_download = False

    if not should_download:
        return

    try:
        downloader.download_and_extract(
            release_url(GITHUB_USER, GITHUB_REPO, current_version), current_version
        )
    except DownloadError:
        if not have_sounds:
            raise
        logger.warning("Sound update failed, keeping sounds from v%s", stored_version)
        return

    config.sounds_version = current_version
    store.save(config)
