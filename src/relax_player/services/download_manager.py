"""Download manager service for the sound bundle.

This service makes sure the three looping sound files exist on disk before
the playback engine starts. Sounds are published as a ``sounds.tar.gz``
attachment on each GitHub release; the archive contains a ``sounds/``
folder that is extracted into the user data directory.

Features:
- Progress notifications for the UI
- Verification that all required files were extracted
- The existing sounds directory is left untouched when a download fails

Typical usage:
    downloader = SoundDownloader(data_dir())
    downloader.add_callback(lambda status: print(status.message))

    if needs_update(get_version(), config.sounds_version):
        downloader.download_and_extract(
            release_url(GITHUB_USER, GITHUB_REPO, get_version()), get_version()
        )
"""

import io
import os
import shutil
import tarfile
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path, PurePosixPath

import requests

from relax_player.audio.engine import SOUND_FILES
from relax_player.core.errors import DownloadError
from relax_player.core.logging_system import get_logger
from relax_player.core.paths import data_dir, default_sounds_dir

logger = get_logger(__name__)

# GitHub repository information for downloading sounds
GITHUB_USER = "ebithril"
GITHUB_REPO = "relax-player"

REQUIRED_SOUNDS: tuple[str, ...] = tuple(SOUND_FILES.values())
SOUNDS_DIRNAME = "sounds"
DEBUG_ENV = "RELAX_PLAYER_DEBUG"

DOWNLOAD_TIMEOUT = 30
CHUNK_SIZE = 8192


class DownloadState(Enum):
    """Download state enumeration."""

    IDLE = auto()
    DOWNLOADING = auto()
    EXTRACTING = auto()
    COMPLETED = auto()
    ERROR = auto()


@dataclass
class DownloadStatus:
    """Current download status.

    Attributes:
        state: Current download state.
        message: Human-readable progress message.
        bytes_downloaded: Bytes downloaded so far.
        bytes_total: Total bytes to download (0 if unknown).
    """

    state: DownloadState = DownloadState.IDLE
    message: str = ""
    bytes_downloaded: int = 0
    bytes_total: int = 0

    @property
    def progress(self) -> int:
        """Download progress (0-100), 0 while the size is unknown."""
        if self.bytes_total <= 0:
            return 0
        return min(100, int(100 * self.bytes_downloaded / self.bytes_total))


def debug_mode_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "").strip().lower() in {"1", "true", "yes", "on"}


def release_url(github_user: str, github_repo: str, version: str) -> str:
    """Build the URL of the sounds archive attached to a release."""
    return (
        f"https://github.com/{github_user}/{github_repo}"
        f"/releases/download/v{version}/sounds.tar.gz"
    )


def _has_required_sounds(sounds_dir: Path) -> bool:
    return sounds_dir.is_dir() and all((sounds_dir / name).is_file() for name in REQUIRED_SOUNDS)


def check_cwd_sounds(cwd: Path | None = None) -> bool:
    """Check if all required sound files exist in ``./sounds``."""
    base = cwd if cwd is not None else Path.cwd()
    return _has_required_sounds(base / SOUNDS_DIRNAME)


def get_sounds_dir() -> Path:
    """Get the directory the engine should load sounds from.

    In debug mode (``RELAX_PLAYER_DEBUG`` set) a complete ``./sounds``
    directory takes precedence over the user data directory.
    """
    if debug_mode_enabled() and check_cwd_sounds():
        return Path.cwd() / SOUNDS_DIRNAME
    return default_sounds_dir()


def sounds_exist(sounds_dir: Path | None = None) -> bool:
    """Check if all required sound files exist.

    Args:
        sounds_dir: Directory to check. Defaults to ``get_sounds_dir()``.
    """
    return _has_required_sounds(sounds_dir if sounds_dir is not None else get_sounds_dir())


def needs_update(current_version: str, stored_version: str | None) -> bool:
    """Check if the installed sounds are missing or from another version.

    Examples:
        >>> needs_update("0.2.0", None)
        True
        >>> needs_update("0.2.0", "0.2.0")
        False
    """
    if stored_version is None:
        return True
    return stored_version != current_version


def _safe_members(archive: tarfile.TarFile) -> list[tarfile.TarInfo]:
    members = []
    for member in archive.getmembers():
        path = PurePosixPath(member.name)
        if path.is_absolute() or ".." in path.parts:
            raise DownloadError(f"Refusing to extract unsafe archive entry: {member.name}")
        if member.issym() or member.islnk() or member.isdev():
            raise DownloadError(f"Refusing to extract link or device entry: {member.name}")
        members.append(member)
    return members


class SoundDownloader:
    """Downloads and installs the sound bundle.

    Downloads run synchronously on the caller's thread; callbacks receive a
    ``DownloadStatus`` at every stage so a prompt can show progress.
    """

    def __init__(
        self,
        data_path: Path | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            data_path: Directory receiving the ``sounds/`` folder.
                Defaults to the per-OS data directory.
            session: Optional requests session (for connection reuse or tests).
        """
        self.data_path = data_path if data_path is not None else data_dir()
        self._session = session or requests.Session()
        self._status = DownloadStatus()
        self._callbacks: list[Callable[[DownloadStatus], None]] = []

    @property
    def sounds_dir(self) -> Path:
        return self.data_path / SOUNDS_DIRNAME

    def add_callback(self, callback: Callable[[DownloadStatus], None]) -> None:
        """Add a callback for status updates.

        Args:
            callback: Function called with DownloadStatus on updates.
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[DownloadStatus], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def get_status(self) -> DownloadStatus:
        return self._status

    def _update(self, state: DownloadState, message: str, **progress: int) -> None:
        self._status = DownloadStatus(state=state, message=message, **progress)
        for callback in self._callbacks:
            callback(self._status)

    def sounds_exist(self) -> bool:
        return _has_required_sounds(self.sounds_dir)

    def download_and_extract(self, source_url: str, version: str) -> None:
        """Download the archive and install it into the sounds directory.

        On success all required sounds exist. On failure the sounds directory
        is left as it was.

        Args:
            source_url: URL of the ``sounds.tar.gz`` archive.
            version: Bundle version, used in progress messages.

        Raises:
            DownloadError: If the download, extraction or verification fails.
        """
        try:
            payload = self._download(source_url, version)
            self._install(payload)
        except DownloadError as e:
            self._update(DownloadState.ERROR, str(e))
            logger.error("Sound download failed: %s", e)
            raise

        self._update(DownloadState.COMPLETED, "Sounds downloaded and extracted successfully!")
        logger.info("Installed sounds v%s into %s", version, self.sounds_dir)

    def _download(self, source_url: str, version: str) -> bytes:
        self._update(
            DownloadState.DOWNLOADING,
            f"Downloading sounds from GitHub release v{version}...",
        )
        logger.info("Downloading sounds from %s", source_url)

        try:
            response = self._session.get(source_url, stream=True, timeout=DOWNLOAD_TIMEOUT)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download sounds: {e}") from e

        with response:
            if not response.ok:
                raise DownloadError(
                    f"Failed to download sounds: HTTP status {response.status_code}. "
                    "Make sure the release exists with sounds.tar.gz attached."
                )

            total = int(response.headers.get("content-length", 0) or 0)
            buffer = io.BytesIO()
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        buffer.write(chunk)
                        self._update(
                            DownloadState.DOWNLOADING,
                            f"Downloading sounds from GitHub release v{version}...",
                            bytes_downloaded=buffer.tell(),
                            bytes_total=total,
                        )
            except requests.RequestException as e:
                raise DownloadError(f"Failed to read download response: {e}") from e

        payload = buffer.getvalue()
        self._update(
            DownloadState.DOWNLOADING,
            f"Downloaded {len(payload) // 1024} KB",
            bytes_downloaded=len(payload),
            bytes_total=total or len(payload),
        )
        return payload

    def _install(self, payload: bytes) -> None:
        self._update(DownloadState.EXTRACTING, "Extracting sound files...")
        self.data_path.mkdir(parents=True, exist_ok=True)

        staging = Path(tempfile.mkdtemp(prefix=".sounds-", dir=self.data_path))
        try:
            try:
                with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as archive:
                    archive.extractall(staging, members=_safe_members(archive), filter="data")
            except (tarfile.TarError, OSError, EOFError) as e:
                raise DownloadError(f"Failed to extract sounds archive: {e}") from e

            extracted = staging / SOUNDS_DIRNAME
            if not _has_required_sounds(extracted):
                raise DownloadError(
                    "Sound extraction completed but some files are missing. "
                    f"Expected: {list(REQUIRED_SOUNDS)}"
                )

            self._swap_in(extracted, staging / "previous")
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _swap_in(self, extracted: Path, backup: Path) -> None:
        # Whole-directory renames; the old sounds come back if the second one fails
        had_sounds = self.sounds_dir.exists()
        try:
            if had_sounds:
                os.replace(self.sounds_dir, backup)
            try:
                os.replace(extracted, self.sounds_dir)
            except OSError:
                if had_sounds:
                    os.replace(backup, self.sounds_dir)
                raise
        except OSError as e:
            raise DownloadError(f"Failed to install sounds into {self.sounds_dir}: {e}") from e
