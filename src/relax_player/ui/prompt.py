"""Console prompts shown before the mixer starts.

Covers the sound update question and download progress. These run on the
normal (cooked) terminal, before raw mode and the live display are set up.
"""

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from relax_player.services.download_manager import DownloadState, DownloadStatus


def prompt_yes_no(console: Console, message: str) -> bool:
    """Ask a yes/no question. Defaults to no."""
    console.print(Panel(f"[bold]{message}[/bold]", title="Download Sounds", border_style="cyan"))
    return Confirm.ask("Download?", console=console, default=False)


class DownloadProgressPrinter:
    """Download callback that prints each new stage once."""

    def __init__(self, console: Console) -> None:
        self._console = console
        self._last_message = ""

    def __call__(self, status: DownloadStatus) -> None:
        if status.message == self._last_message:
            return
        self._last_message = status.message
        if status.state is DownloadState.ERROR:
            self._console.print(f"[bold red]{status.message}[/bold red]")
        elif status.state is DownloadState.COMPLETED:
            self._console.print(f"[bold green]{status.message}[/bold green]")
        else:
            self._console.print(status.message)
