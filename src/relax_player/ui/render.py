"""Terminal rendering of the mixer (alsamixer style).

Builds rich renderables from the current mixer state: one vertical volume
bar per channel, the selected channel highlighted, and a help line with the
key bindings. Rendering is pure; nothing here holds state or mutates the
app.
"""

from typing import Protocol

from rich.align import Align
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from relax_player.audio.channels import MAX_VOLUME, Channel, all_channels

TITLE = " Relax Player "
BAR_WIDTH = 3
DEFAULT_BAR_HEIGHT = 12
MIN_BAR_HEIGHT = 3

FILL_CHAR = "▓"
EMPTY_CHAR = "┃"
MUTED_CHAR = "░"


class MixerView(Protocol):
    """State the renderer reads from the app."""

    selected_channel: Channel
    status_message: str | None

    def get_volume(self, channel: Channel) -> int: ...

    def is_muted(self, channel: Channel) -> bool: ...


def filled_rows(volume: int, height: int) -> int:
    """Number of bar rows to fill for a volume.

    Examples:
        >>> filled_rows(50, 10)
        5
        >>> filled_rows(100, 7)
        7
    """
    if height <= 0:
        return 0
    return min(height, int(round(volume / MAX_VOLUME * height)))


def volume_bar(volume: int, height: int, selected: bool, muted: bool) -> Text:
    """Draw a vertical bar, filled from the bottom."""
    filled = filled_rows(volume, height)
    if muted:
        fill_char, empty_char, fill_style = MUTED_CHAR, MUTED_CHAR, "bright_black"
    elif selected:
        fill_char, empty_char, fill_style = FILL_CHAR, EMPTY_CHAR, "green"
    else:
        fill_char, empty_char, fill_style = FILL_CHAR, EMPTY_CHAR, "cyan"

    bar = Text(justify="center")
    for row in range(height):
        cells_from_bottom = height - row - 1
        if cells_from_bottom < filled:
            bar.append(fill_char * BAR_WIDTH, style=fill_style)
        else:
            bar.append(empty_char * BAR_WIDTH, style="bright_black")
        if row < height - 1:
            bar.append("\n")
    return bar


def volume_label(volume: int, muted: bool) -> str:
    """Text shown under a bar, e.g. ``[70%]`` or ``[70%] 🔇``."""
    return f"[{volume}%]" + (" 🔇" if muted else "")


def render_channel(app: MixerView, channel: Channel, bar_height: int) -> RenderableType:
    is_selected = app.selected_channel is channel
    volume = app.get_volume(channel)
    is_muted = app.is_muted(channel)
    highlight = "bold yellow" if is_selected else ""

    return Group(
        Align.center(Text(channel.display_name, style=highlight)),
        Align.center(volume_bar(volume, bar_height, is_selected, is_muted)),
        Align.center(Text(volume_label(volume, is_muted), style="yellow" if is_selected else "")),
    )


def render_channels(app: MixerView, bar_height: int) -> Panel:
    columns = Table.grid(expand=True)
    for _ in all_channels():
        columns.add_column(ratio=1, justify="center")
    columns.add_row(*(render_channel(app, channel, bar_height) for channel in all_channels()))
    return Panel(columns, title=TITLE)


def render_help() -> Panel:
    help_line = Text.assemble(
        "←/→ ",
        ("h/l", "bold"),
        ": Select  ↑/↓ ",
        ("j/k", "bold"),
        ": Volume  ",
        ("m", "bold"),
        ": Mute  ",
        ("q", "bold"),
        ": Quit",
        justify="center",
    )
    return Panel(help_line)


def render_app(app: MixerView, bar_height: int = DEFAULT_BAR_HEIGHT) -> RenderableType:
    """Render the whole interface.

    Args:
        app: Mixer state to draw.
        bar_height: Rows available for each volume bar.

    Returns:
        A rich renderable for ``Live.update``.
    """
    parts: list[RenderableType] = [render_channels(app, max(MIN_BAR_HEIGHT, bar_height))]
    if app.status_message:
        parts.append(Text(app.status_message, style="bold red", justify="center"))
    parts.append(render_help())
    return Group(*parts)


def bar_height_for(terminal_height: int) -> int:
    """Fit the bars to the terminal: panel borders, labels and help take 9 rows."""
    return max(MIN_BAR_HEIGHT, terminal_height - 9)
