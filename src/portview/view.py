"""Rendering of the controller state as Rich renderables."""

import time

from rich import box
from rich.console import RenderableType
from rich.panel import Panel
from rich.text import Text

from portview import keys
from portview.controller import Controller, Mode
from portview.models import Server

TITLE_STYLE = "bold magenta"
HEADER_STYLE = "bold grey50"
CURSOR_STYLE = "magenta"
HEALTHY_STYLE = "green"
UNHEALTHY_STYLE = "grey50"
STATUS_STYLE = "grey58"
FILTER_STYLE = "magenta"
LABEL_STYLE = "deep_sky_blue1"
ERROR_STYLE = "red"

PROCESS_WIDTH = 15
LABEL_WIDTH = 15
COMMAND_WIDTH = 40


def truncate(text: str, max_len: int) -> str:
    """Shorten text to max_len characters, ending with '…' when cut."""
    if max_len <= 0:
        return ""
    if len(text) <= max_len:
        return text
    if max_len == 1:
        return text[:1]
    return text[: max_len - 1] + "…"


def format_age(seconds: float) -> str:
    """Format an elapsed time the way the status bar shows it."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m{seconds}s"


def render(controller: Controller) -> RenderableType:
    """Render the full screen for the current controller state."""
    if controller.mode is Mode.HELP:
        return render_help()

    text = Text()
    text.append("portview", style=TITLE_STYLE)
    text.append("\n\n")

    if controller.mode is Mode.FILTER:
        text.append("Filter: ", style=FILTER_STYLE)
        text.append(controller.filter_text)
        text.append("_\n\n")
    elif controller.filter_text:
        text.append(f"Filter: {controller.filter_text}", style=FILTER_STYLE)
        text.append("\n\n")

    if controller.mode is Mode.LABEL:
        text.append("Label: ")
        text.append_text(_render_input(controller))
        text.append("\n\n")

    text.append(
        f"  {'PORT':<7} {'PID':<7} {'PROCESS':<15} {'LABEL':<15} COMMAND",
        style=HEADER_STYLE,
    )
    text.append("\n")

    if not controller.visible:
        text.append("\n  No servers found.\n")
    else:
        for index, server in enumerate(controller.visible):
            text.append_text(_render_row(server, index == controller.cursor))
            text.append("\n")

    text.append("\n")
    text.append_text(render_status_bar(controller))
    return text


def _render_input(controller: Controller) -> Text:
    line_input = controller.label_input
    if not line_input.value:
        return Text(line_input.placeholder, style="dim")
    value, pos = line_input.value, line_input.position
    rendered = Text(value[:pos])
    rendered.append(value[pos:pos + 1] or " ", style="reverse")
    rendered.append(value[pos + 1:])
    return rendered


def _render_row(server: Server, selected: bool) -> Text:
    style = HEALTHY_STYLE if server.healthy else UNHEALTHY_STYLE
    row = Text()
    row.append("> " if selected else "  ", style=CURSOR_STYLE)
    row.append(f"{server.port:<7}", style=style)
    row.append(" ")
    row.append(f"{server.pid:<7}", style=style)
    row.append(" ")
    row.append(f"{truncate(server.process, PROCESS_WIDTH):<15}", style=style)
    row.append(" ")
    row.append(f"{truncate(server.label, LABEL_WIDTH):<15}", style=LABEL_STYLE)
    row.append(" ")
    row.append(truncate(server.command, COMMAND_WIDTH), style=style)
    return row


def render_status_bar(controller: Controller) -> Text:
    """Render the bottom status bar and key hints."""
    selected = controller.selected
    if controller.mode is Mode.CONFIRM_KILL and selected is not None:
        return Text(f"Kill PID {selected.pid}? (y/n)", style=STATUS_STYLE)

    status = Text(f"{len(controller.visible)} servers", style=STATUS_STYLE)
    if controller.last_refresh is not None:
        age = format_age(time.monotonic() - controller.last_refresh)
        status.append(f" | refreshed {age} ago", style=STATUS_STYLE)
    if controller.error:
        status.append(" | ", style=STATUS_STYLE)
        status.append(f"error: {controller.error}", style=ERROR_STYLE)

    status.append("\n")
    status.append(keys.HINTS, style=STATUS_STYLE)
    return status


def render_help() -> Panel:
    """Render the help overlay."""
    body = Text()
    body.append("Help", style="bold")
    body.append("\n\n")
    for key_names, description in keys.HELP_ENTRIES:
        body.append(f"  {key_names:<10} {description}\n")
    body.append("\nPress any key to close")
    return Panel(body, box=box.ROUNDED, border_style=CURSOR_STYLE, padding=(1, 2), expand=False)
