"""portview - Main Textual application."""

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.logging import TextualHandler
from textual.widgets import Static

from portview import view
from portview.config import Config, default_path, load
from portview.controller import Controller
from portview.effects import EffectRunner
from portview.errors import ConfigError
from portview.messages import (
    Effect,
    Kill,
    KeyPress,
    Message,
    OpenBrowser,
    Quit,
    SaveConfig,
    Scan,
    ScheduleTick,
    Tick,
)
from portview.scanner import Scanner, new_scanner

logger = logging.getLogger(__name__)

# How often the "refreshed Ns ago" text is redrawn
CLOCK_INTERVAL = 1.0


class ServerView(Static):
    """Widget showing the rendered controller state."""

    DEFAULT_CSS = """
    ServerView {
        height: 1fr;
        padding: 0 1;
    }
    """


class PortviewApp(App):
    """Main portview application."""

    TITLE = "portview"
    SUB_TITLE = "Local TCP servers"

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        scanner: Scanner,
        config: Config,
        config_path: str | Path,
        runner: EffectRunner | None = None,
    ) -> None:
        """
        Initialize the PortviewApp.

        Args:
            scanner: Platform scanner used for every refresh.
            config: Loaded configuration.
            config_path: Where label and hidden-port changes are saved.
            runner: Executes effects. Defaults to a real EffectRunner.
        """
        super().__init__()
        self._scanner = scanner
        self._runner = runner or EffectRunner()
        self._controller = Controller(config, config_path)

    @property
    def controller(self) -> Controller:
        """Get the interaction controller."""
        return self._controller

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ServerView(id="server-view")

    def on_mount(self) -> None:
        """Kick off the first scan and the refresh timer."""
        self._refresh_view()
        self._apply(self._controller.start())
        self.set_interval(CLOCK_INTERVAL, self._refresh_view)

    def on_key(self, event: events.Key) -> None:
        """Forward key presses to the controller."""
        event.stop()
        event.prevent_default()
        self.feed(KeyPress(event.key, event.character))

    def feed(self, message: Message) -> None:
        """Hand one message to the controller and run the resulting effects."""
        effects = self._controller.handle(message)
        self._refresh_view()
        self._apply(effects)

    def _refresh_view(self) -> None:
        try:
            self.query_one("#server-view", ServerView).update(view.render(self._controller))
        except NoMatches:
            pass  # Widget not mounted yet

    def _apply(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Quit):
                self.exit()
            elif isinstance(effect, ScheduleTick):
                self.set_timer(effect.interval, lambda: self.feed(Tick()))
            elif isinstance(effect, Scan):
                self._in_background(self._runner.scan, self._scanner, group="scan")
            elif isinstance(effect, Kill):
                self._in_background(self._runner.kill, effect.pid, group="kill")
            elif isinstance(effect, OpenBrowser):
                self._in_background(self._runner.open_browser, effect.port, group="open")
            elif isinstance(effect, SaveConfig):
                self._in_background(self._runner.save, effect.path, effect.config, group="save")

    def _in_background(
        self,
        func: Callable[..., Message | None],
        *args: object,
        group: str,
    ) -> None:
        """Run an effect in a worker thread and post its result back."""

        def work() -> None:
            message = func(*args)
            if message is not None:
                self.call_from_thread(self.feed, message)

        self.run_worker(work, thread=True, group=group, exit_on_error=False)


def configure_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """Route log records to the Textual console and optionally a file."""
    handlers: list[logging.Handler] = [TextualHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="portview",
        description="Interactive viewer for TCP servers listening on localhost.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"config file (default: {default_path()})",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument("--log-file", type=Path, default=None, help="also write logs to this file")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for portview application."""
    args = build_parser().parse_args(argv)
    configure_logging(args.debug, args.log_file)

    config_path = args.config or default_path()
    try:
        config = load(config_path)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    app = PortviewApp(new_scanner(config.port_range), config, config_path)
    app.run()


if __name__ == "__main__":
    main()
