"""
UI Core Module for ctxscribe
Console theme, live progress display and log routing for the CLI
"""

import logging
import os
import datetime
from collections import deque
from typing import Dict, List, Tuple

from rich.progress import (
    Progress,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn,
    TimeElapsedColumn
)
from rich.logging import RichHandler
from rich.console import Console
from rich.theme import Theme
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich.live import Live
from rich.layout import Layout

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "transformers", "numba")

class LogPanel:
    """
    Scrollback buffer of recent log lines rendered inside the Live layout.

    Attributes:
        max_lines (int): Maximum lines to retain.
    """
    def __init__(self, console, max_lines=20):
        self.console = console
        self._lines = deque(maxlen=max_lines)

    def write(self, text: str) -> None:
        if text.strip():
            self._lines.append(text.rstrip())

    def __rich__(self) -> Text:
        return Text("\n".join(list(self._lines)))

class LogPanelStream:
    """File-like adapter so a RichHandler console writes into a LogPanel."""
    def __init__(self, log_panel_instance: LogPanel):
        self.log_panel_instance = log_panel_instance

    def write(self, message):
        self.log_panel_instance.write(message)

    def flush(self):
        pass

class ScribeUI:
    """
    Singleton UI manager shared by the CLI and path helpers

    Features:
    - Themed console
    - Progress bars with a per-task phase column
    - Logging routed to a live log panel, plus a file log in debug mode
    - Summary tables and panels
    """

    _instance = None

    def __new__(cls):
        if not cls._instance:
            cls._instance = super().__new__(cls)
            cls._instance._init_ui()
        return cls._instance

    def _init_ui(self):
        self.theme = Theme({
            "success": "green4",
            "warning": "gold3",
            "error": "red3",
            "info": "blue",
            "progress": "cyan",
            "metric": "magenta"
        })
        self.console = Console(theme=self.theme)
        self.progress_columns = [
            TextColumn("[progress]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            TextColumn("•"),
            TaskProgressColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn("•"),
            TextColumn("[cyan]{task.fields[phase]}"),
        ]

    def get_console(self) -> Console:
        return self.console

    def create_progress(self) -> Progress:
        """Progress instance with the standard columns. Tasks must pass a ``phase`` field."""
        return Progress(*self.progress_columns, console=self.console, transient=False)

    def configure_basic_logging(self, debug_mode: bool = False) -> RichHandler:
        """
        Attach a RichHandler writing straight to the console (used before the Live display exists).

        Returns:
            RichHandler: The handler that was added to the root logger.
        """
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=debug_mode,
            console=self.console,
            markup=False,
            rich_tracebacks=True
        )
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)
        root_logger.addHandler(handler)
        return handler

    def _panel_handlers(self, log_panel_instance: LogPanel) -> List[RichHandler]:
        return [
            h for h in logging.getLogger().handlers
            if isinstance(h, RichHandler) and isinstance(h.console.file, LogPanelStream)
            and h.console.file.log_panel_instance is log_panel_instance
        ]

    def _add_debug_file_handler(self, log_file_base: str):
        root_logger = logging.getLogger()
        log_file = os.path.abspath(f"{log_file_base}_{datetime.datetime.now():%H-%M-%S}.log")
        if any(isinstance(h, logging.FileHandler) and h.baseFilename == log_file for h in root_logger.handlers):
            return
        try:
            file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        except OSError as e:
            self.console.print(f"[error]Could not configure file logging to {log_file}: {e}[/]", style="error")
            return
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'))
        root_logger.addHandler(file_handler)
        logging.info(f"DEBUG mode enabled. Logging detailed output to {log_file}")

    def setup_live_logging(self, log_panel_instance: LogPanel, debug_mode: bool, log_file_base: str):
        """
        Route logging into the Live display.

        Console handlers on the root logger are swapped for a single RichHandler
        writing into ``log_panel_instance``. File handlers stay. In debug mode a
        DEBUG file log named ``<log_file_base>_<time>.log`` is added; otherwise
        chatty third-party loggers are limited to warnings.
        """
        log_level = logging.DEBUG if debug_mode else logging.INFO
        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        panel_handlers = self._panel_handlers(log_panel_instance)
        for handler in root_logger.handlers[:]:
            if isinstance(handler, logging.FileHandler) or handler in panel_handlers:
                continue
            root_logger.removeHandler(handler)
            handler.close()

        if debug_mode:
            self._add_debug_file_handler(log_file_base)

        if panel_handlers:
            for handler in panel_handlers:
                handler.setLevel(log_level)
        else:
            panel_console = Console(file=LogPanelStream(log_panel_instance), force_terminal=True,
                                    color_system="truecolor", theme=self.theme)
            handler = RichHandler(level=log_level, console=panel_console, show_time=False,
                                  show_path=False, markup=False, rich_tracebacks=True)
            handler.setFormatter(logging.Formatter("%(message)s"))
            root_logger.addHandler(handler)

        if not debug_mode:
            for name in NOISY_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

    def create_live_display(self, progress_panel_title: str = "[bold green]Progress[/]") -> Tuple[Live, Progress, LogPanel]:
        """
        Live display with a progress panel on top and the log panel below.

        Returns:
            Tuple[Live, Progress, LogPanel]
        """
        log_panel = LogPanel(self.console)
        progress = self.create_progress()
        layout = Layout()
        layout.split_column(
            Layout(Panel(progress, title=progress_panel_title, border_style="green", expand=True), name="progress", size=8),
            Layout(log_panel, name="logs")
        )
        live = Live(layout, console=self.console, refresh_per_second=6, screen=False)
        return live, progress, log_panel

    def summary_table(self, data: Dict[str, str], title: str = "Run Summary") -> Table:
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Metric", style="metric", overflow="fold")
        table.add_column("Value", style="success", overflow="fold")
        for key, value in data.items():
            table.add_row(key, str(value))
        return table

    def create_panel(self, content, title: str, border_style: str = "blue", **kwargs) -> Panel:
        return Panel(content, title=f"[{border_style}]{title}[/]", border_style=border_style, **kwargs)
