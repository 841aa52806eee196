"""Rich console that mirrors what the CLI shows into the debug log

With --debug, the panels, tables and prompts the user sees are written as
plain text next to the sync pipeline's own log records, so one file tells
the whole story of a session.
"""

import logging
from typing import Optional

from rich.console import Console

DEFAULT_DEBUG_LOG = "goal_tracker_debug.log"
CONSOLE_LOGGER_NAME = "goal_tracker.console"


class DebugCapturingConsole(Console):
    """Console recording its own output and flushing it to a logger per print

    Recording is done by rich itself (record=True); each print exports and
    clears the record buffer, so styles and markup never reach the log.
    """

    def __init__(self, debug_logger: logging.Logger, **kwargs):
        kwargs.setdefault("record", True)
        super().__init__(**kwargs)
        self.debug_logger = debug_logger

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)
        text = self.export_text(clear=True, styles=False).rstrip()
        if not text or not self.debug_logger.isEnabledFor(logging.DEBUG):
            return
        for line in text.splitlines():
            self.debug_logger.debug(f"[CONSOLE] {line}")


def create_debug_console(debug_enabled: bool = False, debug_logger: Optional[logging.Logger] = None) -> Console:
    """Plain console normally, a capturing one when debugging with a logger"""
    if debug_enabled and debug_logger is not None:
        return DebugCapturingConsole(debug_logger)
    return Console()


def setup_debug_logger(log_file: str = DEFAULT_DEBUG_LOG) -> logging.Logger:
    """Create the logger that receives captured console output

    Args:
        log_file: File the captured lines are appended to

    Returns:
        Logger writing only to log_file (it does not propagate, so lines are
        not duplicated by the root handlers)
    """
    console_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    console_logger.setLevel(logging.DEBUG)
    for handler in list(console_logger.handlers):
        console_logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s"))
    console_logger.addHandler(handler)
    console_logger.propagate = False
    return console_logger
