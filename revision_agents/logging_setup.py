"""
Logging Setup - stdlib logging mit Rich Console Output.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    """
    Konfiguriert den Root Logger einmalig mit einem RichHandler.

    Args:
        level: Log Level Name (DEBUG, INFO, WARNING, ...)
        console: Optionale Rich Console (z.B. stderr oder für Tests)
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(isinstance(h, RichHandler) for h in root.handlers):
        return

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="[%X]"))
    root.addHandler(handler)
