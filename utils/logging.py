import logging
import sys
from typing import Any, Mapping

import hist
from tabulate import tabulate

# ANSI escape codes for colors
BLUE = "\033[0;34m"
YELLOW = "\033[1;33m"
RED = "\033[0;31m"
MAGENTA = "\033[95m"
GREEN = "\033[0;32m"
RESET = "\033[0m"


def _banner(text: str) -> str:
    """
    Creates a magenta-colored banner for logging.

    Parameters
    ----------
    text : str
        The text to display in the banner.
    Returns
    -------
    str
        A formatted string with ANSI escape codes for coloring.
    """
    return (
        f"\n{MAGENTA}\n{'=' * 80}\n"
        f"{' ' * ((80 - len(text)) // 2)}{text.upper()}\n"
        f"{'=' * 80}{RESET}"
    )


class ColoredFormatter(logging.Formatter):
    """A custom logging formatter that adds colors based on log level."""

    # The format string for the log message
    log_format_prefix = "[%(levelname)s:%(name)s:%(funcName)s:L.%(lineno)d] "

    # A dictionary to map log levels to colors
    PREFIX_COLORS = {
        logging.INFO: BLUE,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED,
    }

    def format(self, record):
        # Get the color for the current log level's prefix
        color = self.PREFIX_COLORS.get(record.levelno, "")
        prefix_formatter = logging.Formatter(self.log_format_prefix)
        prefix = prefix_formatter.format(record)
        colored_prefix = f"{color}{prefix}{RESET}"

        # The message itself might have its own colors, which will be preserved.
        message = record.getMessage().lstrip("\n")
        return f"{colored_prefix}{message}"


def setup_logging(level: int = logging.INFO) -> None:
    """Route the root logger through a single colored stdout handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)


def format_output_summary(outputs: Mapping[str, Any]) -> str:
    """
    Tabulate the content of an output container.

    Parameters
    ----------
    outputs : Mapping[str, Any]
        Output name to histogram (``hist.Hist`` or sparse histogram).

    Returns
    -------
    str
        Grid table with name, type, dimension and sum of weights per output.
    """
    rows = []
    for name, obj in outputs.items():
        if isinstance(obj, hist.Hist):
            total = obj.sum(flow=True)
            total = getattr(total, "value", total)
            rows.append([name, "Hist", obj.ndim, f"{float(total):.6g}"])
        elif hasattr(obj, "n_filled_bins"):
            rows.append(
                [name, f"Sparse ({obj.n_filled_bins} bins)", obj.ndim, f"{obj.sum():.6g}"]
            )
        else:
            rows.append([name, type(obj).__name__, "-", "-"])
    return tabulate(rows, headers=["Output", "Type", "Dim", "Sum"], tablefmt="grid")
