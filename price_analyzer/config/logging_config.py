# price_analyzer/config/logging_config.py

"""Per-run logging for the price analyzer.

Every launch writes ``logs/run_<YYYYMMDD_HHMMSS>.log``.  The file gets
all ``price_analyzer.*`` records at DEBUG:

* ``gateway`` logs one line per model request with status, latency
  and token usage,
* ``parser`` and ``agents.*`` log why an answer was rejected,
* ``batch`` logs per-item outcomes, cancellation and fatal stops,
* ``oplog`` mirrors the user-facing operation log,
* ``cli``, ``ui`` and ``state`` log session-level events.

The headless CLI also echoes WARNING+ to stderr.  The TUI owns the
terminal, so it runs with the file handler only; its own log pane
shows the operation log instead.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from price_analyzer.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-28s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    logs_dir: Path | None = None,
    console: bool = True,
) -> Path:
    """Attach the per-run handlers to the ``price_analyzer`` logger.

    Args:
        logs_dir: Directory for the run file; defaults to
            ``Settings.LOGS_DIR``.
        console: Also echo warnings and errors to stderr.

    Returns:
        Path of this run's log file.
    """
    target_dir: Path = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    app_logger = logging.getLogger("price_analyzer")
    app_logger.setLevel(logging.DEBUG)

    # Repeated calls (e.g. tests) keep the first run's handlers
    if app_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )
    app_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        app_logger.addHandler(console_handler)

    app_logger.info(
        "Run log %s (console echo %s)", log_file, "on" if console else "off"
    )
    return log_file
