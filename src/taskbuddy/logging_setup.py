# src/taskbuddy/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "taskbuddy.log"

# Loggers raised to WARNING everywhere, file included.
QUIET_LIBRARIES = ("httpx", "httpcore", "openai")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the chat prompt readable.

    The console shows taskbuddy's own records, except the reminder poller,
    which logs on every tick and only reaches the console at WARNING.
    Everything else (libraries, captured `warnings`) needs ERROR.
    """

    quiet_prefixes: dict[str, int] = {
        "taskbuddy.tasks.reminder_scheduler": logging.WARNING,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskbuddy."):
            return record.levelno >= logging.ERROR

        for prefix, level in self.quiet_prefixes.items():
            if name.startswith(prefix):
                return record.levelno >= level
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskbuddy",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Send filtered logs to stderr and everything to `<log_dir>/taskbuddy.log`.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
