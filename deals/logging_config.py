"""Logging for the deals catalog.

Console output for people, plus a daily JSONL file so upload outcomes and
deal clicks can be replayed later. Structured events go through
``log_deal_event``.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "setup_logging",
    "get_logger",
    "log_deal_event",
    "LOG_DIR",
]

LOG_DIR = Path(__file__).parent.parent / "logs"

_LEVEL_COLORS = {
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class EventFileHandler(logging.Handler):
    """Appends one JSON object per record to ``deals_<YYYYMMDD>.jsonl``."""

    def __init__(self, log_dir: Path):
        super().__init__()
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir = log_dir

    def emit(self, record: logging.LogRecord) -> None:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event_type = getattr(record, "event_type", None)
        if event_type:
            entry["event_type"] = event_type
            entry.update(getattr(record, "event_data", {}))

        path = self.log_dir / f"deals_{datetime.now():%Y%m%d}.jsonl"
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except OSError:
            self.handleError(record)


class _ConsoleFormatter(logging.Formatter):
    """Highlights warnings and errors when writing to a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = _LEVEL_COLORS.get(record.levelname)
        if color and sys.stdout.isatty():
            return f"{color}{message}{_RESET}"
        return message


def setup_logging(level: int = logging.INFO, log_dir: Optional[Path] = None) -> logging.Logger:
    """Attach console and JSONL handlers to the ``deals`` logger.

    Safe to call more than once; earlier handlers are replaced.
    """
    logger = logging.getLogger("deals")
    logger.setLevel(level)
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(_ConsoleFormatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"))
    logger.addHandler(console)

    events = EventFileHandler(log_dir or LOG_DIR)
    events.setLevel(logging.DEBUG)
    logger.addHandler(events)

    return logger


def get_logger(name: str = "deals") -> logging.Logger:
    """Logger under the ``deals`` hierarchy (``get_logger("blog")`` -> ``deals.blog``)."""
    return logging.getLogger(name if name == "deals" else f"deals.{name}")


def log_deal_event(event_type: str, data: Dict[str, Any]) -> None:
    """Log a structured event such as ``csv_import``, ``row_outcome`` or ``deal_click``.

    ``data["message"]`` becomes the log message; the remaining keys are
    written alongside it in the JSONL file.
    """
    fields = {k: v for k, v in data.items() if k != "message"}
    get_logger("events").info(
        data.get("message", event_type),
        extra={"event_type": event_type, "event_data": fields},
    )
