# price_analyzer/services/operation_log.py

"""In-memory audit trail of user-visible operations."""

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path

from price_analyzer.config.settings import Settings
from price_analyzer.models.search_result import (
    NotFound,
    SearchResult,
    Success,
    describe_result,
)

logger = logging.getLogger("price_analyzer.oplog")

_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Categories shown under the "ai" and "api" filters
_AI_CATEGORIES = frozenset({"COMMAND", "SEARCH", "API", "PROMPT"})
_API_CATEGORIES = frozenset({"API"})


@dataclass(frozen=True)
class LogEntry:
    """One line of the operation log."""

    category: str
    message: str
    level: str = "info"
    timestamp: str = field(
        default_factory=lambda: datetime.now().isoformat(
            timespec="milliseconds"
        )
    )


@dataclass(frozen=True)
class ResultRecord:
    """A SearchResult together with what it was for."""

    product_id: str
    product_name: str
    kind: str
    result: SearchResult
    timestamp: datetime = field(default_factory=datetime.now)


class OperationLog:
    """Newest-first log capped at ``Settings.LOG_CAPACITY`` entries.

    Every entry is mirrored to the ``price_analyzer.oplog`` logger.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity or Settings.LOG_CAPACITY
        self._entries: deque[LogEntry] = deque(maxlen=self.capacity)
        self.history: deque[ResultRecord] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[LogEntry]:
        """Entries, newest first."""
        return list(reversed(self._entries))

    def record(
        self, category: str, message: str, level: str = "info",
    ) -> LogEntry:
        entry = LogEntry(category=category, message=message, level=level)
        self._entries.append(entry)
        logger.log(
            _LEVELS.get(level, logging.INFO),
            "[%s] %s",
            category,
            message,
        )
        return entry

    def record_result(
        self,
        product_id: str,
        product_name: str,
        kind: str,
        result: SearchResult,
    ) -> str:
        """Log one agent outcome and return its notification text."""
        self.history.append(
            ResultRecord(
                product_id=product_id,
                product_name=product_name,
                kind=kind,
                result=result,
            )
        )
        message = describe_result(product_name, result)
        level = "success" if isinstance(result, Success) else (
            "warning" if isinstance(result, NotFound) else "error"
        )
        self.record("SEARCH", f"[{kind}] {message}", level)
        return message

    def filter(self, view: str = "all") -> list[LogEntry]:
        """Entries for one of the views: all, ai, api, error."""
        entries = self.entries
        if view == "ai":
            return [e for e in entries if e.category in _AI_CATEGORIES]
        if view == "api":
            return [e for e in entries if e.category in _API_CATEGORIES]
        if view == "error":
            return [e for e in entries if e.level == "error"]
        return entries

    def clear(self) -> None:
        self._entries.clear()
        self.history.clear()
        self.record("SYSTEM", "Operation log cleared")

    def export_json(self, path: Path) -> Path:
        """Write the log (newest first) to *path* as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(
                [asdict(e) for e in self.entries],
                f,
                ensure_ascii=False,
                indent=2,
            )
        logger.info("Exported %d log entries to %s", len(self), path)
        return path
