"""
LogStore: append-only event log for the COMPAS Navigator runtime.

Events are written as JSON lines to:

    <log_dir>/events_YYYY-MM-DD.jsonl

One line per event: {"timestamp", "event_type", "payload"}.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List


logger = logging.getLogger(__name__)


class LogStore:
    """Date-based JSONL event log."""

    def __init__(self, log_dir: str = "runtime/data/logs"):
        self.log_dir = Path(log_dir)
        self._write_lock = threading.Lock()

    def _path_for(self, when: datetime) -> Path:
        return self.log_dir / f"events_{when.strftime('%Y-%m-%d')}.jsonl"

    def log_event(self, event_type: str, payload: dict) -> None:
        """Append an event to today's log file."""
        now = datetime.now(timezone.utc)
        record = {
            "timestamp": now.isoformat(),
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, ensure_ascii=False, default=str)

        with self._write_lock:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with self._path_for(now).open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read_events(self, day: datetime) -> List[Dict[str, Any]]:
        """Return all events logged on the given (UTC) day."""
        path = self._path_for(day)
        if not path.is_file():
            return []
        with path.open("r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


class ConsoleLogStore:
    """Log sink that forwards events to the standard logger.

    Used when no runtime data directory should be written (CLI, tests).
    """

    def log_event(self, event_type: str, payload: dict) -> None:
        logger.info("[EVENT] %s: %s", event_type, payload)
