#!/usr/bin/env python3
"""
Event log output.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from basket_ledger.utils.logging import LoggingMixin


class EventLog(LoggingMixin):
    """Append emitted events to a JSONL file; subscribe it to any module."""

    DEFAULT_PATH = "output/events/events.jsonl"

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or self.DEFAULT_PATH)

    @classmethod
    def from_config(cls, events_config: Dict) -> Optional["EventLog"]:
        """Create EventLog from the ``events`` config section, or None if disabled."""
        if not events_config.get("enabled"):
            return None
        return cls(events_config.get("path"))

    def __call__(self, event) -> None:
        self.write(event)

    def write(self, event) -> None:
        record = event.to_dict()
        record["logged_at"] = datetime.now().isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(json.dumps(record) + "\n")
        self.log_debug(f"{record['event']} written to {self.path}")

    def read(self) -> List[Dict]:
        """Read back all logged events."""
        if not self.path.exists():
            return []
        with open(self.path, "r") as f:
            return [json.loads(line) for line in f if line.strip()]
