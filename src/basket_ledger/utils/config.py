#!/usr/bin/env python3
"""
JSON configuration loading.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "controller": {
        "fee_recipient": "fee-recipient",
        "module_fees": {},
    },
    "logging": {
        "level": "INFO",
        "log_file": None,
    },
    "events": {
        "enabled": False,
        "path": "output/events/events.jsonl",
    },
}


class ConfigLoader:
    """Load configuration from a JSON file, falling back to defaults per section."""

    DEFAULT_PATH = "config.json"

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or self.DEFAULT_PATH)
        self._config = self._load()

    def _load(self) -> Dict[str, Any]:
        config = copy.deepcopy(DEFAULT_CONFIG)

        if not self.config_path.exists():
            logging.warning(f"Config file not found: {self.config_path}, using defaults")
            return config

        try:
            with open(self.config_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logging.warning(f"Failed to parse {self.config_path}: {e}, using defaults")
            return config

        for key, value in data.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key].update(value)
            else:
                config[key] = value
        return config

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    @property
    def controller(self) -> Dict[str, Any]:
        return self._config["controller"]

    @property
    def logging(self) -> Dict[str, Any]:
        return self._config["logging"]

    @property
    def events(self) -> Dict[str, Any]:
        return self._config["events"]
