"""Persisted sync settings (last lists sync time, merge state)"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

KEY_LAST_SYNC_LISTS = "last_lists_sync_time"
KEY_MERGED_LISTS = "has_merged_lists"


class SyncSettings:
    """Small JSON backed store for values that survive between sync runs"""

    def __init__(self, settings_file: str = "sync_settings.json"):
        """
        Args:
            settings_file: Path to the JSON settings file
        """
        self.settings_file = Path(settings_file)

    def _load(self) -> Dict[str, Any]:
        if not self.settings_file.exists():
            return {}

        try:
            with open(self.settings_file, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read settings from {self.settings_file}: {e}")
            return {}

        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, "w") as f:
            json.dump(data, f, indent=2)
        self.settings_file.chmod(0o600)

    def _put(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)
        logger.debug(f"Saved {key}={value} to {self.settings_file}")

    def get_last_lists_sync_time(self) -> int:
        """Epoch milliseconds of the last successful incremental lists download, 0 if never"""
        value = self._load().get(KEY_LAST_SYNC_LISTS, 0)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid {KEY_LAST_SYNC_LISTS} value: {value!r}")
            return 0

    def set_last_lists_sync_time(self, timestamp_ms: int) -> None:
        self._put(KEY_LAST_SYNC_LISTS, int(timestamp_ms))

    def has_merged_lists(self) -> bool:
        """Whether local lists were merged with Hexagon by a full download"""
        return bool(self._load().get(KEY_MERGED_LISTS, False))

    def set_has_merged_lists(self, merged: bool) -> None:
        self._put(KEY_MERGED_LISTS, bool(merged))
