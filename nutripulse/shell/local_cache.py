"""Local Cache - Durable key/value snapshots on disk.

Each key is one JSON file under the data directory. Reads never raise: a
missing or unreadable key yields the caller's default. Writes report success
as a bool so the write path can carry on when the disk refuses.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)

PROFILE_KEY = "user_profile_backup"
FOOD_LOG_KEY = "food_log_backup"
EXERCISE_LOG_KEY = "exercise_log_backup"
MEAL_PLAN_KEY = "meal_plan_backup"
WATER_INTAKE_KEY = "water_intake"
MOOD_LOG_KEY = "mood_log"
FAVORITES_KEY = "favorites"
USER_ID_KEY = "nutri_user_id"

_VALID_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


class LocalCache:
    """Synchronous JSON-file key/value store."""

    def __init__(self, directory: Path) -> None:
        """Initialize the cache.

        Args:
            directory: Directory holding one <key>.json file per key
        """
        self._directory = Path(directory)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create cache directory %s: %s", self._directory, e)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self._directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Read the snapshot stored under key.

        Args:
            key: Cache key
            default: Returned when the key is absent or unreadable

        Returns:
            Decoded JSON value or default
        """
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as e:
            logger.error("Corrupted cache entry %s: %s", key, e)
            return default
        except OSError as e:
            logger.error("Failed to read cache entry %s: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> bool:
        """Write a snapshot under key, replacing the previous one atomically.

        Args:
            key: Cache key
            value: JSON-serializable value

        Returns:
            True if the snapshot reached disk
        """
        path = self._path(key)
        temp_path = path.with_suffix(".json.tmp")
        try:
            with temp_path.open("w", encoding="utf8") as handle:
                json.dump(value, handle)
            temp_path.replace(path)
            logger.debug("Saved cache entry %s", key)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Local save failed for %s: %s", key, e)
            return False

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if nothing is left under it."""
        try:
            self._path(key).unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.error("Failed to delete cache entry %s: %s", key, e)
            return False
