"""
Local Key-Value Store

File-based persistence for tracker state using one JSON file per key.
Each key is written independently (last writer wins); there is no
transaction spanning several keys.
"""

import json
import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .exceptions import StorageError


class KeyValueStore:
    """
    Simple file-based key-value store.

    Uses file locking on Unix systems for safe concurrent access.
    On Windows, uses a simple write-and-rename approach.
    Frequently-read keys are cached for a short time to avoid file I/O on
    every access.
    """

    CACHE_TTL = 0.1  # 100ms cache

    def __init__(self, state_dir: Path | str):
        self.state_dir = Path(state_dir)
        self._cache: dict[str, tuple[dict, float]] = {}
        self._lock = threading.Lock()

    def _ensure_dir(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        return self.state_dir / f"{key}.json"

    def write(self, key: str, data: dict) -> None:
        """
        Write state with file locking (Unix) or atomic rename (Windows).

        Args:
            key: State key (becomes filename without .json)
            data: Dictionary to serialize as JSON

        Raises:
            StorageError: If the file cannot be written
        """
        data_with_meta = {
            **data,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            self._ensure_dir()
            path = self._get_path(key)

            if os.name == "nt":
                temp_path = path.with_suffix(".tmp")
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(data_with_meta, f, indent=2)
                temp_path.replace(path)
            else:
                import fcntl
                with open(path, "w", encoding="utf-8") as f:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                    try:
                        json.dump(data_with_meta, f, indent=2)
                        f.flush()
                        os.fsync(f.fileno())
                    finally:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(str(e), key=key) from e

        with self._lock:
            self._cache[key] = (data_with_meta, time.time())

    def read(self, key: str, use_cache: bool = True) -> dict:
        """
        Read state from file with optional caching.

        Returns:
            Dictionary from JSON file, or empty dict if not found or corrupt
        """
        if use_cache:
            with self._lock:
                if key in self._cache:
                    data, timestamp = self._cache[key]
                    if time.time() - timestamp < self.CACHE_TTL:
                        return data

        path = self._get_path(key)
        if not path.exists():
            return {}

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            with self._lock:
                self._cache[key] = (data, time.time())

            return data
        except (json.JSONDecodeError, IOError):
            return {}

    def read_fresh(self, key: str) -> dict:
        """Read state bypassing cache"""
        return self.read(key, use_cache=False)

    def update(self, key: str, updates: dict) -> dict:
        """Read, merge updates, and write state"""
        current = self.read(key, use_cache=False)
        current.update(updates)
        self.write(key, current)
        return current

    def delete(self, key: str) -> bool:
        """
        Delete state file.

        Returns:
            True if deleted, False if not found
        """
        path = self._get_path(key)

        with self._lock:
            self._cache.pop(key, None)

        if path.exists():
            path.unlink()
            return True
        return False

    def list_keys(self) -> list[str]:
        """List all state keys"""
        self._ensure_dir()
        return [p.stem for p in self.state_dir.glob("*.json")]

    def get_age(self, key: str) -> float | None:
        """Age of the state file in seconds, or None if not found"""
        path = self._get_path(key)
        if not path.exists():
            return None
        return time.time() - path.stat().st_mtime

    # Typed values are stored as {"value": ...}

    def get_value(self, key: str, default: Any = None) -> Any:
        return self.read(key).get("value", default)

    def set_value(self, key: str, value: Any) -> None:
        self.write(key, {"value": value})

    def get_string(self, key: str, default: str | None = None) -> str | None:
        value = self.get_value(key, default)
        return value if isinstance(value, str) else default

    def set_string(self, key: str, value: str) -> None:
        self.set_value(key, value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get_value(key, default)
        return value if isinstance(value, bool) else default

    def set_bool(self, key: str, value: bool) -> None:
        self.set_value(key, bool(value))
