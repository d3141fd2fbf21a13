"""
Local Store: durable key-value cache used as the offline fallback.

One slot per logical collection, each holding a single JSON value that is
always read and written whole.
"""
import json
import os
import tempfile
from typing import Any, Dict, Optional

from logging_config import get_logger

logger = get_logger("local_store")

# Logical slot -> storage key
KEYS = {
    "user": "cardsnaps_user",
    "token": "cardsnaps_token",
    "decks": "cardsnaps_decks",
    "notes": "cardsnaps_notes",
    "tests": "cardsnaps_tests",
    "stats": "cardsnaps_stats",
    "chats": "cardsnaps_chats",
    "community": "cardsnaps_community_db",
}


class LocalStore:
    """Slot storage backed by a directory of JSON files, or by memory.

    Without a directory, values are kept as JSON text so reads always hand
    back fresh copies and non-serializable values are rejected either way.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = str(directory) if directory else None
        self._memory: Dict[str, str] = {}
        if self.directory:
            os.makedirs(self.directory, exist_ok=True)

    def _key(self, slot: str) -> str:
        try:
            return KEYS[slot]
        except KeyError:
            raise KeyError(f"Unknown local store slot: {slot}") from None

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def _read_raw(self, key: str) -> Optional[str]:
        if not self.directory:
            return self._memory.get(key)
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()

    def get(self, slot: str, default: Any = None) -> Any:
        key = self._key(slot)
        try:
            raw = self._read_raw(key)
            if raw is None:
                return default
            return json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable local slot %s: %s", key, e)
            return default

    def set(self, slot: str, value: Any) -> None:
        key = self._key(slot)
        raw = json.dumps(value, ensure_ascii=False)
        if not self.directory:
            self._memory[key] = raw
            return
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(raw)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def remove(self, slot: str) -> None:
        key = self._key(slot)
        if not self.directory:
            self._memory.pop(key, None)
            return
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
