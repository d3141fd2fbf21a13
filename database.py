"""
JSON document store backing the Card Snaps API.

The whole database is one JSON document with a list per collection. It is
loaded lazily on first access and written back whole on every save.
"""
import json
import os
import threading
from typing import Any, Dict, List, Optional

from config import Config
from logging_config import get_logger
from schemas import COLLECTIONS, new_id, now_ms

logger = get_logger("database")


def _seed_community() -> List[Dict[str, Any]]:
    now = now_ms()
    return [
        {
            "id": new_id(), "type": "deck", "title": "Biology: Cell Structure",
            "description": "Comprehensive guide to organelles and functions.", "author": "Dr. Science", "downloads": 124,
            "data": {"id": "s1", "title": "Biology: Cell Structure", "description": "Deep dive into mitochondria.",
                     "cards": [{"id": "c1", "front": "Powerhouse?", "back": "Mitochondria", "color": "bg-green-100"}],
                     "createdAt": now},
            "timestamp": now,
        },
        {
            "id": new_id(), "type": "deck", "title": "Spanish Verbs 101",
            "description": "Conjugations for ser, estar, and ir.", "author": "Señorita A", "downloads": 45,
            "data": {"id": "s2", "title": "Spanish Verbs 101", "description": "Conjugations.",
                     "cards": [{"id": "c2", "front": "Ser", "back": "To be", "color": "bg-orange-100"}],
                     "createdAt": now},
            "timestamp": now - 10000,
        },
        {
            "id": new_id(), "type": "note", "title": "Calculus Cheat Sheet",
            "description": "Derivatives and Integrals quick ref.", "author": "MathWhiz", "downloads": 89,
            "data": {"id": "s3", "title": "Calculus Cheat Sheet", "subject": "Math",
                     "content": "<b>Power Rule:</b> nx^(n-1)", "background": "grid",
                     "createdAt": now, "lastModified": now},
            "timestamp": now - 20000,
        },
        {
            "id": new_id(), "type": "deck", "title": "World Capitals",
            "description": "Test your geography knowledge.", "author": "GeoMaster", "downloads": 12,
            "data": {"id": "s4", "title": "World Capitals", "description": "Hard mode geography.",
                     "cards": [{"id": "c3", "front": "Capital of Australia?", "back": "Canberra", "color": "bg-blue-100"}],
                     "createdAt": now},
            "timestamp": now - 30000,
        },
        {
            "id": new_id(), "type": "note", "title": "React Hooks Guide",
            "description": "useEffect, useState, and custom hooks.", "author": "CodeNinja", "downloads": 156,
            "data": {"id": "s5", "title": "React Hooks", "subject": "CS", "content": "<b>useEffect:</b> Side effects.",
                     "background": "lined", "createdAt": now, "lastModified": now},
            "timestamp": now - 40000,
        },
    ]


class JsonDatabase:
    def __init__(self, path: str):
        self.path = path
        self.lock = threading.RLock()
        self._data: Optional[Dict[str, List[Dict[str, Any]]]] = None

    def configure(self, path: str) -> None:
        """Point the store at another file; it is (re)loaded on next access."""
        with self.lock:
            self.path = str(path)
            self._data = None

    @property
    def data(self) -> Dict[str, List[Dict[str, Any]]]:
        with self.lock:
            if self._data is None:
                self.load()
            return self._data

    def __getitem__(self, collection: str) -> List[Dict[str, Any]]:
        return self.data[collection]

    def __setitem__(self, collection: str, items: List[Dict[str, Any]]) -> None:
        self.data[collection] = items

    def load(self) -> None:
        data: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COLLECTIONS}
        with self.lock:
            if os.path.exists(self.path):
                try:
                    with open(self.path, "r", encoding="utf-8") as fh:
                        data.update(json.load(fh))
                    logger.info("Database loaded from %s", self.path)
                except (OSError, ValueError) as e:
                    logger.error("Error loading database %s: %s", self.path, e)
                    data["community"] = _seed_community()
                self._data = data
            else:
                logger.info("No database found at %s, creating new one", self.path)
                data["community"] = _seed_community()
                self._data = data
                self.save()

    def save(self) -> None:
        with self.lock:
            if self._data is None:
                return
            try:
                directory = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(directory, exist_ok=True)
                tmp_path = f"{self.path}.tmp"
                with open(tmp_path, "w", encoding="utf-8") as fh:
                    json.dump(self._data, fh, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except OSError as e:
                logger.error("Error saving database %s: %s", self.path, e)


db = JsonDatabase(Config.DATABASE_FILE)


def create_document(collection_name: str, data: Any, at_head: bool = False,
                    assign_id: bool = True) -> Dict[str, Any]:
    """Insert a document (dict or pydantic model) and persist the store.

    Documents keyed by something other than ``id`` (stats, keyed by userId)
    pass ``assign_id=False``.
    """
    doc = data.model_dump() if hasattr(data, "model_dump") else dict(data)
    if assign_id:
        doc.setdefault("id", new_id())
    with db.lock:
        if at_head:
            db[collection_name].insert(0, doc)
        else:
            db[collection_name].append(doc)
        db.save()
    return doc


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Documents whose fields equal every value in ``filter_dict``."""
    filter_dict = filter_dict or {}
    with db.lock:
        docs = [d for d in db[collection_name] if all(d.get(k) == v for k, v in filter_dict.items())]
    return docs[:limit] if limit else docs
