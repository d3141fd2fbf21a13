"""
Community Cache: the public deck/note feed with a local mirror.

Reads are bounded by a short timeout and need no credential. When neither the
server nor the mirror has anything, a fixed seed set is written to the mirror
so the feed is never empty on first load.
"""
import asyncio
from typing import Any, Dict, List

from connectivity import ConnectivityOracle
from local_store import LocalStore
from logging_config import get_logger
from remote_client import RemoteClient, RemoteResult, ignore_failure
from schemas import CommunityItem, new_id, now_ms

logger = get_logger("community")

SLOT = "community"


def seed_items() -> List[Dict[str, Any]]:
    now = now_ms()
    return [
        {
            "id": "seed-1", "type": "deck", "title": "Biology: Cell Structure",
            "description": "Deep dive into mitochondria and ribbons.", "author": "Dr. Science",
            "downloads": 124, "timestamp": now,
            "data": {"id": "s1", "title": "Biology: Cell Structure", "description": "Deep dive into mitochondria.",
                     "cards": [{"id": "c1", "front": "Powerhouse?", "back": "Mitochondria", "color": "bg-green-100"}],
                     "createdAt": now},
        },
        {
            "id": "seed-2", "type": "deck", "title": "Spanish Verbs 101",
            "description": "Essential conjugation for beginners.", "author": "Señorita A",
            "downloads": 45, "timestamp": now - 100000,
            "data": {"id": "s2", "title": "Spanish Verbs 101", "description": "Conjugations.",
                     "cards": [{"id": "c2", "front": "Ser", "back": "To be", "color": "bg-orange-100"}],
                     "createdAt": now},
        },
        {
            "id": "seed-3", "type": "note", "title": "Calculus Cheat Sheet",
            "description": "Derivatives and Integrals quick ref.", "author": "MathWhiz",
            "downloads": 89, "timestamp": now - 200000,
            "data": {"id": "s3", "title": "Calculus Cheat Sheet", "subject": "Math",
                     "content": "<b>Power Rule:</b> nx^(n-1)", "background": "grid",
                     "createdAt": now, "lastModified": now},
        },
    ]


def _download_count(item: Dict[str, Any]) -> int:
    try:
        return max(0, int(item.get("downloads") or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


class CommunityCache:
    def __init__(self, store: LocalStore, connectivity: ConnectivityOracle, remote: RemoteClient,
                 timeout: float = 2.5):
        self.store = store
        self.connectivity = connectivity
        self.remote = remote
        self.timeout = timeout
        self._lock = asyncio.Lock()

    def _mirror(self) -> List[Dict[str, Any]]:
        items = self.store.get(SLOT, [])
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    async def get_items(self) -> List[Dict[str, Any]]:
        if self.connectivity.is_online():
            try:
                result = await asyncio.wait_for(self.remote.list_community(timeout=self.timeout), self.timeout)
            except asyncio.TimeoutError:
                result = RemoteResult(ok=False, error="Community fetch timed out")
            if result.ok and isinstance(result.data, list):
                items = [item for item in result.data if isinstance(item, dict)]
                async with self._lock:
                    self.store.set(SLOT, items)
                return items
            logger.info("Community fetch failed, using cache: %s", result.error)
        async with self._lock:
            items = self._mirror()
            if not items:
                items = seed_items()
                self.store.set(SLOT, items)
        return items

    async def share(self, item: Any, kind: str, author_name: str) -> Dict[str, Any]:
        """Publish a snapshot of a deck or note under a new community id."""
        data = item.model_dump() if hasattr(item, "model_dump") else dict(item)
        shared = CommunityItem(
            id=new_id(),
            type=kind,
            title=data.get("title"),
            description=data.get("description") or data.get("subject") or "No description",
            author=author_name,
            data=data,
        )
        return await self.publish(shared.model_dump())

    async def publish(self, item: Any) -> Dict[str, Any]:
        item = item.model_dump() if hasattr(item, "model_dump") else dict(item)
        item.setdefault("id", new_id())
        async with self._lock:
            items = self._mirror()
            if any(existing.get("id") == item["id"] for existing in items):
                return {"success": True, "message": "Already shared"}
            items.insert(0, item)
            self.store.set(SLOT, items)
        if self.connectivity.is_online():
            ignore_failure(await self.remote.publish_community(item), f"community publish {item['id']}")
        return {"success": True, "id": item["id"]}

    async def increment_download(self, item_id: str) -> None:
        async with self._lock:
            items = self._mirror()
            for existing in items:
                if existing.get("id") == item_id:
                    existing["downloads"] = _download_count(existing) + 1
                    self.store.set(SLOT, items)
                    break
        if self.connectivity.is_online():
            ignore_failure(await self.remote.increment_download(item_id), f"download count {item_id}")
