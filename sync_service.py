"""
Sync Orchestrator: hybrid online/offline access to the user's collections.

Reads try the server first when signed in and online, mirror the response into
the local store and fall back to the mirror on any failure. Writes always land
in the local mirror first and are then pushed to the server best-effort. No
operation raises because of the network.
"""
import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from community_cache import CommunityCache
from config import Config
from connectivity import ConnectivityOracle
from local_store import LocalStore
from logging_config import get_logger
from remote_client import RemoteClient, RemoteResult, ignore_failure
from session_state import SessionState
from schemas import new_id

logger = get_logger("sync")


def _as_record(item: Any) -> Dict[str, Any]:
    if hasattr(item, "model_dump"):
        return item.model_dump()
    return dict(item)


def _records(items: Any) -> List[Dict[str, Any]]:
    """The dict entries of a collection; anything else is dropped."""
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class SyncService:
    """One instance per user session; every dependency is an explicit field."""

    def __init__(self, store: LocalStore, connectivity: ConnectivityOracle, remote: RemoteClient,
                 session: Optional[SessionState] = None, community: Optional[CommunityCache] = None,
                 community_timeout: float = 2.5):
        self.store = store
        self.connectivity = connectivity
        self.remote = remote
        self.session = session or SessionState(store, connectivity, remote)
        self.community = community or CommunityCache(store, connectivity, remote, timeout=community_timeout)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def aclose(self) -> None:
        await self.remote.aclose()

    # ----------------------- Building blocks -----------------------
    def _mirror(self, slot: str) -> List[Dict[str, Any]]:
        return _records(self.store.get(slot, []))

    async def _read(self, slot: str, fetch: Callable[[str], Awaitable[RemoteResult]]) -> List[Dict[str, Any]]:
        if self.session.can_sync:
            result = await fetch(self.session.token)
            if result.ok and isinstance(result.data, list):
                items = _records(result.data)
                async with self._locks[slot]:
                    self.store.set(slot, items)
                return items
            logger.info("Using cached %s: %s", slot, result.error or "unexpected payload")
        return self._mirror(slot)

    async def _upsert_local(self, slot: str, record: Dict[str, Any]) -> bool:
        """Replace the item with the same id in place, or insert it at the head.

        Returns True when an existing item was replaced.
        """
        async with self._locks[slot]:
            items = self._mirror(slot)
            for index, existing in enumerate(items):
                if existing.get("id") == record["id"]:
                    items[index] = record
                    self.store.set(slot, items)
                    return True
            items.insert(0, record)
            self.store.set(slot, items)
            return False

    async def _delete_local(self, slot: str, item_id: str) -> None:
        owner = self.session.user_id
        async with self._locks[slot]:
            items = self._mirror(slot)
            kept = [
                item for item in items
                if item.get("id") != item_id or (owner and item.get("userId") not in (None, owner))
            ]
            if len(kept) != len(items):
                self.store.set(slot, kept)

    async def _push(self, action: str, call: Callable[[str], Awaitable[RemoteResult]]) -> None:
        if not self.session.can_sync:
            return
        ignore_failure(await call(self.session.token), action)

    def _prepare(self, item: Any) -> Dict[str, Any]:
        record = _as_record(item)
        if not record.get("id"):
            record["id"] = new_id()
        return record

    # ----------------------- Decks -----------------------
    async def get_decks(self) -> List[Dict[str, Any]]:
        return await self._read("decks", self.remote.list_decks)

    async def save_deck(self, deck: Any) -> Dict[str, Any]:
        """Create or update; the server call follows whether the id was known locally."""
        record = self._prepare(deck)
        existed = await self._upsert_local("decks", record)
        if existed:
            await self._push(f"deck update {record['id']}", lambda token: self.remote.update_deck(token, record))
        else:
            await self._push(f"deck create {record['id']}", lambda token: self.remote.create_deck(token, record))
        return record

    async def create_deck(self, deck: Any) -> Dict[str, Any]:
        return await self.save_deck(deck)

    async def update_deck(self, deck: Any) -> Dict[str, Any]:
        return await self.save_deck(deck)

    async def delete_deck(self, deck_id: str) -> None:
        await self._delete_local("decks", deck_id)
        await self._push(f"deck delete {deck_id}", lambda token: self.remote.delete_deck(token, deck_id))

    # ----------------------- Notes -----------------------
    async def get_notes(self) -> List[Dict[str, Any]]:
        return await self._read("notes", self.remote.list_notes)

    async def save_note(self, note: Any) -> Dict[str, Any]:
        record = self._prepare(note)
        await self._upsert_local("notes", record)
        await self._push(f"note save {record['id']}", lambda token: self.remote.save_note(token, record))
        return record

    async def delete_note(self, note_id: str) -> None:
        await self._delete_local("notes", note_id)
        await self._push(f"note delete {note_id}", lambda token: self.remote.delete_note(token, note_id))

    # ----------------------- Tests -----------------------
    async def get_tests(self) -> List[Dict[str, Any]]:
        return await self._read("tests", self.remote.list_tests)

    async def add_test(self, test: Any) -> Dict[str, Any]:
        record = self._prepare(test)
        await self._upsert_local("tests", record)
        await self._push(f"test create {record['id']}", lambda token: self.remote.create_test(token, record))
        return record

    async def delete_test(self, test_id: str) -> None:
        await self._delete_local("tests", test_id)
        await self._push(f"test delete {test_id}", lambda token: self.remote.delete_test(token, test_id))

    # ----------------------- Stats -----------------------
    async def get_stats(self) -> Optional[Dict[str, Any]]:
        if self.session.can_sync:
            result = await self.remote.get_stats(self.session.token)
            if result.ok:
                if isinstance(result.data, dict):
                    async with self._locks["stats"]:
                        self.store.set("stats", result.data)
                return result.data
        stats = self.store.get("stats")
        return stats if isinstance(stats, dict) else None

    async def sync_stats(self, stats: Any) -> Dict[str, Any]:
        """Shallow-merge ``stats`` into the cached record and push the partial update."""
        update = _as_record(stats)
        async with self._locks["stats"]:
            current = self.store.get("stats")
            merged = {**(current if isinstance(current, dict) else {}), **update}
            self.store.set("stats", merged)
        await self._push("stats", lambda token: self.remote.set_stats(token, update))
        return merged

    # ----------------------- Chats -----------------------
    async def get_chat_sessions(self) -> List[Dict[str, Any]]:
        return await self._read("chats", self.remote.list_chats)

    async def save_chat_session(self, session: Any) -> Dict[str, Any]:
        record = self._prepare(session)
        await self._upsert_local("chats", record)
        await self._push(f"chat save {record['id']}", lambda token: self.remote.save_chat(token, record))
        return record

    # ----------------------- Community -----------------------
    async def get_community_items(self) -> List[Dict[str, Any]]:
        return await self.community.get_items()

    async def share_to_community(self, item: Any, kind: str, author_name: str) -> Dict[str, Any]:
        return await self.community.share(item, kind, author_name)

    async def increment_download(self, community_id: str) -> None:
        await self.community.increment_download(community_id)


def create_service(config: type = Config, transport: Optional[httpx.AsyncBaseTransport] = None,
                   store: Optional[LocalStore] = None) -> SyncService:
    """Build the per-session service from configuration."""
    store = store or LocalStore(config.LOCAL_STORE_DIR)
    connectivity = ConnectivityOracle(online=not config.START_OFFLINE)
    remote = RemoteClient(config.API_URL, timeout=config.REQUEST_TIMEOUT, transport=transport)
    return SyncService(store, connectivity, remote, community_timeout=config.COMMUNITY_TIMEOUT)
