"""
Remote Client: async HTTP wrapper over the Card Snaps REST API.

No method raises for transport or HTTP failures. Every call returns a
``RemoteResult`` and the caller decides whether the failure matters.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from logging_config import get_logger

logger = get_logger("remote_client")


@dataclass
class RemoteResult:
    ok: bool
    status: Optional[int] = None
    data: Any = None
    error: Optional[str] = None


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail:
            # FastAPI validation errors
            first = detail[0]
            return first.get("msg", str(first)) if isinstance(first, dict) else str(first)
    return response.reason_phrase or f"HTTP {response.status_code}"


class RemoteClient:
    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def request(self, method: str, path: str, *, json: Any = None, token: Optional[str] = None,
                      timeout: Optional[float] = None) -> RemoteResult:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._client.request(
                method, path, json=json, headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException:
            logger.warning("%s %s timed out", method, path)
            return RemoteResult(ok=False, error="Request timed out")
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            return RemoteResult(ok=False, error=f"Network error: {e}")
        except httpx.InvalidURL as e:
            logger.warning("%s %r is not a valid URL: %s", method, path, e)
            return RemoteResult(ok=False, error=f"Invalid request: {e}")

        if response.is_success:
            try:
                data = response.json() if response.content else None
            except ValueError:
                data = None
            return RemoteResult(ok=True, status=response.status_code, data=data)
        message = _error_message(response)
        logger.debug("%s %s returned %s: %s", method, path, response.status_code, message)
        return RemoteResult(ok=False, status=response.status_code, error=message)

    # ----------------------- Auth -----------------------
    async def register(self, email: str, password: str, name: str) -> RemoteResult:
        return await self.request("POST", "/auth/register", json={"email": email, "password": password, "name": name})

    async def login(self, email: str, password: str) -> RemoteResult:
        return await self.request("POST", "/auth/login", json={"email": email, "password": password})

    async def get_me(self, token: str) -> RemoteResult:
        return await self.request("GET", "/auth/me", token=token)

    async def update_preferences(self, token: str, preferences: Dict[str, Any]) -> RemoteResult:
        return await self.request("PUT", "/user/preferences", json=preferences, token=token)

    async def health(self) -> RemoteResult:
        return await self.request("GET", "/health")

    # ----------------------- Decks -----------------------
    async def list_decks(self, token: str) -> RemoteResult:
        return await self.request("GET", "/decks", token=token)

    async def create_deck(self, token: str, deck: Dict[str, Any]) -> RemoteResult:
        return await self.request("POST", "/decks", json=deck, token=token)

    async def update_deck(self, token: str, deck: Dict[str, Any]) -> RemoteResult:
        return await self.request("PUT", f"/decks/{_segment(deck['id'])}", json=deck, token=token)

    async def delete_deck(self, token: str, deck_id: str) -> RemoteResult:
        return await self.request("DELETE", f"/decks/{_segment(deck_id)}", token=token)

    # ----------------------- Notes -----------------------
    async def list_notes(self, token: str) -> RemoteResult:
        return await self.request("GET", "/notes", token=token)

    async def save_note(self, token: str, note: Dict[str, Any]) -> RemoteResult:
        return await self.request("POST", "/notes", json=note, token=token)

    async def delete_note(self, token: str, note_id: str) -> RemoteResult:
        return await self.request("DELETE", f"/notes/{_segment(note_id)}", token=token)

    # ----------------------- Tests -----------------------
    async def list_tests(self, token: str) -> RemoteResult:
        return await self.request("GET", "/tests", token=token)

    async def create_test(self, token: str, test: Dict[str, Any]) -> RemoteResult:
        return await self.request("POST", "/tests", json=test, token=token)

    async def delete_test(self, token: str, test_id: str) -> RemoteResult:
        return await self.request("DELETE", f"/tests/{_segment(test_id)}", token=token)

    # ----------------------- Stats & chats -----------------------
    async def get_stats(self, token: str) -> RemoteResult:
        return await self.request("GET", "/stats", token=token)

    async def set_stats(self, token: str, stats: Dict[str, Any]) -> RemoteResult:
        return await self.request("POST", "/stats", json=stats, token=token)

    async def list_chats(self, token: str) -> RemoteResult:
        return await self.request("GET", "/chats", token=token)

    async def save_chat(self, token: str, session: Dict[str, Any]) -> RemoteResult:
        return await self.request("POST", "/chats", json=session, token=token)

    # ----------------------- Community (public) -----------------------
    async def list_community(self, timeout: Optional[float] = None) -> RemoteResult:
        return await self.request("GET", "/community", timeout=timeout)

    async def publish_community(self, item: Dict[str, Any]) -> RemoteResult:
        return await self.request("POST", "/community", json=item)

    async def increment_download(self, item_id: str) -> RemoteResult:
        return await self.request("POST", f"/community/{_segment(item_id)}/download")


def ignore_failure(result: RemoteResult, action: str) -> RemoteResult:
    """Drop a failed best-effort call after logging it.

    Every write that is allowed to fail silently goes through here.
    """
    if not result.ok:
        logger.warning("%s not synced (%s): %s", action, result.status or "no response", result.error)
    return result
