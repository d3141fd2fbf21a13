import asyncio

import httpx

from remote_client import RemoteClient, ignore_failure
from conftest import API_URL, RecordingHandler


def _client(handler):
    return RemoteClient(API_URL, transport=httpx.MockTransport(handler))


def test_bearer_token_sent_on_protected_calls():
    handler = RecordingHandler({("GET", "/decks"): (200, [{"id": "d1"}])})

    async def scenario():
        async with _client(handler) as remote:
            return await remote.list_decks("tok")

    result = asyncio.run(scenario())
    assert result.ok and result.data == [{"id": "d1"}]
    assert handler.requests[0].headers["Authorization"] == "Bearer tok"
    assert str(handler.requests[0].url) == "http://testserver/api/decks"


def test_public_calls_carry_no_token():
    handler = RecordingHandler()

    async def scenario():
        async with _client(handler) as remote:
            await remote.list_community()
            await remote.increment_download("abc")
            await remote.login("a@b.co", "pw")

    asyncio.run(scenario())
    assert all("Authorization" not in r.headers for r in handler.requests)
    assert handler.calls() == [("GET", "/community"), ("POST", "/community/abc/download"), ("POST", "/auth/login")]


def test_http_error_becomes_failed_result():
    handler = RecordingHandler({("POST", "/auth/login"): (403, {"detail": "Invalid password"})})

    async def scenario():
        async with _client(handler) as remote:
            return await remote.login("a@b.co", "pw")

    result = asyncio.run(scenario())
    assert not result.ok
    assert result.status == 403
    assert result.error == "Invalid password"


def test_transport_error_is_swallowed():
    handler = RecordingHandler(fail=True)

    async def scenario():
        async with _client(handler) as remote:
            return await remote.delete_note("tok", "n1")

    result = asyncio.run(scenario())
    assert not result.ok
    assert result.status is None
    assert "Network error" in result.error


def test_timeout_is_a_failure():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async def scenario():
        async with _client(handler) as remote:
            return await remote.list_community(timeout=0.1)

    result = asyncio.run(scenario())
    assert not result.ok
    assert result.error == "Request timed out"


def test_ignore_failure_logs(caplog):
    handler = RecordingHandler(fail=True)

    async def scenario():
        async with _client(handler) as remote:
            return ignore_failure(await remote.set_stats("tok", {"xp": 1}), "stats")

    with caplog.at_level("WARNING", logger="cardsnaps"):
        result = asyncio.run(scenario())
    assert not result.ok
    assert "stats not synced" in caplog.text


def test_ids_are_quoted_into_the_path():
    handler = RecordingHandler()

    async def scenario():
        async with _client(handler) as remote:
            return await remote.delete_deck("tok", "a\nb/c")

    assert asyncio.run(scenario()).ok
    assert handler.requests[0].url.raw_path == b"/api/decks/a%0Ab%2Fc"


def test_health_against_api(api_db):
    from main import app

    async def scenario():
        async with RemoteClient(API_URL, transport=httpx.ASGITransport(app=app)) as remote:
            return await remote.health()

    result = asyncio.run(scenario())
    assert result.ok
    assert result.data["status"] == "online"
