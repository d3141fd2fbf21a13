import asyncio

import httpx

from community_cache import CommunityCache, seed_items
from connectivity import ConnectivityOracle
from remote_client import RemoteClient
from conftest import API_URL


def test_empty_cache_and_unreachable_remote_gives_seeds(make_service, store):
    service, _ = make_service(fail=True)
    items = asyncio.run(service.get_community_items())
    assert [i["id"] for i in items] == ["seed-1", "seed-2", "seed-3"]
    assert store.get("community") == items


def test_offline_first_run_gives_seeds(make_service):
    service, handler = make_service(online=False)
    assert len(asyncio.run(service.get_community_items())) == len(seed_items())
    assert handler.requests == []


def test_remote_read_needs_no_token(make_service, store):
    remote_items = [{"id": "x1", "type": "deck", "downloads": 0}]
    service, handler = make_service(routes={("GET", "/community"): (200, remote_items)})
    assert asyncio.run(service.get_community_items()) == remote_items
    assert store.get("community") == remote_items
    assert "Authorization" not in handler.requests[0].headers


def test_slow_remote_counts_as_failure(store):
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=[])

    async def scenario():
        remote = RemoteClient(API_URL, transport=httpx.MockTransport(slow))
        cache = CommunityCache(store, ConnectivityOracle(online=True), remote, timeout=0.05)
        return await cache.get_items()

    store.set("community", [{"id": "cached"}])
    assert asyncio.run(scenario()) == [{"id": "cached"}]


def test_share_snapshots_item(make_service, store):
    service, handler = make_service()
    note = {"id": "n1", "title": "Cells", "subject": "Biology", "content": "<p>x</p>"}
    result = asyncio.run(service.share_to_community(note, "note", "Ada"))
    assert result["success"] is True
    shared = store.get("community")[0]
    assert shared["id"] == result["id"]
    assert shared["description"] == "Biology"
    assert shared["author"] == "Ada"
    assert shared["downloads"] == 0
    assert shared["data"] == note
    assert handler.calls() == [("POST", "/community")]


def test_share_without_description_or_subject(make_service, store):
    service, _ = make_service(online=False)
    asyncio.run(service.share_to_community({"id": "d1", "title": "Deck"}, "deck", "Ada"))
    assert store.get("community")[0]["description"] == "No description"


def test_duplicate_publish_is_not_duplicated(make_service, store):
    service, _ = make_service(online=False)
    item = {"id": "x1", "type": "deck", "title": "Mine", "data": {}, "downloads": 0}

    async def scenario():
        first = await service.community.publish(item)
        second = await service.community.publish(item)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == {"success": True, "id": "x1"}
    assert second == {"success": True, "message": "Already shared"}
    assert [i["id"] for i in store.get("community")] == ["x1"]


def test_increment_download_is_optimistic(make_service, store):
    service, handler = make_service(fail=True)
    store.set("community", [{"id": "x1", "downloads": 4}])
    asyncio.run(service.increment_download("x1"))
    assert store.get("community") == [{"id": "x1", "downloads": 5}]
    assert handler.calls() == [("POST", "/community/x1/download")]


def test_increment_unknown_id_is_noop(make_service, store):
    service, _ = make_service(online=False)
    store.set("community", [{"id": "x1", "downloads": 4}])
    asyncio.run(service.increment_download("missing"))
    assert store.get("community") == [{"id": "x1", "downloads": 4}]


def test_junk_community_entries_are_dropped(make_service, store):
    service, _ = make_service(routes={("GET", "/community"): (200, [None, {"id": "x1", "downloads": 0}])})

    async def scenario():
        items = await service.get_community_items()
        await service.increment_download("x1")
        return items

    assert asyncio.run(scenario()) == [{"id": "x1", "downloads": 0}]
    assert store.get("community") == [{"id": "x1", "downloads": 1}]


def test_corrupt_mirror_still_publishes(make_service, store):
    service, _ = make_service(online=False)
    store.set("community", ["junk", {"id": "x1"}])
    result = asyncio.run(service.community.publish({"id": "x2", "type": "deck"}))
    assert result == {"success": True, "id": "x2"}
    assert [i["id"] for i in store.get("community")] == ["x2", "x1"]


def test_non_numeric_download_counter_restarts(make_service, store):
    service, _ = make_service(online=False)
    store.set("community", [{"id": "x1", "downloads": "n/a"}])
    asyncio.run(service.increment_download("x1"))
    assert store.get("community") == [{"id": "x1", "downloads": 1}]
