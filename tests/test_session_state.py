import asyncio

import pytest

from session_state import AuthError, OfflineError


def test_login_offline_rejects_without_network(make_service):
    service, handler = make_service(online=False)
    with pytest.raises(OfflineError, match="Offline"):
        asyncio.run(service.session.login("ada@example.com", "secret"))
    with pytest.raises(OfflineError):
        asyncio.run(service.session.register("ada@example.com", "secret", "Ada"))
    assert handler.requests == []


def test_login_persists_token_and_profile(make_service, store):
    user = {"id": "u1", "email": "ada@example.com", "name": "Ada"}
    service, _ = make_service(routes={("POST", "/auth/login"): (200, {"token": "tok", "user": user})})
    assert asyncio.run(service.session.login("ada@example.com", "secret")) == user
    assert service.session.is_authenticated
    assert store.get("token") == "tok"
    assert store.get("user") == user


def test_bad_credentials_surface_server_message(make_service, store):
    service, _ = make_service(routes={("POST", "/auth/login"): (403, {"detail": "Invalid password"})})
    with pytest.raises(AuthError, match="Invalid password"):
        asyncio.run(service.session.login("ada@example.com", "wrong"))
    assert not service.session.is_authenticated
    assert store.get("token") is None


def test_unreachable_server_rejects_login(make_service):
    service, _ = make_service(fail=True)
    with pytest.raises(AuthError):
        asyncio.run(service.session.login("ada@example.com", "secret"))


def test_token_loaded_from_store(make_service):
    service, _ = make_service(token="saved")
    assert service.session.token == "saved"
    assert service.session.can_sync
    service.connectivity.set_online(False)
    assert not service.session.can_sync


def test_logout_keeps_cached_collections(make_service, store):
    service, _ = make_service(token="tok")
    store.set("user", {"id": "u1"})
    store.set("decks", [{"id": "d1"}])
    service.session.logout()
    assert service.session.token is None
    assert store.get("token") is None
    assert store.get("user") is None
    assert store.get("decks") == [{"id": "d1"}]


def test_preferences_apply_locally_even_if_push_fails(make_service, store):
    service, handler = make_service(token="tok", fail=True)
    store.set("user", {"id": "u1", "name": "Ada"})
    updated = asyncio.run(service.session.save_preferences("light", "ocean", False))
    assert updated == {"id": "u1", "name": "Ada", "themeMode": "light", "colorScheme": "ocean", "enableSeasonal": False}
    assert store.get("user") == updated
    assert handler.calls() == [("PUT", "/user/preferences")]


def test_get_me_falls_back_to_cached_profile(make_service, store):
    service, _ = make_service(token="tok", fail=True)
    store.set("user", {"id": "u1"})
    assert asyncio.run(service.session.get_me()) == {"id": "u1"}


def test_save_profile_merges(make_service, store):
    service, _ = make_service()
    store.set("user", {"id": "u1", "name": "Ada"})
    assert service.session.save_profile({"gradeLevel": "11th Grade"}) == {
        "id": "u1", "name": "Ada", "gradeLevel": "11th Grade",
    }
