"""Session/Auth State: the current bearer token and cached profile."""
from typing import Any, Dict, Optional

from connectivity import ConnectivityOracle
from local_store import LocalStore
from logging_config import get_logger
from remote_client import RemoteClient, RemoteResult, ignore_failure

logger = get_logger("session")


class AuthError(Exception):
    """Authentication was rejected; ``str(err)`` is meant for the user."""


class OfflineError(AuthError):
    pass


class SessionState:
    def __init__(self, store: LocalStore, connectivity: ConnectivityOracle, remote: RemoteClient):
        self.store = store
        self.connectivity = connectivity
        self.remote = remote
        self.token: Optional[str] = store.get("token")
        if self.token is not None and not isinstance(self.token, str):
            self.token = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def can_sync(self) -> bool:
        """True when authenticated remote calls should be attempted."""
        return self.is_authenticated and self.connectivity.is_online()

    @property
    def user_id(self) -> Optional[str]:
        profile = self.store.get("user")
        return profile.get("id") if isinstance(profile, dict) else None

    def _accept(self, result: RemoteResult, failure: str) -> Dict[str, Any]:
        if not result.ok:
            raise AuthError(result.error or failure)
        data = result.data if isinstance(result.data, dict) else {}
        token, user = data.get("token"), data.get("user")
        if not token:
            raise AuthError(failure)
        self.token = token
        self.store.set("token", token)
        self.store.set("user", user)
        logger.info("Signed in as %s", (user or {}).get("email"))
        return user

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        if not self.connectivity.is_online():
            raise OfflineError("Offline. Cannot login.")
        return self._accept(await self.remote.login(email, password), "Login failed")

    async def register(self, email: str, password: str, name: str) -> Dict[str, Any]:
        if not self.connectivity.is_online():
            raise OfflineError("Offline. Cannot register.")
        return self._accept(await self.remote.register(email, password, name), "Registration failed")

    async def get_me(self) -> Optional[Dict[str, Any]]:
        if self.can_sync:
            result = await self.remote.get_me(self.token)
            if result.ok and isinstance(result.data, dict):
                self.store.set("user", result.data)
                return result.data
        return self.store.get("user")

    def save_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        current = self.store.get("user")
        if not isinstance(current, dict):
            current = {}
        updated = {**current, **profile}
        self.store.set("user", updated)
        return updated

    async def save_preferences(self, theme_mode: str, color_scheme: str, enable_seasonal: bool) -> Dict[str, Any]:
        preferences = {"themeMode": theme_mode, "colorScheme": color_scheme, "enableSeasonal": enable_seasonal}
        updated = self.save_profile(preferences)
        if self.can_sync:
            ignore_failure(await self.remote.update_preferences(self.token, preferences), "preferences update")
        return updated

    def logout(self) -> None:
        # cached decks/notes/etc. stay in the local store
        self.token = None
        self.store.remove("token")
        self.store.remove("user")
