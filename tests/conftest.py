import os
import sys

import httpx
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from connectivity import ConnectivityOracle
from database import db
from local_store import LocalStore
from remote_client import RemoteClient
from sync_service import SyncService

API_URL = "http://testserver/api"


@pytest.fixture
def api_db(tmp_path):
    db.configure(tmp_path / "database.json")
    yield db
    db.configure(tmp_path / "unused.json")


@pytest.fixture
def store():
    return LocalStore()


class RecordingHandler:
    """MockTransport handler that records requests and answers from a route table."""

    def __init__(self, routes=None, fail=False):
        self.routes = routes or {}
        self.fail = fail
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.fail:
            raise httpx.ConnectError("server unreachable", request=request)
        path = request.url.path[len("/api"):]
        status, body = self.routes.get((request.method, path), (200, {"success": True}))
        return httpx.Response(status, json=body)

    def calls(self):
        return [(r.method, r.url.path[len("/api"):]) for r in self.requests]


@pytest.fixture
def make_service(store):
    def factory(online=True, token=None, routes=None, fail=False):
        handler = RecordingHandler(routes, fail=fail)
        if token:
            store.set("token", token)
        remote = RemoteClient(API_URL, transport=httpx.MockTransport(handler))
        service = SyncService(store, ConnectivityOracle(online=online), remote)
        return service, handler
    return factory


@pytest.fixture
def live_service(api_db, store):
    """Service wired to the real API app in-process."""
    from main import app
    remote = RemoteClient(API_URL, transport=httpx.ASGITransport(app=app))
    return SyncService(store, ConnectivityOracle(online=True), remote)
