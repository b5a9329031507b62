"""Tests for the HTTP admin surface."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import make_message
from flashback.controllers.sync_controller import SyncController
from flashback.registry import ChannelRegistry
from flashback.routers import archive_router
from flashback.store import MessageStore


@pytest.fixture
def client(store, slack, parser, users):
    app = FastAPI()
    app.include_router(archive_router.router)
    app.state.store = store
    app.state.registry = ChannelRegistry(slack)
    app.state.syncer = SyncController(store, slack, parser, users)
    return TestClient(app)


class TestSearchEndpoint:
    def test_returns_matches(self, client, store):
        store.append([make_message(1, body="budget review"), make_message(2, channel="C2", body="budget")])
        resp = client.get("/search", params={"channel": "C1", "query": "budget"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["channel"] == "C1"
        assert [r["body"] for r in data["results"]] == ["budget review"]

    def test_bad_query_is_400(self, client):
        resp = client.get("/search", params={"channel": "C1", "query": '"unterminated'})
        assert resp.status_code == 400

    def test_store_not_ready_is_503(self, client, tmp_path):
        client.app.state.store = MessageStore(f"sqlite:///{tmp_path / 'never-opened.db'}")
        resp = client.get("/search", params={"channel": "C1", "query": "budget"})
        assert resp.status_code == 503


class TestSyncEndpoint:
    def test_sync_reports_new_messages(self, client, slack, store):
        slack.post("C1", 1)
        slack.post("G1", 2)
        resp = client.post("/sync")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "success"
        assert data["new_messages_found"] == 2
        assert sorted(data["channels_synced"]) == ["C1", "C2", "G1"]
        assert store.count() == 2
