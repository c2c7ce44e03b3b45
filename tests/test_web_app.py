# tests/test_web_app.py

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

import citenet.web.app as web_app_mod
from citenet.config.settings import settings
from citenet.web.app import app


@pytest.fixture
def client(data_dir, make_manager):
    app.state.manager = make_manager()
    yield TestClient(app)
    app.state.manager = None


@pytest.fixture
def built(client):
    resp = client.post("/sessions", json={"seed": "SEED"})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_create_session_returns_detail(built):
    summary = built["summary"]

    assert summary["label"] == "Smith 2010"
    assert summary["active"] is True
    assert summary["loading"] is False
    assert summary["incoming_count"] == 2
    assert built["source_id"] == "SEED"
    assert [a["id"] for a in built["incoming_suggestions"]] == ["R1", "R2"]
    assert built["incoming_suggestions"][0]["in_degree"] == 3


def test_seed_errors_map_to_status_codes(client):
    assert client.post("/sessions", json={"seed": "UNKNOWN"}).status_code == 404
    assert client.post("/sessions", json={"seed": "  "}).status_code == 400
    assert client.get("/sessions").json() == []


def test_list_session(client):
    resp = client.post("/sessions/list", json={"identifiers": ["A", "B", "C"], "label": "mine"})

    assert resp.status_code == 200, resp.text
    assert resp.json()["summary"]["label"] == "mine"
    assert resp.json()["source_id"] is None


def test_network_authors_and_completeness(client, built):
    network = client.get("/sessions/0/network", params={"incoming": 1, "outgoing": 0})
    assert network.status_code == 200
    ids = {n["id"] for n in network.json()["nodes"]}
    assert "R1" in ids and "R2" not in ids
    assert {"from", "to"} <= set(network.json()["edges"][0])

    authors = client.get("/sessions/0/authors")
    assert authors.status_code == 200
    assert authors.json()["chosen_threshold"] == 2

    completeness = client.get("/sessions/0/completeness")
    assert completeness.status_code == 200
    assert completeness.json()["reference_coverage"] == 1.0


def test_export_csv(client, built):
    resp = client.get("/sessions/0/export", params={"fmt": "csv", "group": "incoming"})

    assert resp.status_code == 200
    assert resp.text.startswith("sep=;")
    assert "Smith_2010.csv" in resp.headers["content-disposition"]

    assert client.get("/sessions/0/export", params={"fmt": "pdf"}).status_code == 422


def test_unknown_session_is_404(client):
    assert client.get("/sessions/5").status_code == 404
    assert client.delete("/sessions/5").status_code == 404
    assert client.post("/sessions/5/activate").status_code == 404


def test_activate_and_close(client, built):
    client.post("/sessions/list", json={"identifiers": ["A", "B"], "label": "second"})

    activated = client.post("/sessions/0/activate")
    assert activated.json() == {
        "active_index": 0,
        "selected_id": "SEED",
        "visible_incoming": 2,
        "visible_outgoing": 2,
    }

    closed = client.delete("/sessions/0")
    assert closed.json() == {"active_index": 0, "count": 1}
    assert [s["label"] for s in client.get("/sessions").json()] == ["second"]

    assert client.delete("/sessions").json() == {"active_index": None, "count": 0}


def test_save_sessions_writes_snapshot(client, built, data_dir):
    resp = client.post("/sessions/save")

    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    assert (data_dir / "sessions" / "sessions-latest.json").exists()


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", SecretStr("secret"))

    assert client.post("/sessions", json={"seed": "SEED"}).status_code == 401
    assert client.delete("/sessions", headers={"X-API-Key": "wrong"}).status_code == 401

    ok = client.post("/sessions", json={"seed": "SEED"}, headers={"X-API-Key": "secret"})
    assert ok.status_code == 200


def test_rate_limiter_rejects_bursts(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_requests", 2)

    codes = [client.post("/sessions", json={"seed": "UNKNOWN"}).status_code for _ in range(3)]

    assert codes == [404, 404, 429]


def test_manager_is_created_lazily(data_dir, monkeypatch, make_manager):
    app.state.manager = None
    monkeypatch.setattr(web_app_mod, "_new_manager", lambda: make_manager())

    resp = TestClient(app).get("/sessions")

    assert resp.status_code == 200
    assert resp.json() == []
    assert app.state.manager is not None
    app.state.manager = None
