"""
Integration tests for the Flask API envelope and routes.
"""

import pytest

from api import app


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


def test_ping(client):
    resp = client.get("/ping?packageId=pkg-1&userId=u1")
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["userId"] == "u1"
    assert body["status"] == "pong"


def test_equalization_envelope(client, seeded):
    resp = client.get("/equalization?userId=u1")
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["status"] == "done"
    assert body["error"] == ""
    assert [n["id"] for n in body["toolData"]["tree"]] == ["n1", "n2"]


def test_detail_not_found_is_404(client, seeded):
    resp = client.get("/equalization/ghost")
    assert resp.status_code == 404
    assert resp.get_json()["status"] == "error"


def test_detail(client, seeded):
    resp = client.get("/equalization/n11")
    cols = resp.get_json()["toolData"]["columns"]
    assert [c["total"] for c in cols] == [150.0, 120.0]
    assert [c["highlight"] for c in cols] == ["highest", "lowest"]


def test_listing_routes(client, seeded):
    assert len(client.get("/wbs").get_json()["toolData"]["nodes"]) == 6
    assert len(client.get("/proposals").get_json()["toolData"]["proposals"]) == 2
    sections = client.get("/proposals/p2").get_json()["toolData"]["sections"]
    assert [s["section_id"] for s in sections] == [1, 2]


def test_tag_requires_tag_field(client, seeded):
    resp = client.post("/proposals/items/i1/tag", json={"userId": "u1", "toolData": {}})
    assert resp.status_code == 400
    assert resp.get_json()["userId"] == "u1"


def test_tag_update(client, seeded):
    resp = client.post("/proposals/items/i3/tag", json={"toolData": {"tag": "cortesia"}})
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["toolData"]["proposta_id"] == "p2"


def test_hidden_requires_boolean(client, seeded):
    resp = client.post("/proposals/items/i1/hidden", json={"toolData": {"hidden": "maybe"}})
    assert resp.status_code == 400


def test_hidden_update_changes_equalization(client, seeded):
    resp = client.post("/proposals/items/i4/hidden", json={"toolData": {"hidden": "true"}})
    assert resp.status_code == 200

    tree = client.get("/equalization").get_json()["toolData"]["tree"]
    assert [n["id"] for n in tree] == ["n1"]


def test_tool_crash_is_500(client, seeded, monkeypatch):
    from tools.equalize import equalize_store as store

    def boom():
        raise RuntimeError("database down")

    monkeypatch.setattr(store, "fetch_wbs_nodes", boom)
    resp = client.get("/equalization")

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "database down"


def test_malformed_id_on_postgres_is_404(client, monkeypatch):
    from tools.equalize import equalize_store as store

    def _no_query(query, params=()):
        raise AssertionError("malformed id reached the database")

    monkeypatch.setattr(store, "DB_TYPE", "postgres")
    monkeypatch.setattr(store, "_fetch_all", _no_query)

    for url in ("/equalization/abc", "/proposals/abc"):
        resp = client.get(url)
        assert resp.status_code == 404
        assert resp.get_json()["status"] == "error"

    resp = client.post("/proposals/items/abc/hidden", json={"toolData": {"hidden": True}})
    assert resp.status_code == 404


def test_get_query_params_are_passed_flat():
    from api import get_payload

    with app.test_request_context("/wbs?packageId=pkg-1&tag=opcional"):
        assert get_payload() == {"packageId": "pkg-1", "tag": "opcional"}
