import pytest
from fastapi.testclient import TestClient

from configflow.main import app


client = TestClient(app)


@pytest.fixture(autouse=True)
def fresh_session():
    response = client.post("/api/reload")
    assert response.status_code == 200
    yield


def _option_id(key):
    graph = client.get("/api/graph").json()
    return next(n["id"] for n in graph["nodes"] if n["properties"].get("key") == key)


def test_root():
    assert client.get("/").json() == {"message": "Config Flow API is running"}


def test_cors_allows_editor_origin():
    response = client.get("/api/graph", headers={"Origin": "http://localhost:5173"})
    assert response.status_code == 200
    assert "access-control-allow-origin" in response.headers


def test_graph_contains_packs():
    body = client.get("/api/graph").json()
    assert body["nodes"][0]["kind"] == "container"
    module_ids = [m["id"] for m in body["rules"]["modules"]]
    assert "video_decoder" in module_ids
    assert "drm_security" in module_ids


def test_analysis_endpoint_totals():
    body = client.get("/api/analysis").json()
    per_node = body["analysis_by_node_id"]
    assert body["total_issues"] == sum(len(a["issues"]) for a in per_node.values())
    assert body["total_conflicts"] <= body["conflict_entries"]


def test_node_analysis_and_unknown_node():
    hw_accel = _option_id("hw_accel")
    response = client.get(f"/api/analysis/{hw_accel}")
    assert response.status_code == 200
    assert response.json()["node_id"] == hw_accel

    assert client.get("/api/analysis/nope").status_code == 404


def test_validate_connection_endpoint():
    ok = client.post("/api/connections/validate", json={"source_kind": "group", "target_kind": "option"})
    assert ok.json() == {"valid": True, "message": "Groups hold options"}

    bad = client.post("/api/connections/validate", json={"source_kind": "option", "target_kind": "group"})
    assert bad.json()["valid"] is False


def test_second_parent_is_rejected_with_400():
    group = client.post("/api/nodes", json={"kind": "group", "label": "Extra"}).json()
    response = client.post("/api/connections", json={"source": group["id"], "target": _option_id("av1")})

    assert response.status_code == 400
    assert "already has a parent" in response.json()["detail"]


def test_enable_av1_then_apply_fix():
    av1 = _option_id("av1")
    response = client.patch(f"/api/nodes/{av1}", json={"properties": {"included": True}})
    assert response.status_code == 200

    analysis = client.get(f"/api/analysis/{av1}").json()
    # hw_accel is enabled in the bundled pack
    assert analysis["health"] == "healthy"

    gpu = _option_id("gpu_decode")
    client.patch(f"/api/nodes/{gpu}", json={"properties": {"included": True}})
    gpu_analysis = client.get(f"/api/analysis/{gpu}").json()
    conflict = next(i for i in gpu_analysis["issues"] if i["title"].startswith("Conflict"))

    fixed = client.post("/api/fixes", json={"fix": conflict["fix"]})
    assert fixed.status_code == 200
    assert fixed.json()["analysis_by_node_id"][gpu]["health"] == "healthy"


def test_patch_clears_description_with_explicit_null():
    av1 = _option_id("av1")
    client.patch(f"/api/nodes/{av1}", json={"description": "Royalty-free codec"})

    response = client.patch(f"/api/nodes/{av1}", json={"description": None})
    assert response.status_code == 200
    assert response.json()["description"] is None
    assert response.json()["label"]

    untouched = client.patch(f"/api/nodes/{av1}", json={"visible": False}).json()
    assert untouched["description"] is None
    assert untouched["properties"]["key"] == "av1"


def test_patch_rejects_null_label():
    av1 = _option_id("av1")
    response = client.patch(f"/api/nodes/{av1}", json={"label": None})
    assert response.status_code == 400


def test_child_suggestions_for_new_group():
    group = client.post("/api/nodes", json={"kind": "group"}).json()
    body = client.get(f"/api/nodes/{group['id']}/suggestions").json()
    assert [s["label"] for s in body] == ["Add Option", "Add Toggle"]


def test_delete_node():
    av1 = _option_id("av1")
    assert client.delete(f"/api/nodes/{av1}").status_code == 200
    assert client.delete(f"/api/nodes/{av1}").status_code == 404


def test_stateless_analyze_snapshot():
    payload = {
        "nodes": [
            {"id": "g", "kind": "group", "label": "G"},
            {"id": "a", "kind": "option", "label": "A", "properties": {"key": "a", "included": False}},
            {"id": "b", "kind": "option", "label": "B", "properties": {"key": "b", "included": False}},
        ],
        "edges": [{"source": "g", "target": "a"}, {"source": "g", "target": "b"}],
        "rules": {"modules": []},
    }
    body = client.post("/api/analyze", json=payload).json()

    group = body["analysis_by_node_id"]["g"]
    assert [s["title"] for s in group["suggestions"]] == ["No Default Selections"]
    assert [i["title"] for i in group["issues"]] == ["Orphan Node"]
