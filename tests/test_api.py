import pytest
from fastapi.testclient import TestClient

from riskreg.main import create_app

OWNER = {"X-Role": "control-owner", "X-User-Id": "alice", "X-Session-Id": "tab-1"}
RISK_MANAGER = {"X-Role": "risk-manager", "X-User-Id": "rita", "X-Session-Id": "tab-2"}
MANAGER = {"X-Role": "manager", "X-User-Id": "mona", "X-Session-Id": "tab-3"}


@pytest.fixture
def client(registry):
    return TestClient(create_app(registry))


@pytest.fixture
def row_id(client):
    response = client.post(
        "/v2/rows/sync",
        headers=RISK_MANAGER,
        json={
            "risks": [{"id": "R1", "name": "Fraud"}],
            "processes": [{"id": "P0", "name": "Finance", "children": [{"id": "P1", "name": "Payments"}]}],
        },
    )
    assert response.status_code == 200
    (created,) = response.json()["created"]
    response = client.patch(f"/v2/rows/{created}", headers=RISK_MANAGER, json={"grossProbability": 4, "grossImpact": 5})
    assert response.status_code == 200
    return created


@pytest.fixture
def control_id(client, row_id):
    response = client.post(
        "/v2/controls",
        headers=RISK_MANAGER,
        json={"control": {"name": "Dual sign-off", "netProbability": 2, "netImpact": 3}, "rowId": row_id},
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_health_reports_store(client):
    body = client.get("/v2/health").json()
    assert body["status"] == "healthy"
    assert body["storeBackend"] == "memory"
    assert body["pendingChanges"] == 0


def test_row_scores_follow_linked_control(client, row_id, control_id):
    row = client.get(f"/v2/rows/{row_id}").json()
    assert row["grossScore"] == 20
    assert row["withinAppetite"] == -11

    scores = client.get(f"/v2/rows/{row_id}/scores").json()
    assert (scores["netProbability"], scores["netImpact"], scores["netScore"]) == (2, 3, 6)
    assert scores["withinAppetite"] == 3

    controls = client.get(f"/v2/rows/{row_id}/controls").json()
    assert len(controls) == 1
    assert controls[0]["control"]["netScore"] == 6
    assert controls[0]["linkCount"] == 1


def test_gross_edit_requires_definition_rights(client, row_id):
    response = client.patch(f"/v2/rows/{row_id}", headers=OWNER, json={"grossProbability": 1})
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_invalid_score_is_rejected(client, row_id):
    response = client.patch(f"/v2/rows/{row_id}", headers=RISK_MANAGER, json={"grossImpact": 9})
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_FIELD_VALUE"


def test_approval_round_trip(client, registry, sink, row_id, control_id):
    edit = client.post(f"/v2/controls/{control_id}/edits", headers=OWNER, json={"field": "netProbability", "value": 1})
    assert edit.status_code == 200
    assert edit.json()["deferred"] is True
    assert edit.json()["draft"] == {"netProbability": 1}

    client.post(f"/v2/controls/{control_id}/edits", headers=OWNER, json={"field": "comment", "value": "tightened"})
    assert client.get(f"/v2/rows/{row_id}/scores").json()["netScore"] == 6
    assert client.get(f"/v2/controls/{control_id}/draft", headers=OWNER).json()["unsaved"] is True

    submitted = client.post(f"/v2/controls/{control_id}/submit", headers=OWNER, json={})
    assert submitted.status_code == 200
    change = submitted.json()
    assert change["proposedValues"] == {"netProbability": 1, "comment": "tightened"}
    assert change["currentValues"] == {"netProbability": 2, "comment": None}
    assert change["submittedBy"] == "alice"
    assert client.get("/v2/pending-changes/count").json()["pending"] == 1
    assert [recipient for _, recipient, _ in sink.of_type("approval-request")] == ["mgr-1"]

    denied = client.post(f"/v2/pending-changes/{change['id']}/approve", headers=OWNER)
    assert denied.status_code == 403

    approved = client.post(f"/v2/pending-changes/{change['id']}/approve", headers=MANAGER)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["resolvedBy"] == "mona"
    assert client.get(f"/v2/rows/{row_id}/scores").json()["netScore"] == 3

    again = client.post(f"/v2/pending-changes/{change['id']}/approve", headers=MANAGER)
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_TRANSITION"


def test_reject_with_reason(client, control_id):
    client.post(f"/v2/controls/{control_id}/edits", headers=OWNER, json={"field": "name", "value": "Renamed"})
    change = client.post(f"/v2/controls/{control_id}/submit", headers=OWNER, json={}).json()

    rejected = client.post(
        f"/v2/pending-changes/{change['id']}/reject", headers=MANAGER, json={"reason": "Name is taken"}
    )

    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejectionReason"] == "Name is taken"
    assert client.get(f"/v2/controls/{control_id}").json()["control"]["name"] == "Dual sign-off"
    listed = client.get("/v2/pending-changes", params={"status": "rejected"}).json()
    assert [item["id"] for item in listed] == [change["id"]]


def test_manager_edits_apply_immediately(client, row_id, control_id):
    response = client.post(
        f"/v2/controls/{control_id}/edits", headers=MANAGER, json={"field": "netImpact", "value": 1}
    )

    assert response.json()["deferred"] is False
    assert client.get(f"/v2/rows/{row_id}/scores").json()["netScore"] == 2


def test_submit_without_draft_returns_no_content(client, control_id):
    response = client.post(f"/v2/controls/{control_id}/submit", headers=OWNER, json={})
    assert response.status_code == 204


def test_buffered_edit_commits_on_blur(client, control_id):
    typed = client.post(
        f"/v2/controls/{control_id}/edits",
        headers=OWNER,
        json={"field": "name", "value": "Typed", "commit": False},
    )
    assert typed.json()["committed"] is False
    assert typed.json()["displayValue"] == "Typed"

    blurred = client.post("/v2/sessions/blur", headers=OWNER)
    assert blurred.json()["committed"] is True
    assert client.get("/v2/sessions/drafts", headers=OWNER).json()[0]["values"] == {"name": "Typed"}


def test_closing_session_discards_drafts(client, control_id):
    client.post(f"/v2/controls/{control_id}/edits", headers=OWNER, json={"field": "name", "value": "Gone"})

    closed = client.delete("/v2/sessions", headers=OWNER)

    assert closed.json() == {"sessionId": "tab-1", "discardedDrafts": 1}
    assert client.get(f"/v2/controls/{control_id}/draft", headers=OWNER).json()["values"] == {}


def test_unknown_field_is_rejected(client, control_id):
    response = client.post(f"/v2/controls/{control_id}/edits", headers=OWNER, json={"field": "ownerRowId", "value": 1})
    assert response.status_code == 422
    assert response.json()["code"] == "UNKNOWN_FIELD"


def test_link_and_unlink(client, row_id, control_id):
    other = client.post("/v2/controls", headers=RISK_MANAGER, json={"control": {"name": "Reconciliation"}}).json()
    assert [c["id"] for c in client.get(f"/v2/rows/{row_id}/available-controls").json()] == [other["id"]]

    linked = client.post(f"/v2/rows/{row_id}/links", headers=RISK_MANAGER, json={"controlId": other["id"]})
    assert linked.status_code == 201
    duplicate = client.post(f"/v2/rows/{row_id}/links", headers=RISK_MANAGER, json={"controlId": other["id"]})
    assert duplicate.status_code == 409

    removed = client.delete(f"/v2/rows/{row_id}/links/{other['id']}", headers=RISK_MANAGER)
    assert removed.status_code == 204
    assert len(client.get(f"/v2/rows/{row_id}/controls").json()) == 1


def test_approval_settings_are_manager_only(client, control_id):
    denied = client.patch("/v2/approval/settings", headers=OWNER, json={"globalEnabled": False})
    assert denied.status_code == 403

    client.put(f"/v2/approval/settings/overrides/{control_id}", headers=MANAGER, json={"enabled": False})
    edit = client.post(f"/v2/controls/{control_id}/edits", headers=OWNER, json={"field": "comment", "value": "direct"})

    assert edit.json()["deferred"] is False
    assert client.get("/v2/approval/settings").json()["entityOverrides"] == {control_id: False}


def test_missing_role_header_is_a_validation_error(client, row_id):
    assert client.patch(f"/v2/rows/{row_id}", json={"grossProbability": 1}).status_code == 422
