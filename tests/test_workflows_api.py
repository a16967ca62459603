# -*- coding: utf-8 -*-
"""
API tests for workflow definition, execution and execution lookup.
"""
import pytest

from opsflow.services.workflow_service import WorkflowService


@pytest.fixture
def workflow(db_session, org):
    return WorkflowService(db_session).create_workflow(org.id, "Escalate VIP", steps=[
        {"id": "notify", "action": "send_notification", "config": {"message": "VIP {{trigger.customer}}"}},
        {"id": "record", "action": "create_entity",
         "config": {"entity_name": "Escalation", "data_mapping": {"customer": "{{trigger.customer}}"}}},
    ])


def test_requests_without_token_are_unauthorized(client):
    response = client.get("/api/v1/workflows")
    assert response.status_code == 401
    assert response.get_json()["error"] == "Unauthorized"


def test_garbage_token_is_unauthorized(client):
    response = client.get("/api/v1/workflows", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_create_workflow(client, auth_headers):
    response = client.post("/api/v1/workflows", headers=auth_headers, json={
        "name": "Ticket intake",
        "trigger_type": "webhook",
        "trigger_config": {"webhook_secret": "s3cret"},
        "steps": [
            {"action": "send_email", "config": {"recipient": "{{trigger.email}}"},
             "error_config": {"retry_enabled": True, "retry_count": 2}},
        ],
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body["name"] == "Ticket intake"
    assert body["trigger_type"] == "webhook"
    step = body["steps"][0]
    assert step["id"]
    assert step["error_config"] == {"retry_enabled": True, "retry_count": 2, "continue_on_error": False}


def test_create_workflow_validates_body(client, auth_headers):
    response = client.post("/api/v1/workflows", headers=auth_headers, json={
        "steps": [{"action": "launch_rocket"}], "trigger_type": "lunar"})

    assert response.status_code == 400
    details = response.get_json()["details"]
    assert "name" in details
    assert "trigger_type" in details
    assert "steps" in details


def test_member_cannot_create_workflows(client, make_headers):
    response = client.post("/api/v1/workflows", headers=make_headers("member"), json={"name": "x"})
    assert response.status_code == 403
    assert "workflows:write" in response.get_json()["error"]


def test_list_and_get_are_org_scoped(client, auth_headers, make_headers, workflow):
    listed = client.get("/api/v1/workflows", headers=auth_headers).get_json()
    assert listed["total"] == 1
    assert listed["workflows"][0]["id"] == workflow.id

    assert client.get(f"/api/v1/workflows/{workflow.id}", headers=auth_headers).status_code == 200

    outsider = make_headers("admin", email="eve@other.test", org_id="other-org")
    assert client.get(f"/api/v1/workflows/{workflow.id}", headers=outsider).status_code == 404
    assert client.get("/api/v1/workflows", headers=outsider).get_json()["total"] == 0


def test_execute_workflow(client, make_headers, workflow, notifier):
    response = client.post("/api/v1/workflows/execute", headers=make_headers("member"), json={
        "workflow_id": workflow.id, "trigger_data": {"customer": "Globex"}})

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "completed"
    assert [r["step_id"] for r in body["step_results"]] == ["notify", "record"]
    assert "error" not in body
    assert notifier.notifications[0]["message"] == "VIP Globex"


def test_failed_execution_reports_error(client, auth_headers, workflow, notifier):
    notifier.failures_left = 1

    body = client.post("/api/v1/workflows/execute", headers=auth_headers,
                       json={"workflow_id": workflow.id}).get_json()

    assert body["status"] == "failed"
    assert body["error"] == "Notification provider unavailable"
    assert len(body["step_results"]) == 1


def test_execute_unknown_workflow_is_404(client, auth_headers):
    response = client.post("/api/v1/workflows/execute", headers=auth_headers, json={"workflow_id": "nope"})
    assert response.status_code == 404
    assert response.get_json()["error"] == "Workflow not found"


def test_execute_requires_workflow_id(client, auth_headers):
    response = client.post("/api/v1/workflows/execute", headers=auth_headers, json={})
    assert response.status_code == 400
    assert "workflow_id" in response.get_json()["details"]


def test_resume_from_unknown_step_is_400(client, auth_headers, workflow):
    response = client.post("/api/v1/workflows/execute", headers=auth_headers,
                           json={"workflow_id": workflow.id, "resume_from_step": "missing"})
    assert response.status_code == 400


def test_viewer_cannot_execute(client, make_headers, workflow):
    response = client.post("/api/v1/workflows/execute", headers=make_headers("viewer"),
                           json={"workflow_id": workflow.id})
    assert response.status_code == 403


def test_execution_history(client, auth_headers, make_headers, workflow):
    run = client.post("/api/v1/workflows/execute", headers=auth_headers,
                      json={"workflow_id": workflow.id, "trigger_data": {"customer": "Initech"}}).get_json()

    history = client.get(f"/api/v1/workflows/{workflow.id}/executions", headers=auth_headers).get_json()
    assert history["total"] == 1
    assert history["executions"][0]["id"] == run["execution_id"]

    detail = client.get(f"/api/v1/workflows/executions/{run['execution_id']}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.get_json()["trigger_data"] == {"customer": "Initech"}

    outsider = make_headers("admin", org_id="other-org")
    assert client.get(f"/api/v1/workflows/executions/{run['execution_id']}", headers=outsider).status_code == 404


def test_create_integration(client, auth_headers):
    response = client.post("/api/v1/integrations", headers=auth_headers,
                           json={"type": "slack", "config": {"webhook_url": "https://hooks.slack.test/x"}})
    assert response.status_code == 201
    assert response.get_json()["type"] == "slack"

    assert client.post("/api/v1/integrations", headers=auth_headers, json={"type": "fax"}).status_code == 400


def test_errors_carry_request_id(client):
    response = client.get("/api/v1/workflows")
    assert response.get_json()["request_id"] == response.headers["X-Request-ID"]
