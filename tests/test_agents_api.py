# -*- coding: utf-8 -*-
"""
API tests for agents, agent execution, feedback and the learning endpoints.
"""
import pytest

from opsflow.models import AgentExecution
from opsflow.services.agent_service import AgentService

INSIGHT = {"key_learnings": ["Check the runbook"], "avoid_patterns": ["Restarting prod blindly"],
           "prefer_patterns": [], "applicable_contexts": ["incidents"]}


@pytest.fixture
def agent(db_session, org):
    return AgentService(db_session).create_agent(org.id, "Incident Helper", capabilities=["web_search"])


@pytest.fixture
def finished_execution(db_session, agent, org):
    execution = AgentExecution(agent_id=agent.id, org_id=org.id, task="Investigate the ticket backlog",
                               status="completed")
    db_session.add(execution)
    db_session.commit()
    return execution


def test_create_agent(client, auth_headers):
    response = client.post("/api/v1/agents", headers=auth_headers, json={
        "name": "Router",
        "persona": {"role": "dispatcher", "tone": "brief"},
        "capabilities": ["entity_crud", "api_calls"],
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body["capabilities"] == ["entity_crud", "api_calls"]
    assert body["learning_config"] == {"enable_feedback_learning": True}
    assert body["performance_metrics"]["total_executions"] == 0


def test_create_agent_rejects_unknown_capability(client, auth_headers):
    response = client.post("/api/v1/agents", headers=auth_headers,
                           json={"name": "X", "capabilities": ["mind_reading"]})
    assert response.status_code == 400
    assert "capabilities" in response.get_json()["details"]


def test_get_agent_is_org_scoped(client, auth_headers, make_headers, agent):
    assert client.get(f"/api/v1/agents/{agent.id}", headers=auth_headers).get_json()["name"] == "Incident Helper"
    outsider = make_headers("admin", org_id="other-org")
    assert client.get(f"/api/v1/agents/{agent.id}", headers=outsider).status_code == 404


def test_execute_agent(client, make_headers, agent, org, llm):
    llm.queue({"plan": [{"step_number": 1, "description": "Look up", "action": "search status page",
                         "capability": "web_search"}]}, "All systems operational")

    response = client.post("/api/v1/agents/execute", headers=make_headers("member"),
                           json={"agent_id": agent.id, "task": "Is anything down?", "org_id": org.id})

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "completed"
    assert body["result"] == {"step_1": "All systems operational"}
    assert body["plan"][0]["status"] == "completed"
    assert isinstance(body["execution_time_ms"], int)

    detail = client.get(f"/api/v1/agents/executions/{body['execution_id']}", headers=make_headers("member"))
    assert detail.get_json()["user_email"] == "ops@acme.test"


def test_execute_agent_failure_is_reported(client, auth_headers, agent, org, llm):
    llm.queue(RuntimeError("model overloaded"))
    body = client.post("/api/v1/agents/execute", headers=auth_headers,
                       json={"agent_id": agent.id, "task": "x", "org_id": org.id}).get_json()
    assert body["status"] == "failed"
    assert body["error"] == "model overloaded"


def test_execute_agent_for_another_org_is_forbidden(client, auth_headers, agent):
    response = client.post("/api/v1/agents/execute", headers=auth_headers,
                           json={"agent_id": agent.id, "task": "x", "org_id": "other-org"})
    assert response.status_code == 403


def test_execute_agent_requires_fields(client, auth_headers):
    response = client.post("/api/v1/agents/execute", headers=auth_headers, json={"task": "x"})
    assert response.status_code == 400
    assert set(response.get_json()["details"]) == {"agent_id", "org_id"}


def test_execute_agent_requires_token(client, agent, org):
    response = client.post("/api/v1/agents/execute",
                           json={"agent_id": agent.id, "task": "x", "org_id": org.id})
    assert response.status_code == 401


def test_submit_feedback(client, make_headers, agent, finished_execution, llm, db_session):
    llm.queue(INSIGHT)

    response = client.post(f"/api/v1/agents/{agent.id}/feedback", headers=make_headers("viewer"), json={
        "execution_id": finished_execution.id, "rating": 4, "was_helpful": True,
        "corrections": [{"original_action": "Restart the API", "corrected_action": "Drain traffic first"}],
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body["feedback_id"]
    assert body["applied_to_learning"] is True

    learnings = client.get(f"/api/v1/agents/{agent.id}/learnings", headers=make_headers("viewer")).get_json()
    assert learnings["total"] == 3
    assert {p["pattern_type"] for p in learnings["patterns"]} == {"avoid", "prefer"}


def test_feedback_rating_out_of_range(client, auth_headers, agent, finished_execution):
    response = client.post(f"/api/v1/agents/{agent.id}/feedback", headers=auth_headers,
                           json={"execution_id": finished_execution.id, "rating": 9})
    assert response.status_code == 400
    assert "rating" in response.get_json()["details"]


def test_feedback_for_unknown_execution(client, auth_headers, agent):
    response = client.post(f"/api/v1/agents/{agent.id}/feedback", headers=auth_headers,
                           json={"execution_id": "nope", "rating": 3})
    assert response.status_code == 404


def test_feedback_survives_learning_failure(client, auth_headers, agent, finished_execution, llm):
    llm.queue(RuntimeError("LLM down"))
    response = client.post(f"/api/v1/agents/{agent.id}/feedback", headers=auth_headers,
                           json={"execution_id": finished_execution.id, "rating": 2})
    assert response.status_code == 201
    assert response.get_json()["applied_to_learning"] is False


def test_process_learning_and_recompute(client, auth_headers, make_headers, agent, finished_execution, llm):
    llm.queue(RuntimeError("LLM down"), INSIGHT)
    client.post(f"/api/v1/agents/{agent.id}/feedback", headers=auth_headers,
                json={"execution_id": finished_execution.id, "rating": 5})

    summary = client.post(f"/api/v1/agents/{agent.id}/learning/process", headers=auth_headers).get_json()
    assert summary == {"learning_enabled": True, "processed": 1, "failed": 0, "skipped": 0}

    metrics = client.post(f"/api/v1/agents/{agent.id}/metrics/recompute", headers=auth_headers).get_json()
    assert metrics["total_executions"] == 1
    assert metrics["success_rate"] == 100.0
    assert metrics["user_satisfaction_avg"] == 5.0
    assert metrics["feedback_count"] == 1

    member = make_headers("member")
    assert client.post(f"/api/v1/agents/{agent.id}/learning/process", headers=member).status_code == 403


def test_learnings_min_confidence(client, auth_headers, agent, finished_execution, llm):
    llm.queue(INSIGHT)
    client.post(f"/api/v1/agents/{agent.id}/feedback", headers=auth_headers,
                json={"execution_id": finished_execution.id})

    high = client.get(f"/api/v1/agents/{agent.id}/learnings?min_confidence=0.6", headers=auth_headers)
    assert high.get_json()["total"] == 0


def test_health_endpoints(client):
    assert client.get("/health").get_json()["status"] == "healthy"
    ready = client.get("/readyz").get_json()
    assert ready["checks"]["database"] is True


def test_metrics_trend_endpoint(client, make_headers, agent, finished_execution):
    response = client.get(f"/api/v1/agents/{agent.id}/metrics/trend", headers=make_headers("viewer"))
    assert response.status_code == 200
    assert response.get_json()["insufficient_data"] is True

    outsider = make_headers("admin", org_id="other-org")
    assert client.get(f"/api/v1/agents/{agent.id}/metrics/trend", headers=outsider).status_code == 404
