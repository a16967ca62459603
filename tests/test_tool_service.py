# -*- coding: utf-8 -*-
"""
Tests for tool registration, invocation and recommendation.
"""
import pytest

from opsflow.models import EntityRecord, ToolInvocation
from opsflow.services.entity_store import EntityStore
from opsflow.services.errors import NotFoundError, ValidationError
from opsflow.services.tool_service import RECOMMENDATION_SCHEMA, ToolService


@pytest.fixture
def service(db_session, llm, notifier, http_client):
    return ToolService(db_session, llm, notifier, http_client)


@pytest.fixture
def make_tool(service, org):
    def _make(function_name, name=None, **kwargs):
        return service.create_tool(org.id, name or function_name.replace("_", " ").title(),
                                   function_name, **kwargs)
    return _make


def test_create_tool_rejects_unknown_function(service, org):
    with pytest.raises(ValidationError):
        service.create_tool(org.id, "Teleport", "teleport")


def test_get_tool_is_org_scoped(service, make_tool):
    tool = make_tool("web_search")
    with pytest.raises(NotFoundError):
        service.get_tool(tool.id, "another-org")


def test_send_email_tool(service, make_tool, org, notifier, db_session):
    tool = make_tool("send_email")

    invocation = service.execute(tool.id, {"to": "a@acme.test", "subject": "Hi", "body": "Hello"}, org.id,
                                 agent_id="agent-1", execution_id="exec-1")

    assert invocation.status == "completed"
    assert invocation.output["success"] is True
    assert invocation.agent_id == "agent-1"
    assert notifier.emails == [{"to": "a@acme.test", "subject": "Hi", "body": "Hello"}]

    db_session.expire_all()
    db_session.refresh(tool)
    assert tool.usage_count == 1
    assert tool.success_count == 1


def test_missing_input_fields_fail_the_invocation(service, make_tool, org, notifier, db_session):
    tool = make_tool("send_email")

    invocation = service.execute(tool.id, {"to": "a@acme.test"}, org.id)

    assert invocation.status == "failed"
    assert invocation.error_message == "Missing required fields: subject, body"
    assert invocation.output == {"error": "Missing required fields: subject, body"}
    assert notifier.emails == []

    db_session.expire_all()
    db_session.refresh(tool)
    assert tool.usage_count == 1
    assert tool.success_count == 0


def test_provider_failure_is_recorded_not_raised(service, make_tool, org, notifier):
    notifier.failures_left = 1
    tool = make_tool("send_email")

    invocation = service.execute(tool.id, {"to": "x@y.test", "subject": "s", "body": "b"}, org.id)

    assert invocation.status == "failed"
    assert "unavailable" in invocation.error_message
    assert invocation.completed_at is not None


def test_entity_tools_create_update_delete(service, make_tool, org, db_session):
    created = service.execute(make_tool("entity_create").id,
                              {"entity_type": "Ticket", "data": {"title": "VPN down"}}, org.id)
    entity_id = created.output["entity_id"]

    updated = service.execute(make_tool("entity_update").id,
                              {"entity_type": "Ticket", "entity_id": entity_id,
                               "updates": {"status": "resolved"}}, org.id)
    assert updated.status == "completed"
    record = db_session.query(EntityRecord).filter(EntityRecord.id == entity_id).one()
    assert record.data == {"title": "VPN down", "status": "resolved"}

    deleted = service.execute(make_tool("entity_delete").id,
                              {"entity_type": "Ticket", "entity_id": entity_id}, org.id)
    assert deleted.status == "completed"
    assert db_session.query(EntityRecord).filter(EntityRecord.id == entity_id).first() is None


def test_entity_update_of_missing_record_fails(service, make_tool, org):
    invocation = service.execute(make_tool("entity_update").id,
                                 {"entity_type": "Ticket", "entity_id": "nope", "updates": {"a": 1}}, org.id)
    assert invocation.status == "failed"
    assert "not found" in invocation.error_message


def test_generate_report_queues_background_job(service, make_tool, org, db_session):
    invocation = service.execute(make_tool("generate_report").id, {"report_type": "weekly_sla"}, org.id)

    job = db_session.query(EntityRecord).filter(EntityRecord.id == invocation.output["job_id"]).one()
    assert job.kind == "BackgroundJob"
    assert job.data["status"] == "queued"
    assert job.data["input"]["report_type"] == "weekly_sla"
    assert job.data["input"]["format"] == "pdf"


def test_api_call_tool(service, make_tool, org, http_client):
    http_client.status = 404
    invocation = service.execute(make_tool("api_call").id,
                                 {"url": "https://api.acme.test/x", "headers": {"X-Key": "k"}}, org.id)

    assert invocation.status == "completed"
    assert invocation.output == {"success": False, "status": 404, "data": None}
    assert http_client.requests[0]["method"] == "GET"
    assert http_client.requests[0]["headers"] == {"X-Key": "k"}


def test_web_search_tool(service, make_tool, org, llm):
    llm.queue("three articles found")
    invocation = service.execute(make_tool("web_search").id, {"query": "reset 2fa"}, org.id)
    assert invocation.output == {"success": True, "results": "three articles found"}
    assert llm.calls[0]["add_context_from_internet"] is True


def test_knowledge_query_uses_active_articles(service, make_tool, org, llm, db_session):
    store = EntityStore(db_session)
    active = store.create("KnowledgeBase", {"title": "VPN", "content": "Use the new client"}, org_id=org.id)
    store.create("KnowledgeBase", {"title": "Old", "content": "Retired", "is_active": False}, org_id=org.id)
    llm.queue("Install the new VPN client")

    invocation = service.execute(make_tool("knowledge_query").id, {"query": "How do I connect?"}, org.id)

    assert invocation.output["answer"] == "Install the new VPN client"
    assert invocation.output["sources"] == [{"id": active.id, "title": "VPN"}]
    assert "VPN: Use the new client" in llm.calls[0]["prompt"]
    assert "Retired" not in llm.calls[0]["prompt"]


def test_invocations_are_persisted(service, make_tool, org, db_session):
    service.execute(make_tool("web_search").id, {"query": "q"}, org.id)
    assert db_session.query(ToolInvocation).count() == 1


def test_recommend_with_no_tools(service, org, llm):
    assert service.recommend(org.id, "anything") == {
        "task_description": "anything", "recommended_tools": [], "total_available_tools": 0}
    assert llm.calls == []


def test_recommend_keeps_only_known_tools(service, make_tool, org, llm):
    search = make_tool("web_search", description="Search the web")
    make_tool("send_email")
    llm.queue({"recommendations": [
        {"tool_id": search.id, "confidence": 0.9, "reasoning": "needs research"},
        {"tool_id": "hallucinated", "confidence": 0.5, "reasoning": "?"},
    ]})

    result = service.recommend(org.id, "Research VPN errors")

    assert result["total_available_tools"] == 2
    assert [r["tool_id"] for r in result["recommended_tools"]] == [search.id]
    assert result["recommended_tools"][0]["tool"]["name"] == "Web Search"
    assert llm.calls[0]["response_schema"] is RECOMMENDATION_SCHEMA
    assert search.id in llm.calls[0]["prompt"]
