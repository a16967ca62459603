# -*- coding: utf-8 -*-
"""
Agents Route

Provides API endpoints for AI agents: definition, task execution, feedback and
the learning loop built on it.
"""

from flask import Blueprint, request, jsonify

from opsflow.database import db
from opsflow.schemas.agent_schemas import AgentCreateSchema, AgentExecuteSchema, FeedbackSchema
from opsflow.services.agent_executor import AgentRunner
from opsflow.services.agent_service import AgentService
from opsflow.services.agent_stats import AgentStatsService
from opsflow.infra.auth import current_actor, require_actor
from opsflow.services.collaborators import get_http_client, get_llm
from opsflow.services.errors import ForbiddenError
from opsflow.services.learning_service import LearningService

agents_bp = Blueprint("agents", __name__)


@agents_bp.route("/api/v1/agents", methods=["POST"])
@require_actor("agents:write")
def create_agent():
    data = AgentCreateSchema().load(request.get_json(silent=True) or {})
    agent = AgentService(db.session).create_agent(org_id=current_actor().org_id, **data)
    return jsonify(agent.to_dict()), 201


@agents_bp.route("/api/v1/agents/<agent_id>", methods=["GET"])
@require_actor("agents:read")
def get_agent(agent_id):
    agent = AgentService(db.session).get_agent(agent_id, current_actor().org_id)
    return jsonify(agent.to_dict())


@agents_bp.route("/api/v1/agents/execute", methods=["POST"])
@require_actor("agents:execute")
def execute_agent():
    data = AgentExecuteSchema().load(request.get_json(silent=True) or {})
    actor = current_actor()
    if data["org_id"] != actor.org_id:
        raise ForbiddenError("Cannot run agents of another organization")

    execution = AgentRunner(db.session, get_llm(), http_client=get_http_client()).run(
        data["agent_id"], data["task"], data["org_id"], user_email=actor.email
    )
    body = {
        "execution_id": execution.id,
        "status": execution.status,
        "plan": execution.plan or [],
        "result": execution.result or {},
        "execution_time_ms": execution.execution_time_ms,
    }
    if execution.error_message:
        body["error"] = execution.error_message
    return jsonify(body)


@agents_bp.route("/api/v1/agents/executions/<execution_id>", methods=["GET"])
@require_actor("agents:read")
def get_agent_execution(execution_id):
    execution = AgentService(db.session).get_execution(execution_id, current_actor().org_id)
    return jsonify(execution.to_dict())


@agents_bp.route("/api/v1/agents/<agent_id>/feedback", methods=["POST"])
@require_actor("agents:feedback")
def submit_feedback(agent_id):
    data = FeedbackSchema().load(request.get_json(silent=True) or {})
    actor = current_actor()
    feedback = LearningService(db.session, get_llm()).submit_feedback(
        agent_id,
        data["execution_id"],
        actor.org_id,
        user_email=actor.email,
        feedback_type=data["feedback_type"],
        rating=data.get("rating"),
        was_helpful=data.get("was_helpful"),
        corrections=data["corrections"],
        comment=data.get("comment"),
    )
    return jsonify({
        "feedback_id": feedback.id,
        "applied_to_learning": feedback.applied_to_learning,
    }), 201


@agents_bp.route("/api/v1/agents/<agent_id>/learning/process", methods=["POST"])
@require_actor("agents:write")
def process_learning(agent_id):
    summary = LearningService(db.session, get_llm()).process_pending_feedback(
        agent_id, current_actor().org_id
    )
    return jsonify(summary)


@agents_bp.route("/api/v1/agents/<agent_id>/metrics/recompute", methods=["POST"])
@require_actor("agents:write")
def recompute_metrics(agent_id):
    AgentService(db.session).get_agent(agent_id, current_actor().org_id)
    agent = AgentStatsService(db.session).recompute(agent_id)
    return jsonify(agent.performance_metrics)


@agents_bp.route("/api/v1/agents/<agent_id>/learnings", methods=["GET"])
@require_actor("agents:read")
def list_learnings(agent_id):
    AgentService(db.session).get_agent(agent_id, current_actor().org_id)
    min_confidence = request.args.get("min_confidence", 0.0, type=float)
    patterns = LearningService(db.session, get_llm()).get_patterns(agent_id, min_confidence)
    return jsonify({"patterns": [p.to_dict() for p in patterns], "total": len(patterns)})


@agents_bp.route("/api/v1/agents/<agent_id>/metrics/trend", methods=["GET"])
@require_actor("agents:read")
def metrics_trend(agent_id):
    AgentService(db.session).get_agent(agent_id, current_actor().org_id)
    return jsonify(AgentStatsService(db.session).improvement_trend(agent_id))
