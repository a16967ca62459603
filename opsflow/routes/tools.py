# -*- coding: utf-8 -*-
"""
Tools Route

Endpoints for registering agent tools, invoking them and asking which tools
fit a task.
"""

from flask import Blueprint, request, jsonify

from opsflow.database import db
from opsflow.schemas.tool_schemas import ToolCreateSchema, ToolExecuteSchema, ToolRecommendSchema
from opsflow.infra.auth import current_actor, require_actor
from opsflow.services.collaborators import get_http_client, get_llm, get_notifier
from opsflow.services.tool_service import ToolService

tools_bp = Blueprint("tools", __name__)


def _service() -> ToolService:
    return ToolService(db.session, llm=get_llm(), notifier=get_notifier(),
                       http_client=get_http_client())


@tools_bp.route("/api/v1/tools", methods=["POST"])
@require_actor("tools:write")
def create_tool():
    data = ToolCreateSchema().load(request.get_json(silent=True) or {})
    tool = _service().create_tool(current_actor().org_id, **data)
    return jsonify(tool.to_dict()), 201


@tools_bp.route("/api/v1/tools/execute", methods=["POST"])
@require_actor("tools:execute")
def execute_tool():
    data = ToolExecuteSchema().load(request.get_json(silent=True) or {})
    invocation = _service().execute(
        data["tool_id"],
        data["input"],
        current_actor().org_id,
        agent_id=data.get("agent_id"),
        execution_id=data.get("execution_id"),
    )
    return jsonify(invocation.to_dict())


@tools_bp.route("/api/v1/tools/recommend", methods=["POST"])
@require_actor("tools:read")
def recommend_tools():
    data = ToolRecommendSchema().load(request.get_json(silent=True) or {})
    return jsonify(_service().recommend(current_actor().org_id, data["task_description"]))
