# -*- coding: utf-8 -*-
"""
Workflows Route

Provides API endpoints for defining workflows, running them and reading back
their executions.
"""

from flask import Blueprint, current_app, request, jsonify

from opsflow.database import db
from opsflow.schemas.workflow_schemas import WorkflowCreateSchema, WorkflowExecuteSchema
from opsflow.infra.auth import current_actor, require_actor
from opsflow.services.collaborators import get_http_client, get_llm, get_notifier, get_retry_runner
from opsflow.services.workflow_engine import WorkflowEngine
from opsflow.services.workflow_service import WorkflowService

workflows_bp = Blueprint("workflows", __name__)


def build_engine() -> WorkflowEngine:
    return WorkflowEngine(
        db.session,
        llm=get_llm(),
        notifier=get_notifier(),
        http_client=get_http_client(),
        retry_runner=get_retry_runner(),
        max_call_depth=current_app.config.get("WORKFLOW_MAX_CALL_DEPTH", 5),
    )


def execution_response(execution):
    body = {
        "execution_id": execution.id,
        "status": execution.status,
        "step_results": execution.step_results or [],
    }
    if execution.error_message:
        body["error"] = execution.error_message
    return body


@workflows_bp.route("/api/v1/workflows", methods=["POST"])
@require_actor("workflows:write")
def create_workflow():
    data = WorkflowCreateSchema().load(request.get_json(silent=True) or {})
    workflow = WorkflowService(db.session).create_workflow(org_id=current_actor().org_id, **data)
    return jsonify(workflow.to_dict()), 201


@workflows_bp.route("/api/v1/workflows", methods=["GET"])
@require_actor("workflows:read")
def list_workflows():
    workflows = WorkflowService(db.session).get_workflows_by_org(current_actor().org_id)
    return jsonify({"workflows": [w.to_dict() for w in workflows], "total": len(workflows)})


@workflows_bp.route("/api/v1/workflows/<workflow_id>", methods=["GET"])
@require_actor("workflows:read")
def get_workflow(workflow_id):
    workflow = WorkflowService(db.session).get_workflow(workflow_id, org_id=current_actor().org_id)
    return jsonify(workflow.to_dict())


@workflows_bp.route("/api/v1/workflows/execute", methods=["POST"])
@require_actor("workflows:execute")
def execute_workflow():
    data = WorkflowExecuteSchema().load(request.get_json(silent=True) or {})
    execution = build_engine().execute(
        data["workflow_id"],
        data["trigger_data"],
        org_id=current_actor().org_id,
        resume_from_step=data.get("resume_from_step"),
    )
    return jsonify(execution_response(execution))


@workflows_bp.route("/api/v1/workflows/<workflow_id>/executions", methods=["GET"])
@require_actor("workflows:read")
def list_executions(workflow_id):
    service = WorkflowService(db.session)
    workflow = service.get_workflow(workflow_id, org_id=current_actor().org_id)
    limit = request.args.get("limit", 50, type=int)
    executions = service.get_executions(workflow.id, limit=limit)
    return jsonify({"executions": [e.to_dict() for e in executions], "total": len(executions)})


@workflows_bp.route("/api/v1/workflows/executions/<execution_id>", methods=["GET"])
@require_actor("workflows:read")
def get_execution(execution_id):
    execution = WorkflowService(db.session).get_execution(execution_id, org_id=current_actor().org_id)
    return jsonify(execution.to_dict())
