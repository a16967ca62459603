"""
Webhook Trigger Route

Inbound endpoint that lets external systems fire a webhook-triggered workflow.
The caller authenticates with the workflow's shared secret, not a user token.
"""

from flask import Blueprint, request, jsonify

from opsflow.database import db
from opsflow.models.types import utcnow
from opsflow.models.workflow import Workflow
from opsflow.routes.workflows import build_engine, execution_response
from opsflow.services.errors import ForbiddenError, NotFoundError, ValidationError
from opsflow.services.request_context import set_actor_context
from opsflow.services.structured_logging import get_logger

logger = get_logger("opsflow.webhooks.routes")

hooks_bp = Blueprint("hooks", __name__)


@hooks_bp.route("/api/v1/hooks/workflows", methods=["POST"])
def trigger_workflow():
    """Run a workflow for an inbound webhook call"""
    workflow_id = request.args.get("workflow_id")
    secret = request.args.get("secret")
    if not workflow_id or not secret:
        raise ValidationError("Missing workflow_id or secret")

    workflow = db.session.query(Workflow).filter(Workflow.id == workflow_id).first()
    if not workflow:
        raise NotFoundError("Workflow not found")

    if (workflow.trigger_config or {}).get("webhook_secret") != secret:
        logger.warning("Webhook secret mismatch", workflow_id=workflow_id)
        raise ForbiddenError("Invalid webhook secret")

    source = request.headers.get("X-Webhook-Source", "unknown")
    set_actor_context(org_id=workflow.org_id)
    trigger_data = {
        "source": source,
        "timestamp": utcnow().isoformat(),
        "payload": request.get_json(silent=True) or {},
    }
    logger.info(f"Webhook received from {source}", workflow_id=workflow.id)

    execution = build_engine().execute(workflow.id, trigger_data, org_id=workflow.org_id)
    return jsonify(execution_response(execution))
