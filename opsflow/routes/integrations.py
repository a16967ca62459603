# -*- coding: utf-8 -*-
from flask import Blueprint, request, jsonify

from opsflow.database import db
from opsflow.schemas.workflow_schemas import IntegrationCreateSchema
from opsflow.infra.auth import current_actor, require_actor
from opsflow.services.collaborators import get_notifier
from opsflow.services.integration_service import IntegrationService

integrations_bp = Blueprint("integrations", __name__)


@integrations_bp.route("/api/v1/integrations", methods=["POST"])
@require_actor("integrations:write")
def create_integration():
    data = IntegrationCreateSchema().load(request.get_json(silent=True) or {})
    integration = IntegrationService(db.session, notifier=get_notifier()).create_integration(
        current_actor().org_id, data["type"], config=data["config"], status=data["status"]
    )
    return jsonify(integration.to_dict()), 201
