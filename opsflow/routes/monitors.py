# -*- coding: utf-8 -*-
"""
Monitors Route

Proactive agent monitors: definition, listing and the check endpoint an
external scheduler calls.
"""

from flask import Blueprint, request, jsonify

from opsflow.database import db
from opsflow.schemas.monitor_schemas import MonitorCheckSchema, MonitorCreateSchema
from opsflow.infra.auth import current_actor, require_actor
from opsflow.services.collaborators import get_http_client, get_llm, get_notifier
from opsflow.services.errors import ForbiddenError
from opsflow.services.monitor_service import ProactiveMonitorService

monitors_bp = Blueprint("monitors", __name__)


def _service():
    return ProactiveMonitorService(db.session, get_llm(), notifier=get_notifier(),
                                   http_client=get_http_client())


@monitors_bp.route("/api/v1/monitors", methods=["POST"])
@require_actor("monitors:write")
def create_monitor():
    data = MonitorCreateSchema().load(request.get_json(silent=True) or {})
    monitor = _service().create_monitor(org_id=current_actor().org_id, **data)
    return jsonify(monitor.to_dict()), 201


@monitors_bp.route("/api/v1/monitors", methods=["GET"])
@require_actor("monitors:read")
def list_monitors():
    monitors = _service().list_monitors(current_actor().org_id)
    return jsonify({"monitors": [m.to_dict() for m in monitors], "total": len(monitors)})


@monitors_bp.route("/api/v1/monitors/check", methods=["POST"])
@require_actor("monitors:run")
def check_monitors():
    data = MonitorCheckSchema().load(request.get_json(silent=True) or {})
    if data["org_id"] != current_actor().org_id:
        raise ForbiddenError("Cannot check monitors of another organization")
    return jsonify(_service().check(data["org_id"]))
