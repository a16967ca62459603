# -*- coding: utf-8 -*-
"""
Permission gate for user-triggered endpoints.

Identity comes from a JWT bearer token (Flask-JWT-Extended): the subject is the
caller's email, the ``org_id`` and ``role`` claims scope and authorize the
request. Service-triggered entry points (the inbound webhook) do not use this.
"""
from dataclasses import dataclass, field
from functools import wraps
from typing import FrozenSet, Optional

from flask import g
from flask_jwt_extended import create_access_token, get_jwt, get_jwt_identity, verify_jwt_in_request

from opsflow.services.errors import ForbiddenError, UnauthorizedError
from opsflow.services.request_context import set_actor_context
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.auth')

ROLE_PERMISSIONS = {
    "owner": frozenset({
        "workflows:read", "workflows:write", "workflows:execute",
        "agents:read", "agents:write", "agents:execute", "agents:feedback",
        "tools:read", "tools:write", "tools:execute",
        "integrations:write",
        "monitors:read", "monitors:write", "monitors:run",
    }),
    "admin": frozenset({
        "workflows:read", "workflows:write", "workflows:execute",
        "agents:read", "agents:write", "agents:execute", "agents:feedback",
        "tools:read", "tools:write", "tools:execute",
        "integrations:write",
        "monitors:read", "monitors:write", "monitors:run",
    }),
    "member": frozenset({
        "workflows:read", "workflows:execute",
        "agents:read", "agents:execute", "agents:feedback",
        "tools:read", "tools:execute",
        "monitors:read",
    }),
    "viewer": frozenset({
        "workflows:read", "agents:read", "agents:feedback", "tools:read",
    }),
}


@dataclass(frozen=True)
class Actor:
    email: str
    org_id: str
    role: str = "member"
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def can(self, permission: str) -> bool:
        return permission in self.permissions


def resolve_actor() -> Optional[Actor]:
    """Resolve the caller from the request's JWT, or None when absent/invalid."""
    try:
        verify_jwt_in_request(optional=True)
    except Exception as e:
        logger.warning("Rejected bearer token", failure_reason=str(e))
        return None

    email = get_jwt_identity()
    if not email:
        return None

    claims = get_jwt()
    org_id = claims.get("org_id")
    if not org_id:
        return None

    role = claims.get("role", "member")
    return Actor(
        email=email,
        org_id=org_id,
        role=role,
        permissions=ROLE_PERMISSIONS.get(role, frozenset()),
    )


def require_actor(permission: Optional[str] = None):
    """Reject the request unless a caller resolves (and holds ``permission``)."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            actor = resolve_actor()
            if actor is None:
                raise UnauthorizedError()
            if permission and not actor.can(permission):
                logger.warning(
                    "Permission denied",
                    actor_email=actor.email,
                    role=actor.role,
                    permission=permission,
                )
                raise ForbiddenError(f"Role '{actor.role}' lacks permission '{permission}'")

            g.actor = actor
            set_actor_context(org_id=actor.org_id, actor_email=actor.email)
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def current_actor() -> Actor:
    return g.actor


def issue_token(email: str, org_id: str, role: str = "member") -> str:
    """Mint an access token for ``email`` scoped to ``org_id``."""
    return create_access_token(identity=email, additional_claims={"org_id": org_id, "role": role})
