# -*- coding: utf-8 -*-
"""
Agent tools and their invocation history.
"""
from __future__ import annotations

from opsflow.database import db
from opsflow.models.types import JSONDict, new_id, utcnow, iso

TOOL_FUNCTIONS = (
    "send_email",
    "generate_report",
    "entity_create",
    "entity_update",
    "entity_delete",
    "api_call",
    "web_search",
    "knowledge_query",
)


class AgentTool(db.Model):
    __tablename__ = "agent_tools"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), default="general")
    function_name = db.Column(db.String(50), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Accumulators, atomically incremented after each invocation
    usage_count = db.Column(db.Integer, default=0, nullable=False)
    success_count = db.Column(db.Integer, default=0, nullable=False)
    execution_time_total_ms = db.Column(db.Float, default=0.0, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    @property
    def success_rate(self) -> float:
        return (self.success_count / self.usage_count * 100) if self.usage_count else 0.0

    @property
    def avg_execution_time_ms(self) -> float:
        return (self.execution_time_total_ms / self.usage_count) if self.usage_count else 0.0

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "function_name": self.function_name,
            "is_active": self.is_active,
            "usage_count": self.usage_count,
            "success_rate": self.success_rate,
            "avg_execution_time_ms": self.avg_execution_time_ms,
        }


class ToolInvocation(db.Model):
    __tablename__ = "tool_invocations"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), nullable=False, index=True)
    tool_id = db.Column(db.String(36), db.ForeignKey("agent_tools.id"), nullable=False, index=True)
    agent_id = db.Column(db.String(36))
    execution_id = db.Column(db.String(36))

    input = db.Column(JSONDict)
    output = db.Column(JSONDict)
    # running, completed, failed
    status = db.Column(db.String(20), nullable=False, default="running")
    error_message = db.Column(db.Text)
    duration_ms = db.Column(db.Integer)

    started_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            "invocation_id": self.id,
            "tool_id": self.tool_id,
            "status": self.status,
            "output": self.output or {},
            "duration_ms": self.duration_ms,
            "error": self.error_message,
            "completed_at": iso(self.completed_at),
        }
