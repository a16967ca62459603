# -*- coding: utf-8 -*-
# opsflow/models/agent.py
from __future__ import annotations

from sqlalchemy.orm import relationship

from opsflow.database import db
from opsflow.models.types import JSONDict, JSONList, new_id, utcnow, iso

CAPABILITIES = (
    "web_search",
    "entity_crud",
    "api_calls",
    "data_analysis",
    "email",
    "multi_step_planning",
)


class Agent(db.Model):
    """Org-scoped AI persona plus the capabilities it may use."""
    __tablename__ = "agents"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    persona = db.Column(JSONDict)          # role, tone, expertise_areas, custom_instructions
    capabilities = db.Column(JSONList)     # list[str], see CAPABILITIES
    learning_config = db.Column(JSONDict)  # enable_feedback_learning

    # Accumulators. Only ever changed through atomic column increments so
    # concurrent completions cannot overwrite each other.
    total_executions = db.Column(db.Integer, default=0, nullable=False)
    completed_executions = db.Column(db.Integer, default=0, nullable=False)
    execution_time_total_ms = db.Column(db.Float, default=0.0, nullable=False)
    rating_total = db.Column(db.Float, default=0.0, nullable=False)
    rating_count = db.Column(db.Integer, default=0, nullable=False)
    feedback_count = db.Column(db.Integer, default=0, nullable=False)

    executions = relationship("AgentExecution", back_populates="agent",
                              cascade="all, delete-orphan", lazy="dynamic")

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def feedback_learning_enabled(self) -> bool:
        return (self.learning_config or {}).get("enable_feedback_learning") is not False

    def has_capability(self, capability: str) -> bool:
        return capability in (self.capabilities or [])

    @property
    def performance_metrics(self) -> dict:
        total = self.total_executions or 0
        ratings = self.rating_count or 0
        return {
            "total_executions": total,
            "success_rate": (self.completed_executions / total * 100) if total else 0.0,
            "avg_execution_time_ms": (self.execution_time_total_ms / total) if total else 0.0,
            "user_satisfaction_avg": (self.rating_total / ratings) if ratings else 0.0,
            "feedback_count": self.feedback_count or 0,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "description": self.description,
            "persona": self.persona or {},
            "capabilities": self.capabilities or [],
            "learning_config": self.learning_config or {},
            "performance_metrics": self.performance_metrics,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Agent {self.name} ({self.id})>"
