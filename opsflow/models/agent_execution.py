# -*- coding: utf-8 -*-
"""
Agent Execution Model

One row per task handed to an agent: the generated plan, per-step progress,
the accumulated result and any user feedback.
"""
from __future__ import annotations

from sqlalchemy.orm import relationship

from opsflow.database import db
from opsflow.models.types import JSONDict, JSONList, new_id, utcnow, iso


class AgentExecution(db.Model):
    __tablename__ = "agent_executions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    agent_id = db.Column(db.String(36), db.ForeignKey("agents.id"), nullable=False, index=True)
    agent = relationship("Agent", back_populates="executions")
    org_id = db.Column(db.String(36), nullable=False, index=True)
    user_email = db.Column(db.String(255))

    task = db.Column(db.Text, nullable=False)
    # planning, executing, completed, failed
    status = db.Column(db.String(20), nullable=False, default="planning")
    plan = db.Column(JSONList)
    result = db.Column(JSONDict)
    error_message = db.Column(db.Text)
    execution_time_ms = db.Column(db.Integer)
    user_feedback = db.Column(JSONDict)
    # Bumped on every feedback write; guards the rating swap
    feedback_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def feedback_rating(self):
        return (self.user_feedback or {}).get("rating")

    def to_dict(self):
        return {
            "id": self.id,
            "execution_id": self.id,
            "agent_id": self.agent_id,
            "org_id": self.org_id,
            "user_email": self.user_email,
            "task": self.task,
            "status": self.status,
            "plan": self.plan or [],
            "result": self.result or {},
            "error_message": self.error_message,
            "execution_time_ms": self.execution_time_ms,
            "user_feedback": self.user_feedback or None,
            "created_at": iso(self.created_at),
        }
