# -*- coding: utf-8 -*-
"""
Agent feedback and the learning-insight audit trail.

``applied_to_learning`` is tracked per feedback row: submitting twice for the
same execution creates two rows, each processed at most once.
"""
from __future__ import annotations

from opsflow.database import db
from opsflow.models.types import JSONDict, JSONList, new_id, utcnow, iso


class AgentFeedback(db.Model):
    __tablename__ = "agent_feedback"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), nullable=False, index=True)
    agent_id = db.Column(db.String(36), db.ForeignKey("agents.id"), nullable=False, index=True)
    execution_id = db.Column(db.String(36), db.ForeignKey("agent_executions.id"), nullable=False, index=True)
    user_email = db.Column(db.String(255))

    feedback_type = db.Column(db.String(50))
    rating = db.Column(db.Integer)
    was_helpful = db.Column(db.Boolean)
    corrections = db.Column(JSONList)
    comment = db.Column(db.Text)
    task_context = db.Column(db.Text)

    applied_to_learning = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "execution_id": self.execution_id,
            "feedback_type": self.feedback_type,
            "rating": self.rating,
            "was_helpful": self.was_helpful,
            "corrections": self.corrections or [],
            "comment": self.comment,
            "applied_to_learning": self.applied_to_learning,
            "created_at": iso(self.created_at),
        }


class LearningInsight(db.Model):
    """Raw output of one insight-extraction call, kept for audit."""
    __tablename__ = "learning_insights"
    __table_args__ = (
        db.UniqueConstraint("execution_id", "feedback_id", name="uq_learning_insight_execution_feedback"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), nullable=False, index=True)
    agent_id = db.Column(db.String(36), db.ForeignKey("agents.id"), nullable=False, index=True)
    execution_id = db.Column(db.String(36), nullable=False)
    feedback_id = db.Column(db.String(36), db.ForeignKey("agent_feedback.id"), nullable=False)
    insight = db.Column(JSONDict)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "feedback_id": self.feedback_id,
            "insight": self.insight or {},
            "created_at": iso(self.created_at),
        }
