from __future__ import annotations

from opsflow.database import db
from opsflow.models.types import JSONList, new_id, utcnow, iso


class AgentLearning(db.Model):
    """An avoid/prefer pattern distilled from feedback, reinforced over time."""
    __tablename__ = "agent_learning"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), nullable=False, index=True)
    agent_id = db.Column(db.String(36), db.ForeignKey("agents.id"), nullable=False, index=True)

    pattern_type = db.Column(db.String(10), nullable=False)  # avoid, prefer
    task_context = db.Column(db.String(50), nullable=False)
    original_action = db.Column(db.Text)
    corrected_action = db.Column(db.Text)
    reasoning = db.Column(db.Text)
    applicable_conditions = db.Column(JSONList)

    confidence_score = db.Column(db.Float, default=0.5, nullable=False)
    feedback_count = db.Column(db.Integer, default=1, nullable=False)
    source_feedback_ids = db.Column(JSONList)
    last_validated = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "pattern_type": self.pattern_type,
            "task_context": self.task_context,
            "original_action": self.original_action,
            "corrected_action": self.corrected_action,
            "reasoning": self.reasoning,
            "applicable_conditions": self.applicable_conditions or [],
            "confidence_score": self.confidence_score,
            "feedback_count": self.feedback_count,
            "last_validated": iso(self.last_validated),
        }
