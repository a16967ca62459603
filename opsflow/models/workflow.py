'''
Workflow Model

An org-scoped, ordered list of steps fired by a trigger. Step definitions are
embedded in the ``steps`` column so an execution always reads one consistent
snapshot of the list.
'''

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship

from opsflow.database import db
from opsflow.models.types import JSONDict, JSONList, new_id, utcnow, iso

TRIGGER_TYPES = (
    "manual",
    "webhook",
    "schedule",
    "entity_event",
    "copilot_query",
    "integration_event",
)

STEP_ACTIONS = (
    "send_notification",
    "send_email",
    "create_query",
    "create_entity",
    "update_entity",
    "webhook",
    "integration_action",
    "sub_workflow",
    "condition",
    "transform",
    "delay",
)


class Workflow(db.Model):
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=new_id)
    org_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)

    trigger_type = Column(String(32), nullable=False, default="manual")
    trigger_config = Column(JSONDict)
    steps = Column(JSONList)

    is_active = Column(Boolean, default=True, nullable=False)
    execution_count = Column(Integer, default=0, nullable=False)
    last_executed = Column(DateTime(timezone=True))

    executions = relationship("WorkflowExecution", back_populates="workflow",
                              cascade="all, delete-orphan", lazy="dynamic")

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def step_index(self, step_id: str) -> int:
        """Position of ``step_id`` in the step list, or -1."""
        for index, step in enumerate(self.steps or []):
            if step.get("id") == step_id:
                return index
        return -1

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "description": self.description,
            "trigger_type": self.trigger_type,
            "trigger_config": self.trigger_config or {},
            "steps": self.steps or [],
            "is_active": self.is_active,
            "execution_count": self.execution_count,
            "last_executed": iso(self.last_executed),
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Workflow(id={self.id}, name='{self.name}')>"
