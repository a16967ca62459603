# -*- coding: utf-8 -*-

"""
Workflow Execution Model

One row per trigger firing. ``step_results`` is rewritten in full after every
step so an interrupted run keeps every committed step.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from opsflow.database import db
from opsflow.models.types import JSONDict, JSONList, new_id, utcnow, iso


class WorkflowExecution(db.Model):
    __tablename__ = "workflow_executions"

    id = Column(String(36), primary_key=True, default=new_id)
    workflow_id = Column(String(36), ForeignKey("workflows.id"), nullable=False, index=True)
    workflow = relationship("Workflow", back_populates="executions")
    org_id = Column(String(36), nullable=False, index=True)

    # Set on sub-workflow children for drill-down from the parent step
    parent_execution_id = Column(String(36), ForeignKey("workflow_executions.id"), index=True)
    call_depth = Column(Integer, default=0, nullable=False)

    # running, completed, failed
    status = Column(String(20), nullable=False, default="running")
    trigger_data = Column(JSONDict)
    current_step = Column(String(100))
    step_results = Column(JSONList)
    error_message = Column(Text)

    started_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def to_dict(self):
        return {
            "id": self.id,
            "execution_id": self.id,
            "workflow_id": self.workflow_id,
            "org_id": self.org_id,
            "parent_execution_id": self.parent_execution_id,
            "call_depth": self.call_depth,
            "status": self.status,
            "trigger_data": self.trigger_data or {},
            "current_step": self.current_step,
            "step_results": self.step_results or [],
            "error_message": self.error_message,
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
        }

    def __repr__(self):
        return f"<WorkflowExecution(id={self.id}, status=\"{self.status}\")>"
