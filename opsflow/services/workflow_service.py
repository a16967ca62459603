'''
Workflow Service

Handles the business logic for managing org-scoped workflows and reading back
their executions.
'''

from typing import List, Optional

from sqlalchemy.orm import Session

from opsflow.models.workflow import Workflow
from opsflow.models.workflow_execution import WorkflowExecution
from opsflow.services.errors import NotFoundError
from opsflow.models.types import new_id


class WorkflowService:
    def __init__(self, db: Session):
        self.db = db

    def create_workflow(self, org_id: str, name: str, steps: Optional[list] = None,
                        description: Optional[str] = None, trigger_type: str = "manual",
                        trigger_config: Optional[dict] = None, is_active: bool = True) -> Workflow:
        # Steps without an id get one so results and resume can reference them
        steps = [dict(step, id=step.get("id") or new_id()) for step in (steps or [])]
        workflow = Workflow(
            org_id=org_id,
            name=name,
            description=description,
            trigger_type=trigger_type,
            trigger_config=trigger_config or {},
            steps=steps,
            is_active=is_active,
        )
        self.db.add(workflow)
        self.db.commit()
        self.db.refresh(workflow)
        return workflow

    def get_workflow(self, workflow_id: str, org_id: Optional[str] = None) -> Workflow:
        workflow = self.db.query(Workflow).filter(Workflow.id == workflow_id).first()
        if not workflow or (org_id is not None and workflow.org_id != org_id):
            raise NotFoundError("Workflow not found")
        return workflow

    def get_workflows_by_org(self, org_id: str) -> List[Workflow]:
        return self.db.query(Workflow).filter(Workflow.org_id == org_id).order_by(Workflow.created_at).all()

    def get_execution(self, execution_id: str, org_id: Optional[str] = None) -> WorkflowExecution:
        execution = self.db.query(WorkflowExecution).filter(WorkflowExecution.id == execution_id).first()
        if not execution or (org_id is not None and execution.org_id != org_id):
            raise NotFoundError("Workflow execution not found")
        return execution

    def get_executions(self, workflow_id: str, limit: int = 50) -> List[WorkflowExecution]:
        return self.db.query(WorkflowExecution).filter(
            WorkflowExecution.workflow_id == workflow_id
        ).order_by(WorkflowExecution.started_at.desc()).limit(limit).all()
