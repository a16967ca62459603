'''
Agent Service

CRUD for org-scoped agents and lookups of their executions.
'''

from typing import Optional

from sqlalchemy.orm import Session

from opsflow.models.agent import Agent
from opsflow.models.agent_execution import AgentExecution
from opsflow.services.errors import NotFoundError


class AgentService:
    def __init__(self, db: Session):
        self.db = db

    def create_agent(self, org_id: str, name: str, description: Optional[str] = None,
                     persona: Optional[dict] = None, capabilities: Optional[list] = None,
                     learning_config: Optional[dict] = None) -> Agent:
        agent = Agent(
            org_id=org_id,
            name=name,
            description=description,
            persona=persona or {},
            capabilities=list(capabilities or []),
            learning_config=learning_config or {"enable_feedback_learning": True},
        )
        self.db.add(agent)
        self.db.commit()
        self.db.refresh(agent)
        return agent

    def get_agent(self, agent_id: str, org_id: str) -> Agent:
        agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent or agent.org_id != org_id:
            raise NotFoundError("Agent not found")
        return agent

    def get_execution(self, execution_id: str, org_id: str) -> AgentExecution:
        execution = self.db.query(AgentExecution).filter(AgentExecution.id == execution_id).first()
        if not execution or execution.org_id != org_id:
            raise NotFoundError("Execution not found")
        return execution
