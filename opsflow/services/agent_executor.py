'''
Agent Runner

Executes an agent task: plan, then run the plan steps strictly in order. The
first failing step aborts the run. Statistics are refreshed whether the run
completes or fails.
'''

import json
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from opsflow.models.agent import Agent
from opsflow.models.agent_execution import AgentExecution
from opsflow.services.agent_planner import AgentPlanner
from opsflow.services.agent_stats import AgentStatsService
from opsflow.services.entity_store import EntityStore
from opsflow.services.errors import NotFoundError
from opsflow.services.metrics import get_metrics_service
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.agents')

EMPTY_RESULTS: Mapping[str, Any] = MappingProxyType({})


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


class AgentRunner:
    def __init__(self, db: Session, llm, http_client=None,
                 stats: Optional[AgentStatsService] = None,
                 planner: Optional[AgentPlanner] = None):
        self.db = db
        self.llm = llm
        self.http_client = http_client
        self.stats = stats or AgentStatsService(db)
        self.planner = planner or AgentPlanner(db, llm)
        self.entities = EntityStore(db)

        self._handlers: Dict[str, Callable] = {
            "web_search": self._web_search,
            "entity_crud": self._entity_operation,
            "api_calls": self._api_call,
            "llm": self._llm_step,
        }

    def run(self, agent_id: str, task: str, org_id: str,
            user_email: Optional[str] = None) -> AgentExecution:
        """
        Plan and execute ``task`` with the given agent.

        Returns:
            The finished AgentExecution; a failed run is returned, not raised.

        Raises:
            NotFoundError: unknown agent or one outside ``org_id``
        """
        agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent or agent.org_id != org_id:
            raise NotFoundError("Agent not found")

        start = time.time()
        execution = AgentExecution(
            agent_id=agent.id,
            org_id=org_id,
            user_email=user_email,
            task=task,
            status="planning",
        )
        self.db.add(execution)
        self.db.commit()
        logger.log_execution_event('agent', execution.id, 'planning', agent_id=agent.id)

        try:
            plan = self.planner.plan(agent, task)
        except Exception as e:
            logger.exception(f"Planning failed for agent execution {execution.id}: {e}")
            return self._finish(execution, "failed", start, error_message=str(e))

        execution.plan = plan
        execution.status = "executing"
        self.db.commit()
        logger.log_execution_event('agent', execution.id, 'executing', steps=len(plan))

        executed_plan = []
        results = EMPTY_RESULTS

        for step in plan:
            step_start = time.time()
            executed_plan.append({**step, "status": "running"})
            self._save_plan(execution, executed_plan)

            try:
                step_result = self.dispatch(agent, step, results)
            except Exception as e:
                executed_plan[-1] = {
                    **step,
                    "status": "failed",
                    "duration_ms": _elapsed_ms(step_start),
                    "error": str(e),
                }
                self._save_plan(execution, executed_plan)
                logger.log_step_event(execution.id, f"step_{step.get('step_number')}", 'failed',
                                      _elapsed_ms(step_start), error=str(e))
                return self._finish(execution, "failed", start, error_message=str(e),
                                    results=results)

            executed_plan[-1] = {
                **step,
                "status": "completed",
                "duration_ms": _elapsed_ms(step_start),
                "result": step_result,
            }
            self._save_plan(execution, executed_plan)
            results = MappingProxyType({**results, f"step_{step.get('step_number')}": step_result})
            logger.log_step_event(execution.id, f"step_{step.get('step_number')}", 'completed',
                                  _elapsed_ms(step_start))

        return self._finish(execution, "completed", start, results=results)

    def select_capability(self, agent: Agent, step: Mapping[str, Any]) -> str:
        """
        Pick the handler for a plan step.

        An explicit ``capability`` tag wins when the agent has it (``llm`` is
        always available). Otherwise the action text decides.
        """
        tagged = step.get("capability")
        if tagged == "llm" or (tagged in self._handlers and agent.has_capability(tagged)):
            return tagged

        action = (step.get("action") or "").lower()
        if agent.has_capability("web_search") and "search" in action:
            return "web_search"
        if agent.has_capability("entity_crud") and "create" in action:
            return "entity_crud"
        if agent.has_capability("api_calls"):
            return "api_calls"
        return "llm"

    def dispatch(self, agent: Agent, step: Mapping[str, Any], results: Mapping[str, Any]) -> Any:
        handler = self._handlers[self.select_capability(agent, step)]
        return handler(agent, step, results)

    def _web_search(self, agent, step, results):
        return self.llm.generate(step.get("description") or "", add_context_from_internet=True)

    def _entity_operation(self, agent, step, results):
        parameters = step.get("parameters") or {}
        entity_name = parameters.get("entity_name")
        data = parameters.get("data")
        if not entity_name or not isinstance(data, dict):
            return {"message": "Entity operation executed"}
        record = self.entities.create(entity_name, data, org_id=agent.org_id)
        return {"created": True, "id": record.id, "entity_name": entity_name}

    def _api_call(self, agent, step, results):
        parameters = step.get("parameters") or {}
        url = parameters.get("url")
        if not url or self.http_client is None:
            return {"message": "API call executed"}
        return self.http_client.request(
            parameters.get("method") or "GET", url, json_body=parameters.get("body")
        )

    def _llm_step(self, agent, step, results):
        return self.llm.generate(
            f"Execute this step: {step.get('description') or ''}\n"
            f"Previous context: {json.dumps(dict(results), default=str)}"
        )

    def _save_plan(self, execution: AgentExecution, executed_plan: list) -> None:
        execution.plan = list(executed_plan)
        self.db.commit()

    def _finish(self, execution: AgentExecution, status: str, start: float,
                error_message: Optional[str] = None,
                results: Mapping[str, Any] = EMPTY_RESULTS) -> AgentExecution:
        execution.status = status
        execution.error_message = error_message
        execution.result = dict(results)
        execution.execution_time_ms = _elapsed_ms(start)
        self.db.commit()

        logger.log_execution_event(
            'agent', execution.id, status,
            agent_id=execution.agent_id,
            execution_time_ms=execution.execution_time_ms,
            error_message=error_message,
        )
        metrics = get_metrics_service()
        if metrics:
            metrics.record_agent_execution(status)

        self.stats.record_execution(execution.agent_id, status, execution.execution_time_ms)
        return execution
