'''
Agent Statistics

Maintains the accumulator columns behind ``Agent.performance_metrics`` and
``AgentTool`` usage stats. Every change is one ``UPDATE ... SET col = col +
:delta`` so concurrent completions never lose an increment.
'''

from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from opsflow.models.agent import Agent
from opsflow.models.agent_execution import AgentExecution
from opsflow.models.agent_feedback import AgentFeedback
from opsflow.models.agent_tool import AgentTool
from opsflow.services.errors import NotFoundError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.agents.stats')

TREND_MIN_EXECUTIONS = 10


class AgentStatsService:
    def __init__(self, db: Session):
        self.db = db

    def _increment(self, model, row_id: str, **deltas) -> None:
        values = {name: getattr(model, name) + delta for name, delta in deltas.items() if delta}
        if not values:
            return
        try:
            self.db.execute(
                update(model)
                .where(model.id == row_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Failed to update {model.__tablename__} stats for {row_id}: {e}")

    def record_execution(self, agent_id: str, status: str, execution_time_ms: Optional[int]) -> None:
        """Count a finished (completed or failed) agent execution."""
        self._increment(
            Agent, agent_id,
            total_executions=1,
            completed_executions=1 if status == "completed" else 0,
            execution_time_total_ms=execution_time_ms or 0,
        )

    def record_feedback(self, agent_id: str, rating: Optional[int] = None,
                        previous_rating: Optional[int] = None) -> None:
        """
        Count one feedback submission.

        A rating on an execution that was already rated replaces the old one:
        the total moves by the difference and the rating count stays put.
        """
        deltas = {"feedback_count": 1}
        if rating is not None:
            if previous_rating is None:
                deltas["rating_total"] = rating
                deltas["rating_count"] = 1
            else:
                deltas["rating_total"] = rating - previous_rating
        self._increment(Agent, agent_id, **deltas)

    def record_tool_invocation(self, tool_id: str, succeeded: bool, duration_ms: int) -> None:
        self._increment(
            AgentTool, tool_id,
            usage_count=1,
            success_count=1 if succeeded else 0,
            execution_time_total_ms=duration_ms or 0,
        )

    def recompute(self, agent_id: str) -> Agent:
        """Rebuild an agent's accumulators from its full execution history."""
        agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent:
            raise NotFoundError("Agent not found")

        finished = self.db.query(AgentExecution).filter(
            AgentExecution.agent_id == agent_id,
            AgentExecution.status.in_(("completed", "failed")),
        ).all()
        ratings = [
            e.feedback_rating
            for e in self.db.query(AgentExecution).filter(AgentExecution.agent_id == agent_id)
            if e.feedback_rating is not None
        ]
        feedback_count = self.db.query(func.count(AgentFeedback.id)).filter(
            AgentFeedback.agent_id == agent_id
        ).scalar()

        agent.total_executions = len(finished)
        agent.completed_executions = sum(1 for e in finished if e.status == "completed")
        agent.execution_time_total_ms = float(sum(e.execution_time_ms or 0 for e in finished))
        agent.rating_total = float(sum(ratings))
        agent.rating_count = len(ratings)
        agent.feedback_count = feedback_count or 0
        self.db.commit()

        logger.info(f"Recomputed metrics for agent {agent_id}", **agent.performance_metrics)
        return agent

    def improvement_trend(self, agent_id: str) -> dict:
        """
        Compare the older and newer half of an agent's executions.

        Needs at least ``TREND_MIN_EXECUTIONS`` runs. Improvements are
        newer-minus-older: success rate in percentage points, rating in
        stars, speed as a percentage of the older average time.
        """
        executions = self.db.query(AgentExecution).filter(
            AgentExecution.agent_id == agent_id
        ).order_by(AgentExecution.created_at).all()
        if len(executions) < TREND_MIN_EXECUTIONS:
            return {
                "insufficient_data": True,
                "sample_size": len(executions),
                "message": f"Need at least {TREND_MIN_EXECUTIONS} executions for meaningful metrics",
            }

        middle = len(executions) // 2
        older, newer = executions[:middle], executions[middle:]

        def success_rate(group):
            return sum(1 for e in group if e.status == "completed") / len(group)

        def average(values):
            values = [v for v in values if v]
            return sum(values) / len(values) if values else 0.0

        older_success, newer_success = success_rate(older), success_rate(newer)
        older_time = average(e.execution_time_ms for e in older)
        newer_time = average(e.execution_time_ms for e in newer)
        speed = (older_time - newer_time) / older_time * 100 if older_time else 0.0

        return {
            "insufficient_data": False,
            "sample_size": len(executions),
            "success_rate_improvement": round((newer_success - older_success) * 100, 2),
            "rating_improvement": round(
                average(e.feedback_rating for e in newer) - average(e.feedback_rating for e in older), 2),
            "speed_improvement": round(speed, 2),
            "trend": "improving" if newer_success > older_success else "declining",
        }
