'''
Feedback & Learning Service

Records user feedback on agent executions, keeps the agent's rating
statistics current, and distils feedback into reusable avoid/prefer patterns.

Learning is best effort: any failure while extracting or storing insights is
logged and the feedback submission still succeeds.
'''

from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from opsflow.models.agent import Agent
from opsflow.models.agent_execution import AgentExecution
from opsflow.models.agent_feedback import AgentFeedback, LearningInsight
from opsflow.models.agent_learning import AgentLearning
from opsflow.models.types import utcnow
from opsflow.services.agent_stats import AgentStatsService
from opsflow.services.errors import ConflictError, NotFoundError, ValidationError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.learning')

SIMILARITY_THRESHOLD = 0.7
INITIAL_CONFIDENCE = 0.5
CONFIDENCE_STEP = 0.2
MAX_FEEDBACK_SWAP_ATTEMPTS = 5

INSIGHT_SCHEMA = {
    "type": "object",
    "properties": {
        "key_learnings": {"type": "array", "items": {"type": "string"}},
        "avoid_patterns": {"type": "array", "items": {"type": "string"}},
        "prefer_patterns": {"type": "array", "items": {"type": "string"}},
        "applicable_contexts": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["key_learnings", "avoid_patterns", "prefer_patterns", "applicable_contexts"],
}

# Checked in order; first match wins
TASK_CONTEXT_KEYWORDS = (
    ("ticket_management", ("ticket", "issue")),
    ("communication", ("email", "message")),
    ("data_management", ("data", "record")),
    ("reporting", ("report", "analysis")),
    ("notifications", ("notification", "alert")),
)


def extract_task_context(task: Optional[str]) -> str:
    lower = (task or "").lower()
    for context, keywords in TASK_CONTEXT_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return context
    return "general_automation"


def word_similarity(first: Optional[str], second: Optional[str]) -> float:
    """Share of words in common, relative to the longer text."""
    words1 = (first or "").lower().split()
    words2 = (second or "").lower().split()
    if not words1 or not words2:
        return 0.0
    common = [word for word in words1 if word in words2]
    return len(common) / max(len(words1), len(words2))


class LearningService:
    def __init__(self, db: Session, llm, stats: Optional[AgentStatsService] = None):
        self.db = db
        self.llm = llm
        self.stats = stats or AgentStatsService(db)

    def submit_feedback(self, agent_id: str, execution_id: str, org_id: str,
                        user_email: Optional[str] = None, feedback_type: Optional[str] = None,
                        rating: Optional[int] = None, was_helpful: Optional[bool] = None,
                        corrections: Optional[List[dict]] = None,
                        comment: Optional[str] = None) -> AgentFeedback:
        """
        Store feedback for an execution, refresh stats, then try to learn from it.

        Raises:
            NotFoundError: unknown agent, or execution not run by that agent
            ValidationError: rating outside 1-5
            ConflictError: the execution kept changing under concurrent submissions
        """
        if rating is not None and not 1 <= rating <= 5:
            raise ValidationError("rating must be between 1 and 5")

        agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent or agent.org_id != org_id:
            raise NotFoundError("Agent not found")
        execution = self.db.query(AgentExecution).filter(AgentExecution.id == execution_id).first()
        if not execution or execution.agent_id != agent.id:
            raise NotFoundError("Execution not found")

        corrections = corrections or []
        previous_rating = self._swap_user_feedback(execution.id, {
            "rating": rating,
            "helpful": was_helpful,
            "comment": comment,
            "submitted_at": utcnow().isoformat(),
            **({"corrections": corrections} if corrections else {}),
        })

        feedback = AgentFeedback(
            org_id=org_id,
            agent_id=agent.id,
            execution_id=execution.id,
            user_email=user_email,
            feedback_type=feedback_type,
            rating=rating,
            was_helpful=was_helpful,
            corrections=corrections,
            comment=comment,
            task_context=execution.task,
            applied_to_learning=False,
        )
        self.db.add(feedback)
        self.db.commit()
        logger.info(f"Feedback {feedback.id} recorded for execution {execution.id}",
                    agent_id=agent.id, rating=rating, was_helpful=was_helpful)

        self.stats.record_feedback(agent.id, rating=rating, previous_rating=previous_rating)

        if agent.feedback_learning_enabled:
            self.apply_learning(agent, execution, feedback)
        return feedback

    def _swap_user_feedback(self, execution_id: str, user_feedback: Dict[str, Any]) -> Optional[int]:
        """
        Replace the execution's feedback and return the rating it replaced.

        The write only lands if ``feedback_version`` is unchanged since the
        read, so two submissions on one execution never both see the same
        previous rating. Does not commit.
        """
        for _ in range(MAX_FEEDBACK_SWAP_ATTEMPTS):
            current, version = self.db.execute(
                select(AgentExecution.user_feedback, AgentExecution.feedback_version)
                .where(AgentExecution.id == execution_id)
            ).one()
            previous_rating = (current or {}).get("rating")
            stored = dict(user_feedback)
            if stored["rating"] is None:
                stored["rating"] = previous_rating

            swapped = self.db.execute(
                update(AgentExecution)
                .where(AgentExecution.id == execution_id,
                       AgentExecution.feedback_version == version)
                .values(user_feedback=stored, feedback_version=version + 1)
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount == 1:
                return previous_rating
            logger.debug(f"Feedback on execution {execution_id} changed concurrently, re-reading")

        raise ConflictError("Execution feedback is being updated concurrently, try again")

    def apply_learning(self, agent: Agent, execution: AgentExecution,
                       feedback: AgentFeedback) -> Optional[LearningInsight]:
        """
        Extract an insight from one feedback record and store its patterns.

        Does nothing for feedback that was already applied. Returns None when
        extraction fails; the error is logged, never raised.
        """
        if feedback.applied_to_learning:
            return None

        feedback_id = feedback.id
        try:
            payload = self.extract_insight(execution, feedback)
            insight = LearningInsight(
                org_id=agent.org_id,
                agent_id=agent.id,
                execution_id=execution.id,
                feedback_id=feedback.id,
                insight=payload,
            )
            self.db.add(insight)
            self._store_patterns(agent, execution, feedback, payload)
            feedback.applied_to_learning = True
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Learning extraction failed for feedback {feedback_id}: {e}",
                             agent_id=agent.id)
            return None

        logger.info(f"Learning applied from feedback {feedback_id}", agent_id=agent.id,
                    learnings=len(payload.get("key_learnings") or []))
        return insight

    def extract_insight(self, execution: AgentExecution, feedback: AgentFeedback) -> Dict[str, Any]:
        corrections = "\n".join(
            f"- {c.get('original_action')} -> {c.get('corrected_action')} ({c.get('reason') or 'no reason given'})"
            for c in (feedback.corrections or [])
        ) or "none"
        plan = " -> ".join(step.get("description") or "" for step in (execution.plan or []))

        prompt = f"""Analyze this feedback on an AI agent execution and extract learnings.

Task: {execution.task}
Status: {execution.status}
Plan: {plan or 'none'}
Rating: {feedback.rating if feedback.rating is not None else 'not rated'}
Helpful: {feedback.was_helpful if feedback.was_helpful is not None else 'unknown'}
Comment: {feedback.comment or 'none'}
Corrections:
{corrections}

Extract key learnings, patterns the agent should AVOID, patterns it should PREFER,
and the contexts in which they apply. Be specific and actionable."""

        payload = self.llm.generate(prompt, response_schema=INSIGHT_SCHEMA)
        if not isinstance(payload, dict):
            raise ValidationError("Insight extraction returned no object")
        return {key: list(payload.get(key) or []) for key in INSIGHT_SCHEMA["properties"]}

    def _store_patterns(self, agent, execution, feedback, payload) -> None:
        task_context = extract_task_context(execution.task)
        conditions = payload.get("applicable_contexts") or []
        reasoning = feedback.comment or "; ".join(payload.get("key_learnings") or [])

        for correction in feedback.corrections or []:
            original = correction.get("original_action")
            if not original:
                continue
            self.store_pattern(agent, "avoid", task_context, original, None,
                               correction.get("reason") or reasoning, conditions, feedback.id)
            if correction.get("corrected_action"):
                self.store_pattern(agent, "prefer", task_context, original,
                                   correction["corrected_action"],
                                   correction.get("reason") or reasoning, conditions, feedback.id)

        for text in payload.get("avoid_patterns") or []:
            self.store_pattern(agent, "avoid", task_context, text, None, reasoning,
                               conditions, feedback.id)
        for text in payload.get("prefer_patterns") or []:
            self.store_pattern(agent, "prefer", task_context, text, text, reasoning,
                               conditions, feedback.id)

    def store_pattern(self, agent: Agent, pattern_type: str, task_context: str,
                      original_action: str, corrected_action: Optional[str],
                      reasoning: Optional[str], conditions: List[str],
                      feedback_id: str) -> AgentLearning:
        """Reinforce a similar existing pattern, or create a new one. Does not commit."""
        existing = self.db.query(AgentLearning).filter(
            AgentLearning.agent_id == agent.id,
            AgentLearning.pattern_type == pattern_type,
            AgentLearning.task_context == task_context,
        ).all()

        for pattern in existing:
            if word_similarity(pattern.original_action, original_action) > SIMILARITY_THRESHOLD:
                pattern.confidence_score = min(pattern.confidence_score + CONFIDENCE_STEP, 1.0)
                pattern.feedback_count = (pattern.feedback_count or 0) + 1
                pattern.source_feedback_ids = list(pattern.source_feedback_ids or []) + [feedback_id]
                pattern.last_validated = utcnow()
                pattern.reasoning = reasoning
                logger.debug(f"Pattern {pattern.id} reinforced",
                             confidence=pattern.confidence_score)
                return pattern

        pattern = AgentLearning(
            org_id=agent.org_id,
            agent_id=agent.id,
            pattern_type=pattern_type,
            task_context=task_context,
            original_action=original_action,
            corrected_action=corrected_action,
            reasoning=reasoning,
            applicable_conditions=list(conditions),
            confidence_score=INITIAL_CONFIDENCE,
            feedback_count=1,
            source_feedback_ids=[feedback_id],
            last_validated=utcnow(),
        )
        self.db.add(pattern)
        return pattern

    def process_pending_feedback(self, agent_id: str, org_id: str) -> Dict[str, Any]:
        """Apply learning to every feedback row of the agent not yet applied."""
        agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent or agent.org_id != org_id:
            raise NotFoundError("Agent not found")

        all_feedback = self.db.query(AgentFeedback).filter(
            AgentFeedback.agent_id == agent.id
        ).order_by(AgentFeedback.created_at).all()
        pending = [f for f in all_feedback if not f.applied_to_learning]
        summary = {
            "learning_enabled": agent.feedback_learning_enabled,
            "processed": 0,
            "failed": 0,
            "skipped": len(all_feedback) - len(pending),
        }
        if not agent.feedback_learning_enabled:
            return summary

        for feedback in pending:
            execution = self.db.query(AgentExecution).filter(
                AgentExecution.id == feedback.execution_id
            ).first()
            if execution and self.apply_learning(agent, execution, feedback):
                summary["processed"] += 1
            else:
                summary["failed"] += 1

        logger.info(f"Processed pending feedback for agent {agent.id}", **summary)
        return summary

    def get_patterns(self, agent_id: str, min_confidence: float = 0.0) -> List[AgentLearning]:
        return self.db.query(AgentLearning).filter(
            AgentLearning.agent_id == agent_id,
            AgentLearning.confidence_score >= min_confidence,
        ).order_by(AgentLearning.confidence_score.desc()).all()
