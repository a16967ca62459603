'''
Agent Planner

Turns a task into an ordered plan with one structured LLM call. The prompt
carries the agent's persona, its capabilities and any learned patterns the
agent is reasonably confident about.
'''

from typing import Any, Dict, List

from sqlalchemy.orm import Session

from opsflow.models.agent import Agent
from opsflow.models.agent_learning import AgentLearning
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.agents.planner')

PLAN_CAPABILITIES = ("web_search", "entity_crud", "api_calls", "llm")

MIN_PATTERN_CONFIDENCE = 0.4
MAX_PROMPT_PATTERNS = 10

PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "plan": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "step_number": {"type": "number"},
                    "description": {"type": "string"},
                    "action": {"type": "string"},
                    "capability": {"type": "string", "enum": list(PLAN_CAPABILITIES)},
                    "parameters": {"type": "object"},
                },
                "required": ["step_number", "description", "action", "capability"],
            },
        },
    },
    "required": ["plan"],
}


class AgentPlanner:
    def __init__(self, db: Session, llm):
        self.db = db
        self.llm = llm

    def learned_patterns(self, agent_id: str) -> List[AgentLearning]:
        return self.db.query(AgentLearning).filter(
            AgentLearning.agent_id == agent_id,
            AgentLearning.confidence_score >= MIN_PATTERN_CONFIDENCE,
        ).order_by(AgentLearning.confidence_score.desc()).limit(MAX_PROMPT_PATTERNS).all()

    def build_prompt(self, agent: Agent, task: str) -> str:
        persona = agent.persona or {}
        expertise = persona.get("expertise_areas") or []
        lines = [
            f"You are {agent.name}, a {persona.get('role') or 'helpful assistant'}.",
            "",
            f"Tone: {persona.get('tone') or 'professional'}",
            f"Expertise: {', '.join(expertise) or 'general'}",
        ]
        if persona.get("custom_instructions"):
            lines.append(f"\nInstructions: {persona['custom_instructions']}")
        lines += [
            "",
            f"Capabilities: {', '.join(agent.capabilities or []) or 'basic tasks'}",
        ]

        patterns = self.learned_patterns(agent.id)
        if patterns:
            lines += ["", "LEARNED GUIDANCE:"]
            for pattern in patterns:
                if pattern.pattern_type == "prefer":
                    text = pattern.corrected_action or pattern.original_action
                    lines.append(f"- PREFER: {text} (confidence {pattern.confidence_score:.1f})")
                else:
                    lines.append(f"- AVOID: {pattern.original_action} (confidence {pattern.confidence_score:.1f})")

        lines += [
            "",
            f"USER TASK: {task}",
            "",
            "Create a detailed step-by-step plan to complete this task. Break it down into "
            "3-7 specific, actionable steps. Each step should specify what action to take and "
            f"tag it with the capability it needs ({', '.join(PLAN_CAPABILITIES)}). Put any "
            "concrete inputs (entity_name, data, url, method, body) in parameters.",
        ]
        return "\n".join(lines)

    def plan(self, agent: Agent, task: str) -> List[Dict[str, Any]]:
        """
        Generate the plan for ``task``. Every step starts ``pending``.

        The plan is trusted as returned: no step-count or capability
        validation. A missing or empty plan yields no steps.
        """
        response = self.llm.generate(self.build_prompt(agent, task), response_schema=PLAN_SCHEMA)
        raw_steps = []
        if isinstance(response, dict):
            raw_steps = response.get("plan") or []

        plan = [{**step, "status": "pending"} for step in raw_steps if isinstance(step, dict)]
        logger.info(f"Planned {len(plan)} steps for agent {agent.id}", agent_id=agent.id)
        return plan
