'''
Tool Service

Registers agent tools, runs tool invocations and recommends tools for a task.
A failing invocation is recorded on the ToolInvocation row, not raised.
'''

import time
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from opsflow.models.agent_tool import AgentTool, ToolInvocation, TOOL_FUNCTIONS
from opsflow.models.types import utcnow
from opsflow.services.agent_stats import AgentStatsService
from opsflow.services.entity_store import EntityStore
from opsflow.services.errors import NotFoundError, StepConfigurationError, ValidationError
from opsflow.services.metrics import get_metrics_service
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.tools')

RECOMMENDATION_SCHEMA = {
    "type": "object",
    "properties": {
        "recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "tool_id": {"type": "string"},
                    "confidence": {"type": "number"},
                    "reasoning": {"type": "string"},
                },
                "required": ["tool_id", "confidence", "reasoning"],
            },
        },
    },
    "required": ["recommendations"],
}


def _require(input: Dict[str, Any], *fields: str) -> None:
    missing = [field for field in fields if not input.get(field)]
    if missing:
        raise StepConfigurationError(f"Missing required fields: {', '.join(missing)}")


class ToolService:
    def __init__(self, db: Session, llm=None, notifier=None, http_client=None,
                 stats: Optional[AgentStatsService] = None):
        self.db = db
        self.llm = llm
        self.notifier = notifier
        self.http_client = http_client
        self.stats = stats or AgentStatsService(db)
        self.entities = EntityStore(db)

        self._functions: Dict[str, Callable] = {
            "send_email": self._send_email,
            "generate_report": self._generate_report,
            "entity_create": self._entity_create,
            "entity_update": self._entity_update,
            "entity_delete": self._entity_delete,
            "api_call": self._api_call,
            "web_search": self._web_search,
            "knowledge_query": self._knowledge_query,
        }

    def create_tool(self, org_id: str, name: str, function_name: str,
                    description: Optional[str] = None, category: str = "general") -> AgentTool:
        if function_name not in TOOL_FUNCTIONS:
            raise ValidationError(f"Unknown tool function: {function_name}")
        tool = AgentTool(org_id=org_id, name=name, function_name=function_name,
                         description=description, category=category)
        self.db.add(tool)
        self.db.commit()
        return tool

    def get_tool(self, tool_id: str, org_id: str) -> AgentTool:
        tool = self.db.query(AgentTool).filter(AgentTool.id == tool_id).first()
        if not tool or tool.org_id != org_id:
            raise NotFoundError("Tool not found")
        return tool

    def execute(self, tool_id: str, input: Dict[str, Any], org_id: str,
                agent_id: Optional[str] = None, execution_id: Optional[str] = None) -> ToolInvocation:
        tool = self.get_tool(tool_id, org_id)

        invocation = ToolInvocation(
            org_id=org_id,
            tool_id=tool.id,
            agent_id=agent_id,
            execution_id=execution_id,
            input=input or {},
            status="running",
        )
        self.db.add(invocation)
        self.db.commit()

        start = time.time()
        try:
            function = self._functions.get(tool.function_name)
            if function is None:
                raise StepConfigurationError(f"Unknown tool function: {tool.function_name}")
            output = function(input or {}, org_id)
            status, error_message = "completed", None
        except Exception as e:
            output = {"error": str(e)}
            status, error_message = "failed", str(e)
            logger.warning(f"Tool {tool.name} failed: {e}", tool_id=tool.id,
                           function=tool.function_name)

        invocation.output = output if isinstance(output, dict) else {"result": output}
        invocation.status = status
        invocation.error_message = error_message
        invocation.duration_ms = int((time.time() - start) * 1000)
        invocation.completed_at = utcnow()
        self.db.commit()

        logger.log_performance_event(f"tool.{tool.function_name}", invocation.duration_ms,
                                     status=status, tool_id=tool.id)
        metrics = get_metrics_service()
        if metrics:
            metrics.record_tool_invocation(tool.function_name, status)
        self.stats.record_tool_invocation(tool.id, status == "completed", invocation.duration_ms)
        return invocation

    def recommend(self, org_id: str, task: str) -> Dict[str, Any]:
        """Ask the LLM to rank the org's active tools for ``task``."""
        tools = self.db.query(AgentTool).filter(
            AgentTool.org_id == org_id,
            AgentTool.is_active.is_(True),
        ).all()
        if not tools:
            return {"task_description": task, "recommended_tools": [],
                    "total_available_tools": 0}

        descriptions = "\n".join(
            f"- {t.id}: {t.name} ({t.category}) - {t.description or 'no description'} - "
            f"Success rate: {t.success_rate:.0f}%"
            for t in tools
        )
        prompt = f"""You are a tool selection expert. Recommend the most appropriate tools for this task.

Task: {task}

Available Tools:
{descriptions}

Select 1-3 tools. Consider functionality match, historical success rate and category relevance.
Return them as a ranked list using the tool ids above."""

        response = self.llm.generate(prompt, response_schema=RECOMMENDATION_SCHEMA)
        by_id = {t.id: t for t in tools}
        recommended = []
        for rec in (response or {}).get("recommendations") or []:
            tool = by_id.get(rec.get("tool_id"))
            if tool:
                recommended.append({**rec, "tool": tool.to_dict()})

        return {
            "task_description": task,
            "recommended_tools": recommended,
            "total_available_tools": len(tools),
        }

    def _send_email(self, input, org_id):
        _require(input, "to", "subject", "body")
        self.notifier.send_email(input["to"], input["subject"], input["body"])
        return {"success": True, "message": "Email sent successfully",
                "sent_at": utcnow().isoformat()}

    def _generate_report(self, input, org_id):
        _require(input, "report_type")
        job = self.entities.create("BackgroundJob", {
            "type": "report_generation",
            "status": "queued",
            "priority": 5,
            "input": {
                "report_type": input["report_type"],
                "filters": input.get("filters"),
                "format": input.get("format", "pdf"),
            },
            "progress": 0,
        }, org_id=org_id)
        return {"success": True, "job_id": job.id, "message": "Report generation started"}

    def _entity_create(self, input, org_id):
        _require(input, "entity_type", "data")
        record = self.entities.create(input["entity_type"], input["data"], org_id=org_id)
        return {"success": True, "entity_id": record.id, "entity_type": input["entity_type"]}

    def _entity_update(self, input, org_id):
        _require(input, "entity_type", "entity_id", "updates")
        self.entities.update(input["entity_type"], input["entity_id"], input["updates"],
                             org_id=org_id)
        return {"success": True, "entity_id": input["entity_id"],
                "entity_type": input["entity_type"], "updated_at": utcnow().isoformat()}

    def _entity_delete(self, input, org_id):
        _require(input, "entity_type", "entity_id")
        self.entities.delete(input["entity_type"], input["entity_id"], org_id=org_id)
        return {"success": True, "entity_id": input["entity_id"],
                "entity_type": input["entity_type"], "deleted_at": utcnow().isoformat()}

    def _api_call(self, input, org_id):
        _require(input, "url")
        response = self.http_client.request(
            input.get("method") or "GET", input["url"],
            json_body=input.get("body"), headers=input.get("headers"),
        )
        return {"success": response["ok"], "status": response["status"], "data": response["data"]}

    def _web_search(self, input, org_id):
        _require(input, "query")
        return {"success": True,
                "results": self.llm.generate(input["query"], add_context_from_internet=True)}

    def _knowledge_query(self, input, org_id):
        _require(input, "query")
        items = [
            record for record in self.entities.filter("KnowledgeBase", org_id)
            if (record.data or {}).get("is_active", True)
        ]
        context = "\n\n".join(
            f"{(r.data or {}).get('title', '')}: {(r.data or {}).get('content', '')}" for r in items
        )
        answer = self.llm.generate(
            f"Based on the following knowledge base, answer this query: {input['query']}\n\n"
            f"Knowledge Base:\n{context}"
        )
        return {
            "success": True,
            "answer": answer,
            "sources": [{"id": r.id, "title": (r.data or {}).get("title")} for r in items],
        }
