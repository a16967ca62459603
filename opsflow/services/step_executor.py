'''
Step Executor

Runs a single workflow step. Dispatch is purely on the step's action; the
caller (WorkflowEngine) owns ordering, persistence and the retry policy.
'''

import json
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from opsflow.services.entity_store import EntityStore
from opsflow.services.errors import NotFoundError, StepConfigurationError
from opsflow.services.integration_service import IntegrationService
from opsflow.services.templating import MISSING, interpolate, load_mapping, lookup, resolve
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.workflows.steps')

NOOP_RESULT = {"executed": True}

CONDITION_OPERATORS = ("eq", "ne", "gt", "gte", "lt", "lte", "contains", "exists")


def step_action(step: Mapping[str, Any]) -> Optional[str]:
    """``config.action`` wins over the top-level ``action``."""
    return (step.get("config") or {}).get("action") or step.get("action")


def evaluate_condition(config: Mapping[str, Any], context: Mapping[str, Any]) -> bool:
    operator = config.get("operator", "eq")
    if operator not in CONDITION_OPERATORS:
        raise StepConfigurationError(f"Unknown condition operator: {operator}")

    actual = lookup(context, config.get("field") or "")
    if operator == "exists":
        return actual is not MISSING and actual is not None
    if actual is MISSING:
        return False

    expected = resolve(config.get("value"), context)
    try:
        if operator == "eq":
            return actual == expected
        if operator == "ne":
            return actual != expected
        if operator == "contains":
            return expected in actual
        if operator == "gt":
            return actual > expected
        if operator == "gte":
            return actual >= expected
        if operator == "lt":
            return actual < expected
        return actual <= expected
    except TypeError:
        return False


class StepExecutor:
    """
    Executes one step against the org's collaborators.

    ``run_sub_workflow(workflow_id, trigger_data)`` is supplied by the engine
    and returns the finished child WorkflowExecution.
    """

    def __init__(self, db: Session, org_id: str, llm=None, notifier=None, http_client=None,
                 run_sub_workflow: Optional[Callable] = None):
        self.db = db
        self.org_id = org_id
        self.llm = llm
        self.notifier = notifier
        self.http_client = http_client
        self.run_sub_workflow = run_sub_workflow
        self.entities = EntityStore(db)
        self.integrations = IntegrationService(db, notifier=notifier)

        self._handlers: Dict[str, Callable] = {
            "send_notification": self._send_notification,
            "send_email": self._send_email,
            "create_query": self._create_query,
            "create_entity": self._create_entity,
            "update_entity": self._update_entity,
            "webhook": self._webhook,
            "integration_action": self._integration_action,
            "sub_workflow": self._sub_workflow,
            "condition": self._condition,
            "transform": self._transform,
            "delay": self._delay,
        }

    def execute_step(self, step: Mapping[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
        action = step_action(step)
        handler = self._handlers.get(action)
        if handler is None:
            logger.info(f"Step {step.get('id')} has no runnable action", action=action)
            return dict(NOOP_RESULT)
        return handler(step.get("config") or {}, context)

    def _send_notification(self, config, context):
        message = interpolate(config.get("message") or "Workflow notification", context)
        self.notifier.send_notification(message, channel=config.get("channel"))
        return {"sent": True}

    def _send_email(self, config, context):
        recipient = interpolate(config.get("recipient") or config.get("to") or "", context)
        if not recipient:
            return dict(NOOP_RESULT)
        self.notifier.send_email(
            recipient,
            interpolate(config.get("subject") or "Workflow Notification", context),
            interpolate(config.get("body") or config.get("message") or "", context),
        )
        return {"sent": True}

    def _create_query(self, config, context):
        prompt = config.get("query_prompt")
        if prompt:
            prompt = interpolate(prompt, context)
        else:
            prompt = "Analyze this data: " + json.dumps(context.get("trigger") or {}, default=str)

        answer = self.llm.generate(prompt)
        record = self.entities.create("Query", {
            "question": prompt,
            "response": answer,
            "status": "completed",
            "workflow_id": (context.get("workflow") or {}).get("id"),
        }, org_id=self.org_id)
        return {"created": True, "id": record.id, "response": answer}

    def _create_entity(self, config, context):
        entity_name = config.get("entity_name")
        if not entity_name:
            return dict(NOOP_RESULT)

        data = resolve(load_mapping(config.get("data_mapping")), context)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise StepConfigurationError("data_mapping must resolve to an object")

        record = self.entities.create(entity_name, data, org_id=self.org_id)
        return {"created": True, "id": record.id}

    def _update_entity(self, config, context):
        entity_name = config.get("entity_name")
        if not entity_name:
            return dict(NOOP_RESULT)

        entity_id = resolve(config.get("entity_id"), context)
        if not entity_id or not isinstance(entity_id, str):
            raise StepConfigurationError(f"update_entity on {entity_name} needs an entity_id")

        data = resolve(load_mapping(config.get("entity_data")), context) or {}
        try:
            record = self.entities.update(entity_name, entity_id, data, org_id=self.org_id)
        except NotFoundError as e:
            raise StepConfigurationError(e.message)
        return {"updated": True, "id": record.id}

    def _webhook(self, config, context):
        url = config.get("url")
        if not url:
            return dict(NOOP_RESULT)
        response = self.http_client.request(
            config.get("method") or "POST",
            interpolate(url, context),
            json_body=context.get("trigger") or {},
        )
        return {"status": response["status"], "ok": response["ok"]}

    def _integration_action(self, config, context):
        return self.integrations.execute_action(self.org_id, config, context)

    def _sub_workflow(self, config, context):
        sub_workflow_id = config.get("sub_workflow_id")
        if not sub_workflow_id:
            return dict(NOOP_RESULT)
        if self.run_sub_workflow is None:
            raise StepConfigurationError("Sub-workflows are not available in this context")

        mapping = config.get("data_mapping")
        if mapping:
            trigger_data = resolve(load_mapping(mapping), context)
        else:
            trigger_data = context.get("trigger") or {}

        child = self.run_sub_workflow(sub_workflow_id, trigger_data)
        return {
            "sub_workflow_id": sub_workflow_id,
            "sub_execution_id": child.id,
            "status": child.status,
        }

    def _condition(self, config, context):
        return {"condition_met": evaluate_condition(config, context)}

    def _transform(self, config, context):
        return {"output": resolve(config.get("template"), context)}

    def _delay(self, config, context):
        return dict(NOOP_RESULT)
