'''
Integration Service

Manages per-org integrations and runs ``integration_action`` workflow steps
against them.
'''

from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from opsflow.models.integration import Integration, INTEGRATION_TYPES
from opsflow.services.errors import StepConfigurationError, ValidationError
from opsflow.services.templating import interpolate
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.integrations')


class IntegrationService:
    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier
        self._executors: Dict[str, Callable] = {
            "slack": self._execute_slack,
            "notion": self._execute_notion,
            "linear": self._execute_linear,
            "jira": self._execute_jira,
        }

    def create_integration(self, org_id: str, type: str, config: Optional[dict] = None,
                           status: str = "active") -> Integration:
        if type not in INTEGRATION_TYPES:
            raise ValidationError(f"Unsupported integration type: {type}")
        integration = Integration(org_id=org_id, type=type, config=config or {}, status=status)
        self.db.add(integration)
        self.db.commit()
        logger.info(f"Created {type} integration {integration.id}", org_id=org_id)
        return integration

    def get_active(self, org_id: str, type: str) -> Optional[Integration]:
        return self.db.query(Integration).filter(
            Integration.org_id == org_id,
            Integration.type == type,
            Integration.status == "active",
        ).first()

    def execute_action(self, org_id: str, step_config: Mapping[str, Any],
                       context: Mapping[str, Any]) -> Dict[str, Any]:
        integration_type = step_config.get("integration_type")
        if integration_type not in self._executors:
            raise StepConfigurationError(f"Unsupported integration type: {integration_type}")

        integration = self.get_active(org_id, integration_type)
        if not integration:
            raise StepConfigurationError(f"Integration {integration_type} not configured")

        action_id = step_config.get("action_id")
        parameters = step_config.get("parameters") or {}
        return self._executors[integration_type](integration, action_id, parameters, context)

    def _execute_slack(self, integration, action_id, parameters, context):
        message = interpolate(parameters.get("message"), context)
        channel = parameters.get("channel")
        webhook_url = (integration.config or {}).get("webhook_url")

        if webhook_url and self.notifier is not None:
            self.notifier.send_notification(message, channel=channel, webhook_url=webhook_url)
            status = "sent"
        else:
            logger.info(f"[SLACK] Posting to {channel}", text=message)
            status = "simulated"

        return {
            "platform": "slack",
            "action": action_id,
            "channel": channel,
            "message": message,
            "status": status,
        }

    def _execute_notion(self, integration, action_id, parameters, context):
        title = interpolate(parameters.get("title"), context)
        logger.info(f"[NOTION] Creating page: {title}")
        return {
            "platform": "notion",
            "action": action_id,
            "title": title,
            "content": interpolate(parameters.get("content"), context),
            "status": "simulated",
        }

    def _execute_linear(self, integration, action_id, parameters, context):
        title = interpolate(parameters.get("title"), context)
        logger.info(f"[LINEAR] Creating issue: {title}")
        return {
            "platform": "linear",
            "action": action_id,
            "title": title,
            "description": interpolate(parameters.get("description"), context),
            "priority": parameters.get("priority", "medium"),
            "status": "simulated",
        }

    def _execute_jira(self, integration, action_id, parameters, context):
        summary = interpolate(parameters.get("summary"), context)
        logger.info(f"[JIRA] Creating task: {summary}")
        return {
            "platform": "jira",
            "action": action_id,
            "summary": summary,
            "description": interpolate(parameters.get("description"), context),
            "status": "simulated",
        }
