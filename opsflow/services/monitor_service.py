'''
Proactive Monitor Service

Evaluates an org's active AgentMonitors and runs the monitored agent when a
monitor's condition holds. ``check`` is meant to be driven by an external
scheduler; ``schedule`` monitors fire on every check outside their cooldown.
'''

import json
import math
import re
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from opsflow.models.agent import Agent
from opsflow.models.agent_monitor import AgentMonitor, DEFAULT_COOLDOWN_MINUTES, MONITOR_TRIGGER_TYPES
from opsflow.models.types import as_utc, utcnow
from opsflow.services.agent_executor import AgentRunner
from opsflow.services.agent_service import AgentService
from opsflow.services.entity_store import EntityStore
from opsflow.services.errors import NotificationError, ValidationError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.monitors')

PROACTIVE_USER = "system@proactive"
ANOMALY_MIN_RECORDS = 10
ANOMALY_STDDEV_LIMIT = 2
DEFAULT_TIME_WINDOW_HOURS = 24

TRIGGER_REASONS = {
    "schedule": "Scheduled check",
    "metric_threshold": "Metric threshold exceeded",
    "entity_pattern": "Entity pattern matched",
    "data_anomaly": "Data anomaly detected",
}

_TIME_WINDOW = re.compile(r"^(\d+)([hd])$")
_COUNT_CONDITION = re.compile(r"count\s*>\s*(\d+)")


def parse_time_window(value: Optional[str]) -> int:
    """``"12h"`` or ``"7d"`` in hours; anything else is 24."""
    match = _TIME_WINDOW.match(value or "")
    if not match:
        return DEFAULT_TIME_WINDOW_HOURS
    amount = int(match.group(1))
    return amount if match.group(2) == "h" else amount * 24


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def render_task(template: str, trigger_type: str, context: Dict[str, Any]) -> str:
    return (template
            .replace("{trigger_type}", trigger_type)
            .replace("{timestamp}", utcnow().isoformat())
            .replace("{context}", json.dumps(context, default=str)))


class ProactiveMonitorService:
    def __init__(self, db: Session, llm=None, notifier=None, http_client=None,
                 runner: Optional[AgentRunner] = None):
        self.db = db
        self.notifier = notifier
        self.runner = runner or AgentRunner(db, llm, http_client=http_client)
        self.entities = EntityStore(db)

        self._conditions: Dict[str, Callable[[AgentMonitor], bool]] = {
            "schedule": lambda monitor: True,
            "metric_threshold": self._metric_threshold,
            "entity_pattern": self._entity_pattern,
            "data_anomaly": self._data_anomaly,
        }

    def create_monitor(self, org_id: str, agent_id: str, name: str, trigger_type: str,
                       agent_task_template: str, trigger_config: Optional[dict] = None,
                       cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES,
                       notification_config: Optional[dict] = None,
                       description: Optional[str] = None, is_active: bool = True) -> AgentMonitor:
        if trigger_type not in MONITOR_TRIGGER_TYPES:
            raise ValidationError(f"Unknown trigger_type: {trigger_type}")
        AgentService(self.db).get_agent(agent_id, org_id)

        monitor = AgentMonitor(
            org_id=org_id,
            agent_id=agent_id,
            name=name,
            description=description,
            trigger_type=trigger_type,
            trigger_config=trigger_config or {},
            agent_task_template=agent_task_template,
            cooldown_minutes=cooldown_minutes,
            notification_config=notification_config or {},
            is_active=is_active,
        )
        self.db.add(monitor)
        self.db.commit()
        logger.info(f"Created monitor {monitor.id}", org_id=org_id, trigger_type=trigger_type)
        return monitor

    def list_monitors(self, org_id: str) -> List[AgentMonitor]:
        return self.db.query(AgentMonitor).filter(
            AgentMonitor.org_id == org_id
        ).order_by(AgentMonitor.created_at).all()

    def check(self, org_id: str) -> Dict[str, Any]:
        """
        Evaluate every active monitor of ``org_id`` once.

        A monitor triggered within its ``cooldown_minutes`` is skipped. A
        monitor whose agent no longer exists is skipped with a warning.

        Returns:
            ``{monitors_checked, triggers_activated, results}`` where each
            result names the monitor and the agent execution it started.
        """
        monitors = self.db.query(AgentMonitor).filter(
            AgentMonitor.org_id == org_id,
            AgentMonitor.is_active.is_(True),
        ).order_by(AgentMonitor.created_at).all()

        results = []
        for monitor in monitors:
            if self.in_cooldown(monitor):
                logger.debug(f"Monitor {monitor.id} is cooling down")
                continue
            if not self._conditions[monitor.trigger_type](monitor):
                continue

            agent = self.db.query(Agent).filter(Agent.id == monitor.agent_id).first()
            if not agent or agent.org_id != org_id:
                logger.warning(f"Monitor {monitor.id} points at a missing agent",
                               agent_id=monitor.agent_id)
                continue
            results.append(self._trigger(monitor, agent))

        summary = {
            "monitors_checked": len(monitors),
            "triggers_activated": len(results),
            "results": results,
        }
        logger.info(f"Checked monitors for org {org_id}", org_id=org_id,
                    monitors_checked=summary["monitors_checked"],
                    triggers_activated=summary["triggers_activated"])
        return summary

    def in_cooldown(self, monitor: AgentMonitor) -> bool:
        last = as_utc(monitor.last_triggered_at)
        if last is None:
            return False
        cooldown = timedelta(minutes=monitor.cooldown_minutes or DEFAULT_COOLDOWN_MINUTES)
        return utcnow() - last < cooldown

    def _trigger(self, monitor: AgentMonitor, agent: Agent) -> Dict[str, Any]:
        context = {"trigger_reason": TRIGGER_REASONS[monitor.trigger_type]}
        task = render_task(monitor.agent_task_template, monitor.trigger_type, context)

        execution = self.runner.run(agent.id, task, monitor.org_id, user_email=PROACTIVE_USER)

        monitor.last_triggered_at = utcnow()
        monitor.trigger_count = (monitor.trigger_count or 0) + 1
        self.db.commit()
        logger.info(f"Monitor {monitor.id} triggered agent {agent.id}",
                    execution_id=execution.id, execution_status=execution.status,
                    trigger_type=monitor.trigger_type)

        notification = monitor.notification_config or {}
        if notification.get("notify_on_trigger"):
            self._notify(monitor, agent, execution.status)

        return {
            "monitor_id": monitor.id,
            "monitor_name": monitor.name,
            "agent_name": agent.name,
            "triggered": True,
            "execution_id": execution.id,
            "execution_status": execution.status,
            "context": context,
        }

    def _notify(self, monitor: AgentMonitor, agent: Agent, status: str) -> None:
        config = monitor.notification_config or {}
        subject = f'Agent "{agent.name}" Triggered Proactively'
        body = (f'Your proactive monitor "{monitor.name}" has triggered the agent.\n\n'
                f"Trigger Type: {monitor.trigger_type}\n"
                f"Agent: {agent.name}\n"
                f"Execution status: {status}\n"
                f"Time: {utcnow().isoformat()}")

        for channel in config.get("notification_channels") or ["email"]:
            try:
                if channel == "email":
                    for recipient in config.get("recipients") or []:
                        self.notifier.send_email(recipient, subject, body)
                elif channel == "slack":
                    self.notifier.send_notification(f"{subject}\n{body}",
                                                    channel=config.get("slack_channel"))
            except NotificationError as e:
                logger.warning(f"Monitor {monitor.id} notification via {channel} failed: {e}")

    def _metric_threshold(self, monitor: AgentMonitor) -> bool:
        config = monitor.trigger_config or {}
        entity_name, field_name = config.get("entity_name"), config.get("field_name")
        threshold = config.get("threshold")
        if not entity_name or not field_name or not _is_number(threshold):
            return False

        records = self.entities.filter(entity_name, monitor.org_id)
        if not records:
            return False
        value = (records[-1].data or {}).get(field_name)
        if not _is_number(value):
            return False

        condition = config.get("condition")
        if condition == "greater_than":
            return value > threshold
        if condition == "less_than":
            return value < threshold
        return False

    def _entity_pattern(self, monitor: AgentMonitor) -> bool:
        config = monitor.trigger_config or {}
        entity_name = config.get("entity_name")
        match = _COUNT_CONDITION.search(config.get("condition") or "")
        if not entity_name or not match:
            return False
        return len(self.entities.filter(entity_name, monitor.org_id)) > int(match.group(1))

    def _data_anomaly(self, monitor: AgentMonitor) -> bool:
        """The newest value sits more than two standard deviations from the window mean."""
        config = monitor.trigger_config or {}
        entity_name, field_name = config.get("entity_name"), config.get("field_name")
        if not entity_name or not field_name:
            return False

        cutoff = utcnow() - timedelta(hours=parse_time_window(config.get("time_window")))
        records = [
            r for r in self.entities.filter(entity_name, monitor.org_id)
            if as_utc(r.created_at) >= cutoff
        ]
        if len(records) < ANOMALY_MIN_RECORDS:
            return False

        values = [(r.data or {}).get(field_name) for r in records]
        values = [v for v in values if _is_number(v)]
        if not values:
            return False

        mean = sum(values) / len(values)
        stddev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
        if stddev == 0:
            return False
        return abs(values[-1] - mean) / stddev > ANOMALY_STDDEV_LIMIT
