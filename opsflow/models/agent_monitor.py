# -*- coding: utf-8 -*-
"""
Agent Monitor Model

A standing instruction to run an agent when a condition over the org's
entity records holds, or on every scheduled check.
"""
from __future__ import annotations

from opsflow.database import db
from opsflow.models.types import JSONDict, new_id, utcnow, iso

MONITOR_TRIGGER_TYPES = (
    "schedule",
    "metric_threshold",
    "entity_pattern",
    "data_anomaly",
)

DEFAULT_COOLDOWN_MINUTES = 60


class AgentMonitor(db.Model):
    __tablename__ = "agent_monitors"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    org_id = db.Column(db.String(36), nullable=False, index=True)
    agent_id = db.Column(db.String(36), db.ForeignKey("agents.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    trigger_type = db.Column(db.String(30), nullable=False)
    # entity_name, field_name, threshold, condition, time_window
    trigger_config = db.Column(JSONDict)
    # {trigger_type}, {timestamp} and {context} are filled in per run
    agent_task_template = db.Column(db.Text, nullable=False)
    cooldown_minutes = db.Column(db.Integer, default=DEFAULT_COOLDOWN_MINUTES, nullable=False)
    # notify_on_trigger, notification_channels, recipients
    notification_config = db.Column(JSONDict)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    trigger_count = db.Column(db.Integer, default=0, nullable=False)
    last_triggered_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "agent_id": self.agent_id,
            "name": self.name,
            "description": self.description,
            "trigger_type": self.trigger_type,
            "trigger_config": self.trigger_config or {},
            "agent_task_template": self.agent_task_template,
            "cooldown_minutes": self.cooldown_minutes,
            "notification_config": self.notification_config or {},
            "is_active": self.is_active,
            "trigger_count": self.trigger_count or 0,
            "last_triggered_at": iso(self.last_triggered_at),
            "created_at": iso(self.created_at),
        }
