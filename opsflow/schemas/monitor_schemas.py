# -*- coding: utf-8 -*-
"""
Proactive Monitor Request Schemas.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

from opsflow.models.agent_monitor import DEFAULT_COOLDOWN_MINUTES, MONITOR_TRIGGER_TYPES


class NotificationConfigSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    notify_on_trigger = fields.Bool(load_default=False)
    notification_channels = fields.List(
        fields.Str(validate=validate.OneOf(("email", "slack"))), load_default=lambda: ["email"])
    recipients = fields.List(fields.Email(), load_default=list)
    slack_channel = fields.Str(allow_none=True)


class MonitorCreateSchema(Schema):
    """Schema for creating a proactive agent monitor."""
    class Meta:
        unknown = EXCLUDE

    agent_id = fields.Str(required=True, validate=validate.Length(min=1))
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(allow_none=True)
    trigger_type = fields.Str(required=True, validate=validate.OneOf(MONITOR_TRIGGER_TYPES))
    trigger_config = fields.Dict(load_default=dict)
    agent_task_template = fields.Str(required=True, validate=validate.Length(min=1))
    cooldown_minutes = fields.Int(load_default=DEFAULT_COOLDOWN_MINUTES, validate=validate.Range(min=1))
    notification_config = fields.Nested(NotificationConfigSchema, load_default=dict)
    is_active = fields.Bool(load_default=True)


class MonitorCheckSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    org_id = fields.Str(required=True, validate=validate.Length(min=1))
