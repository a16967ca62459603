# -*- coding: utf-8 -*-
"""
Workflow request schemas.

Provides Marshmallow schemas for validating workflow definitions, execution
requests and integrations.
"""
from marshmallow import Schema, fields, validate, EXCLUDE, INCLUDE

from opsflow.models.integration import INTEGRATION_TYPES
from opsflow.models.workflow import STEP_ACTIONS, TRIGGER_TYPES


class ErrorConfigSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    retry_enabled = fields.Bool(load_default=False)
    retry_count = fields.Int(validate=validate.Range(min=0, max=10))
    retry_delay_seconds = fields.Float(validate=validate.Range(min=0))
    continue_on_error = fields.Bool(load_default=False)


class StepSchema(Schema):
    """One workflow step. ``config`` is action-specific and passed through."""
    class Meta:
        unknown = INCLUDE

    id = fields.Str()
    name = fields.Str()
    action = fields.Str(validate=validate.OneOf(STEP_ACTIONS), allow_none=True)
    config = fields.Dict(load_default=dict)
    error_config = fields.Nested(ErrorConfigSchema)


class WorkflowCreateSchema(Schema):
    """Schema for creating a new workflow."""
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    description = fields.Str(allow_none=True)
    trigger_type = fields.Str(load_default="manual", validate=validate.OneOf(TRIGGER_TYPES))
    trigger_config = fields.Dict(load_default=dict)
    steps = fields.List(fields.Nested(StepSchema), load_default=list)
    is_active = fields.Bool(load_default=True)


class WorkflowExecuteSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    workflow_id = fields.Str(required=True, validate=validate.Length(min=1))
    trigger_data = fields.Dict(load_default=dict)
    resume_from_step = fields.Str(allow_none=True)


class IntegrationCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    type = fields.Str(required=True, validate=validate.OneOf(INTEGRATION_TYPES))
    config = fields.Dict(load_default=dict)
    status = fields.Str(load_default="active", validate=validate.OneOf(["active", "inactive"]))
