# -*- coding: utf-8 -*-
"""
Agent Request Schemas.

Provides Marshmallow schemas for agent creation, execution and feedback.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

from opsflow.models.agent import CAPABILITIES


class PersonaSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    role = fields.Str()
    tone = fields.Str()
    expertise_areas = fields.List(fields.Str())
    custom_instructions = fields.Str(allow_none=True)


class AgentCreateSchema(Schema):
    """Schema for creating a new agent."""
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(allow_none=True)
    persona = fields.Nested(PersonaSchema, load_default=dict)
    capabilities = fields.List(fields.Str(validate=validate.OneOf(CAPABILITIES)), load_default=list)
    learning_config = fields.Dict(load_default=lambda: {"enable_feedback_learning": True})


class AgentExecuteSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    agent_id = fields.Str(required=True, validate=validate.Length(min=1))
    task = fields.Str(required=True, validate=validate.Length(min=1))
    org_id = fields.Str(required=True, validate=validate.Length(min=1))


class CorrectionSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    step_number = fields.Int(allow_none=True)
    original_action = fields.Str(required=True)
    corrected_action = fields.Str(allow_none=True)
    reason = fields.Str(allow_none=True)


class FeedbackSchema(Schema):
    """Schema for feedback on an agent execution."""
    class Meta:
        unknown = EXCLUDE

    execution_id = fields.Str(required=True, validate=validate.Length(min=1))
    feedback_type = fields.Str(load_default="rating")
    rating = fields.Int(allow_none=True, validate=validate.Range(min=1, max=5))
    was_helpful = fields.Bool(allow_none=True)
    corrections = fields.List(fields.Nested(CorrectionSchema), load_default=list)
    comment = fields.Str(allow_none=True)
