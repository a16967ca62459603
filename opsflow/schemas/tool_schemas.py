# -*- coding: utf-8 -*-
from marshmallow import Schema, fields, validate, EXCLUDE

from opsflow.models.agent_tool import TOOL_FUNCTIONS


class ToolCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(allow_none=True)
    category = fields.Str(load_default="general")
    function_name = fields.Str(required=True, validate=validate.OneOf(TOOL_FUNCTIONS))


class ToolExecuteSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tool_id = fields.Str(required=True, validate=validate.Length(min=1))
    input = fields.Dict(required=True)
    agent_id = fields.Str(allow_none=True)
    execution_id = fields.Str(allow_none=True)


class ToolRecommendSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    task_description = fields.Str(required=True, validate=validate.Length(min=1))
