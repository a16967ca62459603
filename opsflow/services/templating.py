"""Placeholder resolution for step configs and sub-workflow data mappings."""

import json
import re
from typing import Any, Mapping, Union

from opsflow.services.errors import StepConfigurationError

PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

MISSING = object()


def lookup(context: Any, path: str) -> Any:
    """
    Walk a dotted path through nested mappings and lists.

    Returns the ``MISSING`` sentinel when any segment is absent,
    so a present ``None`` can be told apart from a missing key.

    Examples:
        lookup({"a": {"b": 1}}, "a.b") -> 1
        lookup({"a": [{"b": 2}]}, "a.0.b") -> 2
    """
    current = context
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, (list, tuple)) and key.lstrip("-").isdigit():
            index = int(key)
            if not -len(current) <= index < len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _stringify(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _substitute(template: str, context: Mapping[str, Any]) -> str:
    def _replace(match):
        value = lookup(context, match.group(1))
        return match.group(0) if value is MISSING else _stringify(value)

    return PLACEHOLDER.sub(_replace, template)


def _resolve_string(template: str, context: Mapping[str, Any]) -> Any:
    whole = PLACEHOLDER.fullmatch(template.strip())
    if whole:
        value = lookup(context, whole.group(1))
        return template if value is MISSING else value
    return _substitute(template, context)


def resolve(template: Any, context: Mapping[str, Any]) -> Any:
    """
    Resolve ``{{dotted.path}}`` placeholders in a JSON-like template.

    - dicts and lists are resolved recursively (keys are left alone)
    - a string that is exactly one placeholder becomes the raw value, so
      ``"{{trigger.value}}"`` with ``{"trigger": {"value": 42}}`` gives ``42``
    - placeholders embedded in longer strings are replaced by their text form
    - unresolved placeholders are kept verbatim

    Only dotted paths are understood; there is no expression language.
    """
    if isinstance(template, dict):
        return {key: resolve(value, context) for key, value in template.items()}
    if isinstance(template, list):
        return [resolve(item, context) for item in template]
    if isinstance(template, str):
        return _resolve_string(template, context)
    return template


def interpolate(template: str, context: Mapping[str, Any]) -> str:
    """Always-text variant of ``resolve`` for message bodies and titles."""
    if not template:
        return ""
    return _substitute(str(template), context)


def load_mapping(raw: Union[str, dict, list, None]) -> Any:
    """Accept a data mapping given either as a JSON string or as an object."""
    if raw is None or isinstance(raw, (dict, list)):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StepConfigurationError(f"Invalid data_mapping JSON: {e}")
    raise StepConfigurationError(f"Unsupported data_mapping type: {type(raw).__name__}")
