"""
Codeact Input Schema Parser

Turns a tool's JSON Schema ``input_schema`` into a ParameterTree. The
parser is lenient: a missing or unparseable schema yields an empty tree
and the tool falls back to its invocation template.
"""

from __future__ import annotations

import json
from typing import Any

from codeact.logging import get_logger
from codeact.tools.models import ParameterNode, ParameterTree, ParameterType

logger = get_logger("codeact.tools")

# (schema keyword, label) pairs rendered into ParameterNode.constraint
CONSTRAINT_KEYWORDS = (
    ("minimum", "min"),
    ("maximum", "max"),
    ("minLength", "minLen"),
    ("maxLength", "maxLen"),
    ("pattern", "pattern"),
)


def parse_input_schema(input_schema: dict | str | None) -> ParameterTree:
    """Parse a JSON Schema object (or its JSON text) into a ParameterTree."""
    if input_schema is None or (isinstance(input_schema, str) and not input_schema.strip()):
        return ParameterTree()

    schema: Any = input_schema
    if isinstance(input_schema, str):
        try:
            schema = json.loads(input_schema)
        except ValueError as e:
            logger.warning("Failed to parse input schema, using empty parameter tree: %s", e)
            return ParameterTree(raw_input_schema=input_schema)

    if not isinstance(schema, dict):
        logger.warning("Input schema is not a JSON object, using empty parameter tree")
        return ParameterTree(raw_input_schema=input_schema)

    required = _required_names(schema)
    parameters = [
        _parse_node(name, node, name in required)
        for name, node in _properties(schema).items()
    ]
    logger.debug("Parsed input schema with %d parameters", len(parameters))
    return ParameterTree(parameters=parameters, raw_input_schema=input_schema)


def _parse_node(name: str, node: Any, required: bool) -> ParameterNode:
    if not isinstance(node, dict):
        return ParameterNode(name=name, required=required)

    param_type = ParameterType.from_schema_type(node.get("type"))
    fields: dict[str, Any] = {
        "name": name,
        "type": param_type,
        "required": required,
        "description": _text(node.get("description")),
        "format": _text(node.get("format")),
        "default": node.get("default"),
    }

    enum_values = node.get("enum")
    if isinstance(enum_values, list):
        fields["enum_values"] = list(enum_values)

    constraint = ", ".join(
        f"{label}={node[key]}" for key, label in CONSTRAINT_KEYWORDS if node.get(key) is not None
    )
    if constraint:
        fields["constraint"] = constraint

    if param_type == ParameterType.ARRAY and "items" in node:
        fields["items"] = _parse_node("item", node["items"], False)

    if param_type == ParameterType.OBJECT:
        nested_required = _required_names(node)
        fields["properties"] = [
            _parse_node(prop, prop_node, prop in nested_required)
            for prop, prop_node in _properties(node).items()
        ]

    variants = node.get("oneOf", node.get("anyOf"))
    if isinstance(variants, list):
        fields["union_variants"] = [
            _parse_node(f"variant{index}", variant, False) for index, variant in enumerate(variants)
        ]

    return ParameterNode(**fields)


def _required_names(node: dict) -> set[str]:
    required = node.get("required")
    if isinstance(required, list):
        return {str(name) for name in required}
    return set()


def _properties(node: dict) -> dict:
    properties = node.get("properties")
    return properties if isinstance(properties, dict) else {}


def _text(value: Any) -> str | None:
    return None if value is None else str(value)
