"""
Codeact Tool Models

Tool definitions in the common JSON-Schema based format, the
codeact-specific metadata that decides how a tool is exposed to guest
code, and the parsed parameter tree used for signatures and prompts.
"""

from __future__ import annotations

import json
import keyword
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from codeact.models import Language


@dataclass
class ToolDefinition:
    """A tool that can be called from guest code."""
    name: str
    description: str
    input_schema: dict | str | None = field(default_factory=dict)


# ─── Codeact Metadata ────────────────────────────────────────

class CodeExample(BaseModel):
    """A few-shot example shown to the model alongside a tool."""
    description: str
    code_snippet: str
    expected_behavior: str | None = None


class CodeactToolMetadata(BaseModel):
    """How a tool appears inside guest code.

    A tool with ``target_class_name`` is exposed as a static method on that
    class; all others become free functions. ``invocation_template`` is the
    legacy way of describing a signature, e.g. ``"search(query, limit=10)"``,
    and is only consulted when the input schema yields no parameters.
    """
    supported_languages: list[Language] = Field(default_factory=lambda: [Language.PYTHON])
    target_class_name: str | None = None
    target_class_description: str | None = None
    display_name: str | None = None
    aliases: list[str] = Field(default_factory=list)
    invocation_template: str | None = None
    few_shots: list[CodeExample] = Field(default_factory=list)


# ─── Parameter Tree ──────────────────────────────────────────

class ParameterType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"
    UNKNOWN = "unknown"

    @property
    def python_type(self) -> str:
        return _PARAMETER_PYTHON_TYPES[self]

    @classmethod
    def from_schema_type(cls, value: Any) -> ParameterType:
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return cls.UNKNOWN


_PARAMETER_PYTHON_TYPES = {
    ParameterType.STRING: "str",
    ParameterType.INTEGER: "int",
    ParameterType.NUMBER: "float",
    ParameterType.BOOLEAN: "bool",
    ParameterType.OBJECT: "Dict[str, Any]",
    ParameterType.ARRAY: "List[Any]",
    ParameterType.NULL: "None",
    ParameterType.UNKNOWN: "Any",
}


class ParameterNode(BaseModel):
    """One parameter parsed from a JSON Schema property."""
    name: str
    type: ParameterType = ParameterType.UNKNOWN
    description: str | None = None
    required: bool = False
    default: Any = None
    format: str | None = None
    enum_values: list[Any] = Field(default_factory=list)
    constraint: str | None = None
    items: ParameterNode | None = None
    properties: list[ParameterNode] = Field(default_factory=list)
    union_variants: list[ParameterNode] = Field(default_factory=list)

    @property
    def python_type_hint(self) -> str:
        if self.enum_values:
            return "Literal[" + ", ".join(format_literal(v) for v in self.enum_values) + "]"
        if self.union_variants:
            hints: list[str] = []
            for variant in self.union_variants:
                if variant.python_type_hint not in hints:
                    hints.append(variant.python_type_hint)
            return hints[0] if len(hints) == 1 else "Union[" + ", ".join(hints) + "]"
        if self.type == ParameterType.ARRAY and self.items is not None:
            return f"List[{self.items.python_type_hint}]"
        return self.type.python_type

    def signature_entry(self, name: str | None = None) -> str:
        """Render ``name: hint`` plus ``= default`` for optional parameters.

        An optional parameter defaulting to None is hinted ``Optional[...]``.
        """
        hint = self.python_type_hint
        if self.required:
            return f"{name or self.name}: {hint}"
        if self.default is None and hint not in ("Any", "None"):
            hint = f"Optional[{hint}]"
        return f"{name or self.name}: {hint} = {format_literal(self.default)}"


class ParameterTree(BaseModel):
    """All parameters of one tool, in schema order."""
    parameters: list[ParameterNode] = Field(default_factory=list)
    raw_input_schema: dict | str | None = None

    @property
    def has_parameters(self) -> bool:
        return bool(self.parameters)

    @property
    def required_parameters(self) -> list[ParameterNode]:
        return [p for p in self.parameters if p.required]

    @property
    def optional_parameters(self) -> list[ParameterNode]:
        return [p for p in self.parameters if not p.required]

    def ordered(self) -> list[ParameterNode]:
        """Required parameters first so the rendered signature is valid."""
        return self.required_parameters + self.optional_parameters

    def get(self, name: str) -> ParameterNode | None:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    def to_python_signature(self) -> str:
        return ", ".join(p.signature_entry(to_identifier(p.name)) for p in self.ordered())


ParameterNode.model_rebuild()


# ─── Helpers ─────────────────────────────────────────────────

_INVALID_IDENTIFIER_CHARS = re.compile(r"\W")


def to_identifier(name: str) -> str:
    """Turn an arbitrary tool or parameter name into a Python identifier."""
    identifier = _INVALID_IDENTIFIER_CHARS.sub("_", name.strip()) or "_"
    if identifier[0].isdigit():
        identifier = "_" + identifier
    if keyword.iskeyword(identifier):
        identifier += "_"
    return identifier


def format_literal(value: Any) -> str:
    """Render a default or enum value as Python source."""
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    return repr(value)
