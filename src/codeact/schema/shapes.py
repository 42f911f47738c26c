"""
Codeact Shape Models

Structural type descriptions of JSON-like values. A shape is one of
Primitive, Array, Object, Union or Unknown, discriminated by ``kind`` so
shapes serialize to and from JSON without losing their variant.

ReturnSchema ties a success shape and an error shape to a tool, together
with how many samples produced it and where it came from.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class PrimitiveType(str, Enum):
    """JSON primitive kinds."""
    NULL = "null"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"

    @property
    def python_type(self) -> str:
        return _PYTHON_TYPES[self]


_PYTHON_TYPES = {
    PrimitiveType.NULL: "None",
    PrimitiveType.STRING: "str",
    PrimitiveType.INTEGER: "int",
    PrimitiveType.NUMBER: "float",
    PrimitiveType.BOOLEAN: "bool",
}


class SchemaSource(str, Enum):
    """Where a ReturnSchema's information came from."""
    DECLARED = "DECLARED"
    OBSERVED = "OBSERVED"


# ─── Shape Nodes ─────────────────────────────────────────────

class _Shape(BaseModel):
    model_config = ConfigDict(frozen=True)


class UnknownShape(_Shape):
    """Nothing has been observed yet."""
    kind: Literal["unknown"] = "unknown"

    @property
    def python_type_hint(self) -> str:
        return "Any"


class PrimitiveShape(_Shape):
    kind: Literal["primitive"] = "primitive"
    type: PrimitiveType

    @property
    def python_type_hint(self) -> str:
        return self.type.python_type


class ArrayShape(_Shape):
    kind: Literal["array"] = "array"
    item_shape: ShapeNode = Field(default_factory=UnknownShape)

    @property
    def python_type_hint(self) -> str:
        return f"List[{self.item_shape.python_type_hint}]"


class ObjectField(_Shape):
    """A field of an ObjectShape together with its optionality."""
    shape: ShapeNode
    optional: bool = False
    description: str | None = None


class ObjectShape(_Shape):
    kind: Literal["object"] = "object"
    fields: dict[str, ObjectField] = Field(default_factory=dict)

    @property
    def python_type_hint(self) -> str:
        return "Dict[str, Any]"


class UnionShape(_Shape):
    """Shapes observed for the same position with differing kinds."""
    kind: Literal["union"] = "union"
    variants: tuple[ShapeNode, ...] = ()

    @property
    def python_type_hint(self) -> str:
        if not self.variants:
            return "Any"
        if len(self.variants) == 1:
            return self.variants[0].python_type_hint
        return "Union[" + ", ".join(v.python_type_hint for v in self.variants) + "]"


ShapeNode = Annotated[
    Union[PrimitiveShape, ArrayShape, ObjectShape, UnionShape, UnknownShape],
    Field(discriminator="kind"),
]

for _model in (ArrayShape, ObjectField, ObjectShape, UnionShape):
    _model.model_rebuild()


# ─── Return Schema ───────────────────────────────────────────

class ReturnSchema(BaseModel):
    """Declared and/or observed return structure of one tool."""
    model_config = ConfigDict(frozen=True)

    tool_name: str = ""
    success_shape: ShapeNode | None = None
    error_shape: ShapeNode | None = None
    description: str | None = None
    type_hint: str | None = None
    sample_count: int = 0
    sources: frozenset[SchemaSource] = frozenset({SchemaSource.DECLARED})
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_declared(self) -> bool:
        return SchemaSource.DECLARED in self.sources

    @property
    def is_observed(self) -> bool:
        return SchemaSource.OBSERVED in self.sources

    @property
    def python_type_hint(self) -> str:
        if self.type_hint:
            return self.type_hint
        if self.success_shape is not None:
            return self.success_shape.python_type_hint
        return "Dict[str, Any]"


def primitive(kind: PrimitiveType | str) -> PrimitiveShape:
    """Shorthand for building a PrimitiveShape."""
    return PrimitiveShape(type=PrimitiveType(kind))
