"""Codeact return-schema engine: shapes, extraction, merging and the registry."""

from codeact.schema.extractor import extract, extract_json
from codeact.schema.merger import merge, merge_shapes
from codeact.schema.registry import ReturnSchemaRegistry
from codeact.schema.shapes import (
    ArrayShape,
    ObjectField,
    ObjectShape,
    PrimitiveShape,
    PrimitiveType,
    ReturnSchema,
    SchemaSource,
    ShapeNode,
    UnionShape,
    UnknownShape,
    primitive,
)

__all__ = [
    "ArrayShape",
    "ObjectField",
    "ObjectShape",
    "PrimitiveShape",
    "PrimitiveType",
    "ReturnSchema",
    "ReturnSchemaRegistry",
    "SchemaSource",
    "ShapeNode",
    "UnionShape",
    "UnknownShape",
    "extract",
    "extract_json",
    "merge",
    "merge_shapes",
    "primitive",
]
