"""
Codeact Shape Extraction

Derives a ShapeNode from a concrete value or from JSON text.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal
from fractions import Fraction
from typing import Any

from codeact.logging import get_logger
from codeact.schema.merger import merge_shapes
from codeact.schema.shapes import (
    ArrayShape,
    ObjectField,
    ObjectShape,
    PrimitiveShape,
    PrimitiveType,
    ShapeNode,
    UnknownShape,
)

logger = get_logger("codeact.schema")


def extract(value: Any) -> ShapeNode:
    """Describe the structure of a JSON-like value.

    Array element shapes are folded together with merge_shapes, so a list
    of objects with differing keys yields one object whose non-shared
    fields are optional. An empty list yields Array(Unknown).
    """
    if value is None:
        return PrimitiveShape(type=PrimitiveType.NULL)
    # bool is a subclass of int
    if isinstance(value, bool):
        return PrimitiveShape(type=PrimitiveType.BOOLEAN)
    if isinstance(value, int):
        return PrimitiveShape(type=PrimitiveType.INTEGER)
    if isinstance(value, (float, Decimal, Fraction)):
        return PrimitiveShape(type=PrimitiveType.NUMBER)
    if isinstance(value, str):
        return PrimitiveShape(type=PrimitiveType.STRING)

    if isinstance(value, Mapping):
        return ObjectShape(
            fields={str(key): ObjectField(shape=extract(item)) for key, item in value.items()}
        )

    if isinstance(value, (list, tuple)):
        item_shape: ShapeNode = UnknownShape()
        for item in value:
            item_shape = merge_shapes(item_shape, extract(item))
        return ArrayShape(item_shape=item_shape)

    return UnknownShape()


def extract_json(text: str | None) -> ShapeNode:
    """Parse JSON text and extract its shape; Unknown when unparseable."""
    if text is None or not text.strip():
        return UnknownShape()
    try:
        value = json.loads(text)
    except ValueError as e:
        logger.warning("Failed to parse JSON for shape extraction: %s", e)
        return UnknownShape()
    return extract(value)
