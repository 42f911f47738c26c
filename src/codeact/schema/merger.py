"""
Codeact Shape Merging

Folds a newly observed shape into what is already known about a tool.

Rules:
- Unknown on either side yields the other side.
- Same kind merges structurally: a primitive of the same type stays as is,
  arrays merge their item shapes, objects take the union of their fields
  (a field seen on one side only becomes optional), unions take the set
  union of their variants.
- A Union holds at most one variant per primitive type and one per
  container kind; an incoming variant of a kind already present is merged
  into it, so variant order never matters.
- Differing kinds produce a Union; an operand that already is a Union is
  flattened into it rather than nested.
"""

from __future__ import annotations

from datetime import datetime, timezone

from codeact.logging import get_logger
from codeact.schema.shapes import (
    ArrayShape,
    ObjectField,
    ObjectShape,
    PrimitiveShape,
    ReturnSchema,
    SchemaSource,
    ShapeNode,
    UnionShape,
    UnknownShape,
)

logger = get_logger("codeact.schema")


def merge(existing: ReturnSchema | None, observed: ShapeNode, success: bool) -> ReturnSchema:
    """Merge one observation into a ReturnSchema.

    The observed shape only touches the success side or the error side,
    whichever ``success`` selects; the other side is carried over.
    """
    now = datetime.now(timezone.utc)

    if existing is None:
        return ReturnSchema(
            success_shape=observed if success else None,
            error_shape=None if success else observed,
            sample_count=1,
            sources=frozenset({SchemaSource.OBSERVED}),
            last_updated=now,
        )

    update: dict = {
        "sample_count": existing.sample_count + 1,
        "sources": existing.sources | {SchemaSource.OBSERVED},
        "last_updated": now,
    }
    if success:
        update["success_shape"] = merge_shapes(existing.success_shape, observed)
    else:
        update["error_shape"] = merge_shapes(existing.error_shape, observed)

    logger.debug(
        "Merged return schema",
        extra={"tool_name": existing.tool_name, "sample_count": update["sample_count"]},
    )
    return existing.model_copy(update=update)


def merge_shapes(existing: ShapeNode | None, observed: ShapeNode | None) -> ShapeNode | None:
    """Merge two shapes according to the module rules."""
    if existing is None:
        return observed
    if observed is None:
        return existing
    if isinstance(existing, UnknownShape):
        return observed
    if isinstance(observed, UnknownShape):
        return existing

    if isinstance(existing, PrimitiveShape) and isinstance(observed, PrimitiveShape):
        if existing.type == observed.type:
            return existing
        return _union_of(existing, observed)
    if isinstance(existing, ArrayShape) and isinstance(observed, ArrayShape):
        return ArrayShape(item_shape=merge_shapes(existing.item_shape, observed.item_shape))
    if isinstance(existing, ObjectShape) and isinstance(observed, ObjectShape):
        return _merge_objects(existing, observed)

    return _union_of(existing, observed)


def _merge_objects(existing: ObjectShape, observed: ObjectShape) -> ObjectShape:
    fields: dict[str, ObjectField] = {}

    for name, current in existing.fields.items():
        incoming = observed.fields.get(name)
        if incoming is None:
            fields[name] = current.model_copy(update={"optional": True})
            continue
        fields[name] = ObjectField(
            shape=merge_shapes(current.shape, incoming.shape),
            optional=current.optional or incoming.optional,
            description=current.description or incoming.description,
        )

    for name, incoming in observed.fields.items():
        if name not in existing.fields:
            fields[name] = incoming.model_copy(update={"optional": True})

    return ObjectShape(fields=fields)


def _union_of(first: ShapeNode, second: ShapeNode) -> UnionShape:
    variants: list[ShapeNode] = []
    for shape in (first, second):
        members = shape.variants if isinstance(shape, UnionShape) else (shape,)
        for variant in members:
            if isinstance(variant, UnknownShape):
                continue
            for index, known in enumerate(variants):
                if _same_slot(known, variant):
                    variants[index] = merge_shapes(known, variant)
                    break
            else:
                variants.append(variant)
    return UnionShape(variants=tuple(variants))


def _same_slot(a: ShapeNode, b: ShapeNode) -> bool:
    if a.kind != b.kind:
        return False
    if isinstance(a, PrimitiveShape):
        return a.type == b.type
    return True
