"""Tests for shape extraction and merging."""

from pydantic import TypeAdapter

from codeact.schema.extractor import extract, extract_json
from codeact.schema.merger import merge, merge_shapes
from codeact.schema.shapes import (
    ArrayShape,
    ObjectField,
    ObjectShape,
    PrimitiveType,
    ReturnSchema,
    SchemaSource,
    ShapeNode,
    UnionShape,
    UnknownShape,
    primitive,
)

INT = primitive(PrimitiveType.INTEGER)
STR = primitive(PrimitiveType.STRING)
NUM = primitive(PrimitiveType.NUMBER)


def _make_object(optional=(), **fields):
    return ObjectShape(
        fields={name: ObjectField(shape=shape, optional=name in optional) for name, shape in fields.items()}
    )


class TestExtract:
    def test_primitives(self):
        assert extract(None) == primitive("null")
        assert extract("x") == STR
        assert extract(3) == INT
        assert extract(1.5) == NUM

    def test_bool_is_not_integer(self):
        assert extract(True) == primitive(PrimitiveType.BOOLEAN)

    def test_empty_array_is_unknown_items(self):
        assert extract([]) == ArrayShape(item_shape=UnknownShape())

    def test_array_items_folded(self):
        shape = extract([{"a": 1}, {"a": 2, "b": "x"}])
        assert shape == ArrayShape(item_shape=_make_object(a=INT, b=STR, optional={"b"}))

    def test_mixed_array_becomes_union(self):
        shape = extract([1, "a", 2])
        assert shape == ArrayShape(item_shape=UnionShape(variants=(INT, STR)))

    def test_nested_object(self):
        shape = extract({"user": {"id": 1}, "tags": ["x"]})
        assert shape == _make_object(user=_make_object(id=INT), tags=ArrayShape(item_shape=STR))

    def test_unsupported_value_is_unknown(self):
        assert extract(object()) == UnknownShape()


class TestExtractJson:
    def test_blank_is_unknown(self):
        assert extract_json("") == UnknownShape()
        assert extract_json("   ") == UnknownShape()
        assert extract_json(None) == UnknownShape()

    def test_invalid_json_is_unknown(self):
        assert extract_json("{not json") == UnknownShape()

    def test_valid_json(self):
        assert extract_json('{"id": 1}') == _make_object(id=INT)


class TestMergeShapes:
    def test_unknown_is_identity(self):
        assert merge_shapes(UnknownShape(), INT) == INT
        assert merge_shapes(INT, UnknownShape()) == INT

    def test_none_operands(self):
        assert merge_shapes(None, INT) == INT
        assert merge_shapes(INT, None) == INT

    def test_same_primitive_kept(self):
        assert merge_shapes(INT, INT) == INT

    def test_primitive_never_widened(self):
        assert merge_shapes(INT, NUM) == UnionShape(variants=(INT, NUM))

    def test_array_items_merged(self):
        merged = merge_shapes(ArrayShape(item_shape=INT), ArrayShape(item_shape=STR))
        assert merged == ArrayShape(item_shape=UnionShape(variants=(INT, STR)))

    def test_object_field_union_with_optionality(self):
        merged = merge_shapes(_make_object(a=INT, b=STR), _make_object(a=INT, c=NUM))
        assert merged == _make_object(a=INT, b=STR, c=NUM, optional={"b", "c"})

    def test_optional_sticks_when_present_on_both(self):
        merged = merge_shapes(_make_object(a=INT, optional={"a"}), _make_object(a=INT))
        assert merged.fields["a"].optional is True

    def test_union_deduplication(self):
        shape = merge_shapes(merge_shapes(STR, INT), STR)
        assert isinstance(shape, UnionShape)
        assert shape.variants == (STR, INT)

    def test_unions_take_set_union(self):
        merged = merge_shapes(UnionShape(variants=(STR, INT)), UnionShape(variants=(INT, NUM)))
        assert merged.variants == (STR, INT, NUM)

    def test_union_flattened_with_other_kind(self):
        merged = merge_shapes(UnionShape(variants=(STR, INT)), ArrayShape(item_shape=INT))
        assert merged.variants == (STR, INT, ArrayShape(item_shape=INT))

    def test_union_variant_order_is_irrelevant(self):
        shape = extract([1, "x"])
        shape = merge_shapes(shape, extract(None))
        shape = merge_shapes(shape, extract(["x", 1]))

        assert shape == UnionShape(
            variants=(ArrayShape(item_shape=UnionShape(variants=(INT, STR))), primitive("null"))
        )

    def test_same_kind_variants_merged_inside_union(self):
        shape = merge_shapes(UnionShape(variants=(STR, _make_object(a=INT))), _make_object(b=STR))
        assert shape == UnionShape(variants=(STR, _make_object(a=INT, b=STR, optional={"a", "b"})))

    def test_idempotent(self):
        shape = _make_object(a=INT, tags=ArrayShape(item_shape=STR))
        assert merge_shapes(shape, shape) == shape

    def test_optionality_convergence(self):
        shape = merge_shapes(_make_object(a=INT), _make_object(b=STR))
        assert shape == _make_object(a=INT, b=STR, optional={"a", "b"})

        stabilized = merge_shapes(shape, _make_object(a=INT, b=STR))
        assert stabilized == shape
        assert merge_shapes(stabilized, _make_object(a=INT, b=STR)) == stabilized


class TestMerge:
    def test_first_observation(self):
        schema = merge(None, INT, success=True)
        assert schema.success_shape == INT
        assert schema.error_shape is None
        assert schema.sample_count == 1
        assert schema.sources == frozenset({SchemaSource.OBSERVED})

    def test_first_failure_observation(self):
        schema = merge(None, _make_object(error=STR), success=False)
        assert schema.success_shape is None
        assert schema.error_shape == _make_object(error=STR)

    def test_increments_and_merges_selected_side(self):
        schema = merge(None, INT, success=True)
        schema = merge(schema, _make_object(error=STR), success=False)
        assert schema.sample_count == 2
        assert schema.success_shape == INT
        assert schema.error_shape == _make_object(error=STR)

    def test_repeated_identical_observation(self):
        once = merge(None, _make_object(a=INT), success=True)
        twice = merge(once, _make_object(a=INT), success=True)
        assert twice.success_shape == once.success_shape
        assert twice.sample_count == 2

    def test_declared_schema_gains_observed_source(self):
        declared = ReturnSchema(tool_name="t", success_shape=_make_object(a=INT))
        schema = merge(declared, _make_object(a=INT, b=STR), success=True)
        assert schema.sources == frozenset({SchemaSource.DECLARED, SchemaSource.OBSERVED})
        assert schema.success_shape.fields["b"].optional is True
        assert schema.tool_name == "t"


class TestTypeHints:
    def test_hints(self):
        assert INT.python_type_hint == "int"
        assert ArrayShape(item_shape=STR).python_type_hint == "List[str]"
        assert _make_object(a=INT).python_type_hint == "Dict[str, Any]"
        assert UnionShape(variants=(STR, INT)).python_type_hint == "Union[str, int]"
        assert UnknownShape().python_type_hint == "Any"

    def test_schema_hint_prefers_declared_type_hint(self):
        assert ReturnSchema(type_hint="List[str]", success_shape=INT).python_type_hint == "List[str]"
        assert ReturnSchema(success_shape=INT).python_type_hint == "int"
        assert ReturnSchema().python_type_hint == "Dict[str, Any]"


class TestSerialization:
    def test_discriminated_round_trip(self):
        shape = _make_object(items=ArrayShape(item_shape=UnionShape(variants=(INT, STR))), optional={"items"})
        adapter = TypeAdapter(ShapeNode)
        assert adapter.validate_json(adapter.dump_json(shape)) == shape
