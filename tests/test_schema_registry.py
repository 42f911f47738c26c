"""Tests for the ReturnSchemaRegistry."""

import json
import threading

from codeact.schema.registry import ReturnSchemaRegistry
from codeact.schema.shapes import (
    ArrayShape,
    ObjectShape,
    PrimitiveType,
    ReturnSchema,
    SchemaSource,
    primitive,
)


def _make_declared():
    return ReturnSchema(
        description="Search hits",
        success_shape=ObjectShape(fields={}),
        type_hint="Dict[str, Any]",
    )


class TestObserve:
    def test_first_observation_creates_schema(self):
        registry = ReturnSchemaRegistry()
        schema = registry.observe("search", '{"hits": 3}', success=True)
        assert schema.tool_name == "search"
        assert schema.sample_count == 1
        assert registry.get_schema("search") == schema

    def test_sample_count_increments(self):
        registry = ReturnSchemaRegistry()
        for _ in range(3):
            registry.observe("search", '{"hits": 3}', success=True)
        assert registry.get_schema("search").sample_count == 3

    def test_blank_tool_name_ignored(self, log_records):
        registry = ReturnSchemaRegistry()
        assert registry.observe("  ", '{"a": 1}', success=True) is None
        assert registry.tools_with_schema() == []
        assert any("empty tool name" in r.getMessage() for r in log_records)

    def test_blank_result_ignored(self):
        registry = ReturnSchemaRegistry()
        assert registry.observe("search", "", success=True) is None
        assert registry.get_schema("search") is None

    def test_error_observation(self):
        registry = ReturnSchemaRegistry()
        schema = registry.observe("search", '{"error": "boom"}', success=False)
        assert schema.success_shape is None
        assert "error" in schema.error_shape.fields

    def test_tool_result_structure_learned(self):
        registry = ReturnSchemaRegistry()
        registry.observe("item", json.dumps({"id": 1, "tags": ["x", "y"]}), success=True)
        schema = registry.observe("item", json.dumps({"id": 2, "name": "n"}), success=True)

        fields = schema.success_shape.fields
        assert fields["id"].shape == primitive(PrimitiveType.INTEGER)
        assert fields["id"].optional is False
        assert fields["tags"].shape == ArrayShape(item_shape=primitive(PrimitiveType.STRING))
        assert fields["tags"].optional is True
        assert fields["name"].shape == primitive(PrimitiveType.STRING)
        assert fields["name"].optional is True

    def test_reordered_array_items_add_no_variant(self):
        registry = ReturnSchemaRegistry()
        registry.observe("mixed", '[1, "x"]', success=True)
        registry.observe("mixed", "null", success=True)
        schema = registry.observe("mixed", '["x", 1]', success=True)

        assert len(schema.success_shape.variants) == 2
        assert schema.success_shape.python_type_hint == "Union[List[Union[int, str]], None]"


class TestDeclared:
    def test_declared_seeds_schema(self):
        registry = ReturnSchemaRegistry()
        registry.register_declared("search", _make_declared())
        schema = registry.get_schema("search")
        assert schema.tool_name == "search"
        assert schema.sources == frozenset({SchemaSource.DECLARED})

    def test_observation_on_declared(self):
        registry = ReturnSchemaRegistry()
        registry.register_declared("search", _make_declared())
        schema = registry.observe("search", '{"hits": 3}', success=True)
        assert schema.sources == frozenset({SchemaSource.DECLARED, SchemaSource.OBSERVED})
        assert schema.description == "Search hits"
        assert schema.sample_count == 1

    def test_clear_observed_restores_declared(self):
        registry = ReturnSchemaRegistry()
        registry.register_declared("search", _make_declared())
        registry.observe("search", '{"hits": 3}', success=True)
        registry.clear_observed("search")
        assert registry.get_schema("search") == registry.get_declared("search")
        assert registry.get_schema("search").sample_count == 0

    def test_clear_observed_without_declared_removes(self):
        registry = ReturnSchemaRegistry()
        registry.observe("search", '{"hits": 3}', success=True)
        registry.clear_observed("search")
        assert registry.get_schema("search") is None

    def test_clear_all_observed(self):
        registry = ReturnSchemaRegistry()
        registry.register_declared("declared", _make_declared())
        registry.observe("declared", "1", success=True)
        registry.observe("observed", "1", success=True)
        registry.clear_all_observed()
        assert registry.tools_with_schema() == ["declared"]
        assert len(registry) == 1


class TestConcurrency:
    def test_sample_counts_exact_under_concurrent_observation(self):
        registry = ReturnSchemaRegistry()
        threads_count, per_thread = 8, 50

        def worker(index):
            for i in range(per_thread):
                payload = {"id": i} if index % 2 else {"id": i, "extra": "x"}
                registry.observe("shared", json.dumps(payload), success=True)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        schema = registry.get_schema("shared")
        assert schema.sample_count == threads_count * per_thread
        assert schema.success_shape.fields["id"].optional is False
        assert schema.success_shape.fields["extra"].optional is True

    def test_distinct_tools_independent(self):
        registry = ReturnSchemaRegistry()

        def worker(name):
            for _ in range(20):
                registry.observe(name, "[1]", success=True)

        threads = [threading.Thread(target=worker, args=(f"tool_{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(registry.tools_with_schema()) == [f"tool_{n}" for n in range(4)]
        assert all(registry.get_schema(f"tool_{n}").sample_count == 20 for n in range(4))
