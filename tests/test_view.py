"""Tests for the tool stub renderer."""

from codeact.schema.shapes import (
    ArrayShape,
    ObjectField,
    ObjectShape,
    PrimitiveType,
    ReturnSchema,
    primitive,
)
from codeact.tools.models import CodeactToolMetadata, CodeExample, ToolDefinition
from codeact.tools.registry import CodeactTool
from codeact.tools.view import render_class_stub, render_tool_stub


def _make_tool(name="search", description="Search the web.", input_schema=None, **metadata):
    return CodeactTool(
        definition=ToolDefinition(name=name, description=description, input_schema=input_schema or {}),
        handler=lambda **kwargs: kwargs,
        metadata=CodeactToolMetadata(**metadata),
    )


SEARCH_SCHEMA = {
    "properties": {
        "query": {"type": "string", "description": "Search terms"},
        "limit": {"type": "integer", "default": 10, "minimum": 1, "maximum": 50},
        "filters": {
            "type": "object",
            "properties": {"site": {"type": "string", "description": "Domain"}},
        },
    },
    "required": ["query"],
}


class TestToolStub:
    def test_minimal_stub(self):
        stub = render_tool_stub(_make_tool("now", "Current time."))
        assert stub == (
            "def now() -> Dict[str, Any]:\n"
            '    """Current time.\n'
            "\n"
            "    Returns:\n"
            "        Dict[str, Any]: Operation result\n"
            '    """\n'
            "    ...\n"
        )

    def test_args_section(self):
        stub = render_tool_stub(_make_tool(input_schema=SEARCH_SCHEMA))
        assert stub.startswith(
            "def search(query: str, limit: int = 10, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:"
        )
        assert "        query (str): Search terms" in stub
        assert "        limit (int, optional) Defaults to 10. [min=1, max=50]" in stub
        assert "            - site (str): Domain" in stub

    def test_stub_compiles(self):
        stub = render_tool_stub(_make_tool(input_schema=SEARCH_SCHEMA))
        compile("from typing import Any, Dict, List\n" + stub, "<stub>", "exec")

    def test_declared_return_schema(self):
        schema = ReturnSchema(
            description="Matching pages",
            success_shape=ObjectShape(
                fields={
                    "total": ObjectField(shape=primitive(PrimitiveType.INTEGER)),
                    "hits": ObjectField(
                        shape=ArrayShape(
                            item_shape=ObjectShape(
                                fields={"url": ObjectField(shape=primitive(PrimitiveType.STRING))}
                            )
                        ),
                        optional=True,
                    ),
                }
            ),
            error_shape=ObjectShape(fields={"error": ObjectField(shape=primitive(PrimitiveType.STRING))}),
        )
        stub = render_tool_stub(_make_tool(), schema)
        assert "        Dict[str, Any]: Matching pages" in stub
        assert "            - total (int)" in stub
        assert "            - hits (List[Dict[str, Any]], optional)" in stub
        assert "                Each item contains:" in stub
        assert "                    - url (str)" in stub
        assert "        On failure returns:" in stub
        assert "            - error (str)" in stub

    def test_observed_array_return(self):
        schema = ReturnSchema(success_shape=ArrayShape(item_shape=primitive(PrimitiveType.STRING)))
        stub = render_tool_stub(_make_tool(), schema)
        assert stub.startswith("def search() -> List[str]:")
        assert "            List, each item is str" in stub

    def test_type_hint_override(self):
        schema = ReturnSchema(type_hint="SearchResult")
        assert render_tool_stub(_make_tool(), schema).startswith("def search() -> SearchResult:")

    def test_few_shots_capped(self):
        shots = [
            CodeExample(description=f"example {n}", code_snippet=f"search('q{n}')", expected_behavior="hits")
            for n in range(5)
        ]
        stub = render_tool_stub(_make_tool(few_shots=shots))
        assert "    Examples:" in stub
        assert "        # example 2" in stub
        assert "        >>> search('q2')" in stub
        assert "        # hits" in stub
        assert "example 3" not in stub


class TestClassStub:
    def test_methods_take_self(self):
        tools = [
            _make_tool("read", "Read a file.", {"properties": {"path": {"type": "string"}}, "required": ["path"]}),
            _make_tool("list_dir", "List a directory."),
        ]
        stub = render_class_stub("Files", "File helpers", tools)
        assert stub.startswith('class Files:\n    """File helpers"""\n')
        assert "    def read(self, path: str) -> Dict[str, Any]:" in stub
        assert "    def list_dir(self) -> Dict[str, Any]:" in stub
        compile("from typing import Any, Dict\n" + stub, "<stub>", "exec")

    def test_no_description(self):
        stub = render_class_stub("Files", None, [_make_tool("read")])
        assert stub.startswith("class Files:\n    def read(self) -> Dict[str, Any]:")

    def test_schema_lookup_used(self):
        schemas = {"count": ReturnSchema(success_shape=primitive(PrimitiveType.INTEGER))}
        stub = render_class_stub("Stats", None, [_make_tool("count")], schemas.get)
        assert "def count(self) -> int:" in stub
