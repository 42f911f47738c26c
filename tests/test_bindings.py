"""Tests for tool binding generation."""

import json
from pathlib import Path

import pytest

from codeact.exceptions import UnsupportedLanguageError
from codeact.models import Language
from codeact.tools.bindings import generate_bindings
from codeact.tools.models import CodeactToolMetadata, ToolDefinition
from codeact.tools.registry import CodeactTool

GOLDEN_DIR = Path(__file__).parent / "golden"


class _RecordingBridge:
    """Stands in for __tool_registry__ and records every call."""

    def __init__(self, reply=None):
        self.calls: list[tuple[str, dict]] = []
        self._reply = reply if reply is not None else {"ok": True}

    def call_tool(self, tool_name, args_json):
        self.calls.append((tool_name, json.loads(args_json)))
        return json.dumps(self._reply)


def _make_tool(name, description="", input_schema=None, **metadata):
    return CodeactTool(
        definition=ToolDefinition(name=name, description=description, input_schema=input_schema or {}),
        handler=lambda **kwargs: kwargs,
        metadata=CodeactToolMetadata(**metadata),
    )


def _golden_tools():
    return [
        _make_tool(
            "search",
            "Search the web.",
            {
                "properties": {"query": {"type": "string"}, "limit": {"type": "integer", "default": 5}},
                "required": ["query"],
            },
        ),
        _make_tool("ping", "Check connectivity."),
        _make_tool(
            "get_weather",
            "Get current weather for a city.",
            {
                "type": "object",
                "properties": {
                    "city": {"type": "string", "description": "City name"},
                    "units": {"type": "string", "enum": ["metric", "imperial"]},
                },
                "required": ["city"],
            },
            target_class_name="Weather",
        ),
    ]


def _load(source, bridge):
    namespace = {"__tool_registry__": bridge}
    exec(compile(source, "<bindings>", "exec"), namespace)
    return namespace


class TestGolden:
    def test_matches_golden_file(self):
        expected = (GOLDEN_DIR / "bindings.py.txt").read_text(encoding="utf-8")
        assert generate_bindings(_golden_tools(), Language.PYTHON) == expected

    def test_deterministic_regardless_of_order(self):
        tools = _golden_tools()
        assert generate_bindings(tools) == generate_bindings(list(reversed(tools)))


class TestGeneration:
    def test_unsupported_language(self):
        with pytest.raises(UnsupportedLanguageError):
            generate_bindings(_golden_tools(), Language.JAVA)

    def test_tools_for_other_languages_skipped(self):
        tools = [_make_tool("js_only", supported_languages=[Language.JAVASCRIPT])]
        assert "js_only" not in generate_bindings(tools)

    def test_empty_tool_list_still_valid_source(self):
        source = generate_bindings([])
        compile(source, "<bindings>", "exec")
        assert source.startswith("# Generated tool bindings")

    def test_optional_arguments_omitted_on_wire(self):
        bridge = _RecordingBridge()
        namespace = _load(generate_bindings(_golden_tools()), bridge)

        namespace["Weather"].get_weather("Oslo")
        namespace["Weather"].get_weather(city="Oslo", units="metric")

        assert bridge.calls == [
            ("get_weather", {"city": "Oslo"}),
            ("get_weather", {"city": "Oslo", "units": "metric"}),
        ]

    def test_default_values_sent(self):
        bridge = _RecordingBridge()
        namespace = _load(generate_bindings(_golden_tools()), bridge)
        namespace["search"]("cats")
        assert bridge.calls == [("search", {"query": "cats", "limit": 5})]

    def test_reply_decoded(self):
        bridge = _RecordingBridge(reply={"temp": 21.5})
        namespace = _load(generate_bindings(_golden_tools()), bridge)
        assert namespace["Weather"].get_weather("Oslo") == {"temp": 21.5}

    def test_kwargs_passthrough(self):
        bridge = _RecordingBridge()
        namespace = _load(generate_bindings(_golden_tools()), bridge)
        namespace["ping"](host="example.org", count=2)
        assert bridge.calls == [("ping", {"host": "example.org", "count": 2})]

    def test_invalid_identifiers_sanitized(self):
        tool = _make_tool(
            "web-search",
            input_schema={"properties": {"max-results": {"type": "integer"}, "args": {"type": "string"}}},
            target_class_name="my tools",
        )
        source = generate_bindings([tool])
        assert "class my_tools:" in source
        assert "def web_search(max_results: Optional[int] = None, args_: Optional[str] = None):" in source

        bridge = _RecordingBridge()
        namespace = _load(source, bridge)
        namespace["my_tools"].web_search(max_results=3, args_="x")
        assert bridge.calls == [("web-search", {"max-results": 3, "args": "x"})]

    def test_docstring_quotes_escaped(self):
        tool = _make_tool("quote", 'Says "hi" \\ bye"')
        compile(generate_bindings([tool]), "<bindings>", "exec")


class TestInvocationTemplate:
    def test_template_parameters(self):
        tool = _make_tool("lookup", invocation_template="lookup(key, default=None, *, strict=False)")
        source = generate_bindings([tool])
        assert "def lookup(key, default=None, *, strict=False):" in source

        bridge = _RecordingBridge()
        namespace = _load(source, bridge)
        namespace["lookup"]("a", strict=True)
        assert bridge.calls == [("lookup", {"key": "a", "strict": True})]

    def test_template_var_keyword_merged(self):
        tool = _make_tool("post", invocation_template="post(url, **options)")
        bridge = _RecordingBridge()
        namespace = _load(generate_bindings([tool]), bridge)
        namespace["post"]("https://example.org", timeout=3)
        assert bridge.calls == [("post", {"url": "https://example.org", "timeout": 3})]

    def test_unparseable_template_falls_back_to_kwargs(self):
        tool = _make_tool("odd", invocation_template="odd(this is not python)")
        assert "def odd(**kwargs):" in generate_bindings([tool])

    def test_schema_wins_over_template(self):
        tool = _make_tool(
            "both",
            input_schema={"properties": {"q": {"type": "string"}}, "required": ["q"]},
            invocation_template="both(x, y)",
        )
        assert "def both(q: str):" in generate_bindings([tool])
