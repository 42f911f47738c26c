"""
Codeact Tool Registry

Central registry for all tools callable from guest code. Each tool is
registered with codeact metadata that decides how it is exposed (free
function or static method on a namespace class, which languages see it,
which aliases resolve to it) and optionally a declared return schema.

The registry is safe for concurrent registration and lookup. Registering
a tool under an existing name replaces it.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from codeact.exceptions import ToolExecutionError, ToolNotFoundError
from codeact.logging import get_logger
from codeact.marshal import to_host
from codeact.models import Language
from codeact.schema.registry import ReturnSchemaRegistry
from codeact.schema.shapes import ReturnSchema
from codeact.tools.models import CodeactToolMetadata, ParameterTree, ToolDefinition
from codeact.tools.parser import parse_input_schema
from codeact.tools.view import render_class_stub, render_tool_stub

logger = get_logger("codeact.tools")


class CodeactTool:
    """A tool callable from guest code.

    Combines the tool definition, the codeact exposure metadata and the
    handler that actually runs. Handlers may be plain callables or
    coroutine functions; both receive the decoded JSON arguments as
    keyword arguments, plus ``tool_context`` when they accept it.
    """

    def __init__(
        self,
        definition: ToolDefinition,
        handler: Callable[..., Any] | Callable[..., Awaitable[Any]],
        metadata: CodeactToolMetadata | None = None,
        parameter_tree: ParameterTree | None = None,
        declared_return_schema: ReturnSchema | None = None,
    ):
        self.definition = definition
        self.handler = handler
        self.metadata = metadata or CodeactToolMetadata()
        self.parameter_tree = (
            parameter_tree if parameter_tree is not None else parse_input_schema(definition.input_schema)
        )
        self.declared_return_schema = declared_return_schema

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    @property
    def aliases(self) -> list[str]:
        return list(self.metadata.aliases)

    @property
    def target_class_name(self) -> str | None:
        return self.metadata.target_class_name

    def supports(self, language: Language) -> bool:
        return language in self.metadata.supported_languages

    def call(self, args_json: str | None, tool_context: Mapping[str, Any] | None = None) -> str:
        """Run the handler with JSON arguments and return its result as JSON."""
        args = json.loads(args_json) if args_json and args_json.strip() else {}
        if not isinstance(args, dict):
            raise ToolExecutionError(self.name, "arguments must be a JSON object")

        if tool_context is not None and _accepts_tool_context(self.handler):
            args["tool_context"] = tool_context

        result = self.handler(**args)
        if inspect.isawaitable(result):
            result = _resolve_awaitable(result)

        return json.dumps(to_host(result), ensure_ascii=False, default=str)

    def __repr__(self) -> str:
        return f"CodeactTool(name={self.name!r}, namespace={self.target_class_name!r})"


def _accepts_tool_context(handler: Callable[..., Any]) -> bool:
    try:
        return "tool_context" in inspect.signature(handler).parameters
    except (TypeError, ValueError):
        return False


def _resolve_awaitable(awaitable: Awaitable[Any]) -> Any:
    async def _await() -> Any:
        return await awaitable

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_await())

    # A loop is already running in this thread; run on a fresh one elsewhere.
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, _await()).result()


def group_tools(tools: Iterable[CodeactTool]) -> tuple[dict[str, list[CodeactTool]], list[CodeactTool]]:
    """Split tools into sorted namespace groups and sorted free functions."""
    namespaces: dict[str, list[CodeactTool]] = {}
    free: list[CodeactTool] = []
    for tool in tools:
        if tool.target_class_name:
            namespaces.setdefault(tool.target_class_name, []).append(tool)
        else:
            free.append(tool)

    grouped = {
        name: sorted(members, key=lambda t: t.name)
        for name, members in sorted(namespaces.items())
    }
    return grouped, sorted(free, key=lambda t: t.name)


class ToolRegistry:
    """Name- and alias-keyed registry of CodeactTools.

    Every alias resolves to a registered name. Replacing a tool drops the
    aliases of the tool it replaces before registering the new ones.
    """

    def __init__(self, schema_registry: ReturnSchemaRegistry | None = None) -> None:
        self._tools: dict[str, CodeactTool] = {}
        self._aliases: dict[str, str] = {}
        self._lock = threading.RLock()
        self._schema_registry = schema_registry if schema_registry is not None else ReturnSchemaRegistry()

    @property
    def schema_registry(self) -> ReturnSchemaRegistry:
        return self._schema_registry

    def register(self, tool: CodeactTool) -> None:
        """Register a tool, replacing any tool with the same name."""
        if not tool.name:
            raise ValueError("Tool name cannot be empty")

        with self._lock:
            if tool.name in self._tools:
                stale = [alias for alias, target in self._aliases.items() if target == tool.name]
                for alias in stale:
                    del self._aliases[alias]
                logger.info("Replacing registered tool", extra={"tool_name": tool.name})

            self._tools[tool.name] = tool
            for alias in tool.aliases:
                if alias and alias != tool.name:
                    self._aliases[alias] = tool.name

        if tool.declared_return_schema is not None:
            self._schema_registry.register_declared(tool.name, tool.declared_return_schema)

        logger.debug("Registered tool", extra={"tool_name": tool.name})

    def get(self, name: str) -> CodeactTool | None:
        """Look up a registered tool by name."""
        with self._lock:
            return self._tools.get(name)

    def get_by_alias(self, alias: str) -> CodeactTool | None:
        with self._lock:
            target = self._aliases.get(alias)
            return self._tools.get(target) if target is not None else None

    def resolve(self, name_or_alias: str) -> CodeactTool | None:
        """Look up by name first, then by alias."""
        with self._lock:
            tool = self._tools.get(name_or_alias)
            if tool is None:
                tool = self.get_by_alias(name_or_alias)
            return tool

    def require(self, name_or_alias: str) -> CodeactTool:
        """Like ``resolve``, but raise ToolNotFoundError when nothing matches."""
        tool = self.resolve(name_or_alias)
        if tool is None:
            raise ToolNotFoundError(name_or_alias)
        return tool

    def get_all(self) -> list[CodeactTool]:
        """Return all registered tools."""
        with self._lock:
            return list(self._tools.values())

    def get_for_language(self, language: Language) -> list[CodeactTool]:
        """Return the tools whose metadata lists the given language."""
        with self._lock:
            return [tool for tool in self._tools.values() if tool.supports(language)]

    def get_return_schema(self, name: str) -> ReturnSchema | None:
        return self._schema_registry.get_schema(name)

    def structured_tool_prompt(self, language: Language = Language.PYTHON) -> str:
        """Render every tool for a language as Markdown-wrapped Python stubs.

        Namespaced tools come first, one class per namespace, followed by
        the free functions. Empty when no tool supports the language.
        """
        tools = self.get_for_language(language)
        if not tools:
            return ""

        namespaces, free = group_tools(tools)
        sections = ["## Available Tools", ""]

        for class_name, members in namespaces.items():
            description = next(
                (t.metadata.target_class_description for t in members if t.metadata.target_class_description),
                None,
            )
            sections.append(f"### {class_name}")
            sections.append("")
            sections.append("```python")
            sections.append(
                render_class_stub(class_name, description, members, self.get_return_schema).rstrip("\n")
            )
            sections.append("```")
            sections.append("")

        if free:
            sections.append("### Global Functions")
            sections.append("")
            sections.append("```python")
            for tool in free:
                sections.append(render_tool_stub(tool, self.get_return_schema(tool.name)))
            sections[-1] = sections[-1].rstrip("\n")
            sections.append("```")
            sections.append("")

        return "\n".join(sections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None
