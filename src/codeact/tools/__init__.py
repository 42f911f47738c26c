"""Codeact tool layer: definitions, registry, bindings and prompt stubs."""

from codeact.tools.bindings import generate_bindings
from codeact.tools.models import (
    CodeactToolMetadata,
    CodeExample,
    ParameterNode,
    ParameterTree,
    ParameterType,
    ToolDefinition,
)
from codeact.tools.parser import parse_input_schema
from codeact.tools.registry import CodeactTool, ToolRegistry
from codeact.tools.view import render_class_stub, render_tool_stub

__all__ = [
    "CodeExample",
    "CodeactTool",
    "CodeactToolMetadata",
    "ParameterNode",
    "ParameterTree",
    "ParameterType",
    "ToolDefinition",
    "ToolRegistry",
    "generate_bindings",
    "parse_input_schema",
    "render_class_stub",
    "render_tool_stub",
]
