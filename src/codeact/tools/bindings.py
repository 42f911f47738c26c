"""
Codeact Tool Bindings

Generates the guest source that exposes registered tools to guest code.
Every generated callable packs its arguments into a dict, sends them as
JSON through the ``__tool_registry__`` bridge and decodes the JSON reply.

Generation is a pure function of the tools passed in and the language;
namespaces and tools are emitted in sorted order, so the same input
always produces byte-identical source.
"""

from __future__ import annotations

import ast
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from codeact.exceptions import UnsupportedLanguageError
from codeact.logging import get_logger
from codeact.models import Language
from codeact.tools.models import to_identifier
from codeact.tools.registry import CodeactTool, group_tools

logger = get_logger("codeact.tools")

BRIDGE_NAME = "__tool_registry__"
INDENT = "    "
HEADER = (
    "# Generated tool bindings\n"
    "import json\n"
    "from typing import Any, Dict, List, Literal, Optional, Union\n"
)

# Local names used inside generated bodies; parameters may not shadow them.
RESERVED_NAMES = frozenset({"json", "args", "args_json", "result_json", BRIDGE_NAME})


@dataclass
class _WireParam:
    key: str
    identifier: str
    required: bool


@dataclass
class _CallableSpec:
    name: str
    signature: str
    params: list[_WireParam] = field(default_factory=list)
    var_keyword: str | None = None


def generate_bindings(tools: Iterable[CodeactTool], language: Language = Language.PYTHON) -> str:
    """Generate binding source for every tool that supports ``language``."""
    generator = BINDING_GENERATORS.get(language)
    if generator is None:
        raise UnsupportedLanguageError(language.value)
    return generator([tool for tool in tools if tool.supports(language)])


def generate_python_bindings(tools: list[CodeactTool]) -> str:
    namespaces, free = group_tools(tools)
    lines = [HEADER, ""]

    for class_name, members in namespaces.items():
        lines.append(f"class {to_identifier(class_name)}:")
        lines.append(f'{INDENT}"""Generated class for {_escape_docstring(class_name)} tools"""')
        for tool in members:
            lines.append("")
            lines.extend(_render_callable(tool, INDENT, static=True))
        lines.append("")
        lines.append("")

    for tool in free:
        lines.extend(_render_callable(tool, "", static=False))
        lines.append("")
        lines.append("")

    logger.debug(
        "Generated bindings for %d namespaces and %d functions", len(namespaces), len(free)
    )
    return "\n".join(lines).rstrip("\n") + "\n"


def _render_callable(tool: CodeactTool, indent: str, static: bool) -> list[str]:
    spec = _callable_spec(tool)
    body = indent + INDENT
    lines = []
    if static:
        lines.append(f"{indent}@staticmethod")
    lines.append(f"{indent}def {spec.name}({spec.signature}):")
    lines.append(f'{body}"""{_escape_docstring(tool.description)}"""')

    if spec.var_keyword is not None and not spec.params:
        lines.append(f"{body}args = dict({spec.var_keyword})")
    else:
        lines.append(f"{body}args = {{}}")
        for param in spec.params:
            if param.required:
                lines.append(f"{body}args[{param.key!r}] = {param.identifier}")
            else:
                lines.append(f"{body}if {param.identifier} is not None:")
                lines.append(f"{body}{INDENT}args[{param.key!r}] = {param.identifier}")
        if spec.var_keyword is not None:
            lines.append(f"{body}args.update({spec.var_keyword})")

    lines.append(f"{body}args_json = json.dumps(args)")
    lines.append(f"{body}result_json = {BRIDGE_NAME}.call_tool({tool.name!r}, args_json)")
    lines.append(f"{body}return json.loads(result_json)")
    return lines


def _callable_spec(tool: CodeactTool) -> _CallableSpec:
    name = to_identifier(tool.name)

    tree = tool.parameter_tree
    if tree.has_parameters:
        used: set[str] = set()
        params: list[_WireParam] = []
        entries: list[str] = []
        for node in tree.ordered():
            identifier = _unique_identifier(node.name, used)
            params.append(_WireParam(key=node.name, identifier=identifier, required=node.required))
            entries.append(node.signature_entry(identifier))
        return _CallableSpec(name=name, signature=", ".join(entries), params=params)

    template = tool.metadata.invocation_template
    if template:
        spec = _spec_from_template(name, template)
        if spec is not None:
            return spec

    return _CallableSpec(name=name, signature="**kwargs", var_keyword="kwargs")


def _spec_from_template(name: str, template: str) -> _CallableSpec | None:
    """Parse a legacy ``name(a, b=1)`` invocation template."""
    start, end = template.find("("), template.rfind(")")
    if start < 0 or end < start:
        return None
    params_text = template[start + 1:end].strip()
    if not params_text:
        return None

    try:
        module = ast.parse(f"def _f({params_text}): pass")
    except SyntaxError:
        logger.warning("Cannot parse invocation template %r, passing kwargs through", template)
        return None
    arguments = module.body[0].args

    positional = arguments.posonlyargs + arguments.args
    first_default = len(positional) - len(arguments.defaults)
    params = [
        _WireParam(key=arg.arg, identifier=arg.arg, required=index < first_default)
        for index, arg in enumerate(positional)
    ]
    params.extend(
        _WireParam(key=arg.arg, identifier=arg.arg, required=default is None)
        for arg, default in zip(arguments.kwonlyargs, arguments.kw_defaults)
    )

    if any(p.identifier in RESERVED_NAMES for p in params):
        logger.warning("Invocation template %r shadows binding locals, passing kwargs through", template)
        return None

    var_keyword = arguments.kwarg.arg if arguments.kwarg is not None else None
    if not params and var_keyword is None:
        return None
    return _CallableSpec(
        name=name,
        signature=ast.unparse(arguments),
        params=params,
        var_keyword=var_keyword,
    )


def _unique_identifier(raw: str, used: set[str]) -> str:
    identifier = to_identifier(raw)
    while identifier in RESERVED_NAMES or identifier in used:
        identifier += "_"
    used.add(identifier)
    return identifier


def _escape_docstring(text: str | None) -> str:
    if not text:
        return ""
    return text.strip().replace("\\", "\\\\").replace('"', '\\"')


BINDING_GENERATORS: dict[Language, Callable[[list[CodeactTool]], str]] = {
    Language.PYTHON: generate_python_bindings,
}
