"""
Codeact Tool View Renderer

Renders registered tools as type-annotated Python stubs with Google-style
docstrings, for inclusion in the prompt that asks the model to write code.
Return types come from the tool's ReturnSchema when one is known, so the
stubs get more precise as the schema registry learns.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from codeact.logging import get_logger
from codeact.schema.shapes import ArrayShape, ObjectShape, ReturnSchema, ShapeNode
from codeact.tools.models import CodeExample, ParameterNode, ParameterTree, to_identifier

if TYPE_CHECKING:
    from codeact.tools.registry import CodeactTool

logger = get_logger("codeact.tools")

INDENT = "    "
MAX_FEW_SHOTS = 3
MAX_SHAPE_DEPTH = 5
DEFAULT_RETURN_HINT = "Dict[str, Any]"


def render_tool_stub(tool: CodeactTool, schema: ReturnSchema | None = None) -> str:
    """Render a free-function stub for one tool."""
    signature = _signature(to_identifier(tool.name), tool.parameter_tree, schema, method=False)
    lines = [f"def {signature}:"]
    lines.extend(_docstring(tool.description, tool.parameter_tree, schema, tool.metadata.few_shots))
    lines.append(f"{INDENT}...")
    return "\n".join(lines) + "\n"


def render_class_stub(
    class_name: str,
    class_description: str | None,
    tools: Sequence[CodeactTool],
    schema_lookup: Callable[[str], ReturnSchema | None] | None = None,
) -> str:
    """Render one class grouping the stubs of every tool in a namespace."""
    lines = [f"class {to_identifier(class_name)}:"]
    if class_description and class_description.strip():
        lines.append(f'{INDENT}"""{class_description}"""')
        lines.append("")

    for tool in tools:
        schema = schema_lookup(tool.name) if schema_lookup is not None else None
        signature = _signature(to_identifier(tool.name), tool.parameter_tree, schema, method=True)
        method = [f"def {signature}:"]
        method.extend(_docstring(tool.description, tool.parameter_tree, schema, tool.metadata.few_shots))
        method.append(f"{INDENT}...")
        lines.extend(f"{INDENT}{line}" if line else line for line in method)
        lines.append("")

    logger.debug("Rendered class stub %s with %d methods", class_name, len(tools))
    return "\n".join(lines) + "\n"


def _signature(name: str, tree: ParameterTree, schema: ReturnSchema | None, method: bool) -> str:
    params = tree.to_python_signature() if tree.has_parameters else ""
    if method:
        params = f"self, {params}" if params else "self"
    return f"{name}({params}) -> {_return_hint(schema)}"


def _return_hint(schema: ReturnSchema | None) -> str:
    return schema.python_type_hint if schema is not None else DEFAULT_RETURN_HINT


def _docstring(
    description: str,
    tree: ParameterTree,
    schema: ReturnSchema | None,
    few_shots: Sequence[CodeExample],
) -> list[str]:
    lines = [f'{INDENT}"""{description.strip() if description else ""}']

    if tree.has_parameters:
        lines.append("")
        lines.append(f"{INDENT}Args:")
        for param in tree.parameters:
            lines.extend(_arg_doc(param))

    lines.append("")
    lines.append(f"{INDENT}Returns:")
    lines.extend(_returns_doc(schema))

    if few_shots:
        lines.append("")
        lines.append(f"{INDENT}Examples:")
        for example in list(few_shots)[:MAX_FEW_SHOTS]:
            lines.extend(_example_doc(example))

    lines.append(f'{INDENT}"""')
    return lines


def _arg_doc(param: ParameterNode) -> list[str]:
    text = f"{INDENT * 2}{param.name} ({param.python_type_hint}"
    if not param.required:
        text += ", optional"
    text += ")"
    if param.description and param.description.strip():
        text += f": {param.description}"
    if param.default is not None:
        text += f" Defaults to {param.default}."
    if param.constraint:
        text += f" [{param.constraint}]"
    lines = [text]

    for prop in param.properties:
        line = f"{INDENT * 3}- {prop.name} ({prop.python_type_hint})"
        if prop.description:
            line += f": {prop.description}"
        lines.append(line)
    return lines


def _returns_doc(schema: ReturnSchema | None) -> list[str]:
    if schema is None:
        return [f"{INDENT * 2}{DEFAULT_RETURN_HINT}: Operation result"]

    summary = schema.description if schema.description and schema.description.strip() else "Operation result"
    lines = [f"{INDENT * 2}{schema.python_type_hint}: {summary}"]

    if schema.success_shape is not None:
        lines.extend(_shape_doc(schema.success_shape, 3))
    if isinstance(schema.error_shape, ObjectShape):
        lines.append(f"{INDENT * 2}On failure returns:")
        lines.extend(_shape_doc(schema.error_shape, 3))
    return lines


def _shape_doc(shape: ShapeNode, level: int) -> list[str]:
    indent = INDENT * level
    lines: list[str] = []

    if isinstance(shape, ObjectShape):
        for name, field in shape.fields.items():
            line = f"{indent}- {name} ({field.shape.python_type_hint}"
            if field.optional:
                line += ", optional"
            line += ")"
            if field.description:
                line += f": {field.description}"
            lines.append(line)

            nested = field.shape
            if isinstance(nested, ObjectShape) and level < MAX_SHAPE_DEPTH:
                lines.extend(_shape_doc(nested, level + 1))
            elif (
                isinstance(nested, ArrayShape)
                and isinstance(nested.item_shape, ObjectShape)
                and level < MAX_SHAPE_DEPTH
            ):
                lines.append(f"{indent}{INDENT}Each item contains:")
                lines.extend(_shape_doc(nested.item_shape, level + 2))

    elif isinstance(shape, ArrayShape):
        lines.append(f"{indent}List, each item is {shape.item_shape.python_type_hint}")
        if isinstance(shape.item_shape, ObjectShape):
            lines.extend(_shape_doc(shape.item_shape, level + 1))

    return lines


def _example_doc(example: CodeExample) -> list[str]:
    lines = []
    if example.description and example.description.strip():
        lines.append(f"{INDENT * 2}# {example.description}")
    lines.append(f"{INDENT * 2}>>> {example.code_snippet}")
    if example.expected_behavior and example.expected_behavior.strip():
        lines.append(f"{INDENT * 2}# {example.expected_behavior}")
    return lines
