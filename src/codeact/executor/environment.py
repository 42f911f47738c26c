"""
Codeact Runtime Environments

Language-specific knowledge the executor needs to turn stored functions
into a runnable program: the import preamble, how to find the function a
piece of source actually defines, and how to render the final call.
Environments are looked up by Language; only Python has one.
"""

from __future__ import annotations

import ast
import keyword
import math
import re
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Protocol

from codeact.exceptions import UnsupportedLanguageError
from codeact.marshal import to_guest
from codeact.models import Language

COMMON_IMPORTS = (
    "import json",
    "import math",
    "import re",
    "from typing import Any, Dict, List, Optional",
)

RESULT_VARIABLE = "codeact_result"

_DEF_PATTERN = re.compile(r"def\s+([A-Za-z_]\w*)\s*\(")


class RuntimeEnvironment(Protocol):
    """What the executor needs from a guest language."""

    language: Language

    def import_preamble(self, extra_imports: Iterable[str] = ()) -> str: ...

    def extract_function_name(self, code: str, preferred: str | None = None) -> str | None: ...

    def declares_no_parameters(self, code: str, function_name: str) -> bool: ...

    def render_call(self, function_name: str, args: Mapping[str, Any] | None) -> str: ...


class PythonEnvironment:
    """Python guest programs."""

    language = Language.PYTHON

    def import_preamble(self, extra_imports: Iterable[str] = ()) -> str:
        lines: list[str] = []
        for statement in (*COMMON_IMPORTS, *extra_imports):
            if statement and statement not in lines:
                lines.append(statement)
        return "\n".join(lines) + "\n"

    def extract_function_name(self, code: str, preferred: str | None = None) -> str | None:
        """Find the function a source unit defines.

        A top-level def named ``preferred`` wins, otherwise the first
        top-level def. Source that does not parse is scanned with a regex.
        """
        try:
            tree = ast.parse(code)
        except SyntaxError:
            match = _DEF_PATTERN.search(code)
            return match.group(1) if match else None

        names = [node.name for node in tree.body if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))]
        if preferred and preferred in names:
            return preferred
        return names[0] if names else None

    def declares_no_parameters(self, code: str, function_name: str) -> bool:
        try:
            tree = ast.parse(code)
        except SyntaxError:
            return False

        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name == function_name:
                arguments = node.args
                return not (
                    arguments.posonlyargs
                    or arguments.args
                    or arguments.kwonlyargs
                    or arguments.vararg
                    or arguments.kwarg
                )
        return False

    def render_call(self, function_name: str, args: Mapping[str, Any] | None) -> str:
        """Render the trailing call whose value becomes the program value.

        Raises ValueError for argument names that cannot be keywords.
        """
        rendered: list[str] = []
        for name, value in (args or {}).items():
            if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
                raise ValueError(f"Invalid argument name: {name!r}")
            rendered.append(f"{name}={render_literal(to_guest(value))}")

        return (
            "# Execute function\n"
            f"{RESULT_VARIABLE} = {function_name}({', '.join(rendered)})\n"
            f"{RESULT_VARIABLE}\n"
        )


def render_literal(value: Any) -> str:
    """Render JSON-like data as a Python literal."""
    if value is None or isinstance(value, (bool, int, str)):
        return repr(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "float('nan')"
        if math.isinf(value):
            return "float('inf')" if value > 0 else "-float('inf')"
        return repr(value)
    if isinstance(value, Decimal):
        return render_literal(float(value))
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_literal(item) for item in value) + "]"
    if isinstance(value, Mapping):
        items = ", ".join(f"{render_literal(str(k))}: {render_literal(v)}" for k, v in value.items())
        return "{" + items + "}"
    return repr(str(value))


ENVIRONMENTS: dict[Language, RuntimeEnvironment] = {
    Language.PYTHON: PythonEnvironment(),
}


def get_environment(language: Language) -> RuntimeEnvironment:
    environment = ENVIRONMENTS.get(language)
    if environment is None:
        raise UnsupportedLanguageError(language.value)
    return environment
