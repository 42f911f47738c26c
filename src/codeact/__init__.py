"""
Codeact: Sandboxed Code Execution for Tool-Calling Agents

Usage:
    from codeact import CodeContext, CodeExecutor, GeneratedCode, ToolRegistry

    context = CodeContext()
    context.register_function(GeneratedCode(
        function_name="add",
        code="def add(a, b):\n    return a + b",
    ))

    executor = CodeExecutor(context, tool_registry=ToolRegistry())
    record = executor.execute("add", {"a": 2, "b": 3})
    assert record.result == "5"
"""

from codeact.config import CodeactConfig
from codeact.context import CodeContext
from codeact.exceptions import (
    CodeactError,
    ExecutionTimeoutError,
    FunctionNotFoundError,
    GuestRuntimeError,
    MalformedSourceError,
    ToolExecutionError,
    ToolNotFoundError,
    UnsupportedLanguageError,
)
from codeact.executor import CodeExecutor, GuestSandbox, InMemoryState, SandboxConfig
from codeact.models import ErrorKind, ExecutionRecord, GeneratedCode, Language
from codeact.schema import ReturnSchema, ReturnSchemaRegistry
from codeact.tools import (
    CodeactTool,
    CodeactToolMetadata,
    CodeExample,
    ToolDefinition,
    ToolRegistry,
    generate_bindings,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core
    "CodeContext",
    "CodeExecutor",
    "CodeactConfig",
    "GuestSandbox",
    "InMemoryState",
    "SandboxConfig",
    # Models
    "ErrorKind",
    "ExecutionRecord",
    "GeneratedCode",
    "Language",
    "ReturnSchema",
    "ReturnSchemaRegistry",
    # Tools
    "CodeExample",
    "CodeactTool",
    "CodeactToolMetadata",
    "ToolDefinition",
    "ToolRegistry",
    "generate_bindings",
    # Errors
    "CodeactError",
    "ExecutionTimeoutError",
    "FunctionNotFoundError",
    "GuestRuntimeError",
    "MalformedSourceError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "UnsupportedLanguageError",
]
