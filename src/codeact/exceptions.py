"""
Codeact Custom Exceptions

Structured exception hierarchy for the code-execution engine.
All codeact-specific exceptions inherit from CodeactError.

Exception hierarchy:
    CodeactError
    +-- FunctionNotFoundError      (name absent from the CodeContext)
    +-- MalformedSourceError       (no function definition found in source)
    +-- GuestRuntimeError          (exception raised while running guest code)
    |   +-- ExecutionTimeoutError  (sandbox budget exceeded)
    +-- ToolNotFoundError          (bridge asked for an unregistered tool)
    +-- ToolExecutionError         (tool handler failed)
    +-- UnsupportedLanguageError   (no runtime for the requested language)
"""

from __future__ import annotations


class CodeactError(Exception):
    """Base exception for all codeact errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class FunctionNotFoundError(CodeactError):
    """Raised when the requested function is not registered in the CodeContext.

    Fatal for the call; never retried.
    """

    def __init__(self, function_name: str, details: dict | None = None):
        super().__init__(
            f"Function not found: {function_name}",
            details={"function_name": function_name, **(details or {})},
        )
        self.function_name = function_name


class MalformedSourceError(CodeactError):
    """Raised when the target function cannot be located in its own source."""

    def __init__(self, function_name: str, details: dict | None = None):
        super().__init__(
            f"Cannot extract function name from code: {function_name}",
            details={"function_name": function_name, **(details or {})},
        )
        self.function_name = function_name


class GuestRuntimeError(CodeactError):
    """Raised when guest code fails inside the sandbox.

    Carries the formatted guest traceback so the executor can put it
    on the ExecutionRecord.
    """

    def __init__(self, message: str, stack_trace: str = "", details: dict | None = None):
        super().__init__(message, details=details)
        self.stack_trace = stack_trace


class ExecutionTimeoutError(GuestRuntimeError):
    """Raised when guest code exceeds the sandbox wall-clock budget."""

    def __init__(self, timeout_seconds: float, stack_trace: str = "", details: dict | None = None):
        super().__init__(
            f"Code execution exceeded {timeout_seconds}s limit",
            stack_trace=stack_trace,
            details={"timeout_seconds": timeout_seconds, **(details or {})},
        )
        self.timeout_seconds = timeout_seconds


class ToolNotFoundError(CodeactError):
    """Raised when a tool name or alias does not resolve in the registry."""

    def __init__(self, tool_name: str, details: dict | None = None):
        super().__init__(
            f"Tool not found: {tool_name}",
            details={"tool_name": tool_name, **(details or {})},
        )
        self.tool_name = tool_name


class ToolExecutionError(CodeactError):
    """Raised when a tool execution fails.

    Includes tool name for debugging.
    """

    def __init__(self, tool_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Tool '{tool_name}' execution failed: {message}",
            details={"tool_name": tool_name, **(details or {})},
        )
        self.tool_name = tool_name


class UnsupportedLanguageError(CodeactError):
    """Raised when no runtime environment or binding generator exists for a language."""

    def __init__(self, language: str, details: dict | None = None):
        super().__init__(
            f"Unsupported language: {language}",
            details={"language": language, **(details or {})},
        )
        self.language = language
