"""
Codeact Core Data Models

Shared types used across the engine: guest languages, agent-written
code units and the immutable record produced by every execution.
This module has no internal dependencies beyond pydantic.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ─── Enums ───────────────────────────────────────────────────

class Language(str, Enum):
    """Guest languages a CodeContext can hold."""
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    JAVA = "java"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @classmethod
    def from_name(cls, name: str) -> Language:
        """Resolve a language by name, case-insensitively."""
        for language in cls:
            if language.value == name.lower():
                return language
        raise ValueError(f"Unsupported language: {name}")


_EXTENSIONS = {
    Language.PYTHON: "py",
    Language.JAVASCRIPT: "js",
    Language.JAVA: "java",
}


class ErrorKind(str, Enum):
    """Why an execution failed."""
    FUNCTION_NOT_FOUND = "FUNCTION_NOT_FOUND"
    MALFORMED_SOURCE = "MALFORMED_SOURCE"
    GUEST_RUNTIME = "GUEST_RUNTIME"
    TIMEOUT = "TIMEOUT"


# ─── Generated Code ──────────────────────────────────────────

class GeneratedCode(BaseModel):
    """A function written by the agent for a natural-language requirement.

    The registered name and the name actually defined in ``code`` may
    differ; the executor re-derives the real one before every call.
    """
    function_name: str
    language: Language = Language.PYTHON
    code: str
    requirement: str = ""
    parameters: list[str] | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def assign_parameters(self, names: list[str]) -> None:
        """Set the ordered parameter names. Allowed once."""
        if self.parameters is not None:
            raise ValueError(f"Parameters already set for function '{self.function_name}'")
        self.parameters = list(names)


# ─── Execution Record ────────────────────────────────────────

class ExecutionRecord(BaseModel):
    """Outcome of one execution. Immutable once built.

    ``result`` is the stringified value for display; ``value`` is the
    host-native converted value.
    """
    model_config = ConfigDict(frozen=True)

    function_name: str
    language: Language = Language.PYTHON
    success: bool
    result: str | None = None
    value: Any = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    stack_trace: str | None = None
    duration_ms: float = 0.0
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    warnings: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
