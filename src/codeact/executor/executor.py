"""
Codeact Code Executor

Runs functions stored in a CodeContext. For every call the executor
assembles one program (import preamble, every stored function in
registration order, the trailing call), runs it in a fresh GuestSandbox
with tool bindings and bridges injected, and turns the outcome into an
ExecutionRecord. It never raises past itself: every failure, including
unexpected ones, becomes a record with ``success=False``.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from codeact.context import CodeContext
from codeact.exceptions import (
    CodeactError,
    ExecutionTimeoutError,
    FunctionNotFoundError,
    MalformedSourceError,
)
from codeact.executor.bridges import GuestLogger, InMemoryState, StateBridge, StateStore, ToolRegistryBridge
from codeact.executor.environment import RuntimeEnvironment, get_environment
from codeact.executor.sandbox import GuestSandbox, SandboxConfig
from codeact.logging import get_logger
from codeact.marshal import convert_result
from codeact.models import ErrorKind, ExecutionRecord
from codeact.tools.bindings import generate_bindings
from codeact.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from codeact.config import CodeactConfig

logger = get_logger("codeact.executor")

DIRECT_FUNCTION_NAME = "__direct__"


class CodeExecutor:
    """Executes agent-written functions against a CodeContext.

    Args:
        context: Functions and imports of the current session.
        tool_registry: Tools exposed to guest code; none when omitted.
        state: Session state behind ``agent_state``; a fresh InMemoryState
            when omitted.
        config: Sandbox capabilities and limits.
    """

    def __init__(
        self,
        context: CodeContext,
        tool_registry: ToolRegistry | None = None,
        state: StateStore | None = None,
        config: SandboxConfig | None = None,
    ):
        self._context = context
        self._registry = tool_registry if tool_registry is not None else ToolRegistry()
        self._state = state if state is not None else InMemoryState()
        self._sandbox = GuestSandbox(config)
        self._environment: RuntimeEnvironment = get_environment(context.language)

    @classmethod
    def from_config(
        cls,
        config: CodeactConfig,
        context: CodeContext | None = None,
        tool_registry: ToolRegistry | None = None,
        state: StateStore | None = None,
    ) -> CodeExecutor:
        """Build an executor from a CodeactConfig.

        Uses the config's sandbox settings; a missing context is created for
        the configured language.

        Raises:
            ValueError: The context language differs from the configured one.
        """
        if context is None:
            context = CodeContext(config.language)
        elif context.language != config.language:
            raise ValueError(
                f"Context language {context.language.value!r} does not match "
                f"configured language {config.language.value!r}"
            )
        return cls(context, tool_registry=tool_registry, state=state, config=config.sandbox)

    @property
    def context(self) -> CodeContext:
        return self._context

    @property
    def tool_registry(self) -> ToolRegistry:
        return self._registry

    @property
    def config(self) -> SandboxConfig:
        return self._sandbox.config

    def execute(
        self,
        function_name: str,
        args: Mapping[str, Any] | None = None,
        tool_context: Mapping[str, Any] | None = None,
    ) -> ExecutionRecord:
        """Execute a stored function with keyword arguments."""
        start = time.perf_counter()
        warnings: list[str] = []
        metadata: dict[str, Any] = {}

        try:
            program, derived_name = self._assemble(function_name, args, warnings)
            metadata["derived_function_name"] = derived_name
            cancel = threading.Event()
            outcome = self._sandbox.run(
                program,
                handles=self._handles(tool_context, cancel),
                bindings=self._bindings(),
                cancel=cancel,
            )
        except Exception as e:
            return self._failure(function_name, e, start, warnings, metadata)

        return self._success(function_name, outcome.value, start, warnings, metadata)

    def execute_direct(self, code: str, tool_context: Mapping[str, Any] | None = None) -> ExecutionRecord:
        """Execute a code snippet after the import preamble.

        The value of the snippet's trailing expression is the result.
        """
        start = time.perf_counter()
        program = self._environment.import_preamble(self._context.required_imports()) + "\n" + code
        try:
            cancel = threading.Event()
            outcome = self._sandbox.run(
                program,
                handles=self._handles(tool_context, cancel),
                bindings=self._bindings(),
                cancel=cancel,
            )
        except Exception as e:
            return self._failure(DIRECT_FUNCTION_NAME, e, start, [], {})

        return self._success(DIRECT_FUNCTION_NAME, outcome.value, start, [], {})

    def assemble_program(self, function_name: str, args: Mapping[str, Any] | None = None) -> str:
        """Build the program ``execute`` would run, without running it.

        Raises:
            FunctionNotFoundError: The function is not in the context.
            MalformedSourceError: Its source defines no function.
            ValueError: An argument name is not a valid keyword.
        """
        program, _ = self._assemble(function_name, args, [])
        return program

    # ─── Assembly ────────────────────────────────────────────

    def _assemble(
        self,
        function_name: str,
        args: Mapping[str, Any] | None,
        warnings: list[str],
    ) -> tuple[str, str]:
        code = self._context.get_function(function_name)
        if code is None:
            raise FunctionNotFoundError(function_name)

        derived = self._environment.extract_function_name(code.code, preferred=function_name)
        if derived is None:
            raise MalformedSourceError(function_name)
        if derived != function_name:
            logger.debug(
                "Registered name differs from defined function",
                extra={"function_name": function_name, "_extra": {"derived": derived}},
            )

        if args and self._environment.declares_no_parameters(code.code, derived):
            message = f"Function '{derived}' takes no parameters; ignoring supplied arguments {sorted(args)}"
            logger.warning(message, extra={"function_name": function_name})
            warnings.append(message)
            args = None

        parts = [self._environment.import_preamble(self._context.required_imports())]
        parts.extend(stored.code.rstrip("\n") + "\n" for stored in self._context.all_functions())
        parts.append(self._environment.render_call(derived, args))
        return "\n".join(parts), derived

    def _bindings(self) -> str | None:
        tools = self._registry.get_for_language(self._context.language)
        if not tools:
            return None
        return generate_bindings(tools, self._context.language)

    def _handles(self, tool_context: Mapping[str, Any] | None, cancel: threading.Event) -> dict[str, Any]:
        return {
            "__tool_registry__": ToolRegistryBridge(self._registry, tool_context=tool_context, cancelled=cancel),
            "agent_state": StateBridge(self._state, cancelled=cancel),
            "logger": GuestLogger(cancel),
        }

    # ─── Records ─────────────────────────────────────────────

    def _success(
        self,
        function_name: str,
        raw_value: Any,
        start: float,
        warnings: list[str],
        metadata: dict[str, Any],
    ) -> ExecutionRecord:
        value = convert_result(raw_value)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Function executed",
            extra={"function_name": function_name, "success": True, "duration_ms": round(duration_ms, 2)},
        )
        return ExecutionRecord(
            function_name=function_name,
            language=self._context.language,
            success=True,
            result=_stringify(value),
            value=value,
            duration_ms=duration_ms,
            warnings=warnings,
            metadata=metadata,
        )

    def _failure(
        self,
        function_name: str,
        error: Exception,
        start: float,
        warnings: list[str],
        metadata: dict[str, Any],
    ) -> ExecutionRecord:
        kind = _error_kind(error)
        stack_trace = getattr(error, "stack_trace", None) or None
        duration_ms = (time.perf_counter() - start) * 1000

        if isinstance(error, (CodeactError, ValueError)):
            logger.warning(
                "Function execution failed: %s",
                error,
                extra={"function_name": function_name, "success": False, "error_kind": kind.value},
            )
        else:
            logger.error(
                "Unexpected executor failure",
                extra={"function_name": function_name, "success": False, "error_kind": kind.value},
                exc_info=True,
            )

        return ExecutionRecord(
            function_name=function_name,
            language=self._context.language,
            success=False,
            error_kind=kind,
            error_message=str(error),
            stack_trace=stack_trace,
            duration_ms=duration_ms,
            warnings=warnings,
            metadata=metadata,
        )


def _error_kind(error: Exception) -> ErrorKind:
    if isinstance(error, FunctionNotFoundError):
        return ErrorKind.FUNCTION_NOT_FOUND
    if isinstance(error, MalformedSourceError):
        return ErrorKind.MALFORMED_SOURCE
    if isinstance(error, ExecutionTimeoutError):
        return ErrorKind.TIMEOUT
    # guest exceptions, invalid arguments and anything unexpected
    return ErrorKind.GUEST_RUNTIME


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)
