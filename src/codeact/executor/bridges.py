"""
Codeact Guest Bridges

Host objects injected into every guest namespace:
- ``__tool_registry__``: ToolRegistryBridge, target of the generated bindings
- ``agent_state``: StateBridge over the session state
- ``logger``: GuestLogger writing to the ``codeact.guest`` logger

Values passed through the state bridge are marshaled in both directions,
so guest code never holds a reference to host state containers.

Each bridge may share a ``cancelled`` event with the sandbox run it
serves. Once set, every bridge method raises GuestInterrupted, so a guest
that outlives its timeout cannot call tools or touch state.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from codeact.exceptions import ToolNotFoundError
from codeact.executor.sandbox import GuestInterrupted
from codeact.logging import get_logger
from codeact.marshal import to_guest, to_host
from codeact.schema.registry import ReturnSchemaRegistry
from codeact.tools.registry import ToolRegistry

logger = get_logger("codeact.bridge")
guest_logger = get_logger("codeact.guest")


class _CancellableBridge:
    def __init__(self, cancelled: threading.Event | None = None):
        self._cancelled = cancelled

    def _check_cancelled(self) -> None:
        if self._cancelled is not None and self._cancelled.is_set():
            logger.warning("Refusing guest call after cancellation")
            raise GuestInterrupted()


class ToolRegistryBridge(_CancellableBridge):
    """Dispatches tool calls made by generated bindings.

    ``call_tool`` reports every failure to the guest as
    ``{"error": "<message>"}`` and observes it as an error shape. It only
    raises once the run has been cancelled.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        tool_context: Mapping[str, Any] | None = None,
        schema_registry: ReturnSchemaRegistry | None = None,
        cancelled: threading.Event | None = None,
    ):
        super().__init__(cancelled)
        self._registry = registry
        self._tool_context = tool_context
        self._schemas = schema_registry if schema_registry is not None else registry.schema_registry

    def call_tool(self, tool_name: str, args_json: str) -> str:
        self._check_cancelled()
        logger.info(
            "Guest tool call",
            extra={"tool_name": tool_name, "_extra": {"args_length": len(args_json or "")}},
        )

        try:
            tool = self._registry.require(tool_name)
        except ToolNotFoundError as e:
            return self._failure(tool_name, str(e))

        try:
            result_json = tool.call(args_json, tool_context=self._tool_context)
        except Exception as e:
            logger.error("Tool call failed", extra={"tool_name": tool.name}, exc_info=True)
            return self._failure(tool.name, str(e))

        self._observe(tool.name, result_json, success=True)
        return result_json

    def _failure(self, tool_name: str, message: str) -> str:
        payload = json.dumps({"error": message}, ensure_ascii=False)
        self._observe(tool_name, payload, success=False)
        return payload

    def _observe(self, tool_name: str, result_json: str, success: bool) -> None:
        # Learning a schema must never break the tool call itself
        try:
            self._schemas.observe(tool_name, result_json, success)
        except Exception as e:
            logger.warning("Return schema observation failed for %s: %s", tool_name, e)


# ─── Session State ───────────────────────────────────────────

@runtime_checkable
class StateStore(Protocol):
    """Session state the guest may read and write."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def has(self, key: str) -> bool: ...

    def snapshot(self) -> dict[str, Any]: ...


class InMemoryState:
    """Thread-safe dict-backed StateStore."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._data)


class StateBridge(_CancellableBridge):
    """The ``agent_state`` handle."""

    def __init__(self, store: StateStore, cancelled: threading.Event | None = None):
        super().__init__(cancelled)
        self._store = store

    def get(self, key: str, default: Any = None) -> Any:
        self._check_cancelled()
        return to_guest(self._store.get(key, default))

    def set(self, key: str, value: Any) -> None:
        self._check_cancelled()
        self._store.set(key, to_host(value))

    def has(self, key: str) -> bool:
        self._check_cancelled()
        return self._store.has(key)

    def get_all(self) -> dict[str, Any]:
        self._check_cancelled()
        return to_guest(self._store.snapshot())


class GuestLogger(_CancellableBridge):
    """The ``logger`` handle."""

    def debug(self, message: Any, *args: Any) -> None:
        self._check_cancelled()
        guest_logger.debug(str(message), *args)

    def info(self, message: Any, *args: Any) -> None:
        self._check_cancelled()
        guest_logger.info(str(message), *args)

    def warning(self, message: Any, *args: Any) -> None:
        self._check_cancelled()
        guest_logger.warning(str(message), *args)

    def error(self, message: Any, *args: Any) -> None:
        self._check_cancelled()
        guest_logger.error(str(message), *args)
