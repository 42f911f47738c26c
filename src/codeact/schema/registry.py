"""
Codeact Return Schema Registry

Keeps, per tool name, the declared return schema and the schema learned
from observed tool results. Observations for the same tool are serialized
by a per-tool lock so sample counts are exact under concurrent calls;
observations for different tools never contend.
"""

from __future__ import annotations

import threading

from codeact.logging import get_logger
from codeact.schema.extractor import extract_json
from codeact.schema.merger import merge
from codeact.schema.shapes import ReturnSchema

logger = get_logger("codeact.schema")


class ReturnSchemaRegistry:
    """Thread-safe store of declared and observed return schemas."""

    def __init__(self) -> None:
        self._declared: dict[str, ReturnSchema] = {}
        self._schemas: dict[str, ReturnSchema] = {}
        self._tool_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _lock_for(self, tool_name: str) -> threading.Lock:
        with self._lock:
            lock = self._tool_locks.get(tool_name)
            if lock is None:
                lock = threading.Lock()
                self._tool_locks[tool_name] = lock
            return lock

    def register_declared(self, tool_name: str, schema: ReturnSchema) -> None:
        """Set the declared schema for a tool; it also seeds the merged schema."""
        if not tool_name or schema is None:
            return
        schema = schema.model_copy(update={"tool_name": tool_name})
        with self._lock_for(tool_name):
            with self._lock:
                self._declared[tool_name] = schema
                self._schemas[tool_name] = schema
        logger.debug("Registered declared return schema", extra={"tool_name": tool_name})

    def observe(self, tool_name: str, result_json: str | None, success: bool) -> ReturnSchema | None:
        """Fold one tool result into the tool's schema.

        Blank tool names and blank results are ignored.
        """
        if not tool_name or not tool_name.strip():
            logger.warning("Ignoring observation with empty tool name")
            return None
        if result_json is None or not result_json.strip():
            return None

        observed = extract_json(result_json)
        with self._lock_for(tool_name):
            with self._lock:
                existing = self._schemas.get(tool_name)
            updated = merge(existing, observed, success)
            if updated.tool_name != tool_name:
                updated = updated.model_copy(update={"tool_name": tool_name})
            with self._lock:
                self._schemas[tool_name] = updated

        logger.debug(
            "Observed tool result",
            extra={"tool_name": tool_name, "success": success, "sample_count": updated.sample_count},
        )
        return updated

    def get_schema(self, tool_name: str) -> ReturnSchema | None:
        with self._lock:
            return self._schemas.get(tool_name)

    def get_declared(self, tool_name: str) -> ReturnSchema | None:
        with self._lock:
            return self._declared.get(tool_name)

    def tools_with_schema(self) -> list[str]:
        with self._lock:
            return list(self._schemas)

    def clear_observed(self, tool_name: str) -> None:
        """Drop everything learned for a tool, restoring its declared schema if any."""
        with self._lock_for(tool_name):
            with self._lock:
                declared = self._declared.get(tool_name)
                if declared is None:
                    self._schemas.pop(tool_name, None)
                else:
                    self._schemas[tool_name] = declared

    def clear_all_observed(self) -> None:
        with self._lock:
            names = list(self._schemas)
        for name in names:
            self.clear_observed(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._schemas)
