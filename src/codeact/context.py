"""
Codeact Code Context

In-memory, per-session store of the functions the agent has written.
Functions are kept in registration order so that later functions can call
earlier ones once the executor concatenates them into one program.
"""

from __future__ import annotations

import threading
import time

from codeact.models import GeneratedCode, Language


class CodeContext:
    """Ordered, name-keyed collection of GeneratedCode for one language.

    Names are unique; registering an existing name overwrites the old
    entry in place.
    """

    def __init__(self, language: Language = Language.PYTHON) -> None:
        self._language = language
        self._functions: dict[str, GeneratedCode] = {}
        # dict keeps insertion order, used as an ordered set
        self._imports: dict[str, None] = {}
        self._lock = threading.RLock()
        self._last_updated = time.time()

    @property
    def language(self) -> Language:
        return self._language

    @property
    def last_updated(self) -> float:
        return self._last_updated

    def register_function(self, code: GeneratedCode) -> None:
        """Register a new function or replace an existing one.

        Raises ValueError on a missing name or a language mismatch.
        """
        if not code.function_name:
            raise ValueError("Code and function name cannot be empty")
        if code.language != self._language:
            raise ValueError(
                f"Language mismatch: expected {self._language.value}, got {code.language.value}"
            )
        with self._lock:
            self._functions[code.function_name] = code
            self._last_updated = time.time()

    def get_function(self, name: str) -> GeneratedCode | None:
        with self._lock:
            return self._functions.get(name)

    def has_function(self, name: str) -> bool:
        with self._lock:
            return name in self._functions

    def all_functions(self) -> list[GeneratedCode]:
        """Return every function in registration order."""
        with self._lock:
            return list(self._functions.values())

    def function_names(self) -> list[str]:
        with self._lock:
            return list(self._functions)

    def add_import(self, statement: str) -> None:
        with self._lock:
            self._imports[statement] = None
            self._last_updated = time.time()

    def required_imports(self) -> list[str]:
        with self._lock:
            return list(self._imports)

    def clear_imports(self) -> None:
        with self._lock:
            self._imports.clear()
            self._last_updated = time.time()

    def clear(self) -> None:
        with self._lock:
            self._functions.clear()
            self._imports.clear()
            self._last_updated = time.time()

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: str) -> bool:
        return self.has_function(name)

    def __repr__(self) -> str:
        return (
            f"CodeContext(language={self._language.value}, "
            f"functions={len(self._functions)}, imports={len(self._imports)})"
        )
