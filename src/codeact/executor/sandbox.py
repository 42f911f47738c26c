"""
Codeact Guest Sandbox

Runs guest Python in a fresh namespace on a worker thread:
- Capability toggles for host access, I/O and native access
- Guarded ``__import__`` (module allowlist / blocklists, no relative imports)
- With host access off, guest source is compiled by RestrictedPython and
  runs against ``safe_builtins`` plus its guard hooks
- Guest ``print`` and ``sys.stdout``/``sys.stderr`` writes captured into
  in-memory buffers, logged and never returned
- Wall-clock timeout; on expiry the run is cancelled: a trace hook
  interrupts guest frames and every injected handle refuses further calls

Note: This is an in-process sandbox. A guest blocked inside a C call or a
host function cannot be interrupted until that call returns; its worker
thread is abandoned after a short grace period and the call still fails
with a timeout. With ``allow_host_access`` on, guest code can reach the
host interpreter (e.g. through ``sys.modules``) and the I/O and native
toggles only restrict direct imports and ``open``.
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import functools
import inspect
import io
import operator
import sys
import threading
import time
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import CodeType, FrameType
from typing import Any, TextIO

from pydantic import BaseModel, Field
from RestrictedPython import compile_restricted_eval, compile_restricted_exec, safe_builtins
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)

from codeact.exceptions import ExecutionTimeoutError, GuestRuntimeError
from codeact.logging import get_logger

logger = get_logger("codeact.sandbox")

GUEST_FILENAME = "<guest>"
GUEST_MODULE = "__guest__"
BINDINGS_FILENAME = "<bindings>"

# Pure-computation modules importable when host access is off
SAFE_MODULES = frozenset({
    "json", "math", "cmath", "re", "typing", "datetime", "time", "calendar",
    "collections", "itertools", "functools", "operator", "random", "statistics",
    "decimal", "fractions", "numbers", "string", "textwrap", "unicodedata",
    "dataclasses", "enum", "copy", "heapq", "bisect", "uuid", "hashlib",
    "base64", "binascii", "difflib", "pprint",
})

IO_MODULES = frozenset({
    "os", "io", "pathlib", "shutil", "subprocess", "socket", "tempfile", "glob",
    "fileinput", "filecmp", "urllib", "http", "ftplib", "smtplib", "poplib",
    "imaplib", "ssl", "select", "selectors", "asyncio", "multiprocessing",
    "signal", "sqlite3", "dbm", "shelve", "pty", "fcntl", "posix", "nt",
    "zipfile", "tarfile", "gzip", "bz2", "lzma", "webbrowser", "_io",
})

NATIVE_MODULES = frozenset({"ctypes", "_ctypes", "cffi", "mmap"})

ALWAYS_REMOVED_BUILTINS = ("input", "breakpoint", "help", "exit", "quit", "copyright", "credits", "license")

# Added on top of RestrictedPython's safe_builtins for restricted runs
RESTRICTED_EXTRA_BUILTINS = (
    "all", "any", "bin", "classmethod", "dict", "enumerate", "filter", "format",
    "frozenset", "hasattr", "iter", "list", "map", "max", "min", "next",
    "object", "property", "reversed", "set", "staticmethod", "sum", "type",
    "__build_class__",
)

_INPLACE_OPERATORS = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "|=": operator.ior,
    "^=": operator.ixor,
    "@=": operator.imatmul,
}


class SandboxConfig(BaseModel):
    """Configuration for the guest sandbox."""

    allow_io: bool = False
    allow_native_access: bool = False
    allow_host_access: bool = True
    timeout_seconds: float = Field(default=30.0, gt=0, le=300.0)
    max_output_bytes: int = Field(default=65536, ge=0, le=1048576)
    interrupt_grace_seconds: float = Field(default=1.0, gt=0, le=30.0)


@dataclass
class SandboxOutcome:
    """What one sandbox run produced."""
    value: Any
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = 0.0


class GuestInterrupted(BaseException):
    """Raised inside the guest thread once its run has been cancelled."""


# ─── Stream Routing ──────────────────────────────────────────

# thread ident -> (stdout buffer, stderr buffer) of the guest running on it
_guest_streams: dict[int, tuple[io.StringIO, io.StringIO]] = {}
_streams_lock = threading.Lock()


class GuestRoutedStream:
    """Stands in for ``sys.stdout`` / ``sys.stderr``.

    Writes made on a thread that is running guest code land in that
    guest's buffer; all other writes go to the host stream.
    """

    def __init__(self, host_stream: TextIO, slot: int):
        self.host_stream = host_stream
        self._slot = slot

    def _target(self) -> TextIO:
        buffers = _guest_streams.get(threading.get_ident())
        return buffers[self._slot] if buffers is not None else self.host_stream

    def write(self, text: str) -> int:
        return self._target().write(text)

    def writelines(self, lines) -> None:
        self._target().writelines(lines)

    def flush(self) -> None:
        self._target().flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self.host_stream, name)


def _route_std_streams() -> None:
    """Install routed streams unless sys.stdout/sys.stderr already are."""
    with _streams_lock:
        if not isinstance(sys.stdout, GuestRoutedStream):
            sys.stdout = GuestRoutedStream(sys.stdout, 0)
        if not isinstance(sys.stderr, GuestRoutedStream):
            sys.stderr = GuestRoutedStream(sys.stderr, 1)


# ─── Sandbox ─────────────────────────────────────────────────

class GuestSandbox:
    """Executes guest programs according to a SandboxConfig.

    Every run gets a new namespace; nothing is shared between runs except
    the handles passed in.
    """

    def __init__(self, config: SandboxConfig | None = None):
        self._config = config or SandboxConfig()

    @property
    def config(self) -> SandboxConfig:
        return self._config

    def run(
        self,
        source: str,
        handles: Mapping[str, Any] | None = None,
        bindings: str | None = None,
        cancel: threading.Event | None = None,
    ) -> SandboxOutcome:
        """Run ``bindings`` then ``source``; return the program value.

        The program value is the value of ``source``'s trailing expression
        statement, or None when it has none. ``cancel`` is set when the run
        times out; handles sharing it stop serving the guest.

        Raises:
            GuestRuntimeError: The guest raised, or the source is invalid.
            ExecutionTimeoutError: The run exceeded ``timeout_seconds``.
        """
        cfg = self._config
        body, value_expr = self._compile(source)
        bindings_code = compile(bindings, BINDINGS_FILENAME, "exec") if bindings else None

        stdout = io.StringIO()
        stderr = io.StringIO()
        namespace = self._build_namespace(handles or {}, stdout, stderr)

        cancel = cancel if cancel is not None else threading.Event()
        completed = threading.Event()
        container: dict[str, Any] = {}

        def runner() -> None:
            ident = threading.get_ident()
            _guest_streams[ident] = (stdout, stderr)
            try:
                container["value"] = self._run_guest(namespace, bindings_code, body, value_expr, cancel)
            except GuestInterrupted:
                container["interrupted"] = True
            except BaseException as e:
                container["error"] = e
            finally:
                _guest_streams.pop(ident, None)
                completed.set()

        _route_std_streams()
        start = time.perf_counter()
        thread = threading.Thread(target=runner, name="codeact-guest", daemon=True)
        thread.start()

        if not completed.wait(cfg.timeout_seconds):
            cancel.set()
            if not completed.wait(cfg.interrupt_grace_seconds):
                logger.warning("Guest thread did not stop after interrupt, abandoning it")
            self._flush_output(stdout, stderr)
            raise ExecutionTimeoutError(cfg.timeout_seconds)

        duration_ms = (time.perf_counter() - start) * 1000
        self._flush_output(stdout, stderr)

        if "error" in container:
            error = container["error"]
            raise GuestRuntimeError(
                f"{type(error).__name__}: {error}",
                stack_trace=_guest_traceback(error),
                details={"exception_type": type(error).__name__},
            ) from error

        return SandboxOutcome(
            value=container.get("value"),
            stdout=stdout.getvalue(),
            stderr=stderr.getvalue(),
            duration_ms=duration_ms,
        )

    # ─── Compilation ─────────────────────────────────────────

    def _compile(self, source: str) -> tuple[CodeType, CodeType | None]:
        try:
            tree = ast.parse(source, GUEST_FILENAME, "exec")
        except SyntaxError as e:
            raise GuestRuntimeError(
                f"SyntaxError: {e.msg} (line {e.lineno})",
                stack_trace="".join(traceback.format_exception_only(type(e), e)),
                details={"exception_type": "SyntaxError"},
            ) from e

        value_node = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            value_node = tree.body.pop().value

        if self._config.allow_host_access:
            body = compile(tree, GUEST_FILENAME, "exec")
            value = compile(ast.Expression(value_node), GUEST_FILENAME, "eval") if value_node is not None else None
            return body, value

        body = _restricted(compile_restricted_exec(tree, GUEST_FILENAME))
        value = None
        if value_node is not None:
            value = _restricted(compile_restricted_eval(ast.unparse(value_node), GUEST_FILENAME))
        return body, value

    # ─── Namespace ───────────────────────────────────────────

    def _build_namespace(self, handles: Mapping[str, Any], stdout: io.StringIO, stderr: io.StringIO) -> dict:
        guest_print = _make_print(stdout, stderr)
        if self._config.allow_host_access:
            namespace = {"__builtins__": self._host_builtins(guest_print), "__name__": GUEST_MODULE}
        else:
            namespace = self._restricted_namespace(guest_print)
        namespace.update(handles)
        return namespace

    def _host_builtins(self, guest_print: Callable[..., None]) -> dict[str, Any]:
        guest_builtins = dict(vars(builtins))
        for name in ALWAYS_REMOVED_BUILTINS:
            guest_builtins.pop(name, None)
        if not self._config.allow_io:
            guest_builtins.pop("open", None)
        guest_builtins["__import__"] = self._make_import()
        guest_builtins["print"] = guest_print
        return guest_builtins

    def _restricted_namespace(self, guest_print: Callable[..., None]) -> dict[str, Any]:
        guest_builtins = dict(safe_builtins)
        for name in RESTRICTED_EXTRA_BUILTINS:
            guest_builtins[name] = getattr(builtins, name)
        guest_builtins["getattr"] = safer_getattr
        guest_builtins["__import__"] = self._make_import()
        guest_builtins["print"] = guest_print
        if self._config.allow_io:
            guest_builtins["open"] = builtins.open

        return {
            "__builtins__": guest_builtins,
            "__name__": GUEST_MODULE,
            "__metaclass__": type,
            "_getattr_": safer_getattr,
            "_getitem_": default_guarded_getitem,
            "_getiter_": default_guarded_getiter,
            "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
            "_unpack_sequence_": guarded_unpack_sequence,
            "_write_": _write_guard,
            "_inplacevar_": _inplacevar,
            "_apply_": _apply,
            "_print_": functools.partial(_GuestPrintCollector, guest_print),
            # eval-mode code calls _print without the module prologue that creates it
            "_print": _GuestPrintCollector(guest_print),
        }

    def _make_import(self) -> Callable[..., Any]:
        cfg = self._config
        real_import = builtins.__import__

        def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
            if level:
                raise ImportError("Relative imports are not allowed in guest code")
            root = name.partition(".")[0]
            if not cfg.allow_io and root in IO_MODULES:
                raise ImportError(f"Import of '{name}' is blocked: I/O access is disabled")
            if not cfg.allow_native_access and root in NATIVE_MODULES:
                raise ImportError(f"Import of '{name}' is blocked: native access is disabled")
            if not cfg.allow_host_access and root not in SAFE_MODULES:
                raise ImportError(f"Import of '{name}' is blocked: host access is disabled")
            return real_import(name, globals, locals, fromlist, level)

        return guarded_import

    # ─── Execution ───────────────────────────────────────────

    def _run_guest(
        self,
        namespace: dict,
        bindings: CodeType | None,
        body: CodeType,
        value_expr: CodeType | None,
        cancel: threading.Event,
    ) -> Any:
        def tracer(frame: FrameType, event: str, arg: Any):
            if frame.f_globals is not namespace:
                return None
            if cancel.is_set():
                raise GuestInterrupted()
            return tracer

        sys.settrace(tracer)
        try:
            if bindings is not None:
                exec(bindings, namespace)
            exec(body, namespace)
            value = eval(value_expr, namespace) if value_expr is not None else None
            if inspect.iscoroutine(value):
                value = asyncio.run(value)
            return value
        finally:
            sys.settrace(None)

    def _flush_output(self, stdout: io.StringIO, stderr: io.StringIO) -> None:
        limit = self._config.max_output_bytes
        out = _truncate(stdout.getvalue(), limit)
        err = _truncate(stderr.getvalue(), limit)
        if out:
            logger.info("Guest stdout:\n%s", out)
        if err:
            logger.warning("Guest stderr:\n%s", err)


def _restricted(result) -> CodeType:
    if result.errors:
        raise GuestRuntimeError(
            "RestrictedCodeError: " + "; ".join(result.errors),
            details={"exception_type": "RestrictedCodeError", "errors": list(result.errors)},
        )
    return result.code


def _make_print(stdout: io.StringIO, stderr: io.StringIO) -> Callable[..., None]:
    builtin_print = builtins.print

    def sandbox_print(
        *args: object,
        sep: str | None = " ",
        end: str | None = "\n",
        file: TextIO | None = None,
        flush: bool = False,
    ) -> None:
        if file is None or file is sys.stdout:
            target = stdout
        elif file is sys.stderr:
            target = stderr
        else:
            builtin_print(*args, sep=sep, end=end, file=file, flush=flush)
            return
        builtin_print(*args, sep=sep, end=end, file=target)

    return sandbox_print


class _GuestPrintCollector:
    """Target of RestrictedPython's ``_print_`` hook.

    Prints go through the sandbox print; ``printed`` returns what this
    collector wrote to stdout.
    """

    def __init__(self, guest_print: Callable[..., None], _getattr_: Any = None):
        self._print = guest_print
        self._printed: list[str] = []

    def _call_print(self, *objects: object, **kwargs: Any) -> None:
        if kwargs.get("file") is None:
            text = io.StringIO()
            print(*objects, sep=kwargs.get("sep", " "), end=kwargs.get("end", "\n"), file=text)
            self._printed.append(text.getvalue())
        self._print(*objects, **kwargs)

    def __call__(self) -> str:
        return "".join(self._printed)


def _write_guard(ob: Any) -> Any:
    # instances of classes defined by the guest itself stay writable
    if type(ob).__module__ == GUEST_MODULE:
        return ob
    return full_write_guard(ob)


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    return _INPLACE_OPERATORS[op](target, value)


def _apply(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


def _truncate(text: str, limit: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    return encoded[:limit].decode("utf-8", errors="ignore") + f"\n[TRUNCATED at {limit} bytes]"


def _guest_traceback(error: BaseException) -> str:
    """Format a traceback starting at the first guest frame."""
    tb = error.__traceback__
    while tb is not None and tb.tb_frame.f_code.co_filename not in (GUEST_FILENAME, BINDINGS_FILENAME):
        tb = tb.tb_next
    if tb is None:
        return "".join(traceback.format_exception_only(type(error), error))
    return "".join(traceback.format_exception(type(error), error, tb))
