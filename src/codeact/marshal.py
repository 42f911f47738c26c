"""
Codeact Value Marshaling

Converts values crossing the host/guest boundary into plain JSON-like
Python data: None, bool, int, float, Decimal, str, list and dict with
string keys. Conversion never raises; a value that cannot be converted
structurally degrades to its ``str()`` with a warning.

Cycles are detected with an identity set threaded through the recursion.
A container reached again while it is still being converted becomes
``"[Circular Reference]"``; shared but acyclic references are converted
every time they appear.
"""

from __future__ import annotations

import dataclasses
import inspect
import numbers
import operator
from collections import deque
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any, Iterable, Protocol, runtime_checkable

from pydantic import BaseModel

from codeact.logging import get_logger

logger = get_logger("codeact.marshal")

CIRCULAR_REFERENCE = "[Circular Reference]"

_LIST_LIKE = (list, tuple, set, frozenset, deque)

INT32_RANGE = (-(2**31), 2**31 - 1)
INT64_RANGE = (-(2**63), 2**63 - 1)


@runtime_checkable
class SupportsKeysAndGetItem(Protocol):
    """Anything that can be read like a mapping."""

    def keys(self) -> Iterable[Any]: ...

    def __getitem__(self, key: Any) -> Any: ...


def to_host(value: Any) -> Any:
    """Convert a guest value into host-native JSON-like data."""
    return _convert(value, set())


def to_guest(value: Any) -> Any:
    """Deep-copy host data into fresh containers handed to guest code."""
    return _convert(value, set())


def convert_result(value: Any) -> Any:
    """Convert a program's final value; a bare module yields None."""
    if inspect.ismodule(value):
        return None
    return to_host(value)


def convert_number(value: Any) -> Any:
    """Normalize a numeric value.

    Integers stay exact ints, floats stay floats. Decimals and fractions
    with an integral value become ints; other decimals stay Decimal and
    other fractions become Decimal. Objects implementing ``__index__``
    become ints.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return value
    if isinstance(value, Fraction):
        if value.denominator == 1:
            return int(value.numerator)
        return Decimal(value.numerator) / Decimal(value.denominator)
    if hasattr(type(value), "__index__"):
        return operator.index(value)
    if isinstance(value, numbers.Real):
        return float(value)
    return str(value)


def classify_number(value: Any) -> str:
    """Report the narrowest width that holds a converted number.

    One of ``int32``, ``int64``, ``bigint``, ``decimal`` or ``float``.
    """
    converted = convert_number(value)
    if isinstance(converted, bool):
        return "int32"
    if isinstance(converted, int):
        if INT32_RANGE[0] <= converted <= INT32_RANGE[1]:
            return "int32"
        if INT64_RANGE[0] <= converted <= INT64_RANGE[1]:
            return "int64"
        return "bigint"
    if isinstance(converted, Decimal):
        return "decimal"
    return "float"


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) or hasattr(type(value), "__index__")


def _is_opaque(value: Any) -> bool:
    return inspect.ismodule(value) or inspect.isroutine(value) or inspect.isclass(value)


def _convert(value: Any, visited: set[int]) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, Enum):
        return _convert(value.value, visited)
    if _is_opaque(value):
        return repr(value)
    if _is_number(value):
        try:
            return convert_number(value)
        except (TypeError, ValueError, ArithmeticError) as e:
            return _fallback(value, e)

    marker = id(value)
    if marker in visited:
        return CIRCULAR_REFERENCE
    visited.add(marker)
    try:
        if isinstance(value, _LIST_LIKE):
            return [_convert(item, visited) for item in value]
        if isinstance(value, BaseModel):
            return _convert_attributes(dict(value), visited)
        if isinstance(value, SupportsKeysAndGetItem):
            return {str(key): _convert(value[key], visited) for key in list(value.keys())}
        if dataclasses.is_dataclass(value):
            fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
            return _convert_attributes(fields, visited)
        if hasattr(value, "__dict__"):
            return _convert_attributes(vars(value), visited)
        return str(value)
    except Exception as e:
        return _fallback(value, e)
    finally:
        visited.discard(marker)


def _convert_attributes(attributes: dict[str, Any], visited: set[int]) -> dict[str, Any]:
    return {
        str(name): _convert(attr, visited)
        for name, attr in attributes.items()
        if not str(name).startswith("_")
    }


def _fallback(value: Any, error: Exception) -> str:
    logger.warning("Value conversion failed, falling back to string: %s", error)
    try:
        return str(value)
    except Exception:
        return f"<unconvertible {type(value).__name__}>"
