from __future__ import annotations

import os as _os
from dataclasses import dataclass
from typing import List, Optional

from .types import (
    AppliedStatus,
    VlrBool,
    VlrEffect,
    VlrFn,
    VlrList,
    VlrNative,
    VlrNil,
    VlrNumber,
    VlrRecord,
    VlrString,
    VlrValue,
    ValorTypeError,
)

MAX_LOOP_ENV = "VALOR_MAX_LOOP_ITERATIONS"
DEBUG_PY_TRACE_ENV = "VALOR_DEBUG_PY_TRACE"

_TRUTHY_FLAGS = {"1", "true", "yes", "on"}


def debug_py_trace_enabled() -> bool:
    return _os.environ.get(DEBUG_PY_TRACE_ENV, "").strip().lower() in _TRUTHY_FLAGS


def _env_int(name: str) -> Optional[int]:
    raw = _os.environ.get(name)
    if raw is None or not raw.strip():
        return None

    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None

    return value if value > 0 else None


@dataclass(frozen=True)
class RuntimeConfig:
    """Interpreter knobs; `from_env` folds in the VALOR_* variables."""

    max_loop_iterations: Optional[int] = None
    debug_py_trace: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "RuntimeConfig":
        values = {
            "max_loop_iterations": _env_int(MAX_LOOP_ENV),
            "debug_py_trace": debug_py_trace_enabled(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def vlr_equals(lhs: VlrValue, rhs: VlrValue) -> bool:
    match (lhs, rhs):
        case (VlrNil(), VlrNil()):
            return True
        case (VlrNumber(value=a), VlrNumber(value=b)):
            return a == b
        case (VlrString(value=a), VlrString(value=b)):
            return a == b
        case (VlrBool(value=a), VlrBool(value=b)):
            return a == b
        case (VlrList(items=items_a), VlrList(items=items_b)):
            return len(items_a) == len(items_b) and all(
                vlr_equals(a, b) for a, b in zip(items_a, items_b)
            )
        case (VlrEffect(steps=a), VlrEffect(steps=b)):
            return a == b
        case (VlrRecord(), VlrRecord()) | (VlrFn(), VlrFn()) | (VlrNative(), VlrNative()):
            return lhs is rhs
        case _:
            return False


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))

    text = repr(float(value))
    if "e" in text or "E" in text:
        text = f"{value:.17f}".rstrip("0").rstrip(".")

    return text


def stringify(value: Optional[VlrValue]) -> str:
    if isinstance(value, VlrString):
        return value.value

    if isinstance(value, VlrNumber):
        return format_number(value.value)

    if isinstance(value, VlrBool):
        return "true" if value.value else "false"

    if isinstance(value, VlrNil) or value is None:
        return "nil"

    if isinstance(value, VlrList):
        return "[" + ", ".join(stringify(item) for item in value.items) + "]"

    return repr(value)


def expect_number(value: VlrValue, what: str) -> float:
    if isinstance(value, VlrNumber):
        return value.value

    raise ValorTypeError(f"{what} expects a number, got {type_name(value)}.")


def type_name(value: VlrValue) -> str:
    match value:
        case VlrNil():
            return "nil"
        case VlrNumber():
            return "number"
        case VlrString():
            return "string"
        case VlrBool():
            return "bool"
        case VlrList():
            return "list"
        case VlrRecord(kind=kind):
            return kind
        case VlrFn() | VlrNative():
            return "function"
        case VlrEffect():
            return "effect"
        case _:
            return type(value).__name__


def describe_statuses(statuses: List[AppliedStatus]) -> str:
    return ", ".join(repr(s) for s in statuses) if statuses else "-"
