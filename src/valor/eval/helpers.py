from __future__ import annotations

from typing import Any, Callable

from ..tree import Expr, Stmt
from ..types import Environment, Signal, VlrBool, VlrNil, VlrNumber, VlrString, VlrValue

EvalFunc = Callable[[Expr, Environment], VlrValue]
ExecFunc = Callable[[Stmt, Environment], Signal]


def is_truthy(val: VlrValue) -> bool:
    match val:
        case VlrBool(value=b):
            return b
        case VlrNil():
            return False
        case _:
            return True


def from_literal(value: Any) -> VlrValue:
    """Wrap a parse-time literal payload as a runtime value."""
    match value:
        case None:
            return VlrNil()
        case bool():
            return VlrBool(value)
        case int() | float():
            return VlrNumber(float(value))
        case str():
            return VlrString(value)
        case _:
            raise TypeError(f"Unsupported literal payload {value!r}")
