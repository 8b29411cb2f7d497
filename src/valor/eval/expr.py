from __future__ import annotations

from typing import Callable, Dict

from ..token_types import TT, Tok
from ..tree import Binary, Call, Logical, Unary
from ..types import (
    Environment,
    VlrBool,
    VlrNumber,
    VlrString,
    VlrValue,
    ValorTypeError,
    ValorZeroDivisionError,
)
from ..utils import vlr_equals
from .helpers import EvalFunc, is_truthy

BinaryOp = Callable[[VlrValue, VlrValue, Tok], VlrValue]


def _numbers(lhs: VlrValue, rhs: VlrValue, op: Tok) -> tuple[float, float]:
    if isinstance(lhs, VlrNumber) and isinstance(rhs, VlrNumber):
        return lhs.value, rhs.value

    raise ValorTypeError("Operands must be numbers.", op)


def _add(lhs: VlrValue, rhs: VlrValue, op: Tok) -> VlrValue:
    match (lhs, rhs):
        case (VlrNumber(value=a), VlrNumber(value=b)):
            return VlrNumber(a + b)
        case (VlrString(value=a), VlrString(value=b)):
            return VlrString(a + b)
        case _:
            raise ValorTypeError("Operands must be two numbers or two strings.", op)


def _sub(lhs: VlrValue, rhs: VlrValue, op: Tok) -> VlrValue:
    a, b = _numbers(lhs, rhs, op)
    return VlrNumber(a - b)


def _mul(lhs: VlrValue, rhs: VlrValue, op: Tok) -> VlrValue:
    a, b = _numbers(lhs, rhs, op)
    return VlrNumber(a * b)


def _div(lhs: VlrValue, rhs: VlrValue, op: Tok) -> VlrValue:
    a, b = _numbers(lhs, rhs, op)
    if b == 0:
        raise ValorZeroDivisionError(op)
    return VlrNumber(a / b)


def _compare(test: Callable[[float, float], bool]) -> BinaryOp:
    def op_fn(lhs: VlrValue, rhs: VlrValue, op: Tok) -> VlrValue:
        a, b = _numbers(lhs, rhs, op)
        return VlrBool(test(a, b))

    return op_fn


_BINARY_OPS: Dict[TT, BinaryOp] = {
    TT.PLUS: _add,
    TT.MINUS: _sub,
    TT.STAR: _mul,
    TT.SLASH: _div,
    TT.GT: _compare(lambda a, b: a > b),
    TT.GTE: _compare(lambda a, b: a >= b),
    TT.LT: _compare(lambda a, b: a < b),
    TT.LTE: _compare(lambda a, b: a <= b),
    TT.EQ: lambda lhs, rhs, _: VlrBool(vlr_equals(lhs, rhs)),
    TT.NEQ: lambda lhs, rhs, _: VlrBool(not vlr_equals(lhs, rhs)),
}


def apply_binary(op: Tok, lhs: VlrValue, rhs: VlrValue) -> VlrValue:
    handler = _BINARY_OPS.get(op.type)
    if handler is None:
        raise ValorTypeError(f"Unsupported operator '{op.lexeme}'.", op)

    return handler(lhs, rhs, op)


def eval_unary(n: Unary, env: Environment, eval_func: EvalFunc) -> VlrValue:
    right = eval_func(n.right, env)

    match n.operator.type:
        case TT.MINUS:
            if not isinstance(right, VlrNumber):
                raise ValorTypeError("Operand must be a number.", n.operator)
            return VlrNumber(-right.value)
        case TT.NEG:
            return VlrBool(not is_truthy(right))
        case _:
            raise ValorTypeError(f"Unsupported unary operator '{n.operator.lexeme}'.", n.operator)


def eval_binary(
    n: Binary,
    env: Environment,
    eval_func: EvalFunc,
    call_func: Callable[[Call, Environment, tuple], VlrValue],
) -> VlrValue:
    if n.operator.type == TT.PIPE:
        return eval_pipeline(n, env, eval_func, call_func)

    lhs = eval_func(n.left, env)
    rhs = eval_func(n.right, env)
    return apply_binary(n.operator, lhs, rhs)


def eval_pipeline(
    n: Binary,
    env: Environment,
    eval_func: EvalFunc,
    call_func: Callable[[Call, Environment, tuple], VlrValue],
) -> VlrValue:
    """`a |> f(x)` calls `f(a, x)`."""
    if not isinstance(n.right, Call):
        raise ValorTypeError("Right side of '|>' must be a call.", n.operator)

    piped = eval_func(n.left, env)
    return call_func(n.right, env, (piped,))


def eval_logical(n: Logical, env: Environment, eval_func: EvalFunc) -> VlrValue:
    left = eval_func(n.left, env)

    if n.operator.type == TT.OR:
        if is_truthy(left):
            return left
    elif not is_truthy(left):
        return left

    return eval_func(n.right, env)
