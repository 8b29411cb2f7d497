from __future__ import annotations

from typing import Iterator, Optional

from ..runtime import runtime_of
from ..token_types import Tok
from ..tree import Block, ForEach, If, Return, While
from ..types import (
    Completed,
    Environment,
    Returned,
    Signal,
    VlrList,
    VlrNil,
    VlrString,
    VlrValue,
    ValorRuntimeError,
    ValorTypeError,
)
from .helpers import EvalFunc, ExecFunc, is_truthy


def exec_block(block: Block, env: Environment, exec_func: ExecFunc) -> Signal:
    """Run statements in a fresh child scope, stopping at the first return."""
    scope = env.child()
    result: VlrValue = VlrNil()

    for stmt in block.statements:
        signal = exec_func(stmt, scope)

        if isinstance(signal, Returned):
            return signal

        result = signal.value

    return Completed(result)


def exec_if(n: If, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> Signal:
    if is_truthy(eval_func(n.condition, env)):
        return exec_block(n.then_branch, env, exec_func)

    for branch in n.elif_branches:
        if is_truthy(eval_func(branch.condition, env)):
            return exec_block(branch.body, env, exec_func)

    if n.else_branch is not None:
        return exec_block(n.else_branch, env, exec_func)

    return Completed(VlrNil())


def _iterations(env: Environment, keyword: Tok) -> Iterator[int]:
    """Count loop iterations, enforcing the configured cap."""
    limit: Optional[int] = runtime_of(env).config.max_loop_iterations
    count = 0

    while True:
        count += 1
        if limit is not None and count > limit:
            raise ValorRuntimeError(f"Loop exceeded {limit} iterations.", keyword)
        yield count


def exec_while(n: While, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> Signal:
    for _ in _iterations(env, n.keyword):
        if not is_truthy(eval_func(n.condition, env)):
            break

        signal = exec_block(n.body, env, exec_func)
        if isinstance(signal, Returned):
            return signal

    return Completed(VlrNil())


def _iterable_items(value: VlrValue, variable: Tok) -> list[VlrValue]:
    match value:
        case VlrList(items=items):
            return list(items)
        case VlrString(value=s):
            return [VlrString(ch) for ch in s]
        case _:
            raise ValorTypeError("Can only iterate over lists and strings.", variable)


def exec_for(n: ForEach, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> Signal:
    items = _iterable_items(eval_func(n.iterable, env), n.variable)
    counter = _iterations(env, n.variable)

    for item in items:
        next(counter)
        scope = env.child()
        scope.define(n.variable.lexeme, item)

        signal = exec_block(n.body, scope, exec_func)
        if isinstance(signal, Returned):
            return signal

    return Completed(VlrNil())


def exec_return(n: Return, env: Environment, eval_func: EvalFunc) -> Signal:
    value = eval_func(n.value, env) if n.value is not None else VlrNil()
    return Returned(value)
