from __future__ import annotations

from typing import Dict, List, Sequence

from ..runtime import runtime_of
from ..token_types import Tok
from ..tree import Call
from ..types import (
    Environment,
    Returned,
    VlrFn,
    VlrNative,
    VlrNil,
    VlrValue,
    ValorArityError,
    ValorNameError,
    ValorRuntimeError,
    is_vlr_value,
)
from .helpers import EvalFunc, ExecFunc

Callee = VlrFn | VlrNative


def resolve_callee(name: Tok, env: Environment) -> Callee:
    """User functions and callable bindings first, then the native registry."""
    owner = env.lookup(name.lexeme)
    if owner is not None:
        bound = owner.vars[name.lexeme]
        if isinstance(bound, (VlrFn, VlrNative)):
            return bound

    native = runtime_of(env).native(name.lexeme)
    if native is not None:
        return native

    raise ValorNameError(f"Undefined function '{name.lexeme}'.", name)


def eval_call(
    call: Call,
    env: Environment,
    eval_func: EvalFunc,
    exec_func: ExecFunc,
    leading: Sequence[VlrValue] = (),
) -> VlrValue:
    callee = resolve_callee(call.name, env)

    ordered: List[VlrValue] = list(leading)
    positional: List[VlrValue] = list(leading)
    named: Dict[str, VlrValue] = {}

    for arg in call.arguments:
        value = eval_func(arg.value, env)
        ordered.append(value)

        if arg.name is None:
            positional.append(value)
        elif arg.name.lexeme in named:
            raise ValorArityError(f"Argument '{arg.name.lexeme}' given twice.", arg.name)
        else:
            named[arg.name.lexeme] = value

    try:
        if isinstance(callee, VlrNative):
            return call_native(callee, ordered, env, call.name)
        return call_user(callee, positional, named, call.name, exec_func)
    except RecursionError:
        raise ValorRuntimeError("Stack overflow.", call.name) from None


def call_native(native: VlrNative, args: List[VlrValue], env: Environment, site: Tok) -> VlrValue:
    if native.arity is not None and len(args) != native.arity:
        raise ValorArityError(
            f"{native.name}() expects {native.arity} argument(s); got {len(args)}.", site
        )

    try:
        result = native.fn(env, args)
    except ValorRuntimeError as exc:
        if exc.token is None:
            exc.token = site
        raise

    return result if is_vlr_value(result) else VlrNil()


def call_user(
    fn: VlrFn,
    positional: List[VlrValue],
    named: Dict[str, VlrValue],
    site: Tok,
    exec_func: ExecFunc,
) -> VlrValue:
    decl = fn.decl
    fname = decl.name.lexeme
    params = [p.name.lexeme for p in decl.params]

    if len(positional) > len(params):
        raise ValorArityError(
            f"{fname}() takes {len(params)} argument(s); got {len(positional)}.", site
        )

    scope = fn.closure.child()
    bound = set()

    for param, value in zip(params, positional):
        scope.define(param, value)
        bound.add(param)

    for key, value in named.items():
        if key not in params:
            raise ValorArityError(f"{fname}() has no parameter '{key}'.", site)
        if key in bound:
            raise ValorArityError(f"{fname}() got multiple values for '{key}'.", site)
        scope.define(key, value)
        bound.add(key)

    for param in params:
        if param not in bound:
            scope.define(param, VlrNil())

    signal = exec_func(decl.body, scope)
    if isinstance(signal, Returned):
        return signal.value

    return VlrNil()
