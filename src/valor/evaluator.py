from __future__ import annotations

from typing import Callable, Optional, Sequence

from .runtime import Runtime, runtime_of
from .tree import (
    Apply,
    Assign,
    Assignment,
    Binary,
    Block,
    Call,
    CallStmt,
    ConstDecl,
    ContextRef,
    Duration,
    Expr,
    ExprStmt,
    ForEach,
    Grouping,
    If,
    Literal,
    Logical,
    Percentage,
    Program,
    Return,
    SetStmt,
    StatEntry,
    Stmt,
    Unary,
    Variable,
    While,
    first_token,
)
from .types import (
    Completed,
    Environment,
    Signal,
    VlrNumber,
    VlrValue,
    ValorRuntimeError,
)
from .utils import RuntimeConfig

from .eval.control import exec_block, exec_for, exec_if, exec_return, exec_while
from .eval.decls import eval_program
from .eval.effects import eval_apply
from .eval.expr import eval_binary, eval_logical, eval_unary
from .eval.fn import eval_call
from .eval.helpers import from_literal


def _maybe_attach_location(exc: ValorRuntimeError, node: object) -> None:
    if exc.token is not None:
        return

    exc.token = first_token(node)

# ---------------- Public API ----------------

def evaluate_program(program: Program, env: Optional[Environment] = None,
                     config: Optional[RuntimeConfig] = None) -> Environment:
    """Run every declaration of a program; returns the global scope."""
    if env is None:
        env = Runtime(config=config).globals

    return eval_program(program, env, eval_node, exec_stmt)


def evaluate(expr: Expr, env: Optional[Environment] = None) -> VlrValue:
    """Evaluate a standalone expression."""
    if env is None:
        env = Runtime().globals

    return eval_node(expr, env)

# ---------------- Expressions ----------------

def eval_node(n: Expr, env: Environment) -> VlrValue:
    try:
        return _eval_node_inner(n, env)
    except ValorRuntimeError as e:
        _maybe_attach_location(e, n)
        raise


def _eval_node_inner(n: Expr, env: Environment) -> VlrValue:
    handler = _NODE_DISPATCH.get(type(n))
    if handler is not None:
        return handler(n, env)

    match n:
        case Literal(value=value):
            return from_literal(value)
        case Percentage(value=fraction):
            return VlrNumber(fraction)
        case Duration(seconds=seconds):
            return VlrNumber(float(seconds))
        case Variable(name=name):
            return env.get(name)
        case ContextRef(keyword=kw):
            return runtime_of(env).context.resolve(kw)
        case Grouping(expression=inner):
            return eval_node(inner, env)
        case Assign(name=name, value=value_expr):
            value = eval_node(value_expr, env)
            env.assign(name, value)
            return value
        case _:
            raise ValorRuntimeError(f"Unknown node: {type(n).__name__}")


def _call(call: Call, env: Environment, leading: Sequence[VlrValue] = ()) -> VlrValue:
    return eval_call(call, env, eval_node, exec_stmt, leading)

# ---------------- Statements ----------------

def exec_stmt(stmt: Stmt, env: Environment) -> Signal:
    try:
        return _exec_stmt_inner(stmt, env)
    except ValorRuntimeError as e:
        _maybe_attach_location(e, stmt)
        raise


def _exec_stmt_inner(stmt: Stmt, env: Environment) -> Signal:
    handler = _STMT_DISPATCH.get(type(stmt))
    if handler is not None:
        return handler(stmt, env)

    match stmt:
        case ExprStmt(expression=expr):
            return Completed(eval_node(expr, env))
        case CallStmt(call=call):
            return Completed(eval_node(call, env))
        case Assignment(name=name, value=value_expr):
            value = eval_node(value_expr, env)
            env.assign(name, value)
            return Completed(value)
        case SetStmt(name=name, value=value_expr):
            value = eval_node(value_expr, env)
            if env.is_defined(name.lexeme):
                env.assign(name, value)
            else:
                env.define(name.lexeme, value)
            return Completed(value)
        case ConstDecl(name=name, value=value_expr):
            value = eval_node(value_expr, env)
            env.define(name.lexeme, value, const=True)
            return Completed(value)
        case StatEntry(name=name, value=value_expr):
            value = eval_node(value_expr, env)
            env.define(name.lexeme, value)
            return Completed(value)
        case Apply():
            return Completed(eval_apply(stmt, env, eval_node))
        case _:
            raise ValorRuntimeError(f"Unknown statement: {type(stmt).__name__}")

# ---------------- Dispatch ----------------

_NODE_DISPATCH: dict[type, Callable[[Expr, Environment], VlrValue]] = {
    Unary: lambda n, env: eval_unary(n, env, eval_node),
    Binary: lambda n, env: eval_binary(n, env, eval_node, _call),
    Logical: lambda n, env: eval_logical(n, env, eval_node),
    Call: lambda n, env: _call(n, env),
}

_STMT_DISPATCH: dict[type, Callable[[Stmt, Environment], Signal]] = {
    Block: lambda n, env: exec_block(n, env, exec_stmt),
    If: lambda n, env: exec_if(n, env, eval_node, exec_stmt),
    While: lambda n, env: exec_while(n, env, eval_node, exec_stmt),
    ForEach: lambda n, env: exec_for(n, env, eval_node, exec_stmt),
    Return: lambda n, env: exec_return(n, env, eval_node),
}
