"""
Printers for Valor syntax trees.

`print_expr` renders an expression as fully parenthesized infix text that
parses back to an expression printing the same way. `to_tree` converts any
node into a lark Tree so the REPL and CLI can show `Tree.pretty()` dumps.
"""

from __future__ import annotations

import re
from typing import Any, List, Union

from lark import Token, Tree

from .token_types import Tok
from .tree import (
    Assign,
    Binary,
    Call,
    ContextRef,
    Duration,
    Grouping,
    Literal,
    Logical,
    Percentage,
    Unary,
    Variable,
    is_node,
    node_children,
)
from .utils import format_number


def print_expr(expr: Any) -> str:
    match expr:
        case Literal(value=None):
            return "nil"
        case Literal(value=bool() as b):
            return "true" if b else "false"
        case Literal(value=str() as s):
            return f'"{s}"'
        case Literal(value=value):
            return format_number(value)
        case Percentage(token=tok) | Duration(token=tok):
            return tok.lexeme
        case Variable(name=name):
            return name.lexeme
        case ContextRef(keyword=kw):
            return kw.lexeme
        case Grouping(expression=inner):
            if isinstance(inner, (Binary, Logical, Unary, Assign)):
                return print_expr(inner)
            return f"({print_expr(inner)})"
        case Unary(operator=op, right=right):
            return f"({op.lexeme}{print_expr(right)})"
        case Binary(left=left, operator=op, right=right) | Logical(left=left, operator=op, right=right):
            return f"({print_expr(left)} {op.lexeme} {print_expr(right)})"
        case Assign(name=name, value=value):
            return f"({name.lexeme} = {print_expr(value)})"
        case Call(name=name, arguments=args):
            rendered = []
            for arg in args:
                text = print_expr(arg.value)
                rendered.append(f"{arg.name.lexeme}: {text}" if arg.name is not None else text)
            return f"{name.lexeme}({', '.join(rendered)})"
        case _:
            raise TypeError(f"Not an expression: {type(expr).__name__}")

# ---------------- lark trees ----------------

def _label(node: Any) -> str:
    """CamelCase class name -> snake_case tree label."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(node).__name__).lower()


def _tok(tok: Tok) -> Token:
    return Token(tok.type.name, tok.lexeme, line=tok.line)


def to_tree(node: Any) -> Union[Tree, Token]:
    if isinstance(node, Tok):
        return _tok(node)

    children: List[Union[Tree, Token]] = []

    for name, value in node_children(node):
        if value is None or value == ():
            continue

        if isinstance(value, tuple):
            children.append(Tree(name, [to_tree(item) for item in value]))
        elif isinstance(value, Tok) or is_node(value):
            children.append(to_tree(value))
        else:
            children.append(Token(name.upper(), repr(value)))

    return Tree(_label(node), children)


def dump(node: Any) -> str:
    tree = to_tree(node)
    if isinstance(tree, Token):
        return str(tree)

    return tree.pretty()
