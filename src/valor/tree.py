"""
AST node definitions for Valor.

Every node is a frozen dataclass; child sequences are tuples so a parsed
tree can be shared freely and never mutated after construction. Nodes keep
the tokens they were built from so runtime errors can point at a line.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from typing import Any, Iterator, Optional, Tuple, Union
from typing_extensions import TypeAlias

from .token_types import Tok

# ---------- Expressions ----------

@dataclass(frozen=True)
class Literal:
    value: Any  # float | str | bool | None
    token: Tok

@dataclass(frozen=True)
class Percentage:
    value: float  # fraction: 50% -> 0.5
    token: Tok

@dataclass(frozen=True)
class Duration:
    seconds: Union[int, float]
    token: Tok

@dataclass(frozen=True)
class Variable:
    name: Tok

@dataclass(frozen=True)
class ContextRef:
    """`self`, `target` or `caster` used as a value."""
    keyword: Tok

@dataclass(frozen=True)
class Grouping:
    expression: 'Expr'

@dataclass(frozen=True)
class Unary:
    operator: Tok
    right: 'Expr'

@dataclass(frozen=True)
class Binary:
    left: 'Expr'
    operator: Tok
    right: 'Expr'

@dataclass(frozen=True)
class Logical:
    left: 'Expr'
    operator: Tok
    right: 'Expr'

@dataclass(frozen=True)
class Argument:
    value: 'Expr'
    name: Optional[Tok] = None

@dataclass(frozen=True)
class Call:
    name: Tok
    arguments: Tuple[Argument, ...] = ()

@dataclass(frozen=True)
class Assign:
    name: Tok
    value: 'Expr'

Expr: TypeAlias = Union[
    Literal, Percentage, Duration, Variable, ContextRef, Grouping,
    Unary, Binary, Logical, Call, Assign,
]

# ---------- Statements ----------

@dataclass(frozen=True)
class Block:
    statements: Tuple['Stmt', ...] = ()

@dataclass(frozen=True)
class ExprStmt:
    expression: Expr

@dataclass(frozen=True)
class CallStmt:
    call: Call

@dataclass(frozen=True)
class Assignment:
    name: Tok
    value: Expr

@dataclass(frozen=True)
class SetStmt:
    name: Tok
    value: Expr

@dataclass(frozen=True)
class ConstDecl:
    name: Tok
    value: Expr
    type_name: Optional[Tok] = None

@dataclass(frozen=True)
class StatEntry:
    name: Tok
    value: Expr

@dataclass(frozen=True)
class ElseIf:
    condition: Expr
    body: Block

@dataclass(frozen=True)
class If:
    condition: Expr
    then_branch: Block
    elif_branches: Tuple[ElseIf, ...] = ()
    else_branch: Optional[Block] = None

@dataclass(frozen=True)
class While:
    keyword: Tok
    condition: Expr
    body: Block

@dataclass(frozen=True)
class ForEach:
    variable: Tok
    iterable: Expr
    body: Block

@dataclass(frozen=True)
class Return:
    keyword: Tok
    value: Optional[Expr] = None

@dataclass(frozen=True)
class SelfTarget:
    keyword: Tok

@dataclass(frozen=True)
class TargetTarget:
    keyword: Tok

@dataclass(frozen=True)
class CasterTarget:
    keyword: Tok

@dataclass(frozen=True)
class NamedTarget:
    name: Tok

TargetExpr: TypeAlias = Union[SelfTarget, TargetTarget, CasterTarget, NamedTarget]

@dataclass(frozen=True)
class Apply:
    keyword: Tok
    call: Expr  # a Call, or a pipeline ending in one
    target: TargetExpr

Stmt: TypeAlias = Union[
    Block, ExprStmt, CallStmt, Assignment, SetStmt, ConstDecl, StatEntry,
    If, While, ForEach, Return, Apply,
]

# Behavior bodies are either a statement block or a single pipeline expression.
Behavior: TypeAlias = Union[Block, Expr]

# ---------- Declarations ----------

@dataclass(frozen=True)
class ImportDecl:
    name: Tok

@dataclass(frozen=True)
class VarDecl:
    name: Tok
    value: Expr
    const: bool = False
    type_name: Optional[Tok] = None

@dataclass(frozen=True)
class Param:
    name: Tok
    type_name: Optional[Tok] = None

@dataclass(frozen=True)
class FunctionDecl:
    name: Tok
    params: Tuple[Param, ...]
    body: Block
    return_type: Optional[Tok] = None

@dataclass(frozen=True)
class AbilityField:
    name: Tok  # the field keyword token
    value: Any  # Expr, identifier Tok (type/damage_type) or Behavior

@dataclass(frozen=True)
class AbilityDecl:
    name: Tok
    fields: Tuple[AbilityField, ...] = ()

@dataclass(frozen=True)
class HeroSet:
    name: Tok
    value: Expr

@dataclass(frozen=True)
class HeroStatBlock:
    keyword: Tok
    stats: Tuple[StatEntry, ...] = ()

@dataclass(frozen=True)
class AbilitiesBlock:
    keyword: Tok
    abilities: Tuple[AbilityDecl, ...] = ()

HeroStatement: TypeAlias = Union[HeroSet, HeroStatBlock, AbilitiesBlock]

@dataclass(frozen=True)
class HeroDecl:
    name: Tok
    statements: Tuple[HeroStatement, ...] = ()

@dataclass(frozen=True)
class TurretDecl:
    name: Tok
    stats: Tuple[StatEntry, ...] = ()

@dataclass(frozen=True)
class CoreDecl:
    name: Tok
    stats: Tuple[StatEntry, ...] = ()

@dataclass(frozen=True)
class TeamDecl:
    name: Tok
    core_ref: Optional[Tok] = None
    turrets: Tuple[TurretDecl, ...] = ()

ArenaDecl: TypeAlias = Union[TeamDecl, TurretDecl, CoreDecl]

@dataclass(frozen=True)
class StatusEffectField:
    name: Tok
    value: Any  # Expr, identifier Tok (type) or Behavior

@dataclass(frozen=True)
class StatusEffectDecl:
    name: Tok
    fields: Tuple[StatusEffectField, ...] = ()

@dataclass(frozen=True)
class ItemField:
    name: Tok
    value: Expr

@dataclass(frozen=True)
class PassiveField:
    keyword: Tok
    behavior: Expr

@dataclass(frozen=True)
class ItemDecl:
    name: Tok
    fields: Tuple[Union[ItemField, PassiveField], ...] = ()

@dataclass(frozen=True)
class CreepDecl:
    name: Tok
    stats: Tuple[StatEntry, ...] = ()

Decl: TypeAlias = Union[
    ImportDecl, VarDecl, FunctionDecl, HeroDecl, TeamDecl, TurretDecl,
    CoreDecl, StatusEffectDecl, ItemDecl, CreepDecl,
]

@dataclass(frozen=True)
class Program:
    name: Optional[Tok] = None
    imports: Tuple[ImportDecl, ...] = ()
    variables: Tuple[VarDecl, ...] = ()
    heroes: Tuple[HeroDecl, ...] = ()
    arena: Tuple[ArenaDecl, ...] = ()
    status_effects: Tuple[StatusEffectDecl, ...] = ()
    items: Tuple[ItemDecl, ...] = ()
    creeps: Tuple[CreepDecl, ...] = ()
    functions: Tuple[FunctionDecl, ...] = ()

Node: TypeAlias = Union[Expr, Stmt, Decl, Program, Argument, Param, ElseIf, TargetExpr]

# ---------- Helpers ----------

def is_node(value: object) -> bool:
    return is_dataclass(value) and not isinstance(value, (type, Tok))

def node_children(node: object) -> Iterator[Tuple[str, Any]]:
    """Yield (field name, value) pairs for a node in declaration order."""
    for f in fields(node):
        yield f.name, getattr(node, f.name)

def first_token(node: object) -> Optional[Tok]:
    """Leftmost token reachable from a node, used for error locations."""
    if isinstance(node, Tok):
        return node

    if isinstance(node, tuple):
        for item in node:
            tok = first_token(item)
            if tok is not None:
                return tok
        return None

    if not is_node(node):
        return None

    for _, value in node_children(node):
        tok = first_token(value)
        if tok is not None:
            return tok

    return None
