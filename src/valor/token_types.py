"""
Token Types for Valor

Shared between lexer and parser to avoid circular dependencies. The lexeme
tables below are built once at import time and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple


class TT(Enum):
    """Token Types - mirrors grammar terminals"""

    # Literals
    NUMBER = auto()
    PERCENTAGE = auto()
    DURATION = auto()
    STRING = auto()
    IDENT = auto()

    # Structure keywords
    GAME = auto()
    IMPORT = auto()
    SET = auto()
    CONST = auto()
    FUNCTION = auto()
    FUNCTIONS = auto()
    HEROES = auto()
    HERO = auto()
    HERO_STAT = auto()
    ABILITIES = auto()
    ABILITY = auto()
    ARENA = auto()
    TEAM = auto()
    TURRET = auto()
    TURRETS = auto()
    CORE = auto()
    STATUS_EFFECTS = auto()
    STATUS_EFFECT = auto()
    ITEMS = auto()
    ITEM = auto()
    CREEPS = auto()
    CREEP = auto()

    # Field keywords
    TYPE = auto()
    DURATION_KW = auto()
    ON_APPLY = auto()
    ON_TICK = auto()
    ON_EXPIRE = auto()
    PASSIVE = auto()
    BEHAVIOR = auto()
    RANGE = auto()
    MANA_COST = auto()
    COOLDOWN = auto()
    DAMAGE_TYPE = auto()

    # Statement keywords
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    FOR = auto()
    IN = auto()
    RETURN = auto()
    APPLY = auto()
    TO = auto()

    # Targets
    SELF = auto()
    TARGET = auto()
    CASTER = auto()

    # Literals
    TRUE = auto()
    FALSE = auto()
    NIL = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PIPE = auto()  # |>

    # Comparison
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    # Logical
    AND = auto()
    OR = auto()
    NEG = auto()  # !

    # Assignment
    ASSIGN = auto()
    PLUSEQ = auto()
    MINUSEQ = auto()
    INCR = auto()  # ++
    DECR = auto()  # --

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    DOT = auto()
    COMMA = auto()
    COLON = auto()
    SEMI = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Tok:
    """Token with position info"""

    type: TT
    lexeme: str
    literal: Any = None
    line: int = 0

    def __repr__(self):
        return f"Tok({self.type.name}, {self.lexeme!r}, {self.literal!r}, line {self.line})"


KEYWORDS: Mapping[str, TT] = MappingProxyType({
    'GAME': TT.GAME,
    'import': TT.IMPORT,
    'set': TT.SET,
    'const': TT.CONST,
    'function': TT.FUNCTION,
    'Functions': TT.FUNCTIONS,
    'Heroes': TT.HEROES,
    'hero': TT.HERO,
    'heroStat': TT.HERO_STAT,
    'abilities': TT.ABILITIES,
    'ability': TT.ABILITY,
    'Arena': TT.ARENA,
    'team': TT.TEAM,
    'turret': TT.TURRET,
    'turrets': TT.TURRETS,
    'core': TT.CORE,
    'StatusEffects': TT.STATUS_EFFECTS,
    'statusEffect': TT.STATUS_EFFECT,
    'Items': TT.ITEMS,
    'item': TT.ITEM,
    'Creeps': TT.CREEPS,
    'creep': TT.CREEP,
    'type': TT.TYPE,
    'duration': TT.DURATION_KW,
    'on_apply': TT.ON_APPLY,
    'on_tick': TT.ON_TICK,
    'on_expire': TT.ON_EXPIRE,
    'passive': TT.PASSIVE,
    'behavior': TT.BEHAVIOR,
    'range': TT.RANGE,
    'mana_cost': TT.MANA_COST,
    'cooldown': TT.COOLDOWN,
    'damage_type': TT.DAMAGE_TYPE,
    'if': TT.IF,
    'else': TT.ELSE,
    'while': TT.WHILE,
    'for': TT.FOR,
    'in': TT.IN,
    'return': TT.RETURN,
    'apply': TT.APPLY,
    'to': TT.TO,
    'self': TT.SELF,
    'target': TT.TARGET,
    'caster': TT.CASTER,
    'true': TT.TRUE,
    'false': TT.FALSE,
    'nil': TT.NIL,
    'and': TT.AND,
    'or': TT.OR,
})

# Longest matches first so prefixes never shadow a longer operator.
OPERATORS: Tuple[Tuple[str, TT], ...] = (
    ('==', TT.EQ),
    ('!=', TT.NEQ),
    ('<=', TT.LTE),
    ('>=', TT.GTE),
    ('&&', TT.AND),
    ('||', TT.OR),
    ('|>', TT.PIPE),
    ('++', TT.INCR),
    ('--', TT.DECR),
    ('+=', TT.PLUSEQ),
    ('-=', TT.MINUSEQ),

    ('+', TT.PLUS),
    ('-', TT.MINUS),
    ('*', TT.STAR),
    ('/', TT.SLASH),
    ('<', TT.LT),
    ('>', TT.GT),
    ('!', TT.NEG),
    ('=', TT.ASSIGN),
)

PUNCTUATION: Mapping[str, TT] = MappingProxyType({
    '(': TT.LPAR,
    ')': TT.RPAR,
    '[': TT.LSQB,
    ']': TT.RSQB,
    '{': TT.LBRACE,
    '}': TT.RBRACE,
    '.': TT.DOT,
    ',': TT.COMMA,
    ':': TT.COLON,
    ';': TT.SEMI,
})

# Keywords that may also name a field inside stat lists (`range: 600`).
FIELD_KEYWORDS = frozenset({
    TT.TYPE,
    TT.DURATION_KW,
    TT.RANGE,
    TT.COOLDOWN,
    TT.MANA_COST,
    TT.DAMAGE_TYPE,
    TT.BEHAVIOR,
    TT.PASSIVE,
    TT.CORE,
})


def is_digit(ch: str) -> bool:
    """ASCII digits only."""
    return '0' <= ch <= '9'


def is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == '_')


def is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == '_')


def _is_numeric(text: str) -> bool:
    if not text or text == '.':
        return False

    seen_dot = False
    for ch in text:
        if ch == '.':
            if seen_dot:
                return False
            seen_dot = True
        elif not is_digit(ch):
            return False

    return True


def classify_lexeme(lexeme: str) -> TT:
    """Map a raw lexeme to its token kind."""
    if len(lexeme) >= 2 and lexeme[0] == '"' and lexeme[-1] == '"':
        return TT.STRING

    if lexeme in PUNCTUATION:
        return PUNCTUATION[lexeme]

    for text, kind in OPERATORS:
        if lexeme == text:
            return kind

    if lexeme.endswith('%') and _is_numeric(lexeme[:-1]):
        return TT.PERCENTAGE
    if lexeme.endswith('s') and _is_numeric(lexeme[:-1]):
        return TT.DURATION
    if _is_numeric(lexeme):
        return TT.NUMBER

    return KEYWORDS.get(lexeme, TT.IDENT)


def extract_literal(kind: TT, lexeme: str) -> Optional[Any]:
    """Literal payload for a lexeme of the given kind, or None."""
    match kind:
        case TT.STRING:
            return lexeme[1:-1]
        case TT.NUMBER:
            return float(lexeme)
        case TT.PERCENTAGE:
            return float(lexeme[:-1])
        case TT.DURATION:
            seconds = float(lexeme[:-1])
            return int(seconds) if seconds.is_integer() else seconds
        case _:
            return None
