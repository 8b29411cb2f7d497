"""
Recursive Descent Parser for Valor

Structure:
- Declarations: GAME wrapper, top-level variables and the entity sections
  (Heroes, Arena, StatusEffects, Items, Creeps, Functions)
- Statements: blocks used by functions, behaviors and status-effect hooks
- Expressions: precedence climbing from assignment down to primary

Errors never abort a parse. `expect` raises ParseError, which is caught at
statement, field and declaration granularity, recorded in `errors`, and
followed by a recovery step that always consumes input.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Set, Tuple, TypeVar

from .diagnostics import format_at
from .token_types import FIELD_KEYWORDS, KEYWORDS, TT, Tok
from .tree import (
    AbilitiesBlock,
    AbilityDecl,
    AbilityField,
    Apply,
    Argument,
    Assign,
    Assignment,
    Behavior,
    Binary,
    Block,
    Call,
    CallStmt,
    CasterTarget,
    ConstDecl,
    ContextRef,
    CoreDecl,
    CreepDecl,
    Duration,
    ElseIf,
    Expr,
    ExprStmt,
    ForEach,
    FunctionDecl,
    Grouping,
    HeroDecl,
    HeroSet,
    HeroStatBlock,
    HeroStatement,
    If,
    ImportDecl,
    ItemDecl,
    ItemField,
    Literal,
    Logical,
    NamedTarget,
    Param,
    PassiveField,
    Percentage,
    Program,
    Return,
    SelfTarget,
    SetStmt,
    StatEntry,
    StatusEffectDecl,
    StatusEffectField,
    Stmt,
    TargetExpr,
    TargetTarget,
    TeamDecl,
    TurretDecl,
    Unary,
    Variable,
    VarDecl,
    While,
)

T = TypeVar("T")

# ============================================================================
# Parser
# ============================================================================

class ParseError(Exception):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.message = message
        self.token = token
        super().__init__(message)

    def __str__(self) -> str:
        return format_at(self.token, self.message)


# Tokens that can begin a statement; statement recovery stops in front of them.
STATEMENT_STARTS = frozenset({
    TT.IF, TT.WHILE, TT.FOR, TT.RETURN, TT.SET, TT.CONST, TT.APPLY,
})

ABILITY_FIELDS = frozenset({
    TT.TYPE, TT.COOLDOWN, TT.MANA_COST, TT.RANGE, TT.DAMAGE_TYPE, TT.BEHAVIOR,
})

STATUS_FIELDS = frozenset({
    TT.TYPE, TT.DURATION_KW, TT.ON_APPLY, TT.ON_TICK, TT.ON_EXPIRE,
})

BEHAVIOR_FIELDS = frozenset({
    TT.BEHAVIOR, TT.ON_APPLY, TT.ON_TICK, TT.ON_EXPIRE,
})

IDENT_VALUED_FIELDS = frozenset({TT.TYPE, TT.DAMAGE_TYPE})

_KEYWORD_LEXEMES = {tt: lexeme for lexeme, tt in KEYWORDS.items()}

# Deepest expression or block nesting accepted; one level costs about fifteen
# Python frames in the expression ladder.
MAX_NESTING = 48


class Parser:
    """
    Recursive descent parser for Valor.

    Expression precedence (lowest to highest):
    1. assignment (=)
    2. pipeline (|>)
    3. or (or, ||)
    4. and (and, &&)
    5. equality (==, !=)
    6. comparison (<, <=, >, >=)
    7. term (+, -)
    8. factor (*, /)
    9. unary (!, -)
    10. call (name(args))
    11. primary (literals, identifiers, parens)
    """

    def __init__(self, tokens: List[Tok]):
        if not tokens or tokens[-1].type != TT.EOF:
            last_line = tokens[-1].line if tokens else 1
            tokens = list(tokens) + [Tok(TT.EOF, '', None, last_line)]

        self.tokens = tokens
        self.pos = 0
        self.errors: List[ParseError] = []
        self.depth = 0

    # ========================================================================
    # Token Navigation
    # ========================================================================

    @property
    def current(self) -> Tok:
        return self.tokens[self.pos]

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def previous(self) -> Tok:
        return self.tokens[self.pos - 1]

    def is_at_end(self) -> bool:
        return self.current.type == TT.EOF

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        tok = self.current
        if not self.is_at_end():
            self.pos += 1
        return tok

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def expect(self, token_type: TT, message: str) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            raise ParseError(message, self.current)
        return self.advance()

    def checkpoint(self) -> int:
        return self.pos

    def restore(self, mark: int) -> None:
        self.pos = mark

    # ========================================================================
    # Error Recovery
    # ========================================================================

    def report(self, err: ParseError) -> None:
        self.errors.append(err)

    def recover_field(self, start: int) -> None:
        """Single-token recovery for entries inside a braced body."""
        if self.pos == start or not self.check(TT.RBRACE):
            if not self.is_at_end():
                self.advance()

    def skip_declaration(self, start: int) -> None:
        """Discard a malformed declaration up to its balanced closing brace."""
        self.restore(start)
        self.advance()
        depth = 0

        while not self.is_at_end():
            if self.check(TT.LBRACE):
                depth += 1
            elif self.check(TT.RBRACE):
                if depth == 0:
                    return
                depth -= 1
                if depth == 0:
                    self.advance()
                    return
            elif self.check(TT.SEMI) and depth == 0:
                self.advance()
                return

            self.advance()

    def synchronize(self) -> None:
        """Skip to the next statement boundary after a statement error."""
        if not self.check(TT.RBRACE, TT.EOF):
            self.advance()

        while not self.check(TT.EOF, TT.RBRACE):
            if self.previous().type == TT.SEMI:
                return
            if self.current.type in STATEMENT_STARTS:
                return
            self.advance()

    def guarded(self, parse: Callable[[], T], start: int) -> Optional[T]:
        """Run a declaration parser, skipping the declaration on failure."""
        try:
            return parse()
        except ParseError as err:
            self.report(err)
            self.skip_declaration(start)
            return None

    def check_duplicate(self, seen: Set[str], key: Tok, owner: str) -> bool:
        if key.lexeme in seen:
            self.report(ParseError(f"Duplicate '{key.lexeme}' in {owner}.", key))
            return True

        seen.add(key.lexeme)
        return False

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Program:
        """Parse entire program"""
        sink = _ProgramSink()

        while self.check(TT.IMPORT):
            self.parse_import(sink)

        name: Optional[Tok] = None

        if self.match(TT.GAME):
            try:
                name = self.expect(TT.IDENT, "Expect game name.")
                self.expect(TT.LBRACE, "Expect '{' after game name.")
            except ParseError as err:
                self.report(err)
                self.match(TT.LBRACE)

            self.parse_body(sink, TT.RBRACE)

            if not self.match(TT.RBRACE):
                self.report(ParseError("Expect '}' after game body.", self.current))

        self.parse_body(sink, TT.EOF)
        return sink.build(name)

    def parse_import(self, sink: '_ProgramSink') -> None:
        start = self.checkpoint()
        self.advance()

        try:
            name = self.expect(TT.IDENT, "Expect module name after import.")
            self.expect(TT.SEMI, "Expect ';' after import.")
            sink.imports.append(ImportDecl(name))
        except ParseError as err:
            self.report(err)
            self.skip_declaration(start)

    def parse_body(self, sink: '_ProgramSink', closing: TT) -> None:
        while not self.check(closing) and not self.is_at_end():
            if self.check(TT.IMPORT):
                self.parse_import(sink)
                continue

            if self.at_variable():
                try:
                    sink.variables.append(self.var_decl())
                except ParseError as err:
                    self.report(err)
                    self.synchronize()
                continue

            if self.match(TT.HEROES):
                self.parse_section("Heroes", TT.HERO, self.hero_decl, sink.heroes)
            elif self.match(TT.ARENA):
                self.parse_arena(sink.arena)
            elif self.match(TT.STATUS_EFFECTS):
                self.parse_section("StatusEffects", TT.STATUS_EFFECT, self.status_effect_decl, sink.status_effects)
            elif self.match(TT.ITEMS):
                self.parse_section("Items", TT.ITEM, self.item_decl, sink.items)
            elif self.match(TT.CREEPS):
                self.parse_section("Creeps", TT.CREEP, lambda: self.stats_decl(CreepDecl, "creep"), sink.creeps)
            elif self.match(TT.FUNCTIONS):
                self.parse_section("Functions", TT.FUNCTION, self.function_decl, sink.functions)
            else:
                self.report(ParseError("Unexpected token in game body.", self.current))
                self.advance()

    def at_variable(self) -> bool:
        if self.check(TT.SET, TT.CONST):
            return True

        if not self.check(TT.IDENT):
            return False

        mark = self.checkpoint()
        self.advance()
        is_assign = self.check(TT.ASSIGN)
        self.restore(mark)
        return is_assign

    def var_decl(self) -> VarDecl:
        if self.match(TT.CONST):
            type_name, name = self.typed_name("Expect constant name.")
            self.expect(TT.ASSIGN, "Expect '=' after constant name.")
            value = self.expression()
            self.expect(TT.SEMI, "Expect ';' after value.")
            return VarDecl(name, value, const=True, type_name=type_name)

        self.match(TT.SET)
        name = self.expect(TT.IDENT, "Expect variable name.")
        self.expect(TT.ASSIGN, "Expect '=' after variable name.")
        value = self.expression()
        self.expect(TT.SEMI, "Expect ';' after value.")
        return VarDecl(name, value)

    def typed_name(self, message: str) -> Tuple[Optional[Tok], Tok]:
        """`Type name` or bare `name`."""
        first = self.expect(TT.IDENT, message)
        if self.check(TT.IDENT):
            return first, self.advance()
        return None, first

    def parse_section(self, label: str, keyword: TT, parse_one: Callable[[], T], out: List[T]) -> None:
        try:
            self.expect(TT.LBRACE, f"Expect '{{' after {label}.")
        except ParseError as err:
            self.report(err)
            return

        expected = _KEYWORD_LEXEMES[keyword]

        while not self.check(TT.RBRACE) and not self.is_at_end():
            if not self.check(keyword):
                self.report(ParseError(f"Expect '{expected}'.", self.current))
                self.advance()
                continue

            start = self.checkpoint()
            self.advance()
            decl = self.guarded(parse_one, start)
            if decl is not None:
                out.append(decl)

        if not self.match(TT.RBRACE):
            self.report(ParseError(f"Expect '}}' after {label} block.", self.current))

    # ========================================================================
    # Heroes
    # ========================================================================

    def hero_decl(self) -> HeroDecl:
        name = self.expect(TT.IDENT, "Expect hero name.")
        self.expect(TT.LBRACE, "Expect '{' after hero name.")

        statements: List[HeroStatement] = []
        seen: Set[str] = set()

        while not self.check(TT.RBRACE) and not self.is_at_end():
            start = self.checkpoint()
            try:
                stmt = self.hero_statement()
            except ParseError as err:
                self.report(err)
                self.recover_field(start)
                continue

            if isinstance(stmt, HeroSet) or not self.check_duplicate(seen, stmt.keyword, "hero"):
                statements.append(stmt)

        self.expect(TT.RBRACE, "Expect '}' after hero body.")
        return HeroDecl(name, tuple(statements))

    def hero_statement(self) -> HeroStatement:
        if self.match(TT.SET):
            name = self.expect(TT.IDENT, "Expect stat name.")
            self.expect(TT.ASSIGN, "Expect '='.")
            value = self.expression()
            self.expect(TT.SEMI, "Expect ';' after value.")
            return HeroSet(name, value)

        if self.match(TT.HERO_STAT):
            keyword = self.previous()
            self.match(TT.COLON)
            return HeroStatBlock(keyword, self.stat_block())

        if self.match(TT.ABILITIES):
            keyword = self.previous()
            self.match(TT.COLON)
            self.expect(TT.LBRACE, "Expect '{' after abilities.")

            abilities: List[AbilityDecl] = []
            while not self.check(TT.RBRACE) and not self.is_at_end():
                if not self.check(TT.ABILITY):
                    self.report(ParseError("Expect 'ability'.", self.current))
                    self.advance()
                    continue

                start = self.checkpoint()
                self.advance()
                ability = self.guarded(self.ability_decl, start)
                if ability is not None:
                    abilities.append(ability)

            self.expect(TT.RBRACE, "Expect '}' after abilities.")
            return AbilitiesBlock(keyword, tuple(abilities))

        raise ParseError("Invalid hero statement.", self.current)

    def ability_decl(self) -> AbilityDecl:
        name = self.expect(TT.IDENT, "Expect ability name.")
        fields = self.keyed_fields(ABILITY_FIELDS, "ability", AbilityField)
        return AbilityDecl(name, fields)

    def keyed_fields(self, allowed: frozenset, owner: str, make: Callable[[Tok, object], T]) -> Tuple[T, ...]:
        """Braced list of `keyword: value` fields, each kind at most once."""
        self.expect(TT.LBRACE, f"Expect '{{' after {owner} name.")

        fields: List[T] = []
        seen: Set[str] = set()

        while not self.check(TT.RBRACE) and not self.is_at_end():
            start = self.checkpoint()
            try:
                if self.current.type not in allowed:
                    raise ParseError(f"Unexpected {owner} field.", self.current)

                key = self.advance()
                self.expect(TT.COLON, f"Expect ':' after '{key.lexeme}'.")
                value = self.field_value(key)
                self.match(TT.SEMI, TT.COMMA)
            except ParseError as err:
                self.report(err)
                self.recover_field(start)
                continue

            if not self.check_duplicate(seen, key, owner):
                fields.append(make(key, value))

        self.expect(TT.RBRACE, f"Expect '}}' after {owner} body.")
        return tuple(fields)

    def field_value(self, key: Tok) -> object:
        if key.type in IDENT_VALUED_FIELDS:
            return self.expect(TT.IDENT, f"Expect identifier after '{key.lexeme}:'.")

        if key.type in BEHAVIOR_FIELDS:
            return self.behavior()

        return self.expression()

    def behavior(self) -> Behavior:
        if self.check(TT.LBRACE):
            return self.block()
        return self.pipeline()

    def pipeline(self) -> Expr:
        expr: Expr = self.call_only()

        while self.match(TT.PIPE):
            op = self.previous()
            expr = Binary(expr, op, self.call_only())

        return expr

    def call_only(self) -> Call:
        if self.check(TT.IDENT) and self.peek(1).type == TT.LPAR:
            return self.call_expr()
        raise ParseError("Expect function call.", self.current)

    # ========================================================================
    # Stats
    # ========================================================================

    def stat_block(self) -> Tuple[StatEntry, ...]:
        self.expect(TT.LBRACE, "Expect '{' before stats.")

        stats: List[StatEntry] = []
        while not self.check(TT.RBRACE) and not self.is_at_end():
            start = self.checkpoint()
            try:
                stats.append(self.stat_entry())
            except ParseError as err:
                self.report(err)
                self.recover_field(start)

        self.expect(TT.RBRACE, "Expect '}' after stats.")
        return tuple(stats)

    def stat_entry(self) -> StatEntry:
        name = self.field_name()
        self.expect(TT.COLON, "Expect ':' after stat name.")
        value = self.expression()
        self.match(TT.COMMA, TT.SEMI)
        return StatEntry(name, value)

    def field_name(self) -> Tok:
        if self.check(TT.IDENT) or self.current.type in FIELD_KEYWORDS:
            return self.advance()
        raise ParseError("Expect field name.", self.current)

    def stats_decl(self, make: Callable[[Tok, Tuple[StatEntry, ...]], T], owner: str) -> T:
        name = self.expect(TT.IDENT, f"Expect {owner} name.")
        return make(name, self.stat_block())

    # ========================================================================
    # Arena
    # ========================================================================

    def parse_arena(self, out: List[object]) -> None:
        try:
            self.expect(TT.LBRACE, "Expect '{' after Arena.")
        except ParseError as err:
            self.report(err)
            return

        while not self.check(TT.RBRACE) and not self.is_at_end():
            if self.check(TT.TEAM):
                parse_one: Callable[[], object] = self.team_decl
            elif self.check(TT.TURRET):
                parse_one = lambda: self.stats_decl(TurretDecl, "turret")
            elif self.check(TT.CORE):
                parse_one = lambda: self.stats_decl(CoreDecl, "core")
            else:
                self.report(ParseError("Unexpected token in Arena.", self.current))
                self.advance()
                continue

            start = self.checkpoint()
            self.advance()
            decl = self.guarded(parse_one, start)
            if decl is not None:
                out.append(decl)

        if not self.match(TT.RBRACE):
            self.report(ParseError("Expect '}' after Arena block.", self.current))

    def team_decl(self) -> TeamDecl:
        name = self.expect(TT.IDENT, "Expect team name.")
        self.expect(TT.LBRACE, "Expect '{' after team name.")

        core_ref: Optional[Tok] = None
        turrets: List[TurretDecl] = []
        seen: Set[str] = set()

        while not self.check(TT.RBRACE) and not self.is_at_end():
            start = self.checkpoint()
            try:
                if self.match(TT.CORE):
                    keyword = self.previous()
                    ref = self.expect(TT.IDENT, "Expect core name.")
                    self.match(TT.SEMI, TT.COMMA)
                    if not self.check_duplicate(seen, keyword, "team"):
                        core_ref = ref
                elif self.match(TT.TURRETS):
                    self.match(TT.COLON)
                    turrets.extend(self.turret_list())
                else:
                    raise ParseError("Unexpected token in team.", self.current)
            except ParseError as err:
                self.report(err)
                self.recover_field(start)

        self.expect(TT.RBRACE, "Expect '}' after team body.")
        return TeamDecl(name, core_ref, tuple(turrets))

    def turret_list(self) -> List[TurretDecl]:
        self.expect(TT.LBRACE, "Expect '{' after turrets.")

        turrets: List[TurretDecl] = []
        while not self.check(TT.RBRACE) and not self.is_at_end():
            start = self.checkpoint()
            self.match(TT.TURRET)
            if not self.check(TT.IDENT):
                self.report(ParseError("Expect turret.", self.current))
                self.recover_field(start)
                continue

            turret = self.guarded(lambda: self.stats_decl(TurretDecl, "turret"), start)
            if turret is not None:
                turrets.append(turret)

        self.expect(TT.RBRACE, "Expect '}' after turrets.")
        return turrets

    # ========================================================================
    # Status Effects / Items
    # ========================================================================

    def status_effect_decl(self) -> StatusEffectDecl:
        name = self.expect(TT.IDENT, "Expect status effect name.")
        fields = self.keyed_fields(STATUS_FIELDS, "status effect", StatusEffectField)
        return StatusEffectDecl(name, fields)

    def item_decl(self) -> ItemDecl:
        name = self.expect(TT.IDENT, "Expect item name.")
        self.expect(TT.LBRACE, "Expect '{' after item name.")

        fields: List[object] = []
        seen: Set[str] = set()

        while not self.check(TT.RBRACE) and not self.is_at_end():
            start = self.checkpoint()
            try:
                if self.match(TT.PASSIVE):
                    keyword = self.previous()
                    passive = self.passive_body(keyword)
                    if not self.check_duplicate(seen, keyword, "item"):
                        fields.append(passive)
                    continue

                key = self.field_name()
                self.expect(TT.COLON, "Expect ':' after item property.")
                value = self.expression()
                self.match(TT.COMMA, TT.SEMI)
                fields.append(ItemField(key, value))
            except ParseError as err:
                self.report(err)
                self.recover_field(start)

        self.expect(TT.RBRACE, "Expect '}' after item body.")
        return ItemDecl(name, tuple(fields))

    def passive_body(self, keyword: Tok) -> PassiveField:
        self.match(TT.COLON)
        self.expect(TT.LBRACE, "Expect '{' after passive.")
        self.expect(TT.BEHAVIOR, "Expect 'behavior' in passive.")
        self.expect(TT.COLON, "Expect ':' after 'behavior'.")
        behavior = self.pipeline()
        self.match(TT.SEMI, TT.COMMA)
        self.expect(TT.RBRACE, "Expect '}' after passive.")
        return PassiveField(keyword, behavior)

    # ========================================================================
    # Functions
    # ========================================================================

    def function_decl(self) -> FunctionDecl:
        name = self.expect(TT.IDENT, "Expect function name.")
        self.expect(TT.LPAR, "Expect '(' after function name.")

        params: List[Param] = []
        if not self.check(TT.RPAR):
            while True:
                type_name, param = self.typed_name("Expect parameter name.")
                params.append(Param(param, type_name))
                if not self.match(TT.COMMA):
                    break

        self.expect(TT.RPAR, "Expect ')' after parameters.")

        return_type: Optional[Tok] = None
        if self.match(TT.COLON):
            return_type = self.expect(TT.IDENT, "Expect return type.")

        return FunctionDecl(name, tuple(params), self.block(), return_type)

    # ========================================================================
    # Statements
    # ========================================================================

    def block(self) -> Block:
        self.expect(TT.LBRACE, "Expect '{' before block.")
        with self.nested():
            return self._block_body()

    def _block_body(self) -> Block:
        statements: List[Stmt] = []
        while not self.check(TT.RBRACE) and not self.is_at_end():
            try:
                statements.append(self.statement())
            except ParseError as err:
                self.report(err)
                self.synchronize()

        self.expect(TT.RBRACE, "Expect '}' after block.")
        return Block(tuple(statements))

    def statement(self) -> Stmt:
        """
        Parse a single statement.

        Statements include:
        - Control flow (if, while, for, return)
        - Bindings (set, const, =, +=, -=, ++, --)
        - Effects (apply ... to ...)
        - Stat entries (name: value)
        - Calls and other expressions
        """
        if self.check(TT.IF):
            return self.if_stmt()
        if self.check(TT.WHILE):
            return self.while_stmt()
        if self.check(TT.FOR):
            return self.for_stmt()
        if self.check(TT.RETURN):
            return self.return_stmt()
        if self.check(TT.SET):
            return self.set_stmt()
        if self.check(TT.CONST):
            return self.const_stmt()
        if self.check(TT.APPLY):
            return self.apply_stmt()
        if self.check(TT.LBRACE):
            return self.block()
        if self.check(TT.IDENT):
            return self.ident_statement()
        if self.current.type in FIELD_KEYWORDS and self.peek(1).type == TT.COLON:
            name = self.advance()
            self.advance()
            value = self.expression()
            self.match(TT.COMMA, TT.SEMI)
            return StatEntry(name, value)

        return self.expression_statement()

    def terminator(self, message: str = "Expect ';' after statement.") -> None:
        if self.match(TT.SEMI) or self.check(TT.RBRACE):
            return
        raise ParseError(message, self.current)

    def ident_statement(self) -> Stmt:
        mark = self.checkpoint()
        name = self.advance()

        if self.match(TT.ASSIGN):
            value = self.expression()
            self.terminator("Expect ';' after assignment.")
            return Assignment(name, value)

        if self.match(TT.PLUSEQ, TT.MINUSEQ):
            op = self.previous()
            value = self.expression()
            self.terminator("Expect ';' after assignment.")
            return Assignment(name, Binary(Variable(name), _arith_token(op), value))

        if self.match(TT.INCR, TT.DECR):
            op = self.previous()
            self.terminator("Expect ';' after assignment.")
            one = Literal(1.0, Tok(TT.NUMBER, '1', 1.0, op.line))
            return Assignment(name, Binary(Variable(name), _arith_token(op), one))

        if self.match(TT.COLON):
            value = self.expression()
            self.match(TT.COMMA, TT.SEMI)
            return StatEntry(name, value)

        if self.check(TT.LPAR):
            self.restore(mark)
            call = self.call_expr()
            if self.check(TT.SEMI, TT.RBRACE):
                self.terminator()
                return CallStmt(call)

        self.restore(mark)
        return self.expression_statement()

    def expression_statement(self) -> Stmt:
        expr = self.expression()
        self.terminator("Expect ';' after expression.")
        return ExprStmt(expr)

    def if_stmt(self) -> If:
        self.advance()
        condition = self.paren_condition("if")
        then_branch = self.block()

        elifs: List[ElseIf] = []
        else_branch: Optional[Block] = None

        while self.check(TT.ELSE):
            self.advance()
            if self.match(TT.IF):
                cond = self.paren_condition("else if")
                elifs.append(ElseIf(cond, self.block()))
                continue

            else_branch = self.block()
            break

        return If(condition, then_branch, tuple(elifs), else_branch)

    def paren_condition(self, keyword: str) -> Expr:
        self.expect(TT.LPAR, f"Expect '(' after '{keyword}'.")
        condition = self.expression()
        self.expect(TT.RPAR, "Expect ')' after condition.")
        return condition

    def while_stmt(self) -> While:
        keyword = self.advance()
        condition = self.paren_condition("while")
        return While(keyword, condition, self.block())

    def for_stmt(self) -> ForEach:
        self.advance()
        self.expect(TT.LPAR, "Expect '(' after 'for'.")
        variable = self.expect(TT.IDENT, "Expect loop variable.")
        self.expect(TT.IN, "Expect 'in' after loop variable.")
        iterable = self.expression()
        self.expect(TT.RPAR, "Expect ')' after for clause.")
        return ForEach(variable, iterable, self.block())

    def return_stmt(self) -> Return:
        keyword = self.advance()
        value: Optional[Expr] = None

        if not self.check(TT.SEMI, TT.RBRACE):
            value = self.expression()

        self.terminator("Expect ';' after return value.")
        return Return(keyword, value)

    def set_stmt(self) -> SetStmt:
        self.advance()
        name = self.expect(TT.IDENT, "Expect variable name.")
        self.expect(TT.ASSIGN, "Expect '=' after variable name.")
        value = self.expression()
        self.terminator("Expect ';' after value.")
        return SetStmt(name, value)

    def const_stmt(self) -> ConstDecl:
        self.advance()
        type_name, name = self.typed_name("Expect constant name.")
        self.expect(TT.ASSIGN, "Expect '=' after constant name.")
        value = self.expression()
        self.terminator("Expect ';' after value.")
        return ConstDecl(name, value, type_name)

    def apply_stmt(self) -> Apply:
        keyword = self.advance()
        call = self.pipeline()
        self.expect(TT.TO, "Expect 'to' after applied effect.")
        target = self.target()
        self.terminator("Expect ';' after apply target.")
        return Apply(keyword, call, target)

    def target(self) -> TargetExpr:
        tok = self.current
        match tok.type:
            case TT.SELF:
                self.advance()
                return SelfTarget(tok)
            case TT.TARGET:
                self.advance()
                return TargetTarget(tok)
            case TT.CASTER:
                self.advance()
                return CasterTarget(tok)
            case TT.IDENT:
                self.advance()
                return NamedTarget(tok)
            case _:
                raise ParseError("Expect target after 'to'.", tok)

    # ========================================================================
    # Expressions
    # ========================================================================

    @contextmanager
    def nested(self) -> Iterator[None]:
        if self.depth >= MAX_NESTING:
            raise ParseError("Expression nests too deeply.", self.current)
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1

    def expression(self) -> Expr:
        with self.nested():
            return self.assignment()

    def assignment(self) -> Expr:
        expr = self.pipe()

        if self.match(TT.ASSIGN):
            equals = self.previous()
            with self.nested():
                value = self.assignment()

            if isinstance(expr, Variable):
                return Assign(expr.name, value)

            self.report(ParseError("Invalid assignment target.", equals))
            return value

        return expr

    def pipe(self) -> Expr:
        expr = self.or_expr()

        while self.match(TT.PIPE):
            op = self.previous()
            expr = Binary(expr, op, self.call_only())

        return expr

    def or_expr(self) -> Expr:
        expr = self.and_expr()

        while self.match(TT.OR):
            op = self.previous()
            expr = Logical(expr, op, self.and_expr())

        return expr

    def and_expr(self) -> Expr:
        expr = self.equality()

        while self.match(TT.AND):
            op = self.previous()
            expr = Logical(expr, op, self.equality())

        return expr

    def binary_level(self, operand: Callable[[], Expr], *ops: TT) -> Expr:
        expr = operand()

        while self.match(*ops):
            op = self.previous()
            expr = Binary(expr, op, operand())

        return expr

    def equality(self) -> Expr:
        return self.binary_level(self.comparison, TT.EQ, TT.NEQ)

    def comparison(self) -> Expr:
        return self.binary_level(self.term, TT.GT, TT.GTE, TT.LT, TT.LTE)

    def term(self) -> Expr:
        return self.binary_level(self.factor, TT.PLUS, TT.MINUS)

    def factor(self) -> Expr:
        return self.binary_level(self.unary, TT.STAR, TT.SLASH)

    def unary(self) -> Expr:
        if self.match(TT.NEG, TT.MINUS):
            op = self.previous()
            with self.nested():
                return Unary(op, self.unary())

        if self.check(TT.IDENT) and self.peek(1).type == TT.LPAR:
            return self.call_expr()

        return self.primary()

    def call_expr(self) -> Call:
        name = self.advance()
        self.expect(TT.LPAR, "Expect '(' after function name.")

        args: List[Argument] = []
        if not self.check(TT.RPAR):
            while True:
                args.append(self.argument())
                if not self.match(TT.COMMA):
                    break

        self.expect(TT.RPAR, "Expect ')' after arguments.")
        return Call(name, tuple(args))

    def argument(self) -> Argument:
        is_named = self.check(TT.IDENT) or self.current.type in FIELD_KEYWORDS
        if is_named and self.peek(1).type == TT.COLON:
            name = self.advance()
            self.advance()
            return Argument(self.expression(), name)

        return Argument(self.expression())

    def primary(self) -> Expr:
        tok = self.current

        match tok.type:
            case TT.NUMBER | TT.STRING:
                self.advance()
                return Literal(tok.literal, tok)
            case TT.TRUE:
                self.advance()
                return Literal(True, tok)
            case TT.FALSE:
                self.advance()
                return Literal(False, tok)
            case TT.NIL:
                self.advance()
                return Literal(None, tok)
            case TT.PERCENTAGE:
                self.advance()
                return Percentage(tok.literal / 100.0, tok)
            case TT.DURATION:
                self.advance()
                return Duration(tok.literal, tok)
            case TT.IDENT:
                self.advance()
                return Variable(tok)
            case TT.SELF | TT.TARGET | TT.CASTER:
                self.advance()
                return ContextRef(tok)
            case TT.LPAR:
                self.advance()
                inner = self.expression()
                self.expect(TT.RPAR, "Expect ')' after expression.")
                return Grouping(inner)
            case _:
                raise ParseError("Expect expression.", tok)


class _ProgramSink:
    """Mutable collectors for the sections of a Program."""

    def __init__(self):
        self.imports: List[ImportDecl] = []
        self.variables: List[VarDecl] = []
        self.heroes: List[HeroDecl] = []
        self.arena: List[object] = []
        self.status_effects: List[StatusEffectDecl] = []
        self.items: List[ItemDecl] = []
        self.creeps: List[CreepDecl] = []
        self.functions: List[FunctionDecl] = []

    def build(self, name: Optional[Tok]) -> Program:
        return Program(
            name=name,
            imports=tuple(self.imports),
            variables=tuple(self.variables),
            heroes=tuple(self.heroes),
            arena=tuple(self.arena),
            status_effects=tuple(self.status_effects),
            items=tuple(self.items),
            creeps=tuple(self.creeps),
            functions=tuple(self.functions),
        )


def _arith_token(op: Tok) -> Tok:
    """Map `+=`/`++` and `-=`/`--` to the plain arithmetic operator."""
    if op.type in (TT.PLUSEQ, TT.INCR):
        return Tok(TT.PLUS, '+', None, op.line)
    return Tok(TT.MINUS, '-', None, op.line)

# ============================================================================
# Convenience
# ============================================================================

def parse_program(tokens: List[Tok], errors: Optional[List[ParseError]] = None) -> Program:
    """Parse a full program; diagnostics are appended to `errors`"""
    parser = Parser(tokens)

    try:
        program = parser.parse()
    except RecursionError:
        parser.report(ParseError("Expression nests too deeply.", parser.current))
        program = _ProgramSink().build(None)

    if errors is not None:
        errors.extend(parser.errors)

    return program


def parse_expression(tokens: List[Tok], errors: Optional[List[ParseError]] = None) -> Optional[Expr]:
    """Parse a single expression; returns None when it cannot be parsed"""
    parser = Parser(tokens)
    expr: Optional[Expr] = None

    try:
        expr = parser.expression()
        if not parser.is_at_end():
            parser.report(ParseError("Expect end of expression.", parser.current))
    except ParseError as err:
        parser.report(err)
    except RecursionError:
        parser.report(ParseError("Expression nests too deeply.", parser.current))

    if errors is not None:
        errors.extend(parser.errors)

    return expr
