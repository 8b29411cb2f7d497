"""
Declaration evaluation: turns the sections of a Program into bindings.

Order is fixed: imports, variables, heroes, arena, status effects, items,
creeps, then functions. Behavior bodies run once, when their declaration is
evaluated, and the value they produce is stored on the descriptor.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..runtime import runtime_of
from ..token_types import Tok
from ..tree import (
    AbilitiesBlock,
    AbilityDecl,
    Behavior,
    Block,
    CoreDecl,
    CreepDecl,
    FunctionDecl,
    HeroDecl,
    HeroSet,
    HeroStatBlock,
    ItemDecl,
    ItemField,
    PassiveField,
    Program,
    StatEntry,
    StatusEffectDecl,
    TeamDecl,
    TurretDecl,
    VarDecl,
)
from ..types import Environment, VlrFn, VlrList, VlrRecord, VlrString, VlrValue, ValorRuntimeError
from ..world import ExecutionContext
from .helpers import EvalFunc, ExecFunc


def eval_program(program: Program, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> Environment:
    runtime = runtime_of(env)

    for imp in program.imports:
        runtime.imports.append(imp.name.lexeme)

    for var in program.variables:
        eval_var_decl(var, env, eval_func)

    for hero in program.heroes:
        eval_hero(hero, env, eval_func, exec_func)

    for decl in program.arena:
        match decl:
            case TeamDecl():
                eval_team(decl, env, eval_func)
            case TurretDecl():
                eval_entity(decl.name, "turret", decl.stats, env, eval_func)
            case CoreDecl():
                eval_entity(decl.name, "core", decl.stats, env, eval_func)
            case _:
                raise ValorRuntimeError(f"Unknown arena declaration {type(decl).__name__}")

    for effect in program.status_effects:
        eval_status_effect(effect, env, eval_func, exec_func)

    for item in program.items:
        eval_item(item, env, eval_func)

    for creep in program.creeps:
        eval_creep(creep, env, eval_func)

    for fn in program.functions:
        eval_function_decl(fn, env)

    return env


def eval_var_decl(decl: VarDecl, env: Environment, eval_func: EvalFunc) -> VlrValue:
    value = eval_func(decl.value, env)
    env.define(decl.name.lexeme, value, const=decl.const)
    return value


def eval_function_decl(decl: FunctionDecl, env: Environment) -> VlrFn:
    fn = VlrFn(decl, env)
    env.define(decl.name.lexeme, fn)
    return fn


def run_behavior(behavior: Behavior, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> VlrValue:
    """A block yields its return value (or last statement value); a pipeline its result."""
    if isinstance(behavior, Block):
        return exec_func(behavior, env).value

    return eval_func(behavior, env)


def _eval_stats(stats: Iterable[StatEntry], record: VlrRecord, scope: Environment, eval_func: EvalFunc) -> None:
    """Evaluate stat entries in order; each is visible to the ones after it."""
    for stat in stats:
        value = eval_func(stat.value, scope)
        scope.define(stat.name.lexeme, value)
        record.fields[stat.name.lexeme] = value


def eval_hero(decl: HeroDecl, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> VlrRecord:
    runtime = runtime_of(env)
    record = VlrRecord("hero", decl.name.lexeme)

    scope = env.child()

    for stmt in decl.statements:
        match stmt:
            case HeroSet(name=name, value=value_expr):
                value = eval_func(value_expr, scope)
                scope.define(name.lexeme, value)
                record.fields[name.lexeme] = value
            case HeroStatBlock(stats=stats):
                _eval_stats(stats, record, scope, eval_func)
            case AbilitiesBlock(abilities=abilities):
                context = ExecutionContext(self_entity=record, caster=record)
                with runtime.bound(context):
                    record.fields["abilities"] = VlrList(
                        [eval_ability(a, scope, eval_func, exec_func) for a in abilities]
                    )

    env.define(record.name, record)
    runtime.world.register(record)
    return record


def _field_value(value: object, key: str, behaviors: frozenset, env: Environment,
                 eval_func: EvalFunc, exec_func: ExecFunc) -> VlrValue:
    if isinstance(value, Tok):
        return VlrString(value.lexeme)

    if key in behaviors:
        return run_behavior(value, env, eval_func, exec_func)

    return eval_func(value, env)


_ABILITY_BEHAVIORS = frozenset({"behavior"})
_STATUS_BEHAVIORS = frozenset({"on_apply", "on_tick", "on_expire"})


def eval_ability(decl: AbilityDecl, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> VlrRecord:
    record = VlrRecord("ability", decl.name.lexeme)

    for field in decl.fields:
        key = field.name.lexeme
        record.fields[key] = _field_value(field.value, key, _ABILITY_BEHAVIORS, env, eval_func, exec_func)

    return record


def eval_status_effect(decl: StatusEffectDecl, env: Environment, eval_func: EvalFunc, exec_func: ExecFunc) -> VlrRecord:
    record = VlrRecord("status_effect", decl.name.lexeme)

    for field in decl.fields:
        key = field.name.lexeme
        record.fields[key] = _field_value(field.value, key, _STATUS_BEHAVIORS, env, eval_func, exec_func)

    env.define(record.name, record)
    return record


def eval_item(decl: ItemDecl, env: Environment, eval_func: EvalFunc) -> VlrRecord:
    record = VlrRecord("item", decl.name.lexeme)

    for field in decl.fields:
        match field:
            case ItemField(name=name, value=value):
                record.fields[name.lexeme] = eval_func(value, env)
            case PassiveField(behavior=behavior):
                record.fields["passive"] = eval_func(behavior, env)

    env.define(record.name, record)
    return record


def eval_entity(name: Tok, kind: str, stats: Iterable[StatEntry], env: Environment,
                eval_func: EvalFunc) -> VlrRecord:
    """Creeps, turrets and cores: stat records that live in the world."""
    record = VlrRecord(kind, name.lexeme)
    _eval_stats(stats, record, env.child(), eval_func)

    env.define(record.name, record)
    runtime_of(env).world.register(record)
    return record


def eval_creep(decl: CreepDecl, env: Environment, eval_func: EvalFunc) -> VlrRecord:
    return eval_entity(decl.name, "creep", decl.stats, env, eval_func)


def eval_team(decl: TeamDecl, env: Environment, eval_func: EvalFunc) -> VlrRecord:
    record = VlrRecord("team", decl.name.lexeme)

    core: Optional[VlrValue] = None
    if decl.core_ref is not None:
        owner = env.lookup(decl.core_ref.lexeme)
        bound = owner.vars[decl.core_ref.lexeme] if owner is not None else None
        core = bound if isinstance(bound, VlrRecord) else VlrString(decl.core_ref.lexeme)

    if core is not None:
        record.fields["core"] = core

    record.fields["turrets"] = VlrList([
        eval_entity(t.name, "turret", t.stats, env, eval_func) for t in decl.turrets
    ])

    env.define(record.name, record)
    return record
