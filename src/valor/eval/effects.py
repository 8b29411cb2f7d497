"""Applying effect descriptions to world entities."""

from __future__ import annotations

from typing import Optional

from ..runtime import Builtins, register_effect, runtime_of
from ..tree import Apply, CasterTarget, NamedTarget, SelfTarget, TargetExpr, TargetTarget
from ..types import (
    AppliedStatus,
    EffectStep,
    Environment,
    VlrEffect,
    VlrNumber,
    VlrRecord,
    ValorNameError,
    ValorRuntimeError,
    ValorTypeError,
)
from ..utils import type_name
from .helpers import EvalFunc


def resolve_target(target: TargetExpr, env: Environment) -> Optional[VlrRecord]:
    """Entity an `apply` lands on. Empty context slots resolve to None."""
    runtime = runtime_of(env)

    match target:
        case SelfTarget(keyword=kw) | TargetTarget(keyword=kw) | CasterTarget(keyword=kw):
            return runtime.context.slot(kw)
        case NamedTarget(name=name):
            entity = runtime.world.get(name.lexeme)
            if entity is not None:
                return entity

            owner = env.lookup(name.lexeme)
            if owner is not None and isinstance(owner.vars[name.lexeme], VlrRecord):
                return owner.vars[name.lexeme]

            raise ValorNameError(f"Unknown target '{name.lexeme}'.", name)
        case _:
            raise ValorRuntimeError(f"Unsupported target {type(target).__name__}")


def eval_apply(n: Apply, env: Environment, eval_func: EvalFunc) -> VlrEffect:
    """
    Build the effect and apply it to the resolved target.

    Behaviors declared on abilities run before any target exists; there an
    `apply ... to target` only builds the effect, which becomes the value of
    the statement.
    """
    runtime = runtime_of(env)
    entity = resolve_target(n.target, env)

    context = runtime.context if entity is None else runtime.context.with_target(entity)
    with runtime.bound(context):
        effect = eval_func(n.call, env)

    if not isinstance(effect, VlrEffect):
        raise ValorTypeError(f"Only effects can be applied, got {type_name(effect)}.", n.keyword)

    if entity is not None:
        apply_effect(entity, effect)

    return effect


def apply_effect(entity: VlrRecord, effect: VlrEffect) -> None:
    for step in effect.steps:
        handler = Builtins.effect_handlers.get(step.kind)
        if handler is None:
            raise ValorRuntimeError(f"No handler for effect '{step.kind}'.")

        handler(entity, step)


def _stat(entity: VlrRecord, key: str) -> float:
    value = entity.fields.get(key)

    if value is None:
        return 0.0
    if isinstance(value, VlrNumber):
        return value.value

    raise ValorTypeError(f"Stat '{key}' of {entity.name} is not a number.")


@register_effect("damage")
def _apply_damage(entity: VlrRecord, step: EffectStep) -> None:
    entity.fields["hp"] = VlrNumber(max(0.0, _stat(entity, "hp") - (step.amount or 0.0)))


@register_effect("heal")
def _apply_heal(entity: VlrRecord, step: EffectStep) -> None:
    entity.fields["hp"] = VlrNumber(_stat(entity, "hp") + (step.amount or 0.0))


@register_effect("buff")
def _apply_buff(entity: VlrRecord, step: EffectStep) -> None:
    key = step.stat or ""
    entity.fields[key] = VlrNumber(_stat(entity, key) + (step.amount or 0.0))


@register_effect("stun")
def _apply_stun(entity: VlrRecord, step: EffectStep) -> None:
    entity.statuses.append(AppliedStatus("stun", duration=step.duration))


@register_effect("slow")
def _apply_slow(entity: VlrRecord, step: EffectStep) -> None:
    entity.statuses.append(AppliedStatus("slow", duration=step.duration, magnitude=step.amount))


@register_effect("status")
def _apply_status(entity: VlrRecord, step: EffectStep) -> None:
    entity.statuses.append(AppliedStatus(step.label or "status", duration=step.duration))
