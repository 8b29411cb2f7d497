"""Built-in native functions (print, export, effects, ...) registered via valor.runtime."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from .runtime import register_native, runtime_of
from .types import (
    EffectStep,
    Environment,
    VlrEffect,
    VlrList,
    VlrNil,
    VlrNumber,
    VlrRecord,
    VlrString,
    VlrValue,
    ValorArityError,
    ValorRuntimeError,
    ValorTypeError,
)
from .utils import expect_number, stringify, type_name


@register_native("print")
def std_print(env: Environment, args: List[VlrValue]) -> VlrNil:
    runtime_of(env).write(" ".join(stringify(arg) for arg in args))
    return VlrNil()


@register_native("log")
def std_log(env: Environment, args: List[VlrValue]) -> VlrNil:
    """With arguments: tagged print. Without: dump every visible scope."""
    runtime = runtime_of(env)

    if args:
        runtime.write("[log] " + " ".join(stringify(arg) for arg in args))
        return VlrNil()

    for depth, scope in enumerate(env.scopes()):
        bindings = ", ".join(f"{k}={stringify(v)}" for k, v in scope.values().items())
        runtime.write(f"[log] scope {depth}: {bindings or '(empty)'}")

    return VlrNil()


@register_native("export", arity=2)
def std_export(_env: Environment, args: List[VlrValue]) -> VlrNil:
    path_arg, value = args

    if not isinstance(path_arg, VlrString):
        raise ValorTypeError("export expects a file name string.")

    try:
        Path(path_arg.value).write_text(stringify(value), encoding="utf-8")
    except OSError as exc:
        raise ValorRuntimeError(f"Cannot export to '{path_arg.value}': {exc.strerror}.") from None

    return VlrNil()


@register_native("world", arity=0)
def std_world(env: Environment, _args: List[VlrValue]) -> VlrNil:
    runtime = runtime_of(env)
    runtime.world.dump(runtime.stream)
    return VlrNil()


@register_native("len", arity=1)
def std_len(_env: Environment, args: List[VlrValue]) -> VlrNumber:
    match args[0]:
        case VlrList(items=items):
            return VlrNumber(float(len(items)))
        case VlrString(value=s):
            return VlrNumber(float(len(s)))
        case VlrRecord(fields=fields):
            return VlrNumber(float(len(fields)))
        case other:
            raise ValorTypeError(f"len expects a list, string or record, got {type_name(other)}.")


@register_native("seq", arity=1)
def std_seq(_env: Environment, args: List[VlrValue]) -> VlrList:
    n = expect_number(args[0], "seq")
    if n < 0 or not float(n).is_integer():
        raise ValorTypeError("seq expects a non-negative whole number.")

    return VlrList([VlrNumber(float(i)) for i in range(int(n))])


@register_native("list")
def std_list(_env: Environment, args: List[VlrValue]) -> VlrList:
    return VlrList(list(args))


@register_native("get", arity=2)
def std_get(_env: Environment, args: List[VlrValue]) -> VlrValue:
    match args:
        case [VlrRecord() as record, VlrString(value=key)]:
            return record.get(key)
        case [VlrList(items=items), VlrNumber(value=idx)]:
            if not float(idx).is_integer() or not 0 <= idx < len(items):
                raise ValorRuntimeError(f"Index {stringify(args[1])} out of range.")
            return items[int(idx)]
        case _:
            raise ValorTypeError("get expects (record, name) or (list, index).")


@register_native("str", arity=1)
def std_str(_env: Environment, args: List[VlrValue]) -> VlrString:
    return VlrString(stringify(args[0]))

# ---------- Effects ----------
# Effect natives only describe what should happen. When the first argument is
# already an effect (the piped value in `a |> b`), the new step is chained on.

def _split_chain(args: List[VlrValue]) -> Tuple[List[EffectStep], List[VlrValue]]:
    if args and isinstance(args[0], VlrEffect):
        return list(args[0].steps), list(args[1:])

    return [], list(args)


def _effect_args(name: str, args: List[VlrValue], count: int) -> Tuple[List[EffectStep], List[VlrValue]]:
    steps, rest = _split_chain(args)

    if len(rest) != count:
        raise ValorArityError(f"{name}() expects {count} argument(s); got {len(rest)}.")

    return steps, rest


@register_native("damage")
def std_damage(_env: Environment, args: List[VlrValue]) -> VlrEffect:
    steps, (amount,) = _effect_args("damage", args, 1)
    return VlrEffect(steps + [EffectStep("damage", amount=expect_number(amount, "damage"))])


@register_native("heal")
def std_heal(_env: Environment, args: List[VlrValue]) -> VlrEffect:
    steps, (amount,) = _effect_args("heal", args, 1)
    return VlrEffect(steps + [EffectStep("heal", amount=expect_number(amount, "heal"))])


@register_native("stun")
def std_stun(_env: Environment, args: List[VlrValue]) -> VlrEffect:
    steps, (duration,) = _effect_args("stun", args, 1)
    return VlrEffect(steps + [EffectStep("stun", duration=expect_number(duration, "stun"))])


@register_native("slow")
def std_slow(_env: Environment, args: List[VlrValue]) -> VlrEffect:
    steps, (fraction, duration) = _effect_args("slow", args, 2)
    step = EffectStep(
        "slow",
        amount=expect_number(fraction, "slow"),
        duration=expect_number(duration, "slow"),
    )
    return VlrEffect(steps + [step])


@register_native("buff")
def std_buff(_env: Environment, args: List[VlrValue]) -> VlrEffect:
    steps, (stat, amount) = _effect_args("buff", args, 2)

    if not isinstance(stat, VlrString):
        raise ValorTypeError("buff expects a stat name string.")

    return VlrEffect(steps + [EffectStep("buff", amount=expect_number(amount, "buff"), stat=stat.value)])


@register_native("status")
def std_status(_env: Environment, args: List[VlrValue]) -> VlrEffect:
    """Attach a declared status effect (or an ad hoc named one)."""
    steps, (which,) = _effect_args("status", args, 1)

    match which:
        case VlrRecord(kind="status_effect") as record:
            duration = record.get("duration")
            seconds = duration.value if isinstance(duration, VlrNumber) else None
            step = EffectStep("status", duration=seconds, label=record.name)
        case VlrString(value=label):
            step = EffectStep("status", label=label)
        case other:
            raise ValorTypeError(f"status expects a status effect or name, got {type_name(other)}.")

    return VlrEffect(steps + [step])
