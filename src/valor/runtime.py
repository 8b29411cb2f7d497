from __future__ import annotations

import importlib
import sys
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, TextIO

from .types import EffectHandler, Environment, NativeFn, ValorRuntimeError, VlrNative
from .utils import RuntimeConfig
from .world import EMPTY_CONTEXT, ExecutionContext, World

_STDLIB_INITIALIZED = False

_STDLIB_MODULES = ("valor.stdlib", "valor.eval.effects")


class Builtins:
    natives: Dict[str, VlrNative] = {}
    effect_handlers: Dict[str, EffectHandler] = {}


def init_stdlib() -> None:
    """Load stdlib modules (idempotent) so the register_* hooks run."""
    global _STDLIB_INITIALIZED

    if _STDLIB_INITIALIZED:
        return

    for module_name in _STDLIB_MODULES:
        importlib.import_module(module_name)

    _STDLIB_INITIALIZED = True


def register_native(name: str, *, arity: Optional[int] = None):
    def dec(fn: NativeFn):
        Builtins.natives[name] = VlrNative(name=name, fn=fn, arity=arity)
        return fn

    return dec


def register_effect(kind: str):
    def dec(fn: EffectHandler):
        Builtins.effect_handlers[kind] = fn
        return fn

    return dec


class Runtime:
    """State shared by every scope of one interpreter run."""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        config: Optional[RuntimeConfig] = None,
        world: Optional[World] = None,
    ):
        init_stdlib()

        self.out = out
        self.config = config if config is not None else RuntimeConfig.from_env()
        self.world = world if world is not None else World()
        self.context: ExecutionContext = EMPTY_CONTEXT
        self.imports: List[str] = []
        self.globals = Environment(runtime=self)

    @property
    def stream(self) -> TextIO:
        return self.out if self.out is not None else sys.stdout

    def write(self, text: str) -> None:
        print(text, file=self.stream)

    def native(self, name: str) -> Optional[VlrNative]:
        return Builtins.natives.get(name)

    @contextmanager
    def bound(self, context: ExecutionContext) -> Iterator[ExecutionContext]:
        saved = self.context
        self.context = context

        try:
            yield context
        finally:
            self.context = saved


def runtime_of(env: Environment) -> Runtime:
    runtime = env.runtime
    if runtime is None:
        raise ValorRuntimeError("Environment is not attached to a runtime.")

    return runtime
