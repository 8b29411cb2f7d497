from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set, Tuple, Union
from typing_extensions import Protocol, TypeAlias, TypeGuard

from .token_types import Tok

if TYPE_CHECKING:
    from .runtime import Runtime
    from .tree import FunctionDecl

# ---------- Value Model ----------

@dataclass
class VlrNil:
    def __repr__(self) -> str:
        return "nil"

@dataclass
class VlrNumber:
    value: float
    def __repr__(self) -> str:
        v = self.value
        return str(int(v)) if float(v).is_integer() else str(v)

@dataclass
class VlrString:
    value: str
    def __repr__(self) -> str:
        return f'"{self.value}"'

@dataclass
class VlrBool:
    value: bool
    def __repr__(self) -> str:
        return "true" if self.value else "false"

@dataclass
class VlrList:
    items: List['VlrValue']
    def __repr__(self) -> str:
        return "[" + ", ".join(repr(x) for x in self.items) + "]"

@dataclass
class AppliedStatus:
    """A timed condition sitting on an entity (stun, slow, named status)."""
    name: str
    duration: Optional[float] = None
    magnitude: Optional[float] = None
    def __repr__(self) -> str:
        parts = [self.name]

        if self.magnitude is not None:
            parts.append(f"x{self.magnitude:g}")
        if self.duration is not None:
            parts.append(f"{self.duration:g}s")

        return " ".join(parts)

@dataclass
class VlrRecord:
    """Descriptor or entity: a hero, ability, item, creep, turret, ..."""
    kind: str
    name: str
    fields: Dict[str, 'VlrValue'] = field(default_factory=dict)
    statuses: List[AppliedStatus] = field(default_factory=list)

    def get(self, key: str) -> 'VlrValue':
        return self.fields.get(key, VlrNil())

    def __repr__(self) -> str:
        pairs = [f"{k}: {repr(v)}" for k, v in self.fields.items()]
        body = "{ " + ", ".join(pairs) + " }" if pairs else "{}"
        return f"<{self.kind} {self.name}> {body}"

@dataclass
class VlrFn:
    decl: 'FunctionDecl'
    closure: 'Environment'
    def __repr__(self) -> str:
        params = ", ".join(p.name.lexeme for p in self.decl.params)
        return f"<fn {self.decl.name.lexeme}({params})>"

@dataclass
class EffectStep:
    kind: str
    amount: Optional[float] = None
    duration: Optional[float] = None
    stat: Optional[str] = None
    label: Optional[str] = None
    def __repr__(self) -> str:
        args = [f'"{x}"' for x in (self.stat, self.label) if x is not None]
        args += [f"{x:g}" for x in (self.amount, self.duration) if x is not None]
        return f"{self.kind}({', '.join(args)})"

@dataclass
class VlrEffect:
    """Description of what happens to an entity once applied."""
    steps: List[EffectStep]
    def __repr__(self) -> str:
        return "<effect " + " |> ".join(repr(s) for s in self.steps) + ">"

NativeFn = Callable[['Environment', List['VlrValue']], 'VlrValue']

@dataclass(frozen=True)
class VlrNative:
    name: str
    fn: NativeFn
    arity: Optional[int] = None
    def __repr__(self) -> str:
        return f"<native {self.name}>"

VlrValue: TypeAlias = (
    VlrNil
    | VlrNumber
    | VlrString
    | VlrBool
    | VlrList
    | VlrRecord
    | VlrFn
    | VlrNative
    | VlrEffect
)

_VLR_VALUE_TYPES: Tuple[type, ...] = (
    VlrNil,
    VlrNumber,
    VlrString,
    VlrBool,
    VlrList,
    VlrRecord,
    VlrFn,
    VlrNative,
    VlrEffect,
)

def is_vlr_value(value: object) -> TypeGuard[VlrValue]:
    return isinstance(value, _VLR_VALUE_TYPES)

# ---------- Control signals ----------

@dataclass
class Returned:
    """Produced by `return`; unwinds block execution up to the caller."""
    value: VlrValue

@dataclass
class Completed:
    """Block ran to the end; `value` is its last statement's value."""
    value: VlrValue

Signal: TypeAlias = Union[Completed, Returned]

# ---------- Environment ----------

class Environment:
    def __init__(self, parent: Optional['Environment'] = None, runtime: Optional['Runtime'] = None):
        self.parent = parent
        self.vars: Dict[str, VlrValue] = {}
        self.consts: Set[str] = set()

        if runtime is None and parent is not None:
            runtime = parent.runtime
        self.runtime = runtime

    def child(self) -> 'Environment':
        return Environment(self)

    def define(self, name: str, val: VlrValue, const: bool = False) -> None:
        self.vars[name] = val

        if const:
            self.consts.add(name)
        else:
            self.consts.discard(name)

    def lookup(self, name: str) -> Optional['Environment']:
        """Nearest scope that binds `name`, or None."""
        env: Optional[Environment] = self

        while env is not None:
            if name in env.vars:
                return env
            env = env.parent

        return None

    def get(self, name: Tok) -> VlrValue:
        owner = self.lookup(name.lexeme)
        if owner is None:
            raise ValorNameError(f"Undefined variable '{name.lexeme}'.", name)

        return owner.vars[name.lexeme]

    def assign(self, name: Tok, val: VlrValue) -> None:
        owner = self.lookup(name.lexeme)
        if owner is None:
            raise ValorNameError(f"Undefined variable '{name.lexeme}'.", name)

        if name.lexeme in owner.consts:
            raise ValorRuntimeError(f"Cannot assign to constant '{name.lexeme}'.", name)

        owner.vars[name.lexeme] = val

    def is_defined(self, name: str) -> bool:
        return self.lookup(name) is not None

    def values(self) -> Dict[str, VlrValue]:
        return dict(self.vars)

    def scopes(self) -> List['Environment']:
        """This scope followed by its ancestors, innermost first."""
        chain: List[Environment] = []
        env: Optional[Environment] = self

        while env is not None:
            chain.append(env)
            env = env.parent

        return chain

# ---------- Exceptions ----------

class ValorRuntimeError(Exception):
    token: Optional[Tok]

    def __init__(self, message: str, token: Optional[Tok] = None):
        super().__init__(message)
        self.message = message
        self.token = token

    def __str__(self) -> str:
        if self.token is None:
            return f"Error: {self.message}"

        return f"[line {self.token.line}] Error: {self.message}"

class ValorTypeError(ValorRuntimeError):
    pass

class ValorNameError(ValorRuntimeError):
    pass

class ValorArityError(ValorRuntimeError):
    pass

class ValorZeroDivisionError(ValorRuntimeError):
    def __init__(self, token: Optional[Tok] = None):
        super().__init__("Division by zero.", token)

class EffectHandler(Protocol):
    def __call__(self, entity: VlrRecord, step: EffectStep) -> None: ...
