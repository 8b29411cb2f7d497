"""Entity registry and the self/target/caster context effects resolve against."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional, TextIO

from .token_types import TT, Tok
from .types import VlrRecord, ValorRuntimeError
from .utils import describe_statuses, stringify


class World:
    def __init__(self) -> None:
        self.entities: Dict[str, VlrRecord] = {}

    def register(self, entity: VlrRecord) -> None:
        self.entities[entity.name] = entity

    def get(self, name: str) -> Optional[VlrRecord]:
        return self.entities.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.entities

    def __iter__(self) -> Iterator[VlrRecord]:
        return iter(self.entities.values())

    def __len__(self) -> int:
        return len(self.entities)

    def dump(self, out: TextIO) -> None:
        print("=== WORLD STATE ===", file=out)

        for entity in self:
            stats = ", ".join(f"{k}={stringify(v)}" for k, v in entity.fields.items() if k != "abilities")
            print(f"{entity.kind} {entity.name}: {stats} [{describe_statuses(entity.statuses)}]", file=out)


@dataclass(frozen=True)
class ExecutionContext:
    """Entities bound to `self`, `target` and `caster` while a body runs."""

    self_entity: Optional[VlrRecord] = None
    target: Optional[VlrRecord] = None
    caster: Optional[VlrRecord] = None

    def with_target(self, target: Optional[VlrRecord]) -> 'ExecutionContext':
        return replace(self, target=target)

    def slot(self, keyword: Tok) -> Optional[VlrRecord]:
        """Entity bound to a context keyword, or None when the slot is empty."""
        match keyword.type:
            case TT.SELF:
                entity = self.self_entity
            case TT.TARGET:
                entity = self.target
            case TT.CASTER:
                entity = self.caster
            case _:
                raise ValorRuntimeError(f"'{keyword.lexeme}' is not a context keyword.", keyword)

        return entity

    def resolve(self, keyword: Tok) -> VlrRecord:
        entity = self.slot(keyword)
        if entity is None:
            raise ValorRuntimeError(f"No '{keyword.lexeme}' in the current context.", keyword)

        return entity


EMPTY_CONTEXT = ExecutionContext()
