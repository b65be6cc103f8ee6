"""Single-page fetch results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from .outcome import OutcomeKind

T = TypeVar("T")


@dataclass(frozen=True)
class PageInfo:
    """What the adapter knows about the page it just fetched."""

    requested: int
    has_more: bool
    outcome: OutcomeKind = OutcomeKind.OK

    @property
    def failed(self) -> bool:
        return self.outcome.is_failure


@dataclass(frozen=True)
class Page(Generic[T]):
    records: list[T] = field(default_factory=list)
    info: PageInfo = field(default_factory=lambda: PageInfo(requested=0, has_more=False))

    @classmethod
    def empty(cls, requested: int, outcome: OutcomeKind) -> Page[T]:
        return cls(records=[], info=PageInfo(requested=requested, has_more=False, outcome=outcome))

    def __len__(self) -> int:
        return len(self.records)
