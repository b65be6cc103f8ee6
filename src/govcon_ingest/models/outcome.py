"""Per-call outcome events.

Adapters always return a (possibly empty) result; the outcome is the side
channel that tells an operator whether "empty" meant no data or a failure.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class OutcomeKind(str, Enum):
    OK = "ok"
    NO_MATCH = "no_match"
    DISABLED = "disabled"
    SKIPPED = "skipped"  # input rejected before any network call
    TRANSPORT_ERROR = "transport_error"
    PARSE_ERROR = "parse_error"
    UNEXPECTED_ERROR = "unexpected_error"

    @property
    def is_failure(self) -> bool:
        return self in (
            OutcomeKind.TRANSPORT_ERROR,
            OutcomeKind.PARSE_ERROR,
            OutcomeKind.UNEXPECTED_ERROR,
        )


@dataclass(frozen=True)
class FetchOutcome:
    source: str
    operation: str
    kind: OutcomeKind
    record_count: int = 0
    elapsed_ms: float = 0.0
    detail: str | None = None
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


OutcomeHook = Callable[[FetchOutcome], None]
