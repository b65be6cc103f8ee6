"""Outcome recording for operators.

``OutcomeRecorder`` is the default outcome hook: it keeps per-source counters
in the manner of a metrics registry so "source down" can be told apart from
"no results" without changing what the adapters return.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from .models.outcome import FetchOutcome, OutcomeHook, OutcomeKind


@dataclass
class SourceStats:
    """Counters for a single source."""
    total_calls: int = 0
    failed_calls: int = 0
    total_records: int = 0
    total_latency_ms: float = 0.0
    kind_counts: dict[str, int] = field(default_factory=dict)
    last_error: str | None = None

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 1.0
        return (self.total_calls - self.failed_calls) / self.total_calls

    @property
    def avg_latency_ms(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.total_latency_ms / self.total_calls


class OutcomeRecorder:
    """Collects ``FetchOutcome`` events from every adapter it is attached to."""

    def __init__(self, history: int = 200) -> None:
        self._stats: dict[str, SourceStats] = {}
        self._recent: deque[FetchOutcome] = deque(maxlen=history)

    def __call__(self, outcome: FetchOutcome) -> None:
        stats = self._stats.setdefault(outcome.source, SourceStats())
        stats.total_calls += 1
        stats.total_records += outcome.record_count
        stats.total_latency_ms += outcome.elapsed_ms
        stats.kind_counts[outcome.kind.value] = stats.kind_counts.get(outcome.kind.value, 0) + 1
        if outcome.kind.is_failure:
            stats.failed_calls += 1
            stats.last_error = outcome.detail or outcome.kind.value
        self._recent.append(outcome)

    def stats(self, source: str) -> SourceStats:
        return self._stats.get(source, SourceStats())

    @property
    def sources(self) -> list[str]:
        return list(self._stats)

    @property
    def recent(self) -> list[FetchOutcome]:
        return list(self._recent)

    def failures(self, source: str | None = None) -> list[FetchOutcome]:
        return [
            o for o in self._recent
            if o.kind.is_failure and (source is None or o.source == source)
        ]

    def count(self, source: str, kind: OutcomeKind) -> int:
        return self.stats(source).kind_counts.get(kind.value, 0)

    def snapshot(self) -> dict[str, dict]:
        """Plain-dict view for logs and the CLI."""
        return {
            name: {
                "calls": s.total_calls,
                "failed": s.failed_calls,
                "records": s.total_records,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": round(s.avg_latency_ms, 1),
                "kinds": dict(s.kind_counts),
                "last_error": s.last_error,
            }
            for name, s in self._stats.items()
        }


__all__ = ["FetchOutcome", "OutcomeHook", "OutcomeKind", "OutcomeRecorder", "SourceStats"]
