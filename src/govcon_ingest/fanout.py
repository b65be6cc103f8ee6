"""Fan one logical request out over many filters.

Branches run one after another in the order given; a branch that raises
contributes nothing and the remaining branches still run.
"""
from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

Q = TypeVar("Q")
T = TypeVar("T")


@dataclass
class BranchResult(Generic[Q, T]):
    """Result from a single fan-out branch."""
    filter: Q
    records: list[T]
    elapsed_ms: float
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class FanOutResult(Generic[Q, T]):
    name: str
    branches: list[BranchResult[Q, T]] = field(default_factory=list)

    @property
    def records(self) -> list[T]:
        out: list[T] = []
        for branch in self.branches:
            out.extend(branch.records)
        return out

    @property
    def branches_failed(self) -> int:
        return sum(1 for b in self.branches if b.failed)

    @property
    def total_ms(self) -> float:
        return sum(b.elapsed_ms for b in self.branches)


class FanOutOrchestrator(Generic[Q, T]):
    """Runs ``branch_fn`` once per filter and concatenates the results.

    Args:
        name: Label for logs (e.g. ``"sam.naics"``)
        branch_fn: Coroutine function fetching the records for one filter
    """

    def __init__(self, name: str, branch_fn: Callable[[Q], Awaitable[list[T]]]) -> None:
        self.name = name
        self.branch_fn = branch_fn
        self.last_run: FanOutResult[Q, T] | None = None

    async def fetch_all(self, filters: Sequence[Q]) -> list[T]:
        """Fetch every branch sequentially.

        Returns:
            Branch results concatenated in ``filters`` order. No sorting or
            de-duplication is applied.
        """
        run: FanOutResult[Q, T] = FanOutResult(name=self.name)
        self.last_run = run

        for branch_filter in filters:
            start = time.perf_counter()
            try:
                records = list(await self.branch_fn(branch_filter))
                error = None
            except Exception as e:
                records = []
                error = f"{type(e).__name__}: {e}"
                logger.error(
                    "fanout.branch_failed",
                    fanout=self.name,
                    filter=_describe(branch_filter),
                    error=error,
                )
            run.branches.append(
                BranchResult(
                    filter=branch_filter,
                    records=records,
                    elapsed_ms=(time.perf_counter() - start) * 1000,
                    error=error,
                )
            )

        logger.info(
            "fanout.done",
            fanout=self.name,
            branches=len(run.branches),
            failed=run.branches_failed,
            records=sum(len(b.records) for b in run.branches),
        )
        return run.records


def _describe(value: Any) -> Any:
    describe = getattr(value, "describe", None)
    return describe() if callable(describe) else value
