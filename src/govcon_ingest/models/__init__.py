"""Pydantic data models."""

from .outcome import FetchOutcome, OutcomeHook, OutcomeKind
from .page import Page, PageInfo
from .query import GeocodeQuery, PageCursor, QueryFilter
from .records import (
    AwardRecord,
    GeocodeResult,
    NormalizedRecord,
    OpportunityRecord,
    SolicitationRecord,
    SpendingAwardRecord,
)

__all__ = [
    "QueryFilter",
    "GeocodeQuery",
    "PageCursor",
    "Page",
    "PageInfo",
    "FetchOutcome",
    "OutcomeHook",
    "OutcomeKind",
    "NormalizedRecord",
    "OpportunityRecord",
    "AwardRecord",
    "SolicitationRecord",
    "SpendingAwardRecord",
    "GeocodeResult",
]
