"""Government-contracting data source adapters."""

from .base import BaseSource
from .census import GeocoderSource
from .sam import OpportunitySource
from .sbir import AwardSource
from .usaspending import SpendingSource

__all__ = [
    "BaseSource",
    "OpportunitySource",
    "GeocoderSource",
    "AwardSource",
    "SpendingSource",
]
