"""Ingestion entry points.

Each job fans one logical request out over the configured NAICS codes,
agencies or keywords and hands back the concatenated records. Persisting
them is the caller's business.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import httpx
import structlog

from .config import IngestConfig
from .fanout import FanOutOrchestrator
from .models.outcome import OutcomeHook
from .models.query import QueryFilter
from .models.records import (
    AwardRecord,
    GeocodeResult,
    OpportunityRecord,
    SolicitationRecord,
    SpendingAwardRecord,
)
from .sources import AwardSource, GeocoderSource, OpportunitySource, SpendingSource
from .sources.sbir import recent_award_years
from .utils.normalize import blank_to_none

logger = structlog.get_logger(__name__)

US_COUNTRY_NAMES = {"US", "USA", "UNITED STATES"}


@dataclass
class SourceSet:
    """The four adapters, each with its own rate limiter."""
    config: IngestConfig
    opportunities: OpportunitySource
    geocoder: GeocoderSource
    awards: AwardSource
    spending: SpendingSource
    _clients: list[httpx.AsyncClient] = field(default_factory=list, repr=False)

    def __iter__(self):
        return iter((self.opportunities, self.geocoder, self.awards, self.spending))

    async def close(self) -> None:
        for source in self:
            await source.close()
        for client in self._clients:
            await client.aclose()
        self._clients.clear()

    async def __aenter__(self) -> SourceSet:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False


def build_sources(
    config: IngestConfig | None = None,
    on_outcome: OutcomeHook | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SourceSet:
    """Construct all four adapters from configuration.

    Args:
        config: Ingestion settings; defaults when omitted
        on_outcome: Outcome hook attached to every adapter
        transport: Shared HTTP transport (tests pass an ``httpx.MockTransport``)
    """
    config = config or IngestConfig()
    clients: list[httpx.AsyncClient] = []

    def client_for(section) -> httpx.AsyncClient | None:
        if transport is None:
            return None
        client = httpx.AsyncClient(
            transport=transport,
            timeout=section.timeout,
            headers={"User-Agent": section.user_agent, "Accept": "application/json"},
        )
        clients.append(client)
        return client

    return SourceSet(
        config=config,
        opportunities=OpportunitySource(
            config.opportunities, client=client_for(config.opportunities), on_outcome=on_outcome
        ),
        geocoder=GeocoderSource(config.geocoder, client=client_for(config.geocoder), on_outcome=on_outcome),
        awards=AwardSource(config.awards, client=client_for(config.awards), on_outcome=on_outcome),
        spending=SpendingSource(config.spending, client=client_for(config.spending), on_outcome=on_outcome),
        _clients=clients,
    )


def build_address_line(city: str | None, state: str | None, zip: str | None) -> str:
    """Single-line "City, ST 12345" form of the parts that are present."""
    city, state, zip = blank_to_none(city), blank_to_none(state), blank_to_none(zip)
    tail = " ".join(part for part in (state, zip) if part)
    return ", ".join(part for part in (city, tail) if part)


class IngestionJobs:
    """Fan-out ingestion jobs over a ``SourceSet``."""

    def __init__(self, sources: SourceSet) -> None:
        self.sources = sources
        self.config = sources.config

    async def _opportunity_branch(self, query: QueryFilter) -> list[OpportunityRecord]:
        page = await self.sources.opportunities.fetch_page(query)
        return page.records

    async def opportunities_for_all_naics(self) -> list[OpportunityRecord]:
        return await self.opportunities_for_ptype(self.config.opportunities.ptype)

    async def opportunities_for_ptype(self, ptype: str) -> list[OpportunityRecord]:
        """Opportunities of one procurement type across every configured NAICS code."""
        filters = [
            QueryFilter.for_naics(code, procurement_type=ptype)
            for code in self.config.opportunities.naics_codes
        ]
        if not filters:
            logger.warning("jobs.no_naics_codes", job="opportunities", ptype=ptype)
            return []
        fanout = FanOutOrchestrator(f"sam.naics.{ptype}", self._opportunity_branch)
        return await fanout.fetch_all(filters)

    async def sources_sought_for_all_naics(self) -> list[OpportunityRecord]:
        return await self.opportunities_for_ptype("r")

    async def sbir_sttr_opportunities(self) -> list[OpportunityRecord]:
        """SBIR/STTR notices found by title keyword, one branch per keyword."""
        if not self.config.opportunities.sbir_enabled:
            logger.info("jobs.sbir_search_disabled")
            return []
        filters = [QueryFilter.for_keyword(k) for k in self.config.opportunities.keywords]
        fanout = FanOutOrchestrator("sam.sbir_keywords", self._opportunity_branch)
        return await fanout.fetch_all(filters)

    async def _award_branch(self, query: QueryFilter) -> list[AwardRecord]:
        return await self.sources.awards.fetch_awards(query.agency, query.year)

    async def sbir_awards_for_all_agencies(self, year: int | None = None) -> list[AwardRecord]:
        filters = [QueryFilter.for_agency(a, year=year) for a in self.config.awards.agencies]
        fanout = FanOutOrchestrator("sbir.agencies", self._award_branch)
        return await fanout.fetch_all(filters)

    async def recent_sbir_awards(self, today: date | None = None) -> list[AwardRecord]:
        """Awards for every configured agency, current year then previous year."""
        awards: list[AwardRecord] = []
        for year in recent_award_years(today):
            awards.extend(await self.sbir_awards_for_all_agencies(year))
        return awards

    async def open_solicitations(self) -> list[SolicitationRecord]:
        return await self.sources.awards.fetch_open_solicitations()

    async def _spending_branch(self, query: QueryFilter) -> list[SpendingAwardRecord]:
        return await self.sources.spending.fetch_all_awards(query.naics_code, query.agency)

    async def spending_awards_by_naics(self) -> list[SpendingAwardRecord]:
        filters = [QueryFilter.for_naics(code) for code in self.config.spending.naics_codes]
        fanout = FanOutOrchestrator("usaspending.naics", self._spending_branch)
        return await fanout.fetch_all(filters)

    async def spending_awards_by_agency(self) -> list[SpendingAwardRecord]:
        filters = [QueryFilter.for_agency(a) for a in self.config.spending.agencies]
        fanout = FanOutOrchestrator("usaspending.agencies", self._spending_branch)
        return await fanout.fetch_all(filters)

    async def geocode_place(
        self,
        city: str | None,
        state: str | None,
        zip: str | None,
        street: str | None = None,
        country: str | None = None,
    ) -> GeocodeResult | None:
        """Geocode a place of performance.

        Tries the component endpoint first and falls back to a single-line
        "City, ST 12345" lookup when that finds nothing usable. Places
        outside the U.S. and places with no address data are skipped.

        Returns:
            A valid result (both coordinates set) or None
        """
        if country and country.strip().upper() not in US_COUNTRY_NAMES:
            logger.debug("jobs.geocode_skipped", reason="non_us", country=country)
            return None
        if not any(blank_to_none(v) for v in (street, city, state, zip)):
            logger.debug("jobs.geocode_skipped", reason="no_address")
            return None

        geocoder = self.sources.geocoder
        result = await geocoder.geocode_components(street, city, state, zip)
        if result is None or not result.is_valid:
            line = build_address_line(city, state, zip)
            street_line = blank_to_none(street)
            if street_line:
                line = f"{street_line}, {line}" if line else street_line
            if line:
                result = await geocoder.geocode_address(line)

        if result is not None and result.is_valid:
            return result
        return None
