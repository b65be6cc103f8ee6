"""SBIR.gov awards and solicitations source.

API documentation: https://www.sbir.gov/api

Responses are bare JSON arrays, not wrapper objects. Awards are paged with
``rows``/``start`` offsets; the API has no keyword search, so
``search_by_keyword`` filters fetched awards client-side.
"""
from __future__ import annotations

from datetime import date
from functools import partial
from typing import Any

import structlog

from ..config import AwardSourceConfig
from ..models.page import Page, PageInfo
from ..models.query import PageCursor, QueryFilter
from ..models.records import AwardRecord, SolicitationRecord
from ..pagination import PaginationDriver
from ..utils.normalize import (
    blank_to_none,
    normalize_phase,
    parse_date,
    parse_decimal,
    parse_flag,
    parse_int,
)
from .base import BaseSource

logger = structlog.get_logger(__name__)


class AwardSource(BaseSource):
    """SBIR/STTR awards and open solicitations from SBIR.gov."""

    name = "sbir"
    config: AwardSourceConfig

    def build_award_params(self, query: QueryFilter, cursor: PageCursor) -> dict[str, str]:
        params = {}
        if query.agency:
            params["agency"] = query.agency
        if query.year is not None:
            params["year"] = str(query.year)
        if query.firm:
            params["firm"] = query.firm
        params["rows"] = str(cursor.page_size)
        params["start"] = str(cursor.offset)
        return params

    async def fetch_page(
        self, query: QueryFilter, cursor: PageCursor | None = None
    ) -> Page[AwardRecord]:
        """Fetch one ``rows``/``start`` page of awards."""
        cursor = cursor or PageCursor(page_size=self.config.page_size)
        params = self.build_award_params(query, cursor)
        page, _ = await self._guarded(
            "fetch_page",
            partial(self._get_json, "/awards", params),
            partial(self._parse_awards, cursor.page_size),
            partial(Page.empty, cursor.page_size),
            offset=cursor.offset,
            **query.describe(),
        )
        return page

    async def fetch_awards(self, agency: str | None = None, year: int | None = None) -> list[AwardRecord]:
        """All awards for an agency/year, up to ``max_results``."""
        driver = PaginationDriver(self.config.max_results, self.config.page_size)
        awards = await driver.drive(self.fetch_page, QueryFilter(agency=agency, year=year))
        logger.info(
            "sbir.awards_fetched",
            agency=agency,
            year=year,
            awards=len(awards),
            pages=driver.pages_requested,
        )
        return awards

    async def search_by_firm(self, firm: str) -> list[AwardRecord]:
        """Single page of awards for a company name."""
        if blank_to_none(firm) is None:
            return self._skipped("search_by_firm", "blank firm", [])
        rows = self.config.page_size
        page, _ = await self._guarded(
            "search_by_firm",
            partial(self._get_json, "/awards", {"firm": firm.strip(), "rows": str(rows)}),
            partial(self._parse_awards, rows),
            partial(Page.empty, rows),
            firm=firm.strip(),
        )
        return page.records

    async def search_by_keyword(self, keyword: str, agency: str | None = None) -> list[AwardRecord]:
        """Awards whose title, abstract or research keywords mention ``keyword``."""
        if blank_to_none(keyword) is None:
            return self._skipped("search_by_keyword", "blank keyword", [])
        awards = await self.fetch_awards(agency)
        return [a for a in awards if a.matches_keyword(keyword.strip())]

    async def fetch_open_solicitations(self) -> list[SolicitationRecord]:
        solicitations, _ = await self._guarded(
            "fetch_open_solicitations",
            partial(self._get_json, "/solicitations", {"open": "1"}),
            self._parse_solicitations,
            lambda kind: [],
        )
        return solicitations

    def _parse_awards(self, requested: int, body: Any) -> Page[AwardRecord]:
        items = self._items(body)
        records = [self._item_to_award(item) for item in items]
        has_more = len(items) >= requested > 0
        return Page(records=records, info=PageInfo(requested=requested, has_more=has_more))

    def _item_to_award(self, item: dict[str, Any]) -> AwardRecord:
        tracking = blank_to_none(item.get("agency_tracking_number"))
        contract = blank_to_none(item.get("contract"))
        firm = blank_to_none(item.get("firm"))
        title = blank_to_none(item.get("award_title"))
        return AwardRecord(
            source=self.name,
            record_id=tracking or contract or f"{firm}:{title}",
            raw_data=item,
            agency_tracking_number=tracking,
            firm=firm,
            award_title=title,
            agency=blank_to_none(item.get("agency")),
            branch=blank_to_none(item.get("branch")),
            phase=normalize_phase(item.get("phase")),
            program=blank_to_none(item.get("program")),
            contract=contract,
            solicitation_number=blank_to_none(item.get("solicitation_number")),
            topic_code=blank_to_none(item.get("topic_code")),
            award_year=parse_int(item.get("award_year")),
            award_amount=parse_decimal(item.get("award_amount")),
            proposal_award_date=parse_date(item.get("proposal_award_date")),
            contract_end_date=parse_date(item.get("contract_end_date")),
            uei=blank_to_none(item.get("uei")),
            city=blank_to_none(item.get("city")),
            state=blank_to_none(item.get("state")),
            zip=blank_to_none(item.get("zip")),
            research_keywords=blank_to_none(item.get("research_area_keywords")),
            abstract=blank_to_none(item.get("abstract")),
            award_link=blank_to_none(item.get("award_link")),
            hubzone_owned=parse_flag(item.get("hubzone_owned")),
            women_owned=parse_flag(item.get("women_owned")),
            number_employees=parse_int(item.get("number_employees")),
        )

    def _parse_solicitations(self, body: Any) -> list[SolicitationRecord]:
        return [self._item_to_solicitation(item) for item in self._items(body)]

    def _item_to_solicitation(self, item: dict[str, Any]) -> SolicitationRecord:
        number = blank_to_none(item.get("solicitation_number"))
        title = blank_to_none(item.get("solicitation_title"))
        topics = item.get("solicitation_topics")
        return SolicitationRecord(
            source=self.name,
            record_id=number or title or "",
            raw_data=item,
            solicitation_number=number,
            title=title,
            agency=blank_to_none(item.get("agency")),
            branch=blank_to_none(item.get("branch")),
            program=blank_to_none(item.get("program")),
            phase=normalize_phase(item.get("phase")),
            year=parse_int(item.get("solicitation_year")),
            open_date=parse_date(item.get("open_date")),
            close_date=parse_date(item.get("close_date")),
            status=blank_to_none(item.get("current_status")),
            topic_count=len(topics) if isinstance(topics, list) else 0,
            url=blank_to_none(item.get("solicitation_agency_url")),
        )


def recent_award_years(today: date | None = None) -> tuple[int, int]:
    """Current and previous calendar year."""
    year = (today or date.today()).year
    return year, year - 1
