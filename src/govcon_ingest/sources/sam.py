"""SAM.gov contract opportunities source.

API documentation: https://open.gsa.gov/api/get-opportunities-public-api/

One GET per call, no pagination: the ``limit`` parameter bounds the single
page the API returns. Dates are sent as ``MM/dd/yyyy``.
"""
from __future__ import annotations

from datetime import date, timedelta
from functools import partial
from typing import Any

import structlog

from ..config import OpportunitySourceConfig
from ..models.page import Page, PageInfo
from ..models.query import PageCursor, QueryFilter
from ..models.records import OpportunityRecord
from ..utils.normalize import blank_to_none, detect_sbir_phase, parse_date
from .base import BaseSource

logger = structlog.get_logger(__name__)

SAM_DATE_FORMAT = "%m/%d/%Y"
SOURCES_SOUGHT_PTYPE = "r"


class OpportunitySource(BaseSource):
    """SAM.gov opportunity search."""

    name = "sam"
    config: OpportunitySourceConfig

    def build_params(self, query: QueryFilter, today: date | None = None) -> dict[str, str]:
        """Query parameters for one search.

        The same filter and ``today`` always produce the same parameters in
        the same order. A ``keyword`` filter searches by title instead of
        procurement type and NAICS code.
        """
        today = today or date.today()
        date_from = query.date_from or today - timedelta(days=self.config.lookback_days)
        date_to = query.date_to or today

        params = {
            "api_key": self.config.api_key or "",
            "postedFrom": date_from.strftime(SAM_DATE_FORMAT),
            "postedTo": date_to.strftime(SAM_DATE_FORMAT),
            "limit": str(query.limit or self.config.limit),
        }
        if query.keyword:
            params["title"] = query.keyword
            return params

        params["ptype"] = query.procurement_type or self.config.ptype
        if query.naics_code:
            params["ncode"] = query.naics_code
        set_aside = blank_to_none(query.set_aside or self.config.set_aside)
        if set_aside:
            params["setaside"] = set_aside
        return params

    async def fetch_page(
        self, query: QueryFilter, cursor: PageCursor | None = None
    ) -> Page[OpportunityRecord]:
        """Fetch the single bounded page of opportunities for ``query``.

        ``cursor`` is accepted for a uniform adapter signature; SAM.gov
        results are never continued, so the page always reports no more.
        """
        params = self.build_params(query)
        requested = int(params["limit"])
        page, _ = await self._guarded(
            "fetch_page",
            partial(self._get_json, "", params),
            partial(self._parse_page, requested),
            partial(Page.empty, requested),
            **query.describe(),
        )
        return page

    async def fetch_opportunities(self, naics_code: str) -> list[OpportunityRecord]:
        page = await self.fetch_page(QueryFilter.for_naics(naics_code))
        return page.records

    async def fetch_with_params(self, naics_code: str, ptype: str, limit: int) -> list[OpportunityRecord]:
        """Search with an explicit procurement type and limit.

        Args:
            naics_code: NAICS code to filter on
            ptype: o=Original, k=Combined, p=Presolicitation, r=Sources Sought
            limit: Maximum results to return
        """
        query = QueryFilter(naics_code=naics_code, procurement_type=ptype, limit=limit)
        page = await self.fetch_page(query)
        return page.records

    async def fetch_sources_sought(self, naics_code: str) -> list[OpportunityRecord]:
        return await self.fetch_with_params(naics_code, SOURCES_SOUGHT_PTYPE, self.config.limit)

    async def fetch_sbir_opportunities(self, keyword: str) -> list[OpportunityRecord]:
        """Search notice titles for an SBIR/STTR keyword."""
        page = await self.fetch_page(QueryFilter.for_keyword(keyword))
        return page.records

    def _parse_page(self, requested: int, body: Any) -> Page[OpportunityRecord]:
        items = self._items(body, "opportunitiesData")
        if isinstance(body, dict) and "totalRecords" in body:
            logger.debug("sam.total_records", total=body.get("totalRecords"), returned=len(items))
        records = [r for r in (self._item_to_record(item) for item in items) if r is not None]
        return Page(records=records, info=PageInfo(requested=requested, has_more=False))

    def _item_to_record(self, item: dict[str, Any]) -> OpportunityRecord | None:
        notice_id = blank_to_none(item.get("noticeId"))
        if notice_id is None:
            logger.debug("sam.item_skipped", reason="missing noticeId")
            return None

        title = blank_to_none(item.get("title"))
        upper = (title or "").upper()
        return OpportunityRecord(
            source=self.name,
            record_id=notice_id,
            raw_data=item,
            notice_id=notice_id,
            title=title,
            solicitation_number=blank_to_none(item.get("solicitationNumber")),
            posted_date=parse_date(item.get("postedDate")),
            response_deadline=parse_date(item.get("responseDeadLine")),
            naics_code=blank_to_none(item.get("naicsCode")),
            notice_type=blank_to_none(item.get("type")),
            set_aside=blank_to_none(item.get("typeOfSetAside")),
            agency=blank_to_none(item.get("fullParentPathName")),
            url=blank_to_none(item.get("uiLink")),
            is_sbir="SBIR" in upper,
            is_sttr="STTR" in upper,
            sbir_phase=detect_sbir_phase(title),
        )


