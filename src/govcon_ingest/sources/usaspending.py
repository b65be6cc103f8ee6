"""USAspending.gov federal spending source.

API documentation: https://api.usaspending.gov/docs/endpoints

Award search is a POST with a JSON body and page-number pagination; the
recipient, agency budget and toptier agency endpoints are single GETs.
"""
from __future__ import annotations

from datetime import date, timedelta
from functools import partial
from typing import Any

import structlog

from ..config import SpendingSourceConfig
from ..models.page import Page, PageInfo
from ..models.query import PageCursor, QueryFilter
from ..models.records import SpendingAwardRecord
from ..pagination import PaginationDriver
from ..utils.normalize import blank_to_none, parse_date, parse_decimal
from .base import BaseSource

logger = structlog.get_logger(__name__)

SEARCH_PATH = "/search/spending_by_award/"
SPENDING_DATE_FORMAT = "%Y-%m-%d"

AWARD_FIELDS = [
    "Award ID",
    "Recipient Name",
    "recipient_id",
    "recipient_uei",
    "Start Date",
    "End Date",
    "Award Amount",
    "Total Outlays",
    "Description",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Contract Award Type",
    "Award Type",
    "Place of Performance City",
    "Place of Performance State",
    "Place of Performance Zip",
    "Place of Performance Country",
    "NAICS Code",
    "NAICS Description",
    "PSC Code",
    "PSC Description",
    "Parent Award ID",
    "Last Modified Date",
    "generated_internal_id",
]


def _code_and_description(value: Any) -> tuple[str | None, str | None]:
    # NAICS/PSC arrive either as {"code", "description"} or as a bare code
    if isinstance(value, dict):
        return blank_to_none(value.get("code")), blank_to_none(value.get("description"))
    return blank_to_none(value), None


class SpendingSource(BaseSource):
    """USAspending award search and reference lookups."""

    name = "usaspending"
    config: SpendingSourceConfig

    def build_search_request(
        self, query: QueryFilter, page: int = 1, today: date | None = None
    ) -> dict[str, Any]:
        """JSON body for ``spending_by_award``.

        Identical inputs always build an identical body.
        """
        today = today or date.today()
        start = query.date_from or today - timedelta(days=self.config.lookback_days)
        end = query.date_to or today

        filters: dict[str, Any] = {
            "award_type_codes": list(self.config.award_types),
            "time_period": [
                {
                    "start_date": start.strftime(SPENDING_DATE_FORMAT),
                    "end_date": end.strftime(SPENDING_DATE_FORMAT),
                }
            ],
        }
        if query.naics_code:
            filters["naics_codes"] = [query.naics_code]
        if query.agency:
            filters["agencies"] = [{"type": "awarding", "tier": "toptier", "name": query.agency}]

        return {
            "filters": filters,
            "fields": list(AWARD_FIELDS),
            "page": page,
            "limit": query.limit or self.config.page_size,
            "sort": "Award Amount",
            "order": "desc",
        }

    async def fetch_page(
        self, query: QueryFilter, cursor: PageCursor | None = None
    ) -> Page[SpendingAwardRecord]:
        """Fetch one page of award search results."""
        cursor = cursor or PageCursor(page_size=self.config.page_size)
        body = self.build_search_request(query.model_copy(update={"limit": cursor.page_size}), cursor.page_number)
        page, _ = await self._guarded(
            "fetch_page",
            partial(self._post_json, SEARCH_PATH, body),
            partial(self._parse_search, cursor.page_size),
            partial(Page.empty, cursor.page_size),
            page=cursor.page_number,
            **query.describe(),
        )
        return page

    async def fetch_all_awards(
        self, naics_code: str | None = None, agency: str | None = None
    ) -> list[SpendingAwardRecord]:
        """All awards for a NAICS code and/or agency, up to ``max_results``."""
        driver = PaginationDriver(self.config.max_results, self.config.page_size)
        awards = await driver.drive(self.fetch_page, QueryFilter(naics_code=naics_code, agency=agency))
        logger.info(
            "usaspending.awards_fetched",
            naics_code=naics_code,
            agency=agency,
            awards=len(awards),
            pages=driver.pages_requested,
        )
        return awards

    async def get_recipient(self, uei: str | None) -> dict[str, Any]:
        """Recipient profile by UEI; ``{}`` when blank, disabled or failed."""
        if blank_to_none(uei) is None:
            return self._skipped("get_recipient", "blank uei", {})
        result, _ = await self._guarded(
            "get_recipient",
            partial(self._get_json, f"/recipient/{uei.strip()}/"),
            self._as_object,
            lambda kind: {},
            uei=uei,
        )
        return result

    async def get_agency_budget(self, agency_code: str | None) -> dict[str, Any]:
        """Budgetary resources for a toptier agency code."""
        if blank_to_none(agency_code) is None:
            return self._skipped("get_agency_budget", "blank agency code", {})
        result, _ = await self._guarded(
            "get_agency_budget",
            partial(self._get_json, f"/agency/{agency_code.strip()}/budgetary_resources/"),
            self._as_object,
            lambda kind: {},
            agency_code=agency_code,
        )
        return result

    async def get_toptier_agencies(self) -> list[dict[str, Any]]:
        result, _ = await self._guarded(
            "get_toptier_agencies",
            partial(self._get_json, "/references/toptier_agencies/"),
            lambda body: self._items(body, "results"),
            lambda kind: [],
        )
        return result

    @staticmethod
    def _as_object(body: Any) -> dict[str, Any]:
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise TypeError(f"expected JSON object, got {type(body).__name__}")
        return body

    def _parse_search(self, requested: int, body: Any) -> Page[SpendingAwardRecord]:
        items = self._items(body, "results")
        metadata = (body or {}).get("page_metadata") or {}
        has_more = bool(metadata.get("hasNext", len(items) >= requested))
        records = [self._item_to_record(item) for item in items]
        return Page(records=records, info=PageInfo(requested=requested, has_more=has_more))

    def _item_to_record(self, item: dict[str, Any]) -> SpendingAwardRecord:
        naics_code, naics_description = _code_and_description(item.get("NAICS Code"))
        naics_description = blank_to_none(item.get("NAICS Description")) or naics_description
        psc_code, _ = _code_and_description(item.get("PSC Code"))
        award_id = blank_to_none(item.get("Award ID"))
        internal_id = blank_to_none(item.get("generated_internal_id"))
        return SpendingAwardRecord(
            source=self.name,
            record_id=award_id or internal_id or "",
            raw_data=item,
            award_id=award_id,
            internal_id=internal_id,
            recipient_name=blank_to_none(item.get("Recipient Name")),
            recipient_uei=blank_to_none(item.get("recipient_uei")),
            start_date=parse_date(item.get("Start Date")),
            end_date=parse_date(item.get("End Date")),
            award_amount=parse_decimal(item.get("Award Amount")),
            total_outlays=parse_decimal(item.get("Total Outlays")),
            description=blank_to_none(item.get("Description")),
            awarding_agency=blank_to_none(item.get("Awarding Agency")),
            awarding_sub_agency=blank_to_none(item.get("Awarding Sub Agency")),
            contract_award_type=blank_to_none(item.get("Contract Award Type") or item.get("Award Type")),
            naics_code=naics_code,
            naics_description=naics_description,
            psc_code=psc_code,
            pop_city=blank_to_none(item.get("Place of Performance City")),
            pop_state=blank_to_none(item.get("Place of Performance State")),
            pop_zip=blank_to_none(item.get("Place of Performance Zip")),
            pop_country=blank_to_none(item.get("Place of Performance Country")),
        )
