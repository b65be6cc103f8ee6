"""Tests for the USAspending source."""
from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from govcon_ingest.config import SpendingSourceConfig
from govcon_ingest.models import OutcomeKind, PageCursor, QueryFilter
from govcon_ingest.sources import SpendingSource
from govcon_ingest.sources.usaspending import AWARD_FIELDS


def result_row(i: int, **overrides) -> dict:
    row = {
        "Award ID": f"W56KGU-24-C-{i:04d}",
        "generated_internal_id": f"CONT_AWD_{i}",
        "Recipient Name": f"Recipient {i}",
        "recipient_uei": "UEI000000001",
        "Start Date": "2024-01-15",
        "End Date": "2025-01-14",
        "Award Amount": 1250000.5,
        "Total Outlays": None,
        "Awarding Agency": "Department of Defense",
        "Awarding Sub Agency": "Department of the Army",
        "Contract Award Type": "Definitive Contract",
        "NAICS Code": {"code": "541512", "description": "Computer Systems Design Services"},
        "PSC Code": {"code": "D399", "description": "IT and Telecom"},
        "Place of Performance State": "VA",
    }
    row.update(overrides)
    return row


def search_handler(page_size: int, total_pages: int | None = None):
    """Serves full pages; ``hasNext`` false after ``total_pages`` when given."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        page = body["page"]
        results = [result_row((page - 1) * page_size + i) for i in range(page_size)]
        has_next = total_pages is None or page < total_pages
        return httpx.Response(200, json={"results": results, "page_metadata": {"page": page, "hasNext": has_next}})
    return handler


@pytest.fixture
def config():
    return SpendingSourceConfig(base_url="https://spending.test/api/v2", page_size=100, max_results=1000)


class TestBuildSearchRequest:
    def test_body_shape(self, config, limiter):
        """The search body carries filters, fields, sort and paging."""
        source = SpendingSource(config, limiter=limiter)
        body = source.build_search_request(
            QueryFilter(naics_code="541512", agency="Department of Defense"), page=2, today=date(2024, 12, 31)
        )

        assert body == {
            "filters": {
                "award_type_codes": ["A", "B", "C", "D"],
                "time_period": [{"start_date": "2024-01-01", "end_date": "2024-12-31"}],
                "naics_codes": ["541512"],
                "agencies": [{"type": "awarding", "tier": "toptier", "name": "Department of Defense"}],
            },
            "fields": AWARD_FIELDS,
            "page": 2,
            "limit": 100,
            "sort": "Award Amount",
            "order": "desc",
        }

    def test_optional_filters_omitted(self, config, limiter):
        """Unset NAICS and agency filters are left out of the body."""
        source = SpendingSource(config, limiter=limiter)
        body = source.build_search_request(QueryFilter(), today=date(2024, 12, 31))

        assert "naics_codes" not in body["filters"]
        assert "agencies" not in body["filters"]

    def test_identical_filters_serialize_identically(self, config, limiter):
        """Equal filters produce byte-identical bodies."""
        source = SpendingSource(config, limiter=limiter)
        today = date(2024, 6, 30)
        first = source.build_search_request(QueryFilter.for_naics("541512"), 1, today)
        second = source.build_search_request(QueryFilter.for_naics("541512"), 1, today)

        assert json.dumps(first).encode() == json.dumps(second).encode()


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_posts_and_parses(self, config, limiter, mock_client):
        """Award rows are parsed into spending records."""
        client, transport = mock_client(search_handler(2, total_pages=1))
        source = SpendingSource(config, limiter=limiter, client=client)

        page = await source.fetch_page(QueryFilter.for_naics("541512"), PageCursor(offset=0, page_size=2))

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v2/search/spending_by_award/"
        assert transport.body()["limit"] == 2
        assert transport.body()["page"] == 1
        record = page.records[0]
        assert record.award_id == "W56KGU-24-C-0000"
        assert record.naics_code == "541512"
        assert record.naics_description == "Computer Systems Design Services"
        assert record.psc_code == "D399"
        assert record.award_amount == Decimal("1250000.5")
        assert record.total_outlays is None
        assert record.start_date == date(2024, 1, 15)
        assert record.is_contract
        assert not page.info.has_more

    @pytest.mark.asyncio
    async def test_string_naics_code(self, config, limiter, mock_client):
        body = {"results": [result_row(1, **{"NAICS Code": "541330", "NAICS Description": "Engineering"})]}
        client, _ = mock_client(lambda request: httpx.Response(200, json=body))
        source = SpendingSource(config, limiter=limiter, client=client)

        page = await source.fetch_page(QueryFilter())

        assert page.records[0].naics_code == "541330"
        assert page.records[0].naics_description == "Engineering"

    @pytest.mark.asyncio
    async def test_cursor_maps_to_page_number(self, config, limiter, mock_client):
        """Offsets are sent as one-based page numbers."""
        client, transport = mock_client(search_handler(100))
        source = SpendingSource(config, limiter=limiter, client=client)

        await source.fetch_page(QueryFilter(), PageCursor(offset=300, page_size=100))

        assert transport.body()["page"] == 4


class TestFetchAllAwards:
    @pytest.mark.asyncio
    async def test_cap_truncates_to_max_results(self, limiter, mock_client):
        """A cap of 150 makes two calls and returns 150 awards."""
        client, transport = mock_client(search_handler(100))
        config = SpendingSourceConfig(page_size=100, max_results=150)
        source = SpendingSource(config, limiter=limiter, client=client)

        awards = await source.fetch_all_awards(naics_code="541512")

        assert transport.calls == 2
        assert len(awards) == 150
        assert [transport.body(i)["page"] for i in range(2)] == [1, 2]

    @pytest.mark.asyncio
    async def test_stops_when_has_next_false(self, config, limiter, mock_client):
        """hasNext=false ends the fetch."""
        client, transport = mock_client(search_handler(100, total_pages=3))
        source = SpendingSource(config, limiter=limiter, client=client)

        awards = await source.fetch_all_awards(agency="Department of Energy")

        assert transport.calls == 3
        assert len(awards) == 300
        assert transport.body()["filters"]["agencies"][0]["name"] == "Department of Energy"


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_recipient(self, config, limiter, mock_client):
        client, transport = mock_client(lambda request: httpx.Response(200, json={"name": "ACME", "uei": "UEI1"}))
        source = SpendingSource(config, limiter=limiter, client=client)

        recipient = await source.get_recipient("UEI1")

        assert transport.requests[0].url.path == "/api/v2/recipient/UEI1/"
        assert recipient["name"] == "ACME"

    @pytest.mark.asyncio
    async def test_get_agency_budget(self, config, limiter, mock_client):
        client, transport = mock_client(lambda request: httpx.Response(200, json={"agency_data_by_year": []}))
        source = SpendingSource(config, limiter=limiter, client=client)

        budget = await source.get_agency_budget("097")

        assert transport.requests[0].url.path == "/api/v2/agency/097/budgetary_resources/"
        assert budget == {"agency_data_by_year": []}

    @pytest.mark.asyncio
    async def test_get_toptier_agencies(self, config, limiter, mock_client):
        body = {"results": [{"agency_name": "Department of Defense", "toptier_code": "097"}]}
        client, transport = mock_client(lambda request: httpx.Response(200, json=body))
        source = SpendingSource(config, limiter=limiter, client=client)

        agencies = await source.get_toptier_agencies()

        assert transport.requests[0].url.path == "/api/v2/references/toptier_agencies/"
        assert agencies[0]["toptier_code"] == "097"

    @pytest.mark.asyncio
    async def test_failures_return_empty(self, config, limiter, mock_client, outcomes):
        """Lookup failures return empty defaults."""
        client, _ = mock_client(lambda request: httpx.Response(500))
        source = SpendingSource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        assert await source.get_recipient("UEI1") == {}
        assert await source.get_agency_budget("097") == {}
        assert await source.get_toptier_agencies() == []
        assert all(o.kind is OutcomeKind.TRANSPORT_ERROR for o in outcomes)

    @pytest.mark.asyncio
    async def test_blank_input_and_disabled(self, limiter, mock_client):
        """Blank identifiers and a disabled source make no calls."""
        client, transport = mock_client(lambda request: httpx.Response(200, json={}))
        source = SpendingSource(config=SpendingSourceConfig(enabled=False), limiter=limiter, client=client)

        assert await source.get_recipient("") == {}
        assert await source.get_agency_budget(None) == {}
        assert await source.get_toptier_agencies() == []
        assert await source.fetch_all_awards("541512") == []
        assert transport.calls == 0
