"""Tests for the SAM.gov opportunity source."""
from __future__ import annotations

from datetime import date

import httpx
import pytest

from govcon_ingest.config import OpportunitySourceConfig
from govcon_ingest.models import OutcomeKind, QueryFilter
from govcon_ingest.sources import OpportunitySource

SAM_RESPONSE = {
    "totalRecords": 2,
    "opportunitiesData": [
        {
            "noticeId": "abc123",
            "title": "SBIR Phase II: Autonomous Sensing",
            "solicitationNumber": "W911-24-R-0001",
            "postedDate": "2024-03-01",
            "responseDeadLine": "2024-04-01T17:00:00-04:00",
            "naicsCode": "541715",
            "type": "Combined Synopsis/Solicitation",
            "typeOfSetAside": "SBA",
            "fullParentPathName": "DEPT OF DEFENSE.DEPT OF THE ARMY",
            "uiLink": "https://sam.gov/opp/abc123/view",
        },
        {"noticeId": "def456", "title": "Janitorial services", "naicsCode": "561720"},
        {"title": "no id, skipped"},
    ],
}


def ok(payload=SAM_RESPONSE):
    return lambda request: httpx.Response(200, json=payload)


@pytest.fixture
def config():
    return OpportunitySourceConfig(api_key="test-key", lookback_days=30, limit=25)


class TestBuildParams:
    def test_naics_params(self, config, limiter):
        """NAICS queries send ptype, ncode, dates and limit."""
        source = OpportunitySource(config, limiter=limiter)
        params = source.build_params(QueryFilter.for_naics("541511"), today=date(2024, 3, 31))

        assert params == {
            "api_key": "test-key",
            "postedFrom": "03/01/2024",
            "postedTo": "03/31/2024",
            "limit": "25",
            "ptype": "o",
            "ncode": "541511",
        }

    def test_set_aside_from_config(self, limiter):
        """The configured set-aside is sent as typeOfSetAside."""
        source = OpportunitySource(OpportunitySourceConfig(api_key="k", set_aside="SBA"), limiter=limiter)
        params = source.build_params(QueryFilter.for_naics("541511"), today=date(2024, 1, 31))
        assert params["setaside"] == "SBA"

    def test_blank_set_aside_omitted(self, limiter):
        source = OpportunitySource(OpportunitySourceConfig(api_key="k", set_aside="  "), limiter=limiter)
        params = source.build_params(QueryFilter.for_naics("541511"), today=date(2024, 1, 31))
        assert "setaside" not in params

    def test_keyword_variant_uses_title(self, config, limiter):
        """Keyword queries send title instead of ncode."""
        source = OpportunitySource(config, limiter=limiter)
        params = source.build_params(QueryFilter.for_keyword("STTR"), today=date(2024, 3, 31))

        assert params["title"] == "STTR"
        assert "ptype" not in params
        assert "ncode" not in params

    def test_explicit_date_range(self, config, limiter):
        """An explicit date range overrides the lookback window."""
        source = OpportunitySource(config, limiter=limiter)
        query = QueryFilter(naics_code="1", date_from=date(2023, 12, 1), date_to=date(2023, 12, 31))
        params = source.build_params(query, today=date(2024, 3, 31))

        assert params["postedFrom"] == "12/01/2023"
        assert params["postedTo"] == "12/31/2023"

    def test_identical_filters_encode_identically(self, config, limiter):
        """Equal filters produce identical query strings."""
        source = OpportunitySource(config, limiter=limiter)
        today = date(2024, 3, 31)
        first = source.build_params(QueryFilter.for_naics("541511", set_aside="8A"), today)
        second = source.build_params(QueryFilter.for_naics("541511", set_aside="8A"), today)

        assert str(httpx.QueryParams(first)) == str(httpx.QueryParams(second))


class TestFetch:
    @pytest.mark.asyncio
    async def test_parses_opportunities(self, config, limiter, mock_client):
        """Notices are parsed into opportunity records."""
        client, transport = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client)

        records = await source.fetch_opportunities("541715")

        assert transport.calls == 1
        assert transport.params()["ncode"] == "541715"
        assert [r.notice_id for r in records] == ["abc123", "def456"]
        first = records[0]
        assert first.is_sbir and not first.is_sttr
        assert first.sbir_phase == "II"
        assert first.posted_date == date(2024, 3, 1)
        assert first.response_deadline == date(2024, 4, 1)
        assert first.agency == "DEPT OF DEFENSE.DEPT OF THE ARMY"
        assert first.raw_data["uiLink"] == "https://sam.gov/opp/abc123/view"

    @pytest.mark.asyncio
    async def test_sources_sought_uses_ptype_r(self, config, limiter, mock_client):
        client, transport = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client)

        await source.fetch_sources_sought("541511")

        assert transport.params()["ptype"] == "r"

    @pytest.mark.asyncio
    async def test_fetch_with_params(self, config, limiter, mock_client):
        client, transport = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client)

        await source.fetch_with_params("541511", "k", 5)

        assert transport.params()["ptype"] == "k"
        assert transport.params()["limit"] == "5"

    @pytest.mark.asyncio
    async def test_sbir_keyword_search(self, config, limiter, mock_client):
        """SBIR search runs one title query per keyword."""
        client, transport = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client)

        await source.fetch_sbir_opportunities("SBIR")

        assert transport.params()["title"] == "SBIR"

    @pytest.mark.asyncio
    async def test_page_never_has_more(self, config, limiter, mock_client):
        """SAM.gov pages never report more results."""
        client, _ = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client)

        page = await source.fetch_page(QueryFilter.for_naics("541715"))

        assert not page.info.has_more
        assert page.info.requested == 25

    @pytest.mark.asyncio
    async def test_empty_body_is_no_match(self, config, limiter, mock_client, outcomes):
        """An empty body is reported as no_match."""
        client, _ = mock_client(lambda request: httpx.Response(200, content=b""))
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        assert await source.fetch_opportunities("541511") == []
        assert outcomes[0].kind is OutcomeKind.NO_MATCH


class TestFailureContainment:
    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self, config, limiter, mock_client, outcomes):
        """A 4xx/5xx status returns an empty list."""
        client, _ = mock_client(lambda request: httpx.Response(429, json={"error": "throttled"}))
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        page = await source.fetch_page(QueryFilter.for_naics("541511"))

        assert page.records == []
        assert page.info.outcome is OutcomeKind.TRANSPORT_ERROR
        assert outcomes[0].kind is OutcomeKind.TRANSPORT_ERROR
        assert "429" in outcomes[0].detail

    @pytest.mark.asyncio
    async def test_connection_error_returns_empty(self, config, limiter, mock_client, outcomes):
        """A connection failure returns an empty list."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = mock_client(refuse)
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        assert await source.fetch_opportunities("541511") == []
        assert outcomes[0].kind is OutcomeKind.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self, config, limiter, mock_client, outcomes):
        """Malformed JSON is reported as a parse error."""
        client, _ = mock_client(lambda request: httpx.Response(200, content=b"<html>maintenance</html>"))
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        assert await source.fetch_opportunities("541511") == []
        assert outcomes[0].kind is OutcomeKind.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_wrong_shape_is_parse_error(self, config, limiter, mock_client, outcomes):
        client, _ = mock_client(ok({"opportunitiesData": "not a list"}))
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        assert await source.fetch_opportunities("541511") == []
        assert outcomes[0].kind is OutcomeKind.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_disabled_makes_no_calls(self, limiter, mock_client, outcomes):
        """A disabled source makes no request."""
        client, transport = mock_client(ok())
        config = OpportunitySourceConfig(api_key="k", enabled=False)
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=outcomes.append)

        assert await source.fetch_opportunities("541511") == []
        assert await source.fetch_sbir_opportunities("SBIR") == []
        assert transport.calls == 0
        assert limiter.last_call_at is None
        assert [o.kind for o in outcomes] == [OutcomeKind.DISABLED, OutcomeKind.DISABLED]

    @pytest.mark.asyncio
    async def test_raising_hook_does_not_break_fetch(self, config, limiter, mock_client):
        """An outcome hook that raises is ignored."""
        def broken_hook(outcome):
            raise RuntimeError("hook bug")

        client, _ = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client, on_outcome=broken_hook)

        records = await source.fetch_opportunities("541715")
        assert len(records) == 2

    @pytest.mark.asyncio
    async def test_every_request_goes_through_limiter(self, config, mock_client, fake_clock):
        """Each request acquires the limiter first."""
        from govcon_ingest.net import RateLimitConfig, RateLimiter

        limiter = RateLimiter(RateLimitConfig(min_interval=2.0), clock=fake_clock, sleep=fake_clock.sleep)
        client, transport = mock_client(ok())
        source = OpportunitySource(config, limiter=limiter, client=client)

        for code in ("1", "2", "3"):
            await source.fetch_opportunities(code)

        assert transport.calls == 3
        assert fake_clock.sleeps == [2.0, 2.0]


class TestClientOwnership:
    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, config, limiter, mock_client):
        """A client passed in is not closed by the adapter."""
        client, _ = mock_client(ok())
        async with OpportunitySource(config, limiter=limiter, client=client):
            pass
        assert not client.is_closed

    @pytest.mark.asyncio
    async def test_default_limiter_from_config(self, config):
        """Without an injected limiter the config spacing is used."""
        source = OpportunitySource(config.model_copy(update={"rate_limit_ms": 750}))
        assert source.limiter.min_interval == 0.75
        await source.close()
