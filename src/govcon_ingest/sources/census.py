"""U.S. Census Bureau geocoder source.

API documentation: https://geocoding.geo.census.gov/geocoder/Geocoding_Services_API.html

Free, no key. Every request asks for ``layers=all`` so the response carries
state, county and tract FIPS codes alongside the coordinates.
"""
from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import Any

import structlog

from ..config import GeocoderSourceConfig
from ..models.page import Page, PageInfo
from ..models.query import GeocodeQuery, PageCursor
from ..models.records import GeocodeResult
from ..utils.normalize import blank_to_none, parse_decimal
from .base import BaseSource

logger = structlog.get_logger(__name__)

ONELINE_PATH = "/geographies/onelineaddress"
COMPONENTS_PATH = "/geographies/address"
COORDINATES_PATH = "/geographies/coordinates"


def _first(geographies: dict[str, Any], layer: str) -> dict[str, Any]:
    entries = geographies.get(layer) or []
    if entries and isinstance(entries[0], dict):
        return entries[0]
    return {}


class GeocoderSource(BaseSource):
    """Census geocoder: single-line, component and reverse lookups."""

    name = "census"
    config: GeocoderSourceConfig

    def _common_params(self) -> dict[str, str]:
        return {
            "benchmark": self.config.benchmark,
            "vintage": self.config.vintage,
            "layers": "all",
            "format": "json",
        }

    def build_oneline_params(self, address: str) -> dict[str, str]:
        return {"address": address.strip(), **self._common_params()}

    def build_component_params(
        self,
        street: str | None = None,
        city: str | None = None,
        state: str | None = None,
        zip: str | None = None,
    ) -> dict[str, str]:
        """Component-mode parameters; blank components are left out entirely."""
        params = {}
        for key, value in (("street", street), ("city", city), ("state", state), ("zip", zip)):
            value = blank_to_none(value)
            if value is not None:
                params[key] = value
        params.update(self._common_params())
        return params

    async def geocode_address(self, address: str | None) -> GeocodeResult | None:
        """Geocode a full single-line address.

        Returns:
            The best match, or None when the address is blank, nothing
            matched, or the request failed
        """
        if blank_to_none(address) is None:
            return self._skipped("geocode_address", "blank address", None)
        result, _ = await self._guarded(
            "geocode_address",
            partial(self._get_json, ONELINE_PATH, self.build_oneline_params(address)),
            self._parse_match,
            lambda kind: None,
            address=address,
        )
        return result

    async def geocode_components(
        self,
        street: str | None = None,
        city: str | None = None,
        state: str | None = None,
        zip: str | None = None,
    ) -> GeocodeResult | None:
        """Geocode from separate address parts.

        At least one of street, city or state must be non-blank; zip alone
        is not enough for the component endpoint.
        """
        if not any(blank_to_none(v) for v in (street, city, state)):
            return self._skipped("geocode_components", "insufficient address components", None)
        params = self.build_component_params(street, city, state, zip)
        result, _ = await self._guarded(
            "geocode_components",
            partial(self._get_json, COMPONENTS_PATH, params),
            self._parse_match,
            lambda kind: None,
            city=city,
            state=state,
        )
        return result

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult | None:
        """Look up the geographies containing a point.

        When the response has no address match, the result is built from the
        top-level geographies and carries the input coordinates.
        """
        params = {"x": str(longitude), "y": str(latitude), **self._common_params()}
        result, _ = await self._guarded(
            "reverse_geocode",
            partial(self._get_json, COORDINATES_PATH, params),
            partial(self._parse_reverse, latitude, longitude),
            lambda kind: None,
            latitude=latitude,
            longitude=longitude,
        )
        return result

    async def fetch_page(
        self, query: GeocodeQuery, cursor: PageCursor | None = None
    ) -> Page[GeocodeResult]:
        """Dispatch a ``GeocodeQuery`` to the matching lookup; at most one record."""
        if query.mode == "coordinates":
            result = await self.reverse_geocode(query.latitude, query.longitude)
        elif query.mode == "oneline":
            result = await self.geocode_address(query.address)
        else:
            result = await self.geocode_components(query.street, query.city, query.state, query.zip)
        records = [result] if result is not None else []
        return Page(records=records, info=PageInfo(requested=1, has_more=False))

    def _result(self, body: Any) -> dict[str, Any]:
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise TypeError(f"expected JSON object, got {type(body).__name__}")
        return body.get("result") or {}

    def _parse_match(self, body: Any) -> GeocodeResult | None:
        matches = self._result(body).get("addressMatches") or []
        if not matches:
            return None
        if len(matches) > 1:
            logger.debug("census.multiple_matches", count=len(matches))
        return self._match_to_result(matches[0])

    def _parse_reverse(self, latitude: float, longitude: float, body: Any) -> GeocodeResult | None:
        result = self._result(body)
        matches = result.get("addressMatches") or []
        if matches:
            return self._match_to_result(matches[0])
        geographies = result.get("geographies") or {}
        if not geographies:
            return None
        return self._build(
            record_id=f"{latitude},{longitude}",
            raw=result,
            geographies=geographies,
            latitude=Decimal(str(latitude)),
            longitude=Decimal(str(longitude)),
        )

    def _match_to_result(self, match: dict[str, Any]) -> GeocodeResult:
        coords = match.get("coordinates") or {}
        components = match.get("addressComponents") or {}
        matched = blank_to_none(match.get("matchedAddress"))
        latitude = parse_decimal(coords.get("y"))
        longitude = parse_decimal(coords.get("x"))
        return self._build(
            record_id=matched or f"{latitude},{longitude}",
            raw=match,
            geographies=match.get("geographies") or {},
            latitude=latitude,
            longitude=longitude,
            matched_address=matched,
            city=blank_to_none(components.get("city")),
            state=blank_to_none(components.get("state")),
            zip=blank_to_none(components.get("zip")),
        )

    def _build(
        self,
        record_id: str,
        raw: dict[str, Any],
        geographies: dict[str, Any],
        **fields: Any,
    ) -> GeocodeResult:
        state_fips = blank_to_none(_first(geographies, "States").get("STATE"))
        county = _first(geographies, "Counties")
        county_fips = None
        if county.get("STATE") and county.get("COUNTY"):
            county_fips = f"{county['STATE']}{county['COUNTY']}"
        return GeocodeResult(
            source=self.name,
            record_id=record_id,
            raw_data=raw,
            state_fips=state_fips,
            county_fips=county_fips,
            census_tract=blank_to_none(_first(geographies, "Census Tracts").get("TRACT")),
            **fields,
        )
