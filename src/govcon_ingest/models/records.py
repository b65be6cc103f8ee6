"""Normalized records handed to storage and downstream jobs."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CONTRACT_TYPE_MARKERS = ("contract", "idv", "purchase order", "delivery order", "bpa")


class NormalizedRecord(BaseModel):
    """Common shape of every record this layer emits."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="Which source returned this record")
    record_id: str = Field(description="ID within the source")
    raw_data: dict[str, Any] = Field(default_factory=dict, description="Original response data")
    accessed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class OpportunityRecord(NormalizedRecord):
    """Contract opportunity notice."""

    notice_id: str
    title: str | None = None
    solicitation_number: str | None = None
    posted_date: date | None = None
    response_deadline: date | None = None
    naics_code: str | None = None
    notice_type: str | None = None
    set_aside: str | None = None
    agency: str | None = None
    url: str | None = None
    is_sbir: bool = False
    is_sttr: bool = False
    sbir_phase: str | None = None


class AwardRecord(NormalizedRecord):
    """SBIR/STTR award."""

    agency_tracking_number: str | None = None
    firm: str | None = None
    award_title: str | None = None
    agency: str | None = None
    branch: str | None = None
    phase: str | None = None
    program: str | None = None
    contract: str | None = None
    solicitation_number: str | None = None
    topic_code: str | None = None
    award_year: int | None = None
    award_amount: Decimal | None = None
    proposal_award_date: date | None = None
    contract_end_date: date | None = None
    uei: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    research_keywords: str | None = None
    abstract: str | None = None
    award_link: str | None = None
    hubzone_owned: bool | None = None
    women_owned: bool | None = None
    number_employees: int | None = None

    @property
    def is_sbir(self) -> bool:
        return (self.program or "").upper() == "SBIR"

    @property
    def is_sttr(self) -> bool:
        return (self.program or "").upper() == "STTR"

    def matches_keyword(self, keyword: str) -> bool:
        needle = keyword.lower()
        haystacks = (self.award_title, self.abstract, self.research_keywords)
        return any(needle in (h or "").lower() for h in haystacks)


class SolicitationRecord(NormalizedRecord):
    """Open SBIR/STTR solicitation."""

    solicitation_number: str | None = None
    title: str | None = None
    agency: str | None = None
    branch: str | None = None
    program: str | None = None
    phase: str | None = None
    year: int | None = None
    open_date: date | None = None
    close_date: date | None = None
    status: str | None = None
    topic_count: int = 0
    url: str | None = None


class SpendingAwardRecord(NormalizedRecord):
    """Prime award from the federal spending search."""

    award_id: str | None = None
    internal_id: str | None = None
    recipient_name: str | None = None
    recipient_uei: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    award_amount: Decimal | None = None
    total_outlays: Decimal | None = None
    description: str | None = None
    awarding_agency: str | None = None
    awarding_sub_agency: str | None = None
    contract_award_type: str | None = None
    naics_code: str | None = None
    naics_description: str | None = None
    psc_code: str | None = None
    pop_city: str | None = None
    pop_state: str | None = None
    pop_zip: str | None = None
    pop_country: str | None = None

    @property
    def unique_key(self) -> str | None:
        return self.award_id or self.internal_id

    @property
    def is_contract(self) -> bool:
        kind = (self.contract_award_type or "").lower()
        return any(marker in kind for marker in CONTRACT_TYPE_MARKERS)

    @property
    def safe_award_amount(self) -> Decimal:
        return self.award_amount if self.award_amount is not None else Decimal("0")

    @property
    def url(self) -> str | None:
        if not self.internal_id:
            return None
        return f"https://www.usaspending.gov/award/{self.internal_id}"


class GeocodeResult(NormalizedRecord):
    """Best address match with coordinates and FIPS codes."""

    matched_address: str | None = None
    latitude: Decimal | None = None
    longitude: Decimal | None = None
    state_fips: str | None = None
    county_fips: str | None = None
    census_tract: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.latitude is not None and self.longitude is not None
