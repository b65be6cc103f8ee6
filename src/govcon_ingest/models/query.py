"""Query filters and pagination cursors."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class QueryFilter(BaseModel):
    """One logical fetch against one source.

    Only the fields a source understands are sent; the rest are ignored.
    Instances are frozen so a filter can be handed to several branches
    without any of them changing it.
    """

    model_config = ConfigDict(frozen=True)

    naics_code: str | None = Field(default=None)
    agency: str | None = Field(default=None)
    keyword: str | None = Field(default=None, description="Title keyword, e.g. SBIR or STTR")
    firm: str | None = Field(default=None)
    year: int | None = Field(default=None)
    date_from: date | None = Field(default=None, description="Defaults to today minus lookback")
    date_to: date | None = Field(default=None, description="Defaults to today")
    procurement_type: str | None = Field(default=None, description="SAM.gov ptype code")
    set_aside: str | None = Field(default=None)
    limit: int | None = Field(default=None, ge=1, description="Per-call result limit override")

    @classmethod
    def for_naics(cls, naics_code: str, **kwargs) -> QueryFilter:
        return cls(naics_code=naics_code, **kwargs)

    @classmethod
    def for_agency(cls, agency: str, **kwargs) -> QueryFilter:
        return cls(agency=agency, **kwargs)

    @classmethod
    def for_keyword(cls, keyword: str, **kwargs) -> QueryFilter:
        return cls(keyword=keyword, **kwargs)

    def describe(self) -> dict[str, str]:
        """Compact non-empty view for log context."""
        return {k: str(v) for k, v in self.model_dump(exclude_none=True).items()}


class GeocodeQuery(BaseModel):
    """Address, address components, or coordinates to geocode."""

    model_config = ConfigDict(frozen=True)

    address: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def mode(self) -> str:
        if self.latitude is not None and self.longitude is not None:
            return "coordinates"
        if self.address and self.address.strip():
            return "oneline"
        return "components"


class PageCursor(BaseModel):
    """Offset-based position within a multi-page fetch."""

    model_config = ConfigDict(frozen=True)

    offset: int = Field(default=0, ge=0)
    page_size: int = Field(default=100, ge=1)

    @property
    def page_number(self) -> int:
        """1-based page number for sources paginated by page."""
        return self.offset // self.page_size + 1

    def advance(self) -> PageCursor:
        """Cursor for the next page, moved by the size that was requested."""
        return PageCursor(offset=self.offset + self.page_size, page_size=self.page_size)
