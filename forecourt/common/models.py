"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class CanonicalStation:
    """One retailer feed record after normalisation.

    Prices are pounds per litre. Coordinates of ``0.0`` mean the location is
    unknown.
    """

    id: str
    retailer: str
    brand: str
    name: str
    address: str
    postcode: str
    town: str
    latitude: float
    longitude: float
    petrol_price: float | None
    diesel_price: float | None
    super_price: float | None
    last_updated: str
    is_open: bool = True
    facilities: tuple[str, ...] = ()
    distance_km: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AuthoritativeSite:
    site_no: int | str
    alt_site_no: int | str
    latitude: float
    longitude: float
    site_name: str
    street1: str
    town: str
    post_code: str
    brand: str
    hours24: bool = False
    hgv_access: bool = False
    petrol: bool = False
    diesel: bool = False
    bands: str = ""

    @property
    def facilities(self) -> tuple[str, ...]:
        labels = []
        if self.hours24:
            labels.append("24 Hours")
        if self.hgv_access:
            labels.append("HGV Access")
        return tuple(labels)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReconciledStation:
    """A directory site, priced either from a live feed or from averages."""

    id: str
    site_no: int | str
    alt_site_no: int | str
    brand: str
    name: str
    address: str
    town: str
    postcode: str
    latitude: float
    longitude: float
    petrol_price: float | None
    diesel_price: float | None
    super_price: float | None
    has_live_pricing: bool
    last_updated: str
    hours24: bool = False
    hgv_access: bool = False
    petrol: bool = False
    diesel: bool = False
    bands: str = ""
    facilities: tuple[str, ...] = ()
    source_station_id: str | None = None
    distance_km: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NationalAverages:
    """Average pump prices, formatted to three decimal places."""

    petrol: str
    diesel: str


@dataclass(frozen=True)
class ReferenceLocation:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class MatchResult:
    matched: list[ReconciledStation]
    unmatched: list[CanonicalStation]
    live_count: int
    strategy_counts: dict[str, int] = field(default_factory=dict)
