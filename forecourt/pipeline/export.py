"""Station view CSV export."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from forecourt.common.fs import write_csv
from forecourt.common.models import CanonicalStation, ReconciledStation
from forecourt.pipeline.aggregate import display_distance
from forecourt.pipeline.pricing import PricingPolicy, derive_prices

STATION_HEADERS = [
    "id",
    "site_no",
    "brand",
    "name",
    "address",
    "town",
    "postcode",
    "latitude",
    "longitude",
    "distance_km",
    "distance_display",
    "has_live_pricing",
    "petrol_price",
    "diesel_price",
    "super_price",
    "pump_petrol_ppl",
    "member_petrol_ppl",
    "pump_diesel_ppl",
    "member_diesel_ppl",
    "diesel_saving_ppl",
    "is_supermarket",
    "facilities",
    "bands",
    "last_updated",
]

UNMATCHED_HEADERS = [
    "id",
    "retailer",
    "brand",
    "name",
    "address",
    "town",
    "postcode",
    "latitude",
    "longitude",
    "petrol_price",
    "diesel_price",
    "super_price",
    "is_open",
    "last_updated",
]


def _serialize(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, tuple):
        return ";".join(str(item) for item in value)
    if isinstance(value, float):
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return value


def station_row(station: ReconciledStation | CanonicalStation, policy: PricingPolicy) -> dict:
    prices = derive_prices(station, policy)
    row = station.to_dict()
    row.update(
        {
            "site_no": getattr(station, "site_no", None),
            "has_live_pricing": getattr(station, "has_live_pricing", True),
            "distance_display": display_distance(station.distance_km),
            "pump_petrol_ppl": prices.pump_petrol_ppl,
            "member_petrol_ppl": prices.member_petrol_ppl,
            "pump_diesel_ppl": prices.pump_diesel_ppl,
            "member_diesel_ppl": prices.member_diesel_ppl,
            "diesel_saving_ppl": prices.diesel_saving_ppl,
            "is_supermarket": prices.is_supermarket,
            "facilities": tuple(station.facilities),
        }
    )
    return {key: _serialize(row.get(key)) for key in STATION_HEADERS}


def write_station_csv(path: Path, stations: Iterable, policy: PricingPolicy) -> Path:
    write_csv(path, STATION_HEADERS, (station_row(station, policy) for station in stations))
    return path


def write_unmatched_csv(path: Path, stations: Iterable[CanonicalStation]) -> Path:
    ordered = sorted(stations, key=lambda station: station.id)
    rows = [{key: _serialize(value) for key, value in station.to_dict().items()} for station in ordered]
    write_csv(path, UNMATCHED_HEADERS, rows)
    return path
