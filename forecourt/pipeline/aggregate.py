"""Averages, search filtering and distance ordering for the station view."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Sequence, TypeVar

from forecourt.common.geo import km_to_miles, spherical_distance_km
from forecourt.common.models import NationalAverages, ReferenceLocation
from forecourt.common.values import safe_float

DEFAULT_AVERAGES = NationalAverages(petrol="1.452", diesel="1.534")
SCOPE_MATCHED = "matched"
SCOPE_ALL = "all"

SEARCH_FIELDS = ("name", "brand", "address", "postcode", "town")

S = TypeVar("S")


def _mean(values: list[float], fallback: str) -> str:
    if not values:
        return fallback
    return f"{sum(values) / len(values):.3f}"


def national_averages(stations: Iterable, defaults: NationalAverages = DEFAULT_AVERAGES) -> NationalAverages:
    petrol: list[float] = []
    diesel: list[float] = []
    for station in stations:
        petrol_price = safe_float(station.petrol_price)
        if petrol_price:
            petrol.append(petrol_price)
        diesel_price = safe_float(station.diesel_price)
        if diesel_price:
            diesel.append(diesel_price)
    return NationalAverages(
        petrol=_mean(petrol, defaults.petrol),
        diesel=_mean(diesel, defaults.diesel),
    )


def averages_for_scope(
    matched: Sequence,
    all_stations: Sequence,
    scope: str = SCOPE_MATCHED,
    defaults: NationalAverages = DEFAULT_AVERAGES,
) -> NationalAverages:
    if scope == SCOPE_MATCHED:
        return national_averages(matched, defaults)
    if scope == SCOPE_ALL:
        return national_averages(all_stations, defaults)
    raise ValueError(f"Unknown average scope: {scope}")


def _matches_query(station, query: str) -> bool:
    lowered = query.lower()
    for field_name in SEARCH_FIELDS:
        value = getattr(station, field_name, None)
        if value and lowered in str(value).lower():
            return True
    site_no = getattr(station, "site_no", None)
    return bool(site_no) and query in str(site_no)


def filter_stations(stations: Iterable[S], query: str | None) -> list[S]:
    query = query or ""
    if not query:
        return list(stations)
    return [station for station in stations if _matches_query(station, query)]


def sort_by_distance(stations: Iterable[S], reference: ReferenceLocation) -> list[S]:
    with_distance = [
        replace(
            station,
            distance_km=spherical_distance_km(
                reference.latitude,
                reference.longitude,
                station.latitude,
                station.longitude,
            ),
        )
        for station in stations
    ]
    return sorted(with_distance, key=lambda station: station.distance_km)


def filter_and_sort(stations: Iterable[S], query: str | None, reference: ReferenceLocation) -> list[S]:
    return sort_by_distance(filter_stations(stations, query), reference)


def nearest_station(stations: Iterable[S], reference: ReferenceLocation) -> S | None:
    located = [station for station in stations if station.latitude and station.longitude]
    ordered = sort_by_distance(located, reference)
    return ordered[0] if ordered else None


def display_distance(distance_km: float | None) -> str:
    if distance_km is None:
        return ""
    return f"{km_to_miles(distance_km):.1f} miles"
