"""Convert one retailer's raw feed payload into canonical station records.

Retailer feeds share no schema. The record list is located by an ordered set
of named strategies, then each record goes through coordinate and price
extraction independently so one bad record never costs the rest of the feed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from forecourt.common.constants import RECORD_LIST_KEYS
from forecourt.common.models import CanonicalStation
from forecourt.common.time_utils import utc_timestamp_iso
from forecourt.common.values import first_present, pence_to_pounds, safe_float

logger = logging.getLogger("forecourt.pipeline.normalise")

ID_KEYS = ("id", "site_id", "store_id", "location_id", "number")
BRAND_KEYS = ("brand", "brand_name")
NAME_KEYS = ("name", "site_name", "store_name", "trading_name", "location_name")
ADDRESS_KEYS = ("address", "street", "street_address", "address_line_1")
POSTCODE_KEYS = ("postcode", "post_code", "postal_code", "zip")
TOWN_KEYS = ("town", "city", "locality")
UPDATED_KEYS = ("last_updated", "updated_at")
FACILITY_KEYS = ("facilities", "amenities", "services")

FUEL_TYPE_SLOTS = {
    "ULDS": "petrol",
    "Unleaded": "petrol",
    "ULSD": "diesel",
    "Diesel": "diesel",
    "SUL": "super",
    "Super Unleaded": "super",
}


@dataclass(frozen=True)
class RecordListStrategy:
    name: str
    extract: Callable[[Any], list | None]


@dataclass(frozen=True)
class NormaliseResult:
    retailer: str
    stations: list[CanonicalStation]
    skipped: int
    strategy: str | None


def _keyed(key: str) -> RecordListStrategy:
    def extract(payload: Any) -> list | None:
        if not isinstance(payload, Mapping):
            return None
        value = payload.get(key)
        if isinstance(value, list) and value:
            return value
        return None

    return RecordListStrategy(name=f"key:{key}", extract=extract)


def _bare_list(payload: Any) -> list | None:
    if isinstance(payload, list) and payload:
        return payload
    return None


def _first_list_value(payload: Any) -> list | None:
    if not isinstance(payload, Mapping):
        return None
    for value in payload.values():
        if isinstance(value, list) and value:
            return value
    return None


RECORD_LIST_STRATEGIES: tuple[RecordListStrategy, ...] = (
    *(_keyed(key) for key in RECORD_LIST_KEYS),
    RecordListStrategy(name="bare_list", extract=_bare_list),
    RecordListStrategy(name="first_list_value", extract=_first_list_value),
)


def discover_records(payload: Any) -> tuple[str | None, list]:
    for strategy in RECORD_LIST_STRATEGIES:
        records = strategy.extract(payload)
        if records:
            return strategy.name, records
    return None, []


def _mapping(value: Any) -> Mapping | None:
    if isinstance(value, Mapping) and value:
        return value
    return None


def _pair(lat_raw: Any, lon_raw: Any) -> tuple[float, float] | None:
    lat = safe_float(lat_raw)
    lon = safe_float(lon_raw)
    if lat is None or lon is None:
        return None
    return lat, lon


def _nested_location(record: Mapping) -> tuple[float, float] | None:
    location = _mapping(record.get("location"))
    if location is None:
        return None
    return _pair(
        first_present(location, ("latitude", "lat")),
        first_present(location, ("longitude", "lng", "lon")),
    )


def _flat_latitude_longitude(record: Mapping) -> tuple[float, float] | None:
    if not record.get("latitude") or not record.get("longitude"):
        return None
    return _pair(record["latitude"], record["longitude"])


def _flat_lat_lng(record: Mapping) -> tuple[float, float] | None:
    lon = first_present(record, ("lng", "lon", "long"))
    if not record.get("lat") or not lon:
        return None
    return _pair(record["lat"], lon)


def _geo(record: Mapping) -> tuple[float, float] | None:
    geo = _mapping(record.get("geo"))
    if geo is None:
        return None
    return _pair(geo.get("lat"), first_present(geo, ("lng", "lon")))


def _coords(record: Mapping) -> tuple[float, float] | None:
    coords = _mapping(record.get("coords"))
    if coords is None:
        return None
    return _pair(
        first_present(coords, ("latitude", "lat")),
        first_present(coords, ("longitude", "lng")),
    )


COORDINATE_SHAPES = (
    _nested_location,
    _flat_latitude_longitude,
    _flat_lat_lng,
    _geo,
    _coords,
)


def extract_coordinates(record: Mapping) -> tuple[float, float]:
    for shape in COORDINATE_SHAPES:
        found = shape(record)
        if found is not None:
            return found
    return 0.0, 0.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def extract_prices(record: Mapping) -> dict[str, float | None]:
    """Apply the price precedence table to one record.

    Returns pounds-per-litre values keyed ``petrol``/``diesel``/``super``.
    Later rules overwrite earlier ones except the ``SDV`` code, which only
    fills an empty diesel slot, and the flat-field cascade, which only runs
    when neither petrol nor diesel was found.
    """
    prices: dict[str, float | None] = {"petrol": None, "diesel": None, "super": None}

    coded = _mapping(record.get("prices"))
    if coded is not None:
        if _is_number(coded.get("E10")):
            prices["petrol"] = pence_to_pounds(coded["E10"])
        if _is_number(coded.get("E5")):
            prices["super"] = pence_to_pounds(coded["E5"])
        if _is_number(coded.get("B7")):
            prices["diesel"] = pence_to_pounds(coded["B7"])
        if _is_number(coded.get("SDV")) and not prices["diesel"]:
            prices["diesel"] = pence_to_pounds(coded["SDV"])
        # Human-readable aliases are already in pounds and win over codes.
        if coded.get("unleaded"):
            prices["petrol"] = safe_float(coded["unleaded"])
        if coded.get("diesel"):
            prices["diesel"] = safe_float(coded["diesel"])
        if coded.get("super_unleaded"):
            prices["super"] = safe_float(coded["super_unleaded"])

    services = record.get("fuel_type_services")
    if isinstance(services, list):
        for service in services:
            if not isinstance(service, Mapping):
                continue
            fuel_type = service.get("fuel_type")
            slot = FUEL_TYPE_SLOTS.get(fuel_type) if isinstance(fuel_type, str) else None
            if slot is not None:
                prices[slot] = pence_to_pounds(service.get("price"))

    fuel_prices = _mapping(record.get("fuelPrices"))
    if fuel_prices is not None:
        if fuel_prices.get("E10"):
            prices["petrol"] = pence_to_pounds(fuel_prices["E10"])
        if fuel_prices.get("B7"):
            prices["diesel"] = pence_to_pounds(fuel_prices["B7"])
        if fuel_prices.get("E5"):
            prices["super"] = pence_to_pounds(fuel_prices["E5"])

    if not prices["petrol"] and not prices["diesel"]:
        _apply_flat_cascade(record, prices)

    return {slot: (value if value else None) for slot, value in prices.items()}


def _apply_flat_cascade(record: Mapping, prices: dict[str, float | None]) -> None:
    if record.get("unleaded"):
        prices["petrol"] = pence_to_pounds(record["unleaded"])
    if record.get("diesel"):
        prices["diesel"] = pence_to_pounds(record["diesel"])
    if record.get("super_unleaded"):
        prices["super"] = pence_to_pounds(record["super_unleaded"])

    if record.get("unleaded_price"):
        prices["petrol"] = safe_float(record["unleaded_price"])
    if record.get("diesel_price"):
        prices["diesel"] = safe_float(record["diesel_price"])
    if record.get("super_unleaded_price"):
        prices["super"] = safe_float(record["super_unleaded_price"])

    if record.get("petrol"):
        prices["petrol"] = safe_float(record["petrol"])
    if record.get("petrol_price"):
        prices["petrol"] = safe_float(record["petrol_price"])

    nested = _mapping(record.get("fuel_prices"))
    if nested is not None:
        if nested.get("unleaded"):
            prices["petrol"] = safe_float(nested["unleaded"])
        if nested.get("diesel"):
            prices["diesel"] = safe_float(nested["diesel"])


def _text(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list)):
        return ""
    return str(value).strip()


def _facilities(record: Mapping) -> tuple[str, ...]:
    raw = first_present(record, FACILITY_KEYS)
    if not isinstance(raw, list):
        return ()
    return tuple(str(item) for item in raw if isinstance(item, (str, int, float)) and item != "")


def _station_from_record(retailer: str, record: Mapping, index: int, as_of: str) -> CanonicalStation | None:
    latitude, longitude = extract_coordinates(record)
    prices = extract_prices(record)
    if not any(prices.values()):
        return None

    source_id = first_present(record, ID_KEYS)
    return CanonicalStation(
        id=f"{retailer}-{source_id if source_id else index}",
        retailer=retailer,
        brand=_text(first_present(record, BRAND_KEYS)) or retailer,
        name=_text(first_present(record, NAME_KEYS)) or f"{retailer} Station",
        address=_text(first_present(record, ADDRESS_KEYS)),
        postcode=_text(first_present(record, POSTCODE_KEYS)),
        town=_text(first_present(record, TOWN_KEYS)),
        latitude=latitude,
        longitude=longitude,
        petrol_price=prices["petrol"],
        diesel_price=prices["diesel"],
        super_price=prices["super"],
        last_updated=_text(first_present(record, UPDATED_KEYS)) or as_of,
        is_open=record.get("is_open") is not False and record.get("status") != "closed",
        facilities=_facilities(record),
    )


def normalise_feed(retailer: str, payload: Any, *, as_of: str | None = None) -> NormaliseResult:
    as_of = as_of or utc_timestamp_iso()
    strategy, records = discover_records(payload)
    if strategy is None:
        logger.warning(
            "no record list found in feed",
            extra={"retailer": retailer, "event": "FEED_SHAPE_UNKNOWN", "status": "warn", "rows_in": 0},
        )
        return NormaliseResult(retailer=retailer, stations=[], skipped=0, strategy=None)

    stations: list[CanonicalStation] = []
    skipped = 0
    for index, record in enumerate(records):
        try:
            if not isinstance(record, Mapping):
                raise TypeError(f"record is {type(record).__name__}, not an object")
            station = _station_from_record(retailer, record, index, as_of)
        except Exception as exc:
            skipped += 1
            logger.warning(
                f"skipping record {index}: {exc}",
                extra={"retailer": retailer, "event": "RECORD_SKIPPED", "status": "warn"},
            )
            continue
        if station is not None:
            stations.append(station)

    logger.info(
        "feed normalised",
        extra={
            "retailer": retailer,
            "event": "FEED_NORMALISED",
            "status": "ok",
            "source": strategy,
            "rows_in": len(records),
            "rows_out": len(stations),
        },
    )
    return NormaliseResult(retailer=retailer, stations=stations, skipped=skipped, strategy=strategy)


def normalise(retailer: str, payload: Any, *, as_of: str | None = None) -> list[CanonicalStation]:
    return normalise_feed(retailer, payload, as_of=as_of).stations
