"""Member price derivation from the fixed weekly pricing policy.

Pump prices travel through the pipeline in pounds per litre. Member prices
are quoted in pence per litre, and the conversion happens once, here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Protocol

from forecourt.common.constants import SUPERMARKET_BRANDS
from forecourt.common.errors import PolicyError
from forecourt.common.keys import normalise_key
from forecourt.common.time_utils import parse_iso_date
from forecourt.common.values import pounds_to_pence, safe_float, subtract_pence

POLICY_KEYS = (
    "diesel_standard",
    "diesel_supermarket",
    "petrol_discount_standard",
    "petrol_discount_supermarket",
)


class PricedStation(Protocol):
    brand: str
    petrol_price: float | None
    diesel_price: float | None


@dataclass(frozen=True)
class PricingPolicy:
    """One week's schedule. All amounts are pence per litre."""

    diesel_standard: float
    diesel_supermarket: float
    petrol_discount_standard: float
    petrol_discount_supermarket: float
    valid_from: date
    valid_to: date

    def __post_init__(self) -> None:
        for key in POLICY_KEYS:
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or safe_float(value) is None:
                raise PolicyError(f"Pricing policy {key} must be a number, got {value!r}")
            if value < 0:
                raise PolicyError(f"Pricing policy {key} must not be negative, got {value}")
        if self.valid_to < self.valid_from:
            raise PolicyError(
                f"Pricing policy window ends ({self.valid_to}) before it starts ({self.valid_from})"
            )

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "PricingPolicy":
        missing = [key for key in (*POLICY_KEYS, "valid_from", "valid_to") if key not in cfg]
        if missing:
            raise PolicyError(f"Missing keys in pricing policy: {', '.join(sorted(missing))}")
        try:
            valid_from = parse_iso_date(cfg["valid_from"])
            valid_to = parse_iso_date(cfg["valid_to"])
        except ValueError as exc:
            raise PolicyError(f"Invalid pricing policy date: {exc}") from exc
        return cls(
            **{key: cfg[key] for key in POLICY_KEYS},
            valid_from=valid_from,
            valid_to=valid_to,
        )

    def is_active(self, on: date) -> bool:
        return self.valid_from <= on <= self.valid_to


@dataclass(frozen=True)
class MemberPrices:
    is_supermarket: bool
    member_diesel_ppl: float
    petrol_discount_ppl: float
    member_petrol_ppl: float | None
    pump_petrol_ppl: float | None
    pump_diesel_ppl: float | None
    diesel_saving_ppl: float | None


def is_supermarket_brand(brand: str | None) -> bool:
    return normalise_key(brand) in SUPERMARKET_BRANDS


def derive_prices(station: PricedStation, policy: PricingPolicy) -> MemberPrices:
    supermarket = is_supermarket_brand(station.brand)
    member_diesel = policy.diesel_supermarket if supermarket else policy.diesel_standard
    petrol_discount = policy.petrol_discount_supermarket if supermarket else policy.petrol_discount_standard

    pump_petrol = pounds_to_pence(station.petrol_price) if station.petrol_price else None
    pump_diesel = pounds_to_pence(station.diesel_price) if station.diesel_price else None

    return MemberPrices(
        is_supermarket=supermarket,
        member_diesel_ppl=member_diesel,
        petrol_discount_ppl=petrol_discount,
        member_petrol_ppl=subtract_pence(pump_petrol, petrol_discount) if pump_petrol is not None else None,
        pump_petrol_ppl=pump_petrol,
        pump_diesel_ppl=pump_diesel,
        diesel_saving_ppl=subtract_pence(pump_diesel, member_diesel) if pump_diesel is not None else None,
    )
