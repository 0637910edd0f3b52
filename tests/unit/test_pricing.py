from datetime import date

import pytest

from forecourt.common.errors import ConfigError, PolicyError
from forecourt.common.models import CanonicalStation
from forecourt.pipeline.pricing import PricingPolicy, derive_prices, is_supermarket_brand

POLICY_CFG = {
    "diesel_standard": 130.6,
    "diesel_supermarket": 133.6,
    "petrol_discount_standard": 3,
    "petrol_discount_supermarket": 1,
    "valid_from": "2024-01-22",
    "valid_to": "2024-01-28",
}


def _station(brand, petrol=None, diesel=None) -> CanonicalStation:
    return CanonicalStation(
        id=f"{brand}-1",
        retailer=brand,
        brand=brand,
        name="",
        address="",
        postcode="",
        town="",
        latitude=0.0,
        longitude=0.0,
        petrol_price=petrol,
        diesel_price=diesel,
        super_price=None,
        last_updated="2024-01-23T00:00:00.000+00:00",
    )


@pytest.fixture
def policy() -> PricingPolicy:
    return PricingPolicy.from_config(POLICY_CFG)


def test_supermarket_diesel_ignores_pump_price(policy):
    prices = derive_prices(_station("ASDA", diesel=1.499), policy)
    assert prices.is_supermarket is True
    assert prices.member_diesel_ppl == 133.6
    assert prices.pump_diesel_ppl == 149.9
    assert prices.diesel_saving_ppl == 16.3


def test_standard_brand_diesel_and_petrol(policy):
    prices = derive_prices(_station("Shell", petrol=1.459, diesel=1.523), policy)
    assert prices.is_supermarket is False
    assert prices.member_diesel_ppl == 130.6
    assert prices.diesel_saving_ppl == 21.7
    assert prices.petrol_discount_ppl == 3
    assert prices.member_petrol_ppl == 142.9


def test_supermarket_petrol_discount(policy):
    prices = derive_prices(_station("TESCO", petrol=1.459), policy)
    assert prices.member_petrol_ppl == 144.9
    assert prices.pump_diesel_ppl is None
    assert prices.diesel_saving_ppl is None
    # Member diesel is fixed even without a pump price.
    assert prices.member_diesel_ppl == 133.6


def test_missing_petrol_price_has_no_member_petrol(policy):
    assert derive_prices(_station("BP"), policy).member_petrol_ppl is None


@pytest.mark.parametrize("brand", ["ASDA", "Tesco", "Sainsbury's", "SAINSBURYS", "morrisons"])
def test_supermarket_brands(brand):
    assert is_supermarket_brand(brand) is True


@pytest.mark.parametrize("brand", ["Shell", "BP", "ASDA Express Petrol", "", None])
def test_non_supermarket_brands(brand):
    assert is_supermarket_brand(brand) is False


def test_policy_dates_and_window(policy):
    assert policy.valid_from == date(2024, 1, 22)
    assert policy.is_active(date(2024, 1, 22))
    assert policy.is_active(date(2024, 1, 28))
    assert not policy.is_active(date(2024, 1, 29))


def test_policy_rejects_negative_values():
    with pytest.raises(PolicyError, match="must not be negative"):
        PricingPolicy.from_config({**POLICY_CFG, "diesel_standard": -1})


@pytest.mark.parametrize("value", ["abc", "130.6", True, None])
def test_policy_rejects_non_numeric_values(value):
    with pytest.raises(PolicyError, match="must be a number"):
        PricingPolicy.from_config({**POLICY_CFG, "petrol_discount_standard": value})


def test_policy_rejects_missing_keys():
    cfg = dict(POLICY_CFG)
    del cfg["diesel_supermarket"]
    with pytest.raises(PolicyError, match="diesel_supermarket"):
        PricingPolicy.from_config(cfg)


def test_policy_rejects_bad_dates():
    with pytest.raises(PolicyError, match="Invalid pricing policy date"):
        PricingPolicy.from_config({**POLICY_CFG, "valid_from": "next monday"})
    with pytest.raises(PolicyError, match="before it starts"):
        PricingPolicy.from_config({**POLICY_CFG, "valid_to": "2024-01-01"})


def test_policy_error_is_a_config_error():
    assert issubclass(PolicyError, ConfigError)
    assert PolicyError.error_code == "POLICY_ERROR"
