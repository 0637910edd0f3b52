from forecourt.common.models import AuthoritativeSite, CanonicalStation, NationalAverages
from forecourt.pipeline.matching import MatchSettings, SiteIndex, find_site, match_stations
from forecourt.pipeline.pricing import PricingPolicy, derive_prices

AS_OF = "2026-02-17T09:00:00.000+00:00"
AVERAGES = NationalAverages(petrol="1.452", diesel="1.534")
POLICY = PricingPolicy.from_config(
    {
        "diesel_standard": 130.6,
        "diesel_supermarket": 133.6,
        "petrol_discount_standard": 3,
        "petrol_discount_supermarket": 1,
        "valid_from": "2024-01-22",
        "valid_to": "2024-01-28",
    }
)


def _station(**overrides) -> CanonicalStation:
    values = {
        "id": "Tesco-1",
        "retailer": "Tesco",
        "brand": "TESCO",
        "name": "Tesco Victoria",
        "address": "",
        "postcode": "",
        "town": "",
        "latitude": 0.0,
        "longitude": 0.0,
        "petrol_price": 1.459,
        "diesel_price": None,
        "super_price": None,
        "last_updated": AS_OF,
    }
    values.update(overrides)
    return CanonicalStation(**values)


def _site(site_no, **overrides) -> AuthoritativeSite:
    values = {
        "site_no": site_no,
        "alt_site_no": 0,
        "latitude": 0.0,
        "longitude": 0.0,
        "site_name": f"SITE {site_no}",
        "street1": "",
        "town": "",
        "post_code": "",
        "brand": "",
        "petrol": True,
        "diesel": True,
    }
    values.update(overrides)
    return AuthoritativeSite(**values)


def test_postcode_match_produces_live_entry_with_member_price():
    live = [_station(postcode="SW1A1AA")]
    directory = [_site(42, brand="TESCO", post_code="SW1A1AA", diesel=False)]

    result = match_stations(live, directory, AVERAGES, as_of=AS_OF)

    assert len(result.matched) == 1
    entry = result.matched[0]
    assert entry.site_no == 42
    assert entry.has_live_pricing is True
    assert entry.id == "matched-42-Tesco-1"
    assert entry.source_station_id == "Tesco-1"
    assert derive_prices(entry, POLICY).member_petrol_ppl == 144.9
    assert result.unmatched == []
    assert result.strategy_counts == {"postcode": 1, "proximity": 0, "brand_town": 0}


def test_unclaimed_site_is_synthesised_from_averages():
    directory = [_site(7, brand="BP", street1="HIGH ST", town="READING")]

    result = match_stations([], directory, AVERAGES, as_of=AS_OF)

    entry = result.matched[0]
    assert entry.id == "directory-7"
    assert entry.has_live_pricing is False
    assert entry.petrol_price == 1.452
    assert entry.diesel_price == 1.534
    assert entry.super_price is None
    assert entry.last_updated == AS_OF
    assert entry.address == "HIGH ST"
    assert result.live_count == 0


def test_synthesised_entries_without_averages_have_no_prices():
    result = match_stations([], [_site(7)], None, as_of=AS_OF)
    assert result.matched[0].petrol_price is None
    assert result.matched[0].diesel_price is None


def test_sites_selling_neither_fuel_are_not_synthesised():
    directory = [_site(1, petrol=False, diesel=False), _site(2, petrol=False, diesel=True)]
    result = match_stations([], directory, AVERAGES, as_of=AS_OF)
    assert [entry.site_no for entry in result.matched] == [2]


def test_postcode_normalisation_and_brand_preference():
    directory = [
        _site(1, brand="BP", post_code="SW1A 1AA"),
        _site(2, brand="TESCO", post_code="sw1a-1aa"),
    ]
    index = SiteIndex.build(directory)
    strategy, site = find_site(_station(postcode="sw1a1aa"), index, directory, MatchSettings())
    assert strategy == "postcode"
    assert site.site_no == 2


def test_postcode_without_brand_match_takes_first_candidate():
    directory = [_site(1, brand="BP", post_code="SW1A1AA"), _site(2, brand="ESSO", post_code="SW1A1AA")]
    index = SiteIndex.build(directory)
    _strategy, site = find_site(_station(postcode="SW1A1AA"), index, directory, MatchSettings())
    assert site.site_no == 1


def test_postcode_wins_over_nearer_site():
    directory = [
        _site(1, brand="TESCO", latitude=51.5, longitude=-0.1),
        _site(2, brand="TESCO", post_code="SW1A1AA", latitude=52.0, longitude=-1.0),
    ]
    index = SiteIndex.build(directory)
    station = _station(postcode="SW1A1AA", latitude=51.5, longitude=-0.1)
    strategy, site = find_site(station, index, directory, MatchSettings())
    assert (strategy, site.site_no) == ("postcode", 2)


def test_proximity_requires_brand_outside_exact_radius():
    directory = [
        _site(1, brand="BP", latitude=51.505, longitude=-0.1),
        _site(2, brand="SHELL", latitude=51.508, longitude=-0.1),
    ]
    index = SiteIndex.build(directory)
    station = _station(brand="Shell", latitude=51.5, longitude=-0.1)
    strategy, site = find_site(station, index, directory, MatchSettings())
    assert (strategy, site.site_no) == ("proximity", 2)


def test_proximity_accepts_any_brand_inside_exact_radius():
    directory = [_site(1, brand="BP", latitude=51.5005, longitude=-0.1)]
    index = SiteIndex.build(directory)
    station = _station(brand="Shell", latitude=51.5, longitude=-0.1)
    strategy, site = find_site(station, index, directory, MatchSettings())
    assert (strategy, site.site_no) == ("proximity", 1)


def test_proximity_keeps_nearest_accepted_site():
    directory = [
        _site(1, brand="SHELL", latitude=51.508, longitude=-0.1),
        _site(2, brand="SHELL EXPRESS", latitude=51.503, longitude=-0.1),
        _site(3, brand="SHELL", latitude=51.52, longitude=-0.1),
    ]
    index = SiteIndex.build(directory)
    station = _station(brand="Shell", latitude=51.5, longitude=-0.1)
    _strategy, site = find_site(station, index, directory, MatchSettings())
    assert site.site_no == 2


def test_proximity_radius_is_configurable():
    directory = [_site(1, brand="SHELL", latitude=51.508, longitude=-0.1)]
    index = SiteIndex.build(directory)
    station = _station(brand="Shell", latitude=51.5, longitude=-0.1)
    settings = MatchSettings(brand_radius_deg=0.005)
    assert find_site(station, index, directory, settings) == (None, None)


def test_zero_coordinates_skip_proximity_and_fall_back_to_brand_town():
    directory = [
        _site(1, brand="ESSO", latitude=0.0, longitude=0.0, town="ELSEWHERE"),
        _site(2, brand="ESSO", town="LEEDS"),
    ]
    index = SiteIndex.build(directory)
    station = _station(brand="Esso", town="Leeds")
    strategy, site = find_site(station, index, directory, MatchSettings())
    assert (strategy, site.site_no) == ("brand_town", 2)


def test_station_matching_nothing_is_unmatched():
    live = [_station(id="Jet-9", brand="JET", town="YORK")]
    result = match_stations(live, [_site(1, brand="BP", town="YORK")], AVERAGES, as_of=AS_OF)
    assert [station.id for station in result.unmatched] == ["Jet-9"]
    assert [entry.id for entry in result.matched] == ["directory-1"]


def _duplicate_claim_inputs():
    live = [
        _station(id="Tesco-1", postcode="SW1A1AA", town="LONDON"),
        _station(id="Tesco-2", postcode="SW1A1AA", town="LONDON", petrol_price=1.479),
    ]
    directory = [_site(42, brand="TESCO", post_code="SW1A1AA", town="LONDON")]
    return live, directory


def test_duplicate_claims_allowed_by_default():
    live, directory = _duplicate_claim_inputs()
    result = match_stations(live, directory, AVERAGES, as_of=AS_OF)
    assert [entry.id for entry in result.matched] == ["matched-42-Tesco-1", "matched-42-Tesco-2"]
    assert result.unmatched == []
    assert result.live_count == 2


def test_first_claim_wins_when_duplicates_disallowed():
    live, directory = _duplicate_claim_inputs()
    settings = MatchSettings(allow_duplicate_claims=False)
    result = match_stations(live, directory, AVERAGES, settings=settings, as_of=AS_OF)
    assert [entry.id for entry in result.matched] == ["matched-42-Tesco-1"]
    assert [station.id for station in result.unmatched] == ["Tesco-2"]


def test_live_count_equals_entries_with_live_pricing():
    live = [_station(postcode="SW1A1AA"), _station(id="Tesco-2", brand="JET")]
    directory = [_site(42, brand="TESCO", post_code="SW1A1AA"), _site(7), _site(8, petrol=False, diesel=False)]
    result = match_stations(live, directory, AVERAGES, as_of=AS_OF)
    assert result.live_count == sum(1 for entry in result.matched if entry.has_live_pricing)
    assert result.live_count <= len(result.matched)
    assert len(result.matched) + len(result.unmatched) >= len(live)


def test_matching_is_deterministic():
    live, directory = _duplicate_claim_inputs()
    first = match_stations(live, directory, AVERAGES, as_of=AS_OF)
    second = match_stations(live, directory, AVERAGES, as_of=AS_OF)
    assert first == second


def test_synthesised_prices_are_floats_parsed_from_average_strings():
    # Averages are "1.452"-style strings; backfilled entries hold the parsed float.
    entry = match_stations([], [_site(7, brand="BP")], AVERAGES, as_of=AS_OF).matched[0]
    assert isinstance(entry.petrol_price, float)
    assert isinstance(entry.diesel_price, float)
    assert (entry.petrol_price, entry.diesel_price) == (float(AVERAGES.petrol), float(AVERAGES.diesel))
