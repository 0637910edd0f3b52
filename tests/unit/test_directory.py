from forecourt.pipeline.aggregate import DEFAULT_AVERAGES
from forecourt.pipeline.directory import ingest_directory
from forecourt.pipeline.matching import match_stations
from forecourt.pipeline.normalise import normalise


def _row(**overrides):
    row = {
        "siteNo": 42,
        "altSiteNo": 4200,
        "lat": "51.501",
        "lng": "-0.141",
        "name": " Victoria Service Station ",
        "addr": "1 buckingham gate",
        "town": "london",
        "postcode": "sw1a 1aa",
        "brand": "tesco",
        "h24": True,
        "hgv": "false",
        "petrol": True,
        "diesel": "true",
        "bands": "A2",
    }
    row.update(overrides)
    return row


def test_ingest_directory_envelope_maps_and_upper_cases_fields():
    sites = ingest_directory({"success": True, "data": [_row()]})

    assert len(sites) == 1
    site = sites[0]
    assert site.site_no == 42
    assert site.alt_site_no == 4200
    assert (site.latitude, site.longitude) == (51.501, -0.141)
    assert site.site_name == "VICTORIA SERVICE STATION"
    assert site.street1 == "1 BUCKINGHAM GATE"
    assert site.town == "LONDON"
    assert site.post_code == "SW1A 1AA"
    assert site.brand == "TESCO"
    assert site.hours24 is True
    assert site.hgv_access is False
    assert site.petrol is True
    assert site.diesel is True
    assert site.bands == "A2"
    assert site.facilities == ("24 Hours",)


def test_ingest_directory_accepts_bare_list_and_alternate_names():
    row = {
        "siteNo": "S-9",
        "latitude": 52.0,
        "longitude": -1.0,
        "siteName": "Ring Road",
        "street1": "Ring Road",
        "postCode": "cv1 1aa",
        "brand": "bp",
        "hours24": 1,
        "hgvAccess": True,
    }
    site = ingest_directory([row])[0]
    assert site.site_no == "S-9"
    assert site.alt_site_no == 0
    assert site.post_code == "CV1 1AA"
    assert site.facilities == ("24 Hours", "HGV Access")
    assert site.petrol is False
    assert site.diesel is False


def test_ingest_directory_unsuccessful_envelope_is_empty():
    assert ingest_directory({"success": False, "data": [_row()]}) == []


def test_ingest_directory_unrecognised_payloads_are_empty():
    assert ingest_directory(None) == []
    assert ingest_directory("not json") == []
    assert ingest_directory({"success": True, "data": {"siteNo": 1}}) == []


def test_ingest_directory_drops_rows_without_site_number():
    sites = ingest_directory([_row(siteNo=None), _row(siteNo=""), "junk", _row(siteNo=7)])
    assert [site.site_no for site in sites] == [7]


def test_ingest_directory_missing_coordinates_default_to_zero():
    site = ingest_directory([_row(lat=None, lng="bad")])[0]
    assert (site.latitude, site.longitude) == (0.0, 0.0)


def test_ingest_directory_skips_malformed_rows_among_good_ones():
    rows = [
        _row(siteNo=1, lat=10**400),
        _row(siteNo=[1]),
        _row(siteNo={"id": 3}),
        _row(siteNo=True),
        ["not", "a", "row"],
        _row(siteNo=4, lat="north", lng=float("nan")),
        _row(siteNo=5, altSiteNo=[50]),
    ]
    sites = ingest_directory({"success": True, "data": rows})

    assert [site.site_no for site in sites] == [1, 4, 5]
    assert (sites[0].latitude, sites[0].longitude) == (0.0, -0.141)
    assert (sites[1].latitude, sites[1].longitude) == (0.0, 0.0)
    assert sites[2].alt_site_no == 0


def test_sites_from_malformed_directory_can_be_matched():
    sites = ingest_directory({"success": True, "data": [{"siteNo": [1], "petrol": True}, {"siteNo": 2, "petrol": True}]})
    live = normalise("Shell", [{"id": 1, "petrol_price": 1.4}], as_of="2026-02-17T09:00:00.000+00:00")

    result = match_stations(live, sites, DEFAULT_AVERAGES, as_of="2026-02-17T09:00:00.000+00:00")

    assert [station.id for station in result.unmatched] == ["Shell-1"]
    assert [entry.id for entry in result.matched] == ["directory-2"]
