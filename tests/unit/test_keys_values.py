from forecourt.common.keys import brand_town_key, normalise_key
from forecourt.common.values import as_flag, first_present, pence_to_pounds, pounds_to_pence, safe_float, subtract_pence


def test_normalise_key_strips_case_space_and_punctuation():
    assert normalise_key(" sw1a 1aa ") == "SW1A1AA"
    assert normalise_key("SW1A-1AA") == "SW1A1AA"
    assert normalise_key("Sainsbury's") == "SAINSBURYS"


def test_normalise_key_handles_none_and_numbers():
    assert normalise_key(None) == ""
    assert normalise_key(42) == "42"


def test_brand_town_key_requires_both_parts():
    assert brand_town_key("Tesco", "Slough") == "TESCO_SLOUGH"
    assert brand_town_key("Tesco", "") is None
    assert brand_town_key(None, "Slough") is None


def test_safe_float_rejects_garbage():
    assert safe_float("1.459") == 1.459
    assert safe_float(" 2 ") == 2.0
    assert safe_float("n/a") is None
    assert safe_float("") is None
    assert safe_float(True) is None
    assert safe_float(float("nan")) is None
    assert safe_float({"x": 1}) is None
    assert safe_float(10**400) is None
    assert safe_float("1e400") is None


def test_pence_pounds_conversion_is_exact():
    assert pence_to_pounds(145.9) == 1.459
    assert pence_to_pounds("150.9") == 1.509
    assert pounds_to_pence(1.459) == 145.9
    assert pounds_to_pence(pence_to_pounds(133.7)) == 133.7
    assert pence_to_pounds("bad") is None


def test_subtract_pence_avoids_binary_drift():
    assert subtract_pence(145.9, 1) == 144.9
    assert subtract_pence(152.3, 130.6) == 21.7


def test_first_present_skips_falsy_values():
    assert first_present({"a": "", "b": 0, "c": "x"}, ("a", "b", "c")) == "x"
    assert first_present({}, ("a",)) is None


def test_as_flag_accepts_strings_and_numbers():
    assert as_flag("true") is True
    assert as_flag("No") is False
    assert as_flag(1) is True
    assert as_flag(None) is False
