import pytest

from checkout_core.countries import DEFAULT_COUNTRY_CODE, SUPPORTED_COUNTRIES, code_to_name, name_to_code


@pytest.mark.parametrize("code,name", sorted(SUPPORTED_COUNTRIES.items()))
def test_round_trip(code, name):
    assert code_to_name(name_to_code(name)) == name
    assert name_to_code(code_to_name(code)) == code


def test_name_lookup_ignores_case():
    assert name_to_code("united arab emirates") == "AE"
    assert name_to_code("  Germany ") == "DE"


def test_codes_pass_through_name_to_code():
    assert name_to_code("de") == "DE"


@pytest.mark.parametrize("value", ["", None, "Atlantis", "ZZ"])
def test_unmapped_names_fall_back_to_default(value):
    assert name_to_code(value) == DEFAULT_COUNTRY_CODE


def test_unmapped_codes_are_returned_unchanged():
    assert code_to_name("ZZ") == "ZZ"
    assert code_to_name("Egypt") == "Egypt"
    assert code_to_name(None) == ""
    assert code_to_name("gb") == "United Kingdom"
