from __future__ import annotations

import pytest

from roster_import.services.phone import country_region, is_scientific_notation, parse_phone


@pytest.mark.parametrize(
    ("code", "region"),
    [("DK", "DK"), ("dk", "DK"), ("+45", "DK"), ("47", "NO"), ("999", None), ("XX", None), ("", None)],
)
def test_country_region(code, region):
    assert country_region(code) == region


def test_number_for_given_country():
    result = parse_phone("12 34 56 78", "DK")
    assert result.is_valid
    assert (result.region, result.dial_code, result.national_number) == ("DK", "45", "12345678")
    assert result.confidence == 1.0
    assert not result.assumed_country
    assert result.display() == "+45 12345678"


@pytest.mark.parametrize(
    ("value", "error"),
    [
        ("1234567", "phone number too short for DK"),
        ("123456789", "phone number too long for DK"),
        ("+46 70 123 45 67", "number has country code +46 but the country is DK (+45)"),
    ],
)
def test_number_rejected_for_given_country(value, error):
    result = parse_phone(value, "DK")
    assert not result.is_valid
    assert result.error == error


@pytest.mark.parametrize(
    ("value", "region", "confidence"),
    [
        ("+47 412 34 567", "NO", 0.9),
        ("004512345678", "DK", 0.9),
        ("4512345678", "DK", 0.9),
    ],
)
def test_country_detected_from_number(value, region, confidence):
    result = parse_phone(value)
    assert result.is_valid
    assert result.region == region
    assert result.confidence == confidence
    assert not result.assumed_country


def test_local_number_assumes_default_country():
    result = parse_phone("12345678")
    assert result.is_valid
    assert result.assumed_country
    assert result.confidence == 0.6
    assert result.display() == "+45 12345678"
    assert parse_phone("12345678", default_country="no").display() == "+47 12345678"


def test_wrong_length_after_main_market_code():
    result = parse_phone("+45 1234 5")
    assert not result.is_valid
    assert result.region == "DK"
    assert result.error == "phone number too short for DK"


def test_scientific_notation_is_expanded():
    assert is_scientific_notation("4.512345678E+9")
    assert not is_scientific_notation("12345678")
    result = parse_phone("4.512345678E+9")
    assert (result.region, result.national_number) == ("DK", "12345678")


def test_blank_value():
    result = parse_phone("  ")
    assert not result.is_valid
    assert result.error == "phone number is empty"
