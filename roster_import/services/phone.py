from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import phonenumbers
from phonenumbers.phonenumberutil import ValidationResult

"""Phone number parsing with country detection (phonenumbers).

Two entry points through ``parse_phone``:

* with a country (ISO code such as ``DK`` or a dial code such as ``+45``):
  the number must belong to that country and have a possible length there
* without one: the country is detected from an international prefix or a
  main-market dial code, short local numbers are assumed to belong to the
  default country, and the confidence says how sure the guess is

Lengths are checked per country (``is_possible_number``); allocated number
ranges are not.
"""

__all__ = [
    "CONFIDENT",
    "DEFAULT_COUNTRY",
    "MAIN_MARKET_DIAL_CODES",
    "PhoneParseResult",
    "country_region",
    "is_scientific_notation",
    "parse_phone",
]

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "DK"
# Denmark, Sweden, Norway, UK, Germany
MAIN_MARKET_DIAL_CODES = ("45", "46", "47", "44", "49")
LOCAL_LENGTHS = range(6, 10)
CONFIDENT = 0.8

_CLEANUP_RE = re.compile(r"[\s\-\(\)\.]")
_SCIENTIFIC_RE = re.compile(r"^\d+(?:[.,]\d+)?[eE]\+\d+$")

_POSSIBLE = (
    ValidationResult.IS_POSSIBLE,
    ValidationResult.IS_POSSIBLE_LOCAL_ONLY,
)


@dataclass(frozen=True)
class PhoneParseResult:
    is_valid: bool
    original: str
    region: str | None = None
    dial_code: str = ""
    national_number: str = ""
    confidence: float = 0.0
    assumed_country: bool = False
    error: str | None = None

    def display(self) -> str:
        if self.dial_code:
            return f"+{self.dial_code} {self.national_number}"
        return self.national_number


def is_scientific_notation(value: str) -> bool:
    """Excel turns long numeric cells into e.g. ``4.51234E+9``."""
    return bool(_SCIENTIFIC_RE.match((value or "").strip()))


def country_region(code: str | None) -> str | None:
    """ISO region for an ISO code or a dial code, None when unknown."""
    c = (code or "").strip()
    if not c:
        return None
    if c.upper() in phonenumbers.SUPPORTED_REGIONS:
        return c.upper()
    digits = c.lstrip("+")
    if digits.isdigit():
        region = phonenumbers.region_code_for_country_code(int(digits))
        if region in phonenumbers.SUPPORTED_REGIONS:
            return region
    return None


def _clean(value: str) -> str:
    v = (value or "").strip()
    if is_scientific_notation(v):
        v = str(round(float(v.replace(",", "."))))
    return _CLEANUP_RE.sub("", v)


def _length_problem(num: phonenumbers.PhoneNumber, label: str) -> str | None:
    reason = phonenumbers.is_possible_number_with_reason(num)
    if reason in _POSSIBLE:
        return None
    if reason == ValidationResult.TOO_SHORT:
        return f"phone number too short for {label}"
    if reason == ValidationResult.TOO_LONG:
        return f"phone number too long for {label}"
    if reason == ValidationResult.INVALID_COUNTRY_CODE:
        return "unknown country calling code"
    return f"phone number length does not match {label}"


def _valid(num: phonenumbers.PhoneNumber, original: str, confidence: float, assumed: bool) -> PhoneParseResult:
    return PhoneParseResult(
        is_valid=True,
        original=original,
        region=phonenumbers.region_code_for_number(num),
        dial_code=str(num.country_code),
        national_number=phonenumbers.national_significant_number(num),
        confidence=confidence,
        assumed_country=assumed,
    )


def _invalid(original: str, error: str, region: str | None = None) -> PhoneParseResult:
    return PhoneParseResult(is_valid=False, original=original, region=region, error=error)


def _parse_for_country(cleaned: str, original: str, country: str) -> PhoneParseResult:
    region = country_region(country)
    if region is None:
        return _invalid(original, f"unknown country code {country!r}")
    try:
        num = phonenumbers.parse(cleaned, region)
    except phonenumbers.NumberParseException as e:
        return _invalid(original, f"not a phone number ({e})", region)
    expected = phonenumbers.country_code_for_region(region)
    if num.country_code != expected:
        return _invalid(
            original,
            f"number has country code +{num.country_code} but the country is {region} (+{expected})",
            region,
        )
    problem = _length_problem(num, region)
    if problem is not None:
        return _invalid(original, problem, region)
    return _valid(num, original, confidence=1.0, assumed=False)


def _detect(cleaned: str, original: str, default_country: str) -> PhoneParseResult:
    working = cleaned
    international = False
    if working.startswith("00"):
        working, international = working[2:], True
    elif working.startswith("+"):
        working, international = working[1:], True

    if international or len(working) >= 10:
        try:
            num = phonenumbers.parse("+" + working, None)
        except phonenumbers.NumberParseException:
            num = None
        if num is not None:
            main = str(num.country_code) in MAIN_MARKET_DIAL_CODES
            # 国番号らしい桁が先頭にあっても 10 桁だけでは主要市場以外は採らない
            if main or international or len(working) >= 11:
                region = phonenumbers.region_code_for_number(num) or f"+{num.country_code}"
                problem = _length_problem(num, region)
                if problem is None:
                    if main:
                        confidence = 0.9
                    else:
                        confidence = 0.85 if international else 0.75
                    return _valid(num, original, confidence, assumed=False)
                if main or international:
                    return _invalid(original, problem, region)

    if not international and len(working) in LOCAL_LENGTHS:
        return PhoneParseResult(
            is_valid=True,
            original=original,
            region=default_country,
            dial_code=str(phonenumbers.country_code_for_region(default_country)),
            national_number=working,
            confidence=0.6,
            assumed_country=True,
        )

    try:
        num = phonenumbers.parse(working, default_country)
    except phonenumbers.NumberParseException:
        num = None
    if num is not None and _length_problem(num, default_country) is None:
        return _valid(num, original, confidence=0.5, assumed=True)
    return _invalid(original, f"no country code found and the number does not fit {default_country}")


def parse_phone(value: str, country: str | None = None, default_country: str = DEFAULT_COUNTRY) -> PhoneParseResult:
    """Parse one phone value.

    Args:
        value: Raw cell value; spaces, dashes, dots and parentheses are ignored
        country: Country the number must belong to (ISO or dial code);
            None detects it
        default_country: ISO region assumed for numbers without a country code

    Returns:
        PhoneParseResult; never raises for bad input
    """
    original = (value or "").strip()
    cleaned = _clean(original)
    if not cleaned:
        return _invalid(original, "phone number is empty")
    if country is not None and country.strip():
        result = _parse_for_country(cleaned, original, country)
    else:
        result = _detect(cleaned, original, default_country.upper())
    logger.debug(
        f"parse_phone {original!r} country={country} -> valid={result.is_valid} "
        f"region={result.region} confidence={result.confidence}"
    )
    return result
