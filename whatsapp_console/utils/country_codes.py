"""
Country dial codes supported for phone number formatting
"""
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class CountryCode:
    code: str
    name: str
    dial_code: str

    @property
    def dial_digits(self) -> str:
        return self.dial_code.lstrip("+")


COUNTRY_CODES: List[CountryCode] = [
    CountryCode("SA", "Saudi Arabia", "+966"),
    CountryCode("AE", "United Arab Emirates", "+971"),
    CountryCode("EG", "Egypt", "+20"),
    CountryCode("KW", "Kuwait", "+965"),
    CountryCode("QA", "Qatar", "+974"),
    CountryCode("BH", "Bahrain", "+973"),
    CountryCode("OM", "Oman", "+968"),
    CountryCode("JO", "Jordan", "+962"),
    CountryCode("LB", "Lebanon", "+961"),
    CountryCode("IQ", "Iraq", "+964"),
    CountryCode("YE", "Yemen", "+967"),
    CountryCode("SY", "Syria", "+963"),
    CountryCode("PS", "Palestine", "+970"),
    CountryCode("MA", "Morocco", "+212"),
    CountryCode("DZ", "Algeria", "+213"),
    CountryCode("TN", "Tunisia", "+216"),
    CountryCode("LY", "Libya", "+218"),
    CountryCode("SD", "Sudan", "+249"),
    CountryCode("US", "United States", "+1"),
    CountryCode("GB", "United Kingdom", "+44"),
]

DEFAULT_COUNTRY = "SA"


def get_country_by_code(code: str) -> Optional[CountryCode]:
    code = (code or "").upper()
    return next((c for c in COUNTRY_CODES if c.code == code), None)


def get_country_by_dial_code(dial_code: str) -> Optional[CountryCode]:
    return next((c for c in COUNTRY_CODES if c.dial_code == dial_code), None)
