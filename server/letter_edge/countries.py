# ─────────────────────────────────────────────────────────────────────────────
# Country Configuration — the five country subtrees the site serves
# ─────────────────────────────────────────────────────────────────────────────


import re
from dataclasses import dataclass
from enum import StrEnum


class Country(StrEnum):
    """Supported country subtree codes (lowercase, used as path prefix)."""

    de = "de"
    ca = "ca"
    uk = "uk"
    fr = "fr"
    us = "us"


@dataclass(frozen=True)
class CountryConfig:
    code: Country
    name_en: str
    name_native: str
    default_language: str
    languages: tuple[str, ...]
    legislature: str
    representative: str
    postal_code_label: str
    postal_code_pattern: re.Pattern[str]
    postal_code_max_length: int
    salutation: str
    closing: str
    is_ready: bool = True

    def is_valid_postal_code(self, value: str) -> bool:
        value = value.strip()
        return len(value) <= self.postal_code_max_length and bool(
            self.postal_code_pattern.fullmatch(value)
        )


COUNTRY_CONFIGS: dict[Country, CountryConfig] = {
    Country.de: CountryConfig(
        code=Country.de,
        name_en="Germany",
        name_native="Deutschland",
        default_language="de",
        languages=("de", "en"),
        legislature="Deutscher Bundestag",
        representative="Bundestagsabgeordnete(r)",
        postal_code_label="Postleitzahl",
        postal_code_pattern=re.compile(r"\d{5}"),
        postal_code_max_length=5,
        salutation="Sehr geehrte(r) {name},",
        closing="Mit freundlichen Grüßen",
    ),
    Country.ca: CountryConfig(
        code=Country.ca,
        name_en="Canada",
        name_native="Canada",
        default_language="en",
        languages=("en", "fr"),
        legislature="Canadian Parliament",
        representative="Member of Parliament",
        postal_code_label="Postal Code",
        postal_code_pattern=re.compile(r"[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d"),
        postal_code_max_length=7,
        salutation="Dear {name},",
        closing="Sincerely,",
    ),
    Country.uk: CountryConfig(
        code=Country.uk,
        name_en="United Kingdom",
        name_native="United Kingdom",
        default_language="en",
        languages=("en",),
        legislature="UK Parliament",
        representative="Member of Parliament",
        postal_code_label="Postcode",
        postal_code_pattern=re.compile(r"[A-Z]{1,2}[0-9][0-9A-Z]?\s?[0-9][A-Z]{2}", re.IGNORECASE),
        postal_code_max_length=8,
        salutation="Dear {name},",
        closing="Yours sincerely,",
    ),
    Country.fr: CountryConfig(
        code=Country.fr,
        name_en="France",
        name_native="France",
        # Letters are written in French, UI stays English until translated
        default_language="en",
        languages=("en", "fr"),
        legislature="Assemblée nationale",
        representative="Député(e)",
        postal_code_label="Code postal",
        postal_code_pattern=re.compile(r"\d{5}"),
        postal_code_max_length=5,
        salutation="Madame, Monsieur {name},",
        closing="Veuillez agréer mes salutations distinguées,",
    ),
    Country.us: CountryConfig(
        code=Country.us,
        name_en="United States",
        name_native="United States",
        default_language="en",
        languages=("en",),
        legislature="US Congress",
        representative="Representative/Senator",
        postal_code_label="ZIP Code",
        postal_code_pattern=re.compile(r"\d{5}(-\d{4})?"),
        postal_code_max_length=10,
        salutation="Dear {name},",
        closing="Respectfully,",
    ),
}


def get_country_config(code: str) -> CountryConfig | None:
    """Config for a country code, or None for anything outside the five."""
    try:
        return COUNTRY_CONFIGS[Country(code)]
    except ValueError:
        return None
