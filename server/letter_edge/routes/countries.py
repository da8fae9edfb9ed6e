# ─────────────────────────────────────────────────────────────────────────────
# Country subtree routes — landing data for /{country} and its pages
# ─────────────────────────────────────────────────────────────────────────────
# Geo-routed visitors land here. Unknown codes fail path validation (422).
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter

from letter_edge.countries import COUNTRY_CONFIGS, Country
from letter_edge.schemas import CountryPage

router = APIRouter()


def _page(country: Country, page: str = "") -> CountryPage:
    config = COUNTRY_CONFIGS[country]
    return CountryPage(
        code=config.code,
        name=config.name_en,
        native_name=config.name_native,
        default_language=config.default_language,
        languages=list(config.languages),
        legislature=config.legislature,
        representative=config.representative,
        postal_code_label=config.postal_code_label,
        is_ready=config.is_ready,
        page=page,
    )


@router.get("/{country}", response_model=CountryPage)
async def country_home(country: Country) -> CountryPage:
    return _page(country)


@router.get("/{country}/{page:path}", response_model=CountryPage)
async def country_page(country: Country, page: str) -> CountryPage:
    return _page(country, page.strip("/"))
