# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


from pydantic import BaseModel, Field, field_validator, model_validator

from letter_edge.countries import COUNTRY_CONFIGS, Country


class LetterRequest(BaseModel):
    """A visitor's request to draft a letter to their representative."""

    country: Country
    name: str = Field(..., min_length=1, max_length=100, description="Sender's full name")
    postal_code: str = Field(..., min_length=3, max_length=10)
    representative: str = Field(..., min_length=1, max_length=200, description="Addressee")
    demands: list[str] = Field(..., min_length=1, max_length=20)
    personal_note: str = Field("", max_length=5000)

    @field_validator("name", "representative")
    @classmethod
    def must_contain_alpha(cls, v: str) -> str:
        if not any(c.isalpha() for c in v):
            raise ValueError("Must contain at least one alphabetic character")
        return v.strip()

    @field_validator("demands")
    @classmethod
    def demands_not_blank(cls, v: list[str]) -> list[str]:
        cleaned = [d.strip() for d in v if d.strip()]
        if not cleaned:
            raise ValueError("At least one non-empty demand is required")
        return cleaned

    @model_validator(mode="after")
    def postal_code_matches_country(self) -> "LetterRequest":
        config = COUNTRY_CONFIGS[self.country]
        if not config.is_valid_postal_code(self.postal_code):
            raise ValueError(f"Invalid {config.postal_code_label} for {config.name_en}")
        self.postal_code = self.postal_code.strip()
        return self


class LetterResponse(BaseModel):
    letter: str
    country: Country
    remaining: int = Field(..., ge=0, description="Requests left in the current window")


class CountryPage(BaseModel):
    """Country subtree landing data rendered by the frontend."""

    code: Country
    name: str
    native_name: str
    default_language: str
    languages: list[str]
    legislature: str
    representative: str
    postal_code_label: str
    is_ready: bool
    page: str = ""


class RoutingDecisionResponse(BaseModel):
    """What the geo router would do for the current request (debug)."""

    path: str
    excluded: bool
    country_path: bool
    target_country: Country | None = None
    source: str | None = None
    detected_country: str | None = None
    redirect_to: str | None = None


class LivenessResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    rate_limiter_ready: bool
    geo_router_ready: bool
