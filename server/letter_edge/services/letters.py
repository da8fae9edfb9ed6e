# Letter intake: abuse screening → duplicate-content cap → composition.
# Composition is behind the LetterComposer protocol; the hosted LLM lives
# outside this service, TemplateLetterComposer is the deterministic default.


from typing import Protocol, runtime_checkable

import structlog

from letter_edge.countries import COUNTRY_CONFIGS, Country, CountryConfig
from letter_edge.exceptions import DuplicateContentError, ForbiddenRequestError
from letter_edge.schemas import LetterRequest
from letter_edge.security import ContentSimilarityGuard, detect_abuse_patterns
from letter_edge.services.metrics import EdgeMetrics

logger = structlog.get_logger(__name__)


@runtime_checkable
class LetterComposer(Protocol):
    """Turns a validated request into letter text."""

    @property
    def name(self) -> str: ...

    def compose(self, request: LetterRequest, country: CountryConfig) -> str: ...


# Body phrases per letter language: (intro, demands lead-in, note lead-in)
_PHRASES: dict[str, tuple[str, str, str]] = {
    "de": (
        "als Bürger(in) aus Ihrem Wahlkreis ({postal_code}) wende ich mich an Sie "
        "als meine Vertretung im Parlament ({legislature}).",
        "Ich bitte Sie, sich für folgende Anliegen einzusetzen:",
        "Persönlich möchte ich ergänzen:",
    ),
    "fr": (
        "en tant qu'habitant(e) de votre circonscription ({postal_code}), je m'adresse "
        "à vous en votre qualité de membre de l'{legislature}.",
        "Je vous demande de soutenir les points suivants :",
        "À titre personnel, j'ajoute :",
    ),
    "en": (
        "As a constituent ({postal_code}), I am writing to you as my representative "
        "in the {legislature}.",
        "I urge you to support the following:",
        "On a personal note:",
    ),
}

# Letters go out in the legislature's language even where the UI is English.
_LETTER_LANGUAGE: dict[Country, str] = {Country.de: "de", Country.fr: "fr"}


class TemplateLetterComposer:
    """Fills a per-language letter template. No network, fully deterministic."""

    @property
    def name(self) -> str:
        return "template"

    def compose(self, request: LetterRequest, country: CountryConfig) -> str:
        intro, demands_lead, note_lead = _PHRASES[_LETTER_LANGUAGE.get(country.code, "en")]

        lines = [
            country.salutation.format(name=request.representative),
            "",
            intro.format(postal_code=request.postal_code, legislature=country.legislature),
            "",
            demands_lead,
            *(f"- {demand}" for demand in request.demands),
        ]
        if request.personal_note.strip():
            lines += ["", note_lead, request.personal_note.strip()]
        lines += ["", country.closing, request.name, request.postal_code]
        return "\n".join(lines)


class LetterIntakeService:
    """Screens and composes letters for POST /api/generate-letter.

    Header-level checks (origin, bot, quota) have already run as
    dependencies by the time submit() is called.
    """

    def __init__(
        self,
        composer: LetterComposer,
        similarity_guard: ContentSimilarityGuard,
        metrics: EdgeMetrics | None = None,
    ) -> None:
        self._composer = composer
        self._similarity_guard = similarity_guard
        self._metrics = metrics

    def submit(self, request: LetterRequest, fingerprint: str) -> str:
        abuse = detect_abuse_patterns(request.model_dump())
        if abuse.suspicious:
            if self._metrics:
                self._metrics.record_security_rejection("abuse-pattern")
            raise ForbiddenRequestError("Request rejected", reason=abuse.reason or "abuse")

        content = "\n".join([*request.demands, request.personal_note])
        if not self._similarity_guard.allow(fingerprint, content):
            logger.warning("duplicate_content_rejected", fingerprint=fingerprint)
            if self._metrics:
                self._metrics.record_duplicate_rejected()
            raise DuplicateContentError()

        letter = self._composer.compose(request, COUNTRY_CONFIGS[request.country])
        if self._metrics:
            self._metrics.record_letter()
        logger.info(
            "letter_composed",
            country=request.country.value,
            composer=self._composer.name,
            demands=len(request.demands),
        )
        return letter
