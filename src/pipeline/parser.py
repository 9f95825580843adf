"""Query parsing: free text → ParsedSearchCriteria + SearchSummary.

Two strategies behind one interface. ModelQueryParser asks the LLM;
FallbackQueryParser is a deterministic keyword parser. ResilientQueryParser
tries the first and degrades to the second, so parsing never fails a search.
"""

import logging
import re
from abc import ABC, abstractmethod

from pydantic import ValidationError

from src.core.config import LLMConfig, RoleRulesConfig
from src.core.errors import MalformedModelOutput, ProviderUnavailable
from src.core.schemas import (
    Compensation,
    LocationCriteria,
    ParsedSearchCriteria,
    ParseResult,
    Qualifications,
    RoleCriteria,
    SearchSummary,
    WorkStyle,
)
from src.llm.base import LLMProvider, parse_json_response

logger = logging.getLogger(__name__)

FALLBACK_PARSE_NOTE = "Using fallback parsing - AI parsing not available"
FALLBACK_CONFIDENCE = 70

_PARSE_SYSTEM_PROMPT = (
    "You are an expert job search assistant. Always return valid JSON exactly as specified."
)

_PARSE_PROMPT = """\
You are an expert job search assistant for the luxury private service industry. \
Parse this natural language job search query into structured requirements.

LUXURY SERVICE ROLES CONTEXT:
- Estate Management: Estate Manager, House Manager, Property Manager
- Culinary: Private Chef, Executive Chef, Personal Chef, Cook
- Housekeeping: Executive Housekeeper, Housekeeper, Houseman
- Childcare: Nanny, Governess, Family Assistant
- Personal Care: Personal Assistant, Executive Assistant, Butler
- Security: Executive Protection, Security Manager
- Grounds: Head Gardener, Groundskeeper, Landscape Manager

USER QUERY: "{query}"

Extract and structure all mentioned requirements, preferences, and constraints. \
Be intelligent about industry terminology.

For compensation, convert mentions like "good salary", "competitive pay" to appropriate ranges:
- Entry level: $40k-60k
- Mid level: $60k-100k
- Senior level: $100k-150k+

All confidence values are integers 0-100. Allowed values:
- location.flexibility: none | regional | national | international
- workStyle.living: live-in | live-out | flexible
- workStyle.overtime: none | occasional | regular
- clientProfile.children: none | young | teenagers | mixed
- preferences.privacyLevel: standard | high | celebrity

Return ONLY JSON (no markdown, no explanation) in this exact format:
{{
  "parsedSearch": {{
    "role": {{"primary": "Executive Housekeeper", "alternatives": ["House Manager"], "confidence": 95}},
    "location": {{"primaryLocations": ["Manhattan"], "flexibility": "none", "travelRequirements": []}},
    "workStyle": {{"living": "live-out", "schedule": ["5-day week"], "overtime": "occasional"}},
    "clientProfile": {{"familySize": "couple", "children": "none", "lifestyle": ["professionals"], "specialNeeds": []}},
    "qualifications": {{"experienceYears": 5, "specialties": ["luxury linens"], "languages": ["English"], "certifications": []}},
    "compensation": {{"rangeMin": 80000, "rangeMax": 120000, "benefits": ["health insurance"], "flexible": true}},
    "preferences": {{"privacyLevel": "high", "growth": [], "culture": ["professional"]}},
    "overallConfidence": 85,
    "ambiguities": ["Salary expectations unclear"]
  }},
  "summary": {{
    "intentDescription": "Executive housekeeper position in Manhattan",
    "mustHave": ["Executive housekeeper role", "Manhattan location"],
    "preferred": ["5-day schedule", "Luxury experience"],
    "dealBreakers": ["Live-in requirement"],
    "clarificationQuestions": ["What's your preferred salary range?", "Are you open to occasional travel?"],
    "suggestedRefinements": ["luxury housekeeping Manhattan", "executive housekeeper Upper East Side"]
  }}
}}"""

# "$100k", "$85,000", "$ 120K"
_SALARY_RE = re.compile(r"\$\s?(\d[\d,]*(?:\.\d+)?)\s*(k)?\b", re.IGNORECASE)
_MIN_ANNUAL_SALARY = 1000


class QueryParser(ABC):
    """Turns a free-text query into structured criteria and a summary."""

    @abstractmethod
    def parse(self, query: str) -> ParseResult:
        """Parse ``query``; model-backed strategies may raise ProviderUnavailable/MalformedModelOutput."""


class ModelQueryParser(QueryParser):
    """Asks the LLM for the criteria JSON and validates it strictly."""

    def __init__(self, provider: LLMProvider, config: LLMConfig) -> None:
        self._provider = provider
        self._config = config

    def parse(self, query: str) -> ParseResult:
        prompt = _PARSE_PROMPT.format(query=query.replace('"', "'"))
        try:
            raw = self._provider.complete_chat(
                prompt,
                system=_PARSE_SYSTEM_PROMPT,
                temperature=self._config.parse_temperature,
                max_tokens=self._config.parse_max_tokens,
            )
        except Exception as e:
            msg = f"LLM query parsing call failed: {e}"
            raise ProviderUnavailable(msg) from e

        data = parse_json_response(raw)
        try:
            result = ParseResult.model_validate(data)
        except ValidationError as e:
            msg = f"LLM parse response does not match the criteria schema: {e}"
            raise MalformedModelOutput(msg) from e

        logger.info(
            "Model parsed role '%s' (confidence %d)",
            result.criteria.role.primary, result.criteria.overall_confidence,
        )
        return result


class FallbackQueryParser(QueryParser):
    """Deterministic keyword parser over the role synonym table and location gazetteer.

    Output depends only on the query text and the rules table.
    """

    def __init__(self, rules: RoleRulesConfig | None = None) -> None:
        self._rules = rules or RoleRulesConfig()
        self._locations = [
            (entry.location, [re.compile(rf"\b{re.escape(p.lower())}\b") for p in entry.phrases])
            for entry in self._rules.locations
        ]

    def parse(self, query: str) -> ParseResult:
        text = query.lower()

        primary, alternatives = self._match_role(text)
        locations = self._match_locations(text)
        national = self._rules.national_location in locations
        range_min, range_max = _extract_salary(text)

        ambiguities = [FALLBACK_PARSE_NOTE]
        is_generic = primary == self._rules.generic_role
        if is_generic:
            ambiguities.append("No specific role recognised in the query")

        criteria = ParsedSearchCriteria(
            role=RoleCriteria(
                primary=primary,
                alternatives=alternatives,
                confidence=FALLBACK_CONFIDENCE,
            ),
            location=LocationCriteria(
                primary_locations=locations,
                flexibility="national" if national else "none",
            ),
            work_style=WorkStyle(living=_extract_living(text)),
            qualifications=Qualifications(languages=["English"]),
            compensation=Compensation(range_min=range_min, range_max=range_max),
            overall_confidence=FALLBACK_CONFIDENCE,
            ambiguities=ambiguities,
        )

        intent = f"Looking for {primary} position"
        if locations:
            intent += f" in {', '.join(locations)}"
        must_have = [] if is_generic else [primary]
        must_have.extend(loc for loc in locations if not national)

        summary = SearchSummary(intent_description=intent, must_have=must_have)
        return ParseResult(criteria=criteria, summary=summary)

    def _match_role(self, text: str) -> tuple[str, list[str]]:
        for synonym in self._rules.synonyms:
            if any(phrase.lower() in text for phrase in synonym.phrases):
                return synonym.primary, list(synonym.alternatives)
        return self._rules.generic_role, []

    def _match_locations(self, text: str) -> list[str]:
        for location, patterns in self._locations:
            if any(p.search(text) for p in patterns):
                return [location]
        return []


def _extract_living(text: str) -> str:
    if "live-out" in text or "no live-in" in text:
        return "live-out"
    if "live-in" in text:
        return "live-in"
    return "flexible"


def _extract_salary(text: str) -> tuple[int | None, int | None]:
    """First one or two annual dollar amounts in the text ("$100k+", "$80,000-$120,000")."""
    amounts: list[int] = []
    for number, thousands in _SALARY_RE.findall(text):
        value = float(number.replace(",", ""))
        if thousands:
            value *= 1000
        if value >= _MIN_ANNUAL_SALARY:
            amounts.append(int(value))
        if len(amounts) == 2:
            break

    if not amounts:
        return None, None
    if len(amounts) == 1:
        return amounts[0], None
    low, high = sorted(amounts)
    return low, high


class ResilientQueryParser(QueryParser):
    """Model parser first; deterministic fallback on provider or output failure."""

    def __init__(self, primary: QueryParser, fallback: QueryParser) -> None:
        self._primary = primary
        self._fallback = fallback

    def parse(self, query: str) -> ParseResult:
        try:
            return self._primary.parse(query)
        except (ProviderUnavailable, MalformedModelOutput):
            logger.warning("Model query parsing failed - using fallback parser", exc_info=True)
            return self._fallback.parse(query)
