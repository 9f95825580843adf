"""Conversational refinement: prior criteria + feedback → updated criteria + fresh results.

There is no deterministic substitute for this step. Any failure is surfaced as
RefinementFailure and the caller keeps its previous results.
"""

import logging
import re
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.core.config import LLMConfig
from src.core.errors import MalformedModelOutput, RefinementFailure
from src.core.schemas import Match, ParsedSearchCriteria, RefinementResult
from src.llm.base import LLMProvider, parse_json_response

logger = logging.getLogger(__name__)

REFINEMENT_ERROR = "Failed to refine search. Please try again."

_REFINE_SYSTEM_PROMPT = (
    "You are a helpful job search assistant. Update search criteria based on "
    "user feedback and provide natural responses. Always return valid JSON."
)

_REFINE_PROMPT = """\
The user provided feedback to refine their job search. Update the search \
criteria and provide a conversational response.

ORIGINAL SEARCH:
{criteria}

USER FEEDBACK: "{feedback}"

PREVIOUS RESULTS COUNT: {count}

Based on the feedback:
1. Update the search criteria appropriately, keeping the exact JSON shape of ORIGINAL SEARCH
2. Provide a natural, conversational AI response
3. Explain what changes were made

Return ONLY JSON (no markdown, no explanation):
{{
  "updatedSearch": {{ "...": "the full updated search criteria object" }},
  "aiResponse": "I understand you'd prefer... I've updated your search to focus on...",
  "searchChanges": ["Removed travel requirements", "Increased salary minimum to $100k"]
}}"""

_NO_TRAVEL_RE = re.compile(
    r"\b(no|without|not?\s+willing\s+to|don'?t\s+want\s+to|can'?t)\s+"
    r"(?:\w+\s+)?travel",
)
_NO_LIVE_IN_RE = re.compile(r"\b(no|not|without)\s+live-?in\b|\blive-?out\b")

MatchFinder = Callable[[ParsedSearchCriteria], list[Match]]


class _RefinementReply(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    updated_search: ParsedSearchCriteria
    ai_response: str = ""
    search_changes: list[str] = Field(default_factory=list)


def apply_feedback_directives(
    criteria: ParsedSearchCriteria,
    feedback: str,
) -> tuple[ParsedSearchCriteria, list[str]]:
    """Enforce explicit negative directives in the feedback on the updated criteria.

    Returns the (possibly new) criteria and the changes that were applied.
    """
    text = feedback.lower()
    changes: list[str] = []

    if _NO_TRAVEL_RE.search(text) and criteria.location.travel_requirements:
        location = criteria.location.model_copy(update={"travel_requirements": []})
        criteria = criteria.model_copy(update={"location": location})
        changes.append("Removed travel requirements")

    if _NO_LIVE_IN_RE.search(text) and criteria.work_style.living != "live-out":
        work_style = criteria.work_style.model_copy(update={"living": "live-out"})
        criteria = criteria.model_copy(update={"work_style": work_style})
        changes.append("Switched to live-out positions")

    return criteria, changes


def _default_response(feedback: str, result_count: int) -> str:
    text = feedback.lower()
    response = "I understand you'd like to refine your search. "
    if "no travel" in text:
        response += "I've updated your search to exclude travel requirements. "
    if "salary" in text or "pay" in text:
        response += "I've adjusted the salary criteria based on your preferences. "
    if "location" in text:
        response += "I've updated the location preferences. "
    return response + f"Here are {result_count} new matches that better fit your requirements:"


class RefinementEngine:
    """Asks the LLM for updated criteria, then re-runs the match pipeline on them."""

    def __init__(
        self,
        provider: LLMProvider,
        config: LLMConfig,
        find_matches: MatchFinder,
    ) -> None:
        self._provider = provider
        self._config = config
        self._find_matches = find_matches

    def refine(
        self,
        original: ParsedSearchCriteria,
        feedback: str,
        previous_results: list[Match],
    ) -> RefinementResult:
        try:
            reply = self._ask_model(original, feedback, len(previous_results))
            updated, enforced = apply_feedback_directives(reply.updated_search, feedback)
            new_results = self._find_matches(updated)
        except Exception as e:
            logger.warning("Refinement failed for feedback '%s'", feedback, exc_info=True)
            raise RefinementFailure(REFINEMENT_ERROR) from e

        changes = list(reply.search_changes)
        changes.extend(c for c in enforced if c not in changes)
        ai_response = reply.ai_response.strip() or _default_response(feedback, len(new_results))

        logger.info("Refined search: %d changes, %d new results", len(changes), len(new_results))
        return RefinementResult(
            user_feedback=feedback,
            ai_response=ai_response,
            updated_search=updated,
            new_results=new_results,
            search_changes=changes,
        )

    def _ask_model(
        self,
        original: ParsedSearchCriteria,
        feedback: str,
        previous_count: int,
    ) -> _RefinementReply:
        prompt = _REFINE_PROMPT.format(
            criteria=original.model_dump_json(by_alias=True, indent=2),
            feedback=feedback.replace('"', "'"),
            count=previous_count,
        )
        raw = self._provider.complete_chat(
            prompt,
            system=_REFINE_SYSTEM_PROMPT,
            temperature=self._config.refine_temperature,
            max_tokens=self._config.refine_max_tokens,
        )
        data = parse_json_response(raw)
        try:
            return _RefinementReply.model_validate(data)
        except ValidationError as e:
            msg = f"LLM refinement response does not match the expected shape: {e}"
            raise MalformedModelOutput(msg) from e
