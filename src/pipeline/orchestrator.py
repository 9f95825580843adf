"""Orchestrator: wires transcription, parser, retriever, scorer, ranker and refinement.

Data flow:
  1. Transcribe audio (only when the request carries audio)
  2. Parse query → criteria + summary (model, deterministic fallback)
  3. Retrieve ≤ 50 active candidates from the job store
  4. Score every candidate (model, deterministic fallback)
  5. Filter, rank, cap at 10 → matches
  6. (refine) LLM-updated criteria → steps 3-5 again

Each call is a stateless request/response; nothing is kept between calls.
"""

import base64
import binascii
import logging

from src.core.config import Settings
from src.core.errors import TranscriptionFailure
from src.core.schemas import (
    Match,
    ParsedSearchCriteria,
    RefinementResult,
    RefineRequest,
    SearchRequest,
    SearchResponse,
    SearchSummary,
)
from src.core.store import JobStore
from src.llm.base import LLMProvider
from src.pipeline.llm_scorer import ModelScorer
from src.pipeline.matcher import rank_matches
from src.pipeline.parser import (
    FallbackQueryParser,
    ModelQueryParser,
    QueryParser,
    ResilientQueryParser,
)
from src.pipeline.refiner import RefinementEngine
from src.pipeline.retriever import CandidateRetriever
from src.pipeline.roles import RoleRules
from src.pipeline.scorer import KeywordScorer, ResilientScorer, Scorer

logger = logging.getLogger(__name__)

TRANSCRIPTION_ERROR = "Failed to transcribe audio. Please try typing your search instead."


class MatchPipeline:
    """Retrieve → score → filter/rank for one set of criteria."""

    def __init__(
        self,
        retriever: CandidateRetriever,
        scorer: Scorer,
        rules: RoleRules,
        settings: Settings,
    ) -> None:
        self._retriever = retriever
        self._scorer = scorer
        self._rules = rules
        self._config = settings.search

    def run(self, criteria: ParsedSearchCriteria) -> list[Match]:
        candidates = self._retriever.retrieve(criteria)
        if not candidates:
            logger.info("No candidate jobs for role '%s'", criteria.role.primary)
            return []
        scored = self._scorer.score(criteria, candidates)
        return rank_matches(scored, criteria, self._rules, self._config)


def broadening_suggestions(criteria: ParsedSearchCriteria, rules: RoleRules) -> list[str]:
    """Deterministic hints for widening a search that found nothing."""
    suggestions: list[str] = []
    role = criteria.role
    if rules.is_generic(role.primary):
        suggestions.append("Name a specific role, e.g. Estate Manager, Private Chef or Nanny")
    elif role.alternatives:
        suggestions.append(f"Try related roles such as {', '.join(role.alternatives[:2])}")

    location = criteria.location
    if location.primary_locations and location.flexibility != "national":
        suggestions.append(
            f"Search nationwide instead of only {', '.join(location.primary_locations)}"
        )
    if criteria.compensation.range_min is not None:
        suggestions.append("Lower or remove the minimum salary")
    if criteria.work_style.living != "flexible":
        suggestions.append("Consider both live-in and live-out positions")

    suggestions.append("Check back soon - new positions are posted regularly")
    return suggestions


class SearchService:
    """Entry point for search and refine requests.

    Usage::

        service = SearchService.from_settings(settings, provider, SQLiteJobStore(conn))
        response = service.search(SearchRequest(query="live-in chef in the Hamptons"))
    """

    def __init__(
        self,
        parser: QueryParser,
        pipeline: MatchPipeline,
        refiner: RefinementEngine,
        transcriber: LLMProvider,
        rules: RoleRules,
    ) -> None:
        self._parser = parser
        self._pipeline = pipeline
        self._refiner = refiner
        self._transcriber = transcriber
        self._rules = rules

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: LLMProvider,
        store: JobStore,
        transcriber: LLMProvider | None = None,
    ) -> "SearchService":
        """Build the resilient parser/scorer pair and the pipeline around ``provider``."""
        rules = RoleRules(settings.roles)
        parser = ResilientQueryParser(
            ModelQueryParser(provider, settings.llm),
            FallbackQueryParser(settings.roles),
        )
        scorer = ResilientScorer(
            ModelScorer(provider, settings.llm, settings.search),
            KeywordScorer(rules),
        )
        retriever = CandidateRetriever(store, settings.search, rules)
        pipeline = MatchPipeline(retriever, scorer, rules, settings)
        refiner = RefinementEngine(provider, settings.llm, pipeline.run)
        return cls(parser, pipeline, refiner, transcriber or provider, rules)

    def search(self, request: SearchRequest) -> SearchResponse:
        query = request.query if request.query is not None else self._transcribe(request.audio or "")
        logger.info("Search query: %s", query)

        parsed = self._parser.parse(query)
        matches = self._pipeline.run(parsed.criteria)
        summary = self._with_suggestions(parsed.summary, parsed.criteria, matches)

        logger.info("Search found %d matches", len(matches))
        return SearchResponse(
            original_query=query,
            parsed_search=parsed.criteria,
            summary=summary,
            matches=matches,
            total_matches=len(matches),
        )

    def refine(self, request: RefineRequest) -> RefinementResult:
        return self._refiner.refine(
            request.original_search,
            request.user_feedback,
            request.previous_results,
        )

    def _transcribe(self, audio_b64: str) -> str:
        try:
            audio = base64.b64decode(audio_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise TranscriptionFailure(TRANSCRIPTION_ERROR) from e
        if not audio:
            raise TranscriptionFailure(TRANSCRIPTION_ERROR)

        try:
            text = self._transcriber.transcribe_audio(audio)
        except Exception as e:
            logger.warning("Audio transcription failed", exc_info=True)
            raise TranscriptionFailure(TRANSCRIPTION_ERROR) from e

        if not text or not text.strip():
            raise TranscriptionFailure(TRANSCRIPTION_ERROR)
        return text.strip()

    def _with_suggestions(
        self,
        summary: SearchSummary,
        criteria: ParsedSearchCriteria,
        matches: list[Match],
    ) -> SearchSummary:
        if matches or summary.suggested_refinements:
            return summary
        return summary.model_copy(
            update={"suggested_refinements": broadening_suggestions(criteria, self._rules)},
        )
