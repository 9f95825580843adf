"""Match scoring interface, deterministic keyword scorer, and the resilient composition.

Keyword score range: 0-100. overall = round(role * 0.8 + location * 0.2);
dimensions the keywords cannot judge stay at a neutral 50.
"""

import logging
from abc import ABC, abstractmethod

from src.core.errors import MalformedModelOutput, ProviderUnavailable
from src.core.schemas import (
    JobRecord,
    MatchScore,
    ParsedSearchCriteria,
    ScoreBreakdown,
    ScoredJob,
)
from src.pipeline.roles import RoleMatch, RoleRules

logger = logging.getLogger(__name__)

FALLBACK_SCORE_NOTE = "AI analysis not available - using keyword matching"

ROLE_WEIGHT = 0.8
LOCATION_WEIGHT = 0.2
NEUTRAL_SCORE = 50
LOCATION_HIT = 90
LOCATION_MISS = 30


class Scorer(ABC):
    """Scores every candidate against the criteria.

    Implementations return exactly one ScoredJob per input job, in input order.
    """

    @abstractmethod
    def score(self, criteria: ParsedSearchCriteria, jobs: list[JobRecord]) -> list[ScoredJob]:
        """Score ``jobs``; model-backed strategies may raise ProviderUnavailable/MalformedModelOutput."""


class KeywordScorer(Scorer):
    """Substring and role-family matching on title, role tag and location."""

    def __init__(self, rules: RoleRules | None = None) -> None:
        self._rules = rules or RoleRules()

    def score(self, criteria: ParsedSearchCriteria, jobs: list[JobRecord]) -> list[ScoredJob]:
        return [self.score_job(criteria, job) for job in jobs]

    def score_job(self, criteria: ParsedSearchCriteria, job: JobRecord) -> ScoredJob:
        role = self._rules.best_match(criteria.role.terms, job)
        location_score = self._location_score(criteria, job)
        overall = round(role.score * ROLE_WEIGHT + location_score * LOCATION_WEIGHT)

        highlights, concerns = _role_notes(role)
        if location_score >= LOCATION_HIT:
            highlights.append("Good location match")
        elif location_score < NEUTRAL_SCORE:
            concerns.append("Location may not match preferences")

        score = MatchScore(
            overall_score=overall,
            breakdown=ScoreBreakdown(
                role_match=role.score,
                location_match=location_score,
                requirements_match=NEUTRAL_SCORE,
                preferences_match=NEUTRAL_SCORE,
                compensation_match=NEUTRAL_SCORE,
                culture_match=NEUTRAL_SCORE,
            ),
            highlights=highlights,
            concerns=concerns,
            missing_info=[FALLBACK_SCORE_NOTE],
        )
        return ScoredJob(job=job, score=score, reasoning=_reasoning(role, job, criteria))

    def _location_score(self, criteria: ParsedSearchCriteria, job: JobRecord) -> int:
        locations = criteria.location.primary_locations
        if not locations:
            return NEUTRAL_SCORE
        job_location = job.location.lower()
        hit = any(
            self._rules.is_broad_location(loc) or loc.lower() in job_location
            for loc in locations
        )
        return LOCATION_HIT if hit else LOCATION_MISS


def _role_notes(role: RoleMatch) -> tuple[list[str], list[str]]:
    if role.kind == "exact":
        return [f'Exact match for "{role.term}"'], []
    if role.kind in ("family", "specific"):
        return [f'Partial match for "{role.term}"'], []
    return [], ["No clear role match found"]


def _reasoning(role: RoleMatch, job: JobRecord, criteria: ParsedSearchCriteria) -> str:
    wanted = criteria.role.primary
    if role.kind == "exact":
        return f'Strong match: "{job.title}" closely matches your search for "{wanted}"'
    if role.kind in ("family", "specific"):
        return f'Partial match: "{job.title}" has some relevance to "{wanted}"'
    return f'Limited match: "{job.title}" may not be what you\'re looking for'


class ResilientScorer(Scorer):
    """Model scorer first; keyword scores for the whole batch on any model failure."""

    def __init__(self, primary: Scorer, fallback: Scorer) -> None:
        self._primary = primary
        self._fallback = fallback

    def score(self, criteria: ParsedSearchCriteria, jobs: list[JobRecord]) -> list[ScoredJob]:
        if not jobs:
            return []
        try:
            return self._primary.score(criteria, jobs)
        except (ProviderUnavailable, MalformedModelOutput):
            logger.warning(
                "Model scoring failed for %d jobs - using keyword scores", len(jobs),
                exc_info=True,
            )
            return self._fallback.score(criteria, jobs)
