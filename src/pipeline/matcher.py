"""Relevance filter chain and ranking for scored candidates.

Filter order:
  1. MinScoreFilter: drop overallScore below the threshold (60)
  2. RoleRelevanceFilter: hard role veto for non-generic searches, regardless of score

Survivors are sorted by overallScore descending (stable) and truncated to 10.
"""

import logging
from collections.abc import Callable

from src.core.config import MAX_RESULTS, SearchConfig
from src.core.schemas import Match, ParsedSearchCriteria, ScoredJob
from src.pipeline.roles import RoleRules

logger = logging.getLogger(__name__)

# A filter is a callable that takes scored candidates and returns a subset.
Filter = Callable[[list[ScoredJob]], list[ScoredJob]]


class MinScoreFilter:
    """Remove candidates whose overall score is below ``min_score``."""

    def __init__(self, min_score: int) -> None:
        self._min_score = min_score

    def __call__(self, scored: list[ScoredJob]) -> list[ScoredJob]:
        result = [s for s in scored if s.score.overall_score >= self._min_score]
        removed = len(scored) - len(result)
        if removed:
            logger.debug("MinScoreFilter: removed %d candidates below %d", removed, self._min_score)
        return result


class RoleRelevanceFilter:
    """Keep only jobs whose title or role tag relates to a searched role term.

    No-op when the search names no role or only the generic placeholder role.
    """

    def __init__(self, criteria: ParsedSearchCriteria, rules: RoleRules) -> None:
        self._rules = rules
        self._terms = criteria.role.terms
        self._active = not rules.is_generic(criteria.role.primary)

    def __call__(self, scored: list[ScoredJob]) -> list[ScoredJob]:
        if not self._active:
            return scored
        result = [s for s in scored if self._rules.is_relevant(self._terms, s.job)]
        removed = len(scored) - len(result)
        if removed:
            logger.debug("RoleRelevanceFilter: vetoed %d off-role candidates", removed)
        return result


def run_filter_chain(scored: list[ScoredJob], filters: list[Filter]) -> list[ScoredJob]:
    """Apply filters in order, returning the surviving candidates."""
    result = scored
    for f in filters:
        result = f(result)
    return result


def build_reasoning(scored: ScoredJob) -> str:
    """Scorer reasoning, or a sentence built from highlights and concerns."""
    if scored.reasoning.strip():
        return scored.reasoning
    parts = []
    if scored.score.highlights:
        parts.append("Highlights: " + "; ".join(scored.score.highlights) + ".")
    if scored.score.concerns:
        parts.append("Concerns: " + "; ".join(scored.score.concerns) + ".")
    if not parts:
        return f'"{scored.job.title}" scored {scored.score.overall_score}/100.'
    return " ".join(parts)


def to_match(scored: ScoredJob, link_prefix: str) -> Match:
    return Match(
        job_id=scored.job.id,
        job=scored.job,
        score=scored.score,
        reasoning=build_reasoning(scored),
        link=f"{link_prefix}{scored.job.url_slug}",
    )


def rank_matches(
    scored: list[ScoredJob],
    criteria: ParsedSearchCriteria,
    rules: RoleRules,
    config: SearchConfig,
) -> list[Match]:
    """Filter, sort by overall score (stable, descending) and cap the result list."""
    filters: list[Filter] = [
        MinScoreFilter(config.min_overall_score),
        RoleRelevanceFilter(criteria, rules),
    ]
    survivors = run_filter_chain(scored, filters)
    # sorted() is stable with reverse=True: equal scores keep input order
    ranked = sorted(survivors, key=lambda s: s.score.overall_score, reverse=True)
    limit = min(config.result_limit, MAX_RESULTS)

    logger.info("Filtered %d scored candidates to %d relevant matches", len(scored), len(survivors))
    return [to_match(s, config.link_prefix) for s in ranked[:limit]]
