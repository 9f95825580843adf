"""Candidate retrieval: criteria → bounded job-store predicate → newest candidates.

Role conditions (primary role and alternatives, plus role-specific words of
multi-word terms) and location conditions are OR-ed into one predicate. When
neither yields a condition, the full active pool is fetched and the relevance
filter does the narrowing.
"""

import logging

from src.core.config import MAX_CANDIDATES, SearchConfig
from src.core.schemas import JobRecord, ParsedSearchCriteria
from src.core.store import JobCondition, JobPredicate, JobStore
from src.pipeline.roles import RoleRules

logger = logging.getLogger(__name__)

_MIN_LOCATION_WORD = 3
_PUNCTUATION = ",.;:()"


def _role_conditions(criteria: ParsedSearchCriteria, rules: RoleRules) -> list[JobCondition]:
    if rules.is_generic(criteria.role.primary):
        return []
    conditions: list[JobCondition] = []
    for term in criteria.role.terms:
        for needle in [term, *rules.specific_words(term)]:
            conditions.append(JobCondition(field="title", contains=needle))
            conditions.append(JobCondition(field="professional_role", contains=needle))
    return conditions


def _location_conditions(criteria: ParsedSearchCriteria, rules: RoleRules) -> list[JobCondition]:
    location = criteria.location
    if location.flexibility == "national":
        return []
    conditions: list[JobCondition] = []
    for place in location.primary_locations:
        if rules.is_broad_location(place):
            continue
        for word in place.lower().split():
            word = word.strip(_PUNCTUATION)
            if len(word) >= _MIN_LOCATION_WORD:
                conditions.append(JobCondition(field="location", contains=word))
    return conditions


def build_predicate(criteria: ParsedSearchCriteria, rules: RoleRules) -> JobPredicate:
    """Translate criteria into a single OR predicate over title, role tag and location."""
    conditions = _role_conditions(criteria, rules) + _location_conditions(criteria, rules)
    # dict.fromkeys keeps first-seen order
    return JobPredicate(conditions=tuple(dict.fromkeys(conditions)))


class CandidateRetriever:
    """Fetches at most ``candidate_limit`` (never more than 50) active jobs per search."""

    def __init__(self, store: JobStore, config: SearchConfig, rules: RoleRules) -> None:
        self._store = store
        self._limit = min(config.candidate_limit, MAX_CANDIDATES)
        self._rules = rules

    def retrieve(self, criteria: ParsedSearchCriteria) -> list[JobRecord]:
        predicate = build_predicate(criteria, self._rules)
        if predicate.is_empty:
            logger.info("No role or location conditions - fetching all active jobs")
        else:
            logger.debug("Retrieval predicate: %s", predicate.model_dump_json())

        jobs = self._store.find_active_jobs(predicate, self._limit)
        logger.info("Retrieved %d candidate jobs", len(jobs))
        return jobs[: self._limit]
