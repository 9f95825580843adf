"""Role-family keyword rules shared by retrieval, fallback scoring and the role veto.

A criteria role term matches a job (title or professional role tag) at one of
three strengths, checked in order:

  exact (95): the whole term is a substring of the title or role tag
  family (80): the term names a role family and the job fits it
  specific (70): a multi-word term without a family shares a highly
      role-specific word (estate, butler, chef, ...) with the job

Generic words like "manager" are never used on their own.
"""

import re
from typing import NamedTuple

from src.core.config import RoleFamily, RoleRulesConfig
from src.core.schemas import JobRecord

EXACT_SCORE = 95
FAMILY_SCORE = 80
SPECIFIC_SCORE = 70


class RoleMatch(NamedTuple):
    score: int
    kind: str  # "exact" | "family" | "specific" | "none"
    term: str


NO_MATCH = RoleMatch(0, "none", "")


class RoleRules:
    """Evaluates role terms and locations against jobs using a RoleRulesConfig table."""

    def __init__(self, config: RoleRulesConfig | None = None) -> None:
        self.config = config or RoleRulesConfig()
        self._specific = set(self.config.specific_words)
        self._broad = [
            re.compile(rf"\b{re.escape(phrase)}\b") for phrase in self.config.broad_locations
        ]

    def is_generic(self, primary: str) -> bool:
        """True for a blank role or the fallback parser's placeholder role."""
        return not primary.strip() or primary.strip().lower() == self.config.generic_role.lower()

    def specific_words(self, term: str) -> list[str]:
        """Role-specific words of a multi-word term, in term order."""
        words = term.lower().split()
        if len(words) < 2:
            return []
        return [w for w in words if w in self._specific]

    def family_for(self, term: str) -> RoleFamily | None:
        term_lower = term.lower()
        for family in self.config.families:
            if family.trigger in term_lower:
                return family
        return None

    def match_term(self, term: str, job: JobRecord) -> RoleMatch:
        term_lower = term.lower().strip()
        if not term_lower:
            return NO_MATCH
        fields = (job.title.lower(), job.professional_role.lower())

        if any(term_lower in f for f in fields):
            return RoleMatch(EXACT_SCORE, "exact", term)

        family = self.family_for(term_lower)
        if family is not None:
            if any(_fits_family(family, f) for f in fields):
                return RoleMatch(FAMILY_SCORE, "family", term)
            return NO_MATCH

        for word in self.specific_words(term_lower):
            if any(word in f for f in fields):
                return RoleMatch(SPECIFIC_SCORE, "specific", term)
        return NO_MATCH

    def best_match(self, terms: list[str], job: JobRecord) -> RoleMatch:
        """Strongest match over all terms; the earliest term wins ties."""
        best = NO_MATCH
        for term in terms:
            match = self.match_term(term, job)
            if match.score > best.score:
                best = match
        return best

    def is_relevant(self, terms: list[str], job: JobRecord) -> bool:
        return self.best_match(terms, job).kind != "none"

    def is_broad_location(self, location: str) -> bool:
        """True for nationwide phrases such as "United States" or "USA"."""
        location_lower = location.lower()
        return any(p.search(location_lower) for p in self._broad)


def _fits_family(family: RoleFamily, field: str) -> bool:
    if any(word in field for word in family.any_of):
        return True
    return any(all(word in field for word in group) for group in family.all_of)
