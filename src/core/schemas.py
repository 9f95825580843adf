"""Core data models for the job search engine.

All models are frozen and exchanged in camelCase on the wire (``by_alias=True``);
Python code constructs them with snake_case field names.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

ACTIVE_STATUS = "ACTIVE"


def clamp_score(value: Any) -> int:
    """Round a numeric score and clamp it into 0-100.

    Raises ValueError for anything that is not a real number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"score must be a number, got {type(value).__name__}"
        raise ValueError(msg)
    return max(0, min(100, round(value)))


Score = Annotated[int, BeforeValidator(clamp_score)]


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Search criteria
# ---------------------------------------------------------------------------


class RoleCriteria(_Model):
    primary: str
    alternatives: list[str] = Field(default_factory=list)
    confidence: Score = 0

    @property
    def terms(self) -> list[str]:
        """Primary role followed by alternatives, blanks removed."""
        return [t for t in [self.primary, *self.alternatives] if t and t.strip()]


class LocationCriteria(_Model):
    primary_locations: list[str] = Field(default_factory=list)
    flexibility: Literal["none", "regional", "national", "international"] = "none"
    travel_requirements: list[str] = Field(default_factory=list)


class WorkStyle(_Model):
    living: Literal["live-in", "live-out", "flexible"] = "flexible"
    schedule: list[str] = Field(default_factory=list)
    overtime: Literal["none", "occasional", "regular"] = "none"


class ClientProfile(_Model):
    family_size: str = ""
    children: Literal["none", "young", "teenagers", "mixed"] = "none"
    lifestyle: list[str] = Field(default_factory=list)
    special_needs: list[str] = Field(default_factory=list)


class Qualifications(_Model):
    experience_years: int = Field(default=0, ge=0)
    specialties: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)


class Compensation(_Model):
    range_min: int | None = Field(default=None, ge=0)
    range_max: int | None = Field(default=None, ge=0)
    benefits: list[str] = Field(default_factory=list)
    flexible: bool = True

    @model_validator(mode="after")
    def range_ordered(self) -> "Compensation":
        if (
            self.range_min is not None
            and self.range_max is not None
            and self.range_min > self.range_max
        ):
            msg = f"rangeMin {self.range_min} exceeds rangeMax {self.range_max}"
            raise ValueError(msg)
        return self


class Preferences(_Model):
    privacy_level: Literal["standard", "high", "celebrity"] = "standard"
    growth: list[str] = Field(default_factory=list)
    culture: list[str] = Field(default_factory=list)

    @field_validator("privacy_level", mode="before")
    @classmethod
    def normalize_privacy(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() == "celebrity-level":
            return "celebrity"
        return v


class ParsedSearchCriteria(_Model):
    """Structured search intent. Superseded by refinement, never mutated."""

    role: RoleCriteria
    location: LocationCriteria = Field(default_factory=LocationCriteria)
    work_style: WorkStyle = Field(default_factory=WorkStyle)
    client_profile: ClientProfile = Field(default_factory=ClientProfile)
    qualifications: Qualifications = Field(default_factory=Qualifications)
    compensation: Compensation = Field(default_factory=Compensation)
    preferences: Preferences = Field(default_factory=Preferences)
    overall_confidence: Score = 0
    ambiguities: list[str] = Field(default_factory=list)


class SearchSummary(_Model):
    intent_description: str = ""
    must_have: list[str] = Field(default_factory=list)
    preferred: list[str] = Field(default_factory=list)
    deal_breakers: list[str] = Field(default_factory=list)
    clarification_questions: list[str] = Field(default_factory=list)
    suggested_refinements: list[str] = Field(default_factory=list)


class ParseResult(_Model):
    """Parser output; wire keys follow the model prompt (``parsedSearch``/``summary``)."""

    criteria: ParsedSearchCriteria = Field(alias="parsedSearch")
    summary: SearchSummary = Field(default_factory=SearchSummary)


# ---------------------------------------------------------------------------
# Jobs and scores
# ---------------------------------------------------------------------------


class SalaryRange(_Model):
    min: int | None = None
    max: int | None = None


class JobRecord(_Model):
    """A job posting as read from the job store. Never written by the search core."""

    id: str
    title: str
    professional_role: str = ""
    location: str = ""
    description: str = ""
    salary: SalaryRange | None = None
    status: str = ACTIVE_STATUS
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    url_slug: str = ""
    employer: str = ""

    @field_validator("status")
    @classmethod
    def status_uppercase(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("expires_at", "created_at")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        """Naive timestamps are taken as local time; everything is kept in UTC."""
        return v.astimezone(timezone.utc) if v is not None else None


class ScoreBreakdown(_Model):
    role_match: Score
    location_match: Score
    requirements_match: Score
    preferences_match: Score
    compensation_match: Score
    culture_match: Score


class MatchScore(_Model):
    overall_score: Score
    breakdown: ScoreBreakdown
    highlights: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    missing_info: list[str] = Field(default_factory=list)


class ScoredJob(_Model):
    """Pairs a candidate job with its score and the scorer's reasoning."""

    job: JobRecord
    score: MatchScore
    reasoning: str = ""


class Match(_Model):
    job_id: str
    job: JobRecord
    score: MatchScore
    reasoning: str
    link: str


# ---------------------------------------------------------------------------
# Requests and responses
# ---------------------------------------------------------------------------


class SearchRequest(_Model):
    """A search is either typed text or base64-encoded audio, never both."""

    query: str | None = None
    audio: str | None = None

    @model_validator(mode="after")
    def exactly_one_input(self) -> "SearchRequest":
        if (self.query is None) == (self.audio is None):
            msg = "exactly one of 'query' or 'audio' is required"
            raise ValueError(msg)
        return self


class SearchResponse(_Model):
    original_query: str
    parsed_search: ParsedSearchCriteria
    summary: SearchSummary
    matches: list[Match]
    total_matches: int


class RefineRequest(_Model):
    original_search: ParsedSearchCriteria
    user_feedback: str
    previous_results: list[Match] = Field(default_factory=list)

    @field_validator("user_feedback")
    @classmethod
    def feedback_not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "userFeedback must not be empty"
            raise ValueError(msg)
        return v.strip()


class RefinementResult(_Model):
    user_feedback: str
    ai_response: str
    updated_search: ParsedSearchCriteria
    new_results: list[Match]
    search_changes: list[str] = Field(default_factory=list)
