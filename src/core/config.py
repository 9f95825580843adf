"""Configuration models and YAML loader for the job search engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

MAX_CANDIDATES = 50
MAX_RESULTS = 10


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/jobs.db"


class LLMConfig(BaseModel):
    """Language-model provider settings and per-call generation parameters."""

    provider: str = "openai"
    model: str | None = None
    transcription_model: str = "whisper-1"
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=2, ge=0, le=5)

    parse_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    parse_max_tokens: int = Field(default=1500, ge=1)
    score_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    score_max_tokens: int = Field(default=2500, ge=1)
    refine_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    refine_max_tokens: int = Field(default=1000, ge=1)

    @field_validator("provider")
    @classmethod
    def provider_lowercase(cls, v: str) -> str:
        v = v.lower().strip()
        if not v:
            msg = "provider must not be empty"
            raise ValueError(msg)
        return v


class SearchConfig(BaseModel):
    """Retrieval, filtering and ranking limits."""

    candidate_limit: int = Field(default=MAX_CANDIDATES, ge=1, le=MAX_CANDIDATES)
    result_limit: int = Field(default=MAX_RESULTS, ge=1, le=MAX_RESULTS)
    min_overall_score: int = Field(default=60, ge=0, le=100)
    description_chars: int = Field(default=200, ge=0)
    link_prefix: str = "/dashboard/jobs/"


class RoleFamily(BaseModel):
    """A role family: search terms containing ``trigger`` match jobs by these words.

    A job field matches when it contains any word of ``any_of``, or every word of
    one of the ``all_of`` groups.
    """

    trigger: str
    any_of: list[str] = Field(default_factory=list)
    all_of: list[list[str]] = Field(default_factory=list)

    @field_validator("trigger")
    @classmethod
    def trigger_lowercase(cls, v: str) -> str:
        v = v.lower().strip()
        if not v:
            msg = "trigger must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("any_of")
    @classmethod
    def any_of_lowercase(cls, v: list[str]) -> list[str]:
        return [w.lower().strip() for w in v if w.strip()]

    @field_validator("all_of")
    @classmethod
    def all_of_lowercase(cls, v: list[list[str]]) -> list[list[str]]:
        groups = [[w.lower().strip() for w in group if w.strip()] for group in v]
        return [g for g in groups if g]


class RoleSynonym(BaseModel):
    """Keyword rule used by the fallback parser to name the searched role."""

    phrases: list[str]
    primary: str
    alternatives: list[str] = Field(default_factory=list)


class LocationPhrase(BaseModel):
    """Gazetteer entry: any of ``phrases`` in a query means ``location``."""

    phrases: list[str]
    location: str


def _default_families() -> list[RoleFamily]:
    return [
        RoleFamily(
            trigger="estate manager",
            any_of=["estate", "property"],
            all_of=[["house", "manager"]],
        ),
        RoleFamily(trigger="house manager", any_of=["house", "estate", "household"]),
        RoleFamily(trigger="housekeeper", any_of=["housekeeper", "housekeeping"]),
    ]


def _default_synonyms() -> list[RoleSynonym]:
    return [
        RoleSynonym(
            phrases=["estate manager", "estate management"],
            primary="Estate Manager",
            alternatives=["Property Manager", "Estate Management"],
        ),
        RoleSynonym(
            phrases=["house manager", "house management"],
            primary="House Manager",
            alternatives=["Estate Manager", "Household Manager"],
        ),
        RoleSynonym(
            phrases=["private chef", "executive chef"],
            primary="Private Chef",
            alternatives=["Executive Chef", "Personal Chef"],
        ),
        RoleSynonym(
            phrases=["chef"],
            primary="Chef",
            alternatives=["Private Chef", "Executive Chef"],
        ),
        RoleSynonym(
            phrases=["executive housekeeper"],
            primary="Executive Housekeeper",
            alternatives=["Housekeeper", "Housekeeping Manager"],
        ),
        RoleSynonym(
            phrases=["housekeeper", "housekeeping"],
            primary="Housekeeper",
            alternatives=["Executive Housekeeper"],
        ),
        RoleSynonym(
            phrases=["nanny", "childcare"],
            primary="Nanny",
            alternatives=["Governess", "Family Assistant"],
        ),
        RoleSynonym(
            phrases=["personal assistant", "executive assistant"],
            primary="Personal Assistant",
            alternatives=["Executive Assistant", "Family Assistant"],
        ),
        RoleSynonym(phrases=["butler"], primary="Butler", alternatives=["House Manager"]),
    ]


def _default_locations() -> list[LocationPhrase]:
    return [
        LocationPhrase(phrases=["united states", "usa", "anywhere"], location="United States"),
        LocationPhrase(phrases=["new york", "manhattan"], location="New York"),
        LocationPhrase(phrases=["california", "los angeles"], location="California"),
        LocationPhrase(phrases=["hamptons"], location="Hamptons"),
        LocationPhrase(phrases=["palm beach"], location="Palm Beach"),
        LocationPhrase(phrases=["miami"], location="Miami"),
        LocationPhrase(phrases=["aspen"], location="Aspen"),
        LocationPhrase(phrases=["london"], location="London"),
    ]


class RoleRulesConfig(BaseModel):
    """Keyword tables behind fallback parsing, retrieval, fallback scoring and the role veto."""

    generic_role: str = "General Position"
    specific_words: list[str] = Field(
        default_factory=lambda: ["estate", "butler", "sommelier", "chef", "governess", "nanny"],
    )
    families: list[RoleFamily] = Field(default_factory=_default_families)
    synonyms: list[RoleSynonym] = Field(default_factory=_default_synonyms)
    locations: list[LocationPhrase] = Field(default_factory=_default_locations)
    broad_locations: list[str] = Field(default_factory=lambda: ["united states", "usa"])
    national_location: str = "United States"

    @field_validator("specific_words", "broad_locations")
    @classmethod
    def words_lowercase(cls, v: list[str]) -> list[str]:
        return [w.lower().strip() for w in v if w.strip()]


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    roles: RoleRulesConfig = Field(default_factory=RoleRulesConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
