"""Job store interface and the filter predicate it accepts."""

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.schemas import JobRecord

JobField = Literal["title", "professional_role", "location"]


class JobCondition(BaseModel):
    """Case-insensitive substring test against one job field."""

    model_config = ConfigDict(frozen=True)

    field: JobField
    contains: str

    @field_validator("contains")
    @classmethod
    def contains_lowercase(cls, v: str) -> str:
        v = v.lower().strip()
        if not v:
            msg = "contains must not be empty"
            raise ValueError(msg)
        return v

    def matches(self, job: JobRecord) -> bool:
        return self.contains in getattr(job, self.field).lower()


class JobPredicate(BaseModel):
    """OR of substring conditions. No conditions means no filtering."""

    model_config = ConfigDict(frozen=True)

    conditions: tuple[JobCondition, ...] = Field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.conditions

    def matches(self, job: JobRecord) -> bool:
        if self.is_empty:
            return True
        return any(c.matches(job) for c in self.conditions)


class JobStore(ABC):
    """Read-only access to job postings."""

    @abstractmethod
    def find_active_jobs(self, predicate: JobPredicate, limit: int) -> list[JobRecord]:
        """Return up to ``limit`` ACTIVE, unexpired jobs matching ``predicate``, newest first."""
