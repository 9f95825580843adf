"""LLM-assisted match scoring: one batched request for the whole candidate set."""

import logging

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from src.core.config import LLMConfig, SearchConfig
from src.core.errors import MalformedModelOutput, ProviderUnavailable
from src.core.schemas import JobRecord, MatchScore, ParsedSearchCriteria, ScoredJob
from src.llm.base import LLMProvider, parse_json_response
from src.pipeline.scorer import Scorer

logger = logging.getLogger(__name__)

_SCORING_SYSTEM_PROMPT = (
    "You are an expert job matching specialist. Always return valid JSON."
)

_SCORING_PROMPT = """\
You are a strict job matching specialist. Score these jobs against the search \
criteria with HIGH PRECISION. Only jobs that closely match the requested role \
should receive high scores.

IMPORTANT: Be very strict about role matching. If someone searches for "Estate \
Manager", do not give high scores to Butler, Security Director, or other \
unrelated roles, even if they contain the word "manager".

SEARCH CRITERIA:
{criteria}

JOBS:
{jobs}

SCORING GUIDELINES:
- roleMatch: 90-100 for exact role matches, 70-89 for closely related roles, \
50-69 for somewhat related, 0-49 for unrelated roles
- Only give high overall scores (80+) to jobs that are genuinely relevant to the search
- Be strict: Butler != Estate Manager, Security Director != Estate Manager, etc.
- Every score is an integer 0-100. Score every job listed above exactly once.

Return ONLY a JSON array (no markdown, no explanation):
[{{
  "jobId": "job-id",
  "score": {{
    "overallScore": 85,
    "breakdown": {{
      "roleMatch": 90,
      "locationMatch": 80,
      "requirementsMatch": 85,
      "preferencesMatch": 80,
      "compensationMatch": 90,
      "cultureMatch": 85
    }},
    "highlights": ["Perfect role match"],
    "concerns": ["Salary slightly below range"],
    "missingInfo": ["Work schedule not specified"]
  }},
  "reasoning": "Detailed explanation of match quality"
}}]"""


class _ScoreEntry(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True,
    )

    job_id: str
    score: MatchScore
    reasoning: str = ""


_ENTRIES = TypeAdapter(list[_ScoreEntry])


def _format_salary(job: JobRecord) -> str:
    if job.salary is None:
        return "Not specified"
    return f"${job.salary.min or 0}-{job.salary.max or 0}"


def _build_jobs_section(jobs: list[JobRecord], description_chars: int) -> str:
    lines = []
    for i, job in enumerate(jobs, start=1):
        lines.append(
            f"{i}. ID: {job.id}\n"
            f"   Title: {job.title}\n"
            f"   Professional Role: {job.professional_role or 'Not specified'}\n"
            f"   Location: {job.location or 'Not specified'}\n"
            f"   Salary: {_format_salary(job)}\n"
            f"   Description: {job.description[:description_chars]}...\n"
        )
    return "\n".join(lines)


def build_scoring_prompt(
    criteria: ParsedSearchCriteria,
    jobs: list[JobRecord],
    description_chars: int = 200,
) -> str:
    """Assemble the batched scoring prompt from criteria and candidates."""
    return _SCORING_PROMPT.format(
        criteria=criteria.model_dump_json(by_alias=True, indent=2),
        jobs=_build_jobs_section(jobs, description_chars),
    )


def parse_scores(raw_text: str, jobs: list[JobRecord]) -> list[ScoredJob]:
    """Validate the model's score array and pair entries back to jobs by id.

    Unknown ids are ignored and the first entry per id wins. Raises
    MalformedModelOutput when the shape is wrong or any job was left unscored.
    """
    data = parse_json_response(raw_text)
    try:
        entries = _ENTRIES.validate_python(data)
    except ValidationError as e:
        msg = f"LLM score response does not match the score schema: {e}"
        raise MalformedModelOutput(msg) from e

    by_id: dict[str, _ScoreEntry] = {}
    for entry in entries:
        by_id.setdefault(entry.job_id, entry)

    missing = [job.id for job in jobs if job.id not in by_id]
    if missing:
        msg = f"LLM score response missing {len(missing)} of {len(jobs)} jobs: {missing[:5]}"
        raise MalformedModelOutput(msg)

    return [
        ScoredJob(job=job, score=by_id[job.id].score, reasoning=by_id[job.id].reasoning)
        for job in jobs
    ]


class ModelScorer(Scorer):
    """Scores the whole candidate batch in a single LLM request."""

    def __init__(
        self,
        provider: LLMProvider,
        config: LLMConfig,
        search_config: SearchConfig | None = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._description_chars = (search_config or SearchConfig()).description_chars

    def score(self, criteria: ParsedSearchCriteria, jobs: list[JobRecord]) -> list[ScoredJob]:
        if not jobs:
            return []

        prompt = build_scoring_prompt(criteria, jobs, self._description_chars)
        try:
            raw = self._provider.complete_chat(
                prompt,
                system=_SCORING_SYSTEM_PROMPT,
                temperature=self._config.score_temperature,
                max_tokens=self._config.score_max_tokens,
            )
        except Exception as e:
            msg = f"LLM scoring call failed: {e}"
            raise ProviderUnavailable(msg) from e

        scored = parse_scores(raw, jobs)
        logger.info("Model scored %d jobs", len(scored))
        return scored
