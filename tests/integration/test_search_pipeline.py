"""Integration test: full search and refine flow against a real SQLite store, mock provider."""

import base64
import json
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from main import main
from src.core.config import Settings
from src.core.db import SQLiteJobStore, init_db, upsert_job
from src.core.errors import RefinementFailure, TranscriptionFailure
from src.core.schemas import (
    JobRecord,
    LocationCriteria,
    ParsedSearchCriteria,
    RefineRequest,
    RoleCriteria,
    SearchRequest,
)
from src.pipeline.orchestrator import TRANSCRIPTION_ERROR, SearchService
from src.pipeline.parser import FALLBACK_PARSE_NOTE
from src.pipeline.scorer import FALLBACK_SCORE_NOTE

JOBS_EXAMPLE = Path(__file__).parent.parent.parent / "config" / "jobs.example.yaml"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job(
    job_id: str,
    title: str,
    location: str,
    *,
    role: str = "",
    created_days_ago: int = 1,
    **kw: object,
) -> JobRecord:
    return JobRecord(
        id=job_id,
        title=title,
        professional_role=role,
        location=location,
        url_slug=f"{job_id}-slug",
        created_at=datetime.now() - timedelta(days=created_days_ago),
        **kw,  # type: ignore[arg-type]
    )


def _store(tmp_path: Path, jobs: list[JobRecord]) -> SQLiteJobStore:
    conn = init_db(tmp_path / "jobs.db")
    for job in jobs:
        upsert_job(conn, job)
    return SQLiteJobStore(conn)


def _down_provider() -> MagicMock:
    """Provider whose every call fails, forcing the deterministic paths."""
    provider = MagicMock()
    provider.complete_chat.side_effect = ConnectionError("provider unreachable")
    return provider


def _replying_provider(*replies: object) -> MagicMock:
    provider = MagicMock()
    provider.complete_chat.side_effect = [json.dumps(r) for r in replies]
    return provider


def _score_entry(job_id: str, overall: int) -> dict[str, object]:
    return {
        "jobId": job_id,
        "score": {
            "overallScore": overall,
            "breakdown": {
                "roleMatch": overall,
                "locationMatch": 90,
                "requirementsMatch": 80,
                "preferencesMatch": 80,
                "compensationMatch": 80,
                "cultureMatch": 80,
            },
            "highlights": [],
            "concerns": [],
            "missingInfo": [],
        },
        "reasoning": f"Model reasoning for {job_id}",
    }


def _service(tmp_path: Path, jobs: list[JobRecord], provider: MagicMock) -> SearchService:
    return SearchService.from_settings(Settings(), provider, _store(tmp_path, jobs))


# ---------------------------------------------------------------------------
# Search scenarios
# ---------------------------------------------------------------------------


class TestSearchScenarios:
    def test_live_in_chef_in_hamptons(self, tmp_path: Path) -> None:
        jobs = [
            _job("chef-1", "Private Chef - French Cuisine Specialist", "Hamptons, NY"),
            _job("nanny-1", "Nanny", "New York, NY"),
        ]
        service = _service(tmp_path, jobs, _down_provider())

        response = service.search(SearchRequest(query="live-in chef for a family in the Hamptons"))

        assert response.parsed_search.role.primary in ("Chef", "Private Chef")
        assert response.parsed_search.work_style.living == "live-in"
        assert [m.job_id for m in response.matches] == ["chef-1"]
        assert response.matches[0].score.breakdown.role_match >= 70
        assert response.matches[0].link == "/dashboard/jobs/chef-1-slug"
        assert response.total_matches == 1

    def test_estate_manager_excludes_security_director(self, tmp_path: Path) -> None:
        jobs = [
            _job("sec-1", "Security Director", "Malibu, California", role="Security"),
            _job("est-1", "Estate Manager - Multiple Properties", "Montecito, California"),
        ]
        service = _service(tmp_path, jobs, _down_provider())

        response = service.search(SearchRequest(query="estate manager, $100k+, California"))

        assert response.parsed_search.compensation.range_min == 100000
        assert [m.job_id for m in response.matches] == ["est-1"]

    def test_role_veto_overrides_high_model_scores(self, tmp_path: Path) -> None:
        jobs = [
            _job("sec-1", "Security Director", "Malibu, California", role="Security"),
            _job("but-1", "Butler", "Beverly Hills, California", role="Butler"),
            _job("est-1", "Estate Manager - Multiple Properties", "Montecito, California"),
        ]
        parse_reply = {
            "parsedSearch": {
                "role": {"primary": "Estate Manager", "alternatives": ["Property Manager"], "confidence": 95},
                "location": {"primaryLocations": ["California"]},
                "overallConfidence": 90,
            },
            "summary": {"intentDescription": "Estate manager in California"},
        }
        score_reply = [_score_entry("sec-1", 97), _score_entry("but-1", 96), _score_entry("est-1", 91)]
        service = _service(tmp_path, jobs, _replying_provider(parse_reply, score_reply))

        response = service.search(SearchRequest(query="estate manager in California"))

        assert [m.job_id for m in response.matches] == ["est-1"]
        assert response.matches[0].reasoning == "Model reasoning for est-1"

    def test_empty_query_empty_pool(self, tmp_path: Path) -> None:
        service = _service(tmp_path, [], _down_provider())

        response = service.search(SearchRequest(query=""))

        assert response.matches == []
        assert response.total_matches == 0
        assert response.summary.suggested_refinements
        dumped = response.model_dump(by_alias=True)
        assert dumped["totalMatches"] == 0
        assert dumped["summary"]["suggestedRefinements"]

    def test_irrelevant_query_gets_suggestions(self, tmp_path: Path) -> None:
        jobs = [_job("chef-1", "Private Chef", "Aspen, CO")]
        service = _service(tmp_path, jobs, _down_provider())

        response = service.search(SearchRequest(query="butler in London, live-in"))

        assert response.matches == []
        suggestions = response.summary.suggested_refinements
        assert any("nationwide" in s for s in suggestions)
        assert any("live-in and live-out" in s for s in suggestions)


# ---------------------------------------------------------------------------
# Degradation and bounds
# ---------------------------------------------------------------------------


class TestDegradation:
    def test_provider_down_still_returns_ranked_results(self, tmp_path: Path) -> None:
        jobs = [
            _job("1", "Nanny", "Manhattan, New York", created_days_ago=1),
            _job("2", "Governess", "Brooklyn, New York", created_days_ago=2),
            _job("3", "Private Chef", "New York, NY", created_days_ago=3),
        ]
        provider = _down_provider()
        service = _service(tmp_path, jobs, provider)

        response = service.search(SearchRequest(query="nanny in manhattan"))

        assert FALLBACK_PARSE_NOTE in response.parsed_search.ambiguities
        assert [m.job_id for m in response.matches] == ["1", "2"]
        assert all(FALLBACK_SCORE_NOTE in m.score.missing_info for m in response.matches)
        # parse + score attempted once each
        assert provider.complete_chat.call_count == 2

    def test_malformed_scores_fall_back_for_whole_batch(self, tmp_path: Path) -> None:
        jobs = [_job("1", "Butler", "Palm Beach, FL"), _job("2", "Head Butler", "Palm Beach, FL")]
        parse_reply = {"parsedSearch": {"role": {"primary": "Butler"}}}
        # only one of two jobs scored
        service = _service(
            tmp_path, jobs, _replying_provider(parse_reply, [_score_entry("1", 90)]),
        )

        response = service.search(SearchRequest(query="butler"))

        assert {m.job_id for m in response.matches} == {"1", "2"}
        assert all(FALLBACK_SCORE_NOTE in m.score.missing_info for m in response.matches)

    def test_results_sorted_capped_and_in_range(self, tmp_path: Path) -> None:
        jobs = [
            _job(str(i), "Chef" if i % 2 else "Private Chef", "Aspen, CO", created_days_ago=i)
            for i in range(30)
        ]
        service = _service(tmp_path, jobs, _down_provider())

        response = service.search(SearchRequest(query="private chef in aspen"))

        scores = [m.score.overall_score for m in response.matches]
        assert len(response.matches) == 10
        assert scores == sorted(scores, reverse=True)
        assert all(60 <= s <= 100 for s in scores)
        for m in response.matches:
            breakdown = m.score.breakdown.model_dump()
            assert all(0 <= v <= 100 for v in breakdown.values())

    def test_inactive_and_expired_jobs_never_returned(self, tmp_path: Path) -> None:
        jobs = [
            _job("open", "Butler", "Miami, FL"),
            _job("closed", "Butler", "Miami, FL", status="CLOSED"),
            _job("expired", "Butler", "Miami, FL", expires_at=datetime.now() - timedelta(days=2)),
        ]
        service = _service(tmp_path, jobs, _down_provider())

        response = service.search(SearchRequest(query="butler in miami"))

        assert [m.job_id for m in response.matches] == ["open"]


# ---------------------------------------------------------------------------
# Audio input
# ---------------------------------------------------------------------------


class TestAudioSearch:
    def test_transcribed_query_is_searched(self, tmp_path: Path) -> None:
        provider = _down_provider()
        provider.transcribe_audio.return_value = "  butler in miami  "
        service = _service(tmp_path, [_job("1", "Butler", "Miami, FL")], provider)

        audio = base64.b64encode(b"fake-webm-bytes").decode("ascii")
        response = service.search(SearchRequest(audio=audio))

        assert response.original_query == "butler in miami"
        provider.transcribe_audio.assert_called_once_with(b"fake-webm-bytes")
        assert [m.job_id for m in response.matches] == ["1"]

    def test_invalid_base64(self, tmp_path: Path) -> None:
        service = _service(tmp_path, [], _down_provider())
        with pytest.raises(TranscriptionFailure, match="typing your search"):
            service.search(SearchRequest(audio="***not base64***"))

    def test_empty_audio(self, tmp_path: Path) -> None:
        service = _service(tmp_path, [], _down_provider())
        with pytest.raises(TranscriptionFailure):
            service.search(SearchRequest(audio=""))

    def test_transcriber_error(self, tmp_path: Path) -> None:
        provider = _down_provider()
        provider.transcribe_audio.side_effect = RuntimeError("whisper down")
        service = _service(tmp_path, [], provider)
        with pytest.raises(TranscriptionFailure) as exc_info:
            service.search(SearchRequest(audio=base64.b64encode(b"x").decode("ascii")))
        assert str(exc_info.value) == TRANSCRIPTION_ERROR

    def test_blank_transcript(self, tmp_path: Path) -> None:
        provider = _down_provider()
        provider.transcribe_audio.return_value = "   "
        service = _service(tmp_path, [], provider)
        with pytest.raises(TranscriptionFailure):
            service.search(SearchRequest(audio=base64.b64encode(b"x").decode("ascii")))


# ---------------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------------


class TestRefine:
    def _original(self) -> ParsedSearchCriteria:
        return ParsedSearchCriteria(
            role=RoleCriteria(primary="Estate Manager"),
            location=LocationCriteria(
                primary_locations=["California"],
                travel_requirements=["international"],
            ),
        )

    def test_no_travel_feedback_drops_travel(self, tmp_path: Path) -> None:
        original = self._original()
        reply = {"updatedSearch": original.model_dump(by_alias=True), "aiResponse": "Updated."}
        jobs = [_job("est-1", "Estate Manager", "Santa Barbara, California")]
        # refine only: one model call for the criteria, then keyword scoring after a failure
        provider = MagicMock()
        provider.complete_chat.side_effect = [json.dumps(reply), ConnectionError("down")]
        service = _service(tmp_path, jobs, provider)

        result = service.refine(RefineRequest(original_search=original, user_feedback="no travel required"))

        assert "international" not in result.updated_search.location.travel_requirements
        assert "Removed travel requirements" in result.search_changes
        assert [m.job_id for m in result.new_results] == ["est-1"]
        dumped = result.model_dump(by_alias=True)
        assert dumped["updatedSearch"]["location"]["travelRequirements"] == []
        assert dumped["userFeedback"] == "no travel required"

    def test_provider_down_fails_refinement(self, tmp_path: Path) -> None:
        service = _service(tmp_path, [], _down_provider())
        with pytest.raises(RefinementFailure, match="Please try again"):
            service.refine(RefineRequest(original_search=self._original(), user_feedback="no travel"))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestCli:
    def _config(self, tmp_path: Path) -> Path:
        config = tmp_path / "settings.yaml"
        config.write_text(f"database:\n  path: {tmp_path / 'cli.db'}\n")
        return config

    def test_import_then_search(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config = self._config(tmp_path)
        main(["import-jobs", "--file", str(JOBS_EXAMPLE), "--config", str(config)])
        assert "Imported 4 jobs" in capsys.readouterr().out

        with patch("main.get_provider", return_value=_down_provider()):
            main(["search", "--query", "estate manager in California", "--config", str(config)])

        payload = json.loads(capsys.readouterr().out)
        assert payload["parsedSearch"]["role"]["primary"] == "Estate Manager"
        titles = [m["job"]["title"] for m in payload["matches"]]
        assert titles and all("Estate Manager" in t for t in titles)
        assert payload["totalMatches"] == len(payload["matches"])

    def test_refine_failure_exits_nonzero(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = self._config(tmp_path)
        previous = tmp_path / "previous.json"
        previous.write_text(json.dumps({
            "parsedSearch": {"role": {"primary": "Butler"}},
            "matches": [],
        }))

        with (
            patch("main.get_provider", return_value=_down_provider()),
            pytest.raises(SystemExit) as exc_info,
        ):
            main([
                "refine", "--previous", str(previous), "--feedback", "no travel",
                "--config", str(config),
            ])

        assert exc_info.value.code == 1
        assert "Failed to refine search" in capsys.readouterr().err

    def test_missing_config_exits(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["search", "--query", "chef", "--config", str(tmp_path / "nope.yaml")])
        assert exc_info.value.code == 1
