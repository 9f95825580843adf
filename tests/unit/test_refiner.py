"""Tests for conversational refinement."""

import json
from unittest.mock import MagicMock

import pytest

from src.core.config import LLMConfig
from src.core.errors import RefinementFailure
from src.core.schemas import (
    JobRecord,
    LocationCriteria,
    Match,
    MatchScore,
    ParsedSearchCriteria,
    RoleCriteria,
    ScoreBreakdown,
    WorkStyle,
)
from src.pipeline.refiner import REFINEMENT_ERROR, RefinementEngine, apply_feedback_directives

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _criteria(
    travel: list[str] | None = None,
    living: str = "flexible",
) -> ParsedSearchCriteria:
    return ParsedSearchCriteria(
        role=RoleCriteria(primary="Estate Manager", alternatives=["Property Manager"]),
        location=LocationCriteria(
            primary_locations=["California"],
            travel_requirements=travel or [],
        ),
        work_style=WorkStyle(living=living),  # type: ignore[arg-type]
    )


def _match(job_id: str = "1") -> Match:
    breakdown = ScoreBreakdown(
        role_match=90,
        location_match=90,
        requirements_match=80,
        preferences_match=80,
        compensation_match=80,
        culture_match=80,
    )
    return Match(
        job_id=job_id,
        job=JobRecord(id=job_id, title="Estate Manager", url_slug=f"estate-{job_id}"),
        score=MatchScore(overall_score=88, breakdown=breakdown),
        reasoning="Strong match",
        link=f"/dashboard/jobs/estate-{job_id}",
    )


def _reply(updated: ParsedSearchCriteria, ai_response: str = "", changes: list[str] | None = None) -> str:
    return json.dumps({
        "updatedSearch": updated.model_dump(by_alias=True),
        "aiResponse": ai_response,
        "searchChanges": changes or [],
    })


def _engine(response: str, results: list[Match] | None = None) -> tuple[RefinementEngine, MagicMock, MagicMock]:
    provider = MagicMock()
    provider.complete_chat.return_value = response
    find_matches = MagicMock(return_value=results or [])
    return RefinementEngine(provider, LLMConfig(), find_matches), provider, find_matches


# ---------------------------------------------------------------------------
# apply_feedback_directives
# ---------------------------------------------------------------------------


class TestApplyFeedbackDirectives:
    @pytest.mark.parametrize(
        "feedback",
        ["No travel please", "I don't want to travel", "ideally without any travel", "can't travel"],
    )
    def test_no_travel_clears_requirements(self, feedback: str) -> None:
        updated, changes = apply_feedback_directives(_criteria(travel=["international"]), feedback)
        assert updated.location.travel_requirements == []
        assert changes == ["Removed travel requirements"]

    def test_no_change_when_already_clear(self) -> None:
        original = _criteria()
        updated, changes = apply_feedback_directives(original, "no travel")
        assert updated == original
        assert changes == []

    def test_travel_mentioned_positively(self) -> None:
        updated, changes = apply_feedback_directives(
            _criteria(travel=["seasonal"]), "happy to travel more",
        )
        assert updated.location.travel_requirements == ["seasonal"]
        assert changes == []

    def test_no_live_in(self) -> None:
        updated, changes = apply_feedback_directives(_criteria(living="live-in"), "no live-in roles")
        assert updated.work_style.living == "live-out"
        assert changes == ["Switched to live-out positions"]

    def test_other_fields_untouched(self) -> None:
        original = _criteria(travel=["international"])
        updated, _ = apply_feedback_directives(original, "no travel")
        assert updated.role == original.role
        assert updated.location.primary_locations == ["California"]


# ---------------------------------------------------------------------------
# RefinementEngine
# ---------------------------------------------------------------------------


class TestRefinementEngine:
    def test_returns_updated_search_and_new_results(self) -> None:
        updated = _criteria().model_copy(
            update={"location": LocationCriteria(primary_locations=["Los Angeles"])},
        )
        engine, provider, find_matches = _engine(
            _reply(updated, "Focusing on Los Angeles now.", ["Narrowed location to Los Angeles"]),
            results=[_match("7")],
        )

        result = engine.refine(_criteria(), "closer to LA", [_match("1")])

        assert result.user_feedback == "closer to LA"
        assert result.ai_response == "Focusing on Los Angeles now."
        assert result.updated_search.location.primary_locations == ["Los Angeles"]
        assert result.search_changes == ["Narrowed location to Los Angeles"]
        assert [m.job_id for m in result.new_results] == ["7"]
        find_matches.assert_called_once_with(result.updated_search)

    def test_prompt_contents(self) -> None:
        engine, provider, _ = _engine(_reply(_criteria()))
        engine.refine(_criteria(), 'only "big" estates', [_match("1"), _match("2")])

        prompt = provider.complete_chat.call_args.args[0]
        assert "PREVIOUS RESULTS COUNT: 2" in prompt
        assert "only 'big' estates" in prompt
        kwargs = provider.complete_chat.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 1000

    def test_no_travel_enforced_when_model_ignores_it(self) -> None:
        original = _criteria(travel=["international", "seasonal residences"])
        engine, _, find_matches = _engine(_reply(original, "Updated!"))

        result = engine.refine(original, "no travel", [])

        assert result.updated_search.location.travel_requirements == []
        assert "Removed travel requirements" in result.search_changes
        assert find_matches.call_args.args[0].location.travel_requirements == []

    def test_enforced_change_not_duplicated(self) -> None:
        original = _criteria(travel=["international"])
        engine, _, _ = _engine(_reply(original, "Done.", ["Removed travel requirements"]))
        result = engine.refine(original, "no travel", [])
        assert result.search_changes == ["Removed travel requirements"]

    def test_default_response_when_model_gives_none(self) -> None:
        engine, _, _ = _engine(_reply(_criteria()), results=[_match("1"), _match("2")])
        result = engine.refine(_criteria(), "no travel and better pay", [])
        assert result.ai_response.startswith("I understand you'd like to refine your search.")
        assert "exclude travel requirements" in result.ai_response
        assert "adjusted the salary criteria" in result.ai_response
        assert result.ai_response.endswith("Here are 2 new matches that better fit your requirements:")

    def test_markdown_wrapped_reply(self) -> None:
        engine, _, _ = _engine(f"```json\n{_reply(_criteria(), 'ok')}\n```")
        assert engine.refine(_criteria(), "fine", []).ai_response == "ok"

    def test_provider_failure(self) -> None:
        engine, provider, find_matches = _engine("")
        provider.complete_chat.side_effect = TimeoutError("timed out")
        with pytest.raises(RefinementFailure, match=REFINEMENT_ERROR):
            engine.refine(_criteria(), "no travel", [_match()])
        find_matches.assert_not_called()

    def test_malformed_reply(self) -> None:
        engine, _, find_matches = _engine(json.dumps({"aiResponse": "no criteria here"}))
        with pytest.raises(RefinementFailure):
            engine.refine(_criteria(), "no travel", [])
        find_matches.assert_not_called()

    def test_non_json_reply(self) -> None:
        engine, _, _ = _engine("I'd be happy to help!")
        with pytest.raises(RefinementFailure):
            engine.refine(_criteria(), "no travel", [])

    def test_pipeline_failure(self) -> None:
        engine, _, find_matches = _engine(_reply(_criteria()))
        find_matches.side_effect = RuntimeError("store down")
        with pytest.raises(RefinementFailure) as exc_info:
            engine.refine(_criteria(), "no travel", [])
        assert isinstance(exc_info.value.__cause__, RuntimeError)
