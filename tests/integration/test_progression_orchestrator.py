"""
Integration tests for activity completion: scoring, submission, re-fetch and
achievement evaluation against an in-process backend.
"""

import asyncio
import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from lean_rpg.kernel.errors import AuthError, NetworkError, ValidationError
from lean_rpg.orchestration.progression_orchestrator import ProgressionOrchestrator
from lean_rpg.schemas.audit import RiskTier
from lean_rpg.schemas.player import ActivityCategory
from lean_rpg.schemas.submission import ActivityResult, ProgressionMode, SubmissionStatus


@pytest.fixture
def orchestrator(game_service, settings):
    return ProgressionOrchestrator(game_service, settings=settings, refetch_delay=0)


def _activity(score=None, base_reward=100, category=ActivityCategory.AUDIT, **kwargs):
    quest_ids = {
        ActivityCategory.AUDIT: "audit-sim",
        ActivityCategory.LPA: "lpa-sim",
        ActivityCategory.ISHIKAWA: "ishikawa-sim",
        ActivityCategory.GEMBA: "gemba-walk",
    }
    return ActivityResult(
        quest_id=quest_ids.get(category, "quiz"),
        label=kwargs.pop("label", "Virtual 5S audit"),
        category=category,
        user_id="7",
        base_reward=base_reward,
        score=score,
        **kwargs,
    )


def _ids(result):
    return [a.id for a in result.new_achievements]


class TestScoringThroughCompletion:
    """Checklist results are scored before submission."""

    @pytest.mark.asyncio
    async def test_three_of_four_equal_weights(self, orchestrator, backend, checklist_factory, answers_factory):
        """Weights [5,5,5,5], 3 correct: score 75, Yellow, XP = round(base * 0.75)."""
        activity = _activity(
            base_reward=200,
            items=checklist_factory([5, 5, 5, 5]),
            responses=answers_factory("yes", "no", "yes", "yes"),
        )
        result = await orchestrator.complete(activity)

        assert result.score == 75
        assert result.risk_tier == RiskTier.YELLOW
        assert result.xp_awarded == 150
        assert result.authoritative
        assert result.player.total_xp == 150

        content = json.loads(json.loads(backend.requests[0].content)["content"])
        assert content["score"] == 75
        assert content["riskTier"] == "Yellow"
        assert len(content["findings"]) == 1

    @pytest.mark.asyncio
    async def test_bonus_xp_added(self, orchestrator):
        result = await orchestrator.complete(_activity(score=100, base_reward=150, bonus_xp=100, category=ActivityCategory.LPA))
        assert result.xp_awarded == 250

    @pytest.mark.asyncio
    async def test_needs_score_or_items(self, orchestrator, backend):
        with pytest.raises(ValidationError):
            await orchestrator.complete(_activity())
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_empty_checklist_is_fully_compliant(self, orchestrator):
        result = await orchestrator.complete(_activity(base_reward=120, items=[]))
        assert result.score == 100
        assert result.risk_tier == RiskTier.GREEN
        assert result.xp_awarded == 120


class TestLevelProgression:
    """Backend-reported level after an award."""

    @pytest.mark.asyncio
    async def test_crossing_first_threshold(self, orchestrator, backend, player_factory):
        """999 XP + 50 XP: the refreshed player is level 2."""
        backend.user["totalXp"] = 999
        before = player_factory(total_xp=999, games_completed=3)

        result = await orchestrator.complete(_activity(score=100, base_reward=50), player=before)

        assert result.player.total_xp == 1049
        assert result.player.level == 2
        assert result.previous_level == 1
        assert result.leveled_up
        assert "lean_enthusiast" in _ids(result)

    @pytest.mark.asyncio
    async def test_previous_level_without_baseline(self, orchestrator, backend):
        backend.user["totalXp"] = 2450
        result = await orchestrator.complete(_activity(score=100, base_reward=100))
        assert result.previous_level == 2
        assert result.player.level == 3

    @pytest.mark.asyncio
    async def test_backend_xp_is_authoritative(self, orchestrator, backend):
        backend.queue(
            "POST", "/api/submissions",
            httpx.Response(201, json={"success": True, "data": {"id": 9, "xpGain": 40, "score": 80}}),
        )
        result = await orchestrator.complete(_activity(score=80, base_reward=100))
        assert result.xp_awarded == 40


class TestAchievementsAcrossCompletions:
    """Achievements are emitted exactly once."""

    @pytest.mark.asyncio
    async def test_fifth_completion_unlocks_once(self, orchestrator, backend):
        """gamesCompleted 4 -> 5 unlocks consistency; the 6th completion does not re-emit it."""
        backend.user["gamesCompleted"] = 4

        fifth = await orchestrator.complete(_activity(score=60))
        sixth = await orchestrator.complete(_activity(score=60))

        assert fifth.player.games_completed == 5
        assert "consistency" in _ids(fifth)
        assert sixth.player.games_completed == 6
        assert "consistency" not in _ids(sixth)
        assert sixth.new_achievements == []

    @pytest.mark.asyncio
    async def test_fourth_completion_does_not_unlock(self, orchestrator, backend):
        backend.user["gamesCompleted"] = 3
        result = await orchestrator.complete(_activity(score=60))
        assert "consistency" not in _ids(result)

    @pytest.mark.asyncio
    async def test_concurrent_completions_never_duplicate(self, orchestrator, backend):
        backend.user["gamesCompleted"] = 3
        results = await asyncio.gather(
            orchestrator.complete(_activity(score=100, category=ActivityCategory.LPA, label="LPA")),
            orchestrator.complete(_activity(score=100, category=ActivityCategory.AUDIT)),
        )
        emitted = [a.id for r in results for a in r.new_achievements]
        assert len(emitted) == len(set(emitted))
        assert {"first_steps", "consistency", "zero_defect", "junior_auditor"} <= set(emitted)

    @pytest.mark.asyncio
    async def test_headline_and_skills(self, orchestrator, backend):
        backend.user["totalScore"] = 4950
        result = await orchestrator.complete(_activity(score=100))
        assert result.headline_achievement is not None
        assert result.headline_achievement.id == result.new_achievements[0].id
        assert "s3" in result.unlocked_skills

    @pytest.mark.asyncio
    async def test_embedded_submissions_feed_category_rules(self, orchestrator, backend):
        backend.embed_submissions = True
        for _ in range(2):
            await orchestrator.complete(_activity(score=80, category=ActivityCategory.GEMBA, label="Gemba walk"))
        third = await orchestrator.complete(_activity(score=80, category=ActivityCategory.GEMBA, label="Gemba walk"))
        assert third.player.count_activities(ActivityCategory.GEMBA) == 3
        assert "gemba_walker" in _ids(third)


class TestDegradedMode:
    """Network failures fall back to a labelled local projection."""

    @pytest.mark.asyncio
    async def test_offline_submission(self, orchestrator, backend, player_factory):
        """A network error still returns a non-authoritative result with the local score."""
        backend.submissions_offline = True
        before = player_factory(total_xp=950, games_completed=4, total_score=300)

        result = await orchestrator.complete(_activity(score=90, base_reward=100), player=before)

        assert not result.authoritative
        assert result.mode == ProgressionMode.DEGRADED
        assert result.warning
        assert result.score == 90
        assert result.xp_awarded == 90
        assert result.submission.status == SubmissionStatus.OFFLINE_SAVED.value
        assert result.submission.is_offline
        assert result.submission.id is None

        assert result.player.total_xp == 1040
        assert result.player.level == 2
        assert result.player.games_completed == 5
        assert result.player.recent_activity[-1].game == "audit-sim"
        assert {"consistency", "lean_enthusiast"} <= set(_ids(result))
        assert {"consistency", "lean_enthusiast"} <= result.player.achievement_ids
        assert backend.submissions == []

    @pytest.mark.asyncio
    async def test_offline_without_any_player_state(self, orchestrator, backend):
        backend.submissions_offline = True
        backend.me_offline = True

        result = await orchestrator.complete(_activity(score=70))

        assert result.mode == ProgressionMode.DEGRADED
        assert result.player.id == "7"
        assert result.player.games_completed == 1
        assert "first_steps" in _ids(result)

    @pytest.mark.asyncio
    async def test_achievements_survive_offline_then_online(self, orchestrator, backend, player_factory):
        backend.submissions_offline = True
        offline = await orchestrator.complete(_activity(score=50), player=player_factory())
        assert "first_steps" in _ids(offline)

        backend.submissions_offline = False
        online = await orchestrator.complete(_activity(score=50))
        assert "first_steps" not in _ids(online)
        assert "first_steps" in orchestrator.unlocked_ids

    @pytest.mark.asyncio
    async def test_refetch_failure_after_submit(self, orchestrator, backend, player_factory):
        backend.me_offline = True
        result = await orchestrator.complete(_activity(score=80), player=player_factory(total_xp=100))

        assert result.mode == ProgressionMode.DEGRADED
        assert result.submission.id == "100"
        assert result.player.total_xp == 180
        assert backend.paths("GET").count("/api/users/me") == orchestrator.refetch_attempts

    @pytest.mark.asyncio
    async def test_refetch_retries_then_succeeds(self, orchestrator, game_service, backend):
        real_fetch = game_service.fetch_player
        game_service.fetch_player = AsyncMock(side_effect=[NetworkError("blip"), await real_fetch()])
        result = await orchestrator.complete(_activity(score=80))
        assert result.authoritative
        assert game_service.fetch_player.await_count == 2

    @pytest.mark.asyncio
    async def test_offline_disabled_propagates(self, game_service, settings, backend):
        orchestrator = ProgressionOrchestrator(game_service, settings=settings, allow_offline=False)
        backend.submissions_offline = True
        with pytest.raises(NetworkError):
            await orchestrator.complete(_activity(score=80))

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_degraded(self, orchestrator, backend):
        backend.valid_access = set()
        backend.valid_refresh = set()
        with pytest.raises(AuthError):
            await orchestrator.complete(_activity(score=80))


class TestBackgroundCompletion:
    """Detached completions keep running but stop delivering."""

    @pytest.mark.asyncio
    async def test_result_delivered(self, orchestrator):
        delivered = MagicMock()
        handle = orchestrator.start(_activity(score=80), on_complete=delivered)
        result = await handle.wait()
        await asyncio.sleep(0)
        delivered.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_detach_stops_delivery_not_request(self, orchestrator, backend):
        delivered = MagicMock()
        handle = orchestrator.start(_activity(score=80), on_complete=delivered)
        handle.detach()
        await orchestrator.drain()

        assert handle.detached
        assert handle.done
        delivered.assert_not_called()
        assert len(backend.submissions) == 1

    @pytest.mark.asyncio
    async def test_error_delivered(self, orchestrator, backend):
        backend.valid_access = set()
        backend.valid_refresh = set()
        errors = MagicMock()
        orchestrator.start(_activity(score=80), on_error=errors)
        await orchestrator.drain()
        await asyncio.sleep(0)
        assert isinstance(errors.call_args.args[0], AuthError)
