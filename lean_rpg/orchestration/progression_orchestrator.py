"""
Progression Orchestrator - Runs one completed activity through the engine.

Steps, in order:
(a) score the result (unless the caller supplied a score)
(b) submit it through the pipeline
(c) re-fetch the canonical Player
(d) evaluate achievements against the refreshed Player
(e) return XP, new achievements and the refreshed Player

A NetworkError in (b) or (c) degrades to a local projection of the player
when offline fallback is enabled; the result is then marked non-authoritative.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from lean_rpg.client.game_service import GameService
from lean_rpg.client.retry import retry_with_backoff
from lean_rpg.config import Settings, get_settings
from lean_rpg.engines.progression.achievement_evaluator import AchievementEvaluator
from lean_rpg.engines.progression.level_engine import LevelEngine
from lean_rpg.engines.progression.skill_tracker import SkillTracker
from lean_rpg.engines.scoring.score_calculator import ScoreCalculator
from lean_rpg.kernel.errors import NetworkError, ValidationError
from lean_rpg.logging_config import get_logger
from lean_rpg.schemas.audit import AuditFinding, RiskTier
from lean_rpg.schemas.player import ActivityLog, Player, UnlockedAchievement
from lean_rpg.schemas.submission import (
    ActivityResult,
    ProgressionMode,
    ProgressionResult,
    SubmissionPayload,
    SubmissionResponse,
    SubmissionStatus,
)

logger = get_logger(__name__)

ResultCallback = Callable[[ProgressionResult], None]
ErrorCallback = Callable[[BaseException], None]


class CompletionHandle:
    """
    Handle for a background complete() call.

    detach() stops result delivery; the request itself keeps running so an
    already accepted score is never lost.
    """

    def __init__(
        self,
        task: "asyncio.Task[ProgressionResult]",
        on_complete: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self._task = task
        self._on_complete = on_complete
        self._on_error = on_error
        self._detached = False
        task.add_done_callback(self._deliver)

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def done(self) -> bool:
        return self._task.done()

    def detach(self) -> None:
        self._detached = True

    async def wait(self) -> ProgressionResult:
        """Await the result without exposing the task to cancellation."""
        return await asyncio.shield(self._task)

    def _deliver(self, task: "asyncio.Task[ProgressionResult]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if self._detached:
            if error is not None:
                logger.warning("Detached completion failed: %s", error)
            return
        if error is not None:
            if self._on_error is None:
                logger.error("Background completion failed", exc_info=error)
            else:
                self._on_error(error)
            return
        if self._on_complete is not None:
            self._on_complete(task.result())


class ProgressionOrchestrator:
    """
    Coordinates scoring, submission, re-fetch and achievement evaluation.

    Achievement ids unlocked through this orchestrator are remembered for
    its lifetime, so concurrent or repeated completions never emit the
    same achievement twice.
    """

    GUEST_USERNAME = "Guest (offline)"

    def __init__(
        self,
        game_service: GameService,
        level_engine: Optional[LevelEngine] = None,
        evaluator: Optional[AchievementEvaluator] = None,
        skill_tracker: Optional[SkillTracker] = None,
        *,
        settings: Optional[Settings] = None,
        allow_offline: Optional[bool] = None,
        refetch_attempts: Optional[int] = None,
        refetch_delay: float = 0.5,
    ):
        settings = settings or get_settings()
        self.game_service = game_service
        self.level_engine = level_engine or game_service.level_engine
        self.evaluator = evaluator or AchievementEvaluator()
        self.skill_tracker = skill_tracker or SkillTracker()
        self.allow_offline = settings.allow_offline_fallback if allow_offline is None else allow_offline
        self.refetch_attempts = settings.player_refetch_attempts if refetch_attempts is None else refetch_attempts
        self.refetch_delay = refetch_delay

        self._unlocked: Set[str] = set()
        self._last_player: Optional[Player] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def unlocked_ids(self) -> Set[str]:
        return set(self._unlocked)

    @property
    def last_player(self) -> Optional[Player]:
        return self._last_player

    async def complete(
        self,
        result: ActivityResult,
        player: Optional[Player] = None,
    ) -> ProgressionResult:
        """
        Process a finished activity.

        Args:
            result: Raw activity outcome
            player: Player state before the activity, if the caller has it

        Returns:
            ProgressionResult; mode is DEGRADED when the backend was unreachable

        Raises:
            ValidationError: Malformed activity result
            AuthError, RateLimitError, ApiError: Propagated from the pipeline
            NetworkError: Only when offline fallback is disabled
        """
        baseline = player or self._last_player

        # (a) score
        score, risk_tier, findings = self._score(result)
        xp_awarded = ScoreCalculator.xp_for_score(result.base_reward, score) + result.bonus_xp

        # (b) submit
        payload = SubmissionPayload.build(
            quest_id=result.quest_id,
            user_id=result.user_id,
            details=self._details(result, score, risk_tier, xp_awarded, findings),
        )
        try:
            submission = await self.game_service.submit_activity(payload)
        except NetworkError as e:
            if not self.allow_offline:
                raise
            logger.warning(
                "Submission failed; saving offline",
                extra={"quest_id": result.quest_id, "error": e.message},
            )
            submission = SubmissionResponse(
                id=None,
                xp_gain=xp_awarded,
                score=score,
                status=SubmissionStatus.OFFLINE_SAVED.value,
            )
            projected = await self._project(baseline, result, score, xp_awarded, submission, try_fetch=True)
            return self._finish(
                result, score, risk_tier, xp_awarded, projected, submission,
                previous_level=self._previous_level(baseline, projected, xp_awarded),
                mode=ProgressionMode.DEGRADED,
                warning=f"Saved offline; progress will sync later ({e.message})",
            )

        if "xp_gain" in submission.model_fields_set:
            xp_awarded = submission.xp_gain

        # (c) re-fetch
        try:
            refreshed = await retry_with_backoff(
                self.game_service.fetch_player,
                max_attempts=max(1, self.refetch_attempts),
                initial_delay=self.refetch_delay,
            )
        except NetworkError as e:
            if not self.allow_offline:
                raise
            logger.warning(
                "Player re-fetch failed after submission; using local projection",
                extra={"quest_id": result.quest_id, "error": e.message},
            )
            projected = await self._project(baseline, result, score, xp_awarded, submission, try_fetch=False)
            return self._finish(
                result, score, risk_tier, xp_awarded, projected, submission,
                previous_level=self._previous_level(baseline, projected, xp_awarded),
                mode=ProgressionMode.DEGRADED,
                warning=f"Submitted, but player state could not be refreshed ({e.message})",
            )

        # (d) + (e)
        return self._finish(
            result, score, risk_tier, xp_awarded, refreshed, submission,
            previous_level=self._previous_level(baseline, refreshed, xp_awarded),
            mode=ProgressionMode.AUTHORITATIVE,
        )

    def start(
        self,
        result: ActivityResult,
        on_complete: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        player: Optional[Player] = None,
    ) -> CompletionHandle:
        """Run complete() in the background. Must be called from a running event loop."""
        task = asyncio.create_task(self.complete(result, player=player))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return CompletionHandle(task, on_complete, on_error)

    async def drain(self) -> None:
        """Wait for every background completion to settle."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Steps

    @staticmethod
    def _score(result: ActivityResult) -> Tuple[int, RiskTier, List[AuditFinding]]:
        if result.score is not None:
            return result.score, ScoreCalculator.risk_tier_for(result.score), []
        if result.items is None:
            raise ValidationError(
                f"Activity {result.quest_id!r} has neither a score nor checklist items"
            )
        breakdown = ScoreCalculator.calculate(result.items, result.responses)
        return breakdown.score, breakdown.risk_tier, breakdown.findings

    @staticmethod
    def _details(
        result: ActivityResult,
        score: int,
        risk_tier: RiskTier,
        xp_awarded: int,
        findings: List[AuditFinding],
    ) -> Dict[str, Any]:
        details: Dict[str, Any] = dict(result.details)
        details.update(
            {
                "label": result.label,
                "category": result.category.value,
                "score": score,
                "riskTier": risk_tier.value,
                "xpEarned": xp_awarded,
            }
        )
        if result.responses:
            details["responses"] = [r.to_wire() for r in result.responses]
        if findings:
            details["findings"] = [f.to_wire() for f in findings]
        return details

    async def _project(
        self,
        baseline: Optional[Player],
        result: ActivityResult,
        score: int,
        xp_awarded: int,
        submission: SubmissionResponse,
        try_fetch: bool,
    ) -> Player:
        """Best-effort local player state after applying the award."""
        base = baseline
        if base is None and try_fetch:
            try:
                base = await self.game_service.fetch_player()
            except NetworkError:
                logger.info("No player state available offline; projecting from a guest profile")
        if base is None:
            base = Player(id=result.user_id, username=self.GUEST_USERNAME)

        total_xp = base.total_xp + xp_awarded
        info = self.level_engine.level_of(total_xp)
        log = ActivityLog(
            id=submission.id or f"local-{uuid.uuid4().hex[:12]}",
            game=result.quest_id,
            score=score,
            xp=xp_awarded,
            date=datetime.now(timezone.utc).isoformat(),
            category=result.category,
        )
        return base.model_copy(
            update={
                "total_xp": total_xp,
                "current_xp": total_xp,
                "level": info.level,
                "next_level_xp": info.next_level_xp,
                "games_completed": base.games_completed + 1,
                "total_score": base.total_score + score,
                "recent_activity": [*base.recent_activity, log],
            }
        )

    def _previous_level(self, baseline: Optional[Player], after: Player, xp_awarded: int) -> int:
        if baseline is not None:
            return baseline.level
        return self.level_engine.level_of(max(0, after.total_xp - xp_awarded)).level

    def _finish(
        self,
        result: ActivityResult,
        score: int,
        risk_tier: RiskTier,
        xp_awarded: int,
        player: Player,
        submission: SubmissionResponse,
        previous_level: int,
        mode: ProgressionMode,
        warning: Optional[str] = None,
    ) -> ProgressionResult:
        # No await between evaluate and merge: concurrent completions see each other's unlocks
        new_achievements: List[UnlockedAchievement] = self.evaluator.evaluate(
            player,
            last_activity_score=score,
            last_activity_label=result.label,
            last_activity_category=result.category,
            already_unlocked=self._unlocked,
        )
        self._unlocked.update(player.achievement_ids)
        self._unlocked.update(a.id for a in new_achievements)

        if mode == ProgressionMode.DEGRADED and new_achievements:
            # Local state keeps what was earned offline
            player = player.model_copy(
                update={"achievements": [*player.achievements, *new_achievements]}
            )
        self._last_player = player

        skills = [skill.id for skill in self.skill_tracker.unlocked_skills(player)]
        logger.info(
            "Activity completed",
            extra={
                "quest_id": result.quest_id,
                "score": score,
                "xp_awarded": xp_awarded,
                "mode": mode.value,
                "level": player.level,
            },
        )
        return ProgressionResult(
            xp_awarded=xp_awarded,
            score=score,
            risk_tier=risk_tier,
            new_achievements=new_achievements,
            unlocked_skills=skills,
            player=player,
            submission=submission,
            mode=mode,
            previous_level=previous_level,
            warning=warning,
        )
