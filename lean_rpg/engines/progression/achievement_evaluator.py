"""
Achievement Evaluator - Decides which catalog achievements a player has newly earned.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from lean_rpg.engines.progression.achievement_catalog import (
    ACHIEVEMENT_CATALOG,
    AchievementRule,
    RuleKind,
)
from lean_rpg.logging_config import get_logger
from lean_rpg.schemas.player import (
    Achievement,
    ActivityCategory,
    Player,
    UnlockedAchievement,
    categorize_label,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AchievementEvaluator:
    """
    Evaluates declarative unlock rules against refreshed player state.

    Rules are independent, so the resulting set does not depend on catalog
    order. An id already held by the player (or passed in already_unlocked)
    is never emitted again, and one pass never emits an id twice.
    """

    def __init__(
        self,
        catalog: Sequence[AchievementRule] = ACHIEVEMENT_CATALOG,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.catalog = tuple(catalog)
        self._clock = clock

    def evaluate(
        self,
        player: Player,
        last_activity_score: int,
        last_activity_label: str,
        last_activity_category: Optional[ActivityCategory] = None,
        already_unlocked: Iterable[str] = (),
    ) -> List[UnlockedAchievement]:
        """
        Find achievements newly satisfied by the player's current state.

        Args:
            player: Player state after the activity was applied
            last_activity_score: Score (0-100) of the just-completed activity
            last_activity_label: Display label of the activity (e.g. "LPA: Shift start")
            last_activity_category: Structured category; derived from the label when omitted
            already_unlocked: Extra ids the caller has unlocked but the player
                record may not reflect yet

        Returns:
            Newly unlocked achievements, stamped with the evaluation time
        """
        category = last_activity_category or categorize_label(last_activity_label)
        unlocked_ids = set(player.achievement_ids)
        unlocked_ids.update(already_unlocked)

        newly: List[UnlockedAchievement] = []
        now = self._clock()
        for rule in self.catalog:
            if rule.id in unlocked_ids:
                continue
            if not self.is_satisfied(rule, player, last_activity_score, category):
                continue
            newly.append(
                UnlockedAchievement(
                    **rule.to_achievement().model_dump(),
                    unlocked_at=now,
                )
            )
            unlocked_ids.add(rule.id)

        if newly:
            logger.info(
                "Achievements unlocked",
                extra={"player_id": player.id, "achievement_ids": [a.id for a in newly]},
            )
        return newly

    @staticmethod
    def is_satisfied(
        rule: AchievementRule,
        player: Player,
        last_activity_score: int,
        last_activity_category: ActivityCategory,
    ) -> bool:
        """Evaluate a single rule predicate."""
        if rule.kind == RuleKind.FIRST_COMPLETION:
            return player.games_completed >= 1
        if rule.kind == RuleKind.COMPLETION_COUNT:
            return player.games_completed >= rule.target
        if rule.kind == RuleKind.LEVEL_THRESHOLD:
            return player.level >= rule.target
        if rule.kind == RuleKind.PERFECT_SCORE:
            return last_activity_category == rule.category and last_activity_score == rule.target
        if rule.kind == RuleKind.CATEGORY_COMPLETION:
            return AchievementEvaluator._category_count(player, rule.category, last_activity_category) >= rule.target
        if rule.kind == RuleKind.LIFETIME_SCORE:
            return player.total_score >= rule.target
        return False

    @staticmethod
    def _category_count(
        player: Player,
        category: Optional[ActivityCategory],
        last_activity_category: Optional[ActivityCategory],
    ) -> int:
        count = player.count_activities(category)
        # The just-completed activity counts even if the log has not caught up
        if last_activity_category == category and count == 0:
            count = 1
        return count

    def progress(self, player: Player) -> List[Achievement]:
        """Catalog entries with current/target filled in for progress display."""
        entries: List[Achievement] = []
        for rule in self.catalog:
            entries.append(rule.to_achievement(current=self._current_value(rule, player)))
        return entries

    @staticmethod
    def _current_value(rule: AchievementRule, player: Player) -> Optional[int]:
        if rule.kind in (RuleKind.FIRST_COMPLETION, RuleKind.COMPLETION_COUNT):
            return player.games_completed
        if rule.kind == RuleKind.LEVEL_THRESHOLD:
            return player.level
        if rule.kind == RuleKind.CATEGORY_COMPLETION:
            return player.count_activities(rule.category)
        if rule.kind == RuleKind.LIFETIME_SCORE:
            return player.total_score
        if rule.kind == RuleKind.PERFECT_SCORE:
            scores = [
                log.score for log in player.recent_activity
                if log.resolved_category == rule.category
            ]
            return max(scores) if scores else 0
        return None
