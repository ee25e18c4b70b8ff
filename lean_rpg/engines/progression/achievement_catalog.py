"""
Achievement catalog - static, declarative unlock rules.

Each rule reads only the player aggregates and the just-completed activity,
never another rule's outcome.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from lean_rpg.kernel.icons import IconId
from lean_rpg.schemas.player import Achievement, ActivityCategory

CATALOG_VERSION = "2024.1"


class RuleKind(str, Enum):
    """Supported unlock predicates."""
    FIRST_COMPLETION = "first_completion"          # games_completed >= 1
    COMPLETION_COUNT = "completion_count"          # games_completed >= target
    LEVEL_THRESHOLD = "level_threshold"            # level >= target
    PERFECT_SCORE = "perfect_score"                # last activity in category scored target
    CATEGORY_COMPLETION = "category_completion"    # completions in category >= target
    LIFETIME_SCORE = "lifetime_score"              # total_score >= target


@dataclass(frozen=True)
class AchievementRule:
    """One catalog entry and the predicate that unlocks it."""

    id: str
    title: str
    description: str
    icon: IconId
    kind: RuleKind
    target: int = 1
    category: Optional[ActivityCategory] = None

    def __post_init__(self) -> None:
        needs_category = self.kind in (RuleKind.PERFECT_SCORE, RuleKind.CATEGORY_COMPLETION)
        if needs_category and self.category is None:
            raise ValueError(f"Rule {self.id!r} of kind {self.kind.value} needs a category")

    def to_achievement(self, current: Optional[int] = None) -> Achievement:
        return Achievement(
            id=self.id,
            title=self.title,
            description=self.description,
            icon=self.icon,
            target=self.target,
            current=current,
        )


ACHIEVEMENT_CATALOG: Tuple[AchievementRule, ...] = (
    AchievementRule(
        id="first_steps",
        title="First Steps",
        description="Complete your first training module.",
        icon=IconId.ZAP,
        kind=RuleKind.FIRST_COMPLETION,
    ),
    AchievementRule(
        id="consistency",
        title="Consistency King",
        description="Complete 5 training modules.",
        icon=IconId.CALENDAR,
        kind=RuleKind.COMPLETION_COUNT,
        target=5,
    ),
    AchievementRule(
        id="lean_enthusiast",
        title="Lean Enthusiast",
        description="Reach Level 2.",
        icon=IconId.STAR,
        kind=RuleKind.LEVEL_THRESHOLD,
        target=2,
    ),
    AchievementRule(
        id="master_mind",
        title="Master Mind",
        description="Reach Level 5.",
        icon=IconId.TROPHY,
        kind=RuleKind.LEVEL_THRESHOLD,
        target=5,
    ),
    AchievementRule(
        id="junior_auditor",
        title="Junior Auditor",
        description="Score 100% on a virtual audit.",
        icon=IconId.CLIPBOARD_LIST,
        kind=RuleKind.PERFECT_SCORE,
        target=100,
        category=ActivityCategory.AUDIT,
    ),
    AchievementRule(
        id="zero_defect",
        title="Zero Defect",
        description="Score 100% on a Layered Process Audit.",
        icon=IconId.SHIELD_CHECK,
        kind=RuleKind.PERFECT_SCORE,
        target=100,
        category=ActivityCategory.LPA,
    ),
    AchievementRule(
        id="problem_solver",
        title="Problem Solver",
        description="Complete your first Ishikawa diagram.",
        icon=IconId.GIT_BRANCH,
        kind=RuleKind.CATEGORY_COMPLETION,
        target=1,
        category=ActivityCategory.ISHIKAWA,
    ),
    AchievementRule(
        id="gemba_walker",
        title="Gemba Walker",
        description="Complete 3 Gemba walks.",
        icon=IconId.FOOTPRINTS,
        kind=RuleKind.CATEGORY_COMPLETION,
        target=3,
        category=ActivityCategory.GEMBA,
    ),
    AchievementRule(
        id="score_collector",
        title="Score Collector",
        description="Accumulate 5000 points across all activities.",
        icon=IconId.AWARD,
        kind=RuleKind.LIFETIME_SCORE,
        target=5000,
    ),
)


def get_rule(achievement_id: str) -> Optional[AchievementRule]:
    for rule in ACHIEVEMENT_CATALOG:
        if rule.id == achievement_id:
            return rule
    return None
