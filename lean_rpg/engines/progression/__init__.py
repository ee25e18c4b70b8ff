"""
Progression Engine - Levels, achievements and skills.

Levels:
- Level i+1 at T[i] cumulative XP, default T = [0, 1000, 2500, 4500, 7000, 10000]
- Next threshold past the table: ceil(T[last] * 1.5)

Achievements:
- Declarative rules over player aggregates and the last activity
- Each id unlocks at most once
"""

from lean_rpg.engines.progression.level_engine import (
    DEFAULT_LEVEL_THRESHOLDS,
    LevelEngine,
    LevelInfo,
    LevelTransition,
)
from lean_rpg.engines.progression.achievement_catalog import (
    ACHIEVEMENT_CATALOG,
    AchievementRule,
    RuleKind,
    get_rule,
)
from lean_rpg.engines.progression.achievement_evaluator import AchievementEvaluator
from lean_rpg.engines.progression.skill_tracker import (
    SKILL_CATALOG,
    Skill,
    SkillRequirements,
    SkillTracker,
)

__all__ = [
    "DEFAULT_LEVEL_THRESHOLDS",
    "LevelEngine",
    "LevelInfo",
    "LevelTransition",
    "ACHIEVEMENT_CATALOG",
    "AchievementRule",
    "RuleKind",
    "get_rule",
    "AchievementEvaluator",
    "SKILL_CATALOG",
    "Skill",
    "SkillRequirements",
    "SkillTracker",
]
