"""
Skill Tracker - Skills unlocked by level, activity counts and lifetime score.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from lean_rpg.kernel.icons import IconId
from lean_rpg.schemas.player import ActivityCategory, Player


@dataclass(frozen=True)
class SkillRequirements:
    level: Optional[int] = None
    audit_count: Optional[int] = None
    ishikawa_count: Optional[int] = None
    total_score: Optional[int] = None


@dataclass(frozen=True)
class Skill:
    id: str
    title: str
    description: str
    benefit: str
    icon: IconId
    requirements: SkillRequirements


SKILL_CATALOG: Tuple[Skill, ...] = (
    Skill(
        id="s1",
        title="5S Specialist",
        description="Master the art of workplace organization.",
        benefit="+10% XP from Audit games",
        icon=IconId.CHECK_CIRCLE,
        requirements=SkillRequirements(level=2, audit_count=5),
    ),
    Skill(
        id="s2",
        title="RCA Expert",
        description="Expertise in Root Cause Analysis using 6M.",
        benefit="Unlock advanced Ishikawa templates",
        icon=IconId.GIT_BRANCH,
        requirements=SkillRequirements(level=3, ishikawa_count=3),
    ),
    Skill(
        id="s3",
        title="Visual Management",
        description="Use visual cues to maintain standards.",
        benefit="Red Tag creation time reduced",
        icon=IconId.EYE,
        requirements=SkillRequirements(total_score=5000),
    ),
)


class SkillTracker:
    """Checks skill requirements against player state. Every set requirement must hold."""

    def __init__(self, catalog: Sequence[Skill] = SKILL_CATALOG):
        self.catalog = tuple(catalog)

    @staticmethod
    def meets(skill: Skill, player: Player) -> bool:
        req = skill.requirements
        if req.level is not None and player.level < req.level:
            return False
        if req.audit_count is not None and player.count_activities(ActivityCategory.AUDIT) < req.audit_count:
            return False
        if req.ishikawa_count is not None and player.count_activities(ActivityCategory.ISHIKAWA) < req.ishikawa_count:
            return False
        if req.total_score is not None and player.total_score < req.total_score:
            return False
        return True

    def unlocked_skills(self, player: Player) -> List[Skill]:
        return [skill for skill in self.catalog if self.meets(skill, player)]
