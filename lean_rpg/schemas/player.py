"""
Player, activity log and achievement schemas.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from lean_rpg.kernel.icons import IconId, resolve_icon
from lean_rpg.schemas.common import CamelModel


class ActivityCategory(str, Enum):
    """Structured kind of a completed activity."""
    AUDIT = "audit"          # 5S audit (simulated or real)
    LPA = "lpa"              # Layered Process Audit
    ISHIKAWA = "ishikawa"    # Root-cause (fishbone) analysis
    GEMBA = "gemba"          # Gemba walk observations
    OTHER = "other"


# Checked in order: "LPA audit" must be LPA, not AUDIT.
_LABEL_KEYWORDS = (
    (ActivityCategory.LPA, ("lpa", "layered process")),
    (ActivityCategory.ISHIKAWA, ("ishikawa", "root cause", "fishbone")),
    (ActivityCategory.GEMBA, ("gemba",)),
    (ActivityCategory.AUDIT, ("audit", "5s")),
)


def categorize_label(label: Optional[str]) -> ActivityCategory:
    """Classify a free-text activity label or quest id (legacy records carry no category)."""
    text = (label or "").lower()
    for category, keywords in _LABEL_KEYWORDS:
        if any(k in text for k in keywords):
            return category
    return ActivityCategory.OTHER


class Achievement(CamelModel):
    """Achievement catalog entry, optionally with progress numbers for display."""

    id: str
    title: str
    description: str = ""
    icon: IconId = IconId.AWARD
    target: Optional[int] = None
    current: Optional[int] = None

    @field_validator("icon", mode="before")
    @classmethod
    def _parse_icon(cls, value):
        return resolve_icon(value)


class UnlockedAchievement(Achievement):
    """An achievement the player holds."""

    unlocked_at: Optional[datetime] = None


class ActivityLog(CamelModel):
    """Immutable record of one completed activity."""

    model_config = ConfigDict(frozen=True)

    id: str
    game: str
    score: int = Field(ge=0, le=100)
    xp: int = Field(ge=0)
    date: str
    category: Optional[ActivityCategory] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)

    @property
    def resolved_category(self) -> ActivityCategory:
        return self.category or categorize_label(self.game)


class Player(CamelModel):
    """Canonical player state as reported by the backend."""

    id: str
    email: str = ""
    username: str = ""
    role: str = "operator"
    tenant_id: str = ""

    # Progression (level / next_level_xp are functions of total_xp)
    level: int = 1
    current_xp: int = 0
    total_xp: int = 0
    next_level_xp: int = 0
    games_completed: int = 0
    total_score: int = 0

    achievements: List[UnlockedAchievement] = []
    recent_activity: List[ActivityLog] = []

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Union[str, int]):
        return str(value)

    @property
    def achievement_ids(self) -> set[str]:
        return {a.id for a in self.achievements}

    def count_activities(self, category: ActivityCategory) -> int:
        return sum(1 for log in self.recent_activity if log.resolved_category == category)


class LeaderboardEntry(CamelModel):
    """One ranked row of the tenant leaderboard; rank 1 has the highest total_score."""

    id: str = Field(validation_alias=AliasChoices("id", "userId", "user_id"))
    username: str = Field(default="", validation_alias=AliasChoices("username", "userName", "user_name"))
    level: int = 1
    total_xp: int = Field(default=0, validation_alias=AliasChoices("totalXp", "total_xp", "xp"))
    total_score: int = Field(default=0, validation_alias=AliasChoices("totalScore", "total_score"))
    rank: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Union[str, int]):
        return str(value)
