"""
Submission payloads and the result shapes returned by the orchestrator.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from lean_rpg.schemas.audit import AuditResponse, ChecklistItem, RiskTier
from lean_rpg.schemas.common import CamelModel
from lean_rpg.schemas.player import ActivityCategory, Player, UnlockedAchievement


class SubmissionStatus(str, Enum):
    PENDING_ANALYSIS = "pending_analysis"
    EVALUATED = "evaluated"
    OFFLINE_SAVED = "offline_saved"


class ProgressionMode(str, Enum):
    """Which path produced a ProgressionResult."""
    AUTHORITATIVE = "authoritative"  # backend accepted and re-fetched
    DEGRADED = "degraded"            # local best-effort projection


class SubmissionPayload(CamelModel):
    """Body of POST /api/submissions."""

    quest_id: str
    user_id: str
    content: str
    status: SubmissionStatus = SubmissionStatus.EVALUATED

    @classmethod
    def build(
        cls,
        quest_id: str,
        user_id: str,
        details: Dict[str, Any],
        status: SubmissionStatus = SubmissionStatus.EVALUATED,
    ) -> "SubmissionPayload":
        """Serialize structured details into the content string."""
        return cls(
            quest_id=quest_id,
            user_id=user_id,
            content=json.dumps(details, default=str, sort_keys=True),
            status=status,
        )


class SubmissionResponse(CamelModel):
    """Backend acknowledgement of a submission (or its offline stand-in)."""

    id: Optional[str] = None
    xp_gain: int = 0
    score: int = 0
    status: str = SubmissionStatus.EVALUATED.value
    feedback: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return None if value is None else str(value)

    @property
    def is_offline(self) -> bool:
        return self.status == SubmissionStatus.OFFLINE_SAVED.value


class ActivityResult(BaseModel):
    """
    Raw outcome of a finished game or audit, handed to the orchestrator.

    Either score is set by the caller, or items + responses are given and the
    score is computed. An empty checklist scores 100; leaving both score and
    items unset is an error.
    """

    quest_id: str
    label: str
    category: ActivityCategory
    user_id: str
    base_reward: int = Field(ge=0)
    bonus_xp: int = Field(default=0, ge=0)
    score: Optional[int] = Field(default=None, ge=0, le=100)
    items: Optional[List[ChecklistItem]] = None
    responses: List[AuditResponse] = []
    details: Dict[str, Any] = {}


class ProgressionResult(BaseModel):
    """What the UI needs after an activity completes."""

    xp_awarded: int
    score: int
    risk_tier: RiskTier
    new_achievements: List[UnlockedAchievement] = []
    unlocked_skills: List[str] = []
    player: Player
    submission: SubmissionResponse
    mode: ProgressionMode = ProgressionMode.AUTHORITATIVE
    previous_level: int
    warning: Optional[str] = None

    @property
    def authoritative(self) -> bool:
        return self.mode == ProgressionMode.AUTHORITATIVE

    @property
    def leveled_up(self) -> bool:
        return self.player.level > self.previous_level

    @property
    def headline_achievement(self) -> Optional[UnlockedAchievement]:
        """The single achievement to toast, if any."""
        return self.new_achievements[0] if self.new_achievements else None
