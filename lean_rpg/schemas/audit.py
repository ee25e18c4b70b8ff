"""
Checklist, audit response and audit session schemas.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator

from lean_rpg.schemas.common import CamelModel


class RiskTier(str, Enum):
    """Coarse risk bucket derived from a compliance score."""
    GREEN = "Green"    # low risk, score >= 85
    YELLOW = "Yellow"  # medium risk, 70..84
    RED = "Red"        # high risk, < 70


class FindingSeverity(str, Enum):
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"


class AuditStatus(str, Enum):
    """Audit lifecycle; transitions only move forward."""
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChecklistItem(CamelModel):
    """One checklist question with its expected answer and scoring weight."""

    id: str
    question: str = ""
    expected_answer: str
    # Not constrained here: ScoreCalculator rejects negatives with a ValidationError.
    weight: float = Field(default=1.0, validation_alias=AliasChoices("weight", "scoringWeight", "scoring_weight"))
    guidance: str = ""
    photo_required: bool = False
    category: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)


class ChecklistTemplate(CamelModel):
    id: str
    name: str
    description: str = ""
    category: str = ""
    version: int = 1
    xp_reward: int = Field(default=100, ge=0)
    items: List[ChecklistItem] = []

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)


class AuditResponse(CamelModel):
    """A recorded answer; compliant iff answer == the item's expected answer."""

    item_id: str
    answer: str
    timestamp: Optional[datetime] = None
    photo_ids: List[str] = []
    notes: str = ""

    @field_validator("item_id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)


class AuditFinding(CamelModel):
    """A non-compliant answer raised as a finding for review."""

    item_id: str
    severity: FindingSeverity
    description: str
    photo: Optional[str] = None
    approved: bool = False

    @field_validator("item_id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)


class AuditSession(CamelModel):
    """
    A single audit run, from first answer to review.

    Once submitted only the reviewer fields (review_comments, reviewer_id,
    reviewed_at and the approved/rejected status) may change.
    """

    id: str
    checklist_id: str
    workplace_id: str = ""
    auditor_id: str
    status: AuditStatus = AuditStatus.IN_PROGRESS
    responses: List[AuditResponse] = []
    photo_evidence: List[str] = []
    findings: List[AuditFinding] = []
    overall_compliance: Optional[int] = None
    risk_level: Optional[RiskTier] = None
    score: Optional[int] = None
    xp_earned: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    # Reviewer fields
    reviewer_id: Optional[str] = None
    review_comments: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    @field_validator("id", "checklist_id", "workplace_id", "auditor_id", "reviewer_id", mode="before")
    @classmethod
    def _ids_to_str(cls, value):
        # Backend records carry numeric ids
        return value if value is None else str(value)
