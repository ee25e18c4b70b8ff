"""
Pydantic schemas for wire payloads and engine results.
"""

from lean_rpg.schemas.common import ApiEnvelope, CamelModel
from lean_rpg.schemas.auth import AuthTokens, RefreshTokenRequest
from lean_rpg.schemas.player import (
    Achievement,
    ActivityCategory,
    ActivityLog,
    LeaderboardEntry,
    Player,
    UnlockedAchievement,
    categorize_label,
)
from lean_rpg.schemas.audit import (
    AuditFinding,
    AuditResponse,
    AuditSession,
    AuditStatus,
    ChecklistItem,
    ChecklistTemplate,
    FindingSeverity,
    RiskTier,
)
from lean_rpg.schemas.submission import (
    ActivityResult,
    ProgressionMode,
    ProgressionResult,
    SubmissionPayload,
    SubmissionResponse,
    SubmissionStatus,
)
from lean_rpg.schemas.notification import Notification, NotificationType

__all__ = [
    # Common
    "ApiEnvelope",
    "CamelModel",
    # Auth
    "AuthTokens",
    "RefreshTokenRequest",
    # Player
    "Achievement",
    "ActivityCategory",
    "ActivityLog",
    "LeaderboardEntry",
    "Player",
    "UnlockedAchievement",
    "categorize_label",
    # Audit
    "AuditFinding",
    "AuditResponse",
    "AuditSession",
    "AuditStatus",
    "ChecklistItem",
    "ChecklistTemplate",
    "FindingSeverity",
    "RiskTier",
    # Submission
    "ActivityResult",
    "ProgressionMode",
    "ProgressionResult",
    "SubmissionPayload",
    "SubmissionResponse",
    "SubmissionStatus",
    # Notification
    "Notification",
    "NotificationType",
]
