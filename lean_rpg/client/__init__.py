"""
Backend client - authenticated pipeline and the services built on it.
"""

from lean_rpg.client.submission_pipeline import SubmissionPipeline, parse_retry_after
from lean_rpg.client.retry import retry_with_backoff
from lean_rpg.client.game_service import GameService, map_user_to_player
from lean_rpg.client.audit_service import AuditService

__all__ = [
    "SubmissionPipeline",
    "parse_retry_after",
    "retry_with_backoff",
    "GameService",
    "map_user_to_player",
    "AuditService",
]
