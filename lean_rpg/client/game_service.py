"""
Game Service - Player profile, submissions and notifications over the pipeline.
"""

from typing import Any, Dict, List, Optional

from lean_rpg.client.submission_pipeline import SubmissionPipeline
from lean_rpg.config import Settings, get_settings
from lean_rpg.engines.progression.level_engine import LevelEngine
from lean_rpg.kernel.errors import NetworkError
from lean_rpg.logging_config import get_logger
from lean_rpg.schemas.notification import Notification
from lean_rpg.schemas.player import ActivityLog, LeaderboardEntry, Player, categorize_label
from lean_rpg.schemas.submission import SubmissionPayload, SubmissionResponse

logger = get_logger(__name__)


def _submission_to_log(sub: Dict[str, Any]) -> ActivityLog:
    quest_id = str(sub.get("questId") or sub.get("game") or "")
    return ActivityLog(
        id=sub.get("id", ""),
        game=quest_id,
        score=int(sub.get("score") or 0),
        xp=int(sub.get("xpGain") or sub.get("xp") or 0),
        date=str(sub.get("createdAt") or sub.get("date") or ""),
        category=sub.get("category") or categorize_label(quest_id),
    )


def map_user_to_player(raw: Dict[str, Any], level_engine: Optional[LevelEngine] = None) -> Player:
    """
    Build a Player from the backend user record.

    level, current_xp and next_level_xp are recomputed from totalXp; when the
    record embeds its submissions they become recent_activity (oldest first)
    and their count is games_completed.
    """
    engine = level_engine or LevelEngine()
    total_xp = max(0, int(raw.get("totalXp") or 0))
    info = engine.level_of(total_xp)

    submissions = raw.get("submissions")
    if submissions:
        recent_activity = [_submission_to_log(sub) for sub in submissions]
        games_completed = len(submissions)
    else:
        recent_activity = [ActivityLog.model_validate(log) for log in raw.get("recentActivity") or []]
        games_completed = int(raw.get("gamesCompleted") or 0)

    return Player(
        id=raw.get("id", 0),
        email=raw.get("email") or "",
        username=raw.get("username") or "",
        role=raw.get("role") or "operator",
        tenant_id=raw.get("tenantId") or "",
        level=info.level,
        current_xp=total_xp,
        total_xp=total_xp,
        next_level_xp=info.next_level_xp,
        games_completed=games_completed,
        total_score=int(raw.get("totalScore") or 0),
        achievements=raw.get("achievements") or [],
        recent_activity=recent_activity,
    )


class GameService:
    """Backend calls used by the progression flow."""

    def __init__(
        self,
        pipeline: SubmissionPipeline,
        settings: Optional[Settings] = None,
        level_engine: Optional[LevelEngine] = None,
    ):
        self.pipeline = pipeline
        self.settings = settings or get_settings()
        self.level_engine = level_engine or LevelEngine(self.settings.level_thresholds)

    async def fetch_player(self) -> Player:
        """GET the authenticated user's canonical state."""
        envelope = await self.pipeline.get(self.settings.me_endpoint)
        if not isinstance(envelope.data, dict):
            raise NetworkError(f"Unexpected player payload from {self.settings.me_endpoint}")
        return map_user_to_player(envelope.data, self.level_engine)

    async def get_leaderboard(self) -> List[LeaderboardEntry]:
        """
        Ranked players, highest total score first.

        Ranks are reassigned after sorting and levels recomputed from total XP,
        so the table agrees with the local threshold table.
        """
        envelope = await self.pipeline.get(self.settings.leaderboard_endpoint)
        entries = [LeaderboardEntry.model_validate(e) for e in envelope.data or []]
        entries.sort(key=lambda e: e.total_score, reverse=True)
        return [
            e.model_copy(update={"rank": rank, "level": self.level_engine.level_of(max(0, e.total_xp)).level})
            for rank, e in enumerate(entries, start=1)
        ]

    async def submit_activity(self, payload: SubmissionPayload) -> SubmissionResponse:
        """POST a submission; the backend decides the XP actually granted."""
        envelope = await self.pipeline.submit(self.settings.submissions_endpoint, payload.to_wire())
        data = envelope.data if isinstance(envelope.data, dict) else {}
        response = SubmissionResponse.model_validate(data)
        logger.info(
            "Submission accepted",
            extra={"quest_id": payload.quest_id, "submission_id": response.id, "xp_gain": response.xp_gain},
        )
        return response

    async def get_notifications(self) -> List[Notification]:
        envelope = await self.pipeline.get(self.settings.notifications_endpoint)
        return [Notification.model_validate(n) for n in envelope.data or []]

    async def mark_notification_read(self, notification_id: str) -> None:
        endpoint = self.settings.notification_read_endpoint.format(id=notification_id)
        await self.pipeline.put(endpoint)

    async def mark_all_notifications_read(self) -> None:
        await self.pipeline.put(self.settings.notifications_read_all_endpoint)
