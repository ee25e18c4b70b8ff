"""
Pytest fixtures for Lean RPG tests.
"""

import json
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from lean_rpg.client.game_service import GameService
from lean_rpg.client.submission_pipeline import SubmissionPipeline
from lean_rpg.config import Settings
from lean_rpg.engines.progression.level_engine import LevelEngine
from lean_rpg.kernel.identity.token_store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    InMemoryTokenStorage,
    TokenStore,
)
from lean_rpg.schemas.audit import AuditResponse, ChecklistItem
from lean_rpg.schemas.player import ActivityCategory, ActivityLog, Player


def envelope(data: Any = None, success: bool = True, error: Optional[str] = None, status: int = 200) -> httpx.Response:
    body: Dict[str, Any] = {"success": success}
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    return httpx.Response(status, json=body)


class FakeBackend:
    """
    In-process REST backend behind httpx.MockTransport.

    Keeps one user record, rotates tokens on refresh and applies submissions
    to totalXp/totalScore the way the real service does. Responses queued
    with queue() are served first for their (method, path).
    """

    def __init__(self, total_xp: int = 0, games_completed: int = 0, total_score: int = 0):
        self.requests: List[httpx.Request] = []
        self.refresh_calls = 0
        self.submissions_offline = False
        self.me_offline = False
        self.embed_submissions = False
        self.valid_access = {"access-1"}
        self.valid_refresh = {"refresh-1"}
        self._token_seq = 1
        self._queued: Dict[Tuple[str, str], List[httpx.Response]] = defaultdict(list)
        self.notifications = [
            {"id": 1, "title": "Audit due", "message": "Line A 5S audit", "type": "task", "read": False,
             "timestamp": "2024-05-01T08:00:00Z", "relatedTaskId": "t-1"},
            {"id": 2, "title": "Welcome", "message": "", "type": "info", "read": True,
             "timestamp": "2024-04-01T08:00:00Z"},
        ]
        self.leaderboard = [
            {"userId": 102, "userName": "5S_Ninja", "totalXp": 6200, "totalScore": 18000, "level": 4, "rank": 2},
            {"id": 101, "username": "KaizenKing", "totalXp": 9500, "totalScore": 25000, "level": 5, "rank": 1},
            {"userId": 7, "userName": "CI Operator", "totalXp": 2600, "totalScore": 21000, "level": 1, "rank": 3},
        ]
        self.templates = {
            "t1": {"id": "t1", "name": "Daily 5S Audit", "category": "5S", "version": 1, "xpReward": 150, "items": [
                {"id": "i1", "question": "Are walkways clear?", "expected_answer": "Yes", "scoring_weight": 5},
                {"id": "i2", "question": "Tools on shadow boards?", "expected_answer": "Yes", "scoring_weight": 3},
            ]},
        }
        self.audits = {
            "41": {"id": 41, "checklistId": 12, "auditorId": 7, "workplaceId": 3, "status": "submitted",
                   "score": 92, "riskLevel": "Green", "xpEarned": 150},
        }
        self.user: Dict[str, Any] = {
            "id": 7,
            "email": "operator@magna.com",
            "username": "CI Operator",
            "role": "operator",
            "tenantId": "magna",
            "totalXp": total_xp,
            "gamesCompleted": games_completed,
            "totalScore": total_score,
            "achievements": [],
        }
        self.submissions: List[Dict[str, Any]] = []

    def queue(self, method: str, path: str, *responses: httpx.Response) -> None:
        self._queued[(method, path)].extend(responses)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if self._queued.get(key):
            return self._queued[key].pop(0)

        if request.url.path == "/api/auth/refresh":
            return self._refresh(request)

        auth = request.headers.get("Authorization", "")
        if auth.removeprefix("Bearer ") not in self.valid_access:
            return envelope(success=False, error="Token expired", status=401)

        if key == ("GET", "/api/users/me"):
            if self.me_offline:
                raise httpx.ConnectError("backend unreachable", request=request)
            user = dict(self.user)
            if self.embed_submissions:
                user["submissions"] = list(self.submissions)
            return envelope(user)
        if key == ("POST", "/api/submissions"):
            if self.submissions_offline:
                raise httpx.ConnectError("backend unreachable", request=request)
            return self._submit(request)
        if key == ("GET", "/api/notifications"):
            return envelope(self.notifications)
        if request.method == "PUT" and request.url.path.startswith("/api/notifications/"):
            return envelope({"updated": True})
        if key == ("GET", "/api/gamification/leaderboard"):
            return envelope(self.leaderboard)
        if key == ("GET", "/api/audits/checklist-templates"):
            return envelope(list(self.templates.values()))
        if request.method == "GET" and request.url.path.startswith("/api/audits/checklist-templates/"):
            template = self.templates.get(request.url.path.rsplit("/", 1)[-1])
            if template is None:
                return envelope(success=False, error="Template not found", status=404)
            return envelope(template)
        if key == ("GET", "/api/audits"):
            return envelope(list(self.audits.values()))
        if request.method == "GET" and request.url.path.startswith("/api/audits/"):
            audit = self.audits.get(request.url.path.rsplit("/", 1)[-1])
            if audit is None:
                return envelope(success=False, error="Audit not found", status=404)
            return envelope(audit)
        if key == ("POST", "/api/audits"):
            return envelope(json.loads(request.content))
        if request.method == "PUT" and request.url.path.startswith("/api/audits/"):
            return envelope()
        return envelope(success=False, error="Not found", status=404)

    def _refresh(self, request: httpx.Request) -> httpx.Response:
        self.refresh_calls += 1
        body = json.loads(request.content)
        if body.get("refreshToken") not in self.valid_refresh:
            return envelope(success=False, error="Invalid refresh token", status=401)
        self._token_seq += 1
        access = f"access-{self._token_seq}"
        refresh = f"refresh-{self._token_seq}"
        self.valid_access = {access}
        self.valid_refresh = {refresh}
        return envelope({"accessToken": access, "refreshToken": refresh})

    def _submit(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        details = json.loads(payload["content"])
        submission = {
            "id": 100 + len(self.submissions),
            "questId": payload["questId"],
            "score": details["score"],
            "xpGain": details["xpEarned"],
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        self.submissions.append(submission)
        self.user["totalXp"] += submission["xpGain"]
        self.user["totalScore"] += submission["score"]
        self.user["gamesCompleted"] += 1
        return envelope({**submission, "status": "evaluated"}, status=201)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(_env_file=None, rate_limit_jitter_seconds=0.25)


@pytest.fixture
def token_store() -> TokenStore:
    return TokenStore(
        InMemoryTokenStorage({ACCESS_TOKEN_KEY: "access-1", REFRESH_TOKEN_KEY: "refresh-1"})
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_pipeline(settings: Settings) -> Callable[..., SubmissionPipeline]:
    """Build a pipeline over any MockTransport handler."""

    def _make(store: TokenStore, handler: Callable, **overrides: Any) -> SubmissionPipeline:
        return SubmissionPipeline(
            store,
            settings,
            base_url="http://backend.test",
            transport=httpx.MockTransport(handler),
            **overrides,
        )

    return _make


@pytest_asyncio.fixture
async def pipeline(make_pipeline, token_store: TokenStore, backend: FakeBackend):
    p = make_pipeline(token_store, backend.handler)
    yield p
    await p.aclose()


@pytest.fixture
def game_service(pipeline: SubmissionPipeline, settings: Settings) -> GameService:
    return GameService(pipeline, settings, LevelEngine(settings.level_thresholds))


def make_player(
    total_xp: int = 0,
    games_completed: int = 0,
    total_score: int = 0,
    achievements: Optional[list] = None,
    activity: Optional[List[Tuple[str, int, Optional[ActivityCategory]]]] = None,
) -> Player:
    """Player with level fields consistent with total_xp under the default table."""
    info = LevelEngine().level_of(total_xp)
    logs = [
        ActivityLog(id=str(i), game=game, score=score, xp=10, date="2024-05-01", category=category)
        for i, (game, score, category) in enumerate(activity or [])
    ]
    return Player(
        id="7",
        username="CI Operator",
        level=info.level,
        current_xp=total_xp,
        total_xp=total_xp,
        next_level_xp=info.next_level_xp,
        games_completed=games_completed,
        total_score=total_score,
        achievements=achievements or [],
        recent_activity=logs,
    )


def checklist(weights: List[float], expected: str = "yes") -> List[ChecklistItem]:
    return [
        ChecklistItem(id=f"i{n}", question=f"Question {n}", expected_answer=expected, weight=w)
        for n, w in enumerate(weights, start=1)
    ]


def answers(*values: str) -> List[AuditResponse]:
    return [AuditResponse(item_id=f"i{n}", answer=v) for n, v in enumerate(values, start=1)]


@pytest.fixture
def player_factory() -> Callable[..., Player]:
    return make_player


@pytest.fixture
def checklist_factory() -> Callable[..., List[ChecklistItem]]:
    return checklist


@pytest.fixture
def answers_factory() -> Callable[..., List[AuditResponse]]:
    return answers
