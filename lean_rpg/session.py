"""
Lean RPG client session.

Wires settings, logging, durable token storage, the submission pipeline and
the services into one object per signed-in user.
"""

from typing import Any, Optional

import httpx

from lean_rpg.client.audit_service import AuditService
from lean_rpg.client.game_service import GameService
from lean_rpg.client.submission_pipeline import SubmissionPipeline
from lean_rpg.config import Settings, get_settings
from lean_rpg.engines.progression.level_engine import LevelEngine
from lean_rpg.kernel.errors import AuthError
from lean_rpg.kernel.identity.token_store import FileTokenStorage, TokenStorage, TokenStore
from lean_rpg.logging_config import configure_logging, get_logger
from lean_rpg.orchestration.progression_orchestrator import ProgressionOrchestrator
from lean_rpg.schemas.auth import AuthTokens

logger = get_logger(__name__)


class LeanRpgSession:
    """
    One client session.

    Usage:
        async with LeanRpgSession() as session:
            await session.login("operator@magna.com", "secret")
            result = await session.orchestrator.complete(activity)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[TokenStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        configure_logs: bool = True,
    ):
        self.settings = settings or get_settings()
        if configure_logs:
            configure_logging(
                log_level=self.settings.log_level,
                environment=self.settings.environment,
                debug=self.settings.debug,
            )

        self.tokens = TokenStore(
            storage if storage is not None else FileTokenStorage(self.settings.token_storage_path),
            refresh_leeway_seconds=self.settings.token_refresh_leeway_seconds,
        )
        self.pipeline = SubmissionPipeline(self.tokens, self.settings, transport=transport)
        level_engine = LevelEngine(self.settings.level_thresholds)
        self.games = GameService(self.pipeline, self.settings, level_engine)
        self.audits = AuditService(self.pipeline, self.settings)
        self.orchestrator = ProgressionOrchestrator(
            self.games,
            level_engine=level_engine,
            settings=self.settings,
        )

    async def __aenter__(self) -> "LeanRpgSession":
        logger.info("Starting %s v%s", self.settings.project_name, self.settings.version)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Let background completions finish, then release the HTTP client."""
        await self.orchestrator.drain()
        await self.pipeline.aclose()

    async def login(self, email: str, password: str) -> AuthTokens:
        """
        Exchange credentials for a token pair and store it.

        Raises:
            AuthError: Credentials rejected or no token in the response
        """
        envelope = await self.pipeline.post(
            self.settings.login_endpoint,
            {"email": email, "password": password},
        )
        data = envelope.data if isinstance(envelope.data, dict) else {}
        if not data.get("accessToken"):
            raise AuthError("Login response carried no access token", status_code=401)
        tokens = AuthTokens.model_validate(data)
        self.tokens.set_tokens(tokens)
        logger.info("Signed in", extra={"tenant_id": self.settings.tenant_id})
        return tokens

    def logout(self) -> None:
        self.tokens.clear()
