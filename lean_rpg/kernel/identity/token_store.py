"""
Token Store - The process-wide access/refresh token pair.

Every outgoing request reads the access token; only set_tokens() (login)
and refresh() (rotation) write it. refresh() is serialized by a lock, so
any number of concurrent 401s produce at most one refresh call.
"""

import asyncio
import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Union

from jose import JWTError, jwt

from lean_rpg.kernel.errors import ApiError, AuthError
from lean_rpg.logging_config import get_logger
from lean_rpg.schemas.auth import AuthTokens

logger = get_logger(__name__)

# Fixed keys in durable storage
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
EXPIRES_AT_KEY = "accessTokenExpiresAt"

Refresher = Callable[[str], Awaitable[AuthTokens]]
LogoutListener = Callable[[], None]


class TokenStorage(Protocol):
    """Durable key/value storage for tokens."""

    def load(self) -> Dict[str, str]: ...

    def save(self, values: Dict[str, str]) -> None: ...

    def clear(self) -> None: ...


class InMemoryTokenStorage:
    """Storage that lives as long as the process (tests, short-lived scripts)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def load(self) -> Dict[str, str]:
        return dict(self._values)

    def save(self, values: Dict[str, str]) -> None:
        self._values = dict(values)

    def clear(self) -> None:
        self._values = {}


class FileTokenStorage:
    """JSON file storage, replaced atomically and readable only by the owner."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def save(self, values: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(values), encoding="utf-8")
        os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class TokenStore:
    """
    Holds the token pair and owns the refresh routine.

    Logout listeners fire whenever stored tokens are discarded
    (failed refresh or explicit logout).
    """

    def __init__(
        self,
        storage: Optional[TokenStorage] = None,
        refresh_leeway_seconds: int = 30,
    ):
        self._storage: TokenStorage = storage if storage is not None else InMemoryTokenStorage()
        self._refresh_lock = asyncio.Lock()
        self._logout_listeners: List[LogoutListener] = []
        self.refresh_leeway_seconds = refresh_leeway_seconds
        self.refresh_count = 0

        stored = self._storage.load()
        self._access_token: Optional[str] = stored.get(ACCESS_TOKEN_KEY)
        self._refresh_token: Optional[str] = stored.get(REFRESH_TOKEN_KEY)
        expires_at = stored.get(EXPIRES_AT_KEY)
        self._expires_at: Optional[float] = float(expires_at) if expires_at else None

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    def add_logout_listener(self, listener: LogoutListener) -> None:
        self._logout_listeners.append(listener)

    def set_tokens(self, tokens: AuthTokens) -> None:
        """Store a token pair (after login or refresh) and persist it."""
        self._access_token = tokens.access_token
        if tokens.refresh_token:
            self._refresh_token = tokens.refresh_token
        self._expires_at = time.time() + tokens.expires_in if tokens.expires_in else None
        self._persist()

    def clear(self) -> None:
        """Discard both tokens and notify logout listeners if anything was held."""
        had_tokens = self._access_token is not None or self._refresh_token is not None
        self._access_token = None
        self._refresh_token = None
        self._expires_at = None
        self._storage.clear()
        if had_tokens:
            self._emit_logout()

    def access_token_expires_at(self) -> Optional[datetime]:
        """Expiry from the refresh response if known, else from the JWT exp claim."""
        if self._expires_at is not None:
            return datetime.fromtimestamp(self._expires_at, tz=timezone.utc)
        if not self._access_token:
            return None
        try:
            claims = jwt.get_unverified_claims(self._access_token)
        except JWTError:
            # Opaque token; the server's 401 is the only expiry signal
            return None
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return None
        return datetime.fromtimestamp(exp, tz=timezone.utc)

    def access_token_expiring(self) -> bool:
        """True when the access token is known to expire within the leeway."""
        expires_at = self.access_token_expires_at()
        if expires_at is None:
            return False
        return expires_at.timestamp() - time.time() <= self.refresh_leeway_seconds

    async def refresh(self, stale_token: Optional[str], refresher: Refresher) -> str:
        """
        Rotate the access token, coalescing concurrent callers.

        Args:
            stale_token: The access token the caller's request was sent with
            refresher: Coroutine exchanging a refresh token for new tokens

        Returns:
            The new (or already rotated) access token

        Raises:
            AuthError: No refresh token, or the refresh was rejected/failed.
                Tokens are cleared and logout listeners notified.
        """
        async with self._refresh_lock:
            current = self._access_token
            if current is not None and current != stale_token:
                # Rotated by another caller while this one waited
                return current

            refresh_token = self._refresh_token
            if not refresh_token:
                self.clear()
                raise AuthError("No refresh token available", status_code=401)

            self.refresh_count += 1
            try:
                tokens = await refresher(refresh_token)
            except ApiError as e:
                logger.warning("Token refresh failed: %s", e.message)
                self.clear()
                raise AuthError(
                    f"Token refresh failed: {e.message}",
                    status_code=401,
                    code=e.code,
                ) from e

            self.set_tokens(tokens)
            logger.info("Access token refreshed")
            return tokens.access_token

    def _persist(self) -> None:
        values: Dict[str, str] = {}
        if self._access_token:
            values[ACCESS_TOKEN_KEY] = self._access_token
        if self._refresh_token:
            values[REFRESH_TOKEN_KEY] = self._refresh_token
        if self._expires_at is not None:
            values[EXPIRES_AT_KEY] = str(self._expires_at)
        self._storage.save(values)

    def _emit_logout(self) -> None:
        logger.info("Session tokens cleared; signalling logout")
        for listener in list(self._logout_listeners):
            listener()
