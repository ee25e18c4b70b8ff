"""
Authentication token schemas.
"""

from typing import Optional

from lean_rpg.schemas.common import CamelModel


class AuthTokens(CamelModel):
    """Token pair returned by login and refresh."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds until access token expires


class RefreshTokenRequest(CamelModel):
    """Body of POST /auth/refresh."""

    refresh_token: str
