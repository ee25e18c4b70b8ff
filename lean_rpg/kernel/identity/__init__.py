"""
Identity - Client-side token lifecycle.
"""

from lean_rpg.kernel.identity.token_store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    FileTokenStorage,
    InMemoryTokenStorage,
    TokenStorage,
    TokenStore,
)

__all__ = [
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "FileTokenStorage",
    "InMemoryTokenStorage",
    "TokenStorage",
    "TokenStore",
]
