"""
Kernel - Errors, icons and token identity shared by every engine.
"""

from lean_rpg.kernel.errors import (
    ApiError,
    AuthError,
    NetworkError,
    ProgressionError,
    RateLimitError,
    ValidationError,
)
from lean_rpg.kernel.icons import DEFAULT_ICON, IconId, IconRegistry, resolve_icon

__all__ = [
    "ApiError",
    "AuthError",
    "NetworkError",
    "ProgressionError",
    "RateLimitError",
    "ValidationError",
    "DEFAULT_ICON",
    "IconId",
    "IconRegistry",
    "resolve_icon",
]
