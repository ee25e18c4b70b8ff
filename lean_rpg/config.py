"""
Client configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine and client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Backend
    api_base_url: str = "http://localhost:4000"
    tenant_id: str = "magna"
    http_timeout: float = 10.0

    # Endpoint paths
    login_endpoint: str = "/api/auth/login"
    refresh_endpoint: str = "/api/auth/refresh"
    me_endpoint: str = "/api/users/me"
    leaderboard_endpoint: str = "/api/gamification/leaderboard"
    submissions_endpoint: str = "/api/submissions"
    audits_endpoint: str = "/api/audits"
    audit_detail_endpoint: str = "/api/audits/{id}"
    audit_review_endpoint: str = "/api/audits/{id}/approve"
    checklist_templates_endpoint: str = "/api/audits/checklist-templates"
    checklist_template_endpoint: str = "/api/audits/checklist-templates/{id}"
    notifications_endpoint: str = "/api/notifications"
    notification_read_endpoint: str = "/api/notifications/{id}/read"
    notifications_read_all_endpoint: str = "/api/notifications/read-all"

    # Token storage
    token_storage_path: str = ".lean_rpg/tokens.json"
    token_refresh_leeway_seconds: int = 30

    # Rate limiting (429 handling)
    rate_limit_max_retries: int = 3
    rate_limit_default_retry_after: float = 1.0  # seconds, when Retry-After is missing
    rate_limit_jitter_seconds: float = 0.25
    rate_limit_max_retry_after: float = 60.0  # upper bound on a server-requested wait

    # Progression
    level_thresholds: List[int] = [0, 1000, 2500, 4500, 7000, 10000]
    allow_offline_fallback: bool = True
    player_refetch_attempts: int = 2

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    project_name: str = "Lean RPG Progression Engine"
    version: str = "1.0.0"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
