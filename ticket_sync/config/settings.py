"""Configuration for the ticket sync subsystem.

This module provides the Pydantic settings model for the tracker client,
credential caching and issue creation, plus a loader that merges
environment variables and explicit overrides.
"""

import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..sync_logging import get_logger

logger = get_logger()

ENV_PREFIX = "TICKET_SYNC_"


class SyncSettings(BaseModel):
    """Settings for tracker access and sync behavior."""

    github_api_base: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    user_agent: str = Field(
        default="ticket-sync", description="User-Agent header sent to the tracker"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Per-request timeout in seconds"
    )

    # Retry and rate limiting
    max_retries: int = Field(default=3, ge=0, le=10, description="Retry attempts")
    base_delay: float = Field(
        default=1.0, ge=0, description="Base delay for exponential backoff"
    )
    max_delay: float = Field(
        default=30.0, ge=0, description="Maximum delay between retries"
    )
    requests_per_minute: int = Field(
        default=5000, ge=1, description="Client-side request budget per minute"
    )

    # Tracker behavior
    issues_per_page: int = Field(
        default=100, ge=1, le=100, description="Page size when listing issues"
    )
    credential_ttl_seconds: float = Field(
        default=3000.0,
        gt=0,
        description="How long an installation token is reused (tokens live 1h)",
    )
    issue_footer: str = Field(
        default="\n\n---\n*Created via the support dashboard*",
        description="Footer appended to issues opened from the portal",
    )
    issue_labels: list[str] = Field(
        default_factory=lambda: ["support-request"],
        description="Labels applied to issues opened from the portal",
    )

    log_level: str = Field(default="INFO", description="Package log level")

    class Config:
        extra = "allow"


def _env_overrides() -> dict[str, Any]:
    """Collect TICKET_SYNC_* environment variables as field overrides."""
    values: dict[str, Any] = {}
    for field_name in SyncSettings.model_fields:
        raw = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is None:
            continue
        if field_name == "issue_labels":
            values[field_name] = [part.strip() for part in raw.split(",") if part.strip()]
        else:
            values[field_name] = raw
    return values


def load_settings(**overrides: Any) -> SyncSettings:
    """Load settings from environment variables and explicit overrides.

    Precedence (highest to lowest):
    1. Explicit overrides
    2. Environment variables (TICKET_SYNC_<FIELD>)
    3. Defaults

    Returns:
        Validated SyncSettings

    Raises:
        pydantic.ValidationError: If a value cannot be validated
    """
    merged = _env_overrides()
    if merged:
        logger.debug(f"Applied {len(merged)} settings from environment")
    merged.update(overrides)
    try:
        return SyncSettings(**merged)
    except ValidationError as e:
        logger.error(f"Invalid ticket sync settings: {e}")
        raise


__all__ = ["ENV_PREFIX", "SyncSettings", "load_settings"]
