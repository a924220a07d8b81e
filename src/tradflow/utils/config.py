"""Configuration management for tradflow.

Handles repository coordinates, workflow label names and service settings
using Pydantic Settings. Supports environment variables and .env files.
Required settings have no defaults: a missing one stops the process at
startup instead of surfacing at the first request.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradflow.core.commits import ConflictPolicy
from tradflow.core.lifecycle import BRANCH_IDENTIFIER_PATH, WorkflowLabels
from tradflow.github.base import ConfigurationError
from tradflow.github.routes import GITHUB_API_URL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Application settings.

    Loads configuration from environment variables or .env file.
    All settings use the TRADFLOW_ prefix.

    Example .env file:
        TRADFLOW_REPOSITORY_OWNER=my-org
        TRADFLOW_REPOSITORY_NAME=game-translation
        TRADFLOW_REPOSITORY_MAIN_BRANCH=main
        TRADFLOW_TRANSLATION_LABEL_NAME=translation
        TRADFLOW_TRANSLATION_WIP_LABEL_NAME=wip
        TRADFLOW_TRANSLATION_REVIEW_LABEL_NAME=review

    Example usage:
        >>> settings = load_settings()
        >>> print(settings.repository_main_branch)
        main
    """

    # Repository
    repository_owner: str = Field(
        ...,
        min_length=1,
        description="Owner (user or organisation) of the translation repository",
        json_schema_extra={"env": "TRADFLOW_REPOSITORY_OWNER"},
    )

    repository_name: str = Field(
        ...,
        min_length=1,
        description="Name of the translation repository",
        json_schema_extra={"env": "TRADFLOW_REPOSITORY_NAME"},
    )

    repository_main_branch: str = Field(
        ...,
        min_length=1,
        description="Branch translation pull requests target",
        json_schema_extra={"env": "TRADFLOW_REPOSITORY_MAIN_BRANCH"},
    )

    # Workflow labels
    translation_label_name: str = Field(
        ...,
        min_length=1,
        description="Label marking translation pull requests",
        json_schema_extra={"env": "TRADFLOW_TRANSLATION_LABEL_NAME"},
    )

    translation_wip_label_name: str = Field(
        ...,
        min_length=1,
        description="Label marking translations in progress",
        json_schema_extra={"env": "TRADFLOW_TRANSLATION_WIP_LABEL_NAME"},
    )

    translation_review_label_name: str = Field(
        ...,
        min_length=1,
        description="Label marking translations ready for review",
        json_schema_extra={"env": "TRADFLOW_TRANSLATION_REVIEW_LABEL_NAME"},
    )

    # Remote API
    github_api_url: str = Field(
        default=GITHUB_API_URL,
        description="GitHub REST API root",
        json_schema_extra={"env": "TRADFLOW_GITHUB_API_URL"},
    )

    request_timeout: float = Field(
        default=30.0,
        description="Timeout for one API request in seconds (0 disables it)",
        ge=0,
        json_schema_extra={"env": "TRADFLOW_REQUEST_TIMEOUT"},
    )

    # Workflow
    cache_ttl_seconds: float = Field(
        default=3600.0,
        description="Lifetime of cached file manifests (<= 0 disables expiry)",
        json_schema_extra={"env": "TRADFLOW_CACHE_TTL_SECONDS"},
    )

    branch_identifier_path: str = Field(
        default=BRANCH_IDENTIFIER_PATH,
        min_length=1,
        description="File rewritten to give a new translation branch its first commit",
        json_schema_extra={"env": "TRADFLOW_BRANCH_IDENTIFIER_PATH"},
    )

    manifest_path: Path | None = Field(
        default=None,
        description="JSON file listing translatable files (built-in list if unset)",
        json_schema_extra={"env": "TRADFLOW_MANIFEST_PATH"},
    )

    commit_conflict_policy: ConflictPolicy = Field(
        default=ConflictPolicy.LAST_WRITE_WINS,
        description="Handling of concurrent commits to one branch",
        json_schema_extra={"env": "TRADFLOW_COMMIT_CONFLICT_POLICY"},
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        json_schema_extra={"env": "TRADFLOW_LOG_LEVEL"},
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRADFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def workflow_labels(self) -> WorkflowLabels:
        return WorkflowLabels(
            translation=self.translation_label_name,
            wip=self.translation_wip_label_name,
            review=self.translation_review_label_name,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings, failing fast on missing or invalid values.

    Args:
        **overrides: Explicit values taking precedence over the environment

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: Listing every missing or invalid setting
    """
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        problems = []
        for error in e.errors():
            name = ".".join(str(part) for part in error["loc"])
            env_name = f"TRADFLOW_{name.upper()}"
            if error["type"] == "missing":
                problems.append(f"{env_name} is required")
            else:
                problems.append(f"{env_name}: {error['msg']}")
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems)) from e


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, loading it on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server and CLI entry points."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
