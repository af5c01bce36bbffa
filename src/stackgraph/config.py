"""
Centralized configuration for stackgraph.

Uses Pydantic BaseSettings for environment variable integration
and validation. All configurable values should be defined here.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (STACKGRAPH_*)
3. .env file
4. Default values

Example:
    from stackgraph.config import get_config

    config = get_config()
    print(config.application_name)  # From STACKGRAPH_APPLICATION_NAME or default

    # Override at runtime
    config = get_config(budget_limit=250.0)
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")


class StackGraphConfig(BaseSettings):
    """
    Central configuration for stackgraph.

    All settings can be overridden via environment variables
    prefixed with STACKGRAPH_.

    Example:
        export STACKGRAPH_APPLICATION_NAME=storefront
        export STACKGRAPH_BUDGET_LIMIT=250
    """

    model_config = SettingsConfigDict(
        env_prefix="STACKGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Naming
    application_name: str = Field(
        default="nextjs-playground",
        description="Project name used as prefix for stacks and resources",
    )
    region: str = Field(
        default="us-east-1",
        description="Target region (edge distributions require us-east-1)",
    )
    account: Optional[str] = Field(
        default=None,
        description="Target account id, folded into globally unique bucket names",
    )

    # Cost budget (production only)
    budget_limit: float = Field(
        default=100.0,
        gt=0,
        description="Monthly cost ceiling for the production budget policy",
    )
    budget_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code of the budget limit",
    )

    # Delivery pipeline source
    source_owner: str = Field(
        default="example-org",
        description="Owner of the source repository the pipeline builds from",
    )
    source_repo: str = Field(
        default="nextjs-playground",
        description="Source repository the pipeline builds from",
    )
    source_branch: str = Field(
        default="main",
        description="Branch that triggers the delivery pipeline",
    )

    # Monitoring
    monitoring_policy_path: Optional[str] = Field(
        default=None,
        description="YAML file overriding the built-in per-tier threshold table",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for stackgraph",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for log pipelines, text for console)",
    )

    @field_validator("application_name")
    @classmethod
    def validate_application_name(cls, v: str) -> str:
        """Names end up in bucket names, so keep them lowercase and dash-separated."""
        if not _NAME_PATTERN.match(v):
            raise ValueError(
                f"application_name must be lowercase alphanumeric with dashes, got {v!r}"
            )
        return v

    @field_validator("budget_currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("monitoring_policy_path")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand ~ and environment variables in paths."""
        if v is None:
            return v
        return os.path.expanduser(os.path.expandvars(v))

    def get_policy_path(self) -> Optional[Path]:
        """Get the monitoring policy override path, if configured."""
        if self.monitoring_policy_path:
            return Path(self.monitoring_policy_path)
        return None


# Global singleton
_config: Optional[StackGraphConfig] = None


def get_config(**overrides) -> StackGraphConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        StackGraphConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = StackGraphConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


def get_log_level() -> str:
    """Get the configured log level."""
    return get_config().log_level
