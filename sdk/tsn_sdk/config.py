"""
Configuration for the TSN SDK.

Uses pydantic-settings for environment variable loading (prefix ``TSN_``).
Settings are passed explicitly to the client and ledger; there is no
global settings object.
"""

from __future__ import annotations

import logging
from typing import Literal

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """SDK configuration loaded from environment."""

    # Transaction confirmation
    tx_poll_interval: float = Field(
        default=1.0, gt=0, description="Seconds between tx status polls"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["text", "json"] = Field(default="text", description="Log line format")

    # Composition
    max_composition_depth: int = Field(
        default=16, ge=1, description="Maximum nesting of composed streams"
    )

    model_config = {"env_prefix": "TSN_"}


def setup_logging(settings: ClientSettings, logger: logging.Logger | None = None) -> logging.Logger:
    """Attach a stream handler configured from ``settings``.

    Args:
        settings: SDK settings
        logger: Logger to configure (defaults to the ``tsn_sdk`` logger)

    Returns:
        The configured logger
    """
    target = logger or logging.getLogger("tsn_sdk")
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    target.setLevel(level)
    target.handlers = [handler]
    return target
