"""Configuration management for webhook delivery."""

import logging
import warnings
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Webhook delivery configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the PERFORMAI_WEBHOOKS_ prefix. For example:
        PERFORMAI_WEBHOOKS_MAX_CONCURRENT_DELIVERIES=25
        PERFORMAI_WEBHOOKS_SUCCESS_POLICY=status
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Wire identity
    source: str = Field(
        default="performai",
        min_length=1,
        description="Value of the payload 'source' field",
    )
    user_agent: str = Field(
        default="PerformAI-Webhook/1.0",
        min_length=1,
        description="User-Agent header sent with every delivery",
    )
    signature_header: str = Field(
        default="X-PerformAI-Signature",
        min_length=1,
        description="Header carrying the hex HMAC-SHA256 of the request body",
    )

    # Delivery pool
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=1000,
        description=(
            "Number of worker tasks draining the delivery queue. "
            "Deliveries beyond this limit wait in the queue."
        ),
    )

    # Retry
    backoff_base_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Delay before the first retry; doubles for each further retry",
    )
    backoff_max_seconds: float = Field(
        default=3600.0,
        gt=0.0,
        description="Upper bound for a single backoff delay",
    )
    success_policy: Literal["transport", "status"] = Field(
        default="transport",
        description=(
            "'transport': any completed HTTP exchange counts as delivered. "
            "'status': only 2xx responses count; others are retried."
        ),
    )

    # HTTP client
    default_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout of the HTTP client created by WebhookService.create",
    )

    # Delivery log sink
    delivery_log_path: str | None = Field(
        default=None,
        description=(
            "Path of a JSON-lines file receiving delivery log entries. "
            "When unset, entries are kept in memory."
        ),
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "PERFORMAI_WEBHOOKS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def validate_backoff(self) -> "Settings":
        """Validate that the backoff cap is not below the first delay."""
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError(
                f"backoff_max_seconds ({self.backoff_max_seconds}) must be at least "
                f"backoff_base_seconds ({self.backoff_base_seconds})."
            )
        return self

    @model_validator(mode="after")
    def warn_on_production_memory_sink(self) -> "Settings":
        """Warn when production delivery logs would only live in memory."""
        if self.env == "production" and self.delivery_log_path is None:
            warnings.warn(
                "No delivery_log_path configured in production; "
                "delivery logs will be lost on restart.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("Delivery logs kept in memory in production")
        return self


# Global settings instance
settings = Settings()
