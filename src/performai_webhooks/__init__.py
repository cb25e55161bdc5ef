"""PerformAI outbound webhooks.

Notifies external HTTP endpoints of platform events with at-least-once
delivery, bounded exponential backoff retry and HMAC-SHA256 signatures.

Quick Start:
    from performai_webhooks import Endpoint, InMemoryEndpointRegistry, WebhookService

    registry = InMemoryEndpointRegistry([
        Endpoint(
            url="https://hooks.example.com/performai",
            events={"review.created", "feedback.submitted"},
            secret="shared-secret",
        )
    ])

    async with WebhookService.create(registry=registry) as webhooks:
        await webhooks.trigger("review.created", {"review_id": "rev_42"})

Components:
    - sign / verify: HMAC-SHA256 over the exact request body
    - DeliveryLogger: one log row per dispatch outcome
    - EndpointRegistry: subscriber lookup and atomic counters
    - DeliveryWorker: bounded-retry delivery to one endpoint
    - EventDispatcher: fan-out through a bounded worker pool
"""

__version__ = "1.0.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    DeliveryExhaustedError,
    NotFoundError,
    StorageError,
    TransportError,
    WebhookError,
)

# Logging
from .logging import (
    bind_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import DeliveryAttemptLog, Endpoint, ErrorDetail, WebhookPayload

# Service
from .service import EndpointTestResult, WebhookService

# Storage
from .storage import (
    DeliveryLogStore,
    EndpointRegistry,
    InMemoryDeliveryLogStore,
    InMemoryEndpointRegistry,
    JsonlDeliveryLogStore,
)

# Delivery
from .webhooks import DeliveryLogger, DeliveryWorker, EventDispatcher, sign, verify

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "WebhookError",
    "NotFoundError",
    "StorageError",
    "TransportError",
    "DeliveryExhaustedError",
    # Logging
    "configure_logging",
    "get_logger",
    "logger",
    "bind_context",
    "unbind_context",
    # Models
    "Endpoint",
    "WebhookPayload",
    "DeliveryAttemptLog",
    "ErrorDetail",
    # Storage
    "EndpointRegistry",
    "DeliveryLogStore",
    "InMemoryEndpointRegistry",
    "InMemoryDeliveryLogStore",
    "JsonlDeliveryLogStore",
    # Delivery
    "sign",
    "verify",
    "DeliveryLogger",
    "DeliveryWorker",
    "EventDispatcher",
    # Service
    "WebhookService",
    "EndpointTestResult",
]
