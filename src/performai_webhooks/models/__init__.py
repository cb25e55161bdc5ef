"""Webhook delivery models.

- Endpoint: registered subscriber with its running counters
- WebhookPayload: wire payload built once per dispatch
- DeliveryAttemptLog: one append-only row per dispatch outcome
"""

from .base import generate_id, isoformat_z, utcnow
from .delivery import DELIVERY_OPERATION, DeliveryAttemptLog, DeliveryOutcome, ErrorDetail
from .endpoint import HTTP_METHODS, Endpoint, HttpMethod
from .payload import WebhookPayload

__all__ = [
    # Helpers
    "generate_id",
    "isoformat_z",
    "utcnow",
    # Endpoint
    "HTTP_METHODS",
    "Endpoint",
    "HttpMethod",
    # Payload
    "WebhookPayload",
    # Delivery log
    "DELIVERY_OPERATION",
    "DeliveryAttemptLog",
    "DeliveryOutcome",
    "ErrorDetail",
]
