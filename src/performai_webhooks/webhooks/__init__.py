"""Outbound webhook delivery.

Provides HMAC-signed webhook delivery with bounded exponential backoff
retry and a bounded fan-out pool.

Example:
    ```python
    from performai_webhooks.webhooks import DeliveryWorker, EventDispatcher, sign, verify

    worker = DeliveryWorker(client, registry, DeliveryLogger(store))
    async with EventDispatcher(registry, worker) as dispatcher:
        await dispatcher.trigger("feedback.submitted", {"feedback_id": "fb_1"})

    # Receiver side
    assert verify(raw_body, request.headers["X-PerformAI-Signature"], secret)
    ```
"""

from .dispatcher import EventDispatcher
from .logger import DeliveryLogger
from .signature import sign, verify
from .worker import DeliveryWorker

__all__ = [
    "DeliveryLogger",
    "DeliveryWorker",
    "EventDispatcher",
    "sign",
    "verify",
]
