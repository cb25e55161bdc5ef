"""Storage contracts and backends for webhook delivery.

Example:
    ```python
    from performai_webhooks.storage import InMemoryEndpointRegistry

    registry = InMemoryEndpointRegistry([endpoint])
    subscribers = await registry.find_active_subscribers("review.created")
    ```
"""

from .base import DeliveryLogStore, EndpointRegistry
from .jsonl import JsonlDeliveryLogStore
from .memory import InMemoryDeliveryLogStore, InMemoryEndpointRegistry

__all__ = [
    "DeliveryLogStore",
    "EndpointRegistry",
    "InMemoryDeliveryLogStore",
    "InMemoryEndpointRegistry",
    "JsonlDeliveryLogStore",
]
