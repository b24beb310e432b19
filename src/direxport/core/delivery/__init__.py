"""Delivery channel to the ingestion endpoint."""

from .channel import DeliveryAck, DeliveryChannel, EventHubChannel, event_hub_uri

__all__ = [
    "DeliveryAck",
    "DeliveryChannel",
    "EventHubChannel",
    "event_hub_uri",
]
