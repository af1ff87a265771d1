"""Broker transport module."""

from .base import IPublisher, ITopicListener, ITransport
from .factory import create_transport
from .kafka import KafkaPublisher, KafkaTransport
from .memory import InMemoryBroker, InMemoryListener, InMemoryTransport

__all__ = [
    "ITransport",
    "ITopicListener",
    "IPublisher",
    "InMemoryBroker",
    "InMemoryListener",
    "InMemoryTransport",
    "KafkaTransport",
    "KafkaPublisher",
    "create_transport",
]
