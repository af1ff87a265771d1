"""Bus harness: subscribe before triggering, then wait for what gets published."""

from .assertions import body_contains, expect_message, expect_no_message, expect_sequence
from .config import ConnectionConfig, HarnessSettings
from .decoding import (
    CloudEventsDecoder,
    HeaderTypedJsonDecoder,
    IMessageDecoder,
    JsonDecoder,
    get_decoder,
    register_decoder,
)
from .errors import (
    BrokerConnectionError,
    CleanupError,
    ConfigError,
    DecodeError,
    GatewayError,
    HarnessError,
    ReceiveLoopError,
    SessionStateError,
    SubscriptionClosedError,
)
from .gateway import HttpGateway, IHttpGateway
from .models import (
    UNKNOWN_TYPE,
    DecodedMessage,
    GetResult,
    PostResult,
    RawEnvelope,
    ReceiveResult,
    ReceiveStatus,
)
from .session import BrokerSession, IBrokerSession
from .subscription import ISubscription, Subscription
from .transport import (
    InMemoryBroker,
    InMemoryTransport,
    IPublisher,
    ITopicListener,
    ITransport,
    KafkaPublisher,
    KafkaTransport,
    create_transport,
)

__all__ = [
    # Session
    "BrokerSession",
    "IBrokerSession",
    "Subscription",
    "ISubscription",
    # Models
    "UNKNOWN_TYPE",
    "RawEnvelope",
    "DecodedMessage",
    "ReceiveResult",
    "ReceiveStatus",
    "PostResult",
    "GetResult",
    # Decoding
    "IMessageDecoder",
    "JsonDecoder",
    "HeaderTypedJsonDecoder",
    "CloudEventsDecoder",
    "get_decoder",
    "register_decoder",
    # Transport
    "ITransport",
    "ITopicListener",
    "IPublisher",
    "InMemoryBroker",
    "InMemoryTransport",
    "KafkaTransport",
    "KafkaPublisher",
    "create_transport",
    # Gateway
    "HttpGateway",
    "IHttpGateway",
    # Config
    "ConnectionConfig",
    "HarnessSettings",
    # Assertions
    "expect_message",
    "expect_sequence",
    "expect_no_message",
    "body_contains",
    # Errors
    "HarnessError",
    "ConfigError",
    "BrokerConnectionError",
    "DecodeError",
    "SubscriptionClosedError",
    "ReceiveLoopError",
    "SessionStateError",
    "CleanupError",
    "GatewayError",
]
