"""Core data models for the bus harness."""

from .http import GetResult, PostResult
from .messages import (
    UNKNOWN_TYPE,
    DecodedMessage,
    RawEnvelope,
    ReceiveResult,
    ReceiveStatus,
    freeze,
    thaw,
)

__all__ = [
    # Messages
    "UNKNOWN_TYPE",
    "RawEnvelope",
    "DecodedMessage",
    "ReceiveStatus",
    "ReceiveResult",
    "freeze",
    "thaw",
    # HTTP
    "PostResult",
    "GetResult",
]
