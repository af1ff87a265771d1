"""Broker message data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

UNKNOWN_TYPE = "unknown"

CORRELATION_HEADERS = ("x-correlation-id", "correlation-id", "correlation_id")


def _find_header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become mappingproxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list copy of a frozen value."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


# eq=False: two deliveries with equal content are still distinct messages
@dataclass(frozen=True, eq=False)
class RawEnvelope:
    """Transport unit as delivered by the broker, before decoding."""

    topic: str
    body: bytes | str
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        value = _find_header(self.headers, name)
        return default if value is None else value


@dataclass(frozen=True, eq=False)
class DecodedMessage:
    """Canonical, format-independent representation of one broker message.

    The body is frozen all the way down; use ``to_dict()`` for a mutable
    plain-JSON copy.
    """

    type_name: str
    body: Mapping[str, Any]
    topic: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    received_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self):
        object.__setattr__(self, "body", freeze(self.body))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def correlation_id(self) -> str | None:
        for name in CORRELATION_HEADERS:
            value = _find_header(self.headers, name)
            if value:
                return value
        return None

    def get(self, key: str, default: Any = None) -> Any:
        """Body field access by name."""
        return self.body.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return thaw(self.body)


class ReceiveStatus(str, Enum):
    """Outcome of a single wait on a subscription."""

    RECEIVED = "received"
    TIMED_OUT = "timed_out"
    MISMATCHED = "mismatched"


@dataclass(frozen=True)
class ReceiveResult:
    """Result of Subscription.wait_for_message / wait_for_match."""

    status: ReceiveStatus
    message: DecodedMessage | None = None
    waited_ms: float = 0.0
    skipped: int = 0

    @property
    def did_receive(self) -> bool:
        return self.status is ReceiveStatus.RECEIVED

    @property
    def timed_out(self) -> bool:
        return self.status is ReceiveStatus.TIMED_OUT

    @property
    def body(self) -> Mapping[str, Any] | None:
        return self.message.body if self.message is not None else None

    @classmethod
    def received(cls, message: DecodedMessage, waited_ms: float = 0.0, skipped: int = 0) -> "ReceiveResult":
        return cls(ReceiveStatus.RECEIVED, message, waited_ms, skipped)

    @classmethod
    def timeout(cls, waited_ms: float, skipped: int = 0) -> "ReceiveResult":
        return cls(ReceiveStatus.TIMED_OUT, None, waited_ms, skipped)

    @classmethod
    def mismatched(cls, message: DecodedMessage, waited_ms: float = 0.0) -> "ReceiveResult":
        return cls(ReceiveStatus.MISMATCHED, message, waited_ms)
