"""Error taxonomy for the harness.

A timed-out wait is not an error: it is a normal negative ``ReceiveResult``.
"""


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigError(HarnessError, ValueError):
    """Missing, empty or malformed configuration value."""


class BrokerConnectionError(HarnessError, ConnectionError):
    """Transport unreachable or misconfigured when a session starts."""


class DecodeError(HarnessError):
    """A raw envelope could not be decoded into a DecodedMessage."""

    def __init__(self, reason: str, topic: str | None = None):
        self.reason = reason
        self.topic = topic
        where = f" on topic {topic!r}" if topic else ""
        super().__init__(f"Failed to decode message{where}: {reason}")


class SubscriptionClosedError(HarnessError):
    """Operation attempted on a subscription after close()."""


class ReceiveLoopError(HarnessError):
    """The transport listener behind a subscription failed."""


class SessionStateError(HarnessError):
    """Session used before start() or after cleanup()."""


class CleanupError(HarnessError):
    """Aggregate of failures collected while releasing resources."""

    def __init__(self, failures: list[tuple[str, BaseException]]):
        self.failures = failures
        details = "; ".join(f"{name}: {error!r}" for name, error in failures)
        super().__init__(
            f"{len(failures)} resource(s) failed to close: {details}"
        )


class GatewayError(HarnessError):
    """HTTP request to the system under test failed at the transport level."""
