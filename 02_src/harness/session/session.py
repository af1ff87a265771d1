"""BrokerSession: one test run's connection context."""

import uuid
from typing import Protocol

from ..config import ConnectionConfig
from ..decoding import IMessageDecoder
from ..errors import (
    BrokerConnectionError,
    CleanupError,
    ConfigError,
    SessionStateError,
)
from ..logging_config import bind_logger
from ..subscription import Subscription
from ..transport import ITransport, create_transport

CORRELATION_HEADER = "X-Correlation-ID"


class IBrokerSession(Protocol):
    """Creates and owns subscriptions for one test run."""

    @property
    def correlation_id(self) -> str:
        ...

    async def start(self) -> None:
        """Connect the transport. Fail fast when it cannot be reached."""
        ...

    async def subscribe_to_topic(self, topic: str) -> Subscription:
        """Open a subscription that buffers from this moment on."""
        ...

    async def cleanup(self) -> None:
        """Close every owned subscription, then the transport."""
        ...


class BrokerSession:
    """Connection context for one test run.

    Typical use::

        async with BrokerSession(config, decoder) as session:
            created = await session.subscribe_to_topic("orders.created")
            await gateway.post_to_service("/api/orders", {"orderId": 42})
            result = await created.wait_for_message(2000)
    """

    def __init__(
        self,
        config: ConnectionConfig,
        decoder: IMessageDecoder,
        transport: ITransport | None = None,
    ):
        config.validate()
        self._config = config
        self._decoder = decoder
        self._transport = transport if transport is not None else create_transport(config)
        self._correlation_id = str(uuid.uuid4())
        self._log = bind_logger(__name__, correlation_id=self._correlation_id)
        self._subscriptions: list[Subscription] = []
        self._started = False
        self._cleaned_up = False

    @classmethod
    async def open(
        cls,
        config: ConnectionConfig,
        decoder: IMessageDecoder,
        transport: ITransport | None = None,
    ) -> "BrokerSession":
        """Construct and start a session; nothing is returned on failure."""
        session = cls(config, decoder, transport)
        await session.start()
        return session

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    @property
    def decoder(self) -> IMessageDecoder:
        return self._decoder

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    @property
    def is_active(self) -> bool:
        return self._started and not self._cleaned_up

    def correlation_headers(self) -> dict[str, str]:
        """Headers that tag a triggering request with this run's correlation id."""
        return {CORRELATION_HEADER: self._correlation_id}

    async def start(self) -> None:
        """Connect the transport. Fail fast when it cannot be reached."""
        if self._cleaned_up:
            raise SessionStateError("Session has been cleaned up")
        if self._started:
            return

        try:
            await self._transport.connect()
        except Exception as e:
            self._log.error("Broker connection failed: %s", e)
            await self._release_transport_after_failure()
            self._cleaned_up = True
            raise BrokerConnectionError(f"Cannot connect to broker: {e}") from e

        self._started = True
        self._log.info("Broker session started")

    async def subscribe_to_topic(self, topic: str) -> Subscription:
        """Open a subscription that buffers from this moment on.

        The same topic may be subscribed more than once; each subscription
        has its own buffer and cursor.
        """
        if not topic or not topic.strip():
            raise ConfigError("Topic name is missing or empty")
        if not self.is_active:
            raise SessionStateError("Session is not started or already cleaned up")

        try:
            listener = await self._transport.open(topic)
        except Exception as e:
            raise BrokerConnectionError(f"Cannot subscribe to {topic!r}: {e}") from e

        subscription = Subscription(topic, listener, self._decoder)
        self._subscriptions.append(subscription)
        subscription.start()
        return subscription

    async def cleanup(self) -> None:
        """Close every owned subscription, then the transport.

        Every resource gets a close attempt; failures are collected and
        raised together as CleanupError. A second call does nothing.
        """
        if self._cleaned_up:
            return
        self._cleaned_up = True

        failures: list[tuple[str, BaseException]] = []
        for subscription in self._subscriptions:
            try:
                await subscription.close()
            except Exception as e:
                self._log.warning("Failed to close subscription to %s: %s", subscription.topic, e)
                failures.append((f"subscription:{subscription.topic}", e))

        try:
            await self._transport.close()
        except Exception as e:
            self._log.warning("Failed to close transport: %s", e)
            failures.append(("transport", e))

        self._log.info(
            "Broker session cleaned up (%s subscriptions, %s failures)",
            len(self._subscriptions),
            len(failures),
        )
        if failures:
            raise CleanupError(failures)

    async def _release_transport_after_failure(self) -> None:
        try:
            await self._transport.close()
        except Exception as e:
            self._log.warning("Failed to release transport after connect error: %s", e)

    async def __aenter__(self) -> "BrokerSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()
