"""Kafka transport built on aiokafka.

Listens are opened without a consumer group: every partition of the topic
is assigned directly and its offset pinned at the current end before
``open`` returns. Anything published afterwards is delivered to that
listener, regardless of other listeners on the same topic.
"""

import asyncio
from typing import AsyncIterator, Mapping

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import KafkaError

from ..logging_config import get_logger
from ..models import RawEnvelope

logger = get_logger(__name__)


def _decode_headers(headers) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in headers or ():
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8", errors="replace")
        result[key] = "" if value is None else str(value)
    return result


def _encode_headers(headers: Mapping[str, str] | None) -> list[tuple[str, bytes]]:
    return [(key, str(value).encode("utf-8")) for key, value in (headers or {}).items()]


class KafkaTopicListener:
    """Iterates records of one assigned topic as RawEnvelopes."""

    def __init__(self, consumer: AIOKafkaConsumer, topic: str):
        self._consumer = consumer
        self._topic = topic
        self._closed = False

    @property
    def topic(self) -> str:
        return self._topic

    def __aiter__(self) -> AsyncIterator[RawEnvelope]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[RawEnvelope]:
        async for record in self._consumer:
            yield RawEnvelope(
                topic=record.topic,
                body=record.value if record.value is not None else b"",
                headers=_decode_headers(record.headers),
            )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._consumer.stop()
        logger.debug("Stopped Kafka consumer for %s", self._topic)


class KafkaTransport:
    """ITransport for a Kafka cluster."""

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str = "bus-harness",
        connect_timeout: float = 10.0,
    ):
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._timeout = connect_timeout
        self._metadata: AIOKafkaConsumer | None = None
        self._listeners: list[KafkaTopicListener] = []

    @property
    def bootstrap_servers(self) -> str:
        return self._bootstrap_servers

    async def connect(self) -> None:
        """Connect a metadata client and fetch the topic list."""
        consumer = AIOKafkaConsumer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            enable_auto_commit=False,
        )
        try:
            await asyncio.wait_for(consumer.start(), timeout=self._timeout)
            topics = await asyncio.wait_for(consumer.topics(), timeout=self._timeout)
        except (KafkaError, asyncio.TimeoutError, OSError) as e:
            await self._stop_quietly(consumer)
            raise ConnectionError(
                f"Failed to connect to Kafka at {self._bootstrap_servers}: {e!r}"
            ) from e

        self._metadata = consumer
        logger.info(
            "Connected to Kafka at %s (%s topics visible)",
            self._bootstrap_servers,
            len(topics),
        )

    async def open(self, topic: str) -> KafkaTopicListener:
        if self._metadata is None:
            raise ConnectionError("Kafka transport is not connected")

        await asyncio.wait_for(self._metadata.topics(), timeout=self._timeout)
        partitions = self._metadata.partitions_for_topic(topic)
        if not partitions:
            raise ConnectionError(f"Kafka topic {topic!r} does not exist")

        consumer = AIOKafkaConsumer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            enable_auto_commit=False,
        )
        assigned = [TopicPartition(topic, partition) for partition in sorted(partitions)]
        try:
            await asyncio.wait_for(consumer.start(), timeout=self._timeout)
            consumer.assign(assigned)
            await consumer.seek_to_end(*assigned)
            # position() resolves the lazy seek so the end offset is fixed now
            for tp in assigned:
                await consumer.position(tp)
        except (KafkaError, asyncio.TimeoutError, OSError) as e:
            await self._stop_quietly(consumer)
            raise ConnectionError(f"Failed to open Kafka topic {topic!r}: {e!r}") from e

        listener = KafkaTopicListener(consumer, topic)
        self._listeners.append(listener)
        logger.info("Listening on Kafka topic %s (%s partitions)", topic, len(assigned))
        return listener

    async def close(self) -> None:
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            await listener.close()
        if self._metadata is not None:
            metadata, self._metadata = self._metadata, None
            await metadata.stop()

    async def _stop_quietly(self, consumer: AIOKafkaConsumer) -> None:
        try:
            await consumer.stop()
        except Exception as e:
            logger.warning("Error stopping Kafka consumer after failure: %s", e)


class KafkaPublisher:
    """IPublisher over an aiokafka producer."""

    def __init__(self, bootstrap_servers: str, client_id: str = "bus-harness-publisher"):
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._producer: AIOKafkaProducer | None = None

    async def start(self) -> None:
        if self._producer is not None:
            return
        producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
        )
        await producer.start()
        self._producer = producer
        logger.info("Kafka publisher started for %s", self._bootstrap_servers)

    async def stop(self) -> None:
        if self._producer is not None:
            producer, self._producer = self._producer, None
            await producer.stop()

    async def publish(
        self,
        topic: str,
        body: bytes | str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if self._producer is None:
            raise RuntimeError("Kafka publisher not started")
        value = body.encode("utf-8") if isinstance(body, str) else body
        await self._producer.send_and_wait(topic, value=value, headers=_encode_headers(headers))
