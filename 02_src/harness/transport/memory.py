"""In-process broker for tests and local runs."""

import asyncio
from collections import defaultdict
from typing import AsyncIterator, Mapping

from ..logging_config import get_logger
from ..models import RawEnvelope

logger = get_logger(__name__)

_CLOSED = object()


class InMemoryListener:
    """FIFO listen on one topic of an InMemoryBroker."""

    def __init__(self, broker: "InMemoryBroker", topic: str):
        self._broker = broker
        self._topic = topic
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, envelope: RawEnvelope) -> None:
        if not self._closed:
            self._queue.put_nowait(envelope)

    def __aiter__(self) -> AsyncIterator[RawEnvelope]:
        return self

    async def __anext__(self) -> RawEnvelope:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broker._detach(self)
        self._queue.put_nowait(_CLOSED)


class InMemoryBroker:
    """Topic fan-out broker living inside the test process.

    Every open listener on a topic receives its own copy of each envelope
    published after it was opened.
    """

    def __init__(self):
        self._listeners: dict[str, list[InMemoryListener]] = defaultdict(list)
        self._published: list[RawEnvelope] = []
        self.available = True

    async def start(self) -> None:
        self.available = True

    async def stop(self) -> None:
        self.available = False

    async def publish(
        self,
        topic: str,
        body: bytes | str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Publish one message to every listener of topic."""
        if not isinstance(body, (bytes, str)):
            raise TypeError(f"body must be bytes or str, got {type(body).__name__}")
        if not self.available:
            raise ConnectionError("In-memory broker is not available")

        envelope = RawEnvelope(topic=topic, body=body, headers=headers or {})
        self._published.append(envelope)
        for listener in list(self._listeners.get(topic, [])):
            listener.deliver(envelope)

        logger.debug("Published to %s (%s listeners)", topic, self.listener_count(topic))

    def listen(self, topic: str) -> InMemoryListener:
        listener = InMemoryListener(self, topic)
        self._listeners[topic].append(listener)
        return listener

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, []))

    @property
    def published(self) -> list[RawEnvelope]:
        return self._published.copy()

    def _detach(self, listener: InMemoryListener) -> None:
        listeners = self._listeners.get(listener.topic, [])
        if listener in listeners:
            listeners.remove(listener)


class InMemoryTransport:
    """ITransport backed by an InMemoryBroker."""

    def __init__(self, broker: InMemoryBroker):
        self._broker = broker
        self._connected = False
        self._listeners: list[InMemoryListener] = []

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if not self._broker.available:
            raise ConnectionError("In-memory broker is not available")
        self._connected = True

    async def open(self, topic: str) -> InMemoryListener:
        if not self._connected:
            raise ConnectionError("Transport is not connected")
        listener = self._broker.listen(topic)
        self._listeners.append(listener)
        return listener

    async def close(self) -> None:
        for listener in self._listeners:
            await listener.close()
        self._listeners.clear()
        self._connected = False
