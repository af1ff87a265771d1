"""Broker transport collaborator interfaces."""

from typing import AsyncIterator, Mapping, Protocol

from ..models import RawEnvelope


class ITopicListener(Protocol):
    """Open listen on one topic, yielding raw envelopes until closed."""

    def __aiter__(self) -> AsyncIterator[RawEnvelope]:
        ...

    async def close(self) -> None:
        """Release the listen. Iteration ends after close."""
        ...


class ITransport(Protocol):
    """Connection to a broker that can open topic listens."""

    async def connect(self) -> None:
        """Reach and authenticate against the broker. Raise on failure."""
        ...

    async def open(self, topic: str) -> ITopicListener:
        """Start listening on topic. Messages published after return are delivered."""
        ...

    async def close(self) -> None:
        """Release the transport connection."""
        ...


class IPublisher(Protocol):
    """Publishing side, used by systems under test and test fixtures."""

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def publish(
        self,
        topic: str,
        body: bytes | str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Publish one message to topic."""
        ...
