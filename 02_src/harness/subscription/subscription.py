"""Subscription: buffered listen on one topic with bounded waits."""

import asyncio
from typing import Callable, Protocol

from ..decoding import IMessageDecoder
from ..errors import DecodeError, ReceiveLoopError, SubscriptionClosedError
from ..logging_config import bind_logger
from ..models import DecodedMessage, RawEnvelope, ReceiveResult
from ..transport import ITopicListener


MessagePredicate = Callable[[DecodedMessage], bool]


class ISubscription(Protocol):
    """Open listen on exactly one topic for the lifetime of a session."""

    @property
    def topic(self) -> str:
        ...

    async def wait_for_message(
        self, timeout_ms: float, predicate: MessagePredicate | None = None
    ) -> ReceiveResult:
        """Consume the next message, waiting at most timeout_ms for one to arrive."""
        ...

    async def close(self) -> None:
        """Stop receiving and release the transport listen."""
        ...


class Subscription:
    """Buffers every decoded message on a topic and hands them out in order.

    A background task drains the transport listener from the moment
    ``start()`` is called, so messages are buffered whether or not anyone
    is waiting. Each successful wait consumes exactly one message and moves
    the cursor forward by one.
    """

    def __init__(self, topic: str, listener: ITopicListener, decoder: IMessageDecoder):
        self._topic = topic
        self._listener = listener
        self._decoder = decoder
        self._log = bind_logger(__name__, topic=topic)

        self._buffer: list[DecodedMessage] = []
        self._cursor = 0
        self._condition = asyncio.Condition()
        self._decode_errors: list[DecodeError] = []
        self._failure: BaseException | None = None
        self._closed = False
        self._task: asyncio.Task | None = None

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def consumed(self) -> int:
        """Cursor position: number of messages handed out so far."""
        return self._cursor

    @property
    def received(self) -> int:
        return len(self._buffer)

    @property
    def pending(self) -> int:
        return len(self._buffer) - self._cursor

    @property
    def decode_errors(self) -> tuple[DecodeError, ...]:
        return tuple(self._decode_errors)

    def buffered(self) -> tuple[DecodedMessage, ...]:
        """Snapshot of every message received so far, consumed or not."""
        return tuple(self._buffer)

    def start(self) -> None:
        """Begin receiving and buffering in a background task."""
        if self._closed:
            raise SubscriptionClosedError(f"Subscription to {self._topic!r} is closed")
        if self._task is not None:
            return
        self._task = asyncio.create_task(
            self._receive_loop(), name=f"subscription:{self._topic}"
        )
        self._log.info("Subscribed to %s", self._topic)

    async def _receive_loop(self) -> None:
        try:
            async for envelope in self._listener:
                try:
                    message = self._decoder.decode(envelope)
                except Exception as e:
                    self._record_decode_error(envelope, e)
                    continue

                async with self._condition:
                    self._buffer.append(message)
                    self._condition.notify_all()
        except Exception as e:
            self._log.error("Receive loop for %s failed: %s", self._topic, e, exc_info=True)
            await self._fail(e)
            return

        if not self._closed:
            self._log.warning("Listener for %s ended while subscription was open", self._topic)
            await self._fail(ReceiveLoopError(f"Listener for {self._topic!r} ended"))

    def _record_decode_error(self, envelope: RawEnvelope, error: Exception) -> None:
        """Drop one message; the loop keeps running whatever the decoder raised."""
        if not isinstance(error, DecodeError):
            wrapped = DecodeError(f"decoder raised {error!r}", self._topic)
            wrapped.__cause__ = error
            error = wrapped
        self._decode_errors.append(error)
        self._log.warning(
            "Dropped undecodable message on %s: %s",
            self._topic,
            error.reason,
            extra={"context": {"headers": dict(envelope.headers)}},
        )

    async def _fail(self, error: BaseException) -> None:
        async with self._condition:
            self._failure = error
            self._condition.notify_all()

    def _readable(self) -> bool:
        return (
            self._closed
            or self._cursor < len(self._buffer)
            or self._failure is not None
        )

    def _take(self) -> DecodedMessage | None:
        # Caller holds the condition lock
        if self._closed:
            raise SubscriptionClosedError(f"Subscription to {self._topic!r} is closed")
        if self._cursor < len(self._buffer):
            message = self._buffer[self._cursor]
            self._cursor += 1
            return message
        if self._failure is not None:
            raise ReceiveLoopError(
                f"Receive loop for {self._topic!r} stopped: {self._failure!r}"
            ) from self._failure
        return None

    async def wait_for_message(
        self, timeout_ms: float, predicate: MessagePredicate | None = None
    ) -> ReceiveResult:
        """Consume the next message, waiting at most timeout_ms for one to arrive.

        Returns RECEIVED with the message, or TIMED_OUT with no message and
        the cursor unchanged. With a predicate, the next message is consumed
        either way and the result is MISMATCHED when it does not satisfy it.

        Raises:
            SubscriptionClosedError: subscription closed before or during the wait
            ReceiveLoopError: the listener failed and no buffered message remains
        """
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")
        if self._closed:
            raise SubscriptionClosedError(f"Subscription to {self._topic!r} is closed")

        loop = asyncio.get_running_loop()
        started = loop.time()

        async with self._condition:
            if not self._readable() and timeout_ms > 0:
                try:
                    await asyncio.wait_for(
                        self._condition.wait_for(self._readable),
                        timeout=timeout_ms / 1000,
                    )
                except asyncio.TimeoutError:
                    pass

            # A message appended right at the deadline is still delivered
            message = self._take()

        waited_ms = (loop.time() - started) * 1000
        if message is None:
            self._log.debug("No message on %s within %sms", self._topic, timeout_ms)
            return ReceiveResult.timeout(waited_ms)
        if predicate is not None and not predicate(message):
            return ReceiveResult.mismatched(message, waited_ms)
        return ReceiveResult.received(message, waited_ms)

    async def wait_for_match(
        self, predicate: MessagePredicate, timeout_ms: float
    ) -> ReceiveResult:
        """Consume messages until one satisfies predicate or the budget runs out.

        Non-matching messages are consumed and counted in ``skipped``.
        """
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + timeout_ms / 1000
        skipped = 0

        while True:
            remaining_ms = max(0.0, (deadline - loop.time()) * 1000)
            result = await self.wait_for_message(remaining_ms)
            waited_ms = (loop.time() - started) * 1000
            if not result.did_receive:
                return ReceiveResult.timeout(waited_ms, skipped)
            if predicate(result.message):
                return ReceiveResult.received(result.message, waited_ms, skipped)
            skipped += 1

    async def close(self) -> None:
        """Stop receiving and release the transport listen. Idempotent."""
        if self._closed:
            return

        async with self._condition:
            self._closed = True
            self._condition.notify_all()

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        await self._listener.close()
        self._log.info(
            "Closed subscription to %s (%s received, %s consumed, %s undecodable)",
            self._topic,
            len(self._buffer),
            self._cursor,
            len(self._decode_errors),
        )
