"""Assertion helpers for test authors.

Each helper performs bounded waits on a subscription and raises
AssertionError with enough context to debug a failed expectation.
"""

from typing import Any, Mapping, Sequence

from .models import DecodedMessage, ReceiveResult
from .subscription import Subscription


def body_contains(message: DecodedMessage, subset: Mapping[str, Any]) -> bool:
    """True when every key of subset is in the body with an equal value."""
    body = message.to_dict()
    missing = object()
    return all(body.get(key, missing) == value for key, value in subset.items())


def _matches(
    message: DecodedMessage,
    type_name: str | None,
    contains: Mapping[str, Any] | None,
) -> bool:
    if type_name is not None and message.type_name != type_name:
        return False
    if contains and not body_contains(message, contains):
        return False
    return True


def _describe(subscription: Subscription, result: ReceiveResult, timeout_ms: float) -> dict:
    debug = {
        "topic": subscription.topic,
        "timeout_ms": timeout_ms,
        "waited_ms": round(result.waited_ms, 1),
        "status": result.status.value,
        "consumed": subscription.consumed,
        "pending": subscription.pending,
        "undecodable": len(subscription.decode_errors),
        "seen_types": [m.type_name for m in subscription.buffered()],
    }
    if result.message is not None:
        debug["observed_type"] = result.message.type_name
        debug["observed_body"] = result.message.to_dict()
    return debug


async def expect_message(
    subscription: Subscription,
    timeout_ms: float,
    type_name: str | None = None,
    contains: Mapping[str, Any] | None = None,
) -> DecodedMessage:
    """Assert the next message arrives in time and matches the expectation.

    Returns:
        The received message.

    Raises:
        AssertionError on timeout or mismatch.
    """
    result = await subscription.wait_for_message(
        timeout_ms, predicate=lambda m: _matches(m, type_name, contains)
    )
    if result.did_receive:
        return result.message

    debug = _describe(subscription, result, timeout_ms)
    debug["expected_type"] = type_name
    debug["expected_contains"] = dict(contains) if contains else None
    if result.timed_out:
        raise AssertionError(
            f"No message on '{subscription.topic}' within {timeout_ms}ms: {debug}"
        )
    raise AssertionError(
        f"Unexpected message on '{subscription.topic}': {debug}"
    )


async def expect_sequence(
    subscription: Subscription,
    expected: Sequence[Mapping[str, Any]],
    timeout_ms: float,
) -> list[DecodedMessage]:
    """Assert an ordered series of messages, one bounded wait per step.

    Each item of expected may carry "type_name" and/or "contains".
    """
    received: list[DecodedMessage] = []
    for step, expectation in enumerate(expected):
        try:
            message = await expect_message(
                subscription,
                timeout_ms,
                type_name=expectation.get("type_name"),
                contains=expectation.get("contains"),
            )
        except AssertionError as e:
            raise AssertionError(f"Step {step} of {len(expected)}: {e}") from e
        received.append(message)
    return received


async def expect_no_message(subscription: Subscription, timeout_ms: float) -> None:
    """Assert nothing arrives on the subscription within timeout_ms."""
    result = await subscription.wait_for_message(timeout_ms)
    if result.did_receive:
        debug = _describe(subscription, result, timeout_ms)
        raise AssertionError(
            f"Expected no message on '{subscription.topic}': {debug}"
        )
