"""Tests for Subscription."""

import asyncio
import time

import pytest

from harness.decoding import HeaderTypedJsonDecoder
from harness.errors import ReceiveLoopError, SubscriptionClosedError
from harness.models import RawEnvelope, ReceiveStatus
from harness.subscription import Subscription


class TestSubscriptionReceive:
    """Tests for buffering and wait_for_message."""

    @pytest.mark.asyncio
    async def test_receives_published_message(self, session, publish):
        """Test subscribe, publish, wait returns the message."""
        sub = await session.subscribe_to_topic("orders.created")

        await publish("orders.created", {"orderId": 42}, type_name="OrderCreated")

        started = time.monotonic()
        result = await sub.wait_for_message(2000)
        elapsed = time.monotonic() - started

        assert result.did_receive is True
        assert result.status is ReceiveStatus.RECEIVED
        assert result.message.body == {"orderId": 42}
        assert result.message.type_name == "OrderCreated"
        assert elapsed < 2.0

    @pytest.mark.asyncio
    async def test_message_arriving_during_wait(self, session, publish):
        """Test a waiter is woken by a message published after it started waiting."""
        sub = await session.subscribe_to_topic("orders.created")

        async def publish_later():
            await asyncio.sleep(0.05)
            await publish("orders.created", {"orderId": 7})

        publisher = asyncio.create_task(publish_later())
        result = await sub.wait_for_message(2000)
        await publisher

        assert result.did_receive
        assert result.body == {"orderId": 7}
        assert result.waited_ms < 2000

    @pytest.mark.asyncio
    async def test_buffers_without_waiter(self, session, publish):
        """Test messages published before any wait are not missed."""
        sub = await session.subscribe_to_topic("orders.created")

        await publish("orders.created", {"orderId": 1})
        await asyncio.sleep(0.05)

        assert sub.pending == 1
        result = await sub.wait_for_message(0)
        assert result.did_receive
        assert result.body == {"orderId": 1}

    @pytest.mark.asyncio
    async def test_no_double_delivery(self, session, publish):
        """Test sequential waits return distinct messages in order."""
        sub = await session.subscribe_to_topic("orders.created")

        await publish("orders.created", {"orderId": 1})
        await publish("orders.created", {"orderId": 2})

        first = await sub.wait_for_message(1000)
        assert sub.consumed == 1
        second = await sub.wait_for_message(1000)
        assert sub.consumed == 2

        assert first.message is not second.message
        assert first.body == {"orderId": 1}
        assert second.body == {"orderId": 2}

        third = await sub.wait_for_message(50)
        assert third.did_receive is False
        assert sub.consumed == 2

    @pytest.mark.asyncio
    async def test_fifo_order_preserved(self, session, publish):
        """Test many messages come out in publish order."""
        sub = await session.subscribe_to_topic("orders.created")

        for i in range(20):
            await publish("orders.created", {"seq": i})

        seen = []
        for _ in range(20):
            result = await sub.wait_for_message(1000)
            seen.append(result.body["seq"])

        assert seen == list(range(20))

    @pytest.mark.asyncio
    async def test_messages_before_subscribe_not_seen(self, session, publish):
        """Test a subscription starts at the moment it is opened."""
        await publish("orders.created", {"orderId": 0})
        sub = await session.subscribe_to_topic("orders.created")
        await publish("orders.created", {"orderId": 1})

        result = await sub.wait_for_message(1000)
        assert result.body == {"orderId": 1}


class TestSubscriptionTimeout:
    """Tests for timeout behavior."""

    @pytest.mark.asyncio
    async def test_timeout_when_silent(self, session):
        """Test waiting on a silent topic times out after about the timeout."""
        sub = await session.subscribe_to_topic("orders.created")

        started = time.monotonic()
        result = await sub.wait_for_message(500)
        elapsed = time.monotonic() - started

        assert result.did_receive is False
        assert result.status is ReceiveStatus.TIMED_OUT
        assert result.message is None
        assert elapsed >= 0.49
        assert elapsed < 0.9
        assert sub.consumed == 0

    @pytest.mark.asyncio
    async def test_zero_timeout_polls(self, session):
        """Test a zero timeout returns immediately."""
        sub = await session.subscribe_to_topic("orders.created")

        result = await sub.wait_for_message(0)

        assert result.timed_out
        assert result.waited_ms < 50

    @pytest.mark.asyncio
    async def test_negative_timeout_rejected(self, session):
        """Test negative timeouts are a programming error."""
        sub = await session.subscribe_to_topic("orders.created")

        with pytest.raises(ValueError):
            await sub.wait_for_message(-1)

    @pytest.mark.asyncio
    async def test_receive_continues_after_timeout(self, session, publish):
        """Test a timeout does not stop buffering."""
        sub = await session.subscribe_to_topic("orders.created")

        result = await sub.wait_for_message(20)
        assert not result.did_receive

        await publish("orders.created", {"orderId": 3})
        result = await sub.wait_for_message(1000)
        assert result.did_receive
        assert result.body == {"orderId": 3}


class TestSubscriptionPredicates:
    """Tests for predicate based waits."""

    @pytest.mark.asyncio
    async def test_predicate_mismatch_consumes(self, session, publish):
        """Test a mismatching message is reported and consumed."""
        sub = await session.subscribe_to_topic("orders")
        await publish("orders", {"orderId": 1}, type_name="OrderCancelled")
        await publish("orders", {"orderId": 1}, type_name="OrderCreated")

        result = await sub.wait_for_message(
            1000, predicate=lambda m: m.type_name == "OrderCreated"
        )
        assert result.status is ReceiveStatus.MISMATCHED
        assert result.did_receive is False
        assert result.message.type_name == "OrderCancelled"
        assert sub.consumed == 1

        result = await sub.wait_for_message(
            1000, predicate=lambda m: m.type_name == "OrderCreated"
        )
        assert result.did_receive

    @pytest.mark.asyncio
    async def test_wait_for_match_skips(self, session, publish):
        """Test wait_for_match skips non-matching messages."""
        sub = await session.subscribe_to_topic("orders")
        await publish("orders", {"orderId": 1}, type_name="OrderCancelled")
        await publish("orders", {"orderId": 2}, type_name="OrderCancelled")
        await publish("orders", {"orderId": 3}, type_name="OrderCreated")

        result = await sub.wait_for_match(lambda m: m.type_name == "OrderCreated", 1000)

        assert result.did_receive
        assert result.body == {"orderId": 3}
        assert result.skipped == 2
        assert sub.consumed == 3

    @pytest.mark.asyncio
    async def test_wait_for_match_times_out(self, session, publish):
        """Test wait_for_match respects one overall budget."""
        sub = await session.subscribe_to_topic("orders")
        await publish("orders", {"orderId": 1}, type_name="OrderCancelled")

        started = time.monotonic()
        result = await sub.wait_for_match(lambda m: m.type_name == "OrderCreated", 200)
        elapsed = time.monotonic() - started

        assert result.timed_out
        assert result.skipped == 1
        assert elapsed < 0.6


class TestSubscriptionDecodeErrors:
    """Tests for malformed envelopes."""

    @pytest.mark.asyncio
    async def test_malformed_message_dropped(self, session, publish):
        """Test a malformed envelope does not stop the next good one."""
        sub = await session.subscribe_to_topic("topic.a")

        await publish("topic.a", "{not json")
        await publish("topic.a", {"ok": True})

        result = await sub.wait_for_message(1000)

        assert result.did_receive
        assert result.body == {"ok": True}
        assert len(sub.decode_errors) == 1
        assert sub.decode_errors[0].topic == "topic.a"

    @pytest.mark.asyncio
    async def test_malformed_message_isolated_per_topic(self, session, publish):
        """Test a malformed envelope on one topic leaves another untouched."""
        sub_a = await session.subscribe_to_topic("topic.a")
        sub_b = await session.subscribe_to_topic("topic.b")

        await publish("topic.a", b"\xff\xfe")
        await publish("topic.b", {"value": 1})

        result_b = await sub_b.wait_for_message(1000)
        result_a = await sub_a.wait_for_message(50)

        assert result_b.did_receive
        assert result_b.body == {"value": 1}
        assert not result_a.did_receive
        assert len(sub_a.decode_errors) == 1
        assert sub_b.decode_errors == ()

    @pytest.mark.asyncio
    async def test_deeply_nested_body_dropped(self, session, publish):
        """Test JSON nested past the parser's recursion limit is only dropped."""
        sub = await session.subscribe_to_topic("topic.a")

        await publish("topic.a", '{"a":' + "[" * 100000 + "]" * 100000 + "}")
        await publish("topic.a", {"orderId": 42})

        result = await sub.wait_for_message(500)

        assert result.did_receive
        assert result.body == {"orderId": 42}
        assert len(sub.decode_errors) == 1

    @pytest.mark.asyncio
    async def test_non_decode_error_from_decoder_dropped(self, scripted_listener):
        """Test any exception a decoder raises is recorded and the loop goes on."""

        class KeyedDecoder:
            def decode(self, envelope):
                if envelope.header("message-type") is None:
                    raise KeyError("message-type")
                return HeaderTypedJsonDecoder().decode(envelope)

        listener = scripted_listener(
            envelopes=[
                RawEnvelope(topic="orders", body="{}"),
                RawEnvelope(
                    topic="orders", body='{"orderId": 1}', headers={"message-type": "OrderCreated"}
                ),
            ]
        )
        sub = Subscription("orders", listener, KeyedDecoder())
        sub.start()

        result = await sub.wait_for_message(1000)

        assert result.did_receive
        assert result.message.type_name == "OrderCreated"
        assert len(sub.decode_errors) == 1
        assert isinstance(sub.decode_errors[0].__cause__, KeyError)
        assert sub.decode_errors[0].topic == "orders"

        await sub.close()

    @pytest.mark.asyncio
    async def test_none_body_dropped(self, scripted_listener):
        """Test an envelope without a body is recorded as undecodable."""
        listener = scripted_listener(
            envelopes=[
                RawEnvelope(topic="orders", body=None),
                RawEnvelope(topic="orders", body='{"orderId": 2}'),
            ]
        )
        sub = Subscription("orders", listener, HeaderTypedJsonDecoder())
        sub.start()

        result = await sub.wait_for_message(1000)

        assert result.body == {"orderId": 2}
        assert "NoneType" in sub.decode_errors[0].reason

        await sub.close()


class TestSubscriptionClose:
    """Tests for close()."""

    @pytest.mark.asyncio
    async def test_wait_after_close_raises(self, session, broker):
        """Test waiting on a closed subscription fails."""
        sub = await session.subscribe_to_topic("orders.created")
        await sub.close()

        assert sub.is_closed
        assert broker.listener_count("orders.created") == 0
        with pytest.raises(SubscriptionClosedError):
            await sub.wait_for_message(100)

    @pytest.mark.asyncio
    async def test_close_wakes_pending_waiter(self, session):
        """Test a pending wait fails when the subscription is closed."""
        sub = await session.subscribe_to_topic("orders.created")

        waiter = asyncio.create_task(sub.wait_for_message(5000))
        await asyncio.sleep(0.05)
        await sub.close()

        with pytest.raises(SubscriptionClosedError):
            await waiter

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, scripted_listener):
        """Test closing twice releases the listener once."""
        listener = scripted_listener()
        sub = Subscription("orders", listener, HeaderTypedJsonDecoder())
        sub.start()

        await sub.close()
        await sub.close()

        assert listener.close_calls == 1

    @pytest.mark.asyncio
    async def test_start_after_close_raises(self, scripted_listener):
        """Test a closed subscription cannot be restarted."""
        sub = Subscription("orders", scripted_listener(), HeaderTypedJsonDecoder())
        await sub.close()

        with pytest.raises(SubscriptionClosedError):
            sub.start()


class TestSubscriptionListenerFailure:
    """Tests for transport failures inside the receive loop."""

    @pytest.mark.asyncio
    async def test_buffered_messages_survive_failure(self, scripted_listener):
        """Test messages received before a failure are still delivered."""
        listener = scripted_listener(
            envelopes=[RawEnvelope(topic="orders", body='{"orderId": 1}')],
            error=RuntimeError("connection reset"),
        )
        sub = Subscription("orders", listener, HeaderTypedJsonDecoder())
        sub.start()

        result = await sub.wait_for_message(1000)
        assert result.body == {"orderId": 1}

        with pytest.raises(ReceiveLoopError):
            await sub.wait_for_message(1000)

        await sub.close()

    @pytest.mark.asyncio
    async def test_listener_ending_is_reported(self, scripted_listener):
        """Test a listener that stops on its own is surfaced to waiters."""
        sub = Subscription("orders", scripted_listener(end=True), HeaderTypedJsonDecoder())
        sub.start()

        with pytest.raises(ReceiveLoopError):
            await sub.wait_for_message(1000)

        await sub.close()


class TestSubscriptionsOnSameTopic:
    """Tests for independent cursors on one topic."""

    @pytest.mark.asyncio
    async def test_two_subscriptions_observe_same_messages(self, session, publish):
        """Test two subscriptions each see both messages in order."""
        first = await session.subscribe_to_topic("orders.created")
        second = await session.subscribe_to_topic("orders.created")

        await publish("orders.created", {"orderId": 1})
        await publish("orders.created", {"orderId": 2})

        first_bodies = [(await first.wait_for_message(1000)).body for _ in range(2)]
        second_bodies = [(await second.wait_for_message(1000)).body for _ in range(2)]

        assert first_bodies == [{"orderId": 1}, {"orderId": 2}]
        assert second_bodies == [{"orderId": 1}, {"orderId": 2}]
        assert first.consumed == 2
        assert second.consumed == 2
