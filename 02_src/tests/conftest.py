"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class ScriptedListener:
    """Listener yielding a fixed list of envelopes, then idling or raising."""

    def __init__(self, envelopes=(), error=None, close_error=None, end=False):
        self._envelopes = list(envelopes)
        self._error = error
        self._close_error = close_error
        self._end = end
        self.close_calls = 0

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for envelope in self._envelopes:
            yield envelope
        if self._error is not None:
            raise self._error
        if not self._end:
            # Stay open until the subscription cancels us
            await asyncio.Event().wait()

    async def close(self):
        self.close_calls += 1
        if self._close_error is not None:
            raise self._close_error


class FakeTransport:
    """ITransport with injectable failures and call counters."""

    def __init__(self, connect_error=None, open_error=None, close_error=None, listeners=None):
        self._connect_error = connect_error
        self._open_error = open_error
        self._close_error = close_error
        self._listeners = list(listeners or [])
        self.connect_calls = 0
        self.close_calls = 0
        self.opened: list[str] = []

    async def connect(self):
        self.connect_calls += 1
        if self._connect_error is not None:
            raise self._connect_error

    async def open(self, topic):
        if self._open_error is not None:
            raise self._open_error
        self.opened.append(topic)
        if self._listeners:
            return self._listeners.pop(0)
        return ScriptedListener()

    async def close(self):
        self.close_calls += 1
        if self._close_error is not None:
            raise self._close_error


@pytest.fixture
def scripted_listener():
    """ScriptedListener class."""
    return ScriptedListener


@pytest.fixture
def fake_transport():
    """FakeTransport class."""
    return FakeTransport


@pytest.fixture
def broker():
    """Create an in-memory broker."""
    from harness.transport import InMemoryBroker

    return InMemoryBroker()


@pytest.fixture
def config():
    """Connection config for the in-memory broker."""
    from harness.config import ConnectionConfig

    return ConnectionConfig(connection_string="memory://test")


@pytest.fixture
def decoder():
    """Header-typed JSON decoder."""
    from harness.decoding import HeaderTypedJsonDecoder

    return HeaderTypedJsonDecoder()


@pytest_asyncio.fixture
async def session(config, decoder, broker):
    """Create a started BrokerSession on the in-memory broker."""
    from harness.session import BrokerSession
    from harness.transport import InMemoryTransport

    bs = BrokerSession(config, decoder, transport=InMemoryTransport(broker))
    await bs.start()
    yield bs
    await bs.cleanup()


@pytest.fixture
def publish(broker):
    """Publish a JSON body with an optional message-type header."""

    async def _publish(topic, body, type_name=None, headers=None):
        all_headers = dict(headers or {})
        if type_name:
            all_headers["message-type"] = type_name
        payload = body if isinstance(body, (str, bytes)) else json.dumps(body)
        await broker.publish(topic, payload, all_headers)

    return _publish
