"""Message envelope decoders.

Each decoder turns a RawEnvelope (headers + serialized body) into a
DecodedMessage. Decoders are stateless and safe to share between
subscriptions and sessions.
"""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import DecodeError
from ..models import UNKNOWN_TYPE, DecodedMessage, RawEnvelope

CLOUDEVENTS_CONTENT_TYPE = "application/cloudevents+json"


class IMessageDecoder(Protocol):
    """Decode capability shared by every envelope format."""

    def decode(self, envelope: RawEnvelope) -> DecodedMessage:
        """Decode envelope or raise DecodeError."""
        ...


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ValueError(f"duplicate key {key!r}")
        result[key] = value
    return result


def parse_json_object(envelope: RawEnvelope) -> dict[str, Any]:
    """Parse the envelope body as a JSON object."""
    body = envelope.body
    if not isinstance(body, (bytes, bytearray, str)):
        raise DecodeError(f"body must be bytes or str, got {type(body).__name__}", envelope.topic)
    if isinstance(body, (bytes, bytearray)):
        try:
            body = bytes(body).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"body is not valid UTF-8: {e}", envelope.topic) from e
    if not body.strip():
        raise DecodeError("body is empty", envelope.topic)
    try:
        raw = json.loads(body, object_pairs_hook=_reject_duplicates)
    except ValueError as e:
        # JSONDecodeError and duplicate keys both land here
        raise DecodeError(f"malformed JSON body: {e}", envelope.topic) from e
    except RecursionError as e:
        raise DecodeError("JSON body is nested too deeply", envelope.topic) from e
    return require_object(raw, envelope.topic)


def require_object(raw: Any, topic: str | None = None) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise DecodeError(f"expected a JSON object, got {type(raw).__name__}", topic)
    return raw


@dataclass(frozen=True)
class JsonDecoder:
    """Plain JSON body without type metadata."""

    def decode(self, envelope: RawEnvelope) -> DecodedMessage:
        return DecodedMessage(
            type_name=UNKNOWN_TYPE,
            body=parse_json_object(envelope),
            topic=envelope.topic,
            headers=envelope.headers,
        )


@dataclass(frozen=True)
class HeaderTypedJsonDecoder:
    """JSON body with the message type carried in a transport header."""

    type_header: str = "message-type"

    def decode(self, envelope: RawEnvelope) -> DecodedMessage:
        body = parse_json_object(envelope)
        type_name = envelope.header(self.type_header) or UNKNOWN_TYPE
        return DecodedMessage(
            type_name=type_name,
            body=body,
            topic=envelope.topic,
            headers=envelope.headers,
        )


@dataclass(frozen=True)
class CloudEventsDecoder:
    """CloudEvents JSON in binary mode (ce_* headers) or structured mode."""

    def decode(self, envelope: RawEnvelope) -> DecodedMessage:
        content_type = (envelope.header("content-type") or "").lower()
        if content_type.startswith(CLOUDEVENTS_CONTENT_TYPE):
            return self._decode_structured(envelope)

        type_name = envelope.header("ce_type") or envelope.header("ce-type")
        return DecodedMessage(
            type_name=type_name or UNKNOWN_TYPE,
            body=parse_json_object(envelope),
            topic=envelope.topic,
            headers=envelope.headers,
        )

    def _decode_structured(self, envelope: RawEnvelope) -> DecodedMessage:
        event = parse_json_object(envelope)
        if "data" not in event:
            raise DecodeError("structured CloudEvent has no data", envelope.topic)
        data = require_object(event["data"], envelope.topic)
        type_name = event.get("type")
        if not isinstance(type_name, str) or not type_name:
            type_name = UNKNOWN_TYPE
        return DecodedMessage(
            type_name=type_name,
            body=data,
            topic=envelope.topic,
            headers=envelope.headers,
        )
