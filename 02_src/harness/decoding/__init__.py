"""Envelope decoding module."""

from .decoder import (
    CloudEventsDecoder,
    HeaderTypedJsonDecoder,
    IMessageDecoder,
    JsonDecoder,
)
from .registry import available_formats, get_decoder, register_decoder

__all__ = [
    "IMessageDecoder",
    "JsonDecoder",
    "HeaderTypedJsonDecoder",
    "CloudEventsDecoder",
    "get_decoder",
    "register_decoder",
    "available_formats",
]
