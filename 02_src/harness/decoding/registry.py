"""Decoder lookup by configured format identifier."""

from typing import Callable

from ..errors import ConfigError
from .decoder import (
    CloudEventsDecoder,
    HeaderTypedJsonDecoder,
    IMessageDecoder,
    JsonDecoder,
)

DecoderFactory = Callable[[], IMessageDecoder]

_FORMATS: dict[str, DecoderFactory] = {
    "json": JsonDecoder,
    "header-json": HeaderTypedJsonDecoder,
    "cloudevents": CloudEventsDecoder,
}


def register_decoder(format_id: str, factory: DecoderFactory) -> None:
    """Register a decoder factory for a new envelope format."""
    if not format_id:
        raise ConfigError("Format id must not be empty")
    _FORMATS[format_id.lower()] = factory


def get_decoder(format_id: str | None) -> IMessageDecoder:
    """Create the decoder for a format id."""
    if not format_id:
        raise ConfigError("Message format is missing or empty")
    factory = _FORMATS.get(format_id.lower())
    if factory is None:
        raise ConfigError(
            f"Unknown message format {format_id!r}; "
            f"available: {', '.join(available_formats())}"
        )
    return factory()


def available_formats() -> list[str]:
    return sorted(_FORMATS)
