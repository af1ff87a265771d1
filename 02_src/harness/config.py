"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = Path(os.getenv("HARNESS_LOG_DIR", PROJECT_ROOT / "04_logs"))
DEFAULT_LOG_PATH = LOGS_DIR / "harness.log"

DEFAULT_MESSAGE_FORMAT = "header-json"
DEFAULT_TIMEOUT_MS = 2000


PathLike = Union[str, Path]


@dataclass
class ConnectionConfig:
    """Broker connection settings supplied at BrokerSession construction."""

    connection_string: str | None
    client_id: str = "bus-harness"
    connect_timeout: float = 10.0

    def validate(self) -> None:
        """Reject missing or empty values before any transport is touched."""
        if not self.connection_string or not self.connection_string.strip():
            raise ConfigError("Broker connection string is missing or empty")
        if "://" not in self.connection_string:
            raise ConfigError(
                f"Broker connection string has no scheme: {self.connection_string!r}"
            )
        if not self.client_id:
            raise ConfigError("Client id must not be empty")
        if self.connect_timeout <= 0:
            raise ConfigError("Connect timeout must be positive")

    @property
    def scheme(self) -> str:
        return self.connection_string.split("://", 1)[0].lower()

    @property
    def location(self) -> str:
        return self.connection_string.split("://", 1)[1]


@dataclass
class HarnessSettings:
    """Settings read from the environment (see .env)."""

    broker_url: str | None
    message_format: str = DEFAULT_MESSAGE_FORMAT
    service_base_url: str = "http://localhost:8000"
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    api_host: str = "localhost"
    api_port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "HarnessSettings":
        """Build settings from environment variables."""
        return cls(
            broker_url=os.getenv("BROKER_URL"),
            message_format=os.getenv("MESSAGE_FORMAT", DEFAULT_MESSAGE_FORMAT),
            service_base_url=os.getenv("SERVICE_BASE_URL", "http://localhost:8000"),
            default_timeout_ms=_int_env("DEFAULT_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=_int_env("API_PORT", 8000),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(connection_string=self.broker_url)

    def decoder(self):
        """Decoder for the configured MESSAGE_FORMAT."""
        from .decoding import get_decoder

        return get_decoder(self.message_format)

    def gateway(self, headers=None, transport=None):
        """HttpGateway bound to SERVICE_BASE_URL."""
        from .gateway import HttpGateway

        return HttpGateway(base_url=self.service_base_url, headers=headers, transport=transport)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def resolve_log_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve a log file setting to an absolute path."""
    if not env_value:
        return DEFAULT_LOG_PATH

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate
