"""Transport selection from a connection string."""

from ..config import ConnectionConfig
from ..errors import ConfigError
from .base import ITransport
from .kafka import KafkaTransport
from .memory import InMemoryBroker, InMemoryTransport


def create_transport(
    config: ConnectionConfig,
    broker: InMemoryBroker | None = None,
) -> ITransport:
    """Build the transport named by the connection string scheme.

    ``memory://<name>`` needs the in-process broker to attach to;
    ``kafka://host:port[,host:port]`` connects to a Kafka cluster.
    """
    config.validate()
    scheme = config.scheme

    if scheme == "memory":
        if broker is None:
            raise ConfigError("memory:// connection requires an InMemoryBroker")
        return InMemoryTransport(broker)

    if scheme == "kafka":
        if not config.location:
            raise ConfigError("kafka:// connection has no bootstrap servers")
        return KafkaTransport(
            bootstrap_servers=config.location,
            client_id=config.client_id,
            connect_timeout=config.connect_timeout,
        )

    raise ConfigError(f"Unsupported broker scheme {scheme!r}")
