"""Run the sample order service against a Kafka broker."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from harness.config import HarnessSettings
from harness.errors import ConfigError
from harness.logging_config import get_logger, setup_logging
from harness.transport import KafkaPublisher
from sim import create_order_service

logger = get_logger(__name__)


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    settings = HarnessSettings.from_env()
    setup_logging(settings.log_level)

    config = settings.connection_config()
    config.validate()
    if config.scheme != "kafka":
        raise ConfigError("BROKER_URL must be a kafka:// URL to serve the sample service")

    publisher = KafkaPublisher(bootstrap_servers=config.location)
    app = create_order_service(publisher)
    logger.info("Serving sample order service on %s:%s", settings.api_host, settings.api_port)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
