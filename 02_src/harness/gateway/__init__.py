"""HTTP gateway module."""

from .http_gateway import HttpGateway, IHttpGateway

__all__ = ["HttpGateway", "IHttpGateway"]
