"""Broker session module."""

from .session import CORRELATION_HEADER, BrokerSession, IBrokerSession

__all__ = ["BrokerSession", "IBrokerSession", "CORRELATION_HEADER"]
