"""Subscription module."""

from .subscription import ISubscription, MessagePredicate, Subscription

__all__ = ["ISubscription", "MessagePredicate", "Subscription"]
