"""Sample system under test."""

from .order_service import ORDERS_CREATED, ORDERS_SHIPPED, create_order_service

__all__ = ["create_order_service", "ORDERS_CREATED", "ORDERS_SHIPPED"]
