"""Sample system under test: an order service that publishes events."""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from harness.logging_config import get_logger
from harness.transport import IPublisher

logger = get_logger(__name__)

ORDERS_CREATED = "orders.created"
ORDERS_SHIPPED = "orders.shipped"


class OrderRequest(BaseModel):
    """Request model for creating an order."""

    orderId: int
    item: str | None = None
    quantity: int = 1


class OrderResponse(BaseModel):
    """Response model for an accepted order."""

    orderId: int
    status: str


def _event_headers(type_name: str, correlation_id: str | None) -> dict[str, str]:
    headers = {"message-type": type_name, "content-type": "application/json"}
    if correlation_id:
        headers["x-correlation-id"] = correlation_id
    return headers


def create_order_service(publisher: IPublisher) -> FastAPI:
    """Create the order service publishing through publisher."""
    orders: dict[int, dict] = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await publisher.start()
        yield
        await publisher.stop()

    app = FastAPI(
        title="Sample Order Service",
        description="System under test for bus harness examples",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.post("/api/orders", response_model=OrderResponse, status_code=202)
    async def create_order(
        request: OrderRequest,
        x_correlation_id: str | None = Header(default=None),
    ) -> dict:
        """Accept an order and publish OrderCreated."""
        order = request.model_dump()
        order["status"] = "created"
        orders[request.orderId] = order

        await publisher.publish(
            ORDERS_CREATED,
            json.dumps({"orderId": request.orderId, "item": request.item, "quantity": request.quantity}),
            _event_headers("OrderCreated", x_correlation_id),
        )
        logger.info("Order %s created", request.orderId)
        return {"orderId": request.orderId, "status": "created"}

    @app.post("/api/orders/{order_id}/ship", response_model=OrderResponse, status_code=202)
    async def ship_order(
        order_id: int,
        x_correlation_id: str | None = Header(default=None),
    ) -> dict:
        """Mark an order shipped and publish OrderShipped."""
        order = orders.get(order_id)
        if order is None:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        order["status"] = "shipped"
        await publisher.publish(
            ORDERS_SHIPPED,
            json.dumps({"orderId": order_id}),
            _event_headers("OrderShipped", x_correlation_id),
        )
        logger.info("Order %s shipped", order_id)
        return {"orderId": order_id, "status": "shipped"}

    @app.get("/api/orders/{order_id}")
    async def get_order(order_id: int) -> dict:
        """Get an order by id."""
        order = orders.get(order_id)
        if order is None:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
        return order

    return app
