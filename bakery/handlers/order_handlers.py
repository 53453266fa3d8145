# bakery/handlers/order_handlers.py
import logging
from uuid import UUID
from fastapi import Query, Request
from ..errors import RateLimited
from ..models.order import CreateOrderRequest
from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

class OrderHandler(BaseHandler):
    """Checkout and customer order tracking"""

    def setup_routes(self):
        self.router.add_api_route("/api/orders", self.create_order, methods=["POST"], status_code=201)
        self.router.add_api_route("/api/orders/lookup", self.lookup_order, methods=["GET"])
        self.router.add_api_route("/api/orders/{order_id}", self.get_order, methods=["GET"])

    @staticmethod
    def tracking_view(order) -> dict:
        """What a customer sees when tracking an order"""
        return {
            "order_number": order.order_number,
            "status": order.status,
            "total": order.total,
            "is_delivery": order.is_delivery,
            "created_at": order.created_at,
            "items": [
                {"product_name": item.product_name, "quantity": item.quantity}
                for item in order.items
            ],
        }

    async def create_order(self, request: CreateOrderRequest):
        order = await self.services.orders.create_order(request)
        return self.success(order, status_code=201)

    async def lookup_order(self, request: Request,
                           phone: str = Query(..., min_length=8, max_length=20),
                           order_number: str = Query(..., min_length=3, max_length=32)):
        """Order tracking by phone + order number, throttled per client address"""
        client = request.client.host if request.client else "unknown"
        verdict = self.services.lookup_limiter.hit(client)
        if not verdict.allowed:
            logger.warning(f"Order lookup throttled for {client}")
            raise RateLimited(verdict.retry_after)

        order = await self.services.orders.lookup_customer_order(phone, order_number)
        return self.success(self.tracking_view(order))

    async def get_order(self, order_id: UUID):
        order = await self.services.orders.get_order(order_id)
        return self.success(order)
