# bakery/services/order_service.py
import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID
import pytz
from ..config import Config
from ..database.database import run_in_transaction
from ..errors import OrderNotFound
from ..models.order import (
    CreateOrderRequest, Order, OrderStatus, PaymentStatus
)
from .order_lifecycle import apply_transition
from .pricing import merge_lines, price_order, reserve_stock

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(self, db, notifier=None, delivery_fee: Optional[Decimal] = None):
        self.db = db
        self.notifier = notifier
        self.delivery_fee = Config.DELIVERY_FEE if delivery_fee is None else delivery_fee
        self.tz = pytz.timezone(Config.TIMEZONE)

    async def create_order(self, request: CreateOrderRequest) -> Order:
        """Price, reserve stock and persist a new order with its payment"""

        async def work(repo):
            quantities = merge_lines(request.items)
            products = await repo.lock_purchasable_products(list(quantities))
            quote = price_order(request.items, products, request.is_delivery, self.delivery_fee)

            await reserve_stock(repo, quote)
            order_number = await self._next_order_number(repo)

            order_id = await repo.insert_order(
                {
                    "order_number": order_number,
                    "status": OrderStatus.PENDING,
                    "customer_name": request.customer_name,
                    "customer_email": request.customer_email,
                    "customer_phone": request.customer_phone,
                    "subtotal": quote.subtotal,
                    "delivery_fee": quote.delivery_fee,
                    "total": quote.total,
                    "is_delivery": request.is_delivery,
                    "delivery_address": request.delivery_address,
                    "delivery_time": request.delivery_time,
                    "notes": request.notes,
                },
                quote.items,
                {
                    "method": request.payment_method,
                    "status": PaymentStatus.PENDING,
                    "amount": quote.total,
                    "phone_number": request.phone_number,
                    "operator": request.operator,
                },
            )
            return await repo.get_order(order_id)

        order = await run_in_transaction(self.db, work)
        logger.info(f"Order {order.order_number} created, total {order.total}")

        if self.notifier:
            self.notifier.order_created(order)
        return order

    async def _next_order_number(self, repo) -> str:
        """ORD-YYYYMMDD-### numbered per local day"""
        prefix = f"ORD-{datetime.now(self.tz):%Y%m%d}-"
        last = await repo.last_order_number(prefix)
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:03d}"

    async def get_order(self, order_id: UUID) -> Order:
        async with self.db.transaction() as repo:
            order = await repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    async def get_order_by_number(self, order_number: str) -> Order:
        async with self.db.transaction() as repo:
            order = await repo.get_order_by_number(order_number.strip().upper())
        if not order:
            raise OrderNotFound(order_number)
        return order

    async def lookup_customer_order(self, customer_phone: str, order_number: str) -> Order:
        """Customer tracking; both the phone and the number have to match"""
        async with self.db.transaction() as repo:
            order = await repo.find_customer_order(
                customer_phone.strip(), order_number.strip().upper()
            )
        if not order:
            # Same answer whether the phone or the number was wrong
            raise OrderNotFound()
        return order

    async def list_orders(self, status: Optional[OrderStatus] = None,
                          customer_phone: Optional[str] = None,
                          start_date: Optional[datetime] = None,
                          end_date: Optional[datetime] = None,
                          page: int = 1, limit: int = 20) -> Dict[str, Any]:
        async with self.db.transaction() as repo:
            orders, total = await repo.list_orders(
                status=status,
                customer_phone=customer_phone,
                start_date=start_date,
                end_date=end_date,
                offset=(page - 1) * limit,
                limit=limit,
            )
        return {
            "orders": orders,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
                "has_more": page * limit < total,
            },
        }

    async def update_status(self, order_id: UUID, status: OrderStatus,
                            admin_notes: Optional[str] = None) -> Order:
        """Admin-driven lifecycle transition"""

        async def work(repo):
            order = await repo.get_order(order_id, for_update=True)
            if not order:
                raise OrderNotFound(order_id)
            updated = await apply_transition(
                repo, order, status,
                admin_notes=admin_notes,
                now=datetime.now(timezone.utc),
            )
            return order.status, updated

        previous, order = await run_in_transaction(self.db, work)

        if self.notifier:
            self.notifier.status_changed(order, previous)
        return order

    async def get_stats(self) -> Dict[str, Any]:
        async with self.db.transaction() as repo:
            return await repo.order_stats()
