"""End-to-end checks against a real PostgreSQL server.

Skipped unless BAKERY_TEST_DATABASE_URL points at a disposable database.
"""

import asyncio
import os
import uuid
from decimal import Decimal

import pytest

from bakery.database.database import Database
from bakery.errors import InsufficientStock
from bakery.models.order import OrderStatus, PaymentStatus
from bakery.services.order_service import OrderService

from conftest import make_order_request


DSN = os.getenv("BAKERY_TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not DSN, reason="BAKERY_TEST_DATABASE_URL not set")


@pytest.fixture
async def pg():
    database = Database(DSN)
    await database.connect()
    async with database.pool.acquire() as conn:
        await conn.execute("TRUNCATE payments, order_items, orders, products, admins CASCADE")
    yield database
    await database.close()


async def _product(pg, name, price, stock):
    async with pg.transaction() as repo:
        return await repo.insert_product({
            "name": name,
            "slug": f"{name.lower()}-{uuid.uuid4().hex[:6]}",
            "category": "BAKERY",
            "price": Decimal(price),
            "stock": stock,
        })


async def test_reference_order_and_lifecycle(pg):
    service = OrderService(pg, delivery_fee=Decimal("2000"))
    a = await _product(pg, "Baguette", "800", 5)
    b = await _product(pg, "Tarte", "1500", 3)

    order = await service.create_order(make_order_request((a, 2), (b, 1), is_delivery=True))

    assert order.total == Decimal("5100")
    assert order.payment.status == PaymentStatus.PENDING
    for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.COMPLETED):
        order = await service.update_status(order.id, status)
    assert order.payment.status == PaymentStatus.COMPLETED


async def test_concurrent_orders_do_not_oversell(pg):
    service = OrderService(pg, delivery_fee=Decimal("2000"))
    scarce = await _product(pg, "Macaron", "500", 3)

    results = await asyncio.gather(
        *[service.create_order(make_order_request((scarce, 2))) for _ in range(4)],
        return_exceptions=True,
    )

    assert sum(not isinstance(r, Exception) for r in results) == 1
    assert all(isinstance(r, InsufficientStock) for r in results if isinstance(r, Exception))
    async with pg.transaction() as repo:
        assert (await repo.get_product(scarce.id)).stock == 1


async def test_cancel_restores_stock(pg):
    service = OrderService(pg, delivery_fee=Decimal("2000"))
    product = await _product(pg, "Croissant", "700", 4)
    order = await service.create_order(make_order_request((product, 3)))

    await service.update_status(order.id, OrderStatus.CANCELLED)

    async with pg.transaction() as repo:
        assert (await repo.get_product(product.id)).stock == 4
