"""Pytest fixtures for the bakery tests."""

import os
from decimal import Decimal

# Settings read at import time by bakery.config
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("TZ", "Africa/Ouagadougou")

import pytest

from bakery.models.order import CreateOrderRequest, OrderLine, PaymentMethod
from bakery.models.product import ProductCategory
from bakery.services.order_service import OrderService

from memory_store import MemoryDatabase


class RecordingNotifier:
    """Collects notification calls instead of sending anything."""

    def __init__(self):
        self.created = []
        self.changes = []

    def order_created(self, order):
        self.created.append(order)

    def status_changed(self, order, previous):
        self.changes.append((order.order_number, previous, order.status))

    async def drain(self):
        pass


@pytest.fixture
def db():
    return MemoryDatabase()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def order_service(db, notifier):
    return OrderService(db, notifier=notifier, delivery_fee=Decimal("2000"))


@pytest.fixture
def croissant(db):
    return db.add_product(
        name="Croissant au beurre",
        slug="croissant-beurre",
        category=ProductCategory.PASTRY_VIENNOISERIE,
        price="800",
        stock=5,
    )


@pytest.fixture
def tarte(db):
    return db.add_product(
        name="Tarte aux pommes",
        slug="tarte-pommes",
        category=ProductCategory.PASTRY,
        price="1500",
        stock=3,
    )


@pytest.fixture
def baguette(db):
    """Unlimited stock."""
    return db.add_product(
        name="Baguette tradition",
        slug="baguette-tradition",
        category=ProductCategory.BAKERY,
        price="350.50",
        stock=None,
    )


def make_order_request(*lines, is_delivery=False, payment_method=PaymentMethod.CASH, **overrides):
    data = {
        "customer_name": "Awa Ouedraogo",
        "customer_phone": "70123456",
        "items": [OrderLine(product_id=p.id, quantity=q) for p, q in lines],
        "is_delivery": is_delivery,
        "delivery_address": "Secteur 15, Ouagadougou" if is_delivery else None,
        "payment_method": payment_method,
    }
    if payment_method == PaymentMethod.MOBILE_MONEY:
        data.update(phone_number="70123456", operator="ORANGE")
    data.update(overrides)
    return CreateOrderRequest(**data)
