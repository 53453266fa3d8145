"""Tests for order pricing and stock reservation."""

import uuid
from decimal import Decimal

import pytest

from bakery.errors import InsufficientStock, ProductsUnavailable
from bakery.models.order import OrderLine
from bakery.models.product import ProductStatus
from bakery.services.pricing import merge_lines, price_order, reserve_stock


FEE = Decimal("2000")


class TestPriceOrder:
    def test_reference_basket_with_delivery(self, croissant, tarte):
        lines = [OrderLine(product_id=croissant.id, quantity=2), OrderLine(product_id=tarte.id, quantity=1)]

        quote = price_order(lines, [croissant, tarte], is_delivery=True, delivery_fee=FEE)

        assert quote.subtotal == Decimal("3100")
        assert quote.delivery_fee == Decimal("2000")
        assert quote.total == Decimal("5100")
        assert [item.subtotal for item in quote.items] == [Decimal("1600"), Decimal("1500")]

    def test_pickup_has_no_delivery_fee(self, croissant):
        quote = price_order([OrderLine(product_id=croissant.id, quantity=1)], [croissant], False, FEE)

        assert quote.delivery_fee == Decimal(0)
        assert quote.total == quote.subtotal == Decimal("800")

    def test_exact_decimal_arithmetic(self, db):
        # 0.1 * 3 is not 0.3 in binary floating point
        product = db.add_product(name="Bonbon", category="PASTRY", price="0.10", stock=None)

        quote = price_order([OrderLine(product_id=product.id, quantity=3)], [product], False, FEE)

        assert quote.subtotal == Decimal("0.30")
        assert quote.total == quote.subtotal + quote.delivery_fee
        assert quote.subtotal == sum(item.price * item.quantity for item in quote.items)

    def test_captures_catalog_price_and_name(self, baguette):
        quote = price_order([OrderLine(product_id=baguette.id, quantity=4)], [baguette], False, FEE)

        item = quote.items[0]
        assert item.product_name == "Baguette tradition"
        assert item.price == Decimal("350.50")
        assert item.subtotal == Decimal("1402.00")

    def test_missing_products_are_named(self, croissant):
        ghost = uuid.uuid4()
        lines = [OrderLine(product_id=croissant.id, quantity=1), OrderLine(product_id=ghost, quantity=1)]

        with pytest.raises(ProductsUnavailable) as exc_info:
            price_order(lines, [croissant], False, FEE)

        assert exc_info.value.missing_ids == [str(ghost)]

    def test_unavailable_products_count_as_missing(self, db):
        archived = db.add_product(name="Old", category="BAKERY", price="100", status=ProductStatus.ARCHIVED)
        hidden = db.add_product(name="Hidden", category="BAKERY", price="100", is_available=False)
        lines = [OrderLine(product_id=archived.id, quantity=1), OrderLine(product_id=hidden.id, quantity=1)]

        with pytest.raises(ProductsUnavailable) as exc_info:
            price_order(lines, [archived, hidden], False, FEE)

        assert set(exc_info.value.missing_ids) == {str(archived.id), str(hidden.id)}

    def test_insufficient_stock_names_product_and_available(self, tarte):
        with pytest.raises(InsufficientStock) as exc_info:
            price_order([OrderLine(product_id=tarte.id, quantity=4)], [tarte], False, FEE)

        error = exc_info.value
        assert error.product_name == "Tarte aux pommes"
        assert error.available == 3
        assert error.requested == 4
        assert "Available: 3" in error.message

    def test_unlimited_stock_is_never_checked(self, baguette):
        quote = price_order([OrderLine(product_id=baguette.id, quantity=10_000)], [baguette], False, FEE)

        assert quote.items[0].quantity == 10_000

    def test_duplicate_lines_are_merged_before_stock_check(self, tarte):
        lines = [OrderLine(product_id=tarte.id, quantity=2), OrderLine(product_id=tarte.id, quantity=2)]

        with pytest.raises(InsufficientStock):
            price_order(lines, [tarte], False, FEE)

        assert merge_lines(lines[:1] * 2) == {tarte.id: 4}


class TestReserveStock:
    async def test_decrements_finite_stock_only(self, db, croissant, baguette):
        lines = [OrderLine(product_id=croissant.id, quantity=2), OrderLine(product_id=baguette.id, quantity=3)]
        quote = price_order(lines, [croissant, baguette], False, FEE)

        async with db.transaction() as repo:
            await reserve_stock(repo, quote)

        assert db.stock(croissant.id) == 3
        assert db.stock(baguette.id) is None

    async def test_lost_race_raises_and_rolls_back(self, db, croissant, tarte):
        lines = [OrderLine(product_id=croissant.id, quantity=2), OrderLine(product_id=tarte.id, quantity=2)]
        quote = price_order(lines, [croissant, tarte], False, FEE)
        # Someone else bought the tarts after pricing
        db.state.products[tarte.id]["stock"] = 1

        with pytest.raises(InsufficientStock) as exc_info:
            async with db.transaction() as repo:
                await reserve_stock(repo, quote)

        assert exc_info.value.available == 1
        assert db.stock(croissant.id) == 5
        assert db.stock(tarte.id) == 1
