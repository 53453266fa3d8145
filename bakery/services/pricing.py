# bakery/services/pricing.py
"""Order pricing and stock reservation.

All money is ``Decimal``; line prices are captured from the catalog at
pricing time and never recomputed afterwards.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence
from uuid import UUID
from ..errors import InsufficientStock, ProductsUnavailable
from ..models.order import OrderItem, OrderLine
from ..models.product import Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderQuote:
    items: List[OrderItem]
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    # Products as read under lock, keyed by id
    products: Dict[UUID, Product]


def merge_lines(lines: Iterable[OrderLine]) -> Dict[UUID, int]:
    """Sum quantities of repeated products, keeping first-seen order"""
    merged: Dict[UUID, int] = {}
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return merged


def price_order(lines: Sequence[OrderLine], products: Iterable[Product],
                is_delivery: bool, delivery_fee: Decimal) -> OrderQuote:
    """Validate availability and stock, then compute the order amounts"""
    quantities = merge_lines(lines)
    by_id = {p.id: p for p in products if p.is_purchasable}

    missing = [product_id for product_id in quantities if product_id not in by_id]
    if missing:
        raise ProductsUnavailable(missing)

    for product_id, quantity in quantities.items():
        product = by_id[product_id]
        if product.has_finite_stock and product.stock < quantity:
            raise InsufficientStock(product.id, product.name, product.stock, quantity)

    items = []
    subtotal = Decimal(0)
    for product_id, quantity in quantities.items():
        product = by_id[product_id]
        price = Decimal(product.price)
        line_subtotal = price * quantity
        subtotal += line_subtotal
        items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            price=price,
            subtotal=line_subtotal,
        ))

    fee = Decimal(delivery_fee) if is_delivery else Decimal(0)
    return OrderQuote(
        items=items,
        subtotal=subtotal,
        delivery_fee=fee,
        total=subtotal + fee,
        products=by_id,
    )


async def reserve_stock(repo, quote: OrderQuote):
    """Decrement finite stock for every priced line.

    Must run in the same transaction that inserts the order. The guarded
    update fails if a concurrent order took the stock after pricing, and the
    raised error rolls back everything done so far.
    """
    for item in quote.items:
        product = quote.products[item.product_id]
        if not product.has_finite_stock:
            continue
        if not await repo.decrement_stock(product.id, item.quantity):
            current = await repo.get_product(product.id)
            available = current.stock if current and current.stock is not None else 0
            logger.warning(f"Stock race lost for {product.name}: {available} left")
            raise InsufficientStock(product.id, product.name, available, item.quantity)
