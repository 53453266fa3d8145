# bakery/database/repository.py
"""SQL access for the shop, bound to one connection and transaction.

Stock is only ever changed with relative updates (``stock = stock +/- n``)
so concurrent orders and cancellations never lose each other's writes.
Rows that a workflow is about to change are read with ``FOR UPDATE``.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
import asyncpg
from ..errors import SlugAlreadyExists
from ..models.admin import Admin
from ..models.order import Order, OrderItem, OrderStatus, Payment
from ..models.product import Product

PRODUCT_COLUMNS = (
    "name", "slug", "description", "category", "status", "price",
    "stock", "is_available", "image_url", "weight",
)
ORDER_COLUMNS = (
    "order_number", "status", "customer_name", "customer_email", "customer_phone",
    "subtotal", "delivery_fee", "total", "is_delivery", "delivery_address",
    "delivery_time", "notes", "admin_notes", "completed_at", "cancelled_at",
)
PAYMENT_COLUMNS = (
    "method", "status", "amount", "transaction_id", "transaction_ref",
    "phone_number", "operator", "failure_reason", "completed_at", "metadata",
)


def _plain(value):
    """Enums are stored by value"""
    return getattr(value, "value", value)


def _set_clause(fields: Dict[str, Any], allowed: Sequence[str], offset: int = 1) -> Tuple[str, List[Any]]:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown columns: {', '.join(sorted(unknown))}")
    assignments = []
    values = []
    for index, (column, value) in enumerate(fields.items(), start=offset):
        assignments.append(f"{column} = ${index}")
        values.append(_plain(value))
    assignments.append("updated_at = NOW()")
    return ", ".join(assignments), values


class Repository:
    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    # Products

    async def get_product(self, product_id: UUID) -> Optional[Product]:
        row = await self.conn.fetchrow("SELECT * FROM products WHERE id = $1", product_id)
        return Product.model_validate(dict(row)) if row else None

    async def get_product_by_slug(self, slug: str) -> Optional[Product]:
        row = await self.conn.fetchrow("SELECT * FROM products WHERE slug = $1", slug)
        return Product.model_validate(dict(row)) if row else None

    async def slug_exists(self, slug: str, exclude_id: Optional[UUID] = None) -> bool:
        return await self.conn.fetchval("""
            SELECT EXISTS(
                SELECT 1 FROM products
                WHERE slug = $1 AND ($2::uuid IS NULL OR id <> $2)
            )
        """, slug, exclude_id)

    async def list_products(self, *, category=None, status=None, is_available: Optional[bool] = None,
                            search: Optional[str] = None, offset: int = 0,
                            limit: int = 20) -> Tuple[List[Product], int]:
        conditions = []
        params: List[Any] = []

        if category is not None:
            params.append(_plain(category))
            conditions.append(f"category = ${len(params)}")
        if status is not None:
            params.append(_plain(status))
            conditions.append(f"status = ${len(params)}")
        if is_available is not None:
            params.append(is_available)
            conditions.append(f"is_available = ${len(params)}")
        if search:
            params.append(f"%{search}%")
            conditions.append(f"(name ILIKE ${len(params)} OR description ILIKE ${len(params)})")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        total = await self.conn.fetchval(f"SELECT COUNT(*) FROM products {where}", *params)
        rows = await self.conn.fetch(f"""
            SELECT * FROM products {where}
            ORDER BY created_at DESC, id
            OFFSET ${len(params) + 1} LIMIT ${len(params) + 2}
        """, *params, offset, limit)
        return [Product.model_validate(dict(r)) for r in rows], total

    async def insert_product(self, fields: Dict[str, Any]) -> Product:
        columns = [c for c in PRODUCT_COLUMNS if c in fields]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        try:
            row = await self.conn.fetchrow(f"""
                INSERT INTO products ({', '.join(columns)})
                VALUES ({placeholders})
                RETURNING *
            """, *[_plain(fields[c]) for c in columns])
        except asyncpg.exceptions.UniqueViolationError as e:
            raise SlugAlreadyExists(fields.get("slug", "")) from e
        return Product.model_validate(dict(row))

    async def update_product(self, product_id: UUID, fields: Dict[str, Any]) -> Optional[Product]:
        assignments, values = _set_clause(fields, PRODUCT_COLUMNS, offset=2)
        try:
            row = await self.conn.fetchrow(
                f"UPDATE products SET {assignments} WHERE id = $1 RETURNING *",
                product_id, *values
            )
        except asyncpg.exceptions.UniqueViolationError as e:
            raise SlugAlreadyExists(fields.get("slug", "")) from e
        return Product.model_validate(dict(row)) if row else None

    async def delete_product(self, product_id: UUID) -> bool:
        result = await self.conn.execute("DELETE FROM products WHERE id = $1", product_id)
        return result == "DELETE 1"

    async def count_product_order_items(self, product_id: UUID) -> int:
        return await self.conn.fetchval(
            "SELECT COUNT(*) FROM order_items WHERE product_id = $1", product_id
        )

    async def lock_purchasable_products(self, product_ids: Sequence[UUID]) -> List[Product]:
        """Lock the requested products that are currently for sale"""
        rows = await self.conn.fetch("""
            SELECT * FROM products
            WHERE id = ANY($1::uuid[])
              AND is_available = true
              AND status = 'AVAILABLE'
            ORDER BY id
            FOR UPDATE
        """, list(product_ids))
        return [Product.model_validate(dict(r)) for r in rows]

    async def decrement_stock(self, product_id: UUID, quantity: int) -> bool:
        """Take ``quantity`` from a finite stock; False if it cannot cover it"""
        result = await self.conn.execute("""
            UPDATE products
            SET stock = stock - $1, updated_at = NOW()
            WHERE id = $2 AND stock IS NOT NULL AND stock >= $1
        """, quantity, product_id)
        return result == "UPDATE 1"

    async def restore_stock(self, product_id: UUID, quantity: int) -> bool:
        """Give back ``quantity``; False when the product is gone or unlimited"""
        result = await self.conn.execute("""
            UPDATE products
            SET stock = stock + $1, updated_at = NOW()
            WHERE id = $2 AND stock IS NOT NULL
        """, quantity, product_id)
        return result == "UPDATE 1"

    # Orders

    async def last_order_number(self, prefix: str) -> Optional[str]:
        """Highest order number starting with ``prefix``"""
        return await self.conn.fetchval("""
            SELECT order_number FROM orders
            WHERE order_number LIKE $1
            ORDER BY length(order_number) DESC, order_number DESC
            LIMIT 1
        """, prefix + "%")

    async def insert_order(self, fields: Dict[str, Any], items: Sequence[OrderItem],
                           payment_fields: Dict[str, Any]) -> UUID:
        """Insert an order together with its items and payment"""
        columns = [c for c in ORDER_COLUMNS if c in fields]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        order_id = await self.conn.fetchval(f"""
            INSERT INTO orders ({', '.join(columns)})
            VALUES ({placeholders})
            RETURNING id
        """, *[_plain(fields[c]) for c in columns])

        await self.conn.executemany("""
            INSERT INTO order_items (
                order_id, position, product_id, product_name, quantity, price, subtotal
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
        """, [
            (order_id, position, item.product_id, item.product_name,
             item.quantity, item.price, item.subtotal)
            for position, item in enumerate(items)
        ])

        payment_columns = [c for c in PAYMENT_COLUMNS if c in payment_fields]
        payment_placeholders = ", ".join(f"${i}" for i in range(2, len(payment_columns) + 2))
        await self.conn.execute(f"""
            INSERT INTO payments (order_id, {', '.join(payment_columns)})
            VALUES ($1, {payment_placeholders})
        """, order_id, *[_plain(payment_fields[c]) for c in payment_columns])

        return order_id

    async def get_order(self, order_id: UUID, *, for_update: bool = False) -> Optional[Order]:
        lock = "FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM orders WHERE id = $1 {lock}", order_id)
        if not row:
            return None
        return (await self._with_details([row], lock=lock))[0]

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        row = await self.conn.fetchrow("SELECT * FROM orders WHERE order_number = $1", order_number)
        if not row:
            return None
        return (await self._with_details([row]))[0]

    async def find_customer_order(self, customer_phone: str, order_number: str) -> Optional[Order]:
        row = await self.conn.fetchrow("""
            SELECT * FROM orders
            WHERE customer_phone = $1 AND order_number = $2
        """, customer_phone, order_number)
        if not row:
            return None
        return (await self._with_details([row]))[0]

    async def list_orders(self, *, status=None, customer_phone: Optional[str] = None,
                          start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                          offset: int = 0, limit: int = 20) -> Tuple[List[Order], int]:
        conditions = []
        params: List[Any] = []

        if status is not None:
            params.append(_plain(status))
            conditions.append(f"status = ${len(params)}")
        if customer_phone:
            params.append(f"%{customer_phone}%")
            conditions.append(f"customer_phone LIKE ${len(params)}")
        if start_date is not None:
            params.append(start_date)
            conditions.append(f"created_at >= ${len(params)}")
        if end_date is not None:
            params.append(end_date)
            conditions.append(f"created_at <= ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        total = await self.conn.fetchval(f"SELECT COUNT(*) FROM orders {where}", *params)
        rows = await self.conn.fetch(f"""
            SELECT * FROM orders {where}
            ORDER BY created_at DESC, id
            OFFSET ${len(params) + 1} LIMIT ${len(params) + 2}
        """, *params, offset, limit)
        return await self._with_details(rows), total

    async def update_order(self, order_id: UUID, fields: Dict[str, Any]):
        assignments, values = _set_clause(fields, ORDER_COLUMNS, offset=2)
        await self.conn.execute(f"UPDATE orders SET {assignments} WHERE id = $1", order_id, *values)

    async def order_stats(self) -> Dict[str, Any]:
        row = await self.conn.fetchrow("""
            SELECT
                COUNT(*) AS total_orders,
                COUNT(*) FILTER (WHERE status = $1) AS pending_orders,
                COUNT(*) FILTER (WHERE status = $2) AS completed_orders,
                COALESCE(SUM(total) FILTER (WHERE status = $2), 0) AS total_revenue
            FROM orders
        """, OrderStatus.PENDING.value, OrderStatus.COMPLETED.value)
        return {
            "total_orders": row["total_orders"],
            "pending_orders": row["pending_orders"],
            "completed_orders": row["completed_orders"],
            "total_revenue": Decimal(row["total_revenue"]),
        }

    async def _with_details(self, rows, lock: str = "") -> List[Order]:
        if not rows:
            return []
        order_ids = [r["id"] for r in rows]
        item_rows = await self.conn.fetch("""
            SELECT * FROM order_items
            WHERE order_id = ANY($1::uuid[])
            ORDER BY order_id, position
        """, order_ids)
        payment_rows = await self.conn.fetch(f"""
            SELECT * FROM payments WHERE order_id = ANY($1::uuid[]) {lock}
        """, order_ids)

        items: Dict[UUID, List[OrderItem]] = {}
        for r in item_rows:
            items.setdefault(r["order_id"], []).append(OrderItem.model_validate(dict(r)))
        payments = {r["order_id"]: Payment.model_validate(dict(r)) for r in payment_rows}

        return [
            Order.model_validate({
                **dict(r),
                "items": items.get(r["id"], []),
                "payment": payments.get(r["id"]),
            })
            for r in rows
        ]

    # Payments

    async def get_payment(self, payment_id: UUID, *, for_update: bool = False) -> Optional[Payment]:
        lock = "FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM payments WHERE id = $1 {lock}", payment_id)
        return Payment.model_validate(dict(row)) if row else None

    async def get_payment_by_transaction(self, transaction_id: str, *,
                                         for_update: bool = False) -> Optional[Payment]:
        lock = "FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(
            f"SELECT * FROM payments WHERE transaction_id = $1 {lock}", transaction_id
        )
        return Payment.model_validate(dict(row)) if row else None

    async def update_payment(self, payment_id: UUID, fields: Dict[str, Any]):
        assignments, values = _set_clause(fields, PAYMENT_COLUMNS, offset=2)
        await self.conn.execute(f"UPDATE payments SET {assignments} WHERE id = $1", payment_id, *values)

    # Admins

    async def get_admin_by_email(self, email: str) -> Optional[Admin]:
        row = await self.conn.fetchrow("SELECT * FROM admins WHERE email = $1", email)
        return Admin.model_validate(dict(row)) if row else None

    async def insert_admin(self, fields: Dict[str, Any]) -> Admin:
        row = await self.conn.fetchrow("""
            INSERT INTO admins (email, password_hash, first_name, last_name, role)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (email) DO UPDATE SET password_hash = EXCLUDED.password_hash
            RETURNING *
        """, fields["email"], fields["password_hash"], fields.get("first_name"),
            fields.get("last_name"), fields.get("role", "ADMIN"))
        return Admin.model_validate(dict(row))

    async def touch_admin_login(self, admin_id: UUID, when: datetime):
        await self.conn.execute(
            "UPDATE admins SET last_login_at = $1, updated_at = NOW() WHERE id = $2",
            when, admin_id
        )
