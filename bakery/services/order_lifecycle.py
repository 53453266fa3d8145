# bakery/services/order_lifecycle.py
"""Order status state machine and the side effects bound to transitions.

PENDING -> CONFIRMED -> PREPARING -> READY -> COMPLETED, with CANCELLED
reachable from every non-terminal status. Side effects run in the caller's
transaction, after the transition has been validated.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional
from ..errors import InvalidStatusTransition
from ..models.order import Order, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

CANCELLED_BY_ADMIN = "Order cancelled by the shop"

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

_missing = set(OrderStatus) - set(TRANSITIONS)
if _missing:
    raise RuntimeError(f"No transition entry for: {', '.join(sorted(s.value for s in _missing))}")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: OrderStatus, target: OrderStatus):
    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target)


async def apply_transition(repo, order: Order, target: OrderStatus,
                           admin_notes: Optional[str] = None,
                           failure_reason: Optional[str] = None,
                           now: Optional[datetime] = None) -> Order:
    """Move a locked order to ``target`` and run the transition side effects.

    ``order`` must have been read with ``for_update=True`` in the current
    transaction. Nothing is written when the transition is illegal.
    ``failure_reason`` overrides the payment failure text on cancellation.
    Returns the order as it is after the write.
    """
    ensure_transition(order.status, target)
    now = now or datetime.now(timezone.utc)

    fields = {"status": target}
    if admin_notes is not None:
        fields["admin_notes"] = admin_notes

    if target == OrderStatus.COMPLETED:
        fields["completed_at"] = now
        if order.payment:
            # Handing over the order settles it, whatever the payment said
            await repo.update_payment(order.payment.id, {
                "status": PaymentStatus.COMPLETED,
                "completed_at": now,
            })

    elif target == OrderStatus.CANCELLED:
        fields["cancelled_at"] = now
        await restore_order_stock(repo, order)
        if order.payment:
            payment_fields = {"status": PaymentStatus.FAILED}
            if order.payment.status != PaymentStatus.FAILED or not order.payment.failure_reason:
                payment_fields["failure_reason"] = failure_reason or CANCELLED_BY_ADMIN
            await repo.update_payment(order.payment.id, payment_fields)

    await repo.update_order(order.id, fields)
    logger.info(f"Order {order.order_number}: {order.status.value} -> {target.value}")

    updated = await repo.get_order(order.id)
    return updated


async def restore_order_stock(repo, order: Order):
    """Give each line's quantity back to its product.

    Lines whose product was deleted, or has unlimited stock, are skipped.
    """
    # Same row order as the checkout locks
    items = sorted((i for i in order.items if i.product_id is not None), key=lambda i: str(i.product_id))
    for item in items:
        restored = await repo.restore_stock(item.product_id, item.quantity)
        if not restored:
            logger.info(
                f"Order {order.order_number}: no stock to restore for {item.product_name}"
            )
