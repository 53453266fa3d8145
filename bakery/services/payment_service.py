# bakery/services/payment_service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import UUID
from ..config import Config
from ..database.database import run_in_transaction
from ..errors import (
    OnlinePaymentNotSupported, OrderNotFound, PaymentAlreadyInProgress,
    PaymentNotFound, PaymentNotInitiated, PaymentNotPending, PaymentProviderError
)
from ..models.order import Order, OrderStatus, Payment, PaymentMethod, PaymentStatus
from .order_lifecycle import apply_transition
from .payment_providers import InitiationRequest, PaymentProvider, ProviderResult

logger = logging.getLogger(__name__)


async def apply_provider_result(repo, order: Order, result: ProviderResult,
                                now: Optional[datetime] = None) -> Order:
    """Apply a provider verdict to a locked order's payment and cascade it.

    ``order`` must have been read with ``for_update=True``. A payment that is
    already COMPLETED or FAILED is left alone, so duplicate webhooks and
    repeated verifications change nothing. Returns the order after the write.
    """
    payment = order.payment
    if payment is None or payment.status.is_terminal:
        return order
    if not result.status.is_terminal:
        return order

    now = now or datetime.now(timezone.utc)
    status = result.status
    reason = result.failure_reason
    recorded = {}
    if result.metadata:
        recorded["metadata"] = {**(payment.metadata or {}), "provider_data": result.metadata}

    if status == PaymentStatus.COMPLETED and result.amount is not None and result.amount != payment.amount:
        logger.warning(
            f"Order {order.order_number}: provider reported {result.amount}, expected {payment.amount}"
        )
        status = PaymentStatus.FAILED
        reason = f"Amount mismatch: expected {payment.amount}, received {result.amount}"

    if status == PaymentStatus.COMPLETED:
        await repo.update_payment(payment.id, {
            "status": PaymentStatus.COMPLETED,
            "completed_at": result.paid_at or now,
            **recorded,
        })
        logger.info(f"Payment for order {order.order_number} completed")
        if order.status == OrderStatus.PENDING:
            return await apply_transition(repo, order, OrderStatus.CONFIRMED, now=now)
        return await repo.get_order(order.id)

    reason = reason or "Payment failed"
    logger.info(f"Payment for order {order.order_number} failed: {reason}")
    if order.status == OrderStatus.PENDING:
        if recorded:
            await repo.update_payment(payment.id, recorded)
        # Cancellation also marks the payment FAILED with this reason
        return await apply_transition(
            repo, order, OrderStatus.CANCELLED,
            admin_notes=f"Payment failed: {reason}",
            failure_reason=reason,
            now=now,
        )

    await repo.update_payment(payment.id, {
        "status": PaymentStatus.FAILED,
        "failure_reason": reason,
        **recorded,
    })
    return await repo.get_order(order.id)


class PaymentService:
    def __init__(self, database, provider: PaymentProvider, notifier=None):
        self.db = database
        self.provider = provider
        self.notifier = notifier

    @staticmethod
    def _check_can_initiate(payment: Payment):
        if payment.method == PaymentMethod.CASH:
            raise OnlinePaymentNotSupported(payment.method)
        if payment.status in (PaymentStatus.PROCESSING, PaymentStatus.COMPLETED):
            raise PaymentAlreadyInProgress(payment.status)
        if payment.status != PaymentStatus.PENDING:
            raise PaymentNotPending(payment.status)

    async def initiate_payment(self, order_id: UUID) -> Dict[str, Any]:
        """Open a checkout with the provider for a PENDING payment"""
        async with self.db.transaction() as repo:
            order = await repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        if not order.payment:
            raise PaymentNotFound(order_id)

        payment = order.payment
        self._check_can_initiate(payment)

        request = InitiationRequest(
            order_id=str(order.id),
            order_number=order.order_number,
            amount=payment.amount,
            currency=Config.CURRENCY,
            customer_name=order.customer_name,
            customer_phone=payment.phone_number or order.customer_phone,
            customer_email=order.customer_email,
            callback_url=f"{Config.APP_URL}/api/webhooks/payment",
            return_url=f"{Config.APP_URL}/orders/{order.order_number}",
            cancel_url=f"{Config.APP_URL}/orders/{order.order_number}",
            metadata={"payment_id": str(payment.id)},
        )

        # Never hold a transaction open across the provider call
        try:
            result = await self.provider.initiate(request)
        except PaymentProviderError as e:
            logger.error(f"Payment initiation failed for order {order.order_number}: {e.reason}")
            await self._record_initiation_failure(payment.id, e.reason)
            raise

        async def work(repo):
            locked = await repo.get_payment(payment.id, for_update=True)
            # A concurrent request may have initiated in the meantime
            self._check_can_initiate(locked)
            await repo.update_payment(payment.id, {
                "status": PaymentStatus.PROCESSING,
                "transaction_id": result.transaction_id,
                "transaction_ref": result.checkout_token,
                "metadata": {
                    **locked.metadata,
                    "provider": self.provider.name,
                    "checkout_url": result.checkout_url,
                },
            })

        await run_in_transaction(self.db, work)
        logger.info(f"Payment for order {order.order_number} initiated: {result.transaction_id}")

        return {
            "payment_id": payment.id,
            "order_id": order.id,
            "status": PaymentStatus.PROCESSING,
            "transaction_id": result.transaction_id,
            "checkout_url": result.checkout_url,
        }

    async def _record_initiation_failure(self, payment_id: UUID, reason: str):
        async def work(repo):
            locked = await repo.get_payment(payment_id, for_update=True)
            if locked and locked.status == PaymentStatus.PENDING:
                await repo.update_payment(payment_id, {
                    "status": PaymentStatus.FAILED,
                    "failure_reason": reason,
                })

        await run_in_transaction(self.db, work)

    async def verify_payment(self, payment_id: UUID) -> Order:
        """Ask the provider where a payment stands and reconcile the order"""
        async with self.db.transaction() as repo:
            payment = await repo.get_payment(payment_id)
            order = await repo.get_order(payment.order_id) if payment else None
        if not payment:
            raise PaymentNotFound(payment_id)
        if not payment.transaction_id:
            raise PaymentNotInitiated(payment_id)
        if payment.status.is_terminal:
            return order

        result = await self.provider.verify(payment.transaction_id)
        return await self._reconcile(payment.order_id, result)

    async def handle_webhook(self, body, signature: Optional[str] = None) -> Optional[Order]:
        """Process a provider callback.

        Unknown transactions are logged and dropped so the provider stops
        retrying them; ``None`` is returned in that case.
        """
        result = await self.provider.parse_webhook(body, signature)

        async with self.db.transaction() as repo:
            payment = await repo.get_payment_by_transaction(result.transaction_id)
        if not payment:
            logger.warning(f"Webhook for unknown transaction {result.transaction_id} ignored")
            return None

        return await self._reconcile(payment.order_id, result)

    async def _reconcile(self, order_id: UUID, result: ProviderResult) -> Order:
        async def work(repo) -> Tuple[OrderStatus, Order]:
            # Order before payment, same lock order as admin transitions
            order = await repo.get_order(order_id, for_update=True)
            if not order:
                raise OrderNotFound(order_id)
            updated = await apply_provider_result(repo, order, result)
            return order.status, updated

        previous, order = await run_in_transaction(self.db, work)

        if self.notifier and order.status != previous:
            self.notifier.status_changed(order, previous)
        return order
