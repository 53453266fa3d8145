# bakery/handlers/payment_handlers.py
import logging
from uuid import UUID
from fastapi import Request
from fastapi.responses import JSONResponse
from ..errors import BakeryError
from ..models.order import InitiatePaymentRequest
from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("verif-hash", "x-webhook-signature")

class PaymentHandler(BaseHandler):
    """Online payment initiation, verification and provider callbacks"""

    def setup_routes(self):
        self.router.add_api_route("/api/payments/init", self.initiate_payment, methods=["POST"])
        self.router.add_api_route("/api/payments/{payment_id}/verify", self.verify_payment, methods=["POST"])
        self.router.add_api_route("/api/webhooks/payment", self.payment_webhook, methods=["POST"])

    async def initiate_payment(self, request: InitiatePaymentRequest):
        result = await self.services.payments.initiate_payment(request.order_id)
        return self.success(result)

    async def verify_payment(self, payment_id: UUID):
        order = await self.services.payments.verify_payment(payment_id)
        return self.success(order)

    async def payment_webhook(self, request: Request):
        """Always answers 200 so providers do not retry forever"""
        body = await request.body()
        signature = next(
            (request.headers[name] for name in SIGNATURE_HEADERS if name in request.headers),
            None
        )

        try:
            order = await self.services.payments.handle_webhook(body, signature)
        except BakeryError as e:
            logger.warning(f"Payment webhook rejected: {e.message}")
            return JSONResponse({"success": False, "error": e.message})
        except Exception as e:
            logger.error(f"Payment webhook failed: {e}", exc_info=True)
            return JSONResponse({"success": False, "error": "Webhook processing failed"})

        if order is None:
            return JSONResponse({"success": True, "data": {"processed": False}})
        return self.success({
            "processed": True,
            "order_number": order.order_number,
            "status": order.status,
            "payment_status": order.payment.status if order.payment else None,
        })
