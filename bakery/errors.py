# bakery/errors.py
"""Exceptions raised by the shop services.

Every error carries the HTTP status the API answers with and a stable
``code`` clients can switch on. Messages are safe to show to the caller.
"""
from typing import Iterable, List, Optional


class BakeryError(Exception):
    """Base exception for all shop errors."""

    status_code = 400
    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def extra(self) -> dict:
        """Structured fields added to the error body"""
        return {}

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code, **self.extra()}


class ValidationFailed(BakeryError):
    """Raised when a request is well-formed but inconsistent."""

    code = "validation_failed"

    def __init__(self, message: str, details: Optional[List[dict]] = None):
        self.details = details or []
        super().__init__(message)

    def extra(self) -> dict:
        return {"details": self.details} if self.details else {}


class ProductsUnavailable(BakeryError):
    """Raised when ordered products are missing, archived or not for sale."""

    code = "products_unavailable"

    def __init__(self, missing_ids: Iterable):
        self.missing_ids = [str(id_) for id_ in missing_ids]
        super().__init__(f"Products not available: {', '.join(self.missing_ids)}")

    def extra(self) -> dict:
        return {"missing_ids": self.missing_ids}


class InsufficientStock(BakeryError):
    """Raised when a finite-stock product cannot cover the ordered quantity."""

    code = "insufficient_stock"

    def __init__(self, product_id, product_name: str, available: int, requested: int):
        self.product_id = str(product_id)
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}"
        )

    def extra(self) -> dict:
        return {
            "product_id": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


class ProductNotFound(BakeryError):
    status_code = 404
    code = "product_not_found"

    def __init__(self, ref):
        self.ref = str(ref)
        super().__init__(f"Product not found: {ref}")


class SlugAlreadyExists(BakeryError):
    status_code = 409
    code = "slug_exists"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug already exists: {slug}")


class ProductInUse(BakeryError):
    """Raised when deleting a product that order items still reference."""

    status_code = 409
    code = "product_in_use"

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__(
            "This product is referenced by orders and cannot be deleted. Archive it instead."
        )


class OrderNotFound(BakeryError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, ref=None):
        self.ref = str(ref) if ref is not None else None
        super().__init__("Order not found")


class PaymentNotFound(BakeryError):
    status_code = 404
    code = "payment_not_found"

    def __init__(self, ref):
        self.ref = str(ref)
        super().__init__(f"Payment not found: {ref}")


class InvalidStatusTransition(BakeryError):
    """Raised when an order status change is not in the transition table."""

    status_code = 409
    code = "invalid_status_transition"

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid status transition: {_value(current)} -> {_value(target)}"
        )


class PaymentAlreadyInProgress(BakeryError):
    status_code = 409
    code = "payment_in_progress"

    def __init__(self, status):
        self.status = status
        super().__init__(f"Payment is already {_value(status)}")


class PaymentNotPending(BakeryError):
    """Raised when initiating a payment that already failed."""

    status_code = 409
    code = "payment_not_pending"

    def __init__(self, status):
        self.status = status
        super().__init__(f"Payment can no longer be initiated (status {_value(status)})")


class PaymentNotInitiated(BakeryError):
    status_code = 409
    code = "payment_not_initiated"

    def __init__(self, payment_id):
        self.payment_id = str(payment_id)
        super().__init__("No transaction has been initiated for this payment")


class OnlinePaymentNotSupported(BakeryError):
    code = "online_payment_not_supported"

    def __init__(self, method):
        self.method = method
        super().__init__(f"Payment method {_value(method)} is settled in store")


class PaymentProviderError(BakeryError):
    """Wraps any failure reported by, or while talking to, a payment provider."""

    status_code = 502
    code = "payment_provider_error"

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class WebhookSignatureError(PaymentProviderError):
    status_code = 400
    code = "invalid_webhook_signature"

    def __init__(self, provider: str):
        super().__init__(provider, "invalid webhook signature")


class StorageConflict(BakeryError):
    """Raised when a transaction kept conflicting with concurrent writers."""

    status_code = 503
    code = "storage_conflict"

    def __init__(self, message: str = "The request conflicted with another update, please retry"):
        super().__init__(message)


class Unauthorized(BakeryError):
    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Forbidden(BakeryError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class RateLimited(BakeryError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, retry_after: float):
        self.retry_after = int(retry_after) + 1
        super().__init__("Too many attempts. Try again later.")


def _value(status) -> str:
    return getattr(status, "value", status)


__all__ = [
    "BakeryError",
    "ValidationFailed",
    "ProductsUnavailable",
    "InsufficientStock",
    "ProductNotFound",
    "SlugAlreadyExists",
    "ProductInUse",
    "OrderNotFound",
    "PaymentNotFound",
    "InvalidStatusTransition",
    "PaymentAlreadyInProgress",
    "PaymentNotPending",
    "PaymentNotInitiated",
    "OnlinePaymentNotSupported",
    "PaymentProviderError",
    "WebhookSignatureError",
    "StorageConflict",
    "Unauthorized",
    "Forbidden",
    "RateLimited",
]
