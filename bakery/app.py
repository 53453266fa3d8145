# bakery/app.py
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from .config import Config
from .errors import BakeryError, RateLimited, ValidationFailed
from .handlers import (
    AdminHandler,
    AuthHandler,
    OrderHandler,
    PaymentHandler,
    ProductHandler
)
from .services.auth_service import AuthService
from .services.order_service import OrderService
from .services.payment_providers import PaymentProvider, get_payment_provider
from .services.payment_service import PaymentService
from .services.product_service import ProductService
from .utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

class BakeryShopApp:
    def __init__(self, db, provider: Optional[PaymentProvider] = None, notifier=None,
                 rate_limiter: Optional[RateLimiter] = None):
        """Wire the services and build the FastAPI application"""
        self.db = db
        self.notifier = notifier

        self.products = ProductService(db)
        self.orders = OrderService(db, notifier=notifier)
        self.payments = PaymentService(db, provider or get_payment_provider(), notifier=notifier)
        self.auth = AuthService(db)
        self.lookup_limiter = rate_limiter if rate_limiter is not None else RateLimiter(
            Config.LOOKUP_RATE_LIMIT, Config.LOOKUP_RATE_WINDOW
        )

        self.application = FastAPI(title=Config.STORE_NAME)
        self.setup_handlers()

    def setup_handlers(self):
        """Register routes and error handlers"""
        app = self.application

        for handler in (ProductHandler, OrderHandler, PaymentHandler, AdminHandler, AuthHandler):
            app.include_router(handler(self).router)

        app.add_api_route("/health", self.health, methods=["GET"])
        app.add_exception_handler(BakeryError, self.handle_bakery_error)
        app.add_exception_handler(RequestValidationError, self.handle_validation_error)
        app.add_exception_handler(Exception, self.handle_unexpected_error)

    @staticmethod
    async def health():
        return {"status": "ok"}

    @staticmethod
    async def handle_bakery_error(request: Request, exc: BakeryError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=headers,
        )

    @staticmethod
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
                "message": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        error = ValidationFailed("Invalid request", details)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @staticmethod
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "code": "internal_error"},
        )

    async def shutdown(self):
        if self.notifier:
            await self.notifier.drain()
