# bakery/handlers/__init__.py
"""HTTP handlers"""
from .base_handler import BaseHandler
from .product_handlers import ProductHandler
from .order_handlers import OrderHandler
from .payment_handlers import PaymentHandler
from .admin_handlers import AdminHandler
from .auth_handlers import AuthHandler

__all__ = [
    'BaseHandler',
    'ProductHandler',
    'OrderHandler',
    'PaymentHandler',
    'AdminHandler',
    'AuthHandler',
]
