# bakery/handlers/admin_handlers.py
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID
from fastapi import Depends, Query
from ..models.admin import AdminPrincipal
from ..models.order import OrderStatus, UpdateOrderStatusRequest
from ..models.product import (
    CreateProductRequest, ProductCategory, ProductStatus, UpdateProductRequest
)
from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

class AdminHandler(BaseHandler):
    """Back-office: catalog management and order processing"""

    def setup_routes(self):
        admin = [Depends(self.require_admin)]
        route = self.router.add_api_route

        # Catalog
        route("/api/admin/products", self.list_products, methods=["GET"], dependencies=admin)
        route("/api/admin/products", self.create_product, methods=["POST"], status_code=201)
        route("/api/admin/products/{product_id}", self.update_product, methods=["PATCH"])
        route("/api/admin/products/{product_id}", self.delete_product, methods=["DELETE"])
        route("/api/admin/products/{product_id}/archive", self.archive_product, methods=["POST"])

        # Orders
        route("/api/admin/orders", self.list_orders, methods=["GET"], dependencies=admin)
        route("/api/admin/orders/stats", self.order_stats, methods=["GET"], dependencies=admin)
        route("/api/admin/orders/{order_id}", self.get_order, methods=["GET"], dependencies=admin)
        route("/api/admin/orders/{order_id}/status", self.update_order_status, methods=["POST"])

    async def list_products(self, category: Optional[ProductCategory] = None,
                            status: Optional[ProductStatus] = None,
                            is_available: Optional[bool] = None,
                            search: Optional[str] = Query(None, max_length=100),
                            page: int = Query(1, ge=1),
                            limit: int = Query(20, ge=1, le=100)):
        result = await self.services.products.list_products(
            category=category, status=status, is_available=is_available,
            search=search, page=page, limit=limit,
        )
        return self.success(result)

    async def create_product(self, request: CreateProductRequest,
                             admin: AdminPrincipal = Depends(BaseHandler.require_admin)):
        product = await self.services.products.create_product(request)
        logger.info(f"Admin {admin.admin_id} created product {product.slug}")
        return self.success(product, status_code=201)

    async def update_product(self, product_id: UUID, request: UpdateProductRequest,
                             admin: AdminPrincipal = Depends(BaseHandler.require_admin)):
        product = await self.services.products.update_product(product_id, request)
        return self.success(product)

    async def delete_product(self, product_id: UUID,
                             admin: AdminPrincipal = Depends(BaseHandler.require_admin)):
        await self.services.products.delete_product(product_id)
        logger.info(f"Admin {admin.admin_id} deleted product {product_id}")
        return self.success({"deleted": True})

    async def archive_product(self, product_id: UUID,
                              admin: AdminPrincipal = Depends(BaseHandler.require_admin)):
        product = await self.services.products.archive_product(product_id)
        return self.success(product)

    async def list_orders(self, status: Optional[OrderStatus] = None,
                          phone: Optional[str] = Query(None, max_length=20),
                          start_date: Optional[datetime] = None,
                          end_date: Optional[datetime] = None,
                          page: int = Query(1, ge=1),
                          limit: int = Query(20, ge=1, le=100)):
        result = await self.services.orders.list_orders(
            status=status,
            customer_phone=phone,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
        )
        return self.success(result)

    async def order_stats(self):
        return self.success(await self.services.orders.get_stats())

    async def get_order(self, order_id: UUID):
        return self.success(await self.services.orders.get_order(order_id))

    async def update_order_status(self, order_id: UUID, request: UpdateOrderStatusRequest,
                                  admin: AdminPrincipal = Depends(BaseHandler.require_admin)):
        order = await self.services.orders.update_status(order_id, request.status, request.admin_notes)
        logger.info(f"Admin {admin.admin_id} moved {order.order_number} to {order.status.value}")
        return self.success(order)
