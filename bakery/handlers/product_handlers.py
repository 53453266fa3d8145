# bakery/handlers/product_handlers.py
from typing import Optional
from uuid import UUID
from fastapi import Query
from ..models.product import ProductCategory, ProductStatus
from .base_handler import BaseHandler

class ProductHandler(BaseHandler):
    """Public catalog"""

    def setup_routes(self):
        self.router.add_api_route("/api/products", self.list_products, methods=["GET"])
        self.router.add_api_route("/api/products/slug/{slug}", self.get_product_by_slug, methods=["GET"])
        self.router.add_api_route("/api/products/{product_id}", self.get_product, methods=["GET"])

    async def list_products(self, category: Optional[ProductCategory] = None,
                            search: Optional[str] = Query(None, max_length=100),
                            page: int = Query(1, ge=1),
                            limit: int = Query(20, ge=1, le=100)):
        # The storefront only ever shows what can be ordered
        result = await self.services.products.list_products(
            category=category,
            status=ProductStatus.AVAILABLE,
            is_available=True,
            search=search,
            page=page,
            limit=limit,
        )
        return self.success(result)

    async def get_product(self, product_id: UUID):
        product = await self.services.products.get_product(product_id, public=True)
        return self.success(product)

    async def get_product_by_slug(self, slug: str):
        product = await self.services.products.get_product_by_slug(slug, public=True)
        return self.success(product)
