# bakery/services/product_service.py
import logging
import math
import re
import unicodedata
from typing import Any, Dict, Optional
from uuid import UUID
from ..errors import ProductInUse, ProductNotFound, SlugAlreadyExists
from ..models.product import (
    CreateProductRequest, Product, ProductCategory, ProductStatus, UpdateProductRequest
)

logger = logging.getLogger(__name__)

# Fields an update may explicitly clear
NULLABLE_FIELDS = frozenset({"description", "stock", "image_url", "weight"})


def slugify(name: str) -> str:
    """'Pain au Chocolat Spécial' -> 'pain-au-chocolat-special'"""
    text = unicodedata.normalize("NFD", name.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text or "product"


async def unique_slug(repo, name: str, exclude_id: Optional[UUID] = None) -> str:
    base = slugify(name)
    slug = base
    counter = 1
    while await repo.slug_exists(slug, exclude_id):
        slug = f"{base}-{counter}"
        counter += 1
    return slug


class ProductService:
    def __init__(self, db):
        self.db = db

    async def list_products(self, category: Optional[ProductCategory] = None,
                            status: Optional[ProductStatus] = None,
                            is_available: Optional[bool] = None,
                            search: Optional[str] = None,
                            page: int = 1, limit: int = 20) -> Dict[str, Any]:
        async with self.db.transaction() as repo:
            products, total = await repo.list_products(
                category=category,
                status=status,
                is_available=is_available,
                search=search.strip() if search else None,
                offset=(page - 1) * limit,
                limit=limit,
            )
        return {
            "products": products,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
                "has_more": page * limit < total,
            },
        }

    async def get_product(self, product_id: UUID, public: bool = False) -> Product:
        async with self.db.transaction() as repo:
            product = await repo.get_product(product_id)
        if not product or (public and product.status == ProductStatus.ARCHIVED):
            raise ProductNotFound(product_id)
        return product

    async def get_product_by_slug(self, slug: str, public: bool = False) -> Product:
        async with self.db.transaction() as repo:
            product = await repo.get_product_by_slug(slug)
        if not product or (public and product.status == ProductStatus.ARCHIVED):
            raise ProductNotFound(slug)
        return product

    async def create_product(self, request: CreateProductRequest) -> Product:
        """Add a product; the slug is derived from the name unless given"""
        fields = request.model_dump()
        async with self.db.transaction() as repo:
            if request.slug:
                if await repo.slug_exists(request.slug):
                    raise SlugAlreadyExists(request.slug)
            else:
                fields["slug"] = await unique_slug(repo, request.name)
            product = await repo.insert_product(fields)

        logger.info(f"Product {product.slug} created")
        return product

    async def update_product(self, product_id: UUID, request: UpdateProductRequest) -> Product:
        fields = {
            key: value for key, value in request.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_FIELDS
        }
        async with self.db.transaction() as repo:
            current = await repo.get_product(product_id)
            if not current:
                raise ProductNotFound(product_id)

            if fields.get("slug"):
                if fields["slug"] != current.slug and await repo.slug_exists(fields["slug"], product_id):
                    raise SlugAlreadyExists(fields["slug"])
            elif fields.get("name") and fields["name"] != current.name:
                fields["slug"] = await unique_slug(repo, fields["name"], product_id)
            else:
                fields.pop("slug", None)

            if not fields:
                return current
            product = await repo.update_product(product_id, fields)

        logger.info(f"Product {product.slug} updated: {', '.join(sorted(fields))}")
        return product

    async def delete_product(self, product_id: UUID):
        """Delete a product no order refers to"""
        async with self.db.transaction() as repo:
            if not await repo.get_product(product_id):
                raise ProductNotFound(product_id)
            if await repo.count_product_order_items(product_id):
                raise ProductInUse(product_id)
            await repo.delete_product(product_id)
        logger.info(f"Product {product_id} deleted")

    async def archive_product(self, product_id: UUID) -> Product:
        async with self.db.transaction() as repo:
            product = await repo.update_product(product_id, {
                "status": ProductStatus.ARCHIVED,
                "is_available": False,
            })
        if not product:
            raise ProductNotFound(product_id)
        logger.info(f"Product {product.slug} archived")
        return product
