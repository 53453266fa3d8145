# bakery/models/product.py
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field
from .base import TimeStampedModel

class ProductCategory(str, Enum):
    BAKERY = "BAKERY"
    PASTRY_VIENNOISERIE = "PASTRY_VIENNOISERIE"
    PASTRY = "PASTRY"

class ProductStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    ARCHIVED = "ARCHIVED"

class Product(TimeStampedModel):
    """Catalog product. ``stock`` of None means unlimited."""
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    category: ProductCategory
    status: ProductStatus = ProductStatus.AVAILABLE
    price: Decimal
    stock: Optional[int] = None
    is_available: bool = True
    image_url: Optional[str] = None
    weight: Optional[int] = None

    @property
    def is_purchasable(self) -> bool:
        return self.is_available and self.status == ProductStatus.AVAILABLE

    @property
    def has_finite_stock(self) -> bool:
        return self.stock is not None

SLUG_PATTERN = r"^[a-z0-9-]+$"

class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    slug: Optional[str] = Field(None, min_length=3, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    category: ProductCategory
    status: ProductStatus = ProductStatus.AVAILABLE
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    is_available: bool = True
    image_url: Optional[str] = Field(None, max_length=500)
    weight: Optional[int] = Field(None, gt=0)

class UpdateProductRequest(BaseModel):
    """Partial update: only fields sent by the client are applied"""
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    slug: Optional[str] = Field(None, min_length=3, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[ProductCategory] = None
    status: Optional[ProductStatus] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)
    weight: Optional[int] = Field(None, gt=0)
