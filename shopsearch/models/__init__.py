"""SQLAlchemy models."""

from shopsearch.models.base import Base
from shopsearch.models.category import Category
from shopsearch.models.product import Product, ProductImage, ProductVariant
from shopsearch.models.tag import Tag, product_tags

__all__ = [
    # Base
    "Base",
    # Catalog
    "Category",
    "Product",
    "ProductImage",
    "ProductVariant",
    "Tag",
    "product_tags",
]
