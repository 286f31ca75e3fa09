"""Repository layer for durable storage access."""

from storefront.db.repositories.product_repository import ProductRepository

__all__ = ["ProductRepository"]
