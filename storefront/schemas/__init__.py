"""Pydantic schemas for API requests and responses."""

from storefront.schemas.error import (  # noqa: F401
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from storefront.schemas.product import (  # noqa: F401
    MessageResponse,
    Product,
    ProductCreate,
    ProductListResponse,
    ProductRecommendation,
)
