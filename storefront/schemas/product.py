"""Pydantic schemas that power the products API surface."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductBase(BaseModel):
    """Fields shared by product payloads."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Unit price; never negative.")
    category: str = Field(..., min_length=1, max_length=128)

    @field_validator("name", "description", "category")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Must not be blank once whitespace is removed")
        return cleaned


class ProductCreate(ProductBase):
    """Payload for creating a product.

    ``image`` may be anything the image host accepts as an upload source: a
    remote URL or a base64 ``data:`` URI sent by the admin dashboard.
    """

    image: str | None = Field(
        None,
        description="Image to upload to the image host before the product is stored.",
    )


class Product(ProductBase):
    """Product record as exposed by the API and stored in the featured cache."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    image: str = ""
    is_featured: bool = Field(False, alias="isFeatured")
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")


class ProductRecommendation(BaseModel):
    """Projection returned by the recommendations endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    image: str = ""
    price: float


class ProductListResponse(BaseModel):
    products: list[Product] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str


__all__ = [
    "MessageResponse",
    "Product",
    "ProductBase",
    "ProductCreate",
    "ProductListResponse",
    "ProductRecommendation",
]
