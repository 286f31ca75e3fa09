"""FastAPI router exposing the product catalog."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from storefront.auth import AuthenticatedUser, require_admin
from storefront.schemas.product import (
    MessageResponse,
    Product,
    ProductCreate,
    ProductListResponse,
    ProductRecommendation,
)
from storefront.services.dependencies import get_product_service
from storefront.services.product_service import ProductService
from storefront.services.results import OperationResult

router = APIRouter()

SIDE_EFFECT_FAILURES_HEADER = "X-Side-Effect-Failures"


def _report_side_effects(response: Response, result: OperationResult[object]) -> None:
    """Surface the number of failed best-effort steps to the client."""

    if not result.ok:
        response.headers[SIDE_EFFECT_FAILURES_HEADER] = str(len(result.side_effect_failures))


@router.get("", response_model=ProductListResponse)
@router.get("/", response_model=ProductListResponse, include_in_schema=False)
async def list_products(
    _admin: AuthenticatedUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    """Return every product in the catalog (admin only)."""

    return ProductListResponse(products=await service.list_products())


@router.get("/featured", response_model=list[Product])
async def get_featured_products(
    response: Response,
    service: ProductService = Depends(get_product_service),
) -> list[Product]:
    result = await service.get_featured_products()
    _report_side_effects(response, result)
    return result.value


@router.get("/category/{category}", response_model=ProductListResponse)
async def get_products_by_category(
    category: str,
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    return ProductListResponse(products=await service.list_by_category(category))


@router.get("/recommendations", response_model=list[ProductRecommendation])
async def get_recommended_products(
    service: ProductService = Depends(get_product_service),
) -> list[ProductRecommendation]:
    """Return a random selection of products for the storefront carousel."""

    return await service.recommend_products()


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
@router.post(
    "/",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_product(
    payload: ProductCreate,
    response: Response,
    _admin: AuthenticatedUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> Product:
    result = await service.create_product(payload)
    _report_side_effects(response, result)
    return result.value


@router.patch("/{product_id}", response_model=Product)
async def toggle_featured_product(
    product_id: str,
    response: Response,
    _admin: AuthenticatedUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> Product:
    """Flip the product's featured flag and refresh the featured listing."""

    result = await service.toggle_featured(product_id)
    _report_side_effects(response, result)
    return result.value


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    response: Response,
    _admin: AuthenticatedUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service),
) -> MessageResponse:
    result = await service.delete_product(product_id)
    _report_side_effects(response, result)
    return MessageResponse(message="Product deleted successfully")
