"""HTTP contract tests for the products router."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from storefront.api.products import SIDE_EFFECT_FAILURES_HEADER
from storefront.auth import build_access_token
from storefront.main import app
from storefront.schemas.product import Product, ProductCreate, ProductRecommendation
from storefront.services.dependencies import get_product_service
from storefront.services.image_host import ImageHostError
from storefront.services.product_service import ProductNotFoundError
from storefront.services.results import OperationResult


def _product(product_id: str, *, featured: bool = False, category: str = "jeans") -> Product:
    return Product(
        id=product_id,
        name=f"Product {product_id}",
        description="Sample product",
        price=10.0,
        category=category,
        image="",
        is_featured=featured,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        updated_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


class _StubProductService:
    """Product service stand-in returning canned results and recording calls."""

    def __init__(self) -> None:
        self.products = {
            "p-1": _product("p-1", featured=True),
            "p-2": _product("p-2", category="shoes"),
        }
        self.featured_failures: list[str] = []
        self.created: list[ProductCreate] = []
        self.deleted: list[str] = []
        self.error: Exception | None = None

    def _raise_if_configured(self) -> None:
        if self.error is not None:
            raise self.error

    def _failing(self, value: object, operations: list[str]) -> OperationResult[object]:
        result: OperationResult[object] = OperationResult(value)
        for operation in operations:
            result.record_failure(operation, RuntimeError("redis down"))
        return result

    async def list_products(self) -> list[Product]:
        self._raise_if_configured()
        return list(self.products.values())

    async def get_featured_products(self) -> OperationResult[object]:
        self._raise_if_configured()
        featured = [p for p in self.products.values() if p.is_featured]
        return self._failing(featured, self.featured_failures)

    async def list_by_category(self, category: str) -> list[Product]:
        return [p for p in self.products.values() if p.category == category]

    async def recommend_products(self) -> list[ProductRecommendation]:
        return [ProductRecommendation.model_validate(p) for p in self.products.values()]

    async def create_product(self, payload: ProductCreate) -> OperationResult[object]:
        self._raise_if_configured()
        self.created.append(payload)
        return OperationResult(_product("p-new", category=payload.category))

    async def toggle_featured(self, product_id: str) -> OperationResult[object]:
        if product_id not in self.products:
            raise ProductNotFoundError(product_id)
        current = self.products[product_id]
        toggled = current.model_copy(update={"is_featured": not current.is_featured})
        self.products[product_id] = toggled
        return self._failing(toggled, self.featured_failures)

    async def delete_product(self, product_id: str) -> OperationResult[object]:
        if product_id not in self.products:
            raise ProductNotFoundError(product_id)
        self.deleted.append(product_id)
        del self.products[product_id]
        return OperationResult(None)


@pytest.fixture
def stub_service() -> Iterator[_StubProductService]:
    service = _StubProductService()
    app.dependency_overrides[get_product_service] = lambda: service
    try:
        yield service
    finally:
        app.dependency_overrides.pop(get_product_service, None)


@pytest.fixture
def client(stub_service: _StubProductService) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def _auth(role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_access_token(user_id='u-1', role=role)}"}


ADMIN = "admin"
CUSTOMER = "customer"


def test_featured_products_are_public(client: TestClient) -> None:
    response = client.get("/products/featured")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert [item["id"] for item in body] == ["p-1"]
    assert body[0]["isFeatured"] is True
    assert SIDE_EFFECT_FAILURES_HEADER not in response.headers
    assert "X-Request-ID" in response.headers


def test_featured_products_report_cache_failures(
    client: TestClient, stub_service: _StubProductService
) -> None:
    stub_service.featured_failures = ["featured_cache_populate"]

    response = client.get("/products/featured")

    assert response.status_code == status.HTTP_200_OK
    assert response.headers[SIDE_EFFECT_FAILURES_HEADER] == "1"


def test_products_by_category(client: TestClient) -> None:
    response = client.get("/products/category/shoes")

    assert response.status_code == status.HTTP_200_OK
    assert [item["id"] for item in response.json()["products"]] == ["p-2"]


def test_recommendations_return_projection(client: TestClient) -> None:
    response = client.get("/products/recommendations")

    assert response.status_code == status.HTTP_200_OK
    assert set(response.json()[0]) == {"id", "name", "description", "image", "price"}


@pytest.mark.parametrize("path", ["/products", "/products/"])
def test_list_products_requires_token(client: TestClient, path: str) -> None:
    response = client.get(path)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["WWW-Authenticate"] == "Bearer"
    body = response.json()
    assert body["error_type"] == "authentication_error"
    assert body["detail"] == "Unauthorized - No access token provided"
    assert body["status_code"] == status.HTTP_401_UNAUTHORIZED
    assert body["request_id"] == response.headers["X-Request-ID"]


def test_list_products_rejects_customers(client: TestClient) -> None:
    response = client.get("/products", headers=_auth(CUSTOMER))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    body = response.json()
    assert body["error_type"] == "authorization_error"
    assert body["detail"] == "Access denied - Admin only"
    assert body["request_id"] == response.headers["X-Request-ID"]


def test_unknown_route_uses_error_payload(client: TestClient) -> None:
    response = client.get("/nowhere")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error_type"] == "not_found"


def test_list_products_for_admin(client: TestClient) -> None:
    response = client.get("/products", headers=_auth(ADMIN))

    assert response.status_code == status.HTTP_200_OK
    assert {item["id"] for item in response.json()["products"]} == {"p-1", "p-2"}


def test_create_product_returns_created(
    client: TestClient, stub_service: _StubProductService
) -> None:
    response = client.post(
        "/products",
        headers=_auth(ADMIN),
        json={
            "name": "Runner",
            "description": "Lightweight sneaker",
            "price": 89.99,
            "category": "shoes",
            "image": "data:image/png;base64,AAAA",
        },
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["id"] == "p-new"
    assert stub_service.created[0].image == "data:image/png;base64,AAAA"


def test_create_product_validates_payload(
    client: TestClient, stub_service: _StubProductService
) -> None:
    response = client.post(
        "/products",
        headers=_auth(ADMIN),
        json={"name": "Runner", "description": "x", "price": -1, "category": "shoes"},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    body = response.json()
    assert body["error_type"] == "validation_error"
    assert any(error["field"] == "body.price" for error in body["errors"])
    assert stub_service.created == []


def test_create_product_upload_failure_is_bad_gateway(
    client: TestClient, stub_service: _StubProductService
) -> None:
    stub_service.error = ImageHostError("upload rejected")

    response = client.post(
        "/products",
        headers=_auth(ADMIN),
        json={"name": "Runner", "description": "x", "price": 1, "category": "shoes"},
    )

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["error_type"] == "upstream_error"


def test_toggle_featured_flips_flag(client: TestClient) -> None:
    response = client.patch("/products/p-2", headers=_auth(ADMIN))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["isFeatured"] is True


def test_toggle_featured_reports_refresh_failure_but_succeeds(
    client: TestClient, stub_service: _StubProductService
) -> None:
    stub_service.featured_failures = ["featured_cache_refresh"]

    response = client.patch("/products/p-1", headers=_auth(ADMIN))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["isFeatured"] is False
    assert response.headers[SIDE_EFFECT_FAILURES_HEADER] == "1"


def test_toggle_featured_unknown_product(client: TestClient) -> None:
    response = client.patch("/products/missing", headers=_auth(ADMIN))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    body = response.json()
    assert body["message"] == "Product not found"
    assert body["error_type"] == "not_found"


def test_toggle_featured_requires_admin(
    client: TestClient, stub_service: _StubProductService
) -> None:
    response = client.patch("/products/p-2", headers=_auth(CUSTOMER))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert stub_service.products["p-2"].is_featured is False


def test_delete_product(client: TestClient, stub_service: _StubProductService) -> None:
    response = client.delete("/products/p-2", headers=_auth(ADMIN))

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"message": "Product deleted successfully"}
    assert stub_service.deleted == ["p-2"]


def test_delete_unknown_product(client: TestClient) -> None:
    response = client.delete("/products/missing", headers=_auth(ADMIN))

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_database_outage_maps_to_service_unavailable(
    client: TestClient, stub_service: _StubProductService
) -> None:
    stub_service.error = OperationalError("SELECT 1", {}, Exception("connection refused"))

    response = client.get("/products/featured")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["retry_after"] == 5


def test_unexpected_error_maps_to_server_error(
    client: TestClient, stub_service: _StubProductService
) -> None:
    stub_service.error = RuntimeError("boom")

    response = client.get("/products/featured")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["message"] == "Server error"


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
