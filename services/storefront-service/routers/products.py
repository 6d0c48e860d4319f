"""Products API router."""
import math
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from opentelemetry import trace

from auth import require_admin
from database import get_db
from dependencies import get_product_service
from mappers import to_product_response
from models import Product
from monitoring import product_views_counter
from schemas import ProductCreate, ProductPageResponse, ProductResponse
from services.product_service import ProductService

router = APIRouter(tags=["products"])


def _page_response(products: List[Product], total: int, page: int, size: int) -> ProductPageResponse:
    return ProductPageResponse(
        products=[to_product_response(p) for p in products],
        page=page,
        size=size,
        total_elements=total,
        total_pages=math.ceil(total / size),
    )


@router.get("/api/products", response_model=ProductPageResponse)
def get_all_products(
    page: int = Query(0, ge=0, description="0-indexed page number"),
    size: int = Query(9, ge=1, le=100),
    sort_field: str = Query("created_at", alias="sortField"),
    sort_dir: str = Query("desc", alias="sortDir"),
    keyword: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """List non-deleted products with paging, sorting and keyword search."""
    products, total = product_service.get_all_products(db, page, size, sort_field, sort_dir, keyword)

    span = trace.get_current_span()
    span.set_attribute("product.count", len(products))
    product_views_counter.add(1, {"view": "catalog"})

    return _page_response(products, total, page, size)


@router.get("/api/products/category/{category_id}", response_model=ProductPageResponse)
def get_products_by_category(
    category_id: int = Path(..., description="Category ID"),
    page: int = Query(0, ge=0),
    size: int = Query(9, ge=1, le=100),
    sort_field: str = Query("created_at", alias="sortField"),
    sort_dir: str = Query("desc", alias="sortDir"),
    keyword: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """List non-deleted products in a category."""
    products, total = product_service.get_products_by_category(
        db, category_id, page, size, sort_field, sort_dir, keyword
    )
    product_views_counter.add(1, {"view": "category", "category_id": str(category_id)})
    return _page_response(products, total, page, size)


@router.get("/api/products/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Get product details."""
    product = product_service.find_product_by_id(db, product_id)

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)
    product_views_counter.add(1, {"view": "detail", "product_id": str(product_id)})

    return to_product_response(product)


@router.post("/api/admin/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: ProductCreate,
    db: Session = Depends(get_db),
    admin_id: int = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Create a product - requires admin role."""
    return to_product_response(product_service.create_product(db, request))


@router.put("/api/admin/products/{product_id}", response_model=ProductResponse)
def update_product(
    request: ProductCreate,
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin_id: int = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Update a product - requires admin role."""
    return to_product_response(product_service.update_product(db, product_id, request))


@router.delete("/api/admin/products/{product_id}", response_model=ProductResponse)
def delete_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin_id: int = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Soft delete a product - requires admin role."""
    return to_product_response(product_service.delete_product(db, product_id))
