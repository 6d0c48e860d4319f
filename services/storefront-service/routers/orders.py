"""Orders API router."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from auth import get_current_member_id
from database import get_db
from dependencies import get_order_service
from mappers import (
    to_cart_product_response,
    to_order_detail_response,
    to_order_user_response_list,
)
from schemas import (
    CartProductResponseWrapper,
    OrderDetailResponse,
    OrderRequest,
    OrderUpdateRequest,
    OrderUserResponseWrapper,
)
from services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=OrderUserResponseWrapper)
def find_all_orders(
    page: int = Query(1, ge=1, description="1-indexed page number"),
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Get member's orders, five per page, newest first - requires authentication."""
    orders, total_pages = order_service.find_all_orders(db, member_id, page)
    return OrderUserResponseWrapper(
        orders=to_order_user_response_list(orders),
        total_pages=total_pages,
    )


@router.get("/create-data", response_model=CartProductResponseWrapper)
def find_order_create_data(
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Get cart products for the checkout page - requires authentication."""
    carts = order_service.find_order_create_data(db, member_id)
    return CartProductResponseWrapper(
        message="Order data loaded",
        products=[to_cart_product_response(cart) for cart in carts],
    )


@router.post("", response_model=OrderDetailResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    request: OrderRequest,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Place an order from the member's cart - requires authentication."""
    order = order_service.create_order(db, member_id, request)
    return to_order_detail_response(order)


@router.get("/{order_id}", response_model=OrderDetailResponse)
def find_order(
    order_id: int,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one of the member's orders - requires authentication."""
    return to_order_detail_response(order_service.find_order(db, member_id, order_id))


@router.put("/{order_id}", response_model=OrderDetailResponse)
def update_order(
    order_id: int,
    request: OrderUpdateRequest,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Change delivery info while the order is still ORDERED - requires authentication."""
    order = order_service.update_order(db, member_id, order_id, request)
    return to_order_detail_response(order)


@router.patch("/{order_id}/cancel", response_model=OrderDetailResponse)
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Cancel an order that is still ORDERED - requires authentication."""
    return to_order_detail_response(order_service.cancel_order(db, member_id, order_id))
