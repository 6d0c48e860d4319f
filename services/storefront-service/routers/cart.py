"""Cart API router."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from auth import get_current_member_id
from database import get_db
from dependencies import get_cart_service
from mappers import to_cart_product_response, to_cart_response
from schemas import (
    CartCountResponse,
    CartCreateRequest,
    CartProductResponseWrapper,
    CartResponse,
    CartResponseWrapper,
    CartUpdateRequest,
    MessageResponse,
)
from services.cart_service import CartService

router = APIRouter(prefix="/api/carts", tags=["cart"])


@router.get("", response_model=CartResponseWrapper)
def find_all_carts(
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get member's cart - requires authentication."""
    carts = cart_service.find_all_carts(db, member_id)
    return CartResponseWrapper(
        message="Cart loaded",
        carts=[to_cart_response(cart) for cart in carts],
    )


@router.post("", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
def create_cart(
    request: CartCreateRequest,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add item to cart, merging with an existing row - requires authentication."""
    cart = cart_service.create_cart(db, member_id, request.product_id, request.quantity)
    return to_cart_response(cart)


@router.get("/products", response_model=CartProductResponseWrapper)
def get_cart_products(
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get member's cart with product details - requires authentication."""
    carts = cart_service.get_cart_products(db, member_id)
    return CartProductResponseWrapper(
        message="Cart with product details loaded",
        products=[to_cart_product_response(cart) for cart in carts],
    )


@router.get("/count", response_model=CartCountResponse)
def count_cart_items(
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get number of rows in member's cart - requires authentication."""
    return CartCountResponse(count=cart_service.count_cart_items(db, member_id))


@router.put("/{cart_id}", response_model=CartResponse)
def update_cart(
    cart_id: int,
    request: CartUpdateRequest,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Change cart row quantity - requires authentication."""
    return to_cart_response(cart_service.update_cart(db, member_id, cart_id, request.quantity))


@router.delete("/{cart_id}", response_model=MessageResponse)
def delete_cart(
    cart_id: int,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Remove one cart row - requires authentication."""
    cart_service.delete_cart(db, member_id, cart_id)
    return MessageResponse(message="Cart item deleted")


@router.delete("", response_model=MessageResponse)
def clear_cart(
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Remove every cart row - requires authentication."""
    deleted = cart_service.clear_cart(db, member_id)
    return MessageResponse(message=f"Cart cleared ({deleted} items)")
