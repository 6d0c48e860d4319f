"""Dependency injection for services."""
import redis
from fastapi import Depends, Request

from services.cart_service import CartService
from services.category_service import CategoryService
from services.coupon_service import CouponService
from services.member_service import MemberService
from services.order_service import OrderService
from services.product_service import ProductService


def get_redis_client(request: Request) -> redis.Redis:
    """Get Redis client from app state."""
    return request.app.state.redis_client


def get_member_service() -> MemberService:
    return MemberService()


def get_category_service() -> CategoryService:
    return CategoryService()


def get_product_service(
    category_service: CategoryService = Depends(get_category_service)
) -> ProductService:
    return ProductService(category_service)


def get_cart_service(redis_client: redis.Redis = Depends(get_redis_client)) -> CartService:
    """Get cart service instance."""
    return CartService(redis_client)


def get_coupon_service() -> CouponService:
    return CouponService()


def get_order_service(
    cart_service: CartService = Depends(get_cart_service),
    coupon_service: CouponService = Depends(get_coupon_service)
) -> OrderService:
    """Get order service instance."""
    return OrderService(cart_service, coupon_service)
