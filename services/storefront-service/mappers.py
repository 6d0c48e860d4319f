"""Conversion from database models to response schemas."""
from typing import List

from models import Cart, Category, Coupon, CouponMember, Member, Order, OrderProduct, Product
from schemas import (
    CartProductResponse,
    CartResponse,
    CategoryResponse,
    CouponMemberResponse,
    CouponResponse,
    MemberResponse,
    OrderDetailResponse,
    OrderProductResponse,
    OrderUserResponse,
    ProductResponse,
)


def to_member_response(member: Member) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        email=member.email,
        user_name=member.user_name,
        role=member.role.value,
    )


def to_category_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        display_order=category.display_order,
        parent_id=category.parent_id,
    )


def to_product_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        category_id=product.category_id,
        category_name=product.category.name if product.category else None,
        product_name=product.product_name,
        price=product.price,
        info=product.info,
        stock=product.stock,
        manufacturer=product.manufacturer,
        image_urls=list(product.image_urls or []),
        is_deleted=product.is_deleted,
        created_at=product.created_at,
    )


def to_cart_response(cart: Cart) -> CartResponse:
    return CartResponse(id=cart.id, product_id=cart.product_id, quantity=cart.quantity)


def to_cart_product_response(cart: Cart) -> CartProductResponse:
    product = cart.product
    image_urls = product.image_urls or []
    return CartProductResponse(
        id=cart.id,
        product_id=product.id,
        product_name=product.product_name,
        price=product.price,
        quantity=cart.quantity,
        stock=product.stock,
        image_url=image_urls[0] if image_urls else None,
    )


def to_order_product_response(order_product: OrderProduct) -> OrderProductResponse:
    return OrderProductResponse(
        id=order_product.id,
        product_id=order_product.product_id,
        order_product_name=order_product.order_product_name,
        order_product_price=order_product.order_product_price,
        count=order_product.count,
        discounted_price=order_product.discounted_price,
        coupon_member_id=order_product.coupon_member_id,
    )


def to_order_detail_response(order: Order) -> OrderDetailResponse:
    return OrderDetailResponse(
        id=order.id,
        delivery_address=order.delivery_address,
        delivery_receiver=order.delivery_receiver,
        delivery_phone=order.delivery_phone,
        delivery_fee=order.delivery_fee,
        order_status=order.order_status,
        total_price=order.total_price,
        created_at=order.created_at,
        order_products=[to_order_product_response(line) for line in order.order_products],
    )


def to_order_user_response(order: Order) -> OrderUserResponse:
    return OrderUserResponse(
        id=order.id,
        order_status=order.order_status,
        total_price=order.total_price,
        delivery_fee=order.delivery_fee,
        created_at=order.created_at,
        order_products=[to_order_product_response(line) for line in order.order_products],
    )


def to_order_user_response_list(orders: List[Order]) -> List[OrderUserResponse]:
    return [to_order_user_response(order) for order in orders]


def to_coupon_response(coupon: Coupon) -> CouponResponse:
    return CouponResponse(
        id=coupon.id,
        name=coupon.name,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        min_value=coupon.min_value,
        expired_at=coupon.expired_at,
        active=coupon.active,
    )


def to_coupon_member_response(coupon_member: CouponMember) -> CouponMemberResponse:
    return CouponMemberResponse(
        id=coupon_member.id,
        coupon=to_coupon_response(coupon_member.coupon),
        used=coupon_member.used,
        used_at=coupon_member.used_at,
    )
