"""Pydantic schemas for request/response validation."""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional

from models import DiscountType, OrderStatus


# Members

class SignupRequest(BaseModel):
    """Schema for member signup."""
    email: EmailStr
    user_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=128)


class MemberResponse(BaseModel):
    """Schema for member response."""
    id: int
    email: str
    user_name: str
    role: str


class LoginRequest(BaseModel):
    """Schema for login request."""
    email: EmailStr
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """Schema for issued tokens."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    """Schema for access token renewal."""
    refresh_token: str


# Catalog

class CategoryResponse(BaseModel):
    """Schema for category response."""
    id: int
    name: str
    display_order: int
    parent_id: Optional[int] = None


class ProductCreate(BaseModel):
    """Schema for creating or replacing a product."""
    category_name: str
    product_name: str = Field(min_length=1, max_length=200)
    price: int = Field(ge=0)
    info: Optional[str] = None
    stock: int = Field(ge=0)
    manufacturer: Optional[str] = None
    image_urls: List[str] = []


class ProductResponse(BaseModel):
    """Schema for product response."""
    id: int
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    product_name: str
    price: int
    info: Optional[str] = None
    stock: int
    manufacturer: Optional[str] = None
    image_urls: List[str] = []
    is_deleted: bool
    created_at: datetime


class ProductPageResponse(BaseModel):
    """Schema for a page of products."""
    products: List[ProductResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int


# Carts

class CartCreateRequest(BaseModel):
    """Schema for adding a product to the cart."""
    product_id: int
    quantity: int


class CartUpdateRequest(BaseModel):
    """Schema for changing a cart row quantity."""
    quantity: int


class CartResponse(BaseModel):
    """Schema for a cart row."""
    id: int
    product_id: int
    quantity: int


class CartResponseWrapper(BaseModel):
    """Schema for cart listing response."""
    message: str
    carts: List[CartResponse]


class CartProductResponse(BaseModel):
    """Schema for a cart row with product detail."""
    id: int
    product_id: int
    product_name: str
    price: int
    quantity: int
    stock: int
    image_url: Optional[str] = None


class CartProductResponseWrapper(BaseModel):
    """Schema for cart listing with product detail."""
    message: str
    products: List[CartProductResponse]


class CartCountResponse(BaseModel):
    """Schema for cart item count."""
    count: int


class MessageResponse(BaseModel):
    """Schema for a plain message."""
    message: str


# Orders

class OrderCartRequest(BaseModel):
    """One ordered item, keyed by product id."""
    product_id: int
    discounted_total_price: int = Field(ge=0)
    coupon_member_id: Optional[int] = None


class OrderRequest(BaseModel):
    """Schema for order creation."""
    delivery_address: str = Field(min_length=1, max_length=255)
    delivery_receiver: str = Field(min_length=1, max_length=100)
    delivery_phone: str = Field(min_length=1, max_length=30)
    delivery_fee: int = Field(default=0, ge=0)
    order_items: List[OrderCartRequest] = []


class OrderUpdateRequest(BaseModel):
    """Schema for delivery info update."""
    delivery_address: str = Field(min_length=1, max_length=255)
    delivery_receiver: str = Field(min_length=1, max_length=100)
    delivery_phone: str = Field(min_length=1, max_length=30)


class OrderProductResponse(BaseModel):
    """Schema for an order line."""
    id: int
    product_id: Optional[int] = None
    order_product_name: str
    order_product_price: int
    count: int
    discounted_price: int
    coupon_member_id: Optional[int] = None


class OrderDetailResponse(BaseModel):
    """Schema for order detail."""
    id: int
    delivery_address: str
    delivery_receiver: str
    delivery_phone: str
    delivery_fee: int
    order_status: OrderStatus
    total_price: int
    created_at: datetime
    order_products: List[OrderProductResponse]


class OrderUserResponse(BaseModel):
    """Schema for an order in the member's order list."""
    id: int
    order_status: OrderStatus
    total_price: int
    delivery_fee: int
    created_at: datetime
    order_products: List[OrderProductResponse]


class OrderUserResponseWrapper(BaseModel):
    """Schema for a page of the member's orders."""
    orders: List[OrderUserResponse]
    total_pages: int


# Coupons

class CouponCreate(BaseModel):
    """Schema for creating a coupon."""
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=50)
    discount_type: DiscountType = DiscountType.AMOUNT
    discount_value: int = Field(gt=0)
    min_value: int = Field(default=0, ge=0)
    expired_at: Optional[datetime] = None


class CouponResponse(BaseModel):
    """Schema for coupon response."""
    id: int
    name: str
    code: str
    discount_type: DiscountType
    discount_value: int
    min_value: int
    expired_at: Optional[datetime] = None
    active: bool


class CouponIssueRequest(BaseModel):
    """Schema for claiming a coupon by code."""
    code: str


class CouponMemberResponse(BaseModel):
    """Schema for a member's coupon grant."""
    id: int
    coupon: CouponResponse
    used: bool
    used_at: Optional[datetime] = None
