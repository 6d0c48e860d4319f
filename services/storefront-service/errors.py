"""
Business errors raised by the service layer.

Every failure carries an ErrorCode. The exception handler in main.py renders
the code's HTTP status and message.
"""
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Stable error codes with their HTTP status and default message."""

    PRODUCT_NOT_FOUND = (404, "Product not found")
    CATEGORY_NOT_FOUND = (404, "Category not found")
    CART_NOT_FOUND = (404, "Cart item not found")
    CART_EMPTY = (400, "Cart is empty")
    CART_OUT_OF_RANGE = (400, "Cart quantity must be between 1 and 20")
    OUT_OF_STOCK = (400, "Not enough stock for the requested quantity")
    USER_NOT_AUTHORIZED = (403, "User is not authorized")
    USER_NOT_FOUND = (404, "User not found")
    DUPLICATE_EMAIL = (409, "Email is already registered")
    INVALID_CREDENTIALS = (401, "Invalid email or password")
    INVALID_TOKEN = (401, "Invalid or expired token")
    ORDER_NOT_FOUND = (404, "Order not found")
    ORDER_PRODUCT_NOT_FOUND = (400, "Order item does not match the cart")
    ORDER_MODIFICATION_NOT_ALLOWED = (400, "Order can no longer be modified")
    COUPON_NOT_FOUND = (404, "Coupon not found")
    COUPON_ALREADY_USED = (409, "Coupon has already been used")
    COUPON_ALREADY_ISSUED = (409, "Coupon has already been issued to this member")
    COUPON_EXPIRED = (400, "Coupon is expired or inactive")
    DUPLICATE_COUPON_CODE = (409, "Coupon code already exists")

    @property
    def status_code(self) -> int:
        return self.value[0]

    @property
    def default_message(self) -> str:
        return self.value[1]


class StorefrontError(Exception):
    """A business rule violation identified by its ErrorCode."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = code
        self.message = message or code.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.code.status_code

    def __repr__(self) -> str:
        return f"StorefrontError({self.code.name}, {self.message!r})"
