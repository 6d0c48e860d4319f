"""Database models for the storefront service."""
import enum
from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class MemberRole(str, enum.Enum):
    USER = "ROLE_USER"
    ADMIN = "ROLE_ADMIN"


class OrderStatus(str, enum.Enum):
    ORDERED = "ORDERED"
    SHIPPING = "SHIPPING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DiscountType(str, enum.Enum):
    AMOUNT = "AMOUNT"
    PERCENT = "PERCENT"


class Member(Base):
    """Member model."""
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    user_name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(MemberRole), default=MemberRole.USER, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class RefreshToken(Base):
    """Latest refresh token issued to a member."""
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey("members.id"), unique=True, nullable=False)
    token = Column(String(512), nullable=False)


class Category(Base):
    """Category model."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)

    parent = relationship("Category", remote_side=[id], backref="children")


class Product(Base):
    """Product model."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    product_name = Column(String(200), index=True, nullable=False)
    price = Column(Integer, nullable=False)
    info = Column(Text)
    stock = Column(Integer, default=0, nullable=False)
    manufacturer = Column(String(100))
    image_urls = Column(JSON, default=list)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category")


class Cart(Base):
    """Cart row: one product a member intends to order."""
    __tablename__ = "carts"
    __table_args__ = (UniqueConstraint("member_id", "product_id", name="uq_cart_member_product"),)

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    member = relationship("Member")
    product = relationship("Product")


class Coupon(Base):
    """Coupon definition."""
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, index=True, nullable=False)
    discount_type = Column(Enum(DiscountType), default=DiscountType.AMOUNT, nullable=False)
    discount_value = Column(Integer, nullable=False)
    min_value = Column(Integer, default=0, nullable=False)
    expired_at = Column(DateTime, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class CouponMember(Base):
    """Coupon grant owned by a single member."""
    __tablename__ = "coupon_members"
    __table_args__ = (UniqueConstraint("coupon_id", "member_id", name="uq_coupon_member"),)

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False)
    member_id = Column(Integer, ForeignKey("members.id"), index=True, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    coupon = relationship("Coupon")
    member = relationship("Member")


class Order(Base):
    """Order model."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), index=True, nullable=False)
    delivery_address = Column(String(255), nullable=False)
    delivery_receiver = Column(String(100), nullable=False)
    delivery_phone = Column(String(30), nullable=False)
    delivery_fee = Column(Integer, default=0, nullable=False)
    order_status = Column(Enum(OrderStatus), default=OrderStatus.ORDERED, nullable=False)
    total_price = Column(Integer, default=0, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = relationship("Member")
    order_products = relationship(
        "OrderProduct",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderProduct.id",
    )

    def add_order_product(self, order_product: "OrderProduct") -> None:
        """Attach a line and accumulate its discounted total."""
        self.order_products.append(order_product)
        self.total_price = (self.total_price or 0) + order_product.discounted_price

    def update_delivery_info(self, address: str, receiver: str, phone: str) -> None:
        self.delivery_address = address
        self.delivery_receiver = receiver
        self.delivery_phone = phone

    def cancel(self) -> None:
        self.order_status = OrderStatus.CANCELLED


class OrderProduct(Base):
    """Order line: product snapshot at order time."""
    __tablename__ = "order_products"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    order_product_name = Column(String(200), nullable=False)
    order_product_price = Column(Integer, nullable=False)
    count = Column(Integer, nullable=False)
    coupon_member_id = Column(Integer, ForeignKey("coupon_members.id"), unique=True, nullable=True)
    discounted_price = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="order_products")
    product = relationship("Product")
    coupon_member = relationship("CouponMember")
