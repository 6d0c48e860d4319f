"""Order management service."""
import logging
import math
from typing import List, Tuple
from sqlalchemy.orm import Session, selectinload
from opentelemetry import trace

from config import ORDER_PAGE_SIZE
from database import transaction
from errors import ErrorCode, StorefrontError
from models import Cart, Member, Order, OrderProduct, OrderStatus
from monitoring import (
    order_amount_histogram,
    order_failures_counter,
    orders_cancelled_counter,
    orders_created_counter,
)
from schemas import OrderRequest, OrderUpdateRequest
from services.cart_service import CartService
from services.coupon_service import CouponService

logger = logging.getLogger(__name__)


class OrderService:
    """Service for placing and managing orders."""

    def __init__(self, cart_service: CartService, coupon_service: CouponService):
        """
        Initialize order service.

        Args:
            cart_service: Cart service instance
            coupon_service: Coupon ledger instance
        """
        self.cart_service = cart_service
        self.coupon_service = coupon_service
        self.tracer = trace.get_tracer(__name__)

    def create_order(self, db: Session, member_id: int, request: OrderRequest) -> Order:
        """
        Turn the member's cart into an order.

        Every cart row becomes an order line matched against the request
        item for the same product. Coupon redemptions, cart row deletions and
        the order insert all commit together or not at all.

        Args:
            db: Database session
            member_id: Authenticated member id
            request: Delivery info and per-product order items

        Returns:
            The persisted order with its lines

        Raises:
            StorefrontError: USER_NOT_AUTHORIZED, CART_EMPTY, OUT_OF_STOCK,
                ORDER_PRODUCT_NOT_FOUND or a coupon error
        """
        span = trace.get_current_span()
        span.set_attribute("member.id", member_id)
        span.set_attribute("order.item_count", len(request.order_items))

        try:
            with self.tracer.start_as_current_span("db.transaction.create_order") as db_span:
                with transaction(db):
                    member = db.query(Member).filter(Member.id == member_id).first()
                    if member is None:
                        raise StorefrontError(ErrorCode.USER_NOT_AUTHORIZED)

                    carts = self.cart_service.find_all_carts(db, member_id)
                    if not carts:
                        raise StorefrontError(ErrorCode.CART_EMPTY)

                    order = Order(
                        member_id=member.id,
                        delivery_address=request.delivery_address,
                        delivery_receiver=request.delivery_receiver,
                        delivery_phone=request.delivery_phone,
                        delivery_fee=request.delivery_fee,
                        order_status=OrderStatus.ORDERED,
                        total_price=0,
                    )

                    for cart in carts:
                        order.add_order_product(self._build_order_product(db, member_id, cart, request))
                        db.delete(cart)

                    db.add(order)
                    db.flush()

                    db_span.set_attribute("order.id", order.id)
                    db_span.set_attribute("order.total_price", order.total_price)
        except StorefrontError as e:
            order_failures_counter.add(1, {"code": e.code.name})
            logger.warning("Order creation rejected", extra={
                "member_id": member_id,
                "code": e.code.name,
            })
            raise

        self.cart_service.refresh_cart_count(db, member_id)

        orders_created_counter.add(1)
        order_amount_histogram.record(order.total_price)
        logger.info("Order created", extra={
            "member_id": member_id,
            "order_id": order.id,
            "total_price": order.total_price,
            "item_count": len(order.order_products),
        })
        return order

    def _build_order_product(
        self,
        db: Session,
        member_id: int,
        cart: Cart,
        request: OrderRequest
    ) -> OrderProduct:
        product = cart.product
        if product.stock < cart.quantity:
            raise StorefrontError(
                ErrorCode.OUT_OF_STOCK,
                f"Not enough stock for {product.product_name}"
            )

        item = next(
            (item for item in request.order_items if item.product_id == product.id),
            None
        )
        if item is None:
            raise StorefrontError(ErrorCode.ORDER_PRODUCT_NOT_FOUND)

        coupon_member = None
        if item.coupon_member_id is not None:
            coupon_member = self.coupon_service.redeem_coupon(db, member_id, item.coupon_member_id)

        return OrderProduct(
            product=product,
            order_product_name=product.product_name,
            order_product_price=product.price,
            count=cart.quantity,
            coupon_member=coupon_member,
            discounted_price=item.discounted_total_price,
        )

    def find_order(self, db: Session, member_id: int, order_id: int) -> Order:
        """
        Get one of the member's orders.

        Raises:
            StorefrontError: ORDER_NOT_FOUND or USER_NOT_AUTHORIZED
        """
        with self.tracer.start_as_current_span("db.query.get_order") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("order.id", order_id)

            order = (
                db.query(Order)
                .options(selectinload(Order.order_products))
                .filter(Order.id == order_id, Order.is_deleted.is_(False))
                .first()
            )

        if order is None:
            raise StorefrontError(ErrorCode.ORDER_NOT_FOUND)

        if order.member_id != member_id:
            logger.warning("Order access by non-owner", extra={
                "member_id": member_id,
                "order_id": order_id,
            })
            raise StorefrontError(ErrorCode.USER_NOT_AUTHORIZED)
        return order

    def find_all_orders(self, db: Session, member_id: int, page: int) -> Tuple[List[Order], int]:
        """
        Get one page of the member's orders, newest first.

        Args:
            db: Database session
            member_id: Authenticated member id
            page: 1-indexed page number

        Returns:
            Orders on the page and the total number of pages
        """
        with self.tracer.start_as_current_span("db.query.get_member_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("member.id", member_id)

            query = db.query(Order).filter(
                Order.member_id == member_id,
                Order.is_deleted.is_(False)
            )
            total = query.count()
            orders = (
                query.options(selectinload(Order.order_products))
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset((page - 1) * ORDER_PAGE_SIZE)
                .limit(ORDER_PAGE_SIZE)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(orders))

        return orders, math.ceil(total / ORDER_PAGE_SIZE)

    def find_order_create_data(self, db: Session, member_id: int) -> List[Cart]:
        """Get the cart products shown on the checkout page."""
        return self.cart_service.get_cart_products(db, member_id)

    def update_order(
        self,
        db: Session,
        member_id: int,
        order_id: int,
        request: OrderUpdateRequest
    ) -> Order:
        """
        Change the delivery info of an order that has not shipped.

        Raises:
            StorefrontError: ORDER_NOT_FOUND, USER_NOT_AUTHORIZED or
                ORDER_MODIFICATION_NOT_ALLOWED
        """
        with transaction(db):
            order = self._get_modifiable_order(db, member_id, order_id)
            order.update_delivery_info(
                request.delivery_address,
                request.delivery_receiver,
                request.delivery_phone,
            )

        logger.info("Order delivery info updated", extra={
            "member_id": member_id,
            "order_id": order_id,
        })
        return order

    def cancel_order(self, db: Session, member_id: int, order_id: int) -> Order:
        """
        Cancel an order that has not shipped.

        Stock, coupon grants and cart rows are left as they are.

        Raises:
            StorefrontError: ORDER_NOT_FOUND, USER_NOT_AUTHORIZED or
                ORDER_MODIFICATION_NOT_ALLOWED
        """
        with transaction(db):
            order = self._get_modifiable_order(db, member_id, order_id)
            order.cancel()

        orders_cancelled_counter.add(1)
        logger.info("Order cancelled", extra={"member_id": member_id, "order_id": order_id})
        return order

    def _get_modifiable_order(self, db: Session, member_id: int, order_id: int) -> Order:
        order = self.find_order(db, member_id, order_id)
        if order.order_status != OrderStatus.ORDERED:
            raise StorefrontError(ErrorCode.ORDER_MODIFICATION_NOT_ALLOWED)
        return order
