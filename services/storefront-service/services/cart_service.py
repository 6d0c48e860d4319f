"""Cart management service."""
import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
import redis
from opentelemetry import trace

from config import CART_COUNT_TTL_SECONDS, CART_MAX_QUANTITY, CART_MIN_QUANTITY
from database import transaction
from errors import ErrorCode, StorefrontError
from models import Cart, Member, Product
from monitoring import cart_additions_counter

logger = logging.getLogger(__name__)


def check_quantity(quantity: int, product: Product) -> None:
    """
    Validate a cart quantity against the allowed range and product stock.

    Raises:
        StorefrontError: CART_OUT_OF_RANGE outside 1..20, OUT_OF_STOCK if the
            product cannot cover the quantity
    """
    if quantity < CART_MIN_QUANTITY or quantity > CART_MAX_QUANTITY:
        raise StorefrontError(ErrorCode.CART_OUT_OF_RANGE)

    if product.stock < quantity:
        raise StorefrontError(ErrorCode.OUT_OF_STOCK)


class CartService:
    """Service for managing shopping carts."""

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize cart service.

        Args:
            redis_client: Redis client for caching cart item counts
        """
        self.redis_client = redis_client
        self.tracer = trace.get_tracer(__name__)

    def find_all_carts(self, db: Session, member_id: int) -> List[Cart]:
        """
        Get the member's cart rows in insertion order.

        Args:
            db: Database session
            member_id: Authenticated member id

        Returns:
            List of cart rows
        """
        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "carts")
            db_span.set_attribute("member.id", member_id)

            carts = (
                db.query(Cart)
                .options(joinedload(Cart.product))
                .filter(Cart.member_id == member_id)
                .order_by(Cart.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(carts))

        return carts

    def create_cart(self, db: Session, member_id: int, product_id: int, quantity: int) -> Cart:
        """
        Add a product to the cart, merging into an existing row for it.

        Args:
            db: Database session
            member_id: Authenticated member id
            product_id: Product identifier
            quantity: Quantity to add

        Returns:
            The created or merged cart row

        Raises:
            StorefrontError: PRODUCT_NOT_FOUND, USER_NOT_FOUND,
                CART_OUT_OF_RANGE or OUT_OF_STOCK; CART_NOT_FOUND if a
                conflicting row vanished before the retried merge
        """
        span = trace.get_current_span()
        span.set_attribute("product.id", product_id)
        span.set_attribute("quantity", quantity)

        try:
            with transaction(db):
                product = self._get_product(db, product_id)
                check_quantity(quantity, product)

                cart = self._find_member_cart(db, member_id, product_id)
                if cart is not None:
                    self._merge_quantity(cart, product, quantity)
                else:
                    member = db.query(Member).filter(Member.id == member_id).first()
                    if member is None:
                        raise StorefrontError(ErrorCode.USER_NOT_FOUND)

                    with self.tracer.start_as_current_span("db.query.insert_cart_item") as db_span:
                        db_span.set_attribute("db.operation", "INSERT")
                        db_span.set_attribute("db.table", "carts")
                        db_span.set_attribute("member.id", member_id)

                        cart = Cart(member_id=member.id, product_id=product.id, quantity=quantity)
                        db.add(cart)
        except IntegrityError:
            # A concurrent request inserted the row first; merge into it instead
            logger.warning("Cart insert conflicted, merging into existing row", extra={
                "member_id": member_id,
                "product_id": product_id,
            })
            with transaction(db):
                product = self._get_product(db, product_id)
                cart = self._find_member_cart(db, member_id, product_id)
                if cart is None:
                    raise StorefrontError(ErrorCode.CART_NOT_FOUND)
                self._merge_quantity(cart, product, quantity)

        self.refresh_cart_count(db, member_id)

        cart_additions_counter.add(1, {"product_id": str(product_id)})
        logger.info("Added product to cart", extra={
            "member_id": member_id,
            "product_id": product_id,
            "cart_id": cart.id,
            "quantity": cart.quantity,
        })
        return cart

    def update_cart(self, db: Session, member_id: int, cart_id: int, quantity: int) -> Cart:
        """
        Change the quantity of one of the member's cart rows.

        Raises:
            StorefrontError: CART_NOT_FOUND, USER_NOT_AUTHORIZED,
                CART_OUT_OF_RANGE or OUT_OF_STOCK
        """
        with transaction(db):
            cart = self._get_owned_cart(db, member_id, cart_id)
            check_quantity(quantity, cart.product)

            if cart.quantity != quantity:
                cart.quantity = quantity

        logger.info("Updated cart quantity", extra={
            "member_id": member_id,
            "cart_id": cart_id,
            "quantity": quantity,
        })
        return cart

    def delete_cart(self, db: Session, member_id: int, cart_id: int) -> None:
        """
        Delete one of the member's cart rows.

        Raises:
            StorefrontError: CART_NOT_FOUND or USER_NOT_AUTHORIZED
        """
        with transaction(db):
            cart = self._get_owned_cart(db, member_id, cart_id)
            db.delete(cart)

        self.refresh_cart_count(db, member_id)
        logger.info("Deleted cart item", extra={"member_id": member_id, "cart_id": cart_id})

    def clear_cart(self, db: Session, member_id: int) -> int:
        """
        Delete every cart row of the member.

        Returns:
            Number of rows deleted
        """
        with transaction(db):
            with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
                db_span.set_attribute("db.operation", "DELETE")
                db_span.set_attribute("db.table", "carts")
                db_span.set_attribute("member.id", member_id)

                carts = db.query(Cart).filter(Cart.member_id == member_id).all()
                for cart in carts:
                    db.delete(cart)

                db_span.set_attribute("db.rows_affected", len(carts))

        self.refresh_cart_count(db, member_id)
        logger.info("Cleared cart", extra={"member_id": member_id, "deleted": len(carts)})
        return len(carts)

    def get_cart_products(self, db: Session, member_id: int) -> List[Cart]:
        """Get the member's cart rows with their products loaded."""
        return self.find_all_carts(db, member_id)

    def count_cart_items(self, db: Session, member_id: int) -> int:
        """
        Get the number of rows in the member's cart.

        Served from Redis when cached, otherwise counted and cached.
        """
        cache_key = self._cache_key(member_id)
        cached = None
        with self.tracer.start_as_current_span("cache.get") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.key", cache_key)
            try:
                cached = self.redis_client.get(cache_key)
            except redis.RedisError as e:
                logger.warning("Cart count cache read failed", extra={
                    "member_id": member_id,
                    "error": str(e),
                })
            cache_span.set_attribute("cache.hit", cached is not None)

        if cached is not None:
            return int(cached)

        count = self._count_from_db(db, member_id)
        self._store_count(member_id, count)
        return count

    def refresh_cart_count(self, db: Session, member_id: int) -> None:
        """Recount the member's cart rows and update the cache."""
        self._store_count(member_id, self._count_from_db(db, member_id))

    def _count_from_db(self, db: Session, member_id: int) -> int:
        return db.query(Cart).filter(Cart.member_id == member_id).count()

    def _store_count(self, member_id: int, count: int) -> None:
        cache_key = self._cache_key(member_id)
        with self.tracer.start_as_current_span("cache.setex") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.key", cache_key)
            cache_span.set_attribute("cache.ttl", CART_COUNT_TTL_SECONDS)
            try:
                self.redis_client.setex(cache_key, CART_COUNT_TTL_SECONDS, count)
            except redis.RedisError as e:
                logger.warning("Cart count cache write failed", extra={
                    "member_id": member_id,
                    "error": str(e),
                })

    @staticmethod
    def _cache_key(member_id: int) -> str:
        return f"cart:count:{member_id}"

    def _get_product(self, db: Session, product_id: int) -> Product:
        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(
                Product.id == product_id,
                Product.is_deleted.is_(False)
            ).first()

            db_span.set_attribute("db.rows_returned", 1 if product else 0)

        if product is None:
            raise StorefrontError(ErrorCode.PRODUCT_NOT_FOUND)
        return product

    @staticmethod
    def _merge_quantity(cart: Cart, product: Product, quantity: int) -> None:
        merged = cart.quantity + quantity
        check_quantity(merged, product)
        cart.quantity = merged

    def _find_member_cart(self, db: Session, member_id: int, product_id: int) -> Optional[Cart]:
        return db.query(Cart).filter(
            Cart.member_id == member_id,
            Cart.product_id == product_id
        ).first()

    def _get_owned_cart(self, db: Session, member_id: int, cart_id: int) -> Cart:
        cart = db.query(Cart).filter(Cart.id == cart_id).first()
        if cart is None:
            raise StorefrontError(ErrorCode.CART_NOT_FOUND)

        if cart.member_id != member_id:
            logger.warning("Cart access by non-owner", extra={
                "member_id": member_id,
                "cart_id": cart_id,
            })
            raise StorefrontError(ErrorCode.USER_NOT_AUTHORIZED)
        return cart
