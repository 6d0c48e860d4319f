"""
Pytest configuration and shared fixtures for storefront tests.

Provides an in-memory SQLite database, a dict-backed Redis double, a FastAPI
test client and factories for members, products, coupons and cart rows.
"""
import os

# Must be set before any service module reads config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OTEL_ENABLED"] = "false"
os.environ["PROFILING_ENABLED"] = "false"
os.environ["SEED_DATA"] = "false"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-pytest-only")

from datetime import datetime, timedelta
from functools import lru_cache
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from database import SessionLocal, engine, get_db
from dependencies import get_redis_client
from main import app
from models import (
    Base,
    Cart,
    Category,
    Coupon,
    CouponMember,
    DiscountType,
    Member,
    MemberRole,
    Product,
)
from security import create_access_token, hash_password
from services.cart_service import CartService
from services.coupon_service import CouponService
from services.order_service import OrderService


class FakeRedis:
    """In-memory stand-in for the few Redis commands the cart cache uses."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = str(value)

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh schema and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture(scope="function")
def test_client(db_session: Session, fake_redis: FakeRedis) -> Generator[TestClient, None, None]:
    """
    FastAPI test client sharing the test's database session.

    The lifespan is not run, so no seed data or real Redis connection is used.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: fake_redis

    yield TestClient(app)

    app.dependency_overrides.clear()


# ── Service Fixtures ─────────────────────────────────────────────────


@pytest.fixture
def cart_service(fake_redis: FakeRedis) -> CartService:
    return CartService(fake_redis)


@pytest.fixture
def coupon_service() -> CouponService:
    return CouponService()


@pytest.fixture
def order_service(cart_service: CartService, coupon_service: CouponService) -> OrderService:
    return OrderService(cart_service, coupon_service)


# ── Test Data Fixtures ────────────────────────────────────────────────


DEFAULT_PASSWORD = "password123"


@lru_cache(maxsize=1)
def _default_password_hash() -> str:
    return hash_password(DEFAULT_PASSWORD)


@pytest.fixture
def make_member(db_session: Session):
    """Factory for committed members."""
    counter = {"n": 0}

    def _make(email=None, role=MemberRole.USER, password=DEFAULT_PASSWORD):
        counter["n"] += 1
        if password == DEFAULT_PASSWORD:
            password_hash = _default_password_hash()
        else:
            password_hash = hash_password(password)
        member = Member(
            email=email or f"member{counter['n']}@example.com",
            user_name=f"member{counter['n']}",
            password_hash=password_hash,
            role=role,
        )
        db_session.add(member)
        db_session.commit()
        return member

    return _make


@pytest.fixture
def member(make_member) -> Member:
    return make_member()


@pytest.fixture
def other_member(make_member) -> Member:
    return make_member()


@pytest.fixture
def admin(make_member) -> Member:
    return make_member(email="admin@example.com", role=MemberRole.ADMIN)


@pytest.fixture
def category(db_session: Session) -> Category:
    category = Category(name="Equipment", display_order=1)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def make_product(db_session: Session, category: Category):
    """Factory for committed products."""
    counter = {"n": 0}

    def _make(name=None, price=10000, stock=5, is_deleted=False, **kwargs):
        counter["n"] += 1
        product = Product(
            category_id=category.id,
            product_name=name or f"Product {counter['n']}",
            price=price,
            stock=stock,
            is_deleted=is_deleted,
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_cart(db_session: Session):
    """Factory for cart rows inserted directly, bypassing quantity checks."""

    def _make(member: Member, product: Product, quantity: int):
        cart = Cart(member_id=member.id, product_id=product.id, quantity=quantity)
        db_session.add(cart)
        db_session.commit()
        return cart

    return _make


@pytest.fixture
def make_coupon(db_session: Session):
    """Factory for coupon definitions."""
    counter = {"n": 0}

    def _make(code=None, expired=False, active=True, discount_value=1000):
        counter["n"] += 1
        delta = timedelta(days=-1) if expired else timedelta(days=30)
        coupon = Coupon(
            name=f"Coupon {counter['n']}",
            code=code or f"CODE{counter['n']}",
            discount_type=DiscountType.AMOUNT,
            discount_value=discount_value,
            min_value=0,
            expired_at=datetime.utcnow() + delta,
            active=active,
        )
        db_session.add(coupon)
        db_session.commit()
        return coupon

    return _make


@pytest.fixture
def make_grant(db_session: Session, make_coupon):
    """Factory for coupon grants issued to a member."""

    def _make(member: Member, used=False, **coupon_kwargs):
        coupon = make_coupon(**coupon_kwargs)
        grant = CouponMember(coupon_id=coupon.id, member_id=member.id, used=used)
        db_session.add(grant)
        db_session.commit()
        return grant

    return _make


@pytest.fixture
def auth_headers():
    """Build bearer headers for a member."""

    def _headers(member: Member):
        token = create_access_token(member.id, member.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers
