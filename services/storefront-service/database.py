"""Database connection, session and transaction management."""
from contextlib import contextmanager
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator, Iterator
import logging

from config import DATABASE_URL, SEED_DATA
from models import Base, Category, Coupon, DiscountType, Member, MemberRole, Product
from security import hash_password

logger = logging.getLogger(__name__)

if DATABASE_URL.startswith("sqlite"):
    # Single shared connection so an in-memory database survives across sessions
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_timeout=30,
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block of reads and writes as one unit of work.

    Commits when the block exits normally. On any exception the session is
    rolled back and the exception propagates to the caller.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db() -> None:
    """Initialize database tables and seed data."""
    Base.metadata.create_all(bind=engine)

    if not SEED_DATA:
        return

    db = SessionLocal()
    try:
        if db.query(Category).count() == 0:
            seed_catalog(db)
            logger.info("Seeded database with sample catalog")
    finally:
        db.close()


def seed_catalog(db: Session) -> None:
    """Insert demo categories, products, an admin account and a welcome coupon."""
    with transaction(db):
        apparel = Category(name="Apparel", display_order=1)
        equipment = Category(name="Equipment", display_order=2)
        db.add_all([apparel, equipment])
        db.flush()

        tops = Category(name="Tops", display_order=1, parent_id=apparel.id)
        weights = Category(name="Weights", display_order=1, parent_id=equipment.id)
        mats = Category(name="Mats", display_order=2, parent_id=equipment.id)
        db.add_all([tops, weights, mats])
        db.flush()

        db.add_all([
            Product(category_id=tops.id, product_name="Training T-Shirt", price=19000, stock=120,
                    manufacturer="FitWear", info="Breathable training tee"),
            Product(category_id=tops.id, product_name="Running Hoodie", price=49000, stock=40,
                    manufacturer="FitWear", info="Light hoodie for cold mornings"),
            Product(category_id=weights.id, product_name="Dumbbell 5kg", price=35000, stock=60,
                    manufacturer="IronWorks", info="Rubber coated dumbbell"),
            Product(category_id=weights.id, product_name="Kettlebell 12kg", price=59000, stock=25,
                    manufacturer="IronWorks", info="Cast iron kettlebell"),
            Product(category_id=mats.id, product_name="Yoga Mat", price=29000, stock=80,
                    manufacturer="FlexHome", info="6mm non-slip mat"),
        ])

        db.add(Member(
            email="admin@storefront.local",
            user_name="admin",
            password_hash=hash_password("admin123"),
            role=MemberRole.ADMIN,
        ))
        db.add(Coupon(
            name="Welcome 3000",
            code="WELCOME3000",
            discount_type=DiscountType.AMOUNT,
            discount_value=3000,
            min_value=10000,
            expired_at=datetime.utcnow() + timedelta(days=365),
        ))
