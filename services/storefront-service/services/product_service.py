"""Product catalog service."""
import logging
from typing import List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, joinedload
from opentelemetry import trace

from database import transaction
from errors import ErrorCode, StorefrontError
from models import Product
from schemas import ProductCreate
from services.category_service import CategoryService

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": Product.id,
    "price": Product.price,
    "product_name": Product.product_name,
    "created_at": Product.created_at,
}
DEFAULT_SORT_FIELD = "created_at"


class ProductService:
    """Service for browsing and maintaining the product catalog."""

    def __init__(self, category_service: CategoryService):
        self.category_service = category_service
        self.tracer = trace.get_tracer(__name__)

    def get_all_products(
        self,
        db: Session,
        page: int,
        size: int,
        sort_field: str = DEFAULT_SORT_FIELD,
        sort_dir: str = "desc",
        keyword: Optional[str] = None
    ) -> Tuple[List[Product], int]:
        """
        Get a page of non-deleted products.

        Args:
            db: Database session
            page: 0-indexed page number
            size: Page size
            sort_field: One of id, price, product_name, created_at
            sort_dir: asc or desc
            keyword: Optional search over name, info and manufacturer

        Returns:
            Products on the page and the total number of matching products
        """
        query = db.query(Product).filter(Product.is_deleted.is_(False))
        return self._page(query, page, size, sort_field, sort_dir, keyword)

    def get_products_by_category(
        self,
        db: Session,
        category_id: int,
        page: int,
        size: int,
        sort_field: str = DEFAULT_SORT_FIELD,
        sort_dir: str = "desc",
        keyword: Optional[str] = None
    ) -> Tuple[List[Product], int]:
        """
        Get a page of non-deleted products in a category.

        Raises:
            StorefrontError: CATEGORY_NOT_FOUND
        """
        category = self.category_service.get_category_by_id(db, category_id)
        query = db.query(Product).filter(
            Product.is_deleted.is_(False),
            Product.category_id == category.id
        )
        return self._page(query, page, size, sort_field, sort_dir, keyword)

    def _page(
        self,
        query: Query,
        page: int,
        size: int,
        sort_field: str,
        sort_dir: str,
        keyword: Optional[str]
    ) -> Tuple[List[Product], int]:
        if keyword:
            pattern = f"%{keyword}%"
            query = query.filter(or_(
                Product.product_name.ilike(pattern),
                Product.info.ilike(pattern),
                Product.manufacturer.ilike(pattern),
            ))

        column = SORTABLE_FIELDS.get(sort_field, SORTABLE_FIELDS[DEFAULT_SORT_FIELD])
        order = column.asc() if sort_dir.lower() == "asc" else column.desc()

        with self.tracer.start_as_current_span("db.query.get_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            total = query.count()
            products = (
                query.options(joinedload(Product.category))
                .order_by(order, Product.id.asc())
                .offset(page * size)
                .limit(size)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(products))

        return products, total

    def find_product_by_id(self, db: Session, product_id: int) -> Product:
        """
        Get a product by id.

        Raises:
            StorefrontError: PRODUCT_NOT_FOUND
        """
        product = db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise StorefrontError(ErrorCode.PRODUCT_NOT_FOUND)
        return product

    def create_product(self, db: Session, request: ProductCreate) -> Product:
        """
        Add a product to the catalog.

        Raises:
            StorefrontError: CATEGORY_NOT_FOUND
        """
        with transaction(db):
            category = self.category_service.get_category_by_name(db, request.category_name)
            product = Product(
                category_id=category.id,
                product_name=request.product_name,
                price=request.price,
                info=request.info,
                stock=request.stock,
                manufacturer=request.manufacturer,
                image_urls=list(request.image_urls),
            )
            db.add(product)

        logger.info("Created product", extra={"product_id": product.id})
        return product

    def update_product(self, db: Session, product_id: int, request: ProductCreate) -> Product:
        """
        Replace a product's details. An empty image list keeps the current images.

        Raises:
            StorefrontError: PRODUCT_NOT_FOUND or CATEGORY_NOT_FOUND
        """
        with transaction(db):
            product = self.find_product_by_id(db, product_id)
            category = self.category_service.get_category_by_name(db, request.category_name)

            product.category_id = category.id
            product.product_name = request.product_name
            product.price = request.price
            product.info = request.info
            product.stock = request.stock
            product.manufacturer = request.manufacturer
            if request.image_urls:
                product.image_urls = list(request.image_urls)

        logger.info("Updated product", extra={"product_id": product_id})
        return product

    def delete_product(self, db: Session, product_id: int) -> Product:
        """
        Soft delete a product.

        Raises:
            StorefrontError: PRODUCT_NOT_FOUND
        """
        with transaction(db):
            product = self.find_product_by_id(db, product_id)
            product.is_deleted = True

        logger.info("Deleted product", extra={"product_id": product_id})
        return product
