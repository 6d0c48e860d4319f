"""Category lookup service."""
from typing import List
from sqlalchemy.orm import Session

from errors import ErrorCode, StorefrontError
from models import Category


class CategoryService:
    """Read access to the category tree. Deleted categories are hidden."""

    def _visible(self, db: Session):
        return db.query(Category).filter(Category.is_deleted.is_(False))

    def get_all_categories(self, db: Session) -> List[Category]:
        return self._visible(db).order_by(Category.display_order, Category.id).all()

    def get_parent_categories(self, db: Session) -> List[Category]:
        return (
            self._visible(db)
            .filter(Category.parent_id.is_(None))
            .order_by(Category.display_order, Category.id)
            .all()
        )

    def get_child_categories(self, db: Session, parent_id: int) -> List[Category]:
        # Raises CATEGORY_NOT_FOUND for an unknown parent
        self.get_category_by_id(db, parent_id)
        return (
            self._visible(db)
            .filter(Category.parent_id == parent_id)
            .order_by(Category.display_order, Category.id)
            .all()
        )

    def get_category_by_id(self, db: Session, category_id: int) -> Category:
        category = self._visible(db).filter(Category.id == category_id).first()
        if category is None:
            raise StorefrontError(ErrorCode.CATEGORY_NOT_FOUND)
        return category

    def get_category_by_name(self, db: Session, name: str) -> Category:
        category = self._visible(db).filter(Category.name == name).first()
        if category is None:
            raise StorefrontError(ErrorCode.CATEGORY_NOT_FOUND)
        return category
