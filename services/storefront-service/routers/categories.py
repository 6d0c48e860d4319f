"""Categories API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from dependencies import get_category_service
from mappers import to_category_response
from schemas import CategoryResponse
from services.category_service import CategoryService

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=List[CategoryResponse])
def get_all_categories(
    db: Session = Depends(get_db),
    category_service: CategoryService = Depends(get_category_service)
):
    return [to_category_response(c) for c in category_service.get_all_categories(db)]


@router.get("/parents", response_model=List[CategoryResponse])
def get_parent_categories(
    db: Session = Depends(get_db),
    category_service: CategoryService = Depends(get_category_service)
):
    return [to_category_response(c) for c in category_service.get_parent_categories(db)]


@router.get("/{parent_id}/children", response_model=List[CategoryResponse])
def get_child_categories(
    parent_id: int,
    db: Session = Depends(get_db),
    category_service: CategoryService = Depends(get_category_service)
):
    return [to_category_response(c) for c in category_service.get_child_categories(db, parent_id)]


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category_by_id(
    category_id: int,
    db: Session = Depends(get_db),
    category_service: CategoryService = Depends(get_category_service)
):
    return to_category_response(category_service.get_category_by_id(db, category_id))
