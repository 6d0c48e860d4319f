"""Coupons API router."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from auth import get_current_member_id, require_admin
from database import get_db
from dependencies import get_coupon_service
from mappers import to_coupon_member_response, to_coupon_response
from schemas import CouponCreate, CouponIssueRequest, CouponMemberResponse, CouponResponse
from services.coupon_service import CouponService

router = APIRouter(tags=["coupons"])


@router.get("/api/coupons", response_model=List[CouponMemberResponse])
def find_member_coupons(
    include_used: bool = Query(False, alias="includeUsed"),
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """Get member's coupon grants - requires authentication."""
    grants = coupon_service.find_member_coupons(db, member_id, include_used)
    return [to_coupon_member_response(grant) for grant in grants]


@router.post("/api/coupons/issue", response_model=CouponMemberResponse, status_code=status.HTTP_201_CREATED)
def issue_coupon(
    request: CouponIssueRequest,
    db: Session = Depends(get_db),
    member_id: int = Depends(get_current_member_id),
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """Claim a coupon by code - requires authentication."""
    grant = coupon_service.issue_coupon(db, member_id, request.code)
    return to_coupon_member_response(grant)


@router.post("/api/admin/coupons", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
def create_coupon(
    request: CouponCreate,
    db: Session = Depends(get_db),
    admin_id: int = Depends(require_admin),
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """Create a coupon - requires admin role."""
    return to_coupon_response(coupon_service.create_coupon(db, request))
