"""Coupon ledger service."""
import logging
from datetime import datetime, timezone
from typing import List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from opentelemetry import trace

from database import transaction
from errors import ErrorCode, StorefrontError
from models import Coupon, CouponMember, Member
from monitoring import coupon_redemptions_counter
from schemas import CouponCreate

logger = logging.getLogger(__name__)


class CouponService:
    """Service for coupons and the coupon grants issued to members."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def find_coupon_member(self, db: Session, coupon_member_id: int) -> CouponMember:
        """
        Look up a coupon grant.

        Raises:
            StorefrontError: COUPON_NOT_FOUND
        """
        coupon_member = (
            db.query(CouponMember)
            .options(joinedload(CouponMember.coupon))
            .filter(CouponMember.id == coupon_member_id)
            .first()
        )
        if coupon_member is None:
            raise StorefrontError(ErrorCode.COUPON_NOT_FOUND)
        return coupon_member

    def redeem_coupon(self, db: Session, member_id: int, coupon_member_id: int) -> CouponMember:
        """
        Mark a coupon grant as used.

        Runs inside the caller's transaction and never commits. The update is
        guarded on ``used = false`` so a grant redeemed by a concurrent
        transaction matches no row and is rejected here.

        Args:
            db: Database session with an open transaction
            member_id: Member redeeming the grant
            coupon_member_id: Coupon grant identifier

        Returns:
            The redeemed grant

        Raises:
            StorefrontError: COUPON_NOT_FOUND, USER_NOT_AUTHORIZED,
                COUPON_EXPIRED or COUPON_ALREADY_USED
        """
        coupon_member = self.find_coupon_member(db, coupon_member_id)

        if coupon_member.member_id != member_id:
            logger.warning("Coupon redemption by non-owner", extra={
                "member_id": member_id,
                "coupon_member_id": coupon_member_id,
            })
            raise StorefrontError(ErrorCode.USER_NOT_AUTHORIZED)

        now = datetime.utcnow()
        coupon = coupon_member.coupon
        if not coupon.active or (coupon.expired_at is not None and coupon.expired_at < now):
            raise StorefrontError(ErrorCode.COUPON_EXPIRED)

        if coupon_member.used:
            raise StorefrontError(ErrorCode.COUPON_ALREADY_USED)

        with self.tracer.start_as_current_span("db.query.redeem_coupon") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "coupon_members")
            db_span.set_attribute("coupon_member.id", coupon_member_id)

            updated = (
                db.query(CouponMember)
                .filter(CouponMember.id == coupon_member_id, CouponMember.used.is_(False))
                .update(
                    {CouponMember.used: True, CouponMember.used_at: now},
                    synchronize_session="fetch",
                )
            )

            db_span.set_attribute("db.rows_affected", updated)

        if updated != 1:
            raise StorefrontError(ErrorCode.COUPON_ALREADY_USED)

        coupon_redemptions_counter.add(1, {"coupon_id": str(coupon.id)})
        logger.info("Redeemed coupon", extra={
            "member_id": member_id,
            "coupon_member_id": coupon_member_id,
            "coupon_code": coupon.code,
        })
        return coupon_member

    def find_member_coupons(
        self,
        db: Session,
        member_id: int,
        include_used: bool = False
    ) -> List[CouponMember]:
        """List the coupon grants of a member, newest first."""
        query = (
            db.query(CouponMember)
            .options(joinedload(CouponMember.coupon))
            .filter(CouponMember.member_id == member_id)
        )
        if not include_used:
            query = query.filter(CouponMember.used.is_(False))
        return query.order_by(CouponMember.id.desc()).all()

    def issue_coupon(self, db: Session, member_id: int, code: str) -> CouponMember:
        """
        Grant the coupon with the given code to a member.

        Raises:
            StorefrontError: USER_NOT_FOUND, COUPON_NOT_FOUND, COUPON_EXPIRED
                or COUPON_ALREADY_ISSUED
        """
        try:
            with transaction(db):
                member = db.query(Member).filter(Member.id == member_id).first()
                if member is None:
                    raise StorefrontError(ErrorCode.USER_NOT_FOUND)

                coupon = db.query(Coupon).filter(Coupon.code == code).first()
                if coupon is None:
                    raise StorefrontError(ErrorCode.COUPON_NOT_FOUND)

                if not coupon.active or (
                    coupon.expired_at is not None and coupon.expired_at < datetime.utcnow()
                ):
                    raise StorefrontError(ErrorCode.COUPON_EXPIRED)

                existing = db.query(CouponMember).filter(
                    CouponMember.coupon_id == coupon.id,
                    CouponMember.member_id == member_id
                ).first()
                if existing is not None:
                    raise StorefrontError(ErrorCode.COUPON_ALREADY_ISSUED)

                coupon_member = CouponMember(coupon_id=coupon.id, member_id=member_id)
                db.add(coupon_member)
                db.flush()
        except IntegrityError:
            # Lost a race against a concurrent claim of the same coupon
            raise StorefrontError(ErrorCode.COUPON_ALREADY_ISSUED)

        logger.info("Issued coupon", extra={
            "member_id": member_id,
            "coupon_code": code,
            "coupon_member_id": coupon_member.id,
        })
        return coupon_member

    def create_coupon(self, db: Session, request: CouponCreate) -> Coupon:
        """
        Create a coupon definition.

        Raises:
            StorefrontError: DUPLICATE_COUPON_CODE
        """
        expired_at = request.expired_at
        if expired_at is not None and expired_at.tzinfo is not None:
            # Stored as naive UTC like every other timestamp
            expired_at = expired_at.astimezone(timezone.utc).replace(tzinfo=None)

        try:
            with transaction(db):
                coupon = Coupon(
                    name=request.name,
                    code=request.code,
                    discount_type=request.discount_type,
                    discount_value=request.discount_value,
                    min_value=request.min_value,
                    expired_at=expired_at,
                )
                db.add(coupon)
        except IntegrityError:
            raise StorefrontError(ErrorCode.DUPLICATE_COUPON_CODE)

        logger.info("Created coupon", extra={"coupon_id": coupon.id, "coupon_code": coupon.code})
        return coupon
