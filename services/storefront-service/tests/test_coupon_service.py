"""
Unit tests for the coupon ledger.

Tests redemption guards, issuing by code and coupon creation.
"""
from datetime import datetime, timedelta, timezone

import pytest

from errors import ErrorCode, StorefrontError
from models import CouponMember
from schemas import CouponCreate


def test_redeem_marks_grant_used(db_session, coupon_service, member, make_grant):
    grant = make_grant(member)

    redeemed = coupon_service.redeem_coupon(db_session, member.id, grant.id)
    db_session.commit()

    assert redeemed.id == grant.id
    db_session.refresh(grant)
    assert grant.used is True
    assert grant.used_at is not None


def test_redeem_does_not_commit(db_session, coupon_service, member, make_grant):
    grant = make_grant(member)

    coupon_service.redeem_coupon(db_session, member.id, grant.id)
    db_session.rollback()

    assert db_session.query(CouponMember).filter(CouponMember.id == grant.id).one().used is False


def test_redeem_twice_in_one_transaction(db_session, coupon_service, member, make_grant):
    grant = make_grant(member)
    coupon_service.redeem_coupon(db_session, member.id, grant.id)

    with pytest.raises(StorefrontError) as exc:
        coupon_service.redeem_coupon(db_session, member.id, grant.id)

    assert exc.value.code == ErrorCode.COUPON_ALREADY_USED


def test_redeem_used_grant(db_session, coupon_service, member, make_grant):
    grant = make_grant(member, used=True)
    with pytest.raises(StorefrontError) as exc:
        coupon_service.redeem_coupon(db_session, member.id, grant.id)
    assert exc.value.code == ErrorCode.COUPON_ALREADY_USED


def test_redeem_other_members_grant(db_session, coupon_service, member, other_member, make_grant):
    grant = make_grant(other_member)
    with pytest.raises(StorefrontError) as exc:
        coupon_service.redeem_coupon(db_session, member.id, grant.id)
    assert exc.value.code == ErrorCode.USER_NOT_AUTHORIZED


@pytest.mark.parametrize("coupon_kwargs", [{"expired": True}, {"active": False}])
def test_redeem_expired_or_inactive(db_session, coupon_service, member, make_grant, coupon_kwargs):
    grant = make_grant(member, **coupon_kwargs)
    with pytest.raises(StorefrontError) as exc:
        coupon_service.redeem_coupon(db_session, member.id, grant.id)
    assert exc.value.code == ErrorCode.COUPON_EXPIRED


def test_redeem_missing_grant(db_session, coupon_service, member):
    with pytest.raises(StorefrontError) as exc:
        coupon_service.redeem_coupon(db_session, member.id, 999)
    assert exc.value.code == ErrorCode.COUPON_NOT_FOUND


def test_issue_coupon_by_code(db_session, coupon_service, member, make_coupon):
    coupon = make_coupon(code="SPRING10")

    grant = coupon_service.issue_coupon(db_session, member.id, "SPRING10")

    assert grant.coupon_id == coupon.id
    assert grant.member_id == member.id
    assert grant.used is False


def test_issue_coupon_twice(db_session, coupon_service, member, make_coupon):
    make_coupon(code="ONCE")
    coupon_service.issue_coupon(db_session, member.id, "ONCE")

    with pytest.raises(StorefrontError) as exc:
        coupon_service.issue_coupon(db_session, member.id, "ONCE")

    assert exc.value.code == ErrorCode.COUPON_ALREADY_ISSUED
    assert db_session.query(CouponMember).count() == 1


def test_issue_unknown_code(db_session, coupon_service, member):
    with pytest.raises(StorefrontError) as exc:
        coupon_service.issue_coupon(db_session, member.id, "NOPE")
    assert exc.value.code == ErrorCode.COUPON_NOT_FOUND


def test_issue_expired_coupon(db_session, coupon_service, member, make_coupon):
    make_coupon(code="OLD", expired=True)
    with pytest.raises(StorefrontError) as exc:
        coupon_service.issue_coupon(db_session, member.id, "OLD")
    assert exc.value.code == ErrorCode.COUPON_EXPIRED


def test_member_coupons_hide_used_by_default(db_session, coupon_service, member, other_member, make_grant):
    unused = make_grant(member)
    used = make_grant(member, used=True)
    make_grant(other_member)

    assert [g.id for g in coupon_service.find_member_coupons(db_session, member.id)] == [unused.id]
    all_grants = coupon_service.find_member_coupons(db_session, member.id, include_used=True)
    assert [g.id for g in all_grants] == [used.id, unused.id]


def test_create_coupon_normalizes_timezone(db_session, coupon_service):
    expires = datetime(2030, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=9)))

    coupon = coupon_service.create_coupon(
        db_session,
        CouponCreate(name="New Year", code="NY2030", discount_value=5000, expired_at=expires),
    )

    assert coupon.id is not None
    assert coupon.active is True
    assert coupon.expired_at == datetime(2030, 1, 1, 0, 0)


def test_create_coupon_duplicate_code(db_session, coupon_service, make_coupon):
    make_coupon(code="DUP")
    with pytest.raises(StorefrontError) as exc:
        coupon_service.create_coupon(
            db_session, CouponCreate(name="Again", code="DUP", discount_value=100)
        )
    assert exc.value.code == ErrorCode.DUPLICATE_COUPON_CODE
