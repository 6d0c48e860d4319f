"""
Unit tests for order service.

Tests order creation (including all-or-nothing rollback), ownership and
status rules for update/cancel, and pagination.
"""
from datetime import datetime, timedelta

import pytest

from errors import ErrorCode, StorefrontError
from models import Cart, CouponMember, Order, OrderProduct, OrderStatus
from schemas import OrderCartRequest, OrderRequest, OrderUpdateRequest


def _request(*items, fee=3000):
    return OrderRequest(
        delivery_address="12 Market Street",
        delivery_receiver="Kim",
        delivery_phone="010-1234-5678",
        delivery_fee=fee,
        order_items=list(items),
    )


def _item(product, total, coupon_member_id=None):
    return OrderCartRequest(
        product_id=product.id,
        discounted_total_price=total,
        coupon_member_id=coupon_member_id,
    )


def _place_order(db_session, member, **fields):
    order = Order(
        member_id=member.id,
        delivery_address="Somewhere 1",
        delivery_receiver="Lee",
        delivery_phone="010-0000-0000",
        delivery_fee=0,
        order_status=fields.pop("order_status", OrderStatus.ORDERED),
        total_price=0,
        **fields,
    )
    db_session.add(order)
    db_session.commit()
    return order


def test_create_order_single_line(db_session, order_service, member, make_product, make_cart):
    product = make_product(name="Yoga Mat", price=10000, stock=5)
    make_cart(member, product, 2)

    order = order_service.create_order(db_session, member.id, _request(_item(product, 20000)))

    assert order.order_status == OrderStatus.ORDERED
    assert order.delivery_fee == 3000
    assert len(order.order_products) == 1
    line = order.order_products[0]
    assert line.order_product_name == "Yoga Mat"
    assert line.order_product_price == 10000
    assert line.count == 2
    assert line.discounted_price == 20000
    assert line.coupon_member_id is None
    assert order.total_price == 20000
    assert db_session.query(Cart).filter(Cart.member_id == member.id).count() == 0


def test_create_order_does_not_decrement_stock(db_session, order_service, member, make_product, make_cart):
    product = make_product(stock=5)
    make_cart(member, product, 2)

    order_service.create_order(db_session, member.id, _request(_item(product, 20000)))

    db_session.refresh(product)
    assert product.stock == 5


def test_create_order_total_is_sum_of_discounted_lines(
    db_session, order_service, member, make_product, make_cart, make_grant
):
    p1 = make_product(price=10000, stock=10)
    p2 = make_product(price=5000, stock=10)
    make_cart(member, p1, 1)
    make_cart(member, p2, 3)
    grant = make_grant(member)

    order = order_service.create_order(
        db_session,
        member.id,
        _request(_item(p2, 15000), _item(p1, 9000, coupon_member_id=grant.id)),
    )

    assert order.total_price == 24000
    assert sum(line.discounted_price for line in order.order_products) == order.total_price
    by_product = {line.product_id: line for line in order.order_products}
    assert by_product[p1.id].coupon_member_id == grant.id
    db_session.refresh(grant)
    assert grant.used is True
    assert grant.used_at is not None


def test_order_line_keeps_snapshot_after_price_change(
    db_session, order_service, member, make_product, make_cart
):
    product = make_product(name="Kettlebell", price=59000, stock=3)
    make_cart(member, product, 1)
    order = order_service.create_order(db_session, member.id, _request(_item(product, 59000)))

    product.price = 99000
    product.product_name = "Kettlebell v2"
    db_session.commit()

    line = order_service.find_order(db_session, member.id, order.id).order_products[0]
    assert line.order_product_price == 59000
    assert line.order_product_name == "Kettlebell"


def test_create_order_unknown_member(db_session, order_service):
    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(db_session, 999, _request())
    assert exc.value.code == ErrorCode.USER_NOT_AUTHORIZED


def test_create_order_empty_cart(db_session, order_service, member):
    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(db_session, member.id, _request())
    assert exc.value.code == ErrorCode.CART_EMPTY
    assert db_session.query(Order).count() == 0


def test_create_order_out_of_stock_leaves_cart(db_session, order_service, member, make_product, make_cart):
    product = make_product(stock=5)
    make_cart(member, product, 10)

    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(db_session, member.id, _request(_item(product, 100000)))

    assert exc.value.code == ErrorCode.OUT_OF_STOCK
    assert db_session.query(Order).count() == 0
    assert db_session.query(Cart).filter(Cart.member_id == member.id).one().quantity == 10


def test_create_order_missing_request_item(db_session, order_service, member, make_product, make_cart):
    p1 = make_product()
    p2 = make_product()
    make_cart(member, p1, 1)
    make_cart(member, p2, 1)

    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(db_session, member.id, _request(_item(p1, 10000)))

    assert exc.value.code == ErrorCode.ORDER_PRODUCT_NOT_FOUND
    assert db_session.query(Cart).count() == 2


def test_create_order_missing_coupon(db_session, order_service, member, make_product, make_cart):
    product = make_product()
    make_cart(member, product, 1)

    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(
            db_session, member.id, _request(_item(product, 9000, coupon_member_id=404))
        )

    assert exc.value.code == ErrorCode.COUPON_NOT_FOUND
    assert db_session.query(Order).count() == 0


def test_create_order_rolls_back_everything_on_late_failure(
    db_session, order_service, member, make_product, make_cart, make_grant
):
    """A failure on the second line undoes the first line's coupon and cart delete."""
    first = make_product(stock=10)
    second = make_product(stock=5)
    make_cart(member, first, 1)
    make_cart(member, second, 10)
    grant = make_grant(member)

    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(
            db_session,
            member.id,
            _request(_item(first, 9000, coupon_member_id=grant.id), _item(second, 50000)),
        )

    assert exc.value.code == ErrorCode.OUT_OF_STOCK
    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderProduct).count() == 0
    assert db_session.query(Cart).filter(Cart.member_id == member.id).count() == 2
    assert db_session.query(CouponMember).filter(CouponMember.id == grant.id).one().used is False


def test_coupon_cannot_back_two_orders(
    db_session, order_service, member, make_product, make_cart, make_grant
):
    product = make_product(stock=10)
    grant = make_grant(member)

    make_cart(member, product, 1)
    first = order_service.create_order(
        db_session, member.id, _request(_item(product, 9000, coupon_member_id=grant.id))
    )

    make_cart(member, product, 1)
    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(
            db_session, member.id, _request(_item(product, 9000, coupon_member_id=grant.id))
        )

    assert exc.value.code == ErrorCode.COUPON_ALREADY_USED
    assert db_session.query(Order).count() == 1
    assert db_session.query(Cart).filter(Cart.member_id == member.id).count() == 1
    reloaded = order_service.find_order(db_session, member.id, first.id)
    assert reloaded.order_products[0].coupon_member_id == grant.id


def test_create_order_with_foreign_coupon(
    db_session, order_service, member, other_member, make_product, make_cart, make_grant
):
    product = make_product()
    make_cart(member, product, 1)
    grant = make_grant(other_member)

    with pytest.raises(StorefrontError) as exc:
        order_service.create_order(
            db_session, member.id, _request(_item(product, 9000, coupon_member_id=grant.id))
        )

    assert exc.value.code == ErrorCode.USER_NOT_AUTHORIZED


def test_create_order_refreshes_cart_count(
    db_session, order_service, fake_redis, member, make_product, make_cart
):
    product = make_product()
    make_cart(member, product, 1)
    fake_redis.setex(f"cart:count:{member.id}", 3600, 1)

    order_service.create_order(db_session, member.id, _request(_item(product, 10000)))

    assert fake_redis.get(f"cart:count:{member.id}") == "0"


def test_find_order_by_owner(db_session, order_service, member):
    order = _place_order(db_session, member)
    assert order_service.find_order(db_session, member.id, order.id).id == order.id


def test_find_order_by_non_owner(db_session, order_service, member, other_member):
    order = _place_order(db_session, member)
    with pytest.raises(StorefrontError) as exc:
        order_service.find_order(db_session, other_member.id, order.id)
    assert exc.value.code == ErrorCode.USER_NOT_AUTHORIZED


def test_find_order_missing_or_deleted(db_session, order_service, member):
    deleted = _place_order(db_session, member, is_deleted=True)
    for order_id in (deleted.id, 9999):
        with pytest.raises(StorefrontError) as exc:
            order_service.find_order(db_session, member.id, order_id)
        assert exc.value.code == ErrorCode.ORDER_NOT_FOUND


def test_find_all_orders_pages_newest_first(db_session, order_service, member, other_member):
    base = datetime(2024, 1, 1)
    created = [
        _place_order(db_session, member, created_at=base + timedelta(hours=i))
        for i in range(7)
    ]
    _place_order(db_session, member, is_deleted=True, created_at=base + timedelta(days=2))
    _place_order(db_session, other_member, created_at=base + timedelta(days=3))

    page_one, total_pages = order_service.find_all_orders(db_session, member.id, 1)
    page_two, _ = order_service.find_all_orders(db_session, member.id, 2)

    assert total_pages == 2
    assert [o.id for o in page_one] == [o.id for o in reversed(created)][:5]
    assert [o.id for o in page_two] == [created[1].id, created[0].id]


@pytest.mark.parametrize("count,expected_pages", [(0, 0), (1, 1), (5, 1), (6, 2), (10, 2), (11, 3)])
def test_total_pages_is_ceil_of_count(db_session, order_service, member, count, expected_pages):
    for _ in range(count):
        _place_order(db_session, member)

    orders, total_pages = order_service.find_all_orders(db_session, member.id, 1)

    assert total_pages == expected_pages
    assert len(orders) == min(count, 5)


def test_update_order_delivery_info(db_session, order_service, member):
    order = _place_order(db_session, member)

    updated = order_service.update_order(
        db_session,
        member.id,
        order.id,
        OrderUpdateRequest(delivery_address="New 2", delivery_receiver="Park", delivery_phone="010-9"),
    )

    assert updated.delivery_address == "New 2"
    assert updated.delivery_receiver == "Park"
    assert updated.order_status == OrderStatus.ORDERED


def test_cancel_order(db_session, order_service, member):
    order = _place_order(db_session, member)

    cancelled = order_service.cancel_order(db_session, member.id, order.id)

    assert cancelled.order_status == OrderStatus.CANCELLED


@pytest.mark.parametrize(
    "status", [OrderStatus.CANCELLED, OrderStatus.SHIPPING, OrderStatus.COMPLETED]
)
def test_modification_not_allowed_after_ordered(db_session, order_service, member, status):
    order = _place_order(db_session, member, order_status=status)
    update = OrderUpdateRequest(delivery_address="X", delivery_receiver="Y", delivery_phone="Z")

    with pytest.raises(StorefrontError) as exc:
        order_service.update_order(db_session, member.id, order.id, update)
    assert exc.value.code == ErrorCode.ORDER_MODIFICATION_NOT_ALLOWED

    with pytest.raises(StorefrontError) as exc:
        order_service.cancel_order(db_session, member.id, order.id)
    assert exc.value.code == ErrorCode.ORDER_MODIFICATION_NOT_ALLOWED


def test_cancel_by_non_owner(db_session, order_service, member, other_member):
    order = _place_order(db_session, member)

    with pytest.raises(StorefrontError) as exc:
        order_service.cancel_order(db_session, other_member.id, order.id)

    assert exc.value.code == ErrorCode.USER_NOT_AUTHORIZED
    db_session.refresh(order)
    assert order.order_status == OrderStatus.ORDERED


def test_cancel_keeps_coupon_used(
    db_session, order_service, member, make_product, make_cart, make_grant
):
    product = make_product()
    make_cart(member, product, 1)
    grant = make_grant(member)
    order = order_service.create_order(
        db_session, member.id, _request(_item(product, 9000, coupon_member_id=grant.id))
    )

    order_service.cancel_order(db_session, member.id, order.id)

    db_session.refresh(grant)
    assert grant.used is True
    assert db_session.query(Cart).count() == 0
