"""Tests for the order status lifecycle."""

import pytest

from conftest import add_cart, add_product
from storefront.checkout import place_order
from storefront.errors import (
    InvalidStatusTransitionError,
    NotAuthorizedError,
    OrderAlreadyDeliveredError,
    OrderAlreadyPaidError,
    OrderNotFoundError,
)
from storefront.orders import (
    TRANSITIONS,
    check_transition,
    get_order,
    is_terminal,
    list_all_orders,
    list_user_orders,
    mark_order_delivered,
    mark_order_paid,
    transition_fields,
    update_order_status,
)
from storefront.schemas import OrderStatus

OWNER = {"_id": "u1", "role": "user"}
STRANGER = {"_id": "u2", "role": "user"}
ADMIN = {"_id": "admin", "role": "admin"}


@pytest.fixture
def place(db, settings, shipping_address):
    async def _place(user_id="u1"):
        pid = await add_product(db, name=f"Item for {user_id}", stock=10)
        await add_cart(db, user_id, [(pid, 1, 50.0)])
        return await place_order(db, user_id, shipping_address, "stripe", settings)

    return _place


class TestTransitions:
    def test_every_status_has_rules(self):
        assert set(TRANSITIONS) == set(OrderStatus)

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_states(self, terminal):
        assert is_terminal(terminal)
        for target in OrderStatus:
            with pytest.raises(InvalidStatusTransitionError):
                check_transition(terminal, target)

    @pytest.mark.parametrize("source", [OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED])
    def test_cancel_from_any_open_state(self, source):
        check_transition(source, OrderStatus.CANCELLED)

    def test_no_backward_moves(self):
        with pytest.raises(InvalidStatusTransitionError):
            check_transition(OrderStatus.SHIPPED, OrderStatus.PROCESSING)
        with pytest.raises(InvalidStatusTransitionError):
            check_transition(OrderStatus.PROCESSING, OrderStatus.PENDING)

    def test_delivered_sets_flag_and_timestamp(self):
        fields = transition_fields(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
        assert fields["status"] == "delivered"
        assert fields["is_delivered"] is True
        assert fields["delivered_at"] is not None

    def test_plain_move_sets_status_only(self):
        fields = transition_fields(OrderStatus.PROCESSING, OrderStatus.SHIPPED)
        assert fields["status"] == "shipped"
        assert "is_delivered" not in fields


class TestPayment:
    @pytest.mark.asyncio
    async def test_payment_moves_pending_to_processing(self, db, place):
        order = await place()
        paid = await mark_order_paid(db, order.id, OWNER, {"id": "ch_1", "status": "succeeded"})
        assert paid.is_paid is True
        assert paid.paid_at is not None
        assert paid.status is OrderStatus.PROCESSING
        assert paid.payment_result == {"id": "ch_1", "status": "succeeded"}

    @pytest.mark.asyncio
    async def test_double_payment_rejected(self, db, place):
        order = await place()
        await mark_order_paid(db, order.id, OWNER)
        with pytest.raises(OrderAlreadyPaidError):
            await mark_order_paid(db, order.id, OWNER)

    @pytest.mark.asyncio
    async def test_only_owner_or_admin_pays(self, db, place):
        order = await place()
        with pytest.raises(NotAuthorizedError):
            await mark_order_paid(db, order.id, STRANGER)
        paid = await mark_order_paid(db, order.id, ADMIN)
        assert paid.is_paid

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_paid(self, db, place):
        order = await place()
        await update_order_status(db, order.id, OrderStatus.CANCELLED)
        with pytest.raises(InvalidStatusTransitionError):
            await mark_order_paid(db, order.id, OWNER)

    @pytest.mark.asyncio
    async def test_paying_shipped_order_keeps_status(self, db, place):
        order = await place()
        await update_order_status(db, order.id, OrderStatus.SHIPPED)
        paid = await mark_order_paid(db, order.id, OWNER)
        assert paid.is_paid
        assert paid.status is OrderStatus.SHIPPED


class TestDelivery:
    @pytest.mark.asyncio
    async def test_deliver(self, db, place):
        order = await place()
        delivered = await mark_order_delivered(db, order.id)
        assert delivered.status is OrderStatus.DELIVERED
        assert delivered.is_delivered is True
        assert delivered.delivered_at is not None

    @pytest.mark.asyncio
    async def test_deliver_twice(self, db, place):
        order = await place()
        await mark_order_delivered(db, order.id)
        with pytest.raises(OrderAlreadyDeliveredError):
            await mark_order_delivered(db, order.id)

    @pytest.mark.asyncio
    async def test_cannot_deliver_cancelled(self, db, place):
        order = await place()
        await update_order_status(db, order.id, OrderStatus.CANCELLED)
        with pytest.raises(InvalidStatusTransitionError):
            await mark_order_delivered(db, order.id)

    @pytest.mark.asyncio
    async def test_nothing_leaves_delivered(self, db, place):
        order = await place()
        await update_order_status(db, order.id, OrderStatus.DELIVERED)
        with pytest.raises(InvalidStatusTransitionError):
            await update_order_status(db, order.id, OrderStatus.CANCELLED)


class TestLookup:
    @pytest.mark.asyncio
    async def test_get_order_access(self, db, place):
        order = await place()
        assert (await get_order(db, order.id, OWNER)).id == order.id
        assert (await get_order(db, order.id, ADMIN)).id == order.id
        with pytest.raises(NotAuthorizedError):
            await get_order(db, order.id, STRANGER)

    @pytest.mark.asyncio
    async def test_missing_order(self, db):
        with pytest.raises(OrderNotFoundError):
            await get_order(db, "0123456789abcdef01234567", ADMIN)

    @pytest.mark.asyncio
    async def test_list_orders(self, db, place):
        first = await place("u1")
        await place("u2")
        mine = await list_user_orders(db, "u1")
        assert [o.id for o in mine] == [first.id]

        await update_order_status(db, first.id, OrderStatus.CANCELLED)
        cancelled = await list_all_orders(db, status=OrderStatus.CANCELLED)
        assert [o.id for o in cancelled] == [first.id]
        assert len(await list_all_orders(db)) == 2
