"""Tests for the order status state machine."""

from datetime import datetime, timezone

import pytest

from bakery.errors import InvalidStatusTransition
from bakery.models.order import OrderStatus, PaymentStatus
from bakery.services.order_lifecycle import (
    CANCELLED_BY_ADMIN, TRANSITIONS, apply_transition, can_transition, ensure_transition
)

from conftest import make_order_request


ALLOWED = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.PREPARING, OrderStatus.READY),
    (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    (OrderStatus.READY, OrderStatus.COMPLETED),
    (OrderStatus.READY, OrderStatus.CANCELLED),
}


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(OrderStatus)

    @pytest.mark.parametrize("current", list(OrderStatus))
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_table_matches_lifecycle(self, current, target):
        assert can_transition(current, target) == ((current, target) in ALLOWED)

    def test_terminal_states_have_no_exit(self):
        assert TRANSITIONS[OrderStatus.COMPLETED] == frozenset()
        assert TRANSITIONS[OrderStatus.CANCELLED] == frozenset()

    def test_ensure_transition_names_both_states(self):
        with pytest.raises(InvalidStatusTransition) as exc_info:
            ensure_transition(OrderStatus.PENDING, OrderStatus.READY)

        assert str(exc_info.value) == "Invalid status transition: PENDING -> READY"


class TestApplyTransition:
    async def _create(self, order_service, *lines):
        return await order_service.create_order(make_order_request(*lines))

    async def test_complete_overrides_failed_payment(self, db, order_service, baguette):
        order = await self._create(order_service, (baguette, 1))
        db.state.payments[order.payment.id]["status"] = PaymentStatus.FAILED
        db.state.orders[order.id]["status"] = OrderStatus.READY
        now = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)

        async with db.transaction() as repo:
            locked = await repo.get_order(order.id, for_update=True)
            updated = await apply_transition(repo, locked, OrderStatus.COMPLETED, now=now)

        assert updated.completed_at == now
        assert updated.payment.status == PaymentStatus.COMPLETED
        assert updated.payment.completed_at == now

    async def test_cancel_skips_deleted_and_unlimited_products(self, db, order_service, croissant, baguette):
        order = await self._create(order_service, (croissant, 2), (baguette, 5))
        async with db.transaction() as repo:
            await repo.delete_product(croissant.id)

        async with db.transaction() as repo:
            locked = await repo.get_order(order.id, for_update=True)
            updated = await apply_transition(repo, locked, OrderStatus.CANCELLED)

        assert updated.status == OrderStatus.CANCELLED
        assert updated.items[0].product_id is None
        assert updated.items[0].product_name == "Croissant au beurre"
        assert db.stock(baguette.id) is None
        assert updated.payment.failure_reason == CANCELLED_BY_ADMIN

    async def test_cancel_restores_stock_in_product_id_order(self, db, order_service, croissant, tarte):
        order = await self._create(order_service, (tarte, 1), (croissant, 1))
        if str(tarte.id) < str(croissant.id):
            order = await self._create(order_service, (croissant, 1), (tarte, 1))

        async with db.transaction() as repo:
            locked = await repo.get_order(order.id, for_update=True)
            await apply_transition(repo, locked, OrderStatus.CANCELLED)

        assert db.state.restored == sorted([tarte.id, croissant.id], key=str)

    async def test_cancel_keeps_existing_failure_reason(self, db, order_service, baguette):
        order = await self._create(order_service, (baguette, 1))
        db.state.payments[order.payment.id].update(status=PaymentStatus.FAILED, failure_reason="Declined")

        async with db.transaction() as repo:
            locked = await repo.get_order(order.id, for_update=True)
            updated = await apply_transition(repo, locked, OrderStatus.CANCELLED)

        assert updated.payment.failure_reason == "Declined"

    async def test_admin_notes_written_with_status(self, db, order_service, baguette):
        order = await self._create(order_service, (baguette, 1))

        async with db.transaction() as repo:
            locked = await repo.get_order(order.id, for_update=True)
            updated = await apply_transition(repo, locked, OrderStatus.CONFIRMED, admin_notes="Appelé")

        assert updated.admin_notes == "Appelé"
        assert updated.payment.status == PaymentStatus.PENDING

    async def test_rejected_transition_rolls_back_nothing_written(self, db, order_service, tarte):
        order = await self._create(order_service, (tarte, 1))

        with pytest.raises(InvalidStatusTransition):
            async with db.transaction() as repo:
                locked = await repo.get_order(order.id, for_update=True)
                await apply_transition(repo, locked, OrderStatus.COMPLETED, admin_notes="nope")

        assert db.state.orders[order.id]["status"] == OrderStatus.PENDING
        assert db.state.orders[order.id]["admin_notes"] is None
        assert db.stock(tarte.id) == 2
