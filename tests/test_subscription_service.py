from datetime import date, datetime

import pytest
from sqlalchemy import func, select, update

from conftest import FailingNotifier, local
from zynk.constants import DELIVERY_SCHEDULED, DELIVERY_SKIPPED
from zynk.errors import BadInputError, ConflictError, ForbiddenError, LockedError, NotFoundError
from zynk.models import Delivery, Subscription
from zynk.schemas.subscription import AddressUpdate
from zynk.services.subscription_service import SubscriptionService


async def count_deliveries(db, subscription_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Delivery).where(Delivery.subscription_id == subscription_id)
    )
    return result.scalar_one()


async def open_subscriptions(db, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Subscription)
        .where(Subscription.user_id == user_id, Subscription.status.in_(("pending", "active")))
    )
    return result.scalar_one()


def naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


def bypass_open_check(monkeypatch, service: SubscriptionService) -> None:
    """Let a write reach the database as if a concurrent request passed the same pre-check."""

    async def no_open_subscription(user_id, exclude_id=None):
        return None

    monkeypatch.setattr(service, "_open_subscription_for", no_open_subscription)


class TestCreate:
    async def test_creates_pending_with_snapshots(self, subscriptions, seed, notifier):
        sub = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)

        assert sub.status == "pending"
        assert sub.chef_id == seed.chef_id
        assert sub.price_snapshot == 4500
        assert sub.price_in_cents == 4500
        assert sub.meals_per_week == 7
        assert sub.delivery_address == "12 MG Road"
        assert sub.city == "Bengaluru"
        assert naive(sub.next_billing_date) == datetime(2024, 3, 7)
        assert notifier.types == ["subscription_created"]

    async def test_second_open_subscription_conflicts(self, subscriptions, seed, db):
        first = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)

        with pytest.raises(ConflictError) as exc_info:
            await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)

        assert "already exists" in exc_info.value.message
        assert exc_info.value.extra["subscriptionId"] == first.id
        assert await open_subscriptions(db, seed.customer_id) == 1

    async def test_conflicts_while_active(self, subscriptions, seed, activate, db):
        await activate(seed.customer_id, seed.plan_id)

        with pytest.raises(ConflictError):
            await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        assert await open_subscriptions(db, seed.customer_id) == 1

    async def test_allowed_again_after_cancel(self, subscriptions, seed):
        first = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        await subscriptions.cancel(first.id, seed.customer_id)

        second = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        assert second.id != first.id
        assert second.status == "pending"

    async def test_unknown_plan(self, subscriptions, seed):
        with pytest.raises(BadInputError):
            await subscriptions.create_pending_subscription(seed.customer_id, 9999)

    async def test_missing_profile(self, subscriptions, seed):
        with pytest.raises(BadInputError):
            await subscriptions.create_pending_subscription(seed.chef_id, seed.plan_id)

    async def test_notifier_failure_does_not_fail_creation(self, db, clock, seed):
        service = SubscriptionService(db, clock, FailingNotifier())
        sub = await service.create_pending_subscription(seed.customer_id, seed.plan_id)
        assert sub.status == "pending"

    async def test_unique_index_rejects_concurrent_create(self, subscriptions, seed, db, monkeypatch):
        await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        bypass_open_check(monkeypatch, subscriptions)

        with pytest.raises(ConflictError) as exc_info:
            await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)

        assert exc_info.value.message == "Active or pending subscription already exists"
        assert await open_subscriptions(db, seed.customer_id) == 1


class TestConfirmPayment:
    async def test_activates_and_schedules_week(self, subscriptions, seed, db, notifier):
        sub = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        await subscriptions.attach_payment_order(sub.id, "order_1")

        sub = await subscriptions.confirm_payment("order_1", "pay_1")

        assert sub.status == "active"
        assert sub.payment_id == "pay_1"
        assert naive(sub.next_billing_date) == datetime(2024, 3, 14)
        detail = await subscriptions.get_subscription(sub.id, seed.customer_id)
        assert [d.delivery_date for d in detail.deliveries] == [date(2024, 3, day) for day in range(7, 14)]
        assert all(d.status == DELIVERY_SCHEDULED for d in detail.deliveries)
        assert notifier.types == ["subscription_created", "subscription_activated", "new_subscriber"]
        assert notifier.sent[-1].user_id == seed.chef_id

    async def test_replay_is_a_noop(self, subscriptions, seed, db, notifier):
        sub = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        await subscriptions.attach_payment_order(sub.id, "order_1")
        await subscriptions.confirm_payment("order_1", "pay_1")
        sent_before = len(notifier.sent)

        again = await subscriptions.confirm_payment("order_1", "pay_1")

        assert again.id == sub.id
        assert again.status == "active"
        assert await count_deliveries(db, sub.id) == 7
        assert len(notifier.sent) == sent_before

    async def test_unknown_order(self, subscriptions, seed):
        with pytest.raises(NotFoundError):
            await subscriptions.confirm_payment("order_missing", "pay_1")

    async def test_cancelled_subscription_is_not_activated(self, subscriptions, seed, db):
        sub = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        await subscriptions.attach_payment_order(sub.id, "order_1")
        await subscriptions.cancel(sub.id, seed.customer_id)

        with pytest.raises(ConflictError):
            await subscriptions.confirm_payment("order_1", "pay_1")
        assert await count_deliveries(db, sub.id) == 0

    async def test_order_ref_is_unique(self, subscriptions, seed):
        first = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        second = await subscriptions.create_pending_subscription(seed.intruder_id, seed.plan_id)
        await subscriptions.attach_payment_order(first.id, "order_1")

        with pytest.raises(ConflictError):
            await subscriptions.attach_payment_order(second.id, "order_1")


class TestLifecycle:
    async def test_pause_and_resume(self, subscriptions, seed, activate, clock):
        sub = await activate(seed.customer_id, seed.plan_id)

        paused = await subscriptions.pause(sub.id, seed.customer_id)
        assert paused.status == "paused"

        clock.set(local(2024, 3, 12, 9))
        resumed = await subscriptions.resume(sub.id, seed.customer_id)
        assert resumed.status == "active"
        assert naive(resumed.next_billing_date) == datetime(2024, 3, 13)

    async def test_pause_requires_active(self, subscriptions, seed):
        sub = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        with pytest.raises(ConflictError):
            await subscriptions.pause(sub.id, seed.customer_id)

    async def test_resume_requires_paused(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)
        with pytest.raises(BadInputError):
            await subscriptions.resume(sub.id, seed.customer_id)

    async def test_resume_blocked_by_another_open_subscription(self, subscriptions, seed, activate, db):
        sub = await activate(seed.customer_id, seed.plan_id)
        await subscriptions.pause(sub.id, seed.customer_id)
        await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)

        with pytest.raises(ConflictError):
            await subscriptions.resume(sub.id, seed.customer_id)
        assert await open_subscriptions(db, seed.customer_id) == 1

    async def test_unique_index_rejects_resume_racing_new_subscription(self, subscriptions, seed, activate, db, monkeypatch):
        sub = await activate(seed.customer_id, seed.plan_id)
        sub_id = sub.id
        await subscriptions.pause(sub_id, seed.customer_id)
        await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        bypass_open_check(monkeypatch, subscriptions)

        with pytest.raises(ConflictError):
            await subscriptions.resume(sub_id, seed.customer_id)

        assert await open_subscriptions(db, seed.customer_id) == 1
        current = await subscriptions.get_subscription(sub_id, seed.customer_id)
        assert current.status == "paused"

    async def test_cancelled_is_terminal(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)
        await subscriptions.cancel(sub.id, seed.customer_id)

        with pytest.raises(ConflictError):
            await subscriptions.pause(sub.id, seed.customer_id)
        with pytest.raises(BadInputError):
            await subscriptions.resume(sub.id, seed.customer_id)
        with pytest.raises(ConflictError):
            await subscriptions.cancel(sub.id, seed.customer_id)

        current = await subscriptions.get_subscription(sub.id, seed.customer_id)
        assert current.status == "cancelled"

    async def test_cancel_leaves_deliveries_and_notifies_chef(self, subscriptions, seed, activate, db, notifier):
        sub = await activate(seed.customer_id, seed.plan_id)
        await subscriptions.cancel(sub.id, seed.customer_id)

        assert await count_deliveries(db, sub.id) == 7
        assert notifier.types[-1] == "subscription_cancelled"
        assert notifier.sent[-1].user_id == seed.chef_id

    async def test_only_owner_may_act(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)

        with pytest.raises(ForbiddenError):
            await subscriptions.pause(sub.id, seed.intruder_id)
        with pytest.raises(ForbiddenError):
            await subscriptions.get_subscription(sub.id, seed.intruder_id)

    async def test_missing_subscription(self, subscriptions, seed):
        with pytest.raises(NotFoundError):
            await subscriptions.cancel(4242, seed.customer_id)

    async def test_list_is_newest_first(self, subscriptions, seed, clock):
        first = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)
        await subscriptions.cancel(first.id, seed.customer_id)
        clock.set(local(2024, 3, 6, 11))
        second = await subscriptions.create_pending_subscription(seed.customer_id, seed.plan_id)

        listed = await subscriptions.list_subscriptions(seed.customer_id)
        assert [s.id for s in listed] == [second.id, first.id]


class TestWeeklyLockedChanges:
    NEW_ADDRESS = AddressUpdate(delivery_address="221 Residency Road", postal_code="560025", city="Bengaluru")

    async def test_update_address_when_open(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)

        updated = await subscriptions.update_address(sub.id, seed.customer_id, self.NEW_ADDRESS)

        assert updated.delivery_address == "221 Residency Road"
        assert updated.postal_code == "560025"
        assert updated.is_skip_swap_locked is False

    async def test_update_address_locked_over_weekend(self, subscriptions, seed, activate, clock):
        sub = await activate(seed.customer_id, seed.plan_id)
        clock.set(local(2024, 3, 9, 11))

        with pytest.raises(LockedError) as exc_info:
            await subscriptions.update_address(sub.id, seed.customer_id, self.NEW_ADDRESS)

        assert exc_info.value.next_available_at == local(2024, 3, 11)
        current = await subscriptions.get_subscription(sub.id, seed.customer_id)
        assert current.delivery_address == "12 MG Road"

    async def test_skip_next_week(self, subscriptions, seed, activate, notifier):
        # Activated Wednesday 2024-03-06: deliveries 7th..13th, next week starts the 11th
        sub = await activate(seed.customer_id, seed.plan_id)

        _, skipped = await subscriptions.skip_next_week(sub.id, seed.customer_id)

        detail = await subscriptions.get_subscription(sub.id, seed.customer_id)
        statuses = {d.delivery_date: d.status for d in detail.deliveries}
        assert len(skipped) == 3
        assert [day for day, status in statuses.items() if status == DELIVERY_SKIPPED] == [
            date(2024, 3, 11), date(2024, 3, 12), date(2024, 3, 13)
        ]
        assert statuses[date(2024, 3, 10)] == DELIVERY_SCHEDULED
        assert notifier.types[-1] == "delivery_skipped"

    async def test_skip_next_week_locked(self, subscriptions, seed, activate, clock):
        sub = await activate(seed.customer_id, seed.plan_id)
        clock.set(local(2024, 3, 8, 20))

        with pytest.raises(LockedError) as exc_info:
            await subscriptions.skip_next_week(sub.id, seed.customer_id)
        assert exc_info.value.next_available_at == local(2024, 3, 11)

    async def test_skip_requires_active(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)
        await subscriptions.pause(sub.id, seed.customer_id)

        with pytest.raises(ConflictError):
            await subscriptions.skip_next_week(sub.id, seed.customer_id)

    async def test_swap_meal(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)

        _, swapped = await subscriptions.swap_meal(sub.id, seed.customer_id, 17)

        detail = await subscriptions.get_subscription(sub.id, seed.customer_id)
        swapped_days = [d.delivery_date for d in detail.deliveries if d.meal_id == 17]
        assert len(swapped) == 3
        assert swapped_days == [date(2024, 3, 11), date(2024, 3, 12), date(2024, 3, 13)]
        assert all(d.version == 2 for d in detail.deliveries if d.meal_id == 17)

    async def test_swap_meal_rejects_bad_meal(self, subscriptions, seed, activate):
        sub = await activate(seed.customer_id, seed.plan_id)
        with pytest.raises(BadInputError):
            await subscriptions.swap_meal(sub.id, seed.customer_id, 0)

    @pytest.mark.parametrize("change", ["skip", "swap"])
    async def test_pause_landing_after_the_status_read(self, subscriptions, seed, activate, db, monkeypatch, change):
        sub = await activate(seed.customer_id, seed.plan_id)

        # Another request pauses the subscription after this one has read it as active
        await db.execute(
            update(Subscription)
            .where(Subscription.id == sub.id)
            .values(status="paused")
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        assert sub.status == "active"

        async def stale_read(subscription_id, actor_id):
            return sub

        monkeypatch.setattr(subscriptions, "_get_owned", stale_read)

        with pytest.raises(ConflictError):
            if change == "skip":
                await subscriptions.skip_next_week(sub.id, seed.customer_id)
            else:
                await subscriptions.swap_meal(sub.id, seed.customer_id, 17)

        deliveries = (
            await db.execute(
                select(Delivery)
                .where(Delivery.subscription_id == sub.id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        assert all(d.status == DELIVERY_SCHEDULED and d.meal_id is None and d.version == 1 for d in deliveries)
