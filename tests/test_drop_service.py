"""Drop 服务单元测试"""
from datetime import timedelta

import pytest

from dropstore.core.exceptions import ValidationError, NotFoundError, ConflictError
from dropstore.core.timeutils import utcnow
from dropstore.models import Drop, DropStatus, DropProduct
from dropstore.services.drop_service import DropService, round2, sold_percentage


class TestDropCrud:
    """Drop 增删改查"""

    def test_create_drop(self, db_session):
        now = utcnow()
        service = DropService(db_session)

        drop = service.create_drop(
            name="Test Drop 1",
            description="This is a test drop",
            start_date=now + timedelta(hours=1),
            end_date=now + timedelta(hours=2),
        )

        assert drop.id is not None
        assert drop.status == DropStatus.UPCOMING
        assert drop.is_pinned is False
        assert db_session.query(DropProduct).filter_by(drop_id=drop.id).count() == 0

    def test_create_drop_without_description(self, db_session):
        now = utcnow()
        drop = DropService(db_session).create_drop(
            name="Test Drop 2",
            start_date=now + timedelta(hours=1),
            end_date=now + timedelta(hours=2),
        )
        assert drop.description is None

    def test_create_drop_rejects_inverted_window(self, db_session):
        now = utcnow()
        service = DropService(db_session)

        with pytest.raises(ValidationError):
            service.create_drop(
                name="Invalid Drop",
                start_date=now + timedelta(hours=2),
                end_date=now + timedelta(hours=1),
            )

        # start == end 同样非法
        with pytest.raises(ValidationError):
            service.create_drop(name="Invalid Drop", start_date=now, end_date=now)

    def test_create_drop_rejects_blank_name(self, db_session):
        now = utcnow()
        with pytest.raises(ValidationError):
            DropService(db_session).create_drop(
                name="   ",
                start_date=now,
                end_date=now + timedelta(hours=1),
            )

    def test_update_drop_partial(self, db_session, make_drop):
        drop = make_drop()
        original_end = drop.end_date
        service = DropService(db_session)

        updated = service.update_drop(drop.id, name="Updated Drop Name")

        assert updated.name == "Updated Drop Name"
        assert updated.end_date == original_end
        assert updated.status == DropStatus.UPCOMING

    def test_update_drop_status(self, db_session, make_drop):
        drop = make_drop()
        updated = DropService(db_session).update_drop(drop.id, status="active")
        assert updated.status == DropStatus.ACTIVE

    def test_update_drop_does_not_cross_validate_dates(self, db_session, make_drop):
        """部分更新不校验先后顺序"""
        drop = make_drop()
        updated = DropService(db_session).update_drop(
            drop.id, end_date=drop.start_date - timedelta(hours=1)
        )
        assert updated.end_date < updated.start_date

    def test_update_drop_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            DropService(db_session).update_drop(99999, name="Non-existent Drop")

    def test_update_drop_rejects_unknown_field(self, db_session, make_drop):
        drop = make_drop()
        with pytest.raises(ValidationError):
            DropService(db_session).update_drop(drop.id, id=5)

    def test_toggle_pin(self, db_session, make_drop):
        drop = make_drop()
        assert DropService(db_session).toggle_pin(drop.id, True).is_pinned is True
        assert DropService(db_session).toggle_pin(drop.id, False).is_pinned is False

    def test_delete_active_drop_conflicts(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-1), end=timedelta(hours=1))

        with pytest.raises(ConflictError) as exc_info:
            DropService(db_session).delete_drop(drop.id)

        assert "Cannot delete an active drop" in exc_info.value.detail
        assert db_session.get(Drop, drop.id) is not None

    @pytest.mark.parametrize("status", [DropStatus.UPCOMING, DropStatus.ENDED])
    def test_delete_drop_cascades_allocations(self, db_session, make_drop, make_allocation, products, status):
        drop = make_drop(status=status)
        make_allocation(drop, products["tee"])
        make_allocation(drop, products["hoodie"])
        other = make_drop(name="Other Drop")
        make_allocation(other, products["tee"])

        assert DropService(db_session).delete_drop(drop.id) is True

        assert db_session.get(Drop, drop.id) is None
        assert db_session.query(DropProduct).filter_by(drop_id=drop.id).count() == 0
        assert db_session.query(DropProduct).filter_by(drop_id=other.id).count() == 1

    def test_delete_missing_drop(self, db_session):
        with pytest.raises(NotFoundError):
            DropService(db_session).delete_drop(99999)

    def test_list_drops_filter_and_pagination(self, db_session, make_drop):
        for i in range(3):
            make_drop(name=f"Upcoming {i}")
        make_drop(status=DropStatus.ENDED, start=timedelta(days=-2), end=timedelta(days=-1))
        service = DropService(db_session)

        items, total = service.list_drops(status=DropStatus.UPCOMING, limit=2, offset=0)
        assert total == 3
        assert len(items) == 2
        assert all(d.status == DropStatus.UPCOMING for d in items)

        items, total = service.list_drops()
        assert total == 4
        assert len(items) == 4


class TestDropQueries:
    """当前 / 下一个 / 倒计时"""

    def test_get_current_drop(self, db_session, make_drop):
        make_drop(status=DropStatus.UPCOMING)
        current = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-1), end=timedelta(hours=1))

        assert DropService(db_session).get_current_drop().id == current.id

    def test_get_current_drop_requires_active_status(self, db_session, make_drop):
        # 时间窗口内但状态仍为 upcoming
        make_drop(status=DropStatus.UPCOMING, start=timedelta(hours=-1), end=timedelta(hours=1))
        assert DropService(db_session).get_current_drop() is None

    def test_get_next_drop_returns_earliest(self, db_session, make_drop):
        make_drop(name="Later", start=timedelta(days=2), end=timedelta(days=3))
        sooner = make_drop(name="Sooner", start=timedelta(hours=1), end=timedelta(hours=5))

        assert DropService(db_session).get_next_drop().id == sooner.id

    def test_countdown_breakdown(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-1), end=timedelta(hours=1))
        now = drop.end_date - timedelta(days=1, hours=2, minutes=3, seconds=4)
        # 把 start 拉到更早，保证 now 仍在窗口内
        drop.start_date = now - timedelta(hours=1)
        db_session.commit()

        countdown = DropService(db_session).get_countdown(now=now)

        assert countdown["drop_id"] == drop.id
        assert countdown["is_ended"] is False
        assert countdown["days"] == 1
        assert countdown["hours"] == 2
        assert countdown["minutes"] == 3
        assert countdown["seconds"] == 4
        assert countdown["remaining_ms"] == ((26 * 60 + 3) * 60 + 4) * 1000

    def test_countdown_after_end_is_ended_while_status_still_active(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-2), end=timedelta(hours=-1))

        countdown = DropService(db_session).get_countdown(now=drop.end_date + timedelta(seconds=5))

        assert countdown is not None
        assert countdown["drop_id"] == drop.id
        assert countdown["is_ended"] is True
        assert countdown["remaining_ms"] == 0
        assert countdown["days"] == countdown["seconds"] == 0
        assert db_session.get(Drop, drop.id).status == DropStatus.ACTIVE

    def test_countdown_at_exact_end(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-1), end=timedelta(hours=1))

        countdown = DropService(db_session).get_countdown(now=drop.end_date)

        assert countdown["is_ended"] is True
        assert countdown["remaining_ms"] == 0

    def test_countdown_ignores_upcoming_drop(self, db_session, make_drop):
        make_drop(status=DropStatus.UPCOMING, start=timedelta(hours=-1), end=timedelta(hours=1))
        assert DropService(db_session).get_countdown() is None

    def test_countdown_without_current_drop(self, db_session):
        assert DropService(db_session).get_countdown() is None


class TestDropAllocations:
    """限量分配"""

    def test_add_product_then_stats(self, db_session, make_drop, products):
        drop = make_drop()
        service = DropService(db_session)

        allocation = service.add_product(drop.id, products["tee"].id, 100)
        assert allocation.drop_id == drop.id
        assert allocation.product_id == products["tee"].id
        assert allocation.limited_quantity == 100
        assert allocation.sold_quantity == 0

        stats = service.get_stats(drop.id)
        row = stats["products"][0]
        assert row["sold_quantity"] == 0
        assert row["remaining_quantity"] == 100
        assert row["sold_percentage"] == 0

    def test_add_duplicate_product_conflicts(self, db_session, make_drop, products):
        drop = make_drop()
        service = DropService(db_session)
        service.add_product(drop.id, products["tee"].id, 100)

        with pytest.raises(ConflictError) as exc_info:
            service.add_product(drop.id, products["tee"].id, 100)

        assert "already added" in exc_info.value.detail

    def test_add_product_missing_drop_or_product(self, db_session, make_drop, products):
        drop = make_drop()
        service = DropService(db_session)

        with pytest.raises(NotFoundError):
            service.add_product(99999, products["tee"].id, 100)
        with pytest.raises(NotFoundError):
            service.add_product(drop.id, 99999, 100)

    def test_add_product_requires_positive_quantity(self, db_session, make_drop, products):
        drop = make_drop()
        with pytest.raises(ValidationError):
            DropService(db_session).add_product(drop.id, products["tee"].id, 0)

    def test_remove_product(self, db_session, make_drop, make_allocation, products):
        drop = make_drop()
        make_allocation(drop, products["tee"], sold_quantity=3)
        service = DropService(db_session)

        # 已有销量也允许移除
        assert service.remove_product(drop.id, products["tee"].id) is True
        with pytest.raises(NotFoundError):
            service.remove_product(drop.id, products["tee"].id)

    def test_resize_below_sold_is_rejected(self, db_session, make_drop, make_allocation, products):
        drop = make_drop()
        make_allocation(drop, products["tee"], limited_quantity=100, sold_quantity=10)
        service = DropService(db_session)

        with pytest.raises(ValidationError):
            service.resize_product_quantity(drop.id, products["tee"].id, 5)

        assert service.resize_product_quantity(drop.id, products["tee"].id, 10).limited_quantity == 10
        assert service.resize_product_quantity(drop.id, products["tee"].id, 150).limited_quantity == 150

    def test_resize_missing_allocation(self, db_session, make_drop):
        drop = make_drop()
        with pytest.raises(NotFoundError):
            DropService(db_session).resize_product_quantity(drop.id, 99999, 100)

    def test_get_drop_products_composes_product_and_allocation(self, db_session, make_drop, make_allocation, products):
        drop = make_drop()
        make_allocation(drop, products["hoodie"], limited_quantity=20, sold_quantity=5)

        views = DropService(db_session).get_drop_products(drop.id)

        assert len(views) == 1
        assert views[0].product.name == "Zip Hoodie"
        assert views[0].allocation.limited_quantity == 20
        assert views[0].remaining_quantity == 15

    def test_stats_totals(self, db_session, make_drop, make_allocation, products):
        drop = make_drop()
        make_allocation(drop, products["tee"], limited_quantity=3, sold_quantity=1)
        make_allocation(drop, products["hoodie"], limited_quantity=7, sold_quantity=7)

        stats = DropService(db_session).get_stats(drop.id)

        assert stats["drop_name"] == drop.name
        assert stats["total_products"] == 2
        assert stats["total_sold"] == 8
        assert stats["total_limited"] == 10
        assert stats["sold_percentage"] == 80.0
        by_product = {row["product_id"]: row for row in stats["products"]}
        assert by_product[products["tee"].id]["sold_percentage"] == 33.33
        assert by_product[products["hoodie"].id]["sold_percentage"] == 100.0
        assert by_product[products["hoodie"].id]["remaining_quantity"] == 0

    def test_stats_empty_drop(self, db_session, make_drop):
        drop = make_drop()
        stats = DropService(db_session).get_stats(drop.id)
        assert stats["total_limited"] == 0
        assert stats["sold_percentage"] == 0

    def test_stats_missing_drop(self, db_session):
        with pytest.raises(NotFoundError):
            DropService(db_session).get_stats(99999)

    def test_percentage_helpers(self):
        assert sold_percentage(0, 0) == 0
        assert sold_percentage(1, 8) == 12.5
        assert round2(2 / 3 * 100) == 66.67


class TestStatusSweep:
    """自动状态迁移"""

    def test_upcoming_in_window_becomes_active(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.UPCOMING, start=timedelta(hours=-1), end=timedelta(hours=1))

        updated = DropService(db_session).update_statuses_automatically()

        assert updated >= 1
        assert db_session.get(Drop, drop.id).status == DropStatus.ACTIVE

    def test_active_past_end_becomes_ended(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-2), end=timedelta(hours=-1))

        assert DropService(db_session).update_statuses_automatically() == 1
        assert db_session.get(Drop, drop.id).status == DropStatus.ENDED

    def test_future_and_ended_drops_untouched(self, db_session, make_drop):
        future = make_drop(status=DropStatus.UPCOMING)
        ended = make_drop(status=DropStatus.ENDED, start=timedelta(hours=-2), end=timedelta(hours=-1))

        assert DropService(db_session).update_statuses_automatically() == 0
        assert db_session.get(Drop, future.id).status == DropStatus.UPCOMING
        assert db_session.get(Drop, ended.id).status == DropStatus.ENDED

    def test_elapsed_upcoming_drop_reaches_ended_over_two_sweeps(self, db_session, make_drop):
        """窗口已整体过去的 upcoming Drop：一次扫描至多迁移一步"""
        drop = make_drop(status=DropStatus.UPCOMING, start=timedelta(hours=-2), end=timedelta(hours=-1))
        service = DropService(db_session)

        assert service.update_statuses_automatically() == 1
        assert db_session.get(Drop, drop.id).status == DropStatus.ACTIVE

        assert service.update_statuses_automatically() == 1
        assert db_session.get(Drop, drop.id).status == DropStatus.ENDED

        assert service.update_statuses_automatically() == 0
        assert db_session.get(Drop, drop.id).status == DropStatus.ENDED

    def test_plan_partitions_from_same_snapshot(self, db_session, make_drop):
        activate = make_drop(status=DropStatus.UPCOMING, start=timedelta(hours=-1), end=timedelta(hours=1))
        end = make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-2), end=timedelta(hours=-1))
        service = DropService(db_session)

        plan = service.plan_status_transitions()

        assert [d.id for d in plan.to_activate] == [activate.id]
        assert [d.id for d in plan.to_end] == [end.id]
        assert plan.total == 2
        # 只计算不写库
        assert db_session.get(Drop, activate.id).status == DropStatus.UPCOMING

    def test_sweep_is_idempotent(self, db_session, make_drop):
        make_drop(status=DropStatus.UPCOMING, start=timedelta(hours=-1), end=timedelta(hours=1))
        make_drop(status=DropStatus.ACTIVE, start=timedelta(hours=-2), end=timedelta(hours=-1))
        service = DropService(db_session)
        now = utcnow()

        assert service.update_statuses_automatically(now=now) == 2
        assert service.update_statuses_automatically(now=now) == 0

    def test_sweep_never_regresses(self, db_session, make_drop):
        drop = make_drop(status=DropStatus.ENDED, start=timedelta(hours=-1), end=timedelta(hours=1))

        DropService(db_session).update_statuses_automatically()

        assert db_session.get(Drop, drop.id).status == DropStatus.ENDED
