"""Drop 生命周期服务"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
import logging
import math

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from dropstore.core.exceptions import ValidationError, NotFoundError, ConflictError
from dropstore.core.timeutils import utcnow, to_naive_utc
from dropstore.models.drop import Drop, DropStatus
from dropstore.models.drop_products import DropProduct
from dropstore.models.product import Product

logger = logging.getLogger(__name__)

# 部分更新允许修改的字段
UPDATABLE_FIELDS = (
    "name",
    "description",
    "start_date",
    "end_date",
    "status",
    "is_pinned",
    "banner_url",
)

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


def round2(value: float) -> float:
    """保留两位小数，0.5 向上进位"""
    return math.floor(value * 100 + 0.5) / 100


def sold_percentage(sold: int, limited: int) -> float:
    if not limited:
        return 0
    return round2(sold / limited * 100)


@dataclass(frozen=True)
class DropProductView:
    """Drop 商品：商品本身 + 限量分配"""
    product: Product
    allocation: DropProduct

    @property
    def remaining_quantity(self) -> int:
        return self.allocation.remaining_quantity


@dataclass(frozen=True)
class StatusTransitionPlan:
    """一次扫描的迁移计划，两个分区基于同一份快照计算"""
    to_activate: List[Drop]
    to_end: List[Drop]

    @property
    def total(self) -> int:
        return len(self.to_activate) + len(self.to_end)


class DropService:
    """Drop 核心服务类"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== 查询 ====================

    def get_drop(self, drop_id: int) -> Optional[Drop]:
        return self.db.execute(
            select(Drop).where(Drop.id == drop_id)
        ).scalar_one_or_none()

    def get_drop_or_404(self, drop_id: int) -> Drop:
        drop = self.get_drop(drop_id)
        if not drop:
            raise NotFoundError(f"Drop {drop_id} not found")
        return drop

    def list_drops(
        self,
        status: Optional[DropStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Drop], int]:
        """分页查询；total 为过滤后、分页前的数量"""
        stmt = select(Drop)
        count_stmt = select(func.count()).select_from(Drop)
        if status is not None:
            stmt = stmt.where(Drop.status == status)
            count_stmt = count_stmt.where(Drop.status == status)

        total = self.db.execute(count_stmt).scalar_one()
        items = self.db.execute(
            stmt.order_by(Drop.is_pinned.desc(), Drop.start_date.desc(), Drop.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return list(items), total

    def get_drops_by_status(self, status: DropStatus) -> List[Drop]:
        stmt = (
            select(Drop)
            .where(Drop.status == status)
            .order_by(Drop.start_date)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_current_drop(self, now: Optional[datetime] = None) -> Optional[Drop]:
        """状态为 active 且 start_date <= now <= end_date 的 Drop

        按约定至多一条；数据异常出现多条时返回其中任意一条。
        """
        now = now or utcnow()
        return self.db.execute(
            select(Drop)
            .where(
                Drop.status == DropStatus.ACTIVE,
                Drop.start_date <= now,
                Drop.end_date >= now,
            )
            .order_by(Drop.start_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    def get_next_drop(self, now: Optional[datetime] = None) -> Optional[Drop]:
        """最近一个尚未开始的 Drop"""
        now = now or utcnow()
        return self.db.execute(
            select(Drop)
            .where(
                Drop.status == DropStatus.UPCOMING,
                Drop.start_date >= now,
            )
            .order_by(Drop.start_date)
            .limit(1)
        ).scalar_one_or_none()

    def get_countdown(self, now: Optional[datetime] = None) -> Optional[dict]:
        """当前 Drop 的倒计时

        end_date 已过但调度器尚未把状态改为 ended 时，remaining_ms 归零且
        is_ended=True；展示以 is_ended 为准。
        """
        now = now or utcnow()
        # 不限制 end_date：已到期但仍为 active 的 Drop 也要返回 is_ended
        drop = self.db.execute(
            select(Drop)
            .where(
                Drop.status == DropStatus.ACTIVE,
                Drop.start_date <= now,
            )
            .order_by(Drop.start_date.desc())
            .limit(1)
        ).scalar_one_or_none()
        if not drop:
            return None

        remaining_ms = int((drop.end_date - now).total_seconds() * 1000)
        if remaining_ms <= 0:
            return {
                "drop_id": drop.id,
                "drop_name": drop.name,
                "end_time": drop.end_date,
                "remaining_ms": 0,
                "days": 0,
                "hours": 0,
                "minutes": 0,
                "seconds": 0,
                "is_ended": True,
            }

        return {
            "drop_id": drop.id,
            "drop_name": drop.name,
            "end_time": drop.end_date,
            "remaining_ms": remaining_ms,
            "days": remaining_ms // MS_PER_DAY,
            "hours": (remaining_ms % MS_PER_DAY) // MS_PER_HOUR,
            "minutes": (remaining_ms % MS_PER_HOUR) // MS_PER_MINUTE,
            "seconds": (remaining_ms % MS_PER_MINUTE) // MS_PER_SECOND,
            "is_ended": False,
        }

    def get_drop_products(self, drop_id: int) -> List[DropProductView]:
        rows = self.db.execute(
            select(DropProduct, Product)
            .join(Product, DropProduct.product_id == Product.id)
            .where(DropProduct.drop_id == drop_id)
            .order_by(DropProduct.id)
        ).all()
        return [DropProductView(product=product, allocation=allocation) for allocation, product in rows]

    def get_allocation(self, drop_id: int, product_id: int) -> Optional[DropProduct]:
        return self.db.execute(
            select(DropProduct).where(
                DropProduct.drop_id == drop_id,
                DropProduct.product_id == product_id,
            )
        ).scalar_one_or_none()

    # ==================== Drop 增删改 ====================

    def create_drop(
        self,
        name: str,
        start_date: datetime,
        end_date: datetime,
        description: Optional[str] = None,
        banner_url: Optional[str] = None,
        is_pinned: bool = False,
    ) -> Drop:
        """创建 Drop，初始状态固定为 upcoming，不创建任何分配"""
        if not name or not name.strip():
            raise ValidationError("Drop name is required")
        start_date = to_naive_utc(start_date)
        end_date = to_naive_utc(end_date)
        if start_date >= end_date:
            raise ValidationError("startDate must be before endDate")

        drop = Drop(
            name=name.strip(),
            description=description,
            start_date=start_date,
            end_date=end_date,
            status=DropStatus.UPCOMING,
            banner_url=banner_url,
            is_pinned=is_pinned,
        )
        try:
            self.db.add(drop)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"创建 Drop 失败: {str(e)}")
            raise
        self.db.refresh(drop)
        logger.info(f"创建 Drop 成功: drop_id={drop.id}, name={drop.name}")
        return drop

    def update_drop(self, drop_id: int, **fields) -> Drop:
        """部分更新，未提供的字段保持不变

        不对 start_date / end_date 的先后顺序做交叉校验。
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown drop fields: {', '.join(sorted(unknown))}")

        drop = self.get_drop_or_404(drop_id)
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Drop name is required")

        try:
            for key, value in fields.items():
                if key in ("start_date", "end_date"):
                    value = to_naive_utc(value)
                elif key == "status" and value is not None:
                    value = DropStatus(value)
                setattr(drop, key, value)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"更新 Drop 失败: drop_id={drop_id}, error={str(e)}")
            raise
        self.db.refresh(drop)
        logger.info(f"更新 Drop 成功: drop_id={drop_id}, fields={sorted(fields)}")
        return drop

    def toggle_pin(self, drop_id: int, is_pinned: bool) -> Drop:
        return self.update_drop(drop_id, is_pinned=is_pinned)

    def delete_drop(self, drop_id: int) -> bool:
        """硬删除 Drop；进行中的 Drop 不允许删除，先删分配再删 Drop"""
        drop = self.get_drop_or_404(drop_id)
        if drop.status == DropStatus.ACTIVE:
            raise ConflictError("Cannot delete an active drop")

        try:
            self.db.execute(delete(DropProduct).where(DropProduct.drop_id == drop_id))
            self.db.delete(drop)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"删除 Drop 失败: drop_id={drop_id}, error={str(e)}")
            raise
        logger.info(f"删除 Drop 成功: drop_id={drop_id}")
        return True

    # ==================== 限量分配 ====================

    def add_product(self, drop_id: int, product_id: int, limited_quantity: int) -> DropProduct:
        if limited_quantity is None or limited_quantity <= 0:
            raise ValidationError("limitedQuantity must be positive")
        self.get_drop_or_404(drop_id)
        product = self.db.execute(
            select(Product).where(Product.id == product_id)
        ).scalar_one_or_none()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if self.get_allocation(drop_id, product_id):
            raise ConflictError(f"Product {product_id} is already added to drop {drop_id}")

        allocation = DropProduct(
            drop_id=drop_id,
            product_id=product_id,
            limited_quantity=limited_quantity,
            sold_quantity=0,
        )
        try:
            self.db.add(allocation)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"添加 Drop 商品失败: drop_id={drop_id}, product_id={product_id}, error={str(e)}")
            raise
        self.db.refresh(allocation)
        logger.info(f"添加 Drop 商品: drop_id={drop_id}, product_id={product_id}, limited={limited_quantity}")
        return allocation

    def remove_product(self, drop_id: int, product_id: int) -> bool:
        allocation = self.get_allocation(drop_id, product_id)
        if not allocation:
            raise NotFoundError(f"Product {product_id} not found in drop {drop_id}")
        if allocation.sold_quantity > 0:
            # 已售记录随分配一起丢弃
            logger.warning(
                f"移除已有销量的 Drop 商品: drop_id={drop_id}, product_id={product_id}, "
                f"sold={allocation.sold_quantity}"
            )

        try:
            self.db.delete(allocation)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"移除 Drop 商品失败: drop_id={drop_id}, product_id={product_id}, error={str(e)}")
            raise
        logger.info(f"移除 Drop 商品: drop_id={drop_id}, product_id={product_id}")
        return True

    def resize_product_quantity(self, drop_id: int, product_id: int, new_limited_quantity: int) -> DropProduct:
        """调整限量；不能低于已售数量"""
        if new_limited_quantity is None or new_limited_quantity <= 0:
            raise ValidationError("limitedQuantity must be positive")

        allocation = self.get_allocation(drop_id, product_id)
        if not allocation:
            raise NotFoundError(f"Product {product_id} not found in drop {drop_id}")
        if new_limited_quantity < allocation.sold_quantity:
            raise ValidationError(
                f"limitedQuantity ({new_limited_quantity}) cannot be less than "
                f"soldQuantity ({allocation.sold_quantity})"
            )

        try:
            # 条件更新：与并发下单的 sold_quantity 自增互不越界
            result = self.db.execute(
                update(DropProduct)
                .where(
                    DropProduct.id == allocation.id,
                    DropProduct.sold_quantity <= new_limited_quantity,
                )
                .values(limited_quantity=new_limited_quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ValidationError("limitedQuantity cannot be less than soldQuantity")
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"调整限量失败: drop_id={drop_id}, product_id={product_id}, error={str(e)}")
            raise
        self.db.refresh(allocation)
        logger.info(f"调整限量: drop_id={drop_id}, product_id={product_id}, limited={new_limited_quantity}")
        return allocation

    def get_stats(self, drop_id: int) -> dict:
        """销售统计"""
        drop = self.get_drop_or_404(drop_id)
        views = self.get_drop_products(drop_id)

        products = []
        total_sold = 0
        total_limited = 0
        for view in views:
            limited = view.allocation.limited_quantity or 0
            sold = view.allocation.sold_quantity or 0
            total_sold += sold
            total_limited += limited
            products.append({
                "product_id": view.product.id,
                "product_name": view.product.name,
                "limited_quantity": limited,
                "sold_quantity": sold,
                "remaining_quantity": limited - sold,
                "sold_percentage": sold_percentage(sold, limited),
            })

        return {
            "drop_id": drop.id,
            "drop_name": drop.name,
            "total_products": len(products),
            "total_sold": total_sold,
            "total_limited": total_limited,
            "sold_percentage": sold_percentage(total_sold, total_limited),
            "products": products,
        }

    # ==================== 自动状态迁移 ====================

    def plan_status_transitions(self, now: Optional[datetime] = None) -> StatusTransitionPlan:
        """基于同一份快照计算迁移：每个 Drop 每次扫描至多迁移一步"""
        now = now or utcnow()
        drops = self.db.execute(
            select(Drop).where(Drop.status.in_([DropStatus.UPCOMING, DropStatus.ACTIVE]))
        ).scalars().all()

        to_activate = [
            d for d in drops
            if d.status == DropStatus.UPCOMING and d.start_date <= now
        ]
        to_end = [
            d for d in drops
            if d.status == DropStatus.ACTIVE and d.end_date <= now
        ]
        return StatusTransitionPlan(to_activate=to_activate, to_end=to_end)

    def update_statuses_automatically(self, now: Optional[datetime] = None) -> int:
        """扫描一次并应用迁移，返回实际更新的 Drop 数量"""
        plan = self.plan_status_transitions(now)
        if not plan.total:
            return 0

        updated = 0
        try:
            # WHERE 带上原状态，只向前推进；期间被管理员改动过的行不受影响
            if plan.to_activate:
                result = self.db.execute(
                    update(Drop)
                    .where(
                        Drop.id.in_([d.id for d in plan.to_activate]),
                        Drop.status == DropStatus.UPCOMING,
                    )
                    .values(status=DropStatus.ACTIVE)
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount
            if plan.to_end:
                result = self.db.execute(
                    update(Drop)
                    .where(
                        Drop.id.in_([d.id for d in plan.to_end]),
                        Drop.status == DropStatus.ACTIVE,
                    )
                    .values(status=DropStatus.ENDED)
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Drop 状态自动更新失败: {str(e)}")
            raise

        # 批量 UPDATE 未同步会话中的对象
        self.db.expire_all()
        logger.info(
            f"Drop 状态自动更新: activated={len(plan.to_activate)}, "
            f"ended={len(plan.to_end)}, updated={updated}"
        )
        return updated
