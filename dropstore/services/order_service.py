"""订单服务实现"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging
import secrets
import string
import time

from redlock import Redlock
from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from dropstore.core.config import settings
from dropstore.core.exceptions import (
    ValidationError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    LockBusyError,
    InternalError,
)
from dropstore.core.redis import INVENTORY_LOCK_KEY
from dropstore.core.security import Principal
from dropstore.core.timeutils import utcnow
from dropstore.models.drop import Drop, DropStatus
from dropstore.models.drop_products import DropProduct
from dropstore.models.order_items import OrderItem
from dropstore.models.orders import Order, OrderStatus, ORDER_TRANSITIONS
from dropstore.models.product import Product
from dropstore.models.shipments import Shipment, ShipmentStatus, SHIPMENT_TRANSITIONS
from dropstore.models.user import User

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
BASE36_DIGITS = string.digits + string.ascii_uppercase

# 创建 / 更新物流信息时必填
REQUIRED_SHIPPING_FIELDS = {
    "recipient_name": "Recipient name is required",
    "recipient_phone": "Phone number is required",
    "address": "Address is required",
    "postal_code": "Postal code is required",
}


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def generate_order_number() -> str:
    """ORD-<毫秒时间戳 base36>-<8 位随机>"""
    timestamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(8))
    return f"ORD-{timestamp}-{suffix}"


class OrderService:
    """订单核心服务类"""

    def __init__(self, db: Session, rlock: Redlock = None):
        self.db = db
        self.rlock = rlock

    # ==================== 分布式锁 ====================

    def _acquire_inventory_locks(self, product_ids: Iterable[int]) -> list:
        """按商品ID升序加锁，避免交叉等待"""
        locks = []
        if not self.rlock:
            return locks
        for product_id in sorted(set(product_ids)):
            lock = self.rlock.lock(INVENTORY_LOCK_KEY.format(product_id=product_id), 10000)  # 10秒TTL
            if not lock:
                self._release_inventory_locks(locks)
                raise LockBusyError("Inventory is busy, please retry")
            locks.append(lock)
        return locks

    def _release_inventory_locks(self, locks: list):
        if self.rlock and locks:
            for lock in locks:
                self.rlock.unlock(lock)

    # ==================== 查询 ====================

    def _get_order_or_404(self, order_id: int) -> Order:
        order = self.db.execute(
            select(Order).where(Order.id == order_id)
        ).scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def _get_owned_order(self, order_id: int, principal: Principal, action: str = "view") -> Order:
        order = self._get_order_or_404(order_id)
        if not principal.can_access(order.user_id):
            raise ForbiddenError(f"You don't have permission to {action} this order")
        return order

    def get_order(self, order_id: int, principal: Principal) -> Order:
        """订单详情（含明细），仅所有者或管理员可见"""
        return self._get_owned_order(order_id, principal)

    def get_user_orders(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[Order], int]:
        """用户订单分页，按下单时间倒序；没有订单时返回空列表"""
        offset = (page - 1) * limit
        total = self.db.execute(
            select(func.count()).select_from(Order).where(Order.user_id == user_id)
        ).scalar_one()
        orders = self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.ordered_at.desc(), Order.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return list(orders), total

    # ==================== 创建订单 ====================

    def _next_order_number(self) -> str:
        for _ in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
            order_number = generate_order_number()
            exists = self.db.execute(
                select(Order.id).where(Order.order_number == order_number)
            ).first()
            if not exists:
                return order_number
            logger.warning(f"订单号冲突，重新生成: {order_number}")
        raise InternalError("Failed to generate a unique order number")

    def _active_allocation(self, product_id: int, now: datetime) -> Optional[DropProduct]:
        """商品在进行中 Drop 的限量分配"""
        return self.db.execute(
            select(DropProduct)
            .join(Drop, DropProduct.drop_id == Drop.id)
            .where(
                DropProduct.product_id == product_id,
                Drop.status == DropStatus.ACTIVE,
                Drop.start_date <= now,
                Drop.end_date >= now,
            )
            .order_by(Drop.start_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    def create_order(self, user_id: int, items: List[dict]) -> dict:
        """创建订单（校验库存、快照价格、原子扣减）

        Args:
            user_id: 下单用户
            items: [{"product_id": 1, "quantity": 2}, ...]

        订单、明细、库存扣减和 Drop 限量占用在同一个事务中提交，
        任何一项失败整单回滚。
        """
        if not items:
            raise ValidationError("Order must contain at least one item")
        for item in items:
            quantity = item.get("quantity")
            if not quantity or quantity <= 0 or quantity > settings.ORDER_ITEM_MAX_QUANTITY:
                raise ValidationError(
                    f"Quantity must be between 1 and {settings.ORDER_ITEM_MAX_QUANTITY}"
                )

        locks = self._acquire_inventory_locks(item["product_id"] for item in items)
        try:
            now = utcnow()

            # 1. 校验商品与库存，计算总价
            total_amount = 0
            validated = []
            for item in items:
                product = self.db.execute(
                    select(Product)
                    .where(Product.id == item["product_id"])
                    .with_for_update()
                ).scalar_one_or_none()
                if not product:
                    raise NotFoundError(f"Product {item['product_id']} not found")
                if not product.stock or product.stock < item["quantity"]:
                    raise ConflictError(f"Insufficient stock for product {product.name}")

                line_total = product.price * item["quantity"]
                total_amount += line_total
                validated.append((product, item["quantity"], line_total))

            # 2. 创建订单
            order = Order(
                user_id=user_id,
                order_number=self._next_order_number(),
                total_amount=total_amount,
                status=OrderStatus.PENDING,
                ordered_at=now,
            )
            self.db.add(order)
            self.db.flush()

            # 3. 扣减库存 / 占用限量，写入明细
            for product, quantity, line_total in validated:
                drop_id = None
                allocation = self._active_allocation(product.id, now)
                if allocation:
                    result = self.db.execute(
                        update(DropProduct)
                        .where(
                            DropProduct.id == allocation.id,
                            DropProduct.sold_quantity + quantity <= DropProduct.limited_quantity,
                        )
                        .values(sold_quantity=DropProduct.sold_quantity + quantity)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise ConflictError(f"Drop allocation sold out for product {product.name}")
                    drop_id = allocation.drop_id

                result = self.db.execute(
                    update(Product)
                    .where(Product.id == product.id, Product.stock >= quantity)
                    .values(stock=Product.stock - quantity)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConflictError(f"Insufficient stock for product {product.name}")

                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    drop_id=drop_id,
                    quantity=quantity,
                    unit_price=product.price,
                    total_price=line_total,
                ))

            self.db.commit()
            logger.info(
                f"创建订单成功: order_number={order.order_number}, user_id={user_id}, "
                f"total_amount={total_amount}, items={len(validated)}"
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"创建订单失败: user_id={user_id}, error={str(e)}")
            raise
        finally:
            self._release_inventory_locks(locks)

        # 条件 UPDATE 绕过了会话，后续读取需重新加载
        self.db.expire_all()
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "total_amount": total_amount,
            "item_count": len(validated),
        }

    # ==================== 状态迁移 ====================

    def _release_inventory(self, order: Order):
        """归还库存与 Drop 限量（进入 cancelled 时）"""
        for item in order.items:
            self.db.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .values(stock=Product.stock + item.quantity)
                .execution_options(synchronize_session=False)
            )
            if item.drop_id is not None:
                self.db.execute(
                    update(DropProduct)
                    .where(
                        DropProduct.drop_id == item.drop_id,
                        DropProduct.product_id == item.product_id,
                        DropProduct.sold_quantity >= item.quantity,
                    )
                    .values(sold_quantity=DropProduct.sold_quantity - item.quantity)
                    .execution_options(synchronize_session=False)
                )

    def _transition(self, order: Order, new_status: OrderStatus, **fields) -> Order:
        """校验迁移后再写入；fields 为随迁移一起提交的附加字段"""
        current = OrderStatus(order.status)
        if new_status not in ORDER_TRANSITIONS[current]:
            raise ValidationError(f"Cannot transition from {current.value} to {new_status.value}")

        locks = []
        if new_status == OrderStatus.CANCELLED:
            locks = self._acquire_inventory_locks(item.product_id for item in order.items)
        try:
            for key, value in fields.items():
                setattr(order, key, value)
            order.status = new_status
            if new_status == OrderStatus.PAID:
                order.paid_at = utcnow()
            elif new_status == OrderStatus.CANCELLED:
                order.cancelled_at = utcnow()
                self._release_inventory(order)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"订单状态更新失败: order_id={order.id}, error={str(e)}")
            raise
        finally:
            self._release_inventory_locks(locks)

        self.db.expire_all()
        logger.info(f"订单状态更新: order_id={order.id}, {current.value} -> {new_status.value}")
        return order

    def update_status(self, order_id: int, new_status: OrderStatus) -> Order:
        """管理员更新订单状态（按迁移表校验）"""
        order = self._get_order_or_404(order_id)
        return self._transition(order, OrderStatus(new_status))

    def cancel_order(self, order_id: int, principal: Principal) -> Order:
        """取消订单，仅 pending 状态允许"""
        order = self._get_owned_order(order_id, principal, action="cancel")
        if order.status != OrderStatus.PENDING:
            raise ConflictError(f"Cannot cancel order with status: {OrderStatus(order.status).value}")
        return self._transition(order, OrderStatus.CANCELLED)

    # ==================== 支付对接 ====================

    def get_payment_request(self, order_id: int, principal: Principal) -> dict:
        """跳转支付所需的订单信息"""
        order = self._get_owned_order(order_id, principal)
        if order.status != OrderStatus.PENDING:
            raise ConflictError(f"Order with status {OrderStatus(order.status).value} cannot be paid")

        customer_name = order.shipment.recipient_name if order.shipment else None
        if not customer_name:
            user = self.db.execute(
                select(User).where(User.id == order.user_id)
            ).scalar_one_or_none()
            customer_name = user.name if user else None

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "amount": order.total_amount,
            "order_name": f"Order #{order.order_number}",
            "customer_name": customer_name,
        }

    def apply_payment_result(
        self,
        order_number: str,
        success: bool,
        payment_key: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Order:
        """支付渠道回调：成功 -> paid，失败 -> failed；重复回调直接返回"""
        order = self.db.execute(
            select(Order).where(Order.order_number == order_number)
        ).scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found")

        target = OrderStatus.PAID if success else OrderStatus.FAILED
        if order.status == target:
            logger.info(f"重复的支付回调: order_number={order_number}, status={target.value}")
            return order

        fields = {}
        if payment_key is not None:
            fields["payment_key"] = payment_key
        if payment_method is not None:
            fields["payment_method"] = payment_method
        return self._transition(order, target, **fields)

    # ==================== 物流 ====================

    def create_or_update_shipment(self, order_id: int, principal: Principal, **fields) -> Shipment:
        """保存收货信息（upsert）；已存在时只覆盖联系方式与地址"""
        for field, message in REQUIRED_SHIPPING_FIELDS.items():
            if not (fields.get(field) or "").strip():
                raise ValidationError(message)

        order = self._get_owned_order(order_id, principal, action="update")
        shipment = self.db.execute(
            select(Shipment).where(Shipment.order_id == order.id)
        ).scalar_one_or_none()

        try:
            if shipment:
                shipment.recipient_name = fields["recipient_name"]
                shipment.recipient_phone = fields["recipient_phone"]
                shipment.address = fields["address"]
                shipment.address_detail = fields.get("address_detail")
                shipment.postal_code = fields["postal_code"]
            else:
                shipment = Shipment(
                    order_id=order.id,
                    recipient_name=fields["recipient_name"],
                    recipient_phone=fields["recipient_phone"],
                    address=fields["address"],
                    address_detail=fields.get("address_detail"),
                    postal_code=fields["postal_code"],
                    status=ShipmentStatus.PENDING,
                )
                self.db.add(shipment)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"保存物流信息失败: order_id={order_id}, error={str(e)}")
            raise
        self.db.refresh(shipment)
        logger.info(f"保存物流信息: order_id={order_id}, shipment_id={shipment.id}")
        return shipment

    def get_shipment(self, order_id: int, principal: Principal) -> Optional[Shipment]:
        """尚未填写物流信息时返回 None"""
        order = self._get_owned_order(order_id, principal)
        return self.db.execute(
            select(Shipment).where(Shipment.order_id == order.id)
        ).scalar_one_or_none()

    def update_shipment_status(
        self,
        order_id: int,
        new_status: ShipmentStatus,
        tracking_number: Optional[str] = None,
        shipping_company: Optional[str] = None,
    ) -> Shipment:
        """履约状态推进；shipped_at / delivered_at 只在进入对应状态时写入"""
        self._get_order_or_404(order_id)
        shipment = self.db.execute(
            select(Shipment).where(Shipment.order_id == order_id)
        ).scalar_one_or_none()
        if not shipment:
            raise NotFoundError("Shipment not found")

        current = ShipmentStatus(shipment.status)
        new_status = ShipmentStatus(new_status)
        if new_status not in SHIPMENT_TRANSITIONS[current]:
            raise ValidationError(f"Cannot transition shipment from {current.value} to {new_status.value}")

        try:
            shipment.status = new_status
            if tracking_number is not None:
                shipment.tracking_number = tracking_number
            if shipping_company is not None:
                shipment.shipping_company = shipping_company
            if new_status == ShipmentStatus.SHIPPED:
                shipment.shipped_at = utcnow()
            elif new_status == ShipmentStatus.DELIVERED:
                shipment.delivered_at = utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"物流状态更新失败: order_id={order_id}, error={str(e)}")
            raise
        self.db.refresh(shipment)
        logger.info(f"物流状态更新: order_id={order_id}, {current.value} -> {new_status.value}")
        return shipment
