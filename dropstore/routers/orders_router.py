"""订单 API（登录用户，仅能操作自己的订单；状态更新需管理员）"""

from fastapi import APIRouter, HTTPException, Path, Query, Body
import logging

from dropstore.core.dependencies import OrderServiceDep, UserDep, AdminDep
from dropstore.core.exceptions import InternalError
from dropstore.core.security import Principal
from dropstore.schemas.order import (
    CreateOrderRequest,
    UpdateOrderStatusRequest,
    ShipmentRequest,
    UpdateShipmentStatusRequest,
    PaymentResultRequest,
    CreateOrderResponse,
    OrderSchema,
    OrderDetailSchema,
    OrderListResponse,
    ShipmentSchema,
    PaymentRequestSchema,
)
from dropstore.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单"],
    responses={
        400: {"description": "请求参数错误"},
        401: {"description": "未登录"},
        403: {"description": "无权访问该订单"},
        404: {"description": "资源未找到"},
        409: {"description": "状态冲突"},
        422: {"description": "请求验证失败"},
        429: {"description": "库存操作冲突"},
        500: {"description": "服务器内部错误"}
    }
)


@router.post(
    "",
    status_code=201,
    summary="创建订单",
    description="""校验商品与库存后创建订单，状态为 pending。

    **特点：**
    - 下单时快照商品单价
    - 库存扣减、Drop 限量占用与订单写入在同一事务中
    - 任意一项失败整单回滚
    """
)
def create_order(
    request: CreateOrderRequest = Body(...),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    try:
        result = service.create_order(
            user.user_id,
            [item.model_dump() for item in request.items],
        )
        return {"success": True, "message": "下单成功", "data": CreateOrderResponse(**result)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"创建订单失败: {str(e)}")
        raise InternalError("Failed to create order")


@router.get("", summary="我的订单（分页）")
def get_user_orders(
    page: int = Query(1, ge=1, description="页码"),
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    try:
        orders, total = service.get_user_orders(user.user_id, page=page, limit=limit)
        return {
            "success": True,
            "data": OrderListResponse(
                orders=[OrderSchema.model_validate(o) for o in orders],
                page=page,
                limit=limit,
                total=total,
            )
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询用户订单失败: user_id={user.user_id}, error={str(e)}")
        raise InternalError("Failed to fetch orders")


@router.post("/payment-callback", summary="支付结果回调（网关调用）")
def apply_payment_result(
    request: PaymentResultRequest = Body(...),
    admin: Principal = AdminDep,
    service: OrderService = OrderServiceDep
):
    try:
        order = service.apply_payment_result(
            request.order_number,
            request.success,
            payment_key=request.payment_key,
            payment_method=request.payment_method,
        )
        return {"success": True, "data": OrderSchema.model_validate(order)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"处理支付回调失败: order_number={request.order_number}, error={str(e)}")
        raise InternalError("Failed to apply payment result")


@router.get("/{order_id}", summary="订单详情")
def get_order(
    order_id: int = Path(..., gt=0, description="订单ID"),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    try:
        order = service.get_order(order_id, user)
        return {"success": True, "data": OrderDetailSchema.model_validate(order)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询订单失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to fetch order")


@router.post("/{order_id}/cancel", summary="取消订单（仅 pending）")
def cancel_order(
    order_id: int = Path(..., gt=0, description="订单ID"),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    try:
        service.cancel_order(order_id, user)
        return {"success": True, "message": "Order cancelled successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"取消订单失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to cancel order")


@router.patch("/{order_id}/status", summary="更新订单状态（管理员）")
def update_order_status(
    order_id: int = Path(..., gt=0, description="订单ID"),
    request: UpdateOrderStatusRequest = Body(...),
    admin: Principal = AdminDep,
    service: OrderService = OrderServiceDep
):
    try:
        order = service.update_status(order_id, request.status)
        return {"success": True, "data": OrderSchema.model_validate(order)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新订单状态失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to update order status")


@router.get("/{order_id}/payment", summary="跳转支付所需信息")
def get_payment_request(
    order_id: int = Path(..., gt=0, description="订单ID"),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    try:
        return {
            "success": True,
            "data": PaymentRequestSchema(**service.get_payment_request(order_id, user))
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询支付信息失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to fetch payment information")


@router.put("/{order_id}/shipment", summary="保存收货信息")
def create_or_update_shipment(
    order_id: int = Path(..., gt=0, description="订单ID"),
    request: ShipmentRequest = Body(...),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    try:
        shipment = service.create_or_update_shipment(order_id, user, **request.model_dump())
        return {
            "success": True,
            "message": "Shipment information saved",
            "data": ShipmentSchema.model_validate(shipment)
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"保存物流信息失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to save shipment information")


@router.get("/{order_id}/shipment", summary="查询物流信息")
def get_shipment(
    order_id: int = Path(..., gt=0, description="订单ID"),
    user: Principal = UserDep,
    service: OrderService = OrderServiceDep
):
    """尚未填写时 data 为 null"""
    try:
        shipment = service.get_shipment(order_id, user)
        return {
            "success": True,
            "data": ShipmentSchema.model_validate(shipment) if shipment else None
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询物流信息失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to fetch shipment information")


@router.patch("/{order_id}/shipment/status", summary="更新物流状态（管理员）")
def update_shipment_status(
    order_id: int = Path(..., gt=0, description="订单ID"),
    request: UpdateShipmentStatusRequest = Body(...),
    admin: Principal = AdminDep,
    service: OrderService = OrderServiceDep
):
    try:
        shipment = service.update_shipment_status(
            order_id,
            request.status,
            tracking_number=request.tracking_number,
            shipping_company=request.shipping_company,
        )
        return {"success": True, "data": ShipmentSchema.model_validate(shipment)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新物流状态失败: order_id={order_id}, error={str(e)}")
        raise InternalError("Failed to update shipment status")
