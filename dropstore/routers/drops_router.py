"""Drop 公开 API"""

from fastapi import APIRouter, HTTPException, Path
import logging

from dropstore.core.dependencies import DropServiceDep
from dropstore.core.exceptions import InternalError
from dropstore.models.drop import DropStatus
from dropstore.schemas.drop import DropSchema, DropProductSchema, CountdownSchema
from dropstore.services.drop_service import DropService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/drops",
    tags=["Drop"],
    responses={
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)


def _drop_or_none(drop):
    return DropSchema.model_validate(drop) if drop else None


@router.get("/current", summary="当前进行中的 Drop")
def get_current_drop(service: DropService = DropServiceDep):
    try:
        return {"success": True, "data": _drop_or_none(service.get_current_drop())}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询当前 Drop 失败: {str(e)}")
        raise InternalError("Failed to fetch current drop")


@router.get("/next", summary="下一个即将开始的 Drop")
def get_next_drop(service: DropService = DropServiceDep):
    try:
        return {"success": True, "data": _drop_or_none(service.get_next_drop())}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询下一个 Drop 失败: {str(e)}")
        raise InternalError("Failed to fetch next drop")


@router.get(
    "/countdown",
    summary="当前 Drop 倒计时",
    description="""返回当前 Drop 的剩余时间。

    **注意：**
    - 结束时间已过但调度器还未更新状态时，is_ended 为 true
    - 展示时以 is_ended 为准，而不是 Drop 状态
    """
)
def get_current_countdown(service: DropService = DropServiceDep):
    try:
        countdown = service.get_countdown()
        return {
            "success": True,
            "data": CountdownSchema(**countdown) if countdown else None
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询倒计时失败: {str(e)}")
        raise InternalError("Failed to fetch countdown")


@router.get("/status/{status}", summary="按状态查询 Drop")
def get_drops_by_status(
    status: DropStatus = Path(..., description="upcoming / active / ended"),
    service: DropService = DropServiceDep
):
    try:
        drops = service.get_drops_by_status(status)
        return {"success": True, "data": [DropSchema.model_validate(d) for d in drops]}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"按状态查询 Drop 失败: {str(e)}")
        raise InternalError("Failed to fetch drops")


@router.get("/{drop_id}", summary="Drop 详情")
def get_drop(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    service: DropService = DropServiceDep
):
    try:
        return {"success": True, "data": _drop_or_none(service.get_drop(drop_id))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询 Drop 失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to fetch drop")


@router.get("/{drop_id}/products", summary="Drop 商品（含限量、已售、剩余）")
def get_drop_products(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    service: DropService = DropServiceDep
):
    try:
        views = service.get_drop_products(drop_id)
        return {"success": True, "data": [DropProductSchema.model_validate(v) for v in views]}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询 Drop 商品失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to fetch drop products")
