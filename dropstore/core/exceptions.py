"""业务异常定义

所有业务异常都是 HTTPException 的子类：Service 层在发现问题的位置直接抛出，
路由层原样透传，由 main.py 中的全局处理器统一渲染。
"""

from fastapi import HTTPException


class ServiceError(HTTPException):
    """业务异常基类"""
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message


class ValidationError(ServiceError):
    """输入不合法（空字段、时间区间错误、空订单等）"""
    status_code = 400
    code = "BAD_REQUEST"


class UnauthorizedError(ServiceError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ServiceError):
    """非资源所有者或非管理员"""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    """操作会破坏状态不变量（重复分配、库存不足、非法状态迁移等）"""
    status_code = 409
    code = "CONFLICT"


class LockBusyError(ServiceError):
    """分布式锁获取失败"""
    status_code = 429
    code = "TOO_MANY_REQUESTS"


class InternalError(ServiceError):
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"


__all__ = [
    "ServiceError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "LockBusyError",
    "InternalError",
]
