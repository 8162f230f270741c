"""依赖注入配置模块"""

from typing import Optional

from fastapi import Depends

# 数据库会话依赖
from dropstore.db.session import SessionLocal
from sqlalchemy.orm import Session

# Redis 依赖
from dropstore.core.redis import redlock, async_redis

from dropstore.core.security import Principal, get_current_principal, require_user, require_admin
from dropstore.services.catalog_service import CatalogService
from dropstore.services.drop_service import DropService
from dropstore.services.order_service import OrderService


def get_async_redis():
    """获取异步 Redis 客户端"""
    return async_redis

def get_redlock():
    """获取 Redlock 分布式锁实例"""
    return redlock

def get_db() -> Session:
    """获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db=db)


def get_drop_service(db: Session = Depends(get_db)) -> DropService:
    return DropService(db=db)


def get_order_service(
    db: Session = Depends(get_db),
    rlock = Depends(get_redlock)
) -> OrderService:
    """获取订单服务实例（依赖注入）"""
    return OrderService(db=db, rlock=rlock)


def get_user(principal: Optional[Principal] = Depends(get_current_principal)) -> Principal:
    """已登录用户"""
    return require_user(principal)


def get_admin(principal: Optional[Principal] = Depends(get_current_principal)) -> Principal:
    """管理员"""
    return require_admin(principal)


# 常用的依赖注入别名
AsyncRedisDep = Depends(get_async_redis)
CatalogServiceDep = Depends(get_catalog_service)
DropServiceDep = Depends(get_drop_service)
OrderServiceDep = Depends(get_order_service)
UserDep = Depends(get_user)
AdminDep = Depends(get_admin)
