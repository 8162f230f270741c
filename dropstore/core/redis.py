"""Redis 客户端配置模块"""

import os

from redis.asyncio import Redis as AsyncRedis
from redlock import Redlock

from dropstore.core.config import settings

# 统一的 Redis 配置
REDIS_URL = f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"

# 基础 Redis 客户端
async_redis = AsyncRedis.from_url(REDIS_URL, decode_responses=True)

# 锁的资源名
INVENTORY_LOCK_KEY = "lock:inventory:{product_id}"
DROP_SWEEP_LOCK_KEY = "lock:drops:status-sweep"

# Redlock 配置（支持单实例和多实例）
def create_redlock(redis_hosts: str = None):
    """根据环境变量动态创建 Redlock 实例

    REDIS_HOSTS 为逗号分隔的主机列表时启用多实例模式。
    """
    redis_hosts = redis_hosts or os.getenv("REDIS_HOSTS", settings.REDIS_HOST)

    if "," in redis_hosts:  # 多实例模式
        hosts = redis_hosts.split(",")
        servers = [
            {"host": host.strip(), "port": settings.REDIS_PORT, "db": settings.REDIS_DB}
            for host in hosts
        ]
    else:  # 单实例模式
        servers = [
            {"host": redis_hosts.strip(), "port": settings.REDIS_PORT, "db": settings.REDIS_DB}
        ]

    return Redlock(servers)

redlock = create_redlock()

# 导出
__all__ = [
    "async_redis",
    "redlock",
    "create_redlock",
    "REDIS_URL",
    "INVENTORY_LOCK_KEY",
    "DROP_SWEEP_LOCK_KEY",
]
