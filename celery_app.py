"""Celery 配置文件"""

from celery import Celery
from celery.schedules import crontab

from dropstore.core.config import settings

# 创建 Celery 应用实例
app = Celery('dropstore_worker', include=['tasks.drop_tasks'])

# 配置 Redis 作为 broker 和 backend
app.conf.broker_url = f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/1"
app.conf.result_backend = f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/2"

# 任务序列化配置
app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']

# 时区配置
app.conf.timezone = 'UTC'
app.conf.enable_utc = True

# 任务路由配置
app.conf.task_routes = {
    'tasks.drops.*': {'queue': 'drops'},
}

# 定时任务：每分钟整点扫描 Drop 状态（不启用进程内调度器时使用）
app.conf.beat_schedule = {
    'sweep-drop-statuses': {
        'task': 'tasks.drops.sweep_drop_statuses',
        'schedule': crontab(minute='*'),
    },
}

# Worker 配置
app.conf.worker_prefetch_multiplier = 1
app.conf.task_acks_late = True

# 导出应用实例
__all__ = ['app']
