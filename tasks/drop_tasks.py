"""Drop 相关的 Celery 任务"""

from celery_app import app
from dropstore.db.session import SessionLocal
from dropstore.services.drop_service import DropService
from dropstore.core.redis import redlock, DROP_SWEEP_LOCK_KEY
import logging

logger = logging.getLogger(__name__)

@app.task(name='tasks.drops.sweep_drop_statuses')
def sweep_drop_statuses():
    """扫描并推进 Drop 状态（upcoming -> active -> ended）

    多个 worker / beat 同时触发时，通过 Redlock 保证同一时刻只有一个扫描。

    Returns:
        更新的 Drop 数量
    """
    lock = redlock.lock(DROP_SWEEP_LOCK_KEY, 55000)
    if not lock:
        logger.info("Drop 状态扫描正在其他 worker 上执行，跳过")
        return 0

    db = SessionLocal()
    try:
        service = DropService(db)
        count = service.update_statuses_automatically()
        if count > 0:
            logger.info(f"Drop 状态扫描完成: 更新 {count} 个 Drop")
        return count
    except Exception as e:
        logger.error(f"Drop 状态扫描失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()
        redlock.unlock(lock)

# 导出任务
__all__ = [
    'sweep_drop_statuses',
]
