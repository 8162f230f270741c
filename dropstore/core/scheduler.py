"""Drop 状态自动更新调度器

每分钟整点触发一次扫描（upcoming -> active -> ended）。
调度器是显式创建的对象，由应用启动 / 关闭钩子负责 start / stop。
"""

import logging
import threading
import time
from typing import Callable, Optional

from redlock import Redlock
from sqlalchemy.orm import Session

from dropstore.core.redis import DROP_SWEEP_LOCK_KEY
from dropstore.services.drop_service import DropService

logger = logging.getLogger(__name__)


class DropStatusScheduler:
    """固定频率的 Drop 状态扫描器

    Args:
        session_factory: 每次扫描创建一个独立会话
        interval_seconds: 扫描周期，默认 60 秒，对齐到周期整点
        rlock: 可选的 Redlock，多进程部署时保证同一时刻只有一个扫描
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: int = 60,
        rlock: Optional[Redlock] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.rlock = rlock
        self._timer: Optional[threading.Timer] = None
        self._state_lock = threading.Lock()
        # 扫描互斥：自动 tick 与手动触发共用
        self._sweep_lock = threading.Lock()

    # ==================== 生命周期 ====================

    def start(self):
        """启动调度器；已在运行时直接返回"""
        with self._state_lock:
            if self._timer is not None:
                logger.info("[Drop Status Scheduler] 已在运行中")
                return
            self._schedule_next()
        logger.info(f"[Drop Status Scheduler] 已启动（每 {self.interval_seconds} 秒执行一次）")

    def stop(self):
        """停止调度器并清理内部状态，之后可以再次 start()"""
        with self._state_lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            logger.info("[Drop Status Scheduler] 已停止")

    def is_running(self) -> bool:
        return self._timer is not None

    def trigger_once(self) -> int:
        """手动执行一次扫描（等待正在进行的扫描结束）；异常向调用方抛出"""
        with self._sweep_lock:
            count = self._sweep()
        logger.info(f"[Drop Status Scheduler] 手动更新完成: {count} 个 Drop")
        return count

    # ==================== 内部实现 ====================

    def _delay_to_next_tick(self) -> float:
        now = time.time()
        return self.interval_seconds - (now % self.interval_seconds)

    def _schedule_next(self):
        timer = threading.Timer(self._delay_to_next_tick(), self._tick)
        timer.daemon = True
        timer.name = "drop-status-scheduler"
        self._timer = timer
        timer.start()

    def _tick(self):
        # 固定频率：先排下一次，再执行本次
        with self._state_lock:
            if self._timer is None:
                return
            self._schedule_next()

        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("[Drop Status Scheduler] 上一次扫描尚未结束，跳过本次")
            return
        try:
            count = self._sweep()
            if count > 0:
                logger.info(f"[Drop Status Scheduler] {count} 个 Drop 状态已更新")
        except Exception as e:
            # 单次失败不影响后续 tick
            logger.error(f"[Drop Status Scheduler] 扫描出错: {e}", exc_info=True)
        finally:
            self._sweep_lock.release()

    def _sweep(self) -> int:
        lock = None
        if self.rlock:
            lock = self.rlock.lock(DROP_SWEEP_LOCK_KEY, self.interval_seconds * 1000)
            if not lock:
                logger.debug("[Drop Status Scheduler] 其他进程正在扫描，跳过")
                return 0

        db = self.session_factory()
        try:
            return DropService(db).update_statuses_automatically()
        finally:
            db.close()
            if self.rlock and lock:
                self.rlock.unlock(lock)
