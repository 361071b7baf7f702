"""出站请求并发限制

所有拉取任务共享同一个 FetchLimiter，限制同时在途的请求数，
以遵守远端的速率限制。内部只有计数器 + 条件变量，无其它共享状态。
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

logger = logging.getLogger(__name__)


@dataclass
class LimiterStatus:
    """并发槽位快照"""

    capacity: int = 0
    in_use: int = 0
    available: int = 0
    peak: int = 0           # 运行以来的最大同时在途数
    tasks: list[str] = field(default_factory=list)
    timestamp: float = 0.0


class FetchLimiter:
    """有界并发槽位，acquire 在槽位耗尽时阻塞等待"""

    def __init__(self, capacity: int = 8) -> None:
        self.capacity = max(1, capacity)
        self._cond = threading.Condition()
        self._in_use = 0
        self._peak = 0
        self._tasks: list[str] = []

    def acquire(self, task_name: str = "", timeout: float | None = None) -> bool:
        """获取一个槽位；timeout 内未获取到返回 False"""
        with self._cond:
            if not self._cond.wait_for(lambda: self._in_use < self.capacity, timeout):
                logger.warning("等待并发槽位超时: %s (%d/%d)", task_name, self._in_use, self.capacity)
                return False
            self._in_use += 1
            self._peak = max(self._peak, self._in_use)
            if task_name:
                self._tasks.append(task_name)
            logger.debug("槽位已分配: %s (%d/%d)", task_name, self._in_use, self.capacity)
            return True

    def release(self, task_name: str = "") -> None:
        with self._cond:
            self._in_use = max(0, self._in_use - 1)
            if task_name and task_name in self._tasks:
                self._tasks.remove(task_name)
            self._cond.notify()

    @contextmanager
    def slot(self, task_name: str = "") -> Iterator[None]:
        """阻塞获取槽位，退出时释放"""
        self.acquire(task_name)
        try:
            yield
        finally:
            self.release(task_name)

    def status(self) -> LimiterStatus:
        with self._cond:
            return LimiterStatus(
                capacity=self.capacity,
                in_use=self._in_use,
                available=self.capacity - self._in_use,
                peak=self._peak,
                tasks=list(self._tasks),
                timestamp=time.time(),
            )
