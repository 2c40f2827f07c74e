"""
令牌桶限流器

控制向 GitHub API 发送请求的速率，避免触发服务端限流。
"""

import asyncio
import math
import time
from typing import Awaitable, Callable


class TokenBucket:
    """令牌桶"""

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        refill_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        初始化令牌桶

        Args:
            capacity: 桶容量（最大突发请求数）
            refill_rate: 每个间隔补充的令牌数
            refill_interval: 补充间隔（秒）
            clock: 单调时钟
            sleep: 异步等待函数
        """
        if capacity < 1:
            raise ValueError(f"capacity 必须 >= 1: {capacity}")
        if refill_rate <= 0 or refill_interval <= 0:
            raise ValueError("refill_rate 和 refill_interval 必须为正数")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self.refill_interval = refill_interval
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        """按已经过的完整间隔补充令牌，不足一个间隔的部分留到下次，总数不超过容量"""
        intervals = int((self._clock() - self._last_refill) // self.refill_interval)
        if intervals > 0:
            self._tokens = min(float(self.capacity), self._tokens + intervals * self.refill_rate)
            self._last_refill += intervals * self.refill_interval

    @property
    def available(self) -> float:
        """当前可用令牌数"""
        self._refill()
        return self._tokens

    async def consume(self, tokens: int = 1) -> None:
        """
        消耗令牌，不足时等待

        Args:
            tokens: 需要的令牌数
        """
        if tokens < 1 or tokens > self.capacity:
            raise ValueError(f"tokens 必须在 1 到 {self.capacity} 之间: {tokens}")

        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return

                # 等到补足所需令牌的那个间隔结束
                intervals = math.ceil((tokens - self._tokens) / self.refill_rate)
                wait = self._last_refill + intervals * self.refill_interval - self._clock()
                await self._sleep(max(0.0, wait))
