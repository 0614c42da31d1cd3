"""
投递重试状态机。

IDLE -> ATTEMPTING(1..N) -> SUCCESS | GIVE_UP

- 202 / 204       -> 成功
- 401             -> 终止（凭证错误不重试）
- 429 / 5xx / 网络 -> 可重试
- 其他状态码       -> 终止

退避：min(max_delay, min_delay * 2^(k-1)) * (1 ± jitter)，整体受 deadline 约束。
时钟 / sleep / 随机数都可注入，便于脱离网络单测。
"""

from __future__ import annotations

import asyncio
import math
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

SendOnce = Callable[[], Awaitable[int]]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
Rand = Callable[[], float]


class RetryState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    GIVE_UP = "give_up"


class Outcome(str, Enum):
    SUCCESS = "success"
    TERMINAL = "terminal"
    TRANSIENT = "transient"


@dataclass
class RetryPolicy:
    """重试参数（毫秒）。构造时做下限 / 区间修正。"""

    attempts: int = 3
    min_delay_ms: int = 200
    max_delay_ms: int = 2000
    deadline_ms: int = 30000
    jitter_ratio: float = 0.3

    def __post_init__(self) -> None:
        self.attempts = max(1, int(self.attempts))
        self.min_delay_ms = max(50, int(self.min_delay_ms))
        self.max_delay_ms = max(self.min_delay_ms, int(self.max_delay_ms))
        self.jitter_ratio = min(1.0, max(0.0, float(self.jitter_ratio)))


@dataclass
class DeliveryReport:
    state: RetryState = RetryState.IDLE
    attempts: int = 0
    delays: list[int] = field(default_factory=list)
    last_status: Optional[int] = None
    last_error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.state is RetryState.SUCCESS


def classify_status(status: int) -> Outcome:
    if status in (202, 204):
        return Outcome.SUCCESS
    if status == 401:
        return Outcome.TERMINAL
    if status == 429 or 500 <= status <= 599:
        return Outcome.TRANSIENT
    return Outcome.TERMINAL


def backoff_delay(attempt: int, policy: RetryPolicy, rand: float) -> int:
    """第 attempt 次失败后的等待毫秒数。rand 取 [0, 1)。"""
    base = min(policy.max_delay_ms, policy.min_delay_ms * (2 ** (attempt - 1)))
    factor = 1 + (rand * 2 - 1) * policy.jitter_ratio
    return max(0, math.floor(base * factor))


async def deliver(
    send_once: SendOnce,
    policy: RetryPolicy,
    *,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
    rand: Rand = random.random,
) -> DeliveryReport:
    """运行状态机直到成功或放弃。传输异常按可重试处理，不向外抛出。"""
    report = DeliveryReport()
    started = clock()

    for attempt in range(1, policy.attempts + 1):
        report.state = RetryState.ATTEMPTING
        report.attempts = attempt
        try:
            status = await send_once()
        except Exception as e:
            report.last_status = None
            report.last_error = f"{type(e).__name__}: {e}"
            outcome = Outcome.TRANSIENT
        else:
            report.last_status = status
            report.last_error = None
            outcome = classify_status(status)

        if outcome is Outcome.SUCCESS:
            report.state = RetryState.SUCCESS
            return report
        if outcome is Outcome.TERMINAL:
            break

        left_ms = policy.deadline_ms - (clock() - started) * 1000
        if attempt >= policy.attempts or left_ms <= 0:
            break

        wait_ms = int(min(left_ms, backoff_delay(attempt, policy, rand())))
        report.delays.append(wait_ms)
        await sleep(wait_ms / 1000)

    report.state = RetryState.GIVE_UP
    return report
