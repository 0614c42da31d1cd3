"""
遥测投递端。

- send():     执行带退避的投递，任何异常都只记日志不外抛
- dispatch(): 以独立 asyncio 任务发送，调用方不等待结果
- aclose():   关闭前等待尚未完成的投递
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Optional

import httpx

from ..config import settings
from ..logging_config import get_logger
from .events import TelemetryEvent
from .retry import Clock, DeliveryReport, Rand, RetryPolicy, Sleep, deliver

logger = get_logger(__name__)


class TelemetrySink:
    """采集端：POST JSON + Bearer 鉴权。endpoint / token 任一为空时为 no-op。"""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        token: Optional[str] = None,
        *,
        app: Optional[str] = None,
        env: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        attempt_timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        rand: Rand = random.random,
    ):
        self.endpoint = (settings.telemetry_endpoint if endpoint is None else endpoint).strip()
        self.token = (settings.telemetry_token if token is None else token).strip()
        self.app = app or settings.telemetry_app
        self.env = env or settings.telemetry_env
        self.policy = policy or RetryPolicy(
            attempts=settings.telemetry_attempts,
            min_delay_ms=settings.telemetry_min_delay_ms,
            max_delay_ms=settings.telemetry_max_delay_ms,
            deadline_ms=settings.telemetry_deadline_ms,
            jitter_ratio=settings.telemetry_jitter_ratio,
        )
        self.attempt_timeout_s = attempt_timeout_s or settings.telemetry_attempt_timeout_seconds
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._rand = rand
        self._client: Optional[httpx.AsyncClient] = None
        self._tasks: set[asyncio.Task[Optional[DeliveryReport]]] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint and self.token)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=self.attempt_timeout_s,
            )
        return self._client

    async def send(self, event: TelemetryEvent) -> Optional[DeliveryReport]:
        """投递一条事件。禁用时返回 None；失败只记录日志。"""
        if not self.enabled:
            return None

        try:
            body = event.to_body(self.app, self.env)
            client = self._get_client()
            headers = {
                "Authorization": f"Bearer {self.token}",
                "Content-Type": "application/json; charset=utf-8",
            }

            async def send_once() -> int:
                resp = await client.post(
                    self.endpoint,
                    json=body,
                    headers=headers,
                    timeout=self.attempt_timeout_s,
                )
                return resp.status_code

            report = await deliver(
                send_once,
                self.policy,
                clock=self._clock,
                sleep=self._sleep,
                rand=self._rand,
            )
        except Exception as e:
            logger.warning(
                "telemetry_send_failed",
                kind=event.kind,
                error=f"{type(e).__name__}: {e}",
            )
            return None

        if report.delivered:
            logger.debug("telemetry_delivered", kind=event.kind, attempts=report.attempts)
        else:
            logger.warning(
                "telemetry_give_up",
                kind=event.kind,
                attempts=report.attempts,
                delays_ms=report.delays,
                last_status=report.last_status,
                last_error=report.last_error,
            )
        return report

    def dispatch(self, event: TelemetryEvent) -> Optional[asyncio.Task[Optional[DeliveryReport]]]:
        """fire-and-forget：创建独立任务后立即返回。"""
        if not self.enabled:
            return None
        task = asyncio.create_task(self.send(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_sink: Optional[TelemetrySink] = None


def get_telemetry_sink() -> TelemetrySink:
    """获取全局遥测实例"""
    global _sink
    if _sink is None:
        _sink = TelemetrySink()
    return _sink


async def close_telemetry_sink() -> None:
    global _sink
    if _sink is not None:
        await _sink.aclose()
        _sink = None
