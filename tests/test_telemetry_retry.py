from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from writer_pipeline.telemetry import (
    Outcome,
    RetryPolicy,
    RetryState,
    TelemetryEvent,
    TelemetrySink,
    backoff_delay,
    classify_status,
    deliver,
    input_signature,
)


class _FakeClock:
    """sleep 推进时钟，不真正等待。"""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _statuses(*codes: int):
    calls: list[int] = []

    async def send_once() -> int:
        calls.append(len(calls) + 1)
        return codes[min(len(calls), len(codes)) - 1]

    return send_once, calls


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (202, Outcome.SUCCESS),
        (204, Outcome.SUCCESS),
        (200, Outcome.TERMINAL),
        (400, Outcome.TERMINAL),
        (401, Outcome.TERMINAL),
        (429, Outcome.TRANSIENT),
        (500, Outcome.TRANSIENT),
        (503, Outcome.TRANSIENT),
    ],
)
def test_classify_status(status: int, expected: Outcome) -> None:
    assert classify_status(status) is expected


def test_policy_clamps_values() -> None:
    policy = RetryPolicy(attempts=0, min_delay_ms=10, max_delay_ms=5, jitter_ratio=3.0)

    assert policy.attempts == 1
    assert policy.min_delay_ms == 50
    assert policy.max_delay_ms == 50
    assert policy.jitter_ratio == 1.0


def test_backoff_schedule_and_jitter_bounds() -> None:
    policy = RetryPolicy(min_delay_ms=200, max_delay_ms=2000, jitter_ratio=0.3)

    assert [backoff_delay(k, policy, 0.5) for k in (1, 2, 3, 4, 5)] == [200, 400, 800, 1600, 2000]
    assert backoff_delay(1, policy, 0.999999) == 259

    wide = RetryPolicy(min_delay_ms=200, max_delay_ms=2000, jitter_ratio=0.5)
    assert backoff_delay(1, wide, 0.0) == 100
    assert backoff_delay(1, wide, 0.75) == 250


def test_401_makes_single_attempt() -> None:
    clock = _FakeClock()
    send_once, calls = _statuses(401)

    report = asyncio.run(deliver(send_once, RetryPolicy(), clock=clock, sleep=clock.sleep, rand=lambda: 0.5))

    assert calls == [1]
    assert report.state is RetryState.GIVE_UP
    assert report.last_status == 401
    assert clock.sleeps == []


def test_500_exhausts_three_attempts_with_backoff() -> None:
    clock = _FakeClock()
    send_once, calls = _statuses(500)

    report = asyncio.run(deliver(send_once, RetryPolicy(attempts=3), clock=clock, sleep=clock.sleep, rand=lambda: 0.5))

    assert len(calls) == 3
    assert report.state is RetryState.GIVE_UP
    assert report.delays == [200, 400]
    assert clock.sleeps == [0.2, 0.4]


def test_deadline_stops_retries_early() -> None:
    clock = _FakeClock()

    async def slow_failure() -> int:
        clock.now += 1.0
        return 500

    policy = RetryPolicy(attempts=3, deadline_ms=1000)
    report = asyncio.run(deliver(slow_failure, policy, clock=clock, sleep=clock.sleep, rand=lambda: 0.5))

    assert report.attempts == 1
    assert report.state is RetryState.GIVE_UP
    assert report.delays == []


def test_wait_is_capped_by_remaining_deadline() -> None:
    clock = _FakeClock()
    send_once, calls = _statuses(503)

    policy = RetryPolicy(attempts=3, min_delay_ms=200, deadline_ms=300)
    report = asyncio.run(deliver(send_once, policy, clock=clock, sleep=clock.sleep, rand=lambda: 0.5))

    assert report.delays == [200, 100]
    assert len(calls) == 3


def test_transport_error_is_retried_then_succeeds() -> None:
    clock = _FakeClock()
    attempts: list[int] = []

    async def flaky() -> int:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("boom")
        return 202

    report = asyncio.run(deliver(flaky, RetryPolicy(), clock=clock, sleep=clock.sleep, rand=lambda: 0.5))

    assert report.state is RetryState.SUCCESS
    assert report.attempts == 2
    assert report.last_error is None


def test_input_signature_is_fnv1a_hex() -> None:
    assert input_signature("") == "811c9dc5"
    assert input_signature("a") == "e40c292c"
    assert input_signature({"style": "lp"}) == input_signature('{"style":"lp"}')


def _sink(handler, clock: _FakeClock, **kwargs) -> TelemetrySink:
    return TelemetrySink(
        "https://collector.test/ingest",
        "secret",
        app="test-app",
        env="test",
        transport=httpx.MockTransport(handler),
        clock=clock,
        sleep=clock.sleep,
        rand=lambda: 0.5,
        **kwargs,
    )


def test_sink_posts_body_with_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    async def scenario():
        sink = _sink(handler, _FakeClock())
        report = await sink.send(TelemetryEvent(phase="success", model="gpt-4o-mini", duration_ms=12, output_len=3))
        await sink.aclose()
        return report

    report = asyncio.run(scenario())

    assert report is not None and report.delivered
    assert seen[0].headers["Authorization"] == "Bearer secret"
    body = json.loads(seen[0].content)
    assert set(body) == {"ts", "app", "env", "kind", "mode", "model", "durationMs", "inputSig", "outputLen", "meta"}
    assert body["kind"] == "writer_complete"
    assert body["app"] == "test-app"
    assert body["meta"]["phase"] == "success"


def test_sink_give_up_on_500_never_raises() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(500)

    async def scenario():
        sink = _sink(handler, _FakeClock(), policy=RetryPolicy(attempts=3))
        report = await sink.send(TelemetryEvent(phase="failure", reason="LLM_TIMEOUT"))
        await sink.aclose()
        return report

    report = asyncio.run(scenario())

    assert len(calls) == 3
    assert report is not None
    assert report.state is RetryState.GIVE_UP


def test_disabled_sink_is_noop() -> None:
    async def scenario():
        sink = TelemetrySink("", "")
        assert sink.dispatch(TelemetryEvent(phase="request")) is None
        result = await sink.send(TelemetryEvent(phase="request"))
        await sink.aclose()
        return result

    assert asyncio.run(scenario()) is None


def test_dispatch_is_detached_and_drained_on_close() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(202)

    async def scenario():
        sink = _sink(handler, _FakeClock())
        task = sink.dispatch(TelemetryEvent(phase="request"))
        assert task is not None
        assert sink.pending == 1
        await sink.aclose()
        return task, sink

    task, sink = asyncio.run(scenario())

    assert task.done()
    assert task.result().delivered
    assert sink.pending == 0
