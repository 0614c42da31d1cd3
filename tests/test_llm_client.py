from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest

from writer_pipeline.errors import ErrorCode, ProviderError
from writer_pipeline.llm.client import LLMClient


def _response(prompt: int, completion: int) -> SimpleNamespace:
    usage = SimpleNamespace(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
    )
    return SimpleNamespace(usage=usage)


def test_unconfigured_client_raises_provider_error() -> None:
    client = LLMClient(api_key="")

    assert client.configured is False
    with pytest.raises(ProviderError) as exc_info:
        client.client
    assert exc_info.value.code is ErrorCode.LLM_NOT_CONFIGURED


def test_usage_without_usage_field_still_counts_call() -> None:
    client = LLMClient(api_key="")

    client._track_usage(SimpleNamespace())

    assert client.get_token_usage() == {
        "total_prompt_tokens": 0,
        "total_completion_tokens": 0,
        "total_tokens": 0,
        "total_calls": 1,
    }


def test_usage_counters_are_consistent_across_threads() -> None:
    client = LLMClient(api_key="")
    response = _response(3, 2)

    def track_many() -> None:
        for _ in range(500):
            client._track_usage(response)

    with ThreadPoolExecutor(max_workers=8) as pool:
        for future in [pool.submit(track_many) for _ in range(8)]:
            future.result()

    usage = client.get_token_usage()
    assert usage["total_calls"] == 4000
    assert usage["total_prompt_tokens"] == 12000
    assert usage["total_completion_tokens"] == 8000
    assert usage["total_tokens"] == 20000
