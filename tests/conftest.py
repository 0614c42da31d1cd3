"""
测试会话级别配置。

- 测试环境禁用速率限制器，避免限流对测试的干扰。
- 默认关闭遥测，避免测试访问外部网络。
"""
from __future__ import annotations

import pytest

from writer_pipeline.config import settings
from writer_pipeline.main import limiter


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """在测试环境中禁用速率限制。"""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture(autouse=True)
def _no_telemetry(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "telemetry_endpoint", "")
    monkeypatch.setattr(settings, "telemetry_token", "")
    monkeypatch.setattr(settings, "openai_api_key", "")
