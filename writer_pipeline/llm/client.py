"""
LLM 客户端模块

封装 OpenAI SDK，支持自定义 base_url，用于调用兼容 OpenAI 格式的大语言模型。
返回原始 SDK 响应对象，文本抽取交给 assembler。
"""

from __future__ import annotations

import random
import threading
import time
from typing import TYPE_CHECKING, Any, Optional

import openai
from openai import OpenAI

from ..config import settings
from ..errors import ErrorCode, ProviderError
from ..logging_config import get_logger

if TYPE_CHECKING:
    from ..pipeline.models import GenerationRequest

logger = get_logger(__name__)

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,  # 含 APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)


def _to_provider_error(exc: Exception) -> ProviderError:
    """SDK 异常 -> ProviderError。"""
    message = f"{type(exc).__name__}: {str(exc)[:200]}"
    if isinstance(exc, openai.APITimeoutError):
        code = ErrorCode.LLM_TIMEOUT
    elif isinstance(exc, openai.APIConnectionError):
        code = ErrorCode.LLM_CONNECTION_ERROR
    elif isinstance(exc, openai.RateLimitError):
        code = ErrorCode.LLM_RATE_LIMITED
    else:
        code = ErrorCode.LLM_API_ERROR
    return ProviderError(code, message)


class LLMClient:
    """LLM 客户端封装类"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None
    ):
        """
        初始化 LLM 客户端

        Args:
            api_key: OpenAI API Key，默认从配置读取
            base_url: API Base URL，默认从配置读取
            model: 模型名称，默认从配置读取
        """
        self.api_key = api_key or settings.openai_api_key
        self.base_url = base_url or settings.openai_base_url
        self.model = model or settings.model_name

        # 未配置 key 时不创建 SDK 客户端
        self._client: Optional[OpenAI] = None

        # ── Token 用量追踪（generate 在 to_thread 工作线程中并发执行）──
        self._usage_lock = threading.Lock()
        self._total_prompt_tokens: int = 0
        self._total_completion_tokens: int = 0
        self._total_tokens: int = 0
        self._total_calls: int = 0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if not self.configured:
            raise ProviderError(ErrorCode.LLM_NOT_CONFIGURED, "OPENAI_API_KEY is not set")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def _call_with_retries(self, fn, *, max_attempts: int = 3, base_sleep_s: float = 1.0):
        """
        对瞬时网络/网关错误做重试，采用指数退避 + jitter。
        """
        for attempt in range(1, max_attempts + 1):
            try:
                return fn()
            except _TRANSIENT_ERRORS as e:
                if attempt >= max_attempts:
                    raise
                sleep_s = base_sleep_s * (2 ** (attempt - 1))
                jitter = random.uniform(0, sleep_s * 0.3)
                total_sleep = sleep_s + jitter
                logger.warning(
                    "llm_retry",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    sleep_s=round(total_sleep, 2),
                    error=f"{type(e).__name__}: {str(e)[:120]}",
                )
                time.sleep(total_sleep)
        raise RuntimeError("Unknown retry error")

    def _track_usage(self, response: Any) -> None:
        """累加 token 用量。"""
        usage = getattr(response, "usage", None)
        prompt = getattr(usage, "prompt_tokens", 0) or 0
        completion = getattr(usage, "completion_tokens", 0) or 0
        total = getattr(usage, "total_tokens", 0) or 0
        with self._usage_lock:
            self._total_prompt_tokens += prompt
            self._total_completion_tokens += completion
            self._total_tokens += total
            self._total_calls += 1

    def get_token_usage(self) -> dict[str, int]:
        """取得累计 token 用量。"""
        with self._usage_lock:
            return {
                "total_prompt_tokens": self._total_prompt_tokens,
                "total_completion_tokens": self._total_completion_tokens,
                "total_tokens": self._total_tokens,
                "total_calls": self._total_calls,
            }

    def generate(
        self,
        request: GenerationRequest,
        temperature: Optional[float] = None,
        max_tokens: int = 2048,
    ) -> Any:
        """
        发送 system + user 两条消息

        Args:
            request: 组装好的生成请求
            temperature: 温度参数，默认从配置读取
            max_tokens: 最大 token 数

        Returns:
            原始 SDK 响应对象

        Raises:
            ProviderError: 未配置 / 重试耗尽 / 其他 SDK 错误
        """
        client = self.client
        messages = [
            {"role": "system", "content": request.system},
            {"role": "user", "content": request.user},
        ]
        try:
            response = self._call_with_retries(
                lambda: client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=settings.llm_temperature if temperature is None else temperature,
                    max_tokens=max_tokens,
                    timeout=settings.llm_timeout_seconds,
                ),
                max_attempts=max(1, int(settings.llm_retry_attempts)),
                base_sleep_s=1.0,
            )
        except openai.OpenAIError as e:
            raise _to_provider_error(e) from e

        self._track_usage(response)
        logger.debug(
            "llm_generate",
            model=self.model,
            prompt_len=len(request.user),
            tokens=getattr(getattr(response, "usage", None), "total_tokens", None),
        )
        return response


_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """获取 LLM 客户端实例"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
