"""
标准化错误码与统一异常处理。

定义全局错误码枚举、应用异常类、FastAPI 异常处理器注册。
对外错误统一使用 ``{ok: false, reason, message}`` 信封。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# 错误码枚举
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """应用级标准错误码。

    命名规则: 全大写 + 下划线，前缀表示模块。
    """

    # ── 输入 ──
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_BODY_TOO_LARGE = "VALIDATION_BODY_TOO_LARGE"
    VALIDATION_REQUEST_BODY = "VALIDATION_REQUEST_BODY"

    # ── 速率限制 ──
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # ── LLM ──
    LLM_NOT_CONFIGURED = "LLM_NOT_CONFIGURED"
    LLM_CONNECTION_ERROR = "LLM_CONNECTION_ERROR"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_API_ERROR = "LLM_API_ERROR"
    LLM_EMPTY_CONTENT = "LLM_EMPTY_CONTENT"

    # ── 系统 ──
    SYSTEM_INTERNAL_ERROR = "SYSTEM_INTERNAL_ERROR"


# ---------------------------------------------------------------------------
# 错误码元信息（默认 HTTP 状态码 / retriable 标记 / 信封里的 reason）
# ---------------------------------------------------------------------------

_ERROR_META: dict[ErrorCode, dict[str, Any]] = {
    # 输入
    ErrorCode.BAD_REQUEST:               {"status": 400, "retriable": False, "reason": "bad_request"},
    ErrorCode.VALIDATION_BODY_TOO_LARGE: {"status": 413, "retriable": False, "reason": "validation"},
    ErrorCode.VALIDATION_REQUEST_BODY:   {"status": 422, "retriable": False, "reason": "validation"},
    # 速率
    ErrorCode.RATE_LIMIT_EXCEEDED:       {"status": 429, "retriable": True,  "reason": "rate_limit"},
    # LLM
    ErrorCode.LLM_NOT_CONFIGURED:        {"status": 503, "retriable": False, "reason": "openai"},
    ErrorCode.LLM_CONNECTION_ERROR:      {"status": 502, "retriable": True,  "reason": "openai"},
    ErrorCode.LLM_TIMEOUT:               {"status": 504, "retriable": True,  "reason": "timeout"},
    ErrorCode.LLM_RATE_LIMITED:          {"status": 429, "retriable": True,  "reason": "rate_limit"},
    ErrorCode.LLM_API_ERROR:             {"status": 502, "retriable": True,  "reason": "openai_api_error"},
    ErrorCode.LLM_EMPTY_CONTENT:         {"status": 502, "retriable": True,  "reason": "openai_empty_content"},
    # 系统
    ErrorCode.SYSTEM_INTERNAL_ERROR:     {"status": 500, "retriable": True,  "reason": "internal"},
}


# ---------------------------------------------------------------------------
# 应用异常类
# ---------------------------------------------------------------------------

class AppError(Exception):
    """统一应用异常。

    使用方式::

        raise AppError(
            ErrorCode.BAD_REQUEST,
            "input is not valid JSON",
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        status_code: Optional[int] = None,
        retriable: Optional[bool] = None,
        retry_after_seconds: Optional[int] = None,
        extra: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        meta = _ERROR_META.get(code, {"status": 500, "retriable": False, "reason": "internal"})
        self.code = code
        self.message = message
        self.reason: str = meta["reason"]
        self.status_code = status_code or meta["status"]
        self.retriable = retriable if retriable is not None else meta["retriable"]
        self.retry_after_seconds = retry_after_seconds
        self.extra = extra or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "retriable": self.retriable,
        }
        if self.retry_after_seconds is not None:
            body["retry_after_seconds"] = self.retry_after_seconds
        if self.extra:
            body.update(self.extra)
        return body

    def to_envelope(self) -> dict[str, Any]:
        """调用方可见的失败信封。"""
        return {
            "ok": False,
            "reason": self.reason,
            "message": self.message,
            "error": self.to_dict(),
        }


class ProviderError(AppError):
    """生成服务调用失败（连接 / 超时 / 限流 / 空内容 等）。

    只在管线内部流转：管线捕获后改用占位文本并上报失败遥测，不会透传给调用方。
    """


# ---------------------------------------------------------------------------
# FastAPI 异常处理器
# ---------------------------------------------------------------------------

async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    headers = {}
    if exc.retry_after_seconds is not None:
        headers["Retry-After"] = str(exc.retry_after_seconds)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(),
        headers=headers or None,
    )


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求体结构错误也返回统一信封。"""
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    error = AppError(
        ErrorCode.VALIDATION_REQUEST_BODY,
        "request body does not match the expected shape",
        extra={"details": details},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


async def _generic_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """兜底异常处理器，将未捕获异常转为标准格式。"""
    error = AppError(
        ErrorCode.SYSTEM_INTERNAL_ERROR,
        f"internal server error: {type(exc).__name__}",
    )
    return JSONResponse(status_code=500, content=error.to_envelope())


def register_error_handlers(app: FastAPI) -> None:
    """向 FastAPI 应用注册统一异常处理器。"""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    # 注意: 仅在非 debug 模式下注册兜底处理器，debug 时保留默认堆栈
    from .config import settings
    if not settings.debug:
        app.add_exception_handler(Exception, _generic_error_handler)  # type: ignore[arg-type]
