"""
FastAPI 中间件集合。

- RequestIDMiddleware:        生成 X-Request-ID 并注入 structlog 上下文
- RequestBodyLimitMiddleware: Content-Length 上限
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

from .config import settings
from .errors import AppError, ErrorCode
from .logging_config import bind_request_context, get_logger, reset_request_context

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Request ID
# ---------------------------------------------------------------------------

class RequestIDMiddleware(BaseHTTPMiddleware):
    """为每个请求生成唯一 ID，注入 structlog 上下文并写入响应头。"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        tokens = bind_request_context(request_id, request.url.path)
        try:
            response = await call_next(request)
        finally:
            reset_request_context(tokens)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 请求体大小限制
# ---------------------------------------------------------------------------

class RequestBodyLimitMiddleware(BaseHTTPMiddleware):
    """限制请求体大小，默认取 settings.max_body_bytes。"""

    def __init__(self, app, max_content_length: int | None = None):
        super().__init__(app)
        self._max_bytes = max_content_length or settings.max_body_bytes

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self._max_bytes:
            logger.warning("request_body_too_large", length=int(content_length), limit=self._max_bytes)
            error = AppError(
                ErrorCode.VALIDATION_BODY_TOO_LARGE,
                f"请求体超过 {self._max_bytes} 字节上限",
            )
            return JSONResponse(status_code=error.status_code, content=error.to_envelope())
        return await call_next(request)
