"""
日志配置。

structlog 输出 JSON（非 TTY）或彩色控制台格式：
- 请求上下文（request_id / route）由中间件绑定，自动写入每条日志
- 凭证类字段（API key、遥测 token、Authorization 头）输出前打码
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from typing import Any, Optional

import structlog

from .config import settings

# 第三方库默认只输出 WARNING 以上
NOISY_LOGGERS: tuple[str, ...] = ("uvicorn.access", "httpx", "httpcore", "openai")

# 字段名（小写）命中即打码
SECRET_FIELDS = frozenset({
    "api_key",
    "openai_api_key",
    "token",
    "telemetry_token",
    "authorization",
})
_MASK = "***"

_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
_route_ctx: ContextVar[str] = ContextVar("route", default="")


def bind_request_context(rid: str, route: str = "") -> tuple[Token[str], Token[str]]:
    """绑定单个请求的上下文，返回的 token 交给 reset_request_context 还原。"""
    return _request_id_ctx.set(rid), _route_ctx.set(route)


def reset_request_context(tokens: tuple[Token[str], Token[str]]) -> None:
    rid_token, route_token = tokens
    _request_id_ctx.reset(rid_token)
    _route_ctx.reset(route_token)


def current_request_id() -> str:
    return _request_id_ctx.get()


def _add_request_context(
    _logger: Any, _method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    rid = _request_id_ctx.get()
    route = _route_ctx.get()
    if rid:
        event_dict.setdefault("request_id", rid)
    if route:
        event_dict.setdefault("route", route)
    return event_dict


def _mask_secrets(
    _logger: Any, _method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    for key, value in event_dict.items():
        if key.lower() in SECRET_FIELDS and value:
            event_dict[key] = _MASK
        elif isinstance(value, dict):
            event_dict[key] = {
                k: (_MASK if isinstance(k, str) and k.lower() in SECRET_FIELDS and v else v)
                for k, v in value.items()
            }
    return event_dict


def _wants_json(log_format: str) -> bool:
    # "auto"：重定向到文件 / 容器采集时用 JSON，本地终端用控制台格式
    if log_format == "auto":
        return not sys.stderr.isatty()
    return log_format == "json"


def _renderer(use_json: bool) -> Any:
    if use_json:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


_configured = False


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    *,
    force: bool = False,
) -> None:
    """初始化 structlog 与标准 logging。默认只执行一次，force=True 时重新配置。"""
    global _configured
    if _configured and not force:
        return
    _configured = True

    level_name = (level or settings.log_level).upper()
    use_json = _wants_json(log_format or settings.log_format)

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _add_request_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _mask_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(use_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    if not _configured:
        setup_logging()
    return structlog.get_logger(name)  # type: ignore[return-value]
