"""
FastAPI 应用入口

提供文案生成（writer）与语气预设查询等 API 端点。
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from .config import settings
from .errors import AppError, ErrorCode, register_error_handlers
from .logging_config import get_logger, setup_logging
from .middleware import RequestIDMiddleware, RequestBodyLimitMiddleware
from .llm.client import get_llm_client
from .pipeline.product_facts import FactInput, ProductContext, ProductSpec
from .pipeline.tone_presets import list_presets
from .pipeline.writer import get_writer_pipeline
from .telemetry import close_telemetry_sink

logger = get_logger(__name__)

APP_VERSION = "0.1.0"

# ── 速率限制器 ──
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)


# ============== Pydantic 模型 ==============

FactValue = Union[str, int, float, None]


class ProductSpecModel(BaseModel):
    """商品规格行"""

    label: str = Field("", description="显示名，例如 内容量")
    value: FactValue = Field(None, description="值")
    unit: str = Field("", description="单位，直接拼接在值后面")
    group: str = Field("spec", description="分组")


class ProductModel(BaseModel):
    name: str = Field("", description="商品名")
    specs: List[ProductSpecModel] = Field(default_factory=list)


class FactModel(BaseModel):
    """显式事实"""

    label: str = ""
    value: FactValue = None
    unit: str = ""
    key: str = ""


class WriterRequest(BaseModel):
    """文案生成请求"""

    input: Union[str, Dict[str, Any], List[Any], None] = Field(None, description="自由文本或结构化对象")
    # 选项不做类型校验：非字符串值在管线内回落到默认值，不返回 422
    tone: Any = Field(None, description="语气标识，未知值回落到默认人格")
    style: Any = Field(None, description="输出样式")
    locale: Any = Field(None, description="语言区域")
    template: Any = Field(None, description="模板标识，用于推断样式")
    facts: List[FactModel] = Field(default_factory=list)
    product: Optional[ProductModel] = None
    expect_json: bool = Field(False, description="input 为字符串时是否必须是合法 JSON")


# ── Lifespan ──
@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    # 启动阶段
    setup_logging()
    warnings = settings.validate_startup()
    for w in warnings:
        logger.warning("config_warning", detail=w)
    logger.info(
        "app_starting",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        telemetry_enabled=settings.telemetry_enabled,
    )
    yield
    # 关闭阶段
    logger.info("app_shutting_down")
    await close_telemetry_sink()
    logger.info("app_stopped")


app = FastAPI(
    title="Writer Pipeline API",
    description="商品文案生成请求管线",
    version=APP_VERSION,
    lifespan=lifespan,
)

# 注册错误处理器
register_error_handlers(app)


# 速率限制异常处理器
@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    error = AppError(
        ErrorCode.RATE_LIMIT_EXCEEDED,
        "请求频率超限，请稍后重试",
        retry_after_seconds=60,
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_envelope(),
        headers={"Retry-After": str(error.retry_after_seconds)},
    )

app.state.limiter = limiter

# 中间件注册（注意顺序：后加的先执行）
app.add_middleware(RequestBodyLimitMiddleware, max_content_length=settings.max_body_bytes)
app.add_middleware(RequestIDMiddleware)


# ============== 辅助函数 ==============


def _to_product_context(product: Optional[ProductModel]) -> Optional[ProductContext]:
    if product is None:
        return None
    return ProductContext(
        name=product.name,
        specs=[
            ProductSpec(label=s.label, value=s.value, unit=s.unit, group=s.group)
            for s in product.specs
        ],
    )


def _to_fact_inputs(facts: List[FactModel]) -> List[FactInput]:
    return [FactInput(label=f.label, value=f.value, unit=f.unit, key=f.key) for f in facts]


# ============== API 端点 ==============


@app.get("/")
async def root():
    """根路径"""
    return {
        "name": "Writer Pipeline API",
        "version": APP_VERSION,
        "status": "running",
        "docs_url": "/docs",
    }


@app.get("/api/health")
async def health_check():
    """健康检查"""
    llm = get_llm_client()
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "llm": {
            "configured": llm.configured,
            "model": llm.model,
            "usage": llm.get_token_usage(),
        },
    }


@app.get("/api/writer/presets")
async def get_tone_presets():
    """列出可用语气预设"""
    return {"presets": list_presets()}


@app.post("/api/writer")
@limiter.limit(settings.rate_limit_writer)
async def write_copy(request_body: WriterRequest, request: Request):
    """生成文案。只有声明为 JSON 的输入解析失败时返回 400。"""
    pipeline = get_writer_pipeline()
    payload = await pipeline.run(
        request_body.input,
        tone=request_body.tone,
        style=request_body.style,
        locale=request_body.locale,
        template=request_body.template,
        facts=_to_fact_inputs(request_body.facts),
        product=_to_product_context(request_body.product),
        expect_json=request_body.expect_json,
        request_id=request.headers.get("X-Request-ID"),
    )
    if not payload.get("ok"):
        return JSONResponse(status_code=400, content=payload)
    return payload


# ============== 启动入口 ==============


def start_server():
    """启动服务器"""
    import uvicorn

    uvicorn.run(
        "writer_pipeline.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    start_server()
