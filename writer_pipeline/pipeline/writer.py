"""
写作管线入口。

normalize -> category（建议性）-> facts -> tone -> defaults -> 请求遥测
-> 生成服务 -> 响应归一化 + 后处理 -> 成功 / 失败遥测

只有“声明为 JSON 但解析失败”的输入会返回 ok=false，其余失败一律降级。
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Iterable, Optional, Protocol

from ..errors import AppError, ErrorCode, ProviderError
from ..llm.client import LLMClient, get_llm_client
from ..logging_config import current_request_id, get_logger
from ..telemetry import TelemetryEvent, TelemetrySink, get_telemetry_sink, input_signature
from .assembler import build_request, normalize_response, resolve_defaults
from .category_match import resolve_category
from .models import GenerationRequest, GenerationResponse
from .normalizer import normalize, parse_structured
from .postprocess import analyze_text
from .product_facts import FactLike, ProductContext, build_facts, render_facts
from .tone_presets import get_preset

logger = get_logger(__name__)


class TextGenerator(Protocol):
    def generate(self, request: GenerationRequest) -> Any: ...


class WriterPipeline:
    """单次请求内按固定顺序执行各阶段；实例本身不保存请求状态。"""

    def __init__(
        self,
        llm: Optional[TextGenerator] = None,
        telemetry: Optional[TelemetrySink] = None,
        route: str = "/api/writer",
    ):
        self.llm = llm or get_llm_client()
        self.telemetry = telemetry or get_telemetry_sink()
        self.route = route

    @property
    def mode(self) -> str:
        return "openai" if isinstance(self.llm, LLMClient) else "fake"

    @property
    def model(self) -> Optional[str]:
        return getattr(self.llm, "model", None)

    def _emit(self, phase: str, **fields: Any) -> None:
        event = TelemetryEvent(
            phase=phase,
            route=self.route,
            mode=self.mode,
            model=self.model,
            **fields,
        )
        self.telemetry.dispatch(event)

    async def _call_provider(self, request: GenerationRequest) -> Any:
        result = await asyncio.to_thread(self.llm.generate, request)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run(
        self,
        raw: Any,
        *,
        tone: Any = None,
        style: Any = None,
        locale: Any = None,
        template: Any = None,
        facts: Optional[Iterable[FactLike]] = None,
        product: Optional[ProductContext] = None,
        expect_json: bool = False,
        request_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """执行一次生成，返回 ``{ok, data:{text, meta}, output}`` 或 ``{ok:false, ...}``。"""
        started = time.perf_counter()
        request_id = request_id or current_request_id() or None

        source = raw
        if expect_json and isinstance(raw, str):
            try:
                source = parse_structured(raw.strip())
            except AppError as e:
                logger.info("writer_bad_request", reason=e.reason, message=e.message)
                return e.to_envelope()

        canonical = normalize(source)
        category = resolve_category(
            canonical.category,
            canonical.product_name,
            canonical.keywords,
        )

        if product is None:
            product = ProductContext(name=canonical.product_name)
        elif not product.name.strip():
            product = ProductContext(name=canonical.product_name, specs=product.specs)
        facts_block = build_facts(product, facts)
        facts_text = render_facts(facts_block)

        options = resolve_defaults(style, tone or canonical.tone, locale, template)
        preset = get_preset(options.tone)
        request = build_request(canonical, options, category=category, facts_text=facts_text)
        signature = input_signature(options.to_meta())

        logger.info(
            "writer_request",
            style=options.style,
            tone=options.tone,
            locale=options.locale,
            category=category.key if category else None,
            sections=request.section_names(),
        )
        self._emit(
            "request",
            message="writer request accepted",
            input_sig=signature,
            request_id=request_id,
            meta={**options.to_meta(), "category": category.key if category else None},
        )

        failure: Optional[AppError] = None
        raw_response: Any = None
        try:
            raw_response = await self._call_provider(request)
        except ProviderError as e:
            failure = e
        except Exception as e:
            logger.exception("writer_provider_crashed", error=type(e).__name__)
            failure = AppError(ErrorCode.SYSTEM_INTERNAL_ERROR, f"{type(e).__name__}: {e}")

        response: GenerationResponse = normalize_response(
            raw_response,
            options,
            preset,
            category=category,
            cta_preference=canonical.cta_preference,
            facts=facts_block,
        )
        duration_ms = int((time.perf_counter() - started) * 1000)

        if response.placeholder:
            failure = failure or AppError(ErrorCode.LLM_EMPTY_CONTENT, "provider returned no text")
            logger.warning(
                "writer_failed",
                code=failure.code.value,
                message=failure.message,
                duration_ms=duration_ms,
            )
            self._emit(
                "failure",
                level="error",
                message=failure.message,
                reason=failure.code.value,
                duration_ms=duration_ms,
                input_sig=signature,
                output_len=len(response.text),
                request_id=request_id,
            )
        else:
            metrics = analyze_text(response.text)
            logger.info(
                "writer_complete",
                duration_ms=duration_ms,
                output_len=metrics.char_count,
            )
            self._emit(
                "success",
                message="writer completed",
                duration_ms=duration_ms,
                input_sig=signature,
                output_len=len(response.text),
                request_id=request_id,
                meta=metrics.to_dict(),
            )

        return response.to_payload()


def get_writer_pipeline() -> WriterPipeline:
    """获取默认管线（默认 LLM 客户端 + 全局遥测）"""
    return WriterPipeline()
