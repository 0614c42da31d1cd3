"""Pipeline 模块。"""

from .models import (
    CanonicalInput,
    CategoryMatch,
    FactItem,
    FactsBlock,
    GenerationRequest,
    GenerationResponse,
    PromptSection,
    ResolvedOptions,
)
from .normalizer import normalize, parse_structured
from .category_match import CategoryScoring, resolve_category
from .product_facts import FactInput, ProductContext, ProductSpec, build_facts, build_product_facts_block, render_facts
from .tone_presets import ToneId, TonePreset, get_preset, normalize_tone_id, safe_cta
from .assembler import build_request, normalize_response, resolve_defaults
from .postprocess import TextMetrics, analyze_text, clean_text, post_process
from .writer import WriterPipeline, get_writer_pipeline

__all__ = [
    "CanonicalInput",
    "CategoryMatch",
    "FactItem",
    "FactsBlock",
    "GenerationRequest",
    "GenerationResponse",
    "PromptSection",
    "ResolvedOptions",
    "normalize",
    "parse_structured",
    "CategoryScoring",
    "resolve_category",
    "FactInput",
    "ProductContext",
    "ProductSpec",
    "build_facts",
    "build_product_facts_block",
    "render_facts",
    "ToneId",
    "TonePreset",
    "get_preset",
    "normalize_tone_id",
    "safe_cta",
    "build_request",
    "normalize_response",
    "resolve_defaults",
    "TextMetrics",
    "analyze_text",
    "clean_text",
    "post_process",
    "WriterPipeline",
    "get_writer_pipeline",
]
