"""
生成请求组装 / 响应归一化。

请求：CanonicalInput + 品类 + PRODUCT_FACTS + 语气约束 -> GenerationRequest，
段落顺序固定为 context -> facts -> voice -> task。

响应：从任意形状的服务端返回中按顺序尝试抽取文本，取不到时生成
带 style / tone / locale 的诊断占位文本，保证调用方总能拿到可渲染的文本。
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, Sequence

from ..config import settings
from .models import (
    CanonicalInput,
    CategoryMatch,
    FactsBlock,
    GenerationRequest,
    GenerationResponse,
    PromptSection,
    ResolvedOptions,
)
from .postprocess import post_process
from .tone_presets import TonePreset, get_preset, normalize_tone_id, render_tone_module, safe_cta

# (前缀, 归一后的 style)，按顺序匹配
_STYLE_PREFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("email",), "email"),
    (("lp",), "lp"),
    (("sns_short", "sns-short", "sns"), "sns_short"),
    (("headline_only", "headline-only", "headline"), "headline_only"),
    (("product_card", "product-card", "card"), "product_card"),
)

# 这些样式输出单段短文，不追加 FAQ / CTA
SHORT_FORM_STYLES = frozenset({"sns_short", "headline_only"})

HOUSE_RULES: tuple[str, ...] = (
    "あなたはEC特化の日本語コピーライターAIです。落ち着いた知性を保ち、読み手を尊重します。"
    "感情的な煽りや誇大広告は避け、事実ベースで具体的に伝えます。",
    "媒体と目的に応じて、ヘッドライン→概要→特長やベネフィット→根拠/比較→FAQ→CTAの流れで整理してください。"
    "見出しは最大でもH2までにします。箇条書きは3〜7項目を目安にします。",
    "不自然なキーワード羅列は禁止です。自然な言い換え・共起語を使ってください。",
    "医薬的効能の断定、根拠のないNo.1表現、過度な断言、感嘆符（！）の多用は禁止です。",
    "PRODUCT_FACTS が与えられた場合、そこに書かれた内容だけを事実として扱い、推測で補わないでください。",
    "ユーザーが指定した商品名・ブランド名をそのまま用い、別の名前や別の商品に置き換えないでください。",
)

TASK_GUIDE = (
    "上記の条件に基づいて、媒体最適化した本文を作成してください。"
    "必要に応じて見出し(H2まで)と箇条書きを用い、FAQは2〜3問をQ/A形式で、"
    "最後に一次CTAと代替CTAを1行ずつ示してください。感嘆符は使わず、数値・単位を最低2つ含めてください。"
)


# ---------------------------------------------------------------------------
# 默认值
# ---------------------------------------------------------------------------

def _option_text(value: Any) -> str:
    # 非字符串选项（数字、对象等）视为未指定
    return value.strip() if isinstance(value, str) else ""


def infer_style(identifier: Any) -> Optional[str]:
    """从模板 / 样式标识推断 style，无法识别时返回 None。"""
    s = _option_text(identifier).lower()
    if not s:
        return None
    for prefixes, style in _STYLE_PREFIXES:
        if s.startswith(prefixes):
            return style
    return None


def resolve_defaults(
    style: Any = None,
    tone: Any = None,
    locale: Any = None,
    template: Any = None,
) -> ResolvedOptions:
    """调用生成服务前一次性确定 style / tone / locale。"""
    explicit_style = _option_text(style)
    resolved_style = (
        infer_style(explicit_style)
        or explicit_style
        or infer_style(template)
        or settings.writer_default_style
    )
    return ResolvedOptions(
        style=resolved_style,
        tone=normalize_tone_id(tone).value,
        locale=_option_text(locale) or settings.writer_default_locale,
    )


# ---------------------------------------------------------------------------
# 请求组装
# ---------------------------------------------------------------------------

def build_system_prompt(preset: TonePreset) -> str:
    return "\n\n".join([render_tone_module(preset), *HOUSE_RULES])


def _context_section(canonical: CanonicalInput, category: Optional[CategoryMatch]) -> PromptSection:
    lines = canonical.context_lines()
    if category is not None:
        lines.append(f"category_hint: {category.key}（{category.label}）")
    body = "# 入力\n" + ("\n".join(lines) if lines else "（指定なし）")
    return PromptSection(name="context", body=body)


def _voice_section(preset: TonePreset) -> PromptSection:
    body = "# トーン\n" + render_tone_module(preset) + f"\n- 一次CTAの推奨表現: {safe_cta(preset.id)}"
    return PromptSection(name="voice", body=body)


def _task_section(options: ResolvedOptions) -> PromptSection:
    body = (
        "# 指示\n"
        f"style: {options.style}\nlocale: {options.locale}\n"
        f"{TASK_GUIDE}"
    )
    return PromptSection(name="task", body=body)


def build_request(
    canonical: CanonicalInput,
    options: ResolvedOptions,
    *,
    category: Optional[CategoryMatch] = None,
    facts_text: Optional[str] = None,
) -> GenerationRequest:
    """按 context -> facts -> voice -> task 的顺序组装请求。facts 为空时整段省略。"""
    preset = get_preset(options.tone)
    sections = [_context_section(canonical, category)]
    if facts_text:
        sections.append(PromptSection(name="facts", body=facts_text))
    sections.append(_voice_section(preset))
    sections.append(_task_section(options))
    return GenerationRequest(
        system=build_system_prompt(preset),
        user="\n\n".join(s.body for s in sections),
        sections=sections,
        options=options,
    )


# ---------------------------------------------------------------------------
# 响应文本抽取
# ---------------------------------------------------------------------------

def _get(obj: Any, key: str) -> Any:
    """dict 与 SDK 对象统一取值。"""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _first_choice(raw: Any) -> Any:
    choices = _get(raw, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        return choices[0]
    return None


def _from_output(raw: Any) -> Any:
    return _get(raw, "output")


def _from_text(raw: Any) -> Any:
    return _get(raw, "text")


def _from_chat_message(raw: Any) -> Any:
    return _get(_get(_first_choice(raw), "message"), "content")


def _from_choice_text(raw: Any) -> Any:
    return _get(_first_choice(raw), "text")


def _from_data_text(raw: Any) -> Any:
    return _get(_get(raw, "data"), "text")


# 按顺序尝试，第一个给出非空字符串的生效
TEXT_EXTRACTORS: tuple[Callable[[Any], Any], ...] = (
    _from_output,
    _from_text,
    _from_chat_message,
    _from_choice_text,
    _from_data_text,
)


def extract_text(
    raw: Any,
    extractors: Sequence[Callable[[Any], Any]] = TEXT_EXTRACTORS,
) -> Optional[str]:
    if isinstance(raw, str):
        return raw if raw.strip() else None
    for extractor in extractors:
        value = extractor(raw)
        if isinstance(value, str) and value.strip():
            return value
    return None


def placeholder_text(options: ResolvedOptions) -> str:
    return f"【writer debug】style={options.style}, tone={options.tone}, locale={options.locale}"


def normalize_response(
    raw: Any,
    options: ResolvedOptions,
    preset: Optional[TonePreset] = None,
    *,
    category: Optional[CategoryMatch] = None,
    cta_preference: Iterable[str] = (),
    facts: Optional[FactsBlock] = None,
) -> GenerationResponse:
    """归一化生成结果；没有可用文本时改用占位文本。

    给出 preset 时做完整后处理，短文本样式不追加 FAQ / CTA。
    """
    text = extract_text(raw)
    if text is not None and preset is not None:
        text = post_process(
            text,
            preset,
            category=category.key if category else None,
            cta_preference=cta_preference,
            facts=facts,
            finalize=options.style not in SHORT_FORM_STYLES,
        )
    elif text is not None:
        text = text.strip()
    if not text:
        return GenerationResponse(text=placeholder_text(options), options=options, placeholder=True)
    return GenerationResponse(text=text, options=options)
