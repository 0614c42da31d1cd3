"""
PRODUCT_FACTS 区块。

把商品名与显式事实（规格 / 属性）合并成去重后的事实列表，
再渲染成可直接嵌入提示词的 Markdown 段落。
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from .models import FactItem, FactsBlock

PRODUCT_NAME_KEY = "product_name"
PRODUCT_NAME_LABEL = "商品名"

FACTS_HEADING = "## PRODUCT_FACTS"
FACTS_GUIDANCE = (
    "_以下は信頼できるソースから取得した事実情報です。"
    "推測や補完をせず、この範囲に含まれる内容だけを事実として扱ってください。_"
)


@dataclass
class ProductSpec:
    """商品规格行。value 为数字时只接受有限值。"""

    label: str
    value: Any
    unit: str = ""
    group: str = "spec"


@dataclass
class ProductContext:
    name: str = ""
    specs: list[ProductSpec] = field(default_factory=list)


@dataclass
class FactInput:
    """调用方传入的显式事实。key 为空时由 label 生成。"""

    label: str
    value: Any
    unit: str = ""
    key: str = ""


FactLike = Union[FactInput, ProductSpec, dict]


# ---------------------------------------------------------------------------
# 值处理
# ---------------------------------------------------------------------------

def _clean_text(value: Any) -> str:
    """字符串去首尾空白；数字仅有限值才转字符串；其余视为空。"""
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ""
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return ""


def value_with_unit(value: Any, unit: Any) -> str:
    """``"500" + "mL" -> "500mL"``；value 为空时一律为空。"""
    text = _clean_text(value)
    if not text:
        return ""
    suffix = _clean_text(unit)
    return f"{text}{suffix}" if suffix else text


def fallback_key(label: str) -> str:
    """由 label 生成稳定 key：空白替换为下划线，去掉符号。"""
    trimmed = label.strip()
    if not trimmed:
        return "fact"
    key = re.sub(r"\s+", "_", trimmed)
    key = re.sub(r"[^\w]", "", key)
    return key or "fact"


def _field(raw: FactLike, name: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def _to_candidate(raw: FactLike) -> Optional[FactItem]:
    label = _clean_text(_field(raw, "label"))
    value = value_with_unit(_field(raw, "value"), _field(raw, "unit"))
    if not label or not value:
        return None
    key = _clean_text(_field(raw, "key")) or fallback_key(label)
    return FactItem(key=key, label=label, value=value, kind="spec")


# ---------------------------------------------------------------------------
# 合并
# ---------------------------------------------------------------------------

def build_facts(
    context: Optional[ProductContext],
    explicit_facts: Optional[Iterable[FactLike]] = None,
) -> Optional[FactsBlock]:
    """合并商品名、规格与显式事实。

    候选顺序：商品名 -> context.specs -> explicit_facts。
    value 相同、或 key / label 与已接受条目冲突的后来者被丢弃，先到者优先。
    没有任何条目时返回 None。
    """
    candidates: list[FactItem] = []

    name = _clean_text(context.name) if context else ""
    if name:
        candidates.append(
            FactItem(key=PRODUCT_NAME_KEY, label=PRODUCT_NAME_LABEL, value=name, kind="title")
        )

    raw_facts: list[FactLike] = list(context.specs) if context else []
    raw_facts.extend(explicit_facts or [])
    for raw in raw_facts:
        item = _to_candidate(raw)
        if item is not None:
            candidates.append(item)

    accepted: list[FactItem] = []
    seen_values: set[str] = set()
    seen_names: set[str] = set()
    for item in candidates:
        value = item.value.strip()
        names = {item.key.strip().lower(), item.label.strip().lower()}
        if value in seen_values or names & seen_names:
            continue
        accepted.append(item)
        seen_values.add(value)
        seen_names.update(names)

    if not accepted:
        return None
    return FactsBlock(items=accepted)


# ---------------------------------------------------------------------------
# 渲染
# ---------------------------------------------------------------------------

def render_facts(block: Optional[FactsBlock]) -> Optional[str]:
    """渲染为 Markdown；没有可见条目时返回 None（不输出空标题）。"""
    if block is None or not block.items:
        return None

    bullets = []
    for item in block.items:
        value = item.value.strip()
        if not value:
            continue
        bullets.append(f"- {item.label}: {value}")
    if not bullets:
        return None

    return "\n".join([FACTS_HEADING, "", FACTS_GUIDANCE, "", *bullets])


def build_product_facts_block(
    context: Optional[ProductContext],
    explicit_facts: Optional[Iterable[FactLike]] = None,
) -> Optional[str]:
    return render_facts(build_facts(context, explicit_facts))
