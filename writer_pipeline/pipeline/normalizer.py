"""
输入归一化。

把任意输入（自由文本 / JSON 文本 / 已结构化的 dict）整理成 ``CanonicalInput``。
只做词法抽取：标签行匹配 + 逗号切分，不做语义推断。
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from ..errors import AppError, ErrorCode
from .models import CanonicalInput

# 半角 / 全角逗号与顿号
_LIST_SPLIT_RE = re.compile(r"[、,，]")
_PLATFORM_LP_RE = re.compile(r"(?<![a-z])lp(?![a-z])|ランディングページ")


@dataclass(frozen=True)
class LabelRule:
    """标签规则：字段名 + 可识别的标签写法。"""

    field: str
    labels: tuple[str, ...]
    is_list: bool = False

    @property
    def pattern(self) -> re.Pattern[str]:
        alternatives = "|".join(re.escape(label) for label in self.labels)
        # 行首（允许列表符号前缀）+ 标签 + 半角/全角冒号
        return re.compile(
            rf"^[ \t\-*・]*(?:{alternatives})[ \t]*[:：][ \t]*(.+)$",
            re.IGNORECASE | re.MULTILINE,
        )


# 规则表：同一字段的日文 / 英文标签写在一起
LABEL_RULES: tuple[LabelRule, ...] = (
    LabelRule("product_name", ("商品名", "product name", "product")),
    LabelRule("category", ("カテゴリ", "category")),
    LabelRule("goal", ("目的", "goal")),
    LabelRule("audience", ("ターゲット", "target audience", "audience")),
    LabelRule("platform", ("媒体", "platform")),
    LabelRule("keywords", ("キーワード", "keywords"), is_list=True),
    LabelRule("constraints", ("制約条件", "constraints"), is_list=True),
    LabelRule("brand_voice", ("ブランドボイス", "brand voice")),
    LabelRule("tone", ("トーン", "tone")),
    LabelRule("style", ("スタイル", "style")),
    LabelRule("length_hint", ("ボリューム", "length")),
    LabelRule("selling_points", ("セールスポイント", "selling points"), is_list=True),
    LabelRule("objections", ("よくある不安", "objections"), is_list=True),
    LabelRule("evidence", ("根拠", "evidence"), is_list=True),
    LabelRule("cta_preference", ("CTA希望", "cta"), is_list=True),
)

_COMPILED_RULES: tuple[tuple[LabelRule, re.Pattern[str]], ...] = tuple(
    (rule, rule.pattern) for rule in LABEL_RULES
)

_LIST_FIELDS = frozenset(rule.field for rule in LABEL_RULES if rule.is_list)
_STRING_FIELDS = tuple(rule.field for rule in LABEL_RULES if not rule.is_list)


# ---------------------------------------------------------------------------
# 形状强制
# ---------------------------------------------------------------------------

def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_items(value: Any) -> tuple[str, ...]:
    """list 原样逐项字符串化；str 按逗号切分；其余视为空。"""
    if isinstance(value, (list, tuple)):
        items = [_as_text(v) for v in value if v is not None]
    elif isinstance(value, str):
        items = [part.strip() for part in _LIST_SPLIT_RE.split(value)]
    else:
        return ()
    return tuple(item for item in items if item)


def coerce_to_shape(obj: dict[str, Any], raw: str) -> CanonicalInput:
    """把任意 dict 整理成 CanonicalInput。"""
    values: dict[str, Any] = {}
    for name in _STRING_FIELDS:
        values[name] = _as_text(obj.get(name))
    # 商品名回退：product_name -> title -> name
    values["product_name"] = (
        _as_text(obj.get("product_name"))
        or _as_text(obj.get("title"))
        or _as_text(obj.get("name"))
    )
    for name in _LIST_FIELDS:
        values[name] = _as_items(obj.get(name))
    return CanonicalInput(raw=raw, **values)


# ---------------------------------------------------------------------------
# 自由文本抽取
# ---------------------------------------------------------------------------

def extract_labeled_fields(text: str) -> dict[str, Any]:
    """按规则表逐字段抽取，首个命中的行生效。"""
    found: dict[str, Any] = {}
    for rule, pattern in _COMPILED_RULES:
        m = pattern.search(text)
        if not m:
            continue
        captured = m.group(1).strip()
        found[rule.field] = _as_items(captured) if rule.is_list else captured
    if not found.get("platform") and _PLATFORM_LP_RE.search(text.lower()):
        found["platform"] = "lp"
    return found


def looks_structured(text: str) -> bool:
    stripped = text.lstrip()
    return stripped.startswith("{") or stripped.startswith("[")


def parse_structured(raw: str) -> dict[str, Any] | list[Any]:
    """解析声明为 JSON 的输入，失败时抛 BAD_REQUEST。"""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise AppError(
            ErrorCode.BAD_REQUEST,
            f"input is not valid JSON: {e}",
        ) from e
    if not isinstance(parsed, (dict, list)):
        raise AppError(
            ErrorCode.BAD_REQUEST,
            "input JSON must be an object or an array",
        )
    return parsed


def _first_object(parsed: dict[str, Any] | list[Any]) -> dict[str, Any]:
    if isinstance(parsed, list):
        head = parsed[0] if parsed else {}
        return head if isinstance(head, dict) else {}
    return parsed


def _dump_raw(raw: dict[str, Any] | list[Any]) -> str:
    # 非字符串键（tuple 等）或循环引用无法序列化
    try:
        return json.dumps(raw, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(raw)


def normalize(raw: str | dict[str, Any] | list[Any] | None) -> CanonicalInput:
    """归一化入口。全函数：永不抛异常，最坏情况返回只带 raw 的空记录。"""
    if raw is None:
        return coerce_to_shape({}, "")

    if isinstance(raw, (dict, list)):
        return coerce_to_shape(_first_object(raw), _dump_raw(raw))

    text = str(raw).strip()
    if looks_structured(text):
        try:
            parsed = parse_structured(text)
        except AppError:
            # 不是合法 JSON，退回自由文本抽取
            pass
        else:
            return coerce_to_shape(_first_object(parsed), text)

    return coerce_to_shape(extract_labeled_fields(text), text)
