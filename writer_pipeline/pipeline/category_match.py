"""
品类推断（建议性）。

对 category / product_name / keywords 做粗粒度切词，按固定品类表打分。
得分不大于 0 时返回 None，不强行归类。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..config import settings
from .models import CategoryMatch

_TOKEN_SPLIT_RE = re.compile(r"[\s、,，／/・·]+")


@dataclass(frozen=True)
class CategoryDefinition:
    key: str
    label: str
    aliases: tuple[str, ...]
    allowed_words: tuple[str, ...] = ()


@dataclass(frozen=True)
class CategoryScoring:
    """打分参数。默认值为未经校准的经验值。"""

    alias_weight: int = 3
    allowed_word_weight: int = 1
    alias_min_len: int = 2
    allowed_word_min_len: int = 4

    @classmethod
    def from_settings(cls) -> "CategoryScoring":
        return cls(
            alias_weight=settings.category_alias_weight,
            allowed_word_weight=settings.category_allowed_word_weight,
            alias_min_len=settings.category_alias_min_len,
            allowed_word_min_len=settings.category_allowed_word_min_len,
        )


# 品类表（顺序即平分时的优先顺序）
CATEGORY_CATALOG: tuple[CategoryDefinition, ...] = (
    CategoryDefinition(
        key="cosmetics",
        label="化粧品・スキンケア",
        aliases=("化粧品", "コスメ", "スキンケア", "化粧水", "美容液", "乳液", "cosmetics", "skincare", "serum", "lotion"),
        allowed_words=("保湿", "うるおい", "moisture", "hydrating", "makeup"),
    ),
    CategoryDefinition(
        key="appliances",
        label="家電",
        aliases=("家電", "ドライヤー", "掃除機", "空気清浄機", "appliance", "vacuum", "dryer", "purifier"),
        allowed_words=("消費電力", "ワット", "battery", "wireless", "cordless"),
    ),
    CategoryDefinition(
        key="food",
        label="食品・飲料",
        aliases=("食品", "飲料", "お菓子", "スイーツ", "コーヒー", "food", "snack", "drink", "coffee"),
        allowed_words=("無添加", "国産", "organic", "flavor", "gluten"),
    ),
    CategoryDefinition(
        key="apparel",
        label="アパレル",
        aliases=("アパレル", "衣類", "シャツ", "パーカー", "ジャケット", "apparel", "shirt", "hoodie", "jacket"),
        allowed_words=("コットン", "サイズ", "cotton", "fabric", "linen"),
    ),
    CategoryDefinition(
        key="kitchenware",
        label="キッチン用品",
        aliases=("キッチン", "調理器具", "ケトル", "フライパン", "鍋", "kitchen", "kettle", "cookware", "pan"),
        allowed_words=("ステンレス", "食洗機", "stainless", "nonstick", "dishwasher"),
    ),
    CategoryDefinition(
        key="health",
        label="健康・サプリメント",
        aliases=("健康", "サプリ", "サプリメント", "プロテイン", "health", "supplement", "vitamin", "protein"),
        allowed_words=("栄養", "ビタミン", "wellness", "fitness", "nutrition"),
    ),
)


def _normalize_text(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def tokenize(value: Optional[str]) -> list[str]:
    """小写后按空白 / 逗号 / 斜杠 / 中点切分。"""
    base = _normalize_text(value)
    if not base:
        return []
    return [t for t in _TOKEN_SPLIT_RE.split(base) if t]


def _score_category(
    definition: CategoryDefinition,
    tokens: Sequence[str],
    scoring: CategoryScoring,
) -> int:
    score = 0
    for token in tokens:
        # 同组内每个 token 最多计分一次
        for alias in definition.aliases:
            a = _normalize_text(alias)
            if len(a) >= scoring.alias_min_len and a in token:
                score += scoring.alias_weight
                break
        for word in definition.allowed_words:
            w = _normalize_text(word)
            if len(w) >= scoring.allowed_word_min_len and w in token:
                score += scoring.allowed_word_weight
                break
    return score


def resolve_category(
    category: Optional[str] = None,
    product_name: Optional[str] = None,
    keywords: Optional[Iterable[str]] = None,
    *,
    catalog: Sequence[CategoryDefinition] = CATEGORY_CATALOG,
    scoring: Optional[CategoryScoring] = None,
) -> Optional[CategoryMatch]:
    """推断品类；没有 token 或最高分 <= 0 时返回 None。

    None 表示“没有额外上下文”，调用方不应把它当作错误。
    """
    scoring = scoring or CategoryScoring.from_settings()

    tokens: list[str] = []
    tokens.extend(tokenize(category))
    tokens.extend(tokenize(product_name))
    if keywords:
        tokens.extend(tokenize(" ".join(k for k in keywords if k)))
    if not tokens:
        return None

    detail: list[tuple[str, int]] = []
    best: Optional[CategoryDefinition] = None
    best_score = 0
    for definition in catalog:
        s = _score_category(definition, tokens, scoring)
        detail.append((definition.key, s))
        # 严格大于才替换，平分时保留先出现者
        if s > best_score:
            best_score = s
            best = definition

    if best is None or best_score <= 0:
        return None

    detail.sort(key=lambda item: item[1], reverse=True)
    return CategoryMatch(
        key=best.key,
        label=best.label,
        score=best_score,
        score_detail=detail,
    )
