"""
生成结果的后处理与文本指标。

clean_text:   禁用表达 / 感叹号 / 空行 / 标题层级 / 强推销标题
post_process: 在 clean_text 基础上重建 FAQ（固定 3 问）、补强数值、追加一次 / 代替 CTA
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from .faq_lexicon import (
    GENERIC_FAQ_SEEDS,
    FaqPair,
    category_faq_seeds,
    normalize_question,
    numeric_templates,
)
from .models import FactsBlock
from .tone_presets import FALLBACK_CTA, TonePreset, safe_cta, scrub_forbidden

FAQ_HEADING = "## FAQ"
FAQ_SIZE = 3
MAX_OUTPUT_CHARS = 5000
MIN_NUMERIC_HITS = 2

PRIMARY_CTA_NOTE = "まずは気軽に試せます"
ALTERNATE_CTA_NOTE = "使用感をレビューで比較できます"
LAST_RESORT_CTA = "レビューを見る"

_BULLET_RE = re.compile(r"^[\-*・･]")
_H2_RE = re.compile(r"^##\s")
_FAQ_RE = re.compile(r"^##\s*FAQ", re.MULTILINE)
_PRIMARY_CTA_RE = re.compile(r"^一次CTA[：:]\s?.+", re.MULTILINE)
_ALT_CTA_RE = re.compile(r"^代替CTA[：:]\s?.+", re.MULTILINE)
# 全角感叹号，或紧跟在日文等非 ASCII 字符后的半角感叹号
_EXCLAMATION_RE = re.compile(r"！+|(?<=[^\x00-\x7f])!+")
_PUSHY_HEADING_RE = re.compile(r"^##\s*(?:さあ|今すぐ|まずは|ぜひ|お試し|購入|申し込み).+$", re.MULTILINE)

_FAQ_HEADING_RE = re.compile(r"^##\s*(?:よくある質問|FAQ)", re.IGNORECASE)
_PSEUDO_BLOCK_RE = re.compile(r"^\*\*(?:FAQ|CTA|よくある質問)\*\*", re.IGNORECASE)
_CTA_LINE_RE = re.compile(r"^(?:一次|代替)CTA[：:]")
# "Q. ..." / "Q1: ..." / "Ｑ）..."；"Quiet ..." 这类普通单词不算
_Q_LINE_RE = re.compile(r"^(?:\*\*)?[QＱ]\d*(?:\s*[.．:：)）]|\s)\s*(?:\*\*)?\s*(.+?)\s*$")
_A_LINE_RE = re.compile(r"^(?:\*\*)?[AＡ]\d*(?:\s*[.．:：)）]|\s)\s*(?:\*\*)?\s*(.+?)\s*$")

_NUMERIC_RE = re.compile(
    r"\d+(?:\.\d+)?\s?(?:g|kg|mm|cm|m|mAh|ms|時間|分|枚|袋|ml|mL|L|W|Hz|年|か月|ヶ月|日|回|%|％)"
)
_DIGIT_RE = re.compile(r"\d")

# 返品保证 > 兼容性 > 配送，其余按原文顺序
_FAQ_PRIORITY: tuple[re.Pattern[str], ...] = (
    re.compile(r"返品|返金|交換|保証"),
    re.compile(r"対応|互換|相性"),
    re.compile(r"配送|送料|納期|到着"),
)


@dataclass
class TextMetrics:
    char_count: int
    line_count: int
    bullet_count: int
    h2_count: int
    faq_count: int
    has_faq: bool
    has_final_cta: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def analyze_text(text: str) -> TextMetrics:
    t = (text or "").strip()
    lines = t.splitlines() if t else []
    stripped = [line.strip() for line in lines]
    return TextMetrics(
        char_count=len(t),
        line_count=len(lines),
        bullet_count=sum(1 for line in stripped if _BULLET_RE.match(line)),
        h2_count=sum(1 for line in stripped if _H2_RE.match(line)),
        faq_count=sum(1 for line in stripped if _Q_LINE_RE.match(line)),
        has_faq=bool(_FAQ_RE.search(t)),
        has_final_cta=bool(_PRIMARY_CTA_RE.search(t) and _ALT_CTA_RE.search(t)),
    )


# ---------------------------------------------------------------------------
# 基础整理
# ---------------------------------------------------------------------------

def clean_text(text: str, preset: Optional[TonePreset] = None) -> str:
    """整理生成文本。

    1. 删除人格禁用表达
    2. 感叹号统一替换为句号
    3. H3 以下标题提升为 H2，删除“今すぐ購入”类强推销标题
    4. 3 个以上连续空行压缩为 1 个空行
    """
    out = (text or "").strip()
    if preset is not None:
        out = scrub_forbidden(out, preset)
    out = _EXCLAMATION_RE.sub("。", out)
    out = re.sub(r"。{2,}", "。", out)
    out = re.sub(r"^#{3,}\s?", "## ", out, flags=re.MULTILINE)
    out = _PUSHY_HEADING_RE.sub("", out)
    out = re.sub(r"\n{3,}", "\n\n", out)
    return out.strip()


# ---------------------------------------------------------------------------
# FAQ
# ---------------------------------------------------------------------------

def split_faq(text: str) -> tuple[str, list[FaqPair]]:
    """抽出正文里的 Q/A，并删掉已有的 FAQ 段、伪标题块与 CTA 行。

    只有紧跟在 Q 行之后的非空 A 行才构成一对。
    """
    kept: list[str] = []
    pairs: list[FaqPair] = []
    pending: Optional[tuple[str, int]] = None
    in_block = False

    for idx, line in enumerate(text.split("\n")):
        s = line.strip()
        if _H2_RE.match(s):
            in_block = bool(_FAQ_HEADING_RE.match(s))
            if in_block:
                continue
        elif _PSEUDO_BLOCK_RE.match(s):
            in_block = True
            continue

        q = _Q_LINE_RE.match(s)
        if q:
            pending = (q.group(1), idx)
            continue
        a = _A_LINE_RE.match(s) if pending is not None else None
        if a:
            pairs.append(FaqPair(pending[0], a.group(1), pending[1]))
            pending = None
            continue
        if _CTA_LINE_RE.match(s) or in_block:
            continue
        kept.append(line)

    return "\n".join(kept), pairs


def _priority(question: str) -> int:
    for rank, pattern in enumerate(_FAQ_PRIORITY):
        if pattern.search(question):
            return rank
    return len(_FAQ_PRIORITY)


def build_faq(pairs: Iterable[FaqPair], category: Optional[str] = None) -> list[FaqPair]:
    """去重 + 合并品类种子 + 按优先级排序，固定返回 FAQ_SIZE 条。"""
    merged: dict[str, FaqPair] = {}
    for pair in [*pairs, *category_faq_seeds(category)]:
        key = normalize_question(pair.question)
        if key and key not in merged:
            merged[key] = pair

    chosen = sorted(merged.values(), key=lambda p: (_priority(p.question), p.order))[:FAQ_SIZE]
    seen = {normalize_question(p.question) for p in chosen}
    for seed in GENERIC_FAQ_SEEDS:
        if len(chosen) >= FAQ_SIZE:
            break
        key = normalize_question(seed.question)
        if key not in seen:
            chosen.append(seed)
            seen.add(key)
    return chosen


def render_faq(pairs: Iterable[FaqPair]) -> str:
    body = "\n\n".join(f"Q. {p.question}\nA. {p.answer}" for p in pairs)
    return f"{FAQ_HEADING}\n{body}"


# ---------------------------------------------------------------------------
# 数值补强 / CTA
# ---------------------------------------------------------------------------

def numeric_line(
    body: str,
    category: Optional[str] = None,
    facts: Optional[FactsBlock] = None,
) -> Optional[str]:
    """正文中带单位的数值不足 2 个时生成补强行；优先使用事实块中的数值。"""
    need = MIN_NUMERIC_HITS - len(_NUMERIC_RE.findall(body))
    if need <= 0:
        return None

    candidates: list[str] = []
    for item in facts.items if facts else []:
        value = item.value.strip()
        if item.kind != "title" and _DIGIT_RE.search(value) and value not in body:
            candidates.append(f"{item.label} {value}")
    candidates.extend(numeric_templates(category))
    return "*" + "／".join(candidates[:need]) + "*"


def final_cta_lines(
    preset: Optional[TonePreset] = None,
    cta_preference: Iterable[str] = (),
) -> tuple[str, str]:
    """一次 CTA：用户偏好首项，否则人格的首选 CTA；代替 CTA 取下一个不重复的候选。"""
    prefs = [p.strip() for p in cta_preference if p and p.strip()]
    if prefs:
        primary = prefs[0]
    else:
        primary = safe_cta(preset.id) if preset is not None else FALLBACK_CTA

    verbs = preset.cta_verbs if preset is not None else ()
    alternate = next(
        c for c in (*prefs[1:], *verbs, FALLBACK_CTA, LAST_RESORT_CTA) if c != primary
    )
    return (
        f"一次CTA：{primary}（{PRIMARY_CTA_NOTE}）",
        f"代替CTA：{alternate}（{ALTERNATE_CTA_NOTE}）",
    )


def _truncate(body: str, limit: int) -> str:
    if len(body) <= limit:
        return body
    head = body[:max(0, limit - 1)]
    cut = max(head.rfind("。"), head.rfind("\n"))
    return head[:max(0, cut)].rstrip() + "…"


def post_process(
    text: str,
    preset: Optional[TonePreset] = None,
    *,
    category: Optional[str] = None,
    cta_preference: Iterable[str] = (),
    facts: Optional[FactsBlock] = None,
    finalize: bool = True,
) -> str:
    """整理文本并补全结尾结构。

    finalize=False 时只做 clean_text（短文本样式用）。
    否则依次：抽取 Q/A 并清掉旧 FAQ / CTA -> 数值补强 -> 追加 FAQ（3 问）-> 一次 / 代替 CTA。
    总长度不超过 MAX_OUTPUT_CHARS，截断只发生在正文部分。
    """
    body = clean_text(text, preset)
    if not finalize or not body:
        return body

    body, pairs = split_faq(body)
    body = re.sub(r"\n{3,}", "\n\n", body).strip()

    extra = numeric_line(body, category, facts)
    if extra:
        body = f"{body}\n\n{extra}" if body else extra

    primary, alternate = final_cta_lines(preset, cta_preference)
    tail = f"{render_faq(build_faq(pairs, category))}\n\n{primary}\n{alternate}"
    if not body:
        return tail

    body = _truncate(body, MAX_OUTPUT_CHARS - len(tail) - 2)
    return f"{body}\n\n{tail}"
