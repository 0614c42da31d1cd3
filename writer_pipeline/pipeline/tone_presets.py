"""
语气（voice）预设。

三种固定人格：formal / warm_intelligent（默认）/ emotional_sincere。
任何未知或旧版 tone 标识都归一到默认人格，不会报错。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToneId(str, Enum):
    FORMAL = "formal"
    WARM_INTELLIGENT = "warm_intelligent"
    EMOTIONAL_SINCERE = "emotional_sincere"


DEFAULT_TONE = ToneId.WARM_INTELLIGENT
FALLBACK_CTA = "詳しく見る"


@dataclass(frozen=True)
class MobileRules:
    line_max_chars: int = 36
    sentence_max_per_block: int = 3
    forbid_leading_chars: re.Pattern[str] = re.compile(r"^[、。・）」］】》]")
    max_ellipsis_per_paragraph: int = 2


@dataclass(frozen=True)
class TonePreset:
    id: ToneId
    label: str
    description: str
    forbidden: tuple[re.Pattern[str], ...]
    endings: tuple[str, ...]
    connectives: tuple[str, ...]
    cta_verbs: tuple[str, ...]
    mobile_rules: MobileRules = field(default_factory=MobileRules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "label": self.label,
            "description": self.description,
            "forbidden": [p.pattern for p in self.forbidden],
            "endings": list(self.endings),
            "connectives": list(self.connectives),
            "cta_verbs": list(self.cta_verbs),
            "mobile_rules": {
                "line_max_chars": self.mobile_rules.line_max_chars,
                "sentence_max_per_block": self.mobile_rules.sentence_max_per_block,
                "forbid_leading_chars": self.mobile_rules.forbid_leading_chars.pattern,
                "max_ellipsis_per_paragraph": self.mobile_rules.max_ellipsis_per_paragraph,
            },
        }


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(s) for s in sources)


# 全人格共用的禁用词（夸大 / 绝对化表达），在这里改一次即全部生效
COMMON_FORBIDDEN = _patterns(
    r"革命的",
    r"神レベル",
    r"永久無料",
    r"100%",
    r"絶対",
    r"誰でも秒で",
    r"最強",
    r"バズる",
)


TONE_PRESETS: dict[ToneId, TonePreset] = {
    ToneId.FORMAL: TonePreset(
        id=ToneId.FORMAL,
        label="フォーマル",
        description="客観・信頼・制度的安心。事実→根拠→結語の三段で、丁寧で距離感はやや遠め。",
        forbidden=COMMON_FORBIDDEN + _patterns(r"ワクワク", r"圧倒的", r"すぐに変わる"),
        endings=("です。", "します。", "となります。", "に該当します。", "を推奨します。"),
        connectives=("一方で", "まず", "次に", "なお", "したがって", "そのため"),
        cta_verbs=("詳細を確認", "要件を見る", "手順ガイドへ"),
    ),
    ToneId.WARM_INTELLIGENT: TonePreset(
        id=ToneId.WARM_INTELLIGENT,
        label="温かい×知的",
        description="伴走・納得・専門性。やさしい抑揚で要点を噛み砕き、心理的負担を下げる標準人格。",
        forbidden=COMMON_FORBIDDEN + _patterns(r"すごい", r"とにかく", r"ですよ！"),
        endings=("できます。", "しやすくなります。", "に役立ちます。", "が整います。", "で安心です。"),
        connectives=("だから", "そのまま", "まず", "結果", "たとえば"),
        cta_verbs=("無料で試す", "まずは触ってみる", "仕組みを見る"),
    ),
    ToneId.EMOTIONAL_SINCERE: TonePreset(
        id=ToneId.EMOTIONAL_SINCERE,
        label="情緒×誠実",
        description="共感・動機・背中押し。煽らず、静かな感情で『続けられる』に寄り添う。",
        forbidden=COMMON_FORBIDDEN + _patterns(r"胸が震える", r"奇跡", r"今すぐやれ", r"！+"),
        endings=("だから。", "で、いい。", "していけます。", "で、一歩。"),
        connectives=("だから", "それでも", "ゆっくり", "少しずつ", "きっと"),
        cta_verbs=("今日から少し、軽くする", "一緒に始める", "無理なく試す"),
    ),
}

# 旧版 / UI 侧 tone 标识 -> 人格（小写比较）
TONE_ALIASES: dict[str, ToneId] = {
    "formal": ToneId.FORMAL,
    "business": ToneId.FORMAL,
    "warm_intelligent": ToneId.WARM_INTELLIGENT,
    "warm": ToneId.WARM_INTELLIGENT,
    "friendly": ToneId.WARM_INTELLIGENT,
    "friendly_warm": ToneId.WARM_INTELLIGENT,
    "neutral": ToneId.WARM_INTELLIGENT,
    "casual": ToneId.WARM_INTELLIGENT,
    "emotional_sincere": ToneId.EMOTIONAL_SINCERE,
    "emotional": ToneId.EMOTIONAL_SINCERE,
}


def normalize_tone_id(value: Any) -> ToneId:
    """任意输入 -> ToneId。非字符串、未知值一律回落到默认人格。"""
    if isinstance(value, ToneId):
        return value
    if not isinstance(value, str):
        return DEFAULT_TONE
    return TONE_ALIASES.get(value.strip().lower(), DEFAULT_TONE)


def get_preset(tone: Any) -> TonePreset:
    return TONE_PRESETS.get(normalize_tone_id(tone), TONE_PRESETS[DEFAULT_TONE])


def safe_cta(tone: Any) -> str:
    """人格最优先的 CTA；列表为空时用通用文案。"""
    verbs = get_preset(tone).cta_verbs
    return verbs[0] if verbs else FALLBACK_CTA


def list_presets() -> list[dict[str, Any]]:
    return [
        {**preset.to_dict(), "default": preset.id is DEFAULT_TONE}
        for preset in TONE_PRESETS.values()
    ]


def render_tone_module(preset: TonePreset) -> str:
    """语气约束段落（嵌入 system prompt 与用户消息的 voice 段）。"""
    rules = preset.mobile_rules
    forbidden = "、".join(p.pattern for p in preset.forbidden)
    lines = [
        f"【トーン】{preset.id.value}（{preset.label}）",
        preset.description,
        f"- 使用しない表現: {forbidden}",
        f"- 文末の候補: {' / '.join(preset.endings)}（同じ文末を3回続けない）",
        f"- 接続語の候補: {' / '.join(preset.connectives)}",
        f"- CTAの言い回し: {' / '.join(preset.cta_verbs) or FALLBACK_CTA}",
        f"- 1行は{rules.line_max_chars}字程度まで、1ブロック{rules.sentence_max_per_block}文まで",
        f"- 三点リーダは1段落{rules.max_ellipsis_per_paragraph}個まで、句読点や閉じ括弧で行を始めない",
    ]
    return "\n".join(lines)


def scrub_forbidden(text: str, preset: TonePreset) -> str:
    """删除文本中命中的禁用表达。"""
    for pattern in preset.forbidden:
        text = pattern.sub("", text)
    return text
