"""
FAQ 种子与数值补强模板。

- 按品类 key（与 CATEGORY_CATALOG 一致）提供 FAQ 种子
- 回答只引导读者确认商品页，不替商品编造事实
- 数值模板用“〇〇”占位，由运营替换成实际规格
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import Optional

# 种子没有原文位置，排在抽取到的问答之后
SEED_ORDER = sys.maxsize


@dataclass(frozen=True)
class FaqPair:
    question: str
    answer: str
    order: int = SEED_ORDER


GENERIC_FAQ_SEEDS: tuple[FaqPair, ...] = (
    FaqPair("返品や交換はできますか？", "返品・交換の条件は販売ページの記載をご確認ください。"),
    FaqPair("送料や到着までの日数は？", "配送条件とお届け目安は注文画面でご確認いただけます。"),
    FaqPair("初めてでも使いこなせますか？", "基本の使い方は商品ページの説明で確認でき、特別な準備は不要です。"),
    FaqPair("問い合わせ先はありますか？", "販売ページのお問い合わせ窓口からご連絡ください。"),
)

CATEGORY_FAQ_SEEDS: dict[str, tuple[FaqPair, ...]] = {
    "cosmetics": (
        FaqPair("敏感肌でも使えますか？", "全成分表示をご確認のうえ、気になる場合はパッチテストをおすすめします。"),
        FaqPair("1本でどのくらい使えますか？", "使用量によって異なるため、内容量と1回の目安量からご判断ください。"),
    ),
    "appliances": (
        FaqPair("保証期間はありますか？", "保証の有無と期間は販売ページの記載をご確認ください。"),
        FaqPair("手持ちの機器と互換性はありますか？", "対応機種・規格は仕様欄に記載しています。"),
    ),
    "food": (
        FaqPair("賞味期限はどのくらいですか？", "商品ページまたはパッケージの表示をご確認ください。"),
        FaqPair("アレルギー表示はありますか？", "原材料とアレルゲン情報は商品ページに記載しています。"),
    ),
    "apparel": (
        FaqPair("サイズ交換はできますか？", "交換条件は販売ページの記載をご確認ください。"),
        FaqPair("洗濯機で洗えますか？", "洗濯表示タグの指示に従ってお手入れください。"),
    ),
    "kitchenware": (
        FaqPair("食洗機で洗えますか？", "対応可否は仕様欄の取扱表示をご確認ください。"),
        FaqPair("IHに対応していますか？", "対応熱源は仕様欄に記載しています。"),
    ),
    "health": (
        FaqPair("毎日使っても大丈夫ですか？", "使用方法と注意事項を確認し、不安な場合は専門家にご相談ください。"),
    ),
}

# 数値少于 2 个时追加的补强行
NUMERIC_TEMPLATES: dict[str, tuple[str, ...]] = {
    "cosmetics": ("内容量 〇〇mL", "1回の目安 〇〇プッシュ"),
    "appliances": ("本体重量 〇〇kg", "連続使用 〇〇時間"),
    "food": ("内容量 〇〇g", "賞味期限 製造から〇〇日"),
    "apparel": ("着丈 〇〇cm", "重さ 〇〇g"),
    "kitchenware": ("容量 〇〇L", "本体サイズ 〇〇mm"),
    "health": ("1日の目安 〇〇回", "内容量 〇〇日分"),
}
GENERIC_NUMERIC_TEMPLATES: tuple[str, ...] = ("サイズ 〇〇cm", "重さ 〇〇g")

_QUESTION_NOISE_RE = re.compile(r"[\s?？。、,，.!！・「」『』()（）]+")
_Q_PREFIX_RE = re.compile(r"^[QＱ]\d*[\s.．:：)）]*", re.IGNORECASE)


def normalize_question(question: str) -> str:
    """去重用的问题键：去掉 Q 前缀、空白与标点并转小写。"""
    q = _Q_PREFIX_RE.sub("", (question or "").strip())
    return _QUESTION_NOISE_RE.sub("", q).lower()


def category_faq_seeds(category: Optional[str]) -> tuple[FaqPair, ...]:
    return CATEGORY_FAQ_SEEDS.get(category or "", ())


def numeric_templates(category: Optional[str]) -> tuple[str, ...]:
    return NUMERIC_TEMPLATES.get(category or "", GENERIC_NUMERIC_TEMPLATES)
