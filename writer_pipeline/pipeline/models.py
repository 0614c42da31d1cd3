"""Pipeline 领域模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CanonicalInput:
    """归一化后的写作输入。

    列表字段在归一化后一定存在（可能为空），可选字符串字段缺省为空串。
    """

    product_name: str = ""
    category: str = ""
    goal: str = ""
    audience: str = ""
    platform: str = ""
    keywords: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()
    brand_voice: str = ""
    tone: str = ""
    style: str = ""
    length_hint: str = ""
    selling_points: tuple[str, ...] = ()
    objections: tuple[str, ...] = ()
    evidence: tuple[str, ...] = ()
    cta_preference: tuple[str, ...] = ()
    raw: str = ""

    def context_lines(self) -> list[str]:
        """``key: value`` 形式的上下文行，空字段跳过。"""
        lines: list[str] = []
        for key in CONTEXT_FIELDS:
            value = getattr(self, key)
            if isinstance(value, tuple):
                if not value:
                    continue
                joiner = ", " if key in ("keywords", "constraints") else " / "
                lines.append(f"{key}: {joiner.join(value)}")
            elif value:
                lines.append(f"{key}: {value}")
        return lines


# 上下文行的输出顺序
CONTEXT_FIELDS: tuple[str, ...] = (
    "product_name",
    "category",
    "goal",
    "audience",
    "platform",
    "keywords",
    "constraints",
    "brand_voice",
    "tone",
    "style",
    "length_hint",
    "selling_points",
    "objections",
    "evidence",
    "cta_preference",
)


@dataclass
class CategoryMatch:
    """品类匹配结果（仅在 score > 0 时产生）。"""

    key: str
    label: str
    score: int
    score_detail: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "score": self.score,
            "score_detail": [{"key": k, "score": s} for k, s in self.score_detail],
        }


@dataclass(frozen=True)
class FactItem:
    """商品事实条目。kind: ``title`` | ``spec``"""

    key: str
    label: str
    value: str
    kind: str = "spec"


@dataclass
class FactsBlock:
    """去重后的事实列表。"""

    items: list[FactItem] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class ResolvedOptions:
    """调用前一次性确定的 style / tone / locale，原样回写到响应 meta。"""

    style: str
    tone: str
    locale: str

    def to_meta(self) -> dict[str, str]:
        return {"style": self.style, "tone": self.tone, "locale": self.locale}


@dataclass
class PromptSection:
    """用户消息中的一个段落。name: context | facts | voice | task"""

    name: str
    body: str


@dataclass
class GenerationRequest:
    """组装完成的生成请求。"""

    system: str
    user: str
    sections: list[PromptSection] = field(default_factory=list)
    options: ResolvedOptions | None = None

    def section_names(self) -> list[str]:
        return [s.name for s in self.sections]


@dataclass
class GenerationResponse:
    """归一化的生成结果。"""

    text: str
    options: ResolvedOptions
    placeholder: bool = False

    def to_payload(self) -> dict[str, Any]:
        # text 同时放在 data.text 与 output 两处，兼容两种调用方
        return {
            "ok": True,
            "data": {"text": self.text, "meta": self.options.to_meta()},
            "output": self.text,
        }
