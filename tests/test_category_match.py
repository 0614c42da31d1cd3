from __future__ import annotations

import pytest

from writer_pipeline.config import settings
from writer_pipeline.pipeline.category_match import (
    CategoryDefinition,
    CategoryScoring,
    resolve_category,
    tokenize,
)


def test_no_tokens_returns_none() -> None:
    assert resolve_category() is None
    assert resolve_category(category="  ", product_name="", keywords=[]) is None
    assert resolve_category(category="、 / ・") is None


def test_tokens_without_any_alias_return_none() -> None:
    assert resolve_category(category="zzz", keywords=["qqq"]) is None


def test_single_alias_match() -> None:
    match = resolve_category(product_name="Acme Kettle")

    assert match is not None
    assert match.key == "kitchenware"
    assert match.score > 0
    assert match.score_detail[0] == ("kitchenware", match.score)


def test_score_detail_covers_catalog_sorted_desc() -> None:
    match = resolve_category(category="スキンケア", keywords=["保湿", "化粧水"])

    assert match is not None
    assert match.key == "cosmetics"
    scores = [s for _, s in match.score_detail]
    assert scores == sorted(scores, reverse=True)
    assert len(match.score_detail) == 6
    assert match.to_dict()["key"] == "cosmetics"


def test_alias_counts_once_per_token() -> None:
    catalog = (CategoryDefinition(key="a", label="A", aliases=("ab", "abc")),)

    match = resolve_category(category="abcd", catalog=catalog, scoring=CategoryScoring())

    assert match is not None
    assert match.score == 3


def test_short_terms_are_ignored() -> None:
    catalog = (
        CategoryDefinition(key="a", label="A", aliases=("x",), allowed_words=("abc",)),
    )
    assert resolve_category(category="x abc", catalog=catalog, scoring=CategoryScoring()) is None


def test_tie_keeps_first_in_catalog_order() -> None:
    catalog = (
        CategoryDefinition(key="first", label="First", aliases=("tea",)),
        CategoryDefinition(key="second", label="Second", aliases=("cup",)),
    )

    match = resolve_category(category="tea cup", catalog=catalog, scoring=CategoryScoring())

    assert match is not None
    assert match.key == "first"


def test_weights_follow_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "category_alias_weight", 10)

    match = resolve_category(product_name="kettle")

    assert match is not None
    assert match.score == 10


def test_tokenize_splits_on_punctuation() -> None:
    assert tokenize("Kettle／Pan・Pot, Lid、Cup") == ["kettle", "pan", "pot", "lid", "cup"]
