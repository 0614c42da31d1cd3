from __future__ import annotations

import json
from dataclasses import fields

import pytest

from writer_pipeline.errors import AppError, ErrorCode
from writer_pipeline.pipeline.normalizer import normalize, parse_structured

_LIST_FIELDS = (
    "keywords",
    "constraints",
    "selling_points",
    "objections",
    "evidence",
    "cta_preference",
)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "   ",
        "ただのメモ",
        "{not json",
        "[]",
        "[1, 2]",
        '{"keywords": null, "constraints": 42}',
        {"title": "Kettle"},
        ["not", "a", "dict"],
    ],
)
def test_list_fields_always_present(raw) -> None:
    result = normalize(raw)
    for name in _LIST_FIELDS:
        assert isinstance(getattr(result, name), tuple)
    for f in fields(result):
        assert getattr(result, f.name) is not None


def test_json_title_and_comma_keywords() -> None:
    result = normalize('{"title":"Acme Kettle","keywords":"fast, quiet"}')

    assert result.product_name == "Acme Kettle"
    assert result.keywords == ("fast", "quiet")
    assert result.raw == '{"title":"Acme Kettle","keywords":"fast, quiet"}'


def test_free_text_labels() -> None:
    result = normalize("category: kitchenware\nkeywords: fast, quiet")

    assert result.category == "kitchenware"
    assert result.keywords == ("fast", "quiet")
    assert result.product_name == ""
    assert result.constraints == ()


def test_json_round_trip_all_fields() -> None:
    record = {
        "product_name": "Acme Kettle",
        "category": "kitchenware",
        "goal": "increase conversions",
        "audience": "busy parents",
        "platform": "lp",
        "keywords": ["fast", "quiet"],
        "constraints": ["no superlatives"],
        "brand_voice": "calm",
        "tone": "formal",
        "style": "product_card",
        "length_hint": "300 chars",
        "selling_points": ["boils in 3 minutes", "1.0L"],
        "objections": ["is it loud?"],
        "evidence": ["lab tested"],
        "cta_preference": ["buy now"],
    }

    result = normalize(json.dumps(record))

    for key, value in record.items():
        expected = tuple(value) if isinstance(value, list) else value
        assert getattr(result, key) == expected


def test_japanese_labels_with_fullwidth_colon() -> None:
    text = "\n".join(
        [
            "商品名：ナイトリッチ ローション",
            "カテゴリ：スキンケア",
            "ターゲット: 30代女性",
            "キーワード：保湿、低刺激，毎日使える",
            "CTA希望：購入、カート追加",
        ]
    )

    result = normalize(text)

    assert result.product_name == "ナイトリッチ ローション"
    assert result.category == "スキンケア"
    assert result.audience == "30代女性"
    assert result.keywords == ("保湿", "低刺激", "毎日使える")
    assert result.cta_preference == ("購入", "カート追加")


def test_first_matching_line_wins() -> None:
    result = normalize("goal: first\ngoal: second")
    assert result.goal == "first"


def test_platform_falls_back_to_lp_mention() -> None:
    assert normalize("ランディングページ向けの文章").platform == "lp"
    assert normalize("write an LP for this").platform == "lp"
    assert normalize("help me write").platform == ""
    assert normalize("platform: email\nLP にも転用").platform == "email"


def test_json_array_uses_first_element_and_name_fallback() -> None:
    result = normalize('[{"name": "Mug", "keywords": ["a", " ", "b"]}, {"name": "Other"}]')

    assert result.product_name == "Mug"
    assert result.keywords == ("a", "b")


def test_malformed_json_falls_back_to_free_text() -> None:
    result = normalize("{broken\ncategory: food")
    assert result.category == "food"


def test_dict_input_is_coerced() -> None:
    result = normalize({"product_name": "  Pan ", "keywords": "軽い、丈夫", "platform": None})

    assert result.product_name == "Pan"
    assert result.keywords == ("軽い", "丈夫")
    assert result.platform == ""


def test_dict_with_unserializable_keys_still_normalizes() -> None:
    raw = {("a",): 1, "title": "X"}

    result = normalize(raw)

    assert result.product_name == "X"
    assert result.raw == repr(raw)


def test_canonical_lists_cannot_be_mutated() -> None:
    result = normalize("keywords: fast, quiet")

    with pytest.raises(AttributeError):
        result.keywords.append("loud")  # type: ignore[attr-defined]
    assert result.keywords == ("fast", "quiet")


def test_parse_structured_rejects_invalid_json() -> None:
    with pytest.raises(AppError) as exc_info:
        parse_structured("{oops")

    assert exc_info.value.code == ErrorCode.BAD_REQUEST
    assert exc_info.value.to_envelope()["reason"] == "bad_request"


def test_parse_structured_rejects_scalar_json() -> None:
    with pytest.raises(AppError):
        parse_structured("42")
