from __future__ import annotations

from writer_pipeline.pipeline.models import FactItem, FactsBlock
from writer_pipeline.pipeline.product_facts import (
    FACTS_HEADING,
    FactInput,
    ProductContext,
    ProductSpec,
    build_facts,
    build_product_facts_block,
    fallback_key,
    render_facts,
)


def test_identical_values_keep_first() -> None:
    block = build_facts(
        ProductContext(name=""),
        [
            {"label": "Capacity", "value": "500mL"},
            {"label": "Volume", "value": "500mL"},
        ],
    )

    assert block is not None
    assert [(i.label, i.value) for i in block.items] == [("Capacity", "500mL")]


def test_unit_is_concatenated_before_dedupe() -> None:
    block = build_facts(
        None,
        [
            FactInput(label="Capacity", value=500, unit="mL"),
            FactInput(label="Volume", value="500mL"),
        ],
    )

    assert block is not None
    assert len(block) == 1
    assert block.items[0].value == "500mL"


def test_empty_name_and_no_facts_is_none() -> None:
    assert build_facts(ProductContext(name=""), []) is None
    assert build_facts(ProductContext(name="   "), None) is None
    assert build_facts(None) is None


def test_name_comes_first_and_label_collision_is_dropped() -> None:
    block = build_facts(
        ProductContext(name="Acme Kettle", specs=[ProductSpec(label="容量", value=1.0, unit="L")]),
        [
            {"label": "商品名", "value": "Another Name"},
            {"label": "容量", "value": "2L"},
            {"label": "重さ", "value": "900", "unit": "g"},
        ],
    )

    assert block is not None
    assert [(i.key, i.label, i.value, i.kind) for i in block.items] == [
        ("product_name", "商品名", "Acme Kettle", "title"),
        ("容量", "容量", "1.0L", "spec"),
        ("重さ", "重さ", "900g", "spec"),
    ]


def test_blank_or_non_finite_values_are_skipped() -> None:
    block = build_facts(
        None,
        [
            {"label": "", "value": "x"},
            {"label": "A", "value": "  "},
            {"label": "B", "value": float("nan")},
            {"label": "C", "value": True},
            {"label": "D", "value": 0},
        ],
    )

    assert block is not None
    assert [(i.label, i.value) for i in block.items] == [("D", "0")]


def test_fallback_key_from_label() -> None:
    assert fallback_key("内容量 (ml)") == "内容量_ml"
    assert fallback_key("  ") == "fact"
    assert fallback_key("!!!") == "fact"


def test_render_heading_guidance_and_bullets() -> None:
    text = build_product_facts_block(
        ProductContext(name="Acme Kettle"),
        [{"label": "Capacity", "value": "1.0", "unit": "L"}],
    )

    assert text is not None
    lines = text.split("\n")
    assert lines[0] == FACTS_HEADING
    assert lines[1] == ""
    assert lines[3] == ""
    assert lines[4:] == ["- 商品名: Acme Kettle", "- Capacity: 1.0L"]


def test_render_all_blank_values_is_none() -> None:
    block = FactsBlock(items=[FactItem(key="a", label="A", value="  "), FactItem(key="b", label="B", value="")])

    assert render_facts(block) is None
    assert render_facts(FactsBlock()) is None
    assert render_facts(None) is None
