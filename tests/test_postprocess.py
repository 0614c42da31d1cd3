from __future__ import annotations

from writer_pipeline.pipeline.faq_lexicon import GENERIC_FAQ_SEEDS, normalize_question
from writer_pipeline.pipeline.models import FactItem, FactsBlock
from writer_pipeline.pipeline.postprocess import (
    MAX_OUTPUT_CHARS,
    analyze_text,
    clean_text,
    post_process,
    split_faq,
)
from writer_pipeline.pipeline.tone_presets import get_preset


def test_duplicate_qa_is_rebuilt_into_three_faq_pairs_and_final_cta() -> None:
    raw = "\n".join(
        [
            "## 特長",
            "静音設計です。容量1.0L、重さ800g。",
            "",
            "Q. 返品できますか？",
            "A. 30日以内なら可能です。",
            "Q1: 返品できますか",
            "A1: 重複です。",
            "## よくある質問",
            "Q. 音はうるさい？",
            "A. 静かです。",
            "一次CTA：今すぐ購入",
            "代替CTA：カートに追加",
        ]
    )

    out = post_process(
        raw,
        get_preset("formal"),
        category="kitchenware",
        cta_preference=("今すぐ購入", "カートに追加"),
    )

    assert out == "\n".join(
        [
            "## 特長",
            "静音設計です。容量1.0L、重さ800g。",
            "",
            "## FAQ",
            "Q. 返品できますか？",
            "A. 30日以内なら可能です。",
            "",
            "Q. IHに対応していますか？",
            "A. 対応熱源は仕様欄に記載しています。",
            "",
            "Q. 音はうるさい？",
            "A. 静かです。",
            "",
            "一次CTA：今すぐ購入（まずは気軽に試せます）",
            "代替CTA：カートに追加（使用感をレビューで比較できます）",
        ]
    )
    metrics = analyze_text(out)
    assert metrics.faq_count == 3
    assert metrics.has_faq is True
    assert metrics.has_final_cta is True


def test_generic_seeds_fill_faq_and_preset_cta_is_used() -> None:
    out = post_process("落ち着いた使い心地です。", get_preset("warm_intelligent"))

    questions = [line[3:] for line in out.splitlines() if line.startswith("Q. ")]
    assert questions == [seed.question for seed in GENERIC_FAQ_SEEDS[:3]]
    assert "一次CTA：無料で試す（" in out
    assert "代替CTA：まずは触ってみる（" in out
    assert out.count("## FAQ") == 1


def test_numeric_line_prefers_fact_values() -> None:
    facts = FactsBlock(
        items=[
            FactItem(key="product_name", label="商品名", value="Acme Kettle", kind="title"),
            FactItem(key="capacity", label="容量", value="1.0L"),
        ]
    )

    out = post_process("静かなケトルです。", get_preset("formal"), facts=facts)

    assert out.startswith("静かなケトルです。\n\n*容量 1.0L／サイズ 〇〇cm*\n\n## FAQ")


def test_numeric_line_skipped_when_text_has_enough_numbers() -> None:
    out = post_process("幅30cm、重さ2kgです。", get_preset("formal"), category="appliances")

    assert "〇〇" not in out


def test_short_form_skips_faq_and_cta() -> None:
    out = post_process("新色が出ました！", get_preset("formal"), finalize=False)

    assert out == "新色が出ました。"


def test_pushy_headings_are_removed() -> None:
    assert clean_text("## 今すぐ購入しよう\n本文です。") == "本文です。"
    assert clean_text("## 特長\n本文です。") == "## 特長\n本文です。"


def test_plain_words_starting_with_q_or_a_are_kept() -> None:
    body, pairs = split_faq("Quiet design.\nAnswer later.\nA4 用紙対応")

    assert pairs == []
    assert body == "Quiet design.\nAnswer later.\nA4 用紙対応"


def test_question_key_ignores_prefix_and_punctuation() -> None:
    assert normalize_question("Q1: 返品できますか？") == normalize_question("返品 できますか")


def test_long_body_is_truncated_before_tail() -> None:
    out = post_process("あいうえお。" * 1200, get_preset("formal"))

    assert len(out) <= MAX_OUTPUT_CHARS
    assert "…\n\n## FAQ" in out
    assert out.endswith("（使用感をレビューで比較できます）")
