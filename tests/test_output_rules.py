"""Output invariants: tag sanitizing, summary truncation, comment formatting."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bookmarks.comment import (
    HATENA_BODY_LIMIT,
    calculate_body_size,
    format_comment,
    is_body_within_limit,
    parse_comment,
    remaining_comment_bytes,
)
from intelligence.agents.summary_agent import truncate_summary
from intelligence.agents.tags_agent import sanitize_tags, with_sentinel
from intelligence.pipeline import merge_results
from models import FORBIDDEN_TAG_CHARS, SENTINEL_TAG, Suggestion, SummaryResult, TagsResult


def test_sanitize_strips_forbidden_characters_and_drops_bad_tags():
    raw = [
        "Python",
        "python",
        SENTINEL_TAG,
        "a/b",
        "   ",
        "[]:?%/",
        "averyveryverylongtag",
        "ニュース",
        " チュートリアル ",
    ]
    assert sanitize_tags(raw) == ["Python", "ab", "ニュース", "チュートリアル"]


def test_sanitize_never_leaves_forbidden_chars_or_long_tags():
    raw = ["c++/cli", "what?", "100%", "[tag]", "a:b", "x" * 11, "ok"]
    for tag in sanitize_tags(raw):
        assert not any(ch in tag for ch in FORBIDDEN_TAG_CHARS)
        assert 0 < len(tag) <= 10
        assert tag != SENTINEL_TAG


def test_sanitize_dedupes_case_insensitively_keeping_first():
    assert sanitize_tags(["AI", "ai", "Ai", "ML"]) == ["AI", "ML"]


def test_sanitize_caps_at_ten_tags():
    assert len(sanitize_tags([f"tag{i}" for i in range(15)])) == 10


def test_with_sentinel_puts_marker_first_exactly_once():
    assert with_sentinel(["a", SENTINEL_TAG, "b"]) == [SENTINEL_TAG, "a", "b"]


def test_truncate_summary_is_idempotent():
    long_text = "あ" * 130
    once = truncate_summary(long_text)
    assert len(once) == 100
    assert truncate_summary(once) == once

    short = "短い要約です。"
    assert truncate_summary(short) == short


def test_format_and_parse_comment():
    comment = format_comment([SENTINEL_TAG, "Python", "ツール"], "便利な CLI の紹介")
    assert comment == f"[{SENTINEL_TAG}][Python][ツール]便利な CLI の紹介"
    assert parse_comment(comment) == ([SENTINEL_TAG, "Python", "ツール"], "便利な CLI の紹介")


def test_body_size_matches_encoded_lengths():
    url = "https://example.com/a b"
    # "url=" + "https%3A%2F%2Fexample.com%2Fa%20b" + "&comment=" + "%E3%81%82"
    assert calculate_body_size(url, "あ") == 13 + 33 + 9
    assert is_body_within_limit(url, "あ")
    assert not is_body_within_limit(url, "あ" * 400)
    assert remaining_comment_bytes(url, "") == HATENA_BODY_LIMIT - 13 - 33


def test_merge_results_builds_formatted_comment():
    suggestion = merge_results(
        SummaryResult(summary="要約", web_context="ctx", canonical_url="https://example.com/c"),
        TagsResult(tags=[SENTINEL_TAG, "Python"]),
    )
    assert suggestion.formatted_comment == f"[{SENTINEL_TAG}][Python]要約"
    assert suggestion.web_context == "ctx"
    assert suggestion.canonical_url == "https://example.com/c"


def test_suggestion_rejects_missing_or_duplicated_sentinel():
    with pytest.raises(ValidationError):
        Suggestion(summary="x", tags=["Python"])
    with pytest.raises(ValidationError):
        Suggestion(summary="x", tags=[SENTINEL_TAG, "Python", SENTINEL_TAG])
    with pytest.raises(ValidationError):
        Suggestion(summary="x" * 101, tags=[SENTINEL_TAG])
