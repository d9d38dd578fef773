"""Tests for newsheat/tokenizer.py: token extraction and normalization."""

import pytest

from helpers import make_article
from newsheat.tokenizer import (
    MAX_TOKENS,
    extract_tokens,
    jaccard,
    normalize_category,
    normalize_token,
    normalize_topic_key,
    topic_fragments,
)


class TestNormalizeToken:
    def test_lowercases_and_strips_edges(self):
        assert normalize_token("(Bitcoin),") == "bitcoin"

    def test_keeps_hash_plus_minus_at_edges(self):
        assert normalize_token("#BTC") == "#btc"
        assert normalize_token("S&P+") == "s&p+"

    def test_strips_quotes_inside(self):
        assert normalize_token("Powell's") == "powells"


class TestExtractTokens:
    def test_title_snippet_summary_words(self):
        art = make_article(title="Ethereum upgrade ships", snippet="Developers confirm", summary="mainnet fork")
        tokens = extract_tokens(art)
        assert {"ethereum", "upgrade", "ships", "developers", "confirm", "mainnet", "fork"} <= tokens

    def test_rejects_digits_short_and_stop_words(self):
        tokens = extract_tokens(make_article(title="The 2024 rally is on for gold"))
        assert "2024" not in tokens
        assert "the" not in tokens
        assert "is" not in tokens
        assert "rally" in tokens

    def test_high_signal_short_tokens_admitted(self):
        tokens = extract_tokens(make_article(title="Fed and ECB weigh CPI as US yields climb"))
        assert {"fed", "ecb", "cpi", "us"} <= tokens

    def test_tags_verbatim(self):
        tokens = extract_tokens(make_article(title="Stablecoin bill advances", tags=("Regulation", "op")))
        assert "regulation" in tokens
        assert "op" in tokens

    def test_ticker_heuristic_from_title(self):
        tokens = extract_tokens(make_article(title="SOL/AVAX pair breaks out"))
        assert "sol" in tokens
        assert "avax" in tokens

    def test_capped_at_thirty(self):
        words = " ".join(f"word{chr(97 + i)}{chr(97 + j)}" for i in range(6) for j in range(6))
        tokens = extract_tokens(make_article(title=words))
        assert len(tokens) == MAX_TOKENS

    def test_fallback_uses_long_title_words_unfiltered(self):
        # Every word is a stop word, so the fallback kicks in.
        tokens = extract_tokens(make_article(title="About markets after analysis"))
        assert tokens == frozenset({"about", "markets", "after", "analysis"})

    def test_empty_title_yields_empty_set(self):
        assert extract_tokens(make_article(title="")) == frozenset()


class TestCategoryAndTopicKey:
    @pytest.mark.parametrize("raw,expected", [
        ("crypto", "CRYPTO"),
        (" Stocks ", "STOCKS"),
        ("POLITICS", "GEOPOLITICS"),
        ("fx", "ECONOMICS"),
        ("RATES", "ECONOMICS"),
        ("weather", "GENERAL"),
        (None, "GENERAL"),
        ("", "GENERAL"),
    ])
    def test_normalize_category(self, raw, expected):
        assert normalize_category(raw) == expected

    def test_topic_key_slug(self):
        assert normalize_topic_key("Fed & ECB Rate Cuts!") == "fed_and_ecb_rate_cuts"

    def test_topic_key_trimmed_and_capped(self):
        assert normalize_topic_key("--Hello--") == "hello"
        assert len(normalize_topic_key("x" * 500)) == 180
        assert normalize_topic_key("!!!") == ""

    def test_topic_fragments_drop_short_parts(self):
        assert topic_fragments("US SEC Sues Exchange") == {"sec", "sues", "exchange"}


class TestJaccard:
    def test_identical(self):
        assert jaccard({"a", "b"}, {"a", "b"}) == 1.0

    def test_partial(self):
        assert jaccard({"a", "b", "c"}, {"b", "c", "d"}) == pytest.approx(0.5)

    def test_empty_is_zero(self):
        assert jaccard(set(), {"a"}) == 0.0
        assert jaccard(set(), set()) == 0.0
