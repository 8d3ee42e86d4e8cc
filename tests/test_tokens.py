"""Tests for token counting and truncation."""

from unittest.mock import patch

import pytest

from docenrich.llm.errors import TokenizerInitError
from docenrich.llm.tokens import MESSAGE_OVERHEAD_TOKENS, TokenBudgeter, load_encoding


def test_count_tokens(budgeter):
    """Test counting with the injected encoding."""
    assert budgeter.count_tokens("one two three") == 3
    assert budgeter.count_tokens("") == 0
    assert budgeter.count_tokens(None) == 0


def test_encoding_loaded_once():
    """Test encoding is resolved lazily and reused."""
    calls = []

    class Encoding:
        def encode(self, text):
            return text.split()

    def loader(model):
        calls.append(model)
        return Encoding()

    budgeter = TokenBudgeter(model="gpt-4o", encoding_loader=loader)
    assert calls == []

    budgeter.count_tokens("a b")
    budgeter.count_tokens("c d")

    assert calls == ["gpt-4o"]


def test_count_prompt_tokens_adds_message_overhead(budgeter):
    """Test each non-empty prompt adds framing overhead."""
    system_only = budgeter.count_prompt_tokens("alpha beta")
    assert system_only == 2 + MESSAGE_OVERHEAD_TOKENS

    with_extra = budgeter.count_prompt_tokens("alpha beta", ["gamma", ""])
    assert with_extra == 3 + 2 * MESSAGE_OVERHEAD_TOKENS


def test_truncate_returns_text_within_budget(budgeter):
    """Test text that fits is returned unchanged."""
    text = "one two three"
    assert budgeter.truncate(text, 3) is text
    assert budgeter.truncate(text, 100) is text


def test_truncate_non_positive_budget(budgeter):
    """Test zero or negative budgets yield empty text."""
    assert budgeter.truncate("one two three", 0) == ""
    assert budgeter.truncate("one two three", -50) == ""


@pytest.mark.parametrize("max_tokens", [1, 3, 7, 12])
def test_truncate_is_prefix_within_budget(budgeter, max_tokens):
    """Test truncated output is a prefix that fits the budget."""
    text = " ".join(f"word{i:02d}" for i in range(40))

    truncated = budgeter.truncate(text, max_tokens)

    assert text.startswith(truncated)
    assert len(truncated) < len(text)
    assert budgeter.count_tokens(truncated) <= max_tokens


def test_truncate_uneven_tokenization(budgeter):
    """Test the cut is re-checked when tokens are unevenly distributed."""
    # Short words up front, one long word at the end
    text = "a b c d e f g h " + "x" * 200

    truncated = budgeter.truncate(text, 4)

    assert text.startswith(truncated)
    assert budgeter.count_tokens(truncated) <= 4


def test_load_encoding_unknown_model():
    """Test unknown tokenizer models raise TokenizerInitError."""
    load_encoding.cache_clear()
    with patch("docenrich.llm.tokens.tiktoken.encoding_for_model", side_effect=KeyError("nope")):
        with pytest.raises(TokenizerInitError) as exc_info:
            load_encoding("not-a-model")
    load_encoding.cache_clear()

    assert "not-a-model" in str(exc_info.value)


def test_budgeter_surfaces_tokenizer_error():
    """Test tokenizer failures propagate from counting."""

    def loader(model):
        raise TokenizerInitError(f"Unable to load tokenizer for model '{model}'")

    budgeter = TokenBudgeter(model="mystery", encoding_loader=loader)

    with pytest.raises(TokenizerInitError):
        budgeter.count_tokens("text")
