"""Token counting and truncation against a model's context window."""

import functools
from typing import Callable, Protocol

import tiktoken

from docenrich.logger import get_logger

from .errors import TokenizerInitError

logger = get_logger(__name__)

# Approximate chat-format framing cost per message
MESSAGE_OVERHEAD_TOKENS = 4


class Encoding(Protocol):
    def encode(self, text: str) -> list[int]:
        ...


@functools.lru_cache(maxsize=None)
def load_encoding(model: str) -> Encoding:
    """Resolve and cache the tiktoken encoding for a model.

    Raises:
        TokenizerInitError: If no encoding is known for the model or the
            encoding files cannot be loaded
    """
    try:
        return tiktoken.encoding_for_model(model)
    except (KeyError, ValueError, OSError) as e:
        raise TokenizerInitError(
            f"Unable to load tokenizer for model '{model}': {e}"
        ) from e


class TokenBudgeter:
    """Counts tokens and cuts text down to a token budget."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        encoding_loader: Callable[[str], Encoding] = load_encoding,
    ):
        self.model = model
        self._encoding_loader = encoding_loader
        self._encoding: Encoding | None = None

    @property
    def encoding(self) -> Encoding:
        if self._encoding is None:
            self._encoding = self._encoding_loader(self.model)
        return self._encoding

    def count_tokens(self, text: str) -> int:
        return len(self.encoding.encode(text or ""))

    def count_prompt_tokens(
        self,
        system_prompt: str,
        additional_prompts: list[str] | None = None,
    ) -> int:
        """Count tokens of a system prompt plus any non-empty extra prompts.

        Each counted message adds a fixed framing overhead.
        """
        prompts = [p for p in (additional_prompts or []) if p]
        total = self.count_tokens(system_prompt)
        for prompt in prompts:
            total += self.count_tokens(prompt)
        return total + (1 + len(prompts)) * MESSAGE_OVERHEAD_TOKENS

    def truncate(self, text: str, max_tokens: int) -> str:
        """Cut text so it fits within max_tokens.

        The cut is proportional by character count, which is an
        approximation for non-uniform tokenization. The result is checked
        again and cut further if it still exceeds the budget, so the output
        is always a prefix of the input.
        """
        if max_tokens <= 0:
            return ""

        tokens = self.count_tokens(text)
        if tokens <= max_tokens:
            return text

        truncated = text
        while tokens > max_tokens:
            ratio = max_tokens / tokens
            cut = int(len(truncated) * ratio)
            # Always make progress even when the ratio rounds to the full length
            truncated = truncated[: min(cut, len(truncated) - 1)]
            tokens = self.count_tokens(truncated)

        logger.debug(
            "llm.tokens.truncated",
            original_chars=len(text),
            truncated_chars=len(truncated),
            max_tokens=max_tokens,
            tokens=tokens,
        )
        return truncated
