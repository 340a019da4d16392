# Approximate token counting; not a real tokenizer.
from __future__ import annotations

CHARS_PER_TOKEN = 4


def count_tokens(text: str) -> int:
    """Estimate the token count of `text` (~4 characters per token).

    Examples:
        >>> count_tokens("")
        0
        >>> count_tokens("hi")
        1
        >>> count_tokens("x" * 41)
        10
    """
    if not text:
        return 0
    return max(1, len(text) // CHARS_PER_TOKEN)


def tokens_to_chars(tokens: int) -> int:
    return tokens * CHARS_PER_TOKEN
