"""Token estimation and token-bounded text segmentation.

Estimates are heuristic: CJK text runs at roughly 1.5 characters per
token and everything else at roughly 4. The estimate never needs a
tokenizer, so it is safe to call on every chunk.
"""

import math
import re

DEFAULT_TOKEN_LIMIT = 8191
DEFAULT_SEGMENT_TOKENS = 8000

CJK_CHARS_PER_TOKEN = 1.5
OTHER_CHARS_PER_TOKEN = 4.0

# Hangul syllables and jamo, CJK ideographs, kana
_CJK_PATTERN = re.compile(
    r"[\u1100-\u11ff\u3040-\u30ff\u3130-\u318f\u3400-\u4dbf"
    r"\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff]"
)
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+|(?<=[。！？])")


def _fractional_tokens(text: str) -> float:
    cjk = len(_CJK_PATTERN.findall(text))
    other = len(text) - cjk
    return cjk / CJK_CHARS_PER_TOKEN + other / OTHER_CHARS_PER_TOKEN


def estimate_token_count(text: str) -> int:
    """Estimate the number of tokens in ``text``."""
    if not text:
        return 0
    return math.ceil(_fractional_tokens(text))


def exceeds_token_limit(text: str, limit: int = DEFAULT_TOKEN_LIMIT) -> bool:
    """Return True if ``text`` is estimated to exceed ``limit`` tokens."""
    return estimate_token_count(text) > limit


def _hard_split(text: str, limit: int) -> list[str]:
    """Split by characters so that every piece fits ``limit``."""
    pieces = []
    start = 0
    cjk = other = 0
    for i, char in enumerate(text):
        is_cjk = bool(_CJK_PATTERN.match(char))
        next_cjk = cjk + is_cjk
        next_other = other + (not is_cjk)
        cost = math.ceil(next_cjk / CJK_CHARS_PER_TOKEN + next_other / OTHER_CHARS_PER_TOKEN)
        if i > start and cost > limit:
            pieces.append(text[start:i])
            start = i
            next_cjk, next_other = int(is_cjk), int(not is_cjk)
        cjk, other = next_cjk, next_other
    if start < len(text):
        pieces.append(text[start:])
    return pieces


def _accumulate(units: list[str], separator: str, limit: int) -> list[str]:
    """Greedily join units while the joined text fits ``limit``."""
    separator_cost = _fractional_tokens(separator)
    segments = []
    current = ""
    current_cost = 0.0
    for unit in units:
        unit_cost = _fractional_tokens(unit)
        if current and math.ceil(current_cost + separator_cost + unit_cost) <= limit:
            current = f"{current}{separator}{unit}"
            current_cost += separator_cost + unit_cost
            continue
        if current:
            segments.append(current)
        current = unit
        current_cost = unit_cost
    if current:
        segments.append(current)
    return segments


def split_by_token_limit(text: str, limit: int = DEFAULT_TOKEN_LIMIT) -> list[str]:
    """Split ``text`` into segments that each fit within ``limit`` tokens.

    Tries, in order: the whole text, blank-line paragraphs, sentences
    inside an oversized paragraph, and finally a hard character split.
    Non-whitespace content is kept intact and in order.

    Args:
        text: Text to split
        limit: Maximum estimated tokens per segment

    Returns:
        List of segments (empty for blank input)
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if not text or not text.strip():
        return []
    if not exceeds_token_limit(text, limit):
        return [text]

    units: list[str] = []
    for paragraph in _PARAGRAPH_SPLIT.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if not exceeds_token_limit(paragraph, limit):
            units.append(paragraph)
            continue

        sentences = [s for s in _SENTENCE_SPLIT.split(paragraph) if s and s.strip()]
        for sentence in _accumulate(sentences, " ", limit):
            if exceeds_token_limit(sentence, limit):
                units.extend(_hard_split(sentence, limit))
            else:
                units.append(sentence)

    return _accumulate(units, "\n\n", limit)
