"""Chunk quality scoring and the auto-approval policy."""

import re
from typing import Union

from pydantic import BaseModel, Field

from ragpilot.utils.config import QualityConfig

from .document import Chunk, ChunkStatus

BASE_SCORE = 50
QA_PAIR_BONUS = 10
IDEAL_ANSWER_BONUS = 20
ACCEPTABLE_ANSWER_BONUS = 10
QUESTION_MARK_BONUS = 5
COMPLETE_ANSWER_BONUS = 5

_QUESTION_MARKER = re.compile(r"(?:^|\n)[ \t]*(?:Q|질문|문)[ \t]*[:：]", re.IGNORECASE)
_ANSWER_MARKER = re.compile(r"(?:^|\n)[ \t]*(?:A|답변|답)[ \t]*[:：]", re.IGNORECASE)
_TERMINAL_PUNCTUATION = re.compile(r"[.!?]$")


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def extract_qa(content: str) -> tuple[str, str]:
    """Split chunk text into (question, answer).

    Uses ``Q:``/``A:`` (or ``질문:``/``답변:``, ``문:``/``답:``) markers.
    Without markers the whole text is the answer and the question is empty.
    """
    question_match = _QUESTION_MARKER.search(content)
    answer_match = _ANSWER_MARKER.search(
        content, question_match.end() if question_match else 0
    )

    if question_match and answer_match:
        question = content[question_match.end():answer_match.start()]
        answer = content[answer_match.end():]
        return question.strip(), answer.strip()
    if question_match:
        return content[question_match.end():].strip(), ""
    if answer_match:
        return "", content[answer_match.end():].strip()
    return "", content.strip()


def score_structural(chunk: Union[Chunk, str]) -> int:
    """Heuristic 0-100 quality score for a chunk's text.

    Starts at 50 and adds points for a complete Q&A pair, an answer of
    a useful length, a question ending in ``?`` and an answer ending in
    terminal punctuation.
    """
    content = chunk.content if isinstance(chunk, Chunk) else chunk
    question, answer = extract_qa(content)

    score = BASE_SCORE

    if question and answer:
        score += QA_PAIR_BONUS

    answer_length = len(answer)
    if 100 <= answer_length <= 500:
        score += IDEAL_ANSWER_BONUS
    elif 50 < answer_length < 800:
        score += ACCEPTABLE_ANSWER_BONUS

    if question.endswith("?"):
        score += QUESTION_MARK_BONUS

    if _TERMINAL_PUNCTUATION.search(answer):
        score += COMPLETE_ANSWER_BONUS

    return _clamp(score)


def apply_embedding_validation(
    base_score: int,
    document_similarity: float,
    config: QualityConfig = QualityConfig(),
) -> int:
    """Adjust a structural score by how well the chunk fits its document.

    Chunks that drift away from the document embedding are penalised;
    chunks that sit very close to it get a small bonus.
    """
    score = base_score

    if document_similarity < config.low_similarity:
        score += config.low_similarity_penalty
    elif document_similarity < config.weak_similarity:
        score += config.weak_similarity_penalty
    elif document_similarity > config.high_similarity:
        score += config.high_similarity_bonus

    return _clamp(score)


def is_auto_approvable(score: int, config: QualityConfig = QualityConfig()) -> bool:
    """Whether a chunk with this score skips human review."""
    return config.auto_approval_enabled and score >= config.min_quality_score


def initial_review_state(
    score: int,
    config: QualityConfig = QualityConfig(),
) -> tuple[ChunkStatus, bool]:
    """Return ``(status, auto_approved)`` for a freshly scored chunk."""
    if is_auto_approvable(score, config):
        return ChunkStatus.APPROVED, True
    return ChunkStatus.PENDING, False


def quality_grade(score: float) -> str:
    """Map a score to excellent / good / fair / poor."""
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


class QualitySummary(BaseModel):
    """Aggregate quality figures for a set of chunks."""

    total_chunks: int = 0
    average_score: float = 0.0
    auto_approved_rate: float = 0.0
    grade_distribution: dict[str, int] = Field(
        default_factory=lambda: {"excellent": 0, "good": 0, "fair": 0, "poor": 0}
    )


def summarize_quality(chunks: list[Chunk]) -> QualitySummary:
    """Summarise scores, auto-approval rate and grade distribution."""
    summary = QualitySummary()
    if not chunks:
        return summary

    total = len(chunks)
    summary.total_chunks = total
    summary.average_score = round(sum(c.quality_score for c in chunks) / total, 2)
    summary.auto_approved_rate = round(sum(1 for c in chunks if c.auto_approved) / total, 4)

    for chunk in chunks:
        summary.grade_distribution[quality_grade(chunk.quality_score)] += 1

    return summary
