"""Document chunking strategies.

``StructuralChunker`` is the default boundary detector for late chunking.
It recognises Q&A pairs, markdown headers and paragraphs, sizes chunks
by document type and overlaps them on sentence boundaries (Korean
sentence endings included).
"""

import logging
import re
from typing import NamedTuple, Optional

from .base import BaseChunker
from .document import Chunk, ChunkMetadata, Document
from .quality import score_structural

logger = logging.getLogger(__name__)


class DocumentTypeConfig(NamedTuple):
    max_chunk_size: int
    overlap: int
    description: str


DOCUMENT_TYPE_CONFIGS: dict[str, DocumentTypeConfig] = {
    "faq": DocumentTypeConfig(400, 30, "short Q&A units"),
    "technical": DocumentTypeConfig(600, 80, "technical docs, context matters"),
    "legal": DocumentTypeConfig(800, 100, "legal/contract clauses"),
    "general": DocumentTypeConfig(500, 50, "general default"),
}

DEFAULT_DOCUMENT_TYPE = "general"

# Formal, polite and plain Korean sentence endings
KOREAN_ENDINGS = (
    "습니다", "입니다", "됩니다", "합니다", "습니까", "입니까",
    "네요", "군요", "거든요", "잖아요", "나요", "가요", "을까요", "ㄹ까요",
    "세요", "어요", "아요", "죠", "요", "다", "냐", "니", "자",
)

_KOREAN_SENTENCE_END = re.compile(
    "(?:" + "|".join(KOREAN_ENDINGS) + r")[.!?。！？]?\s+"
)
_GENERAL_SENTENCE_END = re.compile(r"[.!?。！？]\s+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_PARAGRAPH_SPLIT = re.compile(r"\n{2,}")

_QA_UNIT = re.compile(
    r"((?:Q|질문|문)[:：][^\n]+(?:\n(?:A|답변|답)[:：][^\n]+)+)",
    re.IGNORECASE,
)
_HEADER_UNIT = re.compile(r"^(#{1,6}\s.+|.+\n={3,})", re.MULTILINE)

_HAS_MARKDOWN_HEADER = re.compile(r"^#+\s", re.MULTILINE)
_HAS_UNDERLINE_HEADER = re.compile(r"^[A-Z가-힣].+\n={3,}", re.MULTILINE)
_HAS_QA_PAIR = (
    re.compile(r"Q[:：].*\nA[:：]", re.IGNORECASE),
    re.compile(r"질문[:：].*\n답변[:：]"),
    re.compile(r"문[:：].*\n답[:：]"),
)
_HAS_TABLE = re.compile(r"\|.*\|.*\|")
_HAS_LIST = (
    re.compile(r"^[-*•]\s", re.MULTILINE),
    re.compile(r"^\d+[.)]\s", re.MULTILINE),
)

_FAQ_KEYWORDS = re.compile(
    r"(?:FAQ|Q\s*&\s*A|자주\s*묻는\s*질문|질문\s*답변|문의\s*답변|질의\s*응답)",
    re.IGNORECASE,
)
_FAQ_STRUCTURE = re.compile(r"(?:Q[:：]|A[:：]|질문[:：]|답변[:：]|문[:：]|답[:：])")
_FAQ_QUESTIONS = re.compile(r"(?:Q|질문|문)[:：]", re.IGNORECASE)
_TECHNICAL_KEYWORDS = re.compile(
    r"(?:API|SDK|개발\s*가이드|기술\s*문서|사용\s*설명서|매뉴얼|레퍼런스|설치\s*방법|사용법)",
    re.IGNORECASE,
)
_TECHNICAL_STRUCTURE = re.compile(r"```[\s\S]*?```|<code>[\s\S]*?</code>")
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_LEGAL_KEYWORDS = re.compile(
    r"(?:약관|이용약관|개인정보|계약서|조항|법률|규정|조례|동의서|면책|보증)",
    re.IGNORECASE,
)
_LEGAL_STRUCTURE = re.compile(
    r"제\s*\d+\s*조|제\s*\d+\s*항|제\s*\d+\s*호|Article\s+\d+",
    re.IGNORECASE,
)
_LEGAL_ARTICLE = re.compile(r"제\s*\d+\s*[조항호]")

_KOREAN_CHAR = re.compile(r"[가-힣ㄱ-ㅎㅏ-ㅣ]")
_ENGLISH_CHAR = re.compile(r"[a-zA-Z]")
_ALPHANUMERIC_CHAR = re.compile(r"[a-zA-Z가-힣ㄱ-ㅎㅏ-ㅣ0-9]")

_HEADER_LINE = re.compile(r"^#{1,6}\s+.+$")
_SEPARATOR_LINE = re.compile(r"^[-*_=]{3,}$")
_HR_LINE = re.compile(r"^<hr\s*/?>$", re.IGNORECASE)


class DocumentStructure(NamedTuple):
    has_headers: bool
    has_qa_pairs: bool
    has_tables: bool
    has_lists: bool


class _Unit(NamedTuple):
    start: int
    end: int
    is_qa_pair: bool = False
    has_header: bool = False


def analyze_structure(content: str) -> DocumentStructure:
    """Detect headers, Q&A pairs, tables and lists in a document."""
    return DocumentStructure(
        has_headers=bool(
            _HAS_MARKDOWN_HEADER.search(content) or _HAS_UNDERLINE_HEADER.search(content)
        ),
        has_qa_pairs=any(p.search(content) for p in _HAS_QA_PAIR),
        has_tables=bool(_HAS_TABLE.search(content)),
        has_lists=any(p.search(content) for p in _HAS_LIST),
    )


def classify_document_type(content: str) -> str:
    """Classify a document as faq, technical, legal or general.

    Keyword and structure matches add points per type; the best type
    needs at least 30 points, otherwise the document is general.
    """
    scores = {"faq": 0, "technical": 0, "legal": 0}

    if _FAQ_KEYWORDS.search(content):
        scores["faq"] += 30
    if _FAQ_STRUCTURE.search(content):
        scores["faq"] += 40
    if len(_FAQ_QUESTIONS.findall(content)) >= 3:
        scores["faq"] += 20

    if _TECHNICAL_KEYWORDS.search(content):
        scores["technical"] += 30
    if _TECHNICAL_STRUCTURE.search(content):
        scores["technical"] += 30
    if len(_CODE_BLOCK.findall(content)) >= 2:
        scores["technical"] += 20

    if _LEGAL_KEYWORDS.search(content):
        scores["legal"] += 30
    if _LEGAL_STRUCTURE.search(content):
        scores["legal"] += 40
    if len(_LEGAL_ARTICLE.findall(content)) >= 3:
        scores["legal"] += 20

    best = max(scores.values())
    if best >= 30:
        # dict order breaks ties: faq, technical, legal
        for doc_type, score in scores.items():
            if score == best:
                return doc_type

    return DEFAULT_DOCUMENT_TYPE


def find_sentence_boundaries(text: str) -> list[int]:
    """Return sorted end offsets of sentences and paragraphs in ``text``."""
    boundaries = set()
    for pattern in (_KOREAN_SENTENCE_END, _GENERAL_SENTENCE_END, _PARAGRAPH_BREAK):
        for match in pattern.finditer(text):
            boundaries.add(match.end())
    return sorted(boundaries)


def ends_with_complete_sentence(content: str) -> bool:
    """Whether text ends in terminal punctuation or a Korean sentence ending."""
    trimmed = content.strip()
    if re.search(r"[.!?。！？]$", trimmed):
        return True
    return trimmed.endswith(KOREAN_ENDINGS)


def detect_language(text: str) -> str:
    """Detect ko, en or mixed by counting words, not characters."""
    korean_words = 0
    english_words = 0

    for word in text.split():
        korean_chars = len(_KOREAN_CHAR.findall(word))
        english_chars = len(_ENGLISH_CHAR.findall(word))
        if korean_chars > 0 and korean_chars >= english_chars:
            korean_words += 1
        elif english_chars > 0:
            english_words += 1

    total = korean_words + english_words
    if total == 0:
        return "mixed"
    if korean_words / total >= 0.6:
        return "ko"
    if english_words / total >= 0.6:
        return "en"
    return "mixed"


def calculate_readability_score(text: str) -> float:
    """Rough 0-100 readability from sentence length, vocabulary and symbols."""
    if not text.strip():
        return 0.0

    score = 100

    sentence_count = max(1, len(find_sentence_boundaries(text)))
    avg_sentence_length = len(text) / sentence_count
    if avg_sentence_length < 10:
        score -= 15
    elif avg_sentence_length > 100:
        score -= 30
    elif avg_sentence_length > 80:
        score -= 20
    elif avg_sentence_length > 50:
        score -= 10

    words = [w for w in text.split() if len(w) > 1]
    if len(words) > 5:
        diversity = len({w.lower() for w in words}) / len(words)
        if diversity < 0.3:
            score -= 15
        elif diversity < 0.5:
            score -= 5

    if len(_ALPHANUMERIC_CHAR.findall(text)) / len(text) < 0.5:
        score -= 15

    if ends_with_complete_sentence(text):
        score += 5

    return float(max(0, min(100, score)))


def is_header_or_separator_only(content: str) -> bool:
    """True for chunks holding only headers, rules or under 20 chars of text."""
    trimmed = content.strip()
    if not trimmed:
        return True

    meaningful = []
    for line in trimmed.split("\n"):
        line = line.strip()
        if not line:
            continue
        if _HEADER_LINE.match(line) or _SEPARATOR_LINE.match(line) or _HR_LINE.match(line):
            continue
        meaningful.append(line)

    if not meaningful:
        return True

    return len(" ".join(meaningful).strip()) < 20


def _trim_span(text: str, start: int, end: int) -> tuple[int, int]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _sentence_overlap_start(text: str, target_overlap: int) -> int:
    """Offset in ``text`` where the next chunk should start.

    Prefers the last sentence boundary that leaves at least
    ``target_overlap`` characters of overlap.
    """
    boundaries = find_sentence_boundaries(text)
    if not boundaries:
        return max(0, len(text) - target_overlap)

    target_start = len(text) - target_overlap
    eligible = [b for b in boundaries if b <= target_start]
    return eligible[-1] if eligible else 0


class StructuralChunker(BaseChunker):
    """Split documents along Q&A pairs, headers and paragraphs.

    Oversized units are split at sentence boundaries and overlapped by
    whole sentences. Chunk size and overlap follow the detected document
    type unless given explicitly.
    """

    def __init__(
        self,
        max_chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        preserve_structure: bool = True,
        auto_detect_document_type: bool = True,
    ):
        """Initialize the structural chunker.

        Args:
            max_chunk_size: Maximum characters per chunk (auto if None)
            overlap: Target characters of overlap between chunks (auto if None)
            preserve_structure: Split along Q&A pairs and headers first
            auto_detect_document_type: Pick sizes from the document type
        """
        if max_chunk_size is not None and overlap is not None and overlap >= max_chunk_size:
            raise ValueError("Overlap must be less than max_chunk_size")

        self.max_chunk_size = max_chunk_size
        self.overlap = overlap
        self.preserve_structure = preserve_structure
        self.auto_detect_document_type = auto_detect_document_type

    def _resolve_sizes(self, content: str) -> tuple[str, int, int]:
        general = DOCUMENT_TYPE_CONFIGS[DEFAULT_DOCUMENT_TYPE]
        document_type = DEFAULT_DOCUMENT_TYPE

        if (
            self.auto_detect_document_type
            and self.max_chunk_size is None
            and self.overlap is None
        ):
            document_type = classify_document_type(content)
            config = DOCUMENT_TYPE_CONFIGS[document_type]
            return document_type, config.max_chunk_size, config.overlap

        return (
            document_type,
            self.max_chunk_size or general.max_chunk_size,
            self.overlap if self.overlap is not None else general.overlap,
        )

    def chunk(self, document: Document) -> list[Chunk]:
        """Split a document into structurally coherent chunks."""
        text = document.content
        if not text.strip():
            return []

        document_type, max_size, overlap = self._resolve_sizes(text)
        structure = analyze_structure(text)

        spans: list[_Unit] = []
        for unit in self._semantic_units(text, structure):
            spans.extend(self._split_with_overlap(text, unit, max_size, overlap))

        chunks = []
        for span in spans:
            content = text[span.start:span.end]
            if is_header_or_separator_only(content):
                continue

            index = len(chunks)
            sentence_count = max(1, len(find_sentence_boundaries(content)))
            chunks.append(Chunk(
                id=f"{document.id}_chunk_{index}",
                document_id=document.id,
                content=content,
                index=index,
                quality_score=score_structural(content),
                metadata=ChunkMetadata(
                    start_offset=span.start,
                    end_offset=span.end,
                    has_header=span.has_header,
                    is_qa_pair=span.is_qa_pair,
                    is_table=bool(_HAS_TABLE.search(content)),
                    is_list=any(p.search(content) for p in _HAS_LIST),
                    document_type=document_type,
                    sentence_count=sentence_count,
                    avg_sentence_length=round(len(content) / sentence_count),
                    language=detect_language(content),
                    readability_score=calculate_readability_score(content),
                ),
            ))

        logger.debug(
            f"Chunked document {document.id} ({document_type}) into {len(chunks)} chunks"
        )
        return chunks

    def _semantic_units(self, text: str, structure: DocumentStructure) -> list[_Unit]:
        """Split text into Q&A pairs, header sections or paragraphs."""
        if not self.preserve_structure:
            return [_Unit(*_trim_span(text, 0, len(text)))]

        if structure.has_qa_pairs:
            units = self._units_around(text, _QA_UNIT)
            if units:
                return units

        if structure.has_headers:
            units = self._header_sections(text)
            if units:
                return units

        units = []
        position = 0
        for match in _PARAGRAPH_SPLIT.finditer(text):
            units.append(_Unit(*_trim_span(text, position, match.start())))
            position = match.end()
        units.append(_Unit(*_trim_span(text, position, len(text))))
        return [u for u in units if u.end > u.start]

    @staticmethod
    def _units_around(text: str, pattern: re.Pattern) -> list[_Unit]:
        units = []
        last = 0
        for match in pattern.finditer(text):
            if match.start() > last:
                start, end = _trim_span(text, last, match.start())
                if end > start:
                    units.append(_Unit(start, end))
            start, end = _trim_span(text, match.start(), match.end())
            units.append(_Unit(start, end, is_qa_pair=True))
            last = match.end()

        start, end = _trim_span(text, last, len(text))
        if end > start:
            units.append(_Unit(start, end))
        return units

    @staticmethod
    def _header_sections(text: str) -> list[_Unit]:
        starts = [m.start() for m in _HEADER_UNIT.finditer(text)]
        if not starts or starts[0] != 0:
            starts.insert(0, 0)
        starts.append(len(text))

        units = []
        for section_start, section_end in zip(starts, starts[1:]):
            start, end = _trim_span(text, section_start, section_end)
            if end > start:
                has_header = bool(_HEADER_UNIT.match(text, start))
                units.append(_Unit(start, end, has_header=has_header))
        return units

    @staticmethod
    def _split_with_overlap(
        text: str,
        unit: _Unit,
        max_size: int,
        overlap: int,
    ) -> list[_Unit]:
        """Split one unit into spans of at most ``max_size`` characters."""
        length = unit.end - unit.start
        if length <= max_size:
            return [unit]

        content = text[unit.start:unit.end]
        spans = []
        current = 0

        while current < length:
            end = min(current + max_size, length)

            if end < length:
                boundaries = find_sentence_boundaries(content[current:end])
                last_boundary = boundaries[-1] if boundaries else end - current
                if last_boundary > max_size * 0.5:
                    end = current + last_boundary

            start, stop = _trim_span(text, unit.start + current, unit.start + end)
            if stop > start:
                spans.append(unit._replace(start=start, end=stop))

            if end >= length:
                break

            window = content[current:end]
            overlap_start = _sentence_overlap_start(window, overlap)
            if overlap_start < len(window) // 2:
                # Sentence overlap would repeat most of the window
                overlap_start = max(len(window) - overlap, len(window) // 2)

            current += max(1, overlap_start)

        return spans


class FixedSizeChunker(BaseChunker):
    """Chunk documents into fixed-size pieces with optional overlap.

    Simple but effective chunking strategy that splits text into
    chunks of a specified character count.
    """

    def __init__(
        self,
        chunk_size: int = 500,
        overlap: int = 50,
    ):
        """Initialize the fixed-size chunker.

        Args:
            chunk_size: Maximum characters per chunk
            overlap: Number of characters to overlap between chunks
        """
        if overlap >= chunk_size:
            raise ValueError("Overlap must be less than chunk_size")

        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, document: Document) -> list[Chunk]:
        """Split document into fixed-size chunks."""
        text = document.content
        chunks = []

        start = 0
        while start < len(text):
            end = min(start + self.chunk_size, len(text))
            chunk_text = text[start:end]

            if chunk_text.strip():
                index = len(chunks)
                chunks.append(Chunk(
                    id=f"{document.id}_chunk_{index}",
                    document_id=document.id,
                    content=chunk_text,
                    index=index,
                    quality_score=score_structural(chunk_text),
                    metadata=ChunkMetadata(start_offset=start, end_offset=end),
                ))

            # Move start position, accounting for overlap
            start = end - self.overlap if end < len(text) else end

        return chunks
