"""Late chunking: embed the whole document, then derive chunk embeddings.

The document is split into token-bounded segments and every segment is
embedded. Chunk boundaries come from a separate boundary detector; each
chunk's embedding is pooled from the segment embeddings that overlap
its character span, so chunks keep the context of their surroundings.
"""

import asyncio
import uuid
from typing import NamedTuple, Optional

from ragpilot.exceptions import EmbeddingError, EmbeddingProviderError
from ragpilot.utils.config import LateChunkingConfig, QualityConfig
from ragpilot.utils.logging import get_logger

from .base import BaseChunker, BaseEmbedding
from .chunking import StructuralChunker
from .document import Chunk, Document, LateChunkingMetadata
from .quality import apply_embedding_validation
from .tokens import estimate_token_count, split_by_token_limit
from .vectors import check_dimensions, cosine_similarity, mean_pool, pool

logger = get_logger(__name__)


class Span(NamedTuple):
    start: int
    end: int


class _DocumentPass(NamedTuple):
    """Result of embedding one document segment by segment."""
    spans: list[Span]
    embeddings: list[list[float]]
    document_embedding: list[float]


def locate_segments(content: str, segments: list[str]) -> list[Span]:
    """Find each segment's character span in ``content``.

    Segments keep every non-whitespace character of the source in order
    but may drop or normalise whitespace between paragraphs, so spans are
    found by a forward scan that aligns non-whitespace characters.
    """
    spans = []
    position = 0

    for segment in segments:
        significant = [c for c in segment if not c.isspace()]
        if not significant:
            spans.append(Span(position, position))
            continue

        while position < len(content) and content[position].isspace():
            position += 1
        start = position

        matched = 0
        while position < len(content) and matched < len(significant):
            char = content[position]
            if not char.isspace():
                if char != significant[matched]:
                    raise ValueError(
                        f"Segment does not match source text at offset {position}"
                    )
                matched += 1
            position += 1

        spans.append(Span(start, position))

    return spans


def _chunk_span(chunk: Chunk, content: str, cursor: int) -> Span:
    """Character span of a chunk, searching forward when offsets are unset."""
    meta = chunk.metadata
    if meta.end_offset > meta.start_offset:
        return Span(meta.start_offset, meta.end_offset)

    start = content.find(chunk.content, cursor)
    if start < 0:
        start = content.find(chunk.content)
    if start < 0:
        # Content was edited; fall back to the cursor position
        start = min(cursor, len(content))
    return Span(start, start + len(chunk.content))


def _overlap(a: Span, b: Span) -> int:
    return max(0, min(a.end, b.end) - max(a.start, b.start))


def _distance(a: Span, b: Span) -> int:
    if _overlap(a, b) > 0:
        return 0
    return max(b.start - a.end, a.start - b.end, 0)


class LateChunker:
    """Produce embedded chunks whose vectors carry document-level context.

    Example:
        ```python
        chunker = LateChunker(OpenAIEmbedding())
        chunks = await chunker.late_chunk(text, document_id="handbook")
        ```
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        chunker: Optional[BaseChunker] = None,
        config: LateChunkingConfig = LateChunkingConfig(),
        quality_config: QualityConfig = QualityConfig(),
    ):
        """Initialize the late chunker.

        Args:
            embedding: Embedding provider for document segments
            chunker: Boundary detector (defaults to StructuralChunker)
            config: Pooling, segmentation and concurrency settings
            quality_config: Embedding validation bands for quality scores
        """
        self.embedding = embedding
        self.chunker = chunker or StructuralChunker()
        self.config = config
        self.quality_config = quality_config

    async def _embed_batch(
        self,
        batch: list[str],
        semaphore: asyncio.Semaphore,
        timeout: float,
    ) -> list[list[float]]:
        async with semaphore:
            try:
                vectors = await asyncio.wait_for(
                    self.embedding.embed_documents(batch),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise EmbeddingProviderError(
                    f"Embedding provider timed out after {timeout}s"
                ) from e
            except EmbeddingError:
                raise
            except Exception as e:
                raise EmbeddingProviderError(f"Embedding provider failed: {e}") from e

        if len(vectors) != len(batch):
            raise EmbeddingProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(batch)} texts"
            )
        return vectors

    async def _embed_segments(
        self,
        segments: list[str],
        config: LateChunkingConfig,
    ) -> list[list[float]]:
        """Embed segments in concurrent batches, preserving order.

        The first failing batch cancels the batches still in flight.
        """
        semaphore = asyncio.Semaphore(config.max_concurrency)
        batches = [
            segments[i:i + config.batch_size]
            for i in range(0, len(segments), config.batch_size)
        ]

        tasks = [
            asyncio.ensure_future(self._embed_batch(batch, semaphore, config.embedding_timeout))
            for batch in batches
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        embeddings = [vector for batch in results for vector in batch]
        for vector in embeddings:
            if not vector:
                raise EmbeddingProviderError("Embedding provider returned an empty vector")
        check_dimensions(embeddings, self.embedding.dimension)
        return embeddings

    async def _document_pass(self, content: str, config: LateChunkingConfig) -> _DocumentPass:
        segments = split_by_token_limit(content, config.max_tokens_per_segment)
        logger.debug(
            f"Late chunking: {len(content)} chars, ~{estimate_token_count(content)} tokens, "
            f"{len(segments)} segments"
        )

        embeddings = await self._embed_segments(segments, config)
        return _DocumentPass(
            spans=locate_segments(content, segments),
            embeddings=embeddings,
            document_embedding=mean_pool(embeddings),
        )

    def _pool_for_span(
        self,
        span: Span,
        document: _DocumentPass,
        config: LateChunkingConfig,
    ) -> tuple[list[float], int]:
        """Pool the segment embeddings overlapping ``span``.

        Returns the pooled vector and the number of segments used. A span
        that overlaps no segment borrows the nearest segment's embedding.
        """
        vectors = []
        weights = []
        length = max(1, span.end - span.start)

        for segment_span, vector in zip(document.spans, document.embeddings):
            overlap = _overlap(span, segment_span)
            if overlap > 0:
                vectors.append(vector)
                weights.append(overlap / length)

        if not vectors:
            nearest = min(
                range(len(document.spans)),
                key=lambda i: _distance(span, document.spans[i]),
            )
            return list(document.embeddings[nearest]), 1

        return pool(vectors, config.pooling_strategy, weights), len(vectors)

    def _embed_chunks(
        self,
        chunks: list[Chunk],
        content: str,
        document: _DocumentPass,
        config: LateChunkingConfig,
        validate: bool,
    ) -> list[Chunk]:
        results = []
        cursor = 0

        for chunk in chunks:
            span = _chunk_span(chunk, content, cursor)
            cursor = max(cursor, span.start)

            embedding, segment_count = self._pool_for_span(span, document, config)
            similarity = cosine_similarity(embedding, document.document_embedding)

            quality_score = chunk.quality_score
            if validate:
                quality_score = apply_embedding_validation(
                    quality_score, similarity, self.quality_config
                )

            results.append(chunk.model_copy(update={
                "embedding": embedding,
                "quality_score": quality_score,
                "late_chunking_metadata": LateChunkingMetadata(
                    pooling_strategy=config.pooling_strategy,
                    source_segment_count=segment_count,
                    estimated_tokens=estimate_token_count(chunk.content),
                    document_similarity=similarity,
                ),
            }))

        if results:
            average = sum(
                c.late_chunking_metadata.document_similarity for c in results
            ) / len(results)
            logger.debug(
                f"Late chunking produced {len(results)} chunks "
                f"(avg document similarity {average:.3f})"
            )

        return results

    async def late_chunk(
        self,
        content: str,
        options: Optional[LateChunkingConfig] = None,
        *,
        document_id: Optional[str] = None,
    ) -> list[Chunk]:
        """Chunk and embed a document.

        Args:
            content: Full document text
            options: Per-call settings (defaults to the chunker's config)
            document_id: ID stamped on every chunk (random if None)

        Returns:
            Embedded chunks, or an empty list for blank input

        Raises:
            EmbeddingProviderError: If the provider fails or times out
            EmbeddingDimensionMismatch: If segment vectors disagree in length
        """
        if not content or not content.strip():
            return []

        config = options or self.config
        document = await self._document_pass(content, config)

        chunks = self.chunker.chunk(Document(
            id=document_id or uuid.uuid4().hex,
            content=content,
        ))

        return self._embed_chunks(
            chunks, content, document, config, validate=config.validate_with_embedding
        )

    async def add_late_chunking_embeddings(
        self,
        chunks: list[Chunk],
        original_content: str,
        options: Optional[LateChunkingConfig] = None,
    ) -> list[Chunk]:
        """Attach late-chunking embeddings to chunks cut elsewhere.

        Content, index, quality score and metadata are kept; only the
        embedding and late-chunking metadata are filled in.
        """
        if not chunks:
            return []
        if not original_content or not original_content.strip():
            logger.warning("Cannot embed chunks without the original document text")
            return []

        config = options or self.config
        document = await self._document_pass(original_content, config)
        return self._embed_chunks(chunks, original_content, document, config, validate=False)
