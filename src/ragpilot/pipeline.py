"""End-to-end pipeline: index documents, then answer chat messages."""

from typing import Optional

from ragpilot.chat.intent import DEFAULT_PERSONA, IntentClassifier, PersonaConfig
from ragpilot.chat.responses import ResponseGenerator
from ragpilot.chat.router import QueryRouter, RouterResult
from ragpilot.core.message import Message
from ragpilot.providers.base import LLMProvider
from ragpilot.rag.base import BaseChunker, BaseEmbedding
from ragpilot.rag.document import Chunk, ChunkStatus, Document
from ragpilot.rag.late_chunking import LateChunker
from ragpilot.rag.quality import QualitySummary, initial_review_state, summarize_quality
from ragpilot.rag.reranker import LLMReranker
from ragpilot.rag.retriever import HybridRetriever, KeywordRetriever, VectorRetriever
from ragpilot.rag.vectorstore import MemoryVectorStore
from ragpilot.utils.config import RAGConfig
from ragpilot.utils.logging import get_logger

logger = get_logger(__name__)


class RAGPipeline:
    """Complete RAG preparation and query-routing pipeline.

    Documents are late-chunked, scored and put through the auto-approval
    policy before they land in the in-memory vector and keyword indices.
    Chat messages are classified and routed; only approved, active chunks
    are ever retrieved.

    Example:
        ```python
        pipeline = RAGPipeline(OpenAIEmbedding(), OpenAIProvider())

        await pipeline.index(Document(id="faq", content=faq_text))
        result = await pipeline.ask("How do I get a refund?")

        if result.should_use_rag:
            context = [c.chunk.content for c in result.evidence]
        else:
            print(result.response)
        ```
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        llm_provider: Optional[LLMProvider] = None,
        config: RAGConfig = RAGConfig(),
        chunker: Optional[BaseChunker] = None,
        persona: PersonaConfig = DEFAULT_PERSONA,
    ):
        """Initialize the RAG pipeline.

        Args:
            embedding: Embedding model for documents and queries
            llm_provider: LLM for intent, reranking and replies (optional)
            config: Pipeline configuration
            chunker: Chunk boundary detector (default: StructuralChunker)
            persona: Default chatbot persona
        """
        self.embedding = embedding
        self.llm_provider = llm_provider
        self.config = config
        self.persona = persona

        self.vectorstore = MemoryVectorStore()
        self.keyword_index = KeywordRetriever()

        self.late_chunker = LateChunker(
            embedding,
            chunker=chunker,
            config=config.late_chunking,
            quality_config=config.quality,
        )
        self.retriever = HybridRetriever(
            VectorRetriever(embedding, self.vectorstore),
            self.keyword_index,
            config=config.retrieval,
        )
        self.classifier = IntentClassifier(llm_provider, persona, config.llm)
        self.router = QueryRouter(
            self.retriever,
            reranker=LLMReranker(llm_provider, config.reranker) if llm_provider else None,
            responder=ResponseGenerator(llm_provider, config.llm),
            config=config.router,
            reranker_config=config.reranker,
        )

    async def index(self, document: Document) -> list[Chunk]:
        """Chunk, embed, score and store a document.

        Args:
            document: Document to index

        Returns:
            The stored chunks with their review state
        """
        chunks = await self.late_chunker.late_chunk(document.content, document_id=document.id)

        # Re-indexing replaces every chunk of the previous version
        stale = await self.vectorstore.delete_document(document.id)
        self.keyword_index.remove_chunks(stale)

        if not chunks:
            logger.info(f"Document {document.id} produced no chunks")
            return []

        reviewed = []
        for chunk in chunks:
            status, auto_approved = initial_review_state(chunk.quality_score, self.config.quality)
            reviewed.append(chunk.model_copy(update={
                "status": status,
                "auto_approved": auto_approved,
            }))

        await self.vectorstore.add(reviewed)
        self.keyword_index.add_chunks(reviewed)

        approved = sum(1 for c in reviewed if c.auto_approved)
        logger.info(
            f"Indexed document {document.id}: {len(reviewed)} chunks, {approved} auto-approved"
        )
        return reviewed

    async def ask(
        self,
        message: str,
        history: Optional[list[Message]] = None,
        persona: Optional[PersonaConfig] = None,
        limit: int = 5,
    ) -> RouterResult:
        """Classify and route a chat message."""
        persona = persona or self.persona
        intent = await self.classifier.classify(message, history, persona)
        return await self.router.route(message, intent, persona, limit=limit)

    async def _set_review_state(self, chunk_id: str, **update) -> Optional[Chunk]:
        chunk = await self.vectorstore.get(chunk_id)
        if chunk is None:
            return None

        updated = chunk.model_copy(update=update)
        await self.vectorstore.update(updated)
        self.keyword_index.update_chunk(updated)
        return updated

    async def approve_chunk(self, chunk_id: str) -> Optional[Chunk]:
        """Approve a chunk so retrieval can serve it."""
        return await self._set_review_state(
            chunk_id, status=ChunkStatus.APPROVED, is_active=True
        )

    async def reject_chunk(self, chunk_id: str) -> Optional[Chunk]:
        """Reject and soft-delete a chunk."""
        return await self._set_review_state(
            chunk_id, status=ChunkStatus.REJECTED, is_active=False
        )

    async def count_chunks(self) -> int:
        """Return the total number of stored chunks."""
        return await self.vectorstore.count()

    async def quality_summary(self, document_id: Optional[str] = None) -> QualitySummary:
        """Summarise chunk quality, optionally for one document."""
        return summarize_quality(await self.vectorstore.list_chunks(document_id))
