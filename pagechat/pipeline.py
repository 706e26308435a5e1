"""Main RAG pipeline orchestrating document ingestion and retrieval."""

import numpy as np

from .config import config
from .document_processing import PageSource, ProgressCallback, TextChunker
from .embeddings import EmbeddingService
from .errors import EmptyDocumentError
from .models import DocumentChunk, DocumentSummary, EmbeddingIntent
from .vector_index import VectorIndex

logger = config.get_logger(__name__)


class RAGPipeline:
    """Main RAG pipeline orchestrating Split -> Embed -> Index -> Search."""

    def __init__(
        self,
        chunker: TextChunker | None = None,
        embedding_service: EmbeddingService | None = None,
        vector_index: VectorIndex | None = None,
        top_k: int | None = None,
    ) -> None:
        """Initialize RAG pipeline.

        Args:
            chunker: Text chunker. If None, built from config.CHUNK_SIZE,
                config.CHUNK_OVERLAP and config.CHUNK_MIN_LENGTH.
            embedding_service: Embedding service. If None, an OpenAI-backed
                service built from configuration.
            vector_index: Index owned by this pipeline. If None, a fresh one.
            top_k: Default number of chunks to retrieve. If None, uses
                config.RETRIEVAL_TOP_K.
        """
        self.chunker = chunker or TextChunker(
            chunk_size=config.CHUNK_SIZE,
            overlap=config.CHUNK_OVERLAP,
            min_length=config.CHUNK_MIN_LENGTH,
        )
        self.embedding_service = embedding_service or EmbeddingService()
        self.vector_index = vector_index if vector_index is not None else VectorIndex()
        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K
        self.document: DocumentSummary | None = None

    def ingest(
        self,
        page_source: PageSource,
        progress_callback: ProgressCallback | None = None,
    ) -> DocumentSummary:
        """Chunk, embed and index a document, replacing the previous one.

        Args:
            page_source: Provider of the document's page texts.
            progress_callback: Called with ``(page_number, total_pages)``
                after each page is chunked.

        Returns:
            Summary of the loaded document.

        Raises:
            EmptyDocumentError: If no page produced a usable chunk. The
                previously loaded document stays indexed.
        """
        logger.info("Starting ingestion for document: %s", page_source.name)

        chunks = self.chunker.chunk_pages(page_source, progress_callback)
        if not chunks:
            msg = f"No text found in document '{page_source.name}'"
            raise EmptyDocumentError(msg)

        embedded = self.embedding_service.embed_many(chunks)
        self.vector_index.replace(embedded)

        self.document = DocumentSummary(
            name=page_source.name,
            size_bytes=page_source.size_bytes,
            page_count=page_source.page_count,
            processed=True,
            chunk_count=len(embedded),
            embedded_count=sum(1 for chunk in embedded if chunk.embedding is not None),
        )
        logger.info(
            "Document processing completed: %d chunks (%d embedded)",
            self.document.chunk_count,
            self.document.embedded_count,
        )
        return self.document

    def embed_query(self, question: str) -> np.ndarray | None:
        return self.embedding_service.embed(question, EmbeddingIntent.QUERY)

    def search(
        self, query_embedding: np.ndarray, top_k: int | None = None
    ) -> list[tuple[DocumentChunk, float]]:
        return self.vector_index.search(
            query_embedding, top_k=self.top_k if top_k is None else top_k
        )

    def query(
        self, question: str, top_k: int | None = None
    ) -> list[tuple[DocumentChunk, float]] | None:
        """Query the RAG system.

        Args:
            question: The input question to query.
            top_k: Number of top results to return.

        Returns:
            Ranked (DocumentChunk, score) pairs, or None if the question
            could not be embedded.
        """
        logger.info("Processing query: %s", question)

        query_embedding = self.embed_query(question)
        if query_embedding is None:
            logger.error("Failed to generate embedding for query")
            return None
        return self.search(query_embedding, top_k)

    def reset(self) -> None:
        """Discard the loaded document and its index."""
        self.vector_index.clear()
        self.document = None
