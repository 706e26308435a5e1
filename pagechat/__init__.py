"""PageChat - retrieval-augmented question answering over one document."""

from .conversation import ConversationManager
from .document_processing import (
    DocumentLoader,
    PdfPageSource,
    TextChunker,
    TextPageSource,
    format_bytes,
)
from .embeddings import EmbeddingService, OpenAIEmbeddingBackend, RetryPolicy
from .errors import (
    DocumentReadError,
    EmptyDocumentError,
    GenerationError,
    PageChatError,
)
from .generation import GenerationService
from .models import (
    ConversationTurn,
    DocumentChunk,
    DocumentSummary,
    EmbeddingFailure,
    EmbeddingIntent,
    Role,
)
from .pipeline import RAGPipeline
from .vector_index import VectorIndex, cosine_similarity

__all__ = [
    "ConversationManager",
    "ConversationTurn",
    "DocumentChunk",
    "DocumentLoader",
    "DocumentReadError",
    "DocumentSummary",
    "EmbeddingFailure",
    "EmbeddingIntent",
    "EmbeddingService",
    "EmptyDocumentError",
    "GenerationError",
    "GenerationService",
    "OpenAIEmbeddingBackend",
    "PageChatError",
    "PdfPageSource",
    "RAGPipeline",
    "RetryPolicy",
    "Role",
    "TextChunker",
    "TextPageSource",
    "VectorIndex",
    "cosine_similarity",
    "format_bytes",
]
