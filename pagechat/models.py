"""Data models for the RAG application."""

import dataclasses
import datetime
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np


class EmbeddingIntent(StrEnum):
    """How the embedding backend should treat a piece of text."""

    QUERY = "RETRIEVAL_QUERY"
    DOCUMENT = "RETRIEVAL_DOCUMENT"


class Role(StrEnum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class DocumentChunk:
    """Represents a chunk of text from one page of a document."""

    chunk_id: str
    content: str
    page_number: int
    embedding: np.ndarray | None = field(default=None, compare=False)
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def with_embedding(self, embedding: np.ndarray) -> "DocumentChunk":
        """Return a copy of this chunk carrying ``embedding``."""
        return dataclasses.replace(self, embedding=embedding)


@dataclass(frozen=True)
class EmbeddingFailure:
    """Classified failure reported by an embedding backend."""

    retryable: bool
    reason: str
    status_code: int | None = None


@dataclass
class ConversationTurn:
    """Represents a single turn in the conversation."""

    role: Role
    content: str
    position: int
    timestamp: str = field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.UTC).isoformat()
    )

    def render(self) -> str:
        return f"{self.role}: {self.content}"


@dataclass
class DocumentSummary:
    """Describes the document currently loaded into the index."""

    name: str
    size_bytes: int
    page_count: int
    processed: bool
    chunk_count: int = 0
    embedded_count: int = 0
    uploaded_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.UTC)
    )
