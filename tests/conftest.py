"""Test configuration and fixtures for PageChat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Fake embedding and generation backends
- OpenAI API mocks
- Chunker, embedding service and pipeline factories
- Sample data factories
"""

import hashlib
import threading
from collections.abc import Iterable
from unittest.mock import Mock, patch

import httpx
import numpy as np
import openai
import pytest

from pagechat import (
    ConversationManager,
    DocumentChunk,
    EmbeddingFailure,
    EmbeddingIntent,
    EmbeddingService,
    GenerationError,
    RAGPipeline,
    RetryPolicy,
    TextChunker,
    TextPageSource,
    VectorIndex,
)


class TestConstants:
    """Centralized test constants shared across the test suite."""

    __test__ = False

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    DEFAULT_EMBEDDING_DIMENSION = 64
    OPENAI_URL = "https://api.openai.com/v1/embeddings"

    # Text Chunking Configuration
    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 1000
    DEFAULT_CHUNK_OVERLAP = 200
    MIN_CHUNK_LENGTH = 50

    VOCABULARY = (
        "machine",
        "learning",
        "neural",
        "network",
        "photosynthesis",
        "plant",
        "volcano",
        "lava",
    )


class HashEmbeddingBackend:
    """Deterministic embeddings derived from a hash of the text.

    Records every call so tests can assert on intent and title handling.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.calls: list[tuple[str, EmbeddingIntent, str | None]] = []
        self._lock = threading.Lock()

    def vector_for(self, text: str) -> np.ndarray:
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return embedding / np.linalg.norm(embedding)

    def embed(
        self,
        text: str,
        intent: EmbeddingIntent,
        title: str | None = None,
    ) -> np.ndarray | EmbeddingFailure:
        with self._lock:
            self.calls.append((text, intent, title))
        return self.vector_for(text)


class KeywordEmbeddingBackend(HashEmbeddingBackend):
    """Bag-of-words embeddings over a small vocabulary.

    Texts sharing vocabulary words get high cosine similarity, which makes
    retrieval results predictable in end-to-end tests.
    """

    def __init__(self, vocabulary: Iterable[str] = TestConstants.VOCABULARY) -> None:
        self.vocabulary = tuple(vocabulary)
        super().__init__(dimension=len(self.vocabulary))

    def vector_for(self, text: str) -> np.ndarray:
        lowered = text.lower()
        return np.array(
            [lowered.count(word) for word in self.vocabulary], dtype=np.float64
        )


class ScriptedEmbeddingBackend:
    """Returns queued results in order, then falls back to a default."""

    def __init__(
        self,
        results: Iterable[np.ndarray | EmbeddingFailure] = (),
        default: np.ndarray | EmbeddingFailure | None = None,
    ) -> None:
        self.results = list(results)
        self.default = default if default is not None else np.ones(3)
        self.call_count = 0
        self._lock = threading.Lock()

    def embed(
        self,
        text: str,  # noqa: ARG002
        intent: EmbeddingIntent,  # noqa: ARG002
        title: str | None = None,  # noqa: ARG002
    ) -> np.ndarray | EmbeddingFailure:
        with self._lock:
            self.call_count += 1
            if self.results:
                return self.results.pop(0)
            return self.default


class FailingEmbeddingBackend:
    """Backend that fails for texts containing a marker, succeeds otherwise."""

    def __init__(
        self,
        fail_marker: str | None = None,
        *,
        retryable: bool = True,
        status_code: int = 503,
        delegate: HashEmbeddingBackend | None = None,
    ) -> None:
        self.fail_marker = fail_marker
        self.failure = EmbeddingFailure(
            retryable=retryable, reason="backend down", status_code=status_code
        )
        self.delegate = delegate or HashEmbeddingBackend()
        self.call_count = 0
        self._lock = threading.Lock()

    def embed(
        self,
        text: str,
        intent: EmbeddingIntent,
        title: str | None = None,
    ) -> np.ndarray | EmbeddingFailure:
        with self._lock:
            self.call_count += 1
        if self.fail_marker is None or self.fail_marker in text:
            return self.failure
        return self.delegate.embed(text, intent, title)


class FakeGenerator:
    """Generator double recording prompts and temperatures."""

    def __init__(self, answer: str = "Test answer", error: bool = False) -> None:
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []
        self.temperatures: list[float] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    @property
    def last_prompt(self) -> str:
        return self.prompts[-1]

    def generate(self, prompt: str, temperature: float) -> str:
        self.prompts.append(prompt)
        self.temperatures.append(temperature)
        if self.error:
            msg = "Chat completion failed: boom"
            raise GenerationError(msg)
        return self.answer


class SleepRecorder:
    """Stand-in for ``time.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_status_error(status_code: int, message: str = "API Error") -> openai.APIStatusError:
    """Build the OpenAI SDK exception raised for an HTTP ``status_code``."""
    request = httpx.Request("POST", TestConstants.OPENAI_URL)
    response = httpx.Response(status_code, request=request)
    error_classes = {
        400: openai.BadRequestError,
        401: openai.AuthenticationError,
        429: openai.RateLimitError,
        500: openai.InternalServerError,
    }
    error_class = error_classes.get(status_code, openai.APIStatusError)
    return error_class(message, response=response, body=None)


def make_connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(
        request=httpx.Request("POST", TestConstants.OPENAI_URL)
    )


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def make_chunk(
    page_number: int,
    content: str,
    embedding: np.ndarray | list[float] | None = None,
    start: int = 0,
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=f"p{page_number}-{start}",
        content=content,
        page_number=page_number,
        embedding=None if embedding is None else np.asarray(embedding, dtype=float),
        metadata={"source": "test.pdf", "start_char": start},
    )


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the OpenAI SDK's embeddings.create method."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def hash_backend():
    return HashEmbeddingBackend()


@pytest.fixture
def keyword_backend():
    return KeywordEmbeddingBackend()


@pytest.fixture
def text_chunker_factory():
    """Factory fixture that creates ``TextChunker`` instances on demand."""
    presets: dict[str, tuple[int, int]] = {
        "small": (
            TestConstants.SMALL_CHUNK_SIZE,
            TestConstants.SMALL_CHUNK_OVERLAP,
        ),
        "default": (
            TestConstants.DEFAULT_CHUNK_SIZE,
            TestConstants.DEFAULT_CHUNK_OVERLAP,
        ),
    }

    def _create_chunker(
        name: str = "default",
        *,
        min_length: int = TestConstants.MIN_CHUNK_LENGTH,
    ) -> TextChunker:
        try:
            chunk_size, overlap = presets[name]
        except KeyError as exc:
            msg = f"Unknown text chunker preset: {name}"
            raise ValueError(msg) from exc
        return TextChunker(chunk_size=chunk_size, overlap=overlap, min_length=min_length)

    return _create_chunker


@pytest.fixture
def embedding_service_factory(sleep_recorder):
    """Factory for EmbeddingService instances that never really sleep."""

    def _create_service(
        backend,
        *,
        max_attempts: int = 3,
        batch_size: int = 10,
        batch_delay: float = 0.1,
    ) -> EmbeddingService:
        return EmbeddingService(
            backend,
            retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=1.0),
            batch_size=batch_size,
            batch_delay=batch_delay,
            sleep=sleep_recorder,
        )

    return _create_service


@pytest.fixture
def rag_pipeline_factory(embedding_service_factory):
    """Factory for RAGPipeline instances over a given embedding backend."""

    def _create_pipeline(
        backend=None,
        *,
        chunk_size: int = TestConstants.DEFAULT_CHUNK_SIZE,
        overlap: int = TestConstants.DEFAULT_CHUNK_OVERLAP,
        top_k: int = 5,
    ) -> RAGPipeline:
        return RAGPipeline(
            chunker=TextChunker(chunk_size=chunk_size, overlap=overlap),
            embedding_service=embedding_service_factory(
                backend if backend is not None else HashEmbeddingBackend()
            ),
            vector_index=VectorIndex(),
            top_k=top_k,
        )

    return _create_pipeline


@pytest.fixture
def conversation_manager_factory(rag_pipeline_factory):
    """Factory returning (ConversationManager, FakeGenerator) pairs."""

    def _create_manager(
        backend=None,
        *,
        answer: str = "Test answer",
        generation_error: bool = False,
        max_history_turns: int = 4,
    ) -> tuple[ConversationManager, FakeGenerator]:
        generator = FakeGenerator(answer=answer, error=generation_error)
        manager = ConversationManager(
            rag_pipeline_factory(backend),
            generator,
            temperature=0.3,
            max_history_turns=max_history_turns,
        )
        return manager, generator

    return _create_manager


@pytest.fixture
def sample_pages():
    """Three pages about unrelated topics, each long enough to chunk."""
    return [
        (
            "Machine learning is a field of study in which computers learn from "
            "data. A neural network is a machine learning model built from layers "
            "of connected units."
        ),
        (
            "Photosynthesis is the process a plant uses to turn light into "
            "chemical energy. Every green plant relies on photosynthesis to grow."
        ),
        (
            "A volcano is an opening in the crust of a planet. When a volcano "
            "erupts it releases lava, ash and gases into the surrounding area."
        ),
    ]


@pytest.fixture
def sample_page_source(sample_pages):
    return TextPageSource("science.pdf", sample_pages)


@pytest.fixture
def sample_chunks():
    """Embedded chunks with distinct directions in a 3-d space."""
    return [
        make_chunk(1, "Machine learning is a subset of artificial intelligence.", [1, 0, 0]),
        make_chunk(2, "Deep learning uses neural networks with multiple layers.", [0, 1, 0]),
        make_chunk(3, "Natural language processing helps machines read text.", [0, 0, 1]),
    ]
