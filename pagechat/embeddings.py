"""OpenAI embeddings service with retry and batch orchestration."""

import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from http import HTTPStatus
from typing import Protocol

import numpy as np
import openai
from openai import OpenAI

from .config import config
from .models import DocumentChunk, EmbeddingFailure, EmbeddingIntent

logger = config.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: ``base_delay * 2 ** attempt`` seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the zero-based ``attempt`` failed."""
        return self.base_delay * 2**attempt


class EmbeddingBackend(Protocol):
    """Anything that turns one text into a vector or a classified failure."""

    def embed(
        self,
        text: str,
        intent: EmbeddingIntent,
        title: str | None = None,
    ) -> np.ndarray | EmbeddingFailure: ...


def classify_openai_error(error: openai.OpenAIError) -> EmbeddingFailure:
    """Map an OpenAI SDK error onto a retryable or terminal failure.

    Rate limiting (429), server faults (5xx) and connection problems are
    worth retrying; everything else is terminal.
    """
    if isinstance(error, openai.APIConnectionError):
        return EmbeddingFailure(retryable=True, reason=str(error))
    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        retryable = (
            status == HTTPStatus.TOO_MANY_REQUESTS
            or status >= HTTPStatus.INTERNAL_SERVER_ERROR
        )
        return EmbeddingFailure(
            retryable=retryable, reason=str(error), status_code=status
        )
    return EmbeddingFailure(retryable=False, reason=str(error))


class OpenAIEmbeddingBackend:
    """Embedding backend calling the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        forward_task_type: bool | None = None,
    ) -> None:
        """Initialize the backend with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            forward_task_type: Send intent and title as ``task_type``/``title``
                request fields. If None, uses config.EMBEDDING_FORWARD_TASK_TYPE.
        """
        api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        # Retries are driven by EmbeddingService, not the SDK.
        self.client = OpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            max_retries=0,
        )
        self.model = model or config.EMBEDDING_MODEL
        self.forward_task_type = (
            config.EMBEDDING_FORWARD_TASK_TYPE
            if forward_task_type is None
            else forward_task_type
        )

    def _extra_body(
        self, intent: EmbeddingIntent, title: str | None
    ) -> dict[str, str] | None:
        if not self.forward_task_type:
            return None
        body = {"task_type": intent.value}
        if intent is EmbeddingIntent.DOCUMENT and title:
            body["title"] = title
        return body

    def embed(
        self,
        text: str,
        intent: EmbeddingIntent,
        title: str | None = None,
    ) -> np.ndarray | EmbeddingFailure:
        """Get embedding for a single text.

        Returns:
            The embedding vector, or the classified failure.
        """
        kwargs = {}
        extra_body = self._extra_body(intent, title)
        if extra_body:
            kwargs["extra_body"] = extra_body
        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=text,
                **kwargs,
            )
        except openai.OpenAIError as e:
            return classify_openai_error(e)

        if not response.data or not response.data[0].embedding:
            return EmbeddingFailure(retryable=False, reason="empty embedding response")
        return np.array(response.data[0].embedding)


class EmbeddingService:
    """Embeds text through a backend, retrying transient failures."""

    def __init__(  # noqa: PLR0913
        self,
        backend: EmbeddingBackend | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        batch_size: int | None = None,
        batch_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the EmbeddingService.

        Args:
            backend: Embedding backend. If None, an OpenAIEmbeddingBackend
                built from configuration.
            retry_policy: Backoff policy. If None, built from
                config.EMBEDDING_MAX_ATTEMPTS and config.EMBEDDING_BACKOFF_BASE.
            batch_size: Chunks embedded concurrently per batch. If None, uses
                config.EMBEDDING_BATCH_SIZE.
            batch_delay: Seconds to pause between batches. If None, uses
                config.EMBEDDING_BATCH_DELAY.
            sleep: Function used to wait; replaced in tests.
        """
        self.backend = backend if backend is not None else OpenAIEmbeddingBackend()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.EMBEDDING_MAX_ATTEMPTS,
            base_delay=config.EMBEDDING_BACKOFF_BASE,
        )
        self.batch_size = max(
            1, batch_size if batch_size is not None else config.EMBEDDING_BATCH_SIZE
        )
        self.batch_delay = (
            batch_delay if batch_delay is not None else config.EMBEDDING_BATCH_DELAY
        )
        self._sleep = sleep

    def embed(
        self,
        text: str,
        intent: EmbeddingIntent = EmbeddingIntent.QUERY,
        title: str | None = None,
    ) -> np.ndarray | None:
        """Embed one text, retrying retryable failures with backoff.

        Returns:
            The embedding vector, or None when no embedding could be produced.
        """
        attempts = self.retry_policy.max_attempts
        for attempt in range(attempts):
            result = self.backend.embed(text, intent, title)
            if not isinstance(result, EmbeddingFailure):
                return result

            if result.retryable and attempt < attempts - 1:
                delay = self.retry_policy.delay(attempt)
                logger.warning(
                    "Embedding error (attempt %d/%d, status %s), retrying in %.1fs",
                    attempt + 1,
                    attempts,
                    result.status_code,
                    delay,
                )
                self._sleep(delay)
                continue

            logger.error(
                "Embedding unavailable after %d attempt(s): %s",
                attempt + 1,
                result.reason,
            )
            return None
        return None

    def _embed_chunk(self, chunk: DocumentChunk) -> DocumentChunk:
        embedding = self.embed(
            chunk.content,
            EmbeddingIntent.DOCUMENT,
            title=f"Page {chunk.page_number}",
        )
        if embedding is None:
            return chunk
        return chunk.with_embedding(embedding)

    def embed_many(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Embed chunks in concurrent batches with a pause between batches.

        Chunks whose embedding fails are returned unchanged, without a vector.

        Returns:
            Chunks in input order, embedded where possible.
        """
        embedded: list[DocumentChunk] = []
        if not chunks:
            return embedded

        total_batches = -(-len(chunks) // self.batch_size)
        with ThreadPoolExecutor(
            max_workers=self.batch_size,
            thread_name_prefix="Embedder",
        ) as executor:
            for i in range(0, len(chunks), self.batch_size):
                batch = chunks[i : i + self.batch_size]
                embedded.extend(executor.map(self._embed_chunk, batch))
                logger.info(
                    "Generated embeddings for batch %d/%d",
                    i // self.batch_size + 1,
                    total_batches,
                )
                if i + self.batch_size < len(chunks):
                    self._sleep(self.batch_delay)

        missing = sum(1 for chunk in embedded if chunk.embedding is None)
        if missing:
            logger.warning("%d of %d chunks have no embedding", missing, len(embedded))
        return embedded
