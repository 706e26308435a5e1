"""Conversation management with context building and history."""

from collections.abc import Sequence

from .config import config
from .errors import GenerationError
from .generation import GenerationService, Generator
from .models import ConversationTurn, DocumentChunk, Role
from .pipeline import RAGPipeline

logger = config.get_logger(__name__)

NO_CONTEXT_MARKER = "No relevant context found in the document."
EMBEDDING_FAILED_MESSAGE = (
    "I'm sorry, I had trouble processing your question (Embedding Failed). "
    "Please try again."
)
GENERATION_FAILED_MESSAGE = (
    "I encountered an error while communicating with the AI model."
)
NO_RESPONSE_MESSAGE = "No response generated."

SYSTEM_INSTRUCTIONS = (
    "You are a helpful and intelligent assistant that answers questions about "
    "an uploaded document.\n"
    "Answer the user's question strictly based on the provided context.\n\n"
    "Rules:\n"
    "1. Use ONLY the information in the Context below to answer.\n"
    "2. If the answer is not in the Context, politely state that the document "
    "doesn't contain that information.\n"
    "3. Do not make up facts that are not supported by the Context.\n"
    '4. Cite the page numbers when possible (e.g., "According to page 3...").\n'
    "5. Keep the tone professional but conversational."
)


def format_context(retrieved_chunks: Sequence[tuple[DocumentChunk, float]]) -> str:
    """Render retrieved chunks as ``[Page N]: text`` blocks in ranked order."""
    if not retrieved_chunks:
        return NO_CONTEXT_MARKER
    return "\n\n".join(
        f"[Page {chunk.page_number}]: {chunk.content}"
        for chunk, _ in retrieved_chunks
    )


class ConversationManager:
    """Answers questions about the loaded document and keeps the chat history."""

    def __init__(
        self,
        rag_pipeline: RAGPipeline,
        generator: Generator | None = None,
        *,
        temperature: float | None = None,
        max_history_turns: int | None = None,
    ) -> None:
        """Initialize ConversationManager.

        Args:
            rag_pipeline: RAG pipeline instance; owns the vector index.
            generator: Answer generator. If None, a GenerationService built
                from configuration.
            temperature: Sampling temperature. If None, uses
                config.CHAT_TEMPERATURE.
            max_history_turns: Most recent turns included in prompts. If None,
                uses config.HISTORY_TURNS.
        """
        self.rag_pipeline: RAGPipeline = rag_pipeline
        self.generator = generator if generator is not None else GenerationService()
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )
        self.max_history_turns = (
            max_history_turns
            if max_history_turns is not None
            else config.HISTORY_TURNS
        )
        self.conversation_history: list[ConversationTurn] = []
        self.last_contexts: list[tuple[DocumentChunk, float]] = []

    def build_history(self, history: Sequence[ConversationTurn]) -> str:
        if self.max_history_turns <= 0:
            return ""
        recent = history[-self.max_history_turns :]
        return "\n".join(turn.render() for turn in recent)

    def build_context_prompt(
        self,
        question: str,
        retrieved_chunks: Sequence[tuple[DocumentChunk, float]],
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        """Build the grounded prompt sent to the generator.

        Returns:
            str: Instructions, context blocks, recent history and the question.
        """
        return (
            f"{SYSTEM_INSTRUCTIONS}\n\n"
            f"Context:\n{format_context(retrieved_chunks)}\n\n"
            f"Chat History:\n{self.build_history(history)}\n\n"
            f"User Question:\n{question}"
        )

    def _answer(self, question: str, history: Sequence[ConversationTurn]) -> str:
        try:
            retrieved_chunks = self.rag_pipeline.query(question)
        except ValueError:
            # Query vector does not match the indexed dimension
            logger.exception("Retrieval failed for question")
            retrieved_chunks = None
        if retrieved_chunks is None:
            self.last_contexts = []
            return EMBEDDING_FAILED_MESSAGE

        self.last_contexts = retrieved_chunks
        for i, (chunk, score) in enumerate(retrieved_chunks):
            logger.debug(
                "  Context %d: %s (page %d, score: %.4f)",
                i + 1,
                chunk.chunk_id,
                chunk.page_number,
                score,
            )

        prompt = self.build_context_prompt(question, retrieved_chunks, history)
        try:
            answer = self.generator.generate(prompt, self.temperature)
        except GenerationError:
            logger.exception("Generation error")
            return GENERATION_FAILED_MESSAGE
        return answer or NO_RESPONSE_MESSAGE

    def ask(
        self,
        question: str,
        recent_history: Sequence[ConversationTurn] | None = None,
    ) -> str:
        """Answer a question using the loaded document.

        Backend failures never propagate: a failed query embedding yields
        ``EMBEDDING_FAILED_MESSAGE`` without calling the generator, a failed
        generation yields ``GENERATION_FAILED_MESSAGE``.

        Args:
            question: The user's question.
            recent_history: Turns to render as chat history. If None, the
                manager's own history is used.

        Returns:
            str: The assistant's answer, also recorded in the history.
        """
        logger.info("Processing question: %s", question)
        history = (
            self.conversation_history if recent_history is None else recent_history
        )
        answer = self._answer(question, list(history))

        self._append_turn(Role.USER, question)
        self._append_turn(Role.ASSISTANT, answer)
        return answer

    def _append_turn(self, role: Role, content: str) -> None:
        self.conversation_history.append(
            ConversationTurn(
                role=role,
                content=content,
                position=len(self.conversation_history),
            )
        )

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.conversation_history = []
        self.last_contexts = []
        logger.info("Conversation history cleared.")

    def reset(self) -> None:
        """Discard the loaded document, its index and the conversation."""
        self.rag_pipeline.reset()
        self.clear_history()
