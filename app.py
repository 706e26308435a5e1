"""Web interface using Streamlit."""

import streamlit as st

from pagechat import (
    ConversationManager,
    DocumentReadError,
    EmptyDocumentError,
    PdfPageSource,
    RAGPipeline,
    TextPageSource,
    format_bytes,
)
from pagechat.config import config
from pagechat.document_processing import PageSource

MAX_CONTEXT_PREVIEW_LENGTH = 200

# Share of the progress bar spent reading pages; embedding fills the rest.
READING_PROGRESS_SHARE = 0.5

config.setup_logging()
logger = config.get_logger(__name__)


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        defaults = {
            "conversation_manager": None,
            "document": None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def reset_document() -> None:
        """Forget the loaded document and the conversation about it."""
        manager = st.session_state.conversation_manager
        if manager is not None:
            manager.reset()
        st.session_state.document = None

    @staticmethod
    def is_system_ready() -> bool:
        return st.session_state.get("conversation_manager") is not None


def initialize_system() -> bool:
    """Build the pipeline and conversation manager.

    Returns:
        bool: True if initialization succeeds, False otherwise.
    """
    try:
        config.validate()
        st.session_state.conversation_manager = ConversationManager(RAGPipeline())
    except ValueError as e:
        logger.exception("Failed to initialize system")
        st.error(f"Configuration Error: {e}")
        return False
    else:
        logger.info("RAG system initialized successfully")
        return True


def open_upload(uploaded_file) -> PageSource:  # noqa: ANN001
    """Wrap an uploaded file as a page source.

    Returns:
        Page source over the uploaded document.
    """
    data = uploaded_file.getvalue()
    if uploaded_file.name.lower().endswith(".pdf"):
        return PdfPageSource(uploaded_file.name, data)
    return TextPageSource.from_text(uploaded_file.name, data.decode("utf-8"))


def process_document(uploaded_file) -> bool:  # noqa: ANN001
    """Ingest an uploaded file, reporting progress as pages are read.

    Returns:
        bool: True if document processing succeeds, False otherwise.
    """
    progress = st.progress(0.0, text="Parsing document...")

    def on_page(page: int, total: int) -> None:
        progress.progress(
            READING_PROGRESS_SHARE * page / total,
            text=f"Reading page {page} of {total}...",
        )

    pipeline = st.session_state.conversation_manager.rag_pipeline
    try:
        page_source = open_upload(uploaded_file)
        with st.spinner("Generating embeddings..."):
            summary = pipeline.ingest(page_source, progress_callback=on_page)
    except EmptyDocumentError:
        logger.exception("Document contained no text")
        st.error(f"No text found in '{uploaded_file.name}'.")
        return False
    except DocumentReadError as e:
        logger.exception("Document could not be parsed")
        st.error(str(e))
        return False
    except (OSError, ValueError, RuntimeError) as e:
        logger.exception("Document processing failed")
        st.error(f"Failed to process document: {e}")
        return False
    finally:
        progress.empty()

    st.session_state.conversation_manager.clear_history()
    st.session_state.document = summary
    return True


def render_sidebar() -> None:
    """Render the loaded document's summary and reset control."""
    summary = st.session_state.document
    with st.sidebar:
        st.header("Document")
        if summary is None:
            st.write("No document loaded.")
            return

        st.write(f"**Name:** {summary.name}")
        st.write(f"**Size:** {format_bytes(summary.size_bytes)}")
        st.write(f"**Pages:** {summary.page_count}")
        st.write(
            f"**Chunks:** {summary.chunk_count} ({summary.embedded_count} embedded)"
        )
        st.write(f"**Uploaded:** {summary.uploaded_at:%Y-%m-%d %H:%M} UTC")

        st.divider()
        if st.button("New Document", use_container_width=True):
            SessionState.reset_document()
            st.rerun()


def render_document_upload() -> None:
    """Render document upload section."""
    st.header("Document Upload")
    uploaded_file = st.file_uploader(
        "Upload a PDF or TXT document",
        type=["pdf", "txt"],
        help="Upload a document to start asking questions about it",
    )
    if (
        uploaded_file
        and st.button("Process Document", use_container_width=True)
        and process_document(uploaded_file)
    ):
        st.rerun()


def render_chat_interface() -> None:
    """Render the chat transcript and the question box."""
    manager: ConversationManager = st.session_state.conversation_manager

    for turn in manager.conversation_history:
        with st.chat_message(turn.role.value):
            st.write(turn.content)

    question = st.chat_input("Ask anything about your document...")
    if question and question.strip():
        with st.spinner("Thinking..."):
            manager.ask(question)
        st.rerun()

    if manager.last_contexts and st.checkbox("Show Retrieved Contexts (Debug)"):
        for i, (chunk, score) in enumerate(manager.last_contexts):
            with st.expander(
                f"Context {i + 1} - Page {chunk.page_number} - Similarity: {score:.4f}",
                expanded=False,
            ):
                st.code(
                    chunk.content[:MAX_CONTEXT_PREVIEW_LENGTH] + "..."
                    if len(chunk.content) > MAX_CONTEXT_PREVIEW_LENGTH
                    else chunk.content,
                )


def main() -> None:
    """Main entry point for the Streamlit web application."""
    st.set_page_config(page_title="PageChat", layout="wide")

    SessionState.initialize()

    st.title("PageChat - Ask Your Document")

    if not SessionState.is_system_ready() and not initialize_system():
        return

    render_sidebar()

    if st.session_state.document is None:
        render_document_upload()
    else:
        render_chat_interface()


if __name__ == "__main__":
    main()
