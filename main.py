"""Command-line entry point: launch the Streamlit UI or chat in the terminal."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pagechat import (
    ConversationManager,
    DocumentLoader,
    DocumentReadError,
    EmptyDocumentError,
    RAGPipeline,
    format_bytes,
)
from pagechat.config import config

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"
EXIT_COMMANDS = {"exit", "quit", ":q"}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="PageChat: ask questions about a PDF or TXT document.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Launch the Streamlit web UI.")
    serve.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    serve.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    serve.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    serve.set_defaults(headless=True)

    ask = subparsers.add_parser("ask", help="Chat with a document in the terminal.")
    ask.add_argument("document", type=Path, help="PDF or TXT file to load.")
    ask.add_argument(
        "question",
        nargs="?",
        help="Ask a single question and exit; omit for an interactive session.",
    )
    return parser.parse_args(argv)


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def serve(args: argparse.Namespace, logger: Logger) -> int:
    """Run the Streamlit UI and return its exit code."""  # noqa: DOC201
    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting PageChat at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )
    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )
    try:
        result = subprocess.run(command, check=False, cwd=PROJECT_ROOT)
    except KeyboardInterrupt:
        logger.info("PageChat stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    if result.returncode != 0:
        logger.error("Streamlit exited with status %s", result.returncode)
    return result.returncode


def chat(
    manager: ConversationManager,
    question: str | None,
    read_line: Callable[[str], str] = input,
) -> None:
    """Answer one question, or loop over questions read from ``read_line``."""
    if question is not None:
        print(manager.ask(question))  # noqa: T201
        return

    while True:
        try:
            line = read_line("you> ").strip()
        except EOFError:
            return
        if line.lower() in EXIT_COMMANDS:
            return
        if line:
            print(f"assistant> {manager.ask(line)}")  # noqa: T201


def ask(args: argparse.Namespace, logger: Logger) -> int:
    """Ingest ``args.document`` and answer questions about it."""  # noqa: DOC201
    try:
        page_source = DocumentLoader.load_document(args.document)
    except (OSError, ValueError):
        logger.exception("Unable to open %s", args.document)
        return 1

    manager = ConversationManager(RAGPipeline())

    def on_page(page: int, total: int) -> None:
        logger.info("Reading page %d of %d", page, total)

    try:
        summary = manager.rag_pipeline.ingest(page_source, progress_callback=on_page)
    except EmptyDocumentError:
        logger.exception("Nothing to index")
        return 1
    except DocumentReadError:
        logger.exception("Unable to read %s", args.document)
        return 1

    logger.info(
        "Loaded %s (%s, %d pages, %d chunks)",
        summary.name,
        format_bytes(summary.size_bytes),
        summary.page_count,
        summary.chunk_count,
    )
    chat(manager, args.question)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and dispatch the chosen command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if args.command == "serve":
        return serve(args, logger)
    return ask(args, logger)


if __name__ == "__main__":
    sys.exit(main())
