"""Configuration management for PageChat."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

_TRUTHY = {"1", "true", "yes", "on"}


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Read OPENAI_API_KEY at call time; empty string when unset."""
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Chunking Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
    CHUNK_MIN_LENGTH: int = int(os.getenv("CHUNK_MIN_LENGTH", "50"))

    # Embedding Configuration
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
    EMBEDDING_BATCH_DELAY: float = float(os.getenv("EMBEDDING_BATCH_DELAY", "0.1"))
    EMBEDDING_MAX_ATTEMPTS: int = int(os.getenv("EMBEDDING_MAX_ATTEMPTS", "3"))
    EMBEDDING_BACKOFF_BASE: float = float(os.getenv("EMBEDDING_BACKOFF_BASE", "1.0"))
    # Only gateways that understand task_type/title should receive them.
    EMBEDDING_FORWARD_TASK_TYPE: bool = (
        os.getenv("EMBEDDING_FORWARD_TASK_TYPE", "false").lower() in _TRUTHY
    )

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4.1-nano-2025-04-14")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "500"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.3"))

    # Retrieval Configuration
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "5"))
    HISTORY_TURNS: int = int(os.getenv("HISTORY_TURNS", "4"))

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "PageChat/1.0")
    API_TEST_HEADER_NAME: str | None = os.getenv(
        "API_TEST_HEADER_NAME",
        "X-PageChat-Test-Token",
    )
    API_TEST_HEADER_VALUE: str | None = os.getenv(
        "API_TEST_HEADER_VALUE",
        "allow",
    )

    @classmethod
    def validate(cls) -> None:
        """Fail fast on settings PageChat cannot run with.

        Raises:
            ValueError: When the API key is missing, or the chunk overlap does
                not leave a positive step between windows.
        """
        problems = []
        if not cls.get_openai_api_key():
            problems.append(
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
        if not 0 <= cls.CHUNK_OVERLAP < cls.CHUNK_SIZE:
            problems.append(
                f"CHUNK_OVERLAP ({cls.CHUNK_OVERLAP}) must be smaller than "
                f"CHUNK_SIZE ({cls.CHUNK_SIZE})"
            )
        if problems:
            raise ValueError("; ".join(problems))

    @classmethod
    def is_development(cls) -> bool:
        """True when ENVIRONMENT is ``development`` (any case)."""
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """True when ENVIRONMENT is ``production`` (any case)."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Configure console logging once at application startup."""
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # The SDK logs every HTTP retry at INFO
        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return the stdlib logger for a PageChat module."""
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Headers sent with every embedding and chat request.

        The test header is only included when both its name and value are set.
        """
        pairs = [("User-Agent", cls.API_USER_AGENT)]
        if cls.API_TEST_HEADER_NAME:
            pairs.append((cls.API_TEST_HEADER_NAME, cls.API_TEST_HEADER_VALUE))
        return {name: value for name, value in pairs if value}


config = Config()
