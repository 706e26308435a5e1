"""Exceptions raised across the PageChat pipeline."""


class PageChatError(Exception):
    """Base class for PageChat errors."""


class EmptyDocumentError(PageChatError, ValueError):
    """Raised when a document yields no indexable chunks."""


class GenerationError(PageChatError, RuntimeError):
    """Raised when the generation backend cannot produce an answer."""


class DocumentReadError(PageChatError, ValueError):
    """Raised when a document's bytes cannot be parsed into pages."""
