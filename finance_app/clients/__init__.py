"""Expose constructed client wrappers."""

from .document_store import DocumentStoreError, SQLiteDocumentStore
from .generation import ChatMessage, GenerationClient, GenerationError
from .local_queue import SQLiteQueueClient
from .web_search import WebSearchClient

__all__ = [
    "ChatMessage",
    "DocumentStoreError",
    "GenerationClient",
    "GenerationError",
    "SQLiteDocumentStore",
    "SQLiteQueueClient",
    "WebSearchClient",
]
