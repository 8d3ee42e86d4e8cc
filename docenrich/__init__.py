"""docenrich - LLM-backed metadata enrichment for document-management backends."""

__version__ = "0.1.0"
