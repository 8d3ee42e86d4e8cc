"""
Collaborator interfaces.

The analysis layer only talks to the document backend and the metrics
store through these narrow protocols. Implementations don't need to
inherit from them.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DocumentBackend(Protocol):
    """Read access to the document-management backend."""

    def get_thumbnail_image(self, document_id: int | str) -> bytes | None:
        """
        Fetch the rendered thumbnail of a document.

        Returns:
            PNG bytes, or None if the backend has no thumbnail
        """
        ...

    def get_tags(self) -> list[dict[str, Any]]:
        """All tags as {id, name} mappings."""
        ...

    def get_correspondents(self) -> list[dict[str, Any]]:
        """All correspondents as {id, name} mappings."""
        ...


@runtime_checkable
class MetricsSink(Protocol):
    """Write-only store for per-document token usage."""

    def record_metrics(self, document_id: int | str, metrics: Any) -> None:
        ...
