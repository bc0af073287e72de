# ABOUTME: Protocol interface for turning an input document into link drafts
# ABOUTME: Drafts carry only what the document says; timestamps come later from the merge

from typing import Protocol

from linkdump.core.errors import ExtractionError
from linkdump.core.models import Link, LinkSource


class LinkExtractor(Protocol):
    """Protocol for extracting link drafts from one parsed document."""

    def extract(self, source: LinkSource) -> dict[str, Link]:
        """Extract link drafts keyed by URL.

        Args:
            source: The document to scan

        Returns:
            Mapping of fragment-stripped URL to its accumulated draft

        Malformed list items are logged and skipped; an
        ``ExtractionError`` never escapes for a single item.
        """
        ...


__all__ = ["ExtractionError", "LinkExtractor"]
