# ABOUTME: Document parsing layer producing link drafts
# ABOUTME: Markdown link dumps → dict of url → Link draft

from .base import ExtractionError, LinkExtractor
from .markdown import MarkdownLinkExtractor, extract_links

__all__ = [
    "ExtractionError",
    "LinkExtractor",
    "MarkdownLinkExtractor",
    "extract_links",
]
