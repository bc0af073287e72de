# ABOUTME: Domain models, merge rules and batch orchestration
# ABOUTME: Markdown drafts and stored links → reconciled links → enrichment pipeline

"""
Core Layer: Domain model and workflow orchestration

This layer handles:
- The Link record, its provenance and content classification
- Reconciling freshly extracted drafts with stored records
- Import, rebuild and refetch batches over the enrichment pipeline

Data Flow: extraction/ drafts → merge → pipeline/ → persistence/
"""

from .errors import ExtractionError, FetchError, LinkdumpError, PipelineOrderError, StoreError
from .models import ContentClass, Link, LinkSource, Via

# Import service on-demand to avoid circular imports
# Use: from linkdump.core.service import LinkImportService

__all__ = [
    "ContentClass",
    "ExtractionError",
    "FetchError",
    "Link",
    "LinkSource",
    "LinkdumpError",
    "PipelineOrderError",
    "StoreError",
    "Via",
]
