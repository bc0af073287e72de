# ABOUTME: Enrichment pipeline of independently gated stages
# ABOUTME: Fetch → content-specific extraction → blob cache → link store

"""
Pipeline Layer: Progressive link enrichment

This layer handles:
- Fetching each link once and keeping recognised bodies
- HTML, PDF and plaintext extraction, each gated by last_processed
- Moving large payloads into the blob cache before persistence

Data Flow: reconciled Link → stages → persistence/
"""

from .base import Pipeline, PipelineBuilder, Stage, StageKind
from .compositions import import_pipeline, rebuild_pipeline, refetch_pipeline
from .external import ExternalCacheStage
from .fetch import FetchStage, build_http_client
from .html import HtmlExtractStage
from .pdf import PdfExtractStage
from .text import PlaintextStage

__all__ = [
    "ExternalCacheStage",
    "FetchStage",
    "HtmlExtractStage",
    "PdfExtractStage",
    "Pipeline",
    "PipelineBuilder",
    "PlaintextStage",
    "Stage",
    "StageKind",
    "build_http_client",
    "import_pipeline",
    "rebuild_pipeline",
    "refetch_pipeline",
]
