# ABOUTME: The three supported stage compositions: import, rebuild and refetch
# ABOUTME: Each ends with the blob cache stage in front of the link store

from concurrent.futures import Executor

import httpx

from linkdump.config import Config, get_config
from linkdump.persistence.blobs import BlobCache
from linkdump.pipeline.base import LinkStoreBoundary, Pipeline, PipelineBuilder
from linkdump.pipeline.external import ExternalCacheStage
from linkdump.pipeline.fetch import FetchStage
from linkdump.pipeline.html import HtmlExtractStage
from linkdump.pipeline.pdf import PdfExtractStage
from linkdump.pipeline.text import PlaintextStage


def import_pipeline(
    store: LinkStoreBoundary,
    *,
    client: httpx.AsyncClient,
    cache: BlobCache,
    config: Config | None = None,
) -> Pipeline:
    """Fetch → HTML → external cache → store."""
    config = config or get_config()
    return (
        PipelineBuilder(store)
        .add(FetchStage(client, max_body_bytes=config.max_body_bytes))
        .add(HtmlExtractStage())
        .add(ExternalCacheStage(cache))
        .build()
    )


def rebuild_pipeline(
    store: LinkStoreBoundary,
    *,
    cache: BlobCache,
    config: Config | None = None,
    pdf_executor: Executor | None = None,
) -> Pipeline:
    """HTML → PDF → external cache → store. Callers clear ``last_processed`` first."""
    config = config or get_config()
    return (
        PipelineBuilder(store)
        .add(HtmlExtractStage())
        .add(PdfExtractStage(pdf_executor, timeout_seconds=config.pdf_timeout_seconds))
        .add(ExternalCacheStage(cache))
        .build()
    )


def refetch_pipeline(
    store: LinkStoreBoundary,
    *,
    client: httpx.AsyncClient,
    cache: BlobCache,
    config: Config | None = None,
    pdf_executor: Executor | None = None,
) -> Pipeline:
    """Fetch → plaintext → HTML → PDF → external cache → store. Callers clear both gates first."""
    config = config or get_config()
    return (
        PipelineBuilder(store)
        .add(FetchStage(client, max_body_bytes=config.max_body_bytes))
        .add(PlaintextStage())
        .add(HtmlExtractStage())
        .add(PdfExtractStage(pdf_executor, timeout_seconds=config.pdf_timeout_seconds))
        .add(ExternalCacheStage(cache))
        .build()
    )
