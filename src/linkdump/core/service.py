# ABOUTME: High-level service API for import, rebuild and refetch batches
# ABOUTME: Extracts drafts, reconciles them with the store and runs bounded concurrent enrichment

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from concurrent.futures import Executor
from pathlib import Path
from typing import Literal

import httpx
from pydantic import BaseModel, Field

from linkdump.config import Config, get_config
from linkdump.core.errors import LinkdumpError
from linkdump.core.merge import reconcile
from linkdump.core.models import Link, LinkSource
from linkdump.extraction.base import LinkExtractor
from linkdump.extraction.markdown import MarkdownLinkExtractor
from linkdump.persistence.blobs import BlobCache
from linkdump.pipeline.base import LinkStoreBoundary, Pipeline
from linkdump.pipeline.compositions import import_pipeline, rebuild_pipeline, refetch_pipeline
from linkdump.pipeline.fetch import build_http_client
from linkdump.utils.logging import get_logger, with_pipeline_context, with_source_context

OutcomeStatus = Literal["ok", "failed", "skipped"]


class LinkOutcome(BaseModel):
    """What happened to one link in a batch."""

    url: str
    status: OutcomeStatus
    error: str | None = None


class FileReport(BaseModel):
    """Per-document result of an import."""

    filename: str | None
    links: list[LinkOutcome] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Set when the document itself could not be read")

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.links if outcome.status == "ok")

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.links if outcome.status == "failed")


class ImportReport(BaseModel):
    files: list[FileReport] = Field(default_factory=list)

    @property
    def total_links(self) -> int:
        return sum(len(report.links) for report in self.files)

    @property
    def failed_links(self) -> int:
        return sum(report.failed for report in self.files)

    @property
    def failed_files(self) -> int:
        return sum(1 for report in self.files if report.error)


class BatchReport(BaseModel):
    """Per-link result of a rebuild or refetch."""

    operation: str
    outcomes: list[LinkOutcome] = Field(default_factory=list)

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


class LinkImportService:
    """Service for importing link dumps and re-running enrichment.

    Links are enriched concurrently, bounded by ``fetch_concurrency``.
    A failure on one link is recorded in the report and never aborts the batch.
    """

    def __init__(
        self,
        store: LinkStoreBoundary,
        cache: BlobCache,
        client: httpx.AsyncClient | None = None,
        config: Config | None = None,
        extractor: LinkExtractor | None = None,
        pdf_executor: Executor | None = None,
    ):
        self.store = store
        self.cache = cache
        self.config = config or get_config()
        self.extractor = extractor or MarkdownLinkExtractor()
        self.pdf_executor = pdf_executor
        self.logger = get_logger(__name__)

        self._owns_client = client is None
        self.client = client or build_http_client(self.config)
        self._semaphore = asyncio.Semaphore(self.config.fetch_concurrency)
        self._pipelines: dict[str, Pipeline] = {}

    def _pipeline(self, name: str) -> Pipeline:
        if name not in self._pipelines:
            if name == "import":
                pipeline = import_pipeline(self.store, client=self.client, cache=self.cache, config=self.config)
            elif name == "rebuild":
                pipeline = rebuild_pipeline(
                    self.store, cache=self.cache, config=self.config, pdf_executor=self.pdf_executor
                )
            else:
                pipeline = refetch_pipeline(
                    self.store,
                    client=self.client,
                    cache=self.cache,
                    config=self.config,
                    pdf_executor=self.pdf_executor,
                )
            self._pipelines[name] = pipeline
        return self._pipelines[name]

    async def _bounded(self, url: str, work: Callable[[], Awaitable[object]]) -> LinkOutcome:
        async with self._semaphore:
            try:
                await work()
            except (LinkdumpError, OSError) as e:
                self.logger.error("Link failed", url=url, error=str(e), error_type=type(e).__name__)
                return LinkOutcome(url=url, status="failed", error=str(e))
        return LinkOutcome(url=url, status="ok")

    async def import_source(self, source: LinkSource) -> FileReport:
        """Extract, reconcile and enrich every link in one document."""
        pipeline = self._pipeline("import")

        with with_source_context(source.filename) as logger:
            drafts = self.extractor.extract(source)
            logger.info("Importing document", link_count=len(drafts))

            async def enrich(draft: Link) -> None:
                stored = await self.store.get(draft.url)
                await pipeline.write(reconcile(draft, stored, source))

            outcomes = await asyncio.gather(
                *(self._bounded(draft.url, lambda draft=draft: enrich(draft)) for draft in drafts.values())
            )

        return FileReport(filename=source.filename, links=list(outcomes))

    async def _import_path(self, path: Path) -> FileReport:
        try:
            source = LinkSource.from_path(path)
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error("Could not read document", filename=str(path), error=str(e))
            return FileReport(filename=str(path), error=str(e))
        return await self.import_source(source)

    async def import_files(self, paths: Iterable[Path]) -> ImportReport:
        """Import several documents concurrently."""
        paths = list(paths)
        with with_pipeline_context("import", file_count=len(paths)) as logger:
            reports = await asyncio.gather(*(self._import_path(path) for path in paths))
            report = ImportReport(files=list(reports))
            logger.info(
                "Import completed",
                files=len(paths),
                links=report.total_links,
                failed_links=report.failed_links,
                failed_files=report.failed_files,
            )
        return report

    async def _collect(self, pipeline: Pipeline) -> list[Link]:
        return [link async for link in pipeline.values()]

    async def rebuild(self) -> BatchReport:
        """Re-run extraction for every stored link without refetching."""
        pipeline = self._pipeline("rebuild")

        with with_pipeline_context("rebuild") as logger:
            links = await self._collect(pipeline)

            async def reprocess(link: Link) -> None:
                link.last_processed = None
                await pipeline.write(link)

            outcomes = await asyncio.gather(
                *(self._bounded(link.url, lambda link=link: reprocess(link)) for link in links)
            )
            report = BatchReport(operation="rebuild", outcomes=list(outcomes))
            logger.info("Rebuild completed", links=len(links), failed=report.count("failed"))
        return report

    async def refetch(self, all_links: bool = False) -> BatchReport:
        """Fetch and extract again, by default only for links with no cached body."""
        pipeline = self._pipeline("refetch")

        with with_pipeline_context("refetch", all_links=all_links) as logger:
            links = await self._collect(pipeline)
            skipped: list[LinkOutcome] = []
            pending: list[Link] = []
            for link in links:
                if link.src is not None and not all_links:
                    skipped.append(LinkOutcome(url=link.url, status="skipped"))
                else:
                    pending.append(link.clear_gates())

            outcomes = await asyncio.gather(
                *(self._bounded(link.url, lambda link=link: pipeline.write(link)) for link in pending)
            )
            report = BatchReport(operation="refetch", outcomes=[*outcomes, *skipped])
            logger.info(
                "Refetch completed",
                refetched=len(pending),
                skipped=len(skipped),
                failed=report.count("failed"),
            )
        return report

    async def close(self) -> None:
        """Clean up pipelines, the HTTP client and the store."""
        for pipeline in self._pipelines.values():
            await pipeline.close()
        self._pipelines.clear()
        if self._owns_client:
            await self.client.aclose()
        await self.store.close()
