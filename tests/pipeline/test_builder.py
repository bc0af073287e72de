# ABOUTME: Tests for pipeline composition and stage ordering
# ABOUTME: Validates fetch → extract → cache ordering and read/write stage traversal

import httpx
import pytest

from linkdump.core.errors import PipelineOrderError, StoreError
from linkdump.core.models import Link
from linkdump.persistence.blobs import BlobCache
from linkdump.persistence.memory import InMemoryLinkStore
from linkdump.pipeline import (
    ExternalCacheStage,
    FetchStage,
    HtmlExtractStage,
    PdfExtractStage,
    PipelineBuilder,
    PlaintextStage,
    Stage,
    StageKind,
    import_pipeline,
    rebuild_pipeline,
    refetch_pipeline,
)


class RecordingStage(Stage):
    """Appends its name to a shared call log on both paths."""

    def __init__(self, name: str, kind: StageKind, calls: list[str]):
        self.name = name
        self.kind = kind
        self.calls = calls

    async def process(self, link: Link) -> Link:
        self.calls.append(f"process:{self.name}")
        return link

    async def hydrate(self, link: Link) -> Link:
        self.calls.append(f"hydrate:{self.name}")
        return link


class FailingHydrateStage(RecordingStage):
    async def hydrate(self, link: Link) -> Link:
        if link.url.endswith("bad"):
            raise StoreError("blob unreadable")
        return link


@pytest.fixture
def client():
    return httpx.AsyncClient()


def test_extract_before_fetch_is_rejected(tmp_path, client):
    builder = PipelineBuilder(InMemoryLinkStore()).add(HtmlExtractStage())

    with pytest.raises(PipelineOrderError):
        builder.add(FetchStage(client))


def test_extract_after_cache_is_rejected(tmp_path):
    builder = PipelineBuilder(InMemoryLinkStore()).add(ExternalCacheStage(BlobCache(tmp_path)))

    with pytest.raises(PipelineOrderError):
        builder.add(PlaintextStage())


def test_duplicate_fetch_is_rejected(client):
    builder = PipelineBuilder(InMemoryLinkStore()).add(FetchStage(client))

    with pytest.raises(PipelineOrderError):
        builder.add(FetchStage(client))


def test_extract_stages_in_any_order():
    pipeline = (
        PipelineBuilder(InMemoryLinkStore())
        .add(PdfExtractStage())
        .add(HtmlExtractStage())
        .add(PlaintextStage())
        .build()
    )

    assert pipeline.stage_names == ["pdf", "html", "plaintext"]


def test_compositions(tmp_path, client):
    store = InMemoryLinkStore()
    cache = BlobCache(tmp_path)

    assert import_pipeline(store, client=client, cache=cache).stage_names == ["fetch", "html", "external"]
    assert rebuild_pipeline(store, cache=cache).stage_names == ["html", "pdf", "external"]
    assert refetch_pipeline(store, client=client, cache=cache).stage_names == [
        "fetch",
        "plaintext",
        "html",
        "pdf",
        "external",
    ]


@pytest.mark.asyncio
async def test_write_runs_in_order_and_read_in_reverse():
    calls: list[str] = []
    store = InMemoryLinkStore()
    pipeline = (
        PipelineBuilder(store)
        .add(RecordingStage("a", StageKind.FETCH, calls))
        .add(RecordingStage("b", StageKind.EXTRACT, calls))
        .add(RecordingStage("c", StageKind.CACHE, calls))
        .build()
    )

    assert await pipeline.write(Link(url="https://a.dev")) is True
    await pipeline.get("https://a.dev")

    assert calls == ["process:a", "process:b", "process:c", "hydrate:c", "hydrate:b", "hydrate:a"]


@pytest.mark.asyncio
async def test_get_missing_link_is_none():
    pipeline = PipelineBuilder(InMemoryLinkStore()).build()

    assert await pipeline.get("https://missing.dev") is None


@pytest.mark.asyncio
async def test_values_skip_links_that_fail_to_hydrate():
    store = InMemoryLinkStore()
    await store.write(Link(url="https://a.dev/good"))
    await store.write(Link(url="https://a.dev/bad"))
    pipeline = PipelineBuilder(store).add(FailingHydrateStage("flaky", StageKind.CACHE, [])).build()

    assert [link.url async for link in pipeline.values()] == ["https://a.dev/good"]
