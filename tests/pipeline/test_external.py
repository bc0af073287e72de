# ABOUTME: Tests for the blob caching stage in front of the link store
# ABOUTME: Payloads move into the blob cache on write and come back lazily on read

import pytest

from linkdump.core.models import Link
from linkdump.persistence.blobs import BlobCache
from linkdump.persistence.memory import InMemoryLinkStore
from linkdump.pipeline.base import PipelineBuilder
from linkdump.pipeline.external import ExternalCacheStage, src_key, text_key


def test_keys_are_namespaced():
    assert src_key("https://a.dev") == "src!https://a.dev"
    assert text_key("https://a.dev") == "txt!https://a.dev"


@pytest.mark.asyncio
async def test_process_moves_payloads_to_cache(tmp_path):
    cache = BlobCache(tmp_path)
    link = Link(url="https://a.dev", src=b"<p>body</p>", extracted_text="body")

    link = await ExternalCacheStage(cache).process(link)

    assert link.src is None
    assert link.extracted_text is None
    assert await cache.read("src!https://a.dev") == b"<p>body</p>"
    assert await cache.read("txt!https://a.dev") == b"body"


@pytest.mark.asyncio
async def test_hydrate_loads_only_missing_fields(tmp_path):
    cache = BlobCache(tmp_path)
    await cache.write(src_key("https://a.dev"), b"cached body")
    await cache.write(text_key("https://a.dev"), b"cached text")

    link = await ExternalCacheStage(cache).hydrate(Link(url="https://a.dev", extracted_text="in memory"))

    assert link.src == b"cached body"
    assert link.extracted_text == "in memory"


@pytest.mark.asyncio
async def test_hydrate_decodes_text_lossily(tmp_path):
    cache = BlobCache(tmp_path)
    await cache.write(text_key("https://a.dev"), b"ok \xff")

    link = await ExternalCacheStage(cache).hydrate(Link(url="https://a.dev"))

    assert link.extracted_text == "ok �"
    assert link.src is None


@pytest.mark.asyncio
async def test_round_trip_through_store(tmp_path):
    store = InMemoryLinkStore()
    pipeline = PipelineBuilder(store).add(ExternalCacheStage(BlobCache(tmp_path))).build()

    await pipeline.write(Link(url="https://a.dev", src=b"raw", extracted_text="text"))

    stored = await store.get("https://a.dev")
    assert stored.src is None
    assert stored.extracted_text is None

    hydrated = await pipeline.get("https://a.dev")
    assert hydrated.src == b"raw"
    assert hydrated.extracted_text == "text"

    globbed = [link async for link in pipeline.glob("https://a.*")]
    assert [link.src for link in globbed] == [b"raw"]
