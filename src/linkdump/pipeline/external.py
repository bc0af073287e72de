# ABOUTME: Blob caching stage moving src and extracted_text out of the relational store
# ABOUTME: Writes blobs on the way in, lazily loads them back on reads

from linkdump.core.models import Link
from linkdump.persistence.blobs import BlobCache
from linkdump.pipeline.base import Stage, StageKind
from linkdump.utils.logging import log_stage

SRC_PREFIX = "src!"
TEXT_PREFIX = "txt!"


def src_key(url: str) -> str:
    return f"{SRC_PREFIX}{url}"


def text_key(url: str) -> str:
    return f"{TEXT_PREFIX}{url}"


class ExternalCacheStage(Stage):
    """Keeps large payloads in a ``BlobCache`` keyed by namespaced url."""

    kind = StageKind.CACHE
    name = "external"

    def __init__(self, cache: BlobCache):
        self.cache = cache

    async def hydrate(self, link: Link) -> Link:
        if link.src is None:
            link.src = await self.cache.read(src_key(link.url))

        if link.extracted_text is None:
            data = await self.cache.read(text_key(link.url))
            if data is not None:
                link.extracted_text = data.decode("utf-8", errors="replace")

        return link

    @log_stage("external")
    async def process(self, link: Link) -> Link:
        if link.src is not None:
            await self.cache.write(src_key(link.url), link.src)
            link.src = None

        if link.extracted_text is not None:
            await self.cache.write(text_key(link.url), link.extracted_text.encode("utf-8"))
            link.extracted_text = None

        return link
