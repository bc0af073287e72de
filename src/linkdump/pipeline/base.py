# ABOUTME: Stage contract, ordered pipeline and the builder that validates stage order
# ABOUTME: Stages run in order on write and in reverse on read, ending at the link store

from __future__ import annotations

from collections.abc import AsyncIterator
from enum import IntEnum
from typing import Protocol

from linkdump.core.errors import LinkdumpError, PipelineOrderError
from linkdump.core.models import Link
from linkdump.persistence.manager import LinkReader, LinkWriter
from linkdump.utils.logging import get_logger


class StageKind(IntEnum):
    """Position class of a stage; a pipeline's kinds must never decrease."""

    FETCH = 0
    EXTRACT = 1
    CACHE = 2


class Stage:
    """One enrichment capability.

    ``process`` runs on the write path and may mutate and return the link.
    ``hydrate`` runs on the read path; the default passes the link through.
    """

    kind: StageKind
    name: str

    async def process(self, link: Link) -> Link:
        raise NotImplementedError

    async def hydrate(self, link: Link) -> Link:
        return link

    async def close(self) -> None:
        return None


class LinkStoreBoundary(LinkReader, LinkWriter, Protocol):
    """A store that can be both read and written."""

    async def close(self) -> None: ...


class Pipeline:
    """Stages in front of a link store, exposing the same get/values/glob/write surface."""

    def __init__(self, stages: list[Stage], store: LinkStoreBoundary):
        self.stages = list(stages)
        self.store = store
        self.logger = get_logger(__name__)

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    async def _hydrate(self, link: Link) -> Link:
        for stage in reversed(self.stages):
            link = await stage.hydrate(link)
        return link

    async def _hydrate_all(self, links: AsyncIterator[Link]) -> AsyncIterator[Link]:
        async for link in links:
            try:
                yield await self._hydrate(link)
            except (LinkdumpError, OSError) as e:
                self.logger.warning("Skipping link that failed to hydrate", url=link.url, error=str(e))

    async def get(self, url: str) -> Link | None:
        link = await self.store.get(url)
        return await self._hydrate(link) if link is not None else None

    def values(self) -> AsyncIterator[Link]:
        return self._hydrate_all(self.store.values())

    def glob(self, pattern: str) -> AsyncIterator[Link]:
        return self._hydrate_all(self.store.glob(pattern))

    async def process(self, link: Link) -> Link:
        """Run every stage's write path without persisting."""
        for stage in self.stages:
            link = await stage.process(link)
        return link

    async def write(self, link: Link) -> bool:
        return await self.store.write(await self.process(link))

    async def close(self) -> None:
        for stage in self.stages:
            await stage.close()


class PipelineBuilder:
    """Composes stages in fetch → extract → cache order.

    Extract stages may appear in any order among themselves; at most one
    fetch and one cache stage are allowed.

    Example:
        pipeline = PipelineBuilder(store).add(FetchStage(client)).add(HtmlExtractStage()).build()
    """

    def __init__(self, store: LinkStoreBoundary):
        self.store = store
        self._stages: list[Stage] = []

    def add(self, stage: Stage) -> PipelineBuilder:
        if self._stages and stage.kind < self._stages[-1].kind:
            raise PipelineOrderError(
                f"{stage.name} ({stage.kind.name.lower()}) cannot follow "
                f"{self._stages[-1].name} ({self._stages[-1].kind.name.lower()})"
            )

        if stage.kind is not StageKind.EXTRACT and any(s.kind is stage.kind for s in self._stages):
            raise PipelineOrderError(f"only one {stage.kind.name.lower()} stage is allowed")

        self._stages.append(stage)
        return self

    def build(self) -> Pipeline:
        return Pipeline(self._stages, self.store)
