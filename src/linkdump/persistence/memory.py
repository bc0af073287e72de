# ABOUTME: In-memory implementation of the link store boundary
# ABOUTME: Used for tests and dry runs; same semantics as the SQLite store

import asyncio
import fnmatch
from collections.abc import AsyncIterator

from linkdump.core.models import Link


class InMemoryLinkStore:
    """A dict of url → Link behind an asyncio lock."""

    def __init__(self):
        self._data: dict[str, Link] = {}
        self._lock = asyncio.Lock()

    async def get(self, url: str) -> Link | None:
        async with self._lock:
            link = self._data.get(url)
        return link.model_copy(deep=True) if link else None

    async def values(self) -> AsyncIterator[Link]:
        async with self._lock:
            links = [link.model_copy(update={"src": None}, deep=True) for link in self._data.values()]
        for link in links:
            yield link

    async def glob(self, pattern: str) -> AsyncIterator[Link]:
        async with self._lock:
            links = [link.model_copy(deep=True) for url, link in self._data.items() if fnmatch.fnmatchcase(url, pattern)]
        for link in links:
            yield link

    async def write(self, link: Link) -> bool:
        async with self._lock:
            self._data[link.url] = link.model_copy(deep=True)
        return True

    def __len__(self) -> int:
        return len(self._data)

    async def close(self) -> None:
        return None
