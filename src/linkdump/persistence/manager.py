# ABOUTME: SQLite-backed link store on SQLAlchemy async sessions
# ABOUTME: get/values/glob/write boundary plus paginated listing and tag queries

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncGenerator, Protocol

from sqlalchemy import Text, func, or_, select, type_coerce
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from linkdump.core.errors import StoreError
from linkdump.core.models import Link
from linkdump.persistence.json_types import DECODE_ERRORS
from linkdump.persistence.migrations import MIGRATIONS, Migration, apply_migrations
from linkdump.persistence.models import LINK_COLUMNS, LinkRow, link_from_mapping
from linkdump.utils.logging import get_logger

links_table = LinkRow.__table__  # type: ignore[attr-defined]


class LinkReader(Protocol):
    """Read side of the store boundary."""

    async def get(self, url: str) -> Link | None: ...

    def values(self) -> AsyncIterator[Link]: ...

    def glob(self, pattern: str) -> AsyncIterator[Link]: ...


class LinkWriter(Protocol):
    """Write side of the store boundary."""

    async def write(self, link: Link) -> bool: ...


@dataclass(slots=True)
class ListParams:
    """Filters and pagination for ``LinkStore.list``."""

    query: str | None = None
    tag: str | None = None
    hidden: bool | None = None
    offset: int = 0
    limit: int = 50


class LinkStore:
    """Manages async database operations for links.

    All sessions are serialized through one lock; concurrent writers to the
    same URL are last-write-wins.
    """

    def __init__(self, database_url: str, migrations: list[Migration] | None = None):
        self.database_url = database_url
        self.migrations = MIGRATIONS if migrations is None else migrations
        self.logger = get_logger(__name__)
        self._ensure_parent_dir(database_url)
        self.engine = create_async_engine(database_url, echo=False)
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._lock = asyncio.Lock()

    @staticmethod
    def _ensure_parent_dir(database_url: str) -> None:
        database = make_url(database_url).database
        if database and database != ":memory:" and not database.startswith("file:"):
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    async def create_tables(self) -> int:
        """Apply pending migrations. Returns how many ran."""
        try:
            async with self.engine.begin() as conn:
                applied = await apply_migrations(conn, self.migrations)
        except SQLAlchemyError as e:
            raise StoreError(f"could not open store at {self.database_url}: {e}") from e

        if applied:
            self.logger.info("Database migrated", applied=applied, url=self.database_url)
        return applied

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a locked async session, committing on success."""
        async with self._lock, self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _fetch(self, statement, action: str) -> list[dict]:
        """Run a read statement and return its rows as plain mappings.

        Column decoding happens while rows are fetched, so a corrupt value
        surfaces here as one of ``DECODE_ERRORS`` rather than a StoreError.
        """
        try:
            async with self.session() as session:
                result = await session.exec(statement)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            self.logger.error("Failed to read links", action=action, error=str(e), error_type=type(e).__name__)
            raise StoreError(f"could not {action}: {e}") from e

    async def get(self, url: str) -> Link | None:
        try:
            rows = await self._fetch(select(links_table).where(links_table.c.url == url), f"read {url}")
            return link_from_mapping(rows[0]) if rows else None
        except DECODE_ERRORS as e:
            self.logger.error("Stored link is undecodable", url=url, error=str(e), error_type=type(e).__name__)
            raise StoreError(f"could not decode {url}: {e}") from e

    async def _scan(self, columns: list, where, action: str) -> AsyncIterator[Link]:
        statement = select(*columns).order_by(links_table.c.id)
        if where is not None:
            statement = statement.where(where)

        try:
            links = [link_from_mapping(row) for row in await self._fetch(statement, action)]
        except DECODE_ERRORS as e:
            self.logger.warning("Batch read hit an undecodable row, reading links one by one", error=str(e))
        else:
            for link in links:
                yield link
            return

        url_statement = select(links_table.c.url).order_by(links_table.c.id)
        if where is not None:
            url_statement = url_statement.where(where)
        for url_row in await self._fetch(url_statement, action):
            url = url_row["url"]
            try:
                rows = await self._fetch(select(*columns).where(links_table.c.url == url), f"read {url}")
                link = link_from_mapping(rows[0]) if rows else None
            except DECODE_ERRORS as e:
                self.logger.warning("Skipping undecodable link", url=url, error=str(e), error_type=type(e).__name__)
                continue
            if link is not None:
                yield link

    def values(self) -> AsyncIterator[Link]:
        """Enumerate every link without its ``src`` body, skipping rows that fail to decode."""
        columns = [links_table.c[name] for name in LINK_COLUMNS if name != "src"]
        return self._scan(columns, None, "enumerate links")

    def glob(self, pattern: str) -> AsyncIterator[Link]:
        """Enumerate fully populated links whose url matches a SQLite GLOB pattern.

        Rows that fail to decode are logged and skipped.
        """
        columns = [links_table.c[name] for name in LINK_COLUMNS]
        return self._scan(columns, links_table.c.url.op("GLOB")(pattern), f"glob {pattern}")

    async def write(self, link: Link) -> bool:
        """Upsert by url. Returns whether a row was affected."""
        row = LinkRow.from_link(link)
        values = {name: getattr(row, name) for name in LINK_COLUMNS}
        statement = insert(links_table).values(**values)
        statement = statement.on_conflict_do_update(
            index_elements=[links_table.c.url],
            set_={name: statement.excluded[name] for name in LINK_COLUMNS if name != "url"},
        )

        try:
            async with self.session() as session:
                result = await session.exec(statement)
        except SQLAlchemyError as e:
            self.logger.error("Failed to write link", url=link.url, error=str(e), error_type=type(e).__name__)
            raise StoreError(f"could not write {link.url}: {e}") from e

        return (result.rowcount or 0) > 0

    def _filtered(self, statement, params: ListParams):
        if params.query:
            pattern = f"%{params.query}%"
            statement = statement.where(or_(links_table.c.url.like(pattern), links_table.c.title.like(pattern)))
        if params.tag:
            statement = statement.where(type_coerce(links_table.c.tags, Text).like(f"%{params.tag}%"))
        if params.hidden is not None:
            statement = statement.where(links_table.c.hidden == params.hidden)
        return statement

    async def count(self, params: ListParams) -> int:
        """Count links matching the filters in ``params``."""
        statement = self._filtered(select(func.count().label("count")).select_from(links_table), params)
        rows = await self._fetch(statement, "count links")
        return rows[0]["count"]

    async def list(self, params: ListParams) -> list[Link]:
        """Return one page of links, newest ``found_at`` first, without ``src``."""
        columns = [links_table.c[name] for name in LINK_COLUMNS if name != "src"]
        statement = (
            self._filtered(select(*columns), params)
            .order_by(links_table.c.found_at.desc())
            .limit(params.limit)
            .offset(params.offset)
        )
        try:
            return [link_from_mapping(row) for row in await self._fetch(statement, "list links")]
        except DECODE_ERRORS as e:
            raise StoreError(f"could not decode a listed link: {e}") from e

    async def all_tags(self) -> list[str]:
        """Sorted distinct tags across every link."""
        try:
            rows = await self._fetch(select(links_table.c.tags), "read tags")
        except DECODE_ERRORS as e:
            raise StoreError(f"could not decode tags: {e}") from e

        tags: set[str] = set()
        for row in rows:
            tags.update(tag for tag in row["tags"] or [] if tag)
        return sorted(tags)

    async def close(self) -> None:
        await self.engine.dispose()
