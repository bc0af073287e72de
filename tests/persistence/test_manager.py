# ABOUTME: Tests for the SQLite link store and its on-disk encodings
# ABOUTME: Validates upserts, values/glob enumeration, listing queries and raw column formats

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
import pytest_asyncio
import zstandard
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from linkdump.core.errors import StoreError
from linkdump.core.models import Link, Via
from linkdump.persistence.manager import LinkStore, ListParams
from linkdump.persistence.migrations import Migration

FOUND = datetime(2022, 1, 15, 8, 30, 0, 125000, tzinfo=UTC)
FETCHED = datetime(2022, 1, 16, tzinfo=UTC)


def _engine_store(migrations: list[Migration] | None = None) -> LinkStore:
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlmodel.ext.asyncio.session import AsyncSession

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    store = LinkStore("sqlite+aiosqlite:///:memory:", migrations=migrations)
    store.engine = engine
    store.async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return store


@pytest_asyncio.fixture
async def temp_store() -> LinkStore:
    """Provide an in-memory link store for async tests."""
    store = _engine_store()
    await store.create_tables()
    yield store
    await store.close()


def _full_link(url: str = "https://a.dev/post") -> Link:
    return Link(
        url=url,
        title="A post",
        via=Via.parse("@friend"),
        tags={"rust", "db"},
        notes="good read",
        found_at=FOUND,
        read_at=FOUND,
        published_at=datetime(2021, 12, 31, tzinfo=UTC),
        from_filename="20220115-dump.md",
        image="https://a.dev/cover.png",
        meta={"og:title": ["A post"]},
        src=b"<html>body</html>",
        last_fetched=FETCHED,
        last_processed=FETCHED,
        http_headers={"content-type": ["text/html"]},
        hidden=True,
    )


async def _raw_row(store: LinkStore, url: str) -> dict:
    async with store.engine.connect() as conn:
        result = await conn.execute(text("select * from links where url = :url"), {"url": url})
        return dict(result.mappings().one())


@pytest.mark.asyncio
async def test_write_and_get_round_trip(temp_store: LinkStore):
    link = _full_link()

    assert await temp_store.write(link) is True
    stored = await temp_store.get(link.url)

    assert stored == link


@pytest.mark.asyncio
async def test_get_missing_is_none(temp_store: LinkStore):
    assert await temp_store.get("https://nowhere.dev") is None


@pytest.mark.asyncio
async def test_write_upserts_by_url(temp_store: LinkStore):
    await temp_store.write(Link(url="https://a.dev", title="first"))
    await temp_store.write(Link(url="https://a.dev", title="second", tags={"x"}))

    assert await temp_store.count(ListParams()) == 1
    stored = await temp_store.get("https://a.dev")
    assert stored.title == "second"
    assert stored.tags == {"x"}


@pytest.mark.asyncio
async def test_values_omit_src(temp_store: LinkStore):
    await temp_store.write(_full_link("https://a.dev/1"))
    await temp_store.write(Link(url="https://a.dev/2"))

    links = [link async for link in temp_store.values()]

    assert [link.url for link in links] == ["https://a.dev/1", "https://a.dev/2"]
    assert all(link.src is None for link in links)
    assert links[0].http_headers == {"content-type": ["text/html"]}


@pytest.mark.asyncio
async def test_glob_matches_urls_and_keeps_src(temp_store: LinkStore):
    await temp_store.write(_full_link("https://a.dev/post"))
    await temp_store.write(Link(url="https://b.dev/post"))

    links = [link async for link in temp_store.glob("https://a.dev/*")]

    assert [link.url for link in links] == ["https://a.dev/post"]
    assert links[0].src == b"<html>body</html>"


@pytest.mark.asyncio
async def test_persisted_encodings(temp_store: LinkStore):
    await temp_store.write(_full_link())

    row = await _raw_row(temp_store, "https://a.dev/post")

    assert row["tags"] == '["db","rust"]'
    assert row["via"] == '{"Friend":"@friend"}'
    assert row["meta"] == '{"og:title":["A post"]}'
    assert row["found_at"] == 1642235400125
    assert row["last_fetched"] == 1642291200000
    assert row["hidden"] == 1
    decompressor = zstandard.ZstdDecompressor()
    assert decompressor.decompressobj().decompress(row["src"]) == b"<html>body</html>"
    assert json.loads(decompressor.decompressobj().decompress(row["http_headers"])) == {"content-type": ["text/html"]}


@pytest.mark.asyncio
async def test_absent_values_are_null_via_is_json_null_and_tags_never_null(temp_store: LinkStore):
    await temp_store.write(Link(url="https://a.dev"))

    row = await _raw_row(temp_store, "https://a.dev")

    assert row["tags"] == "[]"
    assert row["via"] == "null"
    assert row["meta"] is None
    assert row["src"] is None
    assert row["found_at"] is None
    assert row["hidden"] == 0


@pytest.mark.asyncio
async def test_legacy_rows_read_back(temp_store: LinkStore):
    async with temp_store.engine.begin() as conn:
        await conn.execute(text("insert into links (url, tags, via) values ('https://old.dev', '', 'null')"))

    link = await temp_store.get("https://old.dev")

    assert link.tags == set()
    assert link.via is None
    assert link.hidden is False


@pytest.mark.asyncio
async def test_list_filters_and_orders(temp_store: LinkStore):
    await temp_store.write(Link(url="https://a.dev/old", title="Old rust", tags={"rust"}, found_at=FOUND))
    await temp_store.write(Link(url="https://a.dev/new", title="New go", tags={"go"}, found_at=FETCHED))
    await temp_store.write(Link(url="https://b.dev/hidden", tags={"rust"}, found_at=FETCHED, hidden=True))

    newest_first = await temp_store.list(ListParams())
    assert [link.url for link in newest_first][-1] == "https://a.dev/old"

    rust = await temp_store.list(ListParams(tag="rust", hidden=False))
    assert [link.url for link in rust] == ["https://a.dev/old"]

    assert await temp_store.count(ListParams(query="a.dev")) == 2
    assert await temp_store.count(ListParams(query="go")) == 1
    assert len(await temp_store.list(ListParams(limit=1, offset=1))) == 1


@pytest.mark.asyncio
async def test_all_tags_sorted_distinct(temp_store: LinkStore):
    await temp_store.write(Link(url="https://a.dev", tags={"b", "a"}))
    await temp_store.write(Link(url="https://b.dev", tags={"c", "a"}))
    await temp_store.write(Link(url="https://c.dev"))

    assert await temp_store.all_tags() == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_write_failure_raises_store_error(temp_store: LinkStore):
    async with temp_store.engine.begin() as conn:
        await conn.execute(text("drop table links"))

    with pytest.raises(StoreError):
        await temp_store.write(Link(url="https://a.dev"))


@pytest.mark.asyncio
async def test_broken_migration_raises_store_error():
    store = _engine_store([Migration(version=1, name="broken", statements=("create tabel nope",))])

    with pytest.raises(StoreError):
        await store.create_tables()

    await store.close()


@pytest.mark.asyncio
async def test_file_database_creates_parent_directory(tmp_path):
    database = tmp_path / "nested" / "db.sqlite3"
    store = LinkStore(f"sqlite+aiosqlite:///{database}")

    assert await store.create_tables() == 3
    assert await store.create_tables() == 0
    await store.write(Link(url="https://a.dev"))
    await store.close()

    assert database.exists()


async def _corrupt(store: LinkStore, url: str) -> None:
    async with store.engine.begin() as conn:
        await conn.execute(
            text("update links set http_headers = :blob where url = :url"), {"blob": b"\x00junk", "url": url}
        )


@pytest.mark.asyncio
async def test_undecodable_row_raises_store_error_on_get(temp_store: LinkStore):
    await temp_store.write(_full_link())
    await _corrupt(temp_store, "https://a.dev/post")

    with pytest.raises(StoreError):
        await temp_store.get("https://a.dev/post")


@pytest.mark.asyncio
async def test_values_and_glob_skip_undecodable_rows(temp_store: LinkStore):
    for url in ("https://a.dev/1", "https://a.dev/2", "https://a.dev/3"):
        await temp_store.write(_full_link(url))
    await _corrupt(temp_store, "https://a.dev/2")

    values = [link.url async for link in temp_store.values()]
    globbed = [link async for link in temp_store.glob("https://a.dev/*")]

    assert values == ["https://a.dev/1", "https://a.dev/3"]
    assert [link.url for link in globbed] == ["https://a.dev/1", "https://a.dev/3"]
    assert all(link.src == b"<html>body</html>" for link in globbed)


@pytest.mark.asyncio
async def test_undecodable_via_is_skipped(temp_store: LinkStore):
    await temp_store.write(Link(url="https://a.dev/good"))
    async with temp_store.engine.begin() as conn:
        await conn.execute(
            text("insert into links (url, tags, via) values (:url, '[]', :via)"),
            {"url": "https://a.dev/bad", "via": '{"Nope": 1}'},
        )

    assert [link.url async for link in temp_store.values()] == ["https://a.dev/good"]
    with pytest.raises(StoreError):
        await temp_store.list(ListParams())


@pytest.mark.asyncio
async def test_read_failures_raise_store_error(temp_store: LinkStore):
    async with temp_store.engine.begin() as conn:
        await conn.execute(text("drop table links"))

    with pytest.raises(StoreError):
        await temp_store.get("https://a.dev")
    with pytest.raises(StoreError):
        [link async for link in temp_store.values()]
    with pytest.raises(StoreError):
        [link async for link in temp_store.glob("*")]
    with pytest.raises(StoreError):
        await temp_store.count(ListParams())
    with pytest.raises(StoreError):
        await temp_store.all_tags()
