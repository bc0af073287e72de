# ABOUTME: Tests for the content-addressed blob cache
# ABOUTME: Covers key lookup, content sharing, overwrite and integrity checks

import hashlib

import pytest

from linkdump.persistence.blobs import BlobCache


@pytest.mark.asyncio
async def test_missing_key_is_none(tmp_path):
    assert await BlobCache(tmp_path).read("src!https://a.dev") is None


@pytest.mark.asyncio
async def test_write_then_read(tmp_path):
    cache = BlobCache(tmp_path)

    await cache.write("src!https://a.dev", b"payload")

    assert await cache.read("src!https://a.dev") == b"payload"


@pytest.mark.asyncio
async def test_content_is_stored_by_digest(tmp_path):
    cache = BlobCache(tmp_path)
    digest = hashlib.sha256(b"shared").hexdigest()

    await cache.write("src!https://a.dev", b"shared")
    await cache.write("src!https://b.dev", b"shared")

    content_files = [path for path in (tmp_path / "content").rglob("*") if path.is_file()]
    assert content_files == [tmp_path / "content" / digest[:2] / digest]
    assert len([path for path in (tmp_path / "index").rglob("*") if path.is_file()]) == 2


@pytest.mark.asyncio
async def test_rewrite_points_key_at_new_content(tmp_path):
    cache = BlobCache(tmp_path)

    await cache.write("txt!https://a.dev", b"old")
    await cache.write("txt!https://a.dev", b"new")

    assert await cache.read("txt!https://a.dev") == b"new"


@pytest.mark.asyncio
async def test_corrupted_content_reads_as_missing(tmp_path):
    cache = BlobCache(tmp_path)
    await cache.write("src!https://a.dev", b"original")
    digest = hashlib.sha256(b"original").hexdigest()

    (tmp_path / "content" / digest[:2] / digest).write_bytes(b"tampered")

    assert await cache.read("src!https://a.dev") is None


@pytest.mark.asyncio
async def test_no_temporary_files_left_behind(tmp_path):
    cache = BlobCache(tmp_path)

    await cache.write("src!https://a.dev", b"data")

    assert not [path for path in tmp_path.rglob(".tmp-*")]
