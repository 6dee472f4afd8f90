"""Unit tests for the SQLite object store."""

import hashlib

import pytest

from flatdav.storage.backend import StoreError
from flatdav.storage.sqlite import SQLiteObjectStore


@pytest.fixture
async def store():
    backend = SQLiteObjectStore(":memory:")
    await backend.init()
    yield backend
    await backend.close()


class TestLifecycle:
    async def test_uninitialized_raises(self):
        backend = SQLiteObjectStore(":memory:")
        with pytest.raises(StoreError):
            await backend.head("a")

    async def test_close_is_idempotent(self):
        backend = SQLiteObjectStore(":memory:")
        await backend.init()
        await backend.close()
        await backend.close()

    async def test_persists_to_file(self, tmp_path):
        db_path = str(tmp_path / "flatdav.db")
        first = SQLiteObjectStore(db_path)
        await first.init()
        await first.put("keep.txt", b"durable", "text/plain")
        await first.close()

        second = SQLiteObjectStore(db_path)
        await second.init()
        obj = await second.get("keep.txt")
        await second.close()
        assert obj.body == b"durable"


class TestObjects:
    async def test_put_and_get(self, store):
        obj = await store.put("a.txt", b"hello", "text/plain")
        assert obj.etag == hashlib.md5(b"hello").hexdigest()

        fetched = await store.get("a.txt")
        assert fetched.body == b"hello"
        assert fetched.size == 5
        assert fetched.content_type == "text/plain"
        assert fetched.uploaded_at == obj.uploaded_at

    async def test_head(self, store):
        await store.put("a.txt", b"hello", "text/plain")
        obj = await store.head("a.txt")
        assert obj.size == 5
        assert obj.body == b""

    async def test_missing(self, store):
        assert await store.head("nope") is None
        assert await store.get("nope") is None
        assert await store.get("nope", byte_range=(0, 1)) is None

    async def test_ranged_get_reads_slice(self, store):
        await store.put("digits", b"0123456789", "text/plain")
        obj = await store.get("digits", byte_range=(3, 6))
        assert obj.body == b"3456"
        assert obj.size == 10

    async def test_binary_data(self, store):
        data = bytes(range(256))
        await store.put("bin", data, "application/octet-stream")
        assert (await store.get("bin")).body == data
        assert (await store.get("bin", byte_range=(250, 255))).body == data[250:]

    async def test_replace(self, store):
        await store.put("a.txt", b"v1", "text/plain")
        await store.put("a.txt", b"version2", "text/plain")
        assert (await store.get("a.txt")).body == b"version2"

    async def test_delete(self, store):
        await store.put("a.txt", b"x", "text/plain")
        await store.delete("a.txt")
        assert await store.head("a.txt") is None
        await store.delete("a.txt")


class TestList:
    async def test_prefix_filter(self, store):
        for key in ("docs/a.txt", "docs/sub/b.txt", "docsx.txt", "z.txt"):
            await store.put(key, b"x", "text/plain")
        listing = await store.list("docs/")
        assert [o.key for o in listing.objects] == ["docs/a.txt", "docs/sub/b.txt"]

    async def test_delimiter_grouping(self, store):
        for key in ("docs/a.txt", "docs/sub/b.txt", "docs/sub/c/d.txt"):
            await store.put(key, b"x", "text/plain")
        await store.put("docs/", b"", "httpd/unix-directory")
        listing = await store.list("docs/", "/")
        assert [o.key for o in listing.objects] == ["docs/", "docs/a.txt"]
        assert listing.common_prefixes == ["docs/sub/"]

    async def test_prefix_with_like_wildcards(self, store):
        """Prefix matching is literal: % and _ are not wildcards."""
        await store.put("a_b/x.txt", b"x", "text/plain")
        await store.put("aXb/y.txt", b"x", "text/plain")
        listing = await store.list("a_b/")
        assert [o.key for o in listing.objects] == ["a_b/x.txt"]

    async def test_root_listing(self, store):
        await store.put("top.txt", b"x", "text/plain")
        await store.put("dir/inner.txt", b"x", "text/plain")
        listing = await store.list("", "/")
        assert [o.key for o in listing.objects] == ["top.txt"]
        assert listing.common_prefixes == ["dir/"]
