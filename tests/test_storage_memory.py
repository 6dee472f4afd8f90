"""Unit tests for the in-memory object store."""

import hashlib

import pytest

from flatdav.storage.backend import group_listing
from flatdav.storage.memory import MemoryCapacityError, MemoryObjectStore


@pytest.fixture
async def store():
    backend = MemoryObjectStore()
    await backend.init()
    yield backend
    await backend.close()


class TestPutGet:
    async def test_put_returns_metadata(self, store):
        obj = await store.put("a.txt", b"hello", "text/plain")
        assert obj.key == "a.txt"
        assert obj.size == 5
        assert obj.etag == hashlib.md5(b"hello").hexdigest()
        assert obj.content_type == "text/plain"
        assert obj.uploaded_at.tzinfo is not None
        assert obj.body == b""

    async def test_get_returns_body(self, store):
        await store.put("a.txt", b"hello", "text/plain")
        obj = await store.get("a.txt")
        assert obj.body == b"hello"

    async def test_get_missing(self, store):
        assert await store.get("missing") is None
        assert await store.head("missing") is None

    async def test_head_has_no_body(self, store):
        await store.put("a.txt", b"hello", "text/plain")
        obj = await store.head("a.txt")
        assert obj.size == 5
        assert obj.body == b""

    async def test_ranged_get(self, store):
        await store.put("a.txt", b"0123456789", "text/plain")
        obj = await store.get("a.txt", byte_range=(2, 5))
        assert obj.body == b"2345"
        assert obj.size == 10

    async def test_put_replaces(self, store):
        await store.put("a.txt", b"one", "text/plain")
        await store.put("a.txt", b"second", "text/markdown")
        obj = await store.get("a.txt")
        assert obj.body == b"second"
        assert obj.content_type == "text/markdown"

    async def test_empty_object(self, store):
        obj = await store.put("empty", b"", "application/octet-stream")
        assert obj.size == 0
        assert obj.etag == hashlib.md5(b"").hexdigest()


class TestDelete:
    async def test_delete(self, store):
        await store.put("a.txt", b"x", "text/plain")
        await store.delete("a.txt")
        assert await store.head("a.txt") is None

    async def test_delete_missing_is_silent(self, store):
        await store.delete("never-existed")


class TestList:
    async def test_recursive_list(self, store):
        for key in ("b/2.txt", "a.txt", "b/c/3.txt", "bb.txt"):
            await store.put(key, b"x", "text/plain")
        listing = await store.list("b/")
        assert [o.key for o in listing.objects] == ["b/2.txt", "b/c/3.txt"]
        assert listing.common_prefixes == []

    async def test_delimited_list(self, store):
        for key in ("a.txt", "b/2.txt", "b/c/3.txt", "d/", "bb.txt"):
            await store.put(key, b"" if key.endswith("/") else b"x", "text/plain")
        listing = await store.list("", "/")
        assert [o.key for o in listing.objects] == ["a.txt", "bb.txt"]
        assert listing.common_prefixes == ["b/", "d/"]

    async def test_list_strips_bodies(self, store):
        await store.put("a.txt", b"payload", "text/plain")
        listing = await store.list("")
        assert listing.objects[0].body == b""

    async def test_marker_at_prefix_stays_in_objects(self, store):
        await store.put("d/", b"", "httpd/unix-directory")
        listing = await store.list("d/", "/")
        assert [o.key for o in listing.objects] == ["d/"]
        assert not listing.is_empty()


class TestCapacity:
    async def test_capacity_enforced(self):
        backend = MemoryObjectStore(max_size_bytes=10)
        await backend.put("a", b"12345", "text/plain")
        with pytest.raises(MemoryCapacityError):
            await backend.put("b", b"123456", "text/plain")

    async def test_replacement_frees_old_size(self):
        backend = MemoryObjectStore(max_size_bytes=10)
        await backend.put("a", b"1234567890", "text/plain")
        await backend.put("a", b"0987654321", "text/plain")

    async def test_delete_frees_capacity(self):
        backend = MemoryObjectStore(max_size_bytes=5)
        await backend.put("a", b"12345", "text/plain")
        await backend.delete("a")
        await backend.put("b", b"12345", "text/plain")


class TestGroupListing:
    def test_empty(self):
        listing = group_listing([], "x/", "/")
        assert listing.is_empty()
