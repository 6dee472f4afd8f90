"""Tests for directory emulation over the flat key namespace."""

from flatdav.directory import (
    CollectionKind,
    classify_listing,
    collection_prefix,
    display_name,
    load_collection,
    normalize_key,
    parent_prefix,
)
from flatdav.storage.backend import group_listing
from flatdav.storage.memory import MemoryObjectStore
from flatdav.storage.models import DIRECTORY_CONTENT_TYPE


async def _store_with(*keys: str) -> MemoryObjectStore:
    store = MemoryObjectStore()
    for key in keys:
        if key.endswith("/"):
            await store.put(key, b"", DIRECTORY_CONTENT_TYPE)
        else:
            await store.put(key, key.encode(), "application/octet-stream")
    return store


class TestKeyHelpers:
    def test_normalize_strips_leading_separator(self):
        assert normalize_key("/a/b.txt") == "a/b.txt"
        assert normalize_key("a/b.txt") == "a/b.txt"
        assert normalize_key("/") == ""

    def test_collection_prefix(self):
        assert collection_prefix("") == ""
        assert collection_prefix("/") == ""
        assert collection_prefix("docs") == "docs/"
        assert collection_prefix("docs/") == "docs/"

    def test_display_name(self):
        assert display_name("") == "Root"
        assert display_name("a/b/") == "b"
        assert display_name("a/b.txt") == "b.txt"

    def test_parent_prefix(self):
        assert parent_prefix("a.txt") == ""
        assert parent_prefix("a/") == ""
        assert parent_prefix("a/b/") == "a/"
        assert parent_prefix("a/b/c.txt") == "a/b/"


class TestClassifyListing:
    def test_empty_listing(self):
        listing = group_listing([], "")
        marker, entries = classify_listing(listing, "")
        assert marker is None
        assert entries == []

    async def test_marker_is_separated(self):
        store = await _store_with("docs/", "docs/a.txt", "docs/sub/b.txt")
        listing = await store.list("docs/", "/")
        marker, entries = classify_listing(listing, "docs/")
        assert marker is not None
        assert marker.key == "docs/"
        assert [e.name for e in entries] == ["a.txt", "sub"]
        assert entries[0].is_collection is False
        assert entries[0].content_type == "text/plain"
        assert entries[1].is_collection is True
        assert entries[1].key == "docs/sub/"

    async def test_inferred_collection_has_no_timestamp(self):
        store = await _store_with("x/y/z.bin")
        listing = await store.list("", "/")
        _, entries = classify_listing(listing, "")
        assert len(entries) == 1
        assert entries[0].is_collection is True
        assert entries[0].uploaded_at is None


class TestLoadCollection:
    async def test_root_always_exists(self):
        store = MemoryObjectStore()
        collection = await load_collection(store, "")
        assert collection is not None
        assert collection.prefix == ""
        assert collection.kind is CollectionKind.IMPLICIT
        assert collection.entries == []

    async def test_explicit_collection(self):
        store = await _store_with("empty/")
        collection = await load_collection(store, "empty")
        assert collection is not None
        assert collection.kind is CollectionKind.EXPLICIT
        assert collection.marker.key == "empty/"
        assert collection.entries == []

    async def test_implicit_collection(self):
        """A prefix with descendants but no marker is still a collection."""
        store = await _store_with("a/b/c.txt")
        collection = await load_collection(store, "a/")
        assert collection is not None
        assert collection.kind is CollectionKind.IMPLICIT
        assert [e.key for e in collection.entries] == ["a/b/"]

    async def test_missing_collection(self):
        store = await _store_with("other.txt")
        assert await load_collection(store, "nope") is None

    async def test_prefix_sibling_not_matched(self):
        """'ab.txt' does not make 'a' a collection."""
        store = await _store_with("ab.txt")
        assert await load_collection(store, "a") is None

    async def test_implicit_collection_vanishes_with_last_member(self):
        store = await _store_with("tmp/only.txt")
        assert await load_collection(store, "tmp") is not None
        await store.delete("tmp/only.txt")
        assert await load_collection(store, "tmp") is None

    async def test_one_level_only(self):
        store = await _store_with("a.txt", "b/c.txt", "b/d/e.txt")
        collection = await load_collection(store, "")
        assert [e.key for e in collection.entries] == ["a.txt", "b/"]
