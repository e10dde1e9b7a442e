# tests/test_content_store.py
"""Tests for content hashing and file storage."""

import hashlib

import pytest

from pack_review.core.errors import StorageError
from pack_review.services.content_store import ContentStore


def test_hash_is_the_git_blob_id() -> None:
    # `git hash-object` of a file containing "hello\n"
    assert ContentStore.hash(b"hello\n") == "ce013625030ba8dba906f756967f9e9ca394464a"


def test_hash_ignores_filename_and_differs_from_plain_sha1() -> None:
    data = b"\x89PNG fake image bytes"
    assert ContentStore.hash(data) == ContentStore.hash(bytes(data))
    assert ContentStore.hash(data) != hashlib.sha1(data).hexdigest()


def test_store_read_remove(store: ContentStore) -> None:
    locator, content_hash = store.store(b"pixels", "stone.png", prefix="contributions/u1")

    assert locator.startswith("contributions/u1/")
    assert locator.endswith("_stone.png")
    assert content_hash == ContentStore.hash(b"pixels")
    assert store.read(locator) == b"pixels"

    store.remove(locator)
    with pytest.raises(StorageError):
        store.read(locator)


def test_store_does_not_deduplicate(store: ContentStore) -> None:
    first, _ = store.store(b"same", "a.png")
    second, _ = store.store(b"same", "a.png")
    assert first != second


def test_remove_missing_file_is_success(store: ContentStore) -> None:
    store.remove("contributions/nobody/missing.png")


def test_unsafe_names_are_sanitised(store: ContentStore) -> None:
    locator, _ = store.store(b"x", "../../etc/pass wd.png")
    assert ".." not in locator
    assert locator.endswith("_pass_wd.png")


def test_locator_cannot_escape_root(store: ContentStore) -> None:
    with pytest.raises(StorageError):
        store.read("../outside.png")


def test_write_failure_raises_storage_error(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"not a directory")
    store = ContentStore(blocker)

    with pytest.raises(StorageError):
        store.store(b"data", "a.png", prefix="sub")
