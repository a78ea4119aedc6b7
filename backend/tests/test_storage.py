"""Tests for the durable key-value storage backends"""
import os

import pytest

from errors import StorageError, StorageQuotaExceeded
from storage import FileStorage, MemoryStorage


def test_memory_storage_roundtrip():
    storage = MemoryStorage()
    assert storage.get("missing") is None
    storage.set("k", "value")
    assert storage.get("k") == "value"
    assert "k" in storage
    storage.remove("k")
    assert storage.get("k") is None
    storage.remove("k")  # removing twice is fine


def test_memory_storage_quota_rejects_oversized_write():
    storage = MemoryStorage(quota_bytes=10)
    storage.set("a", "12345")
    with pytest.raises(StorageQuotaExceeded):
        storage.set("b", "123456789")
    # Failed write leaves earlier data in place
    assert storage.get("a") == "12345"
    assert storage.get("b") is None


def test_memory_storage_quota_counts_replaced_value_once():
    storage = MemoryStorage(quota_bytes=8)
    storage.set("k", "1234567")
    storage.set("k", "7654321")
    assert storage.get("k") == "7654321"


def test_quota_error_is_a_storage_error():
    assert issubclass(StorageQuotaExceeded, StorageError)
    assert StorageQuotaExceeded().code == "CX-STORE-002"


def test_file_storage_roundtrip(tmp_path):
    storage = FileStorage(str(tmp_path / "data"))
    assert storage.get("collaborax_db") is None
    storage.set("collaborax_db", "abc")
    storage.set("collaborax_db", "def")
    assert storage.get("collaborax_db") == "def"
    assert os.path.exists(tmp_path / "data" / "collaborax_db")
    storage.remove("collaborax_db")
    assert storage.get("collaborax_db") is None


def test_file_storage_leaves_no_temp_files(tmp_path):
    storage = FileStorage(str(tmp_path))
    storage.set("a", "1")
    storage.set("b", "2")
    assert sorted(os.listdir(tmp_path)) == ["a", "b"]


def test_file_storage_sanitizes_keys(tmp_path):
    storage = FileStorage(str(tmp_path))
    storage.set("../escape", "x")
    assert storage.get("../escape") == "x"
    assert os.listdir(tmp_path) == [".._escape"]


def test_file_storage_write_failure_raises_storage_error(tmp_path):
    storage = FileStorage(str(tmp_path))
    os.makedirs(tmp_path / "blocked")
    with pytest.raises(StorageError):
        # A directory already sits at the target path
        storage.set("blocked", "x")
