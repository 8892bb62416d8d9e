"""Unit tests for the document store and its storage roots."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from knowledge_rag.errors import CorruptUnitError, StorageUnavailableError, WriteError
from knowledge_rag.ingestion.records import DocumentContext, build_chunk_record
from knowledge_rag.models import DocumentRecord, PersistedUnit
from knowledge_rag.storage import DocumentStore, InMemoryRoot, LocalDirectoryRoot, StorageRoot
from knowledge_rag.storage.backends import validate_key


def make_unit(name: str = "guide.txt", category: str = "manual", n: int = 2) -> PersistedUnit:
    doc = DocumentRecord.create(file_name=name, category=category, file_type="txt", chunk_count=n)
    ctx = DocumentContext(namespace=doc.namespace, category=category, file_type="txt", source=name)
    chunks = [build_chunk_record(f"{name} part {i}", i, ctx, [1.0, float(i)]) for i in range(n)]
    return PersistedUnit(metadata=doc, chunks=chunks)


class VanishingRoot(InMemoryRoot):
    """Lists a key that is gone by the time it is read."""

    def list_keys(self) -> list[str]:
        return sorted([*super().list_keys(), "ghost_1"])


class ListsUnreadableKeyRoot(InMemoryRoot):
    """Lists a key that its own ``get`` refuses as invalid."""

    def list_keys(self) -> list[str]:
        return sorted([*super().list_keys(), "Copy of notes"])

    def get(self, key: str) -> bytes:
        validate_key(key)
        return super().get(key)


class BrokenRoot(StorageRoot):
    def put(self, key: str, data: bytes) -> None:
        raise PermissionError("read-only filesystem")

    def get(self, key: str) -> bytes:
        raise KeyError(key)

    def list_keys(self) -> list[str]:
        raise OSError("mount is gone")


# ── DocumentStore over an in-memory root ──────────────────────────────


class TestDocumentStore:
    def test_save_then_load_round_trip(self, store: DocumentStore) -> None:
        unit = make_unit()
        store.save(unit)
        loaded = store.load_all()
        assert loaded == [unit]
        assert store.get(unit.namespace) == unit

    def test_unit_is_keyed_by_namespace(self, store: DocumentStore, root: InMemoryRoot) -> None:
        unit = make_unit()
        store.save(unit)
        assert root.list_keys() == [unit.namespace]
        stored = json.loads(root.get(unit.namespace))
        assert set(stored) == {"metadata", "chunks"}
        assert stored["metadata"]["chunkCount"] == 2
        assert stored["chunks"][1]["embedding"] == [1.0, 1.0]

    def test_list_metadata(self, store: DocumentStore) -> None:
        a, b = make_unit("a.txt"), make_unit("b.txt")
        store.save(a)
        store.save(b)
        names = sorted(r.file_name for r in store.list_metadata())
        assert names == ["a.txt", "b.txt"]

    def test_corrupt_unit_is_skipped_and_recorded(self, store: DocumentStore, root: InMemoryRoot) -> None:
        good = make_unit()
        store.save(good)
        root.put("manual_broken", b"{not json")
        snapshot = store.scan()
        assert snapshot.units == [good]
        assert len(snapshot.errors) == 1
        assert isinstance(snapshot.errors[0], CorruptUnitError)
        assert snapshot.errors[0].key == "manual_broken"

    def test_invalid_shape_is_corrupt(self, store: DocumentStore, root: InMemoryRoot) -> None:
        data = make_unit().to_wire()
        data["metadata"]["chunkCount"] = 7
        root.put(data["metadata"]["namespace"], json.dumps(data).encode())
        assert store.load_all() == []
        assert len(store.scan().errors) == 1

    def test_namespace_must_match_key(self, store: DocumentStore, root: InMemoryRoot) -> None:
        unit = make_unit()
        root.put("someone_else", unit.model_dump_json(by_alias=True).encode())
        snapshot = store.scan()
        assert snapshot.units == []
        assert "claims namespace" in str(snapshot.errors[0])

    def test_vanished_unit_is_skipped(self) -> None:
        store = DocumentStore(VanishingRoot())
        unit = make_unit()
        store.save(unit)
        snapshot = store.scan()
        assert snapshot.units == [unit]
        assert [e.key for e in snapshot.errors] == ["ghost_1"]

    def test_unreadable_key_is_skipped_and_recorded(self) -> None:
        store = DocumentStore(ListsUnreadableKeyRoot())
        unit = make_unit()
        store.save(unit)
        snapshot = store.scan()
        assert snapshot.units == [unit]
        assert [e.key for e in snapshot.errors] == ["Copy of notes"]

    def test_load_all_is_idempotent(self, store: DocumentStore) -> None:
        for name in ("a.txt", "b.txt", "c.txt"):
            store.save(make_unit(name))
        assert store.load_all() == store.load_all()

    def test_write_failure_raises_write_error(self) -> None:
        store = DocumentStore(BrokenRoot())
        with pytest.raises(WriteError, match="read-only") as info:
            store.save(make_unit())
        assert info.value.retryable

    def test_unreachable_root_raises(self) -> None:
        store = DocumentStore(BrokenRoot())
        with pytest.raises(StorageUnavailableError):
            store.load_all()
        assert BrokenRoot().health_check() is False

    def test_get_missing_raises_key_error(self, store: DocumentStore) -> None:
        with pytest.raises(KeyError):
            store.get("nope_1")

    def test_empty_store(self, store: DocumentStore) -> None:
        assert store.load_all() == []
        assert store.list_metadata() == []


# ── LocalDirectoryRoot ────────────────────────────────────────────────


class TestLocalDirectoryRoot:
    def test_put_get_list(self, tmp_path: Path) -> None:
        root = LocalDirectoryRoot(tmp_path / "docs")
        root.put("faq_1", b"one")
        root.put("faq_2", b"two")
        assert root.list_keys() == ["faq_1", "faq_2"]
        assert root.get("faq_2") == b"two"
        assert (tmp_path / "docs" / "faq_1.json").read_bytes() == b"one"

    def test_put_replaces_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        root = LocalDirectoryRoot(tmp_path)
        root.put("faq_1", b"old")
        root.put("faq_1", b"new")
        assert root.get("faq_1") == b"new"
        assert sorted(os.listdir(tmp_path)) == ["faq_1.json"]

    def test_ignores_foreign_files(self, tmp_path: Path) -> None:
        (tmp_path / "notes.txt").write_text("x")
        (tmp_path / ".faq_1.abc.tmp").write_text("partial")
        (tmp_path / "sub.json").mkdir()
        root = LocalDirectoryRoot(tmp_path)
        assert root.list_keys() == []

    def test_files_with_invalid_key_names_are_ignored(self, tmp_path: Path) -> None:
        root = LocalDirectoryRoot(tmp_path)
        store = DocumentStore(root)
        unit = make_unit()
        store.save(unit)
        (tmp_path / "Copy of notes.json").write_text("{}")
        (tmp_path / "caf\u00e9_1.json").write_text("{}")
        assert root.list_keys() == [unit.namespace]
        assert store.load_all() == [unit]
        assert [r.namespace for r in store.list_metadata()] == [unit.namespace]

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", ".hidden", "x..y"])
    def test_rejects_unsafe_keys(self, tmp_path: Path, key: str) -> None:
        root = LocalDirectoryRoot(tmp_path)
        with pytest.raises(ValueError):
            root.put(key, b"x")

    def test_missing_key(self, tmp_path: Path) -> None:
        with pytest.raises(KeyError):
            LocalDirectoryRoot(tmp_path).get("faq_9")

    def test_missing_directory_is_unavailable(self, tmp_path: Path) -> None:
        store = DocumentStore(LocalDirectoryRoot(tmp_path / "absent", create=False))
        with pytest.raises(StorageUnavailableError):
            store.load_all()

    def test_store_on_disk(self, tmp_path: Path) -> None:
        store = DocumentStore(LocalDirectoryRoot(tmp_path))
        unit = make_unit()
        store.save(unit)
        assert (tmp_path / f"{unit.namespace}.json").is_file()
        assert DocumentStore(LocalDirectoryRoot(tmp_path)).load_all() == [unit]

    def test_reads_legacy_unit_files(self, tmp_path: Path) -> None:
        legacy = {
            "metadata": {
                "id": "0b7e",
                "fileName": "printform_info.txt",
                "namespace": "general_5e2d-41aa",
                "chunks": 1,
                "createdAt": "2024-05-02T09:30:00.000Z",
                "filePath": "/var/task/storage/documents/printform_info.txt",
                "fileType": "txt",
            },
            "chunks": [
                {
                    "id": "chunk_0",
                    "content": "Printform offers CNC machining.",
                    "embedding": [0.3, 0.4],
                    "metadata": {"source": "printform_info.txt", "chunk": 0, "category": "general", "fileType": "txt"},
                }
            ],
        }
        (tmp_path / "general_5e2d-41aa.json").write_text(json.dumps(legacy))
        units = DocumentStore(LocalDirectoryRoot(tmp_path)).load_all()
        assert len(units) == 1
        assert units[0].metadata.category == "general"
        assert units[0].chunks[0].metadata.namespace == "general_5e2d-41aa"
