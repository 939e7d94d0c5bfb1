"""Tests for index identity and the metadata registry."""

import json
import threading
from pathlib import Path

import pytest

from codeindex.errors import IOFailure
from codeindex.index.storage import METADATA_FILE, MetadataStore, canonical_path, identifier_for


@pytest.fixture
def store(tmp_path):
    """Metadata store rooted in a temporary index directory."""
    return MetadataStore(tmp_path / "indexes")


class TestIdentifierFor:
    """Test identifier derivation."""

    def test_deterministic(self, tmp_path):
        assert identifier_for(tmp_path) == identifier_for(tmp_path)

    def test_equivalent_spellings_share_identifier(self, tmp_path):
        """Trailing separators and dot segments resolve to the same directory."""
        project = tmp_path / "project"
        project.mkdir()

        assert identifier_for(f"{project}/") == identifier_for(project)
        assert identifier_for(project / "." / "sub" / "..") == identifier_for(project)

    def test_same_basename_different_parents(self, tmp_path):
        first = tmp_path / "a" / "project"
        second = tmp_path / "b" / "project"

        first_id = identifier_for(first)
        second_id = identifier_for(second)

        assert first_id != second_id
        assert first_id.startswith("project_")
        assert second_id.startswith("project_")

    def test_suffix_is_16_hex_digits(self, tmp_path):
        identifier = identifier_for(tmp_path / "repo")
        base, _, digest = identifier.rpartition("_")

        assert base == "repo"
        assert len(digest) == 16
        int(digest, 16)

    def test_unsafe_characters_replaced(self, tmp_path):
        identifier = identifier_for(tmp_path / "my project")

        assert identifier.startswith("my_project_")
        assert " " not in identifier

    def test_canonical_path_is_absolute(self):
        assert canonical_path("relative/dir").is_absolute()


class TestMetadataStore:
    """Test MetadataStore persistence."""

    def test_missing_file_reads_empty(self, store):
        assert store.all_records() == {}
        assert not store.path.exists()

    def test_record_index_persists(self, store, tmp_path):
        source = tmp_path / "src"
        source.mkdir()

        record = store.record_index(source)

        assert record.identifier == identifier_for(source)
        assert record.source_dir == source.resolve()
        assert store.get(record.identifier) == record

        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert raw == {record.identifier: {"source_dir": str(source.resolve())}}

    def test_record_index_is_upsert(self, store, tmp_path):
        store.record_index(tmp_path)
        store.record_index(tmp_path)

        assert len(store.all_records()) == 1

    def test_survives_new_instance(self, store, tmp_path):
        record = store.record_index(tmp_path)

        reloaded = MetadataStore(store.index_dir)

        assert reloaded.all_records() == {record.identifier: record}

    def test_remove_record(self, store, tmp_path):
        store.record_index(tmp_path)

        assert store.remove_record(tmp_path) is True
        assert store.all_records() == {}

    def test_remove_absent_record(self, store, tmp_path):
        assert store.remove_record(tmp_path) is False
        assert store.remove_identifier("missing_0000000000000000") is False

    def test_corrupt_file_reads_empty(self, store):
        store.index_dir.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")

        assert store.all_records() == {}

    def test_non_mapping_file_reads_empty(self, store):
        store.index_dir.mkdir(parents=True)
        store.path.write_text("[1, 2, 3]", encoding="utf-8")

        assert store.all_records() == {}

    def test_malformed_entries_skipped(self, store):
        store.index_dir.mkdir(parents=True)
        store.path.write_text(
            json.dumps(
                {
                    "good_1": {"source_dir": "/tmp/good"},
                    "bad_1": {"source": "/tmp/bad"},
                    "bad_2": "nope",
                }
            ),
            encoding="utf-8",
        )

        records = store.all_records()

        assert list(records) == ["good_1"]
        assert records["good_1"].source_dir == Path("/tmp/good")

    def test_corrupt_file_replaced_on_write(self, store, tmp_path):
        store.index_dir.mkdir(parents=True)
        store.path.write_text("garbage", encoding="utf-8")

        record = store.record_index(tmp_path)

        assert store.all_records() == {record.identifier: record}

    def test_no_temp_files_left(self, store, tmp_path):
        store.record_index(tmp_path)

        assert sorted(p.name for p in store.index_dir.iterdir()) == [METADATA_FILE]

    def test_write_failure_raises_io_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = MetadataStore(blocker / "indexes")

        with pytest.raises(IOFailure):
            store.record_index(tmp_path)

    def test_concurrent_records_are_all_kept(self, store, tmp_path):
        sources = [tmp_path / f"src{i}" for i in range(40)]
        barrier = threading.Barrier(len(sources))

        def record(source):
            barrier.wait()
            store.record_index(source)

        threads = [threading.Thread(target=record, args=(s,)) for s in sources]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        records = store.all_records()
        assert len(records) == 40
        assert {r.source_dir for r in records.values()} == {s.resolve() for s in sources}
