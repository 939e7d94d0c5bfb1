"""Index lifecycle: build, search, list and delete per-directory indexes."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from codeindex.engine.builder import IndexBuilder
from codeindex.engine.query import parse
from codeindex.engine.schema import INDEX_SUFFIX
from codeindex.engine.search import DirectorySearcher
from codeindex.engine.types import Document, EngineError, QueryError, Repository
from codeindex.errors import (
    EngineFailure,
    IndexUnavailable,
    InvalidInput,
    IOFailure,
    NotADirectory,
    PathNotFound,
    QueryParseError,
)
from codeindex.index.locks import IdentifierLocks
from codeindex.index.search import ResultShaper
from codeindex.index.storage import MetadataStore, canonical_path, identifier_for
from codeindex.models import IndexRecord, SearchOptions, SearchResult
from codeindex.utils.files import IngestStats, iter_source_files

LOGGER = logging.getLogger(__name__)

INDEX_DESCRIPTION = (
    f"All indexes are stored as {INDEX_SUFFIX} directories in the index directory, "
    "with unique prefixes per source directory"
)


@dataclass(slots=True)
class IndexStats:
    identifier: str
    source_dir: Path
    artifact: Path
    ingest: IngestStats = field(default_factory=IngestStats)


def _resolve_path(path: str | Path) -> Path:
    if not isinstance(path, (str, Path)) or not str(path).strip():
        raise InvalidInput("a directory path is required")
    try:
        return canonical_path(str(path).strip())
    except (OSError, RuntimeError, ValueError) as exc:
        raise InvalidInput(f"failed to resolve path {path!r}: {exc}") from exc


class IndexManager:
    """Coordinates directory ingestion, index artifacts and the metadata registry."""

    def __init__(self, index_dir: Path, *, max_line_length: int = 200) -> None:
        self.index_dir = Path(index_dir)
        self.max_line_length = max_line_length
        self.metadata = MetadataStore(self.index_dir)
        self.locks = IdentifierLocks()

    def info(self) -> Dict[str, str]:
        return {"index_directory": str(self.index_dir), "description": INDEX_DESCRIPTION}

    def index_directory(self, path: str | Path) -> IndexStats:
        """Build (or rebuild) the index for one source directory."""
        source_dir = _resolve_path(path)
        if not source_dir.exists():
            raise PathNotFound(source_dir)
        if not source_dir.is_dir():
            raise NotADirectory(source_dir)

        identifier = identifier_for(source_dir)
        with self.locks.exclusive(identifier):
            try:
                self.index_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise IOFailure(f"failed to create index directory {self.index_dir}: {exc}") from exc

            self._delete_artifacts(identifier)

            LOGGER.info("Indexing %s into %s", source_dir, self.index_dir)
            stats = IngestStats()
            repository = Repository(name=identifier, source=str(source_dir))
            try:
                with IndexBuilder(self.index_dir, repository) as builder:
                    for name, content in iter_source_files(source_dir, stats):
                        builder.add(Document(name=name, content=content))
                    artifact = builder.finish()
            except OSError as exc:
                LOGGER.error("Walking %s failed: %s", source_dir, exc)
                self.metadata.remove_identifier(identifier)
                raise IOFailure(f"failed to index files in {source_dir}: {exc}") from exc
            except EngineError as exc:
                LOGGER.error("Building index for %s failed: %s", source_dir, exc)
                self.metadata.remove_identifier(identifier)
                raise EngineFailure(f"failed to build index for {source_dir}: {exc}") from exc

            # Only record directories whose index is already in place
            self.metadata.record_index(source_dir)

        LOGGER.info(
            "Indexed %d files (%d bytes) from %s, skipped %d files and %d directories",
            stats.files,
            stats.bytes,
            source_dir,
            stats.skipped,
            stats.skipped_dirs,
        )
        return IndexStats(identifier=identifier, source_dir=source_dir, artifact=artifact, ingest=stats)

    def search(
        self,
        query_text: str,
        directory: str | Path | None = None,
        options: SearchOptions | None = None,
    ) -> SearchResult:
        """Search all indexes, or only the index of ``directory``.

        The engine is asked for twice the display cap so that the reported
        total file count stays meaningful when output is truncated. The count
        is still a lower bound once the engine itself stops early.
        """
        if options is None:
            options = SearchOptions(max_line_length=self.max_line_length)
        options = options.with_defaults()

        try:
            query = parse(query_text)
        except QueryError as exc:
            raise QueryParseError(f"failed to parse query: {exc}") from exc

        available = self._identifiers_on_disk()
        if not available:
            raise IndexUnavailable(
                f"no indexes found in {self.index_dir}; use index_directory to create one"
            )

        if directory:
            names = [identifier_for(_resolve_path(directory))]
        else:
            names = available

        with self.locks.shared(names):
            try:
                with DirectorySearcher(self.index_dir, names=names) as searcher:
                    files = searcher.search(query, max_doc_display_count=options.max_files * 2)
            except EngineError as exc:
                raise EngineFailure(f"search failed: {exc}") from exc

        return ResultShaper(self.metadata.all_records()).shape(files, options)

    def read_file(self, path: str | Path, file_name: str) -> str:
        """Return the indexed content of ``file_name`` from the index of ``path``."""
        identifier = identifier_for(_resolve_path(path))
        if not file_name or not str(file_name).strip():
            raise InvalidInput("a file name is required")
        if identifier not in self._identifiers_on_disk():
            raise IndexUnavailable(f"no index found for {path}; use index_directory to create one")

        with self.locks.shared([identifier]):
            try:
                with DirectorySearcher(self.index_dir, names=[identifier]) as searcher:
                    content = searcher.read(identifier, str(file_name).strip())
            except EngineError as exc:
                raise EngineFailure(f"failed to read {file_name}: {exc}") from exc

        if content is None:
            raise PathNotFound(file_name)
        return content

    def list_indexes(self) -> List[IndexRecord]:
        records = self.metadata.all_records()
        return [records[identifier] for identifier in sorted(records)]

    def delete_index(self, path: str | Path) -> bool:
        """Remove artifacts and metadata for ``path``. Absent indexes are not an error."""
        source_dir = _resolve_path(path)
        identifier = identifier_for(source_dir)
        with self.locks.exclusive(identifier):
            removed_files = self._delete_artifacts(identifier)
            removed_record = self.metadata.remove_identifier(identifier)
        if removed_files or removed_record:
            LOGGER.info("Deleted index %s for %s", identifier, source_dir)
        return bool(removed_files or removed_record)

    def prune(self) -> List[str]:
        """Drop indexes whose source directory vanished, and orphaned artifacts."""
        records = self.metadata.all_records()
        stale = {
            identifier for identifier, record in records.items() if not record.source_dir.is_dir()
        }
        orphans = set(self._identifiers_on_disk()) - set(records)

        for identifier in sorted(stale | orphans):
            with self.locks.exclusive(identifier):
                self._delete_artifacts(identifier)
                self.metadata.remove_identifier(identifier)
            LOGGER.info("Pruned index %s", identifier)
        return sorted(stale | orphans)

    def _identifiers_on_disk(self) -> List[str]:
        try:
            entries = os.listdir(self.index_dir)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise IOFailure(f"failed to read index directory {self.index_dir}: {exc}") from exc
        return sorted(
            name[: -len(INDEX_SUFFIX)] for name in entries if name.endswith(INDEX_SUFFIX)
        )

    def _delete_artifacts(self, identifier: str) -> int:
        prefix = identifier + "."
        removed = 0
        try:
            with os.scandir(self.index_dir) as scanner:
                for entry in scanner:
                    if not entry.name.startswith(prefix):
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        shutil.rmtree(entry.path)
                    else:
                        os.unlink(entry.path)
                    removed += 1
        except FileNotFoundError:
            return removed
        except OSError as exc:
            raise IOFailure(f"failed to delete index files for {identifier}: {exc}") from exc
        return removed
