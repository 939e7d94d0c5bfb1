"""Building per-directory tantivy indexes."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any

import tantivy

from codeindex.engine.schema import (
    CONTENT_FIELD,
    PATH_EXACT_FIELD,
    PATH_FIELD,
    REPO_FIELD,
    SOURCE_FIELD,
    TMP_SUFFIX,
    build_schema,
    index_path,
)
from codeindex.engine.types import Document, EngineError, Repository

LOGGER = logging.getLogger(__name__)

WRITER_HEAP_SIZE = 50_000_000


class IndexBuilder:
    """Builds an index in a temporary directory and publishes it on ``finish``.

    Used as a context manager, the builder discards its temporary directory
    if the block raises, so a failed build never leaves a partial index
    behind.
    """

    def __init__(self, index_dir: Path, repository: Repository) -> None:
        self.index_dir = Path(index_dir)
        self.repository = repository
        self.final_path = index_path(self.index_dir, repository.name)
        self.tmp_path = self.final_path.with_name(self.final_path.name + TMP_SUFFIX)
        self.documents = 0
        self._writer: Any = None

        shutil.rmtree(self.tmp_path, ignore_errors=True)
        try:
            self.tmp_path.mkdir(parents=True)
            index = tantivy.Index(build_schema(), path=str(self.tmp_path))
            self._writer = index.writer(heap_size=WRITER_HEAP_SIZE, num_threads=1)
        except (OSError, ValueError) as exc:
            shutil.rmtree(self.tmp_path, ignore_errors=True)
            raise EngineError(f"failed to create index {self.tmp_path}: {exc}") from exc

    def __enter__(self) -> "IndexBuilder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.discard()

    def add(self, document: Document) -> None:
        if self._writer is None:
            raise EngineError("index builder already closed")
        doc = tantivy.Document()
        doc.add_text(PATH_FIELD, document.name)
        doc.add_text(PATH_EXACT_FIELD, document.name)
        doc.add_text(CONTENT_FIELD, document.content.decode("utf-8", errors="replace"))
        doc.add_text(REPO_FIELD, self.repository.name)
        doc.add_text(SOURCE_FIELD, self.repository.source)
        try:
            self._writer.add_document(doc)
        except ValueError as exc:
            raise EngineError(f"failed to add {document.name}: {exc}") from exc
        self.documents += 1

    def finish(self) -> Path:
        """Commit the index and move it into place."""
        if self._writer is None:
            raise EngineError("index builder already closed")
        try:
            self._writer.commit()
            self._writer.wait_merging_threads()
            self._writer = None
            # Directories cannot be swapped atomically, drop the old one first
            shutil.rmtree(self.final_path, ignore_errors=True)
            os.replace(self.tmp_path, self.final_path)
        except (OSError, ValueError) as exc:
            self.discard()
            raise EngineError(f"failed to finish index {self.final_path}: {exc}") from exc
        LOGGER.debug("Wrote index %s with %d documents", self.final_path, self.documents)
        return self.final_path

    def discard(self) -> None:
        """Drop the temporary directory. Safe to call more than once."""
        # Uncommitted documents go away with the directory
        self._writer = None
        shutil.rmtree(self.tmp_path, ignore_errors=True)
