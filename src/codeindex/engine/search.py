"""Searching a directory of per-repository tantivy indexes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Sequence

import tantivy

from codeindex.engine.query import Query
from codeindex.engine.schema import (
    CONTENT_FIELD,
    DEFAULT_FIELDS,
    INDEX_SUFFIX,
    PATH_EXACT_FIELD,
    PATH_FIELD,
    index_path,
)
from codeindex.engine.types import ChunkMatch, EngineError, FileMatch, LineMatch, QueryError

LOGGER = logging.getLogger(__name__)


def _line_matches(query: Query, content: str) -> List[LineMatch]:
    if not query.clauses:
        return []
    return [
        LineMatch(line=line, line_number=number)
        for number, line in enumerate(content.split("\n"), start=1)
        if query.line_matches(line)
    ]


def _chunk_matches(line_matches: List[LineMatch]) -> List[ChunkMatch]:
    """Group runs of consecutive matching lines into chunks."""
    chunks: List[ChunkMatch] = []
    run: List[LineMatch] = []
    for match in line_matches:
        if run and match.line_number != run[-1].line_number + 1:
            chunks.append(ChunkMatch("\n".join(m.line for m in run), run[0].line_number))
            run = []
        run.append(match)
    if run:
        chunks.append(ChunkMatch("\n".join(m.line for m in run), run[0].line_number))
    return chunks


class RepositoryIndex:
    """Read-only handle on one repository's index directory."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.name = self.path.name[: -len(INDEX_SUFFIX)]
        try:
            self._index = tantivy.Index.open(str(self.path))
        except (OSError, ValueError) as exc:
            raise EngineError(f"failed to open index {self.path}: {exc}") from exc

    def _parse(self, query: Query) -> Any:
        try:
            return self._index.parse_query(query.expression, DEFAULT_FIELDS)
        except ValueError as exc:
            raise QueryError(str(exc)) from exc

    def search(self, query: Query) -> List[FileMatch]:
        """Every matching file of this repository, ordered by file name."""
        parsed = self._parse(query)
        try:
            searcher = self._index.searcher()
            hits = searcher.search(parsed, limit=max(searcher.num_docs, 1)).hits
            docs = [searcher.doc(address) for _score, address in hits]
        except ValueError as exc:
            raise EngineError(f"search failed in {self.path}: {exc}") from exc

        results = []
        for doc in docs:
            lines = _line_matches(query, doc.get_first(CONTENT_FIELD) or "")
            results.append(
                FileMatch(
                    repository=self.name,
                    file_name=doc.get_first(PATH_FIELD) or "",
                    line_matches=lines,
                    chunk_matches=_chunk_matches(lines),
                )
            )
        results.sort(key=lambda match: match.file_name)
        return results

    def read(self, file_name: str) -> str | None:
        """Stored content of ``file_name``, or None if it is not indexed."""
        try:
            searcher = self._index.searcher()
            term = tantivy.Query.term_query(self._index.schema, PATH_EXACT_FIELD, file_name)
            hits = searcher.search(term, limit=1).hits
            if not hits:
                return None
            return searcher.doc(hits[0][1]).get_first(CONTENT_FIELD) or ""
        except ValueError as exc:
            raise EngineError(f"failed to read {file_name} from {self.path}: {exc}") from exc


class DirectorySearcher:
    """Searches every index in an index directory.

    ``names`` limits loading to the indexes of the given repositories.
    """

    def __init__(self, index_dir: Path, names: Sequence[str] | None = None) -> None:
        self.index_dir = Path(index_dir)
        if not self.index_dir.is_dir():
            raise EngineError(f"index directory not found: {self.index_dir}")

        if names is None:
            paths = sorted(self.index_dir.glob(f"*{INDEX_SUFFIX}"))
        else:
            paths = sorted(index_path(self.index_dir, name) for name in set(names))
        self.indexes = [RepositoryIndex(path) for path in paths if path.is_dir()]

    def __enter__(self) -> "DirectorySearcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.indexes = []

    def search(self, query: Query, *, max_doc_display_count: int = 0) -> List[FileMatch]:
        """Return matching files ordered by repository then file name.

        A positive ``max_doc_display_count`` stops the search once that many
        files have matched.
        """
        results: List[FileMatch] = []
        for index in sorted(self.indexes, key=lambda index: index.name):
            results.extend(index.search(query))
            if 0 < max_doc_display_count <= len(results):
                LOGGER.debug("Stopping search after %d files", max_doc_display_count)
                return results[:max_doc_display_count]
        return results

    def read(self, name: str, file_name: str) -> str | None:
        for index in self.indexes:
            if index.name == name:
                return index.read(file_name)
        return None
