"""Data shapes exchanged with the search engine."""

from __future__ import annotations

from dataclasses import dataclass, field


class EngineError(Exception):
    """Raised for index build and search failures inside the engine."""


class QueryError(EngineError):
    """Raised when query text cannot be parsed."""


@dataclass(slots=True, frozen=True)
class Repository:
    name: str
    source: str = ""


@dataclass(slots=True, frozen=True)
class Document:
    name: str
    content: bytes


@dataclass(slots=True, frozen=True)
class LineMatch:
    line: str
    line_number: int


@dataclass(slots=True, frozen=True)
class ChunkMatch:
    """Contiguous block of matched content starting at ``start_line``."""

    content: str
    start_line: int


@dataclass(slots=True)
class FileMatch:
    repository: str
    file_name: str
    line_matches: list[LineMatch] = field(default_factory=list)
    chunk_matches: list[ChunkMatch] = field(default_factory=list)
