"""Core codeindex data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict


@dataclass(slots=True, frozen=True)
class IndexRecord:
    """Registry entry mapping an index identifier to its source directory."""

    identifier: str
    source_dir: Path

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.identifier, "source_dir": str(self.source_dir)}


@dataclass(slots=True, frozen=True)
class MatchRecord:
    """One renderable match line, independent of the engine's result shape."""

    line_number: int
    content: str


@dataclass(slots=True)
class SearchOptions:
    max_files: int = 20
    max_lines_per_file: int = 3
    max_line_length: int = 200
    files_only: bool = False

    def with_defaults(self) -> "SearchOptions":
        """Replace non-positive limits with their defaults."""
        defaults = SearchOptions()
        return SearchOptions(
            max_files=self.max_files if self.max_files > 0 else defaults.max_files,
            max_lines_per_file=(
                self.max_lines_per_file
                if self.max_lines_per_file > 0
                else defaults.max_lines_per_file
            ),
            max_line_length=(
                self.max_line_length if self.max_line_length > 0 else defaults.max_line_length
            ),
            files_only=self.files_only,
        )


@dataclass(slots=True)
class SearchResult:
    """Compact, grep-like search output."""

    total_files: int = 0
    total_matches: int = 0
    lines: list[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_matches": self.total_matches,
            "lines": list(self.lines),
        }
