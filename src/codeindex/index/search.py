"""Compact rendering of raw engine results."""

from __future__ import annotations

import os
from typing import List, Mapping, Sequence

from codeindex.engine.types import FileMatch
from codeindex.models import IndexRecord, MatchRecord, SearchOptions, SearchResult

ELLIPSIS = "..."


def truncate_line(text: str, max_length: int) -> str:
    """Shorten ``text`` to ``max_length`` characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    if max_length <= len(ELLIPSIS):
        return text[:max_length]
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def match_records(file_match: FileMatch) -> List[MatchRecord]:
    """Normalize line matches or chunk matches into one list of records.

    Discrete line matches win when present. Otherwise every non-blank line
    of every chunk becomes a record, numbered from the chunk's start line.
    """
    if file_match.line_matches:
        return [
            MatchRecord(line_number=match.line_number, content=match.line.rstrip("\r\n"))
            for match in file_match.line_matches
        ]

    records: List[MatchRecord] = []
    for chunk in file_match.chunk_matches:
        for offset, line in enumerate(chunk.content.split("\n")):
            if not line.strip():
                continue
            records.append(
                MatchRecord(line_number=chunk.start_line + offset, content=line.rstrip("\r"))
            )
    return records


def resolve_path(file_match: FileMatch, records: Mapping[str, IndexRecord]) -> str:
    record = records.get(file_match.repository)
    if record is None:
        return file_match.file_name
    return os.path.join(str(record.source_dir), file_match.file_name)


class ResultShaper:
    """Turns engine file matches into bounded grep-like output."""

    def __init__(self, records: Mapping[str, IndexRecord]) -> None:
        self.records = records

    def shape(self, files: Sequence[FileMatch], options: SearchOptions) -> SearchResult:
        options = options.with_defaults()
        result = SearchResult(total_files=len(files))

        for position, file_match in enumerate(files):
            records = match_records(file_match)
            result.total_matches += len(records)
            if position >= options.max_files:
                continue

            full_path = resolve_path(file_match, self.records)
            if options.files_only or not records:
                result.lines.append(full_path)
                continue

            for record in records[: options.max_lines_per_file]:
                content = truncate_line(record.content, options.max_line_length)
                result.lines.append(f"{full_path}:{record.line_number}: {content}")

            remaining = len(records) - options.max_lines_per_file
            if remaining > 0:
                result.lines.append(f"  ... and {remaining} more matches in this file")

        if result.total_files > options.max_files:
            result.lines.append(
                f"\n[Showing {options.max_files} of {result.total_files} files. "
                "Use max_files to see more]"
            )

        return result
