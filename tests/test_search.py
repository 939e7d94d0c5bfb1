"""Tests for compact result rendering."""

from __future__ import annotations

from pathlib import Path

import pytest

from codeindex.engine.types import ChunkMatch, FileMatch, LineMatch
from codeindex.index.search import ResultShaper, match_records, resolve_path, truncate_line
from codeindex.models import IndexRecord, SearchOptions


@pytest.fixture
def records():
    return {"proj_1": IndexRecord(identifier="proj_1", source_dir=Path("/src/proj"))}


def _file(name: str, lines: int, repository: str = "proj_1") -> FileMatch:
    return FileMatch(
        repository=repository,
        file_name=name,
        line_matches=[LineMatch(line=f"match {i}", line_number=i) for i in range(1, lines + 1)],
    )


class TestTruncateLine:
    """Tests for truncate_line()."""

    def test_short_line_unchanged(self):
        assert truncate_line("abc", 200) == "abc"

    def test_exact_length_unchanged(self):
        assert truncate_line("a" * 200, 200) == "a" * 200

    def test_long_line_gets_ellipsis(self):
        result = truncate_line("x" * 250, 200)

        assert len(result) == 200
        assert result == "x" * 197 + "..."

    @pytest.mark.parametrize("limit", [1, 2, 3])
    def test_tiny_limit_hard_cut(self, limit):
        assert truncate_line("abcdef", limit) == "abcdef"[:limit]


class TestMatchRecords:
    """Tests for match_records()."""

    def test_line_matches_preferred(self):
        file_match = FileMatch(
            repository="r",
            file_name="f",
            line_matches=[LineMatch(line="a\r\n", line_number=4)],
            chunk_matches=[ChunkMatch(content="ignored", start_line=1)],
        )

        records = match_records(file_match)

        assert [(r.line_number, r.content) for r in records] == [(4, "a")]

    def test_chunks_split_and_numbered(self):
        file_match = FileMatch(
            repository="r",
            file_name="f",
            chunk_matches=[
                ChunkMatch(content="first\r\n\nthird\n", start_line=10),
                ChunkMatch(content="other", start_line=40),
            ],
        )

        records = match_records(file_match)

        assert [(r.line_number, r.content) for r in records] == [
            (10, "first"),
            (12, "third"),
            (40, "other"),
        ]

    def test_no_matches(self):
        assert match_records(FileMatch(repository="r", file_name="f")) == []


class TestResolvePath:
    """Tests for resolve_path()."""

    def test_known_repository(self, records):
        path = resolve_path(FileMatch(repository="proj_1", file_name="pkg/a.go"), records)

        assert Path(path) == Path("/src/proj/pkg/a.go")

    def test_unknown_repository_falls_back_to_name(self, records):
        path = resolve_path(FileMatch(repository="gone_2", file_name="pkg/a.go"), records)

        assert path == "pkg/a.go"


class TestResultShaper:
    """Tests for ResultShaper.shape()."""

    def test_truncates_files_and_lines(self, records):
        files = [_file(f"f{i}.go", 10) for i in range(5)]
        options = SearchOptions(max_files=2, max_lines_per_file=3)

        result = ResultShaper(records).shape(files, options)

        prefix = str(Path("/src/proj")) + "/"
        assert result.total_files == 5
        assert result.total_matches == 50
        assert result.lines == [
            f"{prefix}f0.go:1: match 1",
            f"{prefix}f0.go:2: match 2",
            f"{prefix}f0.go:3: match 3",
            "  ... and 7 more matches in this file",
            f"{prefix}f1.go:1: match 1",
            f"{prefix}f1.go:2: match 2",
            f"{prefix}f1.go:3: match 3",
            "  ... and 7 more matches in this file",
            "\n[Showing 2 of 5 files. Use max_files to see more]",
        ]

    def test_no_footer_when_everything_fits(self, records):
        result = ResultShaper(records).shape([_file("a.go", 2)], SearchOptions())

        assert len(result.lines) == 2
        assert not any("more" in line for line in result.lines)

    def test_long_lines_truncated(self, records):
        file_match = FileMatch(
            repository="proj_1",
            file_name="a.go",
            line_matches=[LineMatch(line="y" * 250, line_number=1)],
        )

        result = ResultShaper(records).shape([file_match], SearchOptions())

        content = result.lines[0].split(": ", 1)[1]
        assert content == "y" * 197 + "..."

    def test_custom_line_length(self, records):
        file_match = FileMatch(
            repository="proj_1",
            file_name="a.go",
            line_matches=[LineMatch(line="abcdefghij", line_number=7)],
        )

        result = ResultShaper(records).shape([file_match], SearchOptions(max_line_length=6))

        assert result.lines[0].endswith("a.go:7: abc...")

    def test_files_only(self, records):
        files = [_file("a.go", 4), _file("b.go", 1)]

        result = ResultShaper(records).shape(files, SearchOptions(files_only=True))

        assert [Path(line).name for line in result.lines] == ["a.go", "b.go"]
        assert result.total_matches == 5

    def test_file_without_line_matches_renders_path(self, records):
        file_match = FileMatch(repository="proj_1", file_name="README.md")

        result = ResultShaper(records).shape([file_match], SearchOptions())

        assert result.lines == [str(Path("/src/proj")) + "/README.md"]
        assert result.total_matches == 0

    def test_unknown_repository_uses_bare_name(self, records):
        result = ResultShaper(records).shape([_file("x.go", 1, "gone_2")], SearchOptions())

        assert result.lines == ["x.go:1: match 1"]

    def test_non_positive_options_use_defaults(self, records):
        files = [_file(f"f{i}.go", 1) for i in range(25)]
        options = SearchOptions(max_files=0, max_lines_per_file=-1, max_line_length=0)

        result = ResultShaper(records).shape(files, options)

        assert result.lines[-1] == "\n[Showing 20 of 25 files. Use max_files to see more]"
        assert len(result.lines) == 21

    def test_empty(self, records):
        result = ResultShaper(records).shape([], SearchOptions())

        assert result.total_files == 0
        assert result.total_matches == 0
        assert result.lines == []
