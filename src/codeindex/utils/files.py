"""Utility helpers for walking source directories."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

LOGGER = logging.getLogger(__name__)

BINARY_SNIFF_BYTES = 8192

SKIPPED_DIRS = frozenset(
    {
        "node_modules",
        "vendor",
        "__pycache__",
        "target",
        "build",
        "dist",
        ".git",
        ".svn",
        ".hg",
        ".idea",
        ".vscode",
        "venv",
        ".venv",
        "env",
        ".env",
    }
)

BINARY_EXTENSIONS = frozenset(
    {
        ".exe", ".dll", ".so", ".dylib", ".bin", ".obj", ".o", ".a",
        ".zip", ".tar", ".gz", ".bz2", ".7z", ".rar",
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".svg",
        ".mp3", ".mp4", ".avi", ".mov",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".class", ".jar", ".war",
        ".pyc", ".pyo",
        ".wasm",
    }
)  # fmt: skip


@dataclass(slots=True)
class IngestStats:
    files: int = 0
    bytes: int = 0
    skipped_dirs: int = 0
    skipped_hidden: int = 0
    skipped_extension: int = 0
    skipped_binary: int = 0
    unreadable: int = 0

    @property
    def skipped(self) -> int:
        return (
            self.skipped_hidden + self.skipped_extension + self.skipped_binary + self.unreadable
        )


def is_skipped_dir(name: str) -> bool:
    """Return True for hidden and build/dependency directories."""
    return name.startswith(".") or name in SKIPPED_DIRS


def is_binary_file(path: str | Path) -> bool:
    """Check if a file is likely binary based on its extension."""
    return os.path.splitext(str(path))[1].lower() in BINARY_EXTENSIONS


def is_binary_content(content: bytes) -> bool:
    """Check the first 8 KiB of content for a null byte."""
    return b"\x00" in content[:BINARY_SNIFF_BYTES]


def _read_text_file(path: str) -> bytes | None:
    """Read a candidate file, returning None if it is binary."""
    with open(path, "rb") as handle:
        head = handle.read(BINARY_SNIFF_BYTES)
        if is_binary_content(head):
            return None
        return head + handle.read()


def iter_source_files(root: Path, stats: IngestStats | None = None) -> Iterator[tuple[str, bytes]]:
    """Yield ``(relative_path, content)`` for every indexable file under ``root``.

    The walk is depth-first and decides whether to prune a directory before
    listing it, so skipped subtrees are never visited. Failures to list a
    directory propagate; failures to read a single file only skip that file.
    Relative paths always use forward slashes.
    """
    stats = stats if stats is not None else IngestStats()
    root_str = os.fspath(root)
    stack: list[tuple[str, str]] = [(root_str, "")]

    while stack:
        directory, rel_dir = stack.pop()
        with os.scandir(directory) as scanner:
            entries = sorted(scanner, key=lambda entry: entry.name)

        subdirs: list[tuple[str, str]] = []
        for entry in entries:
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name

            try:
                rel_path.encode("utf-8")
                is_dir = entry.is_dir(follow_symlinks=False)
            except (OSError, UnicodeEncodeError):
                # Undecodable names cannot be stored in an index
                stats.unreadable += 1
                continue

            if is_dir:
                if is_skipped_dir(entry.name):
                    LOGGER.debug("Skipping directory %s", rel_path)
                    stats.skipped_dirs += 1
                else:
                    subdirs.append((entry.path, rel_path))
                continue

            if entry.name.startswith("."):
                stats.skipped_hidden += 1
                continue
            if is_binary_file(entry.name):
                stats.skipped_extension += 1
                continue

            try:
                if not entry.is_file():
                    continue
                content = _read_text_file(entry.path)
            except OSError as exc:
                LOGGER.debug("Skipping unreadable file %s: %s", rel_path, exc)
                stats.unreadable += 1
                continue

            if content is None:
                stats.skipped_binary += 1
                continue

            stats.files += 1
            stats.bytes += len(content)
            yield rel_path, content

        # Reverse so the alphabetically first subdirectory is popped next
        stack.extend(reversed(subdirs))
