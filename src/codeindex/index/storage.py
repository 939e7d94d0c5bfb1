"""Index identity and the JSON metadata registry."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict

from codeindex.errors import IOFailure
from codeindex.models import IndexRecord

LOGGER = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def canonical_path(path: str | Path) -> Path:
    """Absolute, symlink-resolved form of ``path``."""
    return Path(path).expanduser().resolve()


def identifier_for(path: str | Path) -> str:
    """Derive the stable index identifier for a source directory.

    The identifier is the directory's base name (made filename-safe) followed
    by the first 8 bytes of the SHA-256 of the full canonical path, so two
    directories sharing a base name still get distinct identifiers.
    """
    absolute = str(canonical_path(path))
    digest = hashlib.sha256(absolute.encode("utf-8")).hexdigest()[:16]
    base_name = _UNSAFE_NAME_CHARS.sub("_", os.path.basename(absolute)) or "root"
    return f"{base_name}_{digest}"


class MetadataStore:
    """Persistence layer mapping identifiers to indexed source directories.

    The registry is a single JSON document rewritten in full on every change.
    Mutations are serialized by a process-wide lock; reads are lock-free
    snapshots.
    """

    def __init__(self, index_dir: Path) -> None:
        self.index_dir = Path(index_dir)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.index_dir / METADATA_FILE

    def all_records(self) -> Dict[str, IndexRecord]:
        """Return the full registry; missing or corrupt metadata reads as empty."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable metadata at %s: %s", self.path, exc)
            return {}

        if not isinstance(raw, dict):
            LOGGER.warning("Ignoring malformed metadata at %s", self.path)
            return {}

        records: Dict[str, IndexRecord] = {}
        for identifier, entry in raw.items():
            source_dir = entry.get("source_dir") if isinstance(entry, dict) else None
            if not isinstance(source_dir, str):
                LOGGER.debug("Skipping malformed metadata entry %r", identifier)
                continue
            records[identifier] = IndexRecord(identifier=identifier, source_dir=Path(source_dir))
        return records

    def get(self, identifier: str) -> IndexRecord | None:
        return self.all_records().get(identifier)

    def record_index(self, path: str | Path) -> IndexRecord:
        """Upsert the record for ``path``."""
        source_dir = canonical_path(path)
        record = IndexRecord(identifier=identifier_for(source_dir), source_dir=source_dir)
        with self._lock:
            records = self.all_records()
            records[record.identifier] = record
            self._save(records)
        return record

    def remove_record(self, path: str | Path) -> bool:
        """Delete the record for ``path``; returns False if it was absent."""
        return self.remove_identifier(identifier_for(path))

    def remove_identifier(self, identifier: str) -> bool:
        with self._lock:
            records = self.all_records()
            if records.pop(identifier, None) is None:
                return False
            self._save(records)
        return True

    def _save(self, records: Dict[str, IndexRecord]) -> None:
        payload = {
            identifier: {"source_dir": str(record.source_dir)}
            for identifier, record in sorted(records.items())
        }
        try:
            self.index_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{METADATA_FILE}.", suffix=".tmp", dir=self.index_dir
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise IOFailure(f"failed to save metadata at {self.path}: {exc}") from exc
