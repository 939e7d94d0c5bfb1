"""Service object and the tool operations exposed to calling agents.

Every tool function returns a :class:`ToolResult` and never raises, so a
transport can relay the outcome verbatim.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from codeindex.config import AppConfig
from codeindex.errors import CodeIndexError, InvalidInput, NotRunning
from codeindex.index.indexer import IndexManager
from codeindex.index.storage import canonical_path
from codeindex.models import SearchOptions
from codeindex.web.supervisor import WebServerSupervisor

LOGGER = logging.getLogger(__name__)

NO_RESULTS = "No results found"
NO_INDEXES = "No indexes found. Use 'index_directory' to create an index."


@dataclass(slots=True)
class ToolResult:
    text: str
    is_error: bool = False
    data: Any = None


class CodeIndexService:
    """Owns the index manager and web server supervisor for one process."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config if config is not None else AppConfig.from_env()
        index_dir = self.config.resolve_index_dir()
        self.manager = IndexManager(index_dir, max_line_length=self.config.max_line_length)
        self.webserver = WebServerSupervisor(
            self.manager, shutdown_timeout=self.config.shutdown_timeout
        )

    def close(self) -> None:
        try:
            self.webserver.stop()
        except NotRunning:
            pass

    def __enter__(self) -> "CodeIndexService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def _failure(action: str, exc: CodeIndexError) -> ToolResult:
    LOGGER.debug("%s failed: %s (%s)", action, exc, exc.kind)
    return ToolResult(text=f"Failed to {action}: {exc}", is_error=True, data={"kind": exc.kind})


def _require_string(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"required argument {name!r} must be a non-empty string")
    return value.strip()


def _optional_string(name: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"argument {name!r} must be a string")
    return value.strip() or None


def _optional_int(name: str, value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"argument {name!r} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidInput(f"argument {name!r} must be an integer")
    if value < 0:
        raise InvalidInput(f"argument {name!r} must not be negative")
    return int(value)


def index_directory(service: CodeIndexService, directory: Any) -> ToolResult:
    try:
        stats = service.manager.index_directory(_require_string("directory", directory))
    except CodeIndexError as exc:
        return _failure("index directory", exc)
    return ToolResult(
        text=(
            f"Successfully indexed directory: {stats.source_dir}\n"
            f"Index stored in: {service.manager.index_dir}\n"
            f"Files indexed: {stats.ingest.files}"
        ),
        data={
            "name": stats.identifier,
            "source_dir": str(stats.source_dir),
            "files": stats.ingest.files,
            "skipped": stats.ingest.skipped,
        },
    )


def search_code(
    service: CodeIndexService,
    query: Any,
    directory: Any = None,
    max_files: Any = None,
    max_lines_per_file: Any = None,
    files_only: Any = False,
) -> ToolResult:
    try:
        query_text = _require_string("query", query)
        if files_only is None:
            files_only = False
        if not isinstance(files_only, bool):
            raise InvalidInput("argument 'files_only' must be a boolean")
        options = SearchOptions(
            max_files=_optional_int("max_files", max_files, 20),
            max_lines_per_file=_optional_int("max_lines_per_file", max_lines_per_file, 3),
            max_line_length=service.config.max_line_length,
            files_only=files_only,
        )
        result = service.manager.search(
            query_text, _optional_string("directory", directory), options
        )
    except CodeIndexError as exc:
        return _failure("search", exc)

    if not result.lines:
        return ToolResult(text=NO_RESULTS, data=result.to_dict())
    return ToolResult(text="\n".join(result.lines), data=result.to_dict())


def list_indexes(service: CodeIndexService) -> ToolResult:
    records = [record.to_dict() for record in service.manager.list_indexes()]
    if not records:
        return ToolResult(text=NO_INDEXES, data=[])
    return ToolResult(text=_to_json(records), data=records)


def delete_index(service: CodeIndexService, directory: Any) -> ToolResult:
    try:
        path = _require_string("directory", directory)
        service.manager.delete_index(path)
    except CodeIndexError as exc:
        return _failure("delete index", exc)
    return ToolResult(text=f"Successfully deleted index for: {canonical_path(path)}")


def index_info(service: CodeIndexService) -> ToolResult:
    info = service.manager.info()
    return ToolResult(text=_to_json(info), data=info)


def start_webserver(service: CodeIndexService, port: Any = None) -> ToolResult:
    try:
        chosen = _optional_int("port", port, service.config.webserver_port)
        if chosen > 65535:
            raise InvalidInput("argument 'port' must be between 0 and 65535")
        status = service.webserver.start(chosen)
    except CodeIndexError as exc:
        return _failure("start web server", exc)
    data = status.to_dict()
    return ToolResult(text=f"Web server started successfully!\n{_to_json(data)}", data=data)


def stop_webserver(service: CodeIndexService) -> ToolResult:
    try:
        outcome = service.webserver.stop()
    except CodeIndexError as exc:
        return _failure("stop web server", exc)
    if not outcome.graceful:
        return ToolResult(
            text=(
                "Web server stopped (graceful shutdown timed out after "
                f"{service.webserver.shutdown_timeout:g}s; listener released)"
            ),
            data={"graceful": False},
        )
    return ToolResult(text="Web server stopped successfully", data={"graceful": True})


def webserver_status(service: CodeIndexService) -> ToolResult:
    data = service.webserver.status().to_dict()
    return ToolResult(text=_to_json(data), data=data)
