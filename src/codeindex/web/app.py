"""FastAPI application backing the interactive search server."""

from __future__ import annotations

import logging
from typing import Any, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from codeindex.errors import (
    CodeIndexError,
    IndexUnavailable,
    InvalidInput,
    NotADirectory,
    PathNotFound,
    QueryParseError,
)
from codeindex.index.indexer import IndexManager
from codeindex.models import SearchOptions
from codeindex.web.frontend import router as frontend_router

LOGGER = logging.getLogger(__name__)

MAX_FILES_LIMIT = 500

_STATUS_BY_ERROR = (
    ((InvalidInput, QueryParseError, NotADirectory), 400),
    ((PathNotFound, IndexUnavailable), 404),
)


class SearchPayload(BaseModel):
    query: str
    directory: str | None = None
    max_files: int = 20
    max_lines_per_file: int = 3
    files_only: bool = False


def _http_error(exc: CodeIndexError) -> HTTPException:
    for error_types, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_types):
            return HTTPException(status_code=status_code, detail=str(exc))
    LOGGER.error("Request failed: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))


def create_app(manager: IndexManager) -> FastAPI:
    """Build the web app serving searches over ``manager``'s index root."""
    app = FastAPI(title="codeindex", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(frontend_router)
    app.state.manager = manager

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "index_directory": str(manager.index_dir)}

    # Sync handlers run in the threadpool, keeping index I/O off the event loop
    @app.post("/search")
    def search(payload: SearchPayload) -> dict[str, Any]:
        query = payload.query.strip()
        if not query:
            raise HTTPException(status_code=400, detail="Empty query")

        options = SearchOptions(
            max_files=max(1, min(payload.max_files, MAX_FILES_LIMIT)),
            max_lines_per_file=payload.max_lines_per_file,
            max_line_length=manager.max_line_length,
            files_only=payload.files_only,
        )
        try:
            result = manager.search(query, payload.directory or None, options)
        except CodeIndexError as exc:
            raise _http_error(exc) from exc
        return result.to_dict()

    @app.get("/file", response_class=PlainTextResponse)
    def read_file(directory: str, path: str) -> PlainTextResponse:
        """Stored content of one file from the index of ``directory``."""
        try:
            content = manager.read_file(directory, path)
        except CodeIndexError as exc:
            raise _http_error(exc) from exc
        return PlainTextResponse(content)

    @app.get("/indexes")
    def list_indexes() -> dict[str, List[dict[str, Any]]]:
        return {"indexes": [record.to_dict() for record in manager.list_indexes()]}

    return app
