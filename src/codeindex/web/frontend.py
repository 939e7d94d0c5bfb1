"""Search page served at the root of the web server."""

from __future__ import annotations

import html
from functools import lru_cache
from importlib.resources import files
from string import Template

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

router = APIRouter()


@lru_cache(maxsize=1)
def _load_template() -> Template:
    template = files("codeindex.web").joinpath("templates", "index.html")
    return Template(template.read_text(encoding="utf-8"))


def render_page(index_dir: str) -> str:
    return _load_template().safe_substitute(index_dir=html.escape(index_dir))


@router.get("/", response_class=HTMLResponse)
async def search_page(request: Request) -> HTMLResponse:
    manager = request.app.state.manager
    return HTMLResponse(content=render_page(str(manager.index_dir)))
