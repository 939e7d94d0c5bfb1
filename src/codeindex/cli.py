"""Command line interface for codeindex."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from codeindex import service as tools
from codeindex.config import AppConfig
from codeindex.errors import CodeIndexError
from codeindex.service import CodeIndexService, ToolResult

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(help="codeindex - full-text code search over local directories")

IndexDirOption = typer.Option(None, "--index-dir", help="Index storage directory")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_service(index_dir: Optional[Path]) -> CodeIndexService:
    config = AppConfig.from_env()
    if index_dir is not None:
        config.index_dir = index_dir
    return CodeIndexService(config)


def _emit(result: ToolResult) -> None:
    if result.is_error:
        err_console.print(result.text, style="red", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(code=1)
    console.print(result.text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def index(
    directory: Path = typer.Argument(..., help="Source directory to index."),
    index_dir: Optional[Path] = IndexDirOption,
    verbose: bool = VerboseOption,
) -> None:
    """Index (or re-index) a source directory."""
    _setup_logging(verbose)
    service = _build_service(index_dir)
    _emit(tools.index_directory(service, str(directory)))


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="Only search the index of this directory"
    ),
    max_files: int = typer.Option(20, help="Maximum number of files to show"),
    max_lines_per_file: int = typer.Option(3, help="Maximum matches shown per file"),
    files_only: bool = typer.Option(False, "--files-only", help="Only print file paths"),
    index_dir: Optional[Path] = IndexDirOption,
    verbose: bool = VerboseOption,
) -> None:
    """Search indexed directories."""
    _setup_logging(verbose)
    service = _build_service(index_dir)
    _emit(
        tools.search_code(
            service,
            query,
            directory=str(directory) if directory is not None else None,
            max_files=max_files,
            max_lines_per_file=max_lines_per_file,
            files_only=files_only,
        )
    )


@app.command("list")
def list_indexes(
    index_dir: Optional[Path] = IndexDirOption,
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """List indexed directories."""
    service = _build_service(index_dir)
    result = tools.list_indexes(service)
    if as_json or not result.data:
        _emit(result)
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name")
    table.add_column("Source directory")
    for entry in result.data:
        table.add_row(entry["name"], entry["source_dir"])
    console.print(table)


@app.command()
def delete(
    directory: Path = typer.Argument(..., help="Directory whose index should be deleted."),
    index_dir: Optional[Path] = IndexDirOption,
    verbose: bool = VerboseOption,
) -> None:
    """Delete the index of a directory."""
    _setup_logging(verbose)
    service = _build_service(index_dir)
    _emit(tools.delete_index(service, str(directory)))


@app.command()
def info(index_dir: Optional[Path] = IndexDirOption) -> None:
    """Show where indexes are stored."""
    service = _build_service(index_dir)
    _emit(tools.index_info(service))


@app.command()
def prune(
    index_dir: Optional[Path] = IndexDirOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove indexes whose source directory no longer exists."""
    _setup_logging(verbose)
    service = _build_service(index_dir)
    try:
        removed = service.manager.prune()
    except CodeIndexError as exc:
        err_console.print(f"Failed to prune indexes: {exc}", style="red", markup=False)
        raise typer.Exit(code=1) from exc
    console.print(f"Removed {len(removed)} stale indexes.")


@app.command()
def serve(
    port: Optional[int] = typer.Option(
        None, help="Server port (default: CODE_INDEX_WEBSERVER_PORT or 6070, 0 for any)"
    ),
    index_dir: Optional[Path] = IndexDirOption,
    verbose: bool = VerboseOption,
) -> None:
    """Run the interactive search web server until interrupted."""
    _setup_logging(verbose)
    service = _build_service(index_dir)
    result = tools.start_webserver(service, port)
    if result.is_error:
        _emit(result)

    console.print(
        f"Serving {service.manager.index_dir} on {result.data['url']} (Ctrl+C to stop)"
    )
    try:
        while service.webserver.status().running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("Stopping web server...")
    finally:
        stopped = tools.stop_webserver(service)
    if stopped.is_error:
        err_console.print("[yellow]Web server exited unexpectedly.[/yellow]")
        raise typer.Exit(code=1)
    console.print(stopped.text)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
