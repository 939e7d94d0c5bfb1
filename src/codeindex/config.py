"""Application configuration defaults."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

LOGGER = logging.getLogger(__name__)

APP_DIR_NAME = "code-index"
DEFAULT_WEBSERVER_PORT = 6070

INDEX_DIR_ENV = "CODE_INDEX_DIR"
WEBSERVER_PORT_ENV = "CODE_INDEX_WEBSERVER_PORT"


def _get_default_index_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Get the default index root based on platform conventions."""
    env = os.environ if environ is None else environ

    xdg_data = env.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data) / APP_DIR_NAME

    try:
        home = Path.home()
    except RuntimeError:
        # No resolvable home directory (stripped-down service accounts)
        return Path(".code-index")

    if sys.platform == "win32":
        appdata = env.get("APPDATA")
        if appdata:
            return Path(appdata) / APP_DIR_NAME
        return home / ".code-index"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_DIR_NAME
    return home / ".local" / "share" / APP_DIR_NAME


def _parse_port(value: str) -> int | None:
    try:
        port = int(value.strip())
    except ValueError:
        return None
    if 0 < port <= 65535:
        return port
    return None


@dataclass(slots=True)
class AppConfig:
    index_dir: Path | None = None
    webserver_port: int = DEFAULT_WEBSERVER_PORT
    max_line_length: int = 200
    shutdown_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.index_dir is None:
            self.index_dir = _get_default_index_dir()
        self.index_dir = Path(self.index_dir)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config honouring the ``CODE_INDEX_*`` environment overrides."""
        env = os.environ if environ is None else environ

        custom_dir = env.get(INDEX_DIR_ENV)
        index_dir = Path(custom_dir).expanduser() if custom_dir else _get_default_index_dir(env)

        port = DEFAULT_WEBSERVER_PORT
        raw_port = env.get(WEBSERVER_PORT_ENV)
        if raw_port:
            parsed = _parse_port(raw_port)
            if parsed is None:
                LOGGER.warning("Ignoring invalid %s=%r", WEBSERVER_PORT_ENV, raw_port)
            else:
                port = parsed

        return cls(index_dir=index_dir, webserver_port=port)

    def resolve_index_dir(self, base_dir: Path | None = None) -> Path:
        if self.index_dir is None:
            self.index_dir = _get_default_index_dir()
        if Path(self.index_dir).is_absolute() or base_dir is None:
            return Path(self.index_dir)
        return base_dir / self.index_dir
