"""Lifecycle control for the background search web server."""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

import uvicorn

from codeindex.errors import AlreadyRunning, IOFailure, NotRunning
from codeindex.index.indexer import IndexManager
from codeindex.web.app import create_app

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class WebServerStatus:
    running: bool
    port: int | None = None
    url: str | None = None
    started_at: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"running": self.running}
        if self.running:
            data["port"] = self.port
            data["url"] = self.url
            data["started_at"] = self.started_at.isoformat() if self.started_at else None
        return data


@dataclass(slots=True, frozen=True)
class StopOutcome:
    """``graceful`` is False when in-flight requests outlived the shutdown timeout."""

    graceful: bool


class ServerThread(threading.Thread):
    """Thread that runs a uvicorn server on an already bound socket."""

    def __init__(self, server: uvicorn.Server, sock: socket.socket, on_exit) -> None:
        super().__init__(name="codeindex-webserver", daemon=True)
        self.server = server
        self.sock = sock
        self._on_exit = on_exit
        self.stop_requested = False

    def run(self) -> None:
        try:
            self.server.run(sockets=[self.sock])
        except (Exception, SystemExit) as exc:
            LOGGER.error("Web server terminated with an error: %s", exc)
        finally:
            self._on_exit(self)

    def stop(self) -> None:
        """Signal the server to stop."""
        self.stop_requested = True
        self.server.should_exit = True


class WebServerSupervisor:
    """Starts, stops and reports on at most one web server per process."""

    def __init__(
        self,
        manager: IndexManager,
        *,
        host: str = "127.0.0.1",
        shutdown_timeout: float = 5.0,
    ) -> None:
        self.manager = manager
        self.host = host
        self.shutdown_timeout = shutdown_timeout
        self._lock = threading.Lock()
        self._thread: ServerThread | None = None
        self._port: int | None = None
        self._started_at: datetime | None = None

    def _url(self, port: int) -> str:
        return f"http://{self.host}:{port}"

    def _status_locked(self) -> WebServerStatus:
        if self._thread is None or self._port is None:
            return WebServerStatus(running=False)
        return WebServerStatus(
            running=True,
            port=self._port,
            url=self._url(self._port),
            started_at=self._started_at,
        )

    def _bind(self, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, port))
            sock.listen(128)
        except OSError as exc:
            sock.close()
            raise IOFailure(f"failed to listen on port {port}: {exc}") from exc
        return sock

    def start(self, port: int) -> WebServerStatus:
        """Serve the index root on ``port``; 0 picks a free port."""
        with self._lock:
            if self._thread is not None:
                raise AlreadyRunning(self._port or 0)

            sock = self._bind(port)
            actual_port = sock.getsockname()[1]
            config = uvicorn.Config(
                create_app(self.manager),
                log_level="warning",
                access_log=False,
            )
            thread = ServerThread(uvicorn.Server(config), sock, self._on_thread_exit)

            self._thread = thread
            self._port = actual_port
            self._started_at = datetime.now(timezone.utc)
            thread.start()

            LOGGER.info("Web server listening on %s", self._url(actual_port))
            return self._status_locked()

    def stop(self) -> StopOutcome:
        """Shut the server down, waiting up to ``shutdown_timeout`` seconds."""
        with self._lock:
            thread = self._thread
            if thread is None:
                raise NotRunning()

            thread.stop()
            thread.join(self.shutdown_timeout)
            graceful = not thread.is_alive()
            if not graceful:
                LOGGER.warning(
                    "Web server did not shut down within %.1fs; forcing exit",
                    self.shutdown_timeout,
                )
                thread.server.force_exit = True
                thread.sock.close()

            self._thread = None
            self._port = None
            self._started_at = None

        LOGGER.info("Web server stopped")
        return StopOutcome(graceful=graceful)

    def status(self) -> WebServerStatus:
        with self._lock:
            return self._status_locked()

    def _on_thread_exit(self, thread: ServerThread) -> None:
        if thread.stop_requested:
            # Requested through stop(), which owns the state reset
            return
        with self._lock:
            if self._thread is thread:
                LOGGER.warning("Web server on port %s exited unexpectedly", self._port)
                self._thread = None
                self._port = None
                self._started_at = None
        thread.sock.close()
