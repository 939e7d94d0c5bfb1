"""Error taxonomy shared by the management layer and its outer surfaces."""

from __future__ import annotations


class CodeIndexError(Exception):
    """Base class for every failure reported to callers."""

    kind = "CodeIndexError"


class InvalidInput(CodeIndexError):
    kind = "InvalidInput"


class PathNotFound(CodeIndexError):
    kind = "NotFound"

    def __init__(self, path: object) -> None:
        super().__init__(f"path does not exist: {path}")
        self.path = path


class NotADirectory(CodeIndexError):
    kind = "NotADirectory"

    def __init__(self, path: object) -> None:
        super().__init__(f"path is not a directory: {path}")
        self.path = path


class QueryParseError(CodeIndexError):
    kind = "QueryParseError"


class IndexUnavailable(CodeIndexError):
    kind = "IndexUnavailable"


class EngineFailure(CodeIndexError):
    kind = "EngineFailure"


class AlreadyRunning(CodeIndexError):
    kind = "AlreadyRunning"

    def __init__(self, port: int) -> None:
        super().__init__(f"web server is already running on port {port}")
        self.port = port


class NotRunning(CodeIndexError):
    kind = "NotRunning"

    def __init__(self) -> None:
        super().__init__("web server is not running")


class IOFailure(CodeIndexError):
    kind = "IOFailure"
