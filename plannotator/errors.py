# -*- coding: utf-8 -*-
"""
Failure taxonomy for the review server.

Path and validation errors are translated to HTTP status codes in http_api.py
and never escape the HTTP layer. PortInUseError is fatal at startup.
"""

from __future__ import annotations

from typing import List, Sequence


class ReviewServerError(Exception):
    pass


class PathTraversalError(ReviewServerError):
    def __init__(self, requested: str, message: str = "") -> None:
        super().__init__(message or f"Path not allowed: {requested}")
        self.requested = requested


class AmbiguousFilenameError(ReviewServerError):
    def __init__(self, requested: str, matches: Sequence[str]) -> None:
        self.requested = requested
        self.matches: List[str] = list(matches)
        listing = "\n".join(self.matches)
        super().__init__(
            f"Ambiguous filename '{requested}' - found {len(self.matches)} matches:\n{listing}"
        )


class DocumentNotFoundError(ReviewServerError, FileNotFoundError):
    def __init__(self, requested: str) -> None:
        super().__init__(f"File not found: {requested}")
        self.requested = requested


class ExtensionNotAllowedError(ReviewServerError):
    def __init__(self, name: str, suffix: str) -> None:
        super().__init__(f"Invalid image extension: {suffix or '(none)'}")
        self.name = name
        self.suffix = suffix


class FileTooLargeError(ReviewServerError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File too large (max {limit // (1024 * 1024)}MB)")
        self.size = size
        self.limit = limit


class PortInUseError(ReviewServerError, OSError):
    def __init__(self, port: int, retries: int, hint: str = "") -> None:
        super().__init__(f"Port {port} in use after {retries} retries{hint}")
        self.port = port
        self.retries = retries


class WriteFailureError(ReviewServerError, OSError):
    pass


class UploadError(ReviewServerError):
    pass
