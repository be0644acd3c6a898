# -*- coding: utf-8 -*-
"""
Path / naming safety helpers.

Pure functions (no file I/O beyond path resolution):
- containment of a requested path within allowed base directories
- filename sanitization for user-provided names
- image extension allow-listing
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Union

from .config import IMAGE_SUFFIXES
from .errors import ExtensionNotAllowedError, PathTraversalError

PathLike = Union[str, "os.PathLike[str]"]

_SEPARATORS_RE = re.compile(r"[/\\]")
_UNSAFE_CHARS_RE = re.compile(r'[\x00-\x1f\x7f<>:"|?*]')
_EDGE_RE = re.compile(r"^[\s.]+|[\s.]+$")


def _absolute(path: PathLike) -> Path:
    return Path(path).expanduser().resolve()


def is_contained(path: PathLike, allowed_bases: Iterable[PathLike]) -> bool:
    """
    True if path equals one of the bases or lies under it.

    The separator is appended before the prefix comparison so a sibling that
    only shares a string prefix (/a/bc vs /a/b) never matches.
    """
    resolved = str(_absolute(path))
    for base in allowed_bases:
        b = str(_absolute(base))
        if resolved == b or resolved.startswith(b.rstrip(os.sep) + os.sep):
            return True
    return False


def validate_path(requested: PathLike, allowed_bases: Iterable[PathLike]) -> Path:
    resolved = _absolute(requested)
    if not is_contained(resolved, allowed_bases):
        raise PathTraversalError(str(requested))
    return resolved


def sanitize_filename(name: str) -> str:
    # Loop until stable: removing a separator can join two dots into ".."
    cleaned = name or ""
    while True:
        prev = cleaned
        cleaned = _SEPARATORS_RE.sub("", cleaned).replace("..", "")
        cleaned = _UNSAFE_CHARS_RE.sub("", cleaned)
        cleaned = _EDGE_RE.sub("", cleaned)
        if cleaned == prev:
            break
    return cleaned or "file"


def is_allowed_image_extension(name: PathLike) -> bool:
    return Path(name).suffix.lower() in IMAGE_SUFFIXES


def validate_image_path(path: PathLike, allowed_bases: Iterable[PathLike]) -> Path:
    validated = validate_path(path, allowed_bases)
    if not is_allowed_image_extension(validated):
        raise ExtensionNotAllowedError(validated.name, validated.suffix)
    return validated
