# -*- coding: utf-8 -*-
"""
Linked document resolution.

A linked document request from the UI is a logical path: absolute, relative,
or a bare filename. Strategies, first hit wins:
1. absolute path, used as-is if it exists
2. relative to the reviewed document's directory
3. relative to the project root
4. bare filename only: recursive exact-name search under the project root

Hard rules:
- Whatever candidate comes out is re-checked for containment within
  {base_dir, project_root} before it is read.
- Linked documents are always served read-only.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import AmbiguousFilenameError, DocumentNotFoundError, PathTraversalError
from .security import is_contained


@dataclass(frozen=True)
class LinkedDocument:
    path: Path
    markdown: str
    read_only: bool = True


def is_bare_filename(requested: str) -> bool:
    return "/" not in requested and "\\" not in requested


def find_files_named(root: Path, name: str) -> List[Path]:
    """
    Every file under root whose final path segment equals name exactly.
    Hidden directories are not descended into.
    """
    matches: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        if name in filenames:
            matches.append(Path(dirpath) / name)
    return sorted(matches)


def _relative_posix(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _resolve_sync(requested: str, base_dir: Path, project_root: Path) -> Path:
    found = False
    candidate: Optional[Path] = None

    req = Path(requested).expanduser()
    if req.is_absolute():
        candidate = req.resolve()
        found = candidate.is_file()
    else:
        candidate = (base_dir / req).resolve()
        found = candidate.is_file()

        if not found:
            from_root = (project_root / req).resolve()
            if from_root.is_file():
                candidate = from_root
                found = True

        if not found and is_bare_filename(requested):
            matches = find_files_named(project_root, requested)
            if len(matches) == 1:
                candidate = matches[0].resolve()
                found = True
            elif len(matches) > 1:
                raise AmbiguousFilenameError(
                    requested, [_relative_posix(m, project_root) for m in matches]
                )

    if not is_contained(candidate, (base_dir, project_root)):
        raise PathTraversalError(requested, "Path traversal attempt blocked")

    if not found:
        raise DocumentNotFoundError(requested)

    return candidate


async def resolve_linked_document(requested: str, base_dir: Path, project_root: Path) -> Path:
    """
    Resolve a linked document request to a real, contained file path.

    Raises AmbiguousFilenameError, PathTraversalError or DocumentNotFoundError.
    """
    requested = (requested or "").strip()
    if not requested:
        raise DocumentNotFoundError(requested)
    return await asyncio.to_thread(
        _resolve_sync,
        requested,
        Path(base_dir).resolve(),
        Path(project_root).resolve(),
    )


async def load_linked_document(requested: str, base_dir: Path, project_root: Path) -> LinkedDocument:
    path = await resolve_linked_document(requested, base_dir, project_root)
    markdown = await asyncio.to_thread(path.read_text, encoding="utf-8")
    return LinkedDocument(path=path, markdown=markdown)
