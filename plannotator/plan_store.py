# -*- coding: utf-8 -*-
"""
plan_store.py

Disk-backed storage for reviewed plans/documents.

Layout (default ~/.plannotator/plans, overridable):
- {slug}.md            plan / document as reviewed
- {slug}.diff.md       annotations / diff
- {slug}-approved.md   final snapshot on approve
- {slug}-denied.md     final snapshot on deny

All writes go through atomic_io. A slug is unique in the storage directory
at the time it is allocated; artifacts of one session share one slug.
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from . import atomic_io
from .config import DEFAULT_PLAN_DIR, NO_CHANGES_DIFF
from .errors import WriteFailureError

MAX_SLUG_ATTEMPTS = 1000
MAX_TAG_LENGTH = 50

_HEADING_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)

PathArg = Optional[Union[str, Path]]


def get_plan_dir(custom_path: PathArg = None) -> Path:
    """
    Plan storage directory, created if needed. Supports ~ in custom paths.
    """
    raw = str(custom_path or "").strip()
    plan_dir = Path(raw).expanduser() if raw else DEFAULT_PLAN_DIR.expanduser()
    plan_dir.mkdir(parents=True, exist_ok=True)
    return plan_dir


def extract_first_heading(markdown: str) -> Optional[str]:
    m = _HEADING_RE.search(markdown or "")
    if not m:
        return None
    return m.group(1).strip() or None


def sanitize_tag(text: str) -> str:
    tag = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return tag[:MAX_TAG_LENGTH].rstrip("-")


def generate_slug(content: str, today: Optional[date] = None) -> str:
    """
    YYYY-MM-DD-{heading-tag}, or YYYY-MM-DD-plan when there is no usable heading.
    """
    day = (today or datetime.now(timezone.utc).date()).isoformat()
    heading = extract_first_heading(content)
    tag = sanitize_tag(heading) if heading else ""
    return f"{day}-{tag}" if tag else f"{day}-plan"


def generate_unique_slug(content: str, directory: Union[str, Path], today: Optional[date] = None) -> str:
    """
    generate_slug(), suffixed -2, -3, ... until {slug}.md is free in directory.

    After MAX_SLUG_ATTEMPTS the slug gets a millisecond timestamp instead.
    """
    base = generate_slug(content, today=today)
    d = Path(directory)

    if not (d / f"{base}.md").exists():
        return base

    for counter in range(2, MAX_SLUG_ATTEMPTS):
        slug = f"{base}-{counter}"
        if not (d / f"{slug}.md").exists():
            return slug

    return f"{base}-{int(time.time() * 1000)}"


def _write(path: Path, content: str) -> Path:
    try:
        out = atomic_io.atomic_write(path, content)
    except OSError as e:
        raise WriteFailureError(f"Failed to write {path}: {e}") from e
    print(f"[STORE] wrote {out}", flush=True)
    return out


def save_plan(slug: str, content: str, custom_path: PathArg = None) -> Path:
    return _write(get_plan_dir(custom_path) / f"{slug}.md", content)


def save_annotations(slug: str, diff_content: str, custom_path: PathArg = None) -> Path:
    return _write(get_plan_dir(custom_path) / f"{slug}.diff.md", diff_content)


def save_review_artifacts(slug: str, plan: str, diff_content: str, custom_path: PathArg = None) -> List[Path]:
    """
    Plan + annotations under one slug, written as a single two-phase batch.
    """
    plan_dir = get_plan_dir(custom_path)
    try:
        out = atomic_io.atomic_write_multiple(
            [
                (plan_dir / f"{slug}.md", plan),
                (plan_dir / f"{slug}.diff.md", diff_content),
            ]
        )
    except OSError as e:
        raise WriteFailureError(f"Failed to write artifacts for {slug}: {e}") from e
    print(f"[STORE] wrote {len(out)} artifacts for {slug}", flush=True)
    return out


def save_final_snapshot(
    slug: str,
    status: str,
    plan: str,
    diff: str,
    custom_path: PathArg = None,
) -> Path:
    """
    Plan with the diff appended, saved as {slug}-{status}.md.
    """
    if status not in ("approved", "denied"):
        raise ValueError(f"status must be 'approved' or 'denied', got {status!r}")

    content = plan or ""
    if diff and diff != NO_CHANGES_DIFF:
        content += "\n\n---\n\n" + diff

    return _write(get_plan_dir(custom_path) / f"{slug}-{status}.md", content)
