# -*- coding: utf-8 -*-
"""
Best-effort git repository label for the UI header.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Dict, Optional

_REMOTE_RE = re.compile(r"[:/]([^/:]+)/([^/]+?)(?:\.git)?/?$")


def _git(cwd: Path, *args: str) -> str:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return ""
    if proc.returncode != 0:
        return ""
    return (proc.stdout or "").strip()


def parse_remote_display(url: str) -> str:
    """
    "owner/repo" from an https or scp-style remote URL, or "".
    """
    m = _REMOTE_RE.search((url or "").strip())
    if not m:
        return ""
    return f"{m.group(1)}/{m.group(2)}"


def get_repo_info(cwd: Path) -> Optional[Dict[str, str]]:
    top = _git(cwd, "rev-parse", "--show-toplevel")
    if not top:
        return None

    display = parse_remote_display(_git(cwd, "config", "--get", "remote.origin.url")) or Path(top).name
    info = {"display": display}

    branch = _git(cwd, "rev-parse", "--abbrev-ref", "HEAD")
    if branch and branch != "HEAD":
        info["branch"] = branch
    return info
