# -*- coding: utf-8 -*-
"""
Plannotator config primitives (pure constants + env-derived settings).

Hard rules:
- This module must NOT import server.py or http_api.py (no circular imports).
- Keep it stdlib-only.
- Environment is read once, in load_config(). Handlers receive a ReviewConfig.

Environment variables:
- PLANNOTATOR_REMOTE      ("1" / "true" for remote/devcontainer mode)
- PLANNOTATOR_PORT        (fixed port; default: random locally, 19432 remote)
- PLANNOTATOR_PLAN_DIR    (plan storage dir; default: ~/.plannotator/plans)
- PLANNOTATOR_UPLOAD_DIR  (image upload dir; default: <tmp>/plannotator)
- PLANNOTATOR_UI_FILE     (UI shell HTML served for unmatched routes)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp", ".ico"}

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

MAX_BIND_RETRIES = 5
BIND_RETRY_DELAY_S = 0.5

DEFAULT_REMOTE_PORT = 19432

DEFAULT_PLAN_DIR = Path("~") / ".plannotator" / "plans"

PORT_ENV_VAR = "PLANNOTATOR_PORT"

APPROVED_FEEDBACK = "LGTM - no changes needed"
NO_CHANGES_DIFF = "No changes detected."
REVIEW_COMMAND = "/plannotator-doc"


def mime_for_image_suffix(suffix: str) -> str:
    s = (suffix or "").lower()
    if s == ".png":
        return "image/png"
    if s in (".jpg", ".jpeg"):
        return "image/jpeg"
    if s == ".webp":
        return "image/webp"
    if s == ".gif":
        return "image/gif"
    if s == ".bmp":
        return "image/bmp"
    if s == ".svg":
        return "image/svg+xml"
    if s == ".ico":
        return "image/x-icon"
    return "application/octet-stream"


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def is_remote_session(environ: Mapping[str, str]) -> bool:
    if _truthy(environ.get("PLANNOTATOR_REMOTE")):
        return True
    # SSH sessions can't reach a browser on this machine
    return bool((environ.get("SSH_CONNECTION") or environ.get("SSH_TTY") or "").strip())


def server_port(environ: Mapping[str, str], *, is_remote: bool) -> int:
    raw = (environ.get(PORT_ENV_VAR) or "").strip()
    if raw:
        try:
            port = int(raw)
        except ValueError:
            port = -1
        if 0 <= port <= 65535:
            return port
        print(f"[CONFIG] ignoring invalid {PORT_ENV_VAR}={raw!r}", flush=True)
    return DEFAULT_REMOTE_PORT if is_remote else 0


@dataclass(frozen=True)
class ReviewConfig:
    port: int = 0
    host: str = "127.0.0.1"
    is_remote: bool = False
    home_dir: Path = Path("~").expanduser()
    upload_dir: Path = Path(tempfile.gettempdir()) / "plannotator"
    plan_dir: Optional[Path] = None
    ui_file: Optional[Path] = None
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    max_retries: int = MAX_BIND_RETRIES
    retry_delay_s: float = BIND_RETRY_DELAY_S
    review_command: str = REVIEW_COMMAND


def load_config(environ: Optional[Mapping[str, str]] = None) -> ReviewConfig:
    """
    Resolve a ReviewConfig from the process environment (or a given mapping).
    """
    env = os.environ if environ is None else environ

    remote = is_remote_session(env)

    plan_dir_raw = (env.get("PLANNOTATOR_PLAN_DIR") or "").strip()
    upload_dir_raw = (env.get("PLANNOTATOR_UPLOAD_DIR") or "").strip()
    ui_file_raw = (env.get("PLANNOTATOR_UI_FILE") or "").strip()

    return ReviewConfig(
        port=server_port(env, is_remote=remote),
        host="0.0.0.0" if remote else "127.0.0.1",
        is_remote=remote,
        home_dir=Path("~").expanduser().resolve(),
        upload_dir=(
            Path(upload_dir_raw).expanduser().resolve()
            if upload_dir_raw
            else Path(tempfile.gettempdir()) / "plannotator"
        ),
        plan_dir=Path(plan_dir_raw).expanduser() if plan_dir_raw else None,
        ui_file=Path(ui_file_raw).expanduser().resolve() if ui_file_raw else None,
    )
