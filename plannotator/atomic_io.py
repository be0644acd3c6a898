# -*- coding: utf-8 -*-
"""
Atomic file writes (write-to-temp-then-rename).

Each write goes to a uniquely named temp file in the SAME directory as the
target (same filesystem, so os.replace is atomic), then is renamed into place.
Readers see either the previous file or the complete new one, never a
partial write.

Hard rules:
- Temp files are created exclusively and owned by a single writer.
- On failure the temp file is removed best-effort; the original error is
  re-raised and cleanup errors are only logged.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

Content = Union[str, bytes]

DEFAULT_FILE_MODE = 0o644


def _temp_path_for(target: Path) -> Path:
    return target.parent / f".tmp-{uuid.uuid4().hex}"


def _encode(content: Content) -> bytes:
    if isinstance(content, bytes):
        return content
    return (content or "").encode("utf-8")


def _write_temp(tmp: Path, data: bytes, mode: int) -> None:
    fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    # os.open honours umask; pin the requested mode explicitly
    os.chmod(tmp, mode)


def _discard_temp(tmp: Path) -> None:
    try:
        if tmp.exists():
            tmp.unlink()
    except OSError as e:
        print(f"[ATOMIC] temp cleanup failed for {tmp}: {e!r}", flush=True)


def atomic_write(target_path: Union[str, Path], content: Content, *, mode: Optional[int] = None) -> Path:
    """
    Write content (str as UTF-8, or bytes) to target_path atomically.

    Returns the target path.
    """
    target = Path(target_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    tmp = _temp_path_for(target)
    try:
        _write_temp(tmp, _encode(content), DEFAULT_FILE_MODE if mode is None else mode)
        os.replace(tmp, target)
    except BaseException:
        _discard_temp(tmp)
        raise
    return target


def atomic_write_multiple(writes: Sequence[Tuple[Union[str, Path], Content]]) -> List[Path]:
    """
    Write several files: phase 1 writes every temp file, phase 2 renames.

    Phase 1 failure removes every temp written so far and nothing is renamed.
    Phase 2 is NOT rolled back: if rename k fails, renames 0..k-1 stay
    committed and only the remaining temps are removed.
    """
    temps: List[Path] = []
    results: List[Path] = []

    try:
        for target_path, content in writes:
            target = Path(target_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = _temp_path_for(target)
            temps.append(tmp)
            _write_temp(tmp, _encode(content), DEFAULT_FILE_MODE)

        for tmp, (target_path, _) in zip(temps, writes):
            target = Path(target_path)
            os.replace(tmp, target)
            results.append(target)
    except BaseException:
        # renamed temps no longer exist; _discard_temp skips them
        for tmp in temps:
            _discard_temp(tmp)
        raise

    return results
