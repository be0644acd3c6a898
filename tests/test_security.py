from __future__ import annotations

import os
from pathlib import Path

import pytest

from plannotator.errors import ExtensionNotAllowedError, PathTraversalError
from plannotator.security import (
    is_allowed_image_extension,
    is_contained,
    sanitize_filename,
    validate_image_path,
    validate_path,
)


def test_validate_path_accepts_base_and_children(tmp_path: Path) -> None:
    base = tmp_path / "a" / "b"
    base.mkdir(parents=True)

    assert validate_path(base, [base]) == base.resolve()
    assert validate_path(base / "doc.md", [base]) == (base / "doc.md").resolve()
    assert validate_path(base / "x" / "y" / "z.md", [base]) == (base / "x" / "y" / "z.md").resolve()


def test_validate_path_rejects_sibling_with_shared_prefix(tmp_path: Path) -> None:
    base = tmp_path / "a" / "b"
    base.mkdir(parents=True)

    with pytest.raises(PathTraversalError):
        validate_path(tmp_path / "a" / "bc", [base])
    with pytest.raises(PathTraversalError):
        validate_path(str(base) + "foo/file.md", [base])


def test_validate_path_rejects_dotdot_escape(tmp_path: Path) -> None:
    base = tmp_path / "root"
    base.mkdir()

    with pytest.raises(PathTraversalError):
        validate_path(str(base / ".." / "outside.md"), [base])


def test_validate_path_any_of_several_bases(tmp_path: Path) -> None:
    one = tmp_path / "one"
    two = tmp_path / "two"
    one.mkdir()
    two.mkdir()

    assert validate_path(two / "f.png", [one, two]) == (two / "f.png").resolve()
    assert not is_contained(tmp_path / "three" / "f.png", [one, two])


def test_validate_path_resolves_symlink_escape(tmp_path: Path) -> None:
    base = tmp_path / "base"
    outside = tmp_path / "outside"
    base.mkdir()
    outside.mkdir()
    (outside / "secret.md").write_text("s", encoding="utf-8")
    try:
        os.symlink(outside, base / "link")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")

    with pytest.raises(PathTraversalError):
        validate_path(base / "link" / "secret.md", [base])


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("photo.png", "photo.png"),
        ("../../etc/passwd", "etcpasswd"),
        ("a\\b/c.png", "abc.png"),
        ('we<ir>d:"na|me?*.png', "weirdname.png"),
        ("  .hidden.png. ", "hidden.png"),
        ("tab\there\x00.png", "tabhere.png"),
        ("", "file"),
        ("...", "file"),
        ("/", "file"),
    ],
)
def test_sanitize_filename(raw: str, expected: str) -> None:
    assert sanitize_filename(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [".../...//..x", "a/./.b", ". . .", "x..\\..y", "..\x01..png", "name.  .", "ok.png"],
)
def test_sanitize_filename_is_idempotent_and_safe(raw: str) -> None:
    once = sanitize_filename(raw)
    assert sanitize_filename(once) == once
    assert "/" not in once
    assert "\\" not in once
    assert ".." not in once
    assert once


@pytest.mark.parametrize(
    "name, allowed",
    [
        ("a.png", True),
        ("a.JPG", True),
        ("a.jpeg", True),
        ("a.gif", True),
        ("a.webp", True),
        ("a.svg", True),
        ("a.bmp", True),
        ("a.ico", True),
        ("a.exe", False),
        ("a.png.exe", False),
        ("png", False),
        ("a", False),
    ],
)
def test_is_allowed_image_extension(name: str, allowed: bool) -> None:
    assert is_allowed_image_extension(name) is allowed


def test_validate_image_path_checks_extension_after_containment(tmp_path: Path) -> None:
    assert validate_image_path(tmp_path / "ok.PNG", [tmp_path]) == (tmp_path / "ok.PNG").resolve()

    with pytest.raises(ExtensionNotAllowedError):
        validate_image_path(tmp_path / "script.sh", [tmp_path])

    with pytest.raises(PathTraversalError):
        validate_image_path(tmp_path.parent / "elsewhere.png", [tmp_path])
