from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from plannotator.errors import AmbiguousFilenameError, DocumentNotFoundError, PathTraversalError
from plannotator.path_engine import find_files_named, load_linked_document, resolve_linked_document


def _write(path: Path, text: str = "# doc\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    _write(root / "docs" / "plan.md", "# Plan\n")
    _write(root / "docs" / "sibling.md", "sibling\n")
    _write(root / "README.md", "readme\n")
    _write(root / "a" / "x.md", "ax\n")
    _write(root / "b" / "x.md", "bx\n")
    _write(root / "deep" / "nested" / "unique.md", "unique\n")
    _write(root / ".git" / "unique-hidden.md", "hidden\n")
    return root


def _resolve(requested: str, project: Path) -> Path:
    return asyncio.run(resolve_linked_document(requested, project / "docs", project))


def test_relative_to_document_directory(project: Path) -> None:
    assert _resolve("sibling.md", project) == (project / "docs" / "sibling.md").resolve()


def test_relative_to_project_root(project: Path) -> None:
    assert _resolve("a/x.md", project) == (project / "a" / "x.md").resolve()
    assert _resolve("README.md", project) == (project / "README.md").resolve()


def test_absolute_path_inside_project(project: Path) -> None:
    target = (project / "b" / "x.md").resolve()
    assert _resolve(str(target), project) == target


def test_bare_filename_single_match(project: Path) -> None:
    assert _resolve("unique.md", project) == (project / "deep" / "nested" / "unique.md").resolve()


def test_bare_filename_ambiguous_lists_relative_paths(project: Path) -> None:
    with pytest.raises(AmbiguousFilenameError) as ei:
        _resolve("x.md", project)

    assert ei.value.matches == ["a/x.md", "b/x.md"]
    assert "found 2 matches" in str(ei.value)
    assert "a/x.md" in str(ei.value)
    assert "b/x.md" in str(ei.value)


def test_bare_filename_search_skips_hidden_dirs(project: Path) -> None:
    with pytest.raises(DocumentNotFoundError):
        _resolve("unique-hidden.md", project)


def test_missing_file_is_not_found(project: Path) -> None:
    with pytest.raises(DocumentNotFoundError):
        _resolve("nope.md", project)
    with pytest.raises(DocumentNotFoundError):
        _resolve("docs/nope.md", project)


def test_traversal_outside_project_is_blocked(project: Path, tmp_path: Path) -> None:
    _write(tmp_path / "outside.md", "secret\n")

    with pytest.raises(PathTraversalError):
        _resolve("../../outside.md", project)
    with pytest.raises(PathTraversalError):
        _resolve(str(tmp_path / "outside.md"), project)


def test_traversal_blocked_even_when_missing(project: Path, tmp_path: Path) -> None:
    with pytest.raises(PathTraversalError):
        _resolve(str(tmp_path / "does-not-exist.md"), project)


def test_load_linked_document_is_read_only(project: Path) -> None:
    doc = asyncio.run(load_linked_document("sibling.md", project / "docs", project))
    assert doc.markdown == "sibling\n"
    assert doc.read_only is True


def test_find_files_named_matches_exact_segment(project: Path) -> None:
    _write(project / "c" / "prefix-x.md")
    found = find_files_named(project, "x.md")
    assert [p.relative_to(project).as_posix() for p in found] == ["a/x.md", "b/x.md"]
