"""Utility functions for Quill.

This module contains filesystem helpers shared by the build and the dev server.

Key functions:
    walk_files: Yield regular files under a root in lexical depth-first order.
    is_ignored: Check whether a source file is editor or VCS noise.
    relative_posix: Slash-separated path of a file relative to a root.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterator
from pathlib import Path


def walk_files(root: Path) -> Iterator[Path]:
    """Yield every regular file under root in lexical depth-first order.

    Entries of each directory are visited sorted by name, descending into a
    subdirectory at the position its name sorts to. The order depends only on
    the names in the tree, never on the filesystem's enumeration order.

    Args:
        root: Directory to walk.

    Yields:
        Paths of regular files.

    Raises:
        FileNotFoundError: If root does not exist.
    """
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            yield from walk_files(path)
        elif entry.is_file():
            yield path


def is_ignored(path: Path) -> bool:
    """Check if a source file should be skipped by the build.

    Ignores Vim-style backups (trailing ~), anything that looks like a
    .gitignore file and macOS .DS_Store files.

    Args:
        path: Path to check.

    Returns:
        True if the file is not site content.
    """
    name = path.name
    if name.endswith("~"):
        return True
    if name == ".DS_Store":
        return True
    return ".gitignore" in path.as_posix()


def relative_posix(path: Path, root: Path) -> str:
    """Return path relative to root with forward slashes.

    Args:
        path: File below root.
        root: Base directory.

    Returns:
        Slash-separated relative path, e.g. "css/main.css".
    """
    return path.relative_to(root).as_posix()


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, it is removed entirely and then recreated.
    Errors while removing propagate to the caller.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
