"""Utility functions for Folio.

This module contains small helpers used throughout the Folio codebase:
string processing, path handling and safe file output.

Key functions:
    titleize: Convert filenames to human-readable titles.
    heading_id: Convert heading text to an anchor id.
    normalize_doc_path: Normalize a docs-relative path from configuration.
    output_path_for: Map a document path to its HTML output path.
    relative_url: Compute a link from one output file to another.
    is_markdown: Check if a path is a Markdown file.
    is_hidden: Check if a relative path has hidden components.
    ensure_clean_dir: Ensure a directory exists and is empty.
    atomic_write: Write a file through a temporary file and rename.
"""

from __future__ import annotations

import os
import posixpath
import re
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import TextIO


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Replaces hyphens and underscores with spaces and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("getting-started.md")
        'Getting Started'

        >>> titleize("api_reference")
        'Api Reference'
    """
    base = PurePosixPath(filename).stem
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text)
    slug = slug.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


def normalize_doc_path(path: str) -> str:
    """Normalize a docs-relative path as written in configuration.

    Strips leading ``./`` and ``/`` and collapses redundant separators.

    Examples:
        >>> normalize_doc_path("./guide//intro.md")
        'guide/intro.md'
    """
    cleaned = path.strip().replace("\\", "/")
    cleaned = posixpath.normpath(cleaned.lstrip("/"))
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return "" if cleaned == "." else cleaned


def output_path_for(doc_path: str) -> str:
    """Map a document path to the path of its rendered HTML file.

    Examples:
        >>> output_path_for("guide/intro.md")
        'guide/intro.html'
    """
    return str(PurePosixPath(doc_path).with_suffix(".html"))


def relative_url(from_output: str, to_output: str) -> str:
    """Compute a relative link between two output files.

    Args:
        from_output: Output path of the page containing the link.
        to_output: Output path of the link target.

    Returns:
        Relative URL from the directory of ``from_output`` to ``to_output``.

    Examples:
        >>> relative_url("guide/intro.html", "index.html")
        '../index.html'
    """
    start = posixpath.dirname(from_output) or "."
    return posixpath.relpath(to_output, start)


def base_url_for(output_path: str) -> str:
    """Return the relative URL of the site root seen from an output file."""
    start = posixpath.dirname(output_path) or "."
    return posixpath.relpath(".", start)


def is_markdown(path: Path | PurePosixPath) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in (".md", ".markdown")


def is_hidden(rel: Path | PurePosixPath) -> bool:
    """Check if any component of a relative path starts with a dot."""
    return any(part.startswith(".") for part in rel.parts)


def is_within(path: Path, parent: Path) -> bool:
    """Check whether ``path`` equals or is located below ``parent``."""
    try:
        path.resolve().relative_to(parent.resolve())
    except ValueError:
        return False
    return True


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Iterator[TextIO]:
    """Open a temporary file next to ``path`` and move it into place on success.

    The destination is never left partially written: on any error the
    temporary file is removed and the exception propagates.

    Args:
        path: Destination file path. Parent directories are created.
        encoding: Text encoding of the written file.

    Yields:
        Writable text handle.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            yield handle
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` using :func:`atomic_write`."""
    with atomic_write(path) as handle:
        handle.write(text)
