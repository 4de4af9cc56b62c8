"""Metadata extractors for Folio.

Each extractor handles a single kind of metadata and returns a dictionary
that is merged into the document metadata.

Key classes:
- FrontmatterExtractor: Splits the YAML front matter block from the body.
- TitleExtractor: Extracts the title from the first level-1 heading.
- DescriptionExtractor: Extracts a short description from the first paragraph.
- CompositeMetadataExtractor: Runs several extractors and merges their results.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Any

import yaml

from .utils import titleize

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\n(.*?\n)?(?:---|\.\.\.)[ \t]*(?:\n|\Z)", re.DOTALL)
FENCE_RE = re.compile(r"^\s*(```|~~~)")


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str, str | None]:
    """Extract YAML front matter from content.

    Parsing is best-effort: a malformed block yields empty metadata and an
    error description instead of raising.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter dict, remaining content, error message or None).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text, None
    body = text[match.end() :]
    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as exc:
        return {}, body, f"invalid YAML front matter: {exc}"
    if data is None:
        return {}, body, None
    if not isinstance(data, dict):
        return {}, body, "front matter must be a mapping"
    return data, body, None


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first prose paragraph from Markdown text.

    Skips headings, code fences, images and admonition markers, strips HTML
    tags, collapses whitespace and truncates to the specified limit.

    Args:
        text: Markdown content to extract from.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph, truncated to limit characters.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "~~~", "---", "!!!", "???", "<", "|", "    ")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"\[([^\]]*)\]\([^)]*\)", r"\1", para)
        collapsed = " ".join(para.split())
        return collapsed[:limit]
    return ""


class FrontmatterExtractor:
    """Extracts YAML front matter from content.

    Parses YAML front matter at the beginning of the file
    (between --- markers).
    """

    def extract(self, content: str, path: PurePosixPath) -> dict[str, Any]:
        """Extract front matter from content.

        Args:
            content: Source content with potential front matter.
            path: Docs-relative path of the document (unused).

        Returns:
            Dictionary with 'frontmatter', 'body' and 'frontmatter_error' keys.
        """
        frontmatter, body, error = extract_frontmatter(content)
        return {"frontmatter": frontmatter, "body": body, "frontmatter_error": error}


class TitleExtractor:
    """Extracts title from content or filename.

    Looks for a level-1 heading (# Title) outside code fences,
    falling back to titleizing the filename.
    """

    def extract(self, content: str, path: PurePosixPath) -> dict[str, Any]:
        in_fence = False
        for line in content.splitlines():
            if FENCE_RE.match(line):
                in_fence = not in_fence
                continue
            stripped = line.strip()
            if not in_fence and stripped.startswith("# "):
                title = stripped[2:].strip().rstrip("#").strip()
                title = re.sub(r"\s*\{[^}]*\}$", "", title)
                if title:
                    return {"title": title}
        return {"title": titleize(path.name)}


class DescriptionExtractor:
    """Extracts a description from the first paragraph of the body."""

    def extract(self, content: str, path: PurePosixPath) -> dict[str, Any]:
        return {"description": first_paragraph(content)}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    The front matter extractor runs first; later extractors receive the
    body without the front matter block. Later results override earlier
    ones.
    """

    def __init__(self, extractors: list | None = None):
        """Initialize with a list of extractors.

        Args:
            extractors: Extractors run on the body after front matter is split.
                       If None, uses the title and description extractors.
        """
        self._frontmatter = FrontmatterExtractor()
        if extractors is None:
            self._extractors = [TitleExtractor(), DescriptionExtractor()]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(self, content: str, path: PurePosixPath) -> dict[str, Any]:
        """Extract all metadata from content.

        Args:
            content: Source content.
            path: Docs-relative path of the document.

        Returns:
            Dictionary with all extracted metadata.
        """
        result = self._frontmatter.extract(content, path)
        for extractor in self._extractors:
            result.update(extractor.extract(result["body"], path))
        return result


# Default composite extractor instance
default_metadata_extractor = CompositeMetadataExtractor()
