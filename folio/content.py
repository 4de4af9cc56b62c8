"""Content loading for Folio.

This module discovers the Markdown documents of a site and turns each one
into an immutable Document with its metadata. Loading is purely local and
deterministic: files are visited in sorted order and nothing depends on
timestamps.

Key classes:
- Document: One Markdown source with title, body and metadata.
- DocumentMeta: Front matter derived metadata with safe defaults.
- PageFailure: A document that was skipped, with the reason.
- ContentTree: Result of a load: documents, failures and static files.
- ContentLoader: Scans a docs directory and builds the ContentTree.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any

from .errors import ContentError
from .extractors import CompositeMetadataExtractor, default_metadata_extractor
from .utils import is_hidden, is_markdown

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentMeta:
    """Metadata of a document.

    Attributes:
        title: Title from front matter, or None.
        icon: Optional icon identifier shown next to the title.
        description: Short description for meta tags.
        hide: Page parts hidden by the theme ("navigation", "toc").
        template: Alternate theme template for this page.
        extra: Raw front matter mapping.
    """

    title: str | None = None
    icon: str | None = None
    description: str = ""
    hide: frozenset[str] = frozenset()
    template: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def hide_navigation(self) -> bool:
        return "navigation" in self.hide

    @property
    def hide_toc(self) -> bool:
        return "toc" in self.hide

    @classmethod
    def from_frontmatter(cls, data: Mapping[str, Any], description: str = "") -> DocumentMeta:
        """Build metadata from a front matter mapping, ignoring ill-typed values."""
        hide = data.get("hide") or ()
        if isinstance(hide, str):
            hide = (hide,)
        if not isinstance(hide, (list, tuple)):
            hide = ()
        return cls(
            title=_optional_str(data.get("title")),
            icon=_optional_str(data.get("icon")),
            description=_optional_str(data.get("description")) or description,
            hide=frozenset(str(item) for item in hide),
            template=_optional_str(data.get("template")),
            extra=MappingProxyType(dict(data)),
        )


def _optional_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Document:
    """A Markdown source document.

    Attributes:
        path: Posix path relative to the docs directory.
        title: Front matter title, first heading or filename-derived title.
        body: Markdown text without the front matter block.
        meta: Document metadata.
        source_path: Absolute path of the source file.
    """

    path: str
    title: str
    body: str
    meta: DocumentMeta
    source_path: Path


@dataclass(frozen=True)
class PageFailure:
    """A document that could not be loaded or rendered."""

    path: str
    reason: str


@dataclass
class ContentTree:
    """Result of loading a docs directory.

    Attributes:
        docs_dir: The scanned directory.
        documents: Loaded documents keyed by docs-relative path, in sorted order.
        failures: Documents that could not be loaded.
        static_files: Non-Markdown files, relative to docs_dir, to copy verbatim.
    """

    docs_dir: Path
    documents: dict[str, Document] = field(default_factory=dict)
    failures: list[PageFailure] = field(default_factory=list)
    static_files: list[str] = field(default_factory=list)

    @property
    def known_paths(self) -> frozenset[str]:
        """Paths of every Markdown file found, including failed ones."""
        return frozenset(self.documents) | {f.path for f in self.failures}


class ContentLoader:
    """Loads Markdown documents from a docs directory.

    Attributes:
        docs_dir: Directory containing the site content.
        exclude: Directories (absolute) skipped while scanning.
    """

    def __init__(
        self,
        docs_dir: Path,
        exclude: list[Path] | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        """Initialize the content loader.

        Args:
            docs_dir: Path to the docs directory.
            exclude: Optional directories to skip (e.g. the output directory).
            metadata_extractor: Optional custom metadata extractor.
        """
        self.docs_dir = docs_dir
        self.exclude = [p.resolve() for p in exclude or []]
        self.metadata_extractor = metadata_extractor or default_metadata_extractor

    def iter_files(self) -> list[Path]:
        """Return every non-hidden file below the docs directory, sorted."""
        files: list[Path] = []
        for path in sorted(self.docs_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.docs_dir)
            if is_hidden(rel) or self._is_excluded(path):
                continue
            files.append(path)
        return files

    def _is_excluded(self, path: Path) -> bool:
        resolved = path.resolve()
        for excluded in self.exclude:
            try:
                resolved.relative_to(excluded)
                return True
            except ValueError:
                continue
        return False

    def load(self) -> ContentTree:
        """Load every document of the docs directory.

        Undecodable documents are recorded as failures; they never abort
        the load.

        Returns:
            The ContentTree for this directory.
        """
        tree = ContentTree(docs_dir=self.docs_dir)
        for path in self.iter_files():
            rel = path.relative_to(self.docs_dir).as_posix()
            if not is_markdown(path):
                tree.static_files.append(rel)
                continue
            try:
                tree.documents[rel] = self.load_document(path)
            except ContentError as exc:
                logger.warning("Skipping %s: %s", rel, exc.message)
                tree.failures.append(PageFailure(rel, exc.message))
        return tree

    def load_document(self, path: Path) -> Document:
        """Build a Document from a source file.

        Args:
            path: Absolute path of a Markdown file inside the docs directory.

        Returns:
            The loaded Document.

        Raises:
            ContentError: If the file cannot be read as UTF-8 text.
        """
        rel = PurePosixPath(path.relative_to(self.docs_dir).as_posix())
        try:
            raw = path.read_bytes().decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ContentError(rel, f"not valid UTF-8 ({exc.reason})", exc) from exc
        except OSError as exc:
            raise ContentError(rel, f"cannot read file ({exc.strerror})", exc) from exc
        raw = raw.replace("\r\n", "\n").replace("\r", "\n")

        metadata = self.metadata_extractor.extract(raw, rel)
        error = metadata.get("frontmatter_error")
        if error:
            logger.warning("%s: %s; using default metadata", rel, error)
        meta = DocumentMeta.from_frontmatter(
            metadata.get("frontmatter", {}), metadata.get("description", "")
        )
        return Document(
            path=str(rel),
            title=meta.title or metadata["title"],
            body=metadata.get("body", raw),
            meta=meta,
            source_path=path,
        )
