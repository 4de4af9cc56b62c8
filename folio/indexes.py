"""Navigation-derived indexes for Folio.

Indexes are written after every page has been rendered, from the ordered
list of rendered pages. They contain no timestamps so that rebuilding an
unchanged site produces identical files.

Classes:
    IndexGenerator: Base class for index generators.
    SitemapGenerator: Generates sitemap.xml files.
    SearchIndexGenerator: Generates the client-side search index.
    IndexRegistry: Registry for managing index generators.

Functions:
    create_default_index_registry: Create a registry with default generators.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from .html_utils import escape_html, join_root_url, strip_tags
from .utils import write_text_atomic

if TYPE_CHECKING:
    from .build import RenderedPage
    from .config import SiteConfig


class IndexGenerator(ABC):
    """Abstract base class for index generators.

    Subclasses implement specific index formats. New formats can be added
    by creating new subclasses without modifying existing code.
    """

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output path of this index, relative to the site root."""
        ...

    @abstractmethod
    def generate(self, pages: list[RenderedPage], config: SiteConfig) -> str | None:
        """Generate index content from pages.

        Args:
            pages: Rendered pages in navigation order.
            config: Site configuration.

        Returns:
            Index content, or None if the index is disabled for this site.
        """
        ...

    def write(self, output_dir: Path, pages: list[RenderedPage], config: SiteConfig) -> bool:
        """Generate and write the index to the output directory.

        Returns:
            True if the index was written, False if skipped.
        """
        content = self.generate(pages, config)
        if content is None:
            return False
        write_text_atomic(output_dir / self.filename, content)
        return True


class SitemapGenerator(IndexGenerator):
    """Generates sitemap.xml listing every rendered page.

    URLs are absolute when ``site_url`` is configured and relative to the
    site root otherwise.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: list[RenderedPage], config: SiteConfig) -> str | None:
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in pages:
            loc = join_root_url(config.site_url, page.output_path) if config.site_url else page.output_path
            lines.append(f"  <url><loc>{escape_html(loc)}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class SearchIndexGenerator(IndexGenerator):
    """Generates ``search/search_index.json`` for client-side search.

    The file uses the MkDocs layout: a ``config`` object and one ``docs``
    entry per page and per heading. Only written when the ``search``
    plugin is enabled.
    """

    @property
    def filename(self) -> str:
        return "search/search_index.json"

    def generate(self, pages: list[RenderedPage], config: SiteConfig) -> str | None:
        spec = next((p for p in config.plugins if p.name == "search"), None)
        if spec is None:
            return None
        lang = spec.options.get("lang", ["en"])
        if isinstance(lang, str):
            lang = [lang]
        docs = []
        for page in pages:
            docs.append(
                {
                    "location": page.output_path,
                    "title": page.title,
                    "text": strip_tags(page.content),
                }
            )
            for heading in page.toc:
                docs.append(
                    {
                        "location": f"{page.output_path}#{heading.id}",
                        "title": heading.text,
                        "text": "",
                    }
                )
        index = {
            "config": {
                "lang": list(lang),
                "separator": spec.options.get("separator", r"[\s\-]+"),
            },
            "docs": docs,
        }
        return json.dumps(index, ensure_ascii=False, sort_keys=True) + "\n"


class IndexRegistry:
    """Registry for managing index generators.

    Attributes:
        _generators: List of registered index generators.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._generators: list[IndexGenerator] = []

    def register(self, generator: IndexGenerator) -> None:
        """Register an index generator."""
        self._generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        pages: Iterable[RenderedPage],
        config: SiteConfig,
    ) -> list[str]:
        """Generate all registered indexes.

        Args:
            output_dir: Site output directory.
            pages: Rendered pages in navigation order.
            config: Site configuration.

        Returns:
            Relative paths of the indexes that were written.
        """
        # Convert to list to allow multiple iterations
        pages_list = list(pages)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, pages_list, config):
                generated.append(generator.filename)
        return generated


def create_default_index_registry() -> IndexRegistry:
    """Create a registry with the sitemap and search index generators."""
    registry = IndexRegistry()
    registry.register(SitemapGenerator())
    registry.register(SearchIndexGenerator())
    return registry
