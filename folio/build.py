"""Site building functionality for Folio.

This module contains the core logic for building a static site: it loads
the configuration and the documents, resolves the navigation, renders every
document on a worker pool, then writes pages, assets and indexes.

Nothing is written until every page has been rendered, so a fatal error
(configuration or theme) leaves an existing output directory untouched.

Key definitions:
- RenderedPage: One rendered HTML page.
- BuildReport: Outcome of a build.
- build_site: Main function to build the entire site.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from .assets import AssetPipeline
from .config import SiteConfig, load_config
from .content import ContentLoader, Document, PageFailure
from .errors import ConfigurationError, ContentError
from .extensions import build_pipeline
from .indexes import IndexRegistry, create_default_index_registry
from .navigation import Navigation, auto_nav, validate_nav
from .plugins import PluginSet, build_plugins
from .renderers import Heading, MarkdownRenderer
from .templates import PageContext, ThemeEngine
from .utils import ensure_clean_dir, is_within, output_path_for, write_text_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedPage:
    """A rendered page ready to be written.

    Attributes:
        document_path: Docs-relative path of the source document.
        output_path: Output-relative path of the HTML file.
        title: Page title.
        html: Complete HTML document.
        content: Rendered body fragment, used by the search index.
        toc: Headings of the page.
    """

    document_path: str
    output_path: str
    title: str
    html: str
    content: str = ""
    toc: tuple[Heading, ...] = ()


@dataclass
class BuildReport:
    """Result of a site build.

    Attributes:
        output_dir: Directory where the site was built.
        pages: Written pages, in navigation order followed by orphans.
        skipped: Documents that were not written, with the reason.
        assets: Output-relative paths of the copied assets.
        indexes: Output-relative paths of the written indexes.
        orphans: Documents rendered but not reachable from the navigation.
    """

    output_dir: Path
    pages: list[RenderedPage] = field(default_factory=list)
    skipped: list[PageFailure] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)
    indexes: list[str] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [page.output_path for page in self.pages]

    @property
    def ok(self) -> bool:
        return not self.skipped


class SiteBuilder:
    """Renders the documents of one site.

    Every collaborator is created before rendering starts and only read
    afterwards, so a single instance is shared by all workers.

    Attributes:
        config: Site configuration.
        navigation: Resolved navigation.
        engine: Theme engine.
        renderer: Markdown renderer.
        plugins: Build plugins.
    """

    def __init__(
        self,
        config: SiteConfig,
        navigation: Navigation,
        engine: ThemeEngine,
        renderer: MarkdownRenderer,
        plugins: PluginSet,
    ):
        self.config = config
        self.navigation = navigation
        self.engine = engine
        self.renderer = renderer
        self.plugins = plugins

    def render(self, document: Document) -> RenderedPage:
        """Render one document into a complete page.

        Raises:
            ContentError: If the Markdown body cannot be rendered.
            RenderError: If the theme fails.
        """
        body = self.renderer.render(document)
        page = PageContext(
            document=document,
            body=body,
            nav=self.navigation.page_nav(document.path),
        )
        html = self.engine.render_page(page)
        html = self.plugins.on_page_html(html, document.path)
        return RenderedPage(
            document_path=document.path,
            output_path=output_path_for(document.path),
            title=document.title,
            html=html,
            content=body.html,
            toc=body.toc,
        )

    def render_all(
        self, documents: list[Document], workers: int | None = None
    ) -> tuple[dict[str, RenderedPage], list[PageFailure]]:
        """Render documents concurrently.

        A ContentError skips the page; any other error cancels the pending
        work and propagates.

        Returns:
            Rendered pages keyed by document path, and the skipped pages.
        """
        rendered: dict[str, RenderedPage] = {}
        failures: list[PageFailure] = []
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.render, doc): doc for doc in documents}
            try:
                for future in as_completed(futures):
                    document = futures[future]
                    try:
                        rendered[document.path] = future.result()
                    except ContentError as exc:
                        logger.warning("Skipping %s: %s", document.path, exc.message)
                        failures.append(PageFailure(document.path, exc.message))
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        failures.sort(key=lambda f: f.path)
        return rendered, failures


def _check_output_dir(config: SiteConfig, output_dir: Path) -> None:
    """Reject output directories that would overwrite the sources."""
    if output_dir.resolve() == config.root.resolve():
        raise ConfigurationError("output directory must not be the input root", path=output_dir)
    if is_within(output_dir, config.docs_dir) and config.docs_dir.resolve() != config.root.resolve():
        raise ConfigurationError(
            "output directory must not be inside the docs directory", path=output_dir
        )
    if is_within(config.root, output_dir):
        raise ConfigurationError(
            "output directory must not contain the input root", path=output_dir
        )


def build_site(
    input_root: Path,
    output_dir: Path | None = None,
    workers: int | None = None,
    index_registry: IndexRegistry | None = None,
) -> BuildReport:
    """Build the entire static site.

    Args:
        input_root: Directory containing the configuration file.
        output_dir: Output directory; defaults to the configured ``site_dir``.
        workers: Maximum number of rendering threads.
        index_registry: Optional custom index generators.

    Returns:
        BuildReport describing the written pages and the skipped ones.

    Raises:
        ConfigurationError: If the configuration or navigation is invalid.
        RenderError: If the theme fails to render a page.
    """
    config = load_config(input_root)
    output_dir = (output_dir or config.site_dir).resolve()
    _check_output_dir(config, output_dir)

    # Theme overrides and static dirs may live under a root docs_dir
    exclude = [output_dir, config.site_dir, config.config_file]
    exclude.extend(config.root / d for d in config.static_dirs)
    if config.theme.custom_dir is not None:
        exclude.append(config.theme.custom_dir)
    tree = ContentLoader(config.docs_dir, exclude=exclude).load()
    entries = config.nav if config.nav is not None else auto_nav(sorted(tree.documents))
    validate_nav(entries, tree.known_paths)

    titles = {path: doc.title for path, doc in tree.documents.items()}
    navigation = Navigation(entries, titles)
    engine = ThemeEngine(config)
    assets = AssetPipeline(
        config, output_dir, tree.static_files, theme_dirs=engine.asset_dirs()
    )
    assets.validate()
    builder = SiteBuilder(
        config=config,
        navigation=navigation,
        engine=engine,
        renderer=MarkdownRenderer(build_pipeline(config.markdown_extensions), config.root),
        plugins=build_plugins(config.plugins),
    )

    documents = list(tree.documents.values())
    logger.info("Rendering %d documents", len(documents))
    rendered, failures = builder.render_all(documents, workers=workers)

    ordered = [rendered[p] for p in navigation.reading_order if p in rendered]
    orphans = sorted(p for p in rendered if not navigation.is_reachable(p))
    for path in orphans:
        logger.info("%s is not included in the navigation", path)
    ordered.extend(rendered[p] for p in orphans)

    ensure_clean_dir(output_dir)
    for page in ordered:
        write_text_atomic(output_dir / page.output_path, page.html)

    report = BuildReport(
        output_dir=output_dir,
        pages=ordered,
        skipped=sorted([*tree.failures, *failures], key=lambda f: f.path),
        orphans=orphans,
    )
    report.assets = assets.run()
    registry = index_registry or create_default_index_registry()
    report.indexes = registry.generate_all(output_dir, ordered, config)
    return report
