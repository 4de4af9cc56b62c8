"""Markdown rendering for Folio.

This module turns the Markdown body of a Document into an HTML fragment
and its table of contents. Rendering is a pure function of the document
text and the extension pipeline: no file other than configured snippets is
read, and nothing is written.

Key classes:
- Heading: One table of contents entry.
- RenderedBody: Rendered HTML fragment plus its headings.
- MarkdownRenderer: Renders documents through the extension pipeline.
"""

from __future__ import annotations

import functools
import posixpath
from dataclasses import dataclass
from pathlib import Path

import mistune

from .content import Document
from .errors import ContentError
from .extensions import (
    ExtensionPipeline,
    RenderContext,
    RendererOptions,
    strip_placeholders,
)
from .highlighting import highlight_block
from .html_utils import (
    escape_html,
    format_attributes,
    is_external_url,
    split_trailing_attr_list,
    strip_tags,
)
from .utils import heading_id, output_path_for


@dataclass(frozen=True)
class Heading:
    """A heading extracted for the table of contents.

    Attributes:
        id: Anchor id of the heading element.
        text: Plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass(frozen=True)
class RenderedBody:
    """Result of rendering one document body."""

    html: str
    toc: tuple[Heading, ...]


def rewrite_link(url: str) -> str:
    """Rewrite a link to a Markdown document so it targets the HTML output.

    External URLs, anchors and links to other files are returned unchanged.

    Examples:
        >>> rewrite_link("../guide/intro.md#setup")
        '../guide/intro.html#setup'
    """
    if not url or url.startswith("#") or is_external_url(url):
        return url
    path, sep, fragment = url.partition("#")
    if posixpath.splitext(path)[1].lower() not in (".md", ".markdown"):
        return url
    return f"{output_path_for(path)}{sep}{fragment}"


class _DocumentRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors, link rewriting and highlighting.

    Attributes:
        options: Renderer settings from the extension pipeline.
        headings: Headings collected for the table of contents.
        record_toc: When False, headings are anchored but not collected.
    """

    def __init__(self, options: RendererOptions):
        """Initialize the renderer.

        Args:
            options: Renderer settings assembled by the extension pipeline.
        """
        super().__init__(escape=False)
        self.options = options
        self.headings: list[Heading] = []
        self.record_toc = True
        self._heading_id_counts: dict[str, int] = {}
        self._code_blocks = 0

    def _unique_id(self, base_id: str) -> str:
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            return f"{base_id}-{self._heading_id_counts[base_id]}"
        self._heading_id_counts[base_id] = 0
        return base_id

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with a unique id and record it for the TOC.

        Args:
            text: Rendered inline HTML of the heading.
            level: Heading level (1-6).
            **attrs: Additional attributes.

        Returns:
            HTML heading tag with id attribute.
        """
        extra: dict[str, str] = {}
        if self.options.attr_list:
            text, extra = split_trailing_attr_list(text)
            text = text.rstrip()
        explicit_id = extra.pop("id", None)
        anchor = self._unique_id(explicit_id or heading_id(text))
        if self.record_toc and level <= self.options.toc_depth:
            self.headings.append(Heading(id=anchor, text=strip_tags(text), level=level))
        permalink = ""
        if self.options.permalink:
            permalink = (
                f'<a class="headerlink" href="#{escape_html(anchor)}" '
                f'title="{escape_html(self.options.permalink_title)}">'
                f"{escape_html(self.options.permalink)}</a>"
            )
        attributes = format_attributes({"id": anchor, **extra})
        return f"<h{level}{attributes}>{text}{permalink}</h{level}>\n"

    def link(self, text: str, url: str, title: str | None = None) -> str:
        return super().link(text, rewrite_link(url), title)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block as a custom fence, highlighted or plain.

        Args:
            code: The code content.
            info: Info string of the fence (e.g. 'python', 'mermaid').

        Returns:
            HTML string for the block.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang in self.options.custom_fences:
            css_class = escape_html(self.options.custom_fences[lang])
            return f'<pre class="{css_class}"><code>{escape_html(code)}</code></pre>\n'
        self._code_blocks += 1
        if lang and self.options.highlight is not None:
            highlighted = highlight_block(
                code, lang, self.options.highlight, self._code_blocks
            )
            if highlighted is not None:
                return highlighted
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown documents to HTML fragments.

    One instance is shared by all rendering workers; each call builds its
    own parser and renderer so that no state leaks between documents.

    Attributes:
        pipeline: Extension pipeline applied to every document.
        input_root: Root of the site sources, for snippet includes.
    """

    def __init__(self, pipeline: ExtensionPipeline, input_root: Path):
        self.pipeline = pipeline
        self.input_root = input_root

    def render(self, document: Document) -> RenderedBody:
        """Render the body of a document.

        Args:
            document: The document to render.

        Returns:
            The rendered HTML and its table of contents.

        Raises:
            ContentError: If the document cannot be rendered.
        """
        try:
            return self._render(document)
        except ContentError:
            raise
        except Exception as exc:
            raise ContentError(
                document.path, f"markdown rendering failed: {exc}", exc
            ) from exc

    def _render(self, document: Document) -> RenderedBody:
        return self._render_source(document.body, document.path)

    def _render_source(self, text: str, doc_path: str) -> RenderedBody:
        options = self.pipeline.renderer_options
        renderer = _DocumentRenderer(options)
        markdown = mistune.create_markdown(
            renderer=renderer,
            plugins=self.pipeline.plugins(),
            hard_wrap=options.hard_wrap,
        )
        context = RenderContext(doc_path, self.input_root)
        context.convert = functools.partial(self._convert_nested, markdown, renderer, context)

        source = self.pipeline.preprocess(strip_placeholders(text), context)
        html = context.restore(markdown(source))
        html = self.pipeline.postprocess(html, context)
        return RenderedBody(html=html, toc=tuple(renderer.headings))

    def _convert_nested(
        self,
        markdown: mistune.Markdown,
        renderer: _DocumentRenderer,
        context: RenderContext,
        text: str,
    ) -> str:
        # Nested blocks share heading ids with the page but stay out of the TOC
        previous = renderer.record_toc
        renderer.record_toc = False
        try:
            source = self.pipeline.preprocess(text, context, nested=True)
            return context.restore(markdown(source))
        finally:
            renderer.record_toc = previous
