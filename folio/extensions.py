"""Rendering extensions for Folio.

A rendering extension is a named text-transform pass. Passes are applied in
the order the configuration declares them, so the output of a page only
depends on its source and the configuration. Each pass may:

- rewrite the Markdown source before parsing (``preprocess``),
- enable mistune plugins (``plugins``),
- adjust the HTML renderer settings (``configure``),
- rewrite the rendered HTML (``postprocess``).

Extension names follow the Python-Markdown / PyMdown Extensions names used
by existing documentation configurations, so those files load unchanged.
Options are passed through verbatim to each extension.

Key classes:
- RenderContext: Per-document state shared by the passes of one page.
- RendererOptions: Renderer settings assembled from the configured passes.
- RenderExtension: Base class of all passes.
- ExtensionPipeline: The ordered passes of one build.
- ExtensionRegistry: Maps extension names to factories.
"""

from __future__ import annotations

import html as _html
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import emoji

from .errors import ContentError
from .highlighting import HighlightOptions, highlight_inline
from .html_utils import (
    escape_html,
    format_attributes,
    map_text_segments,
    parse_attr_list,
)

logger = logging.getLogger(__name__)

# Placeholders are wrapped in STX/ETX, which never occur in page sources
STX = "\x02"
ETX = "\x03"
_STASH_RE = re.compile(r"<p>\s*(\x02folio:(\d+)\x03)\s*</p>\n?|\x02folio:(\d+)\x03")
FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})")


class RenderContext:
    """State shared by the extension passes while rendering one document.

    Block level passes render their bodies as Markdown and replace the block
    with a placeholder paragraph; the rendered HTML is put back after the
    page has been parsed.

    Attributes:
        document_path: Docs-relative path of the document being rendered.
        input_root: Root of the site sources, used to resolve includes.
        convert: Markdown to HTML conversion for nested blocks.
    """

    def __init__(
        self,
        document_path: str,
        input_root: Path,
        convert: Callable[[str], str] | None = None,
    ):
        self.document_path = document_path
        self.input_root = input_root
        self.convert = convert
        self._stash: list[str] = []

    def render_markdown(self, text: str) -> str:
        if self.convert is None:
            raise RuntimeError("render context is not bound to a renderer")
        return self.convert(text)

    def stash(self, html: str) -> str:
        """Store rendered HTML and return its placeholder token."""
        self._stash.append(html)
        return f"{STX}folio:{len(self._stash) - 1}{ETX}"

    def restore(self, html: str) -> str:
        """Replace placeholder tokens with the stashed HTML."""

        def repl(match: re.Match) -> str:
            index = int(match.group(2) or match.group(3))
            if index >= len(self._stash):
                return match.group(0)
            return self._stash[index] + ("\n" if match.group(1) else "")

        previous = None
        while previous != html:
            previous = html
            html = _STASH_RE.sub(repl, html)
        return html


def strip_placeholders(text: str) -> str:
    """Remove placeholder delimiters from Markdown source."""
    return text.replace(STX, "").replace(ETX, "")


@dataclass
class RendererOptions:
    """HTML renderer settings contributed by the configured extensions.

    Attributes:
        highlight: Pygments settings, or None to leave code unhighlighted.
        custom_fences: Fence names mapped to the CSS class of their ``pre``.
        attr_list: Parse trailing ``{: ...}`` attribute lists on headings.
        permalink: Symbol of heading permalinks, or None.
        permalink_title: Title attribute of heading permalinks.
        toc_depth: Deepest heading level listed in the table of contents.
        hard_wrap: Treat newlines inside paragraphs as line breaks.
    """

    highlight: HighlightOptions | None = None
    custom_fences: dict[str, str] = field(default_factory=dict)
    attr_list: bool = False
    permalink: str | None = None
    permalink_title: str = "Permanent link"
    toc_depth: int = 6
    hard_wrap: bool = False


class RenderExtension:
    """Base class for rendering extensions.

    Subclasses override the hooks they need; the defaults leave the content
    unchanged.

    Attributes:
        name: Configured name of the extension.
        options: Extension specific options from the configuration.
        plugins: Names of mistune plugins the extension enables.
    """

    name = ""
    plugins: tuple[str, ...] = ()
    # Preprocess before every other pass, regardless of configured order
    early = False

    def __init__(self, options: Mapping[str, Any] | None = None):
        self.options = dict(options or {})

    def configure(self, renderer_options: RendererOptions) -> None:
        """Adjust renderer settings before any page is rendered."""

    def preprocess(self, text: str, context: RenderContext) -> str:
        """Rewrite Markdown source before it is parsed."""
        return text

    def postprocess(self, html: str, context: RenderContext) -> str:
        """Rewrite the rendered HTML of the page."""
        return html

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"{type(self).__name__}({self.name!r})"


class MistunePluginExtension(RenderExtension):
    """Enables one or more built-in mistune plugins."""

    def __init__(
        self,
        name: str,
        plugins: tuple[str, ...],
        options: Mapping[str, Any] | None = None,
    ):
        super().__init__(options)
        self.name = name
        self.plugins = plugins


def transform_blocks(
    text: str,
    start_re: re.Pattern,
    handler: Callable[[re.Match, str], str],
    context: RenderContext,
) -> str:
    """Replace indented blocks introduced by ``start_re`` with stashed HTML.

    A block starts at a line matching ``start_re`` (outside fenced code) and
    extends over the following lines that are blank or indented by four
    spaces or a tab. The dedented body is passed to ``handler``.

    Args:
        text: Markdown source.
        start_re: Pattern of the opening line.
        handler: Builds the HTML for a block from the opening match and body.
        context: Render context used to stash the generated HTML.

    Returns:
        Markdown source with each block replaced by a placeholder paragraph.
    """
    lines = text.split("\n")
    out: list[str] = []
    fence: str | None = None
    i = 0
    while i < len(lines):
        line = lines[i]
        fence_match = FENCE_RE.match(line)
        if fence is not None:
            if fence_match and fence_match.group(1)[0] == fence[0] and len(
                fence_match.group(1)
            ) >= len(fence):
                fence = None
            out.append(line)
            i += 1
            continue
        if fence_match:
            fence = fence_match.group(1)
            out.append(line)
            i += 1
            continue
        match = start_re.match(line)
        if not match:
            out.append(line)
            i += 1
            continue
        j = i + 1
        while j < len(lines) and (
            not lines[j].strip() or lines[j].startswith(("    ", "\t"))
        ):
            j += 1
        block = lines[i + 1 : j]
        trailing = 0
        while block and not block[-1].strip():
            block.pop()
            trailing += 1
        body = "\n".join(_dedent(b) for b in block)
        out.extend(["", context.stash(handler(match, body)), ""])
        out.extend([""] * trailing)
        i = j
    return "\n".join(out)


def _dedent(line: str) -> str:
    if line.startswith("\t"):
        return line[1:]
    if line.startswith("    "):
        return line[4:]
    return line.lstrip(" ")


def _block_classes(words: str) -> tuple[str, list[str]]:
    parts = [w.lower() for w in words.split()]
    return parts[0], parts


class AdmonitionExtension(RenderExtension):
    """Renders ``!!! type "Title"`` blocks as admonition boxes.

    The title defaults to the capitalized type; an empty quoted title
    (``!!! note ""``) suppresses the title paragraph.
    """

    name = "admonition"
    START_RE = re.compile(r'^!!!\s*(?P<type>[\w-]+(?:[ \t]+[\w-]+)*)(?:[ \t]+"(?P<title>[^"]*)")?\s*$')

    def preprocess(self, text: str, context: RenderContext) -> str:
        def handler(match: re.Match, body: str) -> str:
            kind, classes = _block_classes(match.group("type"))
            title = match.group("title")
            if title is None:
                title = kind.capitalize()
            parts = [f'<div class="{escape_html(" ".join(["admonition", *classes]))}">']
            if title:
                parts.append(f'<p class="admonition-title">{escape_html(title)}</p>')
            parts.append(context.render_markdown(body).rstrip("\n"))
            parts.append("</div>")
            return "\n".join(parts)

        return transform_blocks(text, self.START_RE, handler, context)


class DetailsExtension(RenderExtension):
    """Renders ``??? type "Summary"`` blocks as collapsible ``details``.

    ``???+`` renders the block expanded.
    """

    name = "pymdownx.details"
    START_RE = re.compile(
        r'^\?\?\?(?P<open>\+)?\s*(?P<type>[\w-]+(?:[ \t]+[\w-]+)*)(?:[ \t]+"(?P<title>[^"]*)")?\s*$'
    )

    def preprocess(self, text: str, context: RenderContext) -> str:
        def handler(match: re.Match, body: str) -> str:
            kind, classes = _block_classes(match.group("type"))
            title = match.group("title") or kind.capitalize()
            opened = " open" if match.group("open") else ""
            return "\n".join(
                [
                    f'<details class="{escape_html(" ".join(classes))}"{opened}>',
                    f"<summary>{escape_html(title)}</summary>",
                    context.render_markdown(body).rstrip("\n"),
                    "</details>",
                ]
            )

        return transform_blocks(text, self.START_RE, handler, context)


class MarkdownInHtmlExtension(RenderExtension):
    """Renders the body of block HTML elements carrying a ``markdown`` attribute.

    The opening and closing tags must stand on their own lines::

        <div class="grid" markdown>
        **Bold** text
        </div>
    """

    name = "md_in_html"
    OPEN_RE = re.compile(
        r"^<(?P<tag>div|section|article|aside|details|figure|blockquote|header|footer|main|nav)\b"
        r"(?P<attrs>[^>]*?)\s+markdown(?:=(?P<q>[\"']?)(?:1|block)(?P=q))?(?P<rest>[^>]*)>\s*$"
    )

    def preprocess(self, text: str, context: RenderContext) -> str:
        lines = text.split("\n")
        out: list[str] = []
        i = 0
        while i < len(lines):
            match = self.OPEN_RE.match(lines[i])
            end = self._find_close(lines, i, match.group("tag")) if match else None
            if match is None or end is None:
                out.append(lines[i])
                i += 1
                continue
            tag = match.group("tag")
            attrs = f"{match.group('attrs')}{match.group('rest')}".rstrip()
            body = "\n".join(lines[i + 1 : end])
            html = f"<{tag}{attrs}>\n{context.render_markdown(body).rstrip()}\n</{tag}>"
            out.extend(["", context.stash(html), ""])
            i = end + 1
        return "\n".join(out)

    @staticmethod
    def _find_close(lines: list[str], start: int, tag: str) -> int | None:
        open_re = re.compile(rf"<{tag}\b", re.IGNORECASE)
        close_re = re.compile(rf"</{tag}\s*>", re.IGNORECASE)
        depth = 0
        for index in range(start, len(lines)):
            depth += len(open_re.findall(lines[index]))
            depth -= len(close_re.findall(lines[index]))
            if depth <= 0:
                return index if index > start else None
        return None


class SnippetsExtension(RenderExtension):
    """Includes external files with ``--8<-- "path"`` lines.

    Options:
        base_path: Directory or list of directories searched for snippets,
            relative to the site root (default: the site root).
        check_paths: Fail the page when a snippet is missing (default False).

    Snippets may include other snippets; a file is never included inside
    itself. Paths escaping the base directories are treated as missing.
    Snippets are expanded before every other pass, so included files may
    contain admonitions and other blocks.
    """

    name = "pymdownx.snippets"
    early = True
    LINE_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<escape>;*)-{1,}8<-{1,}[ \t]+(?P<q>[\"'])(?P<path>.+?)(?P=q)[ \t]*$")

    def preprocess(self, text: str, context: RenderContext) -> str:
        return self._expand(text, context, ())

    def _base_dirs(self, context: RenderContext) -> list[Path]:
        base = self.options.get("base_path", ["."])
        if isinstance(base, str):
            base = [base]
        return [(context.input_root / str(b)).resolve() for b in base]

    def _resolve(self, name: str, context: RenderContext) -> Path | None:
        for base in self._base_dirs(context):
            candidate = (base / name).resolve()
            try:
                candidate.relative_to(base)
            except ValueError:
                continue
            if candidate.is_file():
                return candidate
        return None

    def _expand(self, text: str, context: RenderContext, stack: tuple[Path, ...]) -> str:
        out: list[str] = []
        for line in text.split("\n"):
            match = self.LINE_RE.match(line)
            if not match:
                out.append(line)
                continue
            if match.group("escape"):
                out.append(line.replace(";", "", 1))
                continue
            name = match.group("path").strip()
            path = self._resolve(name, context)
            if path is None or path in stack:
                if self.options.get("check_paths", False):
                    raise ContentError(context.document_path, f"snippet '{name}' not found")
                logger.debug("%s: snippet %s not found", context.document_path, name)
                continue
            included = strip_placeholders(path.read_text(encoding="utf-8").replace("\r\n", "\n"))
            included = self._expand(included.rstrip("\n"), context, (*stack, path))
            indent = match.group("indent")
            out.extend(f"{indent}{inc}" if inc else inc for inc in included.split("\n"))
        return "\n".join(out)


class HighlightExtension(RenderExtension):
    """Highlights fenced code blocks with Pygments."""

    name = "pymdownx.highlight"

    def configure(self, renderer_options: RendererOptions) -> None:
        renderer_options.highlight = HighlightOptions.from_options(self.options)


class InlineHiliteExtension(RenderExtension):
    """Highlights inline code written as `` `#!lang code` ``."""

    name = "pymdownx.inlinehilite"
    CODE_RE = re.compile(r"<code>#!(?P<lang>[\w.+#-]+)[ \t](?P<code>.*?)</code>", re.DOTALL)

    def postprocess(self, html: str, context: RenderContext) -> str:
        css_class = str(self.options.get("css_class", "highlight"))

        def repl(match: re.Match) -> str:
            code = _html.unescape(match.group("code"))
            highlighted = highlight_inline(code, match.group("lang"), css_class)
            return highlighted if highlighted is not None else match.group(0)

        return self.CODE_RE.sub(repl, html)


class SuperFencesExtension(RenderExtension):
    """Registers custom fences rendered for client-side tools.

    ``custom_fences`` entries have a ``name`` and an optional ``class``;
    a fence named ``mermaid`` becomes ``<pre class="mermaid"><code>...``.
    Any ``format`` entry is ignored.
    """

    name = "pymdownx.superfences"

    def configure(self, renderer_options: RendererOptions) -> None:
        for fence in self.options.get("custom_fences") or []:
            if isinstance(fence, dict) and fence.get("name"):
                name = str(fence["name"])
                renderer_options.custom_fences[name] = str(fence.get("class") or name)


class EmojiExtension(RenderExtension):
    """Replaces ``:shortcode:`` aliases with Unicode emoji.

    Code spans and blocks are left untouched. Shortcodes unknown to the
    emoji database (e.g. icon sets) are kept as written.
    """

    name = "pymdownx.emoji"

    def postprocess(self, html: str, context: RenderContext) -> str:
        return map_text_segments(html, lambda text: emoji.emojize(text, language="alias"))


class AttrListExtension(RenderExtension):
    """Applies trailing ``{: .class #id key=value }`` lists as HTML attributes.

    Headings are handled by the renderer so that an explicit ``#id`` also
    becomes the table of contents anchor; paragraphs are rewritten here.
    """

    name = "attr_list"
    PARAGRAPH_RE = re.compile(
        r"<p>(?P<body>(?:(?!</p>).)*?)[ \t]*\{:?[ \t]*(?P<attrs>[.#][^{}\n]*?|[\w:-]+=[^{}\n]*?)[ \t]*\}</p>",
        re.DOTALL,
    )

    def configure(self, renderer_options: RendererOptions) -> None:
        renderer_options.attr_list = True

    def postprocess(self, html: str, context: RenderContext) -> str:
        def repl(match: re.Match) -> str:
            attrs = parse_attr_list(match.group("attrs"))
            return f"<p{format_attributes(attrs)}>{match.group('body').rstrip()}</p>"

        return self.PARAGRAPH_RE.sub(repl, html)


class TocExtension(RenderExtension):
    """Table of contents settings: heading permalinks and depth."""

    name = "toc"

    def configure(self, renderer_options: RendererOptions) -> None:
        permalink = self.options.get("permalink")
        if permalink is True:
            renderer_options.permalink = "¶"
        elif permalink:
            renderer_options.permalink = str(permalink)
        if "permalink_title" in self.options:
            renderer_options.permalink_title = str(self.options["permalink_title"])
        depth = self.options.get("toc_depth")
        if isinstance(depth, int) and 1 <= depth <= 6:
            renderer_options.toc_depth = depth


class HardWrapExtension(RenderExtension):
    """Treats newlines inside paragraphs as line breaks."""

    name = "nl2br"

    def configure(self, renderer_options: RendererOptions) -> None:
        renderer_options.hard_wrap = True


class NoopExtension(RenderExtension):
    """Accepted for compatibility; the behavior is built into the renderer."""

    def __init__(self, name: str, options: Mapping[str, Any] | None = None):
        super().__init__(options)
        self.name = name


# Extensions that map directly onto mistune plugins
MISTUNE_PLUGIN_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "abbr": ("abbr",),
    "def_list": ("def_list",),
    "tables": ("table",),
    "footnotes": ("footnotes",),
    "pymdownx.mark": ("mark",),
    "pymdownx.tilde": ("strikethrough",),
    "pymdownx.caret": ("insert", "superscript"),
    "pymdownx.tasklist": ("task_lists",),
    "pymdownx.magiclink": ("url",),
}

# Behavior the renderer always provides
BUILTIN_BEHAVIOR = ("fenced_code", "meta", "sane_lists")

# Python-Markdown's "extra" bundle
EXTRA_BUNDLE = ("abbr", "attr_list", "def_list", "footnotes", "md_in_html", "tables")

_PREFIXES = ("markdown.extensions.",)

ExtensionFactory = Callable[[Mapping[str, Any]], RenderExtension]


class ExtensionRegistry:
    """Registry mapping extension names to factories.

    New extensions can be registered without modifying existing code.
    """

    def __init__(self) -> None:
        """Initialize the registry with the built-in extensions."""
        self._factories: dict[str, ExtensionFactory] = {}
        for cls in (
            AdmonitionExtension,
            DetailsExtension,
            MarkdownInHtmlExtension,
            SnippetsExtension,
            HighlightExtension,
            InlineHiliteExtension,
            SuperFencesExtension,
            EmojiExtension,
            AttrListExtension,
            TocExtension,
            HardWrapExtension,
        ):
            self.register(cls.name, cls)
        self.register("codehilite", HighlightExtension)
        for name, plugins in MISTUNE_PLUGIN_EXTENSIONS.items():
            self.register(
                name,
                lambda options, name=name, plugins=plugins: MistunePluginExtension(
                    name, plugins, options
                ),
            )
        for name in BUILTIN_BEHAVIOR:
            self.register(name, lambda options, name=name: NoopExtension(name, options))

    def register(self, name: str, factory: ExtensionFactory) -> None:
        """Register an extension factory under ``name``."""
        self._factories[name] = factory

    def create(self, name: str, options: Mapping[str, Any]) -> list[RenderExtension]:
        """Instantiate the extension(s) for a configured name.

        Returns:
            The extensions, or an empty list when the name is unknown.
        """
        for prefix in _PREFIXES:
            if name.startswith(prefix):
                name = name[len(prefix) :]
        if name == "extra":
            return [ext for sub in EXTRA_BUNDLE for ext in self.create(sub, {})]
        factory = self._factories.get(name)
        if factory is None:
            return []
        return [factory(options)]


# Default extension registry instance
default_extension_registry = ExtensionRegistry()


class ExtensionPipeline:
    """The ordered rendering extensions of one build.

    The pipeline is immutable after construction and shared by all
    rendering workers; per-page state lives in RenderContext.

    Attributes:
        extensions: Extensions in configured order.
        renderer_options: Renderer settings assembled from the extensions.
    """

    def __init__(self, extensions: Iterable[RenderExtension] = ()):
        self.extensions: tuple[RenderExtension, ...] = tuple(extensions)
        self._preprocessors = sorted(self.extensions, key=lambda ext: not ext.early)
        self.renderer_options = RendererOptions()
        for extension in self.extensions:
            extension.configure(self.renderer_options)

    def plugins(self) -> list[str]:
        """Return the mistune plugins to enable, in order and without duplicates."""
        seen: list[str] = []
        for extension in self.extensions:
            for plugin in extension.plugins:
                if plugin not in seen:
                    seen.append(plugin)
        return seen

    def preprocess(self, text: str, context: RenderContext, nested: bool = False) -> str:
        """Run the preprocess passes, early passes first.

        Nested block bodies skip the early passes, which already ran over the
        whole page.
        """
        for extension in self._preprocessors:
            if nested and extension.early:
                continue
            text = extension.preprocess(text, context)
        return text

    def postprocess(self, html: str, context: RenderContext) -> str:
        for extension in self.extensions:
            html = extension.postprocess(html, context)
        return html


def build_pipeline(
    specs: Iterable[Any], registry: ExtensionRegistry | None = None
) -> ExtensionPipeline:
    """Create the extension pipeline for configured extension specs.

    Unknown names are logged and skipped, since configurations written for
    other toolchains may name extensions Folio does not provide.

    Args:
        specs: ExtensionSpec-like objects with ``name`` and ``options``.
        registry: Optional custom registry.

    Returns:
        The ExtensionPipeline in configured order.
    """
    registry = registry or default_extension_registry
    extensions: list[RenderExtension] = []
    for spec in specs:
        created = registry.create(spec.name, spec.options)
        if not created:
            logger.warning("Unknown markdown extension '%s' ignored", spec.name)
        extensions.extend(created)
    return ExtensionPipeline(extensions)
