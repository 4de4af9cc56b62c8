"""Syntax highlighting for code blocks with Pygments.

Key definitions:
- HighlightOptions: Settings taken from the highlight extension options.
- highlight_block: Highlight a fenced code block.
- highlight_inline: Highlight an inline code span.
- pygments_css: Stylesheet for the generated markup.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html


@dataclass(frozen=True)
class HighlightOptions:
    """Code highlighting settings.

    Attributes:
        css_class: Class of the wrapping ``div``.
        use_pygments: When False, blocks are emitted unhighlighted with a
            ``language-*`` class for client-side highlighters.
        linenums: Render line numbers.
        anchor_linenums: Make line numbers anchors.
        line_spans: Prefix for per-line ``span`` ids, empty to disable.
        lang_class: Add a ``language-*`` class to the ``code`` element.
    """

    css_class: str = "highlight"
    use_pygments: bool = True
    linenums: bool = False
    anchor_linenums: bool = False
    line_spans: str = ""
    lang_class: bool = False

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> HighlightOptions:
        return cls(
            css_class=str(options.get("css_class", "highlight")),
            use_pygments=bool(options.get("use_pygments", True)),
            linenums=bool(options.get("linenums", False)),
            anchor_linenums=bool(options.get("anchor_linenums", False)),
            line_spans=str(options.get("line_spans") or ""),
            lang_class=bool(options.get("pygments_lang_class", False)),
        )


def highlight_block(
    code: str, lang: str, options: HighlightOptions, block_number: int
) -> str | None:
    """Highlight a code block.

    Args:
        code: Source code of the block.
        lang: Language name as written after the opening fence.
        options: Highlight settings.
        block_number: Position of the block in its page, used for unique anchors.

    Returns:
        Highlighted HTML, or None when the language is unknown or Pygments is
        disabled.
    """
    if not options.use_pygments:
        return None
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        return None
    kwargs: dict[str, Any] = {"cssclass": options.css_class, "wrapcode": True}
    if options.linenums:
        kwargs["linenos"] = "table"
    if options.anchor_linenums:
        kwargs["lineanchors"] = f"__codelineno-{block_number}"
        kwargs["anchorlinenos"] = True
    if options.line_spans:
        kwargs["linespans"] = f"{options.line_spans}-{block_number}"
    html = highlight(code, lexer, HtmlFormatter(**kwargs))
    if options.lang_class:
        html = html.replace("<code>", f'<code class="language-{escape_html(lang)}">', 1)
    return html


def highlight_inline(code: str, lang: str, css_class: str = "highlight") -> str | None:
    """Highlight an inline code span, or return None for unknown languages."""
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        return None
    inner = highlight(code, lexer, HtmlFormatter(nowrap=True)).rstrip("\n")
    return f'<code class="{escape_html(css_class)}">{inner}</code>'


def pygments_css(css_class: str = "highlight", style: str = "default") -> str:
    """Return Pygments CSS rules scoped to ``.css_class``."""
    return HtmlFormatter(style=style).get_style_defs(f".{css_class}")
