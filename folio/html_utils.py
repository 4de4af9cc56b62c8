"""HTML utility functions for Folio.

This module provides HTML string manipulation used by the renderer,
the extension passes and the index generators.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    is_external_url: Check whether a URL points outside the site.
    map_text_segments: Apply a function to text nodes of an HTML fragment.
    strip_tags: Reduce an HTML fragment to collapsed plain text.
    parse_attr_list: Parse ``{: .class #id key=value}`` attribute lists.
    format_attributes: Render a mapping as HTML attributes.
    split_trailing_attr_list: Split a trailing attribute list from text.
"""

from __future__ import annotations

import html as _html
import re
import shlex
from collections.abc import Callable

_TAG_RE = re.compile(r"(<!--.*?-->|<[^>]+>)", re.DOTALL)
_TAG_NAME_RE = re.compile(r"<\s*(/)?\s*([a-zA-Z][a-zA-Z0-9]*)")
_ATTR_TOKEN = r"""(?:[.#][^\s{}]+|[\w:-]+=(?:&quot;.*?&quot;|"[^"]*"|'[^']*'|[^\s{}]+))"""
_TRAILING_ATTRS_RE = re.compile(
    rf"[ \t]*\{{:?[ \t]*({_ATTR_TOKEN}(?:[ \t]+{_ATTR_TOKEN})*)[ \t]*\}}\s*$"
)

# URL prefixes that should never be treated as site-relative paths
_EXTERNAL_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "javascript:",
    "data:",
)

# Text inside these elements is left untouched by text-level passes
RAW_TEXT_TAGS = frozenset({"code", "pre", "script", "style", "kbd", "samp"})


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Converts the following characters to their HTML entity equivalents:
    - & becomes &amp;
    - < becomes &lt;
    - > becomes &gt;
    - " becomes &quot;

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'

        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/docs).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about.html')
        'https://example.com/about.html'

        >>> join_root_url('https://example.com/', 'about.html')
        'https://example.com/about.html'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def is_external_url(url: str) -> bool:
    """Check whether a URL points outside the generated site."""
    return url.lower().startswith(_EXTERNAL_PREFIXES)


def map_text_segments(
    html: str,
    func: Callable[[str], str],
    skip_tags: frozenset[str] = RAW_TEXT_TAGS,
) -> str:
    """Apply ``func`` to every text segment of an HTML fragment.

    Tags and comments are copied unchanged, and text nested inside any of
    ``skip_tags`` (code blocks, scripts...) is not passed to ``func``.

    Args:
        html: HTML fragment.
        func: Transformation applied to each text segment.
        skip_tags: Element names whose content is left untouched.

    Returns:
        The transformed HTML fragment.
    """
    parts = _TAG_RE.split(html)
    depth = 0
    out: list[str] = []
    for index, part in enumerate(parts):
        if index % 2 == 1:
            match = _TAG_NAME_RE.match(part)
            if match and match.group(2).lower() in skip_tags and not part.endswith("/>"):
                depth += -1 if match.group(1) else 1
                depth = max(depth, 0)
            out.append(part)
        elif part and depth == 0:
            out.append(func(part))
        else:
            out.append(part)
    return "".join(out)


def strip_tags(html: str) -> str:
    """Reduce an HTML fragment to plain text with collapsed whitespace.

    Examples:
        >>> strip_tags("<p>Hello <em>world</em></p>")
        'Hello world'
    """
    text = _TAG_RE.sub(" ", html)
    return " ".join(_html.unescape(text).split())


def parse_attr_list(text: str) -> dict[str, str]:
    """Parse an attribute list such as ``.note #intro data-x="1"``.

    Classes are accumulated into a single ``class`` entry.

    Examples:
        >>> parse_attr_list('.a .b #main title="Hi there"')
        {'class': 'a b', 'id': 'main', 'title': 'Hi there'}
    """
    text = _html.unescape(text)
    try:
        tokens = shlex.split(text)
    except ValueError:
        tokens = text.split()
    attrs: dict[str, str] = {}
    classes: list[str] = []
    for token in tokens:
        if token.startswith(".") and len(token) > 1:
            classes.append(token[1:])
        elif token.startswith("#") and len(token) > 1:
            attrs["id"] = token[1:]
        elif "=" in token:
            key, value = token.split("=", 1)
            if key:
                attrs[key] = value
    if classes:
        attrs = {"class": " ".join(classes), **attrs}
    return attrs


def format_attributes(attrs: dict[str, str]) -> str:
    """Render a mapping as HTML attributes with a leading space.

    Examples:
        >>> format_attributes({"id": "x", "class": "a b"})
        ' id="x" class="a b"'
    """
    return "".join(f' {key}="{escape_html(str(value))}"' for key, value in attrs.items())


def split_trailing_attr_list(text: str) -> tuple[str, dict[str, str]]:
    """Split a trailing ``{: ...}`` attribute list from inline text.

    Examples:
        >>> split_trailing_attr_list("Install {: #setup }")
        ('Install', {'id': 'setup'})
    """
    match = _TRAILING_ATTRS_RE.search(text)
    if not match:
        return text, {}
    return text[: match.start()], parse_attr_list(match.group(1))
