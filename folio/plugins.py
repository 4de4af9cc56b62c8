"""Build plugins for Folio.

Plugins are named in the ``plugins`` configuration list. Unlike rendering
extensions, which transform Markdown, plugins see the finished HTML page.

Key classes:
- BasePlugin: Base class defining the plugin hooks.
- SearchPlugin: Enables the client-side search index.
- MermaidPlugin: Loads mermaid.js on pages containing diagrams.
- PluginSet: The configured plugins of one build.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .html_utils import escape_html

logger = logging.getLogger(__name__)


class BasePlugin:
    """Base class for build plugins.

    Attributes:
        name: Configured plugin name.
        options: Plugin options from the configuration.
    """

    name = ""

    def __init__(self, options: Mapping[str, Any] | None = None):
        self.options = dict(options or {})

    def on_page_html(self, html: str, page_path: str) -> str:
        """Rewrite the complete HTML of a rendered page.

        Args:
            html: Rendered page.
            page_path: Docs-relative path of the page's document.

        Returns:
            The page HTML.
        """
        return html


class SearchPlugin(BasePlugin):
    """Marks the site for search indexing.

    The index itself is written by ``SearchIndexGenerator`` once every page
    is rendered.
    """

    name = "search"


class MermaidPlugin(BasePlugin):
    """Adds the mermaid.js loader to pages that contain diagrams.

    Options:
        javascript: URL of the mermaid library.
        arguments: Mapping passed to ``mermaid.initialize``.
    """

    name = "mermaid2"
    DEFAULT_JAVASCRIPT = "https://unpkg.com/mermaid@10/dist/mermaid.min.js"
    DIAGRAM_RE = re.compile(r"""class=["'](?:[^"']*\s)?mermaid(?:\s[^"']*)?["']""")

    def on_page_html(self, html: str, page_path: str) -> str:
        if not self.DIAGRAM_RE.search(html):
            return html
        src = escape_html(str(self.options.get("javascript", self.DEFAULT_JAVASCRIPT)))
        arguments = {"startOnLoad": True, **dict(self.options.get("arguments") or {})}
        init = ", ".join(f"{key}: {_js_value(value)}" for key, value in sorted(arguments.items()))
        snippet = f'<script src="{src}"></script>\n<script>mermaid.initialize({{{init}}});</script>\n'
        index = html.rfind("</body>")
        if index == -1:
            return html + snippet
        return html[:index] + snippet + html[index:]


def _js_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


PluginFactory = Callable[[Mapping[str, Any]], BasePlugin]


class PluginRegistry:
    """Registry mapping plugin names to factories."""

    def __init__(self) -> None:
        self._factories: dict[str, PluginFactory] = {}
        self.register(SearchPlugin.name, SearchPlugin)
        self.register(MermaidPlugin.name, MermaidPlugin)

    def register(self, name: str, factory: PluginFactory) -> None:
        self._factories[name] = factory

    def create(self, name: str, options: Mapping[str, Any]) -> BasePlugin | None:
        factory = self._factories.get(name)
        return factory(options) if factory is not None else None


# Default plugin registry instance
default_plugin_registry = PluginRegistry()


class PluginSet:
    """The configured plugins of one build, in configured order."""

    def __init__(self, plugins: Iterable[BasePlugin] = ()):
        self.plugins: tuple[BasePlugin, ...] = tuple(plugins)

    def on_page_html(self, html: str, page_path: str) -> str:
        for plugin in self.plugins:
            html = plugin.on_page_html(html, page_path)
        return html


def build_plugins(specs: Iterable[Any], registry: PluginRegistry | None = None) -> PluginSet:
    """Instantiate the configured plugins, skipping unknown names with a warning."""
    registry = registry or default_plugin_registry
    plugins: list[BasePlugin] = []
    for spec in specs:
        plugin = registry.create(spec.name, spec.options)
        if plugin is None:
            logger.warning("Unknown plugin '%s' ignored", spec.name)
            continue
        plugins.append(plugin)
    return PluginSet(plugins)
