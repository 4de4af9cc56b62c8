"""Theme layer for Folio.

This module wraps rendered document bodies in the theme's page template.
It uses Jinja2 with a template search path made of the optional
``custom_dir`` override directory followed by the built-in theme. An
unknown theme name falls back to the default theme with a warning.

Key definitions:
- PageContext: Everything a template needs to render one page.
- ThemeEngine: Loads the theme and renders pages.
- render_toc: Render headings as a nested HTML list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
    select_autoescape,
)
from markupsafe import Markup

from .config import SiteConfig
from .content import Document
from .errors import RenderError
from .highlighting import pygments_css
from .html_utils import escape_html, is_external_url
from .navigation import PageNav
from .renderers import Heading, RenderedBody
from .utils import base_url_for, output_path_for, relative_url

logger = logging.getLogger(__name__)

THEMES_DIR = Path(__file__).parent / "themes"
DEFAULT_THEME = "default"
DEFAULT_TEMPLATE = "main.html"

__all__ = ["PageContext", "ThemeEngine", "available_themes", "render_toc"]


def available_themes() -> list[str]:
    """Return the names of the built-in themes."""
    return sorted(p.name for p in THEMES_DIR.iterdir() if (p / DEFAULT_TEMPLATE).is_file())


def render_toc(headings: Iterable[Heading]) -> Markup:
    """Render a table of contents as nested HTML from page headings.

    Generates properly nested `<ul><li><a href="#id">text</a></li></ul>` structure
    based on heading levels.

    Args:
        headings: Heading objects in document order.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


@dataclass(frozen=True)
class PageContext:
    """Template input for one page.

    Attributes:
        document: The source document.
        body: Rendered HTML fragment and table of contents.
        nav: Navigation view of the page.
    """

    document: Document
    body: RenderedBody
    nav: PageNav = field(default_factory=PageNav)

    @property
    def title(self) -> str:
        return self.document.title

    @property
    def meta(self):
        return self.document.meta

    @property
    def path(self) -> str:
        return self.document.path

    @property
    def url(self) -> str:
        """Output path of the page, relative to the site root."""
        return output_path_for(self.document.path)

    @property
    def content(self) -> Markup:
        return Markup(self.body.html)

    @property
    def toc(self) -> tuple[Heading, ...]:
        return self.body.toc

    @property
    def is_homepage(self) -> bool:
        return self.document.path in ("index.md", "README.md")


class ThemeEngine:
    """Renders pages with the configured theme.

    The engine is read-only after construction and may be shared by
    rendering workers.

    Attributes:
        config: Site configuration.
        search_path: Template directories, in lookup order.
        env: Jinja2 environment.
    """

    def __init__(self, config: SiteConfig):
        """Initialize the theme engine.

        Args:
            config: Site configuration naming the theme.

        Raises:
            RenderError: If the page template cannot be loaded.
        """
        self.config = config
        self.search_path = self._resolve_search_path(config)
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in self.search_path]),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self._install_globals()
        # Load the page template up front so syntax errors abort the build
        self._get_template(DEFAULT_TEMPLATE)

    @staticmethod
    def _resolve_search_path(config: SiteConfig) -> list[Path]:
        theme = config.theme
        search_path: list[Path] = []
        if theme.custom_dir is not None:
            if theme.custom_dir.is_dir():
                search_path.append(theme.custom_dir)
            else:
                logger.warning("theme custom_dir '%s' does not exist, ignoring it", theme.custom_dir)
        builtin = THEMES_DIR / (theme.name or DEFAULT_THEME)
        if not (builtin / DEFAULT_TEMPLATE).is_file():
            logger.warning(
                "unknown theme '%s' (available: %s), falling back to '%s'",
                theme.name,
                ", ".join(available_themes()),
                DEFAULT_THEME,
            )
            builtin = THEMES_DIR / DEFAULT_THEME
        search_path.append(builtin)
        return search_path

    def _install_globals(self) -> None:
        """Install global variables and functions in the Jinja environment."""
        self.env.globals["config"] = self.config
        self.env.globals["theme"] = self.config.theme.options
        self.env.globals["extra"] = self.config.extra
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc

    def _pygments_css(self) -> Markup:
        """Return Pygments CSS rules for the configured highlight class."""
        style = str(self.config.theme.options.get("pygments_style", "default"))
        return Markup(pygments_css("highlight", style))

    def asset_dirs(self) -> list[Path]:
        """Return the theme ``assets`` directories, lowest precedence first."""
        return [p / "assets" for p in reversed(self.search_path) if (p / "assets").is_dir()]

    def _get_template(self, name: str):
        try:
            return self.env.get_template(name)
        except TemplateSyntaxError as exc:
            raise RenderError(
                exc.filename or name,
                f"template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except TemplateNotFound as exc:
            raise RenderError(name, f"template not found: {exc.name}", exc) from exc

    def render_page(self, page: PageContext) -> str:
        """Render a page with its template.

        Args:
            page: The page to render.

        Returns:
            The complete HTML document.

        Raises:
            RenderError: If the template fails to load or render.
        """
        template_name = page.meta.template or DEFAULT_TEMPLATE
        template = self._get_template(template_name)
        here = page.url
        hide_nav = page.meta.hide_navigation
        context: dict[str, Any] = {
            "page": page,
            "nav": PageNav() if hide_nav else page.nav,
            "toc": Markup("") if page.meta.hide_toc else render_toc(page.toc),
            "base_url": base_url_for(here),
            "extra_css": [self._link(here, p) for p in self.config.extra_css],
            "extra_javascript": [self._link(here, p) for p in self.config.extra_javascript],
            "url": lambda target: self._link(here, target),
        }
        try:
            return template.render(**context)
        except TemplateError as exc:
            raise RenderError(template_name, _format_template_error(exc), exc) from exc
        except (TypeError, AttributeError, ValueError, KeyError) as exc:
            raise RenderError(template_name, _format_template_error(exc), exc) from exc

    @staticmethod
    def _link(here: str, target: str) -> str:
        """Return ``target`` (site-relative) as a URL relative to ``here``."""
        if is_external_url(target) or target.startswith("/"):
            return target
        return relative_url(here, target)


def _format_template_error(exc: Exception) -> str:
    """Format a template exception into a user-friendly message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_msg = str(exc)
    if isinstance(exc, UndefinedError):
        return f"Undefined variable: {error_msg}"
    if isinstance(exc, TemplateSyntaxError):
        return f"Syntax error on line {exc.lineno}: {exc.message}"
    if isinstance(exc, TemplateNotFound):
        return f"Template not found: {exc.name}"
    if isinstance(exc, TypeError):
        return f"Type error: {error_msg}"
    if isinstance(exc, AttributeError):
        return f"Attribute error: {error_msg}"
    return f"{type(exc).__name__}: {error_msg}"
