"""Navigation tree for Folio sites.

The configured table of contents is represented as a tagged variant rather
than a nested mapping, so that resolution failures surface as one well
defined error kind:

- NavLink: leaf referencing a single document by its docs-relative path.
- NavSection: titled, ordered group of child entries.
- NavExternal: leaf pointing at an absolute URL outside the site.

Navigation resolves the tree once per build against the document titles and
produces the per-page view used by templates (menu, breadcrumbs, previous and
next links).
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

from .errors import ConfigurationError
from .html_utils import is_external_url
from .utils import normalize_doc_path, output_path_for, relative_url, titleize


@dataclass(frozen=True)
class NavLink:
    """Leaf entry referencing a document.

    Attributes:
        title: Display title, or None to use the document title.
        path: Docs-relative path of the referenced document.
    """

    title: str | None
    path: str


@dataclass(frozen=True)
class NavSection:
    """Titled group of navigation entries."""

    title: str
    children: tuple[NavEntry, ...]


@dataclass(frozen=True)
class NavExternal:
    """Leaf entry pointing outside the site."""

    title: str
    url: str


NavEntry = NavLink | NavSection | NavExternal


@dataclass(frozen=True)
class MenuItem:
    """Template view of one navigation entry, relative to the current page.

    Attributes:
        title: Display title.
        url: Relative link, or None for sections.
        active: True for the current page and the sections containing it.
        children: Child items for sections.
        external: True when the link leaves the site.
    """

    title: str
    url: str | None = None
    active: bool = False
    children: tuple[MenuItem, ...] = ()
    external: bool = False

    @property
    def is_section(self) -> bool:
        return self.url is None


def parse_nav(raw: Any) -> tuple[NavEntry, ...]:
    """Convert the configured navigation list into NavEntry objects.

    Accepted item shapes:
        - ``"about.md"``: link titled by the document itself.
        - ``{"About": "about.md"}``: titled link.
        - ``{"Source": "https://..."}``: external link.
        - ``{"Guide": [...]}``: section with nested entries.

    Raises:
        ConfigurationError: For any other shape.
    """
    if not isinstance(raw, list):
        raise ConfigurationError("navigation must be a list of entries")
    return tuple(_parse_entry(item) for item in raw)


def _parse_entry(item: Any) -> NavEntry:
    if isinstance(item, str):
        if is_external_url(item):
            return NavExternal(title=item, url=item)
        return NavLink(title=None, path=normalize_doc_path(item))
    if isinstance(item, dict) and len(item) == 1:
        title, value = next(iter(item.items()))
        title = str(title)
        if isinstance(value, str):
            if is_external_url(value):
                return NavExternal(title=title, url=value)
            return NavLink(title=title, path=normalize_doc_path(value))
        if isinstance(value, list):
            return NavSection(title=title, children=parse_nav(value))
    raise ConfigurationError(f"unsupported navigation entry {item!r}")


def iter_links(entries: Iterable[NavEntry]) -> Iterator[NavLink]:
    """Yield every NavLink of the tree in depth-first order."""
    for entry in entries:
        if isinstance(entry, NavLink):
            yield entry
        elif isinstance(entry, NavSection):
            yield from iter_links(entry.children)


def validate_nav(entries: Iterable[NavEntry], available: Collection[str]) -> None:
    """Check that every link resolves to an existing document.

    Args:
        entries: Navigation tree.
        available: Docs-relative paths of the discovered documents.

    Raises:
        ConfigurationError: Naming the first missing path.
    """
    for link in iter_links(entries):
        if link.path not in available:
            raise ConfigurationError(
                f"navigation references '{link.path}', which does not exist",
                path=link.path,
            )


def auto_nav(paths: Iterable[str]) -> tuple[NavEntry, ...]:
    """Build a navigation tree from document paths.

    ``index.md`` comes first in each directory, then the remaining files in
    alphabetical order, then one section per sub-directory.
    """
    tree: dict[str, Any] = {}
    for path in paths:
        parts = PurePosixPath(path).parts
        node = tree
        for part in parts[:-1]:
            node = node.setdefault(part + "/", {})
        node[parts[-1]] = path
    return _auto_entries(tree)


def _auto_entries(node: dict[str, Any]) -> tuple[NavEntry, ...]:
    files = sorted(
        (k for k in node if not k.endswith("/")),
        key=lambda name: (PurePosixPath(name).stem != "index", name.lower()),
    )
    dirs = sorted((k for k in node if k.endswith("/")), key=str.lower)
    entries: list[NavEntry] = [NavLink(title=None, path=node[name]) for name in files]
    for name in dirs:
        entries.append(
            NavSection(title=titleize(name.rstrip("/")), children=_auto_entries(node[name]))
        )
    return tuple(entries)


class Navigation:
    """Navigation tree resolved against the documents of one build.

    Instances are immutable after construction and safe to share between
    rendering workers.

    Attributes:
        entries: The navigation tree.
        reading_order: Docs-relative paths in depth-first order, without duplicates.
    """

    def __init__(self, entries: tuple[NavEntry, ...], titles: Mapping[str, str]):
        """Initialize the navigation.

        Args:
            entries: Validated navigation tree.
            titles: Document titles keyed by docs-relative path.
        """
        self.entries = entries
        self._titles = dict(titles)
        order: list[str] = []
        for link in iter_links(entries):
            if link.path not in order:
                order.append(link.path)
        self.reading_order: tuple[str, ...] = tuple(order)

    def is_reachable(self, doc_path: str) -> bool:
        return doc_path in self.reading_order

    def title_for(self, link: NavLink) -> str:
        return link.title or self._titles.get(link.path) or titleize(link.path)

    def menu_for(self, current: str) -> tuple[MenuItem, ...]:
        """Return the menu as seen from the document at ``current``."""
        items, _ = self._menu_items(self.entries, current)
        return items

    def _menu_items(
        self, entries: tuple[NavEntry, ...], current: str
    ) -> tuple[tuple[MenuItem, ...], bool]:
        here = output_path_for(current)
        items: list[MenuItem] = []
        any_active = False
        for entry in entries:
            if isinstance(entry, NavLink):
                active = entry.path == current
                items.append(
                    MenuItem(
                        title=self.title_for(entry),
                        url=relative_url(here, output_path_for(entry.path)),
                        active=active,
                    )
                )
            elif isinstance(entry, NavExternal):
                active = False
                items.append(MenuItem(title=entry.title, url=entry.url, external=True))
            else:
                children, active = self._menu_items(entry.children, current)
                items.append(MenuItem(title=entry.title, active=active, children=children))
            any_active = any_active or active
        return tuple(items), any_active

    def breadcrumbs_for(self, current: str) -> tuple[MenuItem, ...]:
        """Return the chain of sections leading to ``current``."""
        trail = self._find_trail(self.entries, current)
        return tuple(MenuItem(title=title, active=True) for title in trail or ())

    def _find_trail(
        self, entries: tuple[NavEntry, ...], current: str
    ) -> list[str] | None:
        for entry in entries:
            if isinstance(entry, NavLink) and entry.path == current:
                return []
            if isinstance(entry, NavSection):
                trail = self._find_trail(entry.children, current)
                if trail is not None:
                    return [entry.title, *trail]
        return None

    def neighbours(self, current: str) -> tuple[MenuItem | None, MenuItem | None]:
        """Return the previous and next pages in reading order."""
        if current not in self.reading_order:
            return None, None
        index = self.reading_order.index(current)
        here = output_path_for(current)

        def item(path: str) -> MenuItem:
            return MenuItem(
                title=self._titles.get(path) or titleize(path),
                url=relative_url(here, output_path_for(path)),
            )

        previous = item(self.reading_order[index - 1]) if index > 0 else None
        following = (
            item(self.reading_order[index + 1])
            if index + 1 < len(self.reading_order)
            else None
        )
        return previous, following

    def page_nav(self, current: str) -> PageNav:
        """Return the complete navigation view for the page at ``current``."""
        previous, following = self.neighbours(current)
        return PageNav(
            menu=self.menu_for(current),
            breadcrumbs=self.breadcrumbs_for(current),
            previous=previous,
            next=following,
        )


@dataclass(frozen=True)
class PageNav:
    """Navigation of one page as exposed to templates.

    Attributes:
        menu: Top level menu items.
        breadcrumbs: Sections containing the page, outermost first.
        previous: Previous page in reading order, if any.
        next: Next page in reading order, if any.
    """

    menu: tuple[MenuItem, ...] = ()
    breadcrumbs: tuple[MenuItem, ...] = ()
    previous: MenuItem | None = None
    next: MenuItem | None = None


def build_menu(
    entries: tuple[NavEntry, ...], titles: Mapping[str, str], current: str
) -> PageNav:
    """Build the navigation view of one page.

    Args:
        entries: Validated navigation tree.
        titles: Document titles keyed by docs-relative path.
        current: Docs-relative path of the page being rendered.

    Returns:
        The PageNav for ``current``.
    """
    return Navigation(entries, titles).page_nav(current)
