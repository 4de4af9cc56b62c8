import logging
from pathlib import Path

import pytest

from folio.config import load_config
from folio.content import Document, DocumentMeta
from folio.errors import RenderError
from folio.navigation import Navigation, parse_nav
from folio.renderers import Heading, RenderedBody
from folio.templates import (
    THEMES_DIR,
    PageContext,
    ThemeEngine,
    available_themes,
    render_toc,
)


def make_page(path="index.md", html="<p>Hi</p>", toc=(), meta=None, nav=None):
    document = Document(
        path=path,
        title="Home" if path == "index.md" else "About",
        body="",
        meta=meta or DocumentMeta(),
        source_path=Path("/docs") / path,
    )
    if nav is None:
        navigation = Navigation(
            parse_nav([{"Home": "index.md"}, {"About": "about.md"}]),
            {"index.md": "Home", "about.md": "About"},
        )
        nav = navigation.page_nav(path)
    return PageContext(document=document, body=RenderedBody(html, tuple(toc)), nav=nav)


def test_render_toc_nests_by_level():
    headings = [
        Heading("a", "A", 2),
        Heading("b", "B & C", 3),
        Heading("d", "D", 2),
    ]
    assert render_toc(headings) == (
        '<ul><li><a href="#a">A</a><ul><li><a href="#b">B &amp; C</a></li></ul>'
        '</li><li><a href="#d">D</a></li></ul>'
    )
    assert render_toc([]) == ""


def test_default_theme_is_available():
    assert "default" in available_themes()


def test_renders_page_with_menu_and_toc(make_site):
    config = load_config(make_site("site_name: Test Docs\ncopyright: (c) Folio\n"))
    engine = ThemeEngine(config)
    page = make_page(
        path="about.md",
        html='<h2 id="team">Team</h2>',
        toc=[Heading("team", "Team", 2)],
    )
    html = engine.render_page(page)
    assert "<title>About - Test Docs</title>" in html
    assert '<h2 id="team">Team</h2>' in html
    assert html.count('class="nav-link"') == 2
    assert 'aria-current="page" href="about.html"' in html
    assert '<a href="#team">Team</a>' in html
    assert 'href="assets/css/theme.css"' in html
    assert "(c) Folio" in html
    assert "&larr; Home" in html


def test_homepage_title_and_relative_urls(make_site):
    config = load_config(make_site("site_name: Test Docs\nextra_css: [css/extra.css]\n"))
    engine = ThemeEngine(config)
    html = engine.render_page(make_page())
    assert "<title>Test Docs</title>" in html
    assert 'href="css/extra.css"' in html

    nested = make_page(path="guide/intro.md", nav=Navigation((), {}).page_nav("guide/intro.md"))
    html = engine.render_page(nested)
    assert 'href="../assets/css/theme.css"' in html
    assert 'href="../css/extra.css"' in html


def test_hide_navigation_and_toc(make_site):
    engine = ThemeEngine(load_config(make_site("site_name: X\n")))
    meta = DocumentMeta(hide=frozenset({"navigation", "toc"}))
    html = engine.render_page(make_page(toc=[Heading("a", "A", 2)], meta=meta))
    assert "nav-list" not in html
    assert "page-toc" not in html


def test_favicon_and_logo(make_site):
    config = load_config(make_site(
        "site_name: X\ntheme:\n  name: default\n  favicon: favicon.svg\n"
        "  icon:\n    logo: material/ab-testing\n"
    ))
    engine = ThemeEngine(config)
    html = engine.render_page(make_page())
    assert '<link rel="icon" href="favicon.svg">' in html
    assert '<span class="site-logo" data-icon="material/ab-testing"></span>' in html

    nested = make_page(path="guide/intro.md", nav=Navigation((), {}).page_nav("guide/intro.md"))
    assert '<link rel="icon" href="../favicon.svg">' in engine.render_page(nested)

    config = load_config(make_site("site_name: X\ntheme:\n  name: default\n  logo: img/logo.png\n"))
    html = ThemeEngine(config).render_page(make_page())
    assert '<img class="site-logo" src="img/logo.png" alt="">' in html
    assert 'rel="icon"' not in html


def test_unknown_theme_falls_back_to_default(make_site, caplog):
    root = make_site("site_name: X\ntheme:\n  name: material\n")
    with caplog.at_level(logging.WARNING, logger="folio.templates"):
        engine = ThemeEngine(load_config(root))
    assert "unknown theme 'material'" in caplog.text
    assert engine.search_path == [THEMES_DIR / "default"]
    assert 'class="nav-link"' in engine.render_page(make_page())


def test_custom_dir_is_layered_over_the_fallback_theme(make_site, caplog):
    root = make_site(
        "site_name: X\ntheme:\n  name: material\n  custom_dir: overrides\n",
        {"overrides/main.html": "<h1>{{ page.title }}</h1>{{ page.content }}"},
    )
    with caplog.at_level(logging.WARNING, logger="folio.templates"):
        engine = ThemeEngine(load_config(root))
    assert "material" in caplog.text
    assert engine.search_path == [root.resolve() / "overrides", THEMES_DIR / "default"]
    assert engine.render_page(make_page()) == "<h1>Home</h1><p>Hi</p>"


def test_custom_dir_overrides_builtin_templates(make_site):
    root = make_site(
        "site_name: X\ntheme:\n  name: default\n  custom_dir: overrides\n",
        {"overrides/partials/toc.html": "<div class=\"custom-toc\">{{ toc }}</div>"},
    )
    engine = ThemeEngine(load_config(root))
    html = engine.render_page(make_page(toc=[Heading("a", "A", 2)]))
    assert '<div class="custom-toc">' in html
    assert 'class="nav-link"' in html


def test_missing_custom_dir_is_ignored_with_a_warning(make_site, caplog):
    root = make_site("site_name: X\ntheme:\n  name: default\n  custom_dir: nowhere\n")
    with caplog.at_level(logging.WARNING, logger="folio.templates"):
        engine = ThemeEngine(load_config(root))
    assert "custom_dir" in caplog.text
    assert "nowhere" in caplog.text
    assert engine.search_path == [THEMES_DIR / "default"]


def test_template_syntax_error_fails_at_load(make_site):
    root = make_site(
        "site_name: X\ntheme:\n  custom_dir: overrides\n",
        {"overrides/main.html": "{% if %}broken"},
    )
    with pytest.raises(RenderError) as excinfo:
        ThemeEngine(load_config(root))
    assert "syntax error" in excinfo.value.message


def test_undefined_variable_fails_at_render(make_site):
    root = make_site(
        "site_name: X\ntheme:\n  custom_dir: overrides\n",
        {"overrides/main.html": "{{ no_such_variable }}"},
    )
    engine = ThemeEngine(load_config(root))
    with pytest.raises(RenderError) as excinfo:
        engine.render_page(make_page())
    assert excinfo.value.message.startswith("Undefined variable")
    assert excinfo.value.source_path == "main.html"


def test_page_template_from_front_matter(make_site):
    root = make_site(
        "site_name: X\ntheme:\n  custom_dir: overrides\n",
        {"overrides/landing.html": "landing:{{ page.title }}"},
    )
    engine = ThemeEngine(load_config(root))
    page = make_page(meta=DocumentMeta(template="landing.html"))
    assert engine.render_page(page) == "landing:Home"

    missing = make_page(meta=DocumentMeta(template="nope.html"))
    with pytest.raises(RenderError, match="nope.html"):
        engine.render_page(missing)


def test_asset_dirs_lowest_precedence_first(make_site):
    root = make_site(
        "site_name: X\ntheme:\n  custom_dir: overrides\n",
        {"overrides/assets/css/site.css": "body {}"},
    )
    engine = ThemeEngine(load_config(root))
    dirs = engine.asset_dirs()
    assert dirs[-1] == root.resolve() / "overrides" / "assets"
    assert dirs[0].parent.name == "default"
