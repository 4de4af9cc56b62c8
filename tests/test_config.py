from pathlib import Path

import pytest

from folio.config import (
    ExtensionSpec,
    find_config_file,
    load_config,
    parse_extension_specs,
)
from folio.errors import ConfigurationError
from folio.navigation import NavExternal, NavLink, NavSection


def test_load_minimal_config_applies_defaults(make_site):
    root = make_site("site_name: Docs\n", {"docs/index.md": "# Home\n"})
    config = load_config(root)
    assert config.site_name == "Docs"
    assert config.site_url == ""
    assert config.docs_dir == root.resolve() / "docs"
    assert config.site_dir == root.resolve() / "site"
    assert config.nav is None
    assert config.theme.name == "default"
    assert config.markdown_extensions == ()
    assert config.config_file.name == "folio.yaml"


def test_docs_dir_falls_back_to_root(make_site):
    root = make_site("site_name: Docs\n", {"index.md": "# Home\n"})
    assert load_config(root).docs_dir == root.resolve()


def test_explicit_missing_docs_dir_is_an_error(make_site):
    root = make_site("site_name: Docs\ndocs_dir: content\n")
    with pytest.raises(ConfigurationError, match="docs_dir"):
        load_config(root)


def test_mkdocs_file_name_is_accepted(tmp_path):
    (tmp_path / "mkdocs.yml").write_text("site_name: Legacy\n", encoding="utf-8")
    assert find_config_file(tmp_path).name == "mkdocs.yml"
    assert load_config(tmp_path).site_name == "Legacy"


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError, match="No configuration file"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "text, message",
    [
        ("site_name: [unclosed\n", "Invalid YAML"),
        ("- just\n- a list\n", "must be a mapping"),
        ("site_description: no name\n", "site_name"),
        ("site_name: X\nsite_url: 3\n", "site_url"),
        ("site_name: X\nmarkdown_extensions: admonition\n", "markdown_extensions"),
        ("site_name: X\nextra_css: {a: b}\n", "extra_css"),
        ("site_name: X\nnav: {Home: index.md}\n", "nav"),
    ],
)
def test_invalid_configs(make_site, text, message):
    root = make_site(text)
    with pytest.raises(ConfigurationError, match=message) as excinfo:
        load_config(root)
    assert excinfo.value.path == root.resolve() / "folio.yaml"


def test_nav_is_parsed_into_entries(make_site):
    root = make_site(
        "site_name: X\n"
        "nav:\n"
        "  - Home: index.md\n"
        "  - about.md\n"
        "  - Guide:\n"
        "    - Setup: guide/setup.md\n"
        "  - Source: https://example.com/repo\n"
    )
    nav = load_config(root).nav
    assert nav == (
        NavLink("Home", "index.md"),
        NavLink(None, "about.md"),
        NavSection("Guide", (NavLink("Setup", "guide/setup.md"),)),
        NavExternal("Source", "https://example.com/repo"),
    )


def test_extension_specs_keep_options_verbatim(make_site):
    root = make_site(
        "site_name: X\n"
        "markdown_extensions:\n"
        "  - admonition\n"
        "  - toc:\n"
        "      permalink: true\n"
        "  - pymdownx.tasklist:\n"
        "plugins:\n"
        "  - search\n"
    )
    config = load_config(root)
    assert config.markdown_extensions == (
        ExtensionSpec("admonition", {}),
        ExtensionSpec("toc", {"permalink": True}),
        ExtensionSpec("pymdownx.tasklist", {}),
    )
    assert config.has_plugin("search")
    assert not config.has_plugin("mermaid2")


def test_parse_extension_specs_rejects_bad_entries():
    with pytest.raises(ConfigurationError):
        parse_extension_specs([{"a": {}, "b": {}}], "markdown_extensions")
    with pytest.raises(ConfigurationError):
        parse_extension_specs([3], "markdown_extensions")


def test_python_tags_are_kept_as_strings(make_site):
    root = make_site(
        "site_name: X\n"
        "markdown_extensions:\n"
        "  - pymdownx.emoji:\n"
        "      emoji_index: !!python/name:material.extensions.emoji.twemoji\n"
        "  - pymdownx.superfences:\n"
        "      custom_fences:\n"
        "        - name: mermaid\n"
        "          class: mermaid\n"
        "          format: !!python/name:pymdownx.superfences.fence_code_format\n"
    )
    config = load_config(root)
    emoji_options = config.markdown_extensions[0].options
    assert emoji_options["emoji_index"].startswith("!!python/name:material")
    fence = config.markdown_extensions[1].options["custom_fences"][0]
    assert fence["name"] == "mermaid"


def test_env_tag(make_site, monkeypatch):
    monkeypatch.setenv("FOLIO_SITE_URL", "https://docs.example.com")
    root = make_site(
        "site_name: X\n"
        "site_url: !ENV FOLIO_SITE_URL\n"
        "copyright: !ENV [FOLIO_UNSET_VAR, 'Default notice']\n"
    )
    config = load_config(root)
    assert config.site_url == "https://docs.example.com"
    assert config.copyright == "Default notice"


def test_theme_options(make_site):
    root = make_site(
        "site_name: X\n"
        "theme:\n"
        "  name: material\n"
        "  custom_dir: overrides\n"
        "  palette:\n"
        "    primary: indigo\n"
        "  features: [navigation.tabs]\n"
    )
    theme = load_config(root).theme
    assert theme.name == "material"
    assert theme.custom_dir == root.resolve() / "overrides"
    assert theme.options["palette"] == {"primary": "indigo"}
    assert "name" not in theme.options


def test_theme_as_plain_name(make_site):
    root = make_site("site_name: X\ntheme: default\n")
    assert load_config(root).theme.name == "default"


def test_config_is_immutable(make_site):
    root = make_site("site_name: X\n")
    config = load_config(root)
    with pytest.raises(Exception):
        config.site_name = "Y"  # type: ignore[misc]
    assert isinstance(config.root, Path)
