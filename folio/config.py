"""Site configuration loading for Folio.

The configuration is a single YAML file at the input root. It declares the
site metadata, the navigation tree, the theme, the ordered list of Markdown
extensions and the static directories to copy.

Key definitions:
- SiteConfig: Immutable, validated configuration for one build.
- ThemeConfig: Theme selection plus opaque theme options.
- ExtensionSpec: A named extension or plugin with opaque options.
- load_config: Locate, parse and validate the configuration file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import ConfigurationError
from .navigation import NavEntry, parse_nav
from .utils import normalize_doc_path

CONFIG_FILENAMES = ("folio.yaml", "folio.yml", "mkdocs.yml", "mkdocs.yaml")

DEFAULT_CONFIG: dict[str, Any] = {
    "site_url": "",
    "site_description": "",
    "site_author": "",
    "copyright": "",
    "docs_dir": "docs",
    "site_dir": "site",
    "nav": None,
    "theme": {"name": "default"},
    "markdown_extensions": [],
    "plugins": [],
    "static_dirs": [],
    "extra_css": [],
    "extra_javascript": [],
    "extra": {},
}


class ConfigLoader(yaml.SafeLoader):
    """YAML loader for site configuration files.

    Behaves like ``yaml.SafeLoader`` but tolerates ``!!python/...`` tags
    (kept as opaque strings, never imported) and resolves ``!ENV`` tags
    from the process environment.
    """


def _construct_python_tag(loader: ConfigLoader, suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
        return f"!!python/{suffix}{value}"
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_mapping(node, deep=True)


def _construct_env(loader: ConfigLoader, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        names = [loader.construct_scalar(node)]
        default = None
    else:
        values = loader.construct_sequence(node)
        names, default = [str(v) for v in values[:-1]], values[-1]
    for name in names:
        if name in os.environ:
            return yaml.safe_load(os.environ[name])
    return default


ConfigLoader.add_multi_constructor("tag:yaml.org,2002:python/", _construct_python_tag)
ConfigLoader.add_constructor("!ENV", _construct_env)


@dataclass(frozen=True)
class ExtensionSpec:
    """A named Markdown extension or build plugin.

    Attributes:
        name: Identifier as written in the configuration.
        options: Extension-specific settings, passed through verbatim.
    """

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ThemeConfig:
    """Theme selection.

    Attributes:
        name: Built-in theme name, or None when only ``custom_dir`` is used.
        custom_dir: Optional template override directory (absolute).
        options: Every other theme key, exposed to templates as ``theme``.
    """

    name: str | None = "default"
    custom_dir: Path | None = None
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SiteConfig:
    """Validated site configuration, read-only during rendering.

    Attributes:
        site_name: Human-readable name of the site.
        site_url: Canonical base URL, or empty string.
        site_description: Optional description for meta tags.
        site_author: Optional author for meta tags.
        copyright: Optional footer text.
        root: Input root directory.
        config_file: Path of the parsed configuration file.
        docs_dir: Directory containing the Markdown sources.
        site_dir: Default output directory.
        nav: Explicit navigation tree, or None for automatic navigation.
        theme: Theme selection.
        markdown_extensions: Ordered rendering extensions.
        plugins: Ordered build plugins.
        static_dirs: Directories copied verbatim into the output.
        extra_css: Stylesheets added to every page.
        extra_javascript: Scripts added to every page.
        extra: Opaque mapping exposed to templates.
    """

    site_name: str
    root: Path
    config_file: Path
    docs_dir: Path
    site_dir: Path
    site_url: str = ""
    site_description: str = ""
    site_author: str = ""
    copyright: str = ""
    nav: tuple[NavEntry, ...] | None = None
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    markdown_extensions: tuple[ExtensionSpec, ...] = ()
    plugins: tuple[ExtensionSpec, ...] = ()
    static_dirs: tuple[str, ...] = ()
    extra_css: tuple[str, ...] = ()
    extra_javascript: tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    def has_plugin(self, name: str) -> bool:
        return any(spec.name == name for spec in self.plugins)


def find_config_file(root: Path) -> Path:
    """Return the configuration file inside ``root``.

    Raises:
        ConfigurationError: If none of the known file names exists.
    """
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        f"No configuration file found (looked for {', '.join(CONFIG_FILENAMES)})",
        path=root,
    )


def read_config_file(config_path: Path) -> dict[str, Any]:
    """Parse a configuration file into a dictionary with defaults applied.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.load(f, Loader=ConfigLoader)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML: {exc}", path=config_path) from exc
    except UnicodeDecodeError as exc:
        raise ConfigurationError("File is not valid UTF-8", path=config_path) from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            "Top level of the configuration must be a mapping", path=config_path
        )
    config = dict(DEFAULT_CONFIG)
    config.update({k: v for k, v in loaded.items() if v is not None or k == "nav"})
    return config


def load_config(root: Path, config_file: Path | None = None) -> SiteConfig:
    """Load and validate the site configuration.

    Args:
        root: Input root directory.
        config_file: Optional explicit configuration file path.

    Returns:
        The validated SiteConfig.

    Raises:
        ConfigurationError: If the file is missing, unparsable or inconsistent.
    """
    root = root.resolve()
    config_path = config_file or find_config_file(root)
    raw = read_config_file(config_path)

    site_name = raw.get("site_name")
    if not isinstance(site_name, str) or not site_name.strip():
        raise ConfigurationError("'site_name' is required", path=config_path)

    try:
        nav = parse_nav(raw["nav"]) if raw["nav"] is not None else None
    except ConfigurationError as exc:
        raise ConfigurationError(f"Invalid 'nav': {exc.message}", path=config_path) from exc

    return SiteConfig(
        site_name=site_name.strip(),
        root=root,
        config_file=config_path,
        docs_dir=_resolve_docs_dir(root, raw, config_path),
        site_dir=root / _require_str(raw, "site_dir", config_path),
        site_url=_require_str(raw, "site_url", config_path),
        site_description=_require_str(raw, "site_description", config_path),
        site_author=_require_str(raw, "site_author", config_path),
        copyright=_require_str(raw, "copyright", config_path),
        nav=nav,
        theme=_parse_theme(raw["theme"], root, config_path),
        markdown_extensions=parse_extension_specs(
            raw["markdown_extensions"], "markdown_extensions", config_path
        ),
        plugins=parse_extension_specs(raw["plugins"], "plugins", config_path),
        static_dirs=tuple(
            normalize_doc_path(d)
            for d in _require_str_list(raw, "static_dirs", config_path)
        ),
        extra_css=_require_str_list(raw, "extra_css", config_path),
        extra_javascript=_require_str_list(raw, "extra_javascript", config_path),
        extra=MappingProxyType(_require_mapping(raw, "extra", config_path)),
    )


def parse_extension_specs(
    raw: Any, key: str, config_path: Path | None = None
) -> tuple[ExtensionSpec, ...]:
    """Convert a list of extension entries into ExtensionSpec objects.

    Each entry is either a bare name or a one-key mapping of name to options.

    Examples:
        >>> parse_extension_specs(["admonition", {"toc": {"permalink": True}}], "x")
        (ExtensionSpec(name='admonition', options={}), ExtensionSpec(name='toc', options={'permalink': True}))
    """
    if not isinstance(raw, list):
        raise ConfigurationError(f"'{key}' must be a list", path=config_path)
    specs: list[ExtensionSpec] = []
    for item in raw:
        if isinstance(item, str):
            specs.append(ExtensionSpec(item, {}))
            continue
        if isinstance(item, dict) and len(item) == 1:
            name, options = next(iter(item.items()))
            if options is None:
                options = {}
            if isinstance(name, str) and isinstance(options, dict):
                specs.append(ExtensionSpec(name, options))
                continue
        raise ConfigurationError(
            f"Invalid entry in '{key}': {item!r}", path=config_path
        )
    return tuple(specs)


def _resolve_docs_dir(root: Path, raw: dict[str, Any], config_path: Path) -> Path:
    docs_dir = root / _require_str(raw, "docs_dir", config_path)
    if docs_dir.is_dir():
        return docs_dir
    if raw["docs_dir"] != DEFAULT_CONFIG["docs_dir"]:
        raise ConfigurationError(
            f"docs_dir '{raw['docs_dir']}' does not exist", path=config_path
        )
    return root


def _parse_theme(raw: Any, root: Path, config_path: Path) -> ThemeConfig:
    if isinstance(raw, str):
        return ThemeConfig(name=raw)
    if not isinstance(raw, dict):
        raise ConfigurationError("'theme' must be a name or a mapping", path=config_path)
    options = {k: v for k, v in raw.items() if k not in ("name", "custom_dir")}
    name = raw.get("name", "default")
    custom_dir = raw.get("custom_dir")
    if name is not None and not isinstance(name, str):
        raise ConfigurationError("'theme.name' must be a string", path=config_path)
    if custom_dir is not None and not isinstance(custom_dir, str):
        raise ConfigurationError("'theme.custom_dir' must be a string", path=config_path)
    if name is None and custom_dir is None:
        raise ConfigurationError(
            "'theme' needs a name or a custom_dir", path=config_path
        )
    return ThemeConfig(
        name=name,
        custom_dir=root / custom_dir if custom_dir else None,
        options=MappingProxyType(options),
    )


def _require_str(raw: dict[str, Any], key: str, config_path: Path) -> str:
    value = raw.get(key, DEFAULT_CONFIG.get(key, ""))
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"'{key}' must be a string", path=config_path)
    return value


def _require_str_list(raw: dict[str, Any], key: str, config_path: Path) -> tuple[str, ...]:
    value = raw.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{key}' must be a list of strings", path=config_path)
    return tuple(value)


def _require_mapping(raw: dict[str, Any], key: str, config_path: Path) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' must be a mapping", path=config_path)
    return value
