"""Folio static documentation site generator.

This package compiles a tree of Markdown documents plus one YAML site
configuration (navigation tree, theme, Markdown extensions, static
directories) into a navigable static HTML site.

The pipeline is one-directional:
- Content loading: configuration and documents are read from the input root.
- Site rendering: every document is rendered through the configured extension
  passes, wrapped in the theme template and written to the output directory.

The main entry point is the CLI module, which provides commands for
scaffolding a new site, building it and serving it with live reload.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
