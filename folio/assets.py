"""Static asset copying for Folio.

Assets are copied verbatim into the output tree from three places, lowest
precedence first, so that site files override theme files:

1. the theme's ``assets/`` directories (copied to ``assets/``),
2. each configured ``static_dirs`` entry (copied to a directory of the same name),
3. the non-Markdown files of the docs directory (copied to the same relative path).
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

from .config import SiteConfig
from .errors import ConfigurationError
from .utils import is_hidden


class AssetPipeline:
    """Copies static assets into the output directory.

    Attributes:
        config: Site configuration naming the static directories.
        output_dir: Directory where assets are written.
        static_files: Docs-relative paths of the docs static files.
        theme_dirs: Theme asset directories, lowest precedence first.
    """

    def __init__(
        self,
        config: SiteConfig,
        output_dir: Path,
        static_files: Iterable[str] = (),
        theme_dirs: Iterable[Path] = (),
    ):
        """Initialize the asset pipeline.

        Args:
            config: Site configuration.
            output_dir: Directory where assets will be placed.
            static_files: Non-Markdown files of the docs directory.
            theme_dirs: Theme ``assets`` directories.
        """
        self.config = config
        self.output_dir = output_dir
        self.static_files = list(static_files)
        self.theme_dirs = list(theme_dirs)

    def validate(self) -> None:
        """Check that every configured static directory exists.

        Raises:
            ConfigurationError: If a static directory is missing.
        """
        for name in self.config.static_dirs:
            if not (self.config.root / name).is_dir():
                raise ConfigurationError(
                    f"static directory '{name}' does not exist",
                    path=self.config.config_file,
                )

    def run(self) -> list[str]:
        """Copy every asset.

        Returns:
            Sorted output-relative paths of the copied files.
        """
        self.validate()
        copied: set[str] = set()
        for theme_dir in self.theme_dirs:
            copied.update(self._copy_tree(theme_dir, "assets"))
        for name in self.config.static_dirs:
            copied.update(self._copy_tree(self.config.root / name, name))
        for rel in self.static_files:
            self._copy(self.config.docs_dir / rel, rel)
            copied.add(rel)
        return sorted(copied)

    def _copy_tree(self, source_dir: Path, prefix: str) -> list[str]:
        copied = []
        for item in sorted(source_dir.rglob("*")):
            rel = item.relative_to(source_dir)
            if item.is_dir() or is_hidden(rel):
                continue
            target = f"{prefix}/{rel.as_posix()}"
            self._copy(item, target)
            copied.append(target)
        return copied

    def _copy(self, source: Path, rel: str) -> None:
        dest = self.output_dir / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
