from pathlib import Path

import pytest


@pytest.fixture
def make_site(tmp_path):
    """Return a factory writing a site (config plus docs files) under tmp_path."""

    def _make(config: str, files: dict[str, str | bytes] | None = None, root: Path | None = None) -> Path:
        site_root = root or tmp_path / "project"
        site_root.mkdir(parents=True, exist_ok=True)
        (site_root / "folio.yaml").write_text(config, encoding="utf-8")
        for rel, content in (files or {}).items():
            target = site_root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        return site_root

    return _make
