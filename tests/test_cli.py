from click.testing import CliRunner

from folio import __version__
from folio.cli import cli
from folio.errors import ConfigurationError


def test_cli_new_scaffolds_buildable_site(tmp_path):
    runner = CliRunner()
    target = tmp_path / "my-docs"
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code == 0
    assert "New Folio site created" in result.output
    assert "site_name: My Docs" in (target / "folio.yaml").read_text(encoding="utf-8")
    assert (target / "docs" / "index.md").exists()

    out = tmp_path / "out"
    result = runner.invoke(cli, ["build", "--input", str(target), "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert "Built 1 pages" in result.output
    index = (out / "index.html").read_text(encoding="utf-8")
    assert '<div class="admonition tip">' in index
    assert (out / "search" / "search_index.json").exists()

    # refuses a non-empty directory
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_cli_build_reports_pages_and_orphans(make_site, tmp_path):
    root = make_site(
        "site_name: Test\nnav:\n  - Home: index.md\n  - About: about.md\n",
        {
            "docs/index.md": "# Home\n",
            "docs/about.md": "# About\n",
            "docs/notes.md": "# Notes\n",
        },
    )
    out = tmp_path / "out"
    result = CliRunner().invoke(cli, ["build", "--input", str(root), "--output", str(out)])
    assert result.exit_code == 0
    assert f"Built 3 pages into {out.resolve()}" in result.output
    assert "1 pages are not included in the navigation:" in result.output
    assert "  notes.md" in result.output
    for page in ("index.html", "about.html", "notes.html"):
        assert f"  {page}\n" in result.output
    assert result.output.index("  index.html") < result.output.index("  about.html")


def test_cli_build_uses_current_directory(make_site, monkeypatch):
    root = make_site("site_name: Test\n", {"docs/index.md": "# Home\n"})
    monkeypatch.chdir(root)
    result = CliRunner().invoke(cli, ["build", "--workers", "2"])
    assert result.exit_code == 0
    assert (root / "site" / "index.html").exists()


def test_cli_build_configuration_error(make_site, tmp_path):
    root = make_site(
        "site_name: Test\nnav:\n  - Missing: missing.md\n", {"docs/index.md": "# Home\n"}
    )
    result = CliRunner().invoke(
        cli, ["build", "--input", str(root), "--output", str(tmp_path / "out")]
    )
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "missing.md" in result.output
    assert not (tmp_path / "out").exists()


def test_cli_build_error_location_is_not_resolved_against_cwd(make_site, tmp_path, monkeypatch):
    root = make_site(
        "site_name: Test\nnav:\n  - Missing: missing.md\n", {"docs/index.md": "# Home\n"}
    )
    monkeypatch.chdir(root / "docs")
    result = CliRunner().invoke(
        cli, ["build", "--input", str(root), "--output", str(tmp_path / "out")]
    )
    assert result.exit_code == 1
    assert "  File: missing.md\n" in result.output
    assert "docs/missing.md" not in result.output


def test_cli_build_template_error_names_template(make_site, tmp_path):
    root = make_site(
        "site_name: Test\ntheme:\n  custom_dir: overrides\n",
        {"docs/index.md": "# Home\n", "overrides/main.html": "{% for %}"},
    )
    result = CliRunner().invoke(
        cli, ["build", "--input", str(root), "--output", str(tmp_path / "out")]
    )
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "main.html" in result.output


def test_cli_build_skipped_pages_exit_nonzero(make_site, tmp_path):
    root = make_site(
        "site_name: Test\n",
        {"docs/index.md": "# Home\n", "docs/bad.md": b"\xff\xfe"},
    )
    out = tmp_path / "out"
    result = CliRunner().invoke(cli, ["build", "--input", str(root), "--output", str(out)])
    assert result.exit_code == 1
    assert "Built 1 pages" in result.output
    assert "Skipped 1 pages:" in result.output
    assert "bad.md" in result.output
    assert (out / "index.html").exists()


def test_cli_serve_passes_ports(monkeypatch, tmp_path):
    called = {}

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["root"] = root
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self):
            called["started"] = True

    monkeypatch.setattr("folio.server.DevServer", DummyServer)
    result = CliRunner().invoke(
        cli,
        ["serve", "--input", str(tmp_path), "--port", "5050", "--ws-port", "5051"],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    assert called == {
        "root": tmp_path.resolve(),
        "port": 5050,
        "ws_port": 5051,
        "started": True,
    }


def test_cli_serve_reports_configuration_errors(monkeypatch, tmp_path):
    class FailingServer:
        def __init__(self, root, http_port=None, ws_port=None):
            raise ConfigurationError("No configuration file found", path=root)

    monkeypatch.setattr("folio.server.DevServer", FailingServer)
    result = CliRunner().invoke(cli, ["serve", "--input", str(tmp_path)])
    assert result.exit_code == 1
    assert "No configuration file found" in result.output


def test_cli_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"folio, version {__version__}" in result.output


def test_module_main_entrypoint():
    from folio.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import folio.cli as cli_mod

    called = {}
    monkeypatch.setattr(cli_mod, "cli", lambda: called.setdefault("ran", True))
    cli_mod.main()
    assert called["ran"]
