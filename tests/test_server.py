import asyncio

import pytest
import websockets

from folio.errors import ConfigurationError
from folio.server import DevServer, _ChangeHandler, _ReloadHandler

SITE = "site_name: Test\nnav:\n  - Home: index.md\n"


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


@pytest.fixture
def server(make_site):
    root = make_site(SITE, {"docs/index.md": "# Home\n"})
    dev = DevServer(root)
    yield dev
    dev.stop()


def test_dev_server_requires_configuration(tmp_path):
    with pytest.raises(ConfigurationError):
        DevServer(tmp_path)


def test_dev_server_port_override(make_site):
    root = make_site(SITE, {"docs/index.md": "# Home\n"})
    server = DevServer(root, http_port=5055)
    assert server.ws_port == 5056
    server.stop()

    explicit = DevServer(root, http_port=5055, ws_port=6000)
    assert f":{explicit.ws_port}" in explicit._reload_script
    explicit.stop()


def test_output_is_private_to_the_server(server):
    assert server.output_dir.parent == server._work_dir
    assert server.output_dir != server.config.site_dir


def test_build_swaps_staging_into_place(server):
    server.build()
    assert (server.output_dir / "index.html").exists()
    assert not server._staging_dir.exists()
    assert not server.config.site_dir.exists()

    server.build()
    assert (server.output_dir / "index.html").exists()


def test_activate_staging_replaces_non_empty_output(server):
    server.output_dir.mkdir(parents=True)
    (server.output_dir / "old.html").write_text("old", encoding="utf-8")
    staging = server._prepare_staging_dir()
    (staging / "new.html").write_text("new", encoding="utf-8")
    server._activate_staging(staging)
    assert [p.name for p in server.output_dir.iterdir()] == ["new.html"]


def test_change_handler_skips_work_dir_and_dotfiles(server):
    calls = []
    server.rebuild = lambda: calls.append("rebuild")
    handler = _ChangeHandler(server)

    handler.on_any_event(DummyEvent(str(server._staging_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(server.config.docs_dir / ".index.md.swp")))
    handler.on_any_event(DummyEvent(str(server.config.docs_dir), is_directory=True))
    assert calls == []

    handler.on_any_event(DummyEvent(str(server.config.docs_dir / "index.md")))
    assert calls == ["rebuild"]


def test_watched_paths(make_site):
    root = make_site(
        SITE + "static_dirs: [extras]\ntheme:\n  custom_dir: overrides\n",
        {"docs/index.md": "# Home\n", "extras/a.txt": "a", "overrides/main.html": "x"},
    )
    server = DevServer(root)
    try:
        resolved = root.resolve()
        assert server.watched_paths() == [
            resolved / "docs",
            resolved / "extras",
            resolved / "overrides",
        ]
    finally:
        server.stop()


def test_rebuild_broadcasts_after_build(monkeypatch, server):
    calls = []
    monkeypatch.setattr(server, "build", lambda: calls.append("build"))
    monkeypatch.setattr(server, "_broadcast_reload", lambda: calls.append("reload"))
    slept = []
    monkeypatch.setattr("folio.server.time.sleep", lambda secs: slept.append(secs))

    server.rebuild()
    assert calls == ["build", "reload"]
    assert slept == [server._post_build_delay]
    assert server._last_signature is not None


def test_rebuild_skips_unchanged_sources(monkeypatch, server):
    calls = []
    monkeypatch.setattr(server, "build", lambda: calls.append("build"))
    monkeypatch.setattr(server, "_broadcast_reload", lambda: calls.append("reload"))
    server._last_signature = server._compute_signature()
    server.rebuild()
    assert calls == []


def test_rebuild_guard(monkeypatch, server):
    calls = []
    monkeypatch.setattr(server, "build", lambda: calls.append("build"))
    server._rebuilding = True
    server.rebuild()
    assert calls == []


def test_rebuild_failure_keeps_serving(monkeypatch, server, capsys):
    def failing_build(*args, **kwargs):
        raise ConfigurationError("broken nav", path="missing.md")

    reloads = []
    monkeypatch.setattr("folio.server.build_site", failing_build)
    monkeypatch.setattr(server, "_broadcast_reload", lambda: reloads.append(True))
    server.rebuild()
    assert reloads == []
    assert server._last_signature is None
    assert not server._rebuilding
    assert "Build failed: missing.md: broken nav" in capsys.readouterr().err


def test_async_broadcast_drops_closed_clients(server):
    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class ClosedWS:
        async def send(self, msg):
            raise websockets.ConnectionClosed(None, None)

    good = GoodWS()
    closed = ClosedWS()
    server._ws_clients = {good, closed}
    asyncio.run(server._async_broadcast("hello"))
    assert good.messages == ["hello"]
    assert server._ws_clients == {good}


def test_reload_handler_injects_script():
    handler = object.__new__(_ReloadHandler)
    handler.reload_script = "<script>reload()</script>"
    assert handler._inject("<html><body>Hi</body></html>") == (
        b"<html><body>Hi<script>reload()</script></body></html>"
    )
    assert handler._inject("fragment") == b"fragment<script>reload()</script>"


def test_reload_handler_serves_custom_404(tmp_path):
    (tmp_path / "404.html").write_text("<body>Not here</body>", encoding="utf-8")
    handler = object.__new__(_ReloadHandler)
    handler.directory = str(tmp_path)
    handler.reload_script = "<script></script>"
    sent = []
    handler._send_html = lambda status, encoded: sent.append((status, encoded))
    handler._serve_404()
    assert sent == [(404, b"<body>Not here<script></script></body>")]
