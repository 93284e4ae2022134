import signal

from click.testing import CliRunner

from quill import __version__
from quill.cli import cli


def make_project(site):
    site.template("layout", "{{ content(page) }}")
    site.page("index.md", "Foo.\n", title="Home", template="layout", permalink="/")
    site.page("post.md", "Post.\n", title="Post", template="layout", permalink="/post", type="post", draft=True)
    (site.src / "quill.yaml").write_text("title: Test\nbase_url: https://example.com\n", encoding="utf-8")
    return site


def test_cli_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_build_uses_project_config(monkeypatch, site):
    make_project(site)
    monkeypatch.chdir(site.src)

    result = CliRunner().invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 2 pages" in result.output
    assert (site.src / "build" / "index.html").read_text(encoding="utf-8") == "<p>Foo.</p>"
    assert (site.src / "build" / "feed.xml").exists()


def test_cli_build_flags(monkeypatch, site, tmp_path):
    make_project(site)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli, ["build", "--prod", "--skip-feed", "--src", "src", "public"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert "Built 1 pages" in result.output
    assert (tmp_path / "public" / "index.html").exists()
    assert not (tmp_path / "public" / "post").exists()
    assert not (tmp_path / "public" / "feed.xml").exists()


def test_cli_build_failure_is_reported(monkeypatch, site):
    site.page("index.md", "Foo.\n", title="Home", template="layout")
    site.template("layout", "{{ content(page) }}")
    monkeypatch.chdir(site.src)

    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "pages/index.md" in result.output
    assert "missing required front matter parameter: permalink" in result.output


def test_cli_build_rejects_invalid_config(monkeypatch, site):
    (site.src / "quill.yaml").write_text("base_url: not-a-url\n", encoding="utf-8")
    monkeypatch.chdir(site.src)

    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code != 0
    assert "Invalid configuration" in result.output


def test_cli_serve(monkeypatch, site):
    make_project(site)
    monkeypatch.chdir(site.src)
    called = {}

    class DummyServer:
        def __init__(self, config, addr):
            called["config"] = config
            called["addr"] = addr

        def serve(self, stop_event):
            called["stop_event"] = stop_event

    handlers = {}
    monkeypatch.setattr("quill.server.DevServer", DummyServer)
    monkeypatch.setattr(signal, "signal", lambda signum, handler: handlers.setdefault(signum, handler))

    result = CliRunner().invoke(cli, ["serve", "--listen", "127.0.0.1:4000", "out"], catch_exceptions=False)
    assert result.exit_code == 0
    assert called["addr"] == "127.0.0.1:4000"
    assert called["config"].dst == site.src / "out"
    assert called["config"].title == "Test"

    handlers[signal.SIGINT](signal.SIGINT, None)
    assert called["stop_event"].is_set()


def test_cli_serve_rejects_bad_listen_address(monkeypatch, site):
    monkeypatch.chdir(site.src)
    result = CliRunner().invoke(cli, ["serve", "--listen", "localhost"])
    assert result.exit_code == 2
    assert "missing a port" in result.output


def test_module_main_entrypoint():
    from quill.__main__ import main

    assert callable(main)
