import socket
import threading
import time
import urllib.error
import urllib.request
from http.server import BaseHTTPRequestHandler

import pytest

from quill.server import (
    DevServer,
    Debouncer,
    Op,
    _ChangeHandler,
    _StaticHTTPServer,
    _event_ops,
    parse_addr,
    should_rebuild,
)


class DummyEvent:
    def __init__(self, event_type, path, dest_path="", is_directory=False):
        self.event_type = event_type
        self.src_path = path
        self.dest_path = dest_path
        self.is_directory = is_directory


@pytest.mark.parametrize(
    "path, op, expected",
    [
        ("pages/index.md", Op.CREATE, True),
        ("pages/index.md", Op.WRITE, True),
        ("pages/index.md", Op.REMOVE, True),
        ("pages/index.md", Op.RENAME, False),
        ("pages/index.md", Op.CHMOD, False),
        ("pages/index.md", Op.WRITE | Op.CHMOD, True),
        ("pages/.DS_Store", Op.WRITE, False),
        ("pages/4913", Op.CREATE, False),
        ("pages/index.md~", Op.WRITE, False),
    ],
)
def test_should_rebuild(path, op, expected):
    assert should_rebuild(path, op) is expected


def test_event_ops_maps_moves_to_rename_and_create():
    event = DummyEvent("moved", "pages/a.md", dest_path="pages/b.md")
    assert _event_ops(event) == [("pages/a.md", Op.RENAME), ("pages/b.md", Op.CREATE)]


def test_event_ops_ignores_directory_modifications():
    assert _event_ops(DummyEvent("modified", "pages", is_directory=True)) == []
    assert _event_ops(DummyEvent("created", "pages/new", is_directory=True)) == [
        ("pages/new", Op.CREATE)
    ]
    assert _event_ops(DummyEvent("opened", "pages/a.md")) == []


def test_change_handler_filters_events():
    calls = []
    handler = _ChangeHandler(lambda: calls.append(1))

    handler.on_any_event(DummyEvent("modified", "pages/index.md~"))
    handler.on_any_event(DummyEvent("created", "static/4913"))
    assert not calls

    handler.on_any_event(DummyEvent("modified", "pages/index.md"))
    handler.on_any_event(DummyEvent("moved", "pages/a.md", dest_path="pages/b.md"))
    assert len(calls) == 2


def test_debouncer_coalesces_bursts():
    runs = []
    done = threading.Event()

    def action():
        runs.append(time.monotonic())
        done.set()

    debouncer = Debouncer(action, delay=0.05)
    debouncer.start()
    try:
        for _ in range(5):
            debouncer.trigger()
            time.sleep(0.01)
        assert done.wait(2)
        time.sleep(0.15)
        assert len(runs) == 1
    finally:
        debouncer.stop()


def test_debouncer_survives_failing_action():
    attempts = []
    second = threading.Event()

    def action():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        second.set()

    debouncer = Debouncer(action, delay=0.01)
    debouncer.start()
    try:
        debouncer.trigger()
        deadline = time.monotonic() + 2
        while not attempts and time.monotonic() < deadline:
            time.sleep(0.01)
        debouncer.trigger()
        assert second.wait(2)
    finally:
        debouncer.stop()


def test_debouncer_stop_drops_pending_trigger():
    runs = []
    debouncer = Debouncer(lambda: runs.append(1), delay=0.2)
    debouncer.start()
    debouncer.trigger()
    debouncer.stop(timeout=1)
    time.sleep(0.3)
    assert runs == []


def test_debouncer_never_overlaps_runs():
    runs = []
    active = []
    overlap = []
    entered = threading.Event()
    release = threading.Event()
    second = threading.Event()

    def action():
        active.append(1)
        if len(active) > 1:
            overlap.append(len(active))
        runs.append(1)
        try:
            if len(runs) == 1:
                entered.set()
                assert release.wait(5)
            else:
                second.set()
        finally:
            active.pop()

    debouncer = Debouncer(action, delay=0.01)
    debouncer.start()
    try:
        debouncer.trigger()
        assert entered.wait(2)
        for _ in range(3):
            debouncer.trigger()
            time.sleep(0.02)
        release.set()
        assert second.wait(2)
        time.sleep(0.1)
        assert len(runs) == 2
        assert overlap == []
    finally:
        release.set()
        debouncer.stop()


def test_debouncer_stop_waits_for_running_action():
    entered = threading.Event()
    release = threading.Event()
    finished = []

    def action():
        entered.set()
        assert release.wait(5)
        finished.append(1)

    debouncer = Debouncer(action, delay=0.01)
    debouncer.start()
    debouncer.trigger()
    assert entered.wait(2)

    stopper = threading.Thread(target=debouncer.stop, daemon=True)
    stopper.start()
    time.sleep(0.1)
    assert stopper.is_alive()

    release.set()
    stopper.join(5)
    assert not stopper.is_alive()
    assert finished == [1]



def test_parse_addr():
    assert parse_addr("localhost:3000") == ("localhost", 3000)
    assert parse_addr(":0") == ("", 0)
    assert parse_addr("[::1]:8080") == ("::1", 8080)
    with pytest.raises(ValueError):
        parse_addr("localhost")
    with pytest.raises(ValueError):
        parse_addr("localhost:http")


def test_rebuild_logs_failures(site, caplog):
    def failing_build(config):
        raise RuntimeError("template exploded")

    server = DevServer(site.config(), build=failing_build)
    assert server.rebuild() is False
    assert "template exploded" in caplog.text


class RunningServer:
    """Runs a DevServer on an ephemeral port for the duration of a test."""

    def __init__(self, server):
        self.server = server
        self.stop_event = threading.Event()
        self.ready = threading.Event()
        self.address = None
        self.error = None
        server.on_ready = self._on_ready
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _on_ready(self, address):
        self.address = address
        self.ready.set()

    def _run(self):
        try:
            self.server.serve(self.stop_event)
        except Exception as exc:  # surfaced by the test
            self.error = exc
            self.ready.set()

    def __enter__(self):
        self.thread.start()
        assert self.ready.wait(10)
        assert self.error is None
        return self

    def __exit__(self, *exc):
        self.stop_event.set()
        self.thread.join(10)

    def request(self, path, method="GET"):
        host, port = self.address
        req = urllib.request.Request(f"http://{host}:{port}{path}", method=method)
        try:
            with urllib.request.urlopen(req, timeout=5) as resp:
                return resp.status, resp.read(), resp.headers
        except urllib.error.HTTPError as exc:
            return exc.code, exc.read(), exc.headers


@pytest.fixture
def served_site(site):
    site.template("layout", "{{ content(page) }}")
    site.page("index.html", "<p>home</p>", title="Home", template="layout", permalink="/")
    site.page("foo.html", "<p>foo</p>", title="Foo", template="layout", permalink="/foo.html")
    site.page("blog/post.html", "<p>post</p>", title="Post", template="layout", permalink="/blog/post")
    site.page("404.html", "<p>not here</p>", title="404", template="layout", permalink="/404.html")
    return site


def test_dev_server_serves_built_site(served_site):
    server = DevServer(served_site.config(skip_feed=True), "127.0.0.1:0", debounce_delay=0.01)
    with RunningServer(server) as running:
        status, body, headers = running.request("/")
        assert status == 200
        assert body == b"<p>home</p>"
        assert "no-cache" in headers["Cache-Control"]

        assert running.request("/foo")[:2] == (200, b"<p>foo</p>")
        assert running.request("/foo.html")[:2] == (200, b"<p>foo</p>")
        assert running.request("/blog/post")[:2] == (200, b"<p>post</p>")
        assert running.request("/blog/post/")[:2] == (200, b"<p>post</p>")
        assert running.request("/blog/post/index.html")[:2] == (200, b"<p>post</p>")


def test_dev_server_answers_missing_paths_with_404_page(served_site):
    server = DevServer(served_site.config(skip_feed=True), "127.0.0.1:0")
    with RunningServer(server) as running:
        assert running.request("/missing")[:2] == (404, b"<p>not here</p>")
        # Directories without an index.html are not listed.
        assert running.request("/blog/")[:2] == (404, b"<p>not here</p>")
        assert running.request("/blog")[:2] == (404, b"<p>not here</p>")

        status, body, _ = running.request("/missing", method="HEAD")
        assert status == 404
        assert body == b""


def test_dev_server_generic_404_without_error_page(site):
    site.template("layout", "{{ content(page) }}")
    site.page("index.html", "<p>home</p>", title="Home", template="layout", permalink="/")
    server = DevServer(site.config(skip_feed=True), "127.0.0.1:0")
    with RunningServer(server) as running:
        status, body, _ = running.request("/missing")
        assert status == 404
        assert b"not here" not in body


def test_dev_server_starts_after_failed_build(site):
    site.page("index.html", "hi", title="Home", template="missing", permalink="/")
    server = DevServer(site.config(skip_feed=True), "127.0.0.1:0")
    with RunningServer(server) as running:
        assert running.request("/")[0] == 404


def test_dev_server_rebuilds_on_change(served_site):
    config = served_site.config(skip_feed=True)
    server = DevServer(config, "127.0.0.1:0", debounce_delay=0.05)
    with RunningServer(server) as running:
        served_site.page("foo.html", "<p>changed</p>", title="Foo", template="layout", permalink="/foo.html")
        deadline = time.monotonic() + 10
        body = b""
        while time.monotonic() < deadline:
            body = running.request("/foo")[1]
            if body == b"<p>changed</p>":
                break
            time.sleep(0.1)
        assert body == b"<p>changed</p>"


def test_dev_server_bind_failure(served_site):
    blocker = DevServer(served_site.config(skip_feed=True), "127.0.0.1:0")
    with RunningServer(blocker) as running:
        host, port = running.address
        second = DevServer(served_site.config(skip_feed=True), f"{host}:{port}")
        with pytest.raises(OSError):
            second.serve(threading.Event())


def test_static_http_server_waits_for_inflight_requests():
    entered = threading.Event()
    release = threading.Event()

    class SlowHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            entered.set()
            release.wait(5)
            self.send_response(200)
            self.send_header("Content-Length", "2")
            self.end_headers()
            self.wfile.write(b"ok")

        def log_message(self, format, *args):
            pass

    httpd = _StaticHTTPServer(("127.0.0.1", 0), SlowHandler)
    serving = threading.Thread(target=httpd.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    serving.start()
    host, port = httpd.server_address[:2]
    responses = []

    def fetch():
        with urllib.request.urlopen(f"http://{host}:{port}/", timeout=5) as resp:
            responses.append((resp.status, resp.read()))

    client = threading.Thread(target=fetch, daemon=True)
    client.start()
    try:
        assert entered.wait(5)
        httpd.shutdown()
        serving.join(5)
        assert httpd.wait_idle(0.1) is False

        release.set()
        assert httpd.wait_idle(5) is True
        client.join(5)
        assert responses == [(200, b"ok")]
    finally:
        release.set()
        httpd.server_close()


def test_dev_server_finishes_inflight_request_on_shutdown(served_site):
    server = DevServer(served_site.config(skip_feed=True), "127.0.0.1:0", shutdown_timeout=10)
    with RunningServer(server) as running:
        conn = socket.create_connection(running.address, timeout=5)
        # Only the request line; the handler waits for the end of the headers.
        conn.sendall(b"GET / HTTP/1.0\r\n")
        time.sleep(0.3)

        running.stop_event.set()
        time.sleep(0.3)
        assert running.thread.is_alive()

        conn.sendall(b"\r\n")
        chunks = []
        while True:
            chunk = conn.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
        conn.close()
        response = b"".join(chunks)
        assert response.startswith(b"HTTP/1.0 200")
        assert response.endswith(b"<p>home</p>")

        running.thread.join(10)
        assert not running.thread.is_alive()
        assert running.error is None
