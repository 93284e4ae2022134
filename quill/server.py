"""Development server for Quill.

Serves the built site and rebuilds it whenever a source file changes:
- Builds once on startup; a failed build is logged and the server still starts.
- Watches the pages, static and templates directories recursively.
- Collapses bursts of file events into one rebuild after a quiet period.
- Serves files from the output directory, mapping extensionless URLs to
  .html files or index.html, never listing directories and answering
  missing paths with 404.html when present.

Key classes:
- DevServer: Runs the build, watcher and HTTP server until stopped.
- Debouncer: Runs an action once events have been quiet for a while.
- _StaticHandler: HTTP request handler mapping URLs to built files.
- _ChangeHandler: File system event handler scheduling rebuilds.

Key functions:
- should_rebuild: Decide whether a file system event warrants a rebuild.
"""

from __future__ import annotations

import enum
import logging
import os
import posixpath
import threading
import time
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import Config

logger = logging.getLogger(__name__)

DEBOUNCE_DELAY = 0.25
SHUTDOWN_TIMEOUT = 30.0
DEFAULT_ADDR = "localhost:3000"
NOT_FOUND_PAGE = "404.html"


class Op(enum.Flag):
    """Kinds of file system operations reported by the watcher."""

    CREATE = enum.auto()
    WRITE = enum.auto()
    REMOVE = enum.auto()
    RENAME = enum.auto()
    CHMOD = enum.auto()


def should_rebuild(path: str, op: Op) -> bool:
    """Decide whether a file system event should trigger a rebuild.

    Args:
        path: Path of the changed file.
        op: Operation performed on it.

    Returns:
        True for creates, removes and writes of real files.
    """
    base = os.path.basename(path)

    # macOS folder metadata.
    if base == ".DS_Store":
        return False

    # Vim writes this file to probe whether a directory is writable.
    if base == "4913":
        return False

    # Vim backups.
    if base.endswith("~"):
        return False

    # Chmod doesn't change output; a rename is followed by a create.
    return bool(op & (Op.CREATE | Op.REMOVE | Op.WRITE))


def _event_ops(event: FileSystemEvent) -> list[tuple[str, Op]]:
    """Translate a watchdog event into (path, operation) pairs."""
    src = os.fsdecode(event.src_path)
    if event.event_type == "created":
        return [(src, Op.CREATE)]
    if event.event_type == "deleted":
        return [(src, Op.REMOVE)]
    if event.event_type == "modified":
        if event.is_directory:
            return []
        return [(src, Op.WRITE)]
    if event.event_type == "moved":
        # watchdog reports the rename target on the same event instead of a
        # separate create.
        return [(src, Op.RENAME), (os.fsdecode(event.dest_path), Op.CREATE)]
    return []


class Debouncer:
    """Runs an action once triggers have stopped arriving for a delay.

    Every trigger() pushes the deadline back to now + delay. The action runs
    on a single worker thread, so two runs never overlap; triggers that arrive
    while it runs schedule one more run afterwards.

    Attributes:
        delay: Quiet period in seconds.
    """

    def __init__(self, action: Callable[[], None], delay: float = DEBOUNCE_DELAY):
        self.delay = delay
        self._action = action
        self._cond = threading.Condition()
        self._deadline: float | None = None
        self._stopped = False
        self._thread = threading.Thread(target=self._run, name="quill-debounce", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def trigger(self) -> None:
        with self._cond:
            self._deadline = time.monotonic() + self.delay
            self._cond.notify()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the worker, letting a running action finish first.

        Pending triggers are dropped.
        """
        with self._cond:
            self._stopped = True
            self._cond.notify()
        if self._thread.is_alive():
            self._thread.join(timeout)

    def _wait_for_deadline(self) -> bool:
        with self._cond:
            while not self._stopped:
                if self._deadline is None:
                    self._cond.wait()
                    continue
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    self._deadline = None
                    return True
                self._cond.wait(remaining)
            return False

    def _run(self) -> None:
        while self._wait_for_deadline():
            try:
                self._action()
            except Exception:
                logger.exception("Debounced action failed")


class _StaticHandler(SimpleHTTPRequestHandler):
    """HTTP request handler serving the build output.

    "/" serves index.html. "/foo" serves foo.html when it exists, else
    foo/index.html. Other directories and missing files get a 404, with
    404.html as the body when the site has one. The output directory is read
    on every request.
    """

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - send_head answers directories first
        return self._serve_404()

    def _resolve(self, raw_path: str) -> str | None:
        """Map a request path to a path relative to the output directory."""
        path = unquote(urlsplit(raw_path).path)
        if "\x00" in path:
            return None
        if path == "/":
            path = "/index.html"
        rel = posixpath.normpath(path).lstrip("/")
        if rel in ("", "."):
            return None
        root = Path(self.directory)
        if (root / f"{rel}.html").is_file():
            rel += ".html"
        elif (root / rel / "index.html").is_file():
            # Extensionless permalinks are written to <permalink>/index.html.
            rel = posixpath.join(rel, "index.html")
        return rel

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / NOT_FOUND_PAGE
        if error_page.is_file():
            encoded = error_page.read_bytes()
            self.send_response(404)
            self.send_header("Content-type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(encoded)
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        rel = self._resolve(self.path)
        if rel is None:
            return self._serve_404()
        target = Path(self.directory) / rel
        if not target.exists() or target.is_dir():
            return self._serve_404()
        self.path = "/" + quote(rel)
        return super().send_head()


class _StaticHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server that can wait for in-flight requests."""

    daemon_threads = True
    # A second server on the same port must fail to bind.
    allow_reuse_port = False

    def __init__(self, *args, **kwargs):
        self._inflight = 0
        self._idle = threading.Condition()
        super().__init__(*args, **kwargs)

    def process_request(self, request, client_address):
        with self._idle:
            self._inflight += 1
        try:
            super().process_request(request, client_address)
        except Exception:
            self._finish_request()
            raise

    def process_request_thread(self, request, client_address):
        try:
            super().process_request_thread(request, client_address)
        finally:
            self._finish_request()

    def _finish_request(self) -> None:
        with self._idle:
            self._inflight -= 1
            self._idle.notify_all()

    def wait_idle(self, timeout: float) -> bool:
        """Wait until no request is being handled.

        Returns:
            False if requests were still running after timeout seconds.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._inflight == 0, timeout)


def parse_addr(addr: str) -> tuple[str, int]:
    """Split a host:port string.

    Examples:
        >>> parse_addr("localhost:3000")
        ('localhost', 3000)

        >>> parse_addr(":0")
        ('', 0)
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address {addr!r} is missing a port")
    try:
        return host.strip("[]"), int(port)
    except ValueError:
        raise ValueError(f"address {addr!r} has an invalid port") from None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, on_change: Callable[[], None]):
        super().__init__()
        self.on_change = on_change

    def on_any_event(self, event):
        for path, op in _event_ops(event):
            if should_rebuild(path, op):
                logger.info("Detected change %s (%s), scheduling rebuild.", path, op.name)
                self.on_change()
                return


class DevServer:
    """Development server that rebuilds the site on changes.

    Attributes:
        config: Build configuration; the output directory is served.
        addr: host:port to listen on; port 0 picks a free port.
        on_ready: Called with the bound (host, port) once the server is
            accepting connections and watching for changes.
        debounce_delay: Quiet period before a rebuild.
        shutdown_timeout: Seconds to wait for in-flight requests on shutdown.
    """

    def __init__(
        self,
        config: Config,
        addr: str = DEFAULT_ADDR,
        on_ready: Callable[[tuple[str, int]], None] | None = None,
        debounce_delay: float = DEBOUNCE_DELAY,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
        build: Callable[[Config], object] = build_site,
    ):
        self.config = config
        self.addr = addr
        self.on_ready = on_ready
        self.debounce_delay = debounce_delay
        self.shutdown_timeout = shutdown_timeout
        self._build = build
        self._serve_error: BaseException | None = None

    def rebuild(self) -> bool:
        """Build the site, logging instead of raising on failure.

        Returns:
            True if the build succeeded.
        """
        started = time.monotonic()
        try:
            self._build(self.config)
        except Exception as exc:
            logger.error("Failed to build the site: %s", exc)
            return False
        logger.info("Rebuilt the site in %.0f ms.", (time.monotonic() - started) * 1000)
        return True

    def _start_watcher(self, debouncer: Debouncer) -> Observer:
        handler = _ChangeHandler(debouncer.trigger)
        observer = Observer()
        for folder in self.config.watch_dirs:
            if not folder.is_dir():
                logger.warning("Not watching %s: no such directory.", folder)
                continue
            observer.schedule(handler, str(folder), recursive=True)
        observer.start()
        return observer

    def _make_http_server(self) -> _StaticHTTPServer:
        host, port = parse_addr(self.addr)
        output_dir = str(self.config.dst)

        class Handler(_StaticHandler):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, directory=output_dir, **kwargs)

        return _StaticHTTPServer((host, port), Handler)

    def _serve_http(self, httpd: _StaticHTTPServer, stop_event: threading.Event) -> None:
        try:
            httpd.serve_forever(poll_interval=0.1)
        except Exception as exc:
            self._serve_error = exc
            stop_event.set()

    def serve(self, stop_event: threading.Event) -> None:
        """Build, then serve and rebuild on changes until stop_event is set.

        Args:
            stop_event: Set it to shut the server down.

        Raises:
            OSError: If the listener cannot be bound.
            Exception: Any error that stopped the HTTP server unexpectedly.
        """
        logger.info("Performing an initial build...")
        self.rebuild()

        debouncer = Debouncer(self.rebuild, self.debounce_delay)
        debouncer.start()
        observer = self._start_watcher(debouncer)
        try:
            httpd = self._make_http_server()
        except BaseException:
            observer.stop()
            observer.join()
            debouncer.stop()
            raise

        http_thread = threading.Thread(
            target=self._serve_http, args=(httpd, stop_event), name="quill-http", daemon=True
        )
        http_thread.start()
        host, port = httpd.server_address[:2]
        logger.info("Listening on http://%s:%d...", host, port)
        logger.info("Started watching for new changes.")
        if self.on_ready is not None:
            self.on_ready((host, port))

        try:
            stop_event.wait()
        finally:
            logger.info("Gracefully shutting down...")
            observer.stop()
            observer.join()
            debouncer.stop()
            httpd.shutdown()
            http_thread.join()
            if not httpd.wait_idle(self.shutdown_timeout):
                logger.warning(
                    "Requests still running after %.0f s, closing anyway.", self.shutdown_timeout
                )
            httpd.server_close()

        if self._serve_error is not None:
            raise self._serve_error
