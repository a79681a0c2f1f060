#!/usr/bin/env python3
"""
HTTP surface of the bulb agent

This module provides:
- BulbHTTPHandler: request handler exposing heartbeat, status and per-field routes
- render_status_page: HTML status page rendered from the packaged Jinja2 template
- create_agent_server: binds a ThreadingHTTPServer for a BulbStore
- start_agent_server: same, but serving from a daemon thread
"""

import functools
import json
import logging
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Dict, Union

from jinja2 import Environment, PackageLoader, select_autoescape

from ..bulb import Bulb, BulbStore, ValidationError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
HTML_CONTENT_TYPE = "text/html"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
_BODY_METHODS = {"POST", "PUT", "PATCH"}


@functools.lru_cache(maxsize=None)
def _get_template_env() -> Environment:
    return Environment(
        loader=PackageLoader("bulb_agent", "templates"),
        autoescape=select_autoescape(["html", "j2"]),
        keep_trailing_newline=True,
    )


def render_status_page(bulb: Bulb) -> str:
    """Render the HTML status page for a bulb snapshot."""
    template = _get_template_env().get_template("status.html.j2")
    return template.render(bulb=bulb)


def _quoted(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


# ---------------------------------------------------------------------------
# HTTP handler
# ---------------------------------------------------------------------------

def _make_handler(store: BulbStore):
    """Create a handler class bound to the given store instance."""

    class BulbHTTPHandler(BaseHTTPRequestHandler):

        routes: Dict[str, str] = {
            "/heartbeat": "_heartbeat",
            "/status": "_status",
            "/name": "_name",
            "/color": "_color",
            "/brightness": "_brightness",
        }

        def log_message(self, format, *args):
            # Route the access log through logging instead of stderr
            logger.debug("%s - %s", self.address_string(), format % args)

        def _respond(self, body: Union[str, bytes], status: int = 200,
                     content_type: str = JSON_CONTENT_TYPE):
            if isinstance(body, str):
                body = body.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(body)

        def _json_error(self, message: str, status: int = 400):
            self._respond(json.dumps({"error": message}) + "\n", status=status)

        def _read_form(self) -> Dict[str, list]:
            """Parse form values: urlencoded body first, then the query string."""
            form: Dict[str, list] = {}
            if self.command in _BODY_METHODS:
                try:
                    length = int(self.headers.get("Content-Length") or 0)
                except ValueError:
                    length = 0
                raw = self.rfile.read(length) if length > 0 else b""
                ctype = (self.headers.get("Content-Type") or "").split(";")[0].strip().lower()
                if ctype == FORM_CONTENT_TYPE:
                    form = urllib.parse.parse_qs(raw.decode("utf-8", "replace"),
                                                  keep_blank_values=True)

            query = urllib.parse.urlparse(self.path).query
            for key, values in urllib.parse.parse_qs(query, keep_blank_values=True).items():
                form.setdefault(key, []).extend(values)
            return form

        def _form_value(self, key: str) -> str:
            values = self._form.get(key)
            return values[0] if values else ""

        def _dispatch(self):
            # Always drain the body so the connection closes cleanly
            self._form = self._read_form()
            path = urllib.parse.urlparse(self.path).path
            route = self.routes.get(path)
            if route is None:
                self._respond("404 page not found\n", status=404,
                              content_type=TEXT_CONTENT_TYPE)
                return
            getattr(self, route)()

        do_GET = _dispatch
        do_HEAD = _dispatch
        do_POST = _dispatch
        do_PUT = _dispatch
        do_PATCH = _dispatch
        do_DELETE = _dispatch
        do_OPTIONS = _dispatch

        # -- routes ----------------------------------------------------------

        def _heartbeat(self):
            self._respond("Ping\n", content_type=TEXT_CONTENT_TYPE)

        def _status(self):
            bulb = store.snapshot()
            if self.headers.get("Content-Type") == JSON_CONTENT_TYPE:
                self._respond(json.dumps(bulb.to_dict()))
            else:
                self._respond(render_status_page(bulb), content_type=HTML_CONTENT_TYPE)

        def _field(self, field: str, read: Callable[[], str],
                   write: Callable[[str], None]):
            if self.command in ("GET", "HEAD"):
                self._respond(read())
            elif self.command == "PATCH":
                raw = self._form_value(field)
                try:
                    write(raw)
                except ValidationError as exc:
                    logger.warning("Rejected %s update %r: %s", field, raw, exc)
                    self._json_error(str(exc))
                    return
                logger.info("Updated %s to %r", field, raw)
                self._respond(b"", status=202)
            else:
                self._respond(b"")

        def _name(self):
            self._field("name", lambda: _quoted(store.get_name()), store.set_name)

        def _color(self):
            self._field("color", lambda: _quoted(store.get_color()), store.set_color)

        def _brightness(self):
            self._field("brightness", lambda: str(store.get_brightness()),
                        store.set_brightness)

    return BulbHTTPHandler


def create_agent_server(
    store: BulbStore,
    host: str = "",
    port: int = 9494,
) -> ThreadingHTTPServer:
    """Bind a ThreadingHTTPServer for *store*. Raises OSError if the bind fails."""
    handler = _make_handler(store)
    return ThreadingHTTPServer((host, port), handler)


def start_agent_server(
    store: BulbStore,
    host: str = "",
    port: int = 9494,
) -> ThreadingHTTPServer:
    """Start a ThreadingHTTPServer in a daemon thread and return the server."""
    server = create_agent_server(store, host=host, port=port)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server
