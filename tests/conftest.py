"""
Pytest configuration and shared fixtures
"""
import json
import os
import sys
import threading
import urllib.error
import urllib.parse
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bulb_agent.bulb import BulbStore  # noqa: E402
from bulb_agent.server import start_agent_server  # noqa: E402


_OPENER = urllib.request.build_opener(urllib.request.ProxyHandler({}))


def http_request(url, method="GET", form=None, headers=None):
    """Issue a request and return (status, headers, body text), including error statuses."""
    data = urllib.parse.urlencode(form).encode() if form is not None else None
    request = urllib.request.Request(url, data=data, method=method, headers=headers or {})
    try:
        with _OPENER.open(request, timeout=5) as resp:
            return resp.status, resp.headers, resp.read().decode()
    except urllib.error.HTTPError as exc:
        with exc:
            return exc.code, exc.headers, exc.read().decode()


class FakeHub:
    """Minimal hub: answers HEAD with scripted statuses and records POSTs."""

    def __init__(self, head_statuses=(200,), post_status=200):
        self.lock = threading.Lock()
        self.head_statuses = list(head_statuses)
        self.post_status = post_status
        self.head_count = 0
        self.posts = []
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), self._make_handler())
        self.url = f"http://127.0.0.1:{self.server.server_address[1]}"

    def _next_head_status(self):
        with self.lock:
            self.head_count += 1
            if len(self.head_statuses) > 1:
                return self.head_statuses.pop(0)
            return self.head_statuses[0]

    def _make_handler(self):
        hub = self

        class HubHandler(BaseHTTPRequestHandler):

            def log_message(self, format, *args):
                pass

            def _empty(self, status):
                self.send_response(status)
                self.send_header("Content-Length", "0")
                self.end_headers()

            def do_HEAD(self):
                self._empty(hub._next_head_status())

            def do_POST(self):
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length)
                with hub.lock:
                    hub.posts.append({
                        "path": self.path,
                        "content_type": self.headers.get("Content-Type"),
                        "body": json.loads(body),
                    })
                self._empty(hub.post_status)

        return HubHandler

    def start(self):
        threading.Thread(target=self.server.serve_forever, daemon=True).start()
        return self

    def stop(self):
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def store():
    return BulbStore()


@pytest.fixture
def agent_url(store):
    """Base URL of a live agent server on an ephemeral port"""
    server = start_agent_server(store, host="127.0.0.1", port=0)
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def make_hub():
    hubs = []

    def _make(**kwargs):
        hub = FakeHub(**kwargs).start()
        hubs.append(hub)
        return hub

    yield _make
    for hub in hubs:
        hub.stop()
